"""
Centralized exception handling for Communibus API.

This module provides:
- Base APIException class extending FastAPI's HTTPException.
- Input validation, lookup and permission exceptions with appropriate status codes and headers.
- Utility functions for formatting DB errors, logging, and routing exceptions.

Usage:
    - Raise specific exceptions in route handlers or in the proposal engine.
    - Use `handle()` to normalize raw exceptions (DB, Redis, Pydantic) into API-friendly responses.
"""

from traceback import format_exception
from logging import getLogger
from fastapi import status, HTTPException
from sqlalchemy.exc import IntegrityError
from psycopg2.errorcodes import UNIQUE_VIOLATION, FOREIGN_KEY_VIOLATION
from pydantic import ValidationError
from redis.exceptions import RedisError
from sqlalchemy import Column


# ---------------------------------------------------------------------------
# Utility functions
# ---------------------------------------------------------------------------
def formatIntegrityError(e: IntegrityError) -> str:
    """
    Format a database integrity error into a user-friendly message.

    Falls back to the driver message when the error carries no
    PostgreSQL diagnostics (e.g. SQLite).
    """
    diag = getattr(e.orig, "diag", None)
    if diag is None or diag.message_detail is None:
        return str(e.orig)
    errorMessage: str = diag.message_detail
    errorMessage = errorMessage.translate({ord(i): None for i in '\\"\\.\\(\\)'})
    errorMessage = errorMessage.replace("Key ", "For ")
    errorMessage = errorMessage.replace("=", " value ")
    return errorMessage


def sqlState(e: IntegrityError) -> str | None:
    diag = getattr(e.orig, "diag", None)
    return getattr(diag, "sqlstate", None)


def logException(e: Exception) -> None:
    """Log an exception with traceback using Uvicorn's error logger."""
    detail = str(format_exception(type(e), e, e.__traceback__))
    logger = getLogger("uvicorn.error")
    logger.error(detail)


# ---------------------------------------------------------------------------
# Base Exception
# ---------------------------------------------------------------------------
class APIException(HTTPException):
    """
    Base class for all application-specific exceptions.

    Provides default handling of status_code, detail, and headers.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    detail = None
    headers = None

    def __init__(self, *args, **kwargs):
        kwargs.setdefault("status_code", self.status_code)
        kwargs.setdefault("detail", self.detail)
        kwargs.setdefault("headers", self.headers)
        super().__init__(*args, **kwargs)


class InvalidInput(APIException):
    """
    Base class for caller-input problems (the validation kind).

    Raised for missing or malformed fields, non-positive fare inputs and
    lifecycle guard violations. Never retried.
    """

    status_code = status.HTTP_406_NOT_ACCEPTABLE
    detail = "Invalid input provided"
    headers = {"X-Error": "InvalidInput"}


# ---------------------------------------------------------------------------
# Exception handling entrypoint
# ---------------------------------------------------------------------------
def handle(e: Exception):
    """
    Normalize and re-raise exceptions as API-friendly errors.

    Converts raw exceptions from DB, Pydantic, Redis, etc. into
    corresponding APIException subclasses.
    """
    if isinstance(e, IntegrityError):
        if sqlState(e) == UNIQUE_VIOLATION:
            raise UniqueViolation(formatIntegrityError(e))
        if sqlState(e) == FOREIGN_KEY_VIOLATION:
            raise ForeignKeyViolation(formatIntegrityError(e))
    if isinstance(e, ValidationError):
        raise PydanticError(detail=e.errors())
    if isinstance(e, APIException):
        raise e
    if isinstance(e, RedisError):
        raise RedisDBError(detail=str(e))

    logException(e)
    raise e


# ---------------------------------------------------------------------------
# Exception Classes
# ---------------------------------------------------------------------------
class PydanticError(APIException):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    headers = {"X-Error": "PydanticError"}

    def __init__(self, detail: str):
        super().__init__(detail=detail)


class UniqueViolation(APIException):
    status_code = status.HTTP_409_CONFLICT
    headers = {"X-Error": "UniqueViolation"}

    def __init__(self, detail: str):
        super().__init__(detail=detail)


class ForeignKeyViolation(APIException):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    headers = {"X-Error": "ForeignKeyViolation"}

    def __init__(self, detail: str):
        super().__init__(detail=detail)


class InvalidIdentifier(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Invalid ID provided"
    headers = {"X-Error": "InvalidIdentifier"}


class InvalidToken(APIException):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Invalid token"
    headers = {"X-Error": "InvalidToken"}


class NoPermission(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "This user has no permission to perform this action"
    headers = {"X-Error": "NoPermission"}


class ConsentRequired(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "Travel pattern sharing consent is required for route proposals"
    headers = {"X-Error": "ConsentRequired"}


class InvalidValue(InvalidInput):
    headers = {"X-Error": "InvalidValue"}

    def __init__(self, column_name: Column):
        detail = f"Invalid {column_name.name} is provided"
        super().__init__(detail=detail)


class NonPositiveValue(InvalidInput):
    headers = {"X-Error": "NonPositiveValue"}

    def __init__(self, name: str):
        detail = f"The {name} must be greater than zero"
        super().__init__(detail=detail)


class MissingParameter(InvalidInput):
    headers = {"X-Error": "MissingParameter"}

    def __init__(self, column_name: Column):
        detail = f"The {column_name.name} is missing"
        super().__init__(detail=detail)


class UnexpectedParameter(InvalidInput):
    headers = {"X-Error": "UnexpectedParameter"}

    def __init__(self, column_name: Column):
        detail = f"Unexpected parameter {column_name.name} is provided"
        super().__init__(detail=detail)


class InvalidStateTransition(InvalidInput):
    headers = {"X-Error": "InvalidStateTransition"}

    def __init__(self, column_name: Column, old_state=None):
        detail = f"The {column_name.name} cannot be set to the provided value"
        if old_state is not None:
            detail = f"{detail} from {getattr(old_state, 'name', old_state)}"
        super().__init__(detail=detail)


class AlreadyReviewed(InvalidInput):
    headers = {"X-Error": "AlreadyReviewed"}

    def __init__(self, current_state=None):
        detail = "The proposal has already been reviewed"
        if current_state is not None:
            detail = f"{detail}, current status is {getattr(current_state, 'name', current_state)}"
        super().__init__(detail=detail)


class InactiveResource(InvalidInput):
    status_code = status.HTTP_412_PRECONDITION_FAILED
    headers = {"X-Error": "InactiveResource"}

    def __init__(self, orm_class):
        detail = (
            f"The status of {orm_class.__name__} is not in an active or useful state"
        )
        super().__init__(detail=detail)


class LockAcquireTimeout(InvalidInput):
    headers = {"X-Error": "LockAcquireTimeout"}
    detail = "Lock acquisition timed out"


class RedisDBError(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    headers = {"X-Error": "RedisAPIError"}

    def __init__(self, detail: str):
        super().__init__(detail=detail)


class InactiveAccount(APIException):
    status_code = status.HTTP_412_PRECONDITION_FAILED
    detail = "The account is not in active status"
    headers = {"X-Error": "InactiveAccount"}
