"""
Validation and permission checks for Communibus API.

This module centralizes guard logic such as:
- Token validation
- Role-based permission checks
- Travel privacy consent
- State transition enforcement
- Positive numeric inputs for fare computations

All functions raise appropriate exceptions from `communibus.src.exceptions`
when validation fails, ensuring consistent error handling.
"""

from datetime import datetime, timezone
from sqlalchemy.orm.session import Session
from sqlalchemy import Column
from typing import Any

from communibus.src.db import (
    CustomerToken,
    OperatorRole,
    OperatorToken,
    TravelPrivacy,
)
from communibus.src import exceptions
from communibus.src.functions import isValidTransition


# ---------------------------------------------------------------------------
# Token validation
# ---------------------------------------------------------------------------
def _validate_token(model_cls, access_token: str, session: Session):
    """
    Generic token validator for any token model.

    Args:
        model_cls: The SQLAlchemy model class (e.g., CustomerToken).
        access_token (str): The bearer token string provided by the client.
        session (Session): Active SQLAlchemy session for DB lookup.

    Returns:
        model_cls: The valid token object from the database.

    Raises:
        exceptions.InvalidToken: If the token is not found or has expired.
    """
    current_time = datetime.now(timezone.utc)

    token = (
        session.query(model_cls)
        .filter(
            model_cls.access_token == access_token,
            model_cls.expires_at > current_time,
        )
        .first()
    )

    if token is None:
        raise exceptions.InvalidToken()

    return token


def customerToken(access_token: str, session: Session) -> CustomerToken:
    """Validate a customer access token."""
    return _validate_token(CustomerToken, access_token, session)


def operatorToken(access_token: str, session: Session) -> OperatorToken:
    """Validate an operator access token."""
    return _validate_token(OperatorToken, access_token, session)


# ---------------------------------------------------------------------------
# Permission checks
# ---------------------------------------------------------------------------
def operatorPermission(role: OperatorRole, permission: Column) -> bool:
    """
    Validate that an operator has the required permission.

    Args:
        role (OperatorRole): Role of the operator, may be None.
        permission (Column): SQLAlchemy Column representing the permission flag.

    Raises:
        exceptions.NoPermission: If the role does not have the required permission.
    """
    if role and getattr(role, permission.name, False):
        return True
    raise exceptions.NoPermission()


def proposalConsent(privacy: TravelPrivacy | None) -> bool:
    """
    Validate that a customer has recorded consent for route proposals.

    Raises:
        exceptions.ConsentRequired: If no privacy record exists or consent was not given.
    """
    if privacy is not None and privacy.consent_given:
        return True
    raise exceptions.ConsentRequired()


# ---------------------------------------------------------------------------
# State transitions
# ---------------------------------------------------------------------------
def stateTransition(
    transitions: dict[Any, list[Any]], old_state: Any, new_state: Any, state: Column
) -> bool:
    """
    Validate whether a state transition is allowed.

    Args:
        transitions (dict[Any, list[Any]]): Mapping of valid transitions.
        old_state (Any): Current state value.
        new_state (Any): Desired new state value.
        state (Column): SQLAlchemy column representing the state
            (used to format error messages).

    Raises:
        exceptions.InvalidStateTransition: If the transition is not permitted.
    """
    if not isValidTransition(transitions, old_state, new_state):
        raise exceptions.InvalidStateTransition(state, old_state)
    return True


# ---------------------------------------------------------------------------
# Numeric inputs
# ---------------------------------------------------------------------------
def positive(**values) -> bool:
    """
    Validate that every keyword value is a number greater than zero.

    Example:
        >>> positive(fixed_cost=140, current_passengers=4)
        True

    Raises:
        exceptions.NonPositiveValue: Naming the first offending value.
    """
    for name, value in values.items():
        if value is None or value <= 0:
            raise exceptions.NonPositiveValue(name)
    return True
