from fastapi import Request
from sqlalchemy.orm.session import Session

from communibus.src import schemas, exceptions
from communibus.src.enums import AccountStatus, Day
from communibus.src.db import (
    Customer,
    CustomerSchedule,
    CustomerToken,
    FarePolicy,
    OperatorRole,
    OperatorRoleMap,
    OperatorToken,
    RouteProposal,
    TravelPrivacy,
)


def requestInfo(request: Request) -> schemas.RequestInfo:
    """
    Extract metadata about the incoming request.

    Args:
        request (Request): FastAPI request object.

    Returns:
        schemas.RequestInfo: Pydantic model containing:
            - method (str): HTTP method (GET, POST, etc.).
            - path (str): Path portion of the request URL.
            - app_id (int): Application ID from app state.
    """
    return schemas.RequestInfo(
        method=request.method,
        path=request.url.path,
        app_id=request.scope["app"].state.id,
    )


def operatorRole(token: OperatorToken, session: Session) -> OperatorRole | None:
    """Fetch the role associated with an operator token."""
    return (
        session.query(OperatorRole)
        .join(OperatorRoleMap, OperatorRole.id == OperatorRoleMap.role_id)
        .filter(OperatorRoleMap.operator_id == token.operator_id)
        .first()
    )


def routeProposal(
    session: Session, proposalId: int, companyId: int, forUpdate: bool = False
) -> RouteProposal:
    """
    Fetch a proposal within the caller's company.

    Args:
        session (Session): Active SQLAlchemy session.
        proposalId (int): Proposal identifier.
        companyId (int): Company of the caller, proposals of other companies are invisible.
        forUpdate (bool): Lock the row (`SELECT ... FOR UPDATE`) until the transaction ends.

    Raises:
        exceptions.InvalidIdentifier: If no such proposal exists in the company.
    """
    query = session.query(RouteProposal).filter(
        RouteProposal.id == proposalId, RouteProposal.company_id == companyId
    )
    if forUpdate:
        query = query.with_for_update()
    proposal = query.first()
    if proposal is None:
        raise exceptions.InvalidIdentifier()
    return proposal


def travelPrivacy(session: Session, customerId: int) -> TravelPrivacy | None:
    return (
        session.query(TravelPrivacy)
        .filter(TravelPrivacy.customer_id == customerId)
        .first()
    )


def farePolicy(session: Session, companyId: int) -> FarePolicy | None:
    return session.query(FarePolicy).filter(FarePolicy.company_id == companyId).first()


def weeklySchedule(rows: list[CustomerSchedule]) -> schemas.WeeklySchedule:
    """Fold schedule rows into a seven day schedule, missing days stay empty."""
    schedule = schemas.WeeklySchedule()
    for row in rows:
        entry = schedule.entry(Day(row.day))
        entry.destination = row.destination
        entry.pickup_time = row.pickup_time
        entry.dropoff_time = row.dropoff_time
    return schedule


def travelProfile(session: Session, customer: Customer) -> schemas.TravelProfile:
    """
    Build the read-only travel profile of a customer.

    Args:
        session (Session): Active SQLAlchemy session.
        customer (Customer): The customer whose schedule is loaded.

    Returns:
        schemas.TravelProfile: Postcode and a complete weekly schedule.
    """
    rows = (
        session.query(CustomerSchedule)
        .filter(CustomerSchedule.customer_id == customer.id)
        .all()
    )
    return schemas.TravelProfile(
        customer_id=customer.id,
        postcode=customer.postcode,
        schedule=weeklySchedule(rows),
    )


def customer(token: CustomerToken, session: Session) -> Customer:
    """
    Fetch the active customer behind a customer token.

    Raises:
        exceptions.InvalidToken: If the customer no longer exists.
        exceptions.InactiveAccount: If the customer is suspended.
    """
    account = session.query(Customer).filter(Customer.id == token.customer_id).first()
    if account is None:
        raise exceptions.InvalidToken()
    if account.status != AccountStatus.ACTIVE:
        raise exceptions.InactiveAccount()
    return account
