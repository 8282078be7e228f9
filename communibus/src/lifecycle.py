"""
State machine of a route proposal.

    OPEN ──► THRESHOLD_MET ──► APPROVED ──► CONVERTED_TO_ROUTE
      │            │
      └────────────┴──► REJECTED

`REJECTED` and `CONVERTED_TO_ROUTE` are terminal. The only automatic
transition is `OPEN -> THRESHOLD_MET`, made by vote aggregation once enough
pledges exist. Every other transition is an operator action.

Callers hold the proposal's mutex and commit the session.
"""

from datetime import datetime, timezone
from sqlalchemy.orm.session import Session

from communibus.src import exceptions, validators
from communibus.src.db import ProposalTransition, RouteProposal
from communibus.src.enums import AppID, ProposalStatus

proposalStatusTransition = {
    ProposalStatus.OPEN: [
        ProposalStatus.THRESHOLD_MET,
        ProposalStatus.APPROVED,
        ProposalStatus.REJECTED,
    ],
    ProposalStatus.THRESHOLD_MET: [ProposalStatus.APPROVED, ProposalStatus.REJECTED],
    ProposalStatus.APPROVED: [ProposalStatus.CONVERTED_TO_ROUTE],
    ProposalStatus.REJECTED: [],
    ProposalStatus.CONVERTED_TO_ROUTE: [],
}

REVIEWABLE = [ProposalStatus.OPEN, ProposalStatus.THRESHOLD_MET]


def transition(
    session: Session,
    proposal: RouteProposal,
    newStatus: ProposalStatus,
    actorApp: AppID,
    actorId: int | None,
    reason: str | None = None,
) -> ProposalTransition:
    """
    Move a proposal to `newStatus` and record the change.

    Args:
        session (Session): Active SQLAlchemy session, not committed here.
        proposal (RouteProposal): The proposal to update.
        newStatus (ProposalStatus): Desired status.
        actorApp (AppID): Application of the acting account.
        actorId (int | None): Customer or operator performing the change.
        reason (str | None): Rejection reason or review notes.

    Raises:
        exceptions.InvalidStateTransition: If the transition is not permitted.
    """
    oldStatus = ProposalStatus(proposal.status)
    validators.stateTransition(
        proposalStatusTransition, oldStatus, newStatus, RouteProposal.status
    )
    proposal.status = newStatus
    record = ProposalTransition(
        company_id=proposal.company_id,
        proposal_id=proposal.id,
        old_status=oldStatus,
        new_status=newStatus,
        actor_app=actorApp,
        actor_id=actorId,
        reason=reason,
    )
    session.add(record)
    return record


def markThresholdMet(
    session: Session, proposal: RouteProposal, customerId: int | None
) -> bool:
    """
    Advance an OPEN proposal whose pledges reached the minimum.

    Returns:
        bool: True if the status changed.
    """
    if proposal.status != ProposalStatus.OPEN:
        return False
    if proposal.total_pledges < proposal.minimum_passengers_required:
        return False
    transition(
        session, proposal, ProposalStatus.THRESHOLD_MET, AppID.CUSTOMER, customerId
    )
    return True


def approve(
    session: Session,
    proposal: RouteProposal,
    operatorId: int,
    notes: str | None = None,
) -> RouteProposal:
    """
    Approve a proposal that is OPEN or THRESHOLD_MET.

    Raises:
        exceptions.AlreadyReviewed: Naming the current status, for any other state.
    """
    if proposal.status not in REVIEWABLE:
        raise exceptions.AlreadyReviewed(ProposalStatus(proposal.status))
    transition(
        session, proposal, ProposalStatus.APPROVED, AppID.OPERATOR, operatorId, notes
    )
    proposal.reviewed_by = operatorId
    proposal.reviewed_on = datetime.now(timezone.utc)
    proposal.review_notes = notes
    return proposal


def reject(
    session: Session, proposal: RouteProposal, operatorId: int, reason: str | None
) -> RouteProposal:
    """
    Reject a proposal with a reason.

    Raises:
        exceptions.MissingParameter: If the reason is empty.
        exceptions.AlreadyReviewed: If the proposal is approved, rejected or converted.
    """
    if reason is None or not reason.strip():
        raise exceptions.MissingParameter(RouteProposal.rejection_reason)
    if proposal.status not in REVIEWABLE:
        raise exceptions.AlreadyReviewed(ProposalStatus(proposal.status))
    reason = reason.strip()
    transition(
        session, proposal, ProposalStatus.REJECTED, AppID.OPERATOR, operatorId, reason
    )
    proposal.reviewed_by = operatorId
    proposal.reviewed_on = datetime.now(timezone.utc)
    proposal.rejection_reason = reason
    return proposal


def convert(
    session: Session, proposal: RouteProposal, operatorId: int, routeId: int
) -> RouteProposal:
    """
    Record that an approved proposal became an operating route.

    Building the route itself happens in the scheduling service, only its
    identifier is stored here.

    Raises:
        exceptions.InvalidStateTransition: If the proposal is not APPROVED.
    """
    transition(
        session,
        proposal,
        ProposalStatus.CONVERTED_TO_ROUTE,
        AppID.OPERATOR,
        operatorId,
    )
    proposal.converted_to_route_id = routeId
    proposal.converted_on = datetime.now(timezone.utc)
    return proposal
