"""
Invitation of matching customers to newly created route proposals.

Matching runs off the request path on a small thread pool. It is best
effort: a failing or dropped run is logged and leaves the proposal without
invitations, the proposal itself is never affected.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from threading import BoundedSemaphore
from typing import Optional

from sqlalchemy.orm.session import Session

from communibus.src import getters
from communibus.src.constants import (
    INVITATION_QUEUE_LIMIT,
    INVITATION_WORKERS,
    MATCH_SCORE_THRESHOLD,
)
from communibus.src.db import (
    Customer,
    ProposalInvitation,
    RouteProposal,
    TravelPrivacy,
    sessionMaker,
)
from communibus.src.enums import AccountStatus, InvitationStatus
from communibus.src.matching import matchScore

logger = logging.getLogger("Invitations")


def candidates(session: Session, proposal: RouteProposal) -> list[Customer]:
    """
    Active customers of the proposal's company who agreed to be matched.

    The proposer is excluded.
    """
    query = (
        session.query(Customer)
        .join(TravelPrivacy, TravelPrivacy.customer_id == Customer.id)
        .filter(
            Customer.company_id == proposal.company_id,
            Customer.status == AccountStatus.ACTIVE,
            TravelPrivacy.consent_given == True,
            TravelPrivacy.share_travel_patterns == True,
            TravelPrivacy.allow_proposal_invitations == True,
        )
    )
    if proposal.proposer_id is not None:
        query = query.filter(Customer.id != proposal.proposer_id)
    return query.order_by(Customer.id).all()


def inviteMatches(session: Session, proposal: RouteProposal) -> int:
    """
    Create a PENDING invitation for every candidate scoring at least 50.

    Customers already invited to the proposal are skipped, so running this
    again creates nothing new. The session is flushed, not committed.

    Returns:
        int: Number of invitations created.
    """
    invited = {
        customerId
        for (customerId,) in session.query(ProposalInvitation.customer_id).filter(
            ProposalInvitation.proposal_id == proposal.id
        )
    }
    created = 0
    for customer in candidates(session, proposal):
        if customer.id in invited:
            continue
        result = matchScore(proposal, getters.travelProfile(session, customer))
        if result.score < MATCH_SCORE_THRESHOLD:
            continue
        session.add(
            ProposalInvitation(
                company_id=proposal.company_id,
                proposal_id=proposal.id,
                customer_id=customer.id,
                match_score=result.score,
                match_reason=result.reasons,
                status=InvitationStatus.PENDING,
            )
        )
        created += 1
    session.flush()
    return created


def generateInvitations(proposalId: int) -> int:
    """
    Run the matching pass for a proposal in its own session.

    Never raises. Any failure is rolled back and logged, and counts as zero
    invitations.

    Returns:
        int: Number of invitations created.
    """
    session = sessionMaker()
    try:
        proposal = (
            session.query(RouteProposal).filter(RouteProposal.id == proposalId).first()
        )
        if proposal is None:
            logger.warning("Route proposal %s not found, no invitations", proposalId)
            return 0
        created = inviteMatches(session, proposal)
        session.commit()
        logger.info("Created %s invitations for route proposal %s", created, proposalId)
        return created
    except Exception:
        session.rollback()
        logger.exception("Invitation generation failed for route proposal %s", proposalId)
        return 0
    finally:
        session.close()


class InvitationDispatcher:
    """
    Bounded background runner for `generateInvitations`.

    At most `queueLimit` runs are pending or in progress at any time. When
    the limit is reached new runs are dropped with a warning instead of
    blocking the caller.
    """

    def __init__(
        self, maxWorkers: int = INVITATION_WORKERS, queueLimit: int = INVITATION_QUEUE_LIMIT
    ):
        self.executor = ThreadPoolExecutor(
            max_workers=maxWorkers, thread_name_prefix="invitations"
        )
        self.slots = BoundedSemaphore(queueLimit)

    def submit(self, proposalId: int) -> Optional[Future]:
        if not self.slots.acquire(blocking=False):
            logger.warning(
                "Invitation queue is full, dropped route proposal %s", proposalId
            )
            return None
        try:
            future = self.executor.submit(generateInvitations, proposalId)
        except RuntimeError:
            self.slots.release()
            logger.exception("Invitation worker unavailable for route proposal %s", proposalId)
            return None
        future.add_done_callback(lambda _: self.slots.release())
        return future

    def shutdown(self, wait: bool = True) -> None:
        self.executor.shutdown(wait=wait)


dispatcher = InvitationDispatcher()
