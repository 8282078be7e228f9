"""
Vote recording and re-aggregation of proposal totals.

Totals are never incremented. After every vote they are recounted from the
vote rows of the proposal, while the proposal's Redis mutex and database row
lock are held, so concurrent votes cannot overwrite each other's totals.
"""

from decimal import Decimal
from sqlalchemy import func
from sqlalchemy.orm.session import Session

from communibus.src import exceptions, getters, lifecycle, validators
from communibus.src.db import Customer, ProposalVote, RouteProposal
from communibus.src.enums import PledgeFrequency, ProposalStatus, VoteType
from communibus.src.redis import acquireLock, releaseLock

ACCEPTING_VOTES = [ProposalStatus.OPEN, ProposalStatus.THRESHOLD_MET]


def voteType(value) -> VoteType:
    try:
        return VoteType(value)
    except ValueError:
        raise exceptions.InvalidValue(ProposalVote.vote_type)


def pledgeDetails(expectedFrequency, willingToPayAmount) -> tuple:
    """
    Validate the details every pledge must carry.

    Raises:
        exceptions.MissingParameter: If either detail is absent.
        exceptions.InvalidValue: If the frequency is unknown.
        exceptions.NonPositiveValue: If the amount is not positive.
    """
    if expectedFrequency is None:
        raise exceptions.MissingParameter(ProposalVote.expected_frequency)
    if willingToPayAmount is None:
        raise exceptions.MissingParameter(ProposalVote.willing_to_pay_amount)
    try:
        expectedFrequency = PledgeFrequency(expectedFrequency)
    except ValueError:
        raise exceptions.InvalidValue(ProposalVote.expected_frequency)
    validators.positive(willing_to_pay_amount=willingToPayAmount)
    return expectedFrequency, Decimal(str(willingToPayAmount)).quantize(Decimal("0.01"))


def aggregate(
    session: Session, proposal: RouteProposal, customerId: int | None = None
) -> RouteProposal:
    """
    Recount the totals of a proposal from its votes.

    Moves an OPEN proposal to THRESHOLD_MET once the pledges reach
    `minimum_passengers_required`, crediting `customerId` with the change.
    Makes no other status change. The caller holds the proposal's locks.
    """
    session.flush()
    totalVotes = (
        session.query(func.count(ProposalVote.id))
        .filter(ProposalVote.proposal_id == proposal.id)
        .scalar()
    )
    totalPledges = (
        session.query(func.count(ProposalVote.id))
        .filter(
            ProposalVote.proposal_id == proposal.id,
            ProposalVote.vote_type == VoteType.PLEDGE,
        )
        .scalar()
    )
    proposal.total_votes = totalVotes
    proposal.total_pledges = totalPledges
    lifecycle.markThresholdMet(session, proposal, customerId)
    return proposal


def recalculate(session: Session, proposalId: int, companyId: int) -> RouteProposal:
    """
    Recount a proposal's totals under its locks and commit.

    Safe to run any number of times, concurrently or not.

    Raises:
        exceptions.InvalidIdentifier: If the proposal is not in the company.
        exceptions.LockAcquireTimeout: If the proposal stays locked too long.
    """
    proposalLock = None
    try:
        proposalLock = acquireLock(RouteProposal.__tablename__, proposalId)
        proposal = getters.routeProposal(
            session, proposalId, companyId, forUpdate=True
        )
        aggregate(session, proposal)
        session.commit()
        return proposal
    finally:
        releaseLock(proposalLock)


def recordVote(
    session: Session,
    proposalId: int,
    customer: Customer,
    voteTypeValue,
    expectedFrequency=None,
    willingToPayAmount=None,
    isAnonymous: bool = False,
    notes: str | None = None,
) -> tuple[ProposalVote, RouteProposal]:
    """
    Insert or update the customer's vote and recount the proposal.

    A second vote by the same customer replaces the first, so the vote count
    of the proposal never grows on resubmission. Details of a pledge are
    dropped when the customer changes to a non-pledge vote.

    Args:
        session (Session): Active SQLAlchemy session, committed on success.
        proposalId (int): Proposal voted on, within the customer's company.
        customer (Customer): The voting customer.
        voteTypeValue: One of `VoteType`.
        expectedFrequency: `PledgeFrequency`, required for pledges.
        willingToPayAmount: Per-journey amount, required for pledges.
        isAnonymous (bool): Hide the customer's name from operators.
        notes (str | None): Optional note.

    Returns:
        tuple[ProposalVote, RouteProposal]: The stored vote and the recounted proposal.

    Raises:
        exceptions.InvalidValue: Unknown vote type or pledge frequency.
        exceptions.MissingParameter: A pledge without its frequency or amount.
        exceptions.InvalidIdentifier: Unknown proposal.
        exceptions.InactiveResource: The proposal no longer accepts votes.
        exceptions.LockAcquireTimeout: The proposal stays locked too long.
    """
    kind = voteType(voteTypeValue)
    if kind == VoteType.PLEDGE:
        expectedFrequency, willingToPayAmount = pledgeDetails(
            expectedFrequency, willingToPayAmount
        )
    else:
        expectedFrequency, willingToPayAmount = None, None
    voterName = None if isAnonymous else customer.full_name

    proposalLock = None
    try:
        proposalLock = acquireLock(RouteProposal.__tablename__, proposalId)
        proposal = getters.routeProposal(
            session, proposalId, customer.company_id, forUpdate=True
        )
        if proposal.status not in ACCEPTING_VOTES:
            raise exceptions.InactiveResource(RouteProposal)

        vote = (
            session.query(ProposalVote)
            .filter(
                ProposalVote.proposal_id == proposal.id,
                ProposalVote.customer_id == customer.id,
            )
            .first()
        )
        if vote is None:
            vote = ProposalVote(
                company_id=proposal.company_id,
                proposal_id=proposal.id,
                customer_id=customer.id,
            )
            session.add(vote)
        vote.vote_type = kind
        vote.expected_frequency = expectedFrequency
        vote.willing_to_pay_amount = willingToPayAmount
        vote.is_anonymous = isAnonymous
        vote.voter_name = voterName
        vote.notes = notes

        aggregate(session, proposal, customer.id)
        session.commit()
        session.refresh(vote)
        return vote, proposal
    finally:
        releaseLock(proposalLock)
