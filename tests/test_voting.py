import threading
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest

from communibus.src import exceptions, voting
from communibus.src.db import ProposalVote, RouteProposal, sessionMaker
from communibus.src.enums import PledgeFrequency, ProposalStatus, VoteType
from communibus.src.redis import acquireLock, releaseLock


@pytest.fixture()
def company(seed):
    return seed.company()


@pytest.fixture()
def customers(seed, company):
    return [seed.customer(company, fullName=f"Rider {x}")[0] for x in range(10)]


def pledge(session, proposal, customer, amount=4.5, **kwargs):
    return voting.recordVote(
        session,
        proposal.id,
        customer,
        VoteType.PLEDGE,
        PledgeFrequency.DAILY,
        amount,
        **kwargs,
    )


class TestRecordVote:
    def test_threshold_reached_on_minimum_pledge(
        self, session, seed, company, customers
    ):
        proposal = seed.proposal(company, minimum_passengers_required=8)
        for customer in customers[:7]:
            _, proposal = pledge(session, proposal, customer)
            assert proposal.status == ProposalStatus.OPEN
        assert proposal.total_pledges == 7

        _, proposal = pledge(session, proposal, customers[7])
        assert proposal.total_pledges == 8
        assert proposal.total_votes == 8
        assert proposal.status == ProposalStatus.THRESHOLD_MET

    def test_resubmission_replaces_vote(self, session, seed, company, customers):
        proposal = seed.proposal(company)
        customer = customers[0]
        voting.recordVote(session, proposal.id, customer, VoteType.INTERESTED)
        vote, proposal = pledge(session, proposal, customer, amount=3.999)
        assert proposal.total_votes == 1
        assert proposal.total_pledges == 1
        assert vote.willing_to_pay_amount == Decimal("4.00")

        vote, proposal = voting.recordVote(
            session, proposal.id, customer, VoteType.MAYBE, PledgeFrequency.WEEKLY, 3
        )
        assert proposal.total_votes == 1
        assert proposal.total_pledges == 0
        assert vote.vote_type == VoteType.MAYBE
        assert vote.expected_frequency is None
        assert vote.willing_to_pay_amount is None
        assert session.query(ProposalVote).count() == 1

    def test_threshold_is_kept_when_pledges_drop(
        self, session, seed, company, customers
    ):
        proposal = seed.proposal(company, minimum_passengers_required=2)
        pledge(session, proposal, customers[0])
        _, proposal = pledge(session, proposal, customers[1])
        assert proposal.status == ProposalStatus.THRESHOLD_MET

        _, proposal = voting.recordVote(
            session, proposal.id, customers[1], VoteType.INTERESTED
        )
        assert proposal.total_pledges == 1
        assert proposal.status == ProposalStatus.THRESHOLD_MET

    def test_pledges_never_exceed_votes(self, session, seed, company, customers):
        proposal = seed.proposal(company, minimum_passengers_required=4)
        kinds = [VoteType.PLEDGE, VoteType.MAYBE, VoteType.INTERESTED]
        for turn in range(30):
            customer = customers[(turn * 7) % len(customers)]
            kind = kinds[turn % len(kinds)]
            _, proposal = voting.recordVote(
                session,
                proposal.id,
                customer,
                kind,
                PledgeFrequency.WEEKLY,
                2.5,
            )
            assert proposal.total_pledges <= proposal.total_votes
            assert proposal.total_votes <= len(customers)

    def test_anonymous_vote_hides_name(self, session, seed, company, customers):
        proposal = seed.proposal(company)
        vote, _ = pledge(session, proposal, customers[0], isAnonymous=True)
        assert vote.is_anonymous
        assert vote.voter_name is None

        vote, _ = pledge(session, proposal, customers[1])
        assert vote.voter_name == "Rider 1"

    def test_lock_is_released(self, session, seed, company, customers, redisClient):
        proposal = seed.proposal(company)
        pledge(session, proposal, customers[0])
        assert redisClient.get(f"lock:route_proposal:{proposal.id}") is None

        with pytest.raises(exceptions.MissingParameter):
            voting.recordVote(session, proposal.id, customers[1], VoteType.PLEDGE)
        assert redisClient.get(f"lock:route_proposal:{proposal.id}") is None


class TestVoteValidation:
    def test_pledge_needs_frequency(self, session, seed, company, customers):
        proposal = seed.proposal(company)
        with pytest.raises(exceptions.MissingParameter) as error:
            voting.recordVote(
                session, proposal.id, customers[0], VoteType.PLEDGE, None, 4.0
            )
        assert "expected_frequency" in error.value.detail

    def test_pledge_needs_amount(self, session, seed, company, customers):
        proposal = seed.proposal(company)
        with pytest.raises(exceptions.MissingParameter) as error:
            voting.recordVote(
                session,
                proposal.id,
                customers[0],
                VoteType.PLEDGE,
                PledgeFrequency.DAILY,
            )
        assert "willing_to_pay_amount" in error.value.detail

    def test_pledge_amount_must_be_positive(self, session, seed, company, customers):
        proposal = seed.proposal(company)
        with pytest.raises(exceptions.NonPositiveValue):
            pledge(session, proposal, customers[0], amount=0)

    def test_unknown_vote_type(self, session, seed, company, customers):
        proposal = seed.proposal(company)
        with pytest.raises(exceptions.InvalidValue):
            voting.recordVote(session, proposal.id, customers[0], 9)

    def test_unknown_frequency(self, session, seed, company, customers):
        proposal = seed.proposal(company)
        with pytest.raises(exceptions.InvalidValue):
            voting.recordVote(
                session, proposal.id, customers[0], VoteType.PLEDGE, 9, 4.0
            )

    @pytest.mark.parametrize(
        "status",
        [
            ProposalStatus.APPROVED,
            ProposalStatus.REJECTED,
            ProposalStatus.CONVERTED_TO_ROUTE,
        ],
    )
    def test_closed_proposal(self, session, seed, company, customers, status):
        proposal = seed.proposal(company, status=status)
        with pytest.raises(exceptions.InactiveResource):
            pledge(session, proposal, customers[0])
        session.rollback()
        assert session.query(ProposalVote).count() == 0

    def test_proposal_of_other_company(self, session, seed, company, customers):
        otherCompany = seed.company("Leeds Community Bus")
        proposal = seed.proposal(otherCompany)
        with pytest.raises(exceptions.InvalidIdentifier):
            pledge(session, proposal, customers[0])


class TestRecalculate:
    def test_totals_are_recounted(self, session, seed, company, customers):
        proposal = seed.proposal(company, minimum_passengers_required=2)
        pledge(session, proposal, customers[0])
        voting.recordVote(session, proposal.id, customers[1], VoteType.MAYBE)

        proposal.total_votes = 40
        proposal.total_pledges = 40
        session.commit()

        proposal = voting.recalculate(session, proposal.id, company.id)
        assert proposal.total_votes == 2
        assert proposal.total_pledges == 1
        assert proposal.status == ProposalStatus.OPEN

        session.expire_all()
        stored = session.query(RouteProposal).filter(RouteProposal.id == proposal.id).one()
        assert stored.total_votes == 2
        assert stored.total_pledges == 1

    def test_recalculate_is_idempotent(self, session, seed, company, customers):
        proposal = seed.proposal(company, minimum_passengers_required=1)
        pledge(session, proposal, customers[0])
        first = voting.recalculate(session, proposal.id, company.id)
        totals = (first.total_votes, first.total_pledges, first.status)
        second = voting.recalculate(session, proposal.id, company.id)
        assert (second.total_votes, second.total_pledges, second.status) == totals


class TestProposalLock:
    def test_held_lock_times_out(self, redisClient):
        held = redisClient.lock("lock:route_proposal:1", timeout=10)
        assert held.acquire(blocking=False)
        with pytest.raises(exceptions.LockAcquireTimeout):
            acquireLock(RouteProposal.__tablename__, 1, blockingTimeOut=0.2)
        held.release()

        lock = acquireLock(RouteProposal.__tablename__, 1, blockingTimeOut=0.2)
        assert lock.owned()
        releaseLock(lock)
        assert not lock.locked()

    def test_concurrent_pledges_are_all_counted(
        self, session, seed, company, customers
    ):
        proposal = seed.proposal(company, minimum_passengers_required=8)
        start = threading.Barrier(len(customers), timeout=10)

        def pledgeInOwnSession(customer):
            threadSession = sessionMaker()
            try:
                start.wait()
                vote, _ = pledge(threadSession, proposal, customer)
                return vote.id
            finally:
                threadSession.close()

        with ThreadPoolExecutor(max_workers=len(customers)) as executor:
            voteIds = list(executor.map(pledgeInOwnSession, customers))

        assert len(set(voteIds)) == len(customers)
        session.expire_all()
        stored = session.query(RouteProposal).filter(RouteProposal.id == proposal.id).one()
        assert stored.total_votes == len(customers)
        assert stored.total_pledges == len(customers)
        assert stored.status == ProposalStatus.THRESHOLD_MET

    def test_concurrent_resubmission_keeps_one_vote(
        self, session, seed, company, customers
    ):
        proposal = seed.proposal(company)
        customer = customers[0]
        start = threading.Barrier(2, timeout=10)

        def voteInOwnSession(kind):
            threadSession = sessionMaker()
            try:
                start.wait()
                voting.recordVote(
                    threadSession,
                    proposal.id,
                    customer,
                    kind,
                    PledgeFrequency.WEEKLY,
                    3.5,
                )
            finally:
                threadSession.close()

        with ThreadPoolExecutor(max_workers=2) as executor:
            list(executor.map(voteInOwnSession, [VoteType.PLEDGE, VoteType.MAYBE]))

        session.expire_all()
        [vote] = (
            session.query(ProposalVote)
            .filter(ProposalVote.proposal_id == proposal.id)
            .all()
        )
        stored = session.query(RouteProposal).filter(RouteProposal.id == proposal.id).one()
        assert stored.total_votes == 1
        assert stored.total_pledges == (1 if vote.vote_type == VoteType.PLEDGE else 0)
