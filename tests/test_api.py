"""HTTP level tests of the customer and operator apps."""

from http import HTTPStatus

import pytest

from communibus.src.db import ProposalInvitation, RouteProposal
from communibus.src.enums import (
    AppID,
    Day,
    InvitationStatus,
    PledgeFrequency,
    ProposalStatus,
    ServiceFrequency,
    ViabilityRecommendation,
    VoteType,
)

from conftest import bearer

CUSTOMER = "/customer"
OPERATOR = "/operator"
PROPOSAL = "/company/route/proposal"
WEEKDAYS = [Day.MONDAY, Day.TUESDAY, Day.WEDNESDAY, Day.THURSDAY, Day.FRIDAY]

PROPOSAL_FORM = {
    "route_name": "Crookes to Sheffield Hallam",
    "origin_area": "Crookes",
    "origin_postcodes": ["s10", "S11", "S10 "],
    "destination_name": "Sheffield Hallam University",
    "proposed_frequency": ServiceFrequency.WEEKDAYS,
    "operating_days": WEEKDAYS,
    "departure_window_start": "07:30:00",
    "departure_window_end": "08:15:00",
    "estimated_distance_miles": 4.5,
    "estimated_duration_minutes": 25,
    "minimum_passengers_required": 3,
    "target_passengers": 12,
}


@pytest.fixture()
def company(seed):
    return seed.company()


@pytest.fixture()
def proposer(seed, company):
    return seed.customer(company, "Alice Walker", "S10 2AB")


@pytest.fixture()
def neighbour(seed, company):
    return seed.customer(company, "Ben Carter", "S10 3CD")


@pytest.fixture()
def admin(seed, company):
    return seed.operator(company)


@pytest.fixture()
def guest(seed, company):
    return seed.operator(
        company,
        "guest",
        reviewProposal=False,
        viewPledge=False,
        updateFarePolicy=False,
    )


def createProposal(client, token, **fields):
    form = dict(PROPOSAL_FORM, **fields)
    return client.post(CUSTOMER + PROPOSAL, headers=bearer(token), json=form)


def vote(client, token, proposalId, voteType=VoteType.PLEDGE, **fields):
    form = {"proposal_id": proposalId, "vote_type": voteType}
    if voteType == VoteType.PLEDGE:
        form.update(expected_frequency=PledgeFrequency.DAILY, willing_to_pay_amount=4)
    form.update(fields)
    return client.post(CUSTOMER + PROPOSAL + "/vote", headers=bearer(token), json=form)


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == HTTPStatus.OK
        assert response.json()["status"] == "OK"


class TestTravelPrivacy:
    URL = CUSTOMER + "/company/customer/privacy"

    def test_defaults_without_preferences(self, client, seed, company):
        _, token = seed.customer(company, withPrivacy=False)
        response = client.get(self.URL, headers=bearer(token))
        assert response.status_code == HTTPStatus.OK
        data = response.json()
        assert data["id"] is None
        assert data["consent_given"] is False
        assert data["allow_proposal_invitations"] is True

    def test_consent_is_recorded_and_withdrawn(self, client, seed, company, events):
        customer, token = seed.customer(company, withPrivacy=False)
        response = client.patch(
            self.URL,
            headers=bearer(token),
            json={"consent_given": True, "share_travel_patterns": True},
        )
        assert response.status_code == HTTPStatus.OK
        data = response.json()
        assert data["consent_given"] is True
        assert data["consent_on"] is not None
        assert events[-1]["_customer_id"] == customer.id
        assert events[-1]["_app_id"] == AppID.CUSTOMER

        response = client.patch(
            self.URL, headers=bearer(token), json={"consent_given": False}
        )
        data = response.json()
        assert data["consent_given"] is False
        assert data["consent_on"] is None
        assert data["share_travel_patterns"] is True

    def test_unchanged_preferences_are_not_logged(self, client, proposer, events):
        _, token = proposer
        response = client.patch(
            self.URL, headers=bearer(token), json={"consent_given": True}
        )
        assert response.status_code == HTTPStatus.OK
        assert events == []

    def test_invalid_token(self, client):
        response = client.get(self.URL, headers={"Authorization": "Bearer nope"})
        assert response.status_code == HTTPStatus.UNAUTHORIZED
        assert response.headers["X-Error"] == "InvalidToken"


class TestCreateProposal:
    def test_create(self, client, proposer, neighbour, dispatcher, session, events):
        customer, token = proposer
        response = createProposal(client, token)
        assert response.status_code == HTTPStatus.CREATED
        data = response.json()
        assert data["status"] == ProposalStatus.OPEN
        assert data["origin_postcodes"] == ["S10", "S11"]
        assert data["total_votes"] == 0
        assert data["proposer_id"] == customer.id
        assert data["proposer_name"] == "Alice Walker"
        assert data["operates_monday"] and not data["operates_sunday"]
        assert dispatcher.submitted == [data["id"]]
        assert events[-1]["id"] == data["id"]

        invited = (
            session.query(ProposalInvitation)
            .filter(ProposalInvitation.proposal_id == data["id"])
            .all()
        )
        assert [x.customer_id for x in invited] == [neighbour[0].id]

    def test_consent_required(self, client, seed, company):
        _, token = seed.customer(company, consent=False)
        response = createProposal(client, token)
        assert response.status_code == HTTPStatus.FORBIDDEN
        assert response.headers["X-Error"] == "ConsentRequired"

    def test_target_below_minimum(self, client, proposer):
        _, token = proposer
        response = createProposal(
            client, token, minimum_passengers_required=10, target_passengers=5
        )
        assert response.status_code == HTTPStatus.NOT_ACCEPTABLE
        assert response.headers["X-Error"] == "InvalidValue"

    def test_departure_window(self, client, proposer):
        _, token = proposer
        response = createProposal(client, token, departure_window_end="07:00:00")
        assert response.status_code == HTTPStatus.NOT_ACCEPTABLE

    def test_anonymous_preference_hides_proposer(self, client, seed, company, admin):
        _, token = seed.customer(company, anonymousVoting=True)
        proposalId = createProposal(client, token).json()["id"]

        response = client.get(
            CUSTOMER + PROPOSAL, headers=bearer(token), params={"id": proposalId}
        )
        [data] = response.json()
        assert data["proposer_is_anonymous"] is True
        assert data["proposer_id"] is None
        assert data["proposer_name"] is None

        response = client.get(
            OPERATOR + PROPOSAL, headers=bearer(admin), params={"id": proposalId}
        )
        assert response.json()[0]["proposer_id"] is not None


class TestBrowseProposals:
    def test_filters_and_ordering(self, client, seed, company, proposer):
        customer, token = proposer
        seed.proposal(company, customer, route_name="Walkley loop", total_pledges=1)
        seed.proposal(company, customer, route_name="Crookes shuttle", total_pledges=5)
        seed.proposal(
            company,
            customer,
            route_name="Crookes late",
            total_pledges=3,
            status=ProposalStatus.REJECTED,
        )

        response = client.get(
            CUSTOMER + PROPOSAL,
            headers=bearer(token),
            params={"route_name": "crookes", "order_by": 2, "order_in": 2},
        )
        assert [x["route_name"] for x in response.json()] == [
            "Crookes shuttle",
            "Crookes late",
        ]

        response = client.get(
            CUSTOMER + PROPOSAL,
            headers=bearer(token),
            params={"status": ProposalStatus.OPEN, "order_in": 1},
        )
        assert [x["route_name"] for x in response.json()] == [
            "Walkley loop",
            "Crookes shuttle",
        ]

    def test_fare_summary(self, client, seed, company, proposer):
        customer, token = proposer
        route = {"estimated_distance_miles": 8, "estimated_duration_minutes": 35}
        seed.proposal(company, customer, route_name="Walkley loop", total_pledges=4, **route)
        seed.proposal(company, customer, route_name="Crookes shuttle", total_pledges=16, **route)
        seed.proposal(
            company,
            customer,
            route_name="Crookes late",
            minimum_passengers_required=1,
            total_pledges=0,
            **route,
        )

        response = client.get(CUSTOMER + PROPOSAL, headers=bearer(token))
        assert response.status_code == HTTPStatus.OK
        summaries = {x["route_name"]: x["fare_summary"] for x in response.json()}
        assert summaries["Walkley loop"] == {
            "current_fare": 5.38,
            "fare_at_target": 1.35,
            "is_viable": False,
            "target_reached": False,
        }
        assert summaries["Crookes shuttle"] == {
            "current_fare": 1.35,
            "fare_at_target": 1.35,
            "is_viable": True,
            "target_reached": True,
        }
        assert summaries["Crookes late"]["current_fare"] == 21.53
        assert summaries["Crookes late"]["is_viable"] is False

    def test_fare_summary_matches_quote(self, client, seed, company, proposer, admin):
        seed.farePolicy(company, acceptable_fare_ceiling=6)
        customer, _ = proposer
        proposal = seed.proposal(company, customer, total_pledges=3)

        response = client.get(OPERATOR + PROPOSAL, headers=bearer(admin))
        [listed] = response.json()
        response = client.get(
            OPERATOR + PROPOSAL + "/fare",
            headers=bearer(admin),
            params={"id": proposal.id},
        )
        quote = response.json()["fare_quote"]
        assert listed["fare_summary"]["current_fare"] == quote["fare_at_current_capacity"]
        assert listed["fare_summary"]["is_viable"] == quote["is_viable"]
        assert listed["fare_summary"]["fare_at_target"] == quote["fare_tiers"][-1][
            "fare_per_passenger"
        ]

    def test_other_company_is_invisible(self, client, seed, proposer):
        otherCompany = seed.company("Leeds Community Bus")
        seed.proposal(otherCompany)
        _, token = proposer
        response = client.get(CUSTOMER + PROPOSAL, headers=bearer(token))
        assert response.json() == []


class TestProposalFare:
    def test_quote_and_preview(self, client, seed, company, proposer):
        customer, token = proposer
        proposal = seed.proposal(
            company,
            customer,
            estimated_distance_miles=8,
            estimated_duration_minutes=35,
            total_pledges=4,
        )
        response = client.get(
            CUSTOMER + PROPOSAL + "/fare",
            headers=bearer(token),
            params={"id": proposal.id},
        )
        assert response.status_code == HTTPStatus.OK
        data = response.json()
        quote = data["fare_quote"]
        assert quote["journey_cost"]["total_cost"] == 21.53
        assert quote["current_passengers"] == 4
        assert quote["fare_at_current_capacity"] == 5.38
        assert len(quote["fare_tiers"]) == 16
        assert [x["additional_passengers"] for x in data["fare_preview"]] == [
            1,
            2,
            3,
            4,
            5,
        ]
        assert data["route_proposal"]["id"] == proposal.id

    def test_fare_policy_is_applied(self, client, seed, company, proposer):
        seed.farePolicy(company, acceptable_fare_ceiling=6)
        customer, token = proposer
        proposal = seed.proposal(
            company,
            customer,
            estimated_distance_miles=8,
            estimated_duration_minutes=35,
            total_pledges=4,
        )
        response = client.get(
            CUSTOMER + PROPOSAL + "/fare",
            headers=bearer(token),
            params={"id": proposal.id},
        )
        quote = response.json()["fare_quote"]
        assert quote["acceptable_fare_ceiling"] == 6
        assert quote["is_viable"] is True

    def test_unknown_proposal(self, client, proposer):
        _, token = proposer
        response = client.get(
            CUSTOMER + PROPOSAL + "/fare", headers=bearer(token), params={"id": 999}
        )
        assert response.status_code == HTTPStatus.NOT_FOUND


class TestVote:
    def test_pledges_reach_threshold(self, client, seed, company, events):
        proposal = seed.proposal(company, minimum_passengers_required=2)
        tokens = [seed.customer(company, f"Rider {x}")[1] for x in range(3)]

        response = vote(client, tokens[0], proposal.id)
        assert response.status_code == HTTPStatus.OK
        data = response.json()
        assert data["vote"]["vote_type"] == VoteType.PLEDGE
        assert data["vote"]["willing_to_pay_amount"] == 4
        assert data["route_proposal"]["status"] == ProposalStatus.OPEN

        data = vote(client, tokens[1], proposal.id).json()
        assert data["route_proposal"]["total_pledges"] == 2
        assert data["route_proposal"]["status"] == ProposalStatus.THRESHOLD_MET

        data = vote(client, tokens[2], proposal.id, VoteType.INTERESTED).json()
        assert data["route_proposal"]["total_votes"] == 3
        assert data["route_proposal"]["total_pledges"] == 2
        assert len(events) == 3

    def test_revote_keeps_single_vote(self, client, seed, company, proposer):
        _, token = proposer
        proposal = seed.proposal(company)
        vote(client, token, proposal.id, VoteType.MAYBE)
        data = vote(client, token, proposal.id).json()
        assert data["route_proposal"]["total_votes"] == 1
        assert data["route_proposal"]["total_pledges"] == 1

    def test_pledge_without_amount(self, client, seed, company, proposer):
        _, token = proposer
        proposal = seed.proposal(company)
        response = vote(client, token, proposal.id, willing_to_pay_amount=None)
        assert response.status_code == HTTPStatus.NOT_ACCEPTABLE
        assert response.headers["X-Error"] == "MissingParameter"

    def test_closed_proposal(self, client, seed, company, proposer):
        _, token = proposer
        proposal = seed.proposal(company, status=ProposalStatus.APPROVED)
        response = vote(client, token, proposal.id)
        assert response.status_code == HTTPStatus.PRECONDITION_FAILED
        assert response.headers["X-Error"] == "InactiveResource"

    def test_suspended_customer(self, client, seed, company):
        _, token = seed.customer(company, status=2)
        proposal = seed.proposal(company)
        response = vote(client, token, proposal.id)
        assert response.status_code == HTTPStatus.PRECONDITION_FAILED
        assert response.headers["X-Error"] == "InactiveAccount"


class TestInvitations:
    URL = CUSTOMER + PROPOSAL + "/invitation"

    def test_list_and_respond(self, client, proposer, neighbour, session):
        _, proposerToken = proposer
        _, token = neighbour
        proposalId = createProposal(client, proposerToken).json()["id"]

        response = client.get(self.URL, headers=bearer(token))
        assert response.status_code == HTTPStatus.OK
        [invitation] = response.json()
        assert invitation["proposal_id"] == proposalId
        assert invitation["route_name"] == PROPOSAL_FORM["route_name"]
        assert invitation["match_score"] == 100

        response = client.patch(
            self.URL,
            headers=bearer(token),
            json={"id": invitation["id"], "status": InvitationStatus.VIEWED},
        )
        assert response.status_code == HTTPStatus.OK
        assert response.json()["viewed_on"] is not None
        assert response.json()["responded_on"] is None

        response = client.patch(
            self.URL,
            headers=bearer(token),
            json={"id": invitation["id"], "status": InvitationStatus.ACCEPTED},
        )
        assert response.json()["status"] == InvitationStatus.ACCEPTED
        assert response.json()["responded_on"] is not None
        assert client.get(self.URL, headers=bearer(token)).json() == []

        response = client.patch(
            self.URL,
            headers=bearer(token),
            json={"id": invitation["id"], "status": InvitationStatus.DECLINED},
        )
        assert response.status_code == HTTPStatus.NOT_ACCEPTABLE
        assert response.headers["X-Error"] == "InvalidStateTransition"

    def test_only_open_proposals_are_listed(self, client, proposer, neighbour, session):
        _, proposerToken = proposer
        _, token = neighbour
        proposalId = createProposal(client, proposerToken).json()["id"]
        session.query(RouteProposal).filter(RouteProposal.id == proposalId).update(
            {RouteProposal.status: ProposalStatus.REJECTED}
        )
        session.commit()
        assert client.get(self.URL, headers=bearer(token)).json() == []

    def test_foreign_invitation(self, client, proposer, neighbour):
        _, proposerToken = proposer
        _, token = neighbour
        createProposal(client, proposerToken)
        invitation = client.get(self.URL, headers=bearer(token)).json()[0]
        response = client.patch(
            self.URL,
            headers=bearer(proposerToken),
            json={"id": invitation["id"], "status": InvitationStatus.DECLINED},
        )
        assert response.status_code == HTTPStatus.NOT_FOUND


class TestReview:
    def test_approve_then_convert(self, client, seed, company, admin, events):
        proposal = seed.proposal(company, status=ProposalStatus.THRESHOLD_MET)
        response = client.post(
            OPERATOR + PROPOSAL + "/approve",
            headers=bearer(admin),
            json={"id": proposal.id, "review_notes": "Trial in spring"},
        )
        assert response.status_code == HTTPStatus.OK
        data = response.json()
        assert data["status"] == ProposalStatus.APPROVED
        assert data["reviewed_by"] == admin.operator_id
        assert events[-1]["_operator_id"] == admin.operator_id

        response = client.post(
            OPERATOR + PROPOSAL + "/approve",
            headers=bearer(admin),
            json={"id": proposal.id, "review_notes": None},
        )
        assert response.status_code == HTTPStatus.NOT_ACCEPTABLE
        assert response.headers["X-Error"] == "AlreadyReviewed"

        response = client.post(
            OPERATOR + PROPOSAL + "/convert",
            headers=bearer(admin),
            json={"id": proposal.id, "route_id": 12},
        )
        assert response.json()["status"] == ProposalStatus.CONVERTED_TO_ROUTE
        assert response.json()["converted_to_route_id"] == 12

    def test_reject_needs_reason(self, client, seed, company, admin):
        proposal = seed.proposal(company)
        response = client.post(
            OPERATOR + PROPOSAL + "/reject",
            headers=bearer(admin),
            json={"id": proposal.id, "rejection_reason": " "},
        )
        assert response.status_code == HTTPStatus.NOT_ACCEPTABLE
        assert response.headers["X-Error"] == "MissingParameter"

        response = client.post(
            OPERATOR + PROPOSAL + "/reject",
            headers=bearer(admin),
            json={"id": proposal.id, "rejection_reason": "Covered by route 12"},
        )
        assert response.json()["status"] == ProposalStatus.REJECTED

        response = client.post(
            OPERATOR + PROPOSAL + "/approve",
            headers=bearer(admin),
            json={"id": proposal.id, "review_notes": None},
        )
        assert response.status_code == HTTPStatus.NOT_ACCEPTABLE

    def test_convert_needs_approval(self, client, seed, company, admin):
        proposal = seed.proposal(company)
        response = client.post(
            OPERATOR + PROPOSAL + "/convert",
            headers=bearer(admin),
            json={"id": proposal.id, "route_id": 12},
        )
        assert response.status_code == HTTPStatus.NOT_ACCEPTABLE
        assert response.headers["X-Error"] == "InvalidStateTransition"

    def test_permission_required(self, client, seed, company, guest):
        proposal = seed.proposal(company)
        response = client.post(
            OPERATOR + PROPOSAL + "/approve",
            headers=bearer(guest),
            json={"id": proposal.id, "review_notes": None},
        )
        assert response.status_code == HTTPStatus.FORBIDDEN
        assert response.headers["X-Error"] == "NoPermission"

    def test_other_company_proposal(self, client, seed, admin):
        proposal = seed.proposal(seed.company("Leeds Community Bus"))
        response = client.post(
            OPERATOR + PROPOSAL + "/approve",
            headers=bearer(admin),
            json={"id": proposal.id, "review_notes": None},
        )
        assert response.status_code == HTTPStatus.NOT_FOUND


class TestPledgesAndViability:
    def test_pledges_hide_anonymous_voters(self, client, seed, company, admin):
        proposal = seed.proposal(company)
        named, namedToken = seed.customer(company, "Rider One")
        _, hiddenToken = seed.customer(company, "Rider Two")
        vote(client, namedToken, proposal.id)
        vote(client, hiddenToken, proposal.id, is_anonymous=True)

        response = client.get(
            OPERATOR + PROPOSAL + "/pledge",
            headers=bearer(admin),
            params={"proposal_id": proposal.id},
        )
        assert response.status_code == HTTPStatus.OK
        first, second = response.json()
        assert first["customer_id"] == named.id
        assert first["voter_name"] == "Rider One"
        assert second["customer_id"] is None
        assert second["voter_name"] == "Anonymous Customer"

    def test_viability(self, client, seed, company, admin):
        proposal = seed.proposal(
            company, estimated_distance_miles=8, estimated_duration_minutes=35
        )
        tokens = [seed.customer(company, f"Rider {x}")[1] for x in range(4)]
        for token in tokens:
            vote(client, token, proposal.id, willing_to_pay_amount=5)

        response = client.get(
            OPERATOR + PROPOSAL + "/viability",
            headers=bearer(admin),
            params={"proposal_id": proposal.id},
        )
        assert response.status_code == HTTPStatus.OK
        data = response.json()
        assert data["total_pledges"] == 4
        assert data["average_willing_to_pay"] == 5
        assert data["estimated_services_per_month"] == 20
        # 21.53 / 5.00 needs 5 riders, one pledge short
        assert data["analysis"]["break_even_passengers"] == 5
        assert (
            data["analysis"]["recommendation"]
            == ViabilityRecommendation.WAIT_FOR_MORE_PLEDGES
        )

    def test_viability_without_pledges(self, client, seed, company, admin):
        proposal = seed.proposal(company)
        data = client.get(
            OPERATOR + PROPOSAL + "/viability",
            headers=bearer(admin),
            params={"proposal_id": proposal.id},
        ).json()
        assert data["total_pledges"] == 0
        assert data["analysis"] is None
        assert data["fare_quote"]["current_passengers"] == 1

    def test_permission_required(self, client, seed, company, guest):
        proposal = seed.proposal(company)
        response = client.get(
            OPERATOR + PROPOSAL + "/pledge",
            headers=bearer(guest),
            params={"proposal_id": proposal.id},
        )
        assert response.status_code == HTTPStatus.FORBIDDEN


class TestFarePolicy:
    URL = OPERATOR + "/company/fare/policy"

    def test_defaults(self, client, admin, company):
        data = client.get(self.URL, headers=bearer(admin)).json()
        assert data["id"] is None
        assert data["company_id"] == company.id
        assert data["driver_hourly_rate"] == 12.21
        assert data["acceptable_fare_ceiling"] is None

    def test_update(self, client, admin, events):
        response = client.patch(
            self.URL,
            headers=bearer(admin),
            json={"driver_hourly_rate": 15, "acceptable_fare_ceiling": 4.5},
        )
        assert response.status_code == HTTPStatus.OK
        data = response.json()
        assert data["id"] is not None
        assert data["driver_hourly_rate"] == 15
        assert data["acceptable_fare_ceiling"] == 4.5
        assert data["fuel_cost_per_mile"] == 0.15
        assert len(events) == 1

        response = client.patch(
            self.URL, headers=bearer(admin), json={"remove_fare_ceiling": True}
        )
        assert response.json()["acceptable_fare_ceiling"] is None
        assert response.json()["driver_hourly_rate"] == 15

    def test_conflicting_ceiling(self, client, admin):
        response = client.patch(
            self.URL,
            headers=bearer(admin),
            json={"acceptable_fare_ceiling": 4.5, "remove_fare_ceiling": True},
        )
        assert response.status_code == HTTPStatus.NOT_ACCEPTABLE

    def test_permission_required(self, client, guest):
        response = client.patch(
            self.URL, headers=bearer(guest), json={"driver_hourly_rate": 15}
        )
        assert response.status_code == HTTPStatus.FORBIDDEN
