"""Shared fixtures: a SQLite database, an in-process Redis and seed helpers.

Every test gets a fresh database file. OpenObserve shipping is captured in
memory and invitation generation runs synchronously instead of on the
background pool.
"""

from datetime import datetime, time, timedelta, timezone

import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine

from communibus.src import invitations, openobserve
from communibus.src import redis as redisStore
from communibus.src.db import (
    Company,
    Customer,
    CustomerSchedule,
    CustomerToken,
    FarePolicy,
    Operator,
    OperatorRole,
    OperatorRoleMap,
    OperatorToken,
    ORMbase,
    RouteProposal,
    TravelPrivacy,
    sessionMaker,
)
from communibus.src.enums import (
    AccountStatus,
    CompanyStatus,
    Day,
    ProposalStatus,
    ServiceFrequency,
)

WEEKDAYS = [Day.MONDAY, Day.TUESDAY, Day.WEDNESDAY, Day.THURSDAY, Day.FRIDAY]
DESTINATION = "Sheffield Hallam University"


@pytest.fixture(autouse=True)
def database(tmp_path):
    testEngine = create_engine(
        f"sqlite:///{tmp_path / 'communibus.db'}",
        connect_args={"check_same_thread": False},
    )
    ORMbase.metadata.create_all(testEngine)
    sessionMaker.configure(bind=testEngine)
    yield testEngine
    testEngine.dispose()


@pytest.fixture(autouse=True)
def redisClient(monkeypatch):
    client = fakeredis.FakeRedis(decode_responses=True)
    monkeypatch.setattr(redisStore, "redisClient", client)
    return client


@pytest.fixture(autouse=True)
def events(monkeypatch):
    """Events that would have been shipped to OpenObserve."""
    shipped = []
    monkeypatch.setattr(openobserve, "logEvent", shipped.append)
    return shipped


class SyncDispatcher:
    def __init__(self):
        self.submitted = []

    def submit(self, proposalId: int):
        self.submitted.append(proposalId)
        return invitations.generateInvitations(proposalId)


@pytest.fixture(autouse=True)
def dispatcher(monkeypatch):
    syncDispatcher = SyncDispatcher()
    monkeypatch.setattr(invitations, "dispatcher", syncDispatcher)
    return syncDispatcher


@pytest.fixture()
def session(database):
    dbSession = sessionMaker()
    yield dbSession
    dbSession.close()


@pytest.fixture()
def client():
    from communibus.main import app

    with TestClient(app) as testClient:
        yield testClient


def bearer(token) -> dict:
    return {"Authorization": f"Bearer {token.access_token}"}


class Seeder:
    """Creates committed rows for a test, one company at a time."""

    def __init__(self, session):
        self.session = session

    def company(self, name: str = "Sheffield Community Bus") -> Company:
        company = Company(name=name, status=CompanyStatus.VERIFIED)
        self.session.add(company)
        self.session.commit()
        return company

    def farePolicy(self, company: Company, **fields) -> FarePolicy:
        policy = FarePolicy(company_id=company.id, **fields)
        self.session.add(policy)
        self.session.commit()
        return policy

    def customer(
        self,
        company: Company,
        fullName: str = "Alice Walker",
        postcode: str | None = "S10 2AB",
        destination: str | None = DESTINATION,
        days=WEEKDAYS,
        consent: bool = True,
        sharePatterns: bool = True,
        allowInvitations: bool = True,
        anonymousVoting: bool = False,
        withPrivacy: bool = True,
        status: AccountStatus = AccountStatus.ACTIVE,
    ) -> tuple[Customer, CustomerToken]:
        customer = Customer(
            company_id=company.id,
            full_name=fullName,
            postcode=postcode,
            status=status,
        )
        self.session.add(customer)
        self.session.flush()

        if withPrivacy:
            self.session.add(
                TravelPrivacy(
                    company_id=company.id,
                    customer_id=customer.id,
                    share_travel_patterns=sharePatterns,
                    allow_proposal_invitations=allowInvitations,
                    anonymous_voting=anonymousVoting,
                    consent_given=consent,
                    consent_on=datetime.now(timezone.utc) if consent else None,
                )
            )
        if destination is not None:
            for day in days:
                self.session.add(
                    CustomerSchedule(
                        customer_id=customer.id,
                        day=day,
                        destination=destination,
                        pickup_time=time(7, 45),
                        dropoff_time=time(17, 30),
                    )
                )
        token = CustomerToken(
            customer_id=customer.id,
            company_id=company.id,
            expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        )
        self.session.add(token)
        self.session.commit()
        return customer, token

    def operator(
        self,
        company: Company,
        username: str = "admin",
        reviewProposal: bool = True,
        viewPledge: bool = True,
        updateFarePolicy: bool = True,
    ) -> OperatorToken:
        operator = Operator(company_id=company.id, username=username)
        role = OperatorRole(
            company_id=company.id,
            name=username.title(),
            review_proposal=reviewProposal,
            view_pledge=viewPledge,
            update_fare_policy=updateFarePolicy,
        )
        self.session.add_all([operator, role])
        self.session.flush()
        token = OperatorToken(
            operator_id=operator.id,
            company_id=company.id,
            expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        )
        self.session.add_all(
            [
                OperatorRoleMap(
                    company_id=company.id, operator_id=operator.id, role_id=role.id
                ),
                token,
            ]
        )
        self.session.commit()
        return token

    def proposal(
        self, company: Company, proposer: Customer | None = None, **fields
    ) -> RouteProposal:
        values = {
            "route_name": "Crookes to Sheffield Hallam",
            "origin_area": "Crookes",
            "origin_postcodes": ["S10", "S11"],
            "destination_name": DESTINATION,
            "proposed_frequency": ServiceFrequency.WEEKDAYS,
            "operates_monday": True,
            "operates_tuesday": True,
            "operates_wednesday": True,
            "operates_thursday": True,
            "operates_friday": True,
            "estimated_distance_miles": 4.5,
            "estimated_duration_minutes": 25,
            "minimum_passengers_required": 8,
            "target_passengers": 16,
            "total_votes": 0,
            "total_pledges": 0,
            "status": ProposalStatus.OPEN,
        }
        values.update(fields)
        proposal = RouteProposal(
            company_id=company.id,
            proposer_id=None if proposer is None else proposer.id,
            proposer_name=None if proposer is None else proposer.full_name,
            **values,
        )
        self.session.add(proposal)
        self.session.commit()
        return proposal


@pytest.fixture()
def seed(session):
    return Seeder(session)
