import argparse
from datetime import datetime, time, timedelta, timezone
from http import HTTPStatus
from requests import get, post

from communibus.src.enums import (
    CompanyStatus,
    Day,
    PledgeFrequency,
    ServiceFrequency,
    VoteType,
)
from communibus.src.urls import (
    URL_ROUTE_PROPOSAL,
    URL_ROUTE_PROPOSAL_FARE,
    URL_PROPOSAL_VOTE,
    URL_PROPOSAL_PLEDGE,
    URL_PROPOSAL_VIABILITY,
    URL_PROPOSAL_APPROVAL,
)
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
    TravelPrivacy,
    sessionMaker,
    engine,
    ORMbase,
)

TOKEN_VALIDITY = timedelta(days=30)

# Name, postcode, weekday destination
DEMO_CUSTOMERS = [
    ("Alice Walker", "S10 2AB", "Sheffield Hallam University"),
    ("Ben Carter", "S10 3CD", "Sheffield Hallam University"),
    ("Chloe Evans", "S11 8EF", "Sheffield Hallam University"),
    ("Daniel Hughes", "S10 5GH", "Sheffield Hallam University"),
    ("Emma Price", "S6 1JK", "Meadowhall Shopping Centre"),
    ("Finley Moore", "S10 7LM", "Sheffield Hallam University"),
    ("Grace Bennett", "S11 9NP", "Sheffield Hallam University"),
    ("Harry Collins", "S10 4QR", "Sheffield Hallam University"),
    ("Isla Turner", "S17 3ST", "Sheffield Hallam University"),
]
WEEKDAYS = [Day.MONDAY, Day.TUESDAY, Day.WEDNESDAY, Day.THURSDAY, Day.FRIDAY]


# ----------------------------------- Project Setup -------------------------------------------#
def removeTables():
    session = sessionMaker()
    ORMbase.metadata.drop_all(engine)
    session.commit()
    print("* All tables deleted")
    session.close()


def createTables():
    session = sessionMaker()
    ORMbase.metadata.create_all(engine)
    session.commit()
    print("* All tables created")
    session.close()


def initDB():
    session = sessionMaker()
    expiresAt = datetime.now(timezone.utc) + TOKEN_VALIDITY

    company = Company(name="Sheffield Community Bus", status=CompanyStatus.VERIFIED)
    session.add(company)
    session.flush()

    policy = FarePolicy(company_id=company.id, acceptable_fare_ceiling=5.00)
    admin = Operator(company_id=company.id, username="admin", full_name="Route planner")
    guest = Operator(company_id=company.id, username="guest", full_name="Guest")
    adminRole = OperatorRole(
        company_id=company.id,
        name="Admin",
        review_proposal=True,
        view_pledge=True,
        update_fare_policy=True,
    )
    guestRole = OperatorRole(
        company_id=company.id,
        name="Guest",
        review_proposal=False,
        view_pledge=False,
        update_fare_policy=False,
    )
    session.add_all([policy, admin, guest, adminRole, guestRole])
    session.flush()

    adminToRoleMapping = OperatorRoleMap(
        company_id=company.id, operator_id=admin.id, role_id=adminRole.id
    )
    guestToRoleMapping = OperatorRoleMap(
        company_id=company.id, operator_id=guest.id, role_id=guestRole.id
    )
    adminToken = OperatorToken(
        operator_id=admin.id, company_id=company.id, expires_at=expiresAt
    )
    session.add_all([adminToRoleMapping, guestToRoleMapping, adminToken])
    session.flush()
    print(f"* Operator token for admin: {adminToken.access_token}")

    for fullName, postcode, destination in DEMO_CUSTOMERS:
        customer = Customer(company_id=company.id, full_name=fullName, postcode=postcode)
        session.add(customer)
        session.flush()

        privacy = TravelPrivacy(
            company_id=company.id,
            customer_id=customer.id,
            share_travel_patterns=True,
            allow_proposal_invitations=True,
            consent_given=True,
            consent_on=datetime.now(timezone.utc),
        )
        schedules = [
            CustomerSchedule(
                customer_id=customer.id,
                day=day,
                destination=destination,
                pickup_time=time(7, 45),
                dropoff_time=time(17, 30),
            )
            for day in WEEKDAYS
        ]
        token = CustomerToken(
            customer_id=customer.id, company_id=company.id, expires_at=expiresAt
        )
        session.add_all([privacy, token, *schedules])
        session.flush()
        print(f"* Customer token for {fullName}: {token.access_token}")

    session.commit()
    print("* Initialization completed")
    session.close()


def POST(URL: str, header: dict = {}, status_code: int = HTTPStatus.CREATED, **kwargs):
    response = post(URL, headers=header, **kwargs)
    if response.status_code != status_code:
        assert response.status_code == status_code
    else:
        return response


def GET(URL: str, header: dict = {}, status_code: int = HTTPStatus.OK, **kwargs):
    response = get(URL, headers=header, **kwargs)
    if response.status_code != status_code:
        assert response.status_code == status_code
    else:
        return response


def testDB():
    # Base URLs
    CUSTOMER_URL = "http://127.0.0.1:8080/customer"
    OPERATOR_URL = "http://127.0.0.1:8080/operator"

    session = sessionMaker()
    customerTokens = [
        {"Authorization": f"Bearer {token.access_token}"}
        for token in session.query(CustomerToken).order_by(CustomerToken.id).all()
    ]
    operatorToken = session.query(OperatorToken).order_by(OperatorToken.id).first()
    operatorHeader = {"Authorization": f"Bearer {operatorToken.access_token}"}
    session.close()

    # Create Route proposal
    proposalData = {
        "route_name": "Crookes to Sheffield Hallam",
        "route_description": "Weekday morning shuttle for students and staff",
        "origin_area": "Crookes",
        "origin_postcodes": ["S10", "S11"],
        "destination_name": "Sheffield Hallam University",
        "destination_postcode": "S1 1WB",
        "proposed_frequency": ServiceFrequency.WEEKDAYS,
        "operating_days": WEEKDAYS,
        "departure_window_start": "07:30:00",
        "departure_window_end": "08:15:00",
        "estimated_distance_miles": 4.5,
        "estimated_duration_minutes": 25,
        "minimum_passengers_required": 6,
        "target_passengers": 12,
    }
    proposal = POST(
        (CUSTOMER_URL + URL_ROUTE_PROPOSAL),
        header=customerTokens[0],
        json=proposalData,
        status_code=HTTPStatus.CREATED,
    )
    proposalId = proposal.json()["id"]
    print("* Created route proposal")

    # Pledge from the other customers
    for index, header in enumerate(customerTokens[1:7]):
        voteData = {
            "proposal_id": proposalId,
            "vote_type": VoteType.PLEDGE,
            "expected_frequency": PledgeFrequency.DAILY,
            "willing_to_pay_amount": 3.50 + index * 0.25,
            "is_anonymous": index % 2 == 0,
        }
        POST(
            (CUSTOMER_URL + URL_PROPOSAL_VOTE),
            header=header,
            json=voteData,
            status_code=HTTPStatus.OK,
        )
    POST(
        (CUSTOMER_URL + URL_PROPOSAL_VOTE),
        header=customerTokens[7],
        json={"proposal_id": proposalId, "vote_type": VoteType.MAYBE},
        status_code=HTTPStatus.OK,
    )
    print("* Created votes")

    fare = GET(
        (CUSTOMER_URL + URL_ROUTE_PROPOSAL_FARE),
        header=customerTokens[0],
        params={"id": proposalId},
    )
    print(f"* Fare at current capacity: {fare.json()['fare_quote']['fare_at_current_capacity']}")

    GET(
        (OPERATOR_URL + URL_PROPOSAL_PLEDGE),
        header=operatorHeader,
        params={"proposal_id": proposalId},
    )
    viability = GET(
        (OPERATOR_URL + URL_PROPOSAL_VIABILITY),
        header=operatorHeader,
        params={"proposal_id": proposalId},
    )
    print(f"* Viability: {viability.json()['analysis']['recommendation']}")

    POST(
        (OPERATOR_URL + URL_PROPOSAL_APPROVAL),
        header=operatorHeader,
        json={"id": proposalId, "review_notes": "Enough pledges to run a trial"},
        status_code=HTTPStatus.OK,
    )
    print("* Approved route proposal")


# Setup database
if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    # remove tables
    parser.add_argument("-rm", action="store_true", help="remove tables")
    parser.add_argument("-cr", action="store_true", help="create tables")
    parser.add_argument("-init", action="store_true", help="initialize DB")
    parser.add_argument("-test", action="store_true", help="add test data")
    args = parser.parse_args()

    if args.cr:
        createTables()
    if args.init:
        initDB()
    if args.test:
        testDB()
    if args.rm:
        removeTables()
