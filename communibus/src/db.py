from secrets import token_hex
from sqlalchemy import (
    JSON,
    TEXT,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Time,
    UniqueConstraint,
    create_engine,
    func,
)
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.dialects.postgresql import JSONB

from communibus.src.constants import (
    PSQL_DB_DRIVER,
    PSQL_DB_HOST,
    PSQL_DB_PASSWORD,
    PSQL_DB_NAME,
    PSQL_DB_PORT,
    PSQL_DB_USERNAME,
    DEFAULT_MINIMUM_PASSENGERS,
    DEFAULT_TARGET_PASSENGERS,
    DEFAULT_DRIVER_HOURLY_RATE,
    DEFAULT_FUEL_COST_PER_MILE,
    DEFAULT_DEPRECIATION_PER_JOURNEY,
    DEFAULT_INSURANCE_PER_JOURNEY,
    DEFAULT_MAINTENANCE_PER_JOURNEY,
    DEFAULT_ADMIN_OVERHEAD_PERCENTAGE,
    DEFAULT_VIABILITY_SHORTFALL,
    DEFAULT_DISTANCE_MILES,
    DEFAULT_DURATION_MINUTES,
)
from communibus.src.enums import (
    AccountStatus,
    CompanyStatus,
    InvitationStatus,
    PrivacyLevel,
    ProposalStatus,
)


# Global DBMS variables
dbURL = f"{PSQL_DB_DRIVER}://{PSQL_DB_USERNAME}:{PSQL_DB_PASSWORD}@{PSQL_DB_HOST}:{PSQL_DB_PORT}/{PSQL_DB_NAME}"
engine = create_engine(url=dbURL, echo=False)
sessionMaker = sessionmaker(bind=engine, expire_on_commit=False)
ORMbase = declarative_base()

# Binary JSON on PostgreSQL, plain JSON elsewhere
JSONList = JSON().with_variant(JSONB(), "postgresql")


# ----------------------------------- General DB Models ---------------------------------------#
class Company(ORMbase):
    """
    Represents a transport company (tenant) registered in the system.

    Every rider, operator, proposal, vote and invitation is scoped to exactly
    one company. Rows of other companies are never visible through the API.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the company.

        name (String):
            Name of the company.
            Must be unique and is required.
            Maximum 32 characters long.

        status (Integer):
            Enum representing the verification status of the company
            Defaults to `CompanyStatus.UNDER_VERIFICATION`.

        updated_on (DateTime):
            Timestamp automatically updated whenever the company record is modified.

        created_on (DateTime):
            Timestamp indicating when the company record was created.
            Automatically set to the current timestamp at insertion.
    """

    __tablename__ = "company"

    id = Column(Integer, primary_key=True)
    name = Column(String(32), nullable=False, unique=True)
    status = Column(Integer, nullable=False, default=CompanyStatus.UNDER_VERIFICATION)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Operator(ORMbase):
    """
    Represents an operator (staff) account within a company.

    Operators review route proposals. Credentials and token issuance are
    handled by the identity service, only the account identity lives here.

    Constraints:
        UniqueConstraint (username, company_id):
            Ensures that usernames are unique within each company.
    """

    __tablename__ = "operator"
    __table_args__ = (UniqueConstraint("username", "company_id"),)

    id = Column(Integer, primary_key=True)
    company_id = Column(
        Integer,
        ForeignKey("company.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    username = Column(String(32), nullable=False)
    full_name = Column(TEXT)
    status = Column(Integer, nullable=False, default=AccountStatus.ACTIVE)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class OperatorToken(ORMbase):
    """
    Represents authentication tokens issued to operators.

    Columns:
        id (Integer):
            Primary key. A unique identifier for each operator token record.

        operator_id (Integer):
            Foreign key referencing `operator.id`.
            Cascades on delete, removing an operator deletes associated tokens.

        company_id (Integer):
            Foreign key referencing `company.id`.
            Specifies the company context in which the token is valid.

        access_token (String(64)):
            Secure token string used for authentication.
            Default is a 64-character random hexadecimal string generated using `token_hex(32)`.

        expires_at (DateTime):
            Absolute timestamp indicating when the token becomes invalid.

        created_on (DateTime):
            Timestamp marking when the token was created.
    """

    __tablename__ = "operator_token"

    id = Column(Integer, primary_key=True)
    operator_id = Column(
        Integer,
        ForeignKey("operator.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    company_id = Column(
        Integer, ForeignKey("company.id", ondelete="CASCADE"), nullable=False
    )
    access_token = Column(
        String(64), unique=True, nullable=False, default=lambda: token_hex(32)
    )
    expires_at = Column(DateTime(timezone=True), nullable=False)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class OperatorRole(ORMbase):
    """
    Represents the role assigned to operators within a company.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the operator role.

        name (String(32)):
            Name of the role. Must be unique across the company.

        company_id (Integer):
            Foreign key referencing `company.id`.

        review_proposal (Boolean):
            Whether this role permits approving, rejecting and converting route proposals.

        view_pledge (Boolean):
            Whether this role permits reading pledges and viability analyses.

        update_fare_policy (Boolean):
            Whether this role permits editing the company's cooperative fare policy.

        updated_on (DateTime):
            Timestamp automatically updated whenever the role record is modified.

        created_on (DateTime):
            Timestamp indicating when this role was created.
    """

    __tablename__ = "operator_role"
    __table_args__ = (UniqueConstraint("name", "company_id"),)

    id = Column(Integer, primary_key=True)
    name = Column(String(32), nullable=False)
    company_id = Column(
        Integer,
        ForeignKey("company.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Route proposal permission
    review_proposal = Column(Boolean, nullable=False)
    view_pledge = Column(Boolean, nullable=False)
    # Fare policy permission
    update_fare_policy = Column(Boolean, nullable=False)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class OperatorRoleMap(ORMbase):
    """
    Represents the mapping between operators and their assigned roles within a company.
    """

    __tablename__ = "operator_role_map"

    id = Column(Integer, primary_key=True)
    company_id = Column(
        Integer,
        ForeignKey("company.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role_id = Column(
        Integer, ForeignKey("operator_role.id", ondelete="CASCADE"), nullable=False
    )
    operator_id = Column(
        Integer, ForeignKey("operator.id", ondelete="CASCADE"), nullable=False
    )
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Customer(ORMbase):
    """
    Represents a rider registered with a company.

    Customer records are maintained by the customer management service,
    route proposals only read them.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the customer.

        company_id (Integer):
            Foreign key referencing `company.id`.
            Cascades on delete.

        full_name (TEXT):
            Display name used on proposals and votes unless anonymous.
            Maximum 32 characters long.

        postcode (String(16)):
            Home postcode, e.g. `S10 2AB`.
            The outward part (before the space) is the postcode area used for matching.

        status (Integer):
            Enum representing the account's current status.
            Only `AccountStatus.ACTIVE` customers are considered for invitations.

        updated_on (DateTime):
            Timestamp of the last update to the customer's profile.

        created_on (DateTime):
            Timestamp of when the customer account was created.
    """

    __tablename__ = "customer"

    id = Column(Integer, primary_key=True)
    company_id = Column(
        Integer,
        ForeignKey("company.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    full_name = Column(TEXT, nullable=False)
    postcode = Column(String(16))
    status = Column(Integer, nullable=False, default=AccountStatus.ACTIVE)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class CustomerToken(ORMbase):
    """
    Represents authentication tokens issued to customers by the identity service.
    """

    __tablename__ = "customer_token"

    id = Column(Integer, primary_key=True)
    customer_id = Column(
        Integer,
        ForeignKey("customer.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    company_id = Column(
        Integer, ForeignKey("company.id", ondelete="CASCADE"), nullable=False
    )
    access_token = Column(
        String(64), unique=True, nullable=False, default=lambda: token_hex(32)
    )
    expires_at = Column(DateTime(timezone=True), nullable=False)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class CustomerSchedule(ORMbase):
    """
    Represents one weekday of a customer's regular travel schedule.

    A customer has at most one row per weekday. Days without a row, or with
    no destination, are days the customer does not travel.

    Columns:
        id (Integer):
            Primary key.

        customer_id (Integer):
            Foreign key referencing `customer.id`.

        day (Integer):
            Weekday, mapped from the `Day` enum.

        destination (TEXT):
            Free text destination, e.g. `Royal Hallamshire Hospital`.

        pickup_time (Time):
            Usual pickup time for the day.

        dropoff_time (Time):
            Usual return or drop-off time for the day.
    """

    __tablename__ = "customer_schedule"
    __table_args__ = (UniqueConstraint("customer_id", "day"),)

    id = Column(Integer, primary_key=True)
    customer_id = Column(
        Integer,
        ForeignKey("customer.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    day = Column(Integer, nullable=False)
    destination = Column(TEXT)
    pickup_time = Column(Time)
    dropoff_time = Column(Time)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class TravelPrivacy(ORMbase):
    """
    Represents a customer's travel-pattern sharing preferences and consent.

    A customer without a row is treated as not having consented to anything.

    Columns:
        id (Integer):
            Primary key.

        company_id (Integer):
            Foreign key referencing `company.id`.

        customer_id (Integer):
            Foreign key referencing `customer.id`.
            Unique, a customer has a single privacy record.

        share_travel_patterns (Boolean):
            Whether the customer's schedule may be used for matching.

        privacy_level (Integer):
            Granularity of sharing, mapped from `PrivacyLevel`.
            Defaults to `PrivacyLevel.PRIVATE`.

        allow_proposal_invitations (Boolean):
            Whether the customer wants to be invited to matching proposals.

        anonymous_voting (Boolean):
            Default anonymity applied to the customer's votes and proposals.

        consent_given (Boolean):
            Whether consent to participate in route proposals was recorded.
            Required for creating proposals and for being matched.

        consent_on (DateTime):
            Timestamp of when the consent was recorded.
    """

    __tablename__ = "travel_privacy"

    id = Column(Integer, primary_key=True)
    company_id = Column(
        Integer, ForeignKey("company.id", ondelete="CASCADE"), nullable=False
    )
    customer_id = Column(
        Integer,
        ForeignKey("customer.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    share_travel_patterns = Column(Boolean, nullable=False, default=False)
    privacy_level = Column(Integer, nullable=False, default=PrivacyLevel.PRIVATE)
    allow_proposal_invitations = Column(Boolean, nullable=False, default=True)
    anonymous_voting = Column(Boolean, nullable=False, default=False)
    consent_given = Column(Boolean, nullable=False, default=False)
    consent_on = Column(DateTime(timezone=True))
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class FarePolicy(ORMbase):
    """
    Represents the cooperative cost model a company prices its proposals with.

    At most one policy exists per company. Companies without a policy are
    priced with the defaults from `constants.py` and have no fare ceiling.

    Columns:
        id (Integer):
            Primary key.

        company_id (Integer):
            Foreign key referencing `company.id`. Unique.

        driver_hourly_rate (Numeric):
            Driver wage per hour of journey time.

        fuel_cost_per_mile (Numeric):
            Fuel cost per mile driven.

        depreciation_per_journey (Numeric):
            Vehicle depreciation charged to every journey.

        insurance_per_journey (Numeric):
            Insurance charged to every journey.

        maintenance_per_journey (Numeric):
            Maintenance charged to every journey.

        admin_overhead_percentage (Numeric):
            Overhead added on top of the journey subtotal, as a fraction (0.10 is 10%).

        acceptable_fare_ceiling (Numeric):
            Highest per-passenger fare the company considers viable.
            Nullable. When not set, viability is decided by the proposal's
            minimum passenger count instead.

        viability_shortfall (Integer):
            Number of missing pledges below break-even for which the proposal
            is still recommended to wait for more pledges.

        default_distance_miles (Numeric):
            Distance used for proposals without their own estimate.

        default_duration_minutes (Integer):
            Journey time used for proposals without their own estimate.
    """

    __tablename__ = "fare_policy"

    id = Column(Integer, primary_key=True)
    company_id = Column(
        Integer,
        ForeignKey("company.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    driver_hourly_rate = Column(
        Numeric(10, 2), nullable=False, default=DEFAULT_DRIVER_HOURLY_RATE
    )
    fuel_cost_per_mile = Column(
        Numeric(10, 2), nullable=False, default=DEFAULT_FUEL_COST_PER_MILE
    )
    depreciation_per_journey = Column(
        Numeric(10, 2), nullable=False, default=DEFAULT_DEPRECIATION_PER_JOURNEY
    )
    insurance_per_journey = Column(
        Numeric(10, 2), nullable=False, default=DEFAULT_INSURANCE_PER_JOURNEY
    )
    maintenance_per_journey = Column(
        Numeric(10, 2), nullable=False, default=DEFAULT_MAINTENANCE_PER_JOURNEY
    )
    admin_overhead_percentage = Column(
        Numeric(5, 4), nullable=False, default=DEFAULT_ADMIN_OVERHEAD_PERCENTAGE
    )
    acceptable_fare_ceiling = Column(Numeric(10, 2))
    viability_shortfall = Column(
        Integer, nullable=False, default=DEFAULT_VIABILITY_SHORTFALL
    )
    default_distance_miles = Column(
        Numeric(10, 2), nullable=False, default=DEFAULT_DISTANCE_MILES
    )
    default_duration_minutes = Column(
        Integer, nullable=False, default=DEFAULT_DURATION_MINUTES
    )
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


# ----------------------------------- Route Proposal Models -----------------------------------#
class RouteProposal(ORMbase):
    """
    Represents a shared route proposed by a customer.

    Other customers vote on the proposal, and pledges (firm commitments)
    are counted toward `minimum_passengers_required`. Once enough pledges
    exist the proposal moves to `THRESHOLD_MET` and awaits operator review.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the proposal.

        company_id (Integer):
            Foreign key referencing `company.id`.
            Every lookup of a proposal is scoped to the caller's company.

        proposer_id (Integer):
            Foreign key referencing `customer.id`.
            The customer who created the proposal. Set to NULL if the customer is deleted.

        proposer_name (TEXT):
            Display name of the proposer.
            NULL when the proposer chose to stay anonymous.

        proposer_is_anonymous (Boolean):
            Whether the proposer's name is hidden.

        route_name (String(128)):
            Human-readable name of the proposed route.

        route_description (TEXT):
            Optional free text description, maximum 2048 characters long.

        origin_area (TEXT):
            Human-readable origin, e.g. `Crookes`.

        origin_postcodes (JSON):
            Candidate postcode areas served at the origin, e.g. `["S10", "S11"]`.
            Stored upper-cased.

        destination_name (TEXT):
            Name of the destination, matched against customer schedules.

        destination_address (TEXT):
            Optional street address of the destination.

        destination_postcode (String(16)):
            Optional postcode of the destination.

        proposed_frequency (Integer):
            Stated service frequency, mapped from `ServiceFrequency`.

        operates_monday .. operates_sunday (Boolean):
            Operating-day flags.

        departure_window_start, departure_window_end (Time):
            Optional departure time window. The end must be after the start.

        estimated_distance_miles (Numeric):
            Optional distance estimate used for pricing.

        estimated_duration_minutes (Integer):
            Optional journey time estimate used for pricing.

        minimum_passengers_required (Integer):
            Pledge count that moves the proposal to `THRESHOLD_MET`.
            Defaults to 8.

        target_passengers (Integer):
            Passenger count the fare curve is computed up to.
            Defaults to 16. Never lower than `minimum_passengers_required`.

        total_votes (Integer):
            Number of votes of any type. Derived from `proposal_vote`, never edited directly.

        total_pledges (Integer):
            Number of `PLEDGE` votes. Derived from `proposal_vote`.
            Always less than or equal to `total_votes`.

        status (Integer):
            Lifecycle status, mapped from `ProposalStatus`. Defaults to `OPEN`.
            Only moves forward, `REJECTED` and `CONVERTED_TO_ROUTE` are terminal.

        reviewed_by (Integer):
            Operator who approved or rejected the proposal.

        reviewed_on (DateTime):
            Timestamp of the approval or rejection.

        review_notes (TEXT):
            Optional notes recorded with an approval.

        rejection_reason (TEXT):
            Reason recorded with a rejection.

        converted_to_route_id (Integer):
            Identifier of the operating route created from an approved proposal.

        converted_on (DateTime):
            Timestamp of the conversion.

        updated_on (DateTime):
            Timestamp automatically updated whenever the proposal is modified.

        created_on (DateTime):
            Timestamp of when the proposal was created.
    """

    __tablename__ = "route_proposal"

    id = Column(Integer, primary_key=True)
    company_id = Column(
        Integer,
        ForeignKey("company.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    proposer_id = Column(Integer, ForeignKey("customer.id", ondelete="SET NULL"))
    proposer_name = Column(TEXT)
    proposer_is_anonymous = Column(Boolean, nullable=False, default=False)
    # Route descriptor
    route_name = Column(String(128), nullable=False)
    route_description = Column(TEXT)
    origin_area = Column(TEXT, nullable=False)
    origin_postcodes = Column(JSONList, nullable=False)
    destination_name = Column(TEXT, nullable=False)
    destination_address = Column(TEXT)
    destination_postcode = Column(String(16))
    # Operating pattern
    proposed_frequency = Column(Integer)
    operates_monday = Column(Boolean, nullable=False, default=False)
    operates_tuesday = Column(Boolean, nullable=False, default=False)
    operates_wednesday = Column(Boolean, nullable=False, default=False)
    operates_thursday = Column(Boolean, nullable=False, default=False)
    operates_friday = Column(Boolean, nullable=False, default=False)
    operates_saturday = Column(Boolean, nullable=False, default=False)
    operates_sunday = Column(Boolean, nullable=False, default=False)
    departure_window_start = Column(Time)
    departure_window_end = Column(Time)
    estimated_distance_miles = Column(Numeric(10, 2))
    estimated_duration_minutes = Column(Integer)
    # Demand
    minimum_passengers_required = Column(
        Integer, nullable=False, default=DEFAULT_MINIMUM_PASSENGERS
    )
    target_passengers = Column(
        Integer, nullable=False, default=DEFAULT_TARGET_PASSENGERS
    )
    total_votes = Column(Integer, nullable=False, default=0)
    total_pledges = Column(Integer, nullable=False, default=0)
    # Lifecycle
    status = Column(Integer, nullable=False, default=ProposalStatus.OPEN, index=True)
    reviewed_by = Column(Integer, ForeignKey("operator.id", ondelete="SET NULL"))
    reviewed_on = Column(DateTime(timezone=True))
    review_notes = Column(TEXT)
    rejection_reason = Column(TEXT)
    converted_to_route_id = Column(Integer)
    converted_on = Column(DateTime(timezone=True))
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class ProposalVote(ORMbase):
    """
    Represents a customer's vote on a route proposal.

    A customer holds at most one vote per proposal. Voting again updates the
    existing row in place, votes are never deleted.

    Columns:
        id (Integer):
            Primary key.

        company_id (Integer):
            Foreign key referencing `company.id`.

        proposal_id (Integer):
            Foreign key referencing `route_proposal.id`.
            Cascades on delete.

        customer_id (Integer):
            Foreign key referencing `customer.id`.

        vote_type (Integer):
            Mapped from `VoteType`: `INTERESTED`, `MAYBE` or `PLEDGE`.

        expected_frequency (Integer):
            How often the customer expects to travel, mapped from `PledgeFrequency`.
            Required for pledges, NULL otherwise.

        willing_to_pay_amount (Numeric(6, 2)):
            Per-journey fare the customer is willing to pay.
            Required for pledges, NULL otherwise.

        is_anonymous (Boolean):
            Whether the customer's name is hidden from operators.

        voter_name (TEXT):
            Display name of the voter, NULL when anonymous.

        notes (TEXT):
            Optional free text note, maximum 1024 characters long.

    Constraints:
        UniqueConstraint (proposal_id, customer_id):
            One vote per customer per proposal.
    """

    __tablename__ = "proposal_vote"
    __table_args__ = (UniqueConstraint("proposal_id", "customer_id"),)

    id = Column(Integer, primary_key=True)
    company_id = Column(
        Integer, ForeignKey("company.id", ondelete="CASCADE"), nullable=False
    )
    proposal_id = Column(
        Integer,
        ForeignKey("route_proposal.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    customer_id = Column(
        Integer, ForeignKey("customer.id", ondelete="CASCADE"), nullable=False
    )
    vote_type = Column(Integer, nullable=False)
    expected_frequency = Column(Integer)
    willing_to_pay_amount = Column(Numeric(6, 2))
    is_anonymous = Column(Boolean, nullable=False, default=False)
    voter_name = Column(TEXT)
    notes = Column(TEXT)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class ProposalInvitation(ORMbase):
    """
    Represents an invitation to vote on a proposal, sent to a customer
    whose travel profile matches it.

    Invitations are created by the matching pass that follows proposal
    creation, only for scores of at least 50, and never twice for the
    same customer and proposal.

    Columns:
        id (Integer):
            Primary key.

        company_id (Integer):
            Foreign key referencing `company.id`.

        proposal_id (Integer):
            Foreign key referencing `route_proposal.id`.

        customer_id (Integer):
            Foreign key referencing `customer.id`.

        match_score (Integer):
            Score between 0 and 100 computed by the matching engine.

        match_reason (JSON):
            Ordered list of the signal tags that contributed to the score.

        status (Integer):
            Mapped from `InvitationStatus`. Defaults to `PENDING`.

        viewed_on (DateTime):
            Timestamp of when the customer first opened the invitation.

        responded_on (DateTime):
            Timestamp of when the customer accepted or declined.

    Constraints:
        UniqueConstraint (proposal_id, customer_id):
            One invitation per customer per proposal.
    """

    __tablename__ = "proposal_invitation"
    __table_args__ = (UniqueConstraint("proposal_id", "customer_id"),)

    id = Column(Integer, primary_key=True)
    company_id = Column(
        Integer, ForeignKey("company.id", ondelete="CASCADE"), nullable=False
    )
    proposal_id = Column(
        Integer,
        ForeignKey("route_proposal.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    customer_id = Column(
        Integer,
        ForeignKey("customer.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    match_score = Column(Integer, nullable=False)
    match_reason = Column(JSONList, nullable=False)
    status = Column(Integer, nullable=False, default=InvitationStatus.PENDING)
    viewed_on = Column(DateTime(timezone=True))
    responded_on = Column(DateTime(timezone=True))
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class ProposalTransition(ORMbase):
    """
    Audit trail of proposal status changes.

    One row is written for every transition, automatic or manual.

    Columns:
        actor_app (Integer):
            `AppID` of the acting account, `CUSTOMER` for the automatic
            threshold transition triggered by a pledge.

        actor_id (Integer):
            Customer or operator identifier of the acting account.

        reason (TEXT):
            Rejection reason or review notes, when given.
    """

    __tablename__ = "proposal_transition"

    id = Column(Integer, primary_key=True)
    company_id = Column(
        Integer, ForeignKey("company.id", ondelete="CASCADE"), nullable=False
    )
    proposal_id = Column(
        Integer,
        ForeignKey("route_proposal.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    old_status = Column(Integer, nullable=False)
    new_status = Column(Integer, nullable=False)
    actor_app = Column(Integer, nullable=False)
    actor_id = Column(Integer)
    reason = Column(TEXT)
    # Metadata
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())
