from datetime import datetime, time
from enum import IntEnum
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status, Body
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from communibus.api.bearer import bearer_customer, bearer_operator
from communibus.src.db import OperatorRole, RouteProposal, sessionMaker
from communibus.src import exceptions, validators, getters, lifecycle
from communibus.src import invitations
from communibus.src.loggers import logEvent
from communibus.src.enums import Day, OrderIn, ProposalStatus, ServiceFrequency
from communibus.src.schemas import FareQuote, FareSummary, MarginalFare
from communibus.src.cooperative_fare.v1 import CooperativeFare
from communibus.src.redis import acquireLock, releaseLock
from communibus.src.matching import OPERATING_DAY_COLUMNS
from communibus.src.functions import enumStr, fuseExceptionResponses
from communibus.src.constants import (
    DEFAULT_MINIMUM_PASSENGERS,
    DEFAULT_TARGET_PASSENGERS,
)
from communibus.src.urls import (
    URL_ROUTE_PROPOSAL,
    URL_ROUTE_PROPOSAL_FARE,
    URL_PROPOSAL_APPROVAL,
    URL_PROPOSAL_REJECTION,
    URL_PROPOSAL_CONVERSION,
)

route_customer = APIRouter()
route_operator = APIRouter()


## Output Schema
class RouteProposalSchema(BaseModel):
    id: int
    company_id: int
    proposer_id: Optional[int]
    proposer_name: Optional[str]
    proposer_is_anonymous: bool
    route_name: str
    route_description: Optional[str]
    origin_area: str
    origin_postcodes: List[str]
    destination_name: str
    destination_address: Optional[str]
    destination_postcode: Optional[str]
    proposed_frequency: Optional[ServiceFrequency]
    operates_monday: bool
    operates_tuesday: bool
    operates_wednesday: bool
    operates_thursday: bool
    operates_friday: bool
    operates_saturday: bool
    operates_sunday: bool
    departure_window_start: Optional[time]
    departure_window_end: Optional[time]
    estimated_distance_miles: Optional[float]
    estimated_duration_minutes: Optional[int]
    minimum_passengers_required: int
    target_passengers: int
    total_votes: int
    total_pledges: int
    status: ProposalStatus
    reviewed_by: Optional[int]
    reviewed_on: Optional[datetime]
    review_notes: Optional[str]
    rejection_reason: Optional[str]
    converted_to_route_id: Optional[int]
    converted_on: Optional[datetime]
    updated_on: Optional[datetime]
    created_on: datetime


class RouteProposalListSchema(RouteProposalSchema):
    fare_summary: FareSummary


class ProposalFareSchema(BaseModel):
    route_proposal: RouteProposalSchema
    fare_quote: FareQuote
    fare_preview: List[MarginalFare]


## Input Forms
class CreateForm(BaseModel):
    route_name: str = Field(Body(max_length=128))
    route_description: str | None = Field(Body(default=None, max_length=2048))
    origin_area: str = Field(Body(max_length=256))
    origin_postcodes: List[str] = Field(Body(min_length=1, max_length=32))
    destination_name: str = Field(Body(min_length=1, max_length=256))
    destination_address: str | None = Field(Body(default=None, max_length=512))
    destination_postcode: str | None = Field(Body(default=None, max_length=16))
    proposed_frequency: ServiceFrequency | None = Field(
        Body(default=None, description=enumStr(ServiceFrequency))
    )
    operating_days: List[Day] = Field(
        Body(min_length=1, max_length=7, description=enumStr(Day))
    )
    departure_window_start: time | None = Field(Body(default=None))
    departure_window_end: time | None = Field(Body(default=None))
    estimated_distance_miles: float | None = Field(Body(default=None, gt=0))
    estimated_duration_minutes: int | None = Field(Body(default=None, gt=0))
    minimum_passengers_required: int = Field(
        Body(default=DEFAULT_MINIMUM_PASSENGERS, ge=1, le=100)
    )
    target_passengers: int = Field(Body(default=DEFAULT_TARGET_PASSENGERS, ge=1, le=100))
    is_anonymous: bool | None = Field(Body(default=None))


class ApproveForm(BaseModel):
    id: int = Field(Body())
    review_notes: str | None = Field(Body(default=None, max_length=2048))


class RejectForm(BaseModel):
    id: int = Field(Body())
    rejection_reason: str | None = Field(Body(default=None, max_length=2048))


class ConvertForm(BaseModel):
    id: int = Field(Body())
    route_id: int = Field(Body())


## Query Parameters
class OrderBy(IntEnum):
    id = 1
    total_pledges = 2
    total_votes = 3
    updated_on = 4
    created_on = 5


class QueryParamsForCU(BaseModel):
    route_name: str | None = Field(Query(default=None))
    origin_area: str | None = Field(Query(default=None))
    destination_name: str | None = Field(Query(default=None))
    status: ProposalStatus | None = Field(
        Query(default=None, description=enumStr(ProposalStatus))
    )
    status_list: List[ProposalStatus] | None = Field(
        Query(default=None, description=enumStr(ProposalStatus))
    )
    # id based
    id: int | None = Field(Query(default=None))
    id_ge: int | None = Field(Query(default=None))
    id_le: int | None = Field(Query(default=None))
    id_list: List[int] | None = Field(Query(default=None))
    # pledge based
    total_pledges_ge: int | None = Field(Query(default=None))
    total_pledges_le: int | None = Field(Query(default=None))
    # created_on based
    created_on_ge: datetime | None = Field(Query(default=None))
    created_on_le: datetime | None = Field(Query(default=None))
    # Ordering
    order_by: OrderBy = Field(Query(default=OrderBy.id, description=enumStr(OrderBy)))
    order_in: OrderIn = Field(Query(default=OrderIn.DESC, description=enumStr(OrderIn)))
    # Pagination
    offset: int = Field(Query(default=0, ge=0))
    limit: int = Field(Query(default=20, gt=0, le=100))


class QueryParamsForOP(QueryParamsForCU):
    proposer_id: int | None = Field(Query(default=None))
    reviewed_by: int | None = Field(Query(default=None))


class FareQueryParams(BaseModel):
    id: int = Field(Query())


## Function
def createProposal(fParam: CreateForm, customer, anonymous: bool) -> RouteProposal:
    if fParam.target_passengers < fParam.minimum_passengers_required:
        raise exceptions.InvalidValue(RouteProposal.target_passengers)
    if (
        fParam.departure_window_start is not None
        and fParam.departure_window_end is not None
        and fParam.departure_window_end <= fParam.departure_window_start
    ):
        raise exceptions.InvalidValue(RouteProposal.departure_window_end)
    postcodes = []
    for postcode in fParam.origin_postcodes:
        area = postcode.strip().upper()
        if not area:
            raise exceptions.InvalidValue(RouteProposal.origin_postcodes)
        if area not in postcodes:
            postcodes.append(area)
    if not fParam.route_name.strip():
        raise exceptions.InvalidValue(RouteProposal.route_name)
    if not fParam.destination_name.strip():
        raise exceptions.InvalidValue(RouteProposal.destination_name)

    proposal = RouteProposal(
        company_id=customer.company_id,
        proposer_id=customer.id,
        proposer_name=None if anonymous else customer.full_name,
        proposer_is_anonymous=anonymous,
        route_name=fParam.route_name.strip(),
        route_description=fParam.route_description,
        origin_area=fParam.origin_area,
        origin_postcodes=postcodes,
        destination_name=fParam.destination_name.strip(),
        destination_address=fParam.destination_address,
        destination_postcode=fParam.destination_postcode,
        proposed_frequency=fParam.proposed_frequency,
        departure_window_start=fParam.departure_window_start,
        departure_window_end=fParam.departure_window_end,
        estimated_distance_miles=fParam.estimated_distance_miles,
        estimated_duration_minutes=fParam.estimated_duration_minutes,
        minimum_passengers_required=fParam.minimum_passengers_required,
        target_passengers=fParam.target_passengers,
        total_votes=0,
        total_pledges=0,
        status=ProposalStatus.OPEN,
    )
    for day, key in OPERATING_DAY_COLUMNS.items():
        setattr(proposal, key, day in fParam.operating_days)
    return proposal


def customerView(proposal: RouteProposal) -> dict:
    proposalData = jsonable_encoder(proposal)
    if proposal.proposer_is_anonymous:
        proposalData["proposer_id"] = None
    return proposalData


def proposalFare(session: Session, proposal: RouteProposal) -> dict:
    engine = CooperativeFare(getters.farePolicy(session, proposal.company_id))
    quote = engine.proposalQuote(proposal)
    preview = engine.farePreview(
        quote.journey_cost.total_cost,
        quote.current_passengers,
        proposal.target_passengers,
    )
    return {"fare_quote": quote, "fare_preview": preview}


def withFareSummary(
    session: Session, companyId: int, proposals: List[RouteProposal], view=jsonable_encoder
) -> List[dict]:
    engine = CooperativeFare(getters.farePolicy(session, companyId))
    proposalList = []
    for proposal in proposals:
        proposalData = view(proposal)
        proposalData["fare_summary"] = engine.proposalSummary(proposal)
        proposalList.append(proposalData)
    return proposalList


def searchRouteProposal(
    session: Session, companyId: int, qParam: QueryParamsForCU | QueryParamsForOP
) -> List[RouteProposal]:
    query = session.query(RouteProposal).filter(RouteProposal.company_id == companyId)

    # Filters
    if qParam.route_name is not None:
        query = query.filter(RouteProposal.route_name.ilike(f"%{qParam.route_name}%"))
    if qParam.origin_area is not None:
        query = query.filter(
            RouteProposal.origin_area.ilike(f"%{qParam.origin_area}%")
        )
    if qParam.destination_name is not None:
        query = query.filter(
            RouteProposal.destination_name.ilike(f"%{qParam.destination_name}%")
        )
    if qParam.status is not None:
        query = query.filter(RouteProposal.status == qParam.status)
    if qParam.status_list is not None:
        query = query.filter(RouteProposal.status.in_(qParam.status_list))
    if getattr(qParam, "proposer_id", None) is not None:
        query = query.filter(RouteProposal.proposer_id == qParam.proposer_id)
    if getattr(qParam, "reviewed_by", None) is not None:
        query = query.filter(RouteProposal.reviewed_by == qParam.reviewed_by)
    # id based
    if qParam.id is not None:
        query = query.filter(RouteProposal.id == qParam.id)
    if qParam.id_ge is not None:
        query = query.filter(RouteProposal.id >= qParam.id_ge)
    if qParam.id_le is not None:
        query = query.filter(RouteProposal.id <= qParam.id_le)
    if qParam.id_list is not None:
        query = query.filter(RouteProposal.id.in_(qParam.id_list))
    # pledge based
    if qParam.total_pledges_ge is not None:
        query = query.filter(RouteProposal.total_pledges >= qParam.total_pledges_ge)
    if qParam.total_pledges_le is not None:
        query = query.filter(RouteProposal.total_pledges <= qParam.total_pledges_le)
    # created_on based
    if qParam.created_on_ge is not None:
        query = query.filter(RouteProposal.created_on >= qParam.created_on_ge)
    if qParam.created_on_le is not None:
        query = query.filter(RouteProposal.created_on <= qParam.created_on_le)

    # Ordering
    ordering_attr = getattr(RouteProposal, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(ordering_attr.asc(), RouteProposal.id.asc())
    else:
        query = query.order_by(ordering_attr.desc(), RouteProposal.id.desc())

    # Pagination
    query = query.offset(qParam.offset).limit(qParam.limit)
    return query.all()


## API endpoints [Customer]
@route_customer.post(
    URL_ROUTE_PROPOSAL,
    tags=["Route Proposal"],
    response_model=RouteProposalSchema,
    status_code=status.HTTP_201_CREATED,
    responses=fuseExceptionResponses(
        [
            exceptions.InvalidToken(),
            exceptions.InactiveAccount(),
            exceptions.ConsentRequired(),
            exceptions.InvalidValue(RouteProposal.target_passengers),
            exceptions.InvalidValue(RouteProposal.departure_window_end),
        ]
    ),
    description="""
    Propose a new shared route within the customer's company.
    The customer must have given consent to route proposals in the travel privacy settings.
    The target_passengers must not be lower than minimum_passengers_required.
    When both are given, departure_window_end must be after departure_window_start.
    Origin postcodes are stored upper-cased and de-duplicated.
    If is_anonymous is not given, the customer's anonymous voting preference is used.
    The proposal is created in the OPEN status with no votes.
    Customers with matching travel patterns are invited in the background, a failure there never affects the proposal.
    Log the proposal creation activity with the associated token.
    """,
)
async def create_route_proposal(
    fParam: CreateForm = Depends(),
    bearer=Depends(bearer_customer),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.customerToken(bearer.credentials, session)
        customer = getters.customer(token, session)
        privacy = getters.travelPrivacy(session, customer.id)
        validators.proposalConsent(privacy)

        anonymous = fParam.is_anonymous
        if anonymous is None:
            anonymous = privacy.anonymous_voting
        proposal = createProposal(fParam, customer, anonymous)
        session.add(proposal)
        session.commit()
        session.refresh(proposal)

        invitations.dispatcher.submit(proposal.id)
        proposalData = jsonable_encoder(proposal)
        logEvent(token, request_info, proposalData)
        return proposalData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_customer.get(
    URL_ROUTE_PROPOSAL,
    tags=["Route Proposal"],
    response_model=List[RouteProposalListSchema],
    responses=fuseExceptionResponses(
        [exceptions.InvalidToken(), exceptions.InactiveAccount()]
    ),
    description="""
    Fetch the route proposals of the customer's company.
    Supports filtering by name, origin, destination, status and pledge counts.
    Order by total_pledges to list the most popular proposals first.
    Supports filtering, sorting, and pagination.
    The proposer of an anonymous proposal is not disclosed.
    Every proposal carries a fare summary: the fare at the current pledge count, the fare once target_passengers is reached, viability and whether the target is reached.
    Without a fare ceiling a proposal is viable only once its pledges reach minimum_passengers_required.
    """,
)
async def fetch_route_proposal(
    qParam: QueryParamsForCU = Depends(),
    bearer=Depends(bearer_customer),
):
    try:
        session = sessionMaker()
        token = validators.customerToken(bearer.credentials, session)
        getters.customer(token, session)

        proposals = searchRouteProposal(session, token.company_id, qParam)
        return withFareSummary(session, token.company_id, proposals, customerView)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_customer.get(
    URL_ROUTE_PROPOSAL_FARE,
    tags=["Route Proposal"],
    response_model=ProposalFareSchema,
    responses=fuseExceptionResponses(
        [
            exceptions.InvalidToken(),
            exceptions.InactiveAccount(),
            exceptions.InvalidIdentifier(),
        ]
    ),
    description="""
    Fetch a route proposal together with its cooperative fare quote.
    The fare is priced with the company's fare policy, or the default cost model if it has none.
    The proposal is priced at its current pledge count, the proposer counts as one passenger when there are no pledges.
    The fare preview shows the fare for 1 to 5 additional pledges, never beyond target_passengers.
    """,
)
async def fetch_route_proposal_fare(
    qParam: FareQueryParams = Depends(),
    bearer=Depends(bearer_customer),
):
    try:
        session = sessionMaker()
        token = validators.customerToken(bearer.credentials, session)
        getters.customer(token, session)

        proposal = getters.routeProposal(session, qParam.id, token.company_id)
        fareData = proposalFare(session, proposal)
        return {"route_proposal": customerView(proposal), **fareData}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


## API endpoints [Operator]
@route_operator.get(
    URL_ROUTE_PROPOSAL,
    tags=["Route Proposal"],
    response_model=List[RouteProposalListSchema],
    responses=fuseExceptionResponses([exceptions.InvalidToken()]),
    description="""
    Fetch the route proposals of the operator's company.
    Supports filtering by name, origin, destination, status, proposer, reviewer and pledge counts.
    Supports filtering, sorting, and pagination.
    Every proposal carries the same fare summary as in the customer listing.
    Requires a valid operator token.
    """,
)
async def fetch_route_proposal_for_operator(
    qParam: QueryParamsForOP = Depends(),
    bearer=Depends(bearer_operator),
):
    try:
        session = sessionMaker()
        token = validators.operatorToken(bearer.credentials, session)

        proposals = searchRouteProposal(session, token.company_id, qParam)
        return withFareSummary(session, token.company_id, proposals)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_operator.get(
    URL_ROUTE_PROPOSAL_FARE,
    tags=["Route Proposal"],
    response_model=ProposalFareSchema,
    responses=fuseExceptionResponses(
        [exceptions.InvalidToken(), exceptions.InvalidIdentifier()]
    ),
    description="""
    Fetch a route proposal together with its cooperative fare quote and fare preview.
    Requires a valid operator token.
    """,
)
async def fetch_route_proposal_fare_for_operator(
    qParam: FareQueryParams = Depends(),
    bearer=Depends(bearer_operator),
):
    try:
        session = sessionMaker()
        token = validators.operatorToken(bearer.credentials, session)

        proposal = getters.routeProposal(session, qParam.id, token.company_id)
        fareData = proposalFare(session, proposal)
        return {"route_proposal": jsonable_encoder(proposal), **fareData}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_operator.post(
    URL_PROPOSAL_APPROVAL,
    tags=["Route Proposal"],
    response_model=RouteProposalSchema,
    responses=fuseExceptionResponses(
        [
            exceptions.InvalidToken(),
            exceptions.NoPermission(),
            exceptions.InvalidIdentifier(),
            exceptions.AlreadyReviewed(),
            exceptions.LockAcquireTimeout(),
        ]
    ),
    description="""
    Approve a route proposal.
    Requires operator role with `review_proposal` permission.
    Only proposals in OPEN or THRESHOLD_MET status can be approved.
    The approving operator and the time of approval are recorded.
    Log the proposal approval activity with the associated token.
    """,
)
async def approve_route_proposal(
    fParam: ApproveForm = Depends(),
    bearer=Depends(bearer_operator),
    request_info=Depends(getters.requestInfo),
):
    proposalLock = None
    try:
        session = sessionMaker()
        token = validators.operatorToken(bearer.credentials, session)
        role = getters.operatorRole(token, session)
        validators.operatorPermission(role, OperatorRole.review_proposal)

        proposalLock = acquireLock(RouteProposal.__tablename__, fParam.id)
        proposal = getters.routeProposal(
            session, fParam.id, token.company_id, forUpdate=True
        )
        lifecycle.approve(session, proposal, token.operator_id, fParam.review_notes)
        session.commit()
        session.refresh(proposal)

        proposalData = jsonable_encoder(proposal)
        logEvent(token, request_info, proposalData)
        return proposalData
    except Exception as e:
        exceptions.handle(e)
    finally:
        releaseLock(proposalLock)
        session.close()


@route_operator.post(
    URL_PROPOSAL_REJECTION,
    tags=["Route Proposal"],
    response_model=RouteProposalSchema,
    responses=fuseExceptionResponses(
        [
            exceptions.InvalidToken(),
            exceptions.NoPermission(),
            exceptions.InvalidIdentifier(),
            exceptions.MissingParameter(RouteProposal.rejection_reason),
            exceptions.AlreadyReviewed(),
            exceptions.LockAcquireTimeout(),
        ]
    ),
    description="""
    Reject a route proposal with a reason.
    Requires operator role with `review_proposal` permission.
    The rejection_reason must not be empty.
    Approved, rejected and converted proposals cannot be rejected.
    A rejected proposal can never be reopened.
    Log the proposal rejection activity with the associated token.
    """,
)
async def reject_route_proposal(
    fParam: RejectForm = Depends(),
    bearer=Depends(bearer_operator),
    request_info=Depends(getters.requestInfo),
):
    proposalLock = None
    try:
        session = sessionMaker()
        token = validators.operatorToken(bearer.credentials, session)
        role = getters.operatorRole(token, session)
        validators.operatorPermission(role, OperatorRole.review_proposal)

        proposalLock = acquireLock(RouteProposal.__tablename__, fParam.id)
        proposal = getters.routeProposal(
            session, fParam.id, token.company_id, forUpdate=True
        )
        lifecycle.reject(session, proposal, token.operator_id, fParam.rejection_reason)
        session.commit()
        session.refresh(proposal)

        proposalData = jsonable_encoder(proposal)
        logEvent(token, request_info, proposalData)
        return proposalData
    except Exception as e:
        exceptions.handle(e)
    finally:
        releaseLock(proposalLock)
        session.close()


@route_operator.post(
    URL_PROPOSAL_CONVERSION,
    tags=["Route Proposal"],
    response_model=RouteProposalSchema,
    responses=fuseExceptionResponses(
        [
            exceptions.InvalidToken(),
            exceptions.NoPermission(),
            exceptions.InvalidIdentifier(),
            exceptions.InvalidStateTransition(RouteProposal.status),
            exceptions.LockAcquireTimeout(),
        ]
    ),
    description="""
    Record that an approved route proposal now runs as an operating route.
    Requires operator role with `review_proposal` permission.
    Only APPROVED proposals can be converted.
    The route itself is created by the scheduling service, only its route_id is recorded.
    Log the proposal conversion activity with the associated token.
    """,
)
async def convert_route_proposal(
    fParam: ConvertForm = Depends(),
    bearer=Depends(bearer_operator),
    request_info=Depends(getters.requestInfo),
):
    proposalLock = None
    try:
        session = sessionMaker()
        token = validators.operatorToken(bearer.credentials, session)
        role = getters.operatorRole(token, session)
        validators.operatorPermission(role, OperatorRole.review_proposal)

        proposalLock = acquireLock(RouteProposal.__tablename__, fParam.id)
        proposal = getters.routeProposal(
            session, fParam.id, token.company_id, forUpdate=True
        )
        lifecycle.convert(session, proposal, token.operator_id, fParam.route_id)
        session.commit()
        session.refresh(proposal)

        proposalData = jsonable_encoder(proposal)
        logEvent(token, request_info, proposalData)
        return proposalData
    except Exception as e:
        exceptions.handle(e)
    finally:
        releaseLock(proposalLock)
        session.close()
