from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Body
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from communibus.api.bearer import bearer_customer, bearer_operator
from communibus.src.db import OperatorRole, ProposalVote, RouteProposal, sessionMaker
from communibus.src import exceptions, validators, getters, voting
from communibus.src.loggers import logEvent
from communibus.src.enums import PledgeFrequency, ProposalStatus, VoteType
from communibus.src.schemas import FareQuote, ViabilityAnalysis
from communibus.src.cooperative_fare.v1 import CooperativeFare, servicesPerMonth
from communibus.src.functions import enumStr, fuseExceptionResponses
from communibus.src.urls import (
    URL_PROPOSAL_VOTE,
    URL_PROPOSAL_PLEDGE,
    URL_PROPOSAL_VIABILITY,
)

route_customer = APIRouter()
route_operator = APIRouter()

ANONYMOUS_NAME = "Anonymous Customer"


## Output Schema
class VoteSchema(BaseModel):
    id: int
    proposal_id: int
    customer_id: int
    vote_type: VoteType
    expected_frequency: Optional[PledgeFrequency]
    willing_to_pay_amount: Optional[float]
    is_anonymous: bool
    voter_name: Optional[str]
    notes: Optional[str]
    updated_on: Optional[datetime]
    created_on: datetime


class ProposalTotalsSchema(BaseModel):
    id: int
    total_votes: int
    total_pledges: int
    minimum_passengers_required: int
    status: ProposalStatus


class VoteReceiptSchema(BaseModel):
    vote: VoteSchema
    route_proposal: ProposalTotalsSchema


class PledgeSchema(BaseModel):
    id: int
    customer_id: Optional[int]
    voter_name: str
    is_anonymous: bool
    expected_frequency: PledgeFrequency
    willing_to_pay_amount: float
    notes: Optional[str]
    created_on: datetime


class ViabilitySchema(BaseModel):
    proposal_id: int
    total_pledges: int
    average_willing_to_pay: Optional[float]
    estimated_services_per_month: Optional[float]
    fare_quote: FareQuote
    analysis: Optional[ViabilityAnalysis]


## Input Forms
class VoteForm(BaseModel):
    proposal_id: int = Field(Body())
    vote_type: VoteType = Field(Body(description=enumStr(VoteType)))
    expected_frequency: PledgeFrequency | None = Field(
        Body(default=None, description=enumStr(PledgeFrequency))
    )
    willing_to_pay_amount: float | None = Field(Body(default=None, gt=0, lt=10000))
    is_anonymous: bool | None = Field(Body(default=None))
    notes: str | None = Field(Body(default=None, max_length=1024))


## Query Parameters
class ProposalQueryParams(BaseModel):
    proposal_id: int = Field(Query())


## Function
def proposalPledges(session: Session, proposal: RouteProposal) -> List[ProposalVote]:
    return (
        session.query(ProposalVote)
        .filter(
            ProposalVote.proposal_id == proposal.id,
            ProposalVote.vote_type == VoteType.PLEDGE,
        )
        .order_by(ProposalVote.created_on.asc(), ProposalVote.id.asc())
        .all()
    )


def pledgeView(pledge: ProposalVote) -> dict:
    pledgeData = jsonable_encoder(pledge)
    if pledge.is_anonymous:
        pledgeData["customer_id"] = None
        pledgeData["voter_name"] = ANONYMOUS_NAME
    elif pledge.voter_name is None:
        pledgeData["voter_name"] = ANONYMOUS_NAME
    return pledgeData


def viabilityAnalysis(session: Session, proposal: RouteProposal) -> dict:
    """
    Combine the pledges of a proposal with its fare quote.

    The analysis is left empty while the proposal has no pledges.
    """
    engine = CooperativeFare(getters.farePolicy(session, proposal.company_id))
    quote = engine.proposalQuote(proposal)
    pledges = proposalPledges(session, proposal)

    viabilityData = {
        "proposal_id": proposal.id,
        "total_pledges": len(pledges),
        "average_willing_to_pay": None,
        "estimated_services_per_month": None,
        "fare_quote": quote,
        "analysis": None,
    }
    if pledges:
        averageWillingToPay = sum(
            float(x.willing_to_pay_amount) for x in pledges
        ) / len(pledges)
        services = servicesPerMonth([x.expected_frequency for x in pledges])
        viabilityData["average_willing_to_pay"] = round(averageWillingToPay, 2)
        viabilityData["estimated_services_per_month"] = services
        viabilityData["analysis"] = engine.analyzeViability(
            proposal.id,
            len(pledges),
            averageWillingToPay,
            services,
            quote.journey_cost.total_cost,
        )
    return viabilityData


## API endpoints [Customer]
@route_customer.post(
    URL_PROPOSAL_VOTE,
    tags=["Proposal Vote"],
    response_model=VoteReceiptSchema,
    responses=fuseExceptionResponses(
        [
            exceptions.InvalidToken(),
            exceptions.InactiveAccount(),
            exceptions.InvalidIdentifier(),
            exceptions.MissingParameter(ProposalVote.expected_frequency),
            exceptions.MissingParameter(ProposalVote.willing_to_pay_amount),
            exceptions.InactiveResource(RouteProposal),
            exceptions.LockAcquireTimeout(),
        ]
    ),
    description="""
    Vote on a route proposal of the customer's company, or change an earlier vote.
    A customer has a single vote per proposal, voting again replaces it.
    A PLEDGE requires both expected_frequency and willing_to_pay_amount.
    Pledge details are discarded for INTERESTED and MAYBE votes.
    Only OPEN and THRESHOLD_MET proposals accept votes.
    If is_anonymous is not given, the customer's anonymous voting preference is used.
    The proposal totals are recounted before responding.
    An OPEN proposal moves to THRESHOLD_MET once its pledges reach minimum_passengers_required.
    Log the voting activity with the associated token.
    """,
)
async def vote_route_proposal(
    fParam: VoteForm = Depends(),
    bearer=Depends(bearer_customer),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.customerToken(bearer.credentials, session)
        customer = getters.customer(token, session)

        anonymous = fParam.is_anonymous
        if anonymous is None:
            privacy = getters.travelPrivacy(session, customer.id)
            anonymous = privacy is not None and privacy.anonymous_voting
        vote, proposal = voting.recordVote(
            session,
            fParam.proposal_id,
            customer,
            fParam.vote_type,
            fParam.expected_frequency,
            fParam.willing_to_pay_amount,
            anonymous,
            fParam.notes,
        )

        voteData = {
            "vote": jsonable_encoder(vote),
            "route_proposal": {
                "id": proposal.id,
                "total_votes": proposal.total_votes,
                "total_pledges": proposal.total_pledges,
                "minimum_passengers_required": proposal.minimum_passengers_required,
                "status": proposal.status,
            },
        }
        logEvent(token, request_info, voteData)
        return voteData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


## API endpoints [Operator]
@route_operator.get(
    URL_PROPOSAL_PLEDGE,
    tags=["Proposal Vote"],
    response_model=List[PledgeSchema],
    responses=fuseExceptionResponses(
        [
            exceptions.InvalidToken(),
            exceptions.NoPermission(),
            exceptions.InvalidIdentifier(),
        ]
    ),
    description="""
    Fetch the pledges made on a route proposal, oldest first.
    Requires operator role with `view_pledge` permission.
    Anonymous pledgers are shown as `Anonymous Customer` without their customer_id.
    """,
)
async def fetch_proposal_pledge(
    qParam: ProposalQueryParams = Depends(),
    bearer=Depends(bearer_operator),
):
    try:
        session = sessionMaker()
        token = validators.operatorToken(bearer.credentials, session)
        role = getters.operatorRole(token, session)
        validators.operatorPermission(role, OperatorRole.view_pledge)

        proposal = getters.routeProposal(session, qParam.proposal_id, token.company_id)
        return [pledgeView(pledge) for pledge in proposalPledges(session, proposal)]
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_operator.get(
    URL_PROPOSAL_VIABILITY,
    tags=["Proposal Vote"],
    response_model=ViabilitySchema,
    responses=fuseExceptionResponses(
        [
            exceptions.InvalidToken(),
            exceptions.NoPermission(),
            exceptions.InvalidIdentifier(),
        ]
    ),
    description="""
    Analyse whether a route proposal can run on its pledges.
    Requires operator role with `view_pledge` permission.
    The break-even passenger count is where the fare drops to the average willingness to pay of the pledgers.
    Monthly figures use the pledgers' average expected frequency.
    The recommendation is LAUNCH when the pledges reach break-even, WAIT_FOR_MORE_PLEDGES when they fall short by no more than the company's viability shortfall, and NOT_VIABLE otherwise.
    The analysis is empty while the proposal has no pledges.
    """,
)
async def fetch_proposal_viability(
    qParam: ProposalQueryParams = Depends(),
    bearer=Depends(bearer_operator),
):
    try:
        session = sessionMaker()
        token = validators.operatorToken(bearer.credentials, session)
        role = getters.operatorRole(token, session)
        validators.operatorPermission(role, OperatorRole.view_pledge)

        proposal = getters.routeProposal(session, qParam.proposal_id, token.company_id)
        return viabilityAnalysis(session, proposal)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
