from datetime import datetime, timezone
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Body
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from communibus.api.bearer import bearer_customer
from communibus.src.db import ProposalInvitation, RouteProposal, sessionMaker
from communibus.src import exceptions, validators, getters
from communibus.src.loggers import logEvent
from communibus.src.enums import InvitationStatus, ProposalStatus
from communibus.src.functions import enumStr, fuseExceptionResponses
from communibus.src.urls import URL_PROPOSAL_INVITATION

route_customer = APIRouter()

invitationStatusTransition = {
    InvitationStatus.PENDING: [
        InvitationStatus.VIEWED,
        InvitationStatus.ACCEPTED,
        InvitationStatus.DECLINED,
    ],
    InvitationStatus.VIEWED: [InvitationStatus.ACCEPTED, InvitationStatus.DECLINED],
    InvitationStatus.ACCEPTED: [],
    InvitationStatus.DECLINED: [],
}


## Output Schema
class InvitationSchema(BaseModel):
    id: int
    proposal_id: int
    customer_id: int
    match_score: int
    match_reason: List[str]
    status: InvitationStatus
    viewed_on: Optional[datetime]
    responded_on: Optional[datetime]
    updated_on: Optional[datetime]
    created_on: datetime


class InvitedProposalSchema(InvitationSchema):
    route_name: str
    origin_area: str
    destination_name: str
    total_pledges: int
    minimum_passengers_required: int


## Input Forms
class UpdateForm(BaseModel):
    id: int = Field(Body())
    status: InvitationStatus = Field(Body(description=enumStr(InvitationStatus)))


## Query Parameters
class QueryParams(BaseModel):
    offset: int = Field(Query(default=0, ge=0))
    limit: int = Field(Query(default=20, gt=0, le=100))


## Function
def searchInvitation(session: Session, customerId: int, companyId: int, qParam):
    """
    Invitations still waiting for an answer, best match first.

    Only invitations to OPEN proposals in PENDING or VIEWED status are listed.
    """
    rows = (
        session.query(ProposalInvitation, RouteProposal)
        .join(RouteProposal, RouteProposal.id == ProposalInvitation.proposal_id)
        .filter(
            ProposalInvitation.customer_id == customerId,
            ProposalInvitation.company_id == companyId,
            ProposalInvitation.status.in_(
                [InvitationStatus.PENDING, InvitationStatus.VIEWED]
            ),
            RouteProposal.status == ProposalStatus.OPEN,
        )
        .order_by(
            ProposalInvitation.match_score.desc(),
            ProposalInvitation.created_on.desc(),
            ProposalInvitation.id.desc(),
        )
        .offset(qParam.offset)
        .limit(qParam.limit)
        .all()
    )
    invitations = []
    for invitation, proposal in rows:
        invitationData = jsonable_encoder(invitation)
        invitationData.update(
            route_name=proposal.route_name,
            origin_area=proposal.origin_area,
            destination_name=proposal.destination_name,
            total_pledges=proposal.total_pledges,
            minimum_passengers_required=proposal.minimum_passengers_required,
        )
        invitations.append(invitationData)
    return invitations


def updateInvitation(invitation: ProposalInvitation, newStatus: InvitationStatus):
    validators.stateTransition(
        invitationStatusTransition,
        InvitationStatus(invitation.status),
        newStatus,
        ProposalInvitation.status,
    )
    now = datetime.now(timezone.utc)
    invitation.status = newStatus
    if invitation.viewed_on is None:
        invitation.viewed_on = now
    if newStatus in [InvitationStatus.ACCEPTED, InvitationStatus.DECLINED]:
        invitation.responded_on = now


## API endpoints [Customer]
@route_customer.get(
    URL_PROPOSAL_INVITATION,
    tags=["Proposal Invitation"],
    response_model=List[InvitedProposalSchema],
    responses=fuseExceptionResponses(
        [exceptions.InvalidToken(), exceptions.InactiveAccount()]
    ),
    description="""
    Fetch the route proposals the customer has been invited to.
    Only invitations in PENDING or VIEWED status to OPEN proposals are listed.
    Ordered by match score, best match first, then newest first.
    Supports pagination.
    """,
)
async def fetch_proposal_invitation(
    qParam: QueryParams = Depends(),
    bearer=Depends(bearer_customer),
):
    try:
        session = sessionMaker()
        token = validators.customerToken(bearer.credentials, session)
        customer = getters.customer(token, session)

        return searchInvitation(session, customer.id, token.company_id, qParam)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_customer.patch(
    URL_PROPOSAL_INVITATION,
    tags=["Proposal Invitation"],
    response_model=InvitationSchema,
    responses=fuseExceptionResponses(
        [
            exceptions.InvalidToken(),
            exceptions.InactiveAccount(),
            exceptions.InvalidIdentifier(),
            exceptions.InvalidStateTransition(ProposalInvitation.status),
        ]
    ),
    description="""
    Mark an invitation as VIEWED, ACCEPTED or DECLINED.
    Only the invited customer can update the invitation.
    Allowed status transitions:
        PENDING ↔ VIEWED, ACCEPTED, DECLINED
        VIEWED ↔ ACCEPTED, DECLINED
    ACCEPTED and DECLINED are final.
    The viewed_on and responded_on timestamps are recorded automatically.
    Accepting an invitation does not vote, the customer votes separately.
    Log the invitation update activity with the associated token.
    """,
)
async def update_proposal_invitation(
    fParam: UpdateForm = Depends(),
    bearer=Depends(bearer_customer),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.customerToken(bearer.credentials, session)
        customer = getters.customer(token, session)

        invitation = (
            session.query(ProposalInvitation)
            .filter(
                ProposalInvitation.id == fParam.id,
                ProposalInvitation.customer_id == customer.id,
            )
            .first()
        )
        if invitation is None:
            raise exceptions.InvalidIdentifier()

        haveUpdates = invitation.status != fParam.status
        if haveUpdates:
            updateInvitation(invitation, fParam.status)
            session.commit()
            session.refresh(invitation)

        invitationData = jsonable_encoder(invitation)
        if haveUpdates:
            logEvent(token, request_info, invitationData)
        return invitationData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
