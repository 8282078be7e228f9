from datetime import datetime, timezone
from typing import Optional
from fastapi import APIRouter, Depends, Body
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from communibus.api.bearer import bearer_customer
from communibus.src.db import TravelPrivacy, sessionMaker
from communibus.src import exceptions, validators, getters
from communibus.src.loggers import logEvent
from communibus.src.enums import PrivacyLevel
from communibus.src.functions import enumStr, fuseExceptionResponses, updateIfChanged
from communibus.src.urls import URL_TRAVEL_PRIVACY

route_customer = APIRouter()


## Output Schema
class TravelPrivacySchema(BaseModel):
    id: Optional[int]
    customer_id: int
    share_travel_patterns: bool
    privacy_level: PrivacyLevel
    allow_proposal_invitations: bool
    anonymous_voting: bool
    consent_given: bool
    consent_on: Optional[datetime]
    updated_on: Optional[datetime]
    created_on: Optional[datetime]


## Input Forms
class UpdateForm(BaseModel):
    share_travel_patterns: bool | None = Field(Body(default=None))
    privacy_level: PrivacyLevel | None = Field(
        Body(default=None, description=enumStr(PrivacyLevel))
    )
    allow_proposal_invitations: bool | None = Field(Body(default=None))
    anonymous_voting: bool | None = Field(Body(default=None))
    consent_given: bool | None = Field(Body(default=None))


## Function
def defaultPrivacy(customerId: int) -> dict:
    """Preferences of a customer who never saved any, nothing is shared."""
    return {
        "id": None,
        "customer_id": customerId,
        "share_travel_patterns": False,
        "privacy_level": PrivacyLevel.PRIVATE,
        "allow_proposal_invitations": True,
        "anonymous_voting": False,
        "consent_given": False,
        "consent_on": None,
        "updated_on": None,
        "created_on": None,
    }


def updatePrivacy(privacy: TravelPrivacy, fParam: UpdateForm):
    consented = bool(privacy.consent_given)
    updateIfChanged(
        privacy,
        fParam,
        [
            TravelPrivacy.share_travel_patterns.key,
            TravelPrivacy.privacy_level.key,
            TravelPrivacy.allow_proposal_invitations.key,
            TravelPrivacy.anonymous_voting.key,
            TravelPrivacy.consent_given.key,
        ],
    )
    if fParam.consent_given is True and not consented:
        privacy.consent_on = datetime.now(timezone.utc)
    if fParam.consent_given is False:
        privacy.consent_on = None


## API endpoints [Customer]
@route_customer.get(
    URL_TRAVEL_PRIVACY,
    tags=["Travel Privacy"],
    response_model=TravelPrivacySchema,
    responses=fuseExceptionResponses(
        [exceptions.InvalidToken(), exceptions.InactiveAccount()]
    ),
    description="""
    Fetch the travel privacy preferences of the customer.
    A customer who never saved any preferences gets the defaults, where nothing is shared and no consent is given.
    """,
)
async def fetch_travel_privacy(bearer=Depends(bearer_customer)):
    try:
        session = sessionMaker()
        token = validators.customerToken(bearer.credentials, session)
        customer = getters.customer(token, session)

        privacy = getters.travelPrivacy(session, customer.id)
        if privacy is None:
            return defaultPrivacy(customer.id)
        return privacy
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_customer.patch(
    URL_TRAVEL_PRIVACY,
    tags=["Travel Privacy"],
    response_model=TravelPrivacySchema,
    responses=fuseExceptionResponses(
        [exceptions.InvalidToken(), exceptions.InactiveAccount()]
    ),
    description="""
    Update the travel privacy preferences of the customer.
    The preferences are created on the first update.
    Supports partial updates, fields that are not given keep their current value.
    Giving consent records the consent time, withdrawing consent clears it.
    Consent is required for creating route proposals.
    Only customers who consented, share their travel patterns and allow invitations are invited to matching proposals.
    Changes are saved only if the preferences have been modified.
    Log the privacy update activity with the associated token.
    """,
)
async def update_travel_privacy(
    fParam: UpdateForm = Depends(),
    bearer=Depends(bearer_customer),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.customerToken(bearer.credentials, session)
        customer = getters.customer(token, session)

        privacy = getters.travelPrivacy(session, customer.id)
        if privacy is None:
            privacy = TravelPrivacy(
                company_id=customer.company_id,
                customer_id=customer.id,
            )
            session.add(privacy)

        updatePrivacy(privacy, fParam)
        haveUpdates = privacy in session.new or session.is_modified(privacy)
        if haveUpdates:
            session.commit()
            session.refresh(privacy)

        privacyData = jsonable_encoder(privacy)
        if haveUpdates:
            logEvent(token, request_info, privacyData)
        return privacyData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
