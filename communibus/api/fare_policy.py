from datetime import datetime
from decimal import Decimal
from typing import Optional
from fastapi import APIRouter, Depends, Body
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from communibus.api.bearer import bearer_operator
from communibus.src.db import FarePolicy, OperatorRole, sessionMaker
from communibus.src import exceptions, validators, getters
from communibus.src.loggers import logEvent
from communibus.src.functions import fuseExceptionResponses, updateIfChanged
from communibus.src.urls import URL_FARE_POLICY
from communibus.src.constants import (
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

route_operator = APIRouter()


## Output Schema
class FarePolicySchema(BaseModel):
    id: Optional[int]
    company_id: int
    driver_hourly_rate: float
    fuel_cost_per_mile: float
    depreciation_per_journey: float
    insurance_per_journey: float
    maintenance_per_journey: float
    admin_overhead_percentage: float
    acceptable_fare_ceiling: Optional[float]
    viability_shortfall: int
    default_distance_miles: float
    default_duration_minutes: int
    updated_on: Optional[datetime]
    created_on: Optional[datetime]


## Input Forms
class UpdateForm(BaseModel):
    driver_hourly_rate: Decimal | None = Field(
        Body(default=None, gt=0, max_digits=10, decimal_places=2)
    )
    fuel_cost_per_mile: Decimal | None = Field(
        Body(default=None, ge=0, max_digits=10, decimal_places=2)
    )
    depreciation_per_journey: Decimal | None = Field(
        Body(default=None, ge=0, max_digits=10, decimal_places=2)
    )
    insurance_per_journey: Decimal | None = Field(
        Body(default=None, ge=0, max_digits=10, decimal_places=2)
    )
    maintenance_per_journey: Decimal | None = Field(
        Body(default=None, ge=0, max_digits=10, decimal_places=2)
    )
    admin_overhead_percentage: Decimal | None = Field(
        Body(default=None, ge=0, lt=1, max_digits=5, decimal_places=4)
    )
    acceptable_fare_ceiling: Decimal | None = Field(
        Body(default=None, gt=0, max_digits=10, decimal_places=2)
    )
    remove_fare_ceiling: bool | None = Field(Body(default=None))
    viability_shortfall: int | None = Field(Body(default=None, ge=0, le=100))
    default_distance_miles: Decimal | None = Field(
        Body(default=None, gt=0, max_digits=10, decimal_places=2)
    )
    default_duration_minutes: int | None = Field(Body(default=None, gt=0, le=1440))


## Function
def defaultPolicy(companyId: int) -> dict:
    """Cost model used for a company that never saved its own."""
    return {
        "id": None,
        "company_id": companyId,
        "driver_hourly_rate": DEFAULT_DRIVER_HOURLY_RATE,
        "fuel_cost_per_mile": DEFAULT_FUEL_COST_PER_MILE,
        "depreciation_per_journey": DEFAULT_DEPRECIATION_PER_JOURNEY,
        "insurance_per_journey": DEFAULT_INSURANCE_PER_JOURNEY,
        "maintenance_per_journey": DEFAULT_MAINTENANCE_PER_JOURNEY,
        "admin_overhead_percentage": DEFAULT_ADMIN_OVERHEAD_PERCENTAGE,
        "acceptable_fare_ceiling": None,
        "viability_shortfall": DEFAULT_VIABILITY_SHORTFALL,
        "default_distance_miles": DEFAULT_DISTANCE_MILES,
        "default_duration_minutes": DEFAULT_DURATION_MINUTES,
        "updated_on": None,
        "created_on": None,
    }


def updatePolicy(policy: FarePolicy, fParam: UpdateForm):
    if fParam.remove_fare_ceiling and fParam.acceptable_fare_ceiling is not None:
        raise exceptions.UnexpectedParameter(FarePolicy.acceptable_fare_ceiling)

    updateIfChanged(
        policy,
        fParam,
        [
            FarePolicy.driver_hourly_rate.key,
            FarePolicy.fuel_cost_per_mile.key,
            FarePolicy.depreciation_per_journey.key,
            FarePolicy.insurance_per_journey.key,
            FarePolicy.maintenance_per_journey.key,
            FarePolicy.admin_overhead_percentage.key,
            FarePolicy.acceptable_fare_ceiling.key,
            FarePolicy.viability_shortfall.key,
            FarePolicy.default_distance_miles.key,
            FarePolicy.default_duration_minutes.key,
        ],
    )
    if fParam.remove_fare_ceiling and policy.acceptable_fare_ceiling is not None:
        policy.acceptable_fare_ceiling = None


## API endpoints [Operator]
@route_operator.get(
    URL_FARE_POLICY,
    tags=["Fare Policy"],
    response_model=FarePolicySchema,
    responses=fuseExceptionResponses([exceptions.InvalidToken()]),
    description="""
    Fetch the cooperative cost model of the operator's company.
    A company that never saved its own policy gets the default cost model without a fare ceiling.
    """,
)
async def fetch_fare_policy(bearer=Depends(bearer_operator)):
    try:
        session = sessionMaker()
        token = validators.operatorToken(bearer.credentials, session)

        policy = getters.farePolicy(session, token.company_id)
        if policy is None:
            return defaultPolicy(token.company_id)
        return policy
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_operator.patch(
    URL_FARE_POLICY,
    tags=["Fare Policy"],
    response_model=FarePolicySchema,
    responses=fuseExceptionResponses(
        [
            exceptions.InvalidToken(),
            exceptions.NoPermission(),
            exceptions.UnexpectedParameter(FarePolicy.acceptable_fare_ceiling),
        ]
    ),
    description="""
    Update the cooperative cost model of the operator's company.
    Requires operator role with `update_fare_policy` permission.
    The policy is created from the defaults on the first update.
    Supports partial updates, fields that are not given keep their current value.
    Set remove_fare_ceiling to price without a fare ceiling, viability is then decided by the minimum passenger count of each proposal.
    The new cost model applies to every later fare quote and viability analysis.
    Changes are saved only if the policy has been modified.
    Log the policy update activity with the associated token.
    """,
)
async def update_fare_policy(
    fParam: UpdateForm = Depends(),
    bearer=Depends(bearer_operator),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.operatorToken(bearer.credentials, session)
        role = getters.operatorRole(token, session)
        validators.operatorPermission(role, OperatorRole.update_fare_policy)

        policy = getters.farePolicy(session, token.company_id)
        if policy is None:
            policy = FarePolicy(company_id=token.company_id)
            session.add(policy)

        updatePolicy(policy, fParam)
        haveUpdates = policy in session.new or session.is_modified(policy)
        if haveUpdates:
            session.commit()
            session.refresh(policy)

        policyData = jsonable_encoder(policy)
        if haveUpdates:
            logEvent(token, request_info, policyData)
        return policyData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
