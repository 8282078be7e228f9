from fastapi import FastAPI
from communibus.api import (
    route_proposal,
    proposal_vote,
    proposal_invitation,
    travel_privacy,
    fare_policy,
)
from communibus.src.enums import AppID


# ------------------------------------------------------
# Create separate FastAPI apps for each user domain
# ------------------------------------------------------
app_customer = FastAPI(title="Customer APP")
app_operator = FastAPI(title="Operator APP")

# Tag each app with its AppID
app_customer.state.id = AppID.CUSTOMER
app_operator.state.id = AppID.OPERATOR


# ------------------------------------------------------
# Customer routers
# ------------------------------------------------------
app_customer.include_router(travel_privacy.route_customer)
app_customer.include_router(route_proposal.route_customer)
app_customer.include_router(proposal_vote.route_customer)
app_customer.include_router(proposal_invitation.route_customer)


# ------------------------------------------------------
# Operator routers
# ------------------------------------------------------
app_operator.include_router(route_proposal.route_operator)
app_operator.include_router(proposal_vote.route_operator)
app_operator.include_router(fare_policy.route_operator)
