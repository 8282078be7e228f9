"""
API Endpoint URL Constants

This module defines the URL paths used throughout the application
for accessing route proposals, votes, invitations and fare policies.

These URLs are relative paths and are prefixed by the mount point of the
customer or operator application (`/customer`, `/operator`).
"""

# -------------------------------
# Customer
# -------------------------------
URL_TRAVEL_PRIVACY = "/company/customer/privacy"

# -------------------------------
# Route proposals
# -------------------------------
URL_ROUTE_PROPOSAL = "/company/route/proposal"
URL_ROUTE_PROPOSAL_FARE = "/company/route/proposal/fare"
URL_PROPOSAL_VOTE = "/company/route/proposal/vote"
URL_PROPOSAL_INVITATION = "/company/route/proposal/invitation"

# -------------------------------
# Proposal review
# -------------------------------
URL_PROPOSAL_APPROVAL = "/company/route/proposal/approve"
URL_PROPOSAL_REJECTION = "/company/route/proposal/reject"
URL_PROPOSAL_CONVERSION = "/company/route/proposal/convert"
URL_PROPOSAL_PLEDGE = "/company/route/proposal/pledge"
URL_PROPOSAL_VIABILITY = "/company/route/proposal/viability"

# -------------------------------
# Fare
# -------------------------------
URL_FARE_POLICY = "/company/fare/policy"
