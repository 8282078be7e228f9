"""
Scoring of a customer's travel profile against a route proposal.

The score is additive, out of 100:

    origin       40 same postcode area, 20 adjacent postcode area
    destination  30 scheduled destination matches the proposal destination
    schedule     20 for 3+ shared travel days, 10 for 1-2 shared days
    frequency    10 derived travel frequency equals the proposed frequency

Reasons are reported in the order above. A customer contributing nothing is
reported with `general_interest`.
"""

import re
from typing import List

from communibus.src.db import RouteProposal
from communibus.src.enums import Day, ServiceFrequency
from communibus.src.functions import outwardCode
from communibus.src.schemas import MatchResult, TravelProfile

SAME_POSTCODE_AREA = "same_postcode_area"
ADJACENT_POSTCODE_AREA = "adjacent_postcode_area"
SAME_DESTINATION = "same_destination"
MATCHING_SCHEDULE = "matching_schedule"
PARTIAL_SCHEDULE_MATCH = "partial_schedule_match"
MATCHING_FREQUENCY = "matching_frequency"
GENERAL_INTEREST = "general_interest"

WEEKDAYS = {Day.MONDAY, Day.TUESDAY, Day.WEDNESDAY, Day.THURSDAY, Day.FRIDAY}
WEEKENDS = {Day.SATURDAY, Day.SUNDAY}

OPERATING_DAY_COLUMNS = {
    Day.MONDAY: RouteProposal.operates_monday.key,
    Day.TUESDAY: RouteProposal.operates_tuesday.key,
    Day.WEDNESDAY: RouteProposal.operates_wednesday.key,
    Day.THURSDAY: RouteProposal.operates_thursday.key,
    Day.FRIDAY: RouteProposal.operates_friday.key,
    Day.SATURDAY: RouteProposal.operates_saturday.key,
    Day.SUNDAY: RouteProposal.operates_sunday.key,
}


def areaPrefix(area: str) -> str:
    """Leading letters of a postcode area, `S10` -> `S`, `SW1A` -> `SW`."""
    return re.match(r"[A-Z]*", area.upper()).group()


def operatingDays(proposal: RouteProposal) -> set[Day]:
    return {day for day, key in OPERATING_DAY_COLUMNS.items() if getattr(proposal, key)}


def travelDays(profile: TravelProfile) -> set[Day]:
    return {day for day in Day if profile.schedule.entry(day).destination}


def travelFrequency(days: set[Day]) -> ServiceFrequency:
    """
    Derive a frequency label from a set of travel days.

    Seven days is DAILY, exactly Monday to Friday is WEEKDAYS, exactly
    Saturday and Sunday is WEEKENDS, anything else is CUSTOM.
    """
    if len(days) == 7:
        return ServiceFrequency.DAILY
    if days == WEEKDAYS:
        return ServiceFrequency.WEEKDAYS
    if days == WEEKENDS:
        return ServiceFrequency.WEEKENDS
    return ServiceFrequency.CUSTOM


def originScore(proposal: RouteProposal, profile: TravelProfile) -> tuple[int, str]:
    area = outwardCode(profile.postcode)
    if not area:
        return 0, None
    candidates = [x.upper() for x in proposal.origin_postcodes or []]
    if area in candidates:
        return 40, SAME_POSTCODE_AREA
    prefix = areaPrefix(area)
    if prefix and any(areaPrefix(x) == prefix for x in candidates):
        return 20, ADJACENT_POSTCODE_AREA
    return 0, None


def destinationScore(
    proposal: RouteProposal, profile: TravelProfile
) -> tuple[int, str]:
    target = (proposal.destination_name or "").strip().lower()
    if not target:
        return 0, None
    for day in Day:
        destination = profile.schedule.entry(day).destination
        if destination and target in destination.lower():
            return 30, SAME_DESTINATION
    return 0, None


def scheduleScore(proposalDays: set[Day], riderDays: set[Day]) -> tuple[int, str]:
    overlap = len(proposalDays & riderDays)
    if overlap >= 3:
        return 20, MATCHING_SCHEDULE
    if overlap >= 1:
        return 10, PARTIAL_SCHEDULE_MATCH
    return 0, None


def frequencyScore(proposal: RouteProposal, riderDays: set[Day]) -> tuple[int, str]:
    if proposal.proposed_frequency is None or not riderDays:
        return 0, None
    if travelFrequency(riderDays) == proposal.proposed_frequency:
        return 10, MATCHING_FREQUENCY
    return 0, None


def matchScore(proposal: RouteProposal, profile: TravelProfile) -> MatchResult:
    """
    Score one customer against one proposal.

    Pure function of its inputs, the proposal is only read.

    Args:
        proposal (RouteProposal): Proposal with origin postcodes, destination,
            operating days and proposed frequency.
        profile (TravelProfile): Postcode and weekly schedule of the customer.

    Returns:
        MatchResult: The score (0-100) and the contributing reasons in check order.

    Example:
        A customer at `S10 2AB` travelling to the proposal's destination on
        four of its five operating days, against candidate areas
        `["S10", "S11"]`, scores 40 + 30 + 20 = 90 with reasons
        `same_postcode_area`, `same_destination`, `matching_schedule`.
    """
    riderDays = travelDays(profile)
    checks = [
        originScore(proposal, profile),
        destinationScore(proposal, profile),
        scheduleScore(operatingDays(proposal), riderDays),
        frequencyScore(proposal, riderDays),
    ]
    score = 0
    reasons: List[str] = []
    for points, reason in checks:
        if points:
            score += points
            reasons.append(reason)
    if not reasons:
        reasons.append(GENERAL_INTEREST)
    return MatchResult(score=min(score, 100), reasons=reasons)
