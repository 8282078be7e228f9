"""
Cooperative fare model, version 1.

A proposed service has a fixed operating cost per journey, which is shared
equally by everybody on board. The fare per passenger therefore shrinks as
more riders commit:

    fare = fixed cost / passenger count

The fixed cost is derived from the company's fare policy: driver wage for the
journey time, fuel per mile, per-journey vehicle costs and an admin overhead
on top.
"""

from math import ceil
from typing import List, Optional

from communibus.src import validators
from communibus.src.schemas import (
    FareQuote,
    FareSummary,
    FareTier,
    JourneyCost,
    MarginalFare,
    ViabilityAnalysis,
)
from communibus.src.enums import PledgeFrequency, ViabilityRecommendation
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
    FARE_PREVIEW_DEPTH,
)

# Journeys a month a pledger takes, by expected frequency
SERVICES_PER_MONTH = {
    PledgeFrequency.DAILY: 20,
    PledgeFrequency.TWO_THREE_TIMES_WEEK: 10,
    PledgeFrequency.WEEKLY: 4,
    PledgeFrequency.MONTHLY: 1,
}

MINIMUM_FARE = 0.01


def money(value: float) -> float:
    return round(value, 2)


def servicesPerMonth(frequencies: List[int]) -> float:
    """
    Average number of journeys a month across the given pledge frequencies.

    Returns 0 for an empty list.
    """
    if not frequencies:
        return 0
    total = sum(SERVICES_PER_MONTH[PledgeFrequency(x)] for x in frequencies)
    return round(total / len(frequencies), 2)


class CooperativeFare:
    def __init__(self, policy=None):
        if policy is None:
            self.driverHourlyRate = DEFAULT_DRIVER_HOURLY_RATE
            self.fuelCostPerMile = DEFAULT_FUEL_COST_PER_MILE
            self.depreciation = DEFAULT_DEPRECIATION_PER_JOURNEY
            self.insurance = DEFAULT_INSURANCE_PER_JOURNEY
            self.maintenance = DEFAULT_MAINTENANCE_PER_JOURNEY
            self.adminOverhead = DEFAULT_ADMIN_OVERHEAD_PERCENTAGE
            self.fareCeiling = None
            self.viabilityShortfall = DEFAULT_VIABILITY_SHORTFALL
            self.defaultDistance = DEFAULT_DISTANCE_MILES
            self.defaultDuration = DEFAULT_DURATION_MINUTES
        else:
            self.driverHourlyRate = float(policy.driver_hourly_rate)
            self.fuelCostPerMile = float(policy.fuel_cost_per_mile)
            self.depreciation = float(policy.depreciation_per_journey)
            self.insurance = float(policy.insurance_per_journey)
            self.maintenance = float(policy.maintenance_per_journey)
            self.adminOverhead = float(policy.admin_overhead_percentage)
            self.fareCeiling = (
                None
                if policy.acceptable_fare_ceiling is None
                else float(policy.acceptable_fare_ceiling)
            )
            self.viabilityShortfall = policy.viability_shortfall
            self.defaultDistance = float(policy.default_distance_miles)
            self.defaultDuration = policy.default_duration_minutes

    # ------------------------------------------------------------------
    # Cost and fare curve
    # ------------------------------------------------------------------
    def journeyCost(self, distanceMiles: float, durationMinutes: float) -> JourneyCost:
        """
        Compute the fixed operating cost of one journey.

        Raises:
            exceptions.NonPositiveValue: If the distance or duration is not positive.
        """
        validators.positive(
            estimated_distance_miles=distanceMiles,
            estimated_duration_minutes=durationMinutes,
        )
        driverCost = self.driverHourlyRate * (durationMinutes / 60)
        fuelCost = self.fuelCostPerMile * distanceMiles
        subtotal = (
            driverCost + fuelCost + self.depreciation + self.insurance + self.maintenance
        )
        adminOverhead = subtotal * self.adminOverhead
        return JourneyCost(
            driver_cost=money(driverCost),
            fuel_cost=money(fuelCost),
            depreciation=money(self.depreciation),
            insurance=money(self.insurance),
            maintenance=money(self.maintenance),
            admin_overhead=money(adminOverhead),
            total_cost=money(subtotal + adminOverhead),
        )

    def farePerPassenger(self, fixedCost: float, passengerCount: int) -> float:
        validators.positive(fixed_cost=fixedCost, passenger_count=passengerCount)
        # Never quote below one penny
        return max(money(fixedCost / passengerCount), MINIMUM_FARE)

    def isViable(
        self, fare: float, currentPassengers: int, minimumPassengers: Optional[int]
    ) -> bool:
        if self.fareCeiling is not None:
            return fare <= self.fareCeiling
        if minimumPassengers is None:
            return False
        return currentPassengers >= minimumPassengers

    def quote(
        self,
        routeName: str,
        origin: str,
        destination: str,
        estimatedDistanceMiles: float,
        estimatedDurationMinutes: float,
        targetPassengers: int,
        currentPassengers: int,
        minimumPassengers: Optional[int] = None,
    ) -> FareQuote:
        """
        Price a route for every passenger count from 1 to `targetPassengers`.

        Args:
            routeName (str): Name of the route, echoed in the quote.
            origin (str): Origin description, echoed in the quote.
            destination (str): Destination description, echoed in the quote.
            estimatedDistanceMiles (float): Journey distance, must be positive.
            estimatedDurationMinutes (float): Journey time, must be positive.
            targetPassengers (int): Largest passenger count priced.
            currentPassengers (int): Riders committed so far, at least 1.
            minimumPassengers (Optional[int]): Passenger count that makes the
                route viable when the company has no fare ceiling.

        Returns:
            FareQuote: The journey cost, the fare curve and the fare at the
            current passenger count. A current count above the target is
            priced as an extra tier.

        Raises:
            exceptions.NonPositiveValue: If any numeric input is not positive.
        """
        validators.positive(
            target_passengers=targetPassengers, current_passengers=currentPassengers
        )
        cost = self.journeyCost(estimatedDistanceMiles, estimatedDurationMinutes)

        passengerCounts = list(range(1, targetPassengers + 1))
        if currentPassengers > targetPassengers:
            passengerCounts.append(currentPassengers)
        fareTiers = []
        for count in passengerCounts:
            fare = self.farePerPassenger(cost.total_cost, count)
            fareTiers.append(
                FareTier(
                    passenger_count=count,
                    fare_per_passenger=fare,
                    total_revenue=money(fare * count),
                    is_current=count == currentPassengers,
                    meets_minimum=minimumPassengers is not None
                    and count >= minimumPassengers,
                )
            )

        fareAtCurrent = self.farePerPassenger(cost.total_cost, currentPassengers)
        return FareQuote(
            route_name=routeName,
            origin=origin,
            destination=destination,
            estimated_distance_miles=estimatedDistanceMiles,
            estimated_duration_minutes=estimatedDurationMinutes,
            journey_cost=cost,
            fare_tiers=fareTiers,
            target_passengers=targetPassengers,
            current_passengers=currentPassengers,
            minimum_passengers_required=minimumPassengers,
            fare_at_current_capacity=fareAtCurrent,
            acceptable_fare_ceiling=self.fareCeiling,
            is_viable=self.isViable(fareAtCurrent, currentPassengers, minimumPassengers),
        )

    def marginalFareForAdditionalPassengers(
        self, fixedCost: float, currentPassengers: int, additionalPassengers: int
    ) -> MarginalFare:
        """
        Recompute the fare if `additionalPassengers` more riders join.

        Example:
            >>> CooperativeFare().marginalFareForAdditionalPassengers(140, 4, 3)
            MarginalFare(additional_passengers=3, new_passenger_count=7,
                current_fare_per_passenger=35.0, new_fare_per_passenger=20.0,
                savings_per_passenger=15.0)
        """
        validators.positive(
            fixed_cost=fixedCost,
            current_passengers=currentPassengers,
            additional_passengers=additionalPassengers,
        )
        newPassengerCount = currentPassengers + additionalPassengers
        currentFare = self.farePerPassenger(fixedCost, currentPassengers)
        newFare = self.farePerPassenger(fixedCost, newPassengerCount)
        return MarginalFare(
            additional_passengers=additionalPassengers,
            new_passenger_count=newPassengerCount,
            current_fare_per_passenger=currentFare,
            new_fare_per_passenger=newFare,
            savings_per_passenger=max(money(currentFare - newFare), 0),
        )

    def farePreview(
        self,
        fixedCost: float,
        currentPassengers: int,
        targetPassengers: int,
        depth: int = FARE_PREVIEW_DEPTH,
    ) -> List[MarginalFare]:
        """Marginal fares for 1..depth additional riders, up to the target."""
        preview = []
        for additional in range(1, depth + 1):
            if currentPassengers + additional > targetPassengers:
                break
            preview.append(
                self.marginalFareForAdditionalPassengers(
                    fixedCost, currentPassengers, additional
                )
            )
        return preview

    # ------------------------------------------------------------------
    # Viability
    # ------------------------------------------------------------------
    def breakEvenPassengers(self, fixedCost: float, averageWillingToPay: float) -> int:
        """Smallest passenger count whose fare is within the willingness to pay."""
        validators.positive(
            fixed_cost=fixedCost, average_willing_to_pay=averageWillingToPay
        )
        return max(ceil(round(fixedCost / averageWillingToPay, 6)), 1)

    def recommendation(
        self, pledgeCount: int, breakEvenPassengers: int
    ) -> ViabilityRecommendation:
        shortfall = breakEvenPassengers - pledgeCount
        if shortfall <= 0:
            return ViabilityRecommendation.LAUNCH
        if shortfall <= self.viabilityShortfall:
            return ViabilityRecommendation.WAIT_FOR_MORE_PLEDGES
        return ViabilityRecommendation.NOT_VIABLE

    def analyzeViability(
        self,
        proposalId: int,
        pledgeCount: int,
        averageWillingToPay: float,
        estimatedServicesPerMonth: float,
        fixedCost: float,
    ) -> ViabilityAnalysis:
        """
        Compare the pledges of a proposal against its break-even point.

        The break-even passenger count is where the fare per passenger drops
        to the average willingness to pay. Pledges at or above it recommend
        a launch, pledges short by no more than the policy's shortfall
        recommend waiting, anything further below is not viable.

        Raises:
            exceptions.NonPositiveValue: If any numeric input is not positive.
        """
        validators.positive(
            pledge_count=pledgeCount,
            estimated_services_per_month=estimatedServicesPerMonth,
        )
        breakEven = self.breakEvenPassengers(fixedCost, averageWillingToPay)
        monthlyRevenue = averageWillingToPay * pledgeCount * estimatedServicesPerMonth
        monthlyCost = fixedCost * estimatedServicesPerMonth
        return ViabilityAnalysis(
            proposal_id=proposalId,
            pledge_count=pledgeCount,
            average_willing_to_pay=money(averageWillingToPay),
            estimated_services_per_month=estimatedServicesPerMonth,
            fixed_cost=money(fixedCost),
            break_even_passengers=breakEven,
            monthly_revenue_estimate=money(monthlyRevenue),
            monthly_cost_estimate=money(monthlyCost),
            monthly_surplus_or_deficit=money(monthlyRevenue - monthlyCost),
            recommendation=self.recommendation(pledgeCount, breakEven),
        )

    # ------------------------------------------------------------------
    # Route proposals
    # ------------------------------------------------------------------
    def proposalDistance(self, proposal) -> float:
        if proposal.estimated_distance_miles is None:
            return self.defaultDistance
        return float(proposal.estimated_distance_miles)

    def proposalDuration(self, proposal) -> float:
        if proposal.estimated_duration_minutes is None:
            return self.defaultDuration
        return proposal.estimated_duration_minutes

    def proposalCost(self, proposal) -> JourneyCost:
        return self.journeyCost(
            self.proposalDistance(proposal), self.proposalDuration(proposal)
        )

    def proposalQuote(self, proposal) -> FareQuote:
        """
        Quote a route proposal at its current pledge count.

        The proposer counts as a rider, so an unpledged proposal is priced
        for one passenger. Without a fare ceiling only real pledges count
        towards the minimum.
        """
        quote = self.quote(
            proposal.route_name,
            proposal.origin_area,
            proposal.destination_name,
            self.proposalDistance(proposal),
            self.proposalDuration(proposal),
            proposal.target_passengers,
            max(proposal.total_pledges, 1),
            proposal.minimum_passengers_required,
        )
        quote.is_viable = self.isViable(
            quote.fare_at_current_capacity,
            proposal.total_pledges,
            proposal.minimum_passengers_required,
        )
        return quote

    def proposalSummary(self, proposal) -> FareSummary:
        """Headline figures of `proposalQuote`, without the fare curve."""
        totalCost = self.proposalCost(proposal).total_cost
        currentFare = self.farePerPassenger(totalCost, max(proposal.total_pledges, 1))
        return FareSummary(
            current_fare=currentFare,
            fare_at_target=self.farePerPassenger(
                totalCost, proposal.target_passengers
            ),
            is_viable=self.isViable(
                currentFare,
                proposal.total_pledges,
                proposal.minimum_passengers_required,
            ),
            target_reached=proposal.total_pledges >= proposal.target_passengers,
        )
