from datetime import time
from typing import List, Optional
from pydantic import BaseModel, Field

from communibus.src.enums import Day, ViabilityRecommendation


class RequestInfo(BaseModel):
    method: str
    path: str
    app_id: int


class HealthStatus(BaseModel):
    status: str
    version: str


class ErrorResponse(BaseModel):
    detail: str


# ---------------------------------------------------------------------------
# Travel profile
# ---------------------------------------------------------------------------
class DaySchedule(BaseModel):
    destination: Optional[str] = None
    pickup_time: Optional[time] = None
    dropoff_time: Optional[time] = None


class WeeklySchedule(BaseModel):
    """
    A customer's regular travel, one entry per weekday.

    All seven days are always present, a day without a destination is a
    day the customer does not travel.
    """

    monday: DaySchedule = Field(default_factory=DaySchedule)
    tuesday: DaySchedule = Field(default_factory=DaySchedule)
    wednesday: DaySchedule = Field(default_factory=DaySchedule)
    thursday: DaySchedule = Field(default_factory=DaySchedule)
    friday: DaySchedule = Field(default_factory=DaySchedule)
    saturday: DaySchedule = Field(default_factory=DaySchedule)
    sunday: DaySchedule = Field(default_factory=DaySchedule)

    def entry(self, day: Day) -> DaySchedule:
        return getattr(self, day.name.lower())


class TravelProfile(BaseModel):
    customer_id: int
    postcode: Optional[str] = None
    schedule: WeeklySchedule = Field(default_factory=WeeklySchedule)


class MatchResult(BaseModel):
    score: int
    reasons: List[str]


# ---------------------------------------------------------------------------
# Cooperative fare
# ---------------------------------------------------------------------------
class JourneyCost(BaseModel):
    driver_cost: float
    fuel_cost: float
    depreciation: float
    insurance: float
    maintenance: float
    admin_overhead: float
    total_cost: float


class FareTier(BaseModel):
    passenger_count: int
    fare_per_passenger: float
    total_revenue: float
    is_current: bool
    meets_minimum: bool


class FareQuote(BaseModel):
    route_name: str
    origin: str
    destination: str
    estimated_distance_miles: float
    estimated_duration_minutes: float
    journey_cost: JourneyCost
    fare_tiers: List[FareTier]
    target_passengers: int
    current_passengers: int
    minimum_passengers_required: Optional[int]
    fare_at_current_capacity: float
    acceptable_fare_ceiling: Optional[float]
    is_viable: bool


class FareSummary(BaseModel):
    current_fare: float
    fare_at_target: float
    is_viable: bool
    target_reached: bool


class MarginalFare(BaseModel):
    additional_passengers: int
    new_passenger_count: int
    current_fare_per_passenger: float
    new_fare_per_passenger: float
    savings_per_passenger: float


class ViabilityAnalysis(BaseModel):
    proposal_id: int
    pledge_count: int
    average_willing_to_pay: float
    estimated_services_per_month: float
    fixed_cost: float
    break_even_passengers: int
    monthly_revenue_estimate: float
    monthly_cost_estimate: float
    monthly_surplus_or_deficit: float
    recommendation: ViabilityRecommendation
