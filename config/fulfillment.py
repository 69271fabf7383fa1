"""
Fulfillment source constants and ranking weights.

Fixed per-source figures (ETA, distance, cost, base on-time probability)
used by the recommendation builders. The ranking weights and the rule
nudge come from settings so they can be tuned per environment.
"""

from dataclasses import dataclass, field
from typing import Optional

from config.settings import Settings, settings as app_settings


# =============================================================================
# SITES
# =============================================================================

SITE_QUARRY = "quarry"
SITE_NEAR_WELL = "near_well"

SITE_LABELS = {
    SITE_QUARRY: "Quarry warehouse",
    SITE_NEAR_WELL: "On-Site warehouse",
}

# Suggested stock band per site (tons): (min, max)
SITE_STOCK_BANDS = {
    SITE_QUARRY: (400.0, 1200.0),
    SITE_NEAR_WELL: (150.0, 500.0),
}

# Available below this fraction of the suggested min is Critical
CRITICAL_STOCK_FRACTION = 0.5


# =============================================================================
# SOURCE PROFILES
# =============================================================================

@dataclass(frozen=True)
class SourceProfile:
    """Fixed figures for one fulfillment source."""
    eta_minutes: Optional[int]
    distance_km: float
    estimated_cost: float
    on_time_probability: float


NEAR_WELL_PROFILE = SourceProfile(
    eta_minutes=45,
    distance_km=25,
    estimated_cost=180,
    on_time_probability=0.92,
)

QUARRY_PROFILE = SourceProfile(
    eta_minutes=210,
    distance_km=140,
    estimated_cost=320,
    on_time_probability=0.85,
)

REDIRECT_PROFILE = SourceProfile(
    eta_minutes=50,
    distance_km=15,
    estimated_cost=120,
    on_time_probability=0.78,
)

# ETA is computed from tonnage; cost and probability only matter for display
# since PRODUCE is always ranked last.
PRODUCE_PROFILE = SourceProfile(
    eta_minutes=None,
    distance_km=0,
    estimated_cost=250,
    on_time_probability=0.7,
)

# Breakdown replacement with an idle truck from the yard
REPLACEMENT_TRUCK_PROFILE = SourceProfile(
    eta_minutes=60,
    distance_km=30,
    estimated_cost=150,
    on_time_probability=0.88,
)


@dataclass(frozen=True)
class FulfillmentConstants:
    """Everything the recommendation builders need to score options."""
    near_well: SourceProfile = NEAR_WELL_PROFILE
    quarry: SourceProfile = QUARRY_PROFILE
    redirect: SourceProfile = REDIRECT_PROFILE
    produce: SourceProfile = PRODUCE_PROFILE
    replacement_truck: SourceProfile = REPLACEMENT_TRUCK_PROFILE
    production_rate_tph: float = 150.0
    probability_weight: float = 0.7
    cost_weight: float = 0.3
    rule_nudge: float = 0.05
    delivery_eta_hours: float = 2.0
    site_labels: dict = field(default_factory=lambda: dict(SITE_LABELS))

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "FulfillmentConstants":
        """Build constants, taking tunables from application settings."""
        s = settings or app_settings
        return cls(
            production_rate_tph=s.production_rate_tph,
            probability_weight=s.score_probability_weight,
            cost_weight=s.score_cost_weight,
            rule_nudge=s.rule_probability_nudge,
            delivery_eta_hours=s.delivery_eta_hours,
        )
