"""
Emissions Accountant
====================

emitted = factor(category) x distance
saved   = baseline x distance x passengers  -  factor(category) x distance

The baseline is a solo sedan trip: every passenger is assumed to have
otherwise driven alone in one.  Zero passengers means nothing was saved.
A category dirtier than the baseline yields a negative ``saved`` value;
that is reported as-is, not clamped.
"""

from __future__ import annotations

from .enums import VehicleCategory

# kg CO2 per km
EMISSION_FACTORS: dict[VehicleCategory, float] = {
    VehicleCategory.CAR: 0.12,
    VehicleCategory.SEDAN: 0.21,
    VehicleCategory.HATCHBACK: 0.15,
    VehicleCategory.SUV: 0.27,
    VehicleCategory.EV: 0.05,
    VehicleCategory.BIKE: 0.0,
    VehicleCategory.SCOOTER: 0.03,
    VehicleCategory.OTHER: 0.21,
}

# TODO: confirm with product whether the solo alternative should follow the
# passenger's own vehicle rather than always a sedan.
SOLO_BASELINE_CATEGORY = VehicleCategory.SEDAN


class EmissionsAccountant:
    def __init__(self, factors: dict[VehicleCategory, float] | None = None):
        self.factors = dict(factors or EMISSION_FACTORS)

    def factor(self, category: VehicleCategory) -> float:
        return self.factors.get(category, self.factors[VehicleCategory.OTHER])

    def emitted_kg(self, category: VehicleCategory, distance_km: float) -> float:
        return self.factor(category) * distance_km

    def saved_kg(
        self,
        category: VehicleCategory,
        distance_km: float,
        passenger_count: int,
    ) -> float:
        if passenger_count <= 0:
            return 0.0
        baseline = self.factor(SOLO_BASELINE_CATEGORY) * distance_km * passenger_count
        return baseline - self.emitted_kg(category, distance_km)
