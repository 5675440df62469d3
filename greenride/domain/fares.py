"""
Fare Allocator
==============

Formula
-------
share_i = (sub_distance_i / total_distance) x total_fare     (0 when total = 0)

* At **join** time a provisional share is computed against the ride's own
  great-circle length.
* At **completion** the ride's fare is split across the full accepted set,
  using the sum of their sub-distances as ``total_distance`` so the shares
  add back up to the fare.  Shares are rounded to cents; the rounding
  remainder lands on the last share.

Complexity: O(n) for n passengers.
"""

from __future__ import annotations

from .enums import VehicleCategory

# km per litre
FUEL_EFFICIENCY_KMPL: dict[VehicleCategory, float] = {
    VehicleCategory.CAR: 12.0,
    VehicleCategory.SEDAN: 12.0,
    VehicleCategory.HATCHBACK: 15.0,
    VehicleCategory.SUV: 9.0,
    VehicleCategory.BIKE: 40.0,
    VehicleCategory.SCOOTER: 35.0,
}
DEFAULT_EFFICIENCY_KMPL = 12.0


def estimate_fuel_cost(
    distance_km: float,
    category: VehicleCategory,
    price_per_litre: float = 100.0,
) -> float:
    """Estimated total trip cost from fuel burned at the category's efficiency."""
    efficiency = FUEL_EFFICIENCY_KMPL.get(category, DEFAULT_EFFICIENCY_KMPL)
    litres = distance_km / efficiency
    return round(litres * price_per_litre, 2)


class FareAllocator:
    """Splits a trip's estimated fare across occupants by sub-distance."""

    @staticmethod
    def share(
        sub_distance_km: float, total_distance_km: float, total_fare: float
    ) -> float:
        if total_distance_km <= 0:
            return 0.0
        return (sub_distance_km / total_distance_km) * total_fare

    def allocate(
        self, sub_distances_km: list[float], total_fare: float
    ) -> list[float]:
        """Return one share per sub-distance, summing to ``total_fare``."""
        if not sub_distances_km:
            return []
        total = sum(sub_distances_km)
        if total <= 0:
            return [0.0] * len(sub_distances_km)

        shares = [
            round(self.share(d, total, total_fare), 2) for d in sub_distances_km
        ]
        shares[-1] = round(total_fare - sum(shares[:-1]), 2)
        return shares
