"""
Ride Matcher
============

Answers passenger searches: upcoming rides with a free seat, departing
within ``window_hours`` of now, whose origin and destination both lie within
``radius_km`` of the searcher's.  See ``greenride.domain.matching`` for the
spatial pre-filter and the ranking.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from greenride.config import settings
from greenride.domain.clock import utcnow
from greenride.domain.entities import Location, RideMatch
from greenride.domain.matching import rank_rides, search_cells
from greenride.infrastructure.repositories import RideRepository

logger = logging.getLogger(__name__)


class RideMatcher:
    def __init__(self, session: AsyncSession, config=settings):
        self.rides = RideRepository(session)
        self.config = config

    async def search(
        self,
        origin: Location,
        destination: Location,
        radius_km: Optional[float] = None,
        window_hours: Optional[float] = None,
        now: Optional[datetime] = None,
    ) -> list[RideMatch]:
        radius = self.config.search_radius_km if radius_km is None else radius_km
        window = timedelta(
            hours=self.config.search_window_hours
            if window_hours is None
            else window_hours
        )
        now = now or utcnow()

        cells = search_cells(
            origin.latitude,
            origin.longitude,
            radius,
            resolution=self.config.h3_resolution,
            max_ring=self.config.h3_max_ring,
        )
        candidates = await self.rides.search_candidates(
            window_start=now - window,
            window_end=now + window,
            origin_cells=cells,
        )
        matches = rank_rides(candidates, origin, destination, radius)
        logger.debug(
            "Search: %d candidates, %d matches (radius=%.1f km)",
            len(candidates), len(matches), radius,
        )
        return matches
