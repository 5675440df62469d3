"""
Distance Oracle
===============

Road distance and duration from the Google Directions API.

``GoogleDirectionsOracle.distance_and_duration`` raises
``DistanceOracleUnavailable`` on any failure (no API key, transport error,
non-OK status, empty route).  Ride completion catches it and falls back to
the great-circle estimate in ``greenride.domain.distance``.
"""

from __future__ import annotations

from typing import Optional

import httpx

from greenride.domain.distance import RouteEstimate
from greenride.domain.errors import DistanceOracleUnavailable


class GoogleDirectionsOracle:
    BASE_URL = "https://maps.googleapis.com/maps/api/directions/json"

    def __init__(
        self,
        api_key: str,
        timeout_seconds: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.timeout = timeout_seconds
        self.client = client

    async def distance_and_duration(
        self, lat1: float, lng1: float, lat2: float, lng2: float
    ) -> RouteEstimate:
        if not self.api_key:
            raise DistanceOracleUnavailable("Google Maps API key is not configured")

        params = {
            "origin": f"{lat1},{lng1}",
            "destination": f"{lat2},{lng2}",
            "key": self.api_key,
            "mode": "driving",
        }
        try:
            if self.client is not None:
                response = await self.client.get(
                    self.BASE_URL, params=params, timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(self.BASE_URL, params=params)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise DistanceOracleUnavailable(f"Directions request failed: {exc}") from exc

        if data.get("status") != "OK" or not data.get("routes"):
            raise DistanceOracleUnavailable(
                f"Directions API error: {data.get('error_message', data.get('status'))}"
            )

        try:
            leg = data["routes"][0]["legs"][0]
            return RouteEstimate(
                distance_km=leg["distance"]["value"] / 1000,
                duration_seconds=float(leg["duration"]["value"]),
                source="google_directions",
            )
        except (KeyError, IndexError, TypeError) as exc:
            raise DistanceOracleUnavailable("Malformed directions response") from exc
