from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any, Dict, Optional

import httpx

from common.errors import ProviderError
from .contracts import RouteProvider, RouteResult

if TYPE_CHECKING:
    from monitoring.models import Location

GOOGLE_DIRECTIONS_URL = "https://maps.googleapis.com/maps/api/directions/json"
DEFAULT_TIMEOUT_SECONDS = 10.0


class GoogleDirectionsProvider(RouteProvider):
    """Traffic-aware travel times from the Google Directions API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        base_url: str = GOOGLE_DIRECTIONS_URL,
    ) -> None:
        self.api_key = api_key if api_key is not None else os.environ.get("GOOGLE_MAPS_API_KEY", "")
        self.base_url = base_url
        self._client = client

    async def query(
        self,
        origin: "Location",
        destination: "Location",
        timeout: Optional[float] = None,
    ) -> RouteResult:
        params = {
            "origin": origin.as_query(),
            "destination": destination.as_query(),
            # "now" makes the API return duration_in_traffic
            "departure_time": "now",
            "key": self.api_key,
        }
        timeout = timeout if timeout is not None else DEFAULT_TIMEOUT_SECONDS
        try:
            if self._client is not None:
                response = await self._client.get(self.base_url, params=params, timeout=timeout)
            else:
                async with httpx.AsyncClient(timeout=timeout) as client:
                    response = await client.get(self.base_url, params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise ProviderError(f"Failed to fetch traffic data: {e}") from e
        except ValueError as e:
            raise ProviderError(f"Directions API returned invalid JSON: {e}") from e

        return self._parse(data)

    @staticmethod
    def _parse(data: Dict[str, Any]) -> RouteResult:
        status = data.get("status")
        routes = data.get("routes") or []
        if status != "OK" or not routes:
            detail = data.get("error_message") or status or "Unknown error"
            raise ProviderError(f"Directions API error: {detail}")

        legs = routes[0].get("legs") or []
        if not legs:
            raise ProviderError("Directions API returned a route without legs")

        leg = legs[0]
        try:
            free_flow = float(leg["duration"]["value"])
            live = float(leg.get("duration_in_traffic", leg["duration"])["value"])
            distance = float(leg["distance"]["value"])
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderError(f"Directions API returned a malformed leg: {e}") from e

        return RouteResult(free_flow_duration=free_flow, live_duration=live, distance=distance)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
