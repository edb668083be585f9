from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

from common.errors import ProviderError
from .contracts import RouteProvider, RouteResult

if TYPE_CHECKING:
    from monitoring.models import Location

FIXTURES_ROOT = Path(__file__).parent.parent / "fixtures" / "demo"


class _FixtureLoader:
    def __init__(self, fixture_name: str):
        self.path = FIXTURES_ROOT / fixture_name / "data.json"
        with self.path.open("r", encoding="utf-8") as f:
            self.data = json.load(f)


class FakeRouteProvider(RouteProvider, _FixtureLoader):
    """
    Fixture-backed route provider for demo and test mode.

    Each fixture route carries a live-duration profile; successive queries
    for the same route from the same origin step through it (wrapping
    around), so a demo session sees traffic build up and clear.
    """

    def __init__(self) -> None:
        _FixtureLoader.__init__(self, "directions")
        self._cursor: Dict[Tuple[str, float, float], int] = {}

    async def query(
        self,
        origin: "Location",
        destination: "Location",
        timeout: Optional[float] = None,
    ) -> RouteResult:
        route = self._match(origin, destination)
        if route is None:
            raise ProviderError("No fixture route available")

        profile = route.get("live_seconds_profile") or [route["free_flow_seconds"]]
        # cursor per (route, origin)
        key = (route["name"], round(origin.latitude, 4), round(origin.longitude, 4))
        position = self._cursor.get(key, 0)
        self._cursor[key] = position + 1

        return RouteResult(
            free_flow_duration=float(route["free_flow_seconds"]),
            live_duration=float(profile[position % len(profile)]),
            distance=float(route["distance_meters"]),
        )

    def _match(self, origin: "Location", destination: "Location") -> Optional[Dict[str, Any]]:
        routes = self.data.get("routes", [])
        for route in routes:
            if (
                round(origin.latitude, 4) == round(route["origin_lat"], 4)
                and round(origin.longitude, 4) == round(route["origin_long"], 4)
                and round(destination.latitude, 4) == round(route["dest_lat"], 4)
                and round(destination.longitude, 4) == round(route["dest_long"], 4)
            ):
                return route
        if routes:
            return routes[0]
        return None
