from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Protocol

if TYPE_CHECKING:
    from monitoring.models import Location


@dataclass(frozen=True)
class RouteResult:
    """Live travel-time data for one origin → destination pair."""
    free_flow_duration: float  # seconds, typical duration without traffic
    live_duration: float  # seconds, traffic-aware duration as of now
    distance: float  # meters


class RouteProvider(Protocol):
    async def query(
        self,
        origin: "Location",
        destination: "Location",
        timeout: Optional[float] = None,
    ) -> RouteResult:
        ...
