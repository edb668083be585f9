#!/usr/bin/env python3
"""
Generate demo fixtures for Commute Watch

Writes backend/fixtures/demo/directions/data.json, the route data served by
FakeRouteProvider in demo/test mode. Every route gets a live-duration
profile that steps through calm → building up → severe → clearing, so a demo
session produces both kinds of notification. All fixtures are deterministic.

Usage:
    python scripts/generate_fixtures.py
"""

import json
from pathlib import Path
from typing import Dict, List

FIXTURES_DIR = Path(__file__).parent.parent / "backend" / "fixtures" / "demo" / "directions"

# (name, origin lat/long, destination lat/long, free-flow seconds, meters)
COMMUTES = [
    ("westside_to_downtown_la", (34.0689, -118.4452), (34.0522, -118.2437), 1500, 21400),
]

# Steady commute with no notification-worthy changes
QUIET_COMMUTES = [
    ("capitol_hill_to_ballard", (47.6253, -122.3222), (47.6677, -122.3847), 1020, 9800),
]


def rush_hour_profile(free_flow_seconds: int) -> List[int]:
    """Calm, then a jump past 20%, a severe peak and a drop back to calm."""
    multipliers = [1.0333, 1.3, 1.4, 1.0667]
    return [round(free_flow_seconds * m) for m in multipliers]


def quiet_profile(free_flow_seconds: int) -> List[int]:
    """Small wobble that never crosses a notification threshold."""
    multipliers = [1.04, 1.06, 1.08, 1.07]
    return [round(free_flow_seconds * m) for m in multipliers]


def _route(name, origin, dest, free_flow, meters, profile) -> Dict:
    return {
        "name": name,
        "origin_lat": origin[0],
        "origin_long": origin[1],
        "dest_lat": dest[0],
        "dest_long": dest[1],
        "free_flow_seconds": free_flow,
        "distance_meters": meters,
        "live_seconds_profile": profile,
    }


def generate_directions_fixture():
    routes = [
        _route(name, origin, dest, free_flow, meters, rush_hour_profile(free_flow))
        for name, origin, dest, free_flow, meters in COMMUTES
    ]
    routes += [
        _route(name, origin, dest, free_flow, meters, quiet_profile(free_flow))
        for name, origin, dest, free_flow, meters in QUIET_COMMUTES
    ]

    FIXTURES_DIR.mkdir(parents=True, exist_ok=True)
    with open(FIXTURES_DIR / "data.json", "w") as f:
        json.dump({
            "version": "1.0",
            "description": "Deterministic commute fixtures for demo and test mode",
            "routes": routes,
        }, f, indent=2)
        f.write("\n")

    print(f"✓ Generated {len(routes)} directions fixtures in {FIXTURES_DIR}")


if __name__ == "__main__":
    generate_directions_fixture()
