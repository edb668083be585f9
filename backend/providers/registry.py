from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from common.errors import ConfigurationError
from .contracts import RouteProvider
from .fake_providers import FakeRouteProvider
from .real_providers import GoogleDirectionsProvider

FAKE_MODES = {"demo", "test"}


@dataclass
class ProviderSet:
    routes: RouteProvider


def _build_prod(api_key: Optional[str] = None) -> ProviderSet:
    api_key = api_key or os.environ.get("GOOGLE_MAPS_API_KEY", "")
    if not api_key:
        raise ConfigurationError("GOOGLE_MAPS_API_KEY is required outside demo/test mode")
    return ProviderSet(routes=GoogleDirectionsProvider(api_key=api_key))


def _build_fake() -> ProviderSet:
    return ProviderSet(routes=FakeRouteProvider())


_provider_cache: Optional[ProviderSet] = None


def load_providers(mode: Optional[str] = None, api_key: Optional[str] = None) -> ProviderSet:
    global _provider_cache
    active_mode = (mode or os.environ.get("COMMUTE_MODE", "prod")).lower()
    if _provider_cache and mode is None:
        return _provider_cache
    if active_mode in FAKE_MODES:
        _provider_cache = _build_fake()
    else:
        _provider_cache = _build_prod(api_key)
    return _provider_cache


def get_providers() -> ProviderSet:
    return load_providers()


def reload_providers(mode: Optional[str] = None) -> ProviderSet:
    global _provider_cache
    _provider_cache = None
    return load_providers(mode)
