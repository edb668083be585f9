from .contracts import RouteProvider, RouteResult
from .registry import get_providers, reload_providers, load_providers, ProviderSet

__all__ = [
    "RouteProvider",
    "RouteResult",
    "get_providers",
    "reload_providers",
    "load_providers",
    "ProviderSet",
]
