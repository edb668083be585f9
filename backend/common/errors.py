"""
Error taxonomy shared across the backend.

- ValidationError: malformed input rejected at the boundary
- ProviderError: routing/traffic upstream failed or returned no route
- RegistryError / SessionNotFoundError: operation on an unknown user
- ConfigurationError: unrecoverable startup misconfiguration
"""


class CommuteWatchError(Exception):
    """Base class for all service errors."""
    pass


class ValidationError(CommuteWatchError, ValueError):
    """Raised when a location, duration or threshold is malformed."""
    pass


class ProviderError(CommuteWatchError):
    """Raised when the route provider fails or returns no usable route."""
    pass


class RegistryError(CommuteWatchError):
    """Raised for invalid session registry operations."""
    pass


class SessionNotFoundError(RegistryError, LookupError):
    """Raised when no monitoring session exists for a user."""

    def __init__(self, user_id: str):
        super().__init__(f"No monitoring session for user {user_id}")
        self.user_id = user_id


class ConfigurationError(CommuteWatchError):
    """Raised when configuration is missing or invalid."""
    pass
