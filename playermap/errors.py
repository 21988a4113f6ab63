"""Exception types raised across the mapping subsystem."""


class MappingError(Exception):
    """Base exception for player mapping operations."""

    error_type = "internal"


class ConfigurationError(MappingError):
    """Configuration is missing or points at an unusable data store."""

    error_type = "configuration"


class SourceFetchError(MappingError):
    """A provider record set could not be fetched or parsed."""

    error_type = "source_unavailable"

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"{source}: {message}")


class PersistenceError(MappingError):
    """A write to the mapping store failed."""

    error_type = "persistence"


class AuthorizationError(MappingError):
    """The caller's bearer token is missing or invalid."""

    error_type = "unauthorized"


class AuthServiceError(MappingError):
    """The auth service could not be reached or answered unexpectedly."""

    error_type = "auth_service"


class EntryNotFoundError(MappingError):
    """No unmapped entry exists for the given player id."""

    error_type = "not_found"


class ValidationError(MappingError, ValueError):
    """A record or request payload failed validation."""

    error_type = "validation"
