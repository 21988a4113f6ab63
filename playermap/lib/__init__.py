"""
Shared service-level helpers.

Modules:
    auth: Bearer-token verification against the auth service
    health: Dependency health checks (store, run log, providers)
    mapping_api: MappingService, the external operations facade
        (import it directly: playermap.lib.mapping_api)
"""

from playermap.lib.auth import Principal, TokenVerifier, strip_bearer

__all__ = [
    "Principal",
    "TokenVerifier",
    "strip_bearer",
]
