"""
Bearer-token verification against the auth service.

Only one call is made: GET <auth_url>/auth/v1/user with the caller's
token. A 401/403 (or a response without a user id) means the token is not
valid; anything else that goes wrong is an auth service failure.

Usage:
    from playermap.lib.auth import TokenVerifier

    verifier = TokenVerifier("https://project.supabase.co", api_key="anon-key")
    principal = verifier.verify(request_token)
    print(principal.user_id)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import requests

from playermap.errors import AuthorizationError, AuthServiceError, ConfigurationError

logger = logging.getLogger(__name__)

USER_ENDPOINT = "/auth/v1/user"


@dataclass(frozen=True)
class Principal:
    """The verified caller behind a bearer token."""
    user_id: str
    email: Optional[str] = None
    role: Optional[str] = None


def strip_bearer(token: Optional[str]) -> Optional[str]:
    """Accept either a raw token or an 'Authorization: Bearer ...' value."""
    if not token:
        return None
    parts = token.split(None, 1)
    if parts and parts[0].lower() == "bearer":
        # "Bearer" with nothing after it carries no token
        if len(parts) == 1:
            return None
        return parts[1].strip() or None
    return token.strip() or None


class TokenVerifier:
    """Resolves bearer tokens to principals via the auth service."""

    def __init__(
        self,
        auth_url: Optional[str],
        api_key: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ):
        self.auth_url = auth_url.rstrip("/") if auth_url else None
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout

    def verify(self, token: Optional[str]) -> Principal:
        """
        Verify a bearer token.

        Args:
            token: Raw token or "Bearer <token>" header value

        Returns:
            Principal for the token's user

        Raises:
            AuthorizationError: token missing, invalid or expired
            AuthServiceError: auth service unreachable or misbehaving
            ConfigurationError: no auth service URL configured
        """
        token = strip_bearer(token)
        if not token:
            raise AuthorizationError("Missing bearer token")

        if not self.auth_url:
            raise ConfigurationError("Auth service URL is not configured")

        headers = {"Authorization": f"Bearer {token}"}
        if self.api_key:
            headers["apikey"] = self.api_key

        try:
            r = self.session.get(
                f"{self.auth_url}{USER_ENDPOINT}",
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise AuthServiceError(f"Auth service request failed: {e}") from e

        if r.status_code in (401, 403):
            raise AuthorizationError("Invalid or expired token")

        try:
            r.raise_for_status()
            data = r.json()
        except requests.HTTPError as e:
            raise AuthServiceError(f"Auth service error: {e}") from e
        except ValueError as e:
            raise AuthServiceError(f"Auth service returned invalid JSON: {e}") from e

        user_id = data.get("id") if isinstance(data, dict) else None
        if not user_id:
            raise AuthorizationError("Token did not resolve to a user")

        principal = Principal(
            user_id=str(user_id),
            email=data.get("email"),
            role=data.get("role"),
        )
        logger.debug(f"Verified caller {principal.user_id}")
        return principal
