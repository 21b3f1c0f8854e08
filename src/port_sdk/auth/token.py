"""Client-credentials token exchange: request body and response parsing.

Both :class:`~port_sdk.auth.manager.TokenManager` and
:class:`~port_sdk.auth.manager.SyncTokenManager` POST the same body to
:data:`TOKEN_PATH` and turn the answer into a
:class:`~port_sdk.models.Token` through :func:`parse_token_response`, so
the async and blocking paths fail in exactly the same way.
"""

from __future__ import annotations

from typing import Any

import httpx

from port_sdk.exceptions import AuthError
from port_sdk.models import OAuthCredentials, Token

TOKEN_PATH = "/v1/auth/access_token"
"""Token endpoint, relative to the resolved base URL."""

DEFAULT_SAFETY_MARGIN_MS = 60_000
"""Tokens this close to expiry are treated as expired."""

DEFAULT_EXPIRES_IN_S = 3600
"""Lifetime assumed when the token response omits ``expiresIn``."""

TOKEN_REQUEST_HEADERS = {
    "Accept": "application/json",
    "Content-Type": "application/json",
}


def build_exchange_body(credentials: OAuthCredentials) -> dict[str, Any]:
    """Return ``{"clientId": ..., "clientSecret": ...}``."""
    return credentials.model_dump(by_alias=True)


def _error_message(response: httpx.Response) -> tuple[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase or "Failed to authenticate", response.text or None
    if isinstance(body, dict):
        message = body.get("message") or body.get("error") or "Failed to authenticate"
        return str(message), body
    return "Failed to authenticate", body


def parse_token_response(response: httpx.Response, now_ms: float) -> Token:
    """Validate a token endpoint response and build the :class:`Token`.

    Args:
        response: The token endpoint response.
        now_ms: Current epoch time in milliseconds.

    Raises:
        AuthError: On a non-2xx status or a malformed body (not JSON, no
            ``accessToken``, or a non-positive ``expiresIn``).
    """
    status = response.status_code
    if not response.is_success:
        message, details = _error_message(response)
        raise AuthError(message, status_code=status, details=details)

    try:
        data = response.json()
    except ValueError as exc:
        raise AuthError(
            "Token response is not valid JSON", status_code=status, details=response.text,
        ) from exc
    if not isinstance(data, dict):
        raise AuthError("Token response is not a JSON object", status_code=status, details=data)

    access_token = data.get("accessToken")
    if not isinstance(access_token, str) or not access_token:
        raise AuthError("Token response missing 'accessToken' field", status_code=status)

    raw_expires_in = data.get("expiresIn", DEFAULT_EXPIRES_IN_S)
    try:
        expires_in = float(raw_expires_in)
    except (TypeError, ValueError) as exc:
        raise AuthError(
            f"Token response has invalid 'expiresIn': {raw_expires_in!r}", status_code=status,
        ) from exc
    if expires_in <= 0:
        raise AuthError(
            f"Token response has non-positive 'expiresIn': {raw_expires_in!r}",
            status_code=status,
        )

    return Token(value=access_token, expires_at_ms=int(now_ms + expires_in * 1000))
