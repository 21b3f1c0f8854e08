"""Configuration resolution with explicit > environment > default precedence.

:func:`resolve_config` is the Credential Resolver: it takes an optional
:class:`~port_sdk.models.ClientConfig` and produces the immutable
:class:`~port_sdk.models.ResolvedConfig` a client runs with.

* **Credentials** -- explicit ``credentials`` > ``PORT_CLIENT_ID`` +
  ``PORT_CLIENT_SECRET`` > ``PORT_ACCESS_TOKEN``. Nothing found raises
  :class:`~port_sdk.exceptions.AuthError`.
* **Base URL** -- explicit ``base_url`` > explicit ``region`` >
  ``PORT_BASE_URL`` > ``PORT_REGION`` > the EU endpoint.
* **Timeout / retries** -- explicit > ``PORT_TIMEOUT`` (ms) /
  ``PORT_MAX_RETRIES`` > 30000 ms / 3.
* **Proxy** -- explicit ``proxy`` > ``HTTPS_PROXY`` / ``HTTP_PROXY`` > none,
  with ``NO_PROXY`` bypassing the proxy for matching hosts.

The environment is read exactly once, when :func:`resolve_config` runs. Pass
``environ`` to resolve against a mapping other than :data:`os.environ`.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from typing import Any, Optional, Union
from urllib.parse import unquote, urlsplit, urlunsplit

import pydantic

from port_sdk.exceptions import AuthError, ConfigError
from port_sdk.models import (
    ClientConfig,
    Credentials,
    OAuthCredentials,
    ProxyAuth,
    ProxyConfig,
    Region,
    ResolvedConfig,
    TokenCredentials,
)

logger = logging.getLogger(__name__)

REGION_BASE_URLS: dict[Region, str] = {
    Region.EU: "https://api.port.io",
    Region.US: "https://api.us.port.io",
}

DEFAULT_TIMEOUT_MS = 30000
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY_MS = 1000

ENV_CLIENT_ID = "PORT_CLIENT_ID"
ENV_CLIENT_SECRET = "PORT_CLIENT_SECRET"
ENV_ACCESS_TOKEN = "PORT_ACCESS_TOKEN"
ENV_BASE_URL = "PORT_BASE_URL"
ENV_REGION = "PORT_REGION"
ENV_TIMEOUT = "PORT_TIMEOUT"
ENV_MAX_RETRIES = "PORT_MAX_RETRIES"
ENV_LOG_LEVEL = "PORT_LOG_LEVEL"
ENV_VERBOSE = "PORT_VERBOSE"
ENV_HTTP_PROXY = "HTTP_PROXY"
ENV_HTTPS_PROXY = "HTTPS_PROXY"
ENV_NO_PROXY = "NO_PROXY"
ENV_PROXY_AUTH_USERNAME = "PROXY_AUTH_USERNAME"
ENV_PROXY_AUTH_PASSWORD = "PROXY_AUTH_PASSWORD"

_MISSING_CREDENTIALS_MESSAGE = (
    "No credentials provided. Provide them via:\n"
    "1. ClientConfig(credentials=OAuthCredentials(...)) or TokenCredentials(...)\n"
    f"2. Environment variables: {ENV_CLIENT_ID} + {ENV_CLIENT_SECRET} or {ENV_ACCESS_TOKEN}"
)


def _env(environ: Mapping[str, str], name: str) -> Optional[str]:
    """Return a non-empty env value, falling back to the lower-case spelling."""
    value = environ.get(name) or environ.get(name.lower())
    return value or None


def _coerce_config(config: Union[ClientConfig, Mapping[str, Any], None]) -> ClientConfig:
    """Accept a :class:`ClientConfig`, a plain mapping, or ``None``."""
    if config is None:
        return ClientConfig()
    if isinstance(config, ClientConfig):
        return config
    try:
        return ClientConfig.model_validate(dict(config))
    except pydantic.ValidationError as exc:
        if any(err["loc"] and err["loc"][0] == "credentials" for err in exc.errors()):
            raise AuthError(
                "Invalid credentials: provide either client_id + client_secret "
                "or access_token",
                details=exc.errors(include_url=False),
            ) from exc
        raise ConfigError(f"Invalid client configuration: {exc}") from exc


# --- Credentials ---


def load_credentials_from_env(environ: Mapping[str, str]) -> Optional[Credentials]:
    """Load credentials from ``PORT_*`` variables. OAuth wins over a token."""
    client_id = environ.get(ENV_CLIENT_ID)
    client_secret = environ.get(ENV_CLIENT_SECRET)
    if client_id and client_secret:
        return OAuthCredentials(client_id=client_id, client_secret=client_secret)

    access_token = environ.get(ENV_ACCESS_TOKEN)
    if access_token:
        return TokenCredentials(access_token=access_token)
    return None


def _check_credentials(credentials: Credentials) -> Credentials:
    if isinstance(credentials, OAuthCredentials):
        if not credentials.client_id.strip() or not credentials.client_secret.strip():
            raise AuthError("OAuth credentials require a non-empty client_id and client_secret")
    elif not credentials.access_token.strip():
        raise AuthError("Access token credentials require a non-empty access_token")
    return credentials


def resolve_credentials(config: ClientConfig, environ: Mapping[str, str]) -> Credentials:
    """Resolve credentials from explicit config, then the environment.

    Raises:
        AuthError: If no complete credential set can be found.
    """
    if config.credentials is not None:
        return _check_credentials(config.credentials)
    credentials = load_credentials_from_env(environ)
    if credentials is None:
        raise AuthError(_MISSING_CREDENTIALS_MESSAGE)
    return credentials


# --- Base URL / region ---


def region_for_base_url(base_url: str) -> Region:
    """Infer the region from a base URL (``us.port.io`` means US)."""
    return Region.US if "us.port.io" in base_url else Region.EU


def resolve_base_url(config: ClientConfig, environ: Mapping[str, str]) -> tuple[str, Region]:
    """Return ``(base_url, region)``; an explicit base URL always wins."""
    if config.base_url:
        base_url = config.base_url.rstrip("/")
        return base_url, region_for_base_url(base_url)
    if config.region is not None:
        return REGION_BASE_URLS[config.region], config.region

    env_base_url = environ.get(ENV_BASE_URL)
    if env_base_url:
        base_url = env_base_url.rstrip("/")
        return base_url, region_for_base_url(base_url)

    env_region = environ.get(ENV_REGION)
    if env_region:
        try:
            region = Region(env_region.strip().lower())
        except ValueError:
            logger.warning(
                "Ignoring unknown region in %s: %r", ENV_REGION, env_region,
            )
        else:
            return REGION_BASE_URLS[region], region

    return REGION_BASE_URLS[Region.EU], Region.EU


# --- Numeric settings ---


def _int_from_env(environ: Mapping[str, str], name: str) -> Optional[int]:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        value = int(raw.strip())
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc
    if value < 0:
        raise ConfigError(f"{name} must not be negative, got {value}")
    return value


def _first_set(*values: Optional[int], default: int) -> int:
    for value in values:
        if value is not None:
            return value
    return default


# --- Proxy ---


def should_bypass_proxy(target_url: str, no_proxy: Optional[str]) -> bool:
    """Return True if *target_url*'s host matches a ``NO_PROXY`` rule.

    Rules are comma separated and matched case-insensitively: ``*`` matches
    everything, ``host`` matches the host itself and its subdomains,
    ``.suffix`` matches any host ending in the suffix. A ``:port`` suffix on
    a rule is ignored.
    """
    if not no_proxy:
        return False
    hostname = (urlsplit(target_url).hostname or "").lower()
    if not hostname:
        return False

    for raw_rule in no_proxy.split(","):
        rule = raw_rule.strip().lower()
        if not rule:
            continue
        if rule == "*":
            return True
        if ":" in rule and not rule.startswith("["):
            rule = rule.rsplit(":", 1)[0]
        if hostname == rule.lstrip("."):
            return True
        if rule.startswith(".") and hostname.endswith(rule):
            return True
        if hostname.endswith(f".{rule}"):
            return True
    return False


def parse_proxy_url(proxy_url: str, environ: Mapping[str, str]) -> ProxyConfig:
    """Split credentials out of a proxy URL.

    Credentials embedded in the URL win over ``PROXY_AUTH_USERNAME`` /
    ``PROXY_AUTH_PASSWORD``.
    """
    parts = urlsplit(proxy_url)
    username = unquote(parts.username) if parts.username else environ.get(ENV_PROXY_AUTH_USERNAME)
    password = unquote(parts.password) if parts.password else environ.get(ENV_PROXY_AUTH_PASSWORD)

    clean_url = proxy_url
    if parts.username or parts.password:
        netloc = parts.hostname or ""
        if parts.port:
            netloc = f"{netloc}:{parts.port}"
        clean_url = urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))

    auth = ProxyAuth(username=username, password=password) if username and password else None
    return ProxyConfig(url=clean_url, auth=auth)


def load_proxy_from_env(target_url: str, environ: Mapping[str, str]) -> Optional[ProxyConfig]:
    """Pick the proxy variable that applies to *target_url*'s scheme."""
    if target_url.startswith("https://"):
        proxy_url = _env(environ, ENV_HTTPS_PROXY) or _env(environ, ENV_HTTP_PROXY)
    else:
        proxy_url = _env(environ, ENV_HTTP_PROXY)
    if not proxy_url:
        return None
    return parse_proxy_url(proxy_url, environ)


def resolve_proxy(
    config: ClientConfig, base_url: str, environ: Mapping[str, str]
) -> Optional[ProxyConfig]:
    """Explicit proxy > environment proxy > none; ``NO_PROXY`` always applies."""
    proxy = config.proxy or load_proxy_from_env(base_url, environ)
    if proxy is None:
        return None
    if should_bypass_proxy(base_url, _env(environ, ENV_NO_PROXY)):
        logger.debug("Bypassing proxy for %s (NO_PROXY)", base_url)
        return None
    return proxy


# --- Entry point ---


def resolve_config(
    config: Union[ClientConfig, Mapping[str, Any], None] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ResolvedConfig:
    """Resolve the effective configuration for one client instance.

    Args:
        config: Explicit configuration. A plain mapping is validated into a
            :class:`~port_sdk.models.ClientConfig`.
        environ: Environment to read from. Defaults to a snapshot of
            :data:`os.environ`.

    Returns:
        The immutable :class:`~port_sdk.models.ResolvedConfig`.

    Raises:
        AuthError: If no credentials can be resolved from any source.
        ConfigError: If a setting has an invalid value.
    """
    client_config = _coerce_config(config)
    env = dict(os.environ if environ is None else environ)

    credentials = resolve_credentials(client_config, env)
    base_url, region = resolve_base_url(client_config, env)
    proxy = resolve_proxy(client_config, base_url, env)

    timeout_ms = _first_set(
        client_config.timeout_ms, _int_from_env(env, ENV_TIMEOUT), default=DEFAULT_TIMEOUT_MS,
    )
    max_retries = _first_set(
        client_config.max_retries,
        _int_from_env(env, ENV_MAX_RETRIES),
        default=DEFAULT_MAX_RETRIES,
    )
    retry_delay_ms = _first_set(client_config.retry_delay_ms, default=DEFAULT_RETRY_DELAY_MS)

    verbose = client_config.verbose
    if verbose is None:
        verbose = env.get(ENV_VERBOSE, "").lower() in ("1", "true")

    return ResolvedConfig(
        credentials=credentials,
        base_url=base_url,
        region=region,
        timeout_ms=timeout_ms,
        max_retries=max_retries,
        retry_delay_ms=retry_delay_ms,
        proxy=proxy,
        log_level=client_config.log_level or env.get(ENV_LOG_LEVEL) or None,
        verbose=verbose,
    )


# --- Diagnostics ---


def validate_environment(
    environ: Optional[Mapping[str, str]] = None,
) -> tuple[bool, list[str]]:
    """Check that the environment carries a usable credential set.

    Returns:
        ``(valid, errors)`` where *errors* holds human-readable messages.
    """
    env = os.environ if environ is None else environ
    errors: list[str] = []

    has_oauth = bool(env.get(ENV_CLIENT_ID) and env.get(ENV_CLIENT_SECRET))
    has_token = bool(env.get(ENV_ACCESS_TOKEN))
    if not has_oauth and not has_token:
        errors.append(
            "Missing credentials in environment. Set either:\n"
            f"  - {ENV_CLIENT_ID} and {ENV_CLIENT_SECRET}, or\n"
            f"  - {ENV_ACCESS_TOKEN}"
        )

    for name in (ENV_TIMEOUT, ENV_MAX_RETRIES):
        try:
            _int_from_env(env, name)
        except ConfigError as exc:
            errors.append(exc.message)

    return not errors, errors


def get_current_config(environ: Optional[Mapping[str, str]] = None) -> dict[str, Any]:
    """Summarise the environment-derived configuration without secrets."""
    env = os.environ if environ is None else environ

    if env.get(ENV_CLIENT_ID) and env.get(ENV_CLIENT_SECRET):
        credential_type = "oauth"
    elif env.get(ENV_ACCESS_TOKEN):
        credential_type = "token"
    else:
        credential_type = "none"

    base_url, region = resolve_base_url(ClientConfig(), env)
    proxy = resolve_proxy(ClientConfig(), base_url, env)
    return {
        "has_credentials": credential_type != "none",
        "credential_type": credential_type,
        "base_url": base_url,
        "region": region.value,
        "proxy": proxy.url if proxy else None,
    }
