"""Fetcher settings and their environment-variable overrides."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping, Optional

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_REDIRECT_HOPS = 10
DEFAULT_USER_AGENT = "docfetch/0.1.0"

_TRUE_VALUES = ("1", "true", "yes", "on")


@dataclass
class FetcherSettings:
    """Process-level fetcher configuration.

    Attributes:
        timeout: Seconds before a fetch resolves as timed out.
        cross_site_proxy_template: Proxy URI with a ``{uri}`` placeholder,
            used to retry blocked cross-site requests and for mixed content.
        origin: Origin of the calling application. Cross-site retries and
            mixed-content proxying only apply when it is set.
        offline_mode: Dial ``http://localhost/<host>/...`` instead of
            ``http://<host>/...``.
        local_site_map: Nested dict of URI parts (host first) mapping to
            local prefixes.
        enable_rdfa: Run the RDFa pass over XHTML documents.
        max_redirect_hops: Redirect entries followed before a chain counts
            as a loop.
        user_agent: ``User-Agent`` header of the HTTP transport.
    """

    timeout: float = DEFAULT_TIMEOUT
    cross_site_proxy_template: Optional[str] = None
    origin: Optional[str] = None
    offline_mode: bool = False
    local_site_map: Dict[str, Any] = field(default_factory=dict)
    enable_rdfa: bool = True
    max_redirect_hops: int = DEFAULT_MAX_REDIRECT_HOPS
    user_agent: str = DEFAULT_USER_AGENT


@dataclass
class SettingsOverrides:
    """Optional settings overrides, e.g. from CLI flags."""

    timeout: Optional[float] = None
    cross_site_proxy_template: Optional[str] = None
    origin: Optional[str] = None
    offline_mode: Optional[bool] = None
    enable_rdfa: Optional[bool] = None
    max_redirect_hops: Optional[int] = None
    user_agent: Optional[str] = None


def _env_bool(value: str) -> bool:
    return value.strip().lower() in _TRUE_VALUES


def _env_number(name: str, value: str, cast, default):
    try:
        return cast(value)
    except ValueError:
        LOGGER.warning("Invalid %s=%r; falling back to %s.", name, value, default)
        return default


def _apply_overrides(settings: FetcherSettings, overrides: SettingsOverrides) -> None:
    """Apply the set fields of *overrides* to *settings*."""
    for item in fields(overrides):
        value = getattr(overrides, item.name)
        if value is not None:
            setattr(settings, item.name, value)


def load_settings(
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[SettingsOverrides] = None,
) -> FetcherSettings:
    """Build settings from ``DOCFETCH_*`` environment variables.

    The environment is read when called, so a ``.env`` loaded by a CLI entry
    point is honoured.
    """
    env = os.environ if environ is None else environ
    settings = FetcherSettings()

    if env.get("DOCFETCH_TIMEOUT"):
        settings.timeout = _env_number(
            "DOCFETCH_TIMEOUT", env["DOCFETCH_TIMEOUT"], float, DEFAULT_TIMEOUT
        )
    if env.get("DOCFETCH_MAX_REDIRECT_HOPS"):
        settings.max_redirect_hops = _env_number(
            "DOCFETCH_MAX_REDIRECT_HOPS",
            env["DOCFETCH_MAX_REDIRECT_HOPS"],
            int,
            DEFAULT_MAX_REDIRECT_HOPS,
        )
    settings.cross_site_proxy_template = env.get("DOCFETCH_PROXY_TEMPLATE") or None
    settings.origin = env.get("DOCFETCH_ORIGIN") or None
    if env.get("DOCFETCH_OFFLINE_MODE"):
        settings.offline_mode = _env_bool(env["DOCFETCH_OFFLINE_MODE"])
    if env.get("DOCFETCH_ENABLE_RDFA"):
        settings.enable_rdfa = _env_bool(env["DOCFETCH_ENABLE_RDFA"])
    if env.get("DOCFETCH_USER_AGENT"):
        settings.user_agent = env["DOCFETCH_USER_AGENT"]

    site_map = env.get("DOCFETCH_LOCAL_SITE_MAP")
    if site_map:
        try:
            parsed = json.loads(site_map)
        except json.JSONDecodeError as exc:
            LOGGER.warning("Ignoring DOCFETCH_LOCAL_SITE_MAP: %s", exc)
        else:
            if isinstance(parsed, dict):
                settings.local_site_map = parsed
            else:
                LOGGER.warning("Ignoring DOCFETCH_LOCAL_SITE_MAP: not a JSON object")

    if overrides:
        _apply_overrides(settings, overrides)
    return settings
