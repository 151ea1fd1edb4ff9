"""Process-wide relay configuration resolved from Django settings."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

DEFAULT_TIMEOUT_MS = 8000
DEFAULT_CORS_ORIGIN = "*"
DEFAULT_UPSTREAM_HEADERS = {"Content-Type": "application/json"}

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RelayConfig:
    upstream_urls: tuple[str, ...] = ()
    upstream_base: str = ""
    timeout_seconds: float = DEFAULT_TIMEOUT_MS / 1000.0
    upstream_headers: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType(dict(DEFAULT_UPSTREAM_HEADERS))
    )
    cors_origin: str = DEFAULT_CORS_ORIGIN


def parse_url_list(raw) -> tuple[str, ...]:
    if isinstance(raw, str):
        raw = raw.split(",")
    return tuple(value.strip() for value in (raw or []) if str(value or "").strip())


def parse_upstream_headers(raw) -> dict[str, str]:
    """Accept a dict or a JSON object string; anything else falls back to defaults."""
    if isinstance(raw, Mapping):
        parsed = raw
    else:
        text = str(raw or "").strip()
        if not text:
            return dict(DEFAULT_UPSTREAM_HEADERS)
        try:
            parsed = json.loads(text)
        except ValueError:
            logger.warning("join_relay_config_invalid setting=UPSTREAM_HEADERS error=bad_json")
            return dict(DEFAULT_UPSTREAM_HEADERS)
    if not isinstance(parsed, Mapping):
        logger.warning("join_relay_config_invalid setting=UPSTREAM_HEADERS error=not_an_object")
        return dict(DEFAULT_UPSTREAM_HEADERS)
    return {str(name): str(value) for name, value in parsed.items()}


def parse_timeout_seconds(raw) -> float:
    try:
        timeout_ms = int(raw)
    except (TypeError, ValueError):
        logger.warning("join_relay_config_invalid setting=TIMEOUT_MS value=%r", raw)
        timeout_ms = DEFAULT_TIMEOUT_MS
    if timeout_ms <= 0:
        timeout_ms = DEFAULT_TIMEOUT_MS
    return timeout_ms / 1000.0


def resolve_relay_config(settings) -> RelayConfig:
    return RelayConfig(
        upstream_urls=parse_url_list(getattr(settings, "JOIN_RELAY_UPSTREAM_URLS", ())),
        upstream_base=(getattr(settings, "JOIN_RELAY_UPSTREAM_BASE", "") or "").strip(),
        timeout_seconds=parse_timeout_seconds(getattr(settings, "JOIN_RELAY_TIMEOUT_MS", DEFAULT_TIMEOUT_MS)),
        upstream_headers=MappingProxyType(parse_upstream_headers(getattr(settings, "JOIN_RELAY_UPSTREAM_HEADERS", ""))),
        cors_origin=(getattr(settings, "JOIN_RELAY_CORS_ORIGIN", "") or DEFAULT_CORS_ORIGIN).strip(),
    )


__all__ = [
    "DEFAULT_CORS_ORIGIN",
    "DEFAULT_TIMEOUT_MS",
    "DEFAULT_UPSTREAM_HEADERS",
    "RelayConfig",
    "parse_timeout_seconds",
    "parse_upstream_headers",
    "parse_url_list",
    "resolve_relay_config",
]
