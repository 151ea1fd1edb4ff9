"""Ordered upstream candidate list for one join request.

Explicit upstream URLs win over the single base. A base expands into the
common join paths. Every URL yields a POST attempt followed by a GET attempt.
"""

from __future__ import annotations

from urllib.parse import quote, urlsplit, urlunsplit

from .relay_config import RelayConfig
from .types import METHOD_GET, METHOD_POST, AttemptDescriptor

DEFAULT_JOIN_PATHS = ("/api/join", "/v1/join", "/join")

# Characters encodeURIComponent leaves untouched besides alphanumerics and "-_.~".
_COMPONENT_SAFE = "!*'()"


def encode_component(value: str) -> str:
    return quote(str(value), safe=_COMPONENT_SAFE)


def join_query(code: str, name: str) -> str:
    return f"code={encode_component(code)}&name={encode_component(name)}"


def candidate_urls(config: RelayConfig) -> list[str]:
    if config.upstream_urls:
        return list(config.upstream_urls)
    if not config.upstream_base:
        return []
    root = config.upstream_base.rstrip("/")
    return [f"{root}{path}" for path in DEFAULT_JOIN_PATHS]


def redact_label(label: str) -> str:
    """Drop the query string (and so the join fields) from a descriptor label."""
    method, _, url = (label or "").partition(" ")
    parts = urlsplit(url)
    return f"{method} {urlunsplit((parts.scheme, parts.netloc, parts.path, '', ''))}"


def _with_query(url: str, query: str) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{query}"


def build_candidates(config: RelayConfig, code: str, name: str) -> list[AttemptDescriptor]:
    query = join_query(code, name)
    descriptors: list[AttemptDescriptor] = []
    for url in candidate_urls(config):
        get_target = _with_query(url, query)
        descriptors.append(
            AttemptDescriptor(
                label=f"{METHOD_POST} {url}",
                method=METHOD_POST,
                target=url,
                payload={"code": code, "name": name},
            )
        )
        descriptors.append(
            AttemptDescriptor(
                label=f"{METHOD_GET} {get_target}",
                method=METHOD_GET,
                target=get_target,
            )
        )
    return descriptors


__all__ = [
    "DEFAULT_JOIN_PATHS",
    "build_candidates",
    "candidate_urls",
    "encode_component",
    "join_query",
    "redact_label",
]
