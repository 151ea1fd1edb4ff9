"""Caller-facing JSON shape for a fallback result."""

from __future__ import annotations

from .coordinator import UNREACHABLE_STATUS
from .types import FallbackResult


def to_response_payload(result: FallbackResult) -> dict:
    if result.joined:
        return {
            "joined": True,
            "upstreamStatus": result.status,
            "via": result.via or "",
            "data": result.data,
        }
    return {
        "joined": False,
        "error": result.error_message or "Join failed.",
        "upstreamData": result.data,
    }


def response_status(result: FallbackResult) -> int:
    if result.joined:
        return 200
    try:
        status = int(result.status)
    except (TypeError, ValueError):
        return UNREACHABLE_STATUS
    # Failure responses always carry a 4xx/5xx status.
    if 400 <= status <= 599:
        return status
    return UNREACHABLE_STATUS


__all__ = ["response_status", "to_response_payload"]
