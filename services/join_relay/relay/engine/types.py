"""Value types passed between candidate building, execution and dispatch."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping

METHOD_GET = "GET"
METHOD_POST = "POST"

FAILURE_TIMEOUT_OR_NETWORK = "timeout-or-network"


@dataclass(frozen=True)
class AttemptDescriptor:
    """One planned upstream call."""

    label: str
    method: str
    target: str
    payload: Mapping[str, Any] | None = None

    def __post_init__(self):
        if self.method not in {METHOD_GET, METHOD_POST}:
            raise ValueError(f"unsupported method: {self.method}")
        if self.payload is not None and not isinstance(self.payload, MappingProxyType):
            object.__setattr__(self, "payload", MappingProxyType(dict(self.payload)))


@dataclass(frozen=True)
class AttemptOutcome:
    succeeded: bool
    descriptor_label: str
    http_status: int | None = None
    body: Any = None
    failure_reason: str | None = None
    failure_detail: str = ""

    @property
    def reached_upstream(self) -> bool:
        return self.http_status is not None

    @classmethod
    def unreachable(cls, descriptor_label: str, *, detail: str = "") -> "AttemptOutcome":
        return cls(
            succeeded=False,
            descriptor_label=descriptor_label,
            failure_reason=FAILURE_TIMEOUT_OR_NETWORK,
            failure_detail=detail,
        )


@dataclass(frozen=True)
class FallbackResult:
    joined: bool
    status: int
    via: str | None = None
    data: Any = None
    error_message: str | None = None
    attempted: int = 0


__all__ = [
    "AttemptDescriptor",
    "AttemptOutcome",
    "FAILURE_TIMEOUT_OR_NETWORK",
    "FallbackResult",
    "METHOD_GET",
    "METHOD_POST",
]
