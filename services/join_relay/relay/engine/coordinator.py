"""Ordered fallback across upstream join candidates.

Candidates run one at a time in priority order; the first success wins and
nothing after it is attempted. Because attempts never overlap, the worst case
for one request is `timeout_seconds * len(descriptors)`, reached when every
candidate times out.
"""

from __future__ import annotations

import logging
from typing import Callable, Sequence

from .candidates import redact_label
from .types import AttemptDescriptor, AttemptOutcome, FallbackResult

NO_CANDIDATES_STATUS = 500
NO_CANDIDATES_MESSAGE = "No upstream candidates configured."
UNREACHABLE_STATUS = 502

logger = logging.getLogger(__name__)


def max_dispatch_seconds(descriptor_count: int, timeout_seconds: float) -> float:
    return max(int(descriptor_count), 0) * max(float(timeout_seconds), 0.0)


def failure_from_outcome(outcome: AttemptOutcome, *, attempted: int) -> FallbackResult:
    if outcome.reached_upstream:
        return FallbackResult(
            joined=False,
            status=int(outcome.http_status),
            data=outcome.body,
            error_message=f"Upstream error via {outcome.descriptor_label}",
            attempted=attempted,
        )
    return FallbackResult(
        joined=False,
        status=UNREACHABLE_STATUS,
        error_message=f"Fetch failed (timeout/network) via {outcome.descriptor_label}",
        attempted=attempted,
    )


def _run_attempt(execute_fn, descriptor: AttemptDescriptor, timeout_seconds: float) -> AttemptOutcome:
    try:
        return execute_fn(descriptor, timeout_seconds)
    except Exception as exc:
        logger.exception("join_attempt_crashed via=%s", redact_label(descriptor.label))
        return AttemptOutcome.unreachable(descriptor.label, detail=exc.__class__.__name__)


def dispatch(
    descriptors: Sequence[AttemptDescriptor],
    *,
    timeout_seconds: float,
    execute_fn: Callable[[AttemptDescriptor, float], AttemptOutcome],
    on_failure: Callable[[AttemptOutcome], None] | None = None,
) -> FallbackResult:
    if not descriptors:
        return FallbackResult(
            joined=False,
            status=NO_CANDIDATES_STATUS,
            error_message=NO_CANDIDATES_MESSAGE,
        )

    last_failure: AttemptOutcome | None = None
    attempted = 0
    for descriptor in descriptors:
        outcome = _run_attempt(execute_fn, descriptor, timeout_seconds)
        attempted += 1
        if outcome.succeeded:
            return FallbackResult(
                joined=True,
                status=int(outcome.http_status),
                via=outcome.descriptor_label,
                data=outcome.body,
                attempted=attempted,
            )
        last_failure = outcome
        if on_failure is not None:
            on_failure(outcome)

    return failure_from_outcome(last_failure, attempted=attempted)


__all__ = [
    "NO_CANDIDATES_MESSAGE",
    "NO_CANDIDATES_STATUS",
    "UNREACHABLE_STATUS",
    "dispatch",
    "failure_from_outcome",
    "max_dispatch_seconds",
]
