"""Join relay endpoints."""

import json
import logging
from functools import lru_cache

from django.conf import settings
from django.http import HttpResponse, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET

from .engine import candidates as engine_candidates
from .engine import coordinator as engine_coordinator
from .engine import executor as engine_executor
from .engine import runtime as engine_runtime
from .engine import translator as engine_translator
from .engine.relay_config import RelayConfig, resolve_relay_config
from .engine.types import AttemptDescriptor, AttemptOutcome
from .http.headers import apply_cors_headers, apply_no_store

logger = logging.getLogger(__name__)

METHOD_NOT_ALLOWED_MESSAGE = "Use POST /api/join with JSON { code, name }"
MISSING_FIELDS_MESSAGE = "Missing code or name"


@lru_cache(maxsize=1)
def relay_config() -> RelayConfig:
    """Resolve relay settings once per process."""
    return resolve_relay_config(settings)


def _log_join_event(level: str, event: str, *, request_id: str, **fields):
    engine_runtime.log_relay_event(
        level,
        event,
        request_id_value=request_id,
        logger=logger,
        **fields,
    )


def _finalize(response: HttpResponse, *, request_id: str, config: RelayConfig) -> HttpResponse:
    apply_cors_headers(response, origin=config.cors_origin)
    apply_no_store(response)
    response["X-Request-ID"] = request_id
    return response


def _json_response(payload: dict, *, request_id: str, config: RelayConfig, status: int = 200) -> JsonResponse:
    response = engine_runtime.json_response(payload, request_id_value=request_id, status=status)
    _finalize(response, request_id=request_id, config=config)
    return response


def _execute_attempt(descriptor: AttemptDescriptor, timeout_seconds: float) -> AttemptOutcome:
    return engine_executor.execute(
        descriptor,
        timeout_seconds,
        headers=relay_config().upstream_headers,
    )


def _parse_join_fields(request_body: bytes) -> tuple[dict, str]:
    raw = (request_body or b"").decode("utf-8", errors="replace").strip()
    if not raw:
        return {}, "missing_fields"
    try:
        payload = json.loads(raw)
    except ValueError:
        return {}, "bad_json"
    if not isinstance(payload, dict):
        return {}, "bad_json"

    code = payload.get("code")
    name = payload.get("name")
    if not isinstance(code, str) or not code or not isinstance(name, str) or not name:
        return {}, "missing_fields"
    # Relayed exactly as received.
    return {"code": code, "name": name}, ""


@require_GET
def healthz(request):
    config = relay_config()
    return JsonResponse({"ok": True, "candidate_urls": len(engine_candidates.candidate_urls(config))})


@csrf_exempt
def join(request):
    """POST /api/join"""
    config = relay_config()
    request_id = engine_runtime.request_id(request)
    method = (request.method or "").upper()

    if method == "OPTIONS":
        return _finalize(HttpResponse(status=204), request_id=request_id, config=config)
    if method != "POST":
        response = _json_response(
            {"error": METHOD_NOT_ALLOWED_MESSAGE},
            request_id=request_id,
            config=config,
            status=405,
        )
        response["Allow"] = "POST, OPTIONS"
        return response

    fields, parse_error = _parse_join_fields(request.body)
    if parse_error == "bad_json":
        _log_join_event("warning", "join_bad_json", request_id=request_id)
        return _json_response({"error": "bad_json"}, request_id=request_id, config=config, status=400)
    if parse_error:
        _log_join_event("warning", "join_missing_fields", request_id=request_id)
        return _json_response({"error": MISSING_FIELDS_MESSAGE}, request_id=request_id, config=config, status=400)

    descriptors = engine_candidates.build_candidates(config, fields["code"], fields["name"])
    if descriptors:
        _log_join_event(
            "info",
            "join_dispatch_started",
            request_id=request_id,
            candidates=len(descriptors),
            timeout_seconds=config.timeout_seconds,
            max_seconds=engine_coordinator.max_dispatch_seconds(len(descriptors), config.timeout_seconds),
        )
    else:
        _log_join_event("error", "join_no_candidates", request_id=request_id)

    def _on_failure(outcome: AttemptOutcome) -> None:
        _log_join_event(
            "warning",
            "join_attempt_failed",
            request_id=request_id,
            via=engine_candidates.redact_label(outcome.descriptor_label),
            status=outcome.http_status,
            reason=outcome.failure_reason or "upstream_rejected",
            detail=outcome.failure_detail,
        )

    result = engine_coordinator.dispatch(
        descriptors,
        timeout_seconds=config.timeout_seconds,
        execute_fn=_execute_attempt,
        on_failure=_on_failure,
    )
    if result.joined:
        _log_join_event(
            "info",
            "join_relayed",
            request_id=request_id,
            via=engine_candidates.redact_label(result.via),
            status=result.status,
            attempted=result.attempted,
        )
    elif descriptors:
        _log_join_event(
            "warning",
            "join_exhausted",
            request_id=request_id,
            status=result.status,
            attempted=result.attempted,
        )

    return _json_response(
        engine_translator.to_response_payload(result),
        request_id=request_id,
        config=config,
        status=engine_translator.response_status(result),
    )


__all__ = [
    "healthz",
    "join",
    "relay_config",
]
