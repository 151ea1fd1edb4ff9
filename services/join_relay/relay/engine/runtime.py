"""Request ids, JSON responses and event lines for the join relay."""

from __future__ import annotations

import json
import logging
import re
import uuid

from django.http import JsonResponse

REQUEST_ID_MAX_LENGTH = 64
_REQUEST_ID_UNSAFE = re.compile(r"[^A-Za-z0-9._:-]")

_EVENT_LEVELS = {
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def request_id(request) -> str:
    """Echo the caller's X-Request-ID when it survives sanitizing, otherwise mint one."""
    supplied = _REQUEST_ID_UNSAFE.sub("", request.headers.get("X-Request-ID", ""))
    return supplied[:REQUEST_ID_MAX_LENGTH] or uuid.uuid4().hex


def json_response(payload: dict, *, request_id_value: str, status: int = 200) -> JsonResponse:
    response = JsonResponse(payload, status=status)
    response["X-Request-ID"] = request_id_value
    return response


def event_line(event: str, *, request_id_value: str, **fields) -> str:
    # Unset fields are left out.
    row = {"event": event, "request_id": request_id_value, "service": "join_relay"}
    row.update({key: value for key, value in fields.items() if value is not None and value != ""})
    return json.dumps(row, sort_keys=True, default=str)


def log_relay_event(level: str, event: str, *, request_id_value: str, logger, **fields):
    logger.log(_EVENT_LEVELS.get(level, logging.INFO), event_line(event, request_id_value=request_id_value, **fields))


__all__ = ["REQUEST_ID_MAX_LENGTH", "event_line", "json_response", "log_relay_event", "request_id"]
