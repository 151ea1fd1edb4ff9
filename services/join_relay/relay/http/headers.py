"""Centralized response header helpers for the join endpoint."""

from __future__ import annotations

from django.http import HttpResponse

CORS_ALLOW_METHODS = "POST,OPTIONS"
CORS_ALLOW_HEADERS = "Content-Type"


def apply_no_store(response: HttpResponse, *, private: bool = False, pragma: bool = True) -> HttpResponse:
    """Mark a response as non-cacheable for browser/shared cache safety."""
    response["Cache-Control"] = "private, no-store" if private else "no-store"
    if pragma:
        response["Pragma"] = "no-cache"
    return response


def apply_cors_headers(response: HttpResponse, *, origin: str) -> HttpResponse:
    """Allow browser callers from the configured origin to POST JSON."""
    response["Access-Control-Allow-Origin"] = origin or "*"
    response["Access-Control-Allow-Methods"] = CORS_ALLOW_METHODS
    response["Access-Control-Allow-Headers"] = CORS_ALLOW_HEADERS
    return response
