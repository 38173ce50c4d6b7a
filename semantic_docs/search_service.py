"""Search request pipeline: validation, provider delegation and result normalization."""
from __future__ import annotations

import asyncio
import json
import logging
import math
import time
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from .config import Settings
from .logging_utils import (
    clear_request_context,
    log_failure,
    log_rejected,
    log_stage,
    new_request_id,
    set_request_context,
)
from .models import ErrorResponse, SearchResponse, SearchResult
from .normalize import normalize_result
from .providers import SearchClient


logger = logging.getLogger("uvicorn.error")

HandlerResult = Tuple[int, Dict[str, Any]]


def _error(status: int, error: str, message: Optional[str] = None) -> HandlerResult:
    return status, ErrorResponse(error=error, message=message).body()


def validate_query(query: Any, max_length: int) -> Optional[HandlerResult]:
    """Return an error result for an unusable query, or None when it may be searched.

    The empty string passes: it is a string and within the length bound, so
    it is forwarded to the provider unchanged.
    """
    if not isinstance(query, str):
        return _error(400, "Query parameter is required")
    if len(query) > max_length:
        return _error(400, "Query too long", f"Query must be less than {max_length} characters")
    return None


def clamp_limit(limit: Any, default: int = 10, maximum: int = 20) -> int:
    """Clamp ``limit`` into [1, maximum]; absent or non-numeric values use ``default``."""
    if limit is None or isinstance(limit, bool):
        return default
    if isinstance(limit, float) and math.isinf(limit):
        return maximum if limit > 0 else 1
    try:
        value = int(limit)
    except (TypeError, ValueError, OverflowError):
        return default
    return min(max(1, value), maximum)


def _encodable(text: str) -> bool:
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def _decode(raw_body: Union[bytes, str, Mapping[str, Any], None]) -> Any:
    if isinstance(raw_body, Mapping):
        return raw_body
    if raw_body is None:
        raise ValueError("empty request body")
    return json.loads(raw_body)


async def handle_search(
    raw_body: Union[bytes, str, Mapping[str, Any], None],
    settings: Settings,
    client: Optional[SearchClient],
    method: str = "POST",
) -> HandlerResult:
    """Run one search request and return ``(status, body)``. Never raises."""
    if method.upper() != "POST":
        return _error(405, "Method not allowed", "Use POST method for search")

    try:
        body = _decode(raw_body)
    except (ValueError, RecursionError):
        log_rejected("undecodable body")
        return _error(400, "Invalid request")

    query = body.get("query") if isinstance(body, Mapping) else None
    if isinstance(query, str) and not _encodable(query):
        log_rejected("query is not valid unicode")
        return _error(400, "Invalid request")
    rejected = validate_query(query, settings.max_query_length)
    if rejected is not None:
        log_rejected(rejected[1]["error"])
        return rejected

    limit = clamp_limit(body.get("limit"), settings.default_limit, settings.max_limit)

    set_request_context(new_request_id(), query, limit)
    try:
        return await _search(query, limit, settings, client)
    finally:
        clear_request_context()


async def _search(query: str, limit: int, settings: Settings, client: Optional[SearchClient]) -> HandlerResult:
    key, identifier = settings.provider_identifier()
    if not identifier:
        message = f"{key} environment variable is not set. Set it to the search index to query and redeploy."
        log_failure("config", message, backend=settings.search_backend, missing=key)
        return _error(500, "AI Search not configured", message)
    missing = settings.missing_credential()
    if missing:
        message = f"{missing} environment variable is not set. The {settings.search_backend} backend needs it; set it and redeploy."
        log_failure("config", message, backend=settings.search_backend, missing=missing)
        return _error(500, "AI Search not configured", message)
    if client is None:
        message = f"Search client for backend '{settings.search_backend}' is not initialized."
        log_failure("config", message, backend=settings.search_backend)
        return _error(500, "AI Search not configured", message)

    start = time.perf_counter()
    try:
        index = client.index(settings.index_name())
        response = await asyncio.wait_for(
            index.search(query, limit, rerank=True),
            timeout=settings.search_timeout_seconds,
        )
    except Exception as exc:
        timed_out = isinstance(exc, asyncio.TimeoutError)
        message = str(exc)
        if not message:
            message = f"Search timed out after {settings.search_timeout_seconds:g}s" if timed_out else "Unknown error"
        log_failure(
            "timeout" if timed_out else "provider",
            message,
            backend=settings.search_backend,
            exception=type(exc).__name__,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return _error(500, "Search failed", message)
    duration_ms = (time.perf_counter() - start) * 1000

    raw_results = response.get("results") if isinstance(response, Mapping) else None
    if not isinstance(raw_results, list):
        message = "Search provider returned no results collection; check if the index exists and has data."
        log_failure("invalid_response", message, backend=settings.search_backend, duration_ms=round(duration_ms, 2))
        return _error(500, "Invalid search response", message)

    results = [SearchResult(**normalize_result(item)) for item in raw_results]
    log_stage("search", [r.model_dump() for r in results], duration_ms=duration_ms)

    payload = SearchResponse(results=results, count=len(results), query=query)
    return 200, payload.model_dump()


__all__ = [
    "handle_search",
    "validate_query",
    "clamp_limit",
]
