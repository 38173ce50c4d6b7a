"""Logging helpers and request context for structured search instrumentation."""
from __future__ import annotations

import contextvars
import datetime as _dt
import json
import logging
import re
import uuid
from typing import Any, Dict, Iterable, List, Optional, Tuple

_logger = logging.getLogger("uvicorn.error")

_request_context: contextvars.ContextVar[Dict[str, Any]] = contextvars.ContextVar("request_context", default={})

_EMAIL_RE = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
_PHONE_RE = re.compile(r"\b(?:\+?\d{1,3}[ -]?)?(?:\(\d{3}\)|\d{3})[ -]?\d{3}[ -]?\d{4}\b")


def new_request_id() -> str:
    return str(uuid.uuid4())


def set_request_context(request_id: str, query: str, limit: Optional[int]) -> None:
    _request_context.set({"request_id": request_id, "query": query, "limit": limit})


def clear_request_context() -> None:
    _request_context.set({})


def get_request_context() -> Dict[str, Any]:
    return _request_context.get() or {}


def redact_query(query: str) -> Tuple[str, bool]:
    if not query:
        return "", False
    if _EMAIL_RE.search(query) or _PHONE_RE.search(query):
        truncated = (query[:50] + "…") if len(query) > 50 else query
        return f"[REDACTED] {truncated}", True
    if len(query) > 200:
        return query[:200] + "…", False
    return query, False


def _top_scores(results: Iterable[Dict[str, Any]], max_items: int = 10) -> List[Optional[float]]:
    scores: List[Optional[float]] = []
    for result in results:
        if len(scores) >= max_items:
            break
        val = result.get("score")
        scores.append(float(val) if isinstance(val, (int, float)) else None)
    return scores


def _base_entry(stage: str) -> Dict[str, Any]:
    ctx = get_request_context()
    display_query, redacted = redact_query(ctx.get("query", ""))
    entry: Dict[str, Any] = {
        "timestamp": _dt.datetime.now(_dt.timezone.utc).isoformat(timespec="milliseconds"),
        "request_id": ctx.get("request_id") or new_request_id(),
        "stage": stage,
        "query": display_query,
        "limit": ctx.get("limit"),
    }
    if redacted:
        entry["redacted"] = True
    return entry


def log_stage(
    stage: str,
    results: Iterable[Dict[str, Any]],
    *,
    duration_ms: float | None = None,
    note: str | None = None,
) -> None:
    results_list = list(results)
    entry = _base_entry(stage)
    entry["count"] = len(results_list)
    entry["top_scores"] = _top_scores(results_list)
    entry["duration_ms"] = round(duration_ms, 2) if duration_ms is not None else None
    if note:
        entry["note"] = note
    _logger.info("%s", json.dumps(entry, default=str))


def log_failure(category: str, message: str, **fields: Any) -> None:
    """Log a handler failure as one JSON line at ERROR level.

    ``category`` separates deployment mistakes (``config``) from provider
    trouble (``provider``, ``timeout``, ``invalid_response``) so operators
    can tell them apart without reading stack traces.
    """
    entry = _base_entry("error")
    entry["category"] = category
    entry["error"] = message
    entry.update(fields)
    _logger.error("%s", json.dumps(entry, default=str))


def log_rejected(reason: str) -> None:
    # Malformed input is expected traffic, not a failure.
    entry = _base_entry("rejected")
    entry["reason"] = reason
    _logger.debug("%s", json.dumps(entry, default=str))


__all__ = [
    "new_request_id",
    "set_request_context",
    "clear_request_context",
    "get_request_context",
    "redact_query",
    "log_stage",
    "log_failure",
    "log_rejected",
]
