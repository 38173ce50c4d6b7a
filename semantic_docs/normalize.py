"""Utilities for normalizing query text and provider search results."""
from __future__ import annotations

import math
import re
from typing import Any, Dict, Mapping


def normalize_query_text(text: str) -> str:
    """Normalize free-text queries by flattening whitespace and smart quotes."""
    if not text:
        return ""
    cleaned = text.replace("\t", " ").replace("•", " ")
    cleaned = re.sub(r"[\r\n]+", " ", cleaned)
    cleaned = re.sub(r'["“”]+', " ", cleaned)
    cleaned = re.sub(r"[‘’]", "'", cleaned)
    cleaned = re.sub(r"\s+", " ", cleaned)
    return cleaned.strip()


def _safe_text(text: str) -> str:
    # lone surrogates cannot be encoded as UTF-8 in the response body
    return text.encode("utf-8", "replace").decode("utf-8")


def sanitize_metadata(obj: Any) -> Any:
    """Recursively convert provider values to JSON-safe forms while dropping embeddings."""
    if isinstance(obj, Mapping):
        out: Dict[str, Any] = {}
        for key, value in obj.items():
            if key == "embedding":
                continue
            out[_safe_text(str(key))] = sanitize_metadata(value)
        return out
    if isinstance(obj, (list, tuple)):
        return [sanitize_metadata(item) for item in obj]
    if isinstance(obj, float) and not math.isfinite(obj):
        return None
    if isinstance(obj, str):
        return _safe_text(obj)
    if isinstance(obj, (int, float, bool)) or obj is None:
        return obj
    return _safe_text(str(obj))


def _coerce_score(value: Any) -> float:
    # bool is an int subclass but never a relevance score
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    try:
        score = float(value)
    except OverflowError:
        return 0.0
    return score if math.isfinite(score) else 0.0


def normalize_result(item: Any) -> Dict[str, Any]:
    """Reduce one provider hit to the public ``{content, score, metadata}`` shape."""
    if not isinstance(item, Mapping):
        return {"content": "", "score": 0.0, "metadata": {}}
    content = item.get("content")
    metadata = item.get("metadata")
    return {
        "content": _safe_text(content if isinstance(content, str) else ("" if content is None else str(content))),
        "score": _coerce_score(item.get("score")),
        "metadata": sanitize_metadata(metadata) if isinstance(metadata, Mapping) else {},
    }


__all__ = [
    "normalize_query_text",
    "sanitize_metadata",
    "normalize_result",
]
