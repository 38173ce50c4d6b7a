"""Query embedding and libSQL (Turso) vector search helpers."""
from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from typing import Any, Dict, List, Optional

import requests
from requests import HTTPError

from .config import Settings
from .errors import EmbeddingError, ProviderError
from .normalize import normalize_query_text


logger = logging.getLogger("uvicorn.error")

GEMINI_EMBED_URL = "https://generativelanguage.googleapis.com/v1beta/models/text-embedding-004:embedContent"
OPENAI_EMBED_URL = "https://api.openai.com/v1/embeddings"

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_SEARCH_SQL = """
SELECT
  id,
  slug,
  title,
  content,
  folder,
  tags,
  created_at,
  vector_distance_cos(embedding, vector(?)) AS distance
FROM {table}
WHERE embedding IS NOT NULL
ORDER BY distance
LIMIT ?
"""


def get_embedding(
    text: str,
    settings: Settings,
    session: Optional[requests.Session] = None,
    timeout: Optional[float] = None,
) -> List[float]:
    """Fetch an embedding vector for ``text`` from the configured provider."""
    normalized = normalize_query_text(text)
    if not normalized:
        raise EmbeddingError("cannot embed empty text")

    http = session or requests
    timeout = timeout or settings.provider_http_timeout_seconds
    provider = settings.embedding_provider

    if provider == "gemini":
        if not settings.gemini_api_key:
            raise EmbeddingError("GEMINI_API_KEY required")
        resp = http.post(
            GEMINI_EMBED_URL,
            params={"key": settings.gemini_api_key},
            headers={"Content-Type": "application/json"},
            json={"model": "models/text-embedding-004", "content": {"parts": [{"text": normalized}]}},
            timeout=timeout,
        )
        resp.raise_for_status()
        body = resp.json()
        values = (body.get("embedding") or {}).get("values") if isinstance(body, dict) else None
    elif provider == "openai":
        if not settings.openai_api_key:
            raise EmbeddingError("OPENAI_API_KEY required")
        resp = http.post(
            OPENAI_EMBED_URL,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {settings.openai_api_key}",
            },
            json={
                "model": "text-embedding-3-small",
                "input": normalized,
                "dimensions": settings.embedding_dimensions,
            },
            timeout=timeout,
        )
        resp.raise_for_status()
        body = resp.json()
        data = body.get("data") if isinstance(body, dict) else None
        values = data[0].get("embedding") if isinstance(data, list) and data else None
    else:
        raise EmbeddingError(f"Unknown embedding provider: {provider}")

    if not isinstance(values, list):
        raise EmbeddingError(f"Unexpected {provider} embedding response format")
    return values


def _http_base(db_url: str) -> str:
    if db_url.startswith("libsql://"):
        db_url = "https://" + db_url[len("libsql://"):]
    return db_url.rstrip("/")


def _arg(value: Any) -> Dict[str, Any]:
    if value is None:
        return {"type": "null"}
    if isinstance(value, bool):
        return {"type": "integer", "value": str(int(value))}
    if isinstance(value, int):
        # integers travel as strings to preserve 64-bit precision
        return {"type": "integer", "value": str(value)}
    if isinstance(value, float):
        return {"type": "float", "value": value}
    return {"type": "text", "value": str(value)}


def _value(cell: Dict[str, Any]) -> Any:
    kind = cell.get("type")
    if kind == "null":
        return None
    if kind == "integer":
        return int(cell["value"])
    if kind == "float":
        return float(cell["value"])
    return cell.get("value")


def _parse_tags(raw: Any) -> List[str]:
    if isinstance(raw, list):
        return raw
    try:
        tags = json.loads(raw or "[]")
    except (TypeError, ValueError):
        return []
    return tags if isinstance(tags, list) else []


def row_to_result(row: Dict[str, Any]) -> Dict[str, Any]:
    distance = row.get("distance")
    distance = float(distance) if isinstance(distance, (int, float)) else 1.0
    return {
        "content": row.get("content") or "",
        # cosine distance runs 0..2, lower is closer
        "score": 1.0 - distance,
        "metadata": {
            "id": row.get("id"),
            "slug": row.get("slug"),
            "title": row.get("title"),
            "folder": row.get("folder"),
            "tags": _parse_tags(row.get("tags")),
            "created_at": row.get("created_at"),
            "distance": distance,
        },
    }


def _remaining(deadline: float, settings: Settings) -> float:
    remaining = deadline - time.monotonic()
    if remaining <= 0:
        raise ProviderError("libSQL search deadline exceeded")
    return min(settings.provider_http_timeout_seconds, remaining)


class LibSQLIndex:
    """Vector search over one libSQL table."""

    def __init__(self, client: "LibSQLSearchClient", table: str) -> None:
        if not _IDENTIFIER_RE.match(table):
            raise ValueError(f"invalid table name: {table!r}")
        self._client = client
        self.table = table

    def search_sync(self, query: str, max_results: int, rerank: bool = True) -> Dict[str, Any]:
        settings = self._client.settings
        deadline = time.monotonic() + settings.search_timeout_seconds
        embedding = get_embedding(query, settings, self._client.session, timeout=_remaining(deadline, settings))
        rows = self._client.execute(
            _SEARCH_SQL.format(table=self.table),
            [json.dumps(embedding), max_results],
            timeout=_remaining(deadline, settings),
        )
        results = [row_to_result(row) for row in rows]
        logger.info("libSQL vector search table=%s returned %d", self.table, len(results))
        return {"results": results}

    async def search(self, query: str, max_results: int, rerank: bool = True) -> Dict[str, Any]:
        # rerank is an AI Search feature; rows come back ordered by distance
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.search_sync, query, max_results, rerank)


class LibSQLSearchClient:
    def __init__(
        self,
        db_url: Optional[str],
        auth_token: Optional[str],
        settings: Settings,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.db_url = db_url
        self.auth_token = auth_token
        self.settings = settings
        self.session = session or requests.Session()

    def index(self, table: str) -> LibSQLIndex:
        return LibSQLIndex(self, table)

    def execute(self, sql: str, args: List[Any], timeout: Optional[float] = None) -> List[Dict[str, Any]]:
        """Run one statement over the HTTP pipeline API and return rows as dicts."""
        if not self.db_url or not self.auth_token:
            raise ProviderError("Turso credentials required. Set TURSO_DB_URL and TURSO_AUTH_TOKEN.")

        url = f"{_http_base(self.db_url)}/v2/pipeline"
        payload = {
            "requests": [
                {"type": "execute", "stmt": {"sql": sql, "args": [_arg(a) for a in args]}},
                {"type": "close"},
            ]
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.auth_token}",
        }

        start = time.perf_counter()
        try:
            resp = self.session.post(
                url, headers=headers, json=payload, timeout=timeout or self.settings.provider_http_timeout_seconds
            )
            resp.raise_for_status()
        except HTTPError as exc:
            logger.error("libSQL pipeline request failed: %s", exc)
            raise
        logger.debug("libSQL pipeline ok ms=%.1f", (time.perf_counter() - start) * 1000)

        body = resp.json()
        results = body.get("results") if isinstance(body, dict) else None
        if not isinstance(results, list) or not results:
            raise ProviderError("Unexpected libSQL pipeline response format")

        first = results[0]
        if first.get("type") == "error":
            raise ProviderError((first.get("error") or {}).get("message") or "libSQL statement failed")

        result = ((first.get("response") or {}).get("result")) or {}
        cols = [col.get("name") for col in result.get("cols", [])]
        return [{name: _value(cell) for name, cell in zip(cols, row)} for row in result.get("rows", [])]

    def close(self) -> None:
        self.session.close()


__all__ = [
    "get_embedding",
    "row_to_result",
    "LibSQLIndex",
    "LibSQLSearchClient",
]
