"""Managed AI Search (AutoRAG) REST client."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

import requests
from requests import HTTPError

from .errors import ProviderError


logger = logging.getLogger("uvicorn.error")

RETRY_DELAY = 1.0


def _hit_content(hit: Dict[str, Any]) -> str:
    parts = hit.get("content")
    if isinstance(parts, str):
        return parts
    if not isinstance(parts, list):
        return ""
    texts = [part.get("text", "") for part in parts if isinstance(part, dict) and part.get("type", "text") == "text"]
    return "\n\n".join(text for text in texts if text)


def _hit_to_result(hit: Dict[str, Any]) -> Dict[str, Any]:
    attributes = hit.get("attributes")
    metadata: Dict[str, Any] = {
        "file_id": hit.get("file_id"),
        "filename": hit.get("filename"),
    }
    if isinstance(attributes, dict):
        metadata.update(attributes)
    return {
        "content": _hit_content(hit),
        "score": hit.get("score", 0.0),
        "metadata": metadata,
    }


class AutoRAGIndex:
    """Search handle bound to one AI Search index."""

    def __init__(self, client: "AutoRAGClient", name: str) -> None:
        self._client = client
        self.name = name

    @property
    def url(self) -> str:
        base = self._client.api_base.rstrip("/")
        return f"{base}/accounts/{self._client.account_id}/autorag/rags/{self.name}/search"

    def search_sync(self, query: str, max_results: int, rerank: bool = True) -> Dict[str, Any]:
        payload = {
            "query": query,
            "max_num_results": max_results,
            "rewrite_query": False,
            "reranking": {"enabled": bool(rerank)},
        }
        body = self._client.post_json(self.url, payload, deadline=self._client.deadline())

        if not isinstance(body, dict):
            raise ProviderError(f"Unexpected AI Search response format: {type(body).__name__}")
        if body.get("success") is False:
            errors = body.get("errors") or []
            first = errors[0] if errors and isinstance(errors[0], dict) else {}
            raise ProviderError(first.get("message") or "AI Search request was not successful")

        result = body.get("result")
        data = result.get("data") if isinstance(result, dict) else None
        if not isinstance(data, list):
            # leave the malformed shape for the handler to report
            return {"results": None}

        results: List[Dict[str, Any]] = [_hit_to_result(hit) for hit in data if isinstance(hit, dict)]
        logger.info("AI Search index=%s returned %d", self.name, len(results))
        return {"results": results}

    async def search(self, query: str, max_results: int, rerank: bool = True) -> Dict[str, Any]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.search_sync, query, max_results, rerank)


class AutoRAGClient:
    def __init__(
        self,
        account_id: Optional[str],
        api_token: Optional[str],
        api_base: str = "https://api.cloudflare.com/client/v4",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
        search_timeout: Optional[float] = None,
    ) -> None:
        self.account_id = account_id
        self.api_token = api_token
        self.api_base = api_base
        self.timeout = timeout
        self.search_timeout = search_timeout
        self.session = session or requests.Session()

    def index(self, name: str) -> AutoRAGIndex:
        return AutoRAGIndex(self, name)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        return headers

    def deadline(self) -> Optional[float]:
        """Monotonic time after which no request for the current search may start."""
        if self.search_timeout is None:
            return None
        return time.monotonic() + self.search_timeout

    def _request_timeout(self, deadline: Optional[float]) -> float:
        if deadline is None:
            return self.timeout
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise ProviderError("AI Search deadline exceeded")
        return min(self.timeout, remaining)

    def post_json(self, url: str, payload: Dict[str, Any], deadline: Optional[float] = None) -> Any:
        if not self.account_id:
            raise ProviderError("CLOUDFLARE_ACCOUNT_ID is required for AI Search")

        for attempt in range(2):
            start = time.perf_counter()
            try:
                resp = self.session.post(
                    url, headers=self._headers(), json=payload, timeout=self._request_timeout(deadline)
                )
                resp.raise_for_status()
                logger.debug("AI Search call ok url=%s ms=%.1f", url, (time.perf_counter() - start) * 1000)
                return resp.json()
            except HTTPError as exc:
                status = exc.response.status_code if exc.response is not None else None
                # retry only when it can still finish before the deadline
                if status == 429 and attempt == 0 and (deadline is None or time.monotonic() + RETRY_DELAY < deadline):
                    time.sleep(RETRY_DELAY)
                    continue
                raise

        raise ProviderError("AI Search request failed after retries")

    def close(self) -> None:
        self.session.close()


__all__ = ["AutoRAGClient", "AutoRAGIndex"]
