from typing import Any, Dict, List, Optional

import pytest

from semantic_docs.config import Settings


class StubIndex:
    def __init__(self, owner: "StubClient", name: str) -> None:
        self.owner = owner
        self.name = name

    async def search(self, query: str, max_results: int, rerank: bool = True) -> Any:
        self.owner.calls.append({"index": self.name, "query": query, "max_results": max_results, "rerank": rerank})
        if self.owner.error is not None:
            raise self.owner.error
        return self.owner.response


class StubClient:
    """Stands in for a provider client; records every search it receives."""

    def __init__(self, response: Any = None, error: Optional[Exception] = None) -> None:
        self.response = response if response is not None else {"results": []}
        self.error = error
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    def index(self, name: str) -> StubIndex:
        return StubIndex(self, name)

    def close(self) -> None:
        self.closed = True


def make_settings(**overrides: Any) -> Settings:
    values: Dict[str, Any] = {
        "search_backend": "autorag",
        "ai_search_index": "semantic-docs",
        "cloudflare_account_id": "acct",
        "cloudflare_api_token": "token",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def three_hits() -> Dict[str, Any]:
    return {
        "results": [
            {"content": "Deploy with wrangler", "score": 0.92, "metadata": {"filename": "deploy.md"}, "file_id": "f1"},
            {"content": "Build the app", "score": 0.81, "metadata": {"filename": "build.md"}},
            {"content": "Configure R2", "score": 0.55, "metadata": {"filename": "r2.md"}},
        ]
    }
