from typing import Any, Dict, Optional, Protocol, Union

from fastapi import FastAPI

from .autorag import AutoRAGClient
from .config import Settings
from .libsql_search import LibSQLSearchClient


class SearchIndex(Protocol):
    async def search(self, query: str, max_results: int, rerank: bool = True) -> Dict[str, Any]:
        ...


class SearchClient(Protocol):
    def index(self, name: str) -> SearchIndex:
        ...


def build_search_client(settings: Settings) -> Union[AutoRAGClient, LibSQLSearchClient]:
    """Create the provider client for the configured backend."""
    if settings.search_backend == "libsql":
        return LibSQLSearchClient(settings.turso_db_url, settings.turso_auth_token, settings)
    return AutoRAGClient(
        settings.cloudflare_account_id,
        settings.cloudflare_api_token,
        api_base=settings.cloudflare_api_base,
        timeout=settings.provider_http_timeout_seconds,
        search_timeout=settings.search_timeout_seconds,
    )


async def connect_search_client(app: FastAPI, settings: Settings) -> None:
    """Create the search client and attach it to app.state for reuse."""
    app.state.search_client = build_search_client(settings)


async def close_search_client(app: FastAPI) -> None:
    client: Optional[Any] = getattr(app.state, "search_client", None)
    if client is not None:
        client.close()
        app.state.search_client = None
