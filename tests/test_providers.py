from semantic_docs.autorag import AutoRAGClient
from semantic_docs.libsql_search import LibSQLSearchClient
from semantic_docs.providers import build_search_client

from .conftest import make_settings


def test_builds_autorag_client_by_default():
    client = build_search_client(make_settings(provider_http_timeout_seconds=4.0))

    assert isinstance(client, AutoRAGClient)
    assert client.account_id == "acct"
    assert client.timeout == 4.0
    client.close()


def test_builds_libsql_client():
    client = build_search_client(make_settings(search_backend="libsql", turso_db_url="https://db", turso_auth_token="t"))

    assert isinstance(client, LibSQLSearchClient)
    assert client.db_url == "https://db"
    client.close()
