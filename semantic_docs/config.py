from pathlib import Path
from typing import List, Literal, Optional, Tuple

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables or .env."""

    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parent.parent / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Search provider selection
    search_backend: Literal["autorag", "libsql"] = Field("autorag")
    ai_search_index: Optional[str] = Field(None)

    # Managed AI Search (AutoRAG) REST API
    cloudflare_account_id: Optional[str] = Field(None)
    cloudflare_api_token: Optional[str] = Field(None)
    cloudflare_api_base: str = Field("https://api.cloudflare.com/client/v4")

    # libSQL / Turso vector search
    turso_db_url: Optional[str] = Field(None)
    turso_auth_token: Optional[str] = Field(None)
    libsql_table: str = Field("articles")

    # Query embedding for the libSQL backend
    embedding_provider: Literal["gemini", "openai"] = Field("gemini")
    gemini_api_key: Optional[str] = Field(None)
    openai_api_key: Optional[str] = Field(None)
    embedding_dimensions: int = Field(768)

    # Request limits
    default_limit: int = Field(10)
    max_limit: int = Field(20)
    max_query_length: int = Field(500)

    # Timeouts
    search_timeout_seconds: float = Field(5.0)
    provider_http_timeout_seconds: float = Field(10.0)

    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    def provider_identifier(self) -> Tuple[str, Optional[str]]:
        """Return the env key and value that select the index for the active backend."""
        if self.search_backend == "libsql":
            return "TURSO_DB_URL", self.turso_db_url
        return "AI_SEARCH_INDEX", self.ai_search_index

    def missing_credential(self) -> Optional[str]:
        """Return the first unset env key the active backend needs, or None."""
        if self.search_backend == "libsql":
            if self.embedding_provider == "gemini":
                embedding = ("GEMINI_API_KEY", self.gemini_api_key)
            else:
                embedding = ("OPENAI_API_KEY", self.openai_api_key)
            required = [("TURSO_AUTH_TOKEN", self.turso_auth_token), embedding]
        else:
            required = [
                ("CLOUDFLARE_ACCOUNT_ID", self.cloudflare_account_id),
                ("CLOUDFLARE_API_TOKEN", self.cloudflare_api_token),
            ]
        for key, value in required:
            if not value:
                return key
        return None

    def index_name(self) -> Optional[str]:
        """Index (AI Search) or table (libSQL) that queries run against."""
        if self.search_backend == "libsql":
            return self.libsql_table
        return self.ai_search_index


settings = Settings()
