"""Application settings loaded from environment variables via pydantic-settings.

Values resolve in this order (first wins):

1. Process environment (``EMBEDDING_BACKEND=remote``)
2. ``.env`` in the working directory
3. The defaults declared below

Field names map to upper-cased env vars automatically.  Empty strings mean
"not configured"; :mod:`groundwork.main` refuses to start a backend whose
required credentials are empty.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """groundwork runtime settings."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Embedding ===
    # "local" runs a sentence-transformers model in-process; "remote" calls an
    # OpenAI-compatible /embeddings endpoint.  Both must yield vectors of
    # embedding_dimension floats.
    embedding_backend: str = "local"
    embedding_dimension: int = Field(default=384, gt=0)
    local_embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    remote_embedding_base_url: str = "https://openrouter.ai/api/v1"
    remote_embedding_api_key: str = ""
    remote_embedding_model: str = "openai/text-embedding-3-small"
    embedding_batch_size: int = Field(default=64, gt=0)

    # === Document store ===
    store_backend: str = "sqlite"
    sqlite_db_path: str = "data/knowledge.db"
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection: str = "groundwork_knowledge"

    # === Completion provider (OpenAI-compatible chat completions) ===
    completion_base_url: str = "https://openrouter.ai/api/v1"
    completion_api_key: str = ""
    completion_model: str = "openai/gpt-5-chat"
    completion_referer: str = "http://localhost:8000"
    completion_title: str = "groundwork"

    # === Chunking ===
    # Deployment constants, never per-call.
    chunk_size: int = Field(default=1200, gt=0)
    chunk_overlap: int = Field(default=150, ge=0)

    # === Retrieval / context ===
    retrieval_top_k: int = 6
    smart_search_top_k: int = 8
    smart_search_limit: int = 10
    context_snippet_chars: int = Field(default=800, gt=0)
    context_char_budget: int = Field(default=12000, gt=0)

    # === Timeouts (seconds) ===
    embedding_timeout: float = 30.0
    completion_connect_timeout: float = 10.0
    completion_read_timeout: float = 120.0

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"
    cors_origins: str = "*"
    config_path: str = "config/config.yaml"

    def get_cors_origins(self) -> list[str]:
        """Return ``cors_origins`` split on commas, blanks removed."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]
