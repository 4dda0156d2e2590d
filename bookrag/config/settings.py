"""Application settings loaded from environment variables via pydantic-settings.

Values are read, in priority order, from:

  1. **Environment variables** (e.g. ``GEMINI_API_KEY=...``)
  2. **.env file** in the working directory
  3. The defaults declared below

Field ``embedding_model`` maps to env var ``EMBEDDING_MODEL`` and so on;
pydantic-settings matches case-insensitively.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """bookrag application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # === Provider selection ===
    # Strategy names understood by main._build_embedding_provider /
    # main._build_llm_provider.
    embedding_provider: str = "gemini"  # gemini | openai
    llm_provider: str = "gemini"  # gemini | openai | anthropic

    # === Provider credentials ===
    # Empty string = "not configured".
    gemini_api_key: str = ""
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoints (TogetherAI, etc.)
    anthropic_api_key: str = ""

    # === Models ===
    # Empty = use the selected provider's default.
    embedding_model: str = ""
    chat_model: str = ""

    # === Vector store ===
    chromadb_persist_dir: str = "./data/chromadb"
    base_collection_name: str = "book_knowledge_base"

    # === Chunking & retrieval ===
    chunk_size: int = 200
    chunk_overlap: int = 30
    max_context_chunks: int = 5
    candidate_limit: int = 50
    # Heuristic lower bound on reported answer confidence (percent).
    confidence_floor: int = 75

    # === Embedding retry policy ===
    embedding_batch_size: int = 100
    embedding_batch_delay: float = 0.1
    embedding_max_retries: int = 3
    embedding_retry_backoff: float = 1.0

    # === Document download ===
    download_timeout: float = 30.0

    # === Item records ===
    # Empty = do not report embedding status to a parent record store.
    item_record_db_path: str = "data/item_records.db"

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_llm_providers(self) -> list[str]:
        """Return chat provider names that have non-empty API keys configured."""
        providers: list[str] = []
        if self.gemini_api_key:
            providers.append("gemini")
        if self.openai_api_key:
            providers.append("openai")
        if self.anthropic_api_key:
            providers.append("anthropic")
        return providers
