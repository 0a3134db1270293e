"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ────────────────────────────────────────────────
#
# pydantic-settings reads configuration from two sources, in priority order:
#
#   1. **Environment variables** -- e.g. SERPER_API_KEY=abc123 (always wins)
#   2. **.env file** -- key=value lines in the project root .env file
#
# Field ``probe_match_floor`` maps to env var ``PROBE_MATCH_FLOOR``.
#
# The routing thresholds below were tuned empirically against a few hundred
# curated titles.  They are defaults, not laws: override them per deployment
# and recalibrate against real query logs.
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings, SettingsConfigDict


class RoutingThresholds(BaseModel):
    """Frozen bundle of the probe and decision-matrix cut-offs."""

    model_config = ConfigDict(frozen=True)

    probe_limit: int = 5
    probe_floor: float = 0.30
    probe_match_floor: float = 0.35
    catalog_min_similarity: float = 0.50
    catalog_min_matches: int = 3
    hybrid_medium_min_similarity: float = 0.40
    hybrid_medium_min_matches: int = 2
    hybrid_low_min_similarity: float = 0.35
    hybrid_low_min_matches: int = 1


class Settings(BaseSettings):
    """bookrouter application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Generative text / embeddings ===
    # Empty string = "not configured"; main.py skips providers without keys.
    openai_api_key: str = ""
    openai_base_url: str = ""  # Custom base URL for OpenAI-compatible APIs
    openai_text_model: str = ""  # Override text model
    openai_embedding_model: str = ""  # Override embedding model
    anthropic_api_key: str = ""
    anthropic_model: str = ""  # Override Claude model

    # === Web search / metadata ===
    serper_api_key: str = ""
    google_books_api_key: str = ""  # Optional; Google Books works unauthenticated at low volume

    # === Catalog ===
    catalog_backend: str = "json"  # "json" or "chromadb"
    catalog_json_path: str = "data/catalog.json"
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection: str = "bookrouter_catalog"

    # === User history ===
    history_db_path: str = "data/user_history.db"

    # === Routing thresholds ===
    probe_limit: int = 5
    probe_floor: float = 0.30
    probe_match_floor: float = 0.35
    route_catalog_min_similarity: float = 0.50
    route_catalog_min_matches: int = 3
    route_hybrid_medium_min_similarity: float = 0.40
    route_hybrid_medium_min_matches: int = 2
    route_hybrid_low_min_similarity: float = 0.35
    route_hybrid_low_min_matches: int = 1

    # === Retrieval limits ===
    catalog_similarity_floor: float = 0.5
    similar_book_floor: float = 0.3
    catalog_path_limit: int = 10
    max_recommendations: int = 3
    hybrid_min_catalog: int = 3
    exhaustion_requery_limit: int = 50
    world_proposal_limit: int = 6
    similar_author_limit: int = 10

    # === Timeouts (seconds) and retry ===
    llm_timeout: float = 12.0
    embedding_timeout: float = 4.0
    catalog_timeout: float = 3.0
    search_timeout: float = 8.0
    metadata_timeout: float = 6.0
    history_timeout: float = 3.0
    read_retry_backoff: float = 0.25

    # === Cache ===
    cache_max_size: int = 1000
    cache_ttl: int = 900

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_llm_providers(self) -> list[str]:
        """Return LLM provider names that have non-empty API keys configured."""
        providers: list[str] = []
        if self.anthropic_api_key:
            providers.append("anthropic")
        if self.openai_api_key:
            providers.append("openai")
        return providers

    def routing_thresholds(self) -> RoutingThresholds:
        """Package the flat threshold fields for the probe and decision matrix."""
        return RoutingThresholds(
            probe_limit=self.probe_limit,
            probe_floor=self.probe_floor,
            probe_match_floor=self.probe_match_floor,
            catalog_min_similarity=self.route_catalog_min_similarity,
            catalog_min_matches=self.route_catalog_min_matches,
            hybrid_medium_min_similarity=self.route_hybrid_medium_min_similarity,
            hybrid_medium_min_matches=self.route_hybrid_medium_min_matches,
            hybrid_low_min_similarity=self.route_hybrid_low_min_similarity,
            hybrid_low_min_matches=self.route_hybrid_low_min_matches,
        )
