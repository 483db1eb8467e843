from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Search providers
    google_api_key: str = ""
    google_cse_id: str = ""
    google_safe_search: str = "active"  # active | off
    brave_api_key: str = ""
    tavily_api_key: str = ""
    tavily_search_depth: str = "basic"  # basic | advanced

    # PubMed (NCBI E-utilities)
    pubmed_api_key: str = ""
    pubmed_email: str = ""
    pubmed_tool: str = "searchscope"
    pubmed_batch_size: int = 5
    pubmed_batch_delay_seconds: float = 0.5

    # Content fetching
    jina_api_key: str = ""
    jina_reader_base_url: str = "https://r.jina.ai"
    content_max_chars: int = 20000
    http_timeout_seconds: float = 30.0

    # Search behaviour
    default_provider: str = "google"  # google | brave | tavily | pubmed
    provider_priority: list[str] = ["google", "brave", "tavily", "pubmed"]
    results_per_page: int = 10
    max_selectable_results: int = 20
    fetch_all_cap: int = 100
    fetch_all_max_parallel: int = 4

    # Retry policy
    retry_max_attempts: int = 3
    retry_base_delay_seconds: float = 1.0

    # Ranking / selection
    selection_score_floor: float = 0.5
    unscored_default_score: float = 0.1

    # Rate limits (requests per minute)
    rate_limits_enabled: bool = False
    rate_limit_search: int = 5
    rate_limit_content_fetch: int = 20
    rate_limit_report: int = 5

    # LLM platforms
    default_model: str = "openai__gpt-4.1-mini-2025-04-14"
    enabled_platforms: list[str] = ["openai", "anthropic", "deepseek", "openrouter", "ollama"]
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    deepseek_api_key: str = ""
    deepseek_base_url: str = "https://api.deepseek.com"
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    ollama_base_url: str = "http://localhost:11434"
    llm_max_tokens: int = 4096

    # App
    cors_origins: str = "http://localhost:3000"
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_dir: str = "logs"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "frozen": True,
    }

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",")]


def load_settings(**overrides) -> Settings:
    """Build the settings value passed into every component.

    Keyword overrides win over environment and `.env` values, which is how
    tests inject alternate configurations.
    """
    return Settings(**overrides)
