"""Configuration management using Pydantic settings."""

from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Every enrichment driver reads its model, retry and pacing knobs from here.
    Per-driver backoff bases live in ``driver_retry_base_delays``; a driver
    missing from that table falls back to ``llm_retry_base_delay``.
    """

    model_config = {
        "extra": "ignore",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    # API Keys
    openrouter_api_key: str | None = None  # Required by every generating driver

    # Model configuration - any OpenAI-compatible endpoint, OpenRouter by default
    llm_base_url: str = "https://openrouter.ai/api/v1"
    primary_model: str = "google/gemini-2.5-pro"
    fallback_model: str = "google/gemini-2.5-flash"
    llm_temperature: float = 0.4
    llm_timeout: float = 60.0  # Seconds before a call counts as a transient failure

    # Retry settings
    llm_max_retries: int = 5
    llm_retry_base_delay: float = 5.0
    llm_retry_max_wait: float = 120.0
    driver_retry_base_delays: dict[str, float] = {
        "commentary": 10.0,
        "normalize": 5.0,
        "keywords": 2.0,
        "seo": 10.0,
        "introductions": 10.0,
    }
    llm_min_interval: float = 1.0  # Shared limiter: minimum gap between call starts

    # Content layout
    content_root: Path = Path("public/public-content")
    language: str = "en"
    introductions_dir: Path = Path("../Book Introductions")

    # Batch settings
    concurrency: int = 1
    driver_concurrency: dict[str, int] = {"normalize": 2}
    inter_call_delay: float = 5.0
    refresh_keywords: bool = False

    # Site and schema.org settings
    site_url: str = "https://4thewordofgod.com"
    author_name: str = "Lewis P. Hussell"

    # Link validation
    link_validation_timeout: float = 10.0
    link_allowed_domain: str = "wikipedia.org"
    link_user_agent: str = (
        "BiblicalCommentaryEnricher/1.0 (educational research; contact: admin@4thewordofgod.com)"
    )

    # Object storage upload
    upload_bucket: str = "bible-commentary-assets"
    upload_command: str = "npx wrangler r2 object put"
    upload_local: bool = True

    # Development settings
    log_level: str = "INFO"

    def retry_base_delay_for(self, driver_name: str) -> float:
        """Backoff base for a driver, falling back to the global default."""
        return self.driver_retry_base_delays.get(driver_name, self.llm_retry_base_delay)

    def concurrency_for(self, driver_name: str) -> int:
        """Worker count for a driver, falling back to the global default."""
        return self.driver_concurrency.get(driver_name, self.concurrency)


def get_content_paths(config: Settings, language: str | None = None) -> dict[str, Path]:
    """Get standardized paths for one language of the content tree."""
    lang = language or config.language
    base_dir = Path(config.content_root) / lang

    return {
        "root": Path(config.content_root),
        "language": base_dir,
        "introductions": Path(config.introductions_dir),
        "log": base_dir / "enrichment_log.jsonl",
    }


# Global settings instance
settings = Settings()


def get_config() -> Settings:
    """Get the global configuration instance."""
    return settings
