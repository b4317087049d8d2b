"""Environment configuration using pydantic-settings."""

from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"

# Load .env FIRST so it overrides any empty system env vars
load_dotenv(_ENV_FILE, override=True)


class Settings(BaseSettings):
    # Webhook authentication
    webhook_secret: str | None = Field(
        None, description="Shared HMAC secret; verification is skipped when unset"
    )
    signature_header: str = Field(
        "X-Call-Signature", description="Header carrying hex(HMAC-SHA256(body))"
    )

    # Remote cache tier (Redis)
    redis_url: str | None = Field(
        None, description="Redis URL; local-only caching when unset"
    )
    local_cache_max_entries: int = Field(500, description="Local LRU capacity")
    local_cache_ttl_seconds: int = Field(
        300, description="Default ttl for local entries"
    )
    customer_profile_ttl_seconds: int = Field(
        300, description="How long resolved customer profiles stay cached"
    )
    default_phone_region: str = Field(
        "CY", description="Region used to canonicalize numbers without a country code"
    )

    # Cost accounting (EUR)
    cost_per_synthesis_char: float = Field(0.000018, description="TTS cost per character")
    cost_per_recognition_second: float = Field(0.0004, description="STT cost per second")
    cost_per_1k_model_tokens: float = Field(0.002, description="LLM cost per 1k tokens")
    cost_per_platform_minute: float = Field(0.05, description="Voice platform cost per minute")
    cost_currency: str = Field("EUR", description="Currency of all cost figures")
    cost_alert_threshold: float = Field(
        2.0, description="Per-call total above which a cost alert is recorded"
    )
    monthly_budget: float = Field(330.0, description="Monthly budget for reports")
    enable_cost_optimization: bool = Field(
        True, description="Shorten response text before speech synthesis"
    )

    # Call transfer
    emergency_transfer_number: str = Field(
        "+35777111104", description="Destination for critical/emergency transfers"
    )
    general_transfer_number: str = Field(
        "+35777111104", description="Destination for all other transfers"
    )

    # External product search fallback
    search_api_url: str | None = Field(
        None, description="Live product search endpoint; fallback tier disabled when unset"
    )
    search_api_key: str | None = Field(None, description="Bearer token for the search API")
    search_timeout_seconds: float = Field(10.0, description="Search request timeout")

    # App settings
    log_level: str = Field("INFO", description="Logging level")
    log_format: str = Field("console", description="Log output: console or json")

    model_config = {
        "env_file": str(_ENV_FILE),
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


settings = Settings()
