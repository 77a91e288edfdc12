"""
Runtime configuration for supplier imports.

All values come from the environment (a local .env is loaded first when
present). Collaborator credentials decide which strategies are available:
the official supplier API is only tried when its key is set.
"""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass
class AIConfig:
    """Anthropic-backed extraction model and remote-fetch service."""

    api_key: str | None = field(default_factory=lambda: os.getenv("ANTHROPIC_API_KEY"))
    # Haiku: cheap and fast enough to enumerate 70+ colors in one response
    model: str = field(default_factory=lambda: os.getenv("IMPORT_MODEL", "claude-haiku-4-5-20251001"))
    max_tokens: int = field(default_factory=lambda: _env_int("IMPORT_MAX_TOKENS", 16000))
    timeout_seconds: float = field(default_factory=lambda: _env_float("AI_TIMEOUT_SECONDS", 120.0))
    max_concurrent: int = field(default_factory=lambda: _env_int("AI_MAX_CONCURRENT", 4))
    # Upper bound on fetched page content the remote-fetch tool may read
    fetch_max_content_tokens: int = 200_000

    @property
    def configured(self) -> bool:
        return bool(self.api_key)


@dataclass
class SupplierAPIConfig:
    """Credentials and endpoints for the official S&S Activewear catalog API."""

    api_key: str | None = field(default_factory=lambda: os.getenv("SSACTIVEWEAR_API_KEY"))
    account_number: str | None = field(default_factory=lambda: os.getenv("SSACTIVEWEAR_ACCOUNT_NUMBER"))
    base_url: str = field(
        default_factory=lambda: os.getenv("SSACTIVEWEAR_API_BASE", "https://api.ssactivewear.com/v2")
    )
    cdn_base: str = field(default_factory=lambda: os.getenv("SSACTIVEWEAR_CDN_BASE", "https://cdn.ssactivewear.com"))
    inventory_cache_ttl: float = field(default_factory=lambda: _env_float("INVENTORY_CACHE_TTL", 300.0))
    max_concurrent: int = field(default_factory=lambda: _env_int("SSACTIVEWEAR_MAX_CONCURRENT", 4))

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    @property
    def basic_auth(self) -> tuple[str, str]:
        """Account number is the username and the key the password; key alone otherwise."""
        if self.account_number:
            return (self.account_number, self.api_key or "")
        return (self.api_key or "", "")


@dataclass
class ImportConfig:
    """Limits applied to a single import request."""

    http_timeout_seconds: float = field(default_factory=lambda: _env_float("HTTP_TIMEOUT_SECONDS", 30.0))
    budget_seconds: float = field(default_factory=lambda: _env_float("IMPORT_BUDGET_SECONDS", 240.0))
    html_char_budget: int = field(default_factory=lambda: _env_int("HTML_CHAR_BUDGET", 200_000))
    default_retry_after: int = field(default_factory=lambda: _env_int("RATE_LIMIT_RETRY_AFTER", 120))
    user_agent: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )


@dataclass
class Settings:
    ai: AIConfig = field(default_factory=AIConfig)
    supplier_api: SupplierAPIConfig = field(default_factory=SupplierAPIConfig)
    imports: ImportConfig = field(default_factory=ImportConfig)
    cors_origins: list[str] = field(
        default_factory=lambda: [
            o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()
        ]
    )


settings = Settings()
