"""
Timeline Configuration - API endpoints, pagination ceilings and windows.

Built once at process start and passed by parameter into the providers
and the service. API keys are loaded from environment variables.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from .exceptions import ConfigurationError


DEFAULT_RESOLVER_URLS: tuple[str, ...] = (
    "https://api.ensideas.com/ens/resolve/{name}",
    "https://ensdata.net/{name}",
)


@dataclass
class TimelineConfig:
    """Configuration for the ingestion-and-derivation pipeline."""

    # Data provider
    api_base_url: str = ""
    api_key: Optional[str] = None
    request_timeout_seconds: float = 30.0

    # Name resolution (URL templates with a {name} placeholder)
    resolver_urls: list[str] = field(default_factory=lambda: list(DEFAULT_RESOLVER_URLS))

    # Pagination
    page_size: int = 50
    max_contract_pages: int = 20
    max_wallet_pages: int = 40
    min_wallet_pages: int = 3

    # Retry (linear backoff: delay * attempt)
    max_attempts: int = 4
    retry_delay_seconds: float = 0.75

    # Windows
    window_days: int = 30
    lookback_days: int = 365
    peak_window_days: int = 90

    def validate(self) -> None:
        """Validate configuration values."""
        if not self.api_base_url:
            raise ConfigurationError(
                "Data provider base URL is not configured",
                config_key="TIMELINE_API_BASE_URL",
            )
        if not self.api_base_url.startswith(("http://", "https://")):
            raise ConfigurationError(
                f"Invalid data provider base URL: {self.api_base_url}",
                config_key="TIMELINE_API_BASE_URL",
            )
        positive = {
            "page_size": self.page_size,
            "max_contract_pages": self.max_contract_pages,
            "max_wallet_pages": self.max_wallet_pages,
            "max_attempts": self.max_attempts,
            "window_days": self.window_days,
            "peak_window_days": self.peak_window_days,
        }
        for key, value in positive.items():
            if value < 1:
                raise ConfigurationError(f"{key} must be >= 1", config_key=key)
        if self.min_wallet_pages < 1 or self.min_wallet_pages > self.max_wallet_pages:
            raise ConfigurationError(
                "min_wallet_pages must be between 1 and max_wallet_pages",
                config_key="min_wallet_pages",
            )
        if self.lookback_days < self.window_days:
            raise ConfigurationError(
                "lookback_days must not be shorter than window_days",
                config_key="lookback_days",
            )
        if self.retry_delay_seconds < 0:
            raise ConfigurationError(
                "retry_delay_seconds must be >= 0",
                config_key="retry_delay_seconds",
            )

    @classmethod
    def from_env(cls, environ: Optional[dict[str, str]] = None) -> "TimelineConfig":
        """Build configuration from environment variables."""
        env = os.environ if environ is None else environ
        defaults = cls()

        def read(key: str, cast: Callable[[str], Any], default: Any) -> Any:
            raw = env.get(key)
            if raw is None or raw.strip() == "":
                return default
            try:
                return cast(raw.strip())
            except ValueError as e:
                raise ConfigurationError(
                    f"Invalid value for {key}: {raw!r}",
                    config_key=key,
                    original_error=e,
                )

        resolver_raw = env.get("TIMELINE_RESOLVER_URLS", "")
        resolver_urls = [u.strip() for u in resolver_raw.split(",") if u.strip()]

        return cls(
            api_base_url=env.get("TIMELINE_API_BASE_URL", "").rstrip("/"),
            api_key=env.get("TIMELINE_API_KEY") or None,
            request_timeout_seconds=read(
                "TIMELINE_REQUEST_TIMEOUT", float, defaults.request_timeout_seconds
            ),
            resolver_urls=resolver_urls or list(DEFAULT_RESOLVER_URLS),
            page_size=read("TIMELINE_PAGE_SIZE", int, defaults.page_size),
            max_contract_pages=read(
                "TIMELINE_MAX_CONTRACT_PAGES", int, defaults.max_contract_pages
            ),
            max_wallet_pages=read("TIMELINE_MAX_WALLET_PAGES", int, defaults.max_wallet_pages),
            min_wallet_pages=read("TIMELINE_MIN_WALLET_PAGES", int, defaults.min_wallet_pages),
            max_attempts=read("TIMELINE_MAX_ATTEMPTS", int, defaults.max_attempts),
            retry_delay_seconds=read(
                "TIMELINE_RETRY_DELAY_SECONDS", float, defaults.retry_delay_seconds
            ),
            window_days=read("TIMELINE_WINDOW_DAYS", int, defaults.window_days),
            lookback_days=read("TIMELINE_LOOKBACK_DAYS", int, defaults.lookback_days),
            peak_window_days=read("TIMELINE_PEAK_WINDOW_DAYS", int, defaults.peak_window_days),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (API key masked)."""
        return {
            "api_base_url": self.api_base_url,
            "api_key": "***" if self.api_key else None,
            "request_timeout_seconds": self.request_timeout_seconds,
            "resolver_urls": self.resolver_urls,
            "page_size": self.page_size,
            "max_contract_pages": self.max_contract_pages,
            "max_wallet_pages": self.max_wallet_pages,
            "min_wallet_pages": self.min_wallet_pages,
            "max_attempts": self.max_attempts,
            "retry_delay_seconds": self.retry_delay_seconds,
            "window_days": self.window_days,
            "lookback_days": self.lookback_days,
            "peak_window_days": self.peak_window_days,
        }
