"""
Runtime configuration.

Every tunable lives on one frozen dataclass. Defaults match the public
Polymarket endpoints; the CLI overrides the timing knobs and the
environment can point the endpoints somewhere else.
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass, replace
from decimal import Decimal
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

GAMMA_BASE = "https://gamma-api.polymarket.com"
CLOB_BASE = "https://clob.polymarket.com"
WS_URL = "wss://ws-subscriptions-clob.polymarket.com/ws/market"

DEFAULT_LOG_FILE = Path.home() / ".cache" / "poly_book" / "poly_book.log"


class EndpointSettings(BaseSettings):
    """Endpoint overrides: POLY_BOOK_GAMMA_URL, POLY_BOOK_CLOB_URL, POLY_BOOK_WS_URL (env or .env)."""

    model_config = SettingsConfigDict(
        env_prefix="POLY_BOOK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    gamma_url: str = GAMMA_BASE
    clob_url: str = CLOB_BASE
    ws_url: str = WS_URL


@dataclass(frozen=True)
class DashboardConfig:
    # Endpoints
    gamma_base: str = GAMMA_BASE
    clob_base: str = CLOB_BASE
    ws_url: str = WS_URL
    request_timeout: float = 10.0

    # Catalog
    catalog_ttl: float = 60.0
    catalog_page_size: int = 200
    top_markets: int = 50
    search_limit: int = 30

    # Fuzzy search (search quality only, not correctness)
    title_weight: float = 2.0
    description_weight: float = 1.0
    search_threshold: float = 0.6  # Minimum fraction of the query that must match
    min_match_len: int = 2

    # Render loop
    tick_interval: float = 0.1
    flash_duration: float = 0.3
    epsilon: Decimal = Decimal("0.0001")
    dual_depth: int = 12
    single_depth: int = 15
    bar_width: int = 8

    # Streaming feed
    backoff_base: float = 1.0
    backoff_cap: float = 30.0
    heartbeat: float = 10.0

    # Bootstrap retries before waiting on the feed alone
    bootstrap_attempts: int = 3

    @classmethod
    def from_env(cls) -> DashboardConfig:
        """Defaults with endpoint overrides from the environment."""
        endpoints = EndpointSettings()
        return cls(
            gamma_base=endpoints.gamma_url,
            clob_base=endpoints.clob_url,
            ws_url=endpoints.ws_url,
        )

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> DashboardConfig:
        """Environment defaults plus CLI overrides."""
        config = cls.from_env()
        overrides = {}
        if getattr(args, "interval_ms", None):
            overrides["tick_interval"] = args.interval_ms / 1000.0
        if getattr(args, "flash_ms", None):
            overrides["flash_duration"] = args.flash_ms / 1000.0
        return replace(config, **overrides)
