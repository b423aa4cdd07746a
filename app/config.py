"""
app/config.py — Pydantic BaseSettings configuration
Assignment policy, rate-limit thresholds, store backend and route limits.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ────────────────────────────────────────────────────────────
    environment: str = "development"
    log_level: str = "INFO"
    port: int = 8000

    # ── Store backend ─────────────────────────────────────────────────────────
    # "dynamodb" in deployed environments, "memory" for local runs and tests
    store_backend: str = "memory"
    aws_region: str = "us-east-1"
    dynamodb_table_prefix: Optional[str] = None  # e.g. deluge-dev

    # ── Authentication ────────────────────────────────────────────────────────
    admin_api_key: Optional[str] = None
    session_cookie_name: str = "deluge_session"

    # ── Prayer flow ───────────────────────────────────────────────────────────
    prayer_cooldown_seconds: int = 30

    # ── Rate limiting (fixed hourly windows) ──────────────────────────────────
    rate_limit_session_per_hour: int = 20
    rate_limit_ip_per_hour: int = 50
    rate_limit_ttl_seconds: int = 7200  # counters self-expire 2h after last hit

    # ── Assignment candidate cache ────────────────────────────────────────────
    assignment_cache_ttl_seconds: int = 600
    assignment_pool_low_watermark: int = 10
    assignment_candidate_limit: int = 100

    # ── Assignment selection policy ───────────────────────────────────────────
    assignment_low_count_probability: float = 0.7
    assignment_low_count_subset_size: int = 10

    # ── Statistics ────────────────────────────────────────────────────────────
    default_archdiocese: str = "Atlanta"
    recent_activity_per_cemetery: int = 3
    recent_activity_global: int = 10
    recent_activity_detail: int = 5

    # ── slowapi route limits (read-only endpoints) ────────────────────────────
    route_limits: dict[str, str] = {
        "cemeteries": "60/minute",
        "stats": "60/minute",
        "health": "30/minute",
        "admin": "30/minute",
        "ping": "60/minute",
    }

    @field_validator("environment")
    @classmethod
    def validate_env(cls, v: str) -> str:
        allowed = {"development", "production", "testing"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("store_backend")
    @classmethod
    def validate_store_backend(cls, v: str) -> str:
        allowed = {"dynamodb", "memory"}
        if v not in allowed:
            raise ValueError(f"store_backend must be one of {allowed}")
        return v

    @field_validator("assignment_low_count_probability")
    @classmethod
    def validate_probability(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("assignment_low_count_probability must be within [0, 1]")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


@lru_cache()
def get_settings() -> Settings:
    """Return cached Settings instance. Use this everywhere."""
    return Settings()
