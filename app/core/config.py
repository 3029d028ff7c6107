#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Application configuration.

All values can be overridden via environment variables or a .env file.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from app._version import __version__ as _pkg_version


# -----------------------------------------------------------------------------

class Settings(BaseSettings):

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ────────────────────────────────────────────────────────

    app_name: str = "Multiple Post Type API"
    app_version: str = _pkg_version
    base_url: str = "http://localhost:8000"
    log_level: str = "INFO"
    seed_defaults: bool = True

    # ── Database ───────────────────────────────────────────────────────────

    database_url: str = "sqlite+aiosqlite:///./posts.db"
    db_echo: bool = False
    db_pool_size: int = 5
    db_max_overflow: int = 10

    # ── Auth / JWT ─────────────────────────────────────────────────────────

    secret_key: str = "CHANGE-ME-IN-PRODUCTION-use-a-random-64-char-hex-string"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 8   # 8 hours

    # ── REST surface ───────────────────────────────────────────────────────

    rest_prefix: str = "/wp-json"
    rest_namespace: str = "wp"
    header_prefix: str = "WP"           # X-WP-Total, X-WP-TotalPages

    # ── Collection queries ─────────────────────────────────────────────────

    posts_per_page: int = 10
    max_per_page: int = 100
    # "allow_list": the filter[] override and date range are merged before
    #               allow-list filtering and are subject to it.
    # "bypass":     both are merged after allow-list filtering.
    filter_override_policy: Literal["allow_list", "bypass"] = "allow_list"
    primary_image_field: str = "primary_image"
    primary_image_meta_key: str = "primary_image"

    # ── CORS ───────────────────────────────────────────────────────────────

    cors_origins: list[str] = [
        "http://localhost:8000",
        "http://localhost:3000",
    ]

    @property
    def route_base(self) -> str:
        return f"{self.rest_prefix}/{self.rest_namespace}/v2"


# -----------------------------------------------------------------------------

@lru_cache
def get_settings() -> Settings:
    return Settings()


# -----------------------------------------------------------------------------
