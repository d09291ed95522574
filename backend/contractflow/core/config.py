"""
Application configuration via environment variables (12-factor).
Pydantic BaseSettings validates and coerces all values at startup.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------
    upload_dir:       Path = Path("./uploads")   # staged PDFs, deleted after each job
    max_file_size_mb: int  = 10

    # ------------------------------------------------------------------
    # Provider mode
    # ------------------------------------------------------------------
    # auto = infer from credentials, on = always synthesize, off = always call out
    demo_mode: Literal["auto", "on", "off"] = "auto"

    # ------------------------------------------------------------------
    # LLM (structured extraction)
    # ------------------------------------------------------------------
    openai_api_key:      str   = ""
    llm_model:           str   = "gpt-4o-mini"
    llm_temperature:     float = 0.0
    llm_max_tokens:      int   = 4096
    llm_timeout_seconds: float = 120.0

    # ------------------------------------------------------------------
    # Confluence (publishing)
    # ------------------------------------------------------------------
    confluence_base_url:        str = ""   # e.g. https://acme.atlassian.net
    confluence_user_email:      str = ""
    confluence_api_token:       str = ""
    confluence_space_key:       str = ""
    confluence_parent_page_id:  str = ""   # empty = create at space root
    confluence_timeout_seconds: float = 30.0

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------
    app_env: str = "development"   # development | staging | production
    debug: bool = False

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
