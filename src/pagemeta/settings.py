from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PageMetaSettings(BaseSettings):
    """Configuration for page metadata preparation.

    Environment variables are prefixed with PAGEMETA_.
    """

    model_config = SettingsConfigDict(env_prefix="PAGEMETA_", extra="ignore")

    # --- Core ---
    log_level: str = Field(default="INFO", description="Python logging level")

    # --- Site rules ---
    rules_path: str | None = Field(default=None, description="JSON file of site rules keyed by hostname")

    # --- Staleness watching ---
    staleness_interval: float = Field(default=1.0, description="Seconds between location checks")
    watch_pattern: str = Field(
        default=r"(www\.)?flickr\.com/photos/",
        description="Regex on the page location selecting pages that change location in place",
    )

    # --- External records (oEmbed) ---
    user_agent: str = "pagemeta/0.1"
    oembed_retries: int = Field(default=3, description="Attempts on transient network errors")


settings = PageMetaSettings()
