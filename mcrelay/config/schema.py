"""
Configuration schema definitions.

Priority:
    env > .env > config.json > defaults
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from mcrelay.bus.queue import DEFAULT_QUEUE_SIZE
from mcrelay.relay.connection import DEFAULT_CHATS_PATH, DEFAULT_RECONNECT_DELAY, to_ws_url


# GUILDS | GUILD_MESSAGES | MESSAGE_CONTENT
DEFAULT_INTENTS = (1 << 0) | (1 << 9) | (1 << 15)


# =============================
# Sections
# =============================

class DiscordConfig(BaseModel):
    """Discord gateway / REST endpoints."""
    gateway_url: str = "wss://gateway.discord.gg/?v=10&encoding=json"
    api_base: str = "https://discord.com/api/v10"
    intents: int = DEFAULT_INTENTS


class RelayConfig(BaseModel):
    """Game server relay tuning."""
    queue_size: int = Field(default=DEFAULT_QUEUE_SIZE, gt=0)
    reconnect_delay: float = Field(default=DEFAULT_RECONNECT_DELAY, ge=0)
    chats_path: str = DEFAULT_CHATS_PATH


# =============================
# Root Config
# =============================

class Config(BaseSettings):
    """
    Root configuration schema.

    The three top-level credentials have no defaults: a bridge without a
    bot token, a channel to watch, or a server to talk to cannot start.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    discord_token: str = Field(min_length=1)
    discord_channel: int = Field(gt=0)
    mc_api_base: str

    discord: DiscordConfig = Field(default_factory=DiscordConfig)
    relay: RelayConfig = Field(default_factory=RelayConfig)

    log_level: str = "INFO"
    log_file: Optional[str] = None

    # -------------------------
    # Validation
    # -------------------------

    @field_validator("mc_api_base")
    @classmethod
    def _check_api_base(cls, value: str) -> str:
        value = value.strip()
        if not value.lower().startswith(("http://", "https://")):
            raise ValueError("must be an http:// or https:// URL")
        return value.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        return value.upper()

    # -------------------------
    # Runtime helpers
    # -------------------------

    @property
    def ws_url(self) -> str:
        """Game server chat stream endpoint."""
        return to_ws_url(self.mc_api_base, self.relay.chats_path)

    # -------------------------
    # Source priority
    # -------------------------

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # init kwargs carry config.json contents, which env must override.
        return env_settings, dotenv_settings, init_settings, file_secret_settings
