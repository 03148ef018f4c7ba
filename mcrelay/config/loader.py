"""
Configuration loading and persistence utilities.

Design goals:
    - Env-first, config.json as a fallback source
    - Stable persistence format (camelCase on disk, snake_case in memory)
    - Fail fast: missing credentials are fatal
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import ValidationError

from mcrelay.config.schema import Config
from mcrelay.errors import ConfigError
from mcrelay.utils.helpers import ensure_dir, get_data_path


# =============================
# Paths
# =============================

def get_config_path() -> Path:
    """
    Return default configuration file path.

    Default:
        ~/.mcrelay/config.json
    """
    return get_data_path() / "config.json"


# =============================
# Load & Save
# =============================

def load_config(
    config_path: Path | None = None,
    env_file: Path | str | None = ".env",
) -> Config:
    """
    Build the configuration from env, .env and config.json.

    Args:
        config_path: Optional explicit config.json path.
        env_file: dotenv file to read; None disables it.

    Raises:
        ConfigError: a required value is missing or malformed, or the
            config file cannot be parsed.
    """
    path = config_path or get_config_path()
    file_data: dict[str, Any] = {}

    if path.exists():
        try:
            with path.open("r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Cannot read config file {path}: {e}") from e

        if not isinstance(raw, dict):
            raise ConfigError(f"Config file {path} must contain a JSON object")

        file_data = convert_keys(raw)
        logger.debug("Config file found | path={}", path)

    try:
        config = Config(_env_file=env_file, **file_data)
    except ValidationError as e:
        raise ConfigError(_describe(e)) from e

    logger.success("Config loaded | channel={} api={}", config.discord_channel, config.mc_api_base)
    return config


def save_config(config: Config, config_path: Path | None = None) -> Path:
    """
    Persist configuration to disk as camelCase JSON.
    """
    path = config_path or get_config_path()
    ensure_dir(path.parent)

    data = convert_to_camel(config.model_dump())

    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)

    logger.success("Config saved | path={}", path)
    return path


def _describe(err: ValidationError) -> str:
    problems = []
    for item in err.errors():
        field = "__".join(str(p) for p in item["loc"]).upper()
        if item["type"] == "missing":
            problems.append(f"{field} is required")
        else:
            problems.append(f"{field}: {item['msg']}")
    return "Invalid configuration: " + "; ".join(problems)


# =============================
# Key Conversion
# =============================

def convert_keys(data: Any) -> Any:
    """
    Convert camelCase → snake_case recursively.
    """
    if isinstance(data, dict):
        return {camel_to_snake(k): convert_keys(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_keys(x) for x in data]
    return data


def convert_to_camel(data: Any) -> Any:
    """
    Convert snake_case → camelCase recursively.
    """
    if isinstance(data, dict):
        return {snake_to_camel(k): convert_to_camel(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_to_camel(x) for x in data]
    return data


# =============================
# Naming helpers
# =============================

def camel_to_snake(name: str) -> str:
    """
    Convert camelCase → snake_case.

    Example:
        reconnectDelay → reconnect_delay
    """
    buf = []
    for i, ch in enumerate(name):
        if ch.isupper() and i > 0:
            buf.append("_")
        buf.append(ch.lower())
    return "".join(buf)


def snake_to_camel(name: str) -> str:
    """
    Convert snake_case → camelCase.

    Example:
        reconnect_delay → reconnectDelay
    """
    head, *tail = name.split("_")
    return head + "".join(w.capitalize() for w in tail)
