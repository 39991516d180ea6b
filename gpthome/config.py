"""Configuration read from the environment and an optional .env file."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

from dotenv import load_dotenv

_INT_PATTERN = re.compile(r"[+-]?[0-9]+")
_TRUE_WORDS = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE_WORDS = {"0", "f", "F", "FALSE", "false", "False"}


@dataclass
class ServerConfig:
    port: int
    host: str
    mode: str
    read_timeout: timedelta
    write_timeout: timedelta


@dataclass
class HomeAssistantConfig:
    url: str
    token: str
    timeout: int


@dataclass
class LLMConfig:
    model_path: str
    model_type: str
    max_tokens: int
    temperature: float
    top_p: float
    top_k: int
    context_length: int


@dataclass
class StorageConfig:
    type: str
    path: str
    in_memory: bool


@dataclass
class Config:
    server: ServerConfig
    home_assistant: HomeAssistantConfig
    llm: LLMConfig
    storage: StorageConfig
    log_level: str


def get_env(key: str, default: str) -> str:
    """Return the variable's value, or the default when unset or empty."""
    return os.environ.get(key) or default


def get_env_as_int(key: str, default: int) -> int:
    """Return the variable as a decimal integer, or the default."""
    value = os.environ.get(key, "")
    if _INT_PATTERN.fullmatch(value):
        return int(value)
    return default


def get_env_as_float(key: str, default: float) -> float:
    """Return the variable as a float, or the default."""
    value = os.environ.get(key, "")
    if not value or value != value.strip() or "_" in value:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def get_env_as_bool(key: str, default: bool) -> bool:
    """Return the variable as a boolean, or the default."""
    value = os.environ.get(key, "")
    if value in _TRUE_WORDS:
        return True
    if value in _FALSE_WORDS:
        return False
    return default


def load() -> Config:
    """Build the configuration, loading ./.env first if it exists."""
    load_dotenv(Path.cwd() / ".env")
    return Config(
        server=ServerConfig(
            port=get_env_as_int("SERVER_PORT", 8080),
            host=get_env("SERVER_HOST", "0.0.0.0"),
            mode=get_env("SERVER_MODE", "debug"),
            read_timeout=timedelta(seconds=get_env_as_int("SERVER_READ_TIMEOUT", 10)),
            write_timeout=timedelta(seconds=get_env_as_int("SERVER_WRITE_TIMEOUT", 10)),
        ),
        home_assistant=HomeAssistantConfig(
            url=get_env("HA_URL", "http://homeassistant.local:8123"),
            token=get_env("HA_TOKEN", ""),
            timeout=get_env_as_int("HA_TIMEOUT", 30),
        ),
        llm=LLMConfig(
            model_path=get_env("LLM_MODEL_PATH", "./models/tinyllama-1.1b-chat-q4_0.bin"),
            model_type=get_env("LLM_MODEL_TYPE", "tinyllama"),
            max_tokens=get_env_as_int("LLM_MAX_TOKENS", 512),
            temperature=get_env_as_float("LLM_TEMPERATURE", 0.7),
            top_p=get_env_as_float("LLM_TOP_P", 0.9),
            top_k=get_env_as_int("LLM_TOP_K", 40),
            context_length=get_env_as_int("LLM_CONTEXT_LENGTH", 2048),
        ),
        storage=StorageConfig(
            type=get_env("STORAGE_TYPE", "memory"),
            path=get_env("STORAGE_PATH", "./data"),
            in_memory=get_env_as_bool("STORAGE_IN_MEMORY", True),
        ),
        log_level=get_env("LOG_LEVEL", "info"),
    )