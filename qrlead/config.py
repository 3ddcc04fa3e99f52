"""
Runtime settings for the extraction pipeline.

Loaded from an optional YAML file (same shape as ``config/example.yaml``)
with environment variables taking precedence for credentials and toggles.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from .errors import ConfigError


BROWSER_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/140.0.0.0 Safari/537.36"
)
VENDOR_MARKER = "__savedQrCodeParams"


class FetchSettings(BaseModel):
    enabled: bool = True
    timeout_s: float = 15.0
    user_agent: str = BROWSER_UA
    accept_language: str = "en-US,en;q=0.9"
    respect_robots: bool = False


class BrowserSettings(BaseModel):
    mode: Literal["off", "local", "remote"] = "off"
    ws_endpoint: Optional[str] = None
    navigation_timeout_ms: int = 30000
    settle_ms: int = 3000
    attempts: int = Field(default=3, ge=1)
    backoff_s: float = 1.0
    user_agent: str = BROWSER_UA

    @property
    def configured(self) -> bool:
        if self.mode == "remote":
            return bool(self.ws_endpoint)
        return self.mode == "local"


class AISettings(BaseModel):
    enabled: bool = True
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    timeout_s: float = 15.0

    @property
    def configured(self) -> bool:
        return self.enabled and bool(self.openai_api_key or self.gemini_api_key)


class Settings(BaseModel):
    fetch: FetchSettings = Field(default_factory=FetchSettings)
    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    ai: AISettings = Field(default_factory=AISettings)
    vendor_marker: str = VENDOR_MARKER
    deadline_s: Optional[float] = None
    log_level: str = "WARNING"


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _apply_env(data: dict) -> dict:
    ai = data.setdefault("ai", {})
    browser = data.setdefault("browser", {})
    fetch = data.setdefault("fetch", {})
    if os.environ.get("OPENAI_API_KEY"):
        ai["openai_api_key"] = os.environ["OPENAI_API_KEY"]
    if os.environ.get("GEMINI_API_KEY"):
        ai["gemini_api_key"] = os.environ["GEMINI_API_KEY"]
    if os.environ.get("QRLEAD_BROWSER_MODE"):
        browser["mode"] = os.environ["QRLEAD_BROWSER_MODE"].strip().lower()
    if os.environ.get("QRLEAD_BROWSER_WS"):
        browser["ws_endpoint"] = os.environ["QRLEAD_BROWSER_WS"]
        browser.setdefault("mode", "remote")
    if os.environ.get("QRLEAD_DIRECT_FETCH"):
        fetch["enabled"] = _env_flag(os.environ["QRLEAD_DIRECT_FETCH"])
    if os.environ.get("QRLEAD_LOG_LEVEL"):
        data["log_level"] = os.environ["QRLEAD_LOG_LEVEL"]
    return data


def load_settings(path: str | Path | None = None, *, use_env: bool = True) -> Settings:
    """Build ``Settings`` from an optional YAML file plus environment overrides."""
    data: dict = {}
    if path is not None:
        p = Path(path)
        if not p.is_file():
            raise ConfigError(f"config file not found: {p}")
        try:
            with p.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid YAML in {p}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"config root must be a mapping: {p}")
    if use_env:
        data = _apply_env(data)
    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(str(e)) from e
