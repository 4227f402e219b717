"""
Runtime configuration for the site scheduler.

Single source of truth for:
- the generative-model refiner used by the BOQ schedule generator
- project materialization defaults

All values can be overridden via environment variables (or a local .env).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _get_env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _get_env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass
class Config:
    """
    Runtime configuration.

    Fields default from environment variables but can be overridden by
    constructing Config(...) directly, which is what the tests do.
    """

    google_api_key: Optional[str] = None
    model_name: str = "gemini-1.5-pro"
    ai_enabled: bool = True

    # Longest BOQ excerpt sent to the refiner
    prompt_item_limit: int = 80

    # Shortest project window written when materializing a schedule
    min_project_days: int = 30

    @property
    def refiner_available(self) -> bool:
        return self.ai_enabled and bool(self.google_api_key)

    @classmethod
    def from_env(cls) -> "Config":
        """
        Construct a Config object by reading environment variables.

        Environment variables (all optional):
        - GOOGLE_API_KEY (or GEMINI_API_KEY)
        - SITECPM_MODEL              (default gemini-1.5-pro)
        - SITECPM_AI_ENABLED         (true/false)
        - SITECPM_PROMPT_ITEM_LIMIT  (int)
        - SITECPM_MIN_PROJECT_DAYS   (int)
        """
        return cls(
            google_api_key=os.getenv("GOOGLE_API_KEY") or os.getenv("GEMINI_API_KEY"),
            model_name=os.getenv("SITECPM_MODEL", "gemini-1.5-pro"),
            ai_enabled=_get_env_bool("SITECPM_AI_ENABLED", default=True),
            prompt_item_limit=_get_env_int("SITECPM_PROMPT_ITEM_LIMIT", default=80),
            min_project_days=_get_env_int("SITECPM_MIN_PROJECT_DAYS", default=30),
        )


_DEFAULT_CONFIG: Optional[Config] = None


def get_config(force_reload: bool = False) -> Config:
    """
    Return a process-wide Config instance.

    Use `force_reload=True` if environment variables changed at runtime.
    """
    global _DEFAULT_CONFIG
    if _DEFAULT_CONFIG is None or force_reload:
        _DEFAULT_CONFIG = Config.from_env()
    return _DEFAULT_CONFIG
