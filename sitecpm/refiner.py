"""
Gemini-backed schedule refiner.

Uses the google-genai library. The generator only sees a callable that takes a
prompt and returns text, so this module is the sole place that knows about the
model client.
"""

from __future__ import annotations

import logging
from typing import Optional

from google import genai

from .config import Config, get_config

logger = logging.getLogger(__name__)


class GeminiRefiner:
    """Callable refiner: prompt in, model text out."""

    def __init__(self, api_key: str, model_name: str = "gemini-1.5-pro", client: Optional[genai.Client] = None):
        self.model_name = model_name
        self.client = client if client is not None else genai.Client(api_key=api_key)

    def __call__(self, prompt: str) -> str:
        response = self.client.models.generate_content(model=self.model_name, contents=prompt)
        return response.text or ""


def build_refiner(config: Optional[Config] = None) -> Optional[GeminiRefiner]:
    """Refiner for the given config, or None when disabled or unkeyed."""
    config = config or get_config()
    if not config.refiner_available:
        logger.debug("Schedule refiner disabled (ai_enabled=%s, key set=%s)",
                     config.ai_enabled, bool(config.google_api_key))
        return None
    return GeminiRefiner(api_key=config.google_api_key, model_name=config.model_name)
