from __future__ import annotations

import json
import logging
from typing import Any, Optional

import httpx

from llm.providers.base import LLMProvider
from llm.providers.mock_provider import MockProvider
from llm.providers.ollama_provider import OllamaProvider
from llm.providers.openai_provider import OpenAIProvider
from rhythm.config import EngineConfig
from rhythm.errors import ParseFailure

logger = logging.getLogger(__name__)


def build_provider(config: EngineConfig) -> Optional[LLMProvider]:
    """Provider named by the config, or None when the remote path is disabled."""
    if not config.remote_enabled:
        return None
    if config.llm_provider == "openai":
        return OpenAIProvider(config)
    if config.llm_provider == "ollama":
        return OllamaProvider(config)
    if config.llm_provider == "mock":
        return MockProvider()
    return None


def extract_json_object(text: str) -> dict[str, Any]:
    """Pull the first JSON object out of model output (code fences and chatter tolerated)."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        cleaned = "\n".join(lines)

    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end <= start:
        raise ParseFailure("no JSON object in model output")

    try:
        data = json.loads(cleaned[start : end + 1])
    except json.JSONDecodeError as e:
        raise ParseFailure(f"malformed JSON from model: {e}") from e

    if not isinstance(data, dict):
        raise ParseFailure("model output is not a JSON object")
    return data


class LLMClient:
    """Thin wrapper around a provider: one call, JSON out, every failure a ParseFailure."""

    def __init__(self, provider: Optional[LLMProvider] = None, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig.from_env()
        self.provider = provider if provider is not None else build_provider(self.config)

    @property
    def available(self) -> bool:
        return self.provider is not None

    def complete(self, *, system: str, user: str) -> str:
        if self.provider is None:
            raise ParseFailure("no LLM provider configured")
        name = getattr(self.provider, "name", "llm")
        logger.debug(f"Calling {name} provider")
        try:
            return self.provider.generate(system=system, user=user)
        except httpx.HTTPStatusError as e:
            raise ParseFailure(f"{name} server error ({e.response.status_code})") from e
        except httpx.HTTPError as e:
            raise ParseFailure(f"{name} network error: {e}") from e
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise ParseFailure(f"unexpected {name} response shape: {e}") from e

    def complete_json(self, *, system: str, user: str) -> dict[str, Any]:
        return extract_json_object(self.complete(system=system, user=user))
