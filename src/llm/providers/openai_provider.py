from __future__ import annotations
import httpx
from rhythm.config import EngineConfig
from rhythm.errors import ParseFailure
from .base import LLMProvider

class OpenAIProvider(LLMProvider):
    name = "openai"

    def __init__(self, config: EngineConfig | None = None):
        config = config or EngineConfig.from_env()
        self.api_key = config.openai_api_key
        self.model = config.openai_model
        self.base_url = config.openai_base_url.rstrip("/")
        self.timeout_s = config.llm_timeout_s
        self.temperature = config.llm_temperature
        self.max_tokens = config.llm_max_tokens

        if not self.api_key:
            raise ParseFailure("OPENAI_API_KEY is missing")

    def generate(self, *, system: str, user: str, model: str | None = None) -> str:
        url = f"{self.base_url}/chat/completions"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "model": model or self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "response_format": {"type": "json_object"},
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

        with httpx.Client(timeout=self.timeout_s) as client:
            r = client.post(url, headers=headers, json=payload)
            r.raise_for_status()
            data = r.json()

        return data["choices"][0]["message"]["content"]
