from __future__ import annotations
import httpx
from rhythm.config import EngineConfig
from .base import LLMProvider

class OllamaProvider(LLMProvider):
    name = "ollama"

    def __init__(self, config: EngineConfig | None = None):
        config = config or EngineConfig.from_env()
        self.model = config.ollama_model
        self.base_url = config.ollama_base_url.rstrip("/")
        self.timeout_s = config.llm_timeout_s
        self.temperature = config.llm_temperature

    def generate(self, *, system: str, user: str, model: str | None = None) -> str:
        url = f"{self.base_url}/api/chat"
        payload = {
            "model": model or self.model,
            "stream": False,
            "format": "json",
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "options": {"temperature": self.temperature},
        }

        with httpx.Client(timeout=self.timeout_s) as client:
            r = client.post(url, json=payload)
            r.raise_for_status()
            data = r.json()

        return data["message"]["content"]
