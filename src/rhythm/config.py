from __future__ import annotations

import os
from dataclasses import dataclass


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    return float(raw)


@dataclass(frozen=True)
class EngineConfig:
    """Defaults shared by the time-window calculator, the parsers and the flow.

    Passed explicitly into each component so tests can inject their own hours
    and reference times.
    """

    # snooze presets
    tonight_hour: int = 19
    tomorrow_hour: int = 9
    default_snooze_minutes: int = 15

    # phrase windows used by the fallback parser (start hour, end hour)
    evening_window: tuple[int, int] = (18, 22)
    tomorrow_morning_window: tuple[int, int] = (8, 12)
    afternoon_window: tuple[int, int] = (13, 17)
    later_offset_minutes: int = 60

    # fallback confidences
    fallback_confidence: float = 0.4
    fallback_update_confidence: float = 0.4
    fallback_create_confidence: float = 0.3

    # remote parser
    llm_provider: str = ""
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o-mini"
    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "llama3.1"
    llm_timeout_s: float = 30.0
    llm_temperature: float = 0.3
    llm_max_tokens: int = 1000
    context_task_limit: int = 20

    # notifications
    window_reminder_minutes_before: int = 5

    # storage
    tasks_path: str = "data/tasks.json"
    events_path: str = ""

    @classmethod
    def from_env(cls) -> "EngineConfig":
        api_key = os.getenv("OPENAI_API_KEY", "").strip()
        provider = os.getenv("LLM_PROVIDER", "").strip().lower()
        if not provider and api_key:
            provider = "openai"

        return cls(
            llm_provider=provider,
            openai_api_key=api_key,
            openai_base_url=os.getenv("OPENAI_BASE_URL", cls.openai_base_url).strip(),
            openai_model=os.getenv("OPENAI_MODEL", cls.openai_model).strip(),
            ollama_base_url=os.getenv("OLLAMA_BASE_URL", cls.ollama_base_url).strip(),
            ollama_model=os.getenv("OLLAMA_MODEL", cls.ollama_model).strip(),
            llm_timeout_s=_env_float("LLM_TIMEOUT_S", cls.llm_timeout_s),
            llm_temperature=_env_float("LLM_TEMPERATURE", cls.llm_temperature),
            tasks_path=os.getenv("RHYTHM_TASKS_PATH", cls.tasks_path).strip(),
            events_path=os.getenv("RHYTHM_EVENTS_PATH", "").strip(),
        )

    @property
    def remote_enabled(self) -> bool:
        if self.llm_provider == "openai":
            return bool(self.openai_api_key)
        return self.llm_provider in {"ollama", "mock"}
