from __future__ import annotations
import json
import re
from .base import LLMProvider

_QUOTED = re.compile(r'"(.+)"', re.DOTALL)

class MockProvider(LLMProvider):
    name = "mock"

    def generate(self, *, system: str, user: str, model: str | None = None) -> str:
        """
        Returns a dummy JSON response based on the prompt content.
        Offline stand-in for demos: the quoted command becomes a single flexible create task.
        """
        match = _QUOTED.search(user)
        if "Parse this voice command" in user and match:
            command = match.group(1).strip()
            return json.dumps({
                "create_tasks": [
                    {
                        "title": command[:50],
                        "schedule_description": None,
                        "schedule_start": None,
                        "schedule_end": None,
                        "deadline": None,
                        "priority": "normal",
                        "note": None,
                        "is_flexible": True,
                    }
                ],
                "update_tasks": [],
                "confidence": 0.5,
            })

        # Default fallback
        return "{}"
