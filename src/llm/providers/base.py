from __future__ import annotations
from abc import ABC, abstractmethod

class LLMProvider(ABC):
    """One chat model answering a single system + user exchange."""

    name: str = "llm"

    @abstractmethod
    def generate(self, *, system: str, user: str) -> str:
        """
        Model output as TEXT; the intent JSON is pulled out of it by LLMClient.
        """
        raise NotImplementedError
