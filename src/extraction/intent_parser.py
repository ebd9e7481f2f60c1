"""
Intent parsing: a remote language-model strategy and an offline fallback
behind one `parse()` that never raises.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from datetime import datetime
from typing import Optional, Sequence

from pydantic import ValidationError

from extraction.fallback_parser import FallbackIntentParser
from llm.llm_client import LLMClient
from llm.prompts import build_system_prompt, build_user_prompt
from llm.schemas import LLMIntentResponse
from rhythm.config import EngineConfig
from rhythm.errors import ParseFailure
from rhythm.models import Task, VoiceIntentResult

logger = logging.getLogger(__name__)


class RemoteIntentParser:
    def __init__(self, llm_client: LLMClient, config: Optional[EngineConfig] = None):
        self.llm = llm_client
        self.config = config or llm_client.config

    @property
    def available(self) -> bool:
        return self.llm.available

    def parse(
        self,
        utterance: str,
        existing_tasks: Sequence[Task] = (),
        reference: Optional[datetime] = None,
    ) -> VoiceIntentResult:
        """Raises ParseFailure on any problem; the caller decides what to do."""
        reference = reference or datetime.now()
        context = list(existing_tasks)[: self.config.context_task_limit]

        payload = self.llm.complete_json(
            system=build_system_prompt(context, reference, limit=self.config.context_task_limit),
            user=build_user_prompt(utterance),
        )
        try:
            response = LLMIntentResponse.model_validate(payload)
        except ValidationError as e:
            raise ParseFailure(f"response does not match intent schema: {e.error_count()} errors") from e

        return response.to_voice_intent_result(raw_utterance=utterance)


class IntentParser:
    """Tries the remote parser within a hard time budget, otherwise falls back.

    Callers only see a VoiceIntentResult; the fallback path is recognisable
    solely by its lower confidence.
    """

    def __init__(
        self,
        remote: Optional[RemoteIntentParser] = None,
        fallback: Optional[FallbackIntentParser] = None,
        config: Optional[EngineConfig] = None,
    ):
        self.config = config or EngineConfig()
        self.remote = remote
        self.fallback = fallback or FallbackIntentParser(self.config)

    @classmethod
    def from_config(cls, config: EngineConfig) -> "IntentParser":
        remote = None
        if config.remote_enabled:
            remote = RemoteIntentParser(LLMClient(config=config), config)
        return cls(remote=remote, fallback=FallbackIntentParser(config), config=config)

    def parse(
        self,
        utterance: str,
        existing_tasks: Sequence[Task] = (),
        reference: Optional[datetime] = None,
    ) -> VoiceIntentResult:
        reference = reference or datetime.now()
        context = list(existing_tasks)[: self.config.context_task_limit]

        if self.remote is not None and self.remote.available and utterance.strip():
            try:
                return self._parse_remote(utterance, context, reference)
            except ParseFailure as e:
                logger.warning(f"Remote intent parse failed, using fallback: {e}")
            except Exception as e:
                logger.exception(f"Unexpected error in remote intent parse, using fallback: {e}")
        else:
            logger.info("Remote intent parser unavailable, using fallback")

        return self.fallback.parse(utterance, context, reference)

    def _parse_remote(
        self, utterance: str, context: Sequence[Task], reference: datetime
    ) -> VoiceIntentResult:
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="intent-parse")
        try:
            future = executor.submit(self.remote.parse, utterance, context, reference)
            try:
                return future.result(timeout=self.config.llm_timeout_s)
            except FutureTimeout as e:
                raise ParseFailure(
                    f"remote parse timed out after {self.config.llm_timeout_s:.0f}s"
                ) from e
        finally:
            # never wait on a hung request
            executor.shutdown(wait=False)
