from __future__ import annotations

import re
from typing import Iterable, List

CONJUNCTIONS = (
    ", and ", ", then ", " and ", " then ", " also ",
    "然后", "还要", "顺便", "另外", "同时", "接着", "并且",
)

STOP_WORDS = frozenset({
    "the", "a", "an", "to", "for", "my", "this", "that", "with", "and", "or",
    "is", "it", "i", "me", "as", "please", "task", "tasks", "mark", "one",
})

_SENTENCE_END = re.compile(r"[.!?。！？]")
_TOKEN_STRIP = ".,!?;:\"'()[]{}。，！？；："


def split_segments(text: str, conjunctions: Iterable[str] = CONJUNCTIONS) -> List[str]:
    """Split an utterance into candidate intent segments on conjunction markers."""
    segments = [text]
    for conjunction in conjunctions:
        next_segments: List[str] = []
        for segment in segments:
            next_segments.extend(segment.split(conjunction))
        segments = next_segments
    return [s.strip() for s in segments if s.strip()]


def extract_title(text: str, max_length: int = 50) -> str:
    """First sentence of `text`, truncated on a word boundary with an ellipsis."""
    first = _SENTENCE_END.split(text, maxsplit=1)[0].strip()
    if not first:
        first = text.strip()
    if len(first) <= max_length:
        return first

    truncated = first[: max_length - 3]
    last_space = truncated.rfind(" ")
    if last_space > 0:
        truncated = truncated[:last_space]
    return truncated.rstrip() + "..."


def extract_keywords(text: str, exclude: Iterable[str] = (), limit: int = 5) -> List[str]:
    excluded = STOP_WORDS | {w.lower() for w in exclude}
    keywords: List[str] = []
    for raw in text.lower().split():
        token = raw.strip(_TOKEN_STRIP)
        if len(token) <= 2 or token in excluded:
            continue
        keywords.append(token)
    return keywords[:limit]
