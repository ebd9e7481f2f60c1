from __future__ import annotations


class IntentEngineError(Exception):
    """Base class for errors raised by the intent engine."""


class ParseFailure(IntentEngineError):
    """Remote parsing failed (credential, network, schema). Always recovered by the fallback parser."""


class NoMatchError(IntentEngineError):
    def __init__(self, target_description: str):
        self.target_description = target_description
        super().__init__(
            f"I couldn't find a task matching '{target_description}'. Could you be more specific?"
        )


class SaveError(IntentEngineError):
    """A store write failed while committing an intent."""


class TaskTransitionError(IntentEngineError):
    """A lifecycle action is not allowed from the task's current state."""


class InvalidStateError(IntentEngineError):
    """An operation was invoked in a flow state that does not support it."""
