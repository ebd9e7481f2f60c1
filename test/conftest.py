import time
from datetime import datetime

import pytest

from rhythm.errors import SaveError
from storage.task_store import InMemoryTaskStore

NOW = datetime(2026, 3, 10, 14, 0)


class FakeProvider:
    def __init__(self, response_text: str):
        self._response_text = response_text
        self.calls = []

    def generate(self, *, system: str, user: str) -> str:
        self.calls.append((system, user))
        return self._response_text


class RaisingProvider:
    def __init__(self, error: Exception):
        self._error = error

    def generate(self, *, system: str, user: str) -> str:
        raise self._error


class SlowProvider(FakeProvider):
    def __init__(self, response_text: str, delay_s: float):
        super().__init__(response_text)
        self._delay_s = delay_s

    def generate(self, *, system: str, user: str) -> str:
        time.sleep(self._delay_s)
        return super().generate(system=system, user=user)


class FlakyStore(InMemoryTaskStore):
    """Fails save() on the given (1-based) call numbers, dropping the unsaved insert."""

    def __init__(self, fail_on=(), tasks=None):
        super().__init__(tasks)
        self.fail_on = set(fail_on)
        self.save_calls = 0
        self._unsaved = None

    def insert(self, task):
        super().insert(task)
        self._unsaved = task

    def save(self):
        self.save_calls += 1
        unsaved, self._unsaved = self._unsaved, None
        if self.save_calls in self.fail_on:
            if unsaved is not None:
                self.delete(unsaved)
            raise SaveError("Couldn't save: disk full")


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def fake_provider_factory():
    def _make(response_text: str):
        return FakeProvider(response_text)
    return _make


@pytest.fixture
def raising_provider_factory():
    def _make(error: Exception):
        return RaisingProvider(error)
    return _make


@pytest.fixture
def slow_provider_factory():
    def _make(response_text: str, delay_s: float):
        return SlowProvider(response_text, delay_s)
    return _make


@pytest.fixture
def flaky_store_factory():
    def _make(fail_on=(), tasks=None):
        return FlakyStore(fail_on=fail_on, tasks=tasks)
    return _make
