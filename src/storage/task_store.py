from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from rhythm.errors import SaveError
from rhythm.models import Task

logger = logging.getLogger(__name__)


def _window_sort_key(task: Task):
    # tasks with a window first, earliest first; the rest keep insertion order
    if task.window_start is None:
        return (1, 0.0)
    return (0, task.window_start.timestamp())


class TaskStore(ABC):
    """Persistence seam used by the engine. Write failures raise SaveError."""

    @abstractmethod
    def all_tasks(self) -> List[Task]:
        raise NotImplementedError

    @abstractmethod
    def insert(self, task: Task) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, task: Task) -> None:
        raise NotImplementedError

    @abstractmethod
    def save(self) -> None:
        raise NotImplementedError

    def get(self, task_id: str) -> Optional[Task]:
        return next((t for t in self.all_tasks() if t.id == task_id), None)

    def fetch_open_tasks(self, limit: int = 20) -> List[Task]:
        open_tasks = [t for t in self.all_tasks() if t.is_open]
        return sorted(open_tasks, key=_window_sort_key)[:limit]


class InMemoryTaskStore(TaskStore):
    def __init__(self, tasks: Optional[List[Task]] = None):
        self._tasks: Dict[str, Task] = {t.id: t for t in tasks or []}

    def all_tasks(self) -> List[Task]:
        return list(self._tasks.values())

    def insert(self, task: Task) -> None:
        self._tasks[task.id] = task

    def delete(self, task: Task) -> None:
        self._tasks.pop(task.id, None)

    def save(self) -> None:
        return None


class JsonTaskStore(InMemoryTaskStore):
    """Tasks kept in memory and written to a JSON file on save()."""

    def __init__(self, path: str = "data/tasks.json"):
        self.path = Path(path)
        super().__init__(self._load())

    def _load(self) -> List[Task]:
        try:
            if not self.path.exists():
                return []
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return [Task.model_validate(item) for item in data.get("tasks", [])]
        except Exception as e:
            logger.warning(f"Could not read task file {self.path}, starting empty: {e}")
            return []

    def save(self) -> None:
        payload = {
            "saved_at": datetime.now().isoformat(),
            "tasks": [t.model_dump(mode="json") for t in self._tasks.values()],
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(
                json.dumps(payload, ensure_ascii=False, indent=2),
                encoding="utf-8",
            )
        except OSError as e:
            raise SaveError(f"Couldn't save: {e}") from e
