"""JSON-backed task list; the sink voice commands add tasks to."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict
from pathlib import Path
from typing import Dict, List, Optional

from config import CONFIG_DIR
from models import Task, TaskDraft

logger = logging.getLogger(__name__)


class JsonTaskStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or CONFIG_DIR / "tasks.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def add(self, draft: TaskDraft) -> Task:
        tasks = self._read_all()
        task = Task(id=self._new_id(tasks), **asdict(draft))
        tasks[task.id] = task
        self._write_all(tasks)
        logger.debug("Stored task %s: %s", task.id, task.title)
        return task

    def get(self, task_id: str) -> Optional[Task]:
        return self._read_all().get(task_id)

    def list_tasks(self, date: str | None = None) -> List[Task]:
        tasks = list(self._read_all().values())
        if date is not None:
            tasks = [task for task in tasks if task.date == date]
        return tasks

    def _new_id(self, tasks: Dict[str, Task]) -> str:
        stamp = int(time.time() * 1000)
        while str(stamp) in tasks:
            stamp += 1
        return str(stamp)

    def _read_all(self) -> Dict[str, Task]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Unreadable task store %s: %s", self._path, exc)
            return {}
        if not isinstance(data, dict):
            return {}
        tasks: Dict[str, Task] = {}
        for key, value in data.items():
            try:
                tasks[key] = Task(**value)
            except TypeError:
                logger.warning("Skipping malformed task %s", key)
        return tasks

    def _write_all(self, tasks: Dict[str, Task]) -> None:
        data = {key: asdict(task) for key, task in tasks.items()}
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
