"""
=============================================================================
TASK STORE
=============================================================================

The single owner of task state. Nothing outside this module touches the
underlying list; callers only ever receive copies.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         TaskStore                                   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   add("buy milk")      ──►  [ T1 ]                                  │
    │   add("walk dog")      ──►  [ T1, T2 ]          insertion order      │
    │   toggle(T1.id)        ──►  [ T1*, T2 ]         T1.completed flips   │
    │   list()               ──►  copy of [ T1*, T2 ]                      │
    │                                                                      │
    │   All of the above run under one RLock. The WebSocket hub takes     │
    │   the same lock so that a mutation and the broadcast describing it  │
    │   are one atomic step.                                               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Tasks are never deleted. State lives for the process lifetime only.
"""

import logging
import threading
import uuid
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional

from .errors import NotFoundError, ValidationError


logger = logging.getLogger(__name__)


@dataclass
class Task:
    """A single todo item."""

    id: str
    text: str
    completed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "text": self.text, "completed": self.completed}


class TaskStore:
    """
    Ordered, lock-guarded collection of tasks.

    Usage:
        store = TaskStore()
        task = store.add("buy milk")
        store.toggle(task.id)
        store.list()  # [Task(id=..., text="buy milk", completed=True)]
    """

    def __init__(self, lock: Optional[threading.RLock] = None):
        # Re-entrant: the hub holds it while calling add()/toggle()
        self.lock = lock or threading.RLock()
        self._tasks: List[Task] = []
        self._index: Dict[str, Task] = {}

    def __len__(self) -> int:
        with self.lock:
            return len(self._tasks)

    def add(self, text: Any) -> Task:
        """
        Append a new task.

        Args:
            text: Task text. It is stored trimmed: " buy milk " is saved
                and echoed back as "buy milk", not only checked for blankness.

        Returns:
            A copy of the created task.

        Raises:
            ValidationError: If the text is not a string or is blank.
        """
        if not isinstance(text, str) or not text.strip():
            raise ValidationError("Task text cannot be empty")

        with self.lock:
            task_id = str(uuid.uuid4())
            while task_id in self._index:
                task_id = str(uuid.uuid4())

            task = Task(id=task_id, text=text.strip())
            self._tasks.append(task)
            self._index[task_id] = task
            logger.info(f"Added task {task_id}: {task.text!r}")
            return replace(task)

    def get(self, task_id: str) -> Task:
        """Return a copy of one task, or raise NotFoundError."""
        with self.lock:
            task = self._index.get(task_id)
            if task is None:
                raise NotFoundError(task_id)
            return replace(task)

    def toggle(self, task_id: str) -> Task:
        """
        Flip a task's completed flag.

        Two toggles restore the original value.

        Raises:
            NotFoundError: If no task has this id.
        """
        with self.lock:
            task = self._index.get(task_id)
            if task is None:
                raise NotFoundError(task_id)
            task.completed = not task.completed
            logger.info(f"Toggled task {task_id}: completed={task.completed}")
            return replace(task)

    def list(self) -> List[Task]:
        """Snapshot of all tasks in insertion order."""
        with self.lock:
            return [replace(task) for task in self._tasks]
