"""
In-memory task data served by the demo backend.

Both transports read from the same TaskStore so that their latencies are
comparable: same payload, same simulated server delay.
"""

import asyncio
import random
from datetime import datetime, timezone
from typing import Optional

from .models import Task, TaskStatus

DEFAULT_TASK_COUNT = 1000
DEFAULT_DELAY_MS = 100.0


def generate_tasks(count: int = DEFAULT_TASK_COUNT, seed: Optional[int] = None) -> list[Task]:
    """Build ``count`` tasks; even-numbered tasks are open, odd ones closed."""
    rng = random.Random(seed)
    now = datetime.now(timezone.utc).isoformat()
    tasks = []
    for i in range(1, count + 1):
        tasks.append(Task(
            name=f"Task name {i}",
            status=TaskStatus.OPEN if i % 2 == 0 else TaskStatus.CLOSED,
            description=(
                f"This is a very detailed description for task {i}. "
                "It contains all the information you need to know about this task."
            ),
            date=now,
            priority=rng.randint(1, 5),
        ))
    return tasks


class TaskStore:
    """Task list plus the artificial delay applied to every read."""

    def __init__(
        self,
        tasks: Optional[list[Task]] = None,
        delay_ms: float = DEFAULT_DELAY_MS,
    ):
        self.tasks = tasks if tasks is not None else generate_tasks()
        self.delay_ms = delay_ms

    def __len__(self) -> int:
        return len(self.tasks)

    async def get_tasks(self, status: Optional[TaskStatus] = None) -> list[Task]:
        """Return tasks, optionally filtered by status, after the delay."""
        if self.delay_ms > 0:
            await asyncio.sleep(self.delay_ms / 1000)
        if status is None:
            return list(self.tasks)
        return [task for task in self.tasks if task.status == status]
