"""Service for explicit task management on an executive's calendar."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from tms import config
from tms.domain.errors import InvalidInput, NotFound
from tms.domain.models import Executive, Task, TaskInput
from tms.repos.memory import ExecutiveRepository
from tms.services.overlap import intervals_overlap

logger = logging.getLogger(__name__)


def build_task(payload: TaskInput, created_by: str | None = None) -> Task:
    """Validate one task payload, defaulting the end to start + the default duration."""
    if not payload.title or not payload.title.strip():
        raise InvalidInput("Task title is required")
    if payload.start_time is None:
        raise InvalidInput("Task start_time is required")

    end_time = payload.end_time
    if end_time is None:
        end_time = payload.start_time + timedelta(minutes=config.DEFAULT_TASK_MINUTES)
    elif end_time <= payload.start_time:
        raise InvalidInput("end_time must be after start_time")

    return Task(
        title=payload.title.strip(),
        start_time=payload.start_time,
        end_time=end_time,
        description=payload.description or "",
        created_by=created_by,
    )


def add_tasks(
    executive_repo: ExecutiveRepository,
    executive_id: str,
    payloads: list[TaskInput],
    created_by: str | None = None,
) -> list[Task]:
    """Append one or many tasks. The whole batch is validated before any is stored."""
    tasks = [build_task(p, created_by) for p in payloads]

    executive = executive_repo.require(executive_id)
    for task in tasks:
        executive.add_task(task)
    executive_repo.save(executive)

    logger.info("Added %d task(s) to executive %s", len(tasks), executive_id)
    return tasks


def tasks_for_window(executive: Executive, start: datetime, end: datetime) -> list[Task]:
    tasks = [
        t for t in executive.tasks if intervals_overlap(start, end, t.start_time, t.end_time)
    ]
    return sorted(tasks, key=lambda t: t.start_time)


def delete_task(executive_repo: ExecutiveRepository, executive_id: str, task_id: str) -> None:
    executive = executive_repo.require(executive_id)
    if not executive.remove_task(task_id):
        raise NotFound("Task not found")
    executive_repo.save(executive)
    logger.info("Deleted task %s of executive %s", task_id, executive_id)
