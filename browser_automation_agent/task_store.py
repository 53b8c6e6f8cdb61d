"""
In-memory task records for the HTTP shell.
"""
import logging
import threading
from typing import Dict, List, Optional

from .errors import TaskAlreadyRunningError, TaskNotFoundError
from .models import AutomationTask, TaskStatus

logger = logging.getLogger(__name__)


class TaskStore:
    """Thread-safe map of task id -> AutomationTask"""

    def __init__(self):
        self._tasks: Dict[str, AutomationTask] = {}
        self._lock = threading.Lock()

    def create(self, url: str, description: str) -> AutomationTask:
        task = AutomationTask(url=url, description=description)
        with self._lock:
            self._tasks[task.id] = task
        logger.info(f"Created task {task.id}: {description}")
        return task

    def list(self) -> List[AutomationTask]:
        with self._lock:
            return list(self._tasks.values())

    def get(self, task_id: str) -> AutomationTask:
        with self._lock:
            task = self._tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def start(self, task_id: str) -> AutomationTask:
        """
        Move a task to in_progress.

        Raises:
            TaskNotFoundError: unknown id
            TaskAlreadyRunningError: the task is already in_progress
        """
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                raise TaskNotFoundError(task_id)
            if task.status == TaskStatus.IN_PROGRESS:
                raise TaskAlreadyRunningError(task_id)
            task.status = TaskStatus.IN_PROGRESS
            task.result = None
            task.error = None
        return task

    def finish(
        self,
        task_id: str,
        succeeded: bool,
        result: Optional[str] = None,
        error: Optional[str] = None,
    ) -> AutomationTask:
        """Record the outcome of an in_progress task"""
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                raise TaskNotFoundError(task_id)
            if task.status != TaskStatus.IN_PROGRESS:
                raise ValueError(f"Task {task_id} is not in progress (status: {task.status.value})")
            task.status = TaskStatus.COMPLETED if succeeded else TaskStatus.FAILED
            task.result = result
            task.error = error
        logger.info(f"Task {task_id} finished: {task.status.value}")
        return task
