"""Blocking wait on asynchronous remote tasks."""

import logging
import time
from typing import Callable, Optional

from ..errors import EmptyResult, PollTimeout, RemoteTaskFailed, TransientPollError
from ..models.task import PollPolicy, TaskSnapshot, TaskStatus
from .events import RunEvents

logger = logging.getLogger(__name__)

PollFn = Callable[[str], TaskSnapshot]


class AsyncTaskPoller:
    """Turns "submit, then poll until terminal" into a single blocking call.

    The poller sleeps ``policy.interval`` before every poll, including the
    first, and gives up with `PollTimeout` after ``policy.max_attempts`` polls.
    A poll that raises `TransientPollError` is logged and counted against the
    budget rather than aborting the wait.
    """

    def __init__(
        self,
        policy: PollPolicy,
        sleep: Callable[[float], None] = time.sleep,
        events: Optional[RunEvents] = None,
    ) -> None:
        self._policy = policy
        self._sleep = sleep
        self._events = events

    @property
    def policy(self) -> PollPolicy:
        return self._policy

    def await_completion(self, task_id: str, poll: PollFn) -> str:
        """Poll ``task_id`` until it succeeds, fails, or the budget runs out.

        Args:
            task_id: Remote task identifier.
            poll: Callable returning the current snapshot of a task.

        Returns:
            The task's result locator.

        Raises:
            PollTimeout: No terminal state within the attempt budget.
            RemoteTaskFailed: The service reported a terminal failure.
            EmptyResult: The task succeeded without a result locator.
        """
        max_attempts = self._policy.max_attempts

        for attempt in range(1, max_attempts + 1):
            self._sleep(self._policy.interval)

            try:
                snapshot = poll(task_id)
            except TransientPollError as e:
                logger.warning(f"Poll {attempt}/{max_attempts} for task {task_id} failed: {e}")
                self._emit("poll_error", task_id=task_id, attempt=attempt, error=str(e))
                continue

            if snapshot.status.is_terminal:
                self._emit("task_terminal", task_id=task_id, attempt=attempt, status=snapshot.status.value)
                return self.conclude(snapshot)

            logger.info(
                f"Task {task_id} status: {snapshot.raw_status or snapshot.status.value} "
                f"(poll {attempt}/{max_attempts})"
            )

        self._emit("task_timeout", task_id=task_id, attempts=max_attempts)
        raise PollTimeout(task_id, max_attempts)

    def resolve(self, submitted: TaskSnapshot, poll: Optional[PollFn] = None) -> str:
        """Return the result of a submitted task, polling only if it is not terminal.

        Synchronous services hand back an already-succeeded snapshot, which
        resolves without sleeping.
        """
        if submitted.status.is_terminal:
            return self.conclude(submitted)
        if poll is None:
            raise TypeError(f"Task {submitted.task_id} is {submitted.status.value} and no poll function was given")
        return self.await_completion(submitted.task_id, poll)

    @staticmethod
    def conclude(snapshot: TaskSnapshot) -> str:
        """Turn a terminal snapshot into its single result locator."""
        if snapshot.status == TaskStatus.FAILED:
            raise RemoteTaskFailed(snapshot.task_id, snapshot.message or snapshot.raw_status)
        if snapshot.status != TaskStatus.SUCCEEDED:
            raise ValueError(f"Task {snapshot.task_id} is not terminal: {snapshot.status.value}")
        if not snapshot.result_urls:
            raise EmptyResult(snapshot.task_id)
        return snapshot.result_urls[0]

    def _emit(self, name: str, **fields) -> None:
        if self._events is not None:
            self._events.emit(name, level=logging.DEBUG, **fields)
