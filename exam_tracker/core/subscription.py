"""
Job subscriptions and the updates delivered to them.

Dependencies: exam_tracker.models.job, exam_tracker.core.exceptions
System role: View-facing notification channel
"""

from dataclasses import dataclass, field
from typing import Callable

from exam_tracker.core.exceptions import ExamTrackerException, NotFoundError, PollingExhausted
from exam_tracker.models.job import Job, JobState


@dataclass(frozen=True)
class JobUpdate:
    """
    One notification for a watched job.

    Successes and failures travel the same channel: ``job`` is the current
    cached snapshot (None if never fetched) and ``error`` is set when the
    latest poll failed.
    """

    job_id: str
    job: Job | None = None
    error: ExamTrackerException | None = None

    @property
    def state(self) -> JobState | None:
        """Current state; UNKNOWN when the backend does not know the job."""
        if isinstance(self.error, NotFoundError):
            return JobState.UNKNOWN
        return self.job.state if self.job is not None else None

    @property
    def is_terminal(self) -> bool:
        """Whether polling for this job has ended on this update."""
        state = self.state
        return state is not None and state.is_terminal

    @property
    def polling_exhausted(self) -> bool:
        """Whether the client gave up polling (re-watch to retry)."""
        if isinstance(self.error, PollingExhausted):
            return True
        return self.job is not None and self.job.polling_exhausted


UpdateCallback = Callable[[JobUpdate], None]


@dataclass(eq=False)
class Subscription:
    """A view's interest in one job. Compared by identity."""

    job_id: str
    callback: UpdateCallback
    active: bool = field(default=True)

    def deliver(self, update: JobUpdate) -> None:
        """Invoke the callback unless the subscription was cancelled."""
        if self.active:
            self.callback(update)

    def cancel(self) -> None:
        self.active = False
