"""
Core business logic module.

Contains the exception hierarchy, job lifecycle rules, the job store and
the poll scheduler.
"""

from exam_tracker.core.exceptions import (
    ExamTrackerException,
    FetchError,
    FetchErrorKind,
    NetworkError,
    NotFoundError,
    PollingExhausted,
    ServerError,
    ValidationError,
)
from exam_tracker.core.job_store import JobStore
from exam_tracker.core.poll_scheduler import PollScheduler
from exam_tracker.core.scheduling import AsyncioScheduler, Scheduler
from exam_tracker.core.subscription import JobUpdate, Subscription

__all__ = [
    # Exceptions
    "ExamTrackerException",
    "FetchError",
    "FetchErrorKind",
    "NetworkError",
    "NotFoundError",
    "PollingExhausted",
    "ServerError",
    "ValidationError",
    # Business logic
    "AsyncioScheduler",
    "JobStore",
    "JobUpdate",
    "PollScheduler",
    "Scheduler",
    "Subscription",
]
