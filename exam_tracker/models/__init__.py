"""
Domain models.

Pydantic schemas for job snapshots, history queries, listings and answer keys.
"""

from exam_tracker.models.common import Page
from exam_tracker.models.job import (
    GradingResult,
    HistoryQuery,
    Job,
    JobState,
    QuestionScore,
)
from exam_tracker.models.reference import Reference
from exam_tracker.models.saved_file import SavedFile

__all__ = [
    "GradingResult",
    "HistoryQuery",
    "Job",
    "JobState",
    "Page",
    "QuestionScore",
    "Reference",
    "SavedFile",
]
