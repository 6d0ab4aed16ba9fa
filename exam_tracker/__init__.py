"""
Exam job tracker.

Client-side lifecycle tracking and polling for exam grading jobs.
Views construct one JobTracker per session and share it.
"""

from exam_tracker.application.services.job_tracker import JobTracker
from exam_tracker.dependencies import create_job_tracker
from exam_tracker.models.job import HistoryQuery, Job, JobState

__all__ = [
    "HistoryQuery",
    "Job",
    "JobState",
    "JobTracker",
    "create_job_tracker",
]
