"""Service orchestrators."""

from .job_tracker import JobTracker

__all__ = ["JobTracker"]
