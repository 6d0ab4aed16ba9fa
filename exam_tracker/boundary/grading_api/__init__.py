"""
Grading backend boundary layer.

- StatusFetcher: async HTTP client for status, history, saved files, references and reprocess

Dependencies: httpx
System role: Backend adapter for job tracking
"""

from exam_tracker.boundary.grading_api.status_fetcher import StatusFetcher

__all__ = ["StatusFetcher"]
