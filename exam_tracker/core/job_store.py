"""
In-memory job record store.

Authoritative client-side mapping from job id to its last known snapshot.
Every view reads from here; only the poll scheduler and history merges
write to it, both on the event loop thread.

Dependencies: exam_tracker.models.job, exam_tracker.core.job_lifecycle
System role: Single source of job state for all views
"""

import logging

from exam_tracker.core.job_lifecycle import is_expected_transition
from exam_tracker.models.job import HistoryQuery, Job

logger = logging.getLogger(__name__)


class JobStore:
    """
    Job snapshot store.

    Snapshots are replaced whole, never merged field by field. Records are
    kept for the lifetime of the process.
    """

    def __init__(self) -> None:
        """Initialize an empty store."""
        self._jobs: dict[str, Job] = {}

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._jobs

    def get(self, job_id: str) -> Job | None:
        """
        Get the last known snapshot of a job.

        Args:
            job_id: Job identifier

        Returns:
            Job if known, None otherwise
        """
        return self._jobs.get(job_id)

    def put(self, job: Job) -> bool:
        """
        Replace the stored snapshot unconditionally.

        Used for client-side snapshots (polling exhausted) that must land
        regardless of timestamps. Storing a snapshot equal to the current
        one is a no-op.

        Args:
            job: Complete snapshot

        Returns:
            bool: True if the stored record changed
        """
        current = self._jobs.get(job.job_id)
        if current == job:
            return False
        self._jobs[job.job_id] = job
        return True

    def merge(self, job: Job) -> bool:
        """
        Replace the stored snapshot only if the incoming one is at least as fresh.

        Used for history results and for poll results, which may race each
        other. Freshness rules, in order:

        - A synthetic polling-exhausted snapshot always yields to backend data
        - A record without a reported update timestamp wins only if it moves
          a non-terminal cached snapshot forward along the pipeline
        - Otherwise the newer ``last_updated_at`` wins (ties go to the
          incoming snapshot); a cached record without a reported timestamp
          always yields to one that has it

        Args:
            job: Complete snapshot

        Returns:
            bool: True if the stored record changed
        """
        current = self._jobs.get(job.job_id)
        if current is None or current.polling_exhausted:
            return self.put(job)

        if not job.updated_at_reported:
            if (
                current.is_terminal
                or current.state is job.state
                or not is_expected_transition(current.state, job.state)
            ):
                logger.debug(
                    f"{__name__}:merge - Kept {current.state.value} snapshot for {job.job_id}; "
                    f"untimestamped {job.state.value} record does not advance it"
                )
                return False
            return self.put(job)

        if current.updated_at_reported and job.last_updated_at < current.last_updated_at:
            logger.debug(
                f"{__name__}:merge - Kept newer snapshot for {job.job_id} "
                f"({current.last_updated_at.isoformat()} > {job.last_updated_at.isoformat()})"
            )
            return False
        return self.put(job)

    def list_jobs(self, query: HistoryQuery | None = None) -> list[Job]:
        """
        List known jobs, newest first.

        Only the state filter of the query applies; paging is a backend
        concern.

        Args:
            query: Optional filter

        Returns:
            list[Job]: Matching jobs ordered by created_at descending
        """
        jobs = self._jobs.values()
        if query is not None:
            jobs = [job for job in jobs if query.matches(job)]
        return sorted(jobs, key=lambda job: job.created_at, reverse=True)
