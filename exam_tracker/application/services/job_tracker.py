"""
Job tracker service.

Public API used by views: watch a job, reprocess a job, query history,
browse saved files and reference answer keys.
Coordinates the job store, the poll scheduler and the status fetcher.
Construct one tracker per client session and pass it to every view.

Dependencies: exam_tracker.boundary.grading_api, exam_tracker.core, exam_tracker.models
System role: Job lifecycle tracking façade
"""

import logging
from typing import Callable

from exam_tracker.boundary.grading_api.status_fetcher import StatusFetcher
from exam_tracker.configs import get_settings
from exam_tracker.configs.polling import PollingSettings
from exam_tracker.core.exceptions import ValidationError
from exam_tracker.core.job_store import JobStore
from exam_tracker.core.poll_scheduler import PollScheduler
from exam_tracker.core.scheduling import Scheduler
from exam_tracker.core.subscription import JobUpdate, Subscription, UpdateCallback
from exam_tracker.models.common import Page
from exam_tracker.models.job import HistoryQuery, Job
from exam_tracker.models.reference import Reference
from exam_tracker.models.saved_file import SavedFile

logger = logging.getLogger(__name__)


class JobTracker:
    """
    Job tracker façade.

    Every view sees the same JobStore, and every job is polled by at most
    one loop no matter how many views watch it.
    """

    def __init__(
        self,
        fetcher: StatusFetcher,
        store: JobStore | None = None,
        scheduler: Scheduler | None = None,
        polling: PollingSettings | None = None,
    ) -> None:
        """
        Initialize job tracker.

        Args:
            fetcher: Backend status fetcher
            store: Job store (a fresh one if None)
            scheduler: Timer source for polling (asyncio loop if None)
            polling: Polling tunables (from settings if None)
        """
        self.fetcher = fetcher
        # JobStore defines __len__, so an empty store is falsy
        self.store = store if store is not None else JobStore()
        self.poll_scheduler = PollScheduler.from_settings(
            fetcher,
            self.store,
            polling or get_settings().polling,
            scheduler=scheduler,
        )

    async def __aenter__(self) -> "JobTracker":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def watch(self, job_id: str, on_update: UpdateCallback) -> Callable[[], None]:
        """
        Subscribe to updates for a job.

        The callback receives the cached snapshot right away (if any), then a
        JobUpdate for every change and every poll failure. Polling starts
        unless the job is already known to be terminal. Must be called from
        the event loop.

        Args:
            job_id: Job identifier
            on_update: Callback invoked with each JobUpdate

        Returns:
            Callable[[], None]: Unsubscribe function (idempotent)

        Raises:
            ValidationError: If job_id is empty
        """
        _require_job_id(job_id)
        subscription = Subscription(job_id=job_id, callback=on_update)
        self.poll_scheduler.attach(subscription)

        def unsubscribe() -> None:
            self.poll_scheduler.detach(subscription)

        return unsubscribe

    def peek(self, job_id: str) -> Job | None:
        """Last known snapshot of a job, without subscribing."""
        return self.store.get(job_id)

    async def reprocess(self, job_id: str) -> str:
        """
        Create a new job from the file behind an existing one.

        The new job is not watched automatically; call watch() with the
        returned id.

        Args:
            job_id: Source job identifier

        Returns:
            str: New job identifier

        Raises:
            ValidationError: If job_id is empty
            FetchError: If the backend call fails
        """
        _require_job_id(job_id)
        new_job_id = await self.fetcher.reprocess(job_id)
        logger.info(f"{__name__}:reprocess - Reprocess of {job_id} created {new_job_id}")
        return new_job_id

    async def query_history(self, query: HistoryQuery | None = None) -> list[Job]:
        """
        Fetch a page of history and merge it into the store.

        Args:
            query: State filter and page selection

        Returns:
            list[Job]: Freshest known snapshots matching the filter, newest first

        Raises:
            FetchError: If the backend call fails
        """
        page = await self.query_history_page(query)
        return page.items

    async def query_history_page(self, query: HistoryQuery | None = None) -> Page[Job]:
        """
        Fetch a page of history, merge it, and keep the continuation flag.

        Each record is merged by freshness, so a watched job keeps whichever
        of the poll result and the history record is newer. Watchers of a
        job whose record changed are notified.

        Args:
            query: State filter and page selection

        Returns:
            Page[Job]: Merged snapshots matching the filter, newest first

        Raises:
            FetchError: If the backend call fails
        """
        query = query or HistoryQuery()
        page = await self.fetcher.fetch_history(query)

        jobs: list[Job] = []
        for record in page.items:
            if self.store.merge(record):
                self.poll_scheduler.notify(record.job_id, JobUpdate(record.job_id, record))
            current = self.store.get(record.job_id)
            if current is not None and query.matches(current):
                jobs.append(current)
        jobs.sort(key=lambda job: job.created_at, reverse=True)

        logger.debug(
            f"{__name__}:query_history_page - page={page.page} fetched={len(page.items)} "
            f"returned={len(jobs)} has_more={page.has_more}"
        )
        return Page[Job](items=jobs, page=page.page, has_more=page.has_more)

    def local_history(self, query: HistoryQuery | None = None) -> list[Job]:
        """Jobs already in the store matching the filter, newest first. No network."""
        return self.store.list_jobs(query)

    async def list_saved_files(self, page: int = 1, page_size: int = 20) -> Page[SavedFile]:
        """
        List previously uploaded exam files.

        Args:
            page: 1-based page number
            page_size: Files per page

        Returns:
            Page[SavedFile]: Saved files and the continuation flag

        Raises:
            FetchError: If the backend call fails
        """
        return await self.fetcher.fetch_saved_files(page=page, page_size=page_size)

    async def list_references(self) -> list[Reference]:
        """List reference answer keys. Raises FetchError if the backend call fails."""
        return await self.fetcher.fetch_references()

    async def get_reference(self, reference_id: str) -> Reference:
        """
        Fetch one reference answer key.

        Raises:
            NotFoundError: Backend does not know the key
            FetchError: If the backend call fails
        """
        return await self.fetcher.fetch_reference(reference_id)

    def watched_job_ids(self) -> list[str]:
        """Job ids with at least one live subscription."""
        return self.poll_scheduler.watched_job_ids()

    def subscriber_count(self, job_id: str) -> int:
        return self.poll_scheduler.subscriber_count(job_id)

    async def close(self) -> None:
        """Stop all polling and close the backend client."""
        await self.poll_scheduler.shutdown()
        await self.fetcher.aclose()


def _require_job_id(job_id: str) -> None:
    if not job_id or not job_id.strip():
        raise ValidationError("job_id must be a non-empty string", field="job_id")
