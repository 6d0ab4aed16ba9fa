"""
Dependency wiring.

Factory functions that assemble a JobTracker from settings. Views receive
the tracker explicitly; nothing here is a module-level singleton.

Dependencies: httpx, exam_tracker.configs, exam_tracker.application, exam_tracker.boundary
System role: Composition root for the tracker
"""

import logging

import httpx

from exam_tracker.application.services.job_tracker import JobTracker
from exam_tracker.boundary.grading_api.status_fetcher import StatusFetcher
from exam_tracker.configs import Settings, get_settings
from exam_tracker.core.job_store import JobStore
from exam_tracker.core.scheduling import Scheduler

logger = logging.getLogger(__name__)


def create_status_fetcher(
    settings: Settings | None = None,
    client: httpx.AsyncClient | None = None,
) -> StatusFetcher:
    """
    Create a status fetcher for the configured grading backend.

    Args:
        settings: Client settings (get_settings() if None)
        client: Optional pre-built AsyncClient (e.g. with a test transport)

    Returns:
        StatusFetcher: Fetcher instance
    """
    settings = settings or get_settings()
    return StatusFetcher(client=client, settings=settings.grading_api)


def create_job_tracker(
    settings: Settings | None = None,
    fetcher: StatusFetcher | None = None,
    scheduler: Scheduler | None = None,
    store: JobStore | None = None,
) -> JobTracker:
    """
    Create the per-session job tracker.

    Args:
        settings: Client settings (get_settings() if None)
        fetcher: Status fetcher (built from settings if None)
        scheduler: Timer source (asyncio loop if None)
        store: Job store (fresh if None)

    Returns:
        JobTracker: Tracker to hand to every view
    """
    settings = settings or get_settings()
    fetcher = fetcher or create_status_fetcher(settings)
    logger.info(
        f"{__name__}:create_job_tracker - backend={settings.grading_api.base_url} "
        f"interval={settings.polling.interval_seconds}s "
        f"max_failures={settings.polling.max_consecutive_failures}"
    )
    return JobTracker(
        fetcher=fetcher,
        store=store,
        scheduler=scheduler,
        polling=settings.polling,
    )
