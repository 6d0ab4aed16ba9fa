"""
Job status poll scheduler.

Runs at most one poll loop per job id, shared by every subscription to
that job. A loop fetches immediately on start, then again after a fixed
interval while the job is non-terminal, backing off exponentially on
failures.

Loop lifecycle:
    1. First subscription attaches -> fetch immediately
    2. Success -> store.merge, schedule next poll (non-terminal), notify
    3. Transient failure -> back off, notify with error
    4. Failure bound reached -> synthetic FAILED snapshot, stop
    5. Terminal state, not-found, or last subscription detached -> stop

A request still in flight when the last subscription detaches is allowed
to finish; its result lands in the store but nothing further is scheduled.

Dependencies: asyncio, tenacity, exam_tracker.core, exam_tracker.models
System role: Polling engine behind the job tracker
"""

import asyncio
import logging
from functools import partial
from typing import Protocol

from tenacity import RetryCallState, wait_exponential
from tenacity.wait import wait_base

from exam_tracker.configs.polling import PollingSettings
from exam_tracker.core.exceptions import FetchError, PollingExhausted, ServerError
from exam_tracker.core.job_lifecycle import is_expected_transition
from exam_tracker.core.job_store import JobStore
from exam_tracker.core.scheduling import AsyncioScheduler, ScheduledCall, Scheduler
from exam_tracker.core.subscription import JobUpdate, Subscription
from exam_tracker.models.job import Job, JobState
from exam_tracker.observability.log_utils import log_job_event, log_job_exception

logger = logging.getLogger(__name__)

POLLING_EXHAUSTED_MESSAGE = "polling exhausted"


class JobStatusSource(Protocol):
    """Anything that can fetch one job snapshot."""

    async def fetch_status(self, job_id: str) -> Job:
        ...


class _PollLoop:
    """Per-job polling state. Owned exclusively by PollScheduler."""

    __slots__ = ("job_id", "subscribers", "timer", "in_flight", "consecutive_failures", "last_error")

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        self.subscribers: list[Subscription] = []
        self.timer: ScheduledCall | None = None
        self.in_flight: asyncio.Task | None = None
        self.consecutive_failures = 0
        self.last_error: FetchError | None = None

    @property
    def running(self) -> bool:
        return self.timer is not None or self.in_flight is not None


class PollScheduler:
    """
    Deduplicating poll scheduler.

    Keeps one _PollLoop per watched job id and fans each result out to the
    loop's subscriptions. All methods must be called on the event loop
    thread.
    """

    def __init__(
        self,
        fetcher: JobStatusSource,
        store: JobStore,
        scheduler: Scheduler | None = None,
        interval_seconds: float = 3.0,
        backoff_base_seconds: float = 1.0,
        backoff_max_seconds: float = 30.0,
        max_consecutive_failures: int = 5,
        backoff: wait_base | None = None,
    ) -> None:
        """
        Initialize poll scheduler.

        Args:
            fetcher: Status source (usually StatusFetcher)
            store: Job store updated with every fetched snapshot
            scheduler: Timer source (defaults to the asyncio loop)
            interval_seconds: Delay between polls of a non-terminal job
            backoff_base_seconds: Delay after the first consecutive failure
            backoff_max_seconds: Cap on the back-off delay
            max_consecutive_failures: Failures after which polling gives up
            backoff: Custom tenacity wait strategy replacing the default
                exponential curve
        """
        self._fetcher = fetcher
        self._store = store
        self._clock = scheduler or AsyncioScheduler()
        self._interval = interval_seconds
        self._max_failures = max_consecutive_failures
        self._backoff = backoff or wait_exponential(
            multiplier=backoff_base_seconds,
            exp_base=2,
            max=backoff_max_seconds,
        )
        self._loops: dict[str, _PollLoop] = {}

    @classmethod
    def from_settings(
        cls,
        fetcher: JobStatusSource,
        store: JobStore,
        settings: PollingSettings,
        scheduler: Scheduler | None = None,
    ) -> "PollScheduler":
        """Build a scheduler from PollingSettings."""
        return cls(
            fetcher,
            store,
            scheduler=scheduler,
            interval_seconds=settings.interval_seconds,
            backoff_base_seconds=settings.backoff_base_seconds,
            backoff_max_seconds=settings.backoff_max_seconds,
            max_consecutive_failures=settings.max_consecutive_failures,
        )

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def attach(self, subscription: Subscription) -> None:
        """
        Attach a subscription to its job's poll loop, starting one if needed.

        The subscription immediately receives the cached snapshot, if any.
        No poll is started when the cached snapshot is backend-terminal.
        Requires a running event loop.

        Args:
            subscription: Live subscription to attach
        """
        job_id = subscription.job_id
        loop = self._loops.get(job_id)
        if loop is None:
            loop = _PollLoop(job_id)
            self._loops[job_id] = loop
        loop.subscribers.append(subscription)

        cached = self._store.get(job_id)
        if cached is not None:
            self._deliver(subscription, JobUpdate(job_id, cached))

        if loop.running:
            log_job_event(
                logger, logging.DEBUG, "Attached to running poll loop", job_id,
                subscribers=len(loop.subscribers),
            )
            return
        if cached is not None and cached.is_backend_terminal:
            log_job_event(logger, logging.DEBUG, "Job already terminal; not polling", job_id, state=cached.state)
            return
        if not subscription.active or subscription not in loop.subscribers:
            # Detached from inside its own first delivery
            return

        loop.consecutive_failures = 0
        loop.last_error = None
        log_job_event(logger, logging.INFO, "Starting poll loop", job_id)
        self._poll_now(loop)

    def detach(self, subscription: Subscription) -> None:
        """
        Detach a subscription. Stops scheduling if it was the last one.

        Safe to call more than once.

        Args:
            subscription: Subscription to remove
        """
        subscription.cancel()
        loop = self._loops.get(subscription.job_id)
        if loop is None or subscription not in loop.subscribers:
            return
        loop.subscribers.remove(subscription)
        if loop.subscribers:
            return

        self._cancel_timer(loop)
        if loop.in_flight is None:
            self._discard(loop)
        log_job_event(
            logger, logging.INFO, "Last subscriber left; poll loop stopped", loop.job_id,
            request_in_flight=loop.in_flight is not None,
        )

    def notify(self, job_id: str, update: JobUpdate) -> None:
        """
        Deliver an update to every subscription of a job.

        Args:
            job_id: Job identifier
            update: Update to deliver
        """
        loop = self._loops.get(job_id)
        if loop is None:
            return
        for subscription in list(loop.subscribers):
            self._deliver(subscription, update)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def is_polling(self, job_id: str) -> bool:
        """Whether a timer or request is pending for the job."""
        loop = self._loops.get(job_id)
        return loop is not None and loop.running

    def subscriber_count(self, job_id: str) -> int:
        loop = self._loops.get(job_id)
        return len(loop.subscribers) if loop is not None else 0

    def watched_job_ids(self) -> list[str]:
        """Job ids with at least one attached subscription."""
        return [job_id for job_id, loop in self._loops.items() if loop.subscribers]

    async def shutdown(self) -> None:
        """Cancel every timer and in-flight request and drop all subscriptions."""
        tasks = []
        for loop in list(self._loops.values()):
            self._cancel_timer(loop)
            for subscription in loop.subscribers:
                subscription.cancel()
            loop.subscribers.clear()
            if loop.in_flight is not None:
                loop.in_flight.cancel()
                tasks.append(loop.in_flight)
        self._loops.clear()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"{__name__}:shutdown - Poll scheduler stopped ({len(tasks)} requests cancelled)")

    # ------------------------------------------------------------------
    # Loop mechanics
    # ------------------------------------------------------------------

    def _poll_now(self, loop: _PollLoop) -> None:
        loop.timer = None
        loop.in_flight = asyncio.get_running_loop().create_task(
            self._poll_once(loop),
            name=f"poll-job-{loop.job_id}",
        )

    def _on_timer(self, loop: _PollLoop) -> None:
        loop.timer = None
        if self._loops.get(loop.job_id) is not loop or not loop.subscribers:
            return
        cached = self._store.get(loop.job_id)
        if cached is not None and cached.is_backend_terminal:
            # Terminal snapshot arrived through another source (history merge)
            log_job_event(logger, logging.DEBUG, "Terminal snapshot already cached; poll loop stopped", loop.job_id)
            return
        self._poll_now(loop)

    async def _poll_once(self, loop: _PollLoop) -> None:
        job_id = loop.job_id
        try:
            job = await self._fetcher.fetch_status(job_id)
        except FetchError as e:
            loop.in_flight = None
            self._handle_failure(loop, e)
            return
        except asyncio.CancelledError:
            loop.in_flight = None
            raise
        except Exception as e:
            loop.in_flight = None
            log_job_exception(logger, "Unexpected error from status source", job_id, e)
            self._handle_failure(
                loop,
                ServerError(f"Unexpected error while fetching status: {e}", job_id=job_id),
            )
            return
        loop.in_flight = None
        self._handle_success(loop, job)

    def _handle_success(self, loop: _PollLoop, job: Job) -> None:
        job_id = loop.job_id
        previous = self._store.get(job_id)
        previous_state = previous.state if previous is not None and not previous.polling_exhausted else None
        if not is_expected_transition(previous_state, job.state):
            log_job_event(
                logger, logging.DEBUG, "Out-of-order transition accepted", job_id,
                previous=previous_state, current=job.state,
            )

        had_error = loop.last_error is not None
        loop.consecutive_failures = 0
        loop.last_error = None
        # A history merge may have stored a newer snapshot while this request was in flight
        changed = self._store.merge(job)
        current = self._store.get(job_id)
        if not changed and current != job:
            log_job_event(
                logger, logging.DEBUG, "Stale poll result ignored", job_id,
                polled=job.state, cached=current.state,
            )

        if not loop.subscribers:
            self._discard(loop)
            return

        if current.is_terminal:
            log_job_event(
                logger, logging.INFO, "Job reached terminal state; poll loop stopped", job_id,
                state=current.state,
            )
        else:
            self._schedule(loop, self._interval)

        if changed or had_error:
            self.notify(job_id, JobUpdate(job_id, current))

    def _handle_failure(self, loop: _PollLoop, error: FetchError) -> None:
        job_id = loop.job_id
        loop.last_error = error

        if not loop.subscribers:
            self._discard(loop)
            return

        if not error.is_transient:
            loop.consecutive_failures = 0
            log_job_event(logger, logging.WARNING, "Job unknown to backend; poll loop stopped", job_id)
            self.notify(job_id, JobUpdate(job_id, self._store.get(job_id), error))
            return

        loop.consecutive_failures += 1
        if loop.consecutive_failures >= self._max_failures:
            attempts = loop.consecutive_failures
            loop.consecutive_failures = 0
            synthetic = self._exhausted_snapshot(job_id)
            self._store.put(synthetic)
            log_job_event(
                logger, logging.WARNING, "Polling exhausted; giving up until re-watched", job_id,
                attempts=attempts, last_error=error.message,
            )
            self.notify(job_id, JobUpdate(job_id, synthetic, PollingExhausted(job_id, attempts, error)))
            return

        delay = self._backoff_delay(loop.consecutive_failures)
        log_job_event(
            logger, logging.WARNING, "Poll failed; backing off", job_id,
            kind=error.kind, attempt=loop.consecutive_failures, delay=f"{delay:.1f}s",
        )
        self._schedule(loop, delay)
        self.notify(job_id, JobUpdate(job_id, self._store.get(job_id), error))

    def _exhausted_snapshot(self, job_id: str) -> Job:
        now = self._clock.now()
        cached = self._store.get(job_id)
        if cached is None:
            return Job(
                job_id=job_id,
                state=JobState.FAILED,
                created_at=now,
                last_updated_at=now,
                error=POLLING_EXHAUSTED_MESSAGE,
                polling_exhausted=True,
            )
        return cached.model_copy(
            update={
                "state": JobState.FAILED,
                "result": None,
                "error": POLLING_EXHAUSTED_MESSAGE,
                "last_updated_at": now,
                "polling_exhausted": True,
            }
        )

    def _backoff_delay(self, failures: int) -> float:
        """Delay after the n-th consecutive failure, from the tenacity wait strategy."""
        # Wait strategies only read attempt_number; no Retrying object drives this loop
        retry_state = RetryCallState(retry_object=None, fn=None, args=(), kwargs={})
        retry_state.attempt_number = failures
        return float(self._backoff(retry_state))

    def _schedule(self, loop: _PollLoop, delay: float) -> None:
        self._cancel_timer(loop)
        loop.timer = self._clock.call_later(delay, partial(self._on_timer, loop))

    @staticmethod
    def _cancel_timer(loop: _PollLoop) -> None:
        if loop.timer is not None:
            loop.timer.cancel()
            loop.timer = None

    def _discard(self, loop: _PollLoop) -> None:
        if self._loops.get(loop.job_id) is loop:
            del self._loops[loop.job_id]

    @staticmethod
    def _deliver(subscription: Subscription, update: JobUpdate) -> None:
        try:
            subscription.deliver(update)
        except Exception as e:
            log_job_exception(logger, "Subscriber callback raised", update.job_id, e)
