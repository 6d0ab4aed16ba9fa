"""
Shared test fixtures and configuration for entire test suite.

Provides: manual clock, scripted status fetcher, job snapshot factory,
in-process fake grading backend, polling settings
Dependencies: pytest, pytest_asyncio, fastapi, httpx
System role: Test infrastructure and fixture management
"""

import asyncio
import itertools
from datetime import datetime, timedelta, timezone
from typing import Any, Callable
from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse

from exam_tracker.configs.grading_api import GradingApiSettings
from exam_tracker.configs.polling import PollingSettings
from exam_tracker.core.job_store import JobStore
from exam_tracker.models.common import Page
from exam_tracker.models.job import Job, JobState

EPOCH = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Manual clock
# ---------------------------------------------------------------------------


class _FakeCall:
    """Pending callback on the manual clock."""

    def __init__(self, when: float, seq: int, callback: Callable[[], None]) -> None:
        self.when = when
        self.seq = seq
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeClock:
    """Scheduler whose time only moves when a test calls advance()."""

    def __init__(self, start: datetime = EPOCH) -> None:
        self._start = start
        self._elapsed = 0.0
        self._seq = itertools.count()
        self._calls: list[_FakeCall] = []

    def now(self) -> datetime:
        return self._start + timedelta(seconds=self._elapsed)

    def call_later(self, delay: float, callback: Callable[[], None]) -> _FakeCall:
        call = _FakeCall(self._elapsed + delay, next(self._seq), callback)
        self._calls.append(call)
        return call

    @property
    def pending(self) -> list[_FakeCall]:
        return [c for c in self._calls if not c.cancelled and not c.fired]

    @property
    def pending_delays(self) -> list[float]:
        """Remaining seconds until each pending call fires."""
        return sorted(c.when - self._elapsed for c in self.pending)

    def advance(self, seconds: float) -> None:
        """Move time forward, firing due callbacks in order."""
        target = self._elapsed + seconds
        while True:
            due = [c for c in self.pending if c.when <= target]
            if not due:
                break
            call = min(due, key=lambda c: (c.when, c.seq))
            self._elapsed = call.when
            call.fired = True
            call.callback()
        self._elapsed = target


# ---------------------------------------------------------------------------
# Scripted fetcher
# ---------------------------------------------------------------------------


class ScriptedFetcher:
    """
    Status fetcher double with per-job scripted outcomes.

    Each outcome is a Job (returned), an exception (raised) or an
    asyncio.Future (awaited, to hold a request in flight). The last
    outcome repeats once the script runs out.
    """

    def __init__(self) -> None:
        self._scripts: dict[str, list[Any]] = {}
        self.status_calls: list[str] = []
        self.reprocess = AsyncMock()
        self.fetch_history = AsyncMock(return_value=Page[Job](items=[]))
        self.fetch_saved_files = AsyncMock()
        self.fetch_references = AsyncMock(return_value=[])
        self.fetch_reference = AsyncMock()
        self.aclose = AsyncMock()

    def script(self, job_id: str, *outcomes: Any) -> None:
        self._scripts[job_id] = list(outcomes)

    def calls_for(self, job_id: str) -> int:
        return self.status_calls.count(job_id)

    async def fetch_status(self, job_id: str) -> Job:
        self.status_calls.append(job_id)
        script = self._scripts.get(job_id)
        if not script:
            raise AssertionError(f"no scripted outcome for {job_id}")
        outcome = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(outcome, asyncio.Future):
            outcome = await outcome
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


# ---------------------------------------------------------------------------
# Fake grading backend (FastAPI, served through httpx.ASGITransport)
# ---------------------------------------------------------------------------


class FakeGradingBackend:
    """In-memory grading backend exposing the status/history/files/references/reprocess API."""

    def __init__(self) -> None:
        self.jobs: dict[str, dict[str, Any]] = {}
        self.files: list[dict[str, Any]] = []
        self.references: list[dict[str, Any]] = []
        self.status_calls: list[str] = []
        self.forced_status_codes: list[int] = []
        self._tick = itertools.count(1)
        self._reprocess_seq = itertools.count(1)
        self.app = self._build_app()

    def _timestamp(self) -> str:
        return (EPOCH + timedelta(minutes=next(self._tick))).isoformat()

    def add_job(self, job_id: str, state: str = "uploaded", **fields: Any) -> dict[str, Any]:
        now = self._timestamp()
        record = {
            "job_id": job_id,
            "state": state,
            "created_at": fields.pop("created_at", now),
            "updated_at": now,
            "student_name": "Ada Lovelace",
            "student_id": "S-001",
            "exam_name": "Midterm",
            "subject": "Mathematics",
            **fields,
        }
        self.jobs[job_id] = record
        return record

    def advance_job(self, job_id: str, state: str, **fields: Any) -> None:
        record = self.jobs[job_id]
        record.update(state=state, updated_at=self._timestamp(), **fields)

    def _build_app(self) -> FastAPI:
        app = FastAPI()

        @app.get("/api/status/{job_id}")
        async def get_status(job_id: str):
            self.status_calls.append(job_id)
            if self.forced_status_codes:
                code = self.forced_status_codes.pop(0)
                return JSONResponse(status_code=code, content={"detail": "forced"})
            if job_id not in self.jobs:
                raise HTTPException(status_code=404, detail=f"Job {job_id} not found")
            return self.jobs[job_id]

        @app.get("/api/history")
        async def get_history(status: str | None = None, page: int = 1, page_size: int = 20):
            records = [r for r in self.jobs.values() if status is None or r["state"] == status]
            records.sort(key=lambda r: r["created_at"], reverse=True)
            start = (page - 1) * page_size
            chunk = records[start:start + page_size]
            history = []
            for record in chunk:
                # History rows carry grade fields flat on the record
                flat = {k: v for k, v in record.items() if k not in ("result", "updated_at")}
                if record.get("result"):
                    flat.update({k: v for k, v in record["result"].items() if k != "questions"})
                history.append(flat)
            return {"history": history, "has_more": start + page_size < len(records)}

        @app.get("/api/files")
        async def get_files(page: int = 1, page_size: int = 20):
            start = (page - 1) * page_size
            return {
                "files": self.files[start:start + page_size],
                "has_more": start + page_size < len(self.files),
            }

        @app.get("/api/references")
        async def get_references():
            return self.references

        @app.get("/api/references/{reference_id}")
        async def get_reference(reference_id: str):
            for record in self.references:
                if record.get("reference_id") == reference_id:
                    return record
            raise HTTPException(status_code=404, detail=f"Reference {reference_id} not found")

        @app.post("/api/reprocess/{job_id}")
        async def reprocess(job_id: str):
            if job_id not in self.jobs:
                raise HTTPException(status_code=404, detail=f"Job {job_id} not found")
            source = self.jobs[job_id]
            new_job_id = f"{job_id}-r{next(self._reprocess_seq)}"
            self.add_job(
                new_job_id,
                state="uploaded",
                source_job_id=job_id,
                file_name=source.get("file_name"),
            )
            return {"new_job_id": new_job_id}

        return app


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_clock() -> FakeClock:
    """Manual clock for deterministic polling."""
    return FakeClock()


@pytest.fixture
def scripted_fetcher() -> ScriptedFetcher:
    """Status fetcher double with scripted outcomes."""
    return ScriptedFetcher()


@pytest.fixture
def job_store() -> JobStore:
    """Empty job store."""
    return JobStore()


@pytest.fixture
def polling_settings() -> PollingSettings:
    """Polling tunables with round numbers for timing assertions."""
    return PollingSettings(
        interval_seconds=3.0,
        backoff_base_seconds=1.0,
        backoff_max_seconds=8.0,
        max_consecutive_failures=5,
    )


@pytest.fixture
def make_job() -> Callable[..., Job]:
    """
    Factory for job snapshots.

    Usage:
        job = make_job("job-1", JobState.PROCESSING, minutes=2)
    """

    def _make(
        job_id: str = "job-1",
        state: JobState = JobState.UPLOADED,
        minutes: int = 0,
        created_minutes: int = 0,
        **fields: Any,
    ) -> Job:
        return Job(
            job_id=job_id,
            state=state,
            created_at=EPOCH + timedelta(minutes=created_minutes),
            last_updated_at=EPOCH + timedelta(minutes=minutes),
            **fields,
        )

    return _make


@pytest.fixture
def settle() -> Callable[[], Any]:
    """Let pending event-loop tasks run to completion."""

    async def _settle(rounds: int = 10) -> None:
        for _ in range(rounds):
            await asyncio.sleep(0)

    return _settle


@pytest.fixture
def fake_backend() -> FakeGradingBackend:
    """Fresh in-memory grading backend."""
    return FakeGradingBackend()


@pytest.fixture
def api_settings() -> GradingApiSettings:
    """API settings pointing at the in-process backend."""
    return GradingApiSettings(base_url="http://testserver/api", request_timeout_seconds=2.0)


@pytest_asyncio.fixture
async def backend_client(fake_backend: FakeGradingBackend):
    """AsyncClient bound to the fake backend app."""
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=fake_backend.app),
        base_url="http://testserver/api",
    ) as client:
        yield client
