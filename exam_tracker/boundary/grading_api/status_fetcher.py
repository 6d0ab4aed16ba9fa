"""
Grading backend status fetcher.

Stateless async boundary calls against the grading backend: one request
per call, no retries. Every failure surfaces as a FetchError subclass so
the poll scheduler can classify it.

Endpoints (relative to GRADING_API_BASE_URL):
- GET  /status/{job_id}      -> job snapshot, 404 if unknown
- GET  /history              -> {"history": [...], "has_more": bool}
- GET  /files                -> {"files": [...], "has_more": bool}
- GET  /references           -> [reference, ...]
- GET  /references/{id}      -> reference, 404 if unknown
- POST /reprocess/{job_id}   -> {"new_job_id": "..."}

Dependencies: httpx, pydantic, exam_tracker.configs, exam_tracker.core.exceptions
System role: HTTP client for job lifecycle tracking
"""

import logging
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import ValidationError as PydanticValidationError

from exam_tracker.boundary.grading_api.api_schemas import (
    HistoryResponse,
    ReprocessResponse,
    SavedFilesResponse,
    normalize_job_payload,
)
from exam_tracker.configs import get_settings
from exam_tracker.configs.grading_api import GradingApiSettings
from exam_tracker.core.exceptions import (
    NetworkError,
    NotFoundError,
    ServerError,
    ValidationError,
)
from exam_tracker.models.common import Page
from exam_tracker.models.job import HistoryQuery, Job
from exam_tracker.models.reference import Reference
from exam_tracker.models.saved_file import SavedFile

logger = logging.getLogger(__name__)


class StatusFetcher:
    """
    Async client for the grading backend.

    Owns its httpx.AsyncClient unless one is injected. Use as an async
    context manager or call aclose() when done.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        settings: GradingApiSettings | None = None,
    ) -> None:
        """
        Initialize status fetcher.

        Args:
            client: Pre-configured AsyncClient (its base_url is used as-is)
            settings: API settings (defaults to get_settings().grading_api)
        """
        self.config = settings or get_settings().grading_api
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=httpx.Timeout(
                self.config.request_timeout_seconds,
                connect=self.config.connect_timeout_seconds,
            ),
            headers={"Accept": "application/json"},
        )

    async def __aenter__(self) -> "StatusFetcher":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this fetcher created it."""
        if self._owns_client:
            await self._client.aclose()

    async def fetch_status(self, job_id: str) -> Job:
        """
        Fetch the current snapshot of one job.

        Args:
            job_id: Job identifier

        Returns:
            Job: Complete snapshot

        Raises:
            NotFoundError: Backend does not know the job
            NetworkError: Transport failure or timeout
            ServerError: 5xx, unexpected status, or malformed payload
        """
        _require_job_id(job_id)
        payload = await self._request("GET", f"/status/{quote(job_id, safe='')}", job_id=job_id)
        job = _parse_job(payload, job_id=job_id)
        if job.job_id != job_id:
            raise ServerError(
                f"Status for {job_id} returned snapshot of {job.job_id}",
                job_id=job_id,
            )
        return job

    async def fetch_history(self, query: HistoryQuery | None = None) -> Page[Job]:
        """
        Fetch one page of job history, newest first.

        Records that fail validation are skipped with a warning rather than
        failing the whole page.

        Args:
            query: State filter and page selection

        Returns:
            Page[Job]: Jobs on the page and the continuation flag

        Raises:
            NetworkError: Transport failure or timeout
            ServerError: 5xx, unexpected status, or malformed envelope
        """
        query = query or HistoryQuery()
        params: dict[str, Any] = {"page": query.page, "page_size": query.page_size}
        if query.state is not None:
            params["status"] = query.state.value

        payload = await self._request("GET", "/history", params=params)
        envelope = _parse_envelope(HistoryResponse, payload, "history")

        jobs = []
        for record in envelope.history:
            try:
                jobs.append(Job.model_validate(normalize_job_payload(record)))
            except PydanticValidationError as e:
                logger.warning(
                    f"{__name__}:fetch_history - Skipping invalid record "
                    f"{record.get('job_id', '<no id>')}: {e.error_count()} errors"
                )
        jobs.sort(key=lambda job: job.created_at, reverse=True)
        return Page[Job](items=jobs, page=query.page, has_more=envelope.has_more)

    async def fetch_saved_files(self, page: int = 1, page_size: int = 20) -> Page[SavedFile]:
        """
        Fetch one page of previously uploaded exam files.

        Args:
            page: 1-based page number
            page_size: Files per page

        Returns:
            Page[SavedFile]: Files on the page and the continuation flag

        Raises:
            NetworkError: Transport failure or timeout
            ServerError: 5xx, unexpected status, or malformed payload
        """
        if page < 1 or page_size < 1:
            raise ValidationError("page and page_size must be positive", field="page")
        payload = await self._request("GET", "/files", params={"page": page, "page_size": page_size})
        envelope = _parse_envelope(SavedFilesResponse, payload, "files")
        try:
            files = [SavedFile.model_validate(record) for record in envelope.files]
        except PydanticValidationError as e:
            raise ServerError(f"Malformed saved file record: {e.error_count()} errors") from e
        return Page[SavedFile](items=files, page=page, has_more=envelope.has_more)

    async def fetch_references(self) -> list[Reference]:
        """
        Fetch every reference answer key known to the backend.

        A response that is not a JSON list is treated as no keys.

        Returns:
            list[Reference]: Answer keys in backend order

        Raises:
            NetworkError: Transport failure or timeout
            ServerError: 5xx, unexpected status, or malformed record
        """
        payload = await self._request("GET", "/references")
        if not isinstance(payload, list):
            logger.warning(
                f"{__name__}:fetch_references - Expected a list, got {type(payload).__name__}"
            )
            return []
        try:
            return [Reference.model_validate(record) for record in payload]
        except PydanticValidationError as e:
            raise ServerError(f"Malformed reference record: {e.error_count()} errors") from e

    async def fetch_reference(self, reference_id: str) -> Reference:
        """
        Fetch one reference answer key.

        Args:
            reference_id: Answer key identifier

        Raises:
            NotFoundError: Backend does not know the key
            NetworkError: Transport failure or timeout
            ServerError: 5xx, unexpected status, or malformed payload
        """
        if not reference_id or not reference_id.strip():
            raise ValidationError("reference_id must be a non-empty string", field="reference_id")
        payload = await self._request("GET", f"/references/{quote(reference_id, safe='')}")
        try:
            return Reference.model_validate(payload)
        except PydanticValidationError as e:
            raise ServerError(f"Malformed reference {reference_id}: {e.error_count()} errors") from e

    async def reprocess(self, job_id: str) -> str:
        """
        Ask the backend to create a new job from the file behind ``job_id``.

        Returns as soon as the backend has assigned the new id; the new job
        starts in its initial state and is not watched automatically.

        Args:
            job_id: Existing job whose file should be graded again

        Returns:
            str: Identifier of the new job

        Raises:
            NotFoundError: Backend does not know the source job
            NetworkError: Transport failure or timeout
            ServerError: 5xx, unexpected status, or malformed payload
        """
        _require_job_id(job_id)
        payload = await self._request("POST", f"/reprocess/{quote(job_id, safe='')}", job_id=job_id)
        response = _parse_envelope(ReprocessResponse, payload, "reprocess")
        if response.new_job_id == job_id:
            raise ServerError("Reprocess returned the source job id", job_id=job_id)
        logger.info(f"{__name__}:reprocess - Job {job_id} reprocessed as {response.new_job_id}")
        return response.new_job_id

    async def _request(
        self,
        method: str,
        path: str,
        job_id: str | None = None,
        **kwargs: Any,
    ) -> Any:
        """Perform one request and map every failure onto the FetchError taxonomy."""
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise NetworkError(f"Request timed out: {method} {path}", job_id=job_id) from e
        except httpx.TransportError as e:
            raise NetworkError(f"Backend unreachable: {method} {path}: {e}", job_id=job_id) from e

        if response.status_code == httpx.codes.NOT_FOUND:
            raise NotFoundError(
                f"Not found: {job_id or path}",
                job_id=job_id,
                status_code=response.status_code,
            )
        if response.is_error:
            raise ServerError(
                f"Backend returned {response.status_code} for {method} {path}",
                job_id=job_id,
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise ServerError(
                f"Backend returned invalid JSON for {method} {path}",
                job_id=job_id,
                status_code=response.status_code,
            ) from e


def _require_job_id(job_id: str) -> None:
    if not job_id or not job_id.strip():
        raise ValidationError("job_id must be a non-empty string", field="job_id")


def _parse_job(payload: Any, job_id: str) -> Job:
    if not isinstance(payload, dict):
        raise ServerError("Status payload is not a JSON object", job_id=job_id)
    try:
        return Job.model_validate(normalize_job_payload(payload))
    except PydanticValidationError as e:
        raise ServerError(
            f"Malformed status payload: {e.error_count()} errors",
            job_id=job_id,
            details={"errors": e.errors(include_url=False)},
        ) from e


def _parse_envelope(model: type, payload: Any, what: str):
    try:
        return model.model_validate(payload)
    except PydanticValidationError as e:
        raise ServerError(f"Malformed {what} response: {e.error_count()} errors") from e
