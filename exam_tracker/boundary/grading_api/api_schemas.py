"""
Grading backend wire schemas.

Envelope models for the history, saved-files and reprocess endpoints, and
normalization of raw job payloads before they are validated as Job.

History records carry grade fields flat on the record and may omit
``updated_at``; status records nest them under ``result``. Both shapes
normalize to the same Job snapshot.

Dependencies: pydantic, exam_tracker.models
System role: Wire format adapters for the status fetcher
"""

from typing import Any

from pydantic import BaseModel, Field

from exam_tracker.models.job import JobState

FLAT_RESULT_FIELDS = ("total_marks_obtained", "total_marks", "percentage", "grade")


class HistoryResponse(BaseModel):
    """GET /history envelope."""

    history: list[dict[str, Any]] = Field(default_factory=list)
    has_more: bool = False


class SavedFilesResponse(BaseModel):
    """GET /files envelope."""

    files: list[dict[str, Any]] = Field(default_factory=list)
    has_more: bool = False


class ReprocessResponse(BaseModel):
    """POST /reprocess/{job_id} response."""

    new_job_id: str = Field(min_length=1)


def normalize_job_payload(payload: dict[str, Any]) -> dict[str, Any]:
    """
    Bring a raw job record into the shape Job validates.

    - Missing ``updated_at`` falls back to ``created_at`` and the record is
      flagged ``updated_at_reported=False`` so merges do not rank it by that
      stand-in timestamp
    - Flat grade fields on a completed record are folded into ``result``

    Args:
        payload: Raw JSON object from the backend

    Returns:
        dict: Normalized copy (input is not modified)
    """
    normalized = dict(payload)
    if "updated_at" not in normalized and "last_updated_at" not in normalized:
        normalized["updated_at"] = normalized.get("created_at")
        normalized["updated_at_reported"] = False

    if normalized.get("result") is None and normalized.get("state") == JobState.COMPLETED.value:
        flat = {
            key: normalized[key]
            for key in FLAT_RESULT_FIELDS
            if normalized.get(key) is not None
        }
        if flat:
            normalized["result"] = flat
    return normalized
