"""
Job domain models and schemas.

Snapshot schemas for exam grading jobs as reported by the backend.
A Job is always a complete snapshot for its state and is replaced,
never patched.

Dependencies: pydantic
System role: Job lifecycle data contracts
"""

import enum
from datetime import datetime, timezone

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


class JobState(str, enum.Enum):
    """
    Grading pipeline states, in pipeline order.

    UPLOADED: Paper received, awaiting OCR
    PROCESSING: OCR and page extraction running
    ASSESSING: Answers being scored against the reference
    GENERATING_FEEDBACK: Per-question feedback being written
    COMPLETED: Graded; result populated
    FAILED: Pipeline failed; error populated
    UNKNOWN: Client-only pseudo-state for job ids the backend does not know
    """

    UPLOADED = "uploaded"
    PROCESSING = "processing"
    ASSESSING = "assessing"
    GENERATING_FEEDBACK = "generating_feedback"
    COMPLETED = "completed"
    FAILED = "failed"
    UNKNOWN = "unknown"

    @property
    def is_terminal(self) -> bool:
        """No further backend transition occurs from this state."""
        return self in (JobState.COMPLETED, JobState.FAILED, JobState.UNKNOWN)


class QuestionScore(BaseModel):
    """Marks awarded for one question."""

    model_config = ConfigDict(frozen=True, extra="allow")

    question_id: str = Field(description="Question number or label")
    marks_obtained: float = Field(description="Marks awarded")
    max_marks: float = Field(description="Marks available")
    feedback: str | None = Field(default=None, description="Grader feedback for this question")


class GradingResult(BaseModel):
    """
    Grading outcome of a completed job.

    Extra keys sent by the backend are preserved untouched.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    total_marks_obtained: float | None = Field(default=None, description="Sum of awarded marks")
    total_marks: float | None = Field(default=None, description="Sum of available marks")
    percentage: float | None = Field(default=None, description="Score as a percentage (0-100)")
    grade: str | None = Field(default=None, description="Letter grade (A-F)")
    questions: list[QuestionScore] = Field(default_factory=list, description="Per-question breakdown")


class Job(BaseModel):
    """
    Point-in-time snapshot of one exam grading job.

    Attributes:
        job_id: Opaque backend-assigned identifier
        state: Current pipeline state
        created_at: Submission timestamp (immutable)
        last_updated_at: Timestamp of this snapshot (wire name ``updated_at``)
        source_job_id: Job this one was reprocessed from, if any
        result: Grading outcome; only when state is COMPLETED
        error: Failure reason; only when state is FAILED
        polling_exhausted: True only on the client-side synthetic FAILED
            snapshot written when polling gave up
        updated_at_reported: False when the backend record carried no
            update timestamp and last_updated_at fell back to created_at

    Invariants:
        result and error are mutually exclusive; result implies COMPLETED,
        error implies FAILED. A job is never its own source.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    job_id: str = Field(min_length=1)
    state: JobState
    created_at: datetime
    last_updated_at: datetime = Field(
        validation_alias=AliasChoices("last_updated_at", "updated_at"),
    )
    source_job_id: str | None = None
    result: GradingResult | None = None
    error: str | None = None

    student_name: str | None = None
    student_id: str | None = None
    exam_name: str | None = None
    subject: str | None = None
    file_name: str | None = None

    polling_exhausted: bool = False
    updated_at_reported: bool = True

    @field_validator("created_at", "last_updated_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Backend timestamps may be naive; compare everything in UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode="after")
    def _check_outcome_fields(self) -> "Job":
        if self.state is JobState.UNKNOWN:
            raise ValueError("'unknown' is a client-side pseudo-state, not a job state")
        if self.result is not None and self.error is not None:
            raise ValueError("result and error are mutually exclusive")
        if self.result is not None and self.state is not JobState.COMPLETED:
            raise ValueError(f"result present but state is '{self.state.value}'")
        if self.error is not None and self.state is not JobState.FAILED:
            raise ValueError(f"error present but state is '{self.state.value}'")
        if self.source_job_id is not None and self.source_job_id == self.job_id:
            raise ValueError("a job cannot be reprocessed from itself")
        return self

    @property
    def is_terminal(self) -> bool:
        """Whether this snapshot is in a terminal state."""
        return self.state.is_terminal

    @property
    def is_backend_terminal(self) -> bool:
        """Terminal as reported by the backend (not a client-side give-up)."""
        return self.state.is_terminal and not self.polling_exhausted

    @property
    def is_reprocess(self) -> bool:
        """Whether this job was spawned by reprocessing another one."""
        return self.source_job_id is not None


class HistoryQuery(BaseModel):
    """Filter and page selection over job history, newest first."""

    model_config = ConfigDict(frozen=True)

    state: JobState | None = Field(default=None, description="Only jobs currently in this state")
    page: int = Field(default=1, ge=1, description="1-based page number")
    page_size: int = Field(default=20, ge=1, le=100, description="Jobs per page")

    def matches(self, job: Job) -> bool:
        """Whether a job snapshot passes the state filter."""
        return self.state is None or job.state is self.state
