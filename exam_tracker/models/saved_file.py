"""
Saved file listing schema.

A previously uploaded exam paper that can be reopened or reprocessed.
Not a complete job snapshot, so it is never merged into the job store.

Dependencies: pydantic
System role: Saved-files view data contract
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from exam_tracker.models.job import JobState


class SavedFile(BaseModel):
    """Uploaded exam paper and the job that last processed it."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    job_id: str = Field(min_length=1, description="Job that processed this file")
    file_name: str = Field(description="Original upload filename")
    file_size: int = Field(default=0, ge=0, description="File size in bytes")
    uploaded_at: datetime | None = Field(default=None, description="Upload timestamp")
    state: JobState = Field(description="State of the processing job")
    student_name: str | None = None
    student_id: str | None = None
    exam_name: str | None = None
    subject: str | None = None
