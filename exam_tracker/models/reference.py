"""
Reference answer key schema.

A teacher-uploaded answer key that grading jobs are assessed against.
Read-only on the client; uploading keys is handled elsewhere.

Dependencies: pydantic
System role: Reference answer keys view data contract
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class Reference(BaseModel):
    """Reference answer key metadata."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    reference_id: str = Field(min_length=1, description="Backend-assigned identifier")
    exam_name: str = Field(description="Exam the key belongs to")
    subject: str | None = None
    teacher_name: str | None = None
    teacher_id: str | None = None
    total_marks: float | None = Field(default=None, ge=0, description="Maximum marks for the exam")
    uploaded_at: datetime | None = None
