from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator

from taskdesk.schemas.common import FileRef, Upload, UserLink, ref_id
from taskdesk.schemas.interaction import InteractionMessage

SubmissionStatus = Literal["draft", "submitted"]


class Submission(BaseModel):
    id: Optional[str] = Field(default=None, alias="_id")
    student: UserLink
    status: SubmissionStatus = "submitted"
    content: Optional[str] = None
    files: list[FileRef] = Field(default_factory=list)
    drafted_at: Optional[datetime] = Field(default=None, alias="draftedAt")
    submitted_at: Optional[datetime] = Field(default=None, alias="submittedAt")
    is_auto_submitted: bool = Field(default=False, alias="isAutoSubmitted")
    auto_submitted_at: Optional[datetime] = Field(default=None, alias="autoSubmittedAt")
    remarks: Optional[str] = None
    grade: Optional[float] = None
    feedback: Optional[str] = None
    interaction_messages: list[InteractionMessage] = Field(
        default_factory=list, alias="interactionMessages"
    )

    class Config:
        populate_by_name = True

    @model_validator(mode="after")
    def _auto_submission_is_final(self):
        if self.is_auto_submitted and self.status != "submitted":
            raise ValueError("auto-submitted work must have status 'submitted'")
        return self

    @property
    def student_id(self) -> Optional[str]:
        return ref_id(self.student)

    @property
    def interaction_enabled(self) -> bool:
        # private messaging opens once the work is finalized
        return self.status == "submitted"


class MySubmissionStatus(BaseModel):
    task_id: str = Field(alias="taskId")
    task_title: Optional[str] = Field(default=None, alias="taskTitle")
    user_id: str = Field(alias="userId")
    has_submission: bool = Field(alias="hasSubmission")
    submission: Optional[Submission] = None
    is_overdue: bool = Field(default=False, alias="isOverdue")
    deadline: Optional[datetime] = None

    class Config:
        populate_by_name = True

    @property
    def interaction_enabled(self) -> bool:
        return bool(self.has_submission and self.submission and self.submission.interaction_enabled)


class SubmissionDraft(BaseModel):
    """Form sent to ``POST /tasks/:taskId/submit``."""

    content: str = ""
    status: SubmissionStatus = "draft"
    files_to_remove: list[str] = Field(default_factory=list)
    new_files: list[Upload] = Field(default_factory=list)

    @property
    def finalize(self) -> bool:
        return self.status == "submitted"
