from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from taskdesk.schemas.common import ClassroomLink, FileRef, Upload, UserLink, ref_id
from taskdesk.schemas.interaction import GroupMessage
from taskdesk.schemas.submission import Submission

TaskLifecycle = Literal["active", "completed", "archived"]


class Task(BaseModel):
    id: str = Field(alias="_id")
    title: str
    description: Optional[str] = None
    instructions: Optional[str] = None
    classroom: Optional[ClassroomLink] = None
    teacher: Optional[UserLink] = None
    deadline: Optional[datetime] = None
    max_submissions: int = Field(default=1, ge=1, alias="maxSubmissions")
    attachments: list[FileRef] = Field(default_factory=list)
    status: TaskLifecycle = "active"
    submissions: list[Submission] = Field(default_factory=list)
    group_interaction_messages: list[GroupMessage] = Field(
        default_factory=list, alias="groupInteractionMessages"
    )
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")

    class Config:
        populate_by_name = True

    @property
    def classroom_id(self) -> Optional[str]:
        return ref_id(self.classroom)


class TaskForm(BaseModel):
    """Multipart form for ``POST /tasks`` and ``PUT /tasks/:taskId``.

    Updates send the whole form: description, instructions and attachments
    are replaced together.
    """

    title: str
    description: str = ""
    classroom: str
    deadline: Optional[datetime] = None
    instructions: str = ""
    max_submissions: int = Field(default=1, ge=1)
    attachments: list[Upload] = Field(default_factory=list)


class RemarksResult(BaseModel):
    message: Optional[str] = None
    task: Task
