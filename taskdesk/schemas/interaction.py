from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from taskdesk.schemas.common import FileRef, UserLink

SenderRole = Literal["student", "teacher"]


class InteractionMessage(BaseModel):
    id: Optional[str] = Field(default=None, alias="_id")
    sender: UserLink
    sender_role: SenderRole = Field(alias="senderRole")
    message: str
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    read_by_teacher: bool = Field(default=False, alias="readByTeacher")
    read_by_student: bool = Field(default=False, alias="readByStudent")

    class Config:
        populate_by_name = True


class GroupMessage(BaseModel):
    id: Optional[str] = Field(default=None, alias="_id")
    sender: UserLink
    sender_role: SenderRole = Field(alias="senderRole")
    message: Optional[str] = None
    attachments: list[FileRef] = Field(default_factory=list)
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")

    class Config:
        populate_by_name = True


class InteractionThread(BaseModel):
    task_id: Optional[str] = Field(default=None, alias="taskId")
    student_id: Optional[str] = Field(default=None, alias="studentId")
    interaction_enabled: bool = Field(default=False, alias="interactionEnabled")
    messages: list[InteractionMessage] = Field(default_factory=list)

    class Config:
        populate_by_name = True


class GroupThread(BaseModel):
    task_id: Optional[str] = Field(default=None, alias="taskId")
    submitted_students: Optional[int] = Field(default=None, alias="submittedStudents")
    messages: list[GroupMessage] = Field(default_factory=list)

    class Config:
        populate_by_name = True
