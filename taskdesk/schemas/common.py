from datetime import datetime
from typing import Any, Optional, Union

from pydantic import BaseModel, Field


class FileRef(BaseModel):
    id: Optional[str] = Field(default=None, alias="_id")
    original_name: Optional[str] = Field(default=None, alias="originalName")
    filename: Optional[str] = None
    mimetype: Optional[str] = None
    size: Optional[int] = None
    uploaded_at: Optional[datetime] = Field(default=None, alias="uploadedAt")

    class Config:
        populate_by_name = True

    @property
    def display_name(self) -> str:
        return self.original_name or self.filename or ""


class UserRef(BaseModel):
    id: str = Field(alias="_id")
    name: Optional[str] = None
    role: Optional[str] = None

    class Config:
        populate_by_name = True


class ClassroomRef(BaseModel):
    id: str = Field(alias="_id")
    name: Optional[str] = None

    class Config:
        populate_by_name = True


# populated object or bare id, depending on what the server populated
UserLink = Union[UserRef, str]
ClassroomLink = Union[ClassroomRef, str]


def ref_id(ref: Any) -> Optional[str]:
    """Comparable id for a populated object, a raw dict or a bare id."""
    if ref is None:
        return None
    if isinstance(ref, (UserRef, ClassroomRef)):
        return ref.id
    if isinstance(ref, dict):
        value = ref.get("_id") or ref.get("id")
        return str(value) if value else None
    value = str(ref)
    return value or None


class Upload(BaseModel):
    filename: str
    content: bytes
    mimetype: str = "application/octet-stream"

    def as_multipart(self, field: str) -> tuple:
        return (field, (self.filename, self.content, self.mimetype))
