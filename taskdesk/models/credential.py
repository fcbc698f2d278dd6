from datetime import datetime

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from taskdesk.db.base_class import Base


class StoredCredential(Base):
    __tablename__ = "credentials"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    token: Mapped[str] = mapped_column(String(2048), nullable=False)
    user_id: Mapped[str | None] = mapped_column(String(64))
    role: Mapped[str] = mapped_column(String(50), nullable=False, default="student")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
