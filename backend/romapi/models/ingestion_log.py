"""
Ingestion log — one row per payload pushed by an automation workflow.

The raw payload is kept verbatim so failed ingestions can be replayed.
"""

import uuid
import datetime
from typing import Any

from sqlalchemy import CheckConstraint, ForeignKey, String
from sqlalchemy.dialects.postgresql import JSONB, UUID, TIMESTAMP
from sqlalchemy.sql import func
from sqlalchemy.orm import Mapped, mapped_column

from romapi.core.database import Base
from romapi.models.enums import IngestionStatus, check_in


class IngestionLog(Base):
    """Audit record for a single ingestion attempt."""

    __tablename__ = "ingestion_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=func.gen_random_uuid(),
    )
    source: Mapped[str] = mapped_column(String(100), nullable=False)
    raw_data: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    processed: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=IngestionStatus.PROCESSING.value,
        server_default=IngestionStatus.PROCESSING.value,
    )
    errors: Mapped[list[str] | None] = mapped_column(JSONB, nullable=True)
    business_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("businesses.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        CheckConstraint(check_in("status", IngestionStatus), name="ck_ingestion_logs_status_valid"),
    )

    def __repr__(self) -> str:
        return f"<IngestionLog id={self.id!s:.8} source={self.source!r} status={self.status}>"
