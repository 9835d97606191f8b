import uuid
from datetime import datetime

from sqlalchemy import DateTime, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from stockbook.database import Base


class ChangeLog(Base):
    """Append-only audit trail of item mutations."""

    __tablename__ = "change_logs"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    entity_type: Mapped[str] = mapped_column(String, nullable=False)  # item, product, consignment
    entity_id: Mapped[str] = mapped_column(String, nullable=False, index=True)  # no FK: survives deletes
    entity_name: Mapped[str] = mapped_column(String, default="")
    entity_sku: Mapped[str] = mapped_column(String, default="")
    action: Mapped[str] = mapped_column(String, nullable=False)  # create, update, delete
    changes: Mapped[str | None] = mapped_column(Text, nullable=True)  # '{"fields": [...]}'
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    user_name: Mapped[str] = mapped_column(String, default="")
    item_type: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), index=True)
