from datetime import datetime

from sqlalchemy import DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from stockbook.database import Base


class SkuCounter(Base):
    """Next SKU number per item type. Only ever incremented server-side."""

    __tablename__ = "sku_counters"

    item_type: Mapped[str] = mapped_column(String, primary_key=True)  # PRODUCT, CONSIGNMENT
    next_value: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())
