import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockbook.database import Base
from stockbook.models.master import Category, Location, Manufacturer, MaterialType, Tag, Unit


class ItemType(str, PyEnum):
    PRODUCT = "PRODUCT"
    CONSIGNMENT = "CONSIGNMENT"


class Item(Base):
    """Unified record for owned products and consigned goods."""

    __tablename__ = "items"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    sku: Mapped[str] = mapped_column(String, unique=True, index=True)
    item_type: Mapped[str] = mapped_column(String, default=ItemType.PRODUCT.value, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    specification: Mapped[str | None] = mapped_column(Text, nullable=True)
    size: Mapped[str | None] = mapped_column(String, nullable=True)
    fabric_color: Mapped[str | None] = mapped_column(Text, nullable=True)
    designer: Mapped[str | None] = mapped_column(String, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, default=0)

    # Consignments never carry a cost price
    cost_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    list_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)

    # Free text, e.g. "2024年5月"
    arrival_date: Mapped[str | None] = mapped_column(String, nullable=True)

    is_sold: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sold_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    category_id: Mapped[str | None] = mapped_column(String, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)
    manufacturer_id: Mapped[str | None] = mapped_column(String, ForeignKey("manufacturers.id", ondelete="SET NULL"), nullable=True)
    location_id: Mapped[str | None] = mapped_column(String, ForeignKey("locations.id", ondelete="SET NULL"), nullable=True)
    unit_id: Mapped[str | None] = mapped_column(String, ForeignKey("units.id", ondelete="SET NULL"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    category: Mapped[Category | None] = relationship(Category)
    manufacturer: Mapped[Manufacturer | None] = relationship(Manufacturer)
    location: Mapped[Location | None] = relationship(Location)
    unit: Mapped[Unit | None] = relationship(Unit)

    tags: Mapped[list[Tag]] = relationship(Tag, secondary="item_tags", order_by=Tag.name)
    materials: Mapped[list["ItemMaterial"]] = relationship(
        "ItemMaterial",
        back_populates="item",
        cascade="all, delete-orphan",
        order_by="ItemMaterial.order",
    )


class ItemTag(Base):
    __tablename__ = "item_tags"

    item_id: Mapped[str] = mapped_column(String, ForeignKey("items.id", ondelete="CASCADE"), primary_key=True)
    tag_id: Mapped[str] = mapped_column(String, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True)


class ItemMaterial(Base):
    __tablename__ = "item_materials"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    item_id: Mapped[str] = mapped_column(String, ForeignKey("items.id", ondelete="CASCADE"), nullable=False, index=True)
    material_type_id: Mapped[str] = mapped_column(String, ForeignKey("material_types.id", ondelete="CASCADE"), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_url: Mapped[str | None] = mapped_column(String, nullable=True)
    order: Mapped[int] = mapped_column(Integer, default=0)

    item: Mapped["Item"] = relationship("Item", back_populates="materials")
    material_type: Mapped[MaterialType] = relationship(MaterialType)
