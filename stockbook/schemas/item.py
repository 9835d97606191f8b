from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import Field, computed_field, field_validator, model_validator

from stockbook.config import settings
from stockbook.models.item import ItemType
from stockbook.schemas.common import CamelModel, NamedRef


def _blank_to_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v


# --- Filters ---

class ItemFilters(CamelModel):
    search: str | None = None
    category_id: str | None = None
    manufacturer_id: str | None = None
    location_id: str | None = None
    arrival_date: str | None = None
    tag_ids: list[str] | None = None
    include_sold: bool = False
    item_type: ItemType | None = None

    @field_validator("search", "category_id", "manufacturer_id", "location_id", "arrival_date", mode="before")
    @classmethod
    def empty_string_is_absent(cls, v):
        return _blank_to_none(v)

    @field_validator("tag_ids", mode="before")
    @classmethod
    def parse_tag_ids(cls, v):
        if v is None:
            return None
        if isinstance(v, str):
            v = v.split(",")
        ids = [t.strip() for t in v if isinstance(t, str) and t.strip()]
        return ids or None

    @field_validator("item_type", mode="before")
    @classmethod
    def parse_item_type(cls, v):
        # Unknown values mean "any type", matching the ?type= query parameter
        if isinstance(v, ItemType) or v is None:
            return v
        value = str(v).strip().upper()
        return value if value in ItemType.__members__ else None

    @field_validator("include_sold", mode="before")
    @classmethod
    def parse_include_sold(cls, v):
        if isinstance(v, str):
            return v.strip().lower() == "true"
        return bool(v)


# --- Materials ---

class MaterialIn(CamelModel):
    material_type_id: str
    description: str | None = None
    image_url: str | None = None
    order: int = Field(default=0, ge=0)


class MaterialsUpdate(CamelModel):
    materials: list[MaterialIn]


class MaterialOut(CamelModel):
    id: str
    material_type_id: str
    material_type: NamedRef
    description: str | None = None
    image_url: str | None = None
    order: int


# --- Items ---

class ItemCreate(CamelModel):
    item_type: ItemType = ItemType.PRODUCT
    name: str = Field(min_length=1, max_length=200)
    manufacturer_id: str | None = None
    category_id: str | None = None
    specification: str | None = Field(default=None, max_length=2000)
    size: str | None = Field(default=None, max_length=200)
    fabric_color: str | None = Field(default=None, max_length=2000)
    quantity: int = Field(default=0, ge=0)
    unit_id: str | None = None
    cost_price: Decimal | None = Field(default=None, ge=0)
    list_price: Decimal | None = Field(default=None, ge=0)
    arrival_date: str | None = Field(default=None, max_length=50)
    location_id: str | None = None
    designer: str | None = Field(default=None, max_length=200)
    notes: str | None = Field(default=None, max_length=2000)
    is_sold: bool = False
    sold_at: datetime | None = None
    tag_ids: list[str] = []

    @field_validator(
        "manufacturer_id", "category_id", "unit_id", "location_id", "specification", "size",
        "fabric_color", "arrival_date", "designer", "notes", "cost_price", "list_price", "sold_at",
        mode="before",
    )
    @classmethod
    def empty_string_is_none(cls, v):
        return _blank_to_none(v)

    @model_validator(mode="after")
    def check_cost_price(self):
        if self.item_type == ItemType.PRODUCT and self.cost_price is None:
            raise ValueError("cost_price is required for products")
        if self.item_type == ItemType.CONSIGNMENT:
            self.cost_price = None
        return self


class ItemUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    manufacturer_id: str | None = None
    category_id: str | None = None
    specification: str | None = Field(default=None, max_length=2000)
    size: str | None = Field(default=None, max_length=200)
    fabric_color: str | None = Field(default=None, max_length=2000)
    quantity: int | None = Field(default=None, ge=0)
    unit_id: str | None = None
    cost_price: Decimal | None = Field(default=None, ge=0)
    list_price: Decimal | None = Field(default=None, ge=0)
    arrival_date: str | None = Field(default=None, max_length=50)
    location_id: str | None = None
    designer: str | None = Field(default=None, max_length=200)
    notes: str | None = Field(default=None, max_length=2000)
    is_sold: bool | None = None
    sold_at: datetime | None = None
    tag_ids: list[str] | None = None

    @field_validator(
        "manufacturer_id", "category_id", "unit_id", "location_id", "specification", "size",
        "fabric_color", "arrival_date", "designer", "notes", "cost_price", "list_price", "sold_at",
        mode="before",
    )
    @classmethod
    def empty_string_is_none(cls, v):
        return _blank_to_none(v)


class ItemOut(CamelModel):
    id: str
    sku: str
    item_type: str
    name: str
    specification: str | None = None
    size: str | None = None
    fabric_color: str | None = None
    designer: str | None = None
    notes: str | None = None
    quantity: int
    cost_price: Decimal | None = None
    list_price: Decimal | None = None
    arrival_date: str | None = None
    is_sold: bool
    sold_at: datetime | None = None
    category_id: str | None = None
    manufacturer_id: str | None = None
    location_id: str | None = None
    unit_id: str | None = None
    category: NamedRef | None = None
    manufacturer: NamedRef | None = None
    location: NamedRef | None = None
    unit: NamedRef | None = None
    tags: list[NamedRef] = []
    created_at: datetime
    updated_at: datetime

    @computed_field(alias="totalCost")
    @property
    def total_cost(self) -> Decimal:
        if self.cost_price is None:
            return Decimal("0")
        return self.cost_price * self.quantity


class ItemDetailOut(ItemOut):
    materials: list[MaterialOut] = []


class Pagination(CamelModel):
    total: int
    page: int
    limit: int
    total_pages: int


class ItemListOut(CamelModel):
    items: list[ItemOut]
    pagination: Pagination


class PrintItemOut(CamelModel):
    id: str
    sku: str
    item_type: str
    name: str
    manufacturer: str = ""
    specification: str = ""
    fabric_color: str = ""
    list_price: str = ""
    quantity: int
    unit: str = ""
    notes: str = ""


# --- Bulk operations ---

class QuantityUpdate(CamelModel):
    mode: Literal["set", "adjust"]
    value: int

    @model_validator(mode="after")
    def non_negative_set(self):
        if self.mode == "set" and self.value < 0:
            raise ValueError("quantity cannot be set below 0")
        return self


class BulkEditUpdates(CamelModel):
    location_id: str | None = None
    manufacturer_id: str | None = None
    category_id: str | None = None
    tag_ids: list[str] | None = None
    quantity: QuantityUpdate | None = None

    @model_validator(mode="after")
    def at_least_one_field(self):
        if not self.model_fields_set:
            raise ValueError("At least one field must be updated")
        return self


class BulkEditRequest(CamelModel):
    ids: list[str] = Field(min_length=1, max_length=settings.MAX_BULK_IDS)
    updates: BulkEditUpdates


class BulkDeleteRequest(CamelModel):
    ids: list[str] = Field(min_length=1, max_length=settings.MAX_BULK_IDS)


class ImportRowError(CamelModel):
    row: int
    message: str


class ImportResult(CamelModel):
    success: bool = True
    imported: int
    errors: list[ImportRowError] = []
