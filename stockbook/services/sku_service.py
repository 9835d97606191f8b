import logging
import re

from sqlalchemy import func, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from stockbook.models.item import Item, ItemType
from stockbook.models.sku_counter import SkuCounter

logger = logging.getLogger(__name__)

SKU_PREFIXES = {
    ItemType.PRODUCT.value: "SKU-",
    ItemType.CONSIGNMENT.value: "CSG-",
}
SKU_DIGITS = 5
UNKNOWN_ITEM_TYPE = "unknown"

_PRODUCT_SKU = re.compile(r"^SKU-\d{5}$")
_CONSIGNMENT_SKU = re.compile(r"^CSG-\d{5}$")


def _normalize_item_type(item_type) -> str:
    value = item_type.value if isinstance(item_type, ItemType) else str(item_type or "").upper()
    if value not in SKU_PREFIXES:
        raise ValueError(f"Unknown item type: {item_type}")
    return value


def format_sku(item_type, number: int) -> str:
    return f"{SKU_PREFIXES[_normalize_item_type(item_type)]}{number:0{SKU_DIGITS}d}"


def _increment_counter(db: Session, item_type: str) -> int | None:
    """Bump the counter in one statement and return the value after the bump."""
    stmt = (
        update(SkuCounter)
        .where(SkuCounter.item_type == item_type)
        .values(next_value=SkuCounter.next_value + 1)
        .returning(SkuCounter.next_value)
        .execution_options(synchronize_session=False)
    )
    return db.execute(stmt).scalar_one_or_none()


def _ensure_counter_row(db: Session, item_type: str, next_value: int = 1) -> None:
    dialect = db.get_bind().dialect.name
    values = {"item_type": item_type, "next_value": next_value}
    if dialect == "postgresql":
        db.execute(pg_insert(SkuCounter).values(**values).on_conflict_do_nothing(index_elements=["item_type"]))
    elif dialect == "sqlite":
        db.execute(sqlite_insert(SkuCounter).values(**values).on_conflict_do_nothing(index_elements=["item_type"]))
    elif db.get(SkuCounter, item_type) is None:
        db.add(SkuCounter(**values))
        db.flush()


def next_sku(db: Session, item_type) -> str:
    """Issue the next SKU for an item type inside the caller's transaction.

    The counter is incremented server-side, so two sessions can never be
    handed the same number. The caller commits.
    """
    item_type = _normalize_item_type(item_type)
    bumped = _increment_counter(db, item_type)
    if bumped is None:
        _ensure_counter_row(db, item_type)
        bumped = _increment_counter(db, item_type)
    return format_sku(item_type, bumped - 1)


def is_valid_sku_format(sku: str) -> bool:
    return isinstance(sku, str) and bool(_PRODUCT_SKU.match(sku))


def is_valid_consignment_sku_format(sku: str) -> bool:
    return isinstance(sku, str) and bool(_CONSIGNMENT_SKU.match(sku))


def is_valid_item_sku_format(sku: str, item_type=None) -> bool:
    if item_type is None:
        return is_valid_sku_format(sku) or is_valid_consignment_sku_format(sku)
    if _normalize_item_type(item_type) == ItemType.PRODUCT.value:
        return is_valid_sku_format(sku)
    return is_valid_consignment_sku_format(sku)


def get_item_type_from_sku(sku: str) -> str:
    if not isinstance(sku, str):
        return UNKNOWN_ITEM_TYPE
    for item_type, prefix in SKU_PREFIXES.items():
        if sku.startswith(prefix):
            return item_type
    return UNKNOWN_ITEM_TYPE


def seed_counters_from_existing(db: Session) -> dict[str, int]:
    """Create missing counters so they start after the highest SKU already stored.

    Only for databases that hold items from before the counter table existed;
    SKUs are always issued through next_sku.
    """
    seeded = {}
    for item_type, prefix in SKU_PREFIXES.items():
        if db.get(SkuCounter, item_type) is not None:
            continue
        highest = 0
        for (sku,) in db.query(Item.sku).filter(Item.sku.like(f"{prefix}%")):
            suffix = sku[len(prefix):]
            if suffix.isdigit():
                highest = max(highest, int(suffix))
        _ensure_counter_row(db, item_type, next_value=highest + 1)
        seeded[item_type] = highest + 1
        logger.info("Seeded %s SKU counter at %d", item_type, highest + 1)
    db.commit()
    return seeded


def sku_order_by() -> tuple:
    """ORDER BY clauses that sort SKUs by prefix, then by number.

    Suffixes are zero-padded to at least SKU_DIGITS, so a longer suffix is
    always a larger number.
    """
    prefix_length = len(next(iter(SKU_PREFIXES.values())))
    return (func.substr(Item.sku, 1, prefix_length), func.length(Item.sku), Item.sku)
