import logging

from sqlalchemy import delete, func, insert, update
from sqlalchemy.orm import Session, selectinload

from stockbook.models.item import Item, ItemMaterial, ItemTag, ItemType
from stockbook.models.master import Category, Location, Manufacturer, MaterialType, Tag, Unit
from stockbook.models.user import User
from stockbook.schemas.item import BulkEditRequest, ItemCreate, ItemFilters, ItemUpdate, MaterialIn
from stockbook.services import change_log_service
from stockbook.services.change_log_service import ITEM_FIELD_LABELS, compare_changes
from stockbook.services.query_service import apply_ordering, build_order_by, build_where
from stockbook.services.sku_service import next_sku, sku_order_by

logger = logging.getLogger(__name__)

ITEM_ENTITY = "item"

_REFERENCE_MODELS = {
    "category_id": (Category, "Category"),
    "manufacturer_id": (Manufacturer, "Manufacturer"),
    "location_id": (Location, "Location"),
    "unit_id": (Unit, "Unit"),
}

_LIST_OPTIONS = (
    selectinload(Item.category),
    selectinload(Item.manufacturer),
    selectinload(Item.location),
    selectinload(Item.unit),
    selectinload(Item.tags),
)
_DETAIL_OPTIONS = _LIST_OPTIONS + (
    selectinload(Item.materials).selectinload(ItemMaterial.material_type),
)


def _snapshot(item: Item) -> dict:
    return {field: getattr(item, field) for field in ITEM_FIELD_LABELS}


def _log(db: Session, item_id: str, name: str, sku: str, item_type: str, action: str, user: User, changes=None):
    change_log_service.record_change(
        db,
        entity_type=ITEM_ENTITY,
        entity_id=item_id,
        entity_name=name,
        entity_sku=sku,
        action=action,
        user_id=user.id,
        user_name=user.username,
        item_type=item_type,
        changes=changes,
    )


def _check_references(db: Session, values: dict) -> None:
    for field, (model, label) in _REFERENCE_MODELS.items():
        ref_id = values.get(field)
        if ref_id and db.get(model, ref_id) is None:
            raise ValueError(f"{label} {ref_id} not found")


def _load_tags(db: Session, tag_ids: list[str]) -> list[Tag]:
    unique_ids = list(dict.fromkeys(tag_ids))
    if not unique_ids:
        return []
    tags = db.query(Tag).filter(Tag.id.in_(unique_ids)).all()
    missing = set(unique_ids) - {t.id for t in tags}
    if missing:
        raise ValueError(f"Tag(s) not found: {', '.join(sorted(missing))}")
    return tags


# --- Queries ---

def get_item(db: Session, item_id: str) -> Item | None:
    return (
        db.query(Item)
        .options(*_DETAIL_OPTIONS)
        .filter(Item.id == item_id)
        .populate_existing()
        .first()
    )


def get_item_by_sku(db: Session, sku: str) -> Item | None:
    return db.query(Item).filter(Item.sku == sku).first()


def list_items(
    db: Session,
    filters: ItemFilters,
    family: str = "items",
    sort_by: str | None = None,
    sort_order: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[int, list[Item]]:
    clauses = build_where(filters, family)
    total = db.query(func.count(Item.id)).filter(*clauses).scalar()
    query = db.query(Item).options(*_LIST_OPTIONS).filter(*clauses)
    query = apply_ordering(query, build_order_by(sort_by, sort_order, family))
    items = query.offset((page - 1) * limit).limit(limit).all()
    return total, items


def list_item_ids(db: Session, filters: ItemFilters, family: str = "items") -> list[str]:
    query = db.query(Item.id).filter(*build_where(filters, family)).order_by(Item.created_at.desc())
    return [item_id for (item_id,) in query]


def print_items(db: Session, ids: list[str]) -> list[dict]:
    items = (
        db.query(Item)
        .options(selectinload(Item.manufacturer), selectinload(Item.unit))
        .filter(Item.id.in_(ids))
        .order_by(*sku_order_by())
        .all()
    )
    return [
        {
            "id": item.id,
            "sku": item.sku,
            "item_type": item.item_type,
            "name": item.name,
            "manufacturer": item.manufacturer.name if item.manufacturer else "",
            "specification": item.specification or "",
            "fabric_color": item.fabric_color or "",
            "list_price": str(item.list_price) if item.list_price is not None else "",
            "quantity": item.quantity,
            "unit": item.unit.name if item.unit else "",
            "notes": item.notes or "",
        }
        for item in items
    ]


# --- Mutations ---

def create_item(db: Session, data: ItemCreate, user: User) -> Item:
    values = data.model_dump(exclude={"tag_ids", "item_type"})
    _check_references(db, values)
    tags = _load_tags(db, data.tag_ids)

    item_type = ItemType(data.item_type).value
    if data.sold_at is not None:
        values["is_sold"] = True

    item = Item(sku=next_sku(db, item_type), item_type=item_type, **values)
    item.tags = tags
    db.add(item)
    db.commit()

    _log(db, item.id, item.name, item.sku, item.item_type, "create", user)
    return get_item(db, item.id)


def update_item(db: Session, item_id: str, data: ItemUpdate, user: User) -> Item | None:
    item = get_item(db, item_id)
    if not item:
        return None

    update_data = data.model_dump(exclude_unset=True)
    tag_ids = update_data.pop("tag_ids", None)

    if "cost_price" in update_data:
        if item.item_type == ItemType.PRODUCT.value and update_data["cost_price"] is None:
            raise ValueError("Products require a cost price")
        if item.item_type == ItemType.CONSIGNMENT.value:
            update_data.pop("cost_price")
    if "name" in update_data and update_data["name"] is None:
        raise ValueError("Name must not be empty")
    if "quantity" in update_data and update_data["quantity"] is None:
        update_data.pop("quantity")
    if update_data.get("sold_at") is not None:
        update_data["is_sold"] = True
    elif update_data.get("is_sold") is False:
        update_data["sold_at"] = None
    if update_data.get("is_sold") is None:
        update_data.pop("is_sold", None)

    _check_references(db, update_data)
    tags = _load_tags(db, tag_ids) if tag_ids is not None else None

    before = _snapshot(item)
    for field, value in update_data.items():
        setattr(item, field, value)
    if tags is not None:
        item.tags = tags
    db.commit()

    item = get_item(db, item_id)
    changes = compare_changes(before, _snapshot(item), ITEM_FIELD_LABELS)
    _log(db, item.id, item.name, item.sku, item.item_type, "update", user, changes or None)
    return get_item(db, item_id)


def delete_item(db: Session, item_id: str, user: User) -> bool:
    item = db.get(Item, item_id)
    if not item:
        return False
    name, sku, item_type = item.name, item.sku, item.item_type
    db.delete(item)
    db.commit()
    _log(db, item_id, name, sku, item_type, "delete", user)
    return True


def list_materials(db: Session, item_id: str) -> list[ItemMaterial] | None:
    if db.get(Item, item_id) is None:
        return None
    return (
        db.query(ItemMaterial)
        .options(selectinload(ItemMaterial.material_type))
        .filter(ItemMaterial.item_id == item_id)
        .order_by(ItemMaterial.order)
        .all()
    )


def replace_materials(db: Session, item_id: str, materials: list[MaterialIn]) -> list[ItemMaterial] | None:
    """Swap the item's material list for a new one in a single transaction."""
    if db.get(Item, item_id) is None:
        return None

    type_ids = {m.material_type_id for m in materials}
    if type_ids:
        found = {type_id for (type_id,) in db.query(MaterialType.id).filter(MaterialType.id.in_(type_ids))}
        missing = type_ids - found
        if missing:
            raise ValueError(f"Material type(s) not found: {', '.join(sorted(missing))}")

    db.execute(delete(ItemMaterial).where(ItemMaterial.item_id == item_id))
    db.add_all(
        ItemMaterial(
            item_id=item_id,
            material_type_id=m.material_type_id,
            description=m.description or None,
            image_url=m.image_url or None,
            order=m.order,
        )
        for m in materials
    )
    db.commit()
    return list_materials(db, item_id)


def _adjust_quantity(db: Session, item_id: str, delta: int) -> None:
    """One read-modify-write transaction per row; quantity floors at zero."""
    item = db.query(Item).filter(Item.id == item_id).with_for_update().populate_existing().first()
    if item is None:
        db.rollback()
        return
    item.quantity = max(0, item.quantity + delta)
    db.commit()


def bulk_edit(db: Session, request: BulkEditRequest, user: User) -> int:
    """Apply the same update to many items. Returns the number of items touched (0 if none exist)."""
    items = db.query(Item).filter(Item.id.in_(request.ids)).all()
    if not items:
        return 0
    found_ids = [item.id for item in items]
    audit = [(item.id, item.name, item.sku, item.item_type) for item in items]

    updates = request.updates
    fields_set = updates.model_fields_set
    column_updates = {
        field: getattr(updates, field)
        for field in ("location_id", "manufacturer_id", "category_id")
        if field in fields_set
    }
    _check_references(db, column_updates)

    if updates.tag_ids is not None:
        tags = _load_tags(db, updates.tag_ids)
        # Delete and re-insert in one transaction so no reader sees an untagged item
        db.execute(delete(ItemTag).where(ItemTag.item_id.in_(found_ids)))
        rows = [{"item_id": item_id, "tag_id": tag.id} for item_id in found_ids for tag in tags]
        if rows:
            db.execute(insert(ItemTag), rows)
        db.commit()

    quantity = updates.quantity
    if quantity is not None and quantity.mode == "set":
        column_updates["quantity"] = quantity.value

    if column_updates:
        db.execute(
            update(Item)
            .where(Item.id.in_(found_ids))
            .values(**column_updates)
            .execution_options(synchronize_session=False)
        )
        db.commit()

    if quantity is not None and quantity.mode == "adjust":
        for item_id in found_ids:
            _adjust_quantity(db, item_id, quantity.value)

    logger.info("Bulk edit by %s touched %d items", user.username, len(found_ids))
    for item_id, name, sku, item_type in audit:
        _log(db, item_id, name, sku, item_type, "update", user)
    return len(found_ids)


def bulk_delete(db: Session, ids: list[str], user: User) -> int:
    items = db.query(Item).filter(Item.id.in_(ids)).all()
    if not items:
        return 0
    audit = [(item.id, item.name, item.sku, item.item_type) for item in items]
    for item in items:
        db.delete(item)
    db.commit()

    logger.info("Bulk delete by %s removed %d items", user.username, len(audit))
    for item_id, name, sku, item_type in audit:
        _log(db, item_id, name, sku, item_type, "delete", user)
    return len(audit)


