"""CRUD for the named master data tables (categories, manufacturers, ...)."""

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stockbook.models.master import Category, Location, Manufacturer, MaterialType, Tag, Unit
from stockbook.schemas.master import MasterCreate, MasterUpdate

MASTER_MODELS = {
    "categories": Category,
    "manufacturers": Manufacturer,
    "locations": Location,
    "units": Unit,
    "tags": Tag,
    "material-types": MaterialType,
}


def _order_by(model):
    if model is MaterialType:
        return (MaterialType.order, MaterialType.name)
    return (model.name,)


def list_entries(db: Session, model) -> list:
    return db.query(model).order_by(*_order_by(model)).all()


def get_entry(db: Session, model, entry_id: str):
    return db.get(model, entry_id)


def get_by_name(db: Session, model, name: str):
    return db.query(model).filter(model.name == name).first()


def create_entry(db: Session, model, data: MasterCreate):
    if get_by_name(db, model, data.name):
        raise ValueError(f"'{data.name}' already exists")
    entry = model(name=data.name)
    if model is MaterialType and data.order is not None:
        entry.order = data.order
    db.add(entry)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValueError(f"'{data.name}' already exists")
    db.refresh(entry)
    return entry


def update_entry(db: Session, model, entry_id: str, data: MasterUpdate):
    entry = get_entry(db, model, entry_id)
    if not entry:
        return None
    clash = get_by_name(db, model, data.name)
    if clash and clash.id != entry.id:
        raise ValueError(f"'{data.name}' already exists")
    entry.name = data.name
    if model is MaterialType and data.order is not None:
        entry.order = data.order
    db.commit()
    db.refresh(entry)
    return entry


def delete_entry(db: Session, model, entry_id: str) -> bool:
    entry = get_entry(db, model, entry_id)
    if not entry:
        return False
    db.delete(entry)
    db.commit()
    return True


def resolve_names(db: Session, model) -> dict[str, str]:
    """name -> id for every row, used by CSV import."""
    return {name: entry_id for name, entry_id in db.query(model.name, model.id)}
