"""Filter and sort compilation for the item listing endpoints.

Three resource families share the same rules: the unified ``items`` family
and the legacy ``products`` / ``consignments`` families, which are the same
table pinned to one item type.
"""

from dataclasses import dataclass
from typing import NamedTuple

from sqlalchemy import or_

from stockbook.models.item import Item, ItemType
from stockbook.models.master import Category, Location, Manufacturer, Tag
from stockbook.schemas.item import ItemFilters


@dataclass(frozen=True)
class FilterFamily:
    name: str
    search_columns: tuple
    sort_fields: frozenset[str]
    item_type: str | None = None  # pinned type for legacy families


ITEMS = FilterFamily(
    name="items",
    search_columns=(Item.name, Item.specification),
    sort_fields=frozenset({
        "manufacturer", "category", "name", "specification", "quantity",
        "costPrice", "listPrice", "location", "createdAt",
    }),
)
PRODUCTS = FilterFamily(
    name="products",
    search_columns=(Item.name, Item.sku, Item.specification),
    sort_fields=frozenset({
        "manufacturer", "category", "name", "specification", "quantity",
        "costPrice", "location", "createdAt",
    }),
    item_type=ItemType.PRODUCT.value,
)
CONSIGNMENTS = FilterFamily(
    name="consignments",
    search_columns=(Item.name, Item.specification),
    sort_fields=frozenset({
        "manufacturer", "category", "name", "specification", "quantity",
        "listPrice", "location", "createdAt",
    }),
    item_type=ItemType.CONSIGNMENT.value,
)

FAMILIES = {family.name: family for family in (ITEMS, PRODUCTS, CONSIGNMENTS)}

_COLUMN_SORTS = {
    "name": Item.name,
    "specification": Item.specification,
    "quantity": Item.quantity,
    "costPrice": Item.cost_price,
    "listPrice": Item.list_price,
    "createdAt": Item.created_at,
}

# Related entities sort by their name, not their id
_RELATION_SORTS = {
    "manufacturer": (Item.manufacturer, Manufacturer.name),
    "category": (Item.category, Category.name),
    "location": (Item.location, Location.name),
}

_SNAKE_SORT_KEYS = {
    "cost_price": "costPrice",
    "list_price": "listPrice",
    "created_at": "createdAt",
}


class Ordering(NamedTuple):
    join: object | None  # relationship attribute to outer-join, if any
    clauses: tuple


DEFAULT_ORDERING = Ordering(join=None, clauses=(Item.created_at.desc(),))


def _family(family) -> FilterFamily:
    if isinstance(family, FilterFamily):
        return family
    return FAMILIES[family]


def build_where(filters: ItemFilters | dict | None, family="items") -> list:
    """Compile filters into a list of WHERE clauses (AND-ed by the caller)."""
    fam = _family(family)
    if filters is None:
        filters = ItemFilters()
    elif isinstance(filters, dict):
        filters = ItemFilters.model_validate(filters)

    clauses = []

    item_type = fam.item_type or filters.item_type
    if item_type:
        clauses.append(Item.item_type == ItemType(item_type).value)

    if filters.search:
        clauses.append(or_(*(col.icontains(filters.search, autoescape=True) for col in fam.search_columns)))

    if filters.category_id:
        clauses.append(Item.category_id == filters.category_id)
    if filters.manufacturer_id:
        clauses.append(Item.manufacturer_id == filters.manufacturer_id)
    if filters.location_id:
        clauses.append(Item.location_id == filters.location_id)

    if filters.arrival_date:
        clauses.append(Item.arrival_date.contains(filters.arrival_date, autoescape=True))

    if not filters.include_sold:
        clauses.append(Item.is_sold.is_(False))

    # Any of the given tags
    if filters.tag_ids:
        clauses.append(Item.tags.any(Tag.id.in_(filters.tag_ids)))

    return clauses


def build_order_by(sort_by: str | None, sort_order: str | None, family="items") -> Ordering:
    fam = _family(family)
    key = _SNAKE_SORT_KEYS.get(sort_by, sort_by)
    if not key or key not in fam.sort_fields:
        return DEFAULT_ORDERING

    ascending = sort_order == "asc"

    if key in _RELATION_SORTS:
        relation, name_column = _RELATION_SORTS[key]
        return Ordering(join=relation, clauses=(name_column.asc() if ascending else name_column.desc(),))

    column = _COLUMN_SORTS[key]
    return Ordering(join=None, clauses=(column.asc() if ascending else column.desc(),))


def apply_ordering(stmt, ordering: Ordering):
    """Apply an ordering to a ``select()`` or a ``Query``."""
    if ordering.join is not None:
        stmt = stmt.outerjoin(ordering.join)
    return stmt.order_by(*ordering.clauses)
