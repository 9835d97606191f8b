from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import select

from stockbook.models.item import Item, ItemType
from stockbook.models.master import Category, Manufacturer, Tag
from stockbook.schemas.item import ItemFilters
from stockbook.services.query_service import (
    DEFAULT_ORDERING,
    apply_ordering,
    build_order_by,
    build_where,
)


def _names(db, filters=None, family="items", sort_by=None, sort_order=None):
    stmt = select(Item).where(*build_where(filters, family))
    stmt = apply_ordering(stmt, build_order_by(sort_by, sort_order, family))
    return [item.name for item in db.scalars(stmt)]


@pytest.fixture
def catalog(db, make_item):
    oak = Manufacturer(name="Oak Works")
    birch = Manufacturer(name="Birch Co")
    chairs = Category(name="Chairs")
    red = Tag(name="red")
    blue = Tag(name="blue")
    green = Tag(name="green")
    db.add_all([oak, birch, chairs, red, blue, green])
    db.commit()

    make_item("Armchair", manufacturer_id=oak.id, category_id=chairs.id, quantity=3,
              cost_price=Decimal("300"), arrival_date="2024年5月", tags=[red])
    make_item("Bench", manufacturer_id=birch.id, quantity=1, cost_price=Decimal("100"),
              specification="100% oak_wood", tags=[blue])
    make_item("Cabinet", quantity=7, cost_price=Decimal("200"), is_sold=True, sold_at=datetime(2024, 6, 1))
    make_item("Dresser", item_type=ItemType.CONSIGNMENT, manufacturer_id=oak.id, quantity=2,
              list_price=Decimal("900"), arrival_date="2023年12月", tags=[green])
    return {"oak": oak, "birch": birch, "chairs": chairs, "red": red, "blue": blue, "green": green}


class TestBuildWhere:
    def test_no_filters_hides_sold(self, db, catalog):
        assert sorted(_names(db)) == ["Armchair", "Bench", "Dresser"]

    def test_include_sold(self, db, catalog):
        assert "Cabinet" in _names(db, ItemFilters(include_sold=True))

    def test_empty_strings_are_absent(self, db, catalog):
        filters = ItemFilters.model_validate(
            {"search": "", "categoryId": "  ", "manufacturerId": "", "tagIds": ",,", "arrivalDate": ""}
        )
        assert filters.search is None and filters.category_id is None and filters.tag_ids is None
        assert sorted(_names(db, filters)) == ["Armchair", "Bench", "Dresser"]

    def test_search_is_case_insensitive(self, db, catalog):
        assert _names(db, ItemFilters(search="ARMCH")) == ["Armchair"]

    def test_search_matches_specification(self, db, catalog):
        assert _names(db, ItemFilters(search="oak")) == ["Bench"]

    def test_search_treats_wildcards_literally(self, db, catalog):
        assert _names(db, ItemFilters(search="100%")) == ["Bench"]
        assert _names(db, ItemFilters(search="k_w")) == ["Bench"]
        assert _names(db, ItemFilters(search="%")) == ["Bench"]

    def test_product_family_searches_sku(self, db, catalog):
        assert _names(db, ItemFilters(search="SKU-00002"), "products") == ["Bench"]
        assert _names(db, ItemFilters(search="SKU-00002"), "items") == []

    def test_manufacturer_filter(self, db, catalog):
        assert sorted(_names(db, ItemFilters(manufacturer_id=catalog["oak"].id))) == ["Armchair", "Dresser"]

    def test_unknown_id_matches_nothing(self, db, catalog):
        assert _names(db, ItemFilters(category_id="missing")) == []

    def test_arrival_date_substring(self, db, catalog):
        assert _names(db, ItemFilters(arrival_date="2024")) == ["Armchair"]

    def test_tags_use_or_semantics(self, db, catalog):
        filters = ItemFilters.model_validate({"tagIds": f"{catalog['red'].id},{catalog['green'].id}"})
        assert sorted(_names(db, filters)) == ["Armchair", "Dresser"]

    def test_item_type_filter(self, db, catalog):
        assert _names(db, ItemFilters(item_type="consignment")) == ["Dresser"]

    def test_unknown_item_type_means_any(self, db, catalog):
        assert ItemFilters(item_type="gift").item_type is None

    def test_legacy_families_are_pinned(self, db, catalog):
        assert sorted(_names(db, ItemFilters(item_type="CONSIGNMENT"), "products")) == ["Armchair", "Bench"]
        assert _names(db, None, "consignments") == ["Dresser"]

    def test_accepts_plain_dict(self, db, catalog):
        assert _names(db, {"search": "bench"}) == ["Bench"]


class TestBuildOrderBy:
    def test_default_is_created_at_desc(self):
        assert build_order_by(None, None) is DEFAULT_ORDERING

    def test_unknown_key_falls_back(self):
        assert build_order_by("bogus", "asc") is DEFAULT_ORDERING

    def test_family_whitelist(self):
        assert build_order_by("listPrice", "asc", "products") is DEFAULT_ORDERING
        assert build_order_by("costPrice", "asc", "consignments") is DEFAULT_ORDERING
        assert build_order_by("listPrice", "asc", "consignments") is not DEFAULT_ORDERING

    def test_column_sort(self, db, catalog):
        assert _names(db, sort_by="quantity", sort_order="asc") == ["Bench", "Dresser", "Armchair"]
        assert _names(db, sort_by="quantity", sort_order="desc") == ["Armchair", "Dresser", "Bench"]

    def test_anything_but_asc_is_desc(self, db, catalog):
        assert _names(db, sort_by="name", sort_order="sideways") == ["Dresser", "Bench", "Armchair"]

    def test_snake_case_key(self, db, catalog):
        assert _names(db, sort_by="cost_price", sort_order="asc", family="products") == ["Bench", "Armchair"]

    def test_relation_sorts_by_name(self, db, catalog):
        ordering = build_order_by("manufacturer", "asc")
        assert ordering.join is not None
        names = _names(db, ItemFilters(manufacturer_id=catalog["birch"].id), sort_by="manufacturer")
        assert names == ["Bench"]
        ordered = _names(db, ItemFilters(search="e"), sort_by="manufacturer", sort_order="asc")
        # Birch Co < Oak Works
        assert ordered.index("Bench") < ordered.index("Dresser")
