from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from stockbook.database import Base
from stockbook.models.item import Item, ItemType
from stockbook.models.sku_counter import SkuCounter
from stockbook.services.sku_service import (
    format_sku,
    get_item_type_from_sku,
    is_valid_consignment_sku_format,
    is_valid_item_sku_format,
    is_valid_sku_format,
    next_sku,
    seed_counters_from_existing,
)


class TestFormatting:
    def test_format_sku(self):
        assert format_sku("PRODUCT", 1) == "SKU-00001"
        assert format_sku(ItemType.CONSIGNMENT, 42) == "CSG-00042"

    def test_format_widens_past_five_digits(self):
        assert format_sku("PRODUCT", 123456) == "SKU-123456"

    def test_unknown_type_raises(self):
        with pytest.raises(ValueError):
            format_sku("GIFT", 1)

    def test_validators(self):
        assert is_valid_sku_format("SKU-00001")
        assert not is_valid_sku_format("SKU-0001")
        assert not is_valid_sku_format("CSG-00001")
        assert is_valid_consignment_sku_format("CSG-12345")
        assert not is_valid_consignment_sku_format("csg-12345")
        assert is_valid_item_sku_format("SKU-00001")
        assert is_valid_item_sku_format("CSG-00001")
        assert not is_valid_item_sku_format("SKU-00001", "CONSIGNMENT")
        assert is_valid_item_sku_format("CSG-00001", ItemType.CONSIGNMENT)

    def test_item_type_from_sku(self):
        assert get_item_type_from_sku("SKU-00010") == "PRODUCT"
        assert get_item_type_from_sku("CSG-00010") == "CONSIGNMENT"
        assert get_item_type_from_sku("XYZ-00010") == "unknown"
        assert get_item_type_from_sku(None) == "unknown"


class TestNextSku:
    def test_first_sku_is_one(self, db):
        assert next_sku(db, "PRODUCT") == "SKU-00001"
        assert next_sku(db, "PRODUCT") == "SKU-00002"
        db.commit()

    def test_types_have_independent_counters(self, db):
        assert next_sku(db, "PRODUCT") == "SKU-00001"
        assert next_sku(db, "CONSIGNMENT") == "CSG-00001"
        assert next_sku(db, "consignment") == "CSG-00002"
        db.commit()

    def test_unknown_type_raises(self, db):
        with pytest.raises(ValueError):
            next_sku(db, "GIFT")

    def test_sequential_values_are_distinct(self, db):
        issued = [next_sku(db, "PRODUCT") for _ in range(10_000)]
        db.commit()
        assert len(set(issued)) == 10_000
        assert issued[0] == "SKU-00001"
        assert issued[-1] == "SKU-10000"

    def test_rolled_back_increment_is_undone(self, db):
        next_sku(db, "PRODUCT")
        db.commit()
        next_sku(db, "PRODUCT")
        db.rollback()
        assert next_sku(db, "PRODUCT") == "SKU-00002"
        db.commit()


def test_concurrent_sessions_never_share_a_number(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'sku.db'}", connect_args={"timeout": 30})
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)

    with Session() as session:
        session.add(SkuCounter(item_type="PRODUCT", next_value=1))
        session.commit()

    def issue(_):
        with Session() as session:
            sku = next_sku(session, "PRODUCT")
            session.commit()
            return sku

    with ThreadPoolExecutor(max_workers=8) as pool:
        issued = list(pool.map(issue, range(200)))

    engine.dispose()
    assert len(set(issued)) == 200
    assert sorted(issued) == [format_sku("PRODUCT", n) for n in range(1, 201)]


class TestSeedCounters:
    def test_seeds_past_highest_existing(self, db):
        db.add_all([
            Item(sku="SKU-00007", item_type="PRODUCT", name="a"),
            Item(sku="SKU-00012", item_type="PRODUCT", name="b"),
            Item(sku="CSG-00003", item_type="CONSIGNMENT", name="c"),
        ])
        db.commit()

        seeded = seed_counters_from_existing(db)

        assert seeded == {"PRODUCT": 13, "CONSIGNMENT": 4}
        assert next_sku(db, "PRODUCT") == "SKU-00013"
        assert next_sku(db, "CONSIGNMENT") == "CSG-00004"
        db.commit()

    def test_existing_counter_is_left_alone(self, db):
        db.add(SkuCounter(item_type="PRODUCT", next_value=50))
        db.add(Item(sku="SKU-00099", item_type="PRODUCT", name="a"))
        db.commit()

        seeded = seed_counters_from_existing(db)

        assert "PRODUCT" not in seeded
        assert next_sku(db, "PRODUCT") == "SKU-00050"
        db.commit()

    def test_empty_database_starts_at_one(self, db):
        assert seed_counters_from_existing(db) == {"PRODUCT": 1, "CONSIGNMENT": 1}
        assert next_sku(db, "PRODUCT") == "SKU-00001"
        db.commit()
