from stockbook.services.legacy_adapter import (
    extract_ids,
    filter_print_items_by_type,
    map_ids_to_legacy,
    map_item_to_legacy_entity,
    map_items_to_legacy_list,
    normalize_bulk_edit_payload,
)


def test_list_key_is_renamed_and_siblings_kept():
    payload = {"items": [{"id": "1"}], "pagination": {"total": 1}}
    assert map_items_to_legacy_list(payload, "products") == {
        "products": [{"id": "1"}],
        "pagination": {"total": 1},
    }


def test_list_passthrough_for_unexpected_shapes():
    assert map_items_to_legacy_list(None, "products") is None
    assert map_items_to_legacy_list("oops", "products") == "oops"
    assert map_items_to_legacy_list({"items": "x"}, "products") == {"items": "x"}


def test_entity_key_is_renamed():
    assert map_item_to_legacy_entity({"success": True, "item": {"id": "1"}}, "consignment") == {
        "success": True,
        "consignment": {"id": "1"},
    }
    assert map_item_to_legacy_entity({"success": False}, "consignment") == {"success": False}
    assert map_item_to_legacy_entity([1], "consignment") == [1]


def test_ids_are_renamed():
    assert map_ids_to_legacy({"ids": ["a", "b"]}, "productIds") == {"productIds": ["a", "b"]}
    assert map_ids_to_legacy({"ids": None}, "productIds") == {"ids": None}


def test_extract_ids_prefers_first_key_and_keeps_strings():
    payload = {"consignmentIds": ["a", 2, "b"], "ids": ["z"]}
    assert extract_ids(payload, ["consignmentIds", "ids"]) == ["a", "b"]
    assert extract_ids({"ids": ["z"]}, ["consignmentIds", "ids"]) == ["z"]
    assert extract_ids({"consignmentIds": "a"}, ["consignmentIds"]) == []
    assert extract_ids(None, ["ids"]) == []


def test_bulk_edit_increment_becomes_adjust():
    payload = {"productIds": ["a"], "updates": {"quantity": {"mode": "increment", "value": -3}, "locationId": "loc"}}
    assert normalize_bulk_edit_payload(payload, "productIds") == {
        "ids": ["a"],
        "updates": {"quantity": {"mode": "adjust", "value": -3}, "locationId": "loc"},
    }


def test_bulk_edit_does_not_mutate_input():
    payload = {"ids": ["a"], "updates": {"quantity": {"mode": "increment", "value": 1}}}
    normalize_bulk_edit_payload(payload, "productIds")
    assert payload["updates"]["quantity"]["mode"] == "increment"


def test_bulk_edit_missing_updates():
    assert normalize_bulk_edit_payload({"productIds": ["a"]}, "productIds") == {"ids": ["a"], "updates": {}}
    assert normalize_bulk_edit_payload("junk", "productIds") == {"ids": [], "updates": {}}


def test_print_items_filtered_by_type():
    payload = {
        "items": [
            {"id": "1", "itemType": "PRODUCT"},
            {"id": "2", "itemType": "consignment"},
            {"id": "3"},
            "not-a-dict",
            {"id": "4", "itemType": 7},
        ]
    }
    assert filter_print_items_by_type(payload, "consignments", "CONSIGNMENT") == {
        "consignments": [{"id": "2", "itemType": "consignment"}, {"id": "3"}, {"id": "4", "itemType": 7}]
    }


def test_print_items_bare_list_and_passthrough():
    assert filter_print_items_by_type([{"itemType": "PRODUCT"}, {"itemType": "CONSIGNMENT"}], "products", "product") == [
        {"itemType": "PRODUCT"}
    ]
    assert filter_print_items_by_type({"other": 1}, "products", "PRODUCT") == {"other": 1}
    assert filter_print_items_by_type(None, "products", "PRODUCT") is None
