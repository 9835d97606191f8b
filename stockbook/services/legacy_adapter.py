"""Request/response shims for the pre-unification /products and /consignments APIs.

Every function here is pure and never raises: payloads that do not have the
expected shape are passed through unchanged (or yield empty results).
"""

from typing import Any


def map_items_to_legacy_list(payload: Any, key: str) -> Any:
    """``{"items": [...], ...}`` -> ``{key: [...], ...}``; sibling fields are kept."""
    if not isinstance(payload, dict):
        return payload
    if not isinstance(payload.get("items"), list):
        return payload
    rest = {k: v for k, v in payload.items() if k != "items"}
    return {key: payload["items"], **rest}


def map_item_to_legacy_entity(payload: Any, key: str) -> Any:
    if not isinstance(payload, dict):
        return payload
    if "item" not in payload:
        return payload
    rest = {k: v for k, v in payload.items() if k != "item"}
    return {**rest, key: payload["item"]}


def map_ids_to_legacy(payload: Any, key: str) -> Any:
    if not isinstance(payload, dict):
        return payload
    if not isinstance(payload.get("ids"), list):
        return payload
    return {key: payload["ids"]}


def extract_ids(payload: Any, keys) -> list[str]:
    """Return the string entries of the first list-valued key found, in key order."""
    if not isinstance(payload, dict):
        return []
    for key in keys:
        value = payload.get(key)
        if isinstance(value, list):
            return [entry for entry in value if isinstance(entry, str)]
    return []


def normalize_bulk_edit_payload(payload: Any, legacy_ids_key: str) -> dict:
    """Turn a legacy bulk-edit body into the unified ``{"ids", "updates"}`` shape.

    The legacy quantity mode ``increment`` is renamed to ``adjust``.
    """
    ids = extract_ids(payload, [legacy_ids_key, "ids"])
    if not isinstance(payload, dict):
        return {"ids": ids, "updates": {}}

    updates = dict(payload["updates"]) if isinstance(payload.get("updates"), dict) else {}

    if isinstance(updates.get("quantity"), dict):
        quantity = dict(updates["quantity"])
        if quantity.get("mode") == "increment":
            quantity["mode"] = "adjust"
        updates["quantity"] = quantity

    return {"ids": ids, "updates": updates}


def _keep_item_type(entries: list, item_type: str) -> list:
    wanted = item_type.upper()
    kept = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        value = entry.get("itemType")
        if not isinstance(value, str) or value.upper() == wanted:
            kept.append(entry)
    return kept


def filter_print_items_by_type(payload: Any, key: str, item_type: str) -> Any:
    """Keep print entries of one item type under the legacy list key.

    Entries without a string ``itemType`` are kept; non-object entries are
    dropped. A bare list is filtered and returned as a list.
    """
    if isinstance(payload, list):
        return _keep_item_type(payload, item_type)
    if not isinstance(payload, dict):
        return payload
    items = payload.get("items")
    if not isinstance(items, list):
        return payload
    return {key: _keep_item_type(items, item_type)}
