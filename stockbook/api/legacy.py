"""Router factory for the pre-unification /products and /consignments APIs.

Both are views onto the items table pinned to one item type. Requests and
responses are translated by the legacy adapter.
"""

from typing import Any, Callable

from fastapi import APIRouter, Body, Depends, HTTPException, UploadFile
from pydantic import ValidationError
from sqlalchemy.orm import Session

from stockbook.api.auth import get_current_user
from stockbook.api.items import ListParams, csv_response, import_csv_upload, item_filters, list_page, parse_ids
from stockbook.database import get_db
from stockbook.models.item import ItemType
from stockbook.models.user import User
from stockbook.schemas.item import (
    BulkDeleteRequest,
    BulkEditRequest,
    ItemCreate,
    ItemDetailOut,
    ItemFilters,
    ItemUpdate,
    MaterialOut,
    MaterialsUpdate,
    PrintItemOut,
)
from stockbook.services import item_csv_service, item_service, legacy_adapter


def build_legacy_router(
    family: str,
    item_type: str,
    list_key: str,
    entity_key: str,
    ids_key: str,
    export_csv: Callable[[Session, ItemFilters], str],
    template_csv: Callable[[], str],
    template_filename: str,
) -> APIRouter:
    router = APIRouter(prefix=f"/{family}", tags=[family.capitalize()])
    not_found = f"{entity_key.capitalize()} not found"

    def get_owned_item(db: Session, item_id: str):
        item = item_service.get_item(db, item_id)
        if not item or item.item_type != item_type:
            raise HTTPException(404, not_found)
        return item

    def entity_body(item, **extra) -> dict:
        body = {**extra, "item": ItemDetailOut.model_validate(item).model_dump(mode="json", by_alias=True)}
        return legacy_adapter.map_item_to_legacy_entity(body, entity_key)

    @router.get("/export")
    def export_entities(
        filters: ItemFilters = Depends(item_filters),
        user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ):
        return csv_response(export_csv(db, filters), item_csv_service.export_filename(family))

    @router.get("/import-template")
    def import_template(user: User = Depends(get_current_user)):
        return csv_response(template_csv(), template_filename)

    @router.post("/import")
    def import_entities(file: UploadFile, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
        return import_csv_upload(db, file, user, ItemType(item_type))

    @router.get("")
    def list_entities(
        filters: ItemFilters = Depends(item_filters),
        params: ListParams = Depends(),
        user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ):
        page = list_page(db, filters, params, family)
        return legacy_adapter.map_items_to_legacy_list(page.model_dump(mode="json", by_alias=True), list_key)

    @router.post("", status_code=201)
    def create_entity(payload: Any = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
        if not isinstance(payload, dict):
            raise HTTPException(400, "Request body must be a JSON object")
        fields = {k: v for k, v in payload.items() if k not in ("itemType", "item_type")}
        try:
            data = ItemCreate.model_validate({**fields, "itemType": item_type})
        except ValidationError as e:
            raise HTTPException(400, str(e))
        try:
            item = item_service.create_item(db, data, user)
        except ValueError as e:
            raise HTTPException(400, str(e))
        return entity_body(item, success=True)

    @router.get("/ids")
    def list_ids(
        filters: ItemFilters = Depends(item_filters),
        user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ):
        ids = item_service.list_item_ids(db, filters, family)
        return legacy_adapter.map_ids_to_legacy({"ids": ids}, ids_key)

    @router.get("/print")
    def print_entities(
        ids: str | None = None, user: User = Depends(get_current_user), db: Session = Depends(get_db)
    ):
        id_list = parse_ids(ids)
        if not id_list:
            raise HTTPException(400, "ids is required")
        rows = [
            PrintItemOut(**row).model_dump(mode="json", by_alias=True)
            for row in item_service.print_items(db, id_list)
        ]
        return legacy_adapter.filter_print_items_by_type({"items": rows}, list_key, item_type)

    @router.post("/bulk/edit")
    def bulk_edit(payload: Any = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
        try:
            request = BulkEditRequest.model_validate(legacy_adapter.normalize_bulk_edit_payload(payload, ids_key))
        except ValidationError as e:
            raise HTTPException(400, str(e))
        try:
            updated = item_service.bulk_edit(db, request, user)
        except ValueError as e:
            raise HTTPException(400, str(e))
        if not updated:
            raise HTTPException(404, "No matching items")
        return {"success": True, "updated": updated}

    @router.post("/bulk/delete")
    def bulk_delete(payload: Any = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
        try:
            request = BulkDeleteRequest(ids=legacy_adapter.extract_ids(payload, [ids_key, "ids"]))
        except ValidationError as e:
            raise HTTPException(400, str(e))
        deleted = item_service.bulk_delete(db, request.ids, user)
        if not deleted:
            raise HTTPException(404, "No matching items")
        return {"success": True, "deleted": deleted}

    @router.get("/{item_id}")
    def get_entity(item_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
        return entity_body(get_owned_item(db, item_id))

    @router.put("/{item_id}")
    def update_entity(
        item_id: str, data: ItemUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)
    ):
        get_owned_item(db, item_id)
        try:
            item = item_service.update_item(db, item_id, data, user)
        except ValueError as e:
            raise HTTPException(400, str(e))
        return entity_body(item, success=True)

    @router.delete("/{item_id}")
    def delete_entity(item_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
        get_owned_item(db, item_id)
        item_service.delete_item(db, item_id, user)
        return {"success": True}

    @router.get("/{item_id}/materials")
    def list_materials(item_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
        get_owned_item(db, item_id)
        return {"materials": [MaterialOut.model_validate(m) for m in item_service.list_materials(db, item_id)]}

    @router.put("/{item_id}/materials")
    def replace_materials(
        item_id: str, data: MaterialsUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)
    ):
        get_owned_item(db, item_id)
        try:
            materials = item_service.replace_materials(db, item_id, data.materials)
        except ValueError as e:
            raise HTTPException(400, str(e))
        return {"materials": [MaterialOut.model_validate(m) for m in materials]}

    return router
