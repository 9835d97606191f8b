import math

from fastapi import APIRouter, Depends, HTTPException, Query, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from stockbook.api.auth import get_current_user
from stockbook.config import settings
from stockbook.database import get_db
from stockbook.models.item import ItemType
from stockbook.models.user import User
from stockbook.schemas.item import (
    BulkDeleteRequest,
    BulkEditRequest,
    ImportResult,
    ItemCreate,
    ItemDetailOut,
    ItemFilters,
    ItemListOut,
    ItemOut,
    ItemUpdate,
    MaterialOut,
    MaterialsUpdate,
    Pagination,
    PrintItemOut,
)
from stockbook.services import item_csv_service, item_service

router = APIRouter(prefix="/items", tags=["Items"])


def item_filters(
    search: str | None = None,
    category_id: str | None = Query(None, alias="categoryId"),
    manufacturer_id: str | None = Query(None, alias="manufacturerId"),
    location_id: str | None = Query(None, alias="locationId"),
    arrival_date: str | None = Query(None, alias="arrivalDate"),
    tag_ids: str | None = Query(None, alias="tagIds"),
    include_sold: str | None = Query(None, alias="includeSold"),
    item_type: str | None = Query(None, alias="type"),
) -> ItemFilters:
    """Dependency: the shared list/export filter query parameters."""
    return ItemFilters(
        search=search,
        category_id=category_id,
        manufacturer_id=manufacturer_id,
        location_id=location_id,
        arrival_date=arrival_date,
        tag_ids=tag_ids,
        include_sold=include_sold or False,
        item_type=item_type,
    )


class ListParams:
    """Dependency: paging and sorting query parameters."""

    def __init__(
        self,
        page: int = Query(1, ge=1),
        limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
        sort_by: str | None = Query(None, alias="sortBy"),
        sort_order: str | None = Query(None, alias="sortOrder"),
    ):
        self.page = page
        self.limit = limit
        self.sort_by = sort_by
        self.sort_order = sort_order


def parse_ids(ids: str | None) -> list[str]:
    if not ids:
        return []
    return [i.strip() for i in ids.split(",") if i.strip()]


def list_page(db: Session, filters: ItemFilters, params: ListParams, family: str) -> ItemListOut:
    total, items = item_service.list_items(
        db, filters, family, params.sort_by, params.sort_order, params.page, params.limit
    )
    return ItemListOut(
        items=[ItemOut.model_validate(i) for i in items],
        pagination=Pagination(
            total=total, page=params.page, limit=params.limit, total_pages=math.ceil(total / params.limit)
        ),
    )


def csv_response(content: str, filename: str) -> StreamingResponse:
    return StreamingResponse(
        iter([content]),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def import_csv_upload(db: Session, file: UploadFile, user: User, item_type: ItemType | None = None) -> dict:
    if not file.filename or not file.filename.lower().endswith(".csv"):
        raise HTTPException(400, "Only CSV files are supported")
    try:
        content = file.file.read().decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(400, "CSV must be UTF-8 encoded")
    try:
        return item_csv_service.import_items_csv(db, content, user, item_type)
    except ValueError as e:
        raise HTTPException(400, str(e))


@router.get("", response_model=ItemListOut)
def list_items(
    filters: ItemFilters = Depends(item_filters),
    params: ListParams = Depends(),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return list_page(db, filters, params, "items")


@router.post("", status_code=201)
def create_item(data: ItemCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        item = item_service.create_item(db, data, user)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return {"success": True, "item": ItemDetailOut.model_validate(item)}


@router.get("/ids")
def list_ids(
    filters: ItemFilters = Depends(item_filters),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return {"ids": item_service.list_item_ids(db, filters, "items")}


@router.get("/print")
def print_items(ids: str | None = None, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    id_list = parse_ids(ids)
    if not id_list:
        raise HTTPException(400, "ids is required")
    return {"items": [PrintItemOut(**row) for row in item_service.print_items(db, id_list)]}


@router.get("/export")
def export_items(
    filters: ItemFilters = Depends(item_filters),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    content = item_csv_service.export_items_csv(db, filters, "items")
    return csv_response(content, item_csv_service.export_filename("items"))


@router.get("/import-template")
def import_template(user: User = Depends(get_current_user)):
    return csv_response(item_csv_service.import_template_csv(), "items_template.csv")


@router.post("/import", response_model=ImportResult)
def import_items(file: UploadFile, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return import_csv_upload(db, file, user)


@router.post("/bulk/edit")
def bulk_edit(data: BulkEditRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        updated = item_service.bulk_edit(db, data, user)
    except ValueError as e:
        raise HTTPException(400, str(e))
    if not updated:
        raise HTTPException(404, "No matching items")
    return {"success": True, "updated": updated}


@router.post("/bulk/delete")
def bulk_delete(data: BulkDeleteRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    deleted = item_service.bulk_delete(db, data.ids, user)
    if not deleted:
        raise HTTPException(404, "No matching items")
    return {"success": True, "deleted": deleted}


@router.get("/{item_id}", response_model=ItemDetailOut)
def get_item(item_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    item = item_service.get_item(db, item_id)
    if not item:
        raise HTTPException(404, "Item not found")
    return item


@router.put("/{item_id}")
def update_item(
    item_id: str, data: ItemUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    try:
        item = item_service.update_item(db, item_id, data, user)
    except ValueError as e:
        raise HTTPException(400, str(e))
    if not item:
        raise HTTPException(404, "Item not found")
    return {"success": True, "item": ItemDetailOut.model_validate(item)}


@router.delete("/{item_id}")
def delete_item(item_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if not item_service.delete_item(db, item_id, user):
        raise HTTPException(404, "Item not found")
    return {"success": True}


@router.get("/{item_id}/materials")
def list_materials(item_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    materials = item_service.list_materials(db, item_id)
    if materials is None:
        raise HTTPException(404, "Item not found")
    return {"materials": [MaterialOut.model_validate(m) for m in materials]}


@router.put("/{item_id}/materials")
def replace_materials(
    item_id: str, data: MaterialsUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    try:
        materials = item_service.replace_materials(db, item_id, data.materials)
    except ValueError as e:
        raise HTTPException(400, str(e))
    if materials is None:
        raise HTTPException(404, "Item not found")
    return {"materials": [MaterialOut.model_validate(m) for m in materials]}
