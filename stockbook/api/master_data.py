"""CRUD routers for the named master data tables.

Anyone signed in can read; only admins can write.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from stockbook.api.auth import get_current_user, require_admin
from stockbook.database import get_db
from stockbook.models.user import User
from stockbook.schemas.master import MasterCreate, MasterOut, MasterUpdate
from stockbook.services import master_service


def build_master_router(path: str, model) -> APIRouter:
    router = APIRouter(prefix=f"/{path}", tags=["Master data"])
    label = model.__name__

    @router.get("", response_model=list[MasterOut])
    def list_entries(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
        return master_service.list_entries(db, model)

    @router.post("", response_model=MasterOut, status_code=201)
    def create_entry(data: MasterCreate, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
        try:
            return master_service.create_entry(db, model, data)
        except ValueError as e:
            raise HTTPException(400, str(e))

    @router.get("/{entry_id}", response_model=MasterOut)
    def get_entry(entry_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
        entry = master_service.get_entry(db, model, entry_id)
        if not entry:
            raise HTTPException(404, f"{label} not found")
        return entry

    @router.put("/{entry_id}", response_model=MasterOut)
    def update_entry(
        entry_id: str, data: MasterUpdate, admin: User = Depends(require_admin), db: Session = Depends(get_db)
    ):
        try:
            entry = master_service.update_entry(db, model, entry_id, data)
        except ValueError as e:
            raise HTTPException(400, str(e))
        if not entry:
            raise HTTPException(404, f"{label} not found")
        return entry

    @router.delete("/{entry_id}")
    def delete_entry(entry_id: str, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
        if not master_service.delete_entry(db, model, entry_id):
            raise HTTPException(404, f"{label} not found")
        return {"success": True}

    return router


routers = [build_master_router(path, model) for path, model in master_service.MASTER_MODELS.items()]
