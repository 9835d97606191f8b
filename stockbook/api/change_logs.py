from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from stockbook.api.auth import get_current_user
from stockbook.database import get_db
from stockbook.models.user import User
from stockbook.services import change_log_service

router = APIRouter(prefix="/change-logs", tags=["Change logs"])


@router.get("")
def list_change_logs(limit: int | None = None, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"changeLogs": change_log_service.list_change_logs(db, limit)}
