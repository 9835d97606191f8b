import json
import logging
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stockbook.config import settings
from stockbook.models.change_log import ChangeLog

logger = logging.getLogger(__name__)

ACTIONS = ("create", "update", "delete")

# Fields diffed on item update, with their display labels
ITEM_FIELD_LABELS: dict[str, str] = {
    "name": "商品名",
    "manufacturer_id": "メーカー",
    "category_id": "品目",
    "specification": "仕様",
    "size": "サイズ",
    "fabric_color": "張地/カラー",
    "quantity": "個数",
    "unit_id": "単位",
    "cost_price": "原価単価",
    "list_price": "定価単価",
    "arrival_date": "入荷年月",
    "location_id": "場所",
    "designer": "デザイナー",
    "notes": "備考",
    "is_sold": "販売済み",
    "sold_at": "販売日時",
}


def record_change(
    db: Session,
    *,
    entity_type: str,
    entity_id: str,
    entity_name: str,
    entity_sku: str,
    action: str,
    user_id: str,
    user_name: str,
    item_type: str | None = None,
    changes: list[dict] | None = None,
) -> None:
    """Append a change-log row. Must be called after the audited mutation committed.

    A failed write is logged and swallowed.
    """
    try:
        entry = ChangeLog(
            entity_type=entity_type,
            entity_id=entity_id,
            entity_name=entity_name,
            entity_sku=entity_sku,
            action=action,
            changes=json.dumps({"fields": changes}, ensure_ascii=False) if changes else None,
            user_id=user_id,
            user_name=user_name,
            item_type=item_type,
        )
        db.add(entry)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to write change log for %s %s (%s)", entity_type, entity_id, action)


def _format_value(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


def compare_changes(before: dict, after: dict, field_labels: dict[str, str]) -> list[dict]:
    changes = []
    for field, label in field_labels.items():
        old = _format_value(before.get(field))
        new = _format_value(after.get(field))
        if old != new:
            changes.append({"field": field, "label": label, "from": old, "to": new})
    return changes


def _decode_changes(raw: str | None):
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return None


def list_change_logs(db: Session, limit: int | None = None) -> list[dict]:
    if limit is None or limit < 1:
        limit = settings.CHANGE_LOG_DEFAULT_LIMIT
    limit = min(limit, settings.CHANGE_LOG_MAX_LIMIT)

    logs = db.query(ChangeLog).order_by(ChangeLog.created_at.desc()).limit(limit).all()
    return [
        {
            "id": log.id,
            "entityType": log.entity_type,
            "entityId": log.entity_id,
            "entityName": log.entity_name,
            "entitySku": log.entity_sku,
            "action": log.action,
            "changes": _decode_changes(log.changes),
            "userId": log.user_id,
            "userName": log.user_name,
            "itemType": log.item_type,
            "createdAt": log.created_at.isoformat() if log.created_at else "",
        }
        for log in logs
    ]
