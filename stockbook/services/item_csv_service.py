"""CSV export, import template and bulk import for items."""

import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from stockbook.models.item import Item, ItemType
from stockbook.models.master import Category, Location, Manufacturer, Tag, Unit
from stockbook.models.user import User
from stockbook.schemas.item import ItemCreate, ItemFilters
from stockbook.services import item_service, master_service
from stockbook.services.csv_codec import LF, convert_excel_serial_date, format_datetime, parse_csv, serialize_csv
from stockbook.services.query_service import build_where
from stockbook.services.sku_service import sku_order_by

logger = logging.getLogger(__name__)

EXPORT_HEADERS = [
    "種別", "ID", "SKU", "商品名", "メーカー", "品目", "仕様", "サイズ", "張地/カラー", "個数", "単位",
    "原価単価", "定価単価", "入荷年月", "場所", "デザイナー", "タグ", "備考", "販売済み", "販売日時",
    "作成日時", "更新日時",
]

CONSIGNMENT_EXPORT_HEADERS = [
    "SKU", "商品名", "メーカー", "品目", "仕様", "サイズ", "張地/カラー", "個数", "単位", "原価単価",
    "定価単価", "入荷年月", "場所", "デザイナー", "タグ", "備考", "販売済み", "販売日時",
]

IMPORT_HEADERS = [
    "種別", "商品名", "メーカー", "品目", "仕様", "サイズ", "張地/カラー", "個数", "単位", "原価単価",
    "定価単価", "入荷年月", "場所", "デザイナー", "タグ", "備考",
]

CONSIGNMENT_IMPORT_HEADERS = [
    "商品名", "メーカー", "品目", "仕様", "サイズ", "張地/カラー", "個数", "単位", "定価単価",
    "入荷年月", "場所", "備考", "販売済み", "販売日時",
]

TEMPLATE_ROWS = [
    ["商品", "サンプル商品A", "メーカーA", "チェア", "サンプル仕様", "W600xD600xH800", "ファブリック ブルー",
     "2", "台", "50000", "80000", "2024年1月", "倉庫A", "山田太郎", "新商品|人気", "サンプル備考"],
    ["委託品", "サンプル委託品B", "メーカーB", "テーブル", "", "", "", "", "脚", "", "150000", "2024年2月",
     "店舗", "", "委託|展示品", ""],
]

REQUIRED_HEADERS = ("種別", "商品名")
TAG_SEPARATOR = "|"

TRUE_VALUES = {"true", "1", "yes", "y", "はい", "済", "販売済み"}
FALSE_VALUES = {"false", "0", "no", "n", "いいえ", "未", "未販売"}
PRODUCT_TYPE_VALUES = {"商品", "PRODUCT", "product"}
CONSIGNMENT_TYPE_VALUES = {"委託品", "CONSIGNMENT", "consignment", "委託"}

_SOLD_AT_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M", "%Y/%m/%d %H:%M:%S", "%Y/%m/%d %H:%M", "%Y/%m/%d")

# CSV column -> (model, ItemCreate field) for master data resolved by name
_NAMED_COLUMNS = (
    ("メーカー", Manufacturer, "manufacturer_id"),
    ("品目", Category, "category_id"),
    ("場所", Location, "location_id"),
    ("単位", Unit, "unit_id"),
)


def export_filename(family: str, today: date | None = None) -> str:
    today = today or date.today()
    return f"{family}_{today.strftime('%Y%m%d')}.csv"


def _money(value: Decimal | None) -> str:
    return "" if value is None else str(value)


def _type_label(item_type: str) -> str:
    return "商品" if item_type == ItemType.PRODUCT.value else "委託品"


def _sold_label(is_sold: bool) -> str:
    return "はい" if is_sold else "いいえ"


def _name(ref) -> str:
    return ref.name if ref is not None else ""


def _export_items(db: Session, filters: ItemFilters, family: str, order_by) -> list[Item]:
    return (
        db.query(Item)
        .options(
            selectinload(Item.category),
            selectinload(Item.manufacturer),
            selectinload(Item.location),
            selectinload(Item.unit),
            selectinload(Item.tags),
        )
        .filter(*build_where(filters, family))
        .order_by(*order_by)
        .all()
    )


def export_items_csv(db: Session, filters: ItemFilters, family: str = "items") -> str:
    rows = []
    for item in _export_items(db, filters, family, sku_order_by()):
        rows.append([
            _type_label(item.item_type),
            item.id,
            item.sku,
            item.name,
            _name(item.manufacturer),
            _name(item.category),
            item.specification,
            item.size,
            item.fabric_color,
            item.quantity,
            _name(item.unit),
            _money(item.cost_price),
            _money(item.list_price),
            item.arrival_date,
            _name(item.location),
            item.designer,
            TAG_SEPARATOR.join(tag.name for tag in item.tags),
            item.notes,
            _sold_label(item.is_sold),
            format_datetime(item.sold_at),
            format_datetime(item.created_at),
            format_datetime(item.updated_at),
        ])
    logger.info("Exported %d %s", len(rows), family)
    return serialize_csv(EXPORT_HEADERS, rows)


def _legacy_datetime(value: datetime | None) -> str:
    if value is None:
        return ""
    return f"{value.year}/{value.month}/{value.day} {value.hour}:{value.minute:02d}:{value.second:02d}"


def export_consignments_csv(db: Session, filters: ItemFilters) -> str:
    """Legacy consignment export: newest first, every data field quoted, LF line breaks."""
    rows = []
    for item in _export_items(db, filters, "consignments", (Item.created_at.desc(),)):
        rows.append([
            item.sku,
            item.name,
            _name(item.manufacturer),
            _name(item.category),
            item.specification,
            item.size,
            item.fabric_color,
            item.quantity,
            _name(item.unit),
            _money(item.cost_price),
            _money(item.list_price),
            item.arrival_date,
            _name(item.location),
            item.designer,
            TAG_SEPARATOR.join(tag.name for tag in item.tags),
            item.notes,
            _sold_label(item.is_sold),
            _legacy_datetime(item.sold_at),
        ])
    return serialize_csv(CONSIGNMENT_EXPORT_HEADERS, rows, line_terminator=LF, quote_all=True)


def import_template_csv() -> str:
    return serialize_csv(IMPORT_HEADERS, TEMPLATE_ROWS)


def consignment_import_template_csv() -> str:
    return serialize_csv(CONSIGNMENT_IMPORT_HEADERS, [])


# --- Import ---

class RowError(Exception):
    """A single CSV row could not be imported."""


def _parse_item_type(value: str) -> ItemType:
    if not value:
        return ItemType.PRODUCT
    if value in PRODUCT_TYPE_VALUES:
        return ItemType.PRODUCT
    if value in CONSIGNMENT_TYPE_VALUES:
        return ItemType.CONSIGNMENT
    raise RowError("種別は「商品」または「委託品」を入力してください")


def _parse_bool(value: str) -> bool | None:
    normalized = value.strip().lower()
    if not normalized:
        return None
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    raise RowError("販売済みは はい/いいえ または true/false を入力してください")


def _parse_sold_at(value: str) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        pass
    for fmt in _SOLD_AT_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    raise RowError("販売日時の形式が不正です")


def _normalize_number(value: str) -> str:
    return value.replace(",", "").strip()


def _parse_quantity(value: str) -> int:
    raw = _normalize_number(value)
    if not raw:
        return 0
    try:
        quantity = int(raw)
    except ValueError:
        raise RowError("個数は0以上の整数で入力してください")
    if quantity < 0:
        raise RowError("個数は0以上の整数で入力してください")
    return quantity


def _parse_price(value: str, label: str) -> Decimal | None:
    raw = _normalize_number(value)
    if not raw:
        return None
    try:
        return Decimal(raw)
    except InvalidOperation:
        raise RowError(f"{label}は数値で入力してください")


class _NameResolver:
    """Maps master data names to ids, creating missing rows on first use."""

    def __init__(self, db: Session):
        self.db = db
        self.cache: dict[type, dict[str, str]] = {}

    def resolve(self, model, name: str) -> str | None:
        name = name.strip()
        if not name:
            return None
        names = self.cache.get(model)
        if names is None:
            names = self.cache[model] = master_service.resolve_names(self.db, model)
        if name not in names:
            entry = model(name=name)
            self.db.add(entry)
            self.db.commit()
            names[name] = entry.id
            logger.info("Created %s '%s' during import", model.__tablename__, name)
        return names[name]


def _validation_message(exc: ValidationError) -> str:
    details = " / ".join(error["msg"] for error in exc.errors())
    return f"バリデーションエラー: {details}"


def import_items_csv(db: Session, content: str, user: User, item_type: ItemType | None = None) -> dict:
    """Create one item per CSV row.

    With ``item_type`` every row gets that type and the 種別 column is not
    needed. Raises ``ValueError`` when the file has no data rows or lacks a
    required header. Row-level problems are collected and do not stop the
    import.
    """
    rows = parse_csv(content)
    if len(rows) <= 1:
        raise ValueError("CSVにデータがありません")

    headers = [header.strip() for header in rows[0]]
    header_index = {header: index for index, header in enumerate(headers)}
    required_headers = REQUIRED_HEADERS if item_type is None else ("商品名",)
    for required in required_headers:
        if required not in header_index:
            raise ValueError(f"必須ヘッダーが不足しています: {required}")

    resolver = _NameResolver(db)
    errors: list[dict] = []
    imported = 0

    for row_number, row in enumerate(rows[1:], start=2):

        def value(header: str) -> str:
            index = header_index.get(header)
            if index is None or index >= len(row):
                return ""
            return row[index].strip()

        try:
            row_type = item_type or _parse_item_type(value("種別"))
            name = value("商品名")
            if not name:
                raise RowError("商品名が未入力です")
            cost_price = _parse_price(value("原価単価"), "原価単価")
            if row_type == ItemType.PRODUCT and cost_price is None:
                raise RowError("商品の原価単価は必須です")
            quantity = _parse_quantity(value("個数"))
            list_price = _parse_price(value("定価単価"), "定価単価")
            sold_flag = _parse_bool(value("販売済み"))
            sold_at = _parse_sold_at(value("販売日時"))
        except RowError as e:
            errors.append({"row": row_number, "message": str(e)})
            continue

        # Validate before resolving names so a rejected row creates no master data
        try:
            data = ItemCreate(
                item_type=row_type,
                name=name,
                specification=value("仕様") or None,
                size=value("サイズ") or None,
                fabric_color=value("張地/カラー") or None,
                quantity=quantity,
                cost_price=cost_price if row_type == ItemType.PRODUCT else None,
                list_price=list_price,
                arrival_date=convert_excel_serial_date(value("入荷年月")),
                designer=value("デザイナー") or None,
                notes=value("備考") or None,
                is_sold=True if sold_at else bool(sold_flag),
                sold_at=sold_at,
            )
        except ValidationError as e:
            errors.append({"row": row_number, "message": _validation_message(e)})
            continue

        try:
            refs = {field: resolver.resolve(model, value(column)) for column, model, field in _NAMED_COLUMNS}
            refs["tag_ids"] = [
                resolver.resolve(Tag, tag_name)
                for tag_name in value("タグ").split(TAG_SEPARATOR)
                if tag_name.strip()
            ]
            item_service.create_item(db, data.model_copy(update=refs), user)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Import of row %d failed", row_number)
            errors.append({"row": row_number, "message": "登録に失敗しました"})
            continue
        imported += 1

    logger.info("CSV import by %s: %d imported, %d errors", user.username, imported, len(errors))
    return {"success": True, "imported": imported, "errors": errors}
