from functools import partial

from stockbook.api.legacy import build_legacy_router
from stockbook.models.item import ItemType
from stockbook.services import item_csv_service

router = build_legacy_router(
    family="products",
    item_type=ItemType.PRODUCT.value,
    list_key="products",
    entity_key="product",
    ids_key="productIds",
    export_csv=partial(item_csv_service.export_items_csv, family="products"),
    template_csv=item_csv_service.import_template_csv,
    template_filename="items_template.csv",
)
