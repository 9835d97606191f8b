from stockbook.api.legacy import build_legacy_router
from stockbook.models.item import ItemType
from stockbook.services import item_csv_service

# Consignment export keeps the pre-unification column set and quoting
router = build_legacy_router(
    family="consignments",
    item_type=ItemType.CONSIGNMENT.value,
    list_key="consignments",
    entity_key="consignment",
    ids_key="consignmentIds",
    export_csv=item_csv_service.export_consignments_csv,
    template_csv=item_csv_service.consignment_import_template_csv,
    template_filename="consignment_import_template.csv",
)
