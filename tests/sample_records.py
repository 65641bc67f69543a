"""
Record types shared by the tests.
"""

from datetime import datetime
from typing import List

from sap_odm.mapping import FieldKind, ODataRecord, odata_field


class ProductItem(ODataRecord):
    ENTITY_NAME = "ProductItems"

    item_id: str = odata_field("", key="ItemID", value="ItemID")
    quantity: int = odata_field(0, value="Quantity", order=1)


class Product(ODataRecord):
    ENTITY_NAME = "Products"

    product_id: str = odata_field("", key="ProductID", value="ProductID")
    name: str = odata_field("", secondary_key="Name", value="Name", order=1)
    price: float = odata_field(0.0, value="Price", order=2)
    active: bool = odata_field(False, value="Active", order=3)
    created_at: datetime = odata_field(datetime(2000, 1, 1), value="CreatedAt", order=4)
    items: List[ProductItem] = odata_field(expand="ToItems", default_factory=list)


class OrderLine(ODataRecord):
    """Composite key, char field and a GUID."""
    ENTITY_NAME = "OrderLines"
    SERVICE_NAME = "API_ORDER_SRV"

    order: int = odata_field(0, key="Order", value="Order")
    line: str = odata_field("", key="Line", value="Line", order=1)
    flag: str = odata_field("N", value="Flag", order=2, kind=FieldKind.CHAR)
    guid: str = odata_field("guid'00000000-0000-0000-0000-000000000000'", value="Guid", order=3)


class Note(ODataRecord):
    """Upper-cases its text through a set hook."""
    ENTITY_NAME = "Notes"

    note_id: int = odata_field(0, key="NoteID", value="NoteID")
    text: str = odata_field("", value="Text", order=1)

    def set_text(self, text: str) -> None:
        self.text = text.upper()
