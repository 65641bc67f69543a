"""
Example: Basic usage of sap_odm
===============================

This example maps two local record types onto an SAP OData v2 service and
keeps the remote side in sync with them.
"""

import logging
from datetime import datetime
from typing import List

from sap_odm import (
    ConnectionContext,
    EntityClient,
    EntityEndpoint,
    FieldKind,
    ODataAuth,
    ODataConfig,
    ODataDateFormat,
    ODataRecord,
    ProtocolError,
    Role,
    SAPODataSession,
    odata_field,
)


class SalesOrderItem(ODataRecord):
    ENTITY_NAME = "A_SalesOrderItem"
    SERVICE_NAME = "API_SALES_ORDER_SRV"

    sales_order: str = odata_field("", key="SalesOrder", value="SalesOrder")
    item: str = odata_field("", key="SalesOrderItem", value="SalesOrderItem", order=1)
    material: str = odata_field("", value="Material", order=2)
    quantity: float = odata_field(0.0, value="RequestedQuantity", order=3)


class SalesOrder(ODataRecord):
    ENTITY_NAME = "A_SalesOrder"
    SERVICE_NAME = "API_SALES_ORDER_SRV"
    DATE_FORMAT = ODataDateFormat("Europe/Berlin")

    sales_order: str = odata_field("", key="SalesOrder", value="SalesOrder")
    purchase_order: str = odata_field("", secondary_key="PurchaseOrderByCustomer",
                                      value="PurchaseOrderByCustomer", order=1)
    order_type: str = odata_field("OR", value="SalesOrderType", order=2)
    complete: str = odata_field("A", value="OverallSDProcessStatus", order=3, kind=FieldKind.CHAR)
    created: datetime = odata_field(datetime(2000, 1, 1), value="CreationDate", order=4)
    items: List[SalesOrderItem] = odata_field(expand="to_Item", default_factory=list)


def example_session():
    """Low-level session and endpoint usage."""

    cfg = ODataConfig(
        base_url="https://your-s4.example.com/sap/opu/odata/sap/API_SALES_ORDER_SRV/",
        auth=ODataAuth("basic", ("USER", "PASSWORD")),
        default_sap_client="100",
        verify=True,
    )

    with SAPODataSession(cfg) as sess:
        orders = EntityEndpoint(sess, SalesOrder)
        print("Orders:", orders.count())

        order = SalesOrder(sales_order="1")
        orders.display(order)
        print(f"Order {order.sales_order} has {len(order.items)} items")


def example_connection_context():
    """Using ConnectionContext (hana_ml style)."""

    # Reads from environment variables: S4_BASE_URL, S4_USER, S4_PASS, S4_SAP_CLIENT
    with ConnectionContext.from_env() as conn:
        orders: EntityClient = conn.client(SalesOrder)

        order = SalesOrder(sales_order="4711", purchase_order="PO-4711", created=datetime.now())
        try:
            outcome = orders.require(order)
        except ProtocolError as e:
            print(f"Upstream error {e.status}: {e.message}")
            return
        print(f"PO-4711: {outcome}")

        remote = orders.fetch_remote_copy(order, key_role=Role.SECONDARY_KEY)
        print("Remote copy:", remote)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    print("=== Session Example ===")
    # example_session()

    print("\n=== ConnectionContext Example ===")
    # example_connection_context()
