"""
SAP OData Mapping client (sap_odm)
==================================

Maps local records onto SAP OData v2 entities and keeps the remote side
in sync with them: typed records in, Atom XML and JSON on the wire, with
CSRF token, session cookie and etag handling done for you.

Usage
-----
>>> from sap_odm import ConnectionContext, ODataRecord, odata_field
>>>
>>> class Product(ODataRecord):
...     ENTITY_NAME = "Products"
...     product_id: str = odata_field("", key="ProductID", value="ProductID")
...     name: str = odata_field("", value="Name", order=1)
>>>
>>> with ConnectionContext() as conn:
...     products = conn.client(Product)
...     products.require(Product(product_id="HT-1000", name="Notebook"))

Subpackages
-----------
- sap_odm.core: Session, authentication, errors and connection management
- sap_odm.mapping: Record declaration, field roles and the payload codec
- sap_odm.odata: URL construction and entity-level requests

"""

__version__ = "0.1.0"

from sap_odm.core import (
    ConnectionContext,
    DeserializationError,
    MappingError,
    ODataAuth,
    ODataConfig,
    ODataError,
    ODataResponse,
    ProtocolError,
    SAPODataSession,
    SessionError,
    SKIP_ETAG,
)

from sap_odm.mapping import FieldKind, ODataDateFormat, ODataRecord, Role, odata_field
from sap_odm.odata import EntityEndpoint
from sap_odm.entity import EntityClient

__all__ = [
    # Version
    "__version__",
    # Core
    "ODataAuth",
    "ODataConfig",
    "SAPODataSession",
    "ODataResponse",
    "ConnectionContext",
    "SKIP_ETAG",
    # Errors
    "ODataError",
    "MappingError",
    "DeserializationError",
    "ProtocolError",
    "SessionError",
    # Mapping
    "ODataRecord",
    "ODataDateFormat",
    "odata_field",
    "Role",
    "FieldKind",
    # Requests
    "EntityEndpoint",
    "EntityClient",
]
