"""
sap_odm.odata - Entity-level OData access
==========================================

- EntityEndpoint: Count, create, read, update and delete for one entity set
- urls: Entity, count, filter and expansion URL construction

"""

from sap_odm.odata.endpoint import EntityEndpoint, expect_status
from sap_odm.odata import urls

__all__ = [
    "EntityEndpoint",
    "expect_status",
    "urls",
]
