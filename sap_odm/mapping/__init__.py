"""
sap_odm.mapping - Records and their wire format
================================================

- ODataRecord: Base class for mapped records
- odata_field: Declares a field and its wire name per role
- Role / FieldKind: Serialization purpose and wire kind of a field
- ODataDateFormat: Date/time rendering and parsing in a fixed time zone
- codec: JSON payloads out, Atom XML entries in

"""

from sap_odm.mapping.dates import ODataDateFormat
from sap_odm.mapping.fields import FieldKind, Role, field_table, odata_field, resolve
from sap_odm.mapping.record import ODataRecord
from sap_odm.mapping import codec

__all__ = [
    "ODataDateFormat",
    "FieldKind",
    "Role",
    "field_table",
    "odata_field",
    "resolve",
    "ODataRecord",
    "codec",
]
