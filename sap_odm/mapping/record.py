"""
sap_odm.mapping.record - Base class for mapped records
=======================================================
"""

from __future__ import annotations

from typing import ClassVar

from pydantic import BaseModel, ConfigDict

from sap_odm.mapping.dates import ODataDateFormat


class ODataRecord(BaseModel):
    """
    Base class for local records mapped onto a remote OData entity.

    Subclasses declare their fields with :func:`~sap_odm.mapping.fields.odata_field`
    and set ``ENTITY_NAME``. Assignments are validated, so a record always
    holds typed values; setters for the wire take text and coerce it.

    Class attributes
    ----------------
    ENTITY_NAME : str
        Entity set name as it appears in the URL, without trailing slash
    SERVICE_NAME : str
        Service path relative to the configured base URL. Leave empty when
        the base URL already is the service root.
    DATE_FORMAT : ODataDateFormat
        Formatter for date/time fields. Set a time zone that matches the
        remote system, e.g. ``ODataDateFormat("Europe/Berlin")``.

    Examples
    --------
    >>> class Product(ODataRecord):
    ...     ENTITY_NAME = "Products"
    ...     product_id: str = odata_field("", key="ProductID", value="ProductID")
    ...     name: str = odata_field("", value="Name", order=1)
    """

    model_config = ConfigDict(validate_assignment=True)

    ENTITY_NAME: ClassVar[str] = ""
    SERVICE_NAME: ClassVar[str] = ""
    DATE_FORMAT: ClassVar[ODataDateFormat] = ODataDateFormat()
