"""
sap_odm.mapping.codec - Records to and from the wire
=====================================================

Writes go out as JSON text assembled from the rendered field values in
descriptor order. Reads come in as Atom XML: every ``entry`` has a
``content`` child holding ``m:properties``, whose direct children are the
``d:``-prefixed property values.
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Type, TypeVar
import json
import math
import re
import xml.etree.ElementTree as ET

from sap_odm.core.errors import DeserializationError, MappingError
from sap_odm.mapping.fields import FieldDescriptor, FieldKind, Role, resolve
from sap_odm.mapping.record import ODataRecord

NS_ATOM = "http://www.w3.org/2005/Atom"
NS_METADATA = "http://schemas.microsoft.com/ado/2007/08/dataservices/metadata"
NS_DATA = "http://schemas.microsoft.com/ado/2007/08/dataservices"

#: Matches the OData type Edm.Guid
GUID_RE = re.compile(r"^[gG][uU][iI][dD]'([A-Fa-f0-9-]+)'$")

JSON_QUOTE = '"'
URL_QUOTE = "'"

R = TypeVar("R", bound=ODataRecord)


def escape_odata_literal(value: str) -> str:
    """
    Escape a string value for use in OData literals.

    Examples
    --------
    >>> escape_odata_literal("O'Brien")
    "O''Brien"
    """
    return value.replace("'", "''")


def _local(tag: str) -> str:
    return tag.split("}", 1)[-1] if "}" in tag else tag


def _quote(text: str, quote: Optional[str]) -> str:
    if quote is None:
        return text
    if quote == JSON_QUOTE:
        return json.dumps(text, ensure_ascii=False)
    if quote == URL_QUOTE:
        return URL_QUOTE + escape_odata_literal(text) + URL_QUOTE
    return quote + text + quote


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def render_value(
    record: ODataRecord,
    descriptor: FieldDescriptor,
    role: Role,
    quote: Optional[str] = None,
) -> str:
    """
    Render one field of ``record`` as wire text.

    ``quote`` selects the context: ``"'"`` for URLs (OData literals),
    ``'"'`` for JSON payloads, ``None`` for raw text.

    Raises
    ------
    MappingError
        If the value is ``None`` or does not match the field's kind
    """
    value = descriptor.get(record)
    where = f" record: {type(record).__name__} field: {descriptor.attr}"
    if value is None:
        raise MappingError("Return value must never be None!" + where)

    kind = descriptor.kind
    if kind == FieldKind.NESTED_LIST:
        if not isinstance(value, list):
            raise MappingError("Expected a list of records." + where)
        return to_json_list(value, role)

    if kind in (FieldKind.STRING, FieldKind.CHAR):
        if not isinstance(value, str) or (kind == FieldKind.CHAR and len(value) != 1):
            raise MappingError(f"Expected {kind.value}, got {value!r}." + where)
        if kind == FieldKind.STRING and quote != JSON_QUOTE and GUID_RE.match(value):
            return value
        return _quote(value, quote)

    if kind == FieldKind.DATE:
        if not isinstance(value, datetime):
            raise MappingError(f"Expected datetime, got {value!r}." + where)
        fmt = type(record).DATE_FORMAT
        if quote == JSON_QUOTE:
            return json.dumps(fmt.iso(value))
        return fmt.format(value)

    if kind == FieldKind.BOOL:
        if not isinstance(value, bool):
            raise MappingError(f"Expected bool, got {value!r}." + where)
        return "true" if value else "false"

    if kind == FieldKind.INT64:
        if isinstance(value, bool) or not isinstance(value, int):
            raise MappingError(f"Expected int, got {value!r}." + where)
        return str(value)

    if kind == FieldKind.FLOAT64:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise MappingError(f"Expected float, got {value!r}." + where)
        number = float(value)
        if not math.isfinite(number):
            raise MappingError(f"Expected a finite float, got {value!r}." + where)
        return repr(number)

    raise MappingError(f"Unsupported field kind {kind!r}." + where)


def rendered_values(
    record: ODataRecord,
    role: Role,
    quote: Optional[str] = None,
    disallowed: Optional[Role] = None,
) -> "OrderedDict[str, str]":
    """Wire name -> rendered value for every field of ``role``, in sort order."""
    fields = resolve(type(record), role, disallowed)
    return OrderedDict(
        (name, render_value(record, descriptor, role, quote))
        for name, descriptor in fields.items()
    )


def to_json(record: ODataRecord, role: Role = Role.VALUE) -> str:
    """
    Render ``record`` as a JSON object.

    >>> to_json(Product(product_id="1", price=2.5))
    '{"ProductID":"1","Price":2.5}'
    """
    pairs = [
        json.dumps(name) + ":" + value
        for name, value in rendered_values(record, role, JSON_QUOTE).items()
    ]
    return "{" + ",".join(pairs) + "}"


def to_json_list(records: Iterable[ODataRecord], role: Role = Role.VALUE) -> str:
    """Render ``records`` as a JSON array of objects."""
    return "[" + ",".join(to_json(r, role) for r in records) + "]"


def same_values(a: ODataRecord, b: ODataRecord, role: Role = Role.VALUE) -> bool:
    """
    True if ``a`` and ``b`` render identically for ``role``.

    Comparing wire renderings makes dates equal at the precision the
    server stores them (milliseconds) and floats equal when their
    canonical text is. Fields that also carry an expand link are left
    out since a flat read never fills them.
    """
    if type(a) is not type(b):
        return False
    return (rendered_values(a, role, JSON_QUOTE, Role.EXPAND)
            == rendered_values(b, role, JSON_QUOTE, Role.EXPAND))


def copy_fields(source: R, target: R, role: Role) -> None:
    """Copy the ``role`` fields of ``source`` into ``target`` through the string mutators."""
    for name, descriptor in resolve(type(source), role, Role.EXPAND).items():
        descriptor.set_text(target, render_value(source, descriptor, role), name)


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------

def new_record(record_type: Type[R]) -> R:
    """Instantiate a default record of ``record_type``."""
    try:
        return record_type()
    except ValueError as e:
        raise MappingError(f"Record type {record_type.__name__} must be default-constructible: {e}") from e


def from_map(
    record: ODataRecord,
    values: Mapping[str, str],
    role: Role = Role.VALUE,
    require_complete: bool = False,
) -> None:
    """
    Update ``record`` in place from wire name -> text pairs.

    Expand fields are never set here. Missing properties raise when
    ``require_complete`` is true and are skipped otherwise.

    Raises
    ------
    DeserializationError
        If a required property is missing or its text cannot be assigned
    """
    fields = resolve(type(record), role, Role.EXPAND)
    for name, descriptor in fields.items():
        if name not in values:
            if require_complete:
                raise DeserializationError(name, local_type=type(record).__name__)
            continue
        try:
            descriptor.set_text(record, values[name], name)
        except DeserializationError as e:
            e.local_type = type(record).__name__
            raise


def properties_map(entry: ET.Element) -> Dict[str, str]:
    """
    Flatten the inline properties of one Atom ``entry``.

    Properties in the data services namespace are keyed by their local
    name (``d:Price`` -> ``Price``); any other child keeps its qualified
    ``{namespace}name`` tag.
    """
    props = None
    for child in entry:
        if _local(child.tag) == "content":
            props = child.find(f"{{{NS_METADATA}}}properties")
            break
    if props is None:
        # media link entries carry their properties beside the content
        props = entry.find(f"{{{NS_METADATA}}}properties")
    if props is None:
        raise DeserializationError("m:properties")

    out: Dict[str, str] = {}
    prefix = f"{{{NS_DATA}}}"
    for prop in props:
        name = prop.tag[len(prefix):] if prop.tag.startswith(prefix) else prop.tag
        out[name] = "".join(prop.itertext())
    return out


def from_xml_entry(record: ODataRecord, entry: ET.Element, role: Role = Role.VALUE) -> None:
    """Update ``record`` in place from one Atom entry; every property must be present."""
    try:
        values = properties_map(entry)
    except DeserializationError as e:
        e.local_type = type(record).__name__
        raise
    from_map(record, values, role, require_complete=True)


def entries(document: Optional[ET.Element]) -> List[ET.Element]:
    """Top-level entries of an Atom feed or single-entry document."""
    if document is None:
        return []
    if _local(document.tag) == "entry":
        return [document]
    return [child for child in document if _local(child.tag) == "entry"]


def from_xml_document(
    record_type: Type[R],
    document: Optional[ET.Element],
    role: Role = Role.VALUE,
) -> List[R]:
    """Build one record per entry in ``document`` (any count, including zero)."""
    out: List[R] = []
    for entry in entries(document):
        record = new_record(record_type)
        from_xml_entry(record, entry, role)
        out.append(record)
    return out


def from_xml_single(record: ODataRecord, document: Optional[ET.Element], role: Role = Role.VALUE) -> None:
    """
    Update ``record`` in place from a document holding exactly one entry.

    Raises
    ------
    MappingError
        If the document holds zero entries or more than one
    """
    found = entries(document)
    if len(found) != 1:
        raise MappingError(f"XML document must contain exactly one OData entry. Count was: {len(found)}")
    from_xml_entry(record, found[0], role)


def parse_json_values(text: str) -> Dict[str, str]:
    """
    Parse a flat JSON object into wire name -> text, keeping numbers as
    they were written and booleans as ``true``/``false``.
    """
    data: Any = json.loads(text, parse_int=str, parse_float=str)
    if not isinstance(data, dict):
        raise ValueError("expected a JSON object")
    out: Dict[str, str] = {}
    for name, value in data.items():
        if isinstance(value, bool):
            out[name] = "true" if value else "false"
        elif isinstance(value, str):
            out[name] = value
        else:
            out[name] = json.dumps(value)
    return out
