"""
sap_odm.mapping.fields - Role-tagged field descriptors
=======================================================

Each record type gets an explicit, ordered descriptor table built once on
first use: one entry per mapped field with its wire names per role, sort
order, declaration position and kind. Every mapping operation reads that
table; nothing is introspected per call.

Declaring fields
----------------
>>> class Product(ODataRecord):
...     ENTITY_NAME = "Products"
...     product_id: str = odata_field("", key="ProductID", value="ProductID")
...     price: float = odata_field(0.0, value="Price", order=1)
...     items: List[ProductItem] = odata_field(expand="ToItems", default_factory=list)
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Type, TYPE_CHECKING
import typing

from pydantic import Field

from sap_odm.core.errors import DeserializationError, MappingError

if TYPE_CHECKING:
    from sap_odm.mapping.record import ODataRecord

ODATA_EXTRA = "x-odata"


class Role(str, Enum):
    """Serialization purpose of a field."""
    KEY = "key"
    SECONDARY_KEY = "secondary_key"
    VALUE = "value"
    EXPAND = "expand"


class FieldKind(str, Enum):
    """Wire kind of a field, fixed when the descriptor table is built."""
    STRING = "string"
    CHAR = "char"
    DATE = "date"
    BOOL = "bool"
    INT64 = "int64"
    FLOAT64 = "float64"
    NESTED_LIST = "nested_list"


_SCALAR_KINDS = {
    str: FieldKind.STRING,
    bool: FieldKind.BOOL,
    int: FieldKind.INT64,
    float: FieldKind.FLOAT64,
    datetime: FieldKind.DATE,
}

_TRUE = {"true", "1", "x"}
_FALSE = {"false", "0", ""}


def odata_field(
    default: Any = ...,
    *,
    key: Optional[str] = None,
    secondary_key: Optional[str] = None,
    value: Optional[str] = None,
    expand: Optional[str] = None,
    order: int = 0,
    kind: Optional[FieldKind] = None,
    default_factory: Optional[Callable[[], Any]] = None,
    **kwargs: Any,
) -> Any:
    """
    Declare a record field and the roles it plays on the wire.

    Parameters
    ----------
    default : any
        Default value. Records must be default-constructible, so every
        mapped field needs a default or a ``default_factory``.
    key, secondary_key, value, expand : str, optional
        Wire property name for each role the field carries
    order : int
        Sort order when serializing (lower first, ties keep declaration order)
    kind : FieldKind, optional
        Override the kind inferred from the annotation (needed for CHAR)
    default_factory : callable, optional
        Factory for mutable defaults such as lists
    **kwargs
        Passed through to ``pydantic.Field``
    """
    roles = {
        Role.KEY.value: key,
        Role.SECONDARY_KEY.value: secondary_key,
        Role.VALUE.value: value,
        Role.EXPAND.value: expand,
    }
    extra = {name: wire for name, wire in roles.items() if wire is not None}
    if not extra:
        raise MappingError("odata_field needs at least one of key, secondary_key, value or expand")
    extra["order"] = int(order)
    if kind is not None:
        extra["kind"] = FieldKind(kind).value
        if extra["kind"] == FieldKind.CHAR.value:
            kwargs.setdefault("min_length", 1)
            kwargs.setdefault("max_length", 1)

    if default_factory is not None:
        kwargs["default_factory"] = default_factory
    else:
        kwargs["default"] = default
    return Field(json_schema_extra={ODATA_EXTRA: extra}, **kwargs)


def _coerce(kind: FieldKind, text: str, record_type: Type["ODataRecord"]) -> Any:
    if kind in (FieldKind.STRING, FieldKind.CHAR):
        return text
    if kind == FieldKind.INT64:
        return int(text.strip())
    if kind == FieldKind.FLOAT64:
        return float(text.strip())
    if kind == FieldKind.BOOL:
        flag = text.strip().lower()
        if flag in _TRUE:
            return True
        if flag in _FALSE:
            return False
        raise ValueError(f"not a boolean: {text!r}")
    if kind == FieldKind.DATE:
        return record_type.DATE_FORMAT.parse(text)
    raise MappingError(f"Fields of kind {kind.value} cannot be set from text")


@dataclass(frozen=True)
class FieldDescriptor:
    """
    One mapped field of a record type.

    Attributes
    ----------
    attr : str
        Python attribute name
    names : mapping
        Wire property name per role the field carries
    order : int
        Declared sort order
    position : int
        Declaration position (tie breaker)
    kind : FieldKind
        Wire kind
    item_type : type, optional
        Element record type for NESTED_LIST fields
    getter : str, optional
        Name of a ``get_<attr>`` hook defined on the record type
    setter : str, optional
        Name of a ``set_<attr>`` hook defined on the record type
    """
    attr: str
    names: Mapping[Role, str]
    order: int
    position: int
    kind: FieldKind
    item_type: Optional[type] = None
    getter: Optional[str] = None
    setter: Optional[str] = None

    def has_role(self, role: Role) -> bool:
        return role in self.names

    def get(self, record: "ODataRecord") -> Any:
        if self.getter:
            return getattr(record, self.getter)()
        return getattr(record, self.attr)

    def set_text(self, record: "ODataRecord", text: str, wire_name: str) -> None:
        """Assign a wire string through the field's string mutator."""
        try:
            if self.setter:
                getattr(record, self.setter)(text)
            else:
                setattr(record, self.attr, _coerce(self.kind, text, type(record)))
        except ValueError as e:
            # pydantic's ValidationError is a ValueError too
            raise DeserializationError(wire_name, reason=f"value {text!r} ({e.__class__.__name__})") from e

    def set_items(self, record: "ODataRecord", items: List["ODataRecord"]) -> None:
        setattr(record, self.attr, list(items))


@dataclass(frozen=True)
class ExpandLink:
    """A one-to-many relationship: wire name, child record type, and the field to fill."""
    wire_name: str
    target: type
    field: FieldDescriptor

    def populate(self, record: "ODataRecord", children: List["ODataRecord"]) -> None:
        self.field.set_items(record, children)


_TABLES: Dict[type, List[FieldDescriptor]] = {}


def _infer_kind(record_type: type, attr: str, annotation: Any) -> "tuple[FieldKind, Optional[type]]":
    from sap_odm.mapping.record import ODataRecord

    if annotation in _SCALAR_KINDS:
        return _SCALAR_KINDS[annotation], None
    if typing.get_origin(annotation) in (list, List):
        args = typing.get_args(annotation)
        if len(args) == 1 and isinstance(args[0], type) and issubclass(args[0], ODataRecord):
            return FieldKind.NESTED_LIST, args[0]
    raise MappingError(
        f"Field {attr!r} of {record_type.__name__} has type {annotation!r}; expected str, bool, int, "
        f"float, datetime or List[ODataRecord]"
    )


def _hook(record_type: type, name: str) -> Optional[str]:
    if not hasattr(record_type, name):
        return None
    if not callable(getattr(record_type, name)):
        raise MappingError(f"Accessor {name!r} of {record_type.__name__} must be callable")
    return name


def field_table(record_type: Type["ODataRecord"]) -> List[FieldDescriptor]:
    """
    Return the descriptor table for ``record_type`` in declaration order.

    Built once per type and cached for the process lifetime.

    Raises
    ------
    MappingError
        If a mapped field has an unsupported type, an expand field is not a
        list of records, or an accessor hook is not callable
    """
    table = _TABLES.get(record_type)
    if table is not None:
        return table

    table = []
    for position, (attr, info) in enumerate(record_type.model_fields.items()):
        extra = info.json_schema_extra if isinstance(info.json_schema_extra, dict) else {}
        meta = extra.get(ODATA_EXTRA)
        if not isinstance(meta, dict):
            continue

        names = {role: meta[role.value] for role in Role if role.value in meta}
        kind, item_type = _infer_kind(record_type, attr, info.annotation)
        if "kind" in meta:
            override = FieldKind(meta["kind"])
            if override == FieldKind.CHAR and kind != FieldKind.STRING:
                raise MappingError(f"Field {attr!r} of {record_type.__name__} is declared char but is not a str")
            kind = override
        if Role.EXPAND in names and kind != FieldKind.NESTED_LIST:
            raise MappingError(f"Expand field {attr!r} of {record_type.__name__} must be a List of ODataRecord")

        table.append(FieldDescriptor(
            attr=attr,
            names=names,
            order=int(meta.get("order", 0)),
            position=position,
            kind=kind,
            item_type=item_type,
            getter=_hook(record_type, f"get_{attr}"),
            setter=_hook(record_type, f"set_{attr}"),
        ))

    _TABLES[record_type] = table
    return table


def has_role(record_type: Type["ODataRecord"], role: Role) -> bool:
    return any(d.has_role(role) for d in field_table(record_type))


def resolve(
    record_type: Type["ODataRecord"],
    role: Role,
    disallowed: Optional[Role] = None,
) -> "OrderedDict[str, FieldDescriptor]":
    """
    Map wire names to field descriptors for one role.

    Parameters
    ----------
    record_type : type
        An ODataRecord subclass
    role : Role
        The role to resolve
    disallowed : Role, optional
        Skip fields that also carry this role (e.g. EXPAND when reading
        flat values)

    Returns
    -------
    OrderedDict
        Wire name -> descriptor, ascending sort order, ties in declaration order

    Raises
    ------
    MappingError
        If two fields share a wire name within ``role``, or no field
        carries ``role``
    """
    seen: Dict[str, FieldDescriptor] = {}
    for descriptor in field_table(record_type):
        if not descriptor.has_role(role):
            continue
        if disallowed is not None and descriptor.has_role(disallowed):
            continue
        name = descriptor.names[role]
        if name in seen:
            raise MappingError(
                f"In record type '{record_type.__name__}', fields of role '{role.value}' "
                f"may not share the identical wire name '{name}'"
            )
        seen[name] = descriptor

    if not seen:
        raise MappingError(f"No fields found with role {role.value} in {record_type.__name__}")

    ordered = sorted(seen.items(), key=lambda item: (item[1].order, item[1].position))
    return OrderedDict(ordered)


def expand_links(record_type: Type["ODataRecord"]) -> List[ExpandLink]:
    """Return the expandable relationships of ``record_type`` (possibly empty)."""
    if not has_role(record_type, Role.EXPAND):
        return []
    return [
        ExpandLink(wire_name=name, target=d.item_type, field=d)  # type: ignore[arg-type]
        for name, d in resolve(record_type, Role.EXPAND).items()
    ]
