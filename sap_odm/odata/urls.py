"""
sap_odm.odata.urls - OData URL construction
============================================

Two URL shapes address a single entity: by identifier
(``root/Entity(ID)/``) and by filter (``root/Entity/?$filter=...``). Both are
built from the role-tagged fields of a record.
"""

from __future__ import annotations

from typing import Iterable, List, Mapping, Tuple, Union
from urllib.parse import quote
import re

from sap_odm.mapping.codec import URL_QUOTE, escape_odata_literal, rendered_values
from sap_odm.mapping.fields import Role
from sap_odm.mapping.record import ODataRecord

#: Path segment that asks the service for the number of matching entities
COUNT = "$count/"

_SAFE = "-_.*"
_TYPED_LITERAL = re.compile(r"^(datetime|guid)'(.*)'$", re.IGNORECASE | re.DOTALL)

Pairs = Union[Mapping[str, str], Iterable[str], Iterable[Tuple[str, str]]]

__all__ = [
    "COUNT",
    "encode",
    "escape_odata_literal",
    "entity_root_url",
    "entity_url_with_id",
    "count_url",
    "expand_url",
    "filter_suffix",
    "record_filter_suffix",
    "parameter_suffix",
    "record_parameter_suffix",
]


def _q(s: str) -> str:
    return quote(s, safe=_SAFE)


def encode(s: str) -> str:
    """
    Percent-encode ``s`` for use in a URL, keeping OData literal syntax.

    A leading ``$``, surrounding single quotes, and ``datetime'...'`` /
    ``guid'...'`` wrappers are kept as they are.

    Examples
    --------
    >>> encode("'Hello World!'")
    "'Hello%20World%21'"
    >>> encode("$variable$")
    '$variable%24'
    >>> encode("datetime'2019-02-21T22:46:11.123'")
    "datetime'2019-02-21T22%3A46%3A11.123'"
    """
    if s.startswith("$"):
        return "$" + _q(s[1:])
    typed = _TYPED_LITERAL.match(s)
    if typed:
        return f"{typed.group(1)}'{_q(typed.group(2))}'"
    if len(s) >= 2 and s[0] == "'" and s[-1] == "'":
        return "'" + _q(s[1:-1]) + "'"
    return _q(s)


def _pairs(parameters: Pairs) -> List[Tuple[str, str]]:
    if isinstance(parameters, Mapping):
        return [(str(k), str(v)) for k, v in parameters.items()]
    items = list(parameters)
    if items and all(isinstance(i, tuple) for i in items):
        return [(str(k), str(v)) for k, v in items]
    if len(items) % 2:
        raise ValueError(f"Each parameter must be matched by a value: {items}")
    return [(str(items[i]), str(items[i + 1])) for i in range(0, len(items), 2)]


# ---------------------------------------------------------------------------
# Query suffixes
# ---------------------------------------------------------------------------

def filter_suffix(parameters: Pairs) -> str:
    """
    Build an encoded ``$filter`` suffix testing each parameter for equality.

    Values must already be OData literals (strings in single quotes).

    >>> filter_suffix({"ID": "'Hello'"})
    '?%24filter=ID%20eq%20%27Hello%27'

    Raises
    ------
    ValueError
        If no parameters are given or a flat list has an odd length
    """
    pairs = _pairs(parameters)
    if not pairs:
        raise ValueError("a filter needs at least one parameter-value pair")
    expression = " and ".join(f"{name} eq {value}" for name, value in pairs)
    return "?" + quote("$filter", safe="") + "=" + quote(expression, safe="")


def record_filter_suffix(record: ODataRecord, role: Role) -> str:
    """``$filter`` suffix matching ``record`` on its ``role`` fields (not EXPAND)."""
    return filter_suffix(rendered_values(record, role, URL_QUOTE, Role.EXPAND))


def parameter_suffix(parameters: Pairs) -> str:
    """
    Build an encoded query string, or ``""`` when there are no parameters.

    >>> parameter_suffix({"param1": "1", "param 2": "'Hello World'"})
    "?param1=1&param%202='Hello%20World'"
    """
    pairs = _pairs(parameters)
    if not pairs:
        return ""
    return "?" + "&".join(f"{encode(name)}={encode(value)}" for name, value in pairs)


def record_parameter_suffix(record: ODataRecord, role: Role) -> str:
    """Query string carrying every ``role`` field of ``record`` as a parameter."""
    return parameter_suffix(rendered_values(record, role, URL_QUOTE, Role.EXPAND))


# ---------------------------------------------------------------------------
# Entity URLs
# ---------------------------------------------------------------------------

def entity_root_url(service_root: str, entity_name: str) -> str:
    """Collection URL, e.g. ``https://host/svc/Products/``."""
    return f"{service_root}{entity_name}/"


def entity_url_with_id(service_root: str, entity_name: str, record: ODataRecord) -> str:
    """
    Single-entity URL built from the KEY fields of ``record``.

    One key renders bare, several render as name=value pairs in sort order:
    ``.../Products('1')/`` or ``.../Items(Order=5,Line='A')/``.
    """
    keys = rendered_values(record, Role.KEY, URL_QUOTE, Role.EXPAND)
    if len(keys) == 1:
        inner = encode(next(iter(keys.values())))
    else:
        inner = ",".join(f"{encode(name)}={encode(value)}" for name, value in keys.items())
    return f"{service_root}{entity_name}({inner})/"


def count_url(service_root: str, entity_name: str, suffix: str = "") -> str:
    """Count URL, with an optional filter suffix appended after the count segment."""
    return entity_root_url(service_root, entity_name) + COUNT + suffix


def expand_url(service_root: str, entity_name: str, record: ODataRecord, navigation: str) -> str:
    """URL of a navigation property of one entity, e.g. ``.../Orders(5)/ToItems/``."""
    return entity_url_with_id(service_root, entity_name, record) + navigation + "/"
