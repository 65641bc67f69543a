"""
sap_odm.mapping.dates - OData date/time formatting
===================================================

Time zones matter here. A naive ``datetime`` is taken as wall-clock time
in the formatter's zone; an aware one is converted into that zone first.
Parsing returns naive wall-clock time in the formatter's zone, so a naive
value survives a format/parse round trip unchanged (at millisecond
precision).
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone, tzinfo
from typing import Union
import re

from zoneinfo import ZoneInfo

_WRAPPED = re.compile(r"^datetime'(.*)'$", re.IGNORECASE)
_JSON_DATE = re.compile(r"^/Date\((-?\d+)([+-]\d{4})?\)/$")
_FRACTION = re.compile(r"\.(\d+)")

TimeZoneLike = Union[str, tzinfo, None]


def _zone(tz: TimeZoneLike) -> tzinfo:
    if tz is None or tz == "UTC":
        return timezone.utc
    if isinstance(tz, str):
        return ZoneInfo(tz)
    return tz


class ODataDateFormat:
    """
    Formats and parses OData ``Edm.DateTime`` values.

    Parameters
    ----------
    tz : str or tzinfo
        Time zone of the remote system (default: "UTC")
    milliseconds : bool
        Include milliseconds in formatted values (default: True)

    Examples
    --------
    >>> fmt = ODataDateFormat("UTC")
    >>> fmt.format(datetime(2019, 2, 21, 22, 46, 11, 123000))
    "datetime'2019-02-21T22:46:11.123'"
    >>> fmt.parse("2019-02-21T22:46:11.123")
    datetime.datetime(2019, 2, 21, 22, 46, 11, 123000)
    """

    def __init__(self, tz: TimeZoneLike = "UTC", milliseconds: bool = True) -> None:
        self.timezone = _zone(tz)
        self.milliseconds = milliseconds

    def set_timezone(self, tz: TimeZoneLike) -> None:
        self.timezone = _zone(tz)

    def _wall_clock(self, value: datetime, tz: TimeZoneLike = None) -> datetime:
        zone = _zone(tz) if tz is not None else self.timezone
        if value.tzinfo is not None:
            value = value.astimezone(zone).replace(tzinfo=None)
        return value

    def iso(self, value: datetime, tz: TimeZoneLike = None) -> str:
        """
        Format ``value`` as bare ISO text, e.g. ``2019-02-21T22:46:11.123``.

        ``tz`` overrides the formatter's zone for this call only.
        """
        value = self._wall_clock(value, tz)
        text = value.strftime("%Y-%m-%dT%H:%M:%S")
        if self.milliseconds:
            text += f".{value.microsecond // 1000:03d}"
        return text

    def format(self, value: datetime, tz: TimeZoneLike = None) -> str:
        """Format ``value`` as an OData literal, e.g. ``datetime'2019-02-21T22:46:11.123'``."""
        return f"datetime'{self.iso(value, tz)}'"

    def parse(self, text: str) -> datetime:
        """
        Parse an OData date/time value.

        Accepts ``datetime'...'`` literals, ISO text (with or without
        fraction and offset) and the JSON ``/Date(ms)/`` form.

        Raises
        ------
        ValueError
            If ``text`` is not a recognizable date/time
        """
        text = text.strip()
        wrapped = _WRAPPED.match(text)
        if wrapped:
            text = wrapped.group(1)

        json_date = _JSON_DATE.match(text)
        if json_date:
            value = datetime(1970, 1, 1, tzinfo=timezone.utc) + timedelta(milliseconds=int(json_date.group(1)))
            return self._wall_clock(value)

        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        # fromisoformat accepts at most six fractional digits
        text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
        return self._wall_clock(datetime.fromisoformat(text))

    def __repr__(self) -> str:
        return f"ODataDateFormat(tz={self.timezone}, milliseconds={self.milliseconds})"
