"""
sap_odm.core.response - Normalized outcome of one HTTP exchange
================================================================

Wraps a transport response into an immutable value. The body can be read
either as raw text or as a parsed XML document, never both: whichever is
materialized first wins and the other accessor returns ``None``.
"""

from __future__ import annotations

import json
from typing import Any, List, Mapping, Optional
import xml.etree.ElementTree as ET

from requests import Response
from requests.structures import CaseInsensitiveDict

from sap_odm.core.errors import ProtocolError


def _strip_ns(tag: str) -> str:
    """Strip XML namespace from a tag name."""
    return tag.split("}", 1)[-1] if "}" in tag else tag


class ODataResponse:
    """
    Result of one completed request.

    Parameters
    ----------
    status_code : int
        HTTP status code, e.g. 200 or 404
    reason : str, optional
        HTTP status message, e.g. "OK" or "Not Found"
    headers : mapping, optional
        Response headers (looked up case-insensitively)
    content : bytes
        Raw response body
    url : str, optional
        The URL the request was sent to
    payload : str, optional
        The payload that was sent with the request
    encoding : str
        Charset used to decode the body as text
    set_cookies : list of str, optional
        Each ``Set-Cookie`` header value on its own. Defaults to the single
        value found in ``headers``, if any.
    """

    def __init__(
        self,
        status_code: int,
        reason: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
        content: bytes = b"",
        url: Optional[str] = None,
        payload: Optional[str] = None,
        encoding: str = "utf-8",
        set_cookies: Optional[List[str]] = None,
    ) -> None:
        self._status_code = int(status_code)
        self._reason = reason
        self._headers = CaseInsensitiveDict(headers or {})
        self._content = content or b""
        self._url = url
        self._payload = payload
        self._encoding = encoding
        self._text: Optional[str] = None
        self._document: Optional[ET.Element] = None
        if set_cookies is None:
            single = self._headers.get("Set-Cookie")
            set_cookies = [single] if single else []
        self._set_cookies = list(set_cookies)

    @classmethod
    def from_http(cls, r: Response, url: str, payload: Optional[str] = None) -> "ODataResponse":
        """Build from a ``requests.Response`` that has been received."""
        return cls(
            r.status_code,
            reason=r.reason,
            headers=r.headers,
            content=r.content,
            url=url,
            payload=payload,
            encoding=r.encoding or "utf-8",
            set_cookies=_set_cookie_values(r),
        )

    # ---------------- status / headers ----------------

    @property
    def status_code(self) -> int:
        return self._status_code

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    @property
    def headers(self) -> CaseInsensitiveDict:
        return CaseInsensitiveDict(self._headers)

    @property
    def set_cookies(self) -> List[str]:
        """Every ``Set-Cookie`` header value, unjoined."""
        return list(self._set_cookies)

    @property
    def etag(self) -> Optional[str]:
        return self._headers.get("etag")

    @property
    def location(self) -> Optional[str]:
        return self._headers.get("Location")

    @property
    def sap_message(self) -> Optional[str]:
        return self._headers.get("sap-message")

    @property
    def url(self) -> Optional[str]:
        return self._url

    @property
    def payload(self) -> Optional[str]:
        return self._payload

    # ---------------- body ----------------

    @property
    def text(self) -> Optional[str]:
        """Raw body text, or ``None`` if the body was already read as XML."""
        if self._document is not None:
            return None
        if self._text is None:
            self._text = self._content.decode(self._encoding, errors="replace")
        return self._text

    @property
    def document(self) -> Optional[ET.Element]:
        """
        Body parsed as XML (root element).

        Returns ``None`` if the body is empty or was already read as text.

        Raises
        ------
        ProtocolError
            If the body is not well-formed XML
        """
        if self._text is not None:
            return None
        if self._document is None and self._content.strip():
            try:
                self._document = ET.fromstring(self._content)
            except ET.ParseError as e:
                raise ProtocolError(
                    self._status_code,
                    f"{self.status_line}: response body is not valid XML ({e})",
                    self._url or "",
                    self._payload,
                    dict(self._headers),
                ) from e
        return self._document

    # ---------------- diagnostics ----------------

    @property
    def status_line(self) -> str:
        """Status code and message, e.g. ``404 Not Found``."""
        return f"{self._status_code} {self._reason}" if self._reason else str(self._status_code)

    @property
    def error_message(self) -> str:
        """Status line plus the server's error message, if one can be decoded."""
        detail = self._error_detail()
        return f"{self.status_line}: {detail}" if detail else self.status_line

    def _error_detail(self) -> Optional[str]:
        # reads the raw content so that text/document stay untouched
        raw = self._content.strip()
        if not raw:
            return None
        try:
            root = ET.fromstring(raw)
        except ET.ParseError:
            root = None
        if root is not None:
            for node in root.iter():
                if _strip_ns(node.tag) == "message":
                    text = "".join(node.itertext()).strip()
                    if text:
                        return text
            return None
        return _sap_json_error(raw)

    def __repr__(self) -> str:
        return f"ODataResponse[url={self._url}, response={self.status_line}]"


def _sap_json_error(raw: bytes) -> Optional[str]:
    try:
        data: Any = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    err = data.get("error")
    if not isinstance(err, dict):
        return None

    code = err.get("code")
    message = None
    if isinstance(err.get("message"), dict):
        message = err["message"].get("value")
    elif isinstance(err.get("message"), str):
        message = err.get("message")

    inner = err.get("innererror") or err.get("innerError")
    txid = inner.get("transactionid") if isinstance(inner, dict) else None

    parts = []
    if message:
        parts.append(str(message))
    if code:
        parts.append(f"code={code}")
    if txid:
        parts.append(f"txid={txid}")
    return " | ".join(parts) or None


def _set_cookie_values(r: Response) -> List[str]:
    # requests joins repeated headers with ", ", which also occurs inside cookie
    # attributes; the transport keeps them apart
    raw_headers = getattr(r.raw, "headers", None)
    if raw_headers is not None and hasattr(raw_headers, "getlist"):
        return list(raw_headers.getlist("Set-Cookie"))
    single = r.headers.get("Set-Cookie")
    return [single] if single else []
