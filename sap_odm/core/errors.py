"""
sap_odm.core.errors - Exception hierarchy
==========================================

All errors raised by sap_odm derive from ODataError. None of them are
retried or swallowed internally; they propagate to the immediate caller.
"""

from __future__ import annotations

from typing import Dict, Optional


class ODataError(Exception):
    """Base class for all sap_odm errors."""


class MappingError(ODataError):
    """
    A record type cannot be mapped onto the wire.

    Raised for missing or non-callable accessors, colliding wire names
    within one role, a requested role that no field carries, a field type
    that cannot be rendered, or a getter that yields ``None``.
    """


class DeserializationError(ODataError):
    """
    The server entity does not have a property the local type expects.

    The endpoint attaches ``url`` and ``local_type`` before re-raising, so
    the caller sees where the mismatch happened.

    Attributes
    ----------
    missing_property : str
        Name of the remote OData property that was requested
    local_type : str, optional
        Name of the local record type being filled
    url : str, optional
        The URL that was requested
    reason : str, optional
        Set when the property exists but its value could not be assigned
    """

    def __init__(
        self,
        missing_property: str,
        *,
        local_type: Optional[str] = None,
        url: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> None:
        super().__init__(missing_property)
        self.missing_property = missing_property
        self.local_type = local_type
        self.url = url
        self.reason = reason

    def __str__(self) -> str:
        if self.reason:
            msg = f"Deserialization mismatch: cannot assign {self.reason} to property: {self.missing_property}"
        else:
            msg = f"Deserialization mismatch: the server entity does not have property: {self.missing_property}"
        if self.local_type:
            msg += f"\nlocal type: {self.local_type}"
        if self.url:
            msg += f"\nurl: {self.url}"
        return msg


class ProtocolError(ODataError, IOError):
    """
    The OData service answered with an unexpected status code.

    Attributes
    ----------
    status : int
        HTTP status code
    message : str
        Status line plus the server's decoded error message (best effort)
    url : str
        The URL that was called
    payload : str, optional
        The request payload, if one was sent
    headers : dict
        Response headers
    """

    def __init__(
        self,
        status: int,
        message: str,
        url: str,
        payload: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.status = status
        self.message = message or ""
        self.url = url
        self.payload = payload
        self.headers = headers or {}
        text = f"HTTP request failed with response code: {self.message[:1200]}\nurl: {url}"
        if payload is not None:
            text += f"\npayload: {payload[:1200]}"
        self._text = text
        super().__init__(text)

    def __str__(self) -> str:
        return self._text


class SessionError(ODataError, IOError):
    """
    The session could not be established or refreshed.

    Raised when a GET does not return an anti-forgery token or a session
    cookie, or when a concurrency token (etag) required by a mutating
    request could not be obtained.
    """

    def __init__(self, message: str, url: Optional[str] = None) -> None:
        self.url = url
        self._text = f"{message}\nurl: {url}" if url else message
        super().__init__(self._text)

    def __str__(self) -> str:
        return self._text
