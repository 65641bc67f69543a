"""
sap_odm.core - Core connectivity and authentication
====================================================

This module provides the foundational classes for talking to SAP systems:

- ODataAuth: Authentication configuration (basic or bearer token)
- ODataConfig: Full connection configuration
- SAPODataSession: HTTP session with CSRF token, session cookie and etag handling
- ODataResponse: Normalized response of one exchange
- ConnectionContext: High-level connection manager (hana_ml style)

"""

from sap_odm.core.errors import (
    ODataError,
    MappingError,
    DeserializationError,
    ProtocolError,
    SessionError,
)

from sap_odm.core.response import ODataResponse

from sap_odm.core.session import (
    ODataAuth,
    ODataConfig,
    SAPODataSession,
    SKIP_ETAG,
)

from sap_odm.core.connection import ConnectionContext

__all__ = [
    "ODataError",
    "MappingError",
    "DeserializationError",
    "ProtocolError",
    "SessionError",
    "ODataResponse",
    "ODataAuth",
    "ODataConfig",
    "SAPODataSession",
    "SKIP_ETAG",
    "ConnectionContext",
]
