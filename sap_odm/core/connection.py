"""
sap_odm.core.connection - High-level connection management
===========================================================

Provides a hana_ml-style ConnectionContext that owns one session per
service root and one endpoint per record type.
"""

from __future__ import annotations

import os
from typing import Dict, Optional, TYPE_CHECKING

from dotenv import load_dotenv

from sap_odm.core.session import ODataAuth, ODataConfig, SAPODataSession

if TYPE_CHECKING:
    from sap_odm.entity import EntityClient
    from sap_odm.odata.endpoint import EntityEndpoint


class ConnectionContext:
    """
    High-level connection manager for SAP OData services.

    Sessions are created lazily, one per service root, and reused: every
    record type whose ``SERVICE_NAME`` resolves to the same root shares
    the same CSRF token and session cookie.

    Parameters
    ----------
    base_url : str, optional
        OData base URL. Falls back to S4_BASE_URL env var.
    user : str, optional
        Username for basic auth. Falls back to S4_USER env var.
    password : str, optional
        Password for basic auth. Falls back to S4_PASS env var.
    bearer_token : str, optional
        Bearer token for OAuth. Falls back to S4_BEARER_TOKEN env var.
    sap_client : str, optional
        Default SAP client. Falls back to S4_SAP_CLIENT env var.
    verify : bool, optional
        SSL verification. Falls back to S4_VERIFY_TLS env var.
    timeout : float
        Request timeout in seconds.
    retries : int
        Transport-level connection retries per request.
    reauth_on_csrf_failure : bool
        Re-harvest the session once when a change request is rejected for
        a stale CSRF token.

    Examples
    --------
    >>> with ConnectionContext() as conn:  # reads from S4_* env vars
    ...     products = conn.client(Product)
    ...     products.require(Product(product_id="HT-1000", name="Notebook"))
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        bearer_token: Optional[str] = None,
        sap_client: Optional[str] = None,
        verify: Optional[bool] = None,
        timeout: float = 60.0,
        retries: int = 0,
        reauth_on_csrf_failure: bool = False,
    ) -> None:
        self._base_url = (base_url or os.environ.get("S4_BASE_URL", "")).rstrip("/") + "/"
        self._user = user or os.environ.get("S4_USER", "")
        self._password = password or os.environ.get("S4_PASS", "")
        self._bearer_token = bearer_token or os.environ.get("S4_BEARER_TOKEN", "")
        self._sap_client = sap_client or os.environ.get("S4_SAP_CLIENT")

        if verify is not None:
            self._verify = verify
        else:
            self._verify = os.environ.get("S4_VERIFY_TLS", "true").lower() != "false"

        self._timeout = timeout
        self._retries = retries
        self._reauth = reauth_on_csrf_failure

        if not self._base_url or self._base_url == "/":
            raise ValueError(
                "Missing base_url. Set S4_BASE_URL environment variable "
                "or pass base_url parameter."
            )

        if not self._bearer_token and not (self._user and self._password):
            raise ValueError(
                "Missing credentials. Set S4_USER/S4_PASS or S4_BEARER_TOKEN "
                "environment variables, or pass user/password or bearer_token parameters."
            )

        self._sessions: Dict[str, SAPODataSession] = {}
        self._endpoints: Dict[type, "EntityEndpoint"] = {}
        self._cookie: Optional[str] = None

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None, **kwargs) -> "ConnectionContext":
        """
        Build a context from S4_* variables, loading a ``.env`` file first.

        Variables already set in the process environment win over the file.
        """
        load_dotenv(dotenv_path)
        return cls(**kwargs)

    # ---------------- sessions ----------------

    def service_root(self, service_name: str = "") -> str:
        """Service root URL for a service path relative to the base URL."""
        if not service_name:
            return self._base_url
        return self._base_url + service_name.strip("/") + "/"

    def session_for(self, service_name: str = "") -> SAPODataSession:
        """Get or create the session for one service root."""
        root = self.service_root(service_name)
        sess = self._sessions.get(root)
        if sess is None:
            sess = self._build_session(root)
            if self._cookie is not None:
                sess.set_cookie(self._cookie)
            self._sessions[root] = sess
        return sess

    @property
    def session(self) -> SAPODataSession:
        """The session for the base URL itself."""
        return self.session_for("")

    def _build_session(self, root: str) -> SAPODataSession:
        if self._bearer_token:
            auth = ODataAuth("bearer", self._bearer_token)
        else:
            auth = ODataAuth("basic", (self._user, self._password))

        cfg = ODataConfig(
            base_url=root,
            auth=auth,
            default_sap_client=self._sap_client,
            verify=self._verify,
            timeout=self._timeout,
            retries=self._retries,
            reauth_on_csrf_failure=self._reauth,
        )
        return SAPODataSession(cfg)

    def set_cookie(self, cookie: Optional[str]) -> None:
        """Override the session cookie on every session, including ones opened later."""
        self._cookie = cookie
        for sess in self._sessions.values():
            sess.set_cookie(cookie)

    # ---------------- endpoints ----------------

    def endpoint(self, record_type: type) -> "EntityEndpoint":
        """Get or create the endpoint for a record type."""
        from sap_odm.odata.endpoint import EntityEndpoint

        ep = self._endpoints.get(record_type)
        if ep is None:
            ep = EntityEndpoint(self.session_for(record_type.SERVICE_NAME), record_type)
            self._endpoints[record_type] = ep
        return ep

    def client(self, record_type: type) -> "EntityClient":
        """High-level client for a record type."""
        from sap_odm.entity import EntityClient

        return EntityClient(self, record_type)

    # ---------------- lifecycle ----------------

    def close(self) -> None:
        """Close every session and forget cached endpoints."""
        for sess in self._sessions.values():
            sess.close()
        self._sessions.clear()
        self._endpoints.clear()

    def __enter__(self) -> "ConnectionContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def base_url(self) -> str:
        """The configured base URL."""
        return self._base_url

    @property
    def sap_client(self) -> Optional[str]:
        """The configured SAP client."""
        return self._sap_client
