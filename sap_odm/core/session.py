"""
sap_odm.core.session - SAP OData HTTP Session Management
=========================================================

Low-level session handling for one OData service root:
- Basic and Bearer token authentication (sent until a session cookie is held)
- CSRF token and session cookie harvesting on every GET
- Concurrency token (etag) lookup before mutating requests
- sap-client injection

A session is not thread-safe. Its token/cookie pair is mutated in place;
give each thread its own session or serialize access.
"""

from __future__ import annotations

from dataclasses import dataclass
from http.cookiejar import DefaultCookiePolicy
from typing import Dict, Optional, Tuple, Union
import logging
import time

import requests
from requests import Session
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from sap_odm.core.errors import ProtocolError, SessionError
from sap_odm.core.response import ODataResponse

#: Pass as ``etag`` to a mutating request to send it without ``If-Match``.
SKIP_ETAG = "_NO_ETAG_"

CHARSET = "UTF-8"


@dataclass
class ODataAuth:
    """
    Authentication configuration for SAP OData.

    Parameters
    ----------
    kind : str
        Either "basic" or "bearer"
    value : tuple or str
        For basic: (username, password) tuple
        For bearer: access token string

    Examples
    --------
    >>> auth = ODataAuth("basic", ("USER", "PASSWORD"))
    >>> auth = ODataAuth("bearer", "eyJ...")
    """
    kind: str  # "basic" | "bearer"
    value: Union[Tuple[str, str], str]  # (user, pass) or access_token


@dataclass
class ODataConfig:
    """
    Connection configuration for one SAP OData service root.

    Parameters
    ----------
    base_url : str
        OData service root, e.g. "https://host/sap/opu/odata/sap/API_PRODUCT_SRV/"
    auth : ODataAuth
        Authentication configuration
    default_sap_client : str, optional
        SAP client number, sent as the ``sap-client`` query parameter
    lang : str
        Language for SAP (default: "EN")
    timeout : float
        Transport timeout in seconds (default: 60.0)
    retries : int
        Transport-level connection retries (default: 0). HTTP status codes
        are never retried.
    verify : bool or str
        SSL verification (True, False, or path to CA bundle)
    user_agent : str
        User-Agent header value
    session_cookie_marker : str
        A ``Set-Cookie`` header is kept as the session cookie only if it
        contains this marker
    reauth_on_csrf_failure : bool
        If True, a mutating request rejected with ``x-csrf-token: Required``
        re-harvests the session once and is resent once

    Examples
    --------
    >>> cfg = ODataConfig(
    ...     base_url="https://s4.example.com/sap/opu/odata/sap/API_PRODUCT_SRV/",
    ...     auth=ODataAuth("basic", ("USER", "PASS")),
    ...     default_sap_client="100",
    ... )
    """
    base_url: str
    auth: ODataAuth
    default_sap_client: Optional[str] = None
    lang: str = "EN"
    timeout: float = 60.0
    retries: int = 0
    verify: Union[bool, str] = True
    user_agent: str = "sap-odm/0.1"
    session_cookie_marker: str = "SAP_SESSIONID"
    reauth_on_csrf_failure: bool = False


class SAPODataSession:
    """
    HTTP session for one SAP OData v2 service root.

    Owns the anti-forgery token and the session cookie. Both start out
    empty and are harvested from the first GET; afterwards they are reused
    for every request until the session is closed, invalidated, or the
    cookie is overridden with :meth:`set_cookie`.

    Parameters
    ----------
    cfg : ODataConfig
        Connection configuration

    Examples
    --------
    >>> with SAPODataSession(cfg) as sess:
    ...     r = sess.get(sess.service_root + "$metadata")
    ...     r = sess.mutate(sess.service_root + "Products('1')/", "PUT", payload)
    """

    def __init__(self, cfg: ODataConfig) -> None:
        self.cfg = cfg
        self.service_root = cfg.base_url.rstrip("/") + "/"
        self.timeout = float(cfg.timeout)
        self.verify = cfg.verify
        self.logger = logging.getLogger("sap_odm.session")

        if cfg.auth.kind not in ("basic", "bearer"):
            raise ValueError("auth.kind must be 'basic' or 'bearer'")

        self.session = self._build_session()

        self.csrf_token: Optional[str] = None
        self.cookie: Optional[str] = None

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self.session.close()

    def __enter__(self) -> "SAPODataSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ---------------- auth/session ----------------

    def _build_session(self) -> Session:
        sess = requests.Session()

        sess.headers.update({
            "Accept": "application/xml",
            "Accept-Charset": CHARSET,
            "Accept-Language": self.cfg.lang.lower(),
            "sap-language": self.cfg.lang.upper(),
            "DataServiceVersion": "2.0",
            "MaxDataServiceVersion": "2.0",
            "User-Agent": self.cfg.user_agent,
        })
        # the session cookie is managed explicitly, never by the jar
        sess.cookies.set_policy(DefaultCookiePolicy(allowed_domains=[]))

        retry = Retry(
            total=self.cfg.retries,
            connect=self.cfg.retries,
            read=0,
            status=0,
            allowed_methods=frozenset({"GET", "HEAD", "OPTIONS"}),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        sess.mount("https://", adapter)
        sess.mount("http://", adapter)
        return sess

    @property
    def is_active(self) -> bool:
        """True once both the CSRF token and the session cookie are held."""
        return self.csrf_token is not None and self.cookie is not None

    def set_cookie(self, cookie: Optional[str]) -> None:
        """Override the session cookie, e.g. to share one session across services."""
        self.cookie = cookie

    def invalidate(self) -> None:
        """Forget the CSRF token and session cookie."""
        self.csrf_token = None
        self.cookie = None

    # ---------------- helpers ----------------

    def _params(self) -> Optional[Dict[str, str]]:
        client = self.cfg.default_sap_client
        return {"sap-client": str(client)} if client else None

    def _authorize(self, headers: Dict[str, str]) -> Optional[Tuple[str, str]]:
        # credentials are only sent until the server has handed out a session
        if self.cookie is not None:
            return None
        if self.cfg.auth.kind == "bearer":
            headers["Authorization"] = f"Bearer {self.cfg.auth.value}"
            return None
        return self.cfg.auth.value  # type: ignore[return-value]

    def _request(
        self,
        method: str,
        url: str,
        *,
        headers: Dict[str, str],
        payload: Optional[str] = None,
    ) -> ODataResponse:
        auth = self._authorize(headers)
        t0 = time.perf_counter()
        r = self.session.request(
            method=method,
            url=url,
            params=self._params(),
            headers=headers,
            data=payload.encode("utf-8") if payload is not None else None,
            auth=auth,
            timeout=self.timeout,
            verify=self.verify,
        )
        dt = (time.perf_counter() - t0) * 1000.0
        self.logger.debug("%s %s -> %s %sms", method, url, r.status_code, round(dt, 1))
        return ODataResponse.from_http(r, url, payload)

    def _harvest(self, response: ODataResponse, url: str) -> None:
        token = response.headers.get("x-csrf-token")
        if not token:
            raise SessionError("Failed to obtain x-csrf-token", url)
        self.csrf_token = token

        marker = self.cfg.session_cookie_marker
        cookie = next((c for c in response.set_cookies if marker in c), None)
        if cookie is not None:
            if self.cookie is None:
                self.logger.debug("session cookie obtained from %s", url)
            self.cookie = cookie
        if self.cookie is None:
            raise SessionError("Failed to obtain session cookie", url)

    # ---------------- public ops ----------------

    def get(self, url: str) -> ODataResponse:
        """
        Execute a GET request and refresh the session from its headers.

        Every GET asks for a fresh CSRF token. The returned token and any
        session cookie are stored for subsequent mutating requests.

        Parameters
        ----------
        url : str
            Absolute URL to fetch

        Returns
        -------
        ODataResponse
            The response, whatever its status code

        Raises
        ------
        SessionError
            If the response carries no CSRF token, or no session cookie is
            held after it
        """
        headers = {"x-csrf-token": "Fetch"}
        if self.cookie is not None:
            headers["Cookie"] = self.cookie
        response = self._request("GET", url, headers=headers)
        self._harvest(response, url)
        return response

    def ensure_fresh(
        self,
        url: str,
        *,
        need_etag: bool = False,
        etag: Optional[str] = None,
        payload: Optional[str] = None,
    ) -> Optional[str]:
        """
        Make sure the session can send a mutating request to ``url``.

        Issues one GET if the CSRF token or the cookie is missing, or if an
        etag is needed and none was given. The GET goes to ``url`` when an
        etag is needed (to read the resource's current etag) and to the
        service root otherwise. Nothing is sent when the session is already
        active and no etag is needed.

        Returns
        -------
        str or None
            The etag to use: the given one, or the one just fetched

        Raises
        ------
        ProtocolError
            If the GET does not return 200
        SessionError
            If no token/cookie is returned, or a needed etag is missing
        """
        if self.is_active and not (need_etag and etag is None):
            return etag

        target = url if need_etag else self.service_root
        response = self.get(target)
        if etag is None:
            etag = response.etag

        if response.status_code != 200:
            raise ProtocolError(
                response.status_code,
                "Failed on GET request to refresh session tokens: " + response.error_message,
                url,
                payload,
                dict(response.headers),
            )
        if need_etag and etag is None:
            raise SessionError("Failed to obtain etag: " + response.error_message, url)
        return etag

    def mutate(
        self,
        url: str,
        method: str,
        payload: Optional[str] = None,
        etag: Optional[str] = None,
    ) -> ODataResponse:
        """
        Send a change request (POST, PUT, MERGE, PATCH, DELETE).

        Parameters
        ----------
        url : str
            Absolute URL of the target resource
        method : str
            HTTP verb
        payload : str, optional
            JSON text to send as the body
        etag : str, optional
            Concurrency token for ``If-Match``. ``None`` means unknown, in
            which case it is fetched with a GET to ``url``. Pass
            :data:`SKIP_ETAG` to send without ``If-Match``. Ignored for POST.

        Returns
        -------
        ODataResponse
            The response, whatever its status code
        """
        method = method.upper()
        need_etag = method != "POST" and etag != SKIP_ETAG
        etag = self.ensure_fresh(url, need_etag=need_etag, etag=etag if need_etag else None, payload=payload)

        response = self._send_change(url, method, payload, etag if need_etag else None)
        if self.cfg.reauth_on_csrf_failure and self._csrf_rejected(response):
            self.logger.info("CSRF token rejected for %s %s; re-harvesting session once", method, url)
            self.invalidate()
            self.ensure_fresh(url, need_etag=False, payload=payload)
            response = self._send_change(url, method, payload, etag if need_etag else None)
        return response

    def _send_change(
        self,
        url: str,
        method: str,
        payload: Optional[str],
        etag: Optional[str],
    ) -> ODataResponse:
        headers = {
            "sap-cancel-on-close": "true",
            "cache-control": "no-cache",
            "x-csrf-token": self.csrf_token or "",
            "Cookie": self.cookie or "",
        }
        if etag is not None:
            headers["If-Match"] = etag
        if payload is not None:
            headers["Content-Type"] = "application/json"
        return self._request(method, url, headers=headers, payload=payload)

    @staticmethod
    def _csrf_rejected(response: ODataResponse) -> bool:
        token = response.headers.get("x-csrf-token") or ""
        return response.status_code == 403 and token.lower() == "required"
