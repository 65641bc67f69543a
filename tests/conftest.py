"""
Pytest configuration and shared fixtures.
"""

import pytest
from unittest.mock import MagicMock, patch
from typing import Dict, List, Optional

import requests
from requests.structures import CaseInsensitiveDict
from urllib3 import HTTPResponse

from sap_odm.core.session import ODataAuth, ODataConfig, SAPODataSession

SERVICE_ROOT = "https://test.example.com/sap/opu/odata/sap/API_PRODUCT_SRV/"

SESSION_HEADERS = {
    "x-csrf-token": "abc123",
    "Set-Cookie": "SAP_SESSIONID=xyz; Path=/",
}


def make_response(
    status: int = 200,
    body: str = "",
    headers: Optional[Dict[str, str]] = None,
    reason: str = "OK",
    set_cookies: Optional[List[str]] = None,
) -> requests.Response:
    """
    Build a real requests.Response as the transport would return it.

    ``set_cookies`` become separate ``Set-Cookie`` headers on the raw
    urllib3 response; the requests-level headers see them joined.
    """
    r = requests.Response()
    r.status_code = status
    r.reason = reason
    r._content = body.encode("utf-8")
    headers = dict(headers or {})
    if set_cookies:
        r.raw = HTTPResponse(
            body=b"",
            headers=[("Set-Cookie", c) for c in set_cookies],
            status=status,
            preload_content=False,
        )
        headers["Set-Cookie"] = ", ".join(set_cookies)
    r.headers = CaseInsensitiveDict(headers)
    r.encoding = "utf-8"
    return r


def ok(body: str = "", **headers: str) -> requests.Response:
    """200 response carrying a CSRF token and session cookie."""
    merged = dict(SESSION_HEADERS)
    merged.update({k.replace("_", "-"): v for k, v in headers.items()})
    return make_response(200, body, merged)


def entry_xml(props: Dict[str, str], root: bool = True) -> str:
    """One Atom entry with ``d:`` properties."""
    inner = "".join(f"<d:{k}>{v}</d:{k}>" for k, v in props.items())
    ns = (
        ' xmlns="http://www.w3.org/2005/Atom"'
        ' xmlns:m="http://schemas.microsoft.com/ado/2007/08/dataservices/metadata"'
        ' xmlns:d="http://schemas.microsoft.com/ado/2007/08/dataservices"'
    ) if root else ""
    return (
        f"<entry{ns}><id>x</id>"
        f'<content type="application/xml"><m:properties>{inner}</m:properties></content>'
        f"</entry>"
    )


def feed_xml(*entries: Dict[str, str]) -> str:
    """An Atom feed holding one entry per property map."""
    body = "".join(entry_xml(e, root=False) for e in entries)
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        '<feed xmlns="http://www.w3.org/2005/Atom"'
        ' xmlns:m="http://schemas.microsoft.com/ado/2007/08/dataservices/metadata"'
        ' xmlns:d="http://schemas.microsoft.com/ado/2007/08/dataservices">'
        f"<title>t</title>{body}</feed>"
    )


@pytest.fixture
def product_props():
    """Wire properties of one product."""
    return {
        "ProductID": "HT-1000",
        "Name": "Notebook",
        "Price": "956.5",
        "Active": "true",
        "CreatedAt": "2019-02-21T22:46:11.123",
    }


@pytest.fixture
def config():
    return ODataConfig(
        base_url=SERVICE_ROOT,
        auth=ODataAuth("basic", ("user", "pass")),
        default_sap_client="100",
    )


@pytest.fixture
def transport():
    """Patched requests.Session; set ``transport.request.side_effect`` to a list of responses."""
    with patch("sap_odm.core.session.requests.Session") as mock_session_class:
        mock_session = MagicMock()
        mock_session_class.return_value = mock_session
        yield mock_session


@pytest.fixture
def sess(config, transport):
    """A SAPODataSession whose transport is the ``transport`` mock."""
    return SAPODataSession(config)


def sent(transport, index: int = -1):
    """Keyword arguments of one request sent through the transport mock."""
    return transport.request.call_args_list[index].kwargs
