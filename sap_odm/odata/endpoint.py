"""
sap_odm.odata.endpoint - Entity-scoped OData requests
======================================================

One endpoint per record type. It builds URLs and payloads with the
mapping layer, sends them through the session, and enforces the status
code each operation expects:

========================  =======  ==========
operation                 method   status
========================  =======  ==========
create                    POST     201
update                    PUT      204
delete                    DELETE   204
display / expand / list   GET      200
count / exists            GET      200
========================  =======  ==========

Any other status raises :class:`~sap_odm.core.errors.ProtocolError`.
"""

from __future__ import annotations

import logging
from typing import Generic, List, Optional, Type, TypeVar

from sap_odm.core.errors import DeserializationError, ProtocolError
from sap_odm.core.response import ODataResponse
from sap_odm.core.session import SAPODataSession
from sap_odm.mapping import codec
from sap_odm.mapping.fields import Role, expand_links
from sap_odm.mapping.record import ODataRecord
from sap_odm.odata import urls

logger = logging.getLogger("sap_odm.odata")

R = TypeVar("R", bound=ODataRecord)


def expect_status(response: ODataResponse, expected: int, url: str, payload: Optional[str] = None) -> None:
    """Raise ProtocolError unless ``response`` has the ``expected`` status."""
    if response.status_code != expected:
        raise ProtocolError(
            response.status_code,
            response.error_message,
            url,
            payload,
            dict(response.headers),
        )


class EntityEndpoint(Generic[R]):
    """
    Requests against one remote entity set.

    Parameters
    ----------
    sess : SAPODataSession
        Session for the service root that hosts the entity set
    record_type : type
        The ODataRecord subclass mapped onto the entity set
    entity_name : str, optional
        Entity set name; defaults to ``record_type.ENTITY_NAME``

    Examples
    --------
    >>> products = EntityEndpoint(sess, Product)
    >>> products.count()
    42
    >>> p = Product(product_id="HT-1000")
    >>> products.display(p)
    >>> p.price = 9.5
    >>> products.update(p)
    """

    def __init__(
        self,
        sess: SAPODataSession,
        record_type: Type[R],
        entity_name: Optional[str] = None,
    ) -> None:
        name = entity_name if entity_name is not None else record_type.ENTITY_NAME
        if not name or name.endswith("/"):
            raise ValueError("entity_name must be set and must not end with a '/' character")
        self.sess = sess
        self.record_type = record_type
        self.entity_name = name

    # ---------------- URLs ----------------

    def entity_root_url(self) -> str:
        return urls.entity_root_url(self.sess.service_root, self.entity_name)

    def entity_url_with_id(self, record: R) -> str:
        return urls.entity_url_with_id(self.sess.service_root, self.entity_name, record)

    def _display_url(self, record: R, key_role: Role) -> str:
        if key_role == Role.KEY:
            return self.entity_url_with_id(record)
        return self.entity_root_url() + urls.record_filter_suffix(record, key_role)

    def _document(self, response: ODataResponse, url: str):
        expect_status(response, 200, url)
        return response.document

    # ---------------- reads ----------------

    def count(self, suffix: str = "") -> int:
        """
        Number of entities matching an optional filter suffix.

        Parameters
        ----------
        suffix : str
            Appended after the ``$count/`` segment, e.g. the result of
            :func:`~sap_odm.odata.urls.record_filter_suffix`
        """
        url = urls.count_url(self.sess.service_root, self.entity_name, suffix)
        response = self.sess.get(url)
        expect_status(response, 200, url)
        body = (response.text or "").strip()
        try:
            return int(body)
        except ValueError:
            raise ProtocolError(
                response.status_code,
                f"{response.status_line}: count body is not a number: {body[:100]!r}",
                url,
            ) from None

    def exists(self, record: R, key_role: Role = Role.KEY) -> bool:
        """True if an entity matching ``record`` on its ``key_role`` fields exists remotely."""
        return self.count(urls.record_filter_suffix(record, key_role)) > 0

    def display(
        self,
        record: R,
        role: Role = Role.VALUE,
        key_role: Role = Role.KEY,
        expand: bool = True,
    ) -> ODataResponse:
        """
        Fetch the remote entity identified by ``record`` and update ``record`` in place.

        With ``key_role=Role.KEY`` the entity is addressed by identifier;
        any other key role becomes a ``$filter``. Exactly one entity must
        match.

        Parameters
        ----------
        record : ODataRecord
            Identifies the remote entity; its ``role`` fields are overwritten
        role : Role
            Fields to read from the response
        key_role : Role
            Fields that identify the remote entity
        expand : bool
            Also fetch every expandable sub-collection, one GET per link
        """
        url = self._display_url(record, key_role)
        response = self.sess.get(url)
        document = self._document(response, url)
        try:
            codec.from_xml_single(record, document, role)
        except DeserializationError as e:
            e.url = url
            e.local_type = type(record).__name__
            raise
        if expand:
            self._expand_all(record)
        return response

    def expand(self, parent: ODataRecord, navigation: str, child_type: Type[ODataRecord]) -> List[ODataRecord]:
        """
        Fetch the child entities behind one navigation property of ``parent``.

        Parameters
        ----------
        parent : ODataRecord
            Identifies the parent entity by its KEY fields
        navigation : str
            Navigation property name, e.g. "ToItems"
        child_type : type
            Record type of the children
        """
        url = urls.expand_url(self.sess.service_root, self.entity_name, parent, navigation)
        response = self.sess.get(url)
        document = self._document(response, url)
        try:
            return codec.from_xml_document(child_type, document, Role.VALUE)
        except DeserializationError as e:
            e.url = url
            e.local_type = child_type.__name__
            raise

    def _expand_all(self, record: R) -> None:
        for link in expand_links(type(record)):
            children = self.expand(record, link.wire_name, link.target)
            link.populate(record, children)

    def fetch_remote_copy(
        self,
        record: R,
        role: Role = Role.VALUE,
        key_role: Role = Role.KEY,
        expand: bool = True,
    ) -> R:
        """Fetch the remote entity identified by ``record`` into a new record; ``record`` is unchanged."""
        remote = self.new_copy(record, key_role)
        self.display(remote, role, key_role, expand)
        return remote

    def new_copy(self, record: R, key_role: Role) -> R:
        """New record of the same type with only the ``key_role`` fields copied over."""
        copy = codec.new_record(type(record))
        codec.copy_fields(record, copy, key_role)
        return copy

    def get_all(self, role: Role = Role.VALUE, expand: bool = False) -> List[R]:
        """Fetch every entity of the entity set."""
        url = self.entity_root_url()
        response = self.sess.get(url)
        document = self._document(response, url)
        try:
            records = codec.from_xml_document(self.record_type, document, role)
        except DeserializationError as e:
            e.url = url
            e.local_type = self.record_type.__name__
            raise
        if expand:
            for record in records:
                self._expand_all(record)
        return records

    def fetch_metadata(self) -> ODataResponse:
        """GET the service's ``$metadata`` document (returned unparsed)."""
        url = self.sess.service_root + "$metadata"
        response = self.sess.get(url)
        expect_status(response, 200, url)
        return response

    # ---------------- writes ----------------

    def create(self, record: R, role: Role = Role.VALUE) -> ODataResponse:
        """POST ``record`` as a new remote entity."""
        url = self.entity_root_url()
        payload = codec.to_json(record, role)
        response = self.sess.mutate(url, "POST", payload)
        expect_status(response, 201, url, payload)
        logger.debug("created %s at %s", type(record).__name__, response.location)
        return response

    def update(self, record: R, role: Role = Role.VALUE, etag: Optional[str] = None) -> ODataResponse:
        """
        PUT the local values of ``record`` onto the remote entity.

        ``etag=None`` fetches the current etag first; pass
        :data:`~sap_odm.core.session.SKIP_ETAG` to send without one.
        """
        url = self.entity_url_with_id(record)
        payload = codec.to_json(record, role)
        response = self.sess.mutate(url, "PUT", payload, etag)
        expect_status(response, 204, url, payload)
        return response

    def delete(self, record: R, etag: Optional[str] = None) -> ODataResponse:
        """DELETE the remote entity identified by the KEY fields of ``record``."""
        url = self.entity_url_with_id(record)
        response = self.sess.mutate(url, "DELETE", None, etag)
        expect_status(response, 204, url)
        return response
