"""
sap_odm.entity - Per-record-type convenience client
====================================================

Thin orchestration over :class:`~sap_odm.odata.endpoint.EntityEndpoint`.
The only logic of its own is :meth:`EntityClient.require`, which brings
the remote side in line with a local record.
"""

from __future__ import annotations

import logging
from typing import Generic, Iterable, List, Optional, Type, TypeVar, Union

from sap_odm.core.connection import ConnectionContext
from sap_odm.core.response import ODataResponse
from sap_odm.mapping.codec import same_values
from sap_odm.mapping.fields import Role
from sap_odm.mapping.record import ODataRecord
from sap_odm.odata.endpoint import EntityEndpoint

logger = logging.getLogger("sap_odm.entity")

R = TypeVar("R", bound=ODataRecord)

#: Outcomes reported by :meth:`EntityClient.require`
CREATED = "created"
UPDATED = "updated"
UNCHANGED = "unchanged"


class EntityClient(Generic[R]):
    """
    Create, read, update and reconcile records of one type.

    Parameters
    ----------
    connection : ConnectionContext or EntityEndpoint
        Where requests go. A ConnectionContext supplies its cached endpoint
        for ``record_type``.
    record_type : type
        The ODataRecord subclass handled by this client

    Examples
    --------
    >>> products = EntityClient(conn, Product)
    >>> products.require(Product(product_id="HT-1000", name="Notebook"))
    'created'
    """

    def __init__(self, connection: Union[ConnectionContext, EntityEndpoint], record_type: Type[R]) -> None:
        if isinstance(connection, EntityEndpoint):
            self.endpoint = connection
        else:
            self.endpoint = connection.endpoint(record_type)
        self.record_type = record_type

    def create(self, record: R, role: Role = Role.VALUE) -> ODataResponse:
        return self.endpoint.create(record, role)

    def update(self, record: R, role: Role = Role.VALUE, etag: Optional[str] = None) -> ODataResponse:
        return self.endpoint.update(record, role, etag)

    def delete(self, record: R, etag: Optional[str] = None) -> ODataResponse:
        return self.endpoint.delete(record, etag)

    def display(self, record: R, role: Role = Role.VALUE, key_role: Role = Role.KEY, expand: bool = True) -> ODataResponse:
        return self.endpoint.display(record, role, key_role, expand)

    def exists(self, record: R, key_role: Role = Role.KEY) -> bool:
        return self.endpoint.exists(record, key_role)

    def fetch_remote_copy(self, record: R, role: Role = Role.VALUE, key_role: Role = Role.KEY, expand: bool = True) -> R:
        return self.endpoint.fetch_remote_copy(record, role, key_role, expand)

    def get_all(self, role: Role = Role.VALUE, expand: bool = False) -> List[R]:
        return self.endpoint.get_all(role, expand)

    def count(self) -> int:
        return self.endpoint.count()

    def require(self, record: R, role: Role = Role.VALUE, key_role: Role = Role.KEY) -> str:
        """
        Make the remote entity match ``record``.

        Creates the entity if it does not exist. If it exists, its
        ``role`` fields are fetched and compared with the local ones as
        they render on the wire; the entity is updated only when they
        differ.

        Returns
        -------
        str
            One of ``"created"``, ``"updated"`` or ``"unchanged"``
        """
        name = type(record).__name__
        if not self.exists(record, key_role):
            logger.info("%s does not exist remotely; creating", name)
            self.create(record, role)
            return CREATED

        # expand fields are never compared
        remote = self.fetch_remote_copy(record, role, key_role, expand=False)
        if same_values(record, remote, role):
            logger.debug("%s is up to date remotely", name)
            return UNCHANGED

        logger.info("%s differs from the remote copy; updating", name)
        self.update(record, role)
        return UPDATED

    def require_all(self, records: Iterable[R], role: Role = Role.VALUE, key_role: Role = Role.KEY) -> List[str]:
        """Run :meth:`require` for each record in order; stops at the first error."""
        return [self.require(record, role, key_role) for record in records]
