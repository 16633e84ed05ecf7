"""In-process record store."""

import itertools
import threading

from acme_external_dns._context import Deadline
from acme_external_dns._logging import get_logger
from acme_external_dns.exceptions import RecordConflictError, RecordNotFoundError
from acme_external_dns.models import DNSEndpoint, OperationResult, RecordIdentity
from acme_external_dns.stores.base import RecordStore

logger = get_logger(__name__)


class MemoryRecordStore(RecordStore):
    """Record store held in process memory.

    Objects carry a resource version that increases on every write, the same
    way an API server versions objects. ``create_or_patch`` follows the API
    server flow: read a copy, then either ``create`` it or ``replace`` it
    with the version that was read. Each of those writes is atomic under the
    store mutex, and a writer that raced another one gets
    ``RecordConflictError``.
    """

    def __init__(self) -> None:
        self._objects: dict[RecordIdentity, DNSEndpoint] = {}
        self._lock = threading.Lock()
        self._versions = itertools.count(1)

    def _next_version(self) -> str:
        return str(next(self._versions))

    def get(self, identity: RecordIdentity) -> DNSEndpoint | None:
        """Return a copy of the object at identity, or None."""
        with self._lock:
            obj = self._objects.get(identity)
            return obj.model_copy(deep=True) if obj is not None else None

    def create(self, obj: DNSEndpoint) -> DNSEndpoint:
        """Store a new object.

        Raises:
            RecordConflictError: If an object with the same identity exists.
        """
        identity = obj.identity
        with self._lock:
            if identity in self._objects:
                raise RecordConflictError(
                    f"DNSEndpoint {identity} already exists", identity=identity
                )
            stored = obj.model_copy(deep=True, update={"resource_version": self._next_version()})
            self._objects[identity] = stored
            return stored.model_copy(deep=True)

    def replace(self, obj: DNSEndpoint) -> DNSEndpoint:
        """Overwrite an existing object, checking its resource version.

        Raises:
            RecordNotFoundError: If the object does not exist.
            RecordConflictError: If obj.resource_version is stale.
        """
        identity = obj.identity
        with self._lock:
            current = self._objects.get(identity)
            if current is None:
                raise RecordNotFoundError(f"DNSEndpoint {identity} not found", identity=identity)
            if obj.resource_version != current.resource_version:
                raise RecordConflictError(
                    f"DNSEndpoint {identity} was modified concurrently", identity=identity
                )
            stored = obj.model_copy(deep=True, update={"resource_version": self._next_version()})
            self._objects[identity] = stored
            return stored.model_copy(deep=True)

    def create_or_patch(
        self, identity: RecordIdentity, desired: DNSEndpoint, deadline: Deadline
    ) -> OperationResult:
        deadline.check()
        current = self.get(identity)

        if current is None:
            self.create(
                DNSEndpoint(
                    namespace=identity.namespace, name=identity.name, endpoints=desired.endpoints
                )
            )
            return OperationResult.CREATED

        if current.endpoints == desired.endpoints:
            return OperationResult.UNCHANGED

        self.replace(current.model_copy(update={"endpoints": desired.endpoints}))
        return OperationResult.UPDATED

    def delete(self, identity: RecordIdentity, deadline: Deadline) -> None:
        deadline.check()
        with self._lock:
            if self._objects.pop(identity, None) is None:
                raise RecordNotFoundError(f"DNSEndpoint {identity} not found", identity=identity)
        logger.debug("DNSEndpoint removed from memory store", extra={"identity": str(identity)})

    def list(self, deadline: Deadline | None = None) -> list[DNSEndpoint]:
        if deadline is not None:
            deadline.check()
        with self._lock:
            return [obj.model_copy(deep=True) for obj in self._objects.values()]
