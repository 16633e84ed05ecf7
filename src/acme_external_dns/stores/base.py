"""Abstract base class for record stores."""

from abc import ABC, abstractmethod
from typing import Self

from acme_external_dns._context import Deadline
from acme_external_dns.models import DNSEndpoint, OperationResult, RecordIdentity


class RecordStore(ABC):
    """Abstract interface for DNSEndpoint record stores.

    A record store persists DNSEndpoint objects addressed by
    (namespace, name). It is eventually consistent with DNS: something else
    (the sync loop) mirrors its contents into an authoritative server.
    """

    def close(self) -> None:
        """Release resources. Override in subclasses that hold open connections."""

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    @abstractmethod
    def create_or_patch(
        self, identity: RecordIdentity, desired: DNSEndpoint, deadline: Deadline
    ) -> OperationResult:
        """Make the object at identity hold desired's endpoints.

        Creates the object if absent. If it exists with identical endpoints
        nothing is written. Otherwise its endpoints are replaced, guarded by
        the stored resource version.

        Args:
            identity: Namespace and name of the object.
            desired: Object carrying the wanted endpoints.
            deadline: Bound for the whole operation.

        Returns:
            Which of create, update or no-op happened.

        Raises:
            RecordConflictError: If the object changed concurrently.
            StoreError: If the store rejects or fails the request.
            DeadlineExceeded: If the deadline passed.
            OperationCancelled: If the stop signal fired.
        """
        ...

    @abstractmethod
    def delete(self, identity: RecordIdentity, deadline: Deadline) -> None:
        """Delete the object at identity.

        Args:
            identity: Namespace and name of the object.
            deadline: Bound for the whole operation.

        Raises:
            RecordNotFoundError: If no such object exists.
            StoreError: If the store rejects or fails the request.
        """
        ...

    @abstractmethod
    def list(self, deadline: Deadline | None = None) -> list[DNSEndpoint]:
        """Return every DNSEndpoint object in the store.

        Args:
            deadline: Optional bound for the operation.

        Returns:
            Copies of all stored objects.
        """
        ...
