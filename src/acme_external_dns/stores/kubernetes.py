"""Record store backed by DNSEndpoint objects in a Kubernetes API server."""

from typing import Any

import httpx

from acme_external_dns._context import Deadline
from acme_external_dns._logging import Timer, get_logger
from acme_external_dns.exceptions import (
    DeadlineExceeded,
    RecordConflictError,
    RecordNotFoundError,
    StoreError,
)
from acme_external_dns.models import DNSEndpoint, OperationResult, RecordIdentity
from acme_external_dns.stores.base import RecordStore

logger = get_logger(__name__)

_API_PATH = "/apis/externaldns.k8s.io/v1alpha1"
_LIST_TIMEOUT = 30


class KubernetesRecordStore(RecordStore):
    """Record store that talks to the Kubernetes REST API.

    DNSEndpoint objects are read with GET, created with POST, updated with a
    JSON merge patch that carries the observed ``resourceVersion`` (so the
    API server rejects stale writes with 409) and removed with DELETE.

    Args:
        api_url: Base URL of the API server (e.g., "https://10.0.0.1:6443").
        token: Bearer token for the Authorization header, if any.
        verify: TLS verification setting passed to httpx.
        _http_client: Pre-built client, mainly for tests.
    """

    def __init__(
        self,
        api_url: str,
        token: str | None = None,
        verify: str | bool = True,
        _http_client: httpx.Client | None = None,
    ):
        self.api_url = api_url.rstrip("/")
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._http = _http_client or httpx.Client(headers=headers, verify=verify)

    def close(self) -> None:
        """Close the HTTP client."""
        self._http.close()

    def _collection_url(self, namespace: str) -> str:
        return f"{self.api_url}{_API_PATH}/namespaces/{namespace}/dnsendpoints"

    def _object_url(self, identity: RecordIdentity) -> str:
        return f"{self._collection_url(identity.namespace)}/{identity.name}"

    def _request(
        self,
        method: str,
        url: str,
        deadline: Deadline | None,
        identity: RecordIdentity | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Issue one request bounded by the remaining deadline.

        Raises:
            DeadlineExceeded: On httpx timeout.
            StoreError: On any other transport failure.
        """
        if deadline is not None:
            deadline.check()
            timeout = deadline.remaining()
        else:
            timeout = _LIST_TIMEOUT

        try:
            with Timer() as t:
                response = self._http.request(method, url, timeout=timeout, **kwargs)
        except httpx.TimeoutException as e:
            raise DeadlineExceeded(f"{method} {url} timed out after {timeout:.2f}s") from e
        except httpx.TransportError as e:
            raise StoreError(f"{method} {url} failed: {e}", identity=identity) from e

        logger.debug(
            "Kubernetes API request",
            extra={
                "method": method,
                "url": url,
                "status_code": response.status_code,
                "elapsed_ms": t.elapsed_ms,
            },
        )
        return response

    def _raise_for_status(
        self, response: httpx.Response, action: str, identity: RecordIdentity | None = None
    ) -> None:
        """Translate an unsuccessful API response into a StoreError.

        Args:
            response: The httpx Response object.
            action: Short description of what was attempted.
            identity: Object the request targeted, if any.

        Raises:
            RecordNotFoundError: For 404.
            RecordConflictError: For 409.
            StoreError: For any other non-2xx status.
        """
        if response.is_success:
            return

        # Kubernetes returns a Status object with a human readable message
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("message"):
            detail = str(body["message"])
        else:
            detail = response.text or "Unknown error"

        message = f"could not {action} DNSEndpoint object: {detail}"
        error_cls = {
            404: RecordNotFoundError,
            409: RecordConflictError,
        }.get(response.status_code, StoreError)

        if error_cls is StoreError:
            logger.error(
                "Kubernetes API error",
                extra={
                    "identity": str(identity) if identity else None,
                    "status_code": response.status_code,
                    "detail": detail,
                },
            )
        raise error_cls(message, identity=identity, status_code=response.status_code, detail=detail)

    def get(self, identity: RecordIdentity, deadline: Deadline) -> DNSEndpoint | None:
        """Fetch the object at identity, or None if it does not exist."""
        response = self._request("GET", self._object_url(identity), deadline, identity)
        if response.status_code == 404:
            return None
        self._raise_for_status(response, "get", identity)
        return DNSEndpoint.from_manifest(response.json())

    def create_or_patch(
        self, identity: RecordIdentity, desired: DNSEndpoint, deadline: Deadline
    ) -> OperationResult:
        current = self.get(identity, deadline)

        if current is None:
            obj = DNSEndpoint(
                namespace=identity.namespace, name=identity.name, endpoints=desired.endpoints
            )
            response = self._request(
                "POST",
                self._collection_url(identity.namespace),
                deadline,
                identity,
                json=obj.to_manifest(),
            )
            self._raise_for_status(response, "create", identity)
            return OperationResult.CREATED

        if current.endpoints == desired.endpoints:
            return OperationResult.UNCHANGED

        patch = {
            "metadata": {"resourceVersion": current.resource_version},
            "spec": {"endpoints": [ep.to_manifest() for ep in desired.endpoints]},
        }
        response = self._request(
            "PATCH",
            self._object_url(identity),
            deadline,
            identity,
            json=patch,
            headers={"Content-Type": "application/merge-patch+json"},
        )
        self._raise_for_status(response, "patch", identity)
        return OperationResult.UPDATED

    def delete(self, identity: RecordIdentity, deadline: Deadline) -> None:
        response = self._request("DELETE", self._object_url(identity), deadline, identity)
        self._raise_for_status(response, "delete", identity)

    def list(self, deadline: Deadline | None = None) -> list[DNSEndpoint]:
        response = self._request("GET", f"{self.api_url}{_API_PATH}/dnsendpoints", deadline)
        self._raise_for_status(response, "list")
        return [DNSEndpoint.from_manifest(item) for item in response.json().get("items") or []]
