"""Challenge solver that publishes TXT records as external-dns DNSEndpoints."""

from typing import Any

from pydantic import ValidationError

from acme_external_dns._context import StopSignal, timeout_scope
from acme_external_dns._logging import Timer, get_logger, get_request_extra, request_scope
from acme_external_dns.exceptions import ConfigDecodeError, RecordNotFoundError
from acme_external_dns.models import (
    ChallengeRequest,
    DNSEndpoint,
    Endpoint,
    OperationResult,
    ProviderSpecificConfig,
    RecordType,
)
from acme_external_dns.naming import identity_for
from acme_external_dns.stores.base import RecordStore

logger = get_logger(__name__)

# Name of this solver when referenced from an ACME issuer
PROVIDER_NAME = "external-dns"

# API group the webhook is served under
GROUP_NAME = "external-dns.acme.cert-manager.io"

# Timeout for each store request, in seconds
REQUEST_TIMEOUT = 5.0


def load_provider_specific_config(config: Any) -> dict[str, str]:
    """Decode the solver config into provider-specific properties.

    Args:
        config: None, a JSON document (str or bytes), or an already-decoded
            mapping.

    Returns:
        The ``providerSpecific`` map, empty when absent.

    Raises:
        ConfigDecodeError: If the config is not valid JSON or has the wrong shape.
    """
    if config is None:
        return {}

    try:
        if isinstance(config, (str, bytes, bytearray)):
            parsed = ProviderSpecificConfig.model_validate_json(config)
        else:
            parsed = ProviderSpecificConfig.model_validate(config)
    except ValidationError as e:
        raise ConfigDecodeError(f"error decoding solver config: {e}") from e

    return parsed.provider_specific


class RecordReconciler:
    """Presents and cleans up DNS-01 challenge records in a record store.

    Each challenge maps to its own DNSEndpoint object, named from the domain
    and a hash of the key, so concurrent challenges for one domain never
    touch each other's objects. Both operations are idempotent; the caller
    owns retries.

    Args:
        store: Where DNSEndpoint objects live.
        stop: Process-wide stop signal that aborts in-flight calls.
        request_timeout: Deadline for each call, in seconds.
    """

    def __init__(
        self,
        store: RecordStore,
        stop: StopSignal | None = None,
        request_timeout: float = REQUEST_TIMEOUT,
    ):
        self.store = store
        self.stop = stop or StopSignal()
        self.request_timeout = request_timeout

    @property
    def name(self) -> str:
        """Solver name, unique within the webhook's API group."""
        return PROVIDER_NAME

    def present(self, request: ChallengeRequest) -> OperationResult:
        """Publish the challenge TXT record.

        Safe to call repeatedly with the same request; repeated calls
        converge on one object and report ``unchanged``.

        Args:
            request: The challenge to present.

        Returns:
            Whether the object was created, updated or already up to date.

        Raises:
            ConfigDecodeError: If the solver config is malformed.
            StoreError: If the store fails the write.
            DeadlineExceeded: If the call outlives request_timeout.
            OperationCancelled: If the stop signal fires.
        """
        with request_scope(request.uid), timeout_scope(self.request_timeout, self.stop) as deadline:
            # Fail early on bad config, before anything is written
            provider_specific = load_provider_specific_config(request.config)

            identity = identity_for(request)
            desired = DNSEndpoint(
                namespace=identity.namespace,
                name=identity.name,
                endpoints=[
                    Endpoint(
                        dns_name=request.resolved_fqdn,
                        record_type=RecordType.TXT.value,
                        targets=[request.key],
                        set_identifier=identity.name,
                        provider_specific=provider_specific,
                    )
                ],
            )

            with Timer() as t:
                result = self.store.create_or_patch(identity, desired, deadline)

            extra = {
                **get_request_extra(),
                "namespace": identity.namespace,
                "object_name": identity.name,
                "elapsed_ms": t.elapsed_ms,
            }
            if result is OperationResult.CREATED:
                logger.info("created DNSEndpoint object", extra=extra)
            elif result is OperationResult.UPDATED:
                logger.info("updated DNSEndpoint object", extra=extra)
            else:
                logger.debug("DNSEndpoint object already up to date", extra=extra)
            return result

    def cleanup(self, request: ChallengeRequest) -> None:
        """Remove the challenge TXT record.

        Only the object derived from this request's key is deleted, so other
        in-flight challenges for the same domain keep their records. A
        missing object counts as success.

        Args:
            request: The challenge to clean up.

        Raises:
            StoreError: If the store fails the delete.
            DeadlineExceeded: If the call outlives request_timeout.
            OperationCancelled: If the stop signal fires.
        """
        with request_scope(request.uid), timeout_scope(self.request_timeout, self.stop) as deadline:
            identity = identity_for(request)
            extra = {
                **get_request_extra(),
                "namespace": identity.namespace,
                "object_name": identity.name,
            }
            try:
                self.store.delete(identity, deadline)
            except RecordNotFoundError:
                logger.debug("DNSEndpoint object already absent", extra=extra)
                return

            logger.info("deleted DNSEndpoint object", extra=extra)
