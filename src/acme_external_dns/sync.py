"""Periodic mirroring of record store contents into the DNS responder."""

import threading
from collections.abc import Iterable

from acme_external_dns._context import Deadline, StopSignal
from acme_external_dns._logging import Timer, get_logger
from acme_external_dns.exceptions import OperationCancelled
from acme_external_dns.models import Changes, Endpoint, RecordType
from acme_external_dns.responder import AuthoritativeResponder, DomainFilter
from acme_external_dns.stores.base import RecordStore

logger = get_logger(__name__)

SYNC_INTERVAL = 1.0

MANAGED_RECORD_TYPES = (RecordType.A, RecordType.AAAA, RecordType.CNAME, RecordType.TXT)


def _same_record(a: Endpoint, b: Endpoint) -> bool:
    return (
        a.targets == b.targets
        and a.record_ttl == b.record_ttl
        and a.provider_specific == b.provider_specific
        and a.labels == b.labels
    )


def plan_changes(desired: Iterable[Endpoint], current: Iterable[Endpoint]) -> Changes:
    """Compute the changes that turn current into desired.

    Endpoints are matched by (dns_name, record_type, set_identifier).
    """
    wanted = {ep.key: ep for ep in desired}
    existing = {ep.key: ep for ep in current}

    changes = Changes()
    for key, ep in wanted.items():
        if key not in existing:
            changes.create.append(ep)
        elif not _same_record(ep, existing[key]):
            changes.update.append(ep)
    for key, ep in existing.items():
        if key not in wanted:
            changes.delete.append(ep)
    return changes


class SyncLoop:
    """Keeps a responder's table in step with a record store.

    Each pass lists every DNSEndpoint in the store, keeps the endpoints the
    responder serves, diffs them against ``responder.records()`` and applies
    the difference in one batch.

    Args:
        store: Source of truth.
        responder: Table to update.
        interval: Seconds between passes.
        stop: Stop signal that ends the loop.
        domain_filter: Which names to mirror; defaults to the responder's.
        managed_types: Which record types to mirror.
    """

    def __init__(
        self,
        store: RecordStore,
        responder: AuthoritativeResponder,
        interval: float = SYNC_INTERVAL,
        stop: StopSignal | None = None,
        domain_filter: DomainFilter | None = None,
        managed_types: Iterable[str] = MANAGED_RECORD_TYPES,
    ):
        self.store = store
        self.responder = responder
        self.interval = interval
        self.stop_signal = stop or StopSignal()
        self.domain_filter = domain_filter or responder.domain_filter
        self.managed_types = {str(t) for t in managed_types}
        self._thread: threading.Thread | None = None

    def run_once(self) -> Changes:
        """Run a single sync pass and return what it applied."""
        with Timer() as t:
            objects = self.store.list(Deadline(max(self.interval, 1.0), self.stop_signal))
            desired = [
                ep
                for obj in objects
                for ep in obj.endpoints
                if ep.record_type in self.managed_types and self.domain_filter.match(ep.dns_name)
            ]
            changes = plan_changes(desired, self.responder.records())
            if changes.has_changes():
                self.responder.apply_changes(changes)

        if changes.has_changes():
            logger.info(
                "Synced records",
                extra={
                    "create": len(changes.create),
                    "update": len(changes.update),
                    "delete": len(changes.delete),
                    "elapsed_ms": t.elapsed_ms,
                },
            )
        return changes

    def _run(self) -> None:
        while True:
            try:
                self.run_once()
            except OperationCancelled:
                return
            except Exception:
                # A failed pass is retried on the next tick
                logger.warning("Sync pass failed", exc_info=True)
            if self.stop_signal.wait(self.interval):
                return

    def start(self) -> None:
        """Run passes on a background thread until the stop signal fires."""
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="dns-sync", daemon=True)
        self._thread.start()
        logger.info("Sync loop started", extra={"interval": self.interval})

    def stop(self) -> None:
        """Fire the stop signal and wait for the current pass to finish."""
        self.stop_signal.stop()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
