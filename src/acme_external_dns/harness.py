"""Self-contained solver stack for validating challenges end to end."""

from typing import Self

from acme_external_dns._context import StopSignal
from acme_external_dns._logging import get_logger
from acme_external_dns.models import ChallengeRequest, Endpoint, OperationResult
from acme_external_dns.responder import AuthoritativeResponder
from acme_external_dns.solver import REQUEST_TIMEOUT, RecordReconciler
from acme_external_dns.stores.base import RecordStore
from acme_external_dns.stores.memory import MemoryRecordStore
from acme_external_dns.sync import SYNC_INTERVAL, SyncLoop

logger = get_logger(__name__)


class SolverHarness:
    """A reconciler, a responder and the sync loop between them.

    All three share one stop signal, so ``stop()`` tears the whole stack
    down. Challenge calls go to the reconciler; record reads go to the
    responder.

    Args:
        reconciler: Publishes records to the store.
        responder: Serves the mirrored records over DNS.
        sync_loop: Copies store contents into the responder.
        stop: The shared stop signal.
    """

    def __init__(
        self,
        reconciler: RecordReconciler,
        responder: AuthoritativeResponder,
        sync_loop: SyncLoop,
        stop: StopSignal,
    ):
        self.reconciler = reconciler
        self.responder = responder
        self.sync_loop = sync_loop
        self.stop_signal = stop

    @classmethod
    def local(
        cls,
        address: str = "127.0.0.1",
        port: int = 0,
        domains: list[str] | None = None,
        store: RecordStore | None = None,
        interval: float = SYNC_INTERVAL,
        request_timeout: float = REQUEST_TIMEOUT,
    ) -> "SolverHarness":
        """Build a full stack, by default over an in-memory store."""
        stop = StopSignal()
        store = store or MemoryRecordStore()
        responder = AuthoritativeResponder(address=address, port=port, domains=domains, stop=stop)
        return cls(
            reconciler=RecordReconciler(store, stop=stop, request_timeout=request_timeout),
            responder=responder,
            sync_loop=SyncLoop(store, responder, interval=interval, stop=stop),
            stop=stop,
        )

    @property
    def name(self) -> str:
        return self.reconciler.name

    @property
    def address(self) -> tuple[str, int]:
        return self.responder.address

    def present(self, request: ChallengeRequest) -> OperationResult:
        return self.reconciler.present(request)

    def cleanup(self, request: ChallengeRequest) -> None:
        self.reconciler.cleanup(request)

    def records(self) -> list[Endpoint]:
        return self.responder.records()

    def start(self) -> None:
        """Start serving DNS and syncing records."""
        self.responder.start()
        self.sync_loop.start()
        logger.info("Solver harness started", extra={"address": self.address})

    def stop(self) -> None:
        """Fire the shared stop signal and wait for both components."""
        self.stop_signal.stop()
        self.sync_loop.stop()
        self.responder.stop()

    def __enter__(self) -> Self:
        self.start()
        return self

    def __exit__(self, *exc: object) -> None:
        self.stop()
