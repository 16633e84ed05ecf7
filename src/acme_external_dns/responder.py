"""Local authoritative DNS server used to validate published challenge records.

The responder owns a table of endpoints that the sync loop keeps in step with
the record store, and answers UDP queries from that table. It is not a zone
authority: A queries always resolve to loopback and NS/SOA answers are
placeholders, which is enough for an ACME self-check to find and read the
TXT records under test.
"""

import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Self

from dnslib import NS, OPCODE, QTYPE, RCODE, RR, SOA, TXT, A, DNSQuestion, DNSRecord
from dnslib.server import BaseResolver, DNSLogger, DNSServer

from acme_external_dns._context import StopSignal
from acme_external_dns._logging import get_logger
from acme_external_dns.exceptions import UnsupportedQueryType
from acme_external_dns.models import Changes, Endpoint, EndpointKey, RecordType

logger = get_logger(__name__)

ANSWER_TTL = 5
LOOPBACK_ADDRESS = "127.0.0.1"
PLACEHOLDER_NAMESERVER = "ns.external-dns-acme-webhook.invalid."

# Fabricated SOA timers: serial, refresh, retry, expire, minimum
_SOA_TIMES = (20, 5, 5, 5, 5)

# Longest character-string a TXT record can hold
MAX_TXT_STRING = 255

# Seconds between checks of the stop signal by the watcher thread
_WATCH_INTERVAL = 0.1


def normalize_name(name: object) -> str:
    """Lower-case a DNS name and drop its trailing dot."""
    return str(name).rstrip(".").lower()


def txt_strings(value: str) -> list[bytes]:
    """Split a TXT value into character-strings of at most 255 bytes."""
    data = value.encode()
    return [data[i : i + MAX_TXT_STRING] for i in range(0, len(data), MAX_TXT_STRING)] or [b""]


class DomainFilter:
    """Matches names equal to or below any of a set of domains.

    An empty filter matches everything.
    """

    def __init__(self, domains: Iterable[str] | None = None) -> None:
        self.domains = [normalize_name(d) for d in domains or () if normalize_name(d)]

    def match(self, name: str) -> bool:
        if not self.domains:
            return True
        name = normalize_name(name)
        return any(name == d or name.endswith(f".{d}") for d in self.domains)


class ReadWriteLock:
    """Reader-writer lock: many readers or one exclusive writer.

    Writer-preference: once a writer is waiting, new readers queue behind it
    so a steady stream of queries cannot starve ``apply_changes``.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writing = False
        self._waiting_writers = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writing or self._waiting_writers:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if not self._readers:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._waiting_writers += 1
            try:
                while self._writing or self._readers:
                    self._cond.wait()
            finally:
                self._waiting_writers -= 1
            self._writing = True

    def release_write(self) -> None:
        with self._cond:
            self._writing = False
            self._cond.notify_all()

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


class _TableResolver(BaseResolver):
    """dnslib resolver that defers to the responder."""

    def __init__(self, responder: "AuthoritativeResponder") -> None:
        self.responder = responder

    def resolve(self, request: DNSRecord, handler: object) -> DNSRecord:
        return self.responder.answer(request)


class AuthoritativeResponder:
    """Authoritative UDP DNS responder backed by an in-memory record table.

    The listening socket is bound in the constructor, so ``address`` is known
    (and port 0 resolved) before ``start()``.

    Args:
        address: Interface to bind.
        port: UDP port to bind; 0 picks a free port.
        domains: Domains this responder serves, used by the sync loop to
            decide which endpoints to mirror. Empty means all.
        stop: Stop signal that shuts the listener down when fired.
    """

    def __init__(
        self,
        address: str = "127.0.0.1",
        port: int = 0,
        domains: Iterable[str] | None = None,
        stop: StopSignal | None = None,
    ):
        self.domain_filter = DomainFilter(domains)
        self._records: dict[EndpointKey, Endpoint] = {}
        self._lock = ReadWriteLock()
        self._stop_signal = stop
        self._thread: threading.Thread | None = None
        self._watcher: threading.Thread | None = None
        self._closed = False
        self._stopped = threading.Event()
        self._state_lock = threading.Lock()

        dns_logger = DNSLogger(log="-recv,-send,-data", logf=lambda msg: logger.debug(msg))
        self._server = DNSServer(
            _TableResolver(self), address=address, port=port, logger=dns_logger
        )
        logger.info(
            "DNS responder bound",
            extra={"address": self.address, "domains": self.domain_filter.domains},
        )

    @property
    def address(self) -> tuple[str, int]:
        """The (host, port) the listener is bound to."""
        host, port = self._server.server.server_address[:2]
        return host, port

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Record table
    # -------------------------------------------------------------------------

    def records(self) -> list[Endpoint]:
        """Return deep copies of every endpoint in the table."""
        with self._lock.read_locked():
            records = [ep.model_copy(deep=True) for ep in self._records.values()]

        logger.debug("Records snapshot", extra={"count": len(records)})
        return records

    def apply_changes(self, changes: Changes) -> None:
        """Apply a batch of creates, updates and deletes as one unit.

        Readers never observe a partially applied batch.
        """
        with self._lock.write_locked():
            for ep in changes.create:
                self._records[ep.key] = ep.model_copy(deep=True)
            for ep in changes.update:
                self._records[ep.key] = ep.model_copy(deep=True)
            for ep in changes.delete:
                self._records.pop(ep.key, None)

        logger.debug(
            "Applied changes",
            extra={
                "create": [ep.dns_name for ep in changes.create],
                "update": [ep.dns_name for ep in changes.update],
                "delete": [ep.dns_name for ep in changes.delete],
            },
        )

    # -------------------------------------------------------------------------
    # Query handling
    # -------------------------------------------------------------------------

    def answer(self, request: DNSRecord) -> DNSRecord:
        """Build the reply for a parsed DNS request.

        Each question is answered in turn. A question of an unsupported type
        turns the whole reply into SERVFAIL and stops processing.
        """
        reply = request.reply(ra=0, aa=1)
        if request.header.opcode != OPCODE.QUERY:
            return reply

        for question in request.questions:
            try:
                self._add_answer(question, reply)
            except UnsupportedQueryType as e:
                logger.warning(
                    "Unsupported DNS query",
                    extra={"qname": str(question.qname), "qtype": e.qtype},
                )
                reply.header.rcode = RCODE.SERVFAIL
                break
        return reply

    def _add_answer(self, question: DNSQuestion, reply: DNSRecord) -> None:
        qname = str(question.qname)
        qtype = QTYPE.forward.get(question.qtype, f"TYPE{question.qtype}")
        logger.debug("DNS query", extra={"qname": qname, "qtype": qtype})

        if question.qtype == QTYPE.A:
            reply.add_answer(RR(qname, QTYPE.A, rdata=A(LOOPBACK_ADDRESS), ttl=ANSWER_TTL))

        elif question.qtype == QTYPE.TXT:
            wanted = normalize_name(qname)
            found = False
            for record in self.records():
                if record.record_type != RecordType.TXT:
                    continue
                if normalize_name(record.dns_name) != wanted:
                    continue
                for target in record.targets:
                    reply.add_answer(
                        RR(qname, QTYPE.TXT, rdata=TXT(txt_strings(target)), ttl=ANSWER_TTL)
                    )
                    found = True

            if not found:
                logger.debug("No TXT record found, returning NXDOMAIN", extra={"qname": qname})
                reply.header.rcode = RCODE.NXDOMAIN

        elif question.qtype == QTYPE.NS:
            reply.add_answer(
                RR(qname, QTYPE.NS, rdata=NS(PLACEHOLDER_NAMESERVER), ttl=ANSWER_TTL)
            )

        elif question.qtype == QTYPE.SOA:
            reply.add_answer(
                RR(
                    PLACEHOLDER_NAMESERVER,
                    QTYPE.SOA,
                    rdata=SOA(PLACEHOLDER_NAMESERVER, PLACEHOLDER_NAMESERVER, _SOA_TIMES),
                    ttl=ANSWER_TTL,
                )
            )

        else:
            raise UnsupportedQueryType(qtype)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Serve queries on a background thread."""
        with self._state_lock:
            if self._closed:
                raise RuntimeError("responder has been stopped")
            if self._thread is not None:
                return
            self._thread = threading.Thread(
                target=self._server.server.serve_forever,
                name="dns-responder",
                daemon=True,
            )
            self._thread.start()

            if self._stop_signal is not None:
                self._watcher = threading.Thread(
                    target=self._watch_stop, name="dns-responder-stop", daemon=True
                )
                self._watcher.start()
        logger.info("DNS responder started", extra={"address": self.address})

    def _watch_stop(self) -> None:
        while not self._stop_signal.wait(_WATCH_INTERVAL):
            if self._closed:
                return
        self.stop()

    def stop(self) -> None:
        """Stop serving and release the socket. Safe to call more than once."""
        with self._state_lock:
            closing = not self._closed
            self._closed = True
            thread = self._thread
            watcher = self._watcher

        if not closing:
            # Another caller is already tearing down
            self._stopped.wait()
            return

        # shutdown() blocks until serve_forever returns, so only call it
        # when the loop is actually running
        if thread is not None:
            self._server.server.shutdown()
            thread.join()
        self._server.server.server_close()
        self._stopped.set()
        if watcher is not None and watcher is not threading.current_thread():
            watcher.join()
        logger.info("DNS responder stopped")

    def __enter__(self) -> Self:
        self.start()
        return self

    def __exit__(self, *exc: object) -> None:
        self.stop()
