"""Pytest fixtures for the acme_external_dns test suite."""

import logging
import logging.handlers
import os
import time
from collections.abc import Callable, Generator
from typing import Any

import pytest
from dnslib import DNSRecord

from acme_external_dns.models import ChallengeRequest
from acme_external_dns.responder import AuthoritativeResponder
from acme_external_dns.solver import RecordReconciler
from acme_external_dns.stores.memory import MemoryRecordStore

# Port for the local DNS responder; 0 lets the OS pick a free one
DNS_TEST_PORT = int(os.environ.get("ACME_DNS_TEST_PORT", "0"))

KUBERNETES_API_URL = "https://k8s.example.test:6443"


def make_request(
    dns_name: str = "example.com.",
    key: str = "abc123",
    resolved_fqdn: str | None = None,
    namespace: str = "default",
    config: Any = None,
    uid: str = "req-1",
) -> ChallengeRequest:
    """Build a challenge request with sensible defaults."""
    return ChallengeRequest(
        uid=uid,
        action="Present",
        dns_name=dns_name,
        key=key,
        resource_namespace=namespace,
        resolved_fqdn=(
            resolved_fqdn if resolved_fqdn is not None else f"_acme-challenge.{dns_name}"
        ),
        resolved_zone=dns_name.removeprefix("*."),
        config=config,
    )


def query(address: tuple[str, int], name: str, qtype: str = "TXT") -> DNSRecord:
    """Send a single UDP query and parse the reply."""
    host, port = address
    data = DNSRecord.question(name, qtype).send(host, port, timeout=2)
    return DNSRecord.parse(data)


def txt_values(reply: DNSRecord) -> list[str]:
    """Decode the TXT strings from a reply's answer section."""
    return [b"".join(rr.rdata.data).decode() for rr in reply.rr]


def eventually(check: Callable[[], bool], timeout: float = 10.0, interval: float = 0.05) -> bool:
    """Poll check until it returns True or timeout elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if check():
            return True
        time.sleep(interval)
    return check()


@pytest.fixture
def challenge_factory() -> Callable[..., ChallengeRequest]:
    """Factory for challenge requests; see make_request for arguments."""
    return make_request


@pytest.fixture
def dns_query() -> Callable[..., DNSRecord]:
    """Send a UDP query: dns_query(address, name, qtype="TXT")."""
    return query


@pytest.fixture
def txt_answers() -> Callable[[DNSRecord], list[str]]:
    """Decode TXT strings from a reply: txt_answers(reply)."""
    return txt_values


@pytest.fixture(scope="session")
def kubernetes_api_url() -> str:
    """Return the Kubernetes API URL mocked by respx."""
    return KUBERNETES_API_URL


@pytest.fixture
def wait_until() -> Callable[..., bool]:
    """Poll a predicate: wait_until(check, timeout=10.0)."""
    return eventually


@pytest.fixture
def challenge_request() -> ChallengeRequest:
    """A challenge for example.com with key abc123."""
    return make_request()


@pytest.fixture
def memory_store() -> MemoryRecordStore:
    """An empty in-memory record store."""
    return MemoryRecordStore()


@pytest.fixture
def reconciler(memory_store: MemoryRecordStore) -> RecordReconciler:
    """A reconciler over the in-memory store."""
    return RecordReconciler(memory_store)


@pytest.fixture
def responder() -> Generator[AuthoritativeResponder]:
    """A bound but not started responder on a free localhost port."""
    r = AuthoritativeResponder(address="127.0.0.1", port=DNS_TEST_PORT, domains=["example.com"])
    yield r
    r.stop()


@pytest.fixture
def running_responder(responder: AuthoritativeResponder) -> AuthoritativeResponder:
    """The responder fixture, serving on its background thread."""
    responder.start()
    return responder


class LogCapture:
    """Helper class to capture and inspect log records."""

    def __init__(self, handler: logging.handlers.MemoryHandler) -> None:
        self._handler = handler

    @property
    def records(self) -> list[logging.LogRecord]:
        """Get all captured log records."""
        return self._handler.buffer

    def get_records(
        self, level: int | None = None, name: str | None = None
    ) -> list[logging.LogRecord]:
        """Get log records filtered by level and/or logger name.

        Args:
            level: Filter by log level (e.g., logging.INFO).
            name: Filter by logger name prefix (e.g., "acme_external_dns.solver").

        Returns:
            List of matching log records.
        """
        records = self.records
        if level is not None:
            records = [r for r in records if r.levelno == level]
        if name is not None:
            records = [r for r in records if r.name.startswith(name)]
        return records

    def get_messages(self, level: int | None = None, name: str | None = None) -> list[str]:
        """Get log messages filtered by level and/or logger name.

        Args:
            level: Filter by log level (e.g., logging.INFO).
            name: Filter by logger name prefix (e.g., "acme_external_dns.solver").

        Returns:
            List of log message strings.
        """
        return [r.getMessage() for r in self.get_records(level, name)]

    def clear(self) -> None:
        """Clear all captured log records."""
        self._handler.buffer.clear()


@pytest.fixture
def log_capture() -> Generator[LogCapture]:
    """Capture logs from the acme_external_dns library during a test.

    Usage:
        def test_something(log_capture):
            # do something that logs
            assert "created DNSEndpoint object" in log_capture.get_messages(logging.INFO)
    """
    # Create a memory handler to capture logs
    handler = logging.handlers.MemoryHandler(capacity=1000)
    handler.setLevel(logging.DEBUG)

    # Attach to the library root logger
    lib_logger = logging.getLogger("acme_external_dns")
    original_level = lib_logger.level
    lib_logger.setLevel(logging.DEBUG)
    lib_logger.addHandler(handler)

    try:
        yield LogCapture(handler)
    finally:
        lib_logger.removeHandler(handler)
        lib_logger.setLevel(original_level)
        handler.close()
