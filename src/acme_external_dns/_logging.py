"""Logging helpers shared by every acme_external_dns module.

The package never configures handlers itself. Applications attach their own
to the ``acme_external_dns`` logger; structured fields travel in ``extra``.
"""

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

logging.getLogger("acme_external_dns").addHandler(logging.NullHandler())

# uid of the challenge request being served on this thread
_request_uid: ContextVar[str | None] = ContextVar("request_uid", default=None)


@contextmanager
def request_scope(uid: str | None) -> Iterator[None]:
    """Tag log records emitted inside the block with a challenge request uid."""
    token = _request_uid.set(uid)
    try:
        yield
    finally:
        _request_uid.reset(token)


def get_request_extra() -> dict[str, str]:
    """Return ``{"request": uid}`` inside a request scope, else ``{}``."""
    uid = _request_uid.get()
    return {"request": uid} if uid else {}


def get_logger(name: str) -> logging.Logger:
    """Return the logger for a module; pass ``__name__``."""
    return logging.getLogger(name)


class Timer:
    """Measures the wall time of a ``with`` block in milliseconds."""

    def __init__(self) -> None:
        self.elapsed_ms = 0.0
        self._started = 0.0

    def __enter__(self) -> "Timer":
        self._started = time.perf_counter()
        return self

    def __exit__(self, *exc: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self._started) * 1000
