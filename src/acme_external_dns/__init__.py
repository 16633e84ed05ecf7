"""acme_external_dns - ACME DNS-01 solver that publishes challenges through external-dns."""

from acme_external_dns._context import StopSignal
from acme_external_dns.harness import SolverHarness
from acme_external_dns.naming import generate_name
from acme_external_dns.responder import AuthoritativeResponder
from acme_external_dns.solver import RecordReconciler

__all__ = [
    "AuthoritativeResponder",
    "RecordReconciler",
    "SolverHarness",
    "StopSignal",
    "generate_name",
]
__version__ = "0.1.0"
