"""Record stores holding DNSEndpoint objects."""

from acme_external_dns.stores.base import RecordStore
from acme_external_dns.stores.kubernetes import KubernetesRecordStore
from acme_external_dns.stores.memory import MemoryRecordStore

__all__ = ["KubernetesRecordStore", "MemoryRecordStore", "RecordStore"]
