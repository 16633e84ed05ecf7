"""Deterministic DNSEndpoint names for challenge requests."""

from acme_external_dns.models import ChallengeRequest, RecordIdentity

_FNV32_OFFSET = 0x811C9DC5
_FNV32_PRIME = 0x01000193

# Consonants and digits only, so encoded names never spell words
_SAFE_ALPHABET = "bcdfghjklmnpqrstvwxz2456789"


def fnv1_32(data: bytes) -> int:
    """32-bit FNV-1 hash (multiply, then xor)."""
    h = _FNV32_OFFSET
    for byte in data:
        h = (h * _FNV32_PRIME) & 0xFFFFFFFF
        h ^= byte
    return h


def safe_encode(value: str) -> str:
    """Map each character of value onto a name-safe alphabet.

    The mapping is lossy and only meant to produce stable, readable
    suffixes; it matches the encoding used by Kubernetes name generation.
    """
    return "".join(_SAFE_ALPHABET[ord(c) % len(_SAFE_ALPHABET)] for c in value)


def generate_name(dns_name: str, key: str) -> str:
    """Return a short, stable object name for a challenge.

    The name starts with the domain for readability. Wildcard labels are
    invalid in object names and are dropped. Collisions in the prefix do not
    matter because a hash of the key is appended.

    The suffix hashes into a 32-bit space, so two keys for the same domain
    can collide and one challenge's record would then overwrite the other's.
    The scheme is kept as is because existing deployments already hold
    records named this way.

    Args:
        dns_name: Domain being validated, e.g. ``*.example.com.``.
        key: The TXT value to publish.

    Returns:
        Object name such as ``example.com-7b57468d49``.
    """
    prefix = dns_name.removesuffix(".").removeprefix("*.")
    suffix = safe_encode(str(fnv1_32(key.encode())))
    return f"{prefix}-{suffix}"


def identity_for(request: ChallengeRequest) -> RecordIdentity:
    """Compute the store address for a challenge request."""
    return RecordIdentity(
        namespace=request.resource_namespace,
        name=generate_name(request.dns_name, request.key),
    )
