"""Unit tests for DNSEndpoint name generation."""

import re

from acme_external_dns.models import RecordIdentity
from acme_external_dns.naming import fnv1_32, generate_name, identity_for, safe_encode


class TestFnv1:
    """Tests for the 32-bit FNV-1 hash."""

    def test_empty_input_is_offset_basis(self):
        """Hashing nothing returns the FNV offset basis."""
        assert fnv1_32(b"") == 2166136261

    def test_known_value(self):
        """FNV-1 (not FNV-1a) of a known key."""
        assert fnv1_32(b"abc123") == 3613024805

    def test_fits_in_32_bits(self):
        """Hash never exceeds 32 bits."""
        assert 0 <= fnv1_32(b"x" * 1000) < 2**32


class TestSafeEncode:
    """Tests for the name-safe character mapping."""

    def test_encodes_decimal_digits(self):
        """Digits map onto the consonant/digit alphabet."""
        assert safe_encode("3613024805") == "7b57468d49"

    def test_output_has_no_vowels(self):
        """Encoded strings never contain vowels."""
        encoded = safe_encode("0123456789")
        assert not set(encoded) & set("aeiou")


class TestGenerateName:
    """Tests for generate_name()."""

    def test_known_name(self):
        """Names stay compatible with records created by earlier releases."""
        assert generate_name("example.com.", "abc123") == "example.com-7b57468d49"

    def test_trailing_dot_removed(self):
        """A trailing dot does not change the name."""
        assert generate_name("example.com.", "abc123") == generate_name("example.com", "abc123")

    def test_wildcard_removed(self):
        """Wildcard domains share the name of their base domain."""
        assert generate_name("*.example.com.", "abc123") == "example.com-7b57468d49"

    def test_deterministic(self):
        """Repeated calls return the same name."""
        names = {generate_name("example.com", "some-key") for _ in range(10)}
        assert len(names) == 1

    def test_different_keys_differ(self):
        """Different keys for the same domain produce different names."""
        names = {generate_name("example.com", f"key-{i}") for i in range(200)}
        assert len(names) == 200

    def test_name_is_object_name_safe(self):
        """Generated names use only lowercase alphanumerics, dots and dashes."""
        name = generate_name("*.sub.example.com.", "evaGxfADs6pSRb2LAv9IZf17Dt3juxGJ-PCt92wr-oA")
        assert re.fullmatch(r"[a-z0-9.-]+", name)


class TestIdentityFor:
    """Tests for identity_for()."""

    def test_identity_uses_namespace_and_name(self, challenge_factory):
        """Identity pairs the resource namespace with the generated name."""
        request = challenge_factory(namespace="cert-manager")

        identity = identity_for(request)

        assert identity == RecordIdentity("cert-manager", "example.com-7b57468d49")
        assert str(identity) == "cert-manager/example.com-7b57468d49"

    def test_identity_ignores_resolved_fqdn(self, challenge_factory):
        """Only the domain and key feed the name."""
        a = challenge_factory(resolved_fqdn="_acme-challenge.example.com.")
        b = challenge_factory(resolved_fqdn="_acme-challenge.delegated.example.net.")

        assert identity_for(a) == identity_for(b)
