"""Tests for key envelopes."""

from __future__ import annotations

import pytest

from qubesec_operator.services.crypto.envelope import (
    PUBLIC_KEY,
    SECRET_KEY,
    decode_key,
    encode_key,
)
from qubesec_operator.utils.errors import KeyEnvelopeError


class TestEncodeKey:
    """Test cases for encode_key."""

    def test_wraps_lines_at_64_characters(self):
        """Test the base64 body is split into 64-character lines."""
        envelope = encode_key("Kyber768", PUBLIC_KEY, bytes(range(200)))
        lines = envelope.decode("ascii").splitlines()

        assert lines[0] == "-----BEGIN Kyber768 PUBLIC KEY-----"
        assert lines[-1] == "-----END Kyber768 PUBLIC KEY-----"
        assert all(len(line) == 64 for line in lines[1:-2])
        assert 0 < len(lines[-2]) <= 64

    def test_decodes_back(self):
        """Test an encoded key decodes to the original bytes."""
        raw = b"\x00\x01secret\xff"
        envelope = encode_key("ML-DSA-65", SECRET_KEY, raw)

        assert decode_key(envelope, "ML-DSA-65", SECRET_KEY) == raw


class TestDecodeKey:
    """Test cases for decode_key."""

    def test_rejects_non_envelope(self):
        """Test raw key bytes are rejected."""
        with pytest.raises(KeyEnvelopeError, match="not a valid envelope"):
            decode_key(b"raw key bytes", "Kyber512", PUBLIC_KEY)

    def test_rejects_binary(self):
        """Test non-ASCII data is rejected."""
        with pytest.raises(KeyEnvelopeError, match="not an ASCII envelope"):
            decode_key(b"\xff\xfe", "Kyber512", PUBLIC_KEY)

    def test_rejects_wrong_key_kind(self):
        """Test a secret key is rejected where a public key is expected."""
        envelope = encode_key("Kyber512", SECRET_KEY, b"key")

        with pytest.raises(KeyEnvelopeError, match="expected a public key"):
            decode_key(envelope, "Kyber512", PUBLIC_KEY)

    def test_rejects_wrong_algorithm(self):
        """Test a key tagged with another algorithm is rejected."""
        envelope = encode_key("Dilithium2", PUBLIC_KEY, b"key")

        with pytest.raises(KeyEnvelopeError, match="generated for Dilithium2 but the request uses Dilithium3"):
            decode_key(envelope, "Dilithium3", PUBLIC_KEY)

    def test_accepts_alias(self):
        """Test aliases of the tagged algorithm are accepted."""
        envelope = encode_key("Dilithium2", PUBLIC_KEY, b"key")

        assert decode_key(envelope, "CRYSTALS-Dilithium2", PUBLIC_KEY) == b"key"

    def test_mismatched_end_label(self):
        """Test an envelope whose BEGIN and END labels differ is rejected."""
        envelope = b"-----BEGIN Kyber512 PUBLIC KEY-----\na2V5\n-----END Kyber768 PUBLIC KEY-----\n"

        with pytest.raises(KeyEnvelopeError):
            decode_key(envelope, "Kyber512", PUBLIC_KEY)
