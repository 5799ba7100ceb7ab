"""Base cryptographic provider interface."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

# Algorithm families
FAMILY_KEM = "kem"
FAMILY_SIGNATURE = "signature"


@dataclass(frozen=True)
class KeyPair:
    """An enveloped public/private key pair."""

    public_key: bytes
    private_key: bytes


@dataclass(frozen=True)
class Encapsulation:
    """Result of a KEM encapsulation."""

    ciphertext: bytes
    shared_secret: bytes


@dataclass(frozen=True)
class Certificate:
    """A PEM-encoded self-signed certificate and its unencrypted private key."""

    certificate: bytes
    private_key: bytes


class CryptoProvider(Protocol):
    """Protocol defining the cryptographic operations the operator needs.

    Implementations keep no state between calls. Keys passed in and out are
    algorithm-tagged envelopes; every failure is raised as ProviderError.
    """

    def generate_key_pair(self, algorithm: str, family: str) -> KeyPair:
        """Generate a key pair for a KEM or signature algorithm."""
        ...

    def encapsulate(self, algorithm: str, public_key: bytes) -> Encapsulation:
        """Encapsulate a fresh shared secret against a public key."""
        ...

    def decapsulate(self, algorithm: str, private_key: bytes, ciphertext: bytes) -> bytes:
        """Recover the shared secret from a ciphertext."""
        ...

    def derive_key(self, shared_secret: bytes, salt: bytes = b"", info: bytes = b"") -> bytes:
        """Derive a symmetric key with HKDF-SHA256."""
        ...

    def sign(self, algorithm: str, private_key: bytes, message: bytes) -> bytes:
        """Sign a message."""
        ...

    def verify(self, algorithm: str, public_key: bytes, message: bytes, signature: bytes) -> bool:
        """Verify a signature over a message."""
        ...

    def random_bytes(self, algorithm: str, length: int) -> bytes:
        """Produce random bytes from the named generator."""
        ...

    def issue_certificate(self, algorithm: str, domain: str, days: int) -> Certificate:
        """Issue a self-signed certificate for a domain."""
        ...
