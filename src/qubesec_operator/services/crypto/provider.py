"""Post-quantum cryptographic provider backed by kyber-py, dilithium-py and cryptography."""

from __future__ import annotations

import logging
import secrets
import time
from contextlib import contextmanager
from typing import Iterator

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from ... import metrics
from ...constants import DERIVED_KEY_LENGTH
from ...tracing import trace_span
from ...utils.errors import ProviderError, sanitize_exception
from .algorithms import get_algorithm
from .base import FAMILY_KEM, FAMILY_SIGNATURE, Certificate, Encapsulation, KeyPair
from .certificate import issue_certificate
from .envelope import PUBLIC_KEY, SECRET_KEY, decode_key, encode_key

logger = logging.getLogger(__name__)

# Random number generators accepted by random_bytes
RANDOM_ALGORITHMS = ("system",)


class PQCProvider:
    """Stateless provider for KEM, signature, KDF and random operations.

    Every public method either returns its result or raises ProviderError
    naming the operation. Library exceptions are wrapped and their messages
    sanitized so no key material leaks into status or logs.
    """

    @contextmanager
    def _operation(self, operation: str, algorithm: str) -> Iterator[None]:
        start_time = time.time()
        with trace_span(f"crypto.{operation}", attributes={"crypto.algorithm": algorithm}):
            try:
                yield
                metrics.crypto_operations_total.labels(
                    operation=operation, algorithm=algorithm, result="success"
                ).inc()
            except ProviderError:
                metrics.crypto_operations_total.labels(
                    operation=operation, algorithm=algorithm, result="error"
                ).inc()
                raise
            except Exception as e:
                metrics.crypto_operations_total.labels(
                    operation=operation, algorithm=algorithm, result="error"
                ).inc()
                logger.warning(f"{operation} with {algorithm} raised {type(e).__name__}")
                raise ProviderError(operation, sanitize_exception(e)) from e
            finally:
                duration = time.time() - start_time
                metrics.crypto_operation_duration_seconds.labels(operation=operation).observe(duration)

    def generate_key_pair(self, algorithm: str, family: str) -> KeyPair:
        """Generate a key pair and return both halves as envelopes.

        Args:
            algorithm: KEM or signature algorithm name
            family: FAMILY_KEM or FAMILY_SIGNATURE

        Returns:
            KeyPair with enveloped public and private keys

        Raises:
            ProviderError: If the algorithm is unsupported or generation fails
        """
        with self._operation("keygen", algorithm):
            scheme = get_algorithm(algorithm, family).scheme
            public_key, private_key = scheme.keygen()
            return KeyPair(
                public_key=encode_key(algorithm, PUBLIC_KEY, public_key),
                private_key=encode_key(algorithm, SECRET_KEY, private_key),
            )

    def encapsulate(self, algorithm: str, public_key: bytes) -> Encapsulation:
        """Encapsulate a fresh shared secret for the holder of a KEM public key.

        Raises:
            ProviderError: If the key does not match the algorithm or encapsulation fails
        """
        with self._operation("encapsulate", algorithm):
            scheme = get_algorithm(algorithm, FAMILY_KEM).scheme
            raw_key = decode_key(public_key, algorithm, PUBLIC_KEY)
            shared_secret, ciphertext = scheme.encaps(raw_key)
            return Encapsulation(ciphertext=ciphertext, shared_secret=shared_secret)

    def decapsulate(self, algorithm: str, private_key: bytes, ciphertext: bytes) -> bytes:
        """Recover a shared secret from a ciphertext with a KEM private key.

        Raises:
            ProviderError: If the key does not match the algorithm or decapsulation fails
        """
        with self._operation("decapsulate", algorithm):
            scheme = get_algorithm(algorithm, FAMILY_KEM).scheme
            raw_key = decode_key(private_key, algorithm, SECRET_KEY)
            return scheme.decaps(raw_key, ciphertext)

    def derive_key(self, shared_secret: bytes, salt: bytes = b"", info: bytes = b"") -> bytes:
        """Derive a 32-byte key from a shared secret with HKDF-SHA256.

        An empty salt is treated as no salt, so derivation is deterministic
        for identical inputs.
        """
        with self._operation("derive", "HKDF-SHA256"):
            hkdf = HKDF(
                algorithm=hashes.SHA256(),
                length=DERIVED_KEY_LENGTH,
                salt=salt or None,
                info=info or None,
            )
            return hkdf.derive(shared_secret)

    def sign(self, algorithm: str, private_key: bytes, message: bytes) -> bytes:
        """Sign a message with a signature private key.

        Raises:
            ProviderError: If the key does not match the algorithm or signing fails
        """
        with self._operation("sign", algorithm):
            scheme = get_algorithm(algorithm, FAMILY_SIGNATURE).scheme
            raw_key = decode_key(private_key, algorithm, SECRET_KEY)
            return scheme.sign(raw_key, message)

    def verify(self, algorithm: str, public_key: bytes, message: bytes, signature: bytes) -> bool:
        """Check a signature over a message.

        A signature that simply does not verify returns False; only unusable
        keys or algorithms raise.

        Raises:
            ProviderError: If the key does not match the algorithm
        """
        with self._operation("verify", algorithm):
            scheme = get_algorithm(algorithm, FAMILY_SIGNATURE).scheme
            raw_key = decode_key(public_key, algorithm, PUBLIC_KEY)
            try:
                return bool(scheme.verify(raw_key, message, signature))
            except (ValueError, IndexError):
                # Malformed signatures of the wrong length are rejected by the library
                return False

    def random_bytes(self, algorithm: str, length: int) -> bytes:
        """Return random bytes from the named generator.

        Raises:
            ProviderError: If the generator is unknown or the length is not positive
        """
        with self._operation("random", algorithm):
            if algorithm not in RANDOM_ALGORITHMS:
                raise ProviderError(
                    "random",
                    f"unsupported random number algorithm '{algorithm}' "
                    f"(supported: {', '.join(RANDOM_ALGORITHMS)})",
                )
            if length <= 0:
                raise ProviderError("random", f"byte count must be positive, got {length}")
            return secrets.token_bytes(length)

    def issue_certificate(self, algorithm: str, domain: str, days: int) -> Certificate:
        """Issue a self-signed certificate with openssl.

        Raises:
            ProviderError: If openssl rejects the algorithm or cannot be run
        """
        with self._operation("certificate", algorithm):
            return issue_certificate(algorithm, domain, days)
