"""Builders that validate resource specs into typed request objects."""

from __future__ import annotations

import base64
import re
from dataclasses import dataclass
from typing import Any

import requests

from ..constants import (
    DEFAULT_CERTIFICATE_DAYS,
    DEFAULT_MESSAGE_KEY,
    DEFAULT_RANDOM_ALGORITHM,
    DEFAULT_RANDOM_BYTES,
    DEFAULT_SIGNATURE_KEY,
    DERIVED_KEY_TYPES,
    MAX_RANDOM_NUMBER_NAME_LENGTH,
    MIN_SEED_LENGTH,
    SEED_FETCH_TIMEOUT_SECONDS,
    SUFFIX_DERIVED_KEY,
    SUFFIX_SHARED_SECRET,
    SUFFIX_SIGNATURE,
)
from ..utils.errors import PreconditionError, TransientError

MAX_SECRET_NAME_LENGTH = 253
_DNS1123_SUBDOMAIN_RE = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$")
_CERTIFICATE_DOMAIN_RE = re.compile(r"^(\*\.)?[A-Za-z0-9]([-A-Za-z0-9]*[A-Za-z0-9])?(\.[A-Za-z0-9]([-A-Za-z0-9]*[A-Za-z0-9])?)*$")


@dataclass(frozen=True)
class ObjectRef:
    """Reference to another resource; an empty namespace means the requester's."""

    name: str
    namespace: str = ""


@dataclass(frozen=True)
class KeyPairRequest:
    algorithm: str
    secret_name: str


@dataclass(frozen=True)
class EncapsulateRequest:
    public_key_ref: ObjectRef
    algorithm: str
    secret_name: str


@dataclass(frozen=True)
class DecapsulateRequest:
    private_key_ref: ObjectRef
    algorithm: str
    secret_name: str
    ciphertext: bytes | None = None
    ciphertext_ref: ObjectRef | None = None


@dataclass(frozen=True)
class DerivedKeyRequest:
    shared_secret_ref: ObjectRef
    key_type: str
    secret_name: str
    salt: bytes = b""
    info: bytes = b""
    salt_hex: str = ""
    info_hex: str = ""


@dataclass(frozen=True)
class SignMessageRequest:
    private_key_ref: ObjectRef
    message_ref: ObjectRef
    algorithm: str
    secret_name: str
    message_key: str = DEFAULT_MESSAGE_KEY
    signature_key: str = DEFAULT_SIGNATURE_KEY


@dataclass(frozen=True)
class VerifySignatureRequest:
    public_key_ref: ObjectRef
    message_ref: ObjectRef
    signature_ref: ObjectRef
    algorithm: str
    message_key: str = DEFAULT_MESSAGE_KEY
    signature_key: str = DEFAULT_SIGNATURE_KEY


@dataclass(frozen=True)
class RandomNumberRequest:
    num_bytes: int
    algorithm: str
    secret_name: str
    seed: str = ""
    seed_uri: str = ""


@dataclass(frozen=True)
class CertificateRequest:
    algorithm: str
    domain: str
    days: int
    secret_name: str


def parse_object_ref(spec: dict[str, Any], field: str, required: bool = True) -> ObjectRef | None:
    """Parse a ``{name, namespace?}`` reference field.

    Args:
        spec: Resource spec
        field: Name of the reference field
        required: Whether a missing reference is an error

    Returns:
        The reference, or None when optional and absent

    Raises:
        PreconditionError: If the reference is required but missing or has no name
    """
    ref = spec.get(field)
    if not ref:
        if required:
            raise PreconditionError(f"spec.{field} is required")
        return None
    if not isinstance(ref, dict) or not ref.get("name"):
        raise PreconditionError(f"spec.{field}.name is required")
    return ObjectRef(name=ref["name"], namespace=ref.get("namespace") or "")


def require_algorithm(spec: dict[str, Any]) -> str:
    """Return spec.algorithm or raise if it is empty."""
    algorithm = spec.get("algorithm")
    if not algorithm:
        raise PreconditionError("spec.algorithm is required")
    return algorithm


def decode_hex(value: str, field: str) -> bytes:
    """Decode a hex string from the resource spec.

    Raises:
        PreconditionError: If the value is not valid hex
    """
    try:
        return bytes.fromhex(value)
    except ValueError as e:
        raise PreconditionError(f"spec.{field} is not valid hex: {e}") from e


def output_name(spec: dict[str, Any], name: str, suffix: str = "", field: str = "secretName") -> str:
    """Canonical output secret name: the resource spec override, else ``<name><suffix>``.

    Raises:
        PreconditionError: If the name is not a valid DNS-1123 subdomain
    """
    secret_name = spec.get(field) or f"{name}{suffix}"
    if len(secret_name) > MAX_SECRET_NAME_LENGTH or not _DNS1123_SUBDOMAIN_RE.fullmatch(secret_name):
        raise PreconditionError(
            f"secret name '{secret_name}' is not a valid DNS-1123 subdomain "
            f"(lowercase alphanumerics, '-' and '.', at most {MAX_SECRET_NAME_LENGTH} characters)"
        )
    return secret_name


def build_key_pair_request(spec: dict[str, Any], name: str) -> KeyPairRequest:
    """Build a KEM or signature key pair request."""
    return KeyPairRequest(algorithm=require_algorithm(spec), secret_name=output_name(spec, name))


def build_encapsulate_request(spec: dict[str, Any], name: str) -> EncapsulateRequest:
    """Build an encapsulation request."""
    return EncapsulateRequest(
        public_key_ref=parse_object_ref(spec, "publicKeyRef"),
        algorithm=require_algorithm(spec),
        secret_name=output_name(spec, name, SUFFIX_SHARED_SECRET),
    )


def build_decapsulate_request(spec: dict[str, Any], name: str) -> DecapsulateRequest:
    """Build a decapsulation request.

    An inline ``ciphertext`` wins over ``ciphertextRef``; one of them must be set.
    """
    private_key_ref = parse_object_ref(spec, "privateKeyRef")
    algorithm = require_algorithm(spec)

    ciphertext_hex = spec.get("ciphertext") or ""
    ciphertext = decode_hex(ciphertext_hex, "ciphertext") if ciphertext_hex else None
    ciphertext_ref = parse_object_ref(spec, "ciphertextRef", required=False)
    if ciphertext is None and ciphertext_ref is None:
        raise PreconditionError("either spec.ciphertext or spec.ciphertextRef is required")

    return DecapsulateRequest(
        private_key_ref=private_key_ref,
        algorithm=algorithm,
        secret_name=output_name(spec, name, SUFFIX_SHARED_SECRET),
        ciphertext=ciphertext,
        ciphertext_ref=ciphertext_ref if ciphertext is None else None,
    )


def build_derived_key_request(spec: dict[str, Any], name: str) -> DerivedKeyRequest:
    """Build a derived key request, decoding the optional hex salt and info."""
    shared_secret_ref = parse_object_ref(spec, "sharedSecretRef")

    key_type = spec.get("keyType")
    if not key_type:
        raise PreconditionError("spec.keyType is required")
    if key_type not in DERIVED_KEY_TYPES:
        raise PreconditionError(
            f"spec.keyType '{key_type}' is not supported (supported: {', '.join(DERIVED_KEY_TYPES)})"
        )

    salt_hex = spec.get("salt") or ""
    info_hex = spec.get("info") or ""
    return DerivedKeyRequest(
        shared_secret_ref=shared_secret_ref,
        key_type=key_type,
        secret_name=output_name(spec, name, SUFFIX_DERIVED_KEY),
        salt=decode_hex(salt_hex, "salt"),
        info=decode_hex(info_hex, "info"),
        salt_hex=salt_hex,
        info_hex=info_hex,
    )


def build_sign_message_request(spec: dict[str, Any], name: str) -> SignMessageRequest:
    """Build a sign message request."""
    return SignMessageRequest(
        private_key_ref=parse_object_ref(spec, "privateKeyRef"),
        message_ref=parse_object_ref(spec, "messageRef"),
        algorithm=require_algorithm(spec),
        secret_name=output_name(spec, name, SUFFIX_SIGNATURE, field="outputSecretName"),
        message_key=spec.get("messageKey") or DEFAULT_MESSAGE_KEY,
        signature_key=spec.get("signatureKey") or DEFAULT_SIGNATURE_KEY,
    )


def build_verify_signature_request(spec: dict[str, Any]) -> VerifySignatureRequest:
    """Build a verify signature request."""
    return VerifySignatureRequest(
        public_key_ref=parse_object_ref(spec, "publicKeyRef"),
        message_ref=parse_object_ref(spec, "messageRef"),
        signature_ref=parse_object_ref(spec, "signatureRef"),
        algorithm=require_algorithm(spec),
        message_key=spec.get("messageKey") or DEFAULT_MESSAGE_KEY,
        signature_key=spec.get("signatureKey") or DEFAULT_SIGNATURE_KEY,
    )


def fetch_seed(seed_uri: str, timeout: float = SEED_FETCH_TIMEOUT_SECONDS) -> str:
    """Fetch a hex seed from a URI and return it base64-encoded.

    Raises:
        TransientError: If the seed server is unreachable, times out or answers 5xx
        PreconditionError: If the seed cannot be fetched or is not hex
    """
    try:
        response = requests.get(seed_uri, timeout=timeout)
        response.raise_for_status()
    except (requests.ConnectionError, requests.Timeout) as e:
        raise TransientError(f"failed to get seed from {seed_uri}: {type(e).__name__}") from e
    except requests.HTTPError as e:
        if e.response is not None and e.response.status_code >= 500:
            raise TransientError(f"failed to get seed from {seed_uri}: HTTP {e.response.status_code}") from e
        raise PreconditionError(f"failed to get seed from {seed_uri}: {type(e).__name__}") from e
    except requests.RequestException as e:
        raise PreconditionError(f"failed to get seed from {seed_uri}: {type(e).__name__}") from e

    try:
        seed = bytes.fromhex(response.text.strip())
    except ValueError as e:
        raise PreconditionError(f"failed to decode seed from {seed_uri}") from e
    return base64.b64encode(seed).decode("ascii")


def build_random_number_request(spec: dict[str, Any], name: str) -> RandomNumberRequest:
    """Build a random number request, applying defaults.

    Raises:
        PreconditionError: If the name is too long or the byte count is invalid
    """
    if len(name) > MAX_RANDOM_NUMBER_NAME_LENGTH:
        raise PreconditionError(f"metadata.name must be no more than {MAX_RANDOM_NUMBER_NAME_LENGTH} characters")

    num_bytes = spec.get("bytes") or DEFAULT_RANDOM_BYTES
    if not isinstance(num_bytes, int) or isinstance(num_bytes, bool) or num_bytes <= 0:
        raise PreconditionError(f"spec.bytes must be a positive integer, got {num_bytes!r}")

    return RandomNumberRequest(
        num_bytes=num_bytes,
        algorithm=spec.get("algorithm") or DEFAULT_RANDOM_ALGORITHM,
        secret_name=output_name(spec, name),
        seed=spec.get("seed") or "",
        seed_uri=spec.get("seedURI") or "",
    )


def resolve_seed(request: RandomNumberRequest, timeout: float | None = None) -> str:
    """Return the request's seed, fetching it from seedURI when no inline seed is set.

    An empty seed is allowed. ``timeout`` caps the fetch below the default.

    Raises:
        TransientError: If the seed server is temporarily unavailable
        PreconditionError: If the seed cannot be fetched or is shorter than 48 bytes
    """
    seed = request.seed
    if not seed and request.seed_uri:
        fetch_timeout = SEED_FETCH_TIMEOUT_SECONDS if timeout is None else min(timeout, SEED_FETCH_TIMEOUT_SECONDS)
        seed = fetch_seed(request.seed_uri, timeout=fetch_timeout)

    seed_length = len(seed.encode("utf-8"))
    if seed and seed_length < MIN_SEED_LENGTH:
        raise PreconditionError(
            f"seed is {seed_length} bytes long, it must be at least {MIN_SEED_LENGTH} bytes"
        )
    return seed


def build_certificate_request(spec: dict[str, Any], name: str) -> CertificateRequest:
    """Build a self-signed certificate request.

    The algorithm is handed to ``openssl req -newkey`` as-is, so option-like
    values are rejected. The domain becomes the subject CN and must be a host
    name, optionally with a leading wildcard label.

    Raises:
        PreconditionError: If a field is missing or malformed
    """
    algorithm = require_algorithm(spec)
    if algorithm.startswith("-") or any(c.isspace() for c in algorithm):
        raise PreconditionError(f"spec.algorithm '{algorithm}' is not a valid key algorithm")

    domain = spec.get("domain")
    if not domain:
        raise PreconditionError("spec.domain is required")
    if not _CERTIFICATE_DOMAIN_RE.fullmatch(domain):
        raise PreconditionError(f"spec.domain '{domain}' is not a valid host name")

    days = spec.get("days") or DEFAULT_CERTIFICATE_DAYS
    if not isinstance(days, int) or isinstance(days, bool) or days <= 0:
        raise PreconditionError(f"spec.days must be a positive integer, got {days!r}")

    return CertificateRequest(
        algorithm=algorithm,
        domain=domain,
        days=days,
        secret_name=output_name(spec, name),
    )
