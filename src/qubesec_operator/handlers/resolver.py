"""Resolution of cross-resource references."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..builders.validation import DecapsulateRequest, ObjectRef
from ..constants import (
    KEY_SHARED_SECRET,
    KIND_ENCAPSULATE_SECRET,
    SHARED_SECRET_PRODUCER_KINDS,
    STATUS_SUCCESS,
)
from ..utils.errors import DataIntegrityError, ReferenceNotFoundError, ReferenceNotReadyError
from ..utils.secrets import read_secret_bytes


@dataclass(frozen=True)
class SharedSecretProducer:
    """A resource that produced a shared secret: an encapsulation or a decapsulation."""

    kind: str
    body: dict[str, Any]

    @property
    def name(self) -> str:
        return self.body.get("metadata", {}).get("name", "")

    @property
    def namespace(self) -> str:
        return self.body.get("metadata", {}).get("namespace", "")

    @property
    def status(self) -> dict[str, Any]:
        return self.body.get("status") or {}


@dataclass(frozen=True)
class ResolvedCiphertext:
    ciphertext: bytes
    # Algorithm declared by the producing encapsulation, when the ciphertext came from one
    algorithm: str | None = None


def resolve_namespace(ref: ObjectRef, requester_namespace: str) -> str:
    """Namespace of a reference, defaulting to the requester's."""
    return ref.namespace or requester_namespace


def _require_success(kind: str, namespace: str, name: str, status: dict[str, Any]) -> None:
    if status.get("status") != STATUS_SUCCESS:
        raise ReferenceNotReadyError(
            f"{kind} {namespace}/{name} is not ready (status: {status.get('status') or 'Pending'})"
        )


def _read_referenced_key(
    store: Any,
    kind: str,
    namespace: str,
    name: str,
    reference: dict[str, Any] | None,
    key: str,
) -> bytes:
    if not reference or not reference.get("name"):
        raise DataIntegrityError(f"{kind} {namespace}/{name} reports success but has no secret reference")
    secret_namespace = reference.get("namespace") or namespace
    return read_secret_value(store, ObjectRef(reference["name"], secret_namespace), key, namespace)


def resolve_key_pair(
    store: Any,
    ref: ObjectRef,
    kind: str,
    requester_namespace: str,
    key_field: str,
) -> bytes:
    """Resolve a key pair reference to one half of the key pair.

    The key is read from the secret named in the producer's
    ``status.keyPairReference``, never from a secret named after the producer.

    Args:
        store: Cluster store
        ref: Reference to the key pair resource
        kind: QuantumKEMKeyPair or QuantumSignatureKeyPair
        requester_namespace: Namespace of the resource holding the reference
        key_field: Data key to read (public-key or private-key)

    Returns:
        The enveloped key bytes

    Raises:
        ReferenceNotFoundError: If the key pair or its secret does not exist
        ReferenceNotReadyError: If the key pair has not reached Success
        DataIntegrityError: If the secret lacks the requested key
    """
    namespace = resolve_namespace(ref, requester_namespace)
    producer = store.get_custom_object(kind, namespace, ref.name)
    if producer is None:
        raise ReferenceNotFoundError(f"{kind} {namespace}/{ref.name} not found")

    status = producer.get("status") or {}
    _require_success(kind, namespace, ref.name, status)
    return _read_referenced_key(store, kind, namespace, ref.name, status.get("keyPairReference"), key_field)


def resolve_shared_secret_producer(
    store: Any,
    ref: ObjectRef,
    requester_namespace: str,
) -> SharedSecretProducer:
    """Find the resource a shared secret reference points at.

    Encapsulations are tried before decapsulations.

    Raises:
        ReferenceNotFoundError: If neither kind exists under the referenced name
    """
    namespace = resolve_namespace(ref, requester_namespace)
    for kind in SHARED_SECRET_PRODUCER_KINDS:
        body = store.get_custom_object(kind, namespace, ref.name)
        if body is not None:
            return SharedSecretProducer(kind=kind, body=body)

    raise ReferenceNotFoundError(
        f"no {' or '.join(SHARED_SECRET_PRODUCER_KINDS)} named {namespace}/{ref.name} found"
    )


def resolve_shared_secret(store: Any, ref: ObjectRef, requester_namespace: str) -> bytes:
    """Resolve a shared secret reference to the shared secret bytes.

    Raises:
        ReferenceNotFoundError: If no producer or secret exists
        ReferenceNotReadyError: If the producer has not reached Success
        DataIntegrityError: If the producer's secret lacks the shared secret
    """
    producer = resolve_shared_secret_producer(store, ref, requester_namespace)
    _require_success(producer.kind, producer.namespace, producer.name, producer.status)
    return _read_referenced_key(
        store,
        producer.kind,
        producer.namespace,
        producer.name,
        producer.status.get("sharedSecretReference"),
        KEY_SHARED_SECRET,
    )


def resolve_ciphertext(
    store: Any,
    request: DecapsulateRequest,
    requester_namespace: str,
) -> ResolvedCiphertext:
    """Resolve the ciphertext a decapsulation should consume.

    Inline ciphertext wins; otherwise the referenced encapsulation's
    ``status.ciphertext`` is used once it reports Success.

    Raises:
        ReferenceNotFoundError: If the referenced encapsulation does not exist
        ReferenceNotReadyError: If it has not published a ciphertext yet
        DataIntegrityError: If its published ciphertext is not valid hex
    """
    if request.ciphertext is not None:
        return ResolvedCiphertext(ciphertext=request.ciphertext)

    ref = request.ciphertext_ref
    namespace = resolve_namespace(ref, requester_namespace)
    producer = store.get_custom_object(KIND_ENCAPSULATE_SECRET, namespace, ref.name)
    if producer is None:
        raise ReferenceNotFoundError(f"{KIND_ENCAPSULATE_SECRET} {namespace}/{ref.name} not found")

    status = producer.get("status") or {}
    _require_success(KIND_ENCAPSULATE_SECRET, namespace, ref.name, status)
    ciphertext_hex = status.get("ciphertext")
    if not ciphertext_hex:
        raise ReferenceNotReadyError(
            f"{KIND_ENCAPSULATE_SECRET} {namespace}/{ref.name} has not published a ciphertext"
        )

    try:
        ciphertext = bytes.fromhex(ciphertext_hex)
    except ValueError as e:
        raise DataIntegrityError(
            f"{KIND_ENCAPSULATE_SECRET} {namespace}/{ref.name} published a ciphertext that is not valid hex"
        ) from e

    return ResolvedCiphertext(
        ciphertext=ciphertext,
        algorithm=(producer.get("spec") or {}).get("algorithm"),
    )


def read_secret_value(store: Any, ref: ObjectRef, key: str, requester_namespace: str) -> bytes:
    """Read one key from a plain secret.

    Raises:
        ReferenceNotFoundError: If the secret does not exist
        DataIntegrityError: If the key is missing
    """
    namespace = resolve_namespace(ref, requester_namespace)
    secret = store.read_secret(namespace, ref.name)
    if secret is None:
        raise ReferenceNotFoundError(f"secret {namespace}/{ref.name} not found")

    data = read_secret_bytes(secret)
    if key not in data:
        raise DataIntegrityError(f"secret {namespace}/{ref.name} has no key '{key}'")
    return data[key]
