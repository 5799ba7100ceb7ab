"""Utilities for materializing owned Kubernetes secrets."""

from __future__ import annotations

import base64
import binascii
import copy
import logging
from typing import Any

from kubernetes.client.exceptions import ApiException

from .. import metrics
from ..constants import CONTROLLER_NAME, LABEL_MANAGED_BY, LABEL_OWNER_KIND, LABEL_OWNER_NAME
from .errors import ConflictError, DataIntegrityError, NamingCollisionError

logger = logging.getLogger(__name__)


def build_owner_reference(body: dict[str, Any]) -> dict[str, Any]:
    """Build a controller owner reference pointing at a custom resource.

    Args:
        body: The owning resource as returned by the API

    Returns:
        Owner reference dictionary for ``metadata.ownerReferences``
    """
    metadata = body.get("metadata", {})
    return {
        "apiVersion": body.get("apiVersion"),
        "kind": body.get("kind"),
        "name": metadata.get("name"),
        "uid": metadata.get("uid"),
        "controller": True,
        "blockOwnerDeletion": True,
    }


def build_secret_labels(owner: dict[str, Any]) -> dict[str, str]:
    """Labels marking a secret as managed on behalf of ``owner``."""
    return {
        LABEL_MANAGED_BY: CONTROLLER_NAME,
        LABEL_OWNER_KIND: owner.get("kind", ""),
        LABEL_OWNER_NAME: owner.get("name", ""),
    }


def encode_secret_data(data: dict[str, bytes]) -> dict[str, str]:
    """Base64-encode raw values for the ``data`` field of a secret."""
    return {key: base64.b64encode(value).decode("ascii") for key, value in data.items()}


def read_secret_bytes(secret: dict[str, Any]) -> dict[str, bytes]:
    """Decode the ``data`` field of a secret.

    Raises:
        DataIntegrityError: If a value is not valid base64
    """
    result = {}
    for key, value in (secret.get("data") or {}).items():
        if isinstance(value, bytes):
            result[key] = value
            continue
        try:
            result[key] = base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as e:
            name = secret.get("metadata", {}).get("name")
            raise DataIntegrityError(f"secret '{name}' key '{key}' is not valid base64") from e
    return result


def secret_controller_uid(secret: dict[str, Any]) -> str | None:
    """Return the uid of the secret's controller owner, if any."""
    for ref in secret.get("metadata", {}).get("ownerReferences") or []:
        if ref.get("controller"):
            return ref.get("uid")
    return None


def ensure_owned_by(secret: dict[str, Any], owner_uid: str) -> None:
    """Reject a secret controlled by a different resource.

    Secrets with no controller owner are accepted.

    Raises:
        NamingCollisionError: If another resource controls the secret
    """
    controller_uid = secret_controller_uid(secret)
    if controller_uid is not None and controller_uid != owner_uid:
        name = secret.get("metadata", {}).get("name")
        raise NamingCollisionError(
            f"secret '{name}' already exists and is owned by another resource (uid {controller_uid})"
        )


def require_keys(secret: dict[str, Any], keys: list[str] | tuple[str, ...]) -> dict[str, bytes]:
    """Decode a secret and check that every expected key is present.

    Returns:
        Decoded secret data

    Raises:
        DataIntegrityError: If any expected key is missing
    """
    data = read_secret_bytes(secret)
    missing = [key for key in keys if key not in data]
    if missing:
        name = secret.get("metadata", {}).get("name")
        raise DataIntegrityError(
            f"secret '{name}' exists but is missing expected keys: {', '.join(missing)}"
        )
    return data


def create_owned_secret(
    store: Any,
    namespace: str,
    name: str,
    data: dict[str, bytes],
    owner: dict[str, Any],
    secret_type: str = "Opaque",
) -> dict[str, Any]:
    """Create a secret carrying a controller owner reference.

    The owner reference is part of the create request, so the secret is never
    observable without it. If the name is already taken, the existing secret
    is accepted only when it is controlled by the same owner and holds the
    same keys, which means a concurrent pass for this resource created it.

    Args:
        store: Cluster store
        namespace: Namespace for the secret
        name: Name of the secret
        data: Raw secret values
        owner: Owner reference from build_owner_reference()
        secret_type: Secret type, e.g. "kubernetes.io/tls" for certificates

    Returns:
        The created (or concurrently created) secret

    Raises:
        NamingCollisionError: If the existing secret belongs to someone else or differs in shape
    """
    kind = owner.get("kind", "unknown")
    body = {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {
            "name": name,
            "namespace": namespace,
            "labels": build_secret_labels(owner),
            "ownerReferences": [owner],
        },
        "type": secret_type,
        "data": encode_secret_data(data),
    }

    try:
        secret = store.create_secret(namespace, body)
    except ApiException as e:
        if e.status != 409:
            metrics.secrets_materialized_total.labels(kind=kind, result="error").inc()
            raise
        existing = store.read_secret(namespace, name)
        if (
            existing is not None
            and secret_controller_uid(existing) == owner.get("uid")
            and set((existing.get("data") or {}).keys()) == set(data.keys())
        ):
            logger.info(f"Secret {namespace}/{name} was created concurrently for the same owner")
            metrics.secrets_materialized_total.labels(kind=kind, result="adopted").inc()
            return existing
        metrics.secrets_materialized_total.labels(kind=kind, result="collision").inc()
        raise NamingCollisionError(
            f"secret '{name}' was created concurrently by another resource"
        ) from e

    metrics.secrets_materialized_total.labels(kind=kind, result="created").inc()
    return secret


def update_secret_field(store: Any, secret: dict[str, Any], key: str, value: bytes) -> dict[str, Any]:
    """Replace one data field of a secret, leaving the other fields untouched.

    The write carries the secret's resourceVersion.

    Raises:
        ConflictError: If the secret changed since it was read
    """
    metadata = secret.get("metadata", {})
    body = copy.deepcopy(secret)
    body["data"] = dict(body.get("data") or {})
    body["data"][key] = base64.b64encode(value).decode("ascii")

    owner_kind = (metadata.get("labels") or {}).get(LABEL_OWNER_KIND, "unknown")
    try:
        updated = store.replace_secret(metadata.get("namespace"), metadata.get("name"), body)
    except ApiException as e:
        if e.status == 409:
            raise ConflictError(f"secret '{metadata.get('name')}' changed while updating key '{key}'") from e
        raise

    metrics.secrets_materialized_total.labels(kind=owner_kind, result="updated").inc()
    return updated
