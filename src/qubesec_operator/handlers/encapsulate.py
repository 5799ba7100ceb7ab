"""Handler for QuantumEncapsulateSecret CRD."""

from __future__ import annotations

from typing import Any

import kopf

from ..builders.validation import build_encapsulate_request
from ..constants import (
    API_GROUP_VERSION,
    KEY_CIPHERTEXT,
    KEY_PUBLIC,
    KEY_SHARED_SECRET,
    KIND_ENCAPSULATE_SECRET,
    KIND_KEM_KEY_PAIR,
    RESYNC_INTERVAL_SECONDS,
)
from ..tracing import trace_span
from ..utils.context import ReconcileContext
from ..utils.events import emit_shared_secret_encapsulated
from ..utils.secrets import create_owned_secret, require_keys
from ..utils.status import fingerprint, success_status
from .base import BaseHandler, ReconcileOutcome
from .resolver import resolve_key_pair
from .shared import run_handler


class EncapsulateSecretHandler(BaseHandler):
    """Handler for QuantumEncapsulateSecret resources."""

    def __init__(self, **kwargs: Any):
        """Initialize encapsulate secret handler."""
        super().__init__(KIND_ENCAPSULATE_SECRET, **kwargs)

    def run_pipeline(self, body: dict[str, Any], ctx: ReconcileContext) -> ReconcileOutcome:
        """Encapsulate a shared secret against the referenced KEM public key.

        The shared secret and its ciphertext are stored together; the
        ciphertext is also published hex-encoded in status for decapsulation.
        """
        meta = body.get("metadata", {})
        namespace = meta.get("namespace")
        request = build_encapsulate_request(body.get("spec") or {}, meta.get("name"))

        secret = self.read_output_secret(body, request.secret_name, "sharedSecretReference")
        created = secret is None
        if created:
            public_key = resolve_key_pair(self.store, request.public_key_ref, KIND_KEM_KEY_PAIR, namespace, KEY_PUBLIC)

            ctx.check_cancelled("encapsulation")
            with trace_span("encapsulate", kind=self.kind, attributes={"crypto.algorithm": request.algorithm}):
                result = self.provider.encapsulate(request.algorithm, public_key)

            ctx.check_cancelled("secret creation")
            secret = create_owned_secret(
                self.store,
                namespace,
                request.secret_name,
                {KEY_SHARED_SECRET: result.shared_secret, KEY_CIPHERTEXT: result.ciphertext},
                self.owner_reference(body),
            )

        data = require_keys(secret, (KEY_SHARED_SECRET, KEY_CIPHERTEXT))
        outcome = self.finish(
            body,
            success_status(
                self.generation(body),
                sharedSecretReference=self.secret_reference(body, request.secret_name),
                fingerprint=fingerprint(data[KEY_SHARED_SECRET]),
                ciphertext=data[KEY_CIPHERTEXT].hex(),
            ),
        )

        if created:
            self.log_info(
                meta,
                f"Encapsulated shared secret with {request.algorithm}",
                event="created",
                reason="SharedSecretEncapsulated",
                secret=request.secret_name,
            )
            emit_shared_secret_encapsulated(body, request.secret_name)
        return outcome


# Global handler instance
_handler = EncapsulateSecretHandler()


@kopf.on.create(API_GROUP_VERSION, KIND_ENCAPSULATE_SECRET)
@kopf.on.update(API_GROUP_VERSION, KIND_ENCAPSULATE_SECRET)
@kopf.on.resume(API_GROUP_VERSION, KIND_ENCAPSULATE_SECRET)
def handle_encapsulate_secret(name: str, namespace: str, **kwargs: Any) -> None:
    """Handle QuantumEncapsulateSecret resource reconciliation."""
    run_handler(_handler, name, namespace)


@kopf.timer(API_GROUP_VERSION, KIND_ENCAPSULATE_SECRET, interval=RESYNC_INTERVAL_SECONDS, idle=RESYNC_INTERVAL_SECONDS)
def resync_encapsulate_secret(name: str, namespace: str, **kwargs: Any) -> None:
    """Periodically re-check QuantumEncapsulateSecret resources."""
    run_handler(_handler, name, namespace, resync=True)
