"""Handler for QuantumDecapsulateSecret CRD."""

from __future__ import annotations

from typing import Any

import kopf

from ..builders.validation import build_decapsulate_request
from ..constants import (
    API_GROUP_VERSION,
    KEY_PRIVATE,
    KEY_SHARED_SECRET,
    KIND_DECAPSULATE_SECRET,
    KIND_KEM_KEY_PAIR,
    RESYNC_INTERVAL_SECONDS,
)
from ..services.crypto.algorithms import canonical_name
from ..tracing import trace_span
from ..utils.context import ReconcileContext
from ..utils.events import emit_algorithm_mismatch, emit_shared_secret_decapsulated
from ..utils.secrets import create_owned_secret, require_keys
from ..utils.status import fingerprint, success_status
from .base import BaseHandler, ReconcileOutcome
from .resolver import resolve_ciphertext, resolve_key_pair
from .shared import run_handler


class DecapsulateSecretHandler(BaseHandler):
    """Handler for QuantumDecapsulateSecret resources."""

    def __init__(self, **kwargs: Any):
        """Initialize decapsulate secret handler."""
        super().__init__(KIND_DECAPSULATE_SECRET, **kwargs)

    def run_pipeline(self, body: dict[str, Any], ctx: ReconcileContext) -> ReconcileOutcome:
        """Recover the shared secret from a ciphertext with the referenced KEM private key."""
        meta = body.get("metadata", {})
        namespace = meta.get("namespace")
        request = build_decapsulate_request(body.get("spec") or {}, meta.get("name"))

        secret = self.read_output_secret(body, request.secret_name, "sharedSecretReference")
        created = secret is None
        if created:
            resolved = resolve_ciphertext(self.store, request, namespace)
            private_key = resolve_key_pair(self.store, request.private_key_ref, KIND_KEM_KEY_PAIR, namespace, KEY_PRIVATE)

            if resolved.algorithm and canonical_name(resolved.algorithm) != canonical_name(request.algorithm):
                message = (
                    f"ciphertext was produced with {resolved.algorithm} "
                    f"but decapsulation uses {request.algorithm}"
                )
                self.log_warning(meta, message, reason="AlgorithmMismatch")
                emit_algorithm_mismatch(body, message)

            ctx.check_cancelled("decapsulation")
            with trace_span("decapsulate", kind=self.kind, attributes={"crypto.algorithm": request.algorithm}):
                shared_secret = self.provider.decapsulate(request.algorithm, private_key, resolved.ciphertext)

            ctx.check_cancelled("secret creation")
            secret = create_owned_secret(
                self.store,
                namespace,
                request.secret_name,
                {KEY_SHARED_SECRET: shared_secret},
                self.owner_reference(body),
            )

        data = require_keys(secret, (KEY_SHARED_SECRET,))
        outcome = self.finish(
            body,
            success_status(
                self.generation(body),
                sharedSecretReference=self.secret_reference(body, request.secret_name),
                fingerprint=fingerprint(data[KEY_SHARED_SECRET]),
            ),
        )

        if created:
            self.log_info(
                meta,
                f"Decapsulated shared secret with {request.algorithm}",
                event="created",
                reason="SharedSecretDecapsulated",
                secret=request.secret_name,
            )
            emit_shared_secret_decapsulated(body, request.secret_name)
        return outcome


# Global handler instance
_handler = DecapsulateSecretHandler()


@kopf.on.create(API_GROUP_VERSION, KIND_DECAPSULATE_SECRET)
@kopf.on.update(API_GROUP_VERSION, KIND_DECAPSULATE_SECRET)
@kopf.on.resume(API_GROUP_VERSION, KIND_DECAPSULATE_SECRET)
def handle_decapsulate_secret(name: str, namespace: str, **kwargs: Any) -> None:
    """Handle QuantumDecapsulateSecret resource reconciliation."""
    run_handler(_handler, name, namespace)


@kopf.timer(API_GROUP_VERSION, KIND_DECAPSULATE_SECRET, interval=RESYNC_INTERVAL_SECONDS, idle=RESYNC_INTERVAL_SECONDS)
def resync_decapsulate_secret(name: str, namespace: str, **kwargs: Any) -> None:
    """Periodically re-check QuantumDecapsulateSecret resources."""
    run_handler(_handler, name, namespace, resync=True)
