"""Handler for QuantumVerifySignature CRD."""

from __future__ import annotations

from typing import Any

import kopf

from ..builders.validation import build_verify_signature_request
from ..constants import (
    API_GROUP_VERSION,
    KEY_PUBLIC,
    KIND_SIGNATURE_KEY_PAIR,
    KIND_VERIFY_SIGNATURE,
    RESYNC_INTERVAL_SECONDS,
    STATUS_INVALID,
    STATUS_VALID,
)
from ..tracing import trace_span
from ..utils.context import ReconcileContext
from ..utils.events import emit_signature_invalid, emit_signature_verified
from ..utils.status import fingerprint, now_rfc3339, success_status
from .base import BaseHandler, ReconcileOutcome
from .resolver import read_secret_value, resolve_key_pair
from .shared import run_handler


class VerifySignatureHandler(BaseHandler):
    """Handler for QuantumVerifySignature resources.

    Verification produces no secret, so every pass re-checks the signature
    against the current message and signature secrets.
    """

    def __init__(self, **kwargs: Any):
        """Initialize verify signature handler."""
        super().__init__(KIND_VERIFY_SIGNATURE, **kwargs)

    def run_pipeline(self, body: dict[str, Any], ctx: ReconcileContext) -> ReconcileOutcome:
        """Verify the referenced signature and record Valid or Invalid."""
        meta = body.get("metadata", {})
        namespace = meta.get("namespace")
        request = build_verify_signature_request(body.get("spec") or {})

        public_key = resolve_key_pair(self.store, request.public_key_ref, KIND_SIGNATURE_KEY_PAIR, namespace, KEY_PUBLIC)
        message = read_secret_value(self.store, request.message_ref, request.message_key, namespace)
        signature = read_secret_value(self.store, request.signature_ref, request.signature_key, namespace)

        ctx.check_cancelled("verification")
        with trace_span("verify", kind=self.kind, attributes={"crypto.algorithm": request.algorithm}):
            verified = self.provider.verify(request.algorithm, public_key, message, signature)

        outcome = self.finish(
            body,
            success_status(
                self.generation(body),
                value=STATUS_VALID if verified else STATUS_INVALID,
                verified=verified,
                messageFingerprint=fingerprint(message),
                lastCheckedTime=now_rfc3339(),
            ),
        )

        if outcome == ReconcileOutcome.SUCCEEDED:
            if verified:
                self.log_info(meta, "Signature is valid", event="verified", reason="SignatureVerified")
                emit_signature_verified(body)
            else:
                self.log_warning(meta, "Signature is not valid", event="verified", reason="SignatureInvalid")
                emit_signature_invalid(body)
        return outcome


# Global handler instance
_handler = VerifySignatureHandler()


@kopf.on.create(API_GROUP_VERSION, KIND_VERIFY_SIGNATURE)
@kopf.on.update(API_GROUP_VERSION, KIND_VERIFY_SIGNATURE)
@kopf.on.resume(API_GROUP_VERSION, KIND_VERIFY_SIGNATURE)
def handle_verify_signature(name: str, namespace: str, **kwargs: Any) -> None:
    """Handle QuantumVerifySignature resource reconciliation."""
    run_handler(_handler, name, namespace)


@kopf.timer(API_GROUP_VERSION, KIND_VERIFY_SIGNATURE, interval=RESYNC_INTERVAL_SECONDS, idle=RESYNC_INTERVAL_SECONDS)
def resync_verify_signature(name: str, namespace: str, **kwargs: Any) -> None:
    """Periodically re-check QuantumVerifySignature resources."""
    run_handler(_handler, name, namespace, resync=True)
