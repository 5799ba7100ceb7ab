"""Handler for QuantumSignMessage CRD."""

from __future__ import annotations

import base64
from typing import Any

import kopf

from ..builders.validation import build_sign_message_request
from ..constants import (
    API_GROUP_VERSION,
    KEY_PRIVATE,
    KIND_SIGN_MESSAGE,
    KIND_SIGNATURE_KEY_PAIR,
    RESYNC_INTERVAL_SECONDS,
)
from ..tracing import trace_span
from ..utils.context import ReconcileContext
from ..utils.errors import DataIntegrityError
from ..utils.events import emit_message_signed
from ..utils.secrets import create_owned_secret, read_secret_bytes, secret_controller_uid, update_secret_field
from ..utils.status import fingerprint, success_status
from .base import BaseHandler, ReconcileOutcome
from .resolver import read_secret_value, resolve_key_pair
from .shared import run_handler


class SignMessageHandler(BaseHandler):
    """Handler for QuantumSignMessage resources."""

    def __init__(self, **kwargs: Any):
        """Initialize sign message handler."""
        super().__init__(KIND_SIGN_MESSAGE, **kwargs)

    def run_pipeline(self, body: dict[str, Any], ctx: ReconcileContext) -> ReconcileOutcome:
        """Sign the referenced message once and publish the signature.

        If the output secret already exists and is controlled by this resource
        but lacks the signature key, only that key is added; other keys in the
        secret are left untouched.
        """
        meta = body.get("metadata", {})
        namespace = meta.get("namespace")
        status = body.get("status") or {}
        request = build_sign_message_request(body.get("spec") or {}, meta.get("name"))

        secret = self.read_output_secret(body, request.secret_name, "signatureReference")
        stored = read_secret_bytes(secret) if secret is not None else {}
        signed = request.signature_key not in stored

        if signed and secret is not None and secret_controller_uid(secret) != meta.get("uid"):
            raise DataIntegrityError(
                f"secret '{request.secret_name}' exists but has no key '{request.signature_key}'"
            )

        message_fingerprint = status.get("messageFingerprint")
        if signed:
            private_key = resolve_key_pair(
                self.store, request.private_key_ref, KIND_SIGNATURE_KEY_PAIR, namespace, KEY_PRIVATE
            )
            message = read_secret_value(self.store, request.message_ref, request.message_key, namespace)
            message_fingerprint = fingerprint(message)

            ctx.check_cancelled("signing")
            with trace_span("sign", kind=self.kind, attributes={"crypto.algorithm": request.algorithm}):
                signature = self.provider.sign(request.algorithm, private_key, message)

            ctx.check_cancelled("secret write")
            if secret is None:
                secret = create_owned_secret(
                    self.store,
                    namespace,
                    request.secret_name,
                    {request.signature_key: signature},
                    self.owner_reference(body),
                )
            else:
                secret = update_secret_field(self.store, secret, request.signature_key, signature)
            stored = read_secret_bytes(secret)
        elif not message_fingerprint:
            message = read_secret_value(self.store, request.message_ref, request.message_key, namespace)
            message_fingerprint = fingerprint(message)

        signature = stored.get(request.signature_key)
        if signature is None:
            raise DataIntegrityError(f"secret '{request.secret_name}' has no key '{request.signature_key}'")

        outcome = self.finish(
            body,
            success_status(
                self.generation(body),
                signatureReference=self.secret_reference(body, request.secret_name),
                signature=base64.b64encode(signature).decode("ascii"),
                signatureFingerprint=fingerprint(signature),
                messageFingerprint=message_fingerprint,
            ),
        )

        if signed:
            self.log_info(
                meta,
                f"Signed message with {request.algorithm}",
                event="created",
                reason="MessageSigned",
                secret=request.secret_name,
            )
            emit_message_signed(body, request.secret_name)
        return outcome


# Global handler instance
_handler = SignMessageHandler()


@kopf.on.create(API_GROUP_VERSION, KIND_SIGN_MESSAGE)
@kopf.on.update(API_GROUP_VERSION, KIND_SIGN_MESSAGE)
@kopf.on.resume(API_GROUP_VERSION, KIND_SIGN_MESSAGE)
def handle_sign_message(name: str, namespace: str, **kwargs: Any) -> None:
    """Handle QuantumSignMessage resource reconciliation."""
    run_handler(_handler, name, namespace)


@kopf.timer(API_GROUP_VERSION, KIND_SIGN_MESSAGE, interval=RESYNC_INTERVAL_SECONDS, idle=RESYNC_INTERVAL_SECONDS)
def resync_sign_message(name: str, namespace: str, **kwargs: Any) -> None:
    """Periodically re-check QuantumSignMessage resources."""
    run_handler(_handler, name, namespace, resync=True)
