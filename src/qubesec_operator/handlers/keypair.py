"""Handlers for QuantumKEMKeyPair and QuantumSignatureKeyPair CRDs."""

from __future__ import annotations

from typing import Any

import kopf

from ..builders.validation import build_key_pair_request
from ..constants import (
    API_GROUP_VERSION,
    KEY_PRIVATE,
    KEY_PUBLIC,
    KIND_KEM_KEY_PAIR,
    KIND_SIGNATURE_KEY_PAIR,
    RESYNC_INTERVAL_SECONDS,
)
from ..services.crypto import FAMILY_KEM, FAMILY_SIGNATURE
from ..tracing import trace_span
from ..utils.context import ReconcileContext
from ..utils.events import emit_key_pair_generated
from ..utils.secrets import create_owned_secret, require_keys
from ..utils.status import fingerprint, success_status
from .base import BaseHandler, ReconcileOutcome
from .shared import run_handler


class KeyPairHandler(BaseHandler):
    """Handler for key pair resources of either algorithm family."""

    def __init__(self, kind: str, family: str, **kwargs: Any):
        super().__init__(kind, **kwargs)
        self.family = family

    def run_pipeline(self, body: dict[str, Any], ctx: ReconcileContext) -> ReconcileOutcome:
        """Generate the key pair once and keep its status in line with the stored keys."""
        meta = body.get("metadata", {})
        request = build_key_pair_request(body.get("spec") or {}, meta.get("name"))

        secret = self.read_output_secret(body, request.secret_name, "keyPairReference")
        created = secret is None
        if created:
            ctx.check_cancelled("key generation")
            with trace_span("generate_key_pair", kind=self.kind, attributes={"crypto.algorithm": request.algorithm}):
                key_pair = self.provider.generate_key_pair(request.algorithm, self.family)

            ctx.check_cancelled("secret creation")
            secret = create_owned_secret(
                self.store,
                meta.get("namespace"),
                request.secret_name,
                {KEY_PUBLIC: key_pair.public_key, KEY_PRIVATE: key_pair.private_key},
                self.owner_reference(body),
            )

        data = require_keys(secret, (KEY_PUBLIC, KEY_PRIVATE))
        outcome = self.finish(
            body,
            success_status(
                self.generation(body),
                keyPairReference=self.secret_reference(body, request.secret_name),
                publicKeyFingerprint=fingerprint(data[KEY_PUBLIC]),
            ),
        )

        if created:
            self.log_info(
                meta,
                f"Generated {request.algorithm} key pair",
                event="created",
                reason="KeyPairGenerated",
                secret=request.secret_name,
            )
            emit_key_pair_generated(body, request.secret_name, request.algorithm)
        return outcome


class KEMKeyPairHandler(KeyPairHandler):
    """Handler for QuantumKEMKeyPair resources."""

    def __init__(self, **kwargs: Any):
        super().__init__(KIND_KEM_KEY_PAIR, FAMILY_KEM, **kwargs)


class SignatureKeyPairHandler(KeyPairHandler):
    """Handler for QuantumSignatureKeyPair resources."""

    def __init__(self, **kwargs: Any):
        super().__init__(KIND_SIGNATURE_KEY_PAIR, FAMILY_SIGNATURE, **kwargs)


# Global handler instances
_kem_handler = KEMKeyPairHandler()
_signature_handler = SignatureKeyPairHandler()


@kopf.on.create(API_GROUP_VERSION, KIND_KEM_KEY_PAIR)
@kopf.on.update(API_GROUP_VERSION, KIND_KEM_KEY_PAIR)
@kopf.on.resume(API_GROUP_VERSION, KIND_KEM_KEY_PAIR)
def handle_kem_key_pair(name: str, namespace: str, **kwargs: Any) -> None:
    """Handle QuantumKEMKeyPair resource reconciliation."""
    run_handler(_kem_handler, name, namespace)


@kopf.timer(API_GROUP_VERSION, KIND_KEM_KEY_PAIR, interval=RESYNC_INTERVAL_SECONDS, idle=RESYNC_INTERVAL_SECONDS)
def resync_kem_key_pair(name: str, namespace: str, **kwargs: Any) -> None:
    """Periodically re-check QuantumKEMKeyPair resources."""
    run_handler(_kem_handler, name, namespace, resync=True)


@kopf.on.create(API_GROUP_VERSION, KIND_SIGNATURE_KEY_PAIR)
@kopf.on.update(API_GROUP_VERSION, KIND_SIGNATURE_KEY_PAIR)
@kopf.on.resume(API_GROUP_VERSION, KIND_SIGNATURE_KEY_PAIR)
def handle_signature_key_pair(name: str, namespace: str, **kwargs: Any) -> None:
    """Handle QuantumSignatureKeyPair resource reconciliation."""
    run_handler(_signature_handler, name, namespace)


@kopf.timer(API_GROUP_VERSION, KIND_SIGNATURE_KEY_PAIR, interval=RESYNC_INTERVAL_SECONDS, idle=RESYNC_INTERVAL_SECONDS)
def resync_signature_key_pair(name: str, namespace: str, **kwargs: Any) -> None:
    """Periodically re-check QuantumSignatureKeyPair resources."""
    run_handler(_signature_handler, name, namespace, resync=True)
