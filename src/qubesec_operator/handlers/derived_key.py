"""Handler for QuantumDerivedKey CRD."""

from __future__ import annotations

from typing import Any

import kopf

from ..builders.validation import build_derived_key_request
from ..constants import (
    API_GROUP_VERSION,
    KEY_DERIVED_KEY,
    KEY_FINGERPRINT,
    KEY_KEY_TYPE,
    KIND_DERIVED_KEY,
    RESYNC_INTERVAL_SECONDS,
)
from ..tracing import trace_span
from ..utils.context import ReconcileContext
from ..utils.events import emit_key_derived
from ..utils.secrets import create_owned_secret, require_keys
from ..utils.status import fingerprint, fingerprint_hash, full_fingerprint, success_status
from .base import BaseHandler, ReconcileOutcome
from .resolver import resolve_shared_secret
from .shared import run_handler


class DerivedKeyHandler(BaseHandler):
    """Handler for QuantumDerivedKey resources."""

    def __init__(self, **kwargs: Any):
        """Initialize derived key handler."""
        super().__init__(KIND_DERIVED_KEY, **kwargs)

    def run_pipeline(self, body: dict[str, Any], ctx: ReconcileContext) -> ReconcileOutcome:
        """Derive a symmetric key from the referenced shared secret.

        The referenced encapsulation or decapsulation must reach Success
        first; until then the resource stays Pending. A key derived with a
        salt or info cannot be reproduced later, so once stored it is only
        ever read back.
        """
        meta = body.get("metadata", {})
        namespace = meta.get("namespace")
        status = body.get("status") or {}
        request = build_derived_key_request(body.get("spec") or {}, meta.get("name"))

        secret = self.read_output_secret(body, request.secret_name, "derivedKeyReference")
        created = secret is None
        if created:
            shared_secret = resolve_shared_secret(self.store, request.shared_secret_ref, namespace)

            ctx.check_cancelled("key derivation")
            with trace_span("derive_key", kind=self.kind, attributes={"derived_key.type": request.key_type}):
                derived_key = self.provider.derive_key(shared_secret, request.salt, request.info)

            ctx.check_cancelled("secret creation")
            secret = create_owned_secret(
                self.store,
                namespace,
                request.secret_name,
                {
                    KEY_DERIVED_KEY: derived_key,
                    KEY_FINGERPRINT: full_fingerprint(derived_key).encode("ascii"),
                    KEY_KEY_TYPE: request.key_type.encode("utf-8"),
                },
                self.owner_reference(body),
            )

        data = require_keys(secret, (KEY_DERIVED_KEY, KEY_FINGERPRINT, KEY_KEY_TYPE))
        derived_key = data[KEY_DERIVED_KEY]
        key_fingerprint = full_fingerprint(derived_key)

        # Salt and info are not stored with the key; keep the values it was derived with.
        used_salt = request.salt_hex if created else status.get("usedSalt", request.salt_hex)
        used_info = request.info_hex if created else status.get("usedInfo", request.info_hex)

        outcome = self.finish(
            body,
            success_status(
                self.generation(body),
                derivedKeyReference=self.secret_reference(body, request.secret_name),
                keyFingerprint=key_fingerprint,
                fingerprint=fingerprint(derived_key),
                fingerprintHash=fingerprint_hash(derived_key),
                keyType=data[KEY_KEY_TYPE].decode("utf-8", errors="replace"),
                usedSalt=used_salt,
                usedInfo=used_info,
            ),
        )

        if created:
            self.log_info(
                meta,
                f"Derived {request.key_type} key",
                event="created",
                reason="KeyDerived",
                secret=request.secret_name,
            )
            emit_key_derived(body, request.secret_name, request.key_type)
        return outcome


# Global handler instance
_handler = DerivedKeyHandler()


@kopf.on.create(API_GROUP_VERSION, KIND_DERIVED_KEY)
@kopf.on.update(API_GROUP_VERSION, KIND_DERIVED_KEY)
@kopf.on.resume(API_GROUP_VERSION, KIND_DERIVED_KEY)
def handle_derived_key(name: str, namespace: str, **kwargs: Any) -> None:
    """Handle QuantumDerivedKey resource reconciliation."""
    run_handler(_handler, name, namespace)


@kopf.timer(API_GROUP_VERSION, KIND_DERIVED_KEY, interval=RESYNC_INTERVAL_SECONDS, idle=RESYNC_INTERVAL_SECONDS)
def resync_derived_key(name: str, namespace: str, **kwargs: Any) -> None:
    """Periodically re-check QuantumDerivedKey resources."""
    run_handler(_handler, name, namespace, resync=True)
