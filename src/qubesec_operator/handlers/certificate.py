"""Handler for QuantumCertificate CRD."""

from __future__ import annotations

from typing import Any

import kopf

from ..builders.validation import build_certificate_request
from ..constants import (
    API_GROUP_VERSION,
    KEY_TLS_CERT,
    KEY_TLS_KEY,
    KIND_CERTIFICATE,
    RESYNC_INTERVAL_SECONDS,
)
from ..tracing import trace_span
from ..utils.context import ReconcileContext
from ..utils.events import emit_certificate_issued
from ..utils.secrets import create_owned_secret, require_keys
from ..utils.status import full_fingerprint, success_status
from .base import BaseHandler, ReconcileOutcome
from .shared import run_handler


class CertificateHandler(BaseHandler):
    """Handler for QuantumCertificate resources."""

    def __init__(self, **kwargs: Any):
        """Initialize certificate handler."""
        super().__init__(KIND_CERTIFICATE, **kwargs)

    def run_pipeline(self, body: dict[str, Any], ctx: ReconcileContext) -> ReconcileOutcome:
        """Issue a self-signed certificate once and store it as a TLS secret.

        Like key pairs, an issued certificate is never reissued because the
        spec changed; only a deleted secret causes a new one to be issued.
        """
        meta = body.get("metadata", {})
        request = build_certificate_request(body.get("spec") or {}, meta.get("name"))

        secret = self.read_output_secret(body, request.secret_name, "certificateReference")
        created = secret is None
        if created:
            ctx.check_cancelled("certificate issue")
            with trace_span("issue_certificate", kind=self.kind, attributes={"certificate.domain": request.domain}):
                issued = self.provider.issue_certificate(request.algorithm, request.domain, request.days)

            ctx.check_cancelled("secret creation")
            secret = create_owned_secret(
                self.store,
                meta.get("namespace"),
                request.secret_name,
                {KEY_TLS_CERT: issued.certificate, KEY_TLS_KEY: issued.private_key},
                self.owner_reference(body),
                secret_type="kubernetes.io/tls",
            )

        data = require_keys(secret, (KEY_TLS_CERT, KEY_TLS_KEY))
        outcome = self.finish(
            body,
            success_status(
                self.generation(body),
                certificateReference=self.secret_reference(body, request.secret_name),
                certificateFingerprint=full_fingerprint(data[KEY_TLS_CERT]),
            ),
        )

        if created:
            self.log_info(
                meta,
                f"Issued {request.algorithm} certificate for {request.domain}",
                event="created",
                reason="CertificateIssued",
                secret=request.secret_name,
                days=request.days,
            )
            emit_certificate_issued(body, request.secret_name, request.domain)
        return outcome


# Global handler instance
_handler = CertificateHandler()


@kopf.on.create(API_GROUP_VERSION, KIND_CERTIFICATE)
@kopf.on.update(API_GROUP_VERSION, KIND_CERTIFICATE)
@kopf.on.resume(API_GROUP_VERSION, KIND_CERTIFICATE)
def handle_certificate(name: str, namespace: str, **kwargs: Any) -> None:
    """Handle QuantumCertificate resource reconciliation."""
    run_handler(_handler, name, namespace)


@kopf.timer(API_GROUP_VERSION, KIND_CERTIFICATE, interval=RESYNC_INTERVAL_SECONDS, idle=RESYNC_INTERVAL_SECONDS)
def resync_certificate(name: str, namespace: str, **kwargs: Any) -> None:
    """Periodically re-check QuantumCertificate resources."""
    run_handler(_handler, name, namespace, resync=True)
