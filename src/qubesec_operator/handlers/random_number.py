"""Handler for QuantumRandomNumber CRD."""

from __future__ import annotations

from typing import Any

import kopf

from ..builders.validation import build_random_number_request, resolve_seed
from ..constants import (
    API_GROUP_VERSION,
    KEY_RANDOM_NUMBER,
    KIND_RANDOM_NUMBER,
    RESYNC_INTERVAL_SECONDS,
)
from ..services.crypto.entropy import format_entropy, shannon_entropy
from ..tracing import trace_span
from ..utils.context import ReconcileContext
from ..utils.events import emit_random_number_generated
from ..utils.secrets import create_owned_secret, require_keys
from ..utils.status import fingerprint, success_status
from .base import BaseHandler, ReconcileOutcome
from .shared import run_handler


class RandomNumberHandler(BaseHandler):
    """Handler for QuantumRandomNumber resources."""

    def __init__(self, **kwargs: Any):
        """Initialize random number handler."""
        super().__init__(KIND_RANDOM_NUMBER, **kwargs)

    def run_pipeline(self, body: dict[str, Any], ctx: ReconcileContext) -> ReconcileOutcome:
        """Generate the random bytes once and report their entropy."""
        meta = body.get("metadata", {})
        status = body.get("status") or {}
        request = build_random_number_request(body.get("spec") or {}, meta.get("name"))

        secret = self.read_output_secret(body, request.secret_name, "randomNumberReference")
        created = secret is None
        if created:
            # The seed is validated only; the generator draws from the OS CSPRNG.
            ctx.check_cancelled("seed validation")
            resolve_seed(request, timeout=ctx.remaining())

            ctx.check_cancelled("random number generation")
            with trace_span("random_bytes", kind=self.kind, attributes={"random.algorithm": request.algorithm}):
                random_number = self.provider.random_bytes(request.algorithm, request.num_bytes)

            ctx.check_cancelled("secret creation")
            secret = create_owned_secret(
                self.store,
                meta.get("namespace"),
                request.secret_name,
                {KEY_RANDOM_NUMBER: random_number},
                self.owner_reference(body),
            )

        data = require_keys(secret, (KEY_RANDOM_NUMBER,))
        stored = data[KEY_RANDOM_NUMBER]
        outcome = self.finish(
            body,
            success_status(
                self.generation(body),
                randomNumberReference=self.secret_reference(body, request.secret_name),
                bytes=len(stored),
                algorithm=request.algorithm if created else status.get("algorithm", request.algorithm),
                entropy=format_entropy(shannon_entropy(stored)),
                fingerprint=fingerprint(stored),
            ),
        )

        if created:
            self.log_info(
                meta,
                f"Generated {request.num_bytes} random bytes",
                event="created",
                reason="RandomNumberGenerated",
                secret=request.secret_name,
            )
            emit_random_number_generated(body, request.secret_name, request.num_bytes)
        return outcome


# Global handler instance
_handler = RandomNumberHandler()


@kopf.on.create(API_GROUP_VERSION, KIND_RANDOM_NUMBER)
@kopf.on.update(API_GROUP_VERSION, KIND_RANDOM_NUMBER)
@kopf.on.resume(API_GROUP_VERSION, KIND_RANDOM_NUMBER)
def handle_random_number(name: str, namespace: str, **kwargs: Any) -> None:
    """Handle QuantumRandomNumber resource reconciliation."""
    run_handler(_handler, name, namespace)


@kopf.timer(API_GROUP_VERSION, KIND_RANDOM_NUMBER, interval=RESYNC_INTERVAL_SECONDS, idle=RESYNC_INTERVAL_SECONDS)
def resync_random_number(name: str, namespace: str, **kwargs: Any) -> None:
    """Periodically re-check QuantumRandomNumber resources."""
    run_handler(_handler, name, namespace, resync=True)
