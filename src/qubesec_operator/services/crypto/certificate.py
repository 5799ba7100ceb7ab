"""Self-signed certificates issued by the openssl command line tool.

Post-quantum key types are only available to openssl through a provider
such as oqs-provider, so certificates are produced by ``openssl req`` rather
than in-process. The key algorithm is passed through unchanged, which lets
classical names like ``rsa:2048`` or ``ed25519`` work as well.
"""

from __future__ import annotations

import logging
import subprocess
import tempfile
from pathlib import Path

from ...constants import CERTIFICATE_TIMEOUT_SECONDS, KEY_TLS_CERT, KEY_TLS_KEY, OPENSSL_BINARY
from ...utils.errors import ProviderError
from .base import Certificate

logger = logging.getLogger(__name__)


def openssl_command(algorithm: str, domain: str, days: int, key_path: Path, cert_path: Path) -> list[str]:
    return [
        OPENSSL_BINARY,
        "req",
        "-x509",
        "-new",
        "-newkey",
        algorithm,
        "-keyout",
        str(key_path),
        "-out",
        str(cert_path),
        "-nodes",
        "-days",
        str(days),
        "-subj",
        f"/CN={domain}",
    ]


def _stderr_summary(stderr: bytes | str | None) -> str:
    if isinstance(stderr, bytes):
        stderr = stderr.decode("utf-8", errors="replace")
    lines = [line.strip() for line in (stderr or "").splitlines() if line.strip()]
    return lines[-1] if lines else "no error output"


def issue_certificate(
    algorithm: str,
    domain: str,
    days: int,
    timeout: float = CERTIFICATE_TIMEOUT_SECONDS,
) -> Certificate:
    """Run ``openssl req -x509`` in a scratch directory and read back the PEM files.

    Args:
        algorithm: Value for ``-newkey``
        domain: Subject common name
        days: Validity period
        timeout: Seconds openssl may run

    Returns:
        The certificate and its private key, both PEM encoded

    Raises:
        ProviderError: If openssl is missing, fails, times out or writes nothing
    """
    with tempfile.TemporaryDirectory(prefix="qubesec-cert-") as workdir:
        key_path = Path(workdir) / KEY_TLS_KEY
        cert_path = Path(workdir) / KEY_TLS_CERT
        command = openssl_command(algorithm, domain, days, key_path, cert_path)

        try:
            subprocess.run(command, check=True, capture_output=True, timeout=timeout)
        except FileNotFoundError as e:
            raise ProviderError("certificate", f"{OPENSSL_BINARY} executable not found") from e
        except subprocess.TimeoutExpired as e:
            raise ProviderError("certificate", f"openssl did not finish within {timeout:g} seconds") from e
        except subprocess.CalledProcessError as e:
            logger.debug(f"openssl exited with {e.returncode} for algorithm {algorithm}")
            raise ProviderError(
                "certificate", f"openssl exited with status {e.returncode}: {_stderr_summary(e.stderr)}"
            ) from e

        try:
            certificate = cert_path.read_bytes()
            private_key = key_path.read_bytes()
        except OSError as e:
            raise ProviderError("certificate", f"openssl did not write {Path(e.filename or '').name}") from e

    if not certificate or not private_key:
        raise ProviderError("certificate", "openssl produced an empty certificate or key")
    return Certificate(certificate=certificate, private_key=private_key)
