"""Algorithm-tagged PEM-style envelopes for key material."""

from __future__ import annotations

import base64
import binascii
import re

from ...utils.errors import KeyEnvelopeError
from .algorithms import canonical_name

PUBLIC_KEY = "PUBLIC KEY"
SECRET_KEY = "SECRET KEY"

_LINE_LENGTH = 64
_ENVELOPE_RE = re.compile(
    r"^-----BEGIN (?P<label>[^\n]+?)-----\r?\n"
    r"(?P<body>[A-Za-z0-9+/=\r\n]*?)"
    r"-----END (?P=label)-----\s*$"
)


def encode_key(algorithm: str, key_kind: str, key: bytes) -> bytes:
    """Wrap raw key bytes in an envelope labelled with algorithm and key kind.

    Args:
        algorithm: Algorithm name, e.g. "Kyber768"
        key_kind: PUBLIC_KEY or SECRET_KEY
        key: Raw key bytes

    Returns:
        ASCII envelope bytes
    """
    label = f"{algorithm} {key_kind}"
    body = base64.b64encode(key).decode("ascii")
    lines = [body[i:i + _LINE_LENGTH] for i in range(0, len(body), _LINE_LENGTH)]
    text = f"-----BEGIN {label}-----\n" + "".join(f"{line}\n" for line in lines) + f"-----END {label}-----\n"
    return text.encode("ascii")


def decode_key(envelope: bytes, algorithm: str, key_kind: str) -> bytes:
    """Unwrap an envelope after checking it matches the expected algorithm and key kind.

    Args:
        envelope: Envelope bytes as stored in the key pair secret
        algorithm: Algorithm the caller is about to use
        key_kind: PUBLIC_KEY or SECRET_KEY

    Returns:
        Raw key bytes

    Raises:
        KeyEnvelopeError: If the envelope is malformed or tagged differently
    """
    try:
        text = envelope.decode("ascii")
    except UnicodeDecodeError as e:
        raise KeyEnvelopeError("key decode", "key is not an ASCII envelope") from e

    match = _ENVELOPE_RE.match(text)
    if match is None:
        raise KeyEnvelopeError("key decode", "key is not a valid envelope")

    label = match.group("label")
    if not label.endswith(f" {key_kind}"):
        raise KeyEnvelopeError(
            "key decode",
            f"expected a {key_kind.lower()} but found '{label}'",
        )

    key_algorithm = label[: -len(key_kind) - 1]
    if canonical_name(key_algorithm) != canonical_name(algorithm):
        raise KeyEnvelopeError(
            "key decode",
            f"key was generated for {key_algorithm} but the request uses {algorithm}",
        )

    try:
        return base64.b64decode("".join(match.group("body").split()), validate=True)
    except binascii.Error as e:
        raise KeyEnvelopeError("key decode", "envelope body is not valid base64") from e
