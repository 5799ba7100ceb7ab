"""Cryptographic provider layer."""

from .base import FAMILY_KEM, FAMILY_SIGNATURE, Certificate, CryptoProvider, Encapsulation, KeyPair
from .provider import PQCProvider

__all__ = [
    "Certificate",
    "FAMILY_KEM",
    "FAMILY_SIGNATURE",
    "CryptoProvider",
    "Encapsulation",
    "KeyPair",
    "PQCProvider",
]
