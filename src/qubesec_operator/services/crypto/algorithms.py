"""Registry of supported post-quantum algorithms."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from dilithium_py.dilithium import Dilithium2, Dilithium3, Dilithium5
from dilithium_py.ml_dsa import ML_DSA_44, ML_DSA_65, ML_DSA_87
from kyber_py.kyber import Kyber512, Kyber768, Kyber1024
from kyber_py.ml_kem import ML_KEM_512, ML_KEM_768, ML_KEM_1024

from ...utils.errors import ProviderError
from .base import FAMILY_KEM, FAMILY_SIGNATURE


@dataclass(frozen=True)
class Algorithm:
    """A supported algorithm and the scheme object that implements it."""

    name: str
    family: str
    scheme: Any


_ALGORITHMS = {
    algorithm.name: algorithm
    for algorithm in (
        Algorithm("Kyber512", FAMILY_KEM, Kyber512),
        Algorithm("Kyber768", FAMILY_KEM, Kyber768),
        Algorithm("Kyber1024", FAMILY_KEM, Kyber1024),
        Algorithm("ML-KEM-512", FAMILY_KEM, ML_KEM_512),
        Algorithm("ML-KEM-768", FAMILY_KEM, ML_KEM_768),
        Algorithm("ML-KEM-1024", FAMILY_KEM, ML_KEM_1024),
        Algorithm("Dilithium2", FAMILY_SIGNATURE, Dilithium2),
        Algorithm("Dilithium3", FAMILY_SIGNATURE, Dilithium3),
        Algorithm("Dilithium5", FAMILY_SIGNATURE, Dilithium5),
        Algorithm("ML-DSA-44", FAMILY_SIGNATURE, ML_DSA_44),
        Algorithm("ML-DSA-65", FAMILY_SIGNATURE, ML_DSA_65),
        Algorithm("ML-DSA-87", FAMILY_SIGNATURE, ML_DSA_87),
    )
}

# Alternate spellings accepted in specs
ALIASES = {
    "CRYSTALS-Dilithium2": "Dilithium2",
    "CRYSTALS-Dilithium3": "Dilithium3",
    "CRYSTALS-Dilithium5": "Dilithium5",
    "CRYSTALS-Kyber512": "Kyber512",
    "CRYSTALS-Kyber768": "Kyber768",
    "CRYSTALS-Kyber1024": "Kyber1024",
}


def canonical_name(name: str) -> str:
    """Return the canonical spelling of an algorithm name."""
    return ALIASES.get(name, name)


def supported_algorithms(family: str | None = None) -> list[str]:
    """List canonical algorithm names, optionally restricted to one family."""
    return sorted(
        algorithm.name
        for algorithm in _ALGORITHMS.values()
        if family is None or algorithm.family == family
    )


def get_algorithm(name: str, family: str) -> Algorithm:
    """Look up an algorithm of the given family.

    Args:
        name: Algorithm name as written in the resource spec
        family: FAMILY_KEM or FAMILY_SIGNATURE

    Returns:
        The registered algorithm

    Raises:
        ProviderError: If the algorithm is unknown or belongs to another family
    """
    algorithm = _ALGORITHMS.get(canonical_name(name))
    if algorithm is None or algorithm.family != family:
        raise ProviderError(
            "algorithm lookup",
            f"unsupported {family} algorithm '{name}' "
            f"(supported: {', '.join(supported_algorithms(family))})",
        )
    return algorithm
