"""Entropy estimate for generated random numbers."""

from __future__ import annotations

import math


def shannon_entropy(data: bytes) -> float:
    """Shannon entropy, in bits per symbol, of the bit string of ``data``.

    Returns 0.0 for empty input or when every bit has the same value.
    """
    total = len(data) * 8
    if total == 0:
        return 0.0

    ones = sum(bin(byte).count("1") for byte in data)
    entropy = 0.0
    for count in (ones, total - ones):
        if count:
            p = count / total
            entropy -= p * math.log2(p)
    return entropy


def format_entropy(value: float) -> str:
    """Format an entropy value the way it is reported in status."""
    return "%.12f" % value
