# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Verifier - compares device output with the host reference a + b.

Equality is exact. The device kernel performs the same single float32
addition as the host, so no rounding divergence is possible; a kernel with
different rounding behavior would need a tolerance instead.
"""

from dataclasses import dataclass

import numpy as np

from .errors import ResultMismatchError


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of a successful verification."""

    n: int
    passed: bool = True


def verify(a: np.ndarray, b: np.ndarray, actual: np.ndarray) -> VerificationResult:
    """
    Check ``actual[i] == a[i] + b[i]`` for every index.

    Raises:
        ResultMismatchError: At the first differing index. Fail-fast: later
            mismatches are not collected.
        ValueError: If the arrays differ in length.
    """
    if not (len(a) == len(b) == len(actual)):
        raise ValueError(
            f"length mismatch: a={len(a)}, b={len(b)}, actual={len(actual)}"
        )

    expected = np.add(a, b, dtype=np.float32)
    # NaN != NaN, so a NaN result is reported as a mismatch
    mismatches = np.flatnonzero(np.asarray(actual, dtype=np.float32) != expected)
    if mismatches.size:
        index = int(mismatches[0])
        raise ResultMismatchError(
            index=index,
            expected=float(expected[index]),
            actual=float(actual[index]),
        )
    return VerificationResult(n=len(actual))
