# -*- coding: utf-8 -*-
"""
Inkwell: Spectral colour science for print substrates
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Delta-E Suite
=============
CIE76, CIE94, CIEDE2000 and CMC l:c colour differences.

Two layers share the same compiled kernels:

- ``ColorMetrics``: batched (N, 3) arrays with 1-vs-N broadcasting.
- ``delta_e`` and friends: two Lab values in, one float out, dispatched by
  the method names stored in organisation settings (``dE76``, ``dE94``,
  ``dE00``, ``dECMC2:1`` ...).

Notes:
    - CIE94 and CMC weight by the chroma of the *reference* (first) colour,
      so they are only symmetric when both chromas are equal.
    - CIEDE2000 uses the shorter hue path and the 180 degree wraparound
      rule when averaging hues.
    - Non-finite input propagates to a NaN result; ``safe_delta_e`` maps
      that to None so callers can report "unknown".

References:
    - CIE Publication 116-1995 (CIE 1994 colour difference).
    - Sharma, G., Wu, W., & Dalal, E. N. (2005). "The CIEDE2000 color-difference formula".
    - Clarke, McDonald, Rigg (1984). "CMC l:c colour difference formula".
"""

from __future__ import annotations

import logging
import math
from typing import Any, Callable, Dict, Final, Mapping, Optional, Sequence, Tuple

import numpy as np
from numba import float64, njit, prange

from inkwell_colorengine import ArrayFloat, LabColor

__all__ = [
    "ColorMetrics",
    "DEFAULT_METHOD",
    "canonical_method",
    "delta_e",
    "delta_e_76",
    "delta_e_94",
    "delta_e_2000",
    "delta_e_cmc",
    "safe_delta_e",
]

logger = logging.getLogger(__name__)

C25_7: Final[float] = 25.0 ** 7
DEG2RAD: Final[float] = math.pi / 180.0
RAD2DEG: Final[float] = 180.0 / math.pi

DEFAULT_METHOD: Final[str] = "dE00"


# =============================================================================
# 1. SCALAR KERNELS
# =============================================================================

_SIG_6 = float64(float64, float64, float64, float64, float64, float64)


@njit(_SIG_6, cache=True, fastmath=False)
def _de76_single(L1: float, a1: float, b1: float, L2: float, a2: float, b2: float) -> float:
    dL = L2 - L1
    da = a2 - a1
    db = b2 - b1
    return np.sqrt(dL * dL + da * da + db * db)


@njit(float64(float64, float64, float64, float64, float64, float64, float64, float64, float64),
      cache=True, fastmath=False)
def _de94_single(L1: float, a1: float, b1: float, L2: float, a2: float, b2: float,
                 k_L: float, K1: float, K2: float) -> float:
    C1 = np.sqrt(a1 * a1 + b1 * b1)
    C2 = np.sqrt(a2 * a2 + b2 * b2)
    dL = L2 - L1
    dC = C2 - C1
    da = a2 - a1
    db = b2 - b1
    # dH^2 can dip below zero from rounding
    dH_sq = da * da + db * db - dC * dC
    if dH_sq < 0.0:
        dH_sq = 0.0
    SC = 1.0 + K1 * C1
    SH = 1.0 + K2 * C1
    tL = dL / k_L
    tC = dC / SC
    return np.sqrt(tL * tL + tC * tC + dH_sq / (SH * SH))


@njit(float64(float64, float64, float64, float64, float64, float64, float64, float64, float64),
      cache=True, fastmath=False)
def _de2000_single(L1: float, a1: float, b1: float, L2: float, a2: float, b2: float,
                   k_L: float, k_C: float, k_H: float) -> float:
    C1 = np.sqrt(a1 * a1 + b1 * b1)
    C2 = np.sqrt(a2 * a2 + b2 * b2)
    C_bar7 = ((C1 + C2) * 0.5) ** 7
    G = 0.5 * (1.0 - np.sqrt(C_bar7 / (C_bar7 + C25_7)))
    a1p = (1.0 + G) * a1
    a2p = (1.0 + G) * a2
    C1p = np.sqrt(a1p * a1p + b1 * b1)
    C2p = np.sqrt(a2p * a2p + b2 * b2)

    h1p = 0.0
    if C1p > 0.0:
        h1p = np.arctan2(b1, a1p) * RAD2DEG
        if h1p < 0.0:
            h1p += 360.0
    h2p = 0.0
    if C2p > 0.0:
        h2p = np.arctan2(b2, a2p) * RAD2DEG
        if h2p < 0.0:
            h2p += 360.0

    dLp = L2 - L1
    dCp = C2p - C1p

    chroma_product = C1p * C2p
    dhp = 0.0
    h_bar = h1p + h2p
    if chroma_product > 0.0:
        diff = h2p - h1p
        if diff > 180.0:
            dhp = diff - 360.0
        elif diff < -180.0:
            dhp = diff + 360.0
        else:
            dhp = diff
        if abs(h1p - h2p) <= 180.0:
            h_bar = h_bar * 0.5
        elif h_bar < 360.0:
            h_bar = (h_bar + 360.0) * 0.5
        else:
            h_bar = (h_bar - 360.0) * 0.5
    dHp = 2.0 * np.sqrt(chroma_product) * np.sin(dhp * DEG2RAD * 0.5)

    L_bar = (L1 + L2) * 0.5
    C_bar_p = (C1p + C2p) * 0.5
    T = (1.0
         - 0.17 * np.cos((h_bar - 30.0) * DEG2RAD)
         + 0.24 * np.cos(2.0 * h_bar * DEG2RAD)
         + 0.32 * np.cos((3.0 * h_bar + 6.0) * DEG2RAD)
         - 0.20 * np.cos((4.0 * h_bar - 63.0) * DEG2RAD))
    d_theta = 30.0 * np.exp(-((h_bar - 275.0) / 25.0) ** 2)
    C_bar_p7 = C_bar_p ** 7
    R_C = 2.0 * np.sqrt(C_bar_p7 / (C_bar_p7 + C25_7))
    R_T = -np.sin(2.0 * d_theta * DEG2RAD) * R_C
    L_term = (L_bar - 50.0) ** 2
    S_L = 1.0 + 0.015 * L_term / np.sqrt(20.0 + L_term)
    S_C = 1.0 + 0.045 * C_bar_p
    S_H = 1.0 + 0.015 * C_bar_p * T

    tL = dLp / (k_L * S_L)
    tC = dCp / (k_C * S_C)
    tH = dHp / (k_H * S_H)
    return np.sqrt(tL * tL + tC * tC + tH * tH + R_T * tC * tH)


@njit(float64(float64, float64, float64, float64, float64, float64, float64, float64),
      cache=True, fastmath=False)
def _decmc_single(L1: float, a1: float, b1: float, L2: float, a2: float, b2: float,
                  l: float, c: float) -> float:
    C1 = np.sqrt(a1 * a1 + b1 * b1)
    C2 = np.sqrt(a2 * a2 + b2 * b2)
    dL = L2 - L1
    dC = C2 - C1
    da = a2 - a1
    db = b2 - b1
    dH_sq = da * da + db * db - dC * dC
    if dH_sq < 0.0:
        dH_sq = 0.0

    h1 = np.arctan2(b1, a1) * RAD2DEG
    if h1 < 0.0:
        h1 += 360.0
    if 164.0 <= h1 <= 345.0:
        T = 0.56 + abs(0.2 * np.cos((h1 + 168.0) * DEG2RAD))
    else:
        T = 0.36 + abs(0.4 * np.cos((h1 + 35.0) * DEG2RAD))

    if L1 < 16.0:
        S_L = 0.511
    else:
        S_L = 0.040975 * L1 / (1.0 + 0.01765 * L1)
    S_C = 0.0638 * C1 / (1.0 + 0.0131 * C1) + 0.638
    C1_4 = C1 ** 4
    F = np.sqrt(C1_4 / (C1_4 + 1900.0))
    S_H = S_C * (F * T + 1.0 - F)

    tL = dL / (l * S_L)
    tC = dC / (c * S_C)
    return np.sqrt(tL * tL + tC * tC + dH_sq / (S_H * S_H))


# =============================================================================
# 2. BATCH KERNELS
# =============================================================================

@njit(cache=True, fastmath=False, parallel=True)
def _batch_de76(lab1: ArrayFloat, lab2: ArrayFloat) -> ArrayFloat:
    n = lab1.shape[0]
    res = np.empty(n, dtype=np.float64)
    for i in prange(n):
        res[i] = _de76_single(lab1[i, 0], lab1[i, 1], lab1[i, 2],
                              lab2[i, 0], lab2[i, 1], lab2[i, 2])
    return res


@njit(cache=True, fastmath=False, parallel=True)
def _batch_de94(lab1: ArrayFloat, lab2: ArrayFloat, k_L: float, K1: float, K2: float) -> ArrayFloat:
    n = lab1.shape[0]
    res = np.empty(n, dtype=np.float64)
    for i in prange(n):
        res[i] = _de94_single(lab1[i, 0], lab1[i, 1], lab1[i, 2],
                              lab2[i, 0], lab2[i, 1], lab2[i, 2], k_L, K1, K2)
    return res


@njit(cache=True, fastmath=False, parallel=True)
def _batch_de2000(lab1: ArrayFloat, lab2: ArrayFloat, k_L: float, k_C: float, k_H: float) -> ArrayFloat:
    n = lab1.shape[0]
    res = np.empty(n, dtype=np.float64)
    for i in prange(n):
        res[i] = _de2000_single(lab1[i, 0], lab1[i, 1], lab1[i, 2],
                                lab2[i, 0], lab2[i, 1], lab2[i, 2], k_L, k_C, k_H)
    return res


@njit(cache=True, fastmath=False, parallel=True)
def _batch_decmc(lab1: ArrayFloat, lab2: ArrayFloat, l: float, c: float) -> ArrayFloat:
    n = lab1.shape[0]
    res = np.empty(n, dtype=np.float64)
    for i in prange(n):
        res[i] = _decmc_single(lab1[i, 0], lab1[i, 1], lab1[i, 2],
                               lab2[i, 0], lab2[i, 1], lab2[i, 2], l, c)
    return res


class ColorMetrics:
    """Batched colour differences.  ``lab1`` is the reference, ``lab2`` the sample."""

    @staticmethod
    def _prepare_inputs(lab1: ArrayFloat, lab2: ArrayFloat) -> Tuple[ArrayFloat, ArrayFloat]:
        """
        Promote to contiguous (N, 3) float64 and broadcast a single row
        against N rows.
        """
        l1 = np.ascontiguousarray(np.atleast_2d(np.asarray(lab1, dtype=np.float64)))
        l2 = np.ascontiguousarray(np.atleast_2d(np.asarray(lab2, dtype=np.float64)))
        if l1.shape[-1] != 3 or l2.shape[-1] != 3:
            raise ValueError(f"Inputs must have shape (N, 3), got {l1.shape} and {l2.shape}")
        if l1.shape[0] != l2.shape[0]:
            if l1.shape[0] == 1:
                l1 = np.ascontiguousarray(np.broadcast_to(l1, l2.shape))
            elif l2.shape[0] == 1:
                l2 = np.ascontiguousarray(np.broadcast_to(l2, l1.shape))
            else:
                raise ValueError(f"Shapes {l1.shape} and {l2.shape} are not broadcastable.")
        return l1, l2

    @staticmethod
    def _finish(res: ArrayFloat, lab1: Any, lab2: Any) -> ArrayFloat:
        if np.ndim(lab1) == 1 and np.ndim(lab2) == 1:
            return res[0]
        return res

    @staticmethod
    def delta_E_76(lab1: ArrayFloat, lab2: ArrayFloat) -> ArrayFloat:
        """Euclidean distance in Lab."""
        l1, l2 = ColorMetrics._prepare_inputs(lab1, lab2)
        return ColorMetrics._finish(_batch_de76(l1, l2), lab1, lab2)

    @staticmethod
    def delta_E_94(lab1: ArrayFloat, lab2: ArrayFloat,
                   k_L: float = 1.0, K1: float = 0.045, K2: float = 0.015) -> ArrayFloat:
        """
        CIE 1994, graphic-arts weights by default.

        Args:
            lab1: Reference colours, (N, 3) or (3,).
            lab2: Sample colours, (N, 3) or (3,).
            k_L: Lightness factor.
            K1: Chroma weight (S_C = 1 + K1 * C1).
            K2: Hue weight (S_H = 1 + K2 * C1).
        """
        l1, l2 = ColorMetrics._prepare_inputs(lab1, lab2)
        return ColorMetrics._finish(_batch_de94(l1, l2, k_L, K1, K2), lab1, lab2)

    @staticmethod
    def delta_E_2000(lab1: ArrayFloat, lab2: ArrayFloat,
                     k_L: float = 1.0, k_C: float = 1.0, k_H: float = 1.0) -> ArrayFloat:
        """CIEDE2000 with parametric weights."""
        l1, l2 = ColorMetrics._prepare_inputs(lab1, lab2)
        return ColorMetrics._finish(_batch_de2000(l1, l2, k_L, k_C, k_H), lab1, lab2)

    @staticmethod
    def delta_E_CMC(lab1: ArrayFloat, lab2: ArrayFloat, l: float = 2.0, c: float = 1.0) -> ArrayFloat:
        """
        CMC l:c (1984).  2:1 is the acceptability setting, 1:1 the
        perceptibility one.
        """
        l1, l2 = ColorMetrics._prepare_inputs(lab1, lab2)
        return ColorMetrics._finish(_batch_decmc(l1, l2, l, c), lab1, lab2)


# =============================================================================
# 3. SCALAR API & DISPATCH
# =============================================================================

LabLike = Any  # LabColor, {L, a, b} mapping or 3-sequence


def _coerce(lab: LabLike) -> Tuple[float, float, float]:
    if isinstance(lab, LabColor):
        return lab.L, lab.a, lab.b
    if isinstance(lab, Mapping):
        try:
            return (float(lab.get("L", lab.get("l"))),
                    float(lab.get("a", lab.get("A"))),
                    float(lab.get("b", lab.get("B"))))
        except (TypeError, ValueError):
            return math.nan, math.nan, math.nan
    if isinstance(lab, (Sequence, np.ndarray)) and len(lab) == 3:
        try:
            return float(lab[0]), float(lab[1]), float(lab[2])
        except (TypeError, ValueError):
            return math.nan, math.nan, math.nan
    return math.nan, math.nan, math.nan


def delta_e_76(lab1: LabLike, lab2: LabLike) -> float:
    return float(_de76_single(*_coerce(lab1), *_coerce(lab2)))


def delta_e_94(lab1: LabLike, lab2: LabLike) -> float:
    """CIE94 with S_C and S_H taken from the reference (first) colour."""
    return float(_de94_single(*_coerce(lab1), *_coerce(lab2), 1.0, 0.045, 0.015))


def delta_e_2000(lab1: LabLike, lab2: LabLike) -> float:
    return float(_de2000_single(*_coerce(lab1), *_coerce(lab2), 1.0, 1.0, 1.0))


def delta_e_cmc(lab1: LabLike, lab2: LabLike, l: float = 2.0, c: float = 1.0) -> float:
    return float(_decmc_single(*_coerce(lab1), *_coerce(lab2), l, c))


_METHODS: Final[Dict[str, Callable[[LabLike, LabLike], float]]] = {
    "dE76": delta_e_76,
    "dE94": delta_e_94,
    "dE00": delta_e_2000,
    "dECMC2:1": delta_e_cmc,
    "dECMC1:1": lambda x, y: delta_e_cmc(x, y, 1.0, 1.0),
}

_ALIASES: Final[Dict[str, str]] = {
    "de76": "dE76", "cie76": "dE76",
    "de94": "dE94", "cie94": "dE94",
    "de00": "dE00", "de2000": "dE00", "cie2000": "dE00", "ciede2000": "dE00",
    "decmc2:1": "dECMC2:1", "cmc": "dECMC2:1", "cmc2:1": "dECMC2:1", "decmc": "dECMC2:1",
    "decmc1:1": "dECMC1:1", "cmc1:1": "dECMC1:1",
}


def canonical_method(name: Optional[str]) -> str:
    """
    Map a stored method name to its canonical key.  Unknown or empty names
    resolve to CIEDE2000.
    """
    key = str(name or "").strip().lower().replace(" ", "")
    canonical = _ALIASES.get(key)
    if canonical is None:
        if key:
            logger.debug("Unknown Delta-E method %r, using %s", name, DEFAULT_METHOD)
        return DEFAULT_METHOD
    return canonical


def delta_e(lab1: LabLike, lab2: LabLike, method: Optional[str] = DEFAULT_METHOD) -> float:
    """
    Colour difference by method name.

    Returns NaN when either input is missing or non-finite; see
    ``safe_delta_e`` for the None-returning variant.
    """
    return _METHODS[canonical_method(method)](lab1, lab2)


def safe_delta_e(lab1: LabLike, lab2: LabLike, method: Optional[str] = DEFAULT_METHOD) -> Optional[float]:
    """``delta_e`` with non-finite results reported as None ("unknown")."""
    value = delta_e(lab1, lab2, method)
    if not math.isfinite(value):
        logger.debug("Non-finite Delta-E (%s) for %r vs %r", method, lab1, lab2)
        return None
    return value
