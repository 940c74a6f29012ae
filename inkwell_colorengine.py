# -*- coding: utf-8 -*-
"""
Inkwell: Spectral colour science for print substrates
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Color Engine
============
Lab / XYZ / sRGB transforms, Bradford chromatic adaptation and the scalar
Lab <-> hex helpers used for display colours.

The array API (``ColorSpaceEngine``, ``ChromaticAdaptation``) follows the
batch convention of the metrics module: inputs are (N, 3) or (3,) and the
output keeps the input rank.  The scalar helpers (``lab_to_hex``,
``hex_to_lab``, ``adapt_lab``) sit on top of it and never raise on bad
data; they return ``NEUTRAL_HEX`` or ``LabColor.NEUTRAL`` instead.

Conventions:
    - Named white points are relative (Y = 1).  Lab only depends on the
      ratio XYZ / white, so ``xyz_to_lab`` also accepts XYZ and a white
      point both on a weighting table's 0-100 scale, which is how the
      spectral converter calls it.
    - Lab -> sRGB deliberately applies the D65 sRGB matrix to XYZ computed
      under the requested white, without adaptation.  Use
      ``lab_to_hex_d65`` for a white-point-correct display colour.
    - Kernels are compiled with ``fastmath=False`` so that NaN / Inf
      survive and can be detected by callers.

References:
    - CIE 15:2004 "Colorimetry"
    - IEC 61966-2-1:1999 (sRGB Standard)
    - Lam, K. M. (1985). Bradford chromatic adaptation transform.
"""

from __future__ import annotations

import functools
import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Dict, Final, Mapping, Optional, Sequence, Tuple, TypeAlias, Union

import numpy as np
import numpy.typing as npt
from numba import njit

__all__ = [
    "ArrayFloat",
    "LabColor",
    "WHITE_POINTS",
    "REF_WHITE_D50",
    "REF_WHITE_D65",
    "LAB_EPSILON",
    "LAB_KAPPA",
    "NEUTRAL_HEX",
    "handle_shapes",
    "white_point",
    "ColorSpaceEngine",
    "ChromaticAdaptation",
    "lab_to_hex",
    "normalize_hex",
    "hex_to_lab",
    "adapt_lab",
    "lab_to_hex_d65",
    "lab_to_chroma_hue",
]

logger = logging.getLogger(__name__)

ArrayFloat: TypeAlias = npt.NDArray[np.floating]

# --- Constants ---

# Reference whites, 2 degree observer, Y = 1.
WHITE_POINTS: Final[Dict[str, ArrayFloat]] = {
    "A":   np.array([1.09850, 1.00000, 0.35585], dtype=np.float64),
    "C":   np.array([0.98074, 1.00000, 1.18232], dtype=np.float64),
    "D50": np.array([0.96422, 1.00000, 0.82521], dtype=np.float64),
    "D55": np.array([0.95682, 1.00000, 0.92149], dtype=np.float64),
    "D65": np.array([0.95047, 1.00000, 1.08883], dtype=np.float64),
    "D75": np.array([0.94972, 1.00000, 1.22638], dtype=np.float64),
    "E":   np.array([1.00000, 1.00000, 1.00000], dtype=np.float64),
    "F2":  np.array([0.99187, 1.00000, 0.67395], dtype=np.float64),
    "F7":  np.array([0.95044, 1.00000, 1.08755], dtype=np.float64),
    "F11": np.array([1.00966, 1.00000, 0.64370], dtype=np.float64),
}
REF_WHITE_D50: Final[ArrayFloat] = WHITE_POINTS["D50"]
REF_WHITE_D65: Final[ArrayFloat] = WHITE_POINTS["D65"]

# sRGB (IEC 61966-2-1), stored transposed for row-vector products.
_M_XYZ_TO_SRGB = np.array([
    [ 3.2404542, -1.5371385, -0.4985314],
    [-0.9692660,  1.8760108,  0.0415560],
    [ 0.0556434, -0.2040259,  1.0572252],
], dtype=np.float64)
_M_SRGB_TO_XYZ = np.array([
    [0.4124564, 0.3575761, 0.1804375],
    [0.2126729, 0.7151522, 0.0721750],
    [0.0193339, 0.1191920, 0.9503041],
], dtype=np.float64)
M_XYZ_TO_SRGB_T: Final[ArrayFloat] = _M_XYZ_TO_SRGB.T.copy()
M_SRGB_TO_XYZ_T: Final[ArrayFloat] = _M_SRGB_TO_XYZ.T.copy()

# Bradford cone-response matrix.
_M_BRADFORD = np.array([
    [ 0.8951000,  0.2664000, -0.1614000],
    [-0.7502000,  1.7135000,  0.0367000],
    [ 0.0389000, -0.0685000,  1.0296000],
], dtype=np.float64)
M_BRADFORD_T: Final[ArrayFloat] = _M_BRADFORD.T.copy()
M_BRADFORD_INV_T: Final[ArrayFloat] = np.linalg.inv(_M_BRADFORD).T.copy()

# CIE 1976 rational constants.
_LAB_DELTA: Final[float] = 6.0 / 29.0
LAB_EPSILON: Final[float] = 216.0 / 24389.0
LAB_KAPPA: Final[float] = 24389.0 / 27.0
RAD2DEG: Final[float] = 180.0 / math.pi

NEUTRAL_HEX: Final[str] = "#000000"
_HEX_PATTERN: Final[re.Pattern[str]] = re.compile(r"^#?([0-9A-Fa-f]{6})$")


# =============================================================================
# 1. LAB VALUE TYPE
# =============================================================================

@dataclass(slots=True, frozen=True)
class LabColor:
    """CIE Lab triple.  The white point it refers to is implicit."""
    L: float
    a: float
    b: float

    NEUTRAL: ClassVar["LabColor"]

    @property
    def is_finite(self) -> bool:
        return math.isfinite(self.L) and math.isfinite(self.a) and math.isfinite(self.b)

    @property
    def is_sentinel(self) -> bool:
        """True for the (0, 0, 0) value returned by failed conversions."""
        return self.L == 0.0 and self.a == 0.0 and self.b == 0.0

    def as_array(self) -> ArrayFloat:
        return np.array([self.L, self.a, self.b], dtype=np.float64)

    def to_dict(self) -> Dict[str, float]:
        return {"L": self.L, "a": self.a, "b": self.b}

    @classmethod
    def from_array(cls, arr: Union[ArrayFloat, Sequence[float]]) -> "LabColor":
        v = np.asarray(arr, dtype=np.float64).ravel()
        return cls(float(v[0]), float(v[1]), float(v[2]))

    @classmethod
    def from_mapping(cls, data: Any) -> Optional["LabColor"]:
        """
        Read ``{L|l, a|A, b|B}``.  Returns None unless all three components
        are finite numbers.
        """
        if not isinstance(data, Mapping):
            return None
        L = data.get("L", data.get("l"))
        a = data.get("a", data.get("A"))
        b = data.get("b", data.get("B"))
        values = []
        for v in (L, a, b):
            if isinstance(v, bool) or not isinstance(v, (int, float)):
                return None
            if not math.isfinite(v):
                return None
            values.append(float(v))
        return cls(*values)


LabColor.NEUTRAL = LabColor(0.0, 0.0, 0.0)


def white_point(name: Optional[str]) -> Optional[ArrayFloat]:
    """Named reference white, or None when the name is unknown."""
    if not name:
        return None
    return WHITE_POINTS.get(str(name).strip().upper())


# =============================================================================
# 2. SHAPE HANDLING
# =============================================================================

def handle_shapes(func: Callable[..., ArrayFloat]) -> Callable[..., ArrayFloat]:
    """
    Normalise the first argument to a contiguous (N, 3) float64 array.

    (3,) inputs come back as (3,), (N, 3) inputs as (N, 3).
    """
    @functools.wraps(func)
    def wrapper(arr: Any, *args: Any, **kwargs: Any) -> ArrayFloat:
        arr = np.asarray(arr, dtype=np.float64)
        arr_in = np.ascontiguousarray(np.atleast_2d(arr))
        if arr_in.shape[-1] != 3:
            raise ValueError(f"Expected last dimension size 3, got {arr_in.shape[-1]}")
        res = func(arr_in, *args, **kwargs)
        if arr.ndim == 1:
            return res[0]
        return res
    return wrapper


# =============================================================================
# 3. KERNELS
# =============================================================================

@njit(cache=True, fastmath=False)
def _srgb_encode(linear: ArrayFloat) -> ArrayFloat:
    """sRGB OETF, element-wise."""
    out = np.empty_like(linear)
    src = linear.ravel()
    dst = out.ravel()
    for i in range(src.size):
        v = src[i]
        if v <= 0.0031308:
            dst[i] = 12.92 * v
        else:
            dst[i] = 1.055 * (v ** (1.0 / 2.4)) - 0.055
    return out


@njit(cache=True, fastmath=False)
def _srgb_decode(encoded: ArrayFloat) -> ArrayFloat:
    """sRGB EOTF, element-wise."""
    out = np.empty_like(encoded)
    src = encoded.ravel()
    dst = out.ravel()
    for i in range(src.size):
        v = src[i]
        if v <= 0.04045:
            dst[i] = v / 12.92
        else:
            dst[i] = ((v + 0.055) / 1.055) ** 2.4
    return out


@njit(cache=True, fastmath=False)
def _lab_f(t: ArrayFloat) -> ArrayFloat:
    """CIE f(t): cube root above epsilon, linear segment below."""
    out = np.empty_like(t)
    src = t.ravel()
    dst = out.ravel()
    for i in range(src.size):
        v = src[i]
        if v > LAB_EPSILON:
            dst[i] = v ** (1.0 / 3.0)
        else:
            dst[i] = (LAB_KAPPA * v + 16.0) / 116.0
    return out


@njit(cache=True, fastmath=False)
def _lab_f_inv(t: ArrayFloat) -> ArrayFloat:
    out = np.empty_like(t)
    src = t.ravel()
    dst = out.ravel()
    for i in range(src.size):
        v = src[i]
        if v > _LAB_DELTA:
            dst[i] = v * v * v
        else:
            dst[i] = (116.0 * v - 16.0) / LAB_KAPPA
    return out


@njit(cache=True, fastmath=False)
def _lab_to_lch_kernel(lab: ArrayFloat) -> ArrayFloat:
    n = lab.shape[0]
    lch = np.empty_like(lab)
    for i in range(n):
        a = lab[i, 1]
        b = lab[i, 2]
        h = np.arctan2(b, a) * RAD2DEG
        if h < 0.0:
            h += 360.0
        lch[i, 0] = lab[i, 0]
        lch[i, 1] = np.sqrt(a * a + b * b)
        lch[i, 2] = h
    return lch


# =============================================================================
# 4. COLOR SPACE ENGINE
# =============================================================================

class ColorSpaceEngine:
    """Static transforms between XYZ, Lab, LCh and sRGB.

    ``_raw`` methods assume a validated (N, 3) float64 array and are used by
    the chained pipelines; the public methods go through ``handle_shapes``.
    """

    @staticmethod
    def _srgb_to_xyz_raw(rgb: ArrayFloat, clip: bool = True) -> ArrayFloat:
        if clip:
            rgb = np.clip(rgb, 0.0, 1.0)
        return np.dot(_srgb_decode(np.ascontiguousarray(rgb)), M_SRGB_TO_XYZ_T)

    @staticmethod
    def _xyz_to_srgb_raw(xyz: ArrayFloat, clip: bool = True) -> ArrayFloat:
        linear = np.dot(xyz, M_XYZ_TO_SRGB_T)
        if clip:
            linear = np.clip(linear, 0.0, 1.0)
        return _srgb_encode(np.ascontiguousarray(linear))

    @staticmethod
    def _xyz_to_lab_raw(xyz: ArrayFloat, white: ArrayFloat = REF_WHITE_D50) -> ArrayFloat:
        f = _lab_f(np.ascontiguousarray(xyz / white))
        out = np.empty_like(xyz)
        out[..., 0] = 116.0 * f[..., 1] - 16.0
        out[..., 1] = 500.0 * (f[..., 0] - f[..., 1])
        out[..., 2] = 200.0 * (f[..., 1] - f[..., 2])
        return out

    @staticmethod
    def _lab_to_xyz_raw(lab: ArrayFloat, white: ArrayFloat = REF_WHITE_D50) -> ArrayFloat:
        fy = (lab[..., 0] + 16.0) / 116.0
        f = np.empty_like(lab)
        f[..., 0] = lab[..., 1] / 500.0 + fy
        f[..., 1] = fy
        f[..., 2] = fy - lab[..., 2] / 200.0
        return _lab_f_inv(f) * white

    @staticmethod
    @handle_shapes
    def xyz_to_lab(xyz: ArrayFloat, white: ArrayFloat = REF_WHITE_D50) -> ArrayFloat:
        """XYZ (relative, Y = 1 for the white) -> Lab under ``white``."""
        return ColorSpaceEngine._xyz_to_lab_raw(xyz, white)

    @staticmethod
    @handle_shapes
    def lab_to_xyz(lab: ArrayFloat, white: ArrayFloat = REF_WHITE_D50) -> ArrayFloat:
        return ColorSpaceEngine._lab_to_xyz_raw(lab, white)

    @staticmethod
    @handle_shapes
    def srgb_to_xyz(rgb: ArrayFloat, clip: bool = True) -> ArrayFloat:
        """Encoded sRGB in [0, 1] -> XYZ (D65 primaries)."""
        return ColorSpaceEngine._srgb_to_xyz_raw(rgb, clip)

    @staticmethod
    @handle_shapes
    def xyz_to_srgb(xyz: ArrayFloat, clip: bool = True) -> ArrayFloat:
        """XYZ -> encoded sRGB.  With ``clip`` the linear values are clamped first."""
        return ColorSpaceEngine._xyz_to_srgb_raw(xyz, clip)

    @staticmethod
    @handle_shapes
    def lab_to_lch(lab: ArrayFloat) -> ArrayFloat:
        """Lab -> LCh with hue in degrees, [0, 360)."""
        return _lab_to_lch_kernel(lab)

    @staticmethod
    @handle_shapes
    def lab_to_srgb(lab: ArrayFloat, white: ArrayFloat = REF_WHITE_D50) -> ArrayFloat:
        xyz = ColorSpaceEngine._lab_to_xyz_raw(lab, white)
        return ColorSpaceEngine._xyz_to_srgb_raw(xyz, True)

    @staticmethod
    @handle_shapes
    def srgb_to_lab(rgb: ArrayFloat, white: ArrayFloat = REF_WHITE_D50) -> ArrayFloat:
        xyz = ColorSpaceEngine._srgb_to_xyz_raw(rgb, True)
        return ColorSpaceEngine._xyz_to_lab_raw(xyz, white)


# =============================================================================
# 5. CHROMATIC ADAPTATION
# =============================================================================

@functools.lru_cache(maxsize=32)
def _bradford_matrix(src_white: Tuple[float, ...], dst_white: Tuple[float, ...]) -> ArrayFloat:
    """
    Composite Bradford matrix for row vectors:
    XYZ -> cone space -> von Kries gain -> XYZ.
    """
    src_lms = np.dot(np.array(src_white, dtype=np.float64), M_BRADFORD_T)
    dst_lms = np.dot(np.array(dst_white, dtype=np.float64), M_BRADFORD_T)
    src_lms = np.where(np.abs(src_lms) < 1e-12, 1e-12, src_lms)
    gain = np.diag(dst_lms / src_lms)
    return M_BRADFORD_T @ gain @ M_BRADFORD_INV_T


class ChromaticAdaptation:
    """Bradford white-point adaptation."""

    @staticmethod
    def transform_matrix(src_white: ArrayFloat, dst_white: ArrayFloat) -> ArrayFloat:
        return _bradford_matrix(tuple(np.asarray(src_white, dtype=np.float64).ravel()),
                                tuple(np.asarray(dst_white, dtype=np.float64).ravel()))

    @staticmethod
    @handle_shapes
    def adapt(xyz: ArrayFloat, src_white: ArrayFloat, dst_white: ArrayFloat) -> ArrayFloat:
        """
        Adapt XYZ colour(s) from ``src_white`` to ``dst_white``.

        Args:
            xyz: Input XYZ, (N, 3) or (3,).
            src_white: Source white point (XYZ, Y = 1).
            dst_white: Destination white point (XYZ, Y = 1).

        Returns:
            Adapted XYZ with the input's shape.
        """
        if np.allclose(src_white, dst_white):
            return xyz.copy()
        return np.dot(xyz, ChromaticAdaptation.transform_matrix(src_white, dst_white))

    @staticmethod
    @handle_shapes
    def adapt_lab_array(lab: ArrayFloat, src_white: ArrayFloat, dst_white: ArrayFloat) -> ArrayFloat:
        """Lab under ``src_white`` -> Lab under ``dst_white``."""
        xyz = ColorSpaceEngine._lab_to_xyz_raw(lab, src_white)
        if not np.allclose(src_white, dst_white):
            xyz = np.dot(xyz, ChromaticAdaptation.transform_matrix(src_white, dst_white))
        return ColorSpaceEngine._xyz_to_lab_raw(xyz, dst_white)


# =============================================================================
# 6. SCALAR HELPERS
# =============================================================================

def _rgb_to_hex(rgb: ArrayFloat) -> str:
    channels = np.clip(np.floor(rgb * 255.0 + 0.5), 0, 255).astype(np.int64)
    return "#{:02X}{:02X}{:02X}".format(*(int(c) for c in channels))


def lab_to_hex(L: float, a: float, b: float, illuminant: str = "D50") -> str:
    """
    Lab -> ``#RRGGBB`` (uppercase) through XYZ under ``illuminant`` and the
    sRGB matrix.

    Unknown illuminants and non-finite input give ``NEUTRAL_HEX``.
    """
    white = white_point(illuminant)
    if white is None:
        logger.warning("Unknown illuminant %r for Lab -> hex conversion", illuminant)
        return NEUTRAL_HEX
    lab = np.array([L or 0.0, a or 0.0, b or 0.0], dtype=np.float64)
    if not np.all(np.isfinite(lab)):
        logger.debug("Non-finite Lab %s not converted to hex", lab)
        return NEUTRAL_HEX
    return _rgb_to_hex(ColorSpaceEngine.lab_to_srgb(lab, white))


def normalize_hex(hex_color: Any) -> Optional[str]:
    """``#RRGGBB`` in upper case, or None when ``hex_color`` is not a hex colour."""
    if not isinstance(hex_color, str):
        return None
    match = _HEX_PATTERN.match(hex_color.strip())
    return f"#{match.group(1).upper()}" if match else None


def hex_to_lab(hex_color: Optional[str], illuminant: str = "D50") -> LabColor:
    """
    ``#RRGGBB`` -> Lab under ``illuminant``.  The inverse of ``lab_to_hex``.

    Invalid strings and unknown illuminants give ``LabColor.NEUTRAL``.
    """
    if not isinstance(hex_color, str):
        return LabColor.NEUTRAL
    match = _HEX_PATTERN.match(hex_color.strip())
    if match is None:
        logger.debug("Invalid hex colour %r", hex_color)
        return LabColor.NEUTRAL
    white = white_point(illuminant)
    if white is None:
        logger.warning("Unknown illuminant %r for hex -> Lab conversion", illuminant)
        return LabColor.NEUTRAL
    digits = match.group(1)
    rgb = np.array([int(digits[i:i + 2], 16) for i in (0, 2, 4)], dtype=np.float64) / 255.0
    return LabColor.from_array(ColorSpaceEngine.srgb_to_lab(rgb, white))


def adapt_lab(lab: LabColor, source: str = "D50", target: str = "D65") -> LabColor:
    """
    Bradford-adapt a Lab colour between named illuminants.

    Identical names return ``lab`` unchanged.  An unknown source falls back
    to D50 and an unknown target to D65.
    """
    if source == target:
        return lab
    src = white_point(source)
    if src is None:
        logger.debug("Unknown source illuminant %r, using D50", source)
        src = REF_WHITE_D50
    dst = white_point(target)
    if dst is None:
        logger.debug("Unknown target illuminant %r, using D65", target)
        dst = REF_WHITE_D65
    return LabColor.from_array(ChromaticAdaptation.adapt_lab_array(lab.as_array(), src, dst))


def lab_to_hex_d65(L: float, a: float, b: float, source: str = "D50") -> str:
    """Adapt to D65, then convert to hex under D65."""
    adapted = adapt_lab(LabColor(float(L), float(a), float(b)), source, "D65")
    return lab_to_hex(adapted.L, adapted.a, adapted.b, "D65")


def lab_to_chroma_hue(L: float, a: Optional[float], b: Optional[float]) -> Tuple[float, float]:
    """Chroma C* and hue angle h* in degrees [0, 360).  Missing a/b gives (0, 0)."""
    if a is None or b is None:
        return 0.0, 0.0
    lch = ColorSpaceEngine.lab_to_lch(np.array([L, a, b], dtype=np.float64))
    return float(lch[1]), float(lch[2])
