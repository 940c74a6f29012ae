# -*- coding: utf-8 -*-
"""
Inkwell: Spectral colour science for print substrates
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Spectral data and the weighted-ordinate Spectral -> Lab converter.

Contents:
  SpectralCurve
    Immutable wavelength -> reflectance record backed by two read-only
    arrays.  Built from loosely-typed mappings (``{"400": 82.1, ...}``).
  Scale handling
    ``detect_percentage_scale`` decides between 0-1 and 0-100 data
    (max > 1.1 *and* mean > 1.0).  ``to_unit_scale`` / ``from_unit_scale``
    move a curve into normalised space and back; ``normalize_reflectance``
    additionally restricts it to the visible range for colorimetry.
  WeightingTable / WeightingTableLibrary
    ASTM E308 tristimulus weighting factors for one
    (illuminant, observer, table) combination, and a row store that
    serves such tables with a D50 / 2 deg / table 5 fallback.
  spectral_to_xyz / spectral_to_lab
    Weighted-ordinate integration with tail aggregation:
      * one sample  -> the sample takes the sum of every row's factors;
      * first sample -> sum of factors at table wavelengths <= lambda_1;
      * last sample  -> sum of factors at table wavelengths >= lambda_n;
      * interior samples -> the row at exactly lambda_i, or nothing.
    Interior samples without an exact row contribute zero.  They are not
    interpolated.
    Failures return ``LabColor.NEUTRAL`` instead of raising.
"""

from __future__ import annotations

import logging
import math
import re
import threading
from dataclasses import dataclass
from typing import Any, Dict, Final, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, TypeAlias, Union

import numpy as np
from numba import njit

from inkwell_colorengine import ArrayFloat, ColorSpaceEngine, LabColor

__all__ = [
    "SpectralCurve",
    "CurveLike",
    "as_curve",
    "VISIBLE_RANGE",
    "detect_percentage_scale",
    "to_unit_scale",
    "from_unit_scale",
    "normalize_reflectance",
    "WeightingTable",
    "WeightingTableLibrary",
    "TableKey",
    "spectral_to_xyz",
    "spectral_to_lab",
    "TableSource",
    "resolve_table",
]

logger = logging.getLogger(__name__)

VISIBLE_RANGE: Final[Tuple[int, int]] = (360, 830)
PERCENT_MAX_THRESHOLD: Final[float] = 1.1
PERCENT_MEAN_THRESHOLD: Final[float] = 1.0

# D50 2 deg white, used when a table row carries an unusable white point value.
_DEFAULT_WHITE: Final[Tuple[float, float, float]] = (96.422, 100.0, 82.521)


# =============================================================================
# 1.  SpectralCurve
# =============================================================================
@dataclass(slots=True, frozen=True, eq=False)
class SpectralCurve:
    """
    Wavelength (integer nm) -> reflectance.

    Wavelengths are strictly increasing; both arrays are read-only copies.
    Values are stored as given; scale handling is explicit (see
    ``to_unit_scale``).
    """
    wavelengths: np.ndarray
    values: np.ndarray

    def __post_init__(self) -> None:
        wl = np.array(self.wavelengths, dtype=np.int64, copy=True).ravel()
        vals = np.array(self.values, dtype=np.float64, copy=True).ravel()
        if wl.shape != vals.shape:
            raise ValueError(
                f"SpectralCurve shape mismatch: {wl.shape} wavelengths, {vals.shape} values"
            )
        if wl.size > 1 and np.any(np.diff(wl) <= 0):
            raise ValueError("SpectralCurve wavelengths must be strictly increasing")
        wl.setflags(write=False)
        vals.setflags(write=False)
        object.__setattr__(self, "wavelengths", wl)
        object.__setattr__(self, "values", vals)

    # -- construction ------------------------------------------------------
    @classmethod
    def empty(cls) -> "SpectralCurve":
        return cls(np.empty(0, dtype=np.int64), np.empty(0, dtype=np.float64))

    @classmethod
    def from_mapping(cls, data: Any) -> "SpectralCurve":
        """
        Build from ``{wavelength: value}``.

        Keys may be ints, floats or numeric strings and are rounded to whole
        nanometres.  Entries with a non-numeric key or a non-finite value
        are skipped.  Anything that is not a mapping yields an empty curve.
        """
        if isinstance(data, SpectralCurve):
            return data
        if not isinstance(data, Mapping):
            return cls.empty()
        pairs: Dict[int, float] = {}
        for key, value in data.items():
            wl = _to_float(key)
            val = _to_float(value)
            if wl is None or val is None:
                continue
            pairs[int(round(wl))] = val
        if not pairs:
            return cls.empty()
        wls = sorted(pairs)
        return cls(np.array(wls, dtype=np.int64),
                   np.array([pairs[w] for w in wls], dtype=np.float64))

    # -- read access -------------------------------------------------------
    def __len__(self) -> int:
        return int(self.wavelengths.size)

    def __bool__(self) -> bool:
        return self.wavelengths.size > 0

    def __iter__(self) -> Iterator[Tuple[int, float]]:
        return iter(self.items())

    def __contains__(self, wavelength: object) -> bool:
        if not isinstance(wavelength, (int, np.integer)):
            return False
        idx = np.searchsorted(self.wavelengths, wavelength)
        return bool(idx < self.wavelengths.size and self.wavelengths[idx] == wavelength)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SpectralCurve):
            return NotImplemented
        return (np.array_equal(self.wavelengths, other.wavelengths)
                and np.array_equal(self.values, other.values))

    def __hash__(self) -> int:
        return hash((self.wavelengths.tobytes(), self.values.tobytes()))

    def __repr__(self) -> str:
        if not self:
            return "SpectralCurve(empty)"
        return (f"SpectralCurve({len(self)} pts, "
                f"{int(self.wavelengths[0])}-{int(self.wavelengths[-1])} nm)")

    def items(self) -> List[Tuple[int, float]]:
        return [(int(w), float(v)) for w, v in zip(self.wavelengths, self.values)]

    def get(self, wavelength: int, default: Optional[float] = None) -> Optional[float]:
        idx = np.searchsorted(self.wavelengths, wavelength)
        if idx < self.wavelengths.size and self.wavelengths[idx] == wavelength:
            return float(self.values[idx])
        return default

    def as_dict(self) -> Dict[int, float]:
        return dict(self.items())

    def samples(self, n: int = 8) -> Tuple[float, ...]:
        """``n`` values at evenly spaced indices, first and last included."""
        size = self.values.size
        if size <= n:
            return tuple(float(v) for v in self.values)
        idx = np.unique(np.linspace(0, size - 1, n).round().astype(np.intp))
        return tuple(float(v) for v in self.values[idx])

    # -- derived curves ----------------------------------------------------
    def restrict(self, wavelengths: np.ndarray) -> "SpectralCurve":
        """Sub-curve at the given wavelengths (which must all be present)."""
        idx = np.searchsorted(self.wavelengths, wavelengths)
        return SpectralCurve(np.asarray(wavelengths), self.values[idx])

    def with_values(self, values: np.ndarray) -> "SpectralCurve":
        return SpectralCurve(self.wavelengths, values)


CurveLike: TypeAlias = Union[SpectralCurve, Mapping[Any, Any], None]


def _to_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        out = float(value)
    except (TypeError, ValueError):
        return None
    return out if math.isfinite(out) else None


def as_curve(data: CurveLike) -> SpectralCurve:
    return SpectralCurve.from_mapping(data)


# =============================================================================
# 2.  Scale handling
# =============================================================================
def detect_percentage_scale(values: Union[np.ndarray, Sequence[float]]) -> bool:
    """
    True when ``values`` look like 0-100 reflectance: max > 1.1 and
    mean > 1.0 over the finite, non-negative entries.
    """
    arr = np.asarray(values, dtype=np.float64)
    arr = arr[np.isfinite(arr) & (arr >= 0.0)]
    if arr.size == 0:
        return False
    return bool(arr.max() > PERCENT_MAX_THRESHOLD and arr.mean() > PERCENT_MEAN_THRESHOLD)


def to_unit_scale(curve: CurveLike) -> Tuple[SpectralCurve, float]:
    """
    Normalise to [0, 1].

    Returns:
        (normalised curve, scale) where scale is 100.0 for percentage data
        and 1.0 otherwise.  All wavelengths are kept.
    """
    curve = as_curve(curve)
    scale = 100.0 if detect_percentage_scale(curve.values) else 1.0
    return curve.with_values(np.clip(curve.values / scale, 0.0, 1.0)), scale


def from_unit_scale(curve: SpectralCurve, scale: float) -> SpectralCurve:
    """Inverse of ``to_unit_scale``; values are clamped to [0, scale]."""
    return curve.with_values(np.clip(curve.values * scale, 0.0, scale))


def normalize_reflectance(curve: CurveLike) -> SpectralCurve:
    """
    Colorimetric normalisation: unit scale, clamp to [0, 1] and drop
    wavelengths outside 360-830 nm.
    """
    unit, _ = to_unit_scale(curve)
    lo, hi = VISIBLE_RANGE
    keep = (unit.wavelengths >= lo) & (unit.wavelengths <= hi)
    if keep.all():
        return unit
    return SpectralCurve(unit.wavelengths[keep], unit.values[keep])


# =============================================================================
# 3.  Weighting tables
# =============================================================================
TableKey: TypeAlias = Tuple[str, str, str]


def _normalize_illuminant(value: Any) -> str:
    return str(value if value is not None else "").strip().upper()


def _normalize_observer(value: Any) -> str:
    text = str(value if value is not None else "").strip()
    digits = re.sub(r"\D", "", text)
    return digits or text


def _normalize_table_number(value: Any) -> str:
    num = _to_float(value)
    if num is not None and num.is_integer():
        return str(int(num))
    return str(value if value is not None else "").strip()


@dataclass(slots=True, frozen=True, eq=False)
class WeightingTable:
    """
    Tristimulus weighting factors for one illuminant / observer / table.

    Attributes:
        wavelengths: (M,) strictly increasing integer wavelengths.
        factors: (M, 3) x / y / z weighting factors.
        white_point: (3,) white point on the table's own scale (normally
            0-100), or None when the source rows carried none.
        illuminant, observer, table_number: identity of the table.
    """
    wavelengths: np.ndarray
    factors: np.ndarray
    white_point: Optional[np.ndarray]
    illuminant: str = ""
    observer: str = ""
    table_number: str = ""

    def __post_init__(self) -> None:
        wl = np.array(self.wavelengths, dtype=np.int64, copy=True).ravel()
        fac = np.array(self.factors, dtype=np.float64, copy=True)
        if wl.size == 0:
            raise ValueError("WeightingTable must not be empty")
        if fac.shape != (wl.size, 3):
            raise ValueError(f"WeightingTable factors must be ({wl.size}, 3), got {fac.shape}")
        if np.any(np.diff(wl) <= 0):
            raise ValueError("WeightingTable wavelengths must be unique and sorted")
        wl.setflags(write=False)
        fac.setflags(write=False)
        object.__setattr__(self, "wavelengths", wl)
        object.__setattr__(self, "factors", fac)
        if self.white_point is not None:
            wp = np.array(self.white_point, dtype=np.float64, copy=True).ravel()
            if wp.shape != (3,):
                raise ValueError(f"white_point must have 3 components, got {wp.shape}")
            wp.setflags(write=False)
            object.__setattr__(self, "white_point", wp)

    @property
    def key(self) -> TableKey:
        return (self.illuminant, self.observer, self.table_number)

    def __len__(self) -> int:
        return int(self.wavelengths.size)

    @classmethod
    def from_rows(cls, rows: Iterable[Mapping[str, Any]]) -> "WeightingTable":
        """
        Build from database-style rows::

            {"wavelength": 400, "x_factor": .., "y_factor": .., "z_factor": ..,
             "white_point_x": .., "white_point_y": .., "white_point_z": ..,
             "illuminant_name": "D50", "observer": "2", "table_number": 5}

        The white point is read from the first row as given.  Rows without a
        numeric wavelength are skipped and missing factors count as zero.

        Raises:
            ValueError: no usable rows, or a wavelength appears twice.
        """
        rows = [r for r in rows if isinstance(r, Mapping)]
        if not rows:
            raise ValueError("WeightingTable needs at least one row")

        first = rows[0]
        white: Optional[Tuple[float, float, float]] = None
        if first.get("white_point_x") is not None:
            white = tuple(
                (_to_float(first.get(f"white_point_{axis}")) or default)
                for axis, default in zip("xyz", _DEFAULT_WHITE)
            )

        parsed: List[Tuple[int, float, float, float]] = []
        for row in rows:
            wl = _to_float(row.get("wavelength"))
            if wl is None:
                continue
            parsed.append((
                int(round(wl)),
                _to_float(row.get("x_factor")) or 0.0,
                _to_float(row.get("y_factor")) or 0.0,
                _to_float(row.get("z_factor")) or 0.0,
            ))
        if not parsed:
            raise ValueError("WeightingTable rows carry no numeric wavelengths")
        parsed.sort(key=lambda r: r[0])
        wls = [r[0] for r in parsed]
        if len(set(wls)) != len(wls):
            raise ValueError("WeightingTable rows contain duplicate wavelengths")

        return cls(
            wavelengths=np.array(wls, dtype=np.int64),
            factors=np.array([r[1:] for r in parsed], dtype=np.float64),
            white_point=None if white is None else np.array(white, dtype=np.float64),
            illuminant=_normalize_illuminant(first.get("illuminant_name")),
            observer=_normalize_observer(first.get("observer")),
            table_number=_normalize_table_number(first.get("table_number")),
        )


# Fallback weights for D50 / 2 deg at 10 nm, 380-780 nm: CIE 1931 colour
# matching functions times the CIE D50 relative spectral power.  Plain
# products without the bandpass correction of the published ASTM tables.
# Columns: wavelength, x-bar, y-bar, z-bar, S(D50).
_D50_CMF_SPD: Final[Tuple[Tuple[int, float, float, float, float], ...]] = (
    (380, 0.001368, 0.000039, 0.006450, 24.49),
    (390, 0.004243, 0.000120, 0.020050, 29.87),
    (400, 0.014310, 0.000396, 0.067850, 49.31),
    (410, 0.043510, 0.001210, 0.207400, 56.51),
    (420, 0.134380, 0.004000, 0.645600, 60.03),
    (430, 0.283900, 0.011600, 1.385600, 57.82),
    (440, 0.348280, 0.023000, 1.747060, 74.82),
    (450, 0.336200, 0.038000, 1.772110, 87.25),
    (460, 0.290800, 0.060000, 1.669200, 90.61),
    (470, 0.195360, 0.090980, 1.287640, 91.37),
    (480, 0.095640, 0.139020, 0.812950, 95.11),
    (490, 0.032010, 0.208020, 0.465180, 91.96),
    (500, 0.004900, 0.323000, 0.272000, 95.72),
    (510, 0.009300, 0.503000, 0.158200, 96.61),
    (520, 0.063270, 0.710000, 0.078250, 97.13),
    (530, 0.165500, 0.862000, 0.042160, 102.10),
    (540, 0.290400, 0.954000, 0.020300, 100.75),
    (550, 0.433450, 0.994950, 0.008750, 102.32),
    (560, 0.594500, 0.995000, 0.003900, 100.00),
    (570, 0.762100, 0.952000, 0.002100, 97.74),
    (580, 0.916300, 0.870000, 0.001650, 98.92),
    (590, 1.026300, 0.757000, 0.001100, 93.50),
    (600, 1.062200, 0.631000, 0.000800, 97.69),
    (610, 1.002600, 0.503000, 0.000340, 99.27),
    (620, 0.854450, 0.381000, 0.000190, 99.04),
    (630, 0.642400, 0.265000, 0.000050, 95.72),
    (640, 0.447900, 0.175000, 0.000020, 98.86),
    (650, 0.283500, 0.107000, 0.000000, 95.67),
    (660, 0.164900, 0.061000, 0.000000, 98.19),
    (670, 0.087400, 0.032000, 0.000000, 103.00),
    (680, 0.046770, 0.017000, 0.000000, 99.13),
    (690, 0.022700, 0.008210, 0.000000, 87.38),
    (700, 0.011359, 0.004102, 0.000000, 91.60),
    (710, 0.005790, 0.002091, 0.000000, 92.89),
    (720, 0.002899, 0.001047, 0.000000, 76.85),
    (730, 0.001440, 0.000520, 0.000000, 86.51),
    (740, 0.000690, 0.000249, 0.000000, 92.58),
    (750, 0.000332, 0.000120, 0.000000, 78.23),
    (760, 0.000166, 0.000060, 0.000000, 57.69),
    (770, 0.000083, 0.000030, 0.000000, 82.92),
    (780, 0.000042, 0.000015, 0.000000, 78.27),
)


class WeightingTableLibrary:
    """
    Row store for many weighting tables, keyed by
    (illuminant, observer, table number).

    Tables are assembled on first request and memoised.  Illuminants are
    compared upper-cased, observers by their digits ("2", "2°", 2) and
    table numbers numerically.
    """

    FALLBACK_KEY: Final[TableKey] = ("D50", "2", "5")

    __slots__ = ("_rows", "_tables", "_lock")

    def __init__(self, rows: Iterable[Mapping[str, Any]] = ()) -> None:
        self._rows: Dict[TableKey, List[Mapping[str, Any]]] = {}
        self._tables: Dict[TableKey, Optional[WeightingTable]] = {}
        self._lock = threading.RLock()
        self.add_rows(rows)

    @classmethod
    def with_builtin_fallback(cls, rows: Iterable[Mapping[str, Any]] = ()) -> "WeightingTableLibrary":
        """Library pre-seeded with the bundled D50 / 2 deg weights, filed as table 5."""
        lib = cls(_builtin_d50_rows())
        lib.add_rows(rows)
        return lib

    @staticmethod
    def make_key(illuminant: Any, observer: Any, table_number: Any) -> TableKey:
        return (_normalize_illuminant(illuminant),
                _normalize_observer(observer),
                _normalize_table_number(table_number))

    def add_rows(self, rows: Iterable[Mapping[str, Any]]) -> None:
        with self._lock:
            for row in rows:
                if not isinstance(row, Mapping):
                    continue
                key = self.make_key(row.get("illuminant_name"), row.get("observer"),
                                    row.get("table_number"))
                self._rows.setdefault(key, []).append(row)
                self._tables.pop(key, None)

    def keys(self) -> List[TableKey]:
        with self._lock:
            return list(self._rows)

    def __len__(self) -> int:
        return len(self._rows)

    def __contains__(self, key: object) -> bool:
        return key in self._rows

    def get(self, illuminant: Any, observer: Any, table_number: Any) -> Optional[WeightingTable]:
        """Exact lookup; None when missing or when the rows are malformed."""
        key = self.make_key(illuminant, observer, table_number)
        with self._lock:
            if key in self._tables:
                return self._tables[key]
            rows = self._rows.get(key)
            if not rows:
                return None
            try:
                table: Optional[WeightingTable] = WeightingTable.from_rows(rows)
            except ValueError as exc:
                logger.warning("Weighting table %s is unusable: %s", key, exc)
                table = None
            self._tables[key] = table
            return table

    def lookup(self, illuminant: Any, observer: Any, table_number: Any,
               fallback: bool = True) -> Optional[WeightingTable]:
        """``get`` with an optional fall back to D50 / 2 deg / table 5."""
        table = self.get(illuminant, observer, table_number)
        if table is None and fallback:
            key = self.make_key(illuminant, observer, table_number)
            if key != self.FALLBACK_KEY:
                logger.debug("No weighting table for %s, falling back to %s", key, self.FALLBACK_KEY)
                table = self.get(*self.FALLBACK_KEY)
        return table


def _builtin_d50_rows() -> List[Dict[str, Any]]:
    """
    Rows of the bundled D50 table, normalised to Y = 100 for the perfect
    reflector.  The white point is the column sum of the factors.
    """
    data = np.array(_D50_CMF_SPD, dtype=np.float64)
    weights = data[:, 1:4] * data[:, 4:5]
    weights *= 100.0 / weights[:, 1].sum()
    wx, wy, wz = (float(v) for v in weights.sum(axis=0))
    return [
        {"wavelength": int(wl), "x_factor": float(x), "y_factor": float(y), "z_factor": float(z),
         "white_point_x": wx, "white_point_y": wy, "white_point_z": wz,
         "illuminant_name": "D50", "observer": "2", "table_number": 5}
        for wl, (x, y, z) in zip(data[:, 0], weights)
    ]


# =============================================================================
# 4.  Weighted-ordinate integration
# =============================================================================
@njit(cache=True, fastmath=False)
def _weighted_ordinate(sample_wl: np.ndarray, sample_r: np.ndarray,
                       table_wl: np.ndarray, factors: np.ndarray) -> np.ndarray:
    xyz = np.zeros(3, dtype=np.float64)
    n = sample_wl.shape[0]
    m = table_wl.shape[0]
    if n == 0 or m == 0:
        return xyz

    if n == 1:
        r = sample_r[0]
        for j in range(m):
            for k in range(3):
                xyz[k] += r * factors[j, k]
        return xyz

    first_wl = sample_wl[0]
    last_wl = sample_wl[n - 1]
    r_first = sample_r[0]
    r_last = sample_r[n - 1]

    # tails
    for j in range(m):
        wl = table_wl[j]
        if wl <= first_wl:
            for k in range(3):
                xyz[k] += r_first * factors[j, k]
        if wl >= last_wl:
            for k in range(3):
                xyz[k] += r_last * factors[j, k]

    # interior, exact matches only; both axes are sorted
    j = 0
    for i in range(1, n - 1):
        wl = sample_wl[i]
        while j < m and table_wl[j] < wl:
            j += 1
        if j < m and table_wl[j] == wl:
            r = sample_r[i]
            for k in range(3):
                xyz[k] += r * factors[j, k]
    return xyz


TableSource: TypeAlias = Union[WeightingTable, WeightingTableLibrary, Iterable[Mapping[str, Any]], None]


def resolve_table(tables: TableSource, illuminant: Any = "D50", observer: Any = "2",
                  table_number: Any = "5", fallback: bool = True) -> Optional[WeightingTable]:
    """
    Pick the weighting table for one measurement setting.

    ``tables`` may be a ready ``WeightingTable`` (returned as is), a
    ``WeightingTableLibrary``, or raw rows covering any number of settings.
    Missing settings fall back to D50 / 2 deg / table 5 when ``fallback``.
    """
    if tables is None or isinstance(tables, WeightingTable):
        return tables
    library = tables if isinstance(tables, WeightingTableLibrary) else WeightingTableLibrary(tables)
    return library.lookup(illuminant, observer, table_number, fallback=fallback)


def _coerce_table(table: Union[WeightingTable, Iterable[Mapping[str, Any]], None]) -> Optional[WeightingTable]:
    if table is None or isinstance(table, WeightingTable):
        return table
    try:
        return WeightingTable.from_rows(table)
    except (ValueError, TypeError) as exc:
        logger.warning("Unusable weighting table rows: %s", exc)
        return None


def spectral_to_xyz(curve: CurveLike,
                    table: Union[WeightingTable, Iterable[Mapping[str, Any]], None]) -> Optional[ArrayFloat]:
    """
    Tristimulus XYZ on the table's scale, or None when the curve or the
    table is unusable.
    """
    table = _coerce_table(table)
    if table is None:
        return None
    sample = normalize_reflectance(curve)
    if not sample:
        return None
    return _weighted_ordinate(
        np.ascontiguousarray(sample.wavelengths),
        np.ascontiguousarray(sample.values),
        np.ascontiguousarray(table.wavelengths),
        np.ascontiguousarray(table.factors),
    )


def spectral_to_lab(curve: CurveLike,
                    table: Union[WeightingTable, Iterable[Mapping[str, Any]], None]) -> LabColor:
    """
    CIE Lab of a reflectance curve under a pre-filtered weighting table.

    The Lab values are relative to the table's own white point (first row).
    Returns ``LabColor.NEUTRAL`` for an empty curve, a missing or malformed
    table, a table without white point, or any non-finite result.
    """
    table = _coerce_table(table)
    if table is None:
        return LabColor.NEUTRAL
    if table.white_point is None:
        logger.warning("Weighting table %s has no white point", table.key)
        return LabColor.NEUTRAL
    xyz = spectral_to_xyz(curve, table)
    if xyz is None:
        return LabColor.NEUTRAL
    with np.errstate(divide="ignore", invalid="ignore"):
        lab = ColorSpaceEngine.xyz_to_lab(xyz, table.white_point)
    if not np.all(np.isfinite(lab)):
        logger.debug("Non-finite Lab from spectral data under %s", table.key)
        return LabColor.NEUTRAL
    return LabColor.from_array(lab)
