# -*- coding: utf-8 -*-
"""
Inkwell: Spectral colour science for print substrates
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Tint Normalizer
===============
Turns the many historical shapes of tint data (lists, ``{tints: [...]}``
wrappers, dictionaries keyed by percentage, JSON strings) into one sorted,
deduplicated list of ``TintRecord``.

Everything downstream (adaptation, data-mode decision, display colours)
works on ``TintRecord`` only.  Normalisation is idempotent: existing
records pass through untouched, so feeding the output back in returns an
equal list.

Dedup rule:
    key = (percentage, background name or "default").  On collision the
    record with the strictly higher completeness score wins
    (measurements +10, spectral +5, Lab +3, colour string +2,
    background name +1).
"""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Final, Iterable, List, Mapping, Optional, Sequence, Tuple

from inkwell_colorengine import LabColor
from inkwell_spectral import SpectralCurve

__all__ = [
    "BASE_BACKGROUND",
    "MODES",
    "MODE_FIELDS",
    "ModeMeasurement",
    "TintRecord",
    "normalize_mode",
    "tint_percentage",
    "parse_spectral_string",
    "normalize_tints",
    "measurement_by_mode",
    "find_tint",
    "substrate_spectra_by_background",
    "imported_substrate_spectral",
]

logger = logging.getLogger(__name__)

BASE_BACKGROUND: Final[str] = "Substrate"
DEFAULT_BACKGROUND_KEY: Final[str] = "default"
MODES: Final[Tuple[str, ...]] = ("M0", "M1", "M2", "M3")

PERCENT_FIELDS: Final[Tuple[str, ...]] = (
    "tintPercentage", "tint_percentage", "percentage", "pct", "tint",
    "percent", "coverage", "coverage_pct", "coveragePercent", "coverage_percentage",
)
SPECTRAL_FIELDS: Final[Tuple[str, ...]] = ("spectralData", "spectral_data", "spectral", "spectrum")
COLOR_FIELDS: Final[Tuple[str, ...]] = ("colorHex", "hex", "color")
BACKGROUND_FIELDS: Final[Tuple[str, ...]] = ("backgroundName", "background_name", "background_key", "background")
MODE_FIELDS: Final[Tuple[str, ...]] = ("mode", "assignedMode", "measurement_mode", "measurementMode")
METADATA_KEYS: Final[frozenset] = frozenset(
    {"measurement_settings", "ui_state", "meta", "metadata", "$schema", "schema", "_meta"}
)

_MODE_LOOSE: Final[re.Pattern[str]] = re.compile(r"M\s*-?\s*([0-3])")
_PAIR_SPLIT: Final[re.Pattern[str]] = re.compile(r"[\n,]")
_FIELD_SPLIT: Final[re.Pattern[str]] = re.compile(r"[:\t\s]+")


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------
@dataclass(slots=True, frozen=True)
class ModeMeasurement:
    """One measurement of a tint under an illumination mode (M0-M3)."""
    mode: Optional[str]
    spectral: Optional[SpectralCurve] = None
    lab: Optional[LabColor] = None
    background_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"mode": self.mode}
        if self.spectral is not None:
            out["spectral_data"] = {str(k): v for k, v in self.spectral.items()}
        if self.lab is not None:
            out["lab"] = self.lab.to_dict()
        if self.background_name is not None:
            out["backgroundName"] = self.background_name
        return out


@dataclass(slots=True, frozen=True)
class TintRecord:
    """
    Canonical tint: one ink printed at ``percentage`` on one background.

    ``background_name`` keeps what the source said (possibly None);
    ``background`` resolves it to the base substrate name.
    """
    percentage: float
    background_name: Optional[str] = None
    spectral: Optional[SpectralCurve] = None
    lab: Optional[LabColor] = None
    color_hex: Optional[str] = None
    measurements: Tuple[ModeMeasurement, ...] = field(default_factory=tuple)
    name: Optional[str] = None
    tint_id: Optional[str] = None
    is_adapted: bool = False

    @property
    def background(self) -> str:
        return self.background_name or BASE_BACKGROUND

    @property
    def background_key(self) -> str:
        return self.background_name or DEFAULT_BACKGROUND_KEY

    @property
    def dedup_key(self) -> Tuple[float, str]:
        return (self.percentage, self.background_key)

    @property
    def has_spectral(self) -> bool:
        return self.spectral is not None and bool(self.spectral)

    @property
    def completeness_score(self) -> int:
        score = 0
        if self.measurements:
            score += 10
        if self.has_spectral:
            score += 5
        if self.lab is not None:
            score += 3
        if self.color_hex:
            score += 2
        if self.background_name:
            score += 1
        return score

    def spectral_for_mode(self, mode: Any = None) -> Optional[SpectralCurve]:
        """Spectrum of the matching mode measurement, else the top-level one."""
        wanted = normalize_mode(mode)
        if wanted is not None:
            for m in self.measurements:
                if m.mode == wanted and m.spectral:
                    return m.spectral
        return self.spectral if self.has_spectral else None

    def with_percentage(self, percentage: float) -> "TintRecord":
        return replace(self, percentage=percentage)

    def to_dict(self) -> Dict[str, Any]:
        """Canonical camelCase dictionary, omitting empty fields."""
        out: Dict[str, Any] = {"tintPercentage": self.percentage}
        if self.background_name is not None:
            out["backgroundName"] = self.background_name
        if self.spectral is not None:
            out["spectralData"] = {str(k): v for k, v in self.spectral.items()}
        if self.lab is not None:
            out["lab"] = self.lab.to_dict()
        if self.color_hex is not None:
            out["colorHex"] = self.color_hex
        if self.measurements:
            out["measurements"] = [m.to_dict() for m in self.measurements]
        if self.name is not None:
            out["name"] = self.name
        if self.tint_id is not None:
            out["id"] = self.tint_id
        if self.is_adapted:
            out["isAdapted"] = True
        return out


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------
def normalize_mode(value: Any) -> Optional[str]:
    """
    Canonical measurement mode.

    0-3, "0"-"3", "M0"-"M3", and sloppy forms such as "m 3", "M-3" or
    "MODE M3" map to "M0".."M3"; anything else gives None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if value in (0, 1, 2, 3):
            return f"M{int(value)}"
        return None
    text = str(value).strip().upper()
    if re.fullmatch(r"[0-3]", text):
        return f"M{text}"
    match = _MODE_LOOSE.search(text)
    if match:
        return f"M{match.group(1)}"
    return None


def tint_percentage(value: Any) -> float:
    """
    Percentage on the 0-100 scale.

    Strings lose their "%"; invalid or negative values give 0; values <= 1
    are read as fractions; the result is capped at 100.
    """
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, str):
        value = value.strip().replace("%", "")
    try:
        pct = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(pct) or pct < 0.0:
        return 0.0
    if pct <= 1.0:
        pct *= 100.0
    return min(pct, 100.0)


def _percentage_field(obj: Mapping[str, Any]) -> Any:
    for name in PERCENT_FIELDS:
        value = obj.get(name)
        if value is not None:
            return value
    return None


def _first_truthy(obj: Mapping[str, Any], names: Iterable[str]) -> Any:
    for name in names:
        value = obj.get(name)
        if value:
            return value
    return None


def parse_spectral_string(text: Any) -> Optional[SpectralCurve]:
    """
    Parse a stored spectral string: JSON object first, then
    ``wavelength:value`` pairs separated by newlines or commas.
    """
    if not isinstance(text, str) or not text.strip():
        return None
    try:
        parsed = json.loads(text)
    except ValueError:
        parsed = None
    if isinstance(parsed, Mapping):
        curve = SpectralCurve.from_mapping(parsed)
        return curve if curve else None

    pairs: Dict[float, float] = {}
    for chunk in _PAIR_SPLIT.split(text.strip()):
        parts = [p for p in _FIELD_SPLIT.split(chunk.strip()) if p]
        if len(parts) < 2:
            continue
        try:
            pairs[float(parts[0])] = float(parts[1])
        except ValueError:
            continue
    curve = SpectralCurve.from_mapping(pairs)
    return curve if curve else None


def _spectral_of(obj: Mapping[str, Any]) -> Optional[SpectralCurve]:
    for name in SPECTRAL_FIELDS:
        candidate = obj.get(name)
        if isinstance(candidate, (Mapping, SpectralCurve)) and candidate:
            curve = SpectralCurve.from_mapping(candidate)
            if curve:
                return curve
    return None


def _lab_of(obj: Mapping[str, Any]) -> Optional[LabColor]:
    lab = LabColor.from_mapping(obj.get("lab"))
    if lab is not None:
        return lab
    if all(obj.get(k) is not None for k in ("lab_l", "lab_a", "lab_b")):
        return LabColor.from_mapping({"L": obj["lab_l"], "a": obj["lab_a"], "b": obj["lab_b"]})
    return None


def _measurement_of(obj: Any) -> Optional[ModeMeasurement]:
    if isinstance(obj, ModeMeasurement):
        return obj
    if not isinstance(obj, Mapping):
        return None
    background = _first_truthy(obj, BACKGROUND_FIELDS)
    return ModeMeasurement(
        mode=normalize_mode(next((obj[k] for k in MODE_FIELDS if obj.get(k) is not None), None)),
        spectral=_spectral_of(obj),
        lab=_lab_of(obj),
        background_name=None if background is None else str(background),
    )


def is_tint_like(obj: Any) -> bool:
    """Carries at least one of: percentage, spectrum, Lab, colour, measurements."""
    if isinstance(obj, TintRecord):
        return True
    if not isinstance(obj, Mapping):
        return False
    if _percentage_field(obj) is not None:
        return True
    if any(obj.get(name) for name in SPECTRAL_FIELDS + ("spectral_string",)):
        return True
    lab = obj.get("lab")
    if isinstance(lab, Mapping) and (lab.get("L") is not None or lab.get("l") is not None):
        return True
    if all(obj.get(k) is not None for k in ("lab_l", "lab_a", "lab_b")):
        return True
    if _first_truthy(obj, COLOR_FIELDS):
        return True
    return isinstance(obj.get("measurements"), list)


def _record_of(obj: Any, key_hint: Any = None) -> TintRecord:
    if isinstance(obj, TintRecord):
        return obj

    raw_pct = _percentage_field(obj)
    if raw_pct is None and key_hint is not None:
        raw_pct = key_hint

    measurements = tuple(
        m for m in (_measurement_of(x) for x in (obj.get("measurements") or ()))
        if m is not None
    ) if isinstance(obj.get("measurements"), list) else ()

    # measurement spectra take precedence over a duplicated top-level copy
    spectral = next((m.spectral for m in measurements if m.spectral), None)
    if spectral is None:
        spectral = _spectral_of(obj)
    if spectral is None:
        spectral = parse_spectral_string(obj.get("spectral_string"))

    background = _first_truthy(obj, BACKGROUND_FIELDS)
    color = _first_truthy(obj, COLOR_FIELDS)
    name = obj.get("name")
    tint_id = obj.get("id")

    return TintRecord(
        percentage=tint_percentage(raw_pct),
        background_name=None if background is None else str(background),
        spectral=spectral,
        lab=_lab_of(obj),
        color_hex=color if isinstance(color, str) else None,
        measurements=measurements,
        name=None if name is None else str(name),
        tint_id=None if tint_id is None else str(tint_id),
        is_adapted=bool(obj.get("isAdapted", False)),
    )


# ---------------------------------------------------------------------------
# Normalisation
# ---------------------------------------------------------------------------
def _candidates(raw: Any) -> List[Tuple[Any, Any]]:
    """(object, percentage key hint) pairs, before classification."""
    if isinstance(raw, (list, tuple)):
        flat: List[Any] = []
        for item in raw:
            flat.extend(item if isinstance(item, (list, tuple)) else [item])
        out: List[Tuple[Any, Any]] = []
        for item in flat:
            if isinstance(item, Mapping) and isinstance(item.get("tints"), list):
                out.extend((t, None) for t in item["tints"])
            elif item:
                out.append((item, None))
        return out

    if not isinstance(raw, Mapping):
        return []

    wrapped = raw.get("tints")
    if isinstance(wrapped, list):
        return [(t, None) for t in wrapped]
    if isinstance(wrapped, Mapping) and wrapped:
        return [(v, k) for k, v in wrapped.items()]

    entries = [(k, v) for k, v in raw.items() if k not in METADATA_KEYS]
    direct = [(v, k) for k, v in entries if is_tint_like(v)]
    if direct:
        return direct

    # one level of flattening, then one more level of ``tints`` wrapping
    flattened: List[Any] = []
    for _, v in entries:
        flattened.extend(v if isinstance(v, (list, tuple)) else [v])
    flattened = [v for v in flattened if isinstance(v, Mapping)]
    loose = [(v, None) for v in flattened if is_tint_like(v)]
    if loose:
        return loose
    if len(flattened) == 1:
        inner = flattened[0].get("tints")
        if isinstance(inner, list):
            return [(t, None) for t in inner]
        if isinstance(inner, Mapping):
            return [(v, k) for k, v in inner.items()]
    return []


def normalize_tints(raw: Any) -> List[TintRecord]:
    """
    Canonical, deduplicated, sorted tint list from any supported shape.

    Malformed input yields an empty list.
    """
    if raw is None or raw == "":
        return []
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            logger.warning("Tint data is not valid JSON; ignoring it")
            return []

    try:
        records = [
            _record_of(obj, hint)
            for obj, hint in _candidates(raw)
            if is_tint_like(obj)
        ]
    except (TypeError, ValueError, AttributeError) as exc:
        logger.warning("Malformed tint data (%s: %s); ignoring it", type(exc).__name__, exc)
        return []

    return _deduplicate(records)


def _deduplicate(records: Sequence[TintRecord]) -> List[TintRecord]:
    kept: Dict[Tuple[float, str], TintRecord] = {}
    for record in records:
        key = record.dedup_key
        existing = kept.get(key)
        if existing is None or record.completeness_score > existing.completeness_score:
            kept[key] = record
    return sorted(kept.values(), key=lambda r: (r.percentage, r.background_key))


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------
def measurement_by_mode(measurements: Sequence[ModeMeasurement],
                        mode: Any = None) -> Optional[ModeMeasurement]:
    """
    Pick a measurement: exact mode with spectrum, exact mode with Lab,
    any spectrum, any Lab.
    """
    wanted = normalize_mode(mode)
    strategies = []
    if wanted is not None:
        strategies.append(lambda m: m.mode == wanted and bool(m.spectral))
        strategies.append(lambda m: m.mode == wanted and m.lab is not None)
    strategies.append(lambda m: bool(m.spectral))
    strategies.append(lambda m: m.lab is not None)
    for accept in strategies:
        for m in measurements:
            if accept(m):
                return m
    return None


def find_tint(records: Iterable[TintRecord], percentage: float,
              background: Optional[str] = None) -> Optional[TintRecord]:
    """First record at ``percentage`` (and ``background`` when given)."""
    for record in records:
        if record.percentage != percentage:
            continue
        if background is None or record.background == background:
            return record
    return None


def substrate_spectra_by_background(records: Iterable[TintRecord]) -> Dict[str, SpectralCurve]:
    """0 % spectra keyed by background name."""
    out: Dict[str, SpectralCurve] = {}
    for record in records:
        if record.percentage == 0 and record.has_spectral:
            out.setdefault(record.background, record.spectral)
    return out


def imported_substrate_spectral(records: Iterable[TintRecord]) -> Optional[SpectralCurve]:
    """
    Spectrum of the imported bare substrate: the 0 % tint on the base
    background, else any 0 % tint with a spectrum.
    """
    by_background = substrate_spectra_by_background(records)
    if not by_background:
        return None
    for name in (BASE_BACKGROUND, BASE_BACKGROUND.lower()):
        if name in by_background:
            return by_background[name]
    return next(iter(by_background.values()))
