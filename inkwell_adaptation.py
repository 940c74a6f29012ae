# -*- coding: utf-8 -*-
"""
Inkwell: Spectral colour science for print substrates
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Substrate Adaptation Model
==========================
Predicts how an ink measured on one substrate would look on another.

Two-step model (all arithmetic in normalised [0, 1] space, each curve's
scale detected on its own):

    1. ratio transfer     ratio   = ink / source substrate
                          adapted = clamp(target * ratio, 0, 1)
    2. area coverage      eff     = min(max_coverage, tint/100 * optical_gain)
                          result  = adapted * eff + target * (1 - eff)

The result is returned on the target substrate's original scale.  When the
ink was measured on a layered background (grey, black) the background's
``AdditionalInkLayer`` is re-applied multiplicatively afterwards.

``SubstrateAdapter`` tries its strategies in a fixed order and reports the
one it used:

    pure-substrate  tint is 0 %: the target substrate itself
    two-step        all three curves present with common wavelengths
    coverage-only   no usable source substrate: mix raw ink and target
    passthrough     target or ink missing: whichever exists
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Final, List, Mapping, Optional, Tuple, Union

import numpy as np

from inkwell_cache import AdaptationCache, fingerprint_adaptation
from inkwell_config import AdaptationOptions
from inkwell_spectral import CurveLike, SpectralCurve, as_curve, from_unit_scale, to_unit_scale
from inkwell_tints import BASE_BACKGROUND, ModeMeasurement, TintRecord, normalize_tints

__all__ = [
    "PURE_SUBSTRATE",
    "TWO_STEP",
    "COVERAGE_ONLY",
    "PASSTHROUGH",
    "AdaptationResult",
    "AdditionalInkLayer",
    "SubstrateAdapter",
    "compute_ink_layer",
    "apply_ink_layer",
    "adapt_tints",
    "substrate_change_scalars",
    "apply_substrate_scalars",
]

logger = logging.getLogger(__name__)

PURE_SUBSTRATE: Final[str] = "pure-substrate"
TWO_STEP: Final[str] = "two-step"
COVERAGE_ONLY: Final[str] = "coverage-only"
PASSTHROUGH: Final[str] = "passthrough"

# Reflectance at or below this is treated as zero when dividing.
NEAR_ZERO: Final[float] = 1e-6

_BASE_NAMES: Final[Tuple[str, str]] = (BASE_BACKGROUND, BASE_BACKGROUND.lower())


# =============================================================================
# 1.  Helpers
# =============================================================================
def _common_wavelengths(*curves: SpectralCurve) -> np.ndarray:
    common = curves[0].wavelengths
    for curve in curves[1:]:
        common = np.intersect1d(common, curve.wavelengths, assume_unique=True)
    return common


def _values_on(curve: SpectralCurve, wavelengths: np.ndarray, fill: float = 0.0) -> np.ndarray:
    """Values of ``curve`` at ``wavelengths``; ``fill`` where it has no sample."""
    out = np.full(wavelengths.shape, fill, dtype=np.float64)
    if not curve:
        return out
    idx = np.searchsorted(curve.wavelengths, wavelengths)
    idx_c = np.minimum(idx, curve.wavelengths.size - 1)
    hit = curve.wavelengths[idx_c] == wavelengths
    out[hit] = curve.values[idx_c[hit]]
    return out


def _safe_ratio(numerator: np.ndarray, denominator: np.ndarray, fallback: np.ndarray) -> np.ndarray:
    usable = denominator > NEAR_ZERO
    return np.where(usable, numerator / np.where(usable, denominator, 1.0), fallback)


def _check_tint(tint_percent: Any) -> Optional[float]:
    """Tint clamped to [0, 100]; None when it is not a finite number."""
    try:
        tint = float(tint_percent)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(tint):
        return None
    return min(max(tint, 0.0), 100.0)


# =============================================================================
# 2.  Additional ink layer
# =============================================================================
@dataclass(slots=True, frozen=True)
class AdditionalInkLayer:
    """
    Per-wavelength darkening of a layered background relative to the bare
    substrate (layered 0 % / base 0 %).
    """
    ratio: SpectralCurve
    background_name: Optional[str] = None

    def apply(self, curve: CurveLike) -> SpectralCurve:
        return apply_ink_layer(curve, self)


def compute_ink_layer(base_substrate: CurveLike, layered_substrate: CurveLike,
                      background_name: Optional[str] = None) -> Optional[AdditionalInkLayer]:
    """
    Ratio layered / base over their common wavelengths; 1.0 where the base
    is effectively black.  None when either curve is missing.
    """
    base = as_curve(base_substrate)
    layered = as_curve(layered_substrate)
    if not base or not layered:
        return None
    common = _common_wavelengths(base, layered)
    base_u, _ = to_unit_scale(base)
    layered_u, _ = to_unit_scale(layered)
    b = base_u.restrict(common).values
    l = layered_u.restrict(common).values
    ratio = _safe_ratio(l, b, np.ones_like(b))
    return AdditionalInkLayer(SpectralCurve(common, ratio), background_name)


def apply_ink_layer(curve: CurveLike, layer: Optional[AdditionalInkLayer]) -> SpectralCurve:
    """
    Multiply ``curve`` by the layer ratio (clamped, on the curve's own
    scale).  Only wavelengths known to both survive.
    """
    curve = as_curve(curve)
    if layer is None or not curve:
        return curve
    unit, scale = to_unit_scale(curve)
    common = _common_wavelengths(unit, layer.ratio)
    darkened = np.clip(unit.restrict(common).values * layer.ratio.restrict(common).values, 0.0, 1.0)
    return from_unit_scale(SpectralCurve(common, darkened), scale)


# =============================================================================
# 3.  SubstrateAdapter
# =============================================================================
@dataclass(slots=True, frozen=True)
class AdaptationResult:
    curve: SpectralCurve
    strategy: str


_Strategy = Callable[["SubstrateAdapter", SpectralCurve, SpectralCurve, SpectralCurve, float],
                     Optional[SpectralCurve]]


class SubstrateAdapter:
    """
    Ink-on-substrate prediction with an optional memo.

    The adapter holds no mutable state of its own; results are memoised in
    the ``AdaptationCache`` it was given (if any), which may be shared.
    """

    STRATEGIES: Final[Tuple[str, ...]] = (PURE_SUBSTRATE, TWO_STEP, COVERAGE_ONLY, PASSTHROUGH)

    __slots__ = ("options", "cache")

    def __init__(self, options: Optional[AdaptationOptions] = None,
                 cache: Optional[AdaptationCache] = None) -> None:
        self.options = options or AdaptationOptions()
        self.cache = cache

    @classmethod
    def with_cache(cls, options: Optional[AdaptationOptions] = None) -> "SubstrateAdapter":
        options = options or AdaptationOptions()
        return cls(options, AdaptationCache.from_options(options))

    # -- public ------------------------------------------------------------
    def adapt(self, source_substrate: CurveLike, source_ink: CurveLike,
              target_substrate: CurveLike, tint_percent: float,
              ink_layer: Optional[AdditionalInkLayer] = None) -> SpectralCurve:
        return self.adapt_with_trace(source_substrate, source_ink, target_substrate,
                                     tint_percent, ink_layer).curve

    def adapt_with_trace(self, source_substrate: CurveLike, source_ink: CurveLike,
                         target_substrate: CurveLike, tint_percent: float,
                         ink_layer: Optional[AdditionalInkLayer] = None) -> AdaptationResult:
        """
        Run the first applicable strategy and return its curve with the
        strategy name.
        """
        src = as_curve(source_substrate)
        ink = as_curve(source_ink)
        tgt = as_curve(target_substrate)
        tint = _check_tint(tint_percent)
        if tint is None:
            logger.warning("Tint percentage %r is not a finite number, passing curves through",
                           tint_percent)
            return AdaptationResult(self._passthrough(src, ink, tgt, 0.0), PASSTHROUGH)

        for name in self.STRATEGIES:
            curve = self._STRATEGY_IMPL[name](self, src, ink, tgt, tint)
            if curve is not None:
                break
        else:  # pragma: no cover - passthrough always answers
            raise RuntimeError("no adaptation strategy applied")

        if ink_layer is not None and name != PASSTHROUGH:
            curve = apply_ink_layer(curve, ink_layer)
        logger.debug("Adapted %.1f%% tint via %s (%d points)", tint, name, len(curve))
        return AdaptationResult(curve, name)

    # -- strategies --------------------------------------------------------
    def _pure_substrate(self, src: SpectralCurve, ink: SpectralCurve,
                        tgt: SpectralCurve, tint: float) -> Optional[SpectralCurve]:
        return tgt if tint == 0.0 else None

    def _two_step(self, src: SpectralCurve, ink: SpectralCurve,
                  tgt: SpectralCurve, tint: float) -> Optional[SpectralCurve]:
        if not (src and ink and tgt):
            return None
        common = _common_wavelengths(ink, src, tgt)
        if common.size == 0:
            logger.warning("No common wavelengths between ink, source and target substrate")
            return None

        key = None
        if self.cache is not None:
            key = fingerprint_adaptation(src, ink, tgt, tint, self.options)
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        src_u, _ = to_unit_scale(src)
        ink_u, _ = to_unit_scale(ink)
        tgt_u, tgt_scale = to_unit_scale(tgt)
        s = src_u.restrict(common).values
        i = ink_u.restrict(common).values
        t = tgt_u.restrict(common).values

        ratio = _safe_ratio(i, s, i)
        adapted = np.clip(t * ratio, 0.0, 1.0)
        eff = self.options.effective_coverage(tint)
        mixed = adapted * eff + t * (1.0 - eff)
        result = from_unit_scale(SpectralCurve(common, mixed), tgt_scale)

        if key is not None:
            self.cache.set(key, result)
        return result

    def _coverage_only(self, src: SpectralCurve, ink: SpectralCurve,
                       tgt: SpectralCurve, tint: float) -> Optional[SpectralCurve]:
        if not (ink and tgt):
            return None
        wavelengths = np.union1d(ink.wavelengths, tgt.wavelengths)
        ink_u, _ = to_unit_scale(ink)
        tgt_u, tgt_scale = to_unit_scale(tgt)
        eff = self.options.effective_coverage(tint)
        mixed = _values_on(tgt_u, wavelengths) * (1.0 - eff) + _values_on(ink_u, wavelengths) * eff
        return from_unit_scale(SpectralCurve(wavelengths, mixed), tgt_scale)

    def _passthrough(self, src: SpectralCurve, ink: SpectralCurve,
                     tgt: SpectralCurve, tint: float) -> Optional[SpectralCurve]:
        if ink:
            return ink
        if tgt:
            return tgt
        return SpectralCurve.empty()

    _STRATEGY_IMPL: Final[Dict[str, _Strategy]] = {
        PURE_SUBSTRATE: _pure_substrate,
        TWO_STEP: _two_step,
        COVERAGE_ONLY: _coverage_only,
        PASSTHROUGH: _passthrough,
    }


# =============================================================================
# 4.  Tint sets
# =============================================================================
def _is_spectral_mapping(obj: object) -> bool:
    """More than half of the keys are numeric (a bare curve, not a map of curves)."""
    if isinstance(obj, SpectralCurve):
        return bool(obj)
    if not isinstance(obj, Mapping) or not obj:
        return False
    numeric = 0
    for key in obj:
        try:
            float(key)
        except (TypeError, ValueError):
            continue
        numeric += 1
    return numeric / len(obj) > 0.5


def _substrate_map(substrates: Union[Mapping[str, CurveLike], SpectralCurve]) -> Dict[str, SpectralCurve]:
    if _is_spectral_mapping(substrates):
        return {BASE_BACKGROUND: as_curve(substrates)}
    out: Dict[str, SpectralCurve] = {}
    for name, curve in substrates.items():
        curve = as_curve(curve)
        if curve:
            out[str(name)] = curve
    return out


def adapt_tints(records: Any,
                substrate_by_background: Union[Mapping[str, CurveLike], SpectralCurve, None],
                target_substrate: CurveLike,
                adapter: Optional[SubstrateAdapter] = None,
                ensure_solid: bool = True) -> List[TintRecord]:
    """
    Adapt a whole tint set to a new substrate.

    Every spectrum is adapted against the bare (``Substrate``) 0 % curve;
    tints measured over a layered background then get that background's
    ink layer back.  Per-mode measurements are adapted one by one.  Lab and
    colour strings are dropped from the output, which carries spectra only.

    Args:
        records: ``TintRecord`` list or any raw shape ``normalize_tints``
            accepts.
        substrate_by_background: 0 % curves keyed by background name, or a
            single bare curve.
        target_substrate: Curve of the substrate to adapt to.
        adapter: Adapter to use; a default one is created when omitted.
        ensure_solid: Append a 100 % copy of the highest tint on the bare
            substrate (any background when there is none) when the result
            has no 100 % tint.

    Returns:
        Adapted records; tints without any spectrum are left out.  Missing
        inputs give an empty list.
    """
    target = as_curve(target_substrate)
    records = normalize_tints(records if not isinstance(records, TintRecord) else [records])
    if not records or not substrate_by_background or not target:
        logger.warning("Tint adaptation skipped: missing tints, substrates or target substrate")
        return []

    substrates = _substrate_map(substrate_by_background)
    base = next((substrates[n] for n in _BASE_NAMES if n in substrates),
                next(iter(substrates.values()), None))
    if base is None or not base:
        logger.warning("Tint adaptation skipped: no base substrate spectrum")
        return []

    layers: Dict[str, AdditionalInkLayer] = {}
    for name, curve in substrates.items():
        if name in _BASE_NAMES:
            continue
        layer = compute_ink_layer(base, curve, name)
        if layer is not None:
            layers[name] = layer

    adapter = adapter or SubstrateAdapter()

    def adapt_one(curve: SpectralCurve, background: str, pct: float) -> SpectralCurve:
        return adapter.adapt(base, curve, target, pct, layers.get(background))

    adapted: List[TintRecord] = []
    for record in records:
        measurements = tuple(
            ModeMeasurement(
                mode=m.mode,
                spectral=adapt_one(m.spectral, m.background_name or record.background, record.percentage),
                background_name=m.background_name or record.background_name,
            )
            for m in record.measurements if m.spectral
        )
        if measurements:
            spectral = measurements[0].spectral
        elif record.has_spectral:
            spectral = adapt_one(record.spectral, record.background, record.percentage)
        else:
            logger.debug("Skipping %.1f%% tint without spectral data", record.percentage)
            continue
        adapted.append(replace(record, spectral=spectral, lab=None, color_hex=None,
                               measurements=measurements, is_adapted=True))

    if ensure_solid and adapted and not any(r.percentage == 100.0 for r in adapted):
        on_base = [r for r in adapted if r.background in _BASE_NAMES]
        highest = max(on_base or adapted, key=lambda r: r.percentage)
        adapted.append(replace(highest, percentage=100.0,
                               name=f"{highest.name} 100%" if highest.name else None))
        logger.debug("Added 100%% solid copied from the %.1f%% tint", highest.percentage)

    logger.debug("Adapted %d of %d tints", len(adapted), len(records))
    return adapted


# =============================================================================
# 5.  Substrate scalars
# =============================================================================
def substrate_change_scalars(imported_substrate: CurveLike,
                             selected_substrate: CurveLike) -> Optional[SpectralCurve]:
    """
    Per-wavelength selected / imported substrate ratio (1.0 where the
    imported substrate is effectively black).  None when either is missing.
    """
    imported = as_curve(imported_substrate)
    selected = as_curve(selected_substrate)
    if not imported or not selected:
        return None
    common = _common_wavelengths(imported, selected)
    imp_u, _ = to_unit_scale(imported)
    sel_u, _ = to_unit_scale(selected)
    imp = imp_u.restrict(common).values
    sel = sel_u.restrict(common).values
    return SpectralCurve(common, _safe_ratio(sel, imp, np.ones_like(imp)))


def apply_substrate_scalars(tint_spectral: CurveLike,
                            scalars: Optional[SpectralCurve],
                            selected_substrate: CurveLike,
                            tint_percent: float,
                            options: Optional[AdaptationOptions] = None) -> SpectralCurve:
    """
    Substrate-scalar variant of the adaptation.

    The tint's own spectrum is scaled by ``scalars`` and then blended with
    the selected substrate using
    ``blend = eff + (1 - eff) * substrate_gain``, ``eff = min(tint/100,
    max_coverage)``.  The result keeps the tint's original scale.  With any
    input missing the tint spectrum is returned unchanged; a 0 % tint gives
    the selected substrate.
    """
    tint_curve = as_curve(tint_spectral)
    selected = as_curve(selected_substrate)
    if not tint_curve or scalars is None or not scalars or not selected:
        return tint_curve
    tint = _check_tint(tint_percent)
    if tint == 0.0:
        return selected

    options = options or AdaptationOptions()
    tint_u, tint_scale = to_unit_scale(tint_curve)
    sel_u, _ = to_unit_scale(selected)

    wavelengths = scalars.wavelengths
    ink = np.clip(_values_on(tint_u, wavelengths) * scalars.values, 0.0, 1.0)
    substrate = _values_on(sel_u, wavelengths)

    eff = min(tint / 100.0, options.max_coverage)
    blend = eff + (1.0 - eff) * options.substrate_gain
    mixed = ink * blend + substrate * (1.0 - blend)
    return from_unit_scale(SpectralCurve(wavelengths, mixed), tint_scale)
