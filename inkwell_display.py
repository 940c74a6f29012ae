# -*- coding: utf-8 -*-
"""
Inkwell: Spectral colour science for print substrates
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Display colours for stored colour objects.

A colour object (as stored by the host) may carry tint sets, per-mode
measurements, a bare spectrum, Lab values or just a hex string.  The
display colour is taken from the first of these strategies that answers:

    spectral    solid spectrum under the organisation's settings, shown
                through D65
    stored-lab  stored Lab, adapted from its own illuminant to D65
    stored-hex  the stored colour string
    fallback    neutral grey
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Final, Iterable, Mapping, Optional, Tuple

from inkwell_colorengine import LabColor, lab_to_hex_d65, normalize_hex
from inkwell_config import OrganizationDefaults
from inkwell_datamode import DataMode
from inkwell_spectral import SpectralCurve, TableSource, resolve_table, spectral_to_lab
from inkwell_tints import (
    MODE_FIELDS,
    TintRecord,
    normalize_mode,
    normalize_tints,
    parse_spectral_string,
)

__all__ = [
    "FALLBACK_HEX",
    "DisplayColor",
    "select_solid_spectral",
    "color_spectral",
    "compute_display_color",
]

logger = logging.getLogger(__name__)

FALLBACK_HEX: Final[str] = "#E5E7EB"


@dataclass(slots=True, frozen=True)
class DisplayColor:
    hex: str
    lab: Optional[LabColor]
    source: str


def select_solid_spectral(records: Iterable[TintRecord], mode: Any = None) -> Optional[SpectralCurve]:
    """
    Spectrum that best represents the ink's solid.

    A 100 % tint measured in ``mode`` wins, then any 100 % spectrum.  The
    0 % spectrum is used only when the set has no printed tint at all.
    """
    records = list(records)
    solids = [r for r in records if r.percentage == 100.0]

    wanted = normalize_mode(mode)
    if wanted is not None:
        for record in solids:
            for m in record.measurements:
                if m.mode == wanted and m.spectral:
                    return m.spectral
    for record in solids:
        if record.has_spectral:
            return record.spectral

    if not any(r.percentage > 0.0 for r in records):
        for record in records:
            if record.percentage == 0.0 and record.has_spectral:
                return record.spectral
    return None


def _non_empty_curve(value: Any) -> Optional[SpectralCurve]:
    if isinstance(value, str):
        return parse_spectral_string(value)
    if isinstance(value, (Mapping, SpectralCurve)):
        curve = SpectralCurve.from_mapping(value)
        return curve if curve else None
    return None


def color_spectral(color: Mapping[str, Any], data_mode: Any = DataMode.IMPORTED,
                   mode: Any = None) -> Optional[SpectralCurve]:
    """
    Locate the spectrum to display for ``color``.

    Looks at the active tint set (adapted or imported), then the
    measurement in ``mode``, then the object's own spectral fields, and
    finally the 0 % tint of its substrate tints.
    """
    key = "adapted_tints" if DataMode.coerce(data_mode) is DataMode.ADAPTED else "imported_tints"
    curve = select_solid_spectral(normalize_tints(color.get(key)), mode)
    if curve is not None:
        return curve

    wanted = normalize_mode(mode)
    measurements = color.get("measurements")
    if wanted is not None and isinstance(measurements, list):
        for m in measurements:
            if not isinstance(m, Mapping):
                continue
            m_mode = next((m[k] for k in MODE_FIELDS if m.get(k) is not None), None)
            if normalize_mode(m_mode) == wanted:
                curve = _non_empty_curve(m.get("spectral_data") or m.get("spectralData"))
                if curve is not None:
                    return curve
                break

    for name in ("spectral_data", "spectralData", "spectral_string"):
        curve = _non_empty_curve(color.get(name))
        if curve is not None:
            return curve

    for record in normalize_tints(color.get("substrateTints")):
        if record.percentage == 0.0 and record.has_spectral:
            return record.spectral
    return None


def _stored_lab(color: Mapping[str, Any]) -> Optional[LabColor]:
    lab = LabColor.from_mapping(color.get("lab"))
    if lab is None:
        lab = LabColor.from_mapping({"L": color.get("lab_l"), "a": color.get("lab_a"),
                                     "b": color.get("lab_b")})
    if lab is None:
        lab = LabColor.from_mapping({"L": color.get("L"), "a": color.get("a"), "b": color.get("b")})
    return lab


def _source_illuminant(color: Mapping[str, Any]) -> str:
    settings = color.get("measurement_settings")
    if isinstance(settings, Mapping) and settings.get("illuminant"):
        return str(settings["illuminant"])
    return str(color.get("lab_illuminant") or "D50")


# -- strategies ---------------------------------------------------------------
_Context = Tuple[Mapping[str, Any], OrganizationDefaults, TableSource, Optional[SpectralCurve]]


def _from_spectral(ctx: _Context) -> Optional[DisplayColor]:
    color, defaults, tables, spectral = ctx
    if spectral is None:
        return None
    if tables is None:
        logger.debug("Spectral data present but no weighting tables available")
        return None
    table = resolve_table(tables, defaults.illuminant, defaults.observer, defaults.astm_table,
                          fallback=False)
    if table is None:
        logger.warning("No weighting table for %s/%s/%s", defaults.illuminant,
                       defaults.observer, defaults.astm_table)
        return None
    lab = spectral_to_lab(spectral, table)
    if lab.is_sentinel:
        return None
    return DisplayColor(lab_to_hex_d65(lab.L, lab.a, lab.b, defaults.illuminant), lab, "spectral")


def _from_stored_lab(ctx: _Context) -> Optional[DisplayColor]:
    color = ctx[0]
    lab = _stored_lab(color)
    if lab is None:
        return None
    return DisplayColor(lab_to_hex_d65(lab.L, lab.a, lab.b, _source_illuminant(color)), lab, "stored-lab")


def _from_stored_hex(ctx: _Context) -> Optional[DisplayColor]:
    color = ctx[0]
    for key in ("hex", "color_hex", "colorHex"):
        stored = color.get(key)
        if stored in (None, ""):
            continue
        hex_color = normalize_hex(stored)
        if hex_color is not None:
            return DisplayColor(hex_color, None, "stored-hex")
        logger.debug("Ignoring malformed stored hex %r", stored)
    return None


DISPLAY_STRATEGIES: Final[Tuple[Tuple[str, Callable[[_Context], Optional[DisplayColor]]], ...]] = (
    ("spectral", _from_spectral),
    ("stored-lab", _from_stored_lab),
    ("stored-hex", _from_stored_hex),
)


def compute_display_color(color: Any,
                          defaults: Optional[OrganizationDefaults] = None,
                          tables: TableSource = None,
                          data_mode: Any = DataMode.IMPORTED,
                          mode: Any = None,
                          spectral_override: Any = None) -> DisplayColor:
    """
    Display colour of a stored colour object.

    Args:
        color: Colour object mapping.
        defaults: Organisation measurement settings used for spectra.
        tables: Weighting tables (table, library or raw rows).
        data_mode: Which tint set of an ink-based colour to use.
        mode: Preferred measurement mode (M0-M3).
        spectral_override: Spectrum to use instead of searching ``color``.
    """
    if not isinstance(color, Mapping):
        logger.warning("Cannot compute a display colour for %s", type(color).__name__)
        return DisplayColor(FALLBACK_HEX, None, "fallback")

    defaults = defaults or OrganizationDefaults()
    spectral = _non_empty_curve(spectral_override) if spectral_override is not None else None
    if spectral is None:
        spectral = color_spectral(color, data_mode, mode)

    ctx: _Context = (color, defaults, tables, spectral)
    for name, strategy in DISPLAY_STRATEGIES:
        result = strategy(ctx)
        if result is not None:
            logger.debug("Display colour %s from %s", result.hex, name)
            return result
    logger.debug("Display colour falls back to %s", FALLBACK_HEX)
    return DisplayColor(FALLBACK_HEX, None, "fallback")
