# -*- coding: utf-8 -*-
"""
Inkwell: Spectral colour science for print substrates
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Imported vs. adapted data.

An ink imported on one substrate and assigned to a different, existing
substrate condition is shown with adapted data once the two substrates
differ by more than 1 Delta-E.  Every missing or unusable input degrades
to showing the imported data.
"""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass, replace
from typing import Any, Final, List, Optional, Sequence

from inkwell_adaptation import SubstrateAdapter, adapt_tints
from inkwell_colorengine import LabColor, lab_to_hex_d65
from inkwell_config import OrganizationDefaults
from inkwell_metrics import safe_delta_e
from inkwell_spectral import CurveLike, TableSource, as_curve, resolve_table, spectral_to_lab
from inkwell_tints import (
    TintRecord,
    imported_substrate_spectral,
    normalize_tints,
    substrate_spectra_by_background,
)

__all__ = [
    "DataMode",
    "DataModeDecision",
    "ADAPTATION_THRESHOLD",
    "CREATE_NEW",
    "is_existing_condition",
    "substrate_delta_e",
    "should_use_adapted",
    "resolve_data_mode",
    "preferred_data_mode",
    "select_tints_for_display",
    "adapted_tints_if_needed",
]

logger = logging.getLogger(__name__)

ADAPTATION_THRESHOLD: Final[float] = 1.0
CREATE_NEW: Final[str] = "create-new"


class DataMode(str, enum.Enum):
    IMPORTED = "imported"
    ADAPTED = "adapted"

    @classmethod
    def coerce(cls, value: Any) -> "DataMode":
        """Member for ``value``; anything but "adapted" means imported."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str) and value.strip().lower() == cls.ADAPTED.value:
            return cls.ADAPTED
        if not (isinstance(value, str) and value.strip().lower() == cls.IMPORTED.value):
            logger.debug("Unknown data mode %r, showing imported data", value)
        return cls.IMPORTED


@dataclass(slots=True, frozen=True)
class DataModeDecision:
    mode: DataMode
    delta_e: Optional[float]
    reason: str


def is_existing_condition(assigned_condition: Any) -> bool:
    """True for an assigned substrate condition id, False for none or "create-new"."""
    return bool(assigned_condition) and assigned_condition != CREATE_NEW


def substrate_delta_e(imported_tints: Any,
                      target_substrate: CurveLike,
                      tables: TableSource,
                      defaults: Optional[OrganizationDefaults] = None) -> Optional[float]:
    """
    Delta-E between the imported 0 % tint and the target substrate, both
    converted under the organisation's measurement settings.

    Returns None whenever the answer is unknown: no imported substrate, no
    target, no weighting table, or a failed Lab conversion.
    """
    defaults = defaults or OrganizationDefaults()
    records = normalize_tints(imported_tints)
    imported = imported_substrate_spectral(records)
    target = as_curve(target_substrate)
    if imported is None or not target:
        logger.debug("Substrate Delta-E unknown: imported or target substrate missing")
        return None

    table = resolve_table(tables, defaults.illuminant, defaults.observer, defaults.astm_table)
    if table is None:
        logger.debug("Substrate Delta-E unknown: no weighting table for %s/%s/%s",
                     defaults.illuminant, defaults.observer, defaults.astm_table)
        return None

    imported_lab = spectral_to_lab(imported, table)
    target_lab = spectral_to_lab(target, table)
    if imported_lab.is_sentinel or target_lab.is_sentinel:
        logger.debug("Substrate Delta-E unknown: Lab conversion failed")
        return None
    return safe_delta_e(imported_lab, target_lab, defaults.delta_e_method)


def should_use_adapted(delta_e: Optional[float], is_existing: bool) -> bool:
    return (delta_e is not None and math.isfinite(delta_e)
            and delta_e > ADAPTATION_THRESHOLD and bool(is_existing))


def preferred_data_mode(delta_e: Optional[float]) -> DataMode:
    """Adapted above the threshold; unknown or NaN counts as imported."""
    if delta_e is None or not math.isfinite(delta_e):
        return DataMode.IMPORTED
    return DataMode.ADAPTED if delta_e > ADAPTATION_THRESHOLD else DataMode.IMPORTED


def resolve_data_mode(imported_tints: Any,
                      target_substrate: CurveLike,
                      tables: TableSource,
                      defaults: Optional[OrganizationDefaults] = None,
                      assigned_condition: Any = None) -> DataModeDecision:
    """
    Full decision with its Delta-E and a short reason.

    ``assigned_condition`` is the substrate condition the ink is assigned
    to: an id, ``"create-new"`` or None.
    """
    if not is_existing_condition(assigned_condition):
        decision = DataModeDecision(DataMode.IMPORTED, None, "no existing substrate condition")
    elif not as_curve(target_substrate):
        decision = DataModeDecision(DataMode.IMPORTED, None, "target substrate has no spectral data")
    else:
        delta = substrate_delta_e(imported_tints, target_substrate, tables, defaults)
        if delta is None:
            decision = DataModeDecision(DataMode.IMPORTED, None, "substrate Delta-E unknown")
        elif should_use_adapted(delta, True):
            decision = DataModeDecision(DataMode.ADAPTED, delta,
                                        f"substrates differ by {delta:.2f} Delta-E")
        else:
            decision = DataModeDecision(DataMode.IMPORTED, delta,
                                        f"substrates match within {ADAPTATION_THRESHOLD:g} Delta-E")
    logger.debug("Data mode %s (%s)", decision.mode.value, decision.reason)
    return decision


def select_tints_for_display(imported: Optional[Sequence[TintRecord]],
                             adapted: Optional[Sequence[TintRecord]],
                             mode: Any) -> List[TintRecord]:
    """Adapted tints when asked for and available, else the imported ones."""
    if DataMode.coerce(mode) is DataMode.ADAPTED and adapted:
        return list(adapted)
    return list(imported or [])


def adapted_tints_if_needed(imported_tints: Any,
                            target_substrate: CurveLike,
                            delta_e: Optional[float],
                            tables: TableSource = None,
                            defaults: Optional[OrganizationDefaults] = None,
                            adapter: Optional[SubstrateAdapter] = None) -> Optional[List[TintRecord]]:
    """
    Adapted tint set with Lab and display colour filled in, or None when
    the substrates match or the inputs are incomplete.

    Lab is computed under the organisation's settings when ``tables`` are
    given; the colour string is the D65-adapted hex of that Lab.
    """
    if preferred_data_mode(delta_e) is DataMode.IMPORTED:
        return None
    records = normalize_tints(imported_tints)
    substrates = substrate_spectra_by_background(records)
    target = as_curve(target_substrate)
    if not records or not substrates or not target:
        logger.warning("Cannot adapt tints: imported tints, imported substrate or target missing")
        return None

    adapted = adapt_tints(records, substrates, target, adapter=adapter)
    defaults = defaults or OrganizationDefaults()
    table = resolve_table(tables, defaults.illuminant, defaults.observer, defaults.astm_table)
    if table is None:
        return adapted

    out: List[TintRecord] = []
    for record in adapted:
        lab: LabColor = spectral_to_lab(record.spectral, table)
        if lab.is_sentinel:
            out.append(record)
            continue
        out.append(replace(record, lab=lab,
                           color_hex=lab_to_hex_d65(lab.L, lab.a, lab.b, defaults.illuminant)))
    return out
