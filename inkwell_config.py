# -*- coding: utf-8 -*-
"""
Inkwell: Spectral colour science for print substrates
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Configuration records supplied by the host application.

``OrganizationDefaults`` carries the measurement settings an organisation
prints under; ``AdaptationOptions`` the substrate-adaptation tuning.  Both
are frozen and validated on construction, and both accept the loosely
named dictionaries stored by the host (``from_mapping``).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Final, Mapping, Optional

__all__ = [
    "OrganizationDefaults",
    "AdaptationOptions",
]

_MISSING: Final[object] = object()


def _first(data: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        value = data.get(name, _MISSING)
        if value is not _MISSING and value is not None and value != "":
            return value
    return _MISSING


@dataclass(slots=True, frozen=True)
class OrganizationDefaults:
    """Measurement settings used for colorimetry and Delta-E."""
    illuminant: str = "D50"
    observer: str = "2"
    astm_table: str = "5"
    delta_e_method: str = "dE76"

    def __post_init__(self) -> None:
        for name in ("illuminant", "observer", "astm_table", "delta_e_method"):
            value = getattr(self, name)
            if not str(value).strip():
                raise ValueError(f"OrganizationDefaults.{name} must not be empty")
            object.__setattr__(self, name, str(value).strip())

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "OrganizationDefaults":
        """
        Read organisation settings, accepting both the plain and the
        ``default_*`` spelling of each field.  Missing fields keep their
        defaults.
        """
        if not data:
            return cls()
        kwargs = {}
        for field_name, aliases in (
            ("illuminant", ("illuminant", "default_illuminant")),
            ("observer", ("observer", "default_observer")),
            ("astm_table", ("astm_table", "astmTable", "table", "default_astm_table")),
            ("delta_e_method", ("delta_e_method", "deltaEMethod", "default_delta_e")),
        ):
            value = _first(data, *aliases)
            if value is not _MISSING:
                kwargs[field_name] = str(value)
        return cls(**kwargs)


@dataclass(slots=True, frozen=True)
class AdaptationOptions:
    """
    Tuning for the area-coverage model.

    Attributes:
        max_coverage: Upper bound of effective optical coverage, (0, 1].
        optical_gain: Multiplier from nominal to effective coverage, > 0.
        cache_capacity: Entries kept by an ``AdaptationCache`` built from
            these options.
        substrate_gain: Blend gain of the substrate-scalar variant.
    """
    max_coverage: float = 0.95
    optical_gain: float = 1.1
    cache_capacity: int = 500
    substrate_gain: float = 0.15

    def __post_init__(self) -> None:
        if not (math.isfinite(self.max_coverage) and 0.0 < self.max_coverage <= 1.0):
            raise ValueError(f"max_coverage must be in (0, 1], got {self.max_coverage}")
        if not (math.isfinite(self.optical_gain) and self.optical_gain > 0.0):
            raise ValueError(f"optical_gain must be positive, got {self.optical_gain}")
        if int(self.cache_capacity) < 1:
            raise ValueError(f"cache_capacity must be >= 1, got {self.cache_capacity}")
        if not (math.isfinite(self.substrate_gain) and 0.0 <= self.substrate_gain <= 1.0):
            raise ValueError(f"substrate_gain must be in [0, 1], got {self.substrate_gain}")
        object.__setattr__(self, "cache_capacity", int(self.cache_capacity))

    def effective_coverage(self, tint_percent: float) -> float:
        """min(max_coverage, tint / 100 * optical_gain)."""
        return min(self.max_coverage, (tint_percent / 100.0) * self.optical_gain)

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "AdaptationOptions":
        if not data:
            return cls()
        kwargs = {}
        for field_name, aliases, cast in (
            ("max_coverage", ("max_coverage", "maxCoverage"), float),
            ("optical_gain", ("optical_gain", "opticalGain"), float),
            ("cache_capacity", ("cache_capacity", "cacheCapacity", "maxSize"), int),
            ("substrate_gain", ("substrate_gain", "substrateGain"), float),
        ):
            value = _first(data, *aliases)
            if value is not _MISSING:
                kwargs[field_name] = cast(value)
        return cls(**kwargs)
