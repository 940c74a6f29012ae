# -*- coding: utf-8 -*-
"""
Inkwell: Spectral colour science for print substrates
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Bounded LRU memo for substrate adaptation results.

An ``AdaptationCache`` is an ordinary object owned by whoever runs the
adaptation; there is no module-level instance.  ``get`` and ``set`` each
run under one ``RLock``, so a cache may be shared between threads.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Final, Hashable, Optional, Tuple

from inkwell_config import AdaptationOptions
from inkwell_spectral import SpectralCurve

__all__ = [
    "CacheStats",
    "AdaptationCache",
    "fingerprint_adaptation",
]

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY: Final[int] = 500
FINGERPRINT_SAMPLES: Final[int] = 8


@dataclass(slots=True, frozen=True)
class CacheStats:
    size: int
    capacity: int
    hits: int
    misses: int

    @property
    def hit_ratio(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


def _curve_token(curve: SpectralCurve) -> str:
    # point count, wavelength span, spread samples and the sum over all points
    if not curve:
        return "0"
    samples = ",".join(f"{v:.6g}" for v in curve.samples(FINGERPRINT_SAMPLES))
    span = f"{int(curve.wavelengths[0])}-{int(curve.wavelengths[-1])}"
    return f"{len(curve)}@{span}:{samples}:{float(curve.values.sum()):.10g}"


def fingerprint_adaptation(source_substrate: SpectralCurve,
                           source_ink: SpectralCurve,
                           target_substrate: SpectralCurve,
                           tint_percent: float,
                           options: AdaptationOptions) -> str:
    """
    Cache key for one adaptation: the source substrate's wavelength set,
    then for each curve its point count, wavelength span, values sampled
    across the whole curve and the sum of all values, then the tint and
    the mixing options.
    """
    wl_token = ",".join(str(int(w)) for w in source_substrate.wavelengths)
    parts = (
        wl_token,
        _curve_token(source_substrate),
        _curve_token(source_ink),
        _curve_token(target_substrate),
        f"{float(tint_percent):.6g}",
        f"{options.max_coverage:.6g}/{options.optical_gain:.6g}",
    )
    return "|".join(parts)


class AdaptationCache:
    """
    Least-recently-used map from fingerprint to adapted curve.

    Hits promote the entry to most recently used; inserting into a full
    cache evicts the least recently used entry first.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if int(capacity) < 1:
            raise ValueError(f"AdaptationCache capacity must be >= 1, got {capacity}")
        self._entries: OrderedDict[Hashable, SpectralCurve] = OrderedDict()
        self._capacity = int(capacity)
        self._hits = 0
        self._misses = 0
        self._lock = threading.RLock()

    @classmethod
    def from_options(cls, options: AdaptationOptions) -> "AdaptationCache":
        return cls(options.cache_capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        # membership test only, no promotion and no hit accounting
        with self._lock:
            return key in self._entries

    def get(self, key: Hashable) -> Optional[SpectralCurve]:
        with self._lock:
            value = self._entries.get(key)
            if value is None:
                self._misses += 1
                return None
            self._entries.move_to_end(key)
            self._hits += 1
            return value

    def set(self, key: Hashable, value: SpectralCurve) -> None:
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
            elif len(self._entries) >= self._capacity:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Adaptation cache full, evicted %.40s", evicted)
            self._entries[key] = value

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def keys(self) -> Tuple[Hashable, ...]:
        """Keys from least to most recently used."""
        with self._lock:
            return tuple(self._entries)

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(size=len(self._entries), capacity=self._capacity,
                              hits=self._hits, misses=self._misses)
