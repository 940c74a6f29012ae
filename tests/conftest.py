# -*- coding: utf-8 -*-
"""Shared fixtures: small weighting tables and reflectance curves."""

from typing import Any, Callable, Dict, List, Sequence

import pytest

from inkwell_spectral import WeightingTableLibrary


def _rows(wavelengths: Sequence[int], factors: Sequence[Sequence[float]],
          white: Any = (100.0, 100.0, 100.0), illuminant: str = "D50",
          observer: str = "2", table_number: Any = 5) -> List[Dict[str, Any]]:
    rows = []
    for wl, (x, y, z) in zip(wavelengths, factors):
        row = {"wavelength": wl, "x_factor": x, "y_factor": y, "z_factor": z,
               "illuminant_name": illuminant, "observer": observer,
               "table_number": table_number}
        if white is not None:
            row.update(white_point_x=white[0], white_point_y=white[1], white_point_z=white[2])
        rows.append(row)
    return rows


@pytest.fixture
def make_rows() -> Callable[..., List[Dict[str, Any]]]:
    return _rows


@pytest.fixture
def d50_library() -> WeightingTableLibrary:
    return WeightingTableLibrary.with_builtin_fallback()


@pytest.fixture
def d50_table(d50_library):
    return d50_library.lookup("D50", "2", "5")


@pytest.fixture
def paper() -> Dict[int, float]:
    """Bright, slightly blue-white paper on the 0-100 scale."""
    return {wl: 88.0 + (4.0 if wl < 480 else 0.0) for wl in range(380, 790, 10)}


@pytest.fixture
def newsprint() -> Dict[int, float]:
    """Duller, yellowish stock on the 0-100 scale."""
    return {wl: 62.0 + 0.04 * (wl - 380) for wl in range(380, 790, 10)}


@pytest.fixture
def cyan_solid() -> Dict[int, float]:
    """Cyan ink on ``paper``: high in the blue, low in the red (0-100)."""
    return {wl: max(4.0, 70.0 - 0.2 * (wl - 380)) for wl in range(380, 790, 10)}
