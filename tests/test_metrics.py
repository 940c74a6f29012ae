# -*- coding: utf-8 -*-
import math

import numpy as np
import pytest

from inkwell_colorengine import LabColor
from inkwell_metrics import (
    DEFAULT_METHOD,
    ColorMetrics,
    canonical_method,
    delta_e,
    delta_e_76,
    delta_e_94,
    delta_e_2000,
    delta_e_cmc,
    safe_delta_e,
)

# Sharma, Wu & Dalal (2005) test data.
SHARMA_PAIRS = [
    ((50.0000, 2.6772, -79.7751), (50.0000, 0.0000, -82.7485), 2.0425),
    ((50.0000, 3.1571, -77.2803), (50.0000, 0.0000, -82.7485), 2.8615),
    ((50.0000, 2.8361, -74.0200), (50.0000, 0.0000, -82.7485), 3.4412),
    ((50.0000, 0.0000, 0.0000), (50.0000, -1.0000, 2.0000), 2.3669),
    ((50.0000, -1.0000, 2.0000), (50.0000, 0.0000, 0.0000), 2.3669),
    ((50.0000, 2.4900, -0.0010), (50.0000, -2.4900, 0.0011), 7.2195),
    ((50.0000, 2.4900, -0.0010), (50.0000, -2.4900, 0.0012), 7.2195),
    ((50.0000, 2.5000, 0.0000), (73.0000, 25.0000, -18.0000), 27.1492),
    ((60.2574, -34.0099, 36.2677), (60.4626, -34.1751, 39.4387), 1.2644),
]


@pytest.mark.parametrize("lab1, lab2, expected", SHARMA_PAIRS)
def test_ciede2000_reference_pairs(lab1, lab2, expected) -> None:
    assert delta_e_2000(lab1, lab2) == pytest.approx(expected, abs=1e-4)


def test_cie76() -> None:
    assert delta_e_76((50.0, 0.0, 0.0), (50.0, 3.0, 4.0)) == pytest.approx(5.0)


def test_cie94_uses_reference_chroma() -> None:
    # neutral reference: S_C = S_H = 1
    assert delta_e_94((50.0, 0.0, 0.0), (50.0, 3.0, 4.0)) == pytest.approx(5.0)
    # chromatic reference: chroma difference is divided by 1 + 0.045 * 20
    assert delta_e_94((50.0, 20.0, 0.0), (50.0, 0.0, 0.0)) == pytest.approx(20.0 / 1.9)
    assert delta_e_94((50.0, 0.0, 0.0), (50.0, 20.0, 0.0)) == pytest.approx(20.0)


def test_cie94_symmetric_for_equal_chroma() -> None:
    a, b = (50.0, 3.0, 4.0), (60.0, 4.0, 3.0)
    assert delta_e_94(a, b) == pytest.approx(delta_e_94(b, a))


def test_cmc_lightness_only() -> None:
    s_l = 0.040975 * 50.0 / (1.0 + 0.01765 * 50.0)
    assert delta_e_cmc((50.0, 0.0, 0.0), (60.0, 0.0, 0.0)) == pytest.approx(10.0 / (2.0 * s_l))
    assert delta_e_cmc((50.0, 0.0, 0.0), (60.0, 0.0, 0.0), 1.0, 1.0) == pytest.approx(10.0 / s_l)


def test_cmc_dark_reference() -> None:
    assert delta_e_cmc((10.0, 0.0, 0.0), (12.0, 0.0, 0.0), 1.0, 1.0) == pytest.approx(2.0 / 0.511)


@pytest.mark.parametrize("fn", [delta_e_76, delta_e_94, delta_e_2000, delta_e_cmc])
def test_identical_colours(fn) -> None:
    assert fn((45.0, -12.0, 33.0), (45.0, -12.0, 33.0)) == pytest.approx(0.0, abs=1e-12)


def test_symmetry_and_finiteness() -> None:
    rng = np.random.default_rng(7)
    labs = np.column_stack([rng.uniform(0, 100, 200), rng.uniform(-100, 100, 200),
                            rng.uniform(-100, 100, 200)])
    for x, y in zip(labs[:100], labs[100:]):
        assert delta_e_76(x, y) == pytest.approx(delta_e_76(y, x))
        assert delta_e_2000(x, y) == pytest.approx(delta_e_2000(y, x), abs=1e-9)
        assert math.isfinite(delta_e_2000(x, y))
        assert math.isfinite(delta_e_cmc(x, y))
        assert delta_e_cmc(x, y) >= 0.0


# --- Batch engine ------------------------------------------------------------

def test_batch_broadcasts_reference() -> None:
    ref = np.array([50.0, 0.0, 0.0])
    samples = np.array([[50.0, 3.0, 4.0], [53.0, 4.0, 0.0], [50.0, 0.0, 0.0]])
    res = ColorMetrics.delta_E_76(ref, samples)
    assert res.shape == (3,)
    assert res.tolist() == pytest.approx([5.0, 5.0, 0.0])


def test_batch_matches_scalar() -> None:
    lab1 = np.array([p[0] for p in SHARMA_PAIRS])
    lab2 = np.array([p[1] for p in SHARMA_PAIRS])
    res = ColorMetrics.delta_E_2000(lab1, lab2)
    assert res.tolist() == pytest.approx([p[2] for p in SHARMA_PAIRS], abs=1e-4)
    cmc = ColorMetrics.delta_E_CMC(lab1, lab2, 1.0, 1.0)
    assert cmc[3] == pytest.approx(delta_e_cmc(lab1[3], lab2[3], 1.0, 1.0))


def test_batch_single_pair_returns_scalar() -> None:
    res = ColorMetrics.delta_E_94(np.array([50.0, 0.0, 0.0]), np.array([50.0, 3.0, 4.0]))
    assert np.ndim(res) == 0
    assert float(res) == pytest.approx(5.0)


def test_batch_rejects_mismatched_shapes() -> None:
    with pytest.raises(ValueError):
        ColorMetrics.delta_E_76(np.zeros((2, 3)), np.zeros((3, 3)))
    with pytest.raises(ValueError):
        ColorMetrics.delta_E_76(np.zeros((2, 2)), np.zeros((2, 2)))


# --- Dispatch ----------------------------------------------------------------

@pytest.mark.parametrize("name, canonical", [
    ("dE76", "dE76"), ("CIE76", "dE76"),
    ("dE94", "dE94"), ("cie94", "dE94"),
    ("dE00", "dE00"), ("dE2000", "dE00"), ("CIE2000", "dE00"), ("CIEDE2000", "dE00"),
    ("dECMC2:1", "dECMC2:1"), ("CMC", "dECMC2:1"), ("CMC 2:1", "dECMC2:1"),
    ("dECMC1:1", "dECMC1:1"), ("CMC1:1", "dECMC1:1"),
    ("nonsense", DEFAULT_METHOD), ("", DEFAULT_METHOD), (None, DEFAULT_METHOD),
])
def test_canonical_method(name, canonical) -> None:
    assert canonical_method(name) == canonical


def test_dispatch_by_name() -> None:
    a, b = LabColor(50.0, 2.5, 0.0), {"L": 73.0, "a": 25.0, "b": -18.0}
    assert delta_e(a, b, "CIE76") == pytest.approx(delta_e_76(a, b))
    assert delta_e(a, b, "dE94") == pytest.approx(delta_e_94(a, b))
    assert delta_e(a, b, "CMC") == pytest.approx(delta_e_cmc(a, b))
    assert delta_e(a, b, "dECMC1:1") == pytest.approx(delta_e_cmc(a, b, 1.0, 1.0))
    assert delta_e(a, b, "whatever") == pytest.approx(27.1492, abs=1e-4)


def test_non_finite_input() -> None:
    nan_lab = (float("nan"), 0.0, 0.0)
    assert math.isnan(delta_e(nan_lab, (50.0, 0.0, 0.0), "dE76"))
    assert safe_delta_e(nan_lab, (50.0, 0.0, 0.0), "dE76") is None
    assert safe_delta_e(None, (50.0, 0.0, 0.0)) is None
    assert safe_delta_e({"L": "x"}, (50.0, 0.0, 0.0)) is None
    assert safe_delta_e((50.0, 0.0, 0.0), (50.0, 3.0, 4.0), "dE76") == pytest.approx(5.0)
