# -*- coding: utf-8 -*-
import math

import numpy as np
import pytest

from inkwell_colorengine import (
    NEUTRAL_HEX,
    ColorSpaceEngine,
    LabColor,
    adapt_lab,
    hex_to_lab,
    lab_to_chroma_hue,
    lab_to_hex,
    lab_to_hex_d65,
    normalize_hex,
    white_point,
)
from inkwell_metrics import delta_e_76


def test_white_point_lookup() -> None:
    assert white_point("d65").tolist() == pytest.approx([0.95047, 1.0, 1.08883])
    assert white_point(" D50 ")[1] == 1.0
    assert white_point("nope") is None
    assert white_point(None) is None


def test_lab_from_mapping() -> None:
    assert LabColor.from_mapping({"l": 50, "A": 1, "B": -2}) == LabColor(50.0, 1.0, -2.0)
    assert LabColor.from_mapping({"L": "50", "a": 0, "b": 0}) is None
    assert LabColor.from_mapping({"L": float("nan"), "a": 0, "b": 0}) is None
    assert LabColor.from_mapping(None) is None
    assert LabColor.NEUTRAL.is_sentinel


def test_engine_keeps_shapes() -> None:
    xyz = np.array([[0.2, 0.3, 0.4], [0.5, 0.5, 0.5]])
    lab = ColorSpaceEngine.xyz_to_lab(xyz)
    assert lab.shape == (2, 3)
    assert ColorSpaceEngine.xyz_to_lab(xyz[0]).shape == (3,)
    assert ColorSpaceEngine.lab_to_xyz(lab) == pytest.approx(xyz, abs=1e-12)


def test_engine_rejects_bad_shape() -> None:
    with pytest.raises(ValueError):
        ColorSpaceEngine.xyz_to_lab(np.zeros((4, 2)))


def test_lab_to_lch() -> None:
    lch = ColorSpaceEngine.lab_to_lch(np.array([[50.0, 0.0, -10.0]]))
    assert lch[0].tolist() == pytest.approx([50.0, 10.0, 270.0])


# --- Lab <-> hex -------------------------------------------------------------

def test_white_and_black_hex() -> None:
    assert lab_to_hex(100.0, 0.0, 0.0, "D65") == "#FFFFFF"
    assert lab_to_hex(0.0, 0.0, 0.0, "D65") == "#000000"


def test_lab_to_hex_does_not_adapt() -> None:
    # D50 white pushed straight through the D65 sRGB matrix is not white
    hex_d50 = lab_to_hex(100.0, 0.0, 0.0, "D50")
    assert hex_d50 != "#FFFFFF"
    assert hex_d50.startswith("#FF")


def test_lab_to_hex_rejects_bad_input() -> None:
    assert lab_to_hex(50.0, 10.0, 10.0, "XYZ") == NEUTRAL_HEX
    assert lab_to_hex(float("nan"), 0.0, 0.0) == NEUTRAL_HEX
    assert lab_to_hex(50.0, float("inf"), 0.0) == NEUTRAL_HEX


@pytest.mark.parametrize("illuminant", ["D50", "D65"])
@pytest.mark.parametrize("hex_color", [
    "#FF0000", "#00FF00", "#0000FF", "#808080", "#1A2B3C", "#C0FFEE", "#FFFFFF", "#000000",
])
def test_hex_round_trip(hex_color, illuminant) -> None:
    lab = hex_to_lab(hex_color, illuminant)
    assert lab_to_hex(lab.L, lab.a, lab.b, illuminant) == hex_color


def test_lab_round_trip_within_quantisation() -> None:
    for lab in (LabColor(50.0, 10.0, -10.0), LabColor(70.0, -20.0, 30.0), LabColor(30.0, 5.0, 5.0)):
        back = hex_to_lab(lab_to_hex(lab.L, lab.a, lab.b, "D65"), "D65")
        assert delta_e_76(lab, back) < 1.0


def test_hex_output_is_uppercase() -> None:
    lab = hex_to_lab("c0ffee", "D65")
    assert lab_to_hex(lab.L, lab.a, lab.b, "D65") == "#C0FFEE"


def test_white_hex_to_lab() -> None:
    lab = hex_to_lab("#FFFFFF", "D65")
    assert lab.L == pytest.approx(100.0, abs=0.01)
    assert abs(lab.a) < 0.01 and abs(lab.b) < 0.01


@pytest.mark.parametrize("bad", ["#GGGGGG", "#FFF", "", None, 123, "#FFFFFF00"])
def test_invalid_hex_gives_sentinel(bad) -> None:
    assert hex_to_lab(bad) == LabColor.NEUTRAL
    assert normalize_hex(bad) is None


@pytest.mark.parametrize("value, expected", [("#00aeef", "#00AEEF"), (" abcdef ", "#ABCDEF"), ("#ABCDEF", "#ABCDEF")])
def test_normalize_hex(value, expected) -> None:
    assert normalize_hex(value) == expected


def test_hex_to_lab_unknown_illuminant() -> None:
    assert hex_to_lab("#808080", "XYZ").is_sentinel


# --- Chromatic adaptation ----------------------------------------------------

def test_adapt_same_illuminant_is_identity() -> None:
    lab = LabColor(52.0, 12.5, -33.0)
    assert adapt_lab(lab, "D50", "D50") is lab


def test_adapt_white_to_white() -> None:
    out = adapt_lab(LabColor(100.0, 0.0, 0.0), "D50", "D65")
    assert out.as_array() == pytest.approx([100.0, 0.0, 0.0], abs=1e-6)


def test_adapt_round_trip() -> None:
    lab = LabColor(45.0, 30.0, -20.0)
    there = adapt_lab(lab, "D50", "D65")
    back = adapt_lab(there, "D65", "D50")
    assert there != lab
    assert back.as_array() == pytest.approx(lab.as_array(), abs=1e-9)


def test_adapt_unknown_illuminants_fall_back() -> None:
    lab = LabColor(45.0, 30.0, -20.0)
    assert adapt_lab(lab, "nope", "D65") == adapt_lab(lab, "D50", "D65")
    assert adapt_lab(lab, "D50", "nope") == adapt_lab(lab, "D50", "D65")


def test_lab_to_hex_d65_white() -> None:
    assert lab_to_hex_d65(100.0, 0.0, 0.0) == "#FFFFFF"
    assert lab_to_hex_d65(100.0, 0.0, 0.0, source="D65") == "#FFFFFF"


@pytest.mark.parametrize("a, b, chroma, hue", [
    (0.0, 10.0, 10.0, 90.0),
    (-10.0, 0.0, 10.0, 180.0),
    (3.0, -4.0, 5.0, 360.0 - math.degrees(math.atan2(4.0, 3.0))),
])
def test_chroma_hue(a, b, chroma, hue) -> None:
    c, h = lab_to_chroma_hue(50.0, a, b)
    assert c == pytest.approx(chroma)
    assert h == pytest.approx(hue)


def test_chroma_hue_missing_components() -> None:
    assert lab_to_chroma_hue(50.0, None, 5.0) == (0.0, 0.0)
