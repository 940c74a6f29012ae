# -*- coding: utf-8 -*-
import json

import pytest

from inkwell_colorengine import LabColor
from inkwell_spectral import SpectralCurve
from inkwell_tints import (
    ModeMeasurement,
    TintRecord,
    find_tint,
    imported_substrate_spectral,
    measurement_by_mode,
    normalize_mode,
    normalize_tints,
    parse_spectral_string,
    substrate_spectra_by_background,
    tint_percentage,
)

CURVE_A = {"400": 10.0, "500": 20.0, "600": 30.0}
CURVE_B = {"400": 40.0, "500": 50.0, "600": 60.0}


def _tints():
    return [
        {"tintPercentage": 50, "spectral_data": CURVE_B},
        {"tintPercentage": 0, "spectral_data": CURVE_A},
        {"tintPercentage": 100, "lab": {"L": 40.0, "a": 10.0, "b": -5.0}},
    ]


# --- Field helpers -----------------------------------------------------------

@pytest.mark.parametrize("value, expected", [
    (0, "M0"), (3, "M3"), (2.0, "M2"), ("1", "M1"), ("M2", "M2"), ("m 3", "M3"),
    ("M-1", "M1"), ("Mode M0", "M0"), (4, None), ("M4", None), ("x", None),
    (None, None), (True, None), (1.5, None),
])
def test_normalize_mode(value, expected) -> None:
    assert normalize_mode(value) == expected


@pytest.mark.parametrize("value, expected", [
    (50, 50.0), ("75%", 75.0), (" 40 % ", 40.0), (0.5, 50.0), (1, 100.0), (0, 0.0),
    (250, 100.0), (-5, 0.0), ("abc", 0.0), (None, 0.0), (True, 0.0), (float("nan"), 0.0),
])
def test_tint_percentage(value, expected) -> None:
    assert tint_percentage(value) == expected


def test_parse_spectral_json() -> None:
    curve = parse_spectral_string('{"400": 0.1, "410": 0.2}')
    assert curve.as_dict() == {400: 0.1, 410: 0.2}


@pytest.mark.parametrize("text", ["400:0.1\n410:0.2", "400 0.1, 410 0.2", "400\t0.1\n410: 0.2\n"])
def test_parse_spectral_pairs(text) -> None:
    assert parse_spectral_string(text).as_dict() == {400: 0.1, 410: 0.2}


@pytest.mark.parametrize("text", ["", "   ", None, "garbage", "[1, 2]", 42])
def test_parse_spectral_rejects(text) -> None:
    assert parse_spectral_string(text) is None


# --- Input shapes ------------------------------------------------------------

def test_plain_list_is_sorted() -> None:
    records = normalize_tints(_tints())
    assert [r.percentage for r in records] == [0.0, 50.0, 100.0]
    assert records[0].spectral == SpectralCurve.from_mapping(CURVE_A)
    assert records[2].lab == LabColor(40.0, 10.0, -5.0)


@pytest.mark.parametrize("wrap", [
    lambda t: {"tints": t},
    lambda t: [{"tints": t}],
    lambda t: [t],
    lambda t: {"measurement_settings": {"mode": "M1"}, "tints": t},
    lambda t: json.dumps(t),
    lambda t: {"ink": {"tints": t}},
])
def test_wrapped_shapes(wrap) -> None:
    assert [r.percentage for r in normalize_tints(wrap(_tints()))] == [0.0, 50.0, 100.0]


def test_dict_keyed_by_percentage() -> None:
    raw = {"0": {"spectral_data": CURVE_A}, "100": {"spectral_data": CURVE_B},
           "measurement_settings": {"illuminant": "D50"}}
    records = normalize_tints(raw)
    assert [r.percentage for r in records] == [0.0, 100.0]
    assert records[1].spectral == SpectralCurve.from_mapping(CURVE_B)


def test_wrapped_dict_keyed_by_percentage() -> None:
    records = normalize_tints({"tints": {"25%": {"colorHex": "#AABBCC"}}})
    assert len(records) == 1
    assert records[0].percentage == 25.0
    assert records[0].color_hex == "#AABBCC"


def test_explicit_percentage_beats_key() -> None:
    records = normalize_tints({"a": {"tint": 30, "hex": "#010203"}})
    assert records[0].percentage == 30.0


@pytest.mark.parametrize("raw", [None, "", "{not json", 42, {"meta": {"x": 1}}, [None, 0]])
def test_malformed_input_gives_empty_list(raw) -> None:
    assert normalize_tints(raw) == []


def test_field_aliases() -> None:
    records = normalize_tints([{
        "percent": "20%", "spectrum": CURVE_A, "lab_l": 60, "lab_a": 1, "lab_b": 2,
        "color": "#123456", "background": "Black", "name": "Cyan 20", "id": 7,
    }])
    r = records[0]
    assert r.percentage == 20.0
    assert r.spectral == SpectralCurve.from_mapping(CURVE_A)
    assert r.lab == LabColor(60.0, 1.0, 2.0)
    assert r.color_hex == "#123456"
    assert r.background == "Black"
    assert r.name == "Cyan 20" and r.tint_id == "7"


def test_spectral_string_field() -> None:
    records = normalize_tints([{"tintPercentage": 100, "spectral_string": "400:5\n500:6"}])
    assert records[0].spectral.as_dict() == {400: 5.0, 500: 6.0}


def test_measurements_parsed_and_preferred() -> None:
    records = normalize_tints([{
        "tintPercentage": 100,
        "spectral_data": CURVE_A,
        "measurements": [
            {"mode": "M1", "spectral_data": CURVE_B, "backgroundName": "Substrate"},
            {"mode": 0, "lab": {"L": 50, "a": 0, "b": 0}},
            "junk",
        ],
    }])
    r = records[0]
    assert len(r.measurements) == 2
    assert r.measurements[0].mode == "M1"
    assert r.measurements[1].mode == "M0"
    assert r.measurements[1].lab == LabColor(50.0, 0.0, 0.0)
    # the measurement spectrum wins over the top-level copy
    assert r.spectral == SpectralCurve.from_mapping(CURVE_B)


# --- Dedup & idempotence -----------------------------------------------------

def test_dedup_keeps_most_complete() -> None:
    records = normalize_tints([
        {"tintPercentage": 50, "colorHex": "#111111"},
        {"tintPercentage": 50, "spectral_data": CURVE_A, "colorHex": "#222222"},
        {"tintPercentage": 50, "colorHex": "#333333"},
    ])
    assert len(records) == 1
    assert records[0].color_hex == "#222222"


def test_dedup_tie_keeps_first() -> None:
    records = normalize_tints([
        {"tintPercentage": 50, "colorHex": "#111111"},
        {"tintPercentage": 50, "colorHex": "#333333"},
    ])
    assert records[0].color_hex == "#111111"


def test_dedup_keeps_backgrounds_apart() -> None:
    records = normalize_tints([
        {"tintPercentage": 50, "spectral_data": CURVE_A},
        {"tintPercentage": 50, "spectral_data": CURVE_B, "backgroundName": "Black"},
        {"tintPercentage": 0, "spectral_data": CURVE_B, "backgroundName": "Black"},
    ])
    assert [(r.percentage, r.background_key) for r in records] == [
        (0.0, "Black"), (50.0, "Black"), (50.0, "default"),
    ]


def test_normalisation_is_idempotent() -> None:
    once = normalize_tints({"tints": _tints()})
    assert normalize_tints(once) == once


def test_completeness_score() -> None:
    full = TintRecord(
        percentage=50.0, background_name="Black",
        spectral=SpectralCurve.from_mapping(CURVE_A), lab=LabColor(1.0, 2.0, 3.0),
        color_hex="#000001", measurements=(ModeMeasurement("M0"),),
    )
    assert full.completeness_score == 21
    assert TintRecord(percentage=50.0).completeness_score == 0


def test_to_dict_is_camel_case() -> None:
    record = normalize_tints([{"tint": 40, "hex": "#ABCDEF", "isAdapted": True}])[0]
    assert record.to_dict() == {"tintPercentage": 40.0, "colorHex": "#ABCDEF", "isAdapted": True}


# --- Lookups -----------------------------------------------------------------

def test_measurement_by_mode_priority() -> None:
    curve = SpectralCurve.from_mapping(CURVE_A)
    lab = LabColor(50.0, 0.0, 0.0)
    m0_lab = ModeMeasurement("M0", lab=lab)
    m1_curve = ModeMeasurement("M1", spectral=curve)
    m2_both = ModeMeasurement("M2", spectral=curve, lab=lab)
    ms = [m0_lab, m1_curve, m2_both]
    assert measurement_by_mode(ms, "M2") is m2_both
    assert measurement_by_mode(ms, 0) is m0_lab
    assert measurement_by_mode(ms, "M3") is m1_curve
    assert measurement_by_mode(ms) is m1_curve
    assert measurement_by_mode([m0_lab], "M1") is m0_lab
    assert measurement_by_mode([]) is None


def test_spectral_for_mode() -> None:
    record = normalize_tints([{
        "tintPercentage": 100, "spectral_data": CURVE_A,
        "measurements": [{"mode": "M0", "lab": {"L": 1, "a": 0, "b": 0}},
                         {"mode": "M1", "spectral_data": CURVE_B}],
    }])[0]
    assert record.spectral_for_mode("M1") == SpectralCurve.from_mapping(CURVE_B)
    assert record.spectral_for_mode("M0") == record.spectral


def test_find_tint() -> None:
    records = normalize_tints([
        {"tintPercentage": 50, "spectral_data": CURVE_A},
        {"tintPercentage": 50, "spectral_data": CURVE_B, "backgroundName": "Black"},
    ])
    assert find_tint(records, 50, "Black").background_name == "Black"
    assert find_tint(records, 50, "Substrate").background_name is None
    assert find_tint(records, 20) is None


def test_substrate_helpers() -> None:
    records = normalize_tints([
        {"tintPercentage": 0, "spectral_data": CURVE_B, "backgroundName": "Black"},
        {"tintPercentage": 0, "spectral_data": CURVE_A},
        {"tintPercentage": 100, "spectral_data": CURVE_B},
    ])
    by_bg = substrate_spectra_by_background(records)
    assert set(by_bg) == {"Black", "Substrate"}
    assert imported_substrate_spectral(records) == SpectralCurve.from_mapping(CURVE_A)


def test_imported_substrate_falls_back_to_any_background() -> None:
    records = normalize_tints([{"tintPercentage": 0, "spectral_data": CURVE_B, "backgroundName": "Grey"}])
    assert imported_substrate_spectral(records) == SpectralCurve.from_mapping(CURVE_B)
    assert imported_substrate_spectral([]) is None
