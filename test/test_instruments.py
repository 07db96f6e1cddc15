# -*- coding: utf-8 -*-
import os

import pytest

from pyrecipe.instruments.common import Instrument, observation_date_to_oractime
from pyrecipe.instruments.instrument_info import load_instrument, translate_header

pytestmark = pytest.mark.unit


@pytest.fixture
def ufti_header():
    return {
        "INSTRUME": "UFTI",
        "OBJECT": "FS 27",
        "OBSNUM": 17,
        "EXP_TIME": 5.0,
        "MODE": "NDSTARE",
        "AMSTART": 1.1,
        "AMEND": 1.3,
        "DATE-OBS": "2010-04-01T00:00:00",
        "DRRECIPE": "BRIGHT_POINT_SOURCE",
        "GRPNUM": 17,
    }


@pytest.mark.parametrize("name", ["common", "ufti", "UFTI"])
def test_load_instrument(name):
    instrument = load_instrument(name)
    assert isinstance(instrument, Instrument)
    assert instrument.name == name.lower()
    assert load_instrument(instrument) is instrument


def test_load_default():
    assert load_instrument(None).name == "common"


def test_unknown_instrument():
    with pytest.raises(ImportError):
        load_instrument("nosuchinstrument")


def test_translation_table():
    table = load_instrument("ufti").translations
    assert "ORACTIME" in table
    assert "ORAC_AIRMASS" in table
    assert "ORAC_EXPOSURE_TIME" in table


def test_ufti(ufti_header):
    translated = translate_header(ufti_header, "ufti")
    assert translated["ORAC_EXPOSURE_TIME"] == 5.0
    assert translated["ORAC_READOUT_MODE"] == "NDSTARE"
    assert translated["ORAC_AIRMASS"] == pytest.approx(1.2)
    assert translated["ORAC_DR_RECIPE"] == "BRIGHT_POINT_SOURCE"
    assert translated["ORACTIME"] == pytest.approx(55287.0)
    assert "ORAC_UTDATE" not in translated


def test_missing_values_are_skipped():
    translated = translate_header({"OBJECT": "M31", "AMEND": 1.5}, "ufti")
    assert translated["ORAC_AIRMASS"] == 1.5
    assert "ORACTIME" not in translated
    assert "ORAC_FILTER" not in translated


def test_bad_values_are_skipped(caplog):
    translated = translate_header({"OBJECT": "M31", "DATE-OBS": "not a date"}, "common")
    assert translated == {"ORAC_OBJECT": "M31", "ORAC_DATE_OBS": "not a date"}
    assert "ORACTIME" in caplog.text


def test_oractime():
    assert observation_date_to_oractime("2010-04-01T12:00:00") == pytest.approx(55287.5)
    assert observation_date_to_oractime("2010-04-01 06:00") == pytest.approx(55287.25)
    assert observation_date_to_oractime("") is None


def test_properties():
    ufti = load_instrument("ufti")
    assert ufti.default_recipe == "QUICK_LOOK"
    assert ufti.group_by == "ORAC_DR_GROUP"
    assert ufti.calibrations == ["dark", "flat", "sky"]
    assert load_instrument("common").group_by == "ORAC_OBJECT"


def test_search_path(monkeypatch, tmp_path):
    monkeypatch.setenv("PYRECIPE_DATA", str(tmp_path))
    ufti = load_instrument("ufti")
    assert ufti.search_path("recipe") == [
        os.path.join(str(tmp_path), "recipes", "UFTI"),
        os.path.join(str(tmp_path), "recipes", "imaging"),
    ]
    assert ufti.search_path("primitive")[-1] == os.path.join(
        str(tmp_path), "primitives", "general"
    )


def test_calibration_dirs():
    dirs = load_instrument("ufti").calibration_dirs()
    assert len(dirs) == 1
    assert os.path.exists(os.path.join(dirs[0], "rules.dark"))
    assert load_instrument("common").calibration_dirs() == []
