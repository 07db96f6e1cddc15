# -*- coding: utf-8 -*-
import json

import pytest

from pyrecipe import configuration as conf

pytestmark = pytest.mark.unit


def test_configuration():
    config = conf.load_config(None, "UFTI", 0)
    assert isinstance(config, dict)
    assert config["calibration"]["warn"] is True
    assert config["compiler"]["max_depth"] == 10

    config = conf.load_config(config, "UFTI", 0)
    assert isinstance(config, dict)

    config = conf.load_config("settings_UFTI.json", "UFTI", 0)
    assert isinstance(config, dict)

    config = conf.load_config({"UFTI": "settings_UFTI.json"}, "ufti", 0)
    assert config["engines"]["timeout"] == 600

    config = conf.load_config(["settings_UFTI.json"], "UFTI", 0)
    assert isinstance(config, dict)

    with pytest.raises(KeyError):
        conf.load_config({"__instrument__": "UFTI"}, "COMMON", 0)

    with pytest.raises(IndexError):
        conf.load_config(["settings_UFTI.json"], "UFTI", 1)

    with pytest.raises(TypeError):
        conf.load_config(42, "UFTI")


def test_default_instrument():
    config = conf.get_configuration_for_instrument("common")
    assert config == conf.get_configuration_for_instrument(None)
    assert config["calibration"]["time_field"] == "ORACTIME"


def test_keyword_overrides():
    config = conf.get_configuration_for_instrument("UFTI", context_lines=2, warn=False)
    assert config["execution"]["context_lines"] == 2
    assert config["calibration"]["warn"] is False


def test_partial_configuration(tmp_path):
    fname = tmp_path / "mine.json"
    fname.write_text(
        json.dumps({"execution": {"batch": True}, "engines": {"commands": {"kappa": "kappa_mon"}}})
    )
    config = conf.load_config(str(fname), "UFTI")
    assert config["execution"]["batch"] is True
    assert config["execution"]["context_lines"] == 5
    assert config["engines"]["commands"] == {"kappa": "kappa_mon"}


def test_update():
    dict1 = {"bla": 0, "blub": {"foo": 0, "bar": 0}}
    dict2 = {"bla": 1, "blub": {"bar": 1}}
    res = conf.update(dict1, dict2)

    assert isinstance(res, dict)
    assert res["bla"] == 1
    assert res["blub"]["foo"] == 0
    assert res["blub"]["bar"] == 1

    res = conf.update(dict1, {"foo": "bar"}, check=False)
    assert res["foo"] == "bar"


def test_update_warns(caplog):
    conf.update({"compiler": {"debug": False}}, {"compiler": {"degub": True}})
    assert "degub is not contained in compiler" in caplog.text

    caplog.clear()
    conf.update({"engines": {"commands": {}}}, {"engines": {"commands": {"kappa": "k"}}})
    assert caplog.text == ""


def test_read_config():
    res = conf.read_config()
    assert isinstance(res, dict)
    assert set(res) >= {"compiler", "execution", "calibration", "engines"}

    with pytest.raises(FileNotFoundError):
        conf.read_config(fname="blablub.json")


@pytest.mark.parametrize(
    "section, key, value",
    [
        ("compiler", "max_depth", 0),
        ("execution", "context_lines", -1),
        ("execution", "dump_file", ""),
        ("calibration", "unknown", 1),
        ("engines", "timeout", 0),
    ],
)
def test_validation(section, key, value):
    config = conf.get_configuration_for_instrument("UFTI")
    config[section][key] = value

    with pytest.raises(ValueError):
        conf.validate_config(config)
