# -*- coding: utf-8 -*-
import shutil

import pytest
from conftest import make_engine

from pyrecipe.constants import BADENG, ERROR, OK
from pyrecipe.engines import EngineDispatcher, ShellEngine
from pyrecipe.errors import UserAbort

pytestmark = pytest.mark.unit


def test_invoke(engines):
    dispatcher = EngineDispatcher(engines)
    assert dispatcher["kappa"].obeyw("add", "in1=a") == OK
    engines["kappa"].obeyw.assert_called_once_with("add", "in1=a")
    assert dispatcher.last == ("kappa", "add", "in1=a", OK)
    assert "kappa" in dispatcher
    assert sorted(dispatcher) == ["ccdpack", "kappa"]


def test_unknown_engine(engines):
    dispatcher = EngineDispatcher(engines)
    assert dispatcher.invoke("figaro", "bclean") == BADENG
    assert dispatcher.last[0] == "figaro"
    assert len(dispatcher) == 2


def test_badeng_forgets_engine(caplog):
    engines = {"kappa": make_engine(BADENG), "ccdpack": make_engine()}
    dispatcher = EngineDispatcher(engines)
    assert dispatcher["kappa"].obeyw("add") == BADENG
    assert "kappa" not in engines
    assert "dead" in caplog.text
    # the registry is shared
    assert "ccdpack" in engines


@pytest.mark.parametrize("value", [None, "0", True, 1.5])
def test_invalid_status(value):
    dispatcher = EngineDispatcher({"kappa": make_engine(value)})
    assert dispatcher.invoke("kappa", "stats") == ERROR


def test_abort(engines):
    dispatcher = EngineDispatcher(engines)
    dispatcher.abort()
    assert dispatcher.aborted
    with pytest.raises(UserAbort):
        dispatcher["kappa"].obeyw("add")
    engines["kappa"].obeyw.assert_not_called()


@pytest.mark.skipif(shutil.which("true") is None, reason="needs true and false")
def test_shell_engine():
    assert ShellEngine("true").obeyw("add", 'in1=a title="a b"') == OK
    assert ShellEngine("false").obeyw("add") == ERROR


def test_shell_engine_missing_command():
    engine = ShellEngine("/nonexistent/engine --flag")
    assert engine.obeyw("add") == BADENG


def test_shell_engine_through_dispatcher(tmp_path):
    engines = {"broken": ShellEngine(str(tmp_path / "missing"))}
    dispatcher = EngineDispatcher(engines)
    assert dispatcher["broken"].obeyw("stats") == BADENG
    assert engines == {}
