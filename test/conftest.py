# -*- coding: utf-8 -*-
from unittest.mock import MagicMock

import pytest

from pyrecipe.compiler import RecipeCompiler
from pyrecipe.constants import OK
from pyrecipe.execution import Executor, RunContext
from pyrecipe.frame import Frame, Group
from pyrecipe.resolver import MemoryResolver


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without external data")


HEADER = {
    "INSTRUME": "COMMON",
    "OBJECT": "M31",
    "OBSTYPE": "OBJECT",
    "OBSNUM": 42,
    "EXPTIME": 10.0,
    "FILTER": "J",
    "DATE-OBS": "2010-04-01T12:00:00",
    "RECIPE": "REDUCE_SCIENCE",
    "GRPNUM": 40,
}


@pytest.fixture
def header():
    """Raw header of an observation, as a plain dict"""
    return dict(HEADER)


@pytest.fixture
def frame(header):
    return Frame("f0042.fits", instrument="common", header=header)


@pytest.fixture
def group(frame):
    return Group("40", [frame])


def make_engine(status=OK):
    """An engine whose actions all return status"""
    engine = MagicMock()
    engine.obeyw.return_value = status
    return engine


@pytest.fixture
def engines():
    return {"kappa": make_engine(), "ccdpack": make_engine()}


@pytest.fixture
def context(frame, group, engines):
    return RunContext(frame, group, calib=None, engines=engines)


@pytest.fixture
def resolver():
    """In memory recipes and primitives

    _OUTER_ includes _INNER_ twice, _INNER_ calls kappa
    """
    recipes = {
        "SIMPLE": 'engines["kappa"].obeyw("add", "in1=a in2=b out=c")\n',
        "NESTED": "_OUTER_ COUNT=2\n_INNER_ LABEL=last\n",
    }
    primitives = {
        "_OUTER_": "_INNER_ LABEL=first\n_INNER_ LABEL=second\n",
        "_INNER_": (
            '"""Calls kappa once"""\n'
            'label = PRIM_ARGS.get("LABEL", "none")\n'
            'engines["kappa"].obeyw("stats", f"label={label}")\n'
        ),
    }
    return MemoryResolver(recipes, primitives)


@pytest.fixture
def compiler(resolver):
    return RecipeCompiler(resolver)


def compile_text(text, primitives=None, debug=False, name="TEST", **kwargs):
    """Compile a recipe given as text"""
    resolver = MemoryResolver({name: text}, primitives or {})
    return RecipeCompiler(resolver, debug=debug, **kwargs).compile(name, "common")


@pytest.fixture
def executor(tmp_path):
    return Executor(context_lines=2, dump_file=str(tmp_path / "recipe.dump"))
