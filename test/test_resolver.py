# -*- coding: utf-8 -*-
import os

import pytest

from pyrecipe.errors import NotFound
from pyrecipe.resolver import PRIMITIVE, RECIPE, FileResolver, MemoryResolver, split_path

pytestmark = pytest.mark.unit


@pytest.fixture
def dirs(tmp_path):
    first = tmp_path / "first"
    second = tmp_path / "second"
    first.mkdir()
    second.mkdir()
    (first / "_STEP_").write_text("x = 1\n")
    (second / "_STEP_").write_text("x = 2\n")
    (second / "_OTHER_").write_text("y = 1\n")
    (second / "REDUCE").write_text("_STEP_\n_OTHER_\n")
    return str(first), str(second)


def test_memory_resolver():
    resolver = MemoryResolver({"R": "a\nb\n"}, {"_P_": ["c"]})
    assert resolver.resolve("R", "common", RECIPE) == ["a", "b"]
    assert resolver.resolve("_P_", "common") == ["c"]
    with pytest.raises(NotFound) as info:
        resolver.resolve("_P_", "common", RECIPE)
    assert info.value.kind == RECIPE


def test_search_order(dirs, monkeypatch):
    monkeypatch.delenv("PYRECIPE_PRIMITIVE_DIR", raising=False)
    first, second = dirs
    resolver = FileResolver(primitive_dirs=[first, second])
    assert resolver.resolve("_STEP_", None) == ["x = 1"]
    assert resolver.resolve("_OTHER_", None) == ["y = 1"]

    resolver = FileResolver(primitive_dirs=[second, first])
    assert resolver.resolve("_STEP_", None) == ["x = 2"]


def test_environment_first(dirs, monkeypatch):
    first, second = dirs
    monkeypatch.setenv("PYRECIPE_PRIMITIVE_DIR", os.pathsep.join(["", second]))
    resolver = FileResolver(primitive_dirs=[first])
    assert resolver.search_path(None, PRIMITIVE)[:2] == [second, first]
    assert resolver.resolve("_STEP_", None) == ["x = 2"]

    resolver = FileResolver(primitive_dirs=[first], use_environment=False)
    assert resolver.resolve("_STEP_", None) == ["x = 1"]


def test_instrument_directories(dirs, monkeypatch, tmp_path):
    monkeypatch.delenv("PYRECIPE_RECIPE_DIR", raising=False)
    monkeypatch.setenv("PYRECIPE_DATA", str(tmp_path))
    recipes = tmp_path / "recipes" / "COMMON"
    recipes.mkdir(parents=True)
    (recipes / "QUICK_LOOK").write_text("_STEP_\n")

    resolver = FileResolver()
    assert resolver.search_path("common", RECIPE) == [str(recipes)]
    assert resolver.resolve("QUICK_LOOK", "common", RECIPE) == ["_STEP_"]


def test_not_found(dirs, monkeypatch):
    monkeypatch.delenv("PYRECIPE_PRIMITIVE_DIR", raising=False)
    first, second = dirs
    resolver = FileResolver(primitive_dirs=[first, second])
    with pytest.raises(NotFound) as info:
        resolver.resolve("_MISSING_", None)
    assert info.value.searched == [first, second]
    assert "_MISSING_" in str(info.value)


def test_explicit_path(dirs):
    first, _ = dirs
    resolver = FileResolver()
    assert resolver.resolve(os.path.join(first, "_STEP_"), None) == ["x = 1"]
    with pytest.raises(NotFound):
        resolver.resolve(os.path.join(first, "_NOPE_"), None)


def test_cache_follows_mtime(dirs, monkeypatch):
    monkeypatch.delenv("PYRECIPE_PRIMITIVE_DIR", raising=False)
    first, _ = dirs
    fname = os.path.join(first, "_STEP_")
    resolver = FileResolver(primitive_dirs=[first])
    assert resolver.resolve("_STEP_", None) == ["x = 1"]

    with open(fname, "w") as f:
        f.write("x = 3\n")
    stat = os.stat(fname)
    os.utime(fname, (stat.st_atime, stat.st_mtime + 10))
    assert resolver.resolve("_STEP_", None) == ["x = 3"]

    # the cached lines can not be modified through the result
    lines = resolver.resolve("_STEP_", None)
    lines.append("junk")
    assert resolver.resolve("_STEP_", None) == ["x = 3"]


def test_split_path():
    assert split_path(None) == []
    assert split_path(os.pathsep.join(["a", "", "b"])) == ["a", "b"]
