"""
Locate the source text of recipes and primitives

The compiler only needs ``resolve(name, instrument, kind)``, which
returns the source lines or raises NotFound. The search order must be
deterministic; the file based resolver searches

1. the directories in the environment variable PYRECIPE_RECIPE_DIR
   (or PYRECIPE_PRIMITIVE_DIR), separated by colons
2. the directories given when the resolver was created
3. the repository directories of the instrument
"""

import logging
import os
import threading
from os.path import dirname, exists, getmtime, join

from .errors import NotFound

logger = logging.getLogger(__name__)

RECIPE = "recipe"
PRIMITIVE = "primitive"

ENVIRONMENT = {RECIPE: "PYRECIPE_RECIPE_DIR", PRIMITIVE: "PYRECIPE_PRIMITIVE_DIR"}


def split_path(value):
    """Split a PATH like string into a list of directories"""
    if not value:
        return []
    return [p for p in value.split(os.pathsep) if p]


class SourceResolver:
    """Interface of all source resolvers"""

    def resolve(self, name, instrument, kind=PRIMITIVE):  # pragma: no cover
        """Return the source of a recipe or primitive

        Parameters
        ----------
        name : str
            name of the recipe or primitive
        instrument : str
            instrument name, used to find the instrument repository
        kind : {"recipe", "primitive"}
            what to look for

        Returns
        -------
        lines : list(str)
            source lines without line endings

        Raises
        ------
        NotFound
            if no source exists under that name
        """
        raise NotImplementedError


class MemoryResolver(SourceResolver):
    """Resolve sources from dictionaries of name: text"""

    def __init__(self, recipes=None, primitives=None):
        self.recipes = dict(recipes or {})
        self.primitives = dict(primitives or {})

    def resolve(self, name, instrument, kind=PRIMITIVE):
        sources = self.recipes if kind == RECIPE else self.primitives
        try:
            text = sources[name]
        except KeyError:
            raise NotFound(name, kind)
        if isinstance(text, str):
            return text.splitlines()
        return list(text)


class FileResolver(SourceResolver):
    """Resolve sources from files on disk

    Files are cached and only read again if their modification time
    changed.

    Parameters
    ----------
    recipe_dirs : list(str), optional
        additional recipe directories
    primitive_dirs : list(str), optional
        additional primitive directories
    use_environment : bool, optional
        whether to honour the PYRECIPE_*_DIR variables (default: True)
    """

    def __init__(self, recipe_dirs=None, primitive_dirs=None, use_environment=True):
        self.dirs = {
            RECIPE: list(recipe_dirs or []),
            PRIMITIVE: list(primitive_dirs or []),
        }
        self.use_environment = use_environment
        self._cache = {}
        self._lock = threading.Lock()

    def search_path(self, instrument, kind=PRIMITIVE):
        """list(str): the directories searched for this instrument, in order"""
        path = []
        if self.use_environment:
            path += split_path(os.environ.get(ENVIRONMENT[kind]))
        path += self.dirs[kind]
        if instrument is not None:
            from .instruments.instrument_info import load_instrument

            if isinstance(instrument, str):
                instrument = load_instrument(instrument)
            path += instrument.search_path(kind)
        if not path:
            path = [os.curdir]
        return path

    def find(self, name, instrument, kind=PRIMITIVE):
        """Return the filename of the source, or raise NotFound"""
        if dirname(name):
            if not exists(name):
                raise NotFound(name, kind, [name])
            return name

        path = self.search_path(instrument, kind)
        for directory in path:
            fname = join(directory, name)
            if exists(fname):
                return fname
        raise NotFound(name, kind, path)

    def resolve(self, name, instrument, kind=PRIMITIVE):
        fname = self.find(name, instrument, kind)
        mtime = getmtime(fname)
        with self._lock:
            cached = self._cache.get(fname)
            if cached is not None and cached[0] == mtime:
                return list(cached[1])

        logger.debug("Reading %s %s from %s", kind, name, fname)
        with open(fname) as f:
            lines = f.read().splitlines()
        with self._lock:
            self._cache[fname] = (mtime, lines)
        return list(lines)
