"""
Pipeline driver

Processes observation files one at a time: every file becomes a Frame,
joins its Group, gets a recipe, which is compiled and executed.

Example usage:
    from pyrecipe.pipeline import Pipeline

    results = (
        Pipeline("UFTI", output_dir, config=settings, resume=True)
        .add(files)
        .run()
    )
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from os.path import isabs, join
from typing import TYPE_CHECKING

from tqdm import tqdm

from .calibration import Calib
from .configuration import load_config
from .constants import status_name
from .engines import EngineDispatcher, ShellEngine
from .errors import CalibrationError, RecipeError, UserAbort
from .execution import RunContext
from .frame import Frame, Group
from .instruments.instrument_info import load_instrument
from .parameters import RecipeParameters
from .recipe import Recipe
from .resolver import FileResolver

if TYPE_CHECKING:
    from .execution import ExecutionResult
    from .instruments.common import Instrument

logger = logging.getLogger(__name__)


@dataclass
class Outcome:
    """What happened to one observation"""

    file: str
    recipe: str | None = None
    result: ExecutionResult | None = None
    error: Exception | None = None

    @property
    def ok(self):
        return self.error is None and self.result is not None and self.result.ok

    def __str__(self):
        if self.error is not None:
            return f"{self.file}: {self.recipe} failed: {self.error}"
        return f"{self.file}: {self.recipe} {status_name(self.result.status)}"


def engines_from_config(config: dict) -> dict:
    """Create ShellEngines for the commands of the engines section"""
    timeout = config["engines"].get("timeout")
    return {
        name: ShellEngine(command, timeout=timeout)
        for name, command in config["engines"].get("commands", {}).items()
    }


class Pipeline:
    """Serial processing of observations"""

    def __init__(
        self,
        instrument: Instrument | str,
        output_dir: str = ".",
        config: dict | str | None = None,
        resolver=None,
        engines: dict | None = None,
        recipe: str | None = None,
        parameters=None,
        debug: bool = False,
        batch: bool = False,
        resume: bool = False,
        header_provider=None,
    ):
        """Initialize a pipeline.

        Parameters
        ----------
        instrument : Instrument or str
            Instrument instance or name to load
        output_dir : str
            Directory for index and dump files
        config : dict or str, optional
            Configuration, see configuration.load_config
        resolver : SourceResolver, optional
            Provides recipes and primitives. By default a FileResolver.
        engines : dict(str, Engine), optional
            Engine registry. By default ShellEngines from the configuration.
        recipe : str, optional
            Recipe for all observations, instead of the one in the header
        parameters : RecipeParameters, dict or str, optional
            Recipe parameters
        debug : bool, optional
            Debug mode, compiles trace statements and dumps failed recipes
        batch : bool, optional
            Group all observations before processing the first one
        resume : bool, optional
            Continue with the next observation if one fails
        header_provider : callable, optional
            Reads the raw header of a file
        """
        if isinstance(instrument, str):
            instrument = load_instrument(instrument)

        self.instrument = instrument
        self.output_dir = output_dir
        self.config = load_config(config, instrument.name)
        self.debug = debug or self.config["compiler"]["debug"]
        self.batch = batch or self.config["execution"]["batch"]
        self.resume = resume
        self.recipe = recipe
        self.header_provider = header_provider

        dump_file = self.config["execution"]["dump_file"]
        if not isabs(dump_file):
            self.config["execution"]["dump_file"] = join(output_dir, dump_file)

        if not isinstance(parameters, RecipeParameters):
            parameters = RecipeParameters(parameters)
        self.parameters = parameters
        self.resolver = resolver if resolver is not None else FileResolver()
        if engines is None:
            engines = engines_from_config(self.config)
        self.engines = EngineDispatcher(engines)

        calibration = self.config["calibration"]
        self.calib = Calib(
            instrument,
            output_dir,
            directories=calibration["directories"],
            warn=calibration["warn"],
            time_field=calibration["time_field"],
        )
        self.groups: dict[str, Group] = {}
        self._files: list[str] = []

    def add(self, files) -> Pipeline:
        """Queue observation files."""
        if isinstance(files, str):
            files = [files]
        self._files += list(files)
        return self

    def abort(self):
        """Stop processing at the next engine call"""
        self.engines.abort()

    def frame(self, fname: str) -> Frame:
        return Frame(fname, self.instrument, header_provider=self.header_provider)

    def group_for(self, frame: Frame) -> Group:
        """The group of a frame, it is added to the group"""
        key = str(frame.uhdr.get(self.instrument.group_by, "default"))
        if key not in self.groups:
            logger.debug("New group %s", key)
            self.groups[key] = Group(key)
        group = self.groups[key]
        group.push(frame)
        return group

    def recipe_name(self, frame: Frame) -> str:
        """Recipe override, else the recipe of the observation, else the default"""
        if self.recipe is not None:
            return self.recipe
        if frame.recipe:
            return str(frame.recipe)
        logger.warning(
            "No recipe for %s, using the default %s",
            frame.file(),
            self.instrument.default_recipe,
        )
        return self.instrument.default_recipe

    def process(self, frame: Frame, group: Group, name: str | None = None) -> Outcome:
        """Compile and execute the recipe of one observation"""
        name = name or self.recipe_name(frame)
        outcome = Outcome(frame.file(), recipe=name)
        logger.info("Processing %s with recipe %s", frame.file(), name)

        self.calib.frame = frame
        recipe = Recipe(
            name,
            self.instrument.name,
            self.resolver,
            debug=self.debug,
            batch=self.batch,
            parameters=self.parameters,
            config=self.config,
        )
        context = RunContext(
            frame,
            group,
            self.calib,
            self.engines,
            debug=self.debug,
            batch=self.batch,
        )
        outcome.result = recipe.run(context, obj=frame.uhdr.get("ORAC_OBJECT"))
        return outcome

    def failed(self, fname: str, name: str | None, error: Exception) -> Outcome:
        logger.error("Processing of %s failed: %s", fname, error)
        return Outcome(fname, recipe=name, error=error)

    def run(self) -> list[Outcome]:
        """Process all queued files.

        Returns
        -------
        list(Outcome)
            one per processed file
        """
        os.makedirs(self.output_dir, exist_ok=True)

        files, self._files = self._files, []
        outcomes = []
        if self.batch:
            # all group members are known before the first recipe runs
            queue = []
            for fname in files:
                try:
                    frame = self.frame(fname)
                except OSError as ex:
                    if not self.resume:
                        raise
                    outcomes.append(self.failed(fname, None, ex))
                    continue
                queue.append((fname, frame, self.group_for(frame)))
        else:
            queue = [(fname, None, None) for fname in files]

        for fname, frame, group in tqdm(queue, desc="Observations"):
            name = None
            try:
                if frame is None:
                    frame = self.frame(fname)
                    group = self.group_for(frame)
                name = self.recipe_name(frame)
                outcome = self.process(frame, group, name)
            except UserAbort:
                raise
            except (RecipeError, CalibrationError, OSError) as ex:
                if not self.resume:
                    raise
                outcome = self.failed(fname, name, ex)
            outcomes.append(outcome)

        nfailed = sum(1 for o in outcomes if o.error is not None)
        logger.info("Processed %d observations, %d failed", len(outcomes), nfailed)
        return outcomes
