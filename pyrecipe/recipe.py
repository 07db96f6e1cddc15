"""
A recipe for one instrument, from compilation to execution

Example usage:
    from pyrecipe.recipe import Recipe
    from pyrecipe.execution import RunContext

    recipe = Recipe("REDUCE_DARK", "ufti", resolver)
    recipe.compile()
    result = recipe.execute(RunContext(frame, group, calib, engines))
"""

from __future__ import annotations

import enum
import logging

from .compiler import MAX_DEPTH, RecipeCompiler
from .errors import NotCompiled
from .execution import Executor
from .nodes import Block, EngineCall, Passthrough, Scope
from .parameters import RecipeParameters

logger = logging.getLogger(__name__)


class State(enum.Enum):
    IDLE = "idle"
    COMPILING = "compiling"
    READY = "ready"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class Recipe:
    """A named recipe for an instrument

    Every run needs its own compilation: executing consumes the compiled
    recipe, so a second execute without compile raises NotCompiled.

    Parameters
    ----------
    name : str
        recipe name
    instrument : str
        instrument name
    resolver : SourceResolver
        provides recipe and primitive sources
    debug : bool, optional
        compile trace statements and dump the listing on failure
    batch : bool, optional
        default batch flag of runs
    suffixes : list(str), optional
        recipe name suffixes to try first
    parameters : RecipeParameters, dict or str, optional
        recipe parameters, see pyrecipe.parameters
    config : dict, optional
        configuration with "compiler" and "execution" sections
    """

    def __init__(
        self,
        name: str,
        instrument: str,
        resolver,
        debug: bool = False,
        batch: bool = False,
        suffixes=(),
        parameters=None,
        config: dict | None = None,
    ):
        config = config or {}
        compiler_config = config.get("compiler", {})
        execution_config = config.get("execution", {})

        self.name = name
        self.instrument = instrument
        self.debug = debug or compiler_config.get("debug", False)
        self.batch = batch or execution_config.get("batch", False)
        suffixes = list(suffixes) or compiler_config.get("suffixes", [])

        if not isinstance(parameters, RecipeParameters):
            parameters = RecipeParameters(parameters)
        self.parameters = parameters

        self.compiler = RecipeCompiler(
            resolver,
            max_depth=compiler_config.get("max_depth", MAX_DEPTH),
            debug=self.debug,
            suffixes=suffixes,
        )
        self.executor = Executor(
            context_lines=execution_config.get("context_lines", 5),
            dump_file=execution_config.get("dump_file", "pyrecipe_recipe.dump"),
        )
        self.state = State.IDLE
        self._compiled = None
        #:CompiledRecipe: the most recent compilation, kept for inspection
        self.last_compiled = None

    def __str__(self):
        return f"{self.name} ({self.instrument})"

    @property
    def have_compiled(self):
        return self._compiled is not None

    @property
    def compiled(self):
        return self._compiled

    def compile(self, debug=None):
        """Compile the recipe for the next run

        Parameters
        ----------
        debug : bool, optional
            overrides the debug flag of the recipe

        Returns
        -------
        compiled : CompiledRecipe
        """
        self.state = State.COMPILING
        self._compiled = None
        try:
            compiled = self.compiler.compile(
                self.name, self.instrument, debug=self.debug if debug is None else debug
            )
        except Exception:
            self.state = State.FAILED
            raise
        self._compiled = self.last_compiled = compiled
        self.state = State.READY
        return compiled

    def recpars(self, obj=None):
        """dict: the recipe parameters, specific to an object if given"""
        name = self.last_compiled.name if self.last_compiled is not None else self.name
        parameters = self.parameters.for_recipe(name, obj)
        if not parameters and name != self.name:
            parameters = self.parameters.for_recipe(self.name, obj)
        return parameters

    def execute(self, context, obj=None):
        """Run the compiled recipe

        Parameters
        ----------
        context : RunContext
            objects the recipe runs against
        obj : str, optional
            observed object, selects object specific recipe parameters

        Returns
        -------
        result : ExecutionResult

        Raises
        ------
        NotCompiled
            if compile was not called since the last run
        """
        if not self.have_compiled:
            raise NotCompiled(f"Recipe {self.name} has not been compiled")

        compiled, self._compiled = self._compiled, None
        self.state = State.RUNNING
        try:
            result = self.executor.execute(compiled, context, self.recpars(obj))
        except BaseException:
            self.state = State.FAILED
            raise
        self.state = State.SUCCEEDED
        return result

    def run(self, context, obj=None):
        """Compile and execute in one go, debug follows the run context"""
        self.compile(debug=self.debug or context.debug)
        return self.execute(context, obj=obj)

    def _inspect(self):
        """A compilation that does not change the state of the recipe"""
        if self._compiled is not None:
            return self._compiled
        return self.compiler.compile(self.name, self.instrument, debug=self.debug)

    def primitives(self):
        """list(str): primitives used by the recipe, in order of first use"""
        return list(self._inspect().primitives)

    def primitive_tree(self):
        """Nested primitive structure of the recipe

        Returns
        -------
        tree : list(tuple(str, list))
            (primitive, children) for every inclusion, in order
        """

        def branches(statements):
            tree = []
            for statement in statements:
                if isinstance(statement, Scope):
                    tree.append((statement.primitive, branches(statement.body)))
                elif isinstance(statement, Block):
                    for clause in statement.clauses:
                        tree += branches(clause.body)
            return tree

        return branches(self._inspect().body)

    def check_syntax(self):
        """Compile every Python statement of the recipe without running it

        Returns
        -------
        errors : list(tuple(Statement, SyntaxError))
            statements that failed, empty if the recipe is fine
        """
        compiled = self._inspect()
        errors = []
        for statement in compiled.statements():
            if isinstance(statement, Passthrough) and not statement.executable:
                continue
            if not isinstance(statement, (Passthrough, Block, EngineCall)):
                continue
            try:
                statement.code()
            except SyntaxError as ex:
                logger.error(
                    "Syntax error in %s line %d: %s", statement.source, statement.lineno, ex.msg
                )
                errors.append((statement, ex))
        return errors

    def as_string(self):
        """str: the compiled listing"""
        return self._inspect().as_string()
