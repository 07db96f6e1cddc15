"""
Execution engine for compiled recipes

The engine walks the statement tree of a CompiledRecipe. Every
statement runs in the namespace of its scope; the only objects handed
in from outside are those of the RunContext (frame, group, calib,
display, engines and the debug/batch flags). Included primitives get a
fresh namespace each, so their variables never leak into the caller.
Only their final PRIM_ARGS come back: bound in the caller under the
primitive name (e.g. _MEASURE_["RESULT"]) and collected for the whole
run in PRIMITIVE_PARAMS.

Any failure ends the run. It is reported with its position in the
compiled listing and raised again, the caller decides whether to go on
with the next observation.
"""

from __future__ import annotations

import builtins
import logging
import os.path
import time
from dataclasses import dataclass, field

from . import constants
from .constants import BADFRAME, OK, TERM, status_name
from .engines import EngineDispatcher
from .errors import (
    ExecutionError,
    NotCompiled,
    PipelineError,
    RecipeTerminated,
    UserAbort,
)
from .nodes import (
    OBEYW_STATUS,
    Block,
    EngineCall,
    Passthrough,
    Reference,
    Scope,
    StatusCheck,
    Trace,
)
from .util import convert_args_to_string

logger = logging.getLogger(__name__)

STATUS_CONSTANTS = {
    name: getattr(constants, name)
    for name in ("OK", "ERROR", "BADENG", "ABORT", "FATAL", "PARSE_ERROR", "TERM", "BADFRAME")
}

#:tuple: failures that point at a broken recipe rather than bad data
STRUCTURAL_ERRORS = (SyntaxError, NameError)


@dataclass
class RunContext:
    """Everything a recipe can see from the outside

    Attributes
    ----------
    frame : Frame
        the observation being processed
    group : Group
        the group the observation belongs to
    calib : Calib
        calibration selection for this observation
    engines : dict(str, Engine) or EngineDispatcher
        the engine registry
    display : object
        display handle, None if there is no display
    debug : bool
        debug mode
    batch : bool
        batch mode, the group is already fully populated
    """

    frame: object = None
    group: object = None
    calib: object = None
    engines: object = field(default_factory=dict)
    display: object = None
    debug: bool = False
    batch: bool = False

    def __post_init__(self):
        if not isinstance(self.engines, EngineDispatcher):
            self.engines = EngineDispatcher(self.engines)

    @property
    def dispatcher(self):
        return self.engines

    def abort(self):
        """Terminate the run at the next engine call or status check"""
        self.engines.abort()

    @property
    def aborted(self):
        return self.engines.aborted

    def bindings(self):
        """dict: the names bound into the recipe namespace"""
        return {
            "frame": self.frame,
            "group": self.group,
            "calib": self.calib,
            "display": self.display,
            "engines": self.engines,
            "debug": self.debug,
            "batch": self.batch,
        }


@dataclass
class ExecutionResult:
    """Outcome of a successful run

    Attributes
    ----------
    recipe : str
        name of the executed recipe
    status : int
        OK, TERM (terminated early) or BADFRAME (observation marked bad)
    elapsed : float
        run time in seconds
    terminated : bool
        whether the recipe stopped early without error
    primitive_params : dict
        final arguments of every primitive that ran
    """

    recipe: str
    status: int = OK
    elapsed: float = 0.0
    terminated: bool = False
    primitive_params: dict = field(default_factory=dict)

    @property
    def ok(self):
        return self.status in (OK, TERM)


class Executor:
    """Run compiled recipes

    Parameters
    ----------
    context_lines : int, optional
        lines of the listing shown before and after a statement that is
        structurally broken (default: 5)
    dump_file : str, optional
        where the listing is written in debug mode when a run fails
    """

    def __init__(self, context_lines=5, dump_file="pyrecipe_recipe.dump"):
        self.context_lines = context_lines
        self.dump_file = dump_file
        #:dict: final arguments of each primitive of the last run
        self.primitive_params = {}
        self._current = None
        self._handlers = {
            Passthrough: self._run_passthrough,
            EngineCall: self._run_engine_call,
            StatusCheck: self._run_status_check,
            Trace: self._run_trace,
            Scope: self._run_scope,
            Block: self._run_compound,
        }

    def namespace(self, compiled, context, parameters=None):
        """The names shared by all scopes of a run"""
        base = {"__builtins__": builtins}
        base.update(STATUS_CONSTANTS)
        base.update(context.bindings())
        base["RECPARS"] = dict(parameters or {})
        base["RECIPE"] = compiled.name
        base["PRIMITIVE_PARAMS"] = self.primitive_params
        return base

    def execute(self, compiled, context, parameters=None):
        """Execute a compiled recipe

        Parameters
        ----------
        compiled : CompiledRecipe
            output of the recipe compiler
        context : RunContext
            objects the recipe runs against
        parameters : dict, optional
            recipe parameters, visible as RECPARS

        Returns
        -------
        result : ExecutionResult

        Raises
        ------
        NotCompiled
            if no compiled recipe is given
        PipelineError
            if an engine call or STATUS assignment failed
        UserAbort
            if the run was aborted
        ExecutionError
            for any other failure of a statement
        """
        if compiled is None:
            raise NotCompiled("The recipe has not been compiled")

        self.primitive_params = {}
        self._current = None
        base = self.namespace(compiled, context, parameters)
        scope = dict(base)
        scope["PRIMITIVE"] = compiled.name
        scope["PRIM_ARGS"] = {}

        for obj in (context.frame, context.group):
            uhdr = getattr(obj, "uhdr", None)
            if uhdr is not None:
                uhdr["ORAC_DR_RECIPE"] = compiled.name

        logger.info("Starting recipe %s", compiled.name)
        if context.debug:
            logger.debug("***** Starting recipe '%s' *****", compiled.name)

        status = OK
        terminated = False
        start = time.perf_counter()
        try:
            self.run_block(compiled.body, base, scope, context)
        except RecipeTerminated:
            status = TERM
            terminated = True
        except (UserAbort, KeyboardInterrupt) as ex:
            self.report(compiled, context, ex, aborted=True)
            if isinstance(ex, UserAbort):
                raise
            raise UserAbort("Recipe was interrupted") from ex
        except PipelineError as ex:
            self.report(compiled, context, ex)
            raise
        except Exception as ex:
            window = self.report(compiled, context, ex)
            position = self._current.position if self._current is not None else None
            raise ExecutionError(
                f"Error executing recipe {compiled.name}: {ex.__class__.__name__}: {ex}",
                position=position,
                window=window,
            ) from ex
        elapsed = time.perf_counter() - start

        if getattr(context.frame, "isgood", True) is False:
            status = BADFRAME

        note = {
            TERM: " (recipe terminated early)",
            BADFRAME: " (recipe completed but frame was marked bad)",
        }.get(status, "")
        logger.info(
            "Recipe took %.3f seconds to evaluate and execute.%s", elapsed, note
        )
        if context.debug:
            logger.debug(
                "***** Recipe '%s' completed with status %s *****",
                compiled.name,
                status_name(status),
            )

        check_membership = getattr(context.group, "check_membership", None)
        if check_membership is not None:
            check_membership()

        return ExecutionResult(
            recipe=compiled.name,
            status=status,
            elapsed=elapsed,
            terminated=terminated,
            primitive_params=dict(self.primitive_params),
        )

    def report(self, compiled, context, error, aborted=False):
        """Log a failure and, in debug mode, dump the listing

        Returns
        -------
        window : list(str)
            listing lines shown around the failing statement, empty
            unless the failure is structural
        """
        statement = self._current
        window = []
        if aborted:
            logger.error("Recipe %s was terminated by the user", compiled.name)
        else:
            logger.error("RECIPE ERROR: %s", error)

        if statement is not None:
            logger.error(
                "Failed at line %d of the compiled recipe (%s, line %d)",
                statement.position,
                statement.source,
                statement.lineno,
            )
            if isinstance(error, STRUCTURAL_ERRORS):
                window = compiled.window(statement.position, self.context_lines)
                logger.error("Recipe contents around the failure:")
                for line in window:
                    logger.error(line)

        if context.debug:
            self.dump(compiled)
        return window

    def dump(self, compiled):
        """Write the compiled listing to the dump file"""
        fname = self.dump_file
        directory = os.path.dirname(fname)
        if directory != "":
            os.makedirs(directory, exist_ok=True)
        with open(fname, "w") as f:
            f.write(compiled.as_string())
        logger.error("Recipe contents dumped to %s", fname)
        return fname

    def run_block(self, statements, base, scope, context):
        for statement in statements:
            self._current = statement
            self._handlers[type(statement)](statement, base, scope, context)

    def _run_passthrough(self, statement, base, scope, context):
        if statement.executable:
            exec(statement.code(), scope)

    def _run_compound(self, statement, base, scope, context):
        def run_clause(index):
            self.run_block(statement.clauses[index].body, base, scope, context)
            self._current = statement

        scope[statement.callback] = run_clause
        try:
            exec(statement.code(), scope)
        finally:
            del scope[statement.callback]

    def _run_engine_call(self, statement, base, scope, context):
        scope[OBEYW_STATUS] = eval(statement.code(), scope)

    def _run_status_check(self, statement, base, scope, context):
        if context.aborted:
            raise UserAbort("Processing was aborted")
        if statement.variable not in scope:
            raise NameError(f"name '{statement.variable}' is not defined")
        status = scope[statement.variable]
        if status == OK:
            return
        if status == TERM:
            raise RecipeTerminated(statement.source)

        args = statement.args
        last = context.dispatcher.last
        if last is not None and last[:2] == (statement.engine, statement.action):
            args = last[2]
        raise PipelineError(statement.engine, statement.action, args, status)

    def _run_trace(self, statement, base, scope, context):
        message = statement.message
        if statement.variable is not None:
            message = message.replace("{status}", str(scope.get(statement.variable)))
        prefix = getattr(context.frame, "number", None)
        if prefix is None:
            prefix = "?"
        logger.debug("%s:%s", prefix, message)

    def _run_scope(self, statement, base, scope, context):
        arguments = {}
        for key, value in statement.arguments.items():
            if isinstance(value, Reference):
                if value.name not in scope:
                    raise NameError(
                        f"Argument {key} of {statement.primitive} refers to "
                        f"undefined variable '{value.name}'"
                    )
                value = scope[value.name]
            arguments[key] = value

        logger.debug(
            "Primitive %s arguments: %s",
            statement.primitive,
            convert_args_to_string(arguments),
        )
        local = dict(base)
        local["PRIMITIVE"] = statement.primitive
        local["PRIM_ARGS"] = arguments
        self.run_block(statement.body, base, local, context)
        self.primitive_params[statement.primitive] = local["PRIM_ARGS"]
        scope[statement.primitive] = local["PRIM_ARGS"]
