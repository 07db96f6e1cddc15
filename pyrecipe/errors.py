"""
Exceptions raised by the recipe compiler, the execution engine
and the calibration index
"""


class RecipeError(Exception):
    """Base class for all errors related to compiling and running recipes"""


class CompileError(RecipeError):
    """A recipe could not be compiled, nothing was executed"""


class NotFound(CompileError):
    """The source of a recipe or primitive could not be located

    Parameters
    ----------
    name : str
        name of the recipe or primitive
    kind : str
        "recipe" or "primitive"
    searched : list(str), optional
        locations that were searched
    """

    def __init__(self, name, kind="primitive", searched=None):
        self.name = name
        self.kind = kind
        self.searched = list(searched) if searched is not None else []
        msg = f"Could not find {kind} named {name}"
        if self.searched:
            msg += " in any of:\n" + "\n".join(self.searched)
        super().__init__(msg)


class RecursionLimitExceeded(CompileError):
    """Primitives are nested deeper than allowed, usually a recursive include"""

    def __init__(self, primitive, depth, limit, chain=()):
        self.primitive = primitive
        self.depth = depth
        self.limit = limit
        self.chain = tuple(chain)
        msg = (
            f"Primitive depth very high ({depth} > {limit}) when including {primitive}."
            " Possible recursive primitive"
        )
        if self.chain:
            msg += ": " + " -> ".join(self.chain)
        super().__init__(msg)


class PipelineError(RecipeError):
    """An engine call or a status assignment returned a bad status

    Parameters
    ----------
    engine : str or None
        name of the engine, None for a STATUS assignment
    action : str or None
        name of the action sent to the engine
    args : str or None
        argument string sent to the engine
    status : int
        returned status
    """

    def __init__(self, engine, action, args, status):
        self.engine = engine
        self.action = action
        self.args = args
        self.status = status
        if engine is None and action is None:
            msg = f"Error in pipeline, status = {status}"
        else:
            msg = f"Error in call to engine {engine} (action={action}): {status}"
            if args:
                msg += f"\nArguments were: {args}"
        super().__init__(msg)


class NotCompiled(RecipeError):
    """A recipe was executed before it was compiled"""


class ExecutionError(RecipeError):
    """A statement of the compiled recipe failed for a reason other than a bad status

    Parameters
    ----------
    message : str
        description of the failure
    position : int
        line of the failing statement in the compiled listing (1 based)
    window : list(str)
        listing lines around the failing statement (may be empty)
    """

    def __init__(self, message, position=None, window=None):
        self.position = position
        self.window = list(window) if window is not None else []
        super().__init__(message)


class UserAbort(RecipeError):
    """Processing was forcibly terminated from outside the recipe"""


class RecipeTerminated(Exception):
    """Raised when a recipe sets the TERM status to stop early without error"""


class CalibrationError(Exception):
    """Base class for calibration index problems"""


class IndexCorruption(CalibrationError):
    """The number of stored columns does not match the number of rule fields"""

    def __init__(self, key, ncolumns, nfields):
        self.key = key
        self.ncolumns = ncolumns
        self.nfields = nfields
        super().__init__(
            f"Index entry {key} has {ncolumns} columns but the rules define {nfields} fields."
            " The index file needs to be regenerated"
        )


class RuleEvalError(CalibrationError):
    """A rule predicate could not be evaluated, the rules file is malformed"""

    def __init__(self, field, rule, reason):
        self.field = field
        self.rule = rule
        self.reason = reason
        super().__init__(
            f"Could not evaluate rule for {field} ('{rule}'), check the syntax in the rules file: {reason}"
        )


class NoSuitableCalibration(CalibrationError):
    """No record of the index passed all rules"""


class UnknownCalibration(CalibrationError, KeyError):
    """The index has no record under that key"""

    def __str__(self):
        return Exception.__str__(self)
