"""
Recipe compiler

Expands a recipe and every primitive it includes into a single tree of
statements (see pyrecipe.nodes). On the way it

* replaces primitive inclusion lines by scopes that carry the primitive
  arguments and the expanded primitive body,
* wraps every unguarded engine call into call, trace and status check
  statements,
* adds a status check after every assignment to STATUS,
* turns compound statements (if, for, while, with, try) into blocks
  whose clause bodies are expanded like any other source,
* limits the nesting depth of primitives.

Nothing is executed here, and a recipe that fails to compile is never
partially returned.
"""

from __future__ import annotations

import ast
import logging
import re

from .errors import CompileError, NotFound, RecursionLimitExceeded
from .nodes import (
    OBEYW_STATUS,
    STATUS,
    Block,
    Clause,
    CompiledRecipe,
    EngineCall,
    Passthrough,
    Reference,
    Scope,
    StatusCheck,
    Trace,
)
from .resolver import PRIMITIVE, RECIPE
from .util import coerce_value, split_arguments

logger = logging.getLogger(__name__)

#:int: default maximum nesting depth of primitives
MAX_DEPTH = 10

DOC_MARKER = '"""'
INCLUDE = re.compile(r"^\s*(_[A-Z][A-Z0-9_]*_)(?:\s+(.*?))?\s*$")
ENGINE_CALL = re.compile(r"\bengines\s*\[\s*['\"]?(\w+)['\"]?\s*\]\s*\.\s*obeyw\s*\(")
ENGINE_ACTION = re.compile(r"\.obeyw\(\s*['\"](\w+)['\"]")
ENGINE_ARGS = re.compile(r"\.obeyw\(\s*['\"]\w+['\"]\s*,\s*(.+)\)")
GUARD = re.compile(r"(#|=|^\s*(if|elif|else|while)\b)")
STATUS_ASSIGNMENT = re.compile(r"^\s*STATUS\s*=(?!=)")
COMPOUND = re.compile(r"^\s*(if|for|while|with|try)\b.*:\s*(#.*)?$")
CONTINUATION = re.compile(r"^\s*(elif|else|except|finally)\b.*:\s*(#.*)?$")
DEFINITION = re.compile(r"^\s*(async\s+def|def|class)\b")
ARGUMENT_NAME = re.compile(r"^[A-Za-z_]\w*$")


def parse_engine_line(line):
    """Split a line containing an engine call into engine, action and arguments

    Parameters
    ----------
    line : str
        source line

    Returns
    -------
    engine : str or None
        engine name, if found
    action : str
        action name, "(Unknown)" if it could not be determined
    args : str
        argument text, "(No arguments)" if there are none
    """
    engine = action = args = None
    match = ENGINE_CALL.search(line)
    if match:
        engine = match.group(1)
    match = ENGINE_ACTION.search(line)
    if match:
        action = match.group(1)
    match = ENGINE_ARGS.search(line)
    if match:
        args = match.group(1).strip()
        try:
            args = ast.literal_eval(args)
        except (ValueError, SyntaxError):
            pass
    if action is None:
        action = "(Unknown)"
    if args is None:
        args = "(No arguments)"
    return engine, action, str(args)


def is_guarded(line, match):
    """Whether an engine call already handles its own status

    That is the case if it is commented out, its result is assigned,
    or it is part of a conditional.
    """
    return GUARD.search(line[: match.start()]) is not None


def indentation(line):
    """Number of leading whitespace characters"""
    return len(line) - len(line.lstrip())


def block_end(numbered, start, indent):
    """Index after the last line that is indented deeper than indent

    Blank and comment lines do not end a block, but are not included at
    its end either.
    """
    end = start
    for i in range(start, len(numbered)):
        line = numbered[i][1]
        stripped = line.strip()
        if stripped == "" or stripped.startswith("#"):
            continue
        if indentation(line) <= indent:
            break
        end = i + 1
    return end


def is_continuation(line, indent):
    """Whether a line continues a compound block (elif, else, except, finally)"""
    return indentation(line) == indent and CONTINUATION.match(line) is not None


def parse_arguments(argstring):
    """Parse a primitive argument string into a dictionary

    Parameters
    ----------
    argstring : str
        space separated "key=value" tokens. Values starting with $
        refer to variables of the including scope, a key without value
        is a flag and set to True.

    Returns
    -------
    arguments : dict
        parsed arguments

    Raises
    ------
    CompileError
        if the string can not be tokenized or a key is not a valid name
    """
    try:
        tokens = split_arguments(argstring)
    except ValueError as ex:
        raise CompileError(f"Could not parse primitive arguments '{argstring}': {ex}")

    arguments = {}
    for token in tokens:
        key, sep, value = token.partition("=")
        if not ARGUMENT_NAME.match(key):
            raise CompileError(
                f"Invalid primitive argument '{token}' in '{argstring}'"
            )
        if not sep:
            arguments[key] = True
        elif value.startswith("$") and ARGUMENT_NAME.match(value[1:]):
            arguments[key] = Reference(value[1:])
        else:
            arguments[key] = coerce_value(value)
    return arguments


class RecipeCompiler:
    """Compile recipes into a CompiledRecipe

    Parameters
    ----------
    resolver : SourceResolver
        provides the source of recipes and primitives
    max_depth : int, optional
        maximum nesting depth of primitives (default: 10)
    debug : bool, optional
        compile trace statements around engine calls and primitives
    suffixes : list(str), optional
        recipe name suffixes to try before the plain name, in priority order
    """

    def __init__(self, resolver, max_depth=MAX_DEPTH, debug=False, suffixes=()):
        self.resolver = resolver
        self.max_depth = max_depth
        self.debug = debug
        self.suffixes = [s if s.startswith("_") else f"_{s}" for s in suffixes]

    def resolve_recipe(self, name, instrument):
        """Find the recipe source, trying the suffixes first

        Returns
        -------
        found : str
            name of the recipe that was found
        lines : list(str)
            its source
        """
        error = None
        for suffix in self.suffixes + [""]:
            candidate = name + suffix
            try:
                lines = self.resolver.resolve(candidate, instrument, RECIPE)
            except NotFound as ex:
                error = ex
                continue
            if candidate != name:
                logger.info(
                    "Actual recipe loaded is %s due to recipe suffix modifier",
                    candidate,
                )
            return candidate, lines
        raise error

    def compile(self, name, instrument, debug=None):
        """Compile a recipe

        Parameters
        ----------
        name : str
            recipe name
        instrument : str
            instrument name
        debug : bool, optional
            overrides the debug setting of the compiler

        Returns
        -------
        compiled : CompiledRecipe
            the expanded recipe

        Raises
        ------
        NotFound
            if the recipe or one of its primitives does not exist
        RecursionLimitExceeded
            if primitives are nested deeper than max_depth
        CompileError
            for malformed primitive arguments
        """
        debug = self.debug if debug is None else debug
        found, lines = self.resolve_recipe(name, instrument)
        logger.debug("Compiling recipe %s for %s", found, instrument)

        self._instrument = instrument
        self._debug = debug
        self._sources = {}
        self._included = []
        try:
            body = self.expand(found, lines, depth=0, chain=(found,))
        finally:
            self._sources = {}

        return CompiledRecipe(
            name=found,
            instrument=instrument,
            body=body,
            debug=debug,
            primitives=list(dict.fromkeys(self._included)),
        )

    def primitive_source(self, primitive):
        """Resolve a primitive once per compilation"""
        if primitive not in self._sources:
            self._sources[primitive] = self.resolver.resolve(
                primitive, self._instrument, PRIMITIVE
            )
        return self._sources[primitive]

    def expand(self, source, lines, depth, chain):
        """Turn the lines of one recipe or primitive into statements

        Parameters
        ----------
        source : str
            name of the recipe or primitive
        lines : list(str)
            its source lines
        depth : int
            nesting depth of this source, 0 for the recipe
        chain : tuple(str)
            names of the including primitives, for error messages

        Returns
        -------
        statements : list(Statement)
        """
        return self.expand_lines(source, list(enumerate(lines, start=1)), depth, chain)

    def expand_lines(self, source, numbered, depth, chain):
        """Like expand, for (lineno, line) pairs of a source or a clause body"""
        statements = []
        in_doc = False
        i = 0
        while i < len(numbered):
            lineno, line = numbered[i]
            i += 1
            stripped = line.strip()

            # documentation blocks are kept but never scanned
            if in_doc:
                statements.append(Passthrough(source, lineno, text=line, executable=False))
                if DOC_MARKER in stripped:
                    in_doc = False
                continue
            if stripped.startswith(DOC_MARKER):
                statements.append(Passthrough(source, lineno, text=line, executable=False))
                if DOC_MARKER not in stripped[len(DOC_MARKER):]:
                    in_doc = True
                continue
            if stripped == "" or stripped.startswith("#"):
                statements.append(Passthrough(source, lineno, text=line, executable=False))
                continue

            if DEFINITION.match(line):
                end = block_end(numbered, i, indentation(line))
                text = "\n".join(text for _, text in numbered[i - 1 : end])
                statements.append(Passthrough(source, lineno, text=text))
                i = end
                continue

            if COMPOUND.match(line):
                indent = indentation(line)
                clauses = []
                header_lineno, header = lineno, line
                while True:
                    end = block_end(numbered, i, indent)
                    body = self.expand_lines(source, numbered[i:end], depth, chain)
                    clauses.append(Clause(source, header_lineno, header=header, body=body))
                    i = end
                    if i < len(numbered) and is_continuation(numbered[i][1], indent):
                        header_lineno, header = numbered[i]
                        i += 1
                    else:
                        break
                statements.append(Block(source, lineno, clauses=clauses))
                continue

            match = INCLUDE.match(line)
            if match:
                primitive, argstring = match.group(1), match.group(2) or ""
                statements.append(
                    self.include(primitive, argstring, source, lineno, depth + 1, chain)
                )
                continue

            match = ENGINE_CALL.search(line)
            if match:
                statements.extend(self.wrap_engine_call(source, lineno, line, match))
                continue

            if STATUS_ASSIGNMENT.match(line):
                statements.append(Passthrough(source, lineno, text=line))
                statements.append(StatusCheck(source, lineno, variable=STATUS))
                continue

            statements.append(Passthrough(source, lineno, text=line))

        if in_doc:
            logger.warning("Unterminated documentation block in %s", source)
        return statements

    def include(self, primitive, argstring, source, lineno, depth, chain):
        """Expand an included primitive into its own scope"""
        chain = chain + (primitive,)
        if depth > self.max_depth:
            raise RecursionLimitExceeded(primitive, depth, self.max_depth, chain)

        arguments = parse_arguments(argstring)
        lines = self.primitive_source(primitive)
        self._included.append(primitive)

        body = []
        if self._debug:
            body.append(Trace(primitive, 0, message=f">> Entering {primitive}"))
        body += self.expand(primitive, lines, depth, chain)
        if self._debug:
            body.append(Trace(primitive, len(lines), message=f"<< Leaving {primitive}"))

        return Scope(
            source,
            lineno,
            primitive=primitive,
            arguments=arguments,
            argstring=argstring,
            depth=depth,
            body=body,
        )

    def wrap_engine_call(self, source, lineno, line, match):
        """Statements for a line that calls an engine"""
        engine, action, args = parse_engine_line(line)

        if is_guarded(line, match):
            statements = [Passthrough(source, lineno, text=line)]
            if self._debug:
                statements.append(
                    Trace(
                        source,
                        lineno,
                        message="Returned from engine call. Status intercepted",
                    )
                )
            return statements

        statements = []
        if self._debug:
            statements.append(
                Trace(
                    source,
                    lineno,
                    message=f"{source}:({engine}) ++ Calling {action} in {engine}: {args}",
                )
            )
        statements.append(
            EngineCall(source, lineno, text=line, engine=engine, action=action, args=args)
        )
        if self._debug:
            statements.append(
                Trace(
                    source,
                    lineno,
                    message="Returned with status = {status}",
                    variable=OBEYW_STATUS,
                )
            )
        statements.append(
            StatusCheck(
                source,
                lineno,
                variable=OBEYW_STATUS,
                engine=engine,
                action=action,
                args=args,
            )
        )
        return statements
