"""
Statement tree of a compiled recipe

The recipe compiler turns recipe and primitive text into a tree of
these statements, and the execution engine walks the tree.
Every statement also renders itself into a flat text listing, which
is what gets shown (and dumped) when a statement fails.
"""

from __future__ import annotations

import logging
import textwrap
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

#:str: scope local that receives the status of an engine call
OBEYW_STATUS = "OBEYW_STATUS"
#:str: status variable that recipes assign to
STATUS = "STATUS"

INDENT = "    "


@dataclass
class Statement:
    """Common part of all statements

    Attributes
    ----------
    source : str
        name of the recipe or primitive the statement came from
    lineno : int
        line number in that source (1 based)
    position : int
        line number in the compiled listing (1 based), set once the
        CompiledRecipe is assembled
    """

    source: str
    lineno: int
    position: int = field(default=0, init=False, compare=False)

    def render(self):
        """list(str): listing lines of this statement, without indentation"""
        raise NotImplementedError


@dataclass
class Passthrough(Statement):
    """A recipe line that is executed (or kept) unchanged"""

    text: str = ""
    #:bool: False for documentation and blank lines
    executable: bool = True
    _code: object = field(default=None, init=False, repr=False, compare=False)

    def render(self):
        return textwrap.dedent(self.text).strip().splitlines() or [""]

    def code(self):
        """Compiled code object, created the first time it is needed"""
        if self._code is None:
            # pad with newlines so tracebacks point to the source line
            padding = "\n" * (self.lineno - 1)
            self._code = compile(
                padding + textwrap.dedent(self.text).strip(), f"<{self.source}>", "exec"
            )
        return self._code


@dataclass
class EngineCall(Statement):
    """A call to an external engine, its status is stored in OBEYW_STATUS"""

    text: str = ""
    engine: str | None = None
    action: str | None = None
    args: str | None = None
    _code: object = field(default=None, init=False, repr=False, compare=False)

    def render(self):
        return [f"{OBEYW_STATUS} = {self.text.strip()}"]

    def code(self):
        if self._code is None:
            padding = "\n" * (self.lineno - 1)
            self._code = compile(
                padding + self.text.strip(), f"<{self.source}>", "eval"
            )
        return self._code


@dataclass
class StatusCheck(Statement):
    """Raise a PipelineError if the variable does not hold the OK status"""

    variable: str = STATUS
    engine: str | None = None
    action: str | None = None
    args: str | None = None

    def render(self):
        if self.engine is None:
            return [f"if {self.variable} != OK: raise PipelineError(status={self.variable})"]
        return [
            f"if {self.variable} != OK: raise PipelineError({self.engine!r}, "
            f"{self.action!r}, {self.args!r}, {self.variable})"
        ]


@dataclass
class Trace(Statement):
    """Debug output, the message may reference the scope variable {status}"""

    message: str = ""
    variable: str | None = None

    def render(self):
        return [f"trace({self.message!r})"]


@dataclass
class Scope(Statement):
    """An included primitive, executed in its own namespace

    Attributes
    ----------
    primitive : str
        name of the included primitive
    arguments : dict
        parsed arguments; values of type Reference are looked up in the
        including scope when the primitive is entered
    argstring : str
        the argument string as written in the source
    depth : int
        nesting depth, the recipe itself is at depth 0
    body : list(Statement)
        statements of the primitive
    """

    primitive: str = ""
    arguments: dict = field(default_factory=dict)
    argstring: str = ""
    depth: int = 1
    body: list = field(default_factory=list)

    def render(self):
        header = f"with scope({self.primitive!r}, {self.argstring!r}):"
        return [header]


@dataclass
class Clause(Statement):
    """One clause of a compound block, e.g. the "elif x:" part"""

    header: str = ""
    body: list = field(default_factory=list)

    def render(self):
        return [self.header.strip()]


@dataclass
class Block(Statement):
    """A compound statement (if, for, while, with, try) whose clause bodies
    are statements themselves

    The headers are executed as Python code in the scope namespace, every
    clause body is replaced by a call back into the execution engine.
    """

    clauses: list = field(default_factory=list)
    _code: object = field(default=None, init=False, repr=False, compare=False)

    @property
    def callback(self):
        """str: name under which the executor binds the clause runner"""
        return f"_clause_{id(self):x}"

    def render(self):
        return [clause.header.strip() for clause in self.clauses]

    def code(self):
        if self._code is None:
            lines = []
            for index, clause in enumerate(self.clauses):
                lines.append(clause.header.strip())
                lines.append(f"{INDENT}{self.callback}({index})")
            padding = "\n" * (self.lineno - 1)
            self._code = compile(
                padding + "\n".join(lines), f"<{self.source}>", "exec"
            )
        return self._code


@dataclass(frozen=True)
class Reference:
    """Primitive argument value that refers to a variable of the including scope"""

    name: str

    def __str__(self):
        return f"${self.name}"


def assemble(statements, depth=0, listing=None):
    """Assign listing positions to all statements and render the listing

    Parameters
    ----------
    statements : list(Statement)
        statements to render, Scopes are rendered recursively
    depth : int, optional
        indentation level
    listing : list(str), optional
        listing to append to

    Returns
    -------
    listing : list(str)
        one line per rendered statement
    """
    if listing is None:
        listing = []
    for statement in statements:
        statement.position = len(listing) + 1
        if isinstance(statement, Block):
            for clause in statement.clauses:
                clause.position = len(listing) + 1
                listing.append(INDENT * depth + clause.header.strip())
                assemble(clause.body, depth + 1, listing)
            continue
        for line in statement.render():
            listing.append(INDENT * depth + line)
        if isinstance(statement, Scope):
            assemble(statement.body, depth + 1, listing)
            listing.append(INDENT * depth + f"# end {statement.primitive}")
    return listing


def walk(statements):
    """Iterate over all statements, depth first, in execution order"""
    for statement in statements:
        yield statement
        if isinstance(statement, Scope):
            yield from walk(statement.body)
        elif isinstance(statement, Block):
            for clause in statement.clauses:
                yield from walk(clause.body)


@dataclass
class CompiledRecipe:
    """The fully expanded form of a recipe, ready for the execution engine

    Attributes
    ----------
    name : str
        name of the recipe that was loaded (may include a suffix)
    instrument : str
        instrument the recipe was compiled for
    body : list(Statement)
        top level statements
    debug : bool
        whether trace statements were compiled in
    primitives : list(str)
        included primitives, in the order they were first included
    """

    name: str
    instrument: str
    body: list
    debug: bool = False
    primitives: list = field(default_factory=list)
    listing: list = field(init=False, repr=False)

    def __post_init__(self):
        self.listing = assemble(self.body)

    def __len__(self):
        return len(self.listing)

    def as_string(self):
        """str: the complete listing, one statement per line"""
        return "\n".join(self.listing) + "\n"

    def window(self, position, context=5):
        """Listing lines around a position, the line itself is marked

        Parameters
        ----------
        position : int
            listing position (1 based)
        context : int, optional
            number of lines before and after

        Returns
        -------
        lines : list(str)
            formatted as "  123: text", with ">>" marking the position
        """
        if not position:
            return []
        first = max(1, position - context)
        last = min(len(self.listing), position + context)
        lines = []
        for i in range(first, last + 1):
            marker = ">>" if i == position else "  "
            lines.append(f"{marker}{i:5d}: {self.listing[i - 1]}")
        return lines

    def statements(self):
        """Iterate over all statements in execution order"""
        return walk(self.body)
