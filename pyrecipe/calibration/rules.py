"""
Rule predicates of a calibration index

A rule is a small expression about the stored value of one field of a
calibration record, e.g.

    ORAC_EXPOSURE_TIME == {ORAC_EXPOSURE_TIME}
    ORAC_AIRMASS       value > {ORAC_AIRMASS} - 0.1 and value < {ORAC_AIRMASS} + 0.1
    ORACTIME

A rule that starts with a comparison operator compares the stored value
(``value``) with the right hand side. ``{KEY}`` is replaced by the
header value of the observation that needs calibrating. An empty rule
always passes.
"""

import logging
import re

from py_expression_eval import Parser

from ..errors import CalibrationError, RuleEvalError
from ..util import to_number

logger = logging.getLogger(__name__)

#:str: name of the stored value inside a rule
VALUE = "value"

COMPARISON = re.compile(r"^\s*(==|!=|>=|<=|>|<)")
PLACEHOLDER = re.compile(r"\{([^{}\s]+)\}")


def literal(value):
    """Render a header value as a literal of the rule language"""
    value = to_number(value)
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, float):
        return repr(value)
    value = str(value)
    if "'" in value and '"' in value:
        raise ValueError(f"can not quote {value!r}, it contains both quote characters")
    quote = '"' if "'" in value else "'"
    return f"{quote}{value}{quote}"


class RulePredicate:
    """The rule of one field

    Parameters
    ----------
    field : str
        field name
    rule : str, optional
        rule expression, empty for no restriction
    """

    def __init__(self, field, rule=""):
        self.field = field
        self.rule = (rule or "").strip()

    def __repr__(self):
        return f"RulePredicate({self.field!r}, {self.rule!r})"

    def __str__(self):
        return f"{self.field} {self.rule}".strip()

    @property
    def empty(self):
        return self.rule == ""

    @property
    def placeholders(self):
        """list(str): header keys the rule refers to"""
        return PLACEHOLDER.findall(self.rule)

    def expression(self, header):
        """The rule with all placeholders replaced by header values

        Raises
        ------
        RuleEvalError
            if the header lacks a value the rule refers to
        """

        def substitute(match):
            key = match.group(1)
            value = header.get(key)
            if value is None:
                raise RuleEvalError(self.field, self.rule, f"header has no value for {key}")
            try:
                return literal(value)
            except ValueError as ex:
                raise RuleEvalError(self.field, self.rule, f"header value of {key} {ex}")

        expression = PLACEHOLDER.sub(substitute, self.rule)
        if COMPARISON.match(expression):
            expression = f"{VALUE} {expression.strip()}"
        return expression

    def evaluate(self, value, header):
        """Whether a stored value passes the rule

        Parameters
        ----------
        value : str, float
            value stored in the calibration record
        header : dict
            header of the observation that needs calibrating

        Returns
        -------
        passed : bool

        Raises
        ------
        RuleEvalError
            if the rule can not be evaluated
        """
        if self.empty:
            return True

        expression = self.expression(header)
        try:
            parsed = Parser().parse(expression)
            if VALUE not in parsed.variables():
                raise ValueError(f"rule does not compare '{VALUE}'")
            result = parsed.evaluate({VALUE: to_number(value)})
        except CalibrationError:
            raise
        except Exception as ex:
            raise RuleEvalError(self.field, self.rule, str(ex)) from ex

        logger.debug("Rule %s: %s -> %s (value=%s)", self.field, expression, result, value)
        return bool(result)


def parse_rules(lines):
    """Read rules from the lines of a rules file

    Parameters
    ----------
    lines : iterable(str)
        "field rule" lines, comments start with #

    Returns
    -------
    rules : dict(str, RulePredicate)
        the rules, ordered by field name
    """
    rules = {}
    for line in lines:
        line = line.strip()
        if line == "" or line.startswith("#"):
            continue
        parts = line.split(None, 1)
        field = parts[0]
        rule = parts[1] if len(parts) > 1 else ""
        if field in rules:
            logger.warning("Rule for %s defined twice, using the last one", field)
        rules[field] = RulePredicate(field, rule)
    return {field: rules[field] for field in sorted(rules)}
