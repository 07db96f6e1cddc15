# -*- coding: utf-8 -*-
"""
Collection of various useful and/or reoccuring functions across pyrecipe
"""

import logging
import os
import shlex

from . import __version__

logger = logging.getLogger(__name__)


def log_version():
    """For Debug purposes"""
    logger.debug("----------------------")
    logger.debug("pyrecipe version: %s", __version__)


def start_logging(log_file="log.log"):
    """Start logging to log file and command line

    Parameters
    ----------
    log_file : str, optional
        name of the logging file (default: "log.log")
    """

    log_dir = os.path.dirname(log_file)
    if log_dir != "":
        os.makedirs(log_dir, exist_ok=True)

    logging.basicConfig(
        filename=log_file,
        level=logging.DEBUG,
        format="%(asctime)-15s - %(levelname)s - %(name)-8s - %(message)s",
    )
    logging.captureWarnings(True)
    log_version()


def coerce_value(value):
    """Convert a string into int, float or bool if it looks like one

    Parameters
    ----------
    value : str
        text to convert

    Returns
    -------
    value : int, float, bool or str
        the converted value, or the input if no conversion applies
    """
    if not isinstance(value, str):
        return value
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    return value


def to_number(value):
    """Return value as float if possible, otherwise unchanged"""
    if isinstance(value, bool):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return value


def split_arguments(argstring):
    """Split an argument string into tokens, honouring quotes

    Parameters
    ----------
    argstring : str
        e.g. 'FILTER=J TITLE="a b" VERBOSE'

    Returns
    -------
    tokens : list(str)
        e.g. ["FILTER=J", "TITLE=a b", "VERBOSE"]
    """
    if argstring is None:
        return []
    lexer = shlex.shlex(argstring, posix=True)
    lexer.whitespace_split = True
    lexer.commenters = ""
    return list(lexer)


def convert_args_to_string(arguments):
    """Inverse of the argument parsing, used for logging

    Parameters
    ----------
    arguments : dict
        primitive arguments

    Returns
    -------
    argstring : str
        "key=value" pairs, sorted by key
    """
    parts = []
    for key in sorted(arguments):
        value = arguments[key]
        if value is True:
            parts.append(key)
            continue
        value = str(value)
        if " " in value:
            value = f'"{value}"'
        parts.append(f"{key}={value}")
    return " ".join(parts)
