"""
Dispatch actions to external compute engines

An engine is anything with an ``obeyw(action, args)`` method that
blocks until the action has finished and returns a status code
(0 is OK). Recipes reach engines through the dispatcher, which is
bound as ``engines`` in the recipe namespace:

    engines["kappa"].obeyw("add", f"in1={a} in2={b} out={c}")
"""

from __future__ import annotations

import logging
import numbers
import shlex
import subprocess
import threading
import time

from .constants import BADENG, ERROR, OK, status_name
from .errors import UserAbort
from .util import split_arguments

logger = logging.getLogger(__name__)


class Engine:
    """Interface of an external engine"""

    def obeyw(self, action, args=""):  # pragma: no cover
        """Run an action and wait for it to finish

        Parameters
        ----------
        action : str
            name of the action
        args : str, optional
            argument string

        Returns
        -------
        status : int
            0 (OK) on success
        """
        raise NotImplementedError


class ShellEngine(Engine):
    """Engine that runs one external command per action

    The command line is ``<command> <action> <args...>``.
    A non zero exit code is reported as ERROR. If the command can not be
    started or times out, BADENG is returned, so that the engine is
    dropped from the registry.

    Parameters
    ----------
    command : str
        executable, optionally with leading arguments
    timeout : float, optional
        seconds to wait for each action, None waits forever
    """

    def __init__(self, command, timeout=None):
        self.command = command
        self.timeout = timeout

    def __repr__(self):
        return f"ShellEngine({self.command!r})"

    def obeyw(self, action, args=""):
        cmd = shlex.split(self.command) + [action] + split_arguments(args)
        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True, timeout=self.timeout
            )
        except subprocess.TimeoutExpired:
            logger.error("%s %s timed out after %s seconds", self.command, action, self.timeout)
            return BADENG
        except OSError as ex:
            logger.error("Could not run %s: %s", self.command, ex)
            return BADENG

        for line in result.stdout.splitlines():
            logger.debug("%s: %s", action, line)
        for line in result.stderr.splitlines():
            logger.warning("%s: %s", action, line)
        return OK if result.returncode == 0 else ERROR


class EngineHandle:
    """What recipes see as engines[name]"""

    def __init__(self, dispatcher, name):
        self.dispatcher = dispatcher
        self.name = name

    def obeyw(self, action, args=""):
        return self.dispatcher.invoke(self.name, action, args)


class EngineDispatcher:
    """Send actions to named engines

    Parameters
    ----------
    engines : dict(str, Engine)
        the engine registry, it is modified in place when an engine
        reports BADENG
    """

    def __init__(self, engines=None):
        self.engines = engines if engines is not None else {}
        #:tuple: (engine, action, args, status) of the most recent call
        self.last = None
        self._abort = threading.Event()

    def __getitem__(self, name):
        return EngineHandle(self, name)

    def __contains__(self, name):
        return name in self.engines

    def __iter__(self):
        return iter(self.engines)

    def __len__(self):
        return len(self.engines)

    def abort(self):
        """Request termination, the next engine call raises UserAbort"""
        self._abort.set()

    @property
    def aborted(self):
        return self._abort.is_set()

    def forget(self, name):
        """Remove an engine from the registry, so that a new one can be launched"""
        if self.engines.pop(name, None) is not None:
            logger.error("Engine %s seems to be dead. Removing it...", name)

    def invoke(self, engine, action, args=""):
        """Run an action on an engine

        Parameters
        ----------
        engine : str
            engine name
        action : str
            action name
        args : str, optional
            argument string

        Returns
        -------
        status : int
            status returned by the engine, BADENG for unknown engines

        Raises
        ------
        UserAbort
            if processing was aborted
        """
        if self.aborted:
            raise UserAbort(f"Processing aborted before {action} in {engine}")

        args = "" if args is None else str(args)
        handle = self.engines.get(engine)
        if handle is None:
            logger.error("Engine %s is not available (action=%s)", engine, action)
            self.last = (engine, action, args, BADENG)
            return BADENG

        logger.info("Calling %s in %s", action, engine)
        logger.debug("Arguments: %s", args)
        start = time.perf_counter()
        status = handle.obeyw(action, args)
        elapsed = time.perf_counter() - start

        if isinstance(status, bool) or not isinstance(status, numbers.Integral):
            logger.warning(
                "Engine %s returned %r for %s, treating it as an error", engine, status, action
            )
            status = ERROR
        status = int(status)

        logger.debug(
            "%s in %s took %.3f seconds and returned %s",
            action,
            engine,
            elapsed,
            status_name(status),
        )
        self.last = (engine, action, args, status)
        if status == BADENG:
            self.forget(engine)
        return status
