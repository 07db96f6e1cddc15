"""
Calibration selection for one observation at a time

Recipes use ``calib`` to find the calibration files suitable for the
current frame, e.g.

    dark = calib.get("dark")
    calib.add("dark", outfile, frame.uhdr)

An explicit choice can be set for a kind; with noupdate it is pinned
and later additions of the same kind do not replace it.
"""

import logging
import os.path

from ..errors import CalibrationError, NoSuitableCalibration
from ..instruments.instrument_info import load_instrument
from .index import Index

logger = logging.getLogger(__name__)


class Calib:
    """Calibration indices of an instrument

    Parameters
    ----------
    instrument : str or Instrument
        instrument name
    output_dir : str, optional
        directory of the index files (default: current directory)
    directories : list(str), optional
        calibration directories searched for rules files, before those
        of the instrument
    warn : bool, optional
        log why records were rejected
    time_field : str, optional
        field used to select by time (default: ORACTIME)
    frame : Frame, optional
        the observation that needs calibrating
    """

    def __init__(
        self,
        instrument,
        output_dir=".",
        directories=None,
        warn=False,
        time_field="ORACTIME",
        frame=None,
    ):
        self.instrument = load_instrument(instrument)
        self.output_dir = output_dir
        self.directories = list(directories or []) + self.instrument.calibration_dirs()
        self.warn = warn
        self.time_field = time_field
        self.frame = frame
        self._indices = {}
        self._names = {}
        self._noupdate = set()

    @property
    def thing(self):
        """dict: header the rules are evaluated against"""
        if self.frame is None:
            raise CalibrationError("No observation is set for calibration selection")
        return self.frame.uhdr

    def find_file(self, fname):
        """Locate a file in the calibration directories

        Raises
        ------
        CalibrationError
            if the file is in none of them
        """
        for directory in self.directories:
            path = os.path.join(directory, fname)
            if os.path.exists(path):
                return path
        raise CalibrationError(
            f"Could not find '{fname}' in any of: {', '.join(self.directories) or '(none)'}"
        )

    def index(self, kind):
        """The index of a calibration kind, created on first use"""
        if kind not in self._indices:
            rulesfile = self.find_file(f"rules.{kind}")
            indexfile = os.path.join(self.output_dir, f"index.{kind}")
            try:
                static = self.find_file(f"index.{kind}")
            except CalibrationError:
                static = None
            self._indices[kind] = Index(indexfile, rulesfile, static=static)
        return self._indices[kind]

    def set(self, kind, name):
        """Choose a calibration explicitly, ignored if the kind is pinned"""
        if kind in self._noupdate:
            logger.debug("%s is pinned to %s, ignoring %s", kind, self._names[kind], name)
            return
        self._names[kind] = name

    def noupdate(self, kind, name):
        """Pin a calibration, it must pass the rules whenever it is used"""
        self._names[kind] = name
        self._noupdate.add(kind)

    def name(self, kind):
        """The current choice for a kind, None if there is none"""
        return self._names.get(kind)

    def get(self, kind, negative=False, default=None, verify=True):
        """The calibration to use for the current observation

        Parameters
        ----------
        kind : str
            calibration kind, e.g. "dark"
        negative : bool, optional
            only consider calibrations taken before the observation
        default : callable, optional
            called if the index has no suitable calibration
        verify : bool, optional
            check the current choice against the rules (default: True)

        Returns
        -------
        name : str
            the key of the calibration

        Raises
        ------
        CalibrationError
            if a pinned calibration does not pass the rules
        NoSuitableCalibration
            if nothing suitable exists and there is no default
        """
        index = self.index(kind)
        header = self.thing
        current = self._names.get(kind)

        if current is not None:
            if not verify:
                return current
            if index.verify(current, header, warn=self.warn):
                return current
            if kind in self._noupdate:
                raise CalibrationError(f"Override {kind} {current} is not suitable! Giving up")

        choose = index.choose_by_negative_dt if negative else index.nearest_by_time
        try:
            match = choose(self.time_field, header, warn=self.warn)
        except NoSuitableCalibration:
            if default is None:
                raise
            match = default()
            if match is None:
                raise NoSuitableCalibration(f"No suitable {kind} found from default callback")
            return match

        self._names[kind] = match
        return match

    def entry(self, kind, column):
        """A column of the record suitable for the current observation

        No rule is checked for a pinned choice.

        Parameters
        ----------
        kind : str
            calibration kind
        column : str or list(str)
            field name(s)

        Returns
        -------
        value : object or dict
            the value, or field -> value for a list of columns
        """
        index = self.index(kind)
        if kind in self._noupdate:
            key = self._names[kind]
        else:
            key = index.nearest_by_time(self.time_field, self.thing, warn=self.warn)
        record = index.lookup(key)

        columns = [column] if isinstance(column, str) else list(column)
        for c in columns:
            if c not in record:
                raise CalibrationError(f"Unable to find column {c} for index entry {key}")
        if isinstance(column, str):
            return record[column]
        return {c: record[c] for c in columns}

    def add(self, kind, name, header=None):
        """Store a new calibration in the index and make it the current choice"""
        header = self.thing if header is None else header
        self.index(kind).add(name, header)
        self.set(kind, name)
