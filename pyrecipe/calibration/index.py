"""
Index of calibration records

The index file holds one record per line, the key followed by one
column per rule field. The first line names the fields:

    #ORACTIME ORAC_EXPOSURE_TIME ORAC_READOUT_MODE
    dark_0012 55123.25 10.0 NDSTARE
    dark_0031 55124.50 5.0 NDSTARE

Fields are always ordered by name, so the column order follows from the
rules file alone. Comments and blank lines are ignored.
"""

import logging
import os
import tempfile
import threading
from os.path import abspath, dirname, exists

from ..errors import (
    CalibrationError,
    IndexCorruption,
    NoSuitableCalibration,
    UnknownCalibration,
)
from ..util import to_number
from .rules import parse_rules

logger = logging.getLogger(__name__)


def read_lines(fname):
    """Lines of a file without comments and blank lines"""
    with open(fname) as f:
        for line in f:
            line = line.strip()
            if line == "" or line.startswith("#"):
                continue
            yield line


class Index:
    """Calibration records plus the rules that select them

    Parameters
    ----------
    indexfile : str
        file the records are read from and written to
    rulesfile : str
        file with one rule per field
    static : str, optional
        index file used when indexfile does not exist yet, e.g. one
        shipped with the calibration data
    """

    def __init__(self, indexfile, rulesfile, static=None):
        self.indexfile = indexfile
        self.rulesfile = rulesfile
        self._lock = threading.RLock()
        self.rules = self.read_rules(rulesfile)

        source = indexfile
        if not exists(indexfile) and static is not None and exists(static):
            logger.debug("Using static index %s", static)
            source = static
        self.index = self.read_index(source) if exists(source) else {}

    def __repr__(self):
        return f"Index({self.indexfile!r}, {len(self.index)} records)"

    def __contains__(self, key):
        with self._lock:
            return key in self.index

    def __len__(self):
        with self._lock:
            return len(self.index)

    def keys(self):
        with self._lock:
            return list(self.index)

    @property
    def fields(self):
        """list(str): the rule fields, i.e. the columns of every record"""
        return list(self.rules)

    @staticmethod
    def read_rules(fname):
        logger.debug("Reading rules from %s", fname)
        return parse_rules(read_lines(fname))

    @staticmethod
    def read_index(fname):
        """Read the records of an index file

        Returns
        -------
        index : dict(str, list)
            key -> column values, in file order. Numbers are read as
            float, everything else stays a string
        """
        logger.debug("Reading index from %s", fname)
        index = {}
        for line in read_lines(fname):
            key, *values = line.split()
            index[key] = [to_number(v) for v in values]
        return index

    def write_index(self):
        """Write all records, sorted by key, replacing the file atomically"""
        with self._lock:
            directory = dirname(abspath(self.indexfile))
            os.makedirs(directory, exist_ok=True)
            fd, tmpfile = tempfile.mkstemp(
                prefix=".index", suffix=".tmp", dir=directory, text=True
            )
            try:
                with os.fdopen(fd, "w") as f:
                    f.write("#" + " ".join(self.fields) + "\n")
                    for key in sorted(self.index):
                        values = " ".join(str(v) for v in self.index[key])
                        f.write(f"{key} {values}\n")
                os.replace(tmpfile, self.indexfile)
            except BaseException:
                os.remove(tmpfile)
                raise
        logger.debug("Wrote %d records to %s", len(self.index), self.indexfile)

    def add(self, key, header):
        """Add (or replace) a record and write the index

        Parameters
        ----------
        key : str
            record key, usually the calibration file name
        header : dict
            provides a value for every rule field

        Raises
        ------
        CalibrationError
            if a rule field is missing from the header, or a key or value
            can not be stored in the index file
        """
        missing = [f for f in self.fields if header.get(f) is None]
        if missing:
            raise CalibrationError(
                f"Can not add {key} to {self.indexfile}, the header lacks {', '.join(missing)}"
            )
        values = [header[f] for f in self.fields]
        for item in [key] + [str(v) for v in values]:
            if item == "" or len(item.split()) != 1:
                raise CalibrationError(
                    f"Can not store '{item}' in index {self.indexfile}, it must be a single word"
                )

        with self._lock:
            self.index[key] = values
            self.write_index()
        logger.info("Added %s to index %s", key, self.indexfile)

    def remove(self, key):
        with self._lock:
            if self.index.pop(key, None) is None:
                raise UnknownCalibration(f"{key} is not in index {self.indexfile}")
            self.write_index()

    def columns(self, key):
        """Stored values of a record, checked against the rule fields

        Raises
        ------
        UnknownCalibration
            if the key is not in the index
        IndexCorruption
            if the number of values does not match the number of fields
        """
        with self._lock:
            try:
                values = self.index[key]
            except KeyError:
                raise UnknownCalibration(f"{key} is not in index {self.indexfile}")
        if len(values) != len(self.rules):
            raise IndexCorruption(key, len(values), len(self.rules))
        return values

    def lookup(self, key):
        """The record of a key

        Returns
        -------
        record : dict
            field -> value, in field order
        """
        return dict(zip(self.fields, self.columns(key)))

    def matches_rules(self, key, header, warn=False):
        """Whether a record passes all rules for a header

        Parameters
        ----------
        key : str
            record key
        header : dict
            header of the observation that needs calibrating
        warn : bool, optional
            log which rule failed

        Returns
        -------
        passed : bool
            False also if the key is not in the index

        Raises
        ------
        IndexCorruption
            if the record does not have one value per field
        RuleEvalError
            if a rule can not be evaluated
        """
        if key not in self:
            logger.warning("Calibration %s is not known to index %s", key, self.indexfile)
            return False

        for predicate, value in zip(self.rules.values(), self.columns(key)):
            if predicate.empty:
                continue
            if not predicate.evaluate(value, header):
                if warn:
                    logger.warning(
                        "%s does not match the rule for %s (%s, stored value %s)",
                        key,
                        predicate.field,
                        predicate.rule,
                        value,
                    )
                return False
        return True

    verify = matches_rules

    def _candidates(self, time_field, header):
        """(delta, key) of all records, delta being stored time - header time"""
        if time_field not in self.rules:
            raise CalibrationError(
                f"Index {self.indexfile} has no {time_field} field to select by time"
            )
        reference = to_number(header.get(time_field))
        if not isinstance(reference, float):
            raise CalibrationError(f"Header has no usable {time_field} value: {reference!r}")

        column = self.fields.index(time_field)
        candidates = []
        with self._lock:
            for key in self.index:
                stored = to_number(self.columns(key)[column])
                if not isinstance(stored, float):
                    logger.warning("Ignoring %s, %s is not a number: %r", key, time_field, stored)
                    continue
                candidates.append((stored - reference, key))
        return candidates

    def _choose(self, candidates, header, warn):
        for delta, key in candidates:
            if self.matches_rules(key, header, warn=warn):
                logger.debug("Selected %s (time difference %s)", key, delta)
                return key
        raise NoSuitableCalibration(f"No suitable calibration found in {self.indexfile}")

    def nearest_by_time(self, time_field, header, warn=False):
        """The key of the closest record in time that passes all rules

        Parameters
        ----------
        time_field : str
            rule field holding the time, e.g. ORACTIME
        header : dict
            header of the observation that needs calibrating
        warn : bool, optional
            log why records were rejected

        Returns
        -------
        key : str

        Raises
        ------
        NoSuitableCalibration
            if no record passes the rules
        """
        with self._lock:
            candidates = self._candidates(time_field, header)
            candidates = sorted((abs(delta), key) for delta, key in candidates)
            return self._choose(candidates, header, warn)

    choose_by_dt = nearest_by_time

    def choose_by_negative_dt(self, time_field, header, warn=False):
        """Like nearest_by_time, but only records taken before the observation"""
        with self._lock:
            candidates = self._candidates(time_field, header)
            candidates = sorted((-delta, key) for delta, key in candidates if delta <= 0)
            return self._choose(candidates, header, warn)

    def cmp_with_hash(self, header):
        """The first record in table order that passes all rules

        Returns
        -------
        key : str or None
            None if no record passes
        """
        with self._lock:
            for key in self.index:
                if self.matches_rules(key, header, warn=False):
                    return key
        return None
