"""
Calibration selection

An Index stores calibration records and the rules that decide whether a
record is suitable for an observation. Calib bundles one index per
calibration kind and is what recipes see as ``calib``.
"""
from .calib import Calib
from .index import Index
from .rules import RulePredicate
