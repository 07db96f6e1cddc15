"""
Instrument specific information, see instrument_info.load_instrument
"""
from . import common, instrument_info
