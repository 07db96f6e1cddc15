"""
Interface for all instrument specific information
The actual info is contained in the instruments/{name}.py modules/classes, which are all subclasses of "common"
"""

import importlib

from .common import Instrument


def load_instrument(instrument) -> Instrument:
    """Load an python instrument module

    Parameters
    ----------
    instrument : str
        name of the instrument

    Returns
    -------
    instrument : Instrument
        Instance of the {instrument} class
    """
    if instrument is None:
        instrument = "common"
    if isinstance(instrument, Instrument):
        return instrument

    fname = f".instruments.{instrument.lower()}"
    lib = importlib.import_module(fname, package="pyrecipe")
    instrument = getattr(lib, instrument.upper())
    instrument = instrument()

    return instrument


def translate_header(header, instrument):
    """Translate a raw header into pipeline headers

    Parameters
    ----------
    header : fits.header, dict
        raw header
    instrument : str
        instrument name

    Returns
    -------
    dict
        pipeline header name -> value
    """
    instrument = load_instrument(instrument)
    return instrument.translate(header)
