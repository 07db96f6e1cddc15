"""
Observations and groups of observations

A Frame holds the raw header of an observation, as read by the header
provider, and a user header ``uhdr`` with the translated pipeline
headers (ORAC_* names) and anything the recipes add. The translated
headers are copied into ``uhdr`` by sync_headers. Changing the raw
header makes them stale until sync_headers is called again.
"""

from __future__ import annotations

import logging
import os.path

from astropy.io import fits

from .instruments.instrument_info import load_instrument

logger = logging.getLogger(__name__)


def read_header(fname, extension=0):
    """Header provider for FITS files

    Parameters
    ----------
    fname : str
        file name
    extension : int, optional
        header extension (default: 0, the primary header)

    Returns
    -------
    header : fits.Header
    """
    return fits.getheader(fname, ext=extension)


class Frame:
    """A single observation

    Parameters
    ----------
    files : str or list(str), optional
        file name(s) of the observation
    instrument : str or Instrument, optional
        instrument that translates the headers
    header : fits.Header or dict, optional
        raw header, read from the first file if not given
    number : int, optional
        observation number, taken from the translated headers if not given
    header_provider : callable, optional
        function of a file name that returns its header (default: read_header)
    """

    def __init__(
        self, files=None, instrument=None, header=None, number=None, header_provider=None
    ):
        if isinstance(files, str):
            files = [files]
        self.files = list(files or [])
        self.instrument = load_instrument(instrument)
        self.header_provider = header_provider or read_header
        #:dict: user header, translated headers plus values set by recipes
        self.uhdr = {}
        #:bool: False once the observation has been marked bad
        self.isgood = True
        self._stale = True

        if header is None and self.files:
            header = self.header_provider(self.files[0])
        self._hdr = header if header is not None else fits.Header()
        self.sync_headers()
        self.number = number if number is not None else self.uhdr.get("ORAC_OBSERVATION_NUMBER")

    def __repr__(self):
        return f"Frame({self.file()!r}, number={self.number})"

    @property
    def hdr(self):
        """The raw header"""
        return self._hdr

    @hdr.setter
    def hdr(self, header):
        self._hdr = header
        self._stale = True

    @property
    def stale(self):
        """Whether the raw header changed since the last sync_headers"""
        return self._stale

    def readhdr(self, fname=None):
        """Read the raw header again from disk"""
        fname = fname or self.file()
        self.hdr = self.header_provider(fname)
        return self.hdr

    def hdr_set(self, key, value):
        """Set a raw header keyword, the translated headers become stale"""
        self._hdr[key] = value
        self._stale = True

    def hdr_get(self, key, default=None):
        return self._hdr.get(key, default)

    def sync_headers(self):
        """Translate the raw header and merge the result into uhdr

        Returns
        -------
        translated : dict
            the translated pipeline headers
        """
        translated = self.instrument.translate(self._hdr)
        self.uhdr.update(translated)
        self._stale = False
        return translated

    def translated(self, name, default=None):
        """A pipeline header, as of the last sync_headers"""
        if self._stale:
            logger.debug("Reading %s from stale headers of %s", name, self.file())
        return self.uhdr.get(name, default)

    @property
    def recipe(self):
        return self.uhdr.get("ORAC_DR_RECIPE")

    def file(self, i=1):
        """File name, 1 based like the observation files of a recipe"""
        if i < 1 or i > len(self.files):
            return None
        return self.files[i - 1]

    def set_file(self, fname, i=1):
        while len(self.files) < i:
            self.files.append(None)
        self.files[i - 1] = fname

    def inout(self, suffix, i=1):
        """Input and output file names of a processing step

        The output replaces the suffix of the input (everything after the
        last underscore, if the input has one) with the new suffix.

        Parameters
        ----------
        suffix : str
            suffix of the output, e.g. "dk"
        i : int, optional
            file number (default: 1)

        Returns
        -------
        infile, outfile : str

        Raises
        ------
        ValueError
            if the frame has no such file
        """
        infile = self.file(i)
        if infile is None:
            raise ValueError(f"Observation {self.number} has no file number {i}")
        directory, base = os.path.split(infile)
        root, ext = os.path.splitext(base)
        if "_" in root:
            root = root.rsplit("_", 1)[0]
        outfile = os.path.join(directory, f"{root}_{suffix.lstrip('_')}{ext}")
        return infile, outfile


class Group:
    """An ordered collection of frames processed together

    Parameters
    ----------
    name : str
        group name, usually the group key of its frames
    members : list(Frame), optional
        initial members
    """

    def __init__(self, name="", members=None):
        self.name = name
        self.allmembers = list(members or [])
        self.uhdr = {}
        self.files = []

    def __repr__(self):
        return f"Group({self.name!r}, {len(self.allmembers)} members)"

    def __len__(self):
        return len(self.members)

    def __iter__(self):
        return iter(self.members)

    @property
    def members(self):
        """list(Frame): the members that are still good"""
        return [f for f in self.allmembers if f.isgood]

    def push(self, frame):
        self.allmembers.append(frame)

    def frame(self, i):
        return self.allmembers[i]

    def file(self, i=1):
        if not self.files:
            return None
        return self.files[i - 1]

    def check_membership(self):
        """Remove the members that have been marked bad

        Returns
        -------
        bad : list(Frame)
            the removed members
        """
        bad = [f for f in self.allmembers if not f.isgood]
        self.allmembers = [f for f in self.allmembers if f.isgood]
        for frame in bad:
            logger.warning(
                "Observation %s is marked bad, removing it from group %s",
                frame.number,
                self.name,
            )
        return bad
