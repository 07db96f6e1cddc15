# -*- coding: utf-8 -*-
"""
Abstract parent module for all other instruments
Contains some general functionality, which may be overridden by the children of course

The header translation of an instrument is an explicit table from the
pipeline name (e.g. ORAC_EXPOSURE_TIME) to a function of the raw header.
Simple renames come from the "keywords" section of the instrument json,
everything else is added in derived_translations.
"""
import json
import logging
import os.path

from astropy.time import Time
from dateutil import parser

logger = logging.getLogger(__name__)

#:str: environment variable pointing to the recipe/primitive data tree
DATA_ENVIRONMENT = "PYRECIPE_DATA"


def keyword(key, default=None):
    """Translation that copies a header keyword"""

    def translate(header):
        return header.get(key, default)

    translate.__name__ = f"keyword_{key}"
    return translate


def observation_date_to_oractime(observation_date):
    """Convert an observation timestamp into the time used for calibration selection

    Parameters
    ----------
    observation_date : str
        timestamp of the observation, in any format dateutil understands

    Returns
    -------
    oractime : float
        modified julian date of the observation, None if the date is empty
    """
    if observation_date in ("", None):
        return None
    observation_date = parser.parse(str(observation_date))
    return float(Time(observation_date, scale="utc").mjd)


class Instrument:
    """
    Abstract parent class for all instruments
    Handles the handling of instrument specific information
    """

    def __init__(self):
        #:str: Name of the instrument (lowercase)
        self.name = self.__class__.__name__.lower()
        #:dict: Information about the instrument
        self.info = self.load_info()
        #:dict(str, callable): pipeline header name -> function of the raw header
        self.translations = self.translation_table()

    def __str__(self):
        return self.name

    def load_info(self):
        """
        Load static instrument information

        Returns
        ------
        info : dict(str:object)
            recipe directories, default recipe, calibration kinds and
            the keyword table of the instrument
        """
        this = os.path.dirname(__file__)
        fname = f"{self.name}.json"
        fname = os.path.join(this, fname)
        with open(fname) as f:
            info = json.load(f)
        return info

    def translation_table(self):
        table = {
            name: keyword(key) for name, key in self.info.get("keywords", {}).items()
        }
        table.update(self.derived_translations())
        return table

    def derived_translations(self):
        """Translations that are more than a keyword lookup"""
        date_keyword = self.info.get("keywords", {}).get("ORAC_DATE_OBS", "DATE-OBS")
        return {
            "ORACTIME": lambda header: observation_date_to_oractime(
                header.get(date_keyword)
            ),
        }

    def translate(self, header):
        """Translate a raw header into the pipeline headers

        Parameters
        ----------
        header : fits.Header, dict
            raw header

        Returns
        -------
        translated : dict
            pipeline name -> value, for every entry of the translation
            table whose value is present in the header
        """
        translated = {}
        for name, function in self.translations.items():
            try:
                value = function(header)
            except (ValueError, TypeError, OverflowError) as ex:
                logger.warning("Could not translate %s for %s: %s", name, self.name, ex)
                continue
            if value is not None:
                translated[name] = value
        return translated

    @property
    def default_recipe(self):
        return self.info.get("default_recipe", "QUICK_LOOK")

    @property
    def group_by(self):
        return self.info.get("group_by", "ORAC_OBJECT")

    @property
    def calibrations(self):
        return list(self.info.get("calibrations", []))

    def data_dir(self):
        """Base directory of the recipe and primitive tree"""
        data = os.environ.get(DATA_ENVIRONMENT)
        if data is None:
            data = os.path.join(os.path.dirname(__file__), "..", "data")
        return data

    def search_path(self, kind):
        """Instrument repository directories for recipes or primitives

        Parameters
        ----------
        kind : {"recipe", "primitive"}
            what to look for

        Returns
        -------
        path : list(str)
            directories in search order
        """
        data = self.data_dir()
        subdir = "recipes" if kind == "recipe" else "primitives"
        dirs = self.info.get(f"{kind}_dirs", [self.name.upper()])
        return [os.path.join(data, subdir, d) for d in dirs]

    def calibration_dirs(self):
        """Directories with the rules files shipped for this instrument"""
        local = os.path.join(os.path.dirname(__file__), self.name)
        return [local] if os.path.isdir(local) else []


class COMMON(Instrument):
    pass
