"""
Handles instrument specific info for the UFTI near infrared imager

Mostly reading data from the header
"""
import logging

from .common import Instrument

logger = logging.getLogger(__name__)


def mean_airmass(header):
    start = header.get("AMSTART")
    end = header.get("AMEND")
    if start is None or end is None:
        return start if end is None else end
    return (float(start) + float(end)) / 2


class UFTI(Instrument):
    def derived_translations(self):
        table = super().derived_translations()
        table["ORAC_AIRMASS"] = mean_airmass
        return table
