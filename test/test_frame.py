# -*- coding: utf-8 -*-
import pytest
from astropy.io import fits

from pyrecipe.frame import Frame, Group, read_header

pytestmark = pytest.mark.unit


@pytest.fixture
def fitsfile(tmp_path, header):
    fname = str(tmp_path / "f20100401_00042_raw.fits")
    hdu = fits.PrimaryHDU()
    for key, value in header.items():
        hdu.header[key] = value
    hdu.writeto(fname)
    return fname


def test_translated_headers(frame):
    assert frame.uhdr["ORAC_OBJECT"] == "M31"
    assert frame.uhdr["ORAC_EXPOSURE_TIME"] == 10.0
    assert frame.uhdr["ORACTIME"] == pytest.approx(55287.5)
    assert frame.number == 42
    assert frame.recipe == "REDUCE_SCIENCE"
    assert not frame.stale


def test_read_fits(fitsfile):
    assert read_header(fitsfile)["OBJECT"] == "M31"

    frame = Frame(fitsfile, instrument="common")
    assert frame.number == 42
    assert frame.translated("ORAC_FILTER") == "J"
    assert frame.file() == fitsfile


def test_headers_are_stale_until_synced(frame):
    frame.hdr_set("EXPTIME", 20.0)
    assert frame.stale
    assert frame.hdr_get("EXPTIME") == 20.0
    assert frame.translated("ORAC_EXPOSURE_TIME") == 10.0

    translated = frame.sync_headers()
    assert translated["ORAC_EXPOSURE_TIME"] == 20.0
    assert frame.translated("ORAC_EXPOSURE_TIME") == 20.0
    assert not frame.stale


def test_replacing_the_header(frame, header):
    header["OBJECT"] = "M33"
    frame.hdr = header
    assert frame.stale
    assert frame.uhdr["ORAC_OBJECT"] == "M31"
    frame.sync_headers()
    assert frame.uhdr["ORAC_OBJECT"] == "M33"


def test_sync_keeps_user_values(frame):
    frame.uhdr["QUALITY"] = 1
    frame.sync_headers()
    assert frame.uhdr["QUALITY"] == 1


def test_readhdr(fitsfile):
    frame = Frame(fitsfile, instrument="common")
    with fits.open(fitsfile, mode="update") as hdul:
        hdul[0].header["FILTER"] = "H"
    frame.readhdr()
    assert frame.stale
    frame.sync_headers()
    assert frame.uhdr["ORAC_FILTER"] == "H"


def test_header_provider(header):
    frame = Frame("obs1", instrument="common", header_provider=lambda fname: header)
    assert frame.uhdr["ORAC_OBJECT"] == "M31"


def test_inout():
    frame = Frame("/data/f20100401_00042_raw.fits", header={})
    assert frame.inout("dk") == (
        "/data/f20100401_00042_raw.fits",
        "/data/f20100401_00042_dk.fits",
    )

    frame.set_file("f42.sdf")
    assert frame.inout("_ff") == ("f42.sdf", "f42_ff.sdf")

    frame.set_file("second.sdf", 2)
    assert frame.file(2) == "second.sdf"


def test_group_membership(header):
    frames = [Frame(f"f{i}.fits", header=dict(header, OBSNUM=i)) for i in range(3)]
    group = Group("40", frames)
    assert len(group) == 3

    frames[1].isgood = False
    assert [f.number for f in group.members] == [0, 2]
    assert len(group.allmembers) == 3

    bad = group.check_membership()
    assert bad == [frames[1]]
    assert len(group.allmembers) == 2
    assert group.frame(1) is frames[2]


def test_group_push(group, header):
    group.push(Frame("f43.fits", header=dict(header, OBSNUM=43)))
    assert [f.number for f in group] == [42, 43]
    assert group.file() is None
    group.files.append("gM31.fits")
    assert group.file() == "gM31.fits"


def test_inout_without_file(header):
    frame = Frame(header=header)
    assert frame.file() is None
    with pytest.raises(ValueError):
        frame.inout("dk")

    frame.set_file("f42.sdf")
    assert frame.file(2) is None
    with pytest.raises(ValueError):
        frame.inout("dk", 2)
