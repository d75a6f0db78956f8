import pytest
from pathlib import Path
import io
from datetime import datetime
import numpy as np

import rinexpy as rp

R = Path(__file__).parent / "data"


@pytest.mark.parametrize(
    "fname, rinextype, systems, version",
    [
        ("demo2.10o", "obs", "G", 2.11),
        ("demo3.18o", "obs", "M", 3.04),
        ("demo2.99n", "nav", "G", 2.11),
        ("demo3.10n", "nav", "M", 3.04),
        ("demo2.96m", "met", " ", 2.11),
        ("demo3.17c", "clk", "G", 3.0),
        ("demo.17i", "ionex", "GPS", 1.0),
    ],
    ids=["obs2", "obs3", "nav2", "nav3", "met2", "clk3", "ionex"],
)
def test_rinexinfo(fname, rinextype, systems, version):
    fn = R / fname
    info = rp.rinexinfo(fn)

    assert info["rinextype"] == rinextype
    assert info["systems"] == systems
    assert info["version"] == version
    assert not info["crinex"]

    with io.StringIO(fn.read_text()) as f:
        assert rp.rinexinfo(f) == info


def test_rinexinfo_crinex():
    txt = rp.Rinex.from_file(R / "demo3.18o").to_crinex().to_string()

    info = rp.rinexinfo(io.StringIO(txt))
    assert info["crinex"]
    assert info["version"] == 3.04
    assert info["rinextype"] == "obs"


def test_rinexinfo_bad():
    with pytest.raises(ValueError):
        rp.rinexinfo(io.StringIO("this is not a RINEX file\n"))


@pytest.mark.parametrize(
    "fname, t",
    [("demo2.99n", datetime(1999, 9, 2, 19)), ("demo3.10n", datetime(2010, 10, 18, 0, 1, 4))],
    ids=["nav2", "nav3"],
)
def test_nav(fname, t):
    fn = R / fname
    txt = fn.read_text()

    with io.StringIO(txt) as f:
        info = rp.rinexinfo(f)
        assert info["rinextype"] == "nav"

        times = rp.gettime(f)
        nav = rp.load(f)

    assert times[0] == np.datetime64(t)

    assert nav.equals(rp.load(fn)), "StringIO not matching direct file read"


@pytest.mark.parametrize("fname", ["demo2.10o", "demo3.18o"], ids=["obs2", "obs3"])
def test_obs(fname):
    fn = R / fname
    txt = fn.read_text()

    with io.StringIO(txt) as f:
        times = rp.gettime(f)
        obs = rp.load(f)

    # event epochs share the time of the epoch before them
    assert times.size == obs.time.size

    assert obs.equals(rp.load(fn)), "StringIO not matching direct file read"


def test_load_tlim():
    obs = rp.load(R / "demo2.10o", tlim=("2010-03-05T00:00:15", "2010-03-05T00:01:00"))

    assert obs.time.size == 2
    assert rp.to_datetime(obs.time[0]) == datetime(2010, 3, 5, 0, 0, 30)

    with pytest.raises(ValueError):
        rp.load(R / "demo2.10o", tlim=("2010-03-05T00:01:00", "2010-03-05T00:00:00"))


def test_load_use():
    obs = rp.load(R / "demo3.18o", use=["E"])

    assert obs.sv.values.tolist() == ["E11"]
    assert "C1C" not in obs

    nav = rp.load(R / "demo3.10n", use="R")
    assert nav.sv.values.tolist() == ["R01"]


def test_load_interval():
    obs = rp.load(R / "demo3.18o", interval=60)

    assert [rp.to_datetime(t) for t in obs.time] == [
        datetime(2018, 1, 1),
        datetime(2018, 1, 1, 0, 1),
        datetime(2018, 1, 1, 0, 2, 30),
    ]


def test_rinexheader_stringio():
    txt = (R / "demo3.17c").read_text()

    hdr = rp.rinexheader(io.StringIO(txt))
    assert hdr == rp.rinexheader(R / "demo3.17c")


def test_gettime_str():
    times = rp.gettime(str(R / "demo3.18o"))
    assert times.size == 4
    assert times.dtype == np.dtype("datetime64[ns]")


if __name__ == "__main__":
    pytest.main([__file__])
