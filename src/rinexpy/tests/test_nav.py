#!/usr/bin/env python
import pytest
from pytest import approx
from pathlib import Path
import numpy as np
from datetime import datetime

import rinexpy as rp
from rinexpy.constellation import Sv

R = Path(__file__).parent / "data"

G01 = Sv(rp.Constellation.GPS, 1)
G02 = Sv(rp.Constellation.GPS, 2)
R01 = Sv(rp.Constellation.GLONASS, 1)


def test_nav2():
    rnx = rp.Rinex.from_file(R / "demo2.99n")

    assert len(rnx.record) == 1
    e = rnx.epochs()[0]
    assert e.datetime == datetime(1999, 9, 2, 19)

    eph = rnx.record[e]
    assert sorted(eph) == [G01, G02]
    g01 = eph[G01]
    assert g01["SVclockBias"] == approx(4.691267386079e-04)
    assert g01["IODE"] == approx(40.0)
    assert g01["sqrtA"] == approx(5153.54281044)
    assert g01["GPSWeek"] == approx(1030.0)
    assert g01["TransTime"] == approx(399618.0)
    assert g01["FitIntvl"] == approx(4.0)
    assert not any(k.startswith("spare") for k in g01)


def test_nav3():
    rnx = rp.Rinex.from_file(R / "demo3.10n")

    times = [e.datetime for e in rnx.epoch()]
    assert times == [datetime(2010, 10, 18, 0, 1, 4), datetime(2010, 10, 18, 0, 15)]

    glo = rnx.record[rnx.epochs()[1]][R01]
    assert glo["SVclockBias"] == approx(-1.035612076521e-04)
    assert glo["MessageFrameTime"] == approx(45.0)
    assert glo["X"] == approx(11045.56298828)
    assert glo["FreqNum"] == approx(1.0)
    assert glo["AgeOpInfo"] == 0.0


def test_nav4_frames():
    body = (R / "demo3.10n").read_text().split("END OF HEADER\n", 1)[1].splitlines()
    g01 = body[:8]
    txt = "\n".join(
        [
            f"{'     4.00           N: GNSS NAV DATA    M: MIXED':<60}RINEX VERSION / TYPE",
            f"{'':60}END OF HEADER",
            "> EPH G01 LNAV",
            *g01,
            "> ION G01 LNAV",
            "    2010 10 18 00 00 00 1.117587089539E-08 1.490116119385E-08",
        ]
    )
    rnx = rp.Rinex.from_string(txt + "\n")

    assert len(rnx.record) == 1
    assert list(rnx.record[rnx.epochs()[0]]) == [G01]

    out = rnx.to_string()
    assert "> EPH G01 LNAV" in out
    assert rp.Rinex.from_string(out) == rnx


@pytest.mark.parametrize("fname", ["demo2.99n", "demo3.10n"], ids=["nav2", "nav3"])
def test_reproduce(fname):
    rnx = rp.Rinex.from_file(R / fname)

    txt = rnx.to_string()
    for line in txt.splitlines():
        assert len(line) <= 80

    assert rp.Rinex.from_string(txt) == rnx


def test_nav2_d_exponent():
    txt = rp.Rinex.from_file(R / "demo2.99n").to_string()
    body = txt.split("END OF HEADER\n", 1)[1]
    assert "D-04" in body
    assert "E-04" not in body


def test_dataset():
    nav = rp.Rinex.from_file(R / "demo3.10n").to_dataset()

    assert nav.sv.values.tolist() == ["G01", "R01"]
    assert nav.time.size == 2
    assert nav.attrs["rinextype"] == "nav"
    assert nav.attrs["svtype"] == ["G", "R"]
    assert nav["sqrtA"].sel(sv="G01").values[0] == approx(5153.54281044)
    assert np.isnan(nav["sqrtA"].sel(sv="R01").values).all()
    assert nav["X"].sel(sv="R01").values[1] == approx(11045.56298828)
    assert "spare0" not in nav


if __name__ == "__main__":
    pytest.main([__file__])
