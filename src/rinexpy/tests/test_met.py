#!/usr/bin/env python
import pytest
from pytest import approx
from pathlib import Path
import numpy as np
from datetime import datetime

import rinexpy as rp

R = Path(__file__).parent / "data"


def test_meteo2():
    rnx = rp.Rinex.from_file(R / "demo2.96m")

    times = [e.datetime for e in rnx.epoch()]
    assert times == [datetime(1996, 4, 1, 0, 0, s) for s in (15, 30, 45)]

    first, _, last = rnx.epochs()
    assert rnx.record[first] == {"PR": approx(987.1), "TD": approx(10.6), "HR": approx(89.5)}
    assert "HR" not in rnx.record[last]


def test_many_codes():
    """more than 8 observables wrap onto continuation lines"""
    codes = ["PR", "TD", "HR", "ZW", "ZD", "ZT", "WD", "WS", "RI", "HI"]
    head = [
        f"{'     3.05           METEOROLOGICAL DATA':<60}RINEX VERSION / TYPE",
        f"{'    10' + ''.join(f'{c:>6}' for c in codes[:8]):<60}# / TYPES OF OBS",
        f"{'      ' + ''.join(f'{c:>6}' for c in codes[8:]):<60}# / TYPES OF OBS",
        f"{'':60}END OF HEADER",
    ]
    vals = [float(i) + 0.5 for i in range(len(codes))]
    body = [
        " 2021  6  1  0  0  0" + "".join(f"{v:7.1f}" for v in vals[:8]),
        "    " + "".join(f"{v:7.1f}" for v in vals[8:]),
    ]
    rnx = rp.Rinex.from_string("\n".join(head + body) + "\n")

    e = rnx.epochs()[0]
    assert rnx.record[e]["RI"] == approx(8.5)
    assert rnx.record[e]["HI"] == approx(9.5)

    out = rnx.to_string()
    assert rp.Rinex.from_string(out) == rnx


def test_reproduce():
    rnx = rp.Rinex.from_file(R / "demo2.96m")

    assert rp.Rinex.from_string(rnx.to_string()) == rnx


def test_dataset():
    met = rp.Rinex.from_file(R / "demo2.96m").to_dataset()

    assert list(met.data_vars) == ["PR", "TD", "HR"]
    assert met["TD"].values == approx([10.6, 10.9, 11.6])
    assert np.isnan(met["HR"].values[-1])
    assert met["PR"].attrs["sensor"] == "PAROSCIENTIFIC"
    assert met["PR"].attrs["accuracy"] == approx(0.1)
    assert met.attrs["rinextype"] == "met"


def test_no_crinex():
    with pytest.raises(rp.RinexError):
        rp.Rinex.from_file(R / "demo2.96m").to_crinex()


if __name__ == "__main__":
    pytest.main([__file__])
