#!/usr/bin/env python
import pytest
from pytest import approx
from pathlib import Path
import numpy as np

import rinexpy as rp
from rinexpy.constellation import Sv
from rinexpy.clocks import ClockData
from rinexpy.record import ClockRecord

R = Path(__file__).parent / "data"

G01 = Sv(rp.Constellation.GPS, 1)
G02 = Sv(rp.Constellation.GPS, 2)


def test_clock3():
    rnx = rp.Rinex.from_file(R / "demo3.17c")

    assert len(rnx.record) == 2
    t0, t1 = rnx.epochs()
    assert t0 == rp.Epoch.from_fields(2017, 3, 11)
    assert t1 == rp.Epoch.from_fields(2017, 3, 11, 0, 5)

    sats = rnx.record[t0]["AS"]
    assert sats[G01] == ClockData(-1.234567890123e-04, 1.234567890123e-11)
    assert sats[G02].bias == approx(2.345678901234e-04)
    assert sats[G02].bias_sigma is None

    # four values spread over a continuation line
    algo = rnx.record[t0]["AR"]["ALGO"]
    assert algo == ClockData(4.567890123456e-08, 1.0e-12, 3.0e-14, 1.0e-15)

    assert list(rnx.record[t1]) == ["AS"]


def test_reproduce():
    rnx = rp.Rinex.from_file(R / "demo3.17c")

    assert rp.Rinex.from_string(rnx.to_string()) == rnx


def test_inner_missing_value():
    hdr = rp.rinexheader(R / "demo3.17c")
    t = rp.Epoch.from_fields(2017, 3, 11)
    rec = ClockRecord({t: {"AS": {G01: ClockData(1e-4, None, 2e-12)}}})
    back = rp.Rinex.from_string(rp.Rinex(hdr, rec).to_string())

    assert back.record[t]["AS"][G01] == ClockData(1e-4, 0.0, 2e-12)


def test_dataset():
    clk = rp.Rinex.from_file(R / "demo3.17c").to_dataset()

    assert clk.name.values.tolist() == ["ALGO", "G01", "G02"]
    assert clk.time.size == 2
    for v in ("AS_bias", "AS_bias_sigma", "AR_bias", "AR_rate", "AR_rate_sigma"):
        assert v in clk
    assert "AS_rate" not in clk

    assert clk["AS_bias"].sel(name="G01").values == approx([-1.234567890123e-04, -1.234667890123e-04])
    assert np.isnan(clk["AS_bias"].sel(name="G02").values[1])
    assert clk.attrs["analysis_center"] == "IGS"


if __name__ == "__main__":
    pytest.main([__file__])
