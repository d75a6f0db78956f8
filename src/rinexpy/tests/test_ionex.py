#!/usr/bin/env python
import pytest
from pytest import approx
from pathlib import Path
import io
import numpy as np
from datetime import datetime

import rinexpy as rp
from rinexpy.ionex import GridPoint

R = Path(__file__).parent / "data"


def test_ionex():
    rnx = rp.Rinex.from_file(R / "demo.17i")

    times = [e.datetime for e in rnx.epoch()]
    assert times == [datetime(2017, 1, 1, 0), datetime(2017, 1, 1, 2)]

    first = rnx.record[rnx.epochs()[0]]
    assert len(first.tec) == 5  # one 9999 missing point
    assert first.tec[0] == GridPoint(87.5, -180.0, 450.0, approx(3.3))
    assert (85.0, 0.0) not in {(p.latitude, p.longitude) for p in first.tec}
    assert first.tec[-1].value == approx(3.6)

    assert first.rms is not None
    assert len(first.rms) == 5
    assert first.rms[0].value == approx(0.5)

    second = rnx.record[rnx.epochs()[1]]
    assert len(second.tec) == 6
    assert second.rms is None


def test_reproduce():
    rnx = rp.Rinex.from_file(R / "demo.17i")

    txt = rnx.to_string()
    assert txt.rstrip().endswith("END OF FILE")
    assert txt.count("START OF TEC MAP") == 2
    assert txt.count("START OF RMS MAP") == 1

    assert rp.Rinex.from_string(txt) == rnx


def test_dataset():
    ds = rp.Rinex.from_file(R / "demo.17i").to_dataset()

    assert ds.lat.values.tolist() == [87.5, 85.0]
    assert ds.lon.values.tolist() == [-180.0, 0.0, 180.0]
    assert ds.time.size == 2

    assert ds["tec"].values[0, 0] == approx([3.3, 3.3, 3.3])
    assert np.isnan(ds["tec"].values[0, 1, 1])
    assert ds["tec"].values[1, 1] == approx([3.4, 3.5, 3.6])
    assert np.isnan(ds["rms"].values[1]).all()

    assert ds.attrs["height"] == approx(450.0)
    assert ds.attrs["base_radius"] == approx(6371.0)


def test_bad_row():
    txt = (R / "demo.17i").read_text().replace("   31   32   33", "   31   32", 1)

    report = rp.BuildReport()
    rnx = rp.Rinex.from_file(io.StringIO(txt), report)

    # 2 of 3 values: the TEC map at 02:00 is dropped, not the file
    assert report.skipped == 1
    assert len(rnx.record) == 1
    assert rnx.epochs()[0].datetime == datetime(2017, 1, 1)


def test_bad_exponent():
    stamp = "  2017     1     1     2     0     0                        EPOCH OF CURRENT MAP\n"
    txt = (R / "demo.17i").read_text()
    assert txt.count(stamp) == 1
    txt = txt.replace(stamp, stamp + f"{'    xx':<60}EXPONENT\n")

    report = rp.BuildReport()
    rnx = rp.Rinex.from_file(io.StringIO(txt), report)

    assert report.skipped == 1
    assert len(rnx.record) == 1
    assert rnx.epochs()[0].datetime == datetime(2017, 1, 1)


if __name__ == "__main__":
    pytest.main([__file__])
