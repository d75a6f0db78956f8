#!/usr/bin/env python
import pytest
from pytest import approx
from pathlib import Path
import io
import numpy as np
from datetime import datetime

import rinexpy as rp
from rinexpy.constellation import Sv
from rinexpy.observation import ObservationData

R = Path(__file__).parent / "data"

G01 = Sv(rp.Constellation.GPS, 1)
G02 = Sv(rp.Constellation.GPS, 2)
G05 = Sv(rp.Constellation.GPS, 5)
E11 = Sv(rp.Constellation.GALILEO, 11)


def ep(*args, **kwargs) -> rp.Epoch:
    return rp.Epoch.from_fields(*args, **kwargs)


def test_obs2():
    rnx = rp.Rinex.from_file(R / "demo2.10o")
    rec = rnx.record

    assert isinstance(rec, rp.Record)
    assert len(rec) == 4

    t0 = ep(2010, 3, 5)
    t1 = ep(2010, 3, 5, 0, 0, 30)
    t2 = ep(2010, 3, 5, 0, 1, 0)
    event = t2.with_flag(rp.EpochFlag.ANTENNA_BEING_MOVED)
    assert rnx.epochs() == [t0, t1, t2, event]

    assert sorted(rec[t0]) == [G01, G02]
    assert rec[t0][G01]["C1"] == ObservationData(23629347.915)
    assert rec[t0][G01]["L1"] == ObservationData(124173536.303, None, 9)
    assert rec[t0][G02]["P2"].value == approx(20891538.862)

    assert rec[t1][G01]["L1"] == ObservationData(124124908.342, 1, 9)
    assert rec[t1][G01]["L1"].lock_loss
    assert rec.clock_offsets == {t1: approx(0.000123456)}

    assert list(rec[t2]) == [G01]
    assert rec[event] == {}


def test_obs2_comments():
    rnx = rp.Rinex.from_file(R / "demo2.10o")

    t1 = ep(2010, 3, 5, 0, 0, 30)
    event = ep(2010, 3, 5, 0, 1, 0, flag=rp.EpochFlag.ANTENNA_BEING_MOVED)

    assert rnx.event_description(t1) == ["  MEASUREMENT CHECK"]
    assert rnx.event_description(event) == ["  ANTENNA BEING MOVED"]
    assert rnx.epoch_anomalies() == [event]
    assert rnx.lock_loss_events() == [t1]


def test_obs3():
    rnx = rp.Rinex.from_file(R / "demo3.18o")
    rec = rnx.record

    times = [e.datetime for e in rnx.epoch()]
    assert times == [
        datetime(2018, 1, 1),
        datetime(2018, 1, 1, 0, 0, 30),
        datetime(2018, 1, 1, 0, 1),
        datetime(2018, 1, 1, 0, 2, 30),
    ]

    t0 = ep(2018, 1, 1)
    assert rec[t0][G05]["L1C"] == ObservationData(116584706.477, None, 7)
    assert rec[t0][G05]["S1C"].value == approx(44.25)
    assert rec[t0][E11] == {
        "C1X": ObservationData(25379830.412),
        "L1X": ObservationData(133372401.117),
    }
    assert rec.clock_offsets[t0] == approx(1.23456e-7)

    assert list(rec[ep(2018, 1, 1, 0, 1)]) == [G05]


@pytest.mark.parametrize("fname", ["demo2.10o", "demo3.18o"], ids=["obs2", "obs3"])
def test_codes_declared(fname):
    rnx = rp.Rinex.from_file(R / fname)

    for payload in rnx.record.data.values():
        for sv, obs in payload.items():
            assert set(obs) <= set(rnx.header.obs_codes(sv.constellation))


@pytest.mark.parametrize("fname", ["demo2.10o", "demo3.18o"], ids=["obs2", "obs3"])
def test_reproduce(fname):
    rnx = rp.Rinex.from_file(R / fname)

    txt = rnx.to_string()
    for line in txt.splitlines():
        assert len(line) <= 80

    assert rp.Rinex.from_string(txt) == rnx


def test_to_file(tmp_path):
    rnx = rp.Rinex.from_file(R / "demo2.10o")

    fn = rnx.to_file(tmp_path / "out.10o")
    assert fn.is_file()
    assert rp.Rinex.from_file(fn) == rnx


def test_dataset2():
    obs = rp.Rinex.from_file(R / "demo2.10o").to_dataset()

    assert obs.time.size == 3
    assert obs.sv.values.tolist() == ["G01", "G02"]
    for v in ("C1", "L1", "L2", "P2", "L1lli", "L1ssi", "L2ssi", "clock_offset"):
        assert v in obs
    assert "C1lli" not in obs

    assert obs["C1"].sel(sv="G02").values[0] == approx(20891534.648)
    assert obs["L1lli"].sel(sv="G01").values[1] == 1
    assert np.isnan(obs["C1"].sel(sv="G02").values[2])
    assert np.isnan(obs["clock_offset"].values[0])
    assert obs["clock_offset"].values[1] == approx(0.000123456)

    assert obs.attrs["version"] == "2.11"
    assert obs.attrs["rinextype"] == "obs"
    assert obs.attrs["interval"] == approx(30.0)
    assert obs.attrs["time_system"] == "GPS"
    assert obs.attrs["rxmodel"] == "ASHTECH UZ-12"


def test_dataset3():
    obs = rp.Rinex.from_file(R / "demo3.18o").to_dataset()

    assert obs.sv.values.tolist() == ["E11", "G05"]
    assert obs["C1X"].sel(sv="G05").isnull().all()
    assert obs["S1C"].sel(sv="G05").values == approx([44.25, 44.5, 43.75, 44.0])
    # no INTERVAL in the header, median of the steps
    assert obs.attrs["interval"] == approx(30.0)
    assert obs.attrs["time_system"] == "GPS"


def test_bad_block_skipped():
    txt = (R / "demo3.18o").read_text().replace("G05  22187423.556", "X05  22187423.556")

    report = rp.BuildReport()
    hdr = rp.parse_header(io.StringIO(txt))
    body = txt.split("END OF HEADER\n", 1)[1].splitlines()
    rec, _ = rp.build_record(hdr, body, report)

    assert report.blocks == 4
    assert report.skipped == 1
    assert len(rec) == 3
    assert ep(2018, 1, 1, 0, 0, 30) not in rec


if __name__ == "__main__":
    pytest.main([__file__])
