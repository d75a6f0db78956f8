#!/usr/bin/env python
"""
record algebra: sampling, gaps, merge / split, decimation
"""
import pytest
from pathlib import Path
from datetime import datetime, timedelta
import numpy as np

import rinexpy as rp
from rinexpy.constellation import Sv
from rinexpy.observation import ObservationData
from rinexpy.record import ObservationRecord
from rinexpy.rinex import merge_comment

R = Path(__file__).parent / "data"

G05 = Sv(rp.Constellation.GPS, 5)
T0 = np.datetime64("2018-01-01T00:00:00", "ns")


def epoch(seconds: float, flag=rp.EpochFlag.OK) -> rp.Epoch:
    return rp.Epoch(T0 + np.timedelta64(int(seconds * 1e9), "ns"), flag)


def make(seconds, events=(), value: float = 1.0) -> rp.Rinex:
    """observation file with one satellite at each of ``seconds``"""
    hdr = rp.rinexheader(R / "demo3.18o")
    data = {epoch(s): {G05: {"C1C": ObservationData(value + s)}} for s in seconds}
    for s in events:
        data[epoch(s, rp.EpochFlag.ANTENNA_BEING_MOVED)] = {}
    return rp.Rinex(hdr, ObservationRecord(data))


def test_sampling_mode():
    steps = [30, 30, 30, 60, 30, 30]
    rnx = make(np.cumsum([0] + steps))

    assert rnx.sampling_interval() == timedelta(seconds=30)


def test_sampling_header_wins():
    rnx = make([0, 30, 60])
    rnx.header.sampling_interval = 15.0

    assert rnx.sampling_interval() == timedelta(seconds=15)


def test_sampling_tie_smallest():
    assert make([0, 20, 30]).sampling_interval() == timedelta(seconds=10)


def test_sampling_ignores_events():
    rnx = make([0, 30, 60, 90], events=[45])
    assert rnx.sampling_interval() == timedelta(seconds=30)
    assert make([0]).sampling_interval() is None


def test_flagged_epoch_breaks_pairs():
    rnx = make([0, 60, 90])
    # a power failure epoch still carries data, it is not a gap
    rnx.record.data[epoch(30, rp.EpochFlag.POWER_FAILURE)] = {G05: {"C1C": ObservationData(31.0)}}

    assert len(rnx.epochs()) == 4
    assert rnx.dead_times() == []
    assert rnx.sampling_interval() == timedelta(seconds=30)


def test_file_sampling():
    rnx = rp.Rinex.from_file(R / "demo3.18o")

    assert rnx.sampling_interval() == timedelta(seconds=30)
    assert rnx.dead_times() == [(rp.Epoch.from_fields(2018, 1, 1, 0, 2, 30), timedelta(seconds=90))]


def test_dead_times():
    rnx = make([0, 30, 60, 90, 150, 180, 210])

    gaps = rnx.dead_times()
    assert gaps == [(epoch(150), timedelta(seconds=60))]
    assert make([0, 30, 60]).dead_times() == []


def test_epoch_queries():
    rnx = make([0, 30, 60], events=[30])

    assert len(rnx.epochs()) == 4
    assert rnx.epoch_ok() == [epoch(0), epoch(30), epoch(60)]
    assert rnx.epoch_anomalies() == [epoch(30, rp.EpochFlag.ANTENNA_BEING_MOVED)]
    assert rnx.epoch_anomalies(rp.EpochFlag.POWER_FAILURE) == []
    assert rnx.event_description(epoch(30)) == []


# %% merge


def test_merge_type_mismatch():
    obs = rp.Rinex.from_file(R / "demo3.18o")
    nav = rp.Rinex.from_file(R / "demo3.10n")
    before = obs.copy()

    with pytest.raises(rp.FileTypeMismatch):
        obs.merge_mut(nav)

    assert obs == before


def test_merge_into_empty():
    a = make([0, 30, 60])
    empty = rp.Rinex(a.header, ObservationRecord())

    merged = empty.merge(a)
    assert merged.record == a.record
    assert not merged.is_merged()


def test_merge_empty_other():
    a = make([0, 30, 60])
    merged = a.merge(rp.Rinex(a.header, ObservationRecord()))

    assert merged.record == a.record
    assert not merged.is_merged()


def test_merge_split():
    a = make([0, 30, 60, 90])
    b = make([120, 150, 180])

    merged = a.merge(b)
    assert len(merged.record) == 7
    assert not a.is_merged()
    assert len(a.record) == 4

    assert merged.is_merged()
    assert merged.merge_boundaries() == [datetime(2018, 1, 1, 0, 2)]
    assert merged.header.first_epoch == epoch(0)

    # the marker survives a write / read cycle
    back = rp.Rinex.from_string(merged.to_string())
    assert back.is_merged()
    assert back.merge_boundaries() == merged.merge_boundaries()

    first, second = merged.split()
    assert first.record == a.record
    assert second.record == b.record
    assert not first.is_merged()
    assert not second.is_merged()
    assert second.header.first_epoch == epoch(120)


def test_merge_earlier_into_later():
    later = make([120, 150, 180])
    earlier = make([0, 30, 60])

    merged = later.merge(earlier)
    assert merged.merge_boundaries() == [datetime(2018, 1, 1, 0, 2)]

    parts = merged.split()
    assert len(parts) == 2
    assert parts[0].record == earlier.record
    assert parts[1].record == later.record


def test_merge_collision():
    a = make([0, 30, 60], value=1.0)
    b = make([60, 90], value=100.0)

    a.merge_mut(b)
    assert len(a.record) == 4
    assert a.record[epoch(60)][G05]["C1C"].value == 160.0


def test_merge_comment():
    c = merge_comment(rp.Producer("rinexpy", "1.0.0"), datetime(2018, 1, 1, 0, 2))
    assert c == "rinexpy-1.0.0       FILE MERGE          20180101 000200 UTC"
    assert len(c) <= 60


def test_merge_comments_follow():
    a = rp.Rinex.from_file(R / "demo2.10o")
    later = rp.Rinex.from_file(R / "demo2.10o")
    # shift by a day so nothing collides
    shift = np.timedelta64(1, "D")
    later.record = type(later.record)(
        {rp.Epoch(e.time + shift, e.flag): p for e, p in later.record.data.items()},
        {rp.Epoch(e.time + shift, e.flag): c for e, c in later.record.clock_offsets.items()},
    )
    later.comments = {rp.Epoch(e.time + shift, e.flag): c for e, c in later.comments.items()}

    merged = a.merge(later)
    assert len(merged.record) == 8
    assert len(merged.comments) == 4
    assert len(merged.split()) == 2


# %% split


def test_split_at_epoch():
    rnx = make([0, 30, 60, 90])

    before, after = rnx.split_at_epoch(epoch(60))
    assert before.epochs() == [epoch(0), epoch(30)]
    assert after.epochs() == [epoch(60), epoch(90)]

    before, after = rnx.split_at_epoch(datetime(2018, 1, 1, 0, 0, 45))
    assert len(before.record) + len(after.record) == len(rnx.record)

    assert rnx.split(epoch(30))[1].epochs()[0] == epoch(30)


def test_split_errors():
    rnx = make([30, 60])

    with pytest.raises(rp.EpochTooEarly):
        rnx.split_at_epoch(epoch(0))
    with pytest.raises(rp.EpochTooLate):
        rnx.split_at_epoch(epoch(90))
    with pytest.raises(rp.NotMerged):
        rnx.split()


# %% decimation


def test_decimate_interval():
    rnx = make(range(0, 300, 30))

    counts = []
    for dt in (0, 30, 45, 60, 90, 120):
        dec = rnx.decimate_by_interval(dt)
        kept = dec.epochs()
        assert kept[0] == epoch(0)
        assert all(np.diff([e.time for e in kept]) >= np.timedelta64(dt, "s"))
        counts.append(len(kept))

    assert counts == sorted(counts, reverse=True)
    assert counts[0] == 10
    assert rnx.decimate_by_interval(60).header.sampling_interval == 60.0
    # source left alone
    assert len(rnx.record) == 10


def test_decimate_negative():
    with pytest.raises(ValueError):
        make([0, 30]).decimate_by_interval(-1)
    with pytest.raises(TypeError):
        make([0, 30]).decimate_by_interval(None)
    with pytest.raises(TypeError):
        make([0, 30]).resample(None)


def test_decimate_ratio():
    rnx = make(range(0, 300, 30))
    rnx.header.sampling_interval = 30.0

    dec = rnx.decimate_by_ratio(3)
    assert dec.epochs() == [epoch(s) for s in (0, 90, 180, 270)]
    assert dec.header.sampling_interval == 90.0

    with pytest.raises(ValueError):
        rnx.decimate_by_ratio(0)


def test_resample():
    rnx = make(range(0, 300, 30))

    assert len(rnx.resample(timedelta(seconds=60)).record) == 5
    with pytest.raises(ValueError):
        rnx.resample(10)


def test_cleanup():
    rnx = rp.Rinex.from_file(R / "demo2.10o")

    clean = rnx.cleanup()
    assert len(clean.record) == 3
    assert clean.epoch_anomalies() == []
    assert len(rnx.record) == 4

    with pytest.raises(rp.RinexError):
        rp.Rinex.from_file(R / "demo3.17c").cleanup()


if __name__ == "__main__":
    pytest.main([__file__])
