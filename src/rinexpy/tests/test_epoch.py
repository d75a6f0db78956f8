import pytest
from datetime import datetime

import rinexpy as rp
from rinexpy.epoch import format_seconds


@pytest.mark.parametrize(
    "txt, year", [("94  1  1  0  0  0.0", 1994), ("21  1  1  0  0  0.0", 2021), ("00  1  1  0  0  0.0", 2000)],
    ids=["1994", "2021", "2000"],
)
def test_century_pivot(txt, year):
    assert rp.parse_epoch(txt).datetime.year == year


def test_four_digit_year():
    e = rp.parse_epoch("2018 01 01 00 02 30.0000000")
    assert e.datetime == datetime(2018, 1, 1, 0, 2, 30)
    assert e.flag == rp.EpochFlag.OK


def test_fraction_digit_exact():
    e = rp.parse_epoch(" 10  3  5  0  0 30.1234567  0")
    assert e.components() == (2010, 3, 5, 0, 0, 30, 123456700)
    assert format_seconds(30, 123456700) == " 30.1234567"


def test_flag():
    e = rp.parse_epoch("10  3  5  0  0  0.0000000  2")
    assert e.flag == rp.EpochFlag.ANTENNA_BEING_MOVED
    assert e.flag.is_event
    assert not rp.EpochFlag.POWER_FAILURE.is_event


def test_unknown_flag():
    flag = rp.EpochFlag(8)
    assert int(flag) == 8
    assert flag.name == "UNKNOWN_8"


@pytest.mark.parametrize(
    "txt, field",
    [("10  3  5  0  0", "format"), ("10 13  5  0  0  0.0", "month"), ("10  3  5 25  0  0.0", "hour"), ("10  3 5x  0  0  0.0", "day"), ("10  2 30  0  0  0.0", "day")],
    ids=["short", "month", "hour", "day_text", "day_range"],
)
def test_bad_epoch(txt, field):
    with pytest.raises(rp.EpochError) as err:
        rp.parse_epoch(txt)

    assert err.value.field == field


def test_ordering():
    a = rp.Epoch.from_fields(2020, 1, 1, 0, 0, 0)
    b = rp.Epoch.from_fields(2020, 1, 1, 0, 0, 30)
    assert a < b
    assert a.with_flag(rp.EpochFlag.EXTERNAL_EVENT) != a
    assert sorted([b, a]) == [a, b]


if __name__ == "__main__":
    pytest.main([__file__])
