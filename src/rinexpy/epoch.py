"""
sampling timestamp + event flag, the key of every record
"""

from __future__ import annotations
import enum
from dataclasses import dataclass
from datetime import datetime

import numpy as np

from .errors import EpochError

# two digit years below the pivot are 20xx, others 19xx
CENTURY_PIVOT = 90


class EpochFlag(enum.IntEnum):
    OK = 0
    POWER_FAILURE = 1
    ANTENNA_BEING_MOVED = 2
    NEW_SITE_OCCUPATION = 3
    HEADER_INFORMATION_FOLLOWS = 4
    EXTERNAL_EVENT = 5
    CYCLE_SLIP = 6

    @classmethod
    def _missing_(cls, value):
        # single digit codes the format does not define yet
        if isinstance(value, int) and 0 <= value <= 9:
            pseudo = int.__new__(cls, value)
            pseudo._name_ = f"UNKNOWN_{value}"
            pseudo._value_ = value
            return pseudo
        return None

    @property
    def is_event(self) -> bool:
        """flags 2-5 are followed by special records instead of observations"""
        return 2 <= self <= 5


@dataclass(frozen=True, order=True)
class Epoch:
    time: np.datetime64
    flag: EpochFlag = EpochFlag.OK

    def __post_init__(self):
        object.__setattr__(self, "time", np.datetime64(self.time, "ns"))
        object.__setattr__(self, "flag", EpochFlag(self.flag))

    @classmethod
    def from_fields(
        cls,
        year: int,
        month: int,
        day: int,
        hour: int = 0,
        minute: int = 0,
        second: int = 0,
        nanos: int = 0,
        flag: EpochFlag | int = EpochFlag.OK,
    ) -> Epoch:
        t = np.datetime64(datetime(year, month, day, hour, minute, second), "ns")
        return cls(t + np.timedelta64(nanos, "ns"), EpochFlag(flag))

    def with_flag(self, flag: EpochFlag | int) -> Epoch:
        return Epoch(self.time, EpochFlag(flag))

    def components(self) -> tuple[int, int, int, int, int, int, int]:
        """year, month, day, hour, minute, second, nanoseconds"""
        whole = self.time.astype("datetime64[s]")
        nanos = int((self.time - whole) // np.timedelta64(1, "ns"))
        t = whole.item()
        return t.year, t.month, t.day, t.hour, t.minute, t.second, nanos

    @property
    def datetime(self) -> datetime:
        return self.time.astype("datetime64[us]").item()

    def __str__(self) -> str:
        return f"{np.datetime_as_string(self.time)} {self.flag.name}"


def parse_epoch(content: str) -> Epoch:
    """
    decode "yy mm dd hh mm ss.sssssss [f]" style fields, whitespace separated

    Parameters
    ----------

    content: str
        the date columns of a record line, 2 or 4 digit year, optional flag digit

    Results
    -------

    epoch: Epoch
    """
    items = content.split()
    if len(items) not in (6, 7):
        raise EpochError("format", content, f"expected 6 or 7 fields, got {len(items)}")

    fields = []
    for name, tok in zip(("year", "month", "day", "hour", "minute"), items):
        try:
            fields.append(int(tok))
        except ValueError:
            raise EpochError(name, content)

    year, month, day, hour, minute = fields
    if year < 100:
        year += 2000 if year < CENTURY_PIVOT else 1900

    second, nanos = _parse_seconds(items[5], content)

    flag = EpochFlag.OK
    if len(items) == 7:
        try:
            flag = EpochFlag(int(items[6]))
        except ValueError:
            raise EpochError("flag", content)

    limits = {"month": (month, 1, 12), "hour": (hour, 0, 23), "minute": (minute, 0, 59), "second": (second, 0, 59)}
    for name, (value, lo, hi) in limits.items():
        if not lo <= value <= hi:
            raise EpochError(name, content, "out of range")

    try:
        return Epoch.from_fields(year, month, day, hour, minute, second, nanos, flag)
    except ValueError as err:
        raise EpochError("day", content, str(err))


def _parse_seconds(tok: str, content: str) -> tuple[int, int]:
    whole, _, frac = tok.partition(".")
    if not whole:
        whole = "0"
    if not whole.isdigit() or (frac and not frac.isdigit()):
        raise EpochError("second", content)

    nanos = int(frac[:9].ljust(9, "0")) if frac else 0

    return int(whole), nanos


def format_seconds(second: int, nanos: int, decimals: int = 7, width: int = 11) -> str:
    """fixed point seconds without going through float, e.g. F11.7"""
    frac = nanos // 10 ** (9 - decimals)
    return f"{second}.{frac:0{decimals}d}".rjust(width)
