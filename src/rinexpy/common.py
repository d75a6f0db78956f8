from __future__ import annotations
import typing as T
import enum
from datetime import timedelta

from .errors import RinexError

if T.TYPE_CHECKING:
    from .header import Header


class Version(T.NamedTuple):
    major: int
    minor: int

    @classmethod
    def parse(cls, s: str) -> Version:
        """
        "2.11", "3.04", "1.0", "4" ... minor revision is always read as two digits
        """
        txt = s.strip()
        major, _, minor = txt.partition(".")
        try:
            return cls(int(major), int(minor[:2].ljust(2, "0")))
        except ValueError:
            raise RinexError(f"could not determine file version from {s!r}")

    def __str__(self) -> str:
        return f"{self.major}.{self.minor:02d}"


class RinexType(enum.Enum):
    OBSERVATION = "O"
    NAVIGATION = "N"
    METEO = "M"
    CLOCK = "C"
    ANTENNA = "A"
    IONOSPHERE_MAP = "I"


def rinex_string_to_float(s: str) -> float:
    return float(s.replace("D", "E").replace("d", "e"))


def determine_time_system(header: Header) -> str:
    """Determine which time system is used in a file."""
    if header.time_system:
        return header.time_system

    const = header.constellation
    if const is None:
        raise ValueError("file has no constellation, hence no time system")

    # Mixed files must state it in TIME OF FIRST OBS
    return const.time_system


def check_time_interval(interval: float | int | timedelta | None) -> timedelta | None:
    if isinstance(interval, (float, int)):
        if interval < 0:
            raise ValueError("time interval must be non-negative")
        interval = timedelta(seconds=interval)
    elif isinstance(interval, timedelta):
        if interval < timedelta(0):
            raise ValueError("time interval must be non-negative")
    elif interval is None:
        pass
    else:
        raise TypeError("expect time interval in seconds (float,int) or datetime.timedelta")

    return interval
