"""
GNSS constellations and satellite identifiers
"""

from __future__ import annotations
import enum
from dataclasses import dataclass

from .errors import RinexError


class Constellation(enum.Enum):
    GPS = "G"
    GLONASS = "R"
    GALILEO = "E"
    BEIDOU = "C"
    QZSS = "J"
    SBAS = "S"
    IRNSS = "I"
    MIXED = "M"

    @classmethod
    def from_code(cls, code: str) -> Constellation:
        """one letter code, as found in satellite identifiers"""
        try:
            return cls(code.strip().upper())
        except ValueError:
            raise RinexError(f"unknown constellation code {code!r}")

    @classmethod
    def from_str(cls, s: str) -> Constellation:
        """
        header system fields come in many shapes:
        "G", "GPS", "M (MIXED)", "M: Mixed", "MIXED", "GLO" (IONEX) ...
        """
        txt = s.strip().upper()
        if not txt:
            raise RinexError("empty constellation field")

        word = txt.split()[0].rstrip(":")
        if word in _NAMES:
            return _NAMES[word]
        if len(word) == 1 or not word[1].isalpha():
            return cls.from_code(word[0])

        raise RinexError(f"unknown constellation {s.strip()!r}")

    @property
    def long_name(self) -> str:
        return _LONG[self]

    @property
    def time_system(self) -> str:
        """three letter time system of the constellation, Mixed has none"""
        if self is Constellation.MIXED:
            raise RinexError("mixed constellation has no single time system")
        return _TIME_SYSTEM[self]


_LONG = {
    Constellation.GPS: "GPS",
    Constellation.GLONASS: "GLONASS",
    Constellation.GALILEO: "GALILEO",
    Constellation.BEIDOU: "BEIDOU",
    Constellation.QZSS: "QZSS",
    Constellation.SBAS: "SBAS",
    Constellation.IRNSS: "IRNSS",
    Constellation.MIXED: "MIXED",
}

_NAMES = {v: k for k, v in _LONG.items()}
_NAMES.update(
    {
        "GLO": Constellation.GLONASS,
        "GAL": Constellation.GALILEO,
        "BDS": Constellation.BEIDOU,
        "BDT": Constellation.BEIDOU,
        "QZS": Constellation.QZSS,
        "IRN": Constellation.IRNSS,
        "GEO": Constellation.SBAS,
        "MIX": Constellation.MIXED,
        "GNS": Constellation.MIXED,
        "GNSS": Constellation.MIXED,
    }
)

_TIME_SYSTEM = {
    Constellation.GPS: "GPS",
    Constellation.GLONASS: "GLO",
    Constellation.GALILEO: "GAL",
    Constellation.BEIDOU: "BDT",
    Constellation.QZSS: "QZS",
    Constellation.SBAS: "GPS",
    Constellation.IRNSS: "IRN",
}

# constellations a legacy "Mixed" observation header stands for
LEGACY_MIXED = (
    Constellation.GPS,
    Constellation.GLONASS,
    Constellation.GALILEO,
    Constellation.BEIDOU,
    Constellation.SBAS,
    Constellation.QZSS,
)


@dataclass(frozen=True)
class Sv:
    """satellite vehicle: constellation + PRN"""

    constellation: Constellation
    prn: int

    @classmethod
    def parse(cls, s: str, default: Constellation | None = None) -> Sv:
        """
        "G01", "G 1", "R24" or, in RINEX 2 GPS-only files, a bare "12"
        """
        if len(s.strip()) == 0:
            raise RinexError("empty satellite identifier")

        s = s.rstrip()
        code = s[0]
        if code == " " or code.isdigit():
            if default is None or default is Constellation.MIXED:
                const = Constellation.GPS
            else:
                const = default
            num = s
        else:
            const = Constellation.from_code(code)
            num = s[1:]

        try:
            prn = int(num)
        except ValueError:
            raise RinexError(f"bad satellite identifier {s!r}")

        return cls(const, prn)

    def __str__(self) -> str:
        return f"{self.constellation.value}{self.prn:02d}"

    def __lt__(self, other: Sv) -> bool:
        return (self.constellation.value, self.prn) < (other.constellation.value, other.prn)
