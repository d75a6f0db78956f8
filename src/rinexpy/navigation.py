"""
navigation (ephemeris) blocks

one block per satellite: an epoch line carrying the first three parameters,
then continuation lines of four D19.12 parameters each.
RINEX 4 wraps the same layout in "> EPH" frames.
"""

from __future__ import annotations
import typing as T

import numpy as np
import xarray

from .common import rinex_string_to_float
from .constellation import Constellation, Sv
from .epoch import Epoch, parse_epoch
from .errors import RecordError, RinexError

if T.TYPE_CHECKING:
    from .header import Header

Lf = 19  # string length per field
STARTCOL2 = 3  # column where numerical data starts for RINEX 2
STARTCOL3 = 4  # column where numerical data starts for RINEX 3

Payload = T.Dict[Sv, T.Dict[str, float]]

_KEPLER = [
    "Crs",
    "DeltaN",
    "M0",
    "Cuc",
    "Eccentricity",
    "Cus",
    "sqrtA",
    "Toe",
    "Cic",
    "Omega0",
    "Cis",
    "Io",
    "Crc",
    "omega",
    "OmegaDot",
    "IDOT",
]

# RINEX 3.04 tables A6 - A16
FIELDS: dict[Constellation, list[str]] = {
    Constellation.GPS: ["SVclockBias", "SVclockDrift", "SVclockDriftRate", "IODE"]
    + _KEPLER
    + ["CodesL2", "GPSWeek", "L2Pflag", "SVacc", "health", "TGD", "IODC", "TransTime", "FitIntvl", "spare0", "spare1"],
    Constellation.QZSS: ["SVclockBias", "SVclockDrift", "SVclockDriftRate", "IODE"]
    + _KEPLER
    + ["CodesL2", "GPSWeek", "L2Pflag", "SVacc", "health", "TGD", "IODC", "TransTime", "FitIntvl", "spare0", "spare1"],
    Constellation.BEIDOU: ["SVclockBias", "SVclockDrift", "SVclockDriftRate", "AODE"]
    + _KEPLER
    + ["spare0", "BDTWeek", "spare1", "SVacc", "SatH1", "TGD1", "TGD2", "TransTime", "AODC", "spare2", "spare3"],
    Constellation.GALILEO: ["SVclockBias", "SVclockDrift", "SVclockDriftRate", "IODnav"]
    + _KEPLER
    + ["DataSrc", "GALWeek", "spare0", "SISA", "health", "BGDe5a", "BGDe5b", "TransTime", "spare1", "spare2", "spare3"],
    Constellation.IRNSS: ["SVclockBias", "SVclockDrift", "SVclockDriftRate", "IODEC"]
    + _KEPLER
    + ["spare0", "BDTWeek", "spare1", "URA", "health", "TGD", "spare2", "TransTime", "spare3", "spare4", "spare5"],
    Constellation.GLONASS: ["SVclockBias", "SVrelFreqBias", "MessageFrameTime"]
    + ["X", "dX", "dX2", "health", "Y", "dY", "dY2", "FreqNum", "Z", "dZ", "dZ2", "AgeOpInfo"],
    Constellation.SBAS: ["SVclockBias", "SVrelFreqBias", "MessageFrameTime"]
    + ["X", "dX", "dX2", "health", "Y", "dY", "dY2", "URA", "Z", "dZ", "dZ2", "IODN"],
}

# message type written in RINEX 4 "> EPH" frames
MESSAGE_V4 = {
    Constellation.GPS: "LNAV",
    Constellation.QZSS: "LNAV",
    Constellation.GALILEO: "INAV",
    Constellation.BEIDOU: "D1",
    Constellation.IRNSS: "LNAV",
    Constellation.GLONASS: "FDMA",
    Constellation.SBAS: "SBAS",
}


def fields(constellation: Constellation) -> list[str]:
    try:
        return FIELDS[constellation]
    except KeyError:
        raise RecordError(f"Unknown SV type {constellation.value}")


def is_new_block(line: str, header: Header) -> bool:
    if header.version.major >= 4:
        return line.startswith(">")
    if header.version.major >= 3:
        return line[:1] in _CODES
    # RINEX 2: first line holds PRN + date + 3 values, continuations at most 4 values
    return len(line.split()) > 4


_CODES = {c.value for c in Constellation if c is not Constellation.MIXED}


def decode_block(lines: list[str], header: Header) -> tuple[Epoch, Payload] | None:
    """
    Results
    -------

    epoch: Epoch
    payload: dict
        Sv -> parameter name -> value;
        None for RINEX 4 frames that are not ephemerides
    """
    if header.version.major >= 4:
        frame = lines[0].split()
        if len(frame) < 3 or frame[1] != "EPH":
            return None
        lines = lines[1:]
        if not lines:
            raise RecordError(f"empty frame {' '.join(frame)}")

    first = lines[0]
    try:
        if header.version.major >= 3:
            sv = Sv.parse(first[:3])
            epoch = parse_epoch(first[4:23])
            raw = first[23:80].ljust(3 * Lf) + "".join(ln[STARTCOL3:80].ljust(4 * Lf) for ln in lines[1:])
        else:
            const = header.constellation
            if const is None or const is Constellation.MIXED:
                const = Constellation.GPS
            sv = Sv(const, int(first[:2]))
            epoch = parse_epoch(first[3:22])
            # NOTE: 79, not 80, some files put \n a character early
            raw = first[22:79].ljust(3 * Lf) + "".join(ln[STARTCOL2:79].ljust(4 * Lf) for ln in lines[1:])
    except (RinexError, ValueError) as err:
        raise RecordError(f"bad navigation epoch line {first!r}: {err}")

    names = fields(sv.constellation)
    params = {}
    for k, name in enumerate(names):
        txt = raw[k * Lf : (k + 1) * Lf].strip()
        if not txt or name.startswith("spare"):
            continue
        try:
            params[name] = rinex_string_to_float(txt)
        except ValueError:
            raise RecordError(f"{sv} {name}: bad value {txt!r}")

    if not params:
        raise RecordError(f"{sv} {epoch}: no parameters")

    return epoch, {sv: params}


# %% writing


def _value(v: float | None, v2: bool) -> str:
    if v is None:
        return " " * Lf
    txt = f"{v:19.12E}"
    return txt.replace("E", "D") if v2 else txt


def encode_block(epoch: Epoch, payload: Payload, header: Header) -> list[str]:
    """one ephemeris per satellite of this epoch"""
    v2 = header.version.major < 3
    v4 = header.version.major >= 4
    y, m, d, hh, mm, ss, ns = epoch.components()

    lines = []
    for sv in sorted(payload):
        params = payload[sv]
        if not params:
            continue
        names = fields(sv.constellation)
        last = max(i for i, n in enumerate(names) if n in params)
        vals = [_value(params.get(n), v2) for n in names[: last + 1]]
        vals.extend([" " * Lf] * max(3 - len(vals), 0))

        if v4:
            lines.append(f"> EPH {sv} {MESSAGE_V4[sv.constellation]}")
        if v2:
            head = f"{sv.prn:2d} {y % 100:02d} {m:2d} {d:2d} {hh:2d} {mm:2d}{ss + ns / 1e9:5.1f}"
            lead = " " * STARTCOL2
        else:
            head = f"{sv} {y:04d} {m:02d} {d:02d} {hh:02d} {mm:02d} {ss:02d}"
            lead = " " * STARTCOL3

        lines.append((head + "".join(vals[:3])).rstrip())
        for i in range(3, len(vals), 4):
            lines.append((lead + "".join(vals[i : i + 4])).rstrip())

    return lines


# %% xarray


def to_dataset(data: T.Mapping[Epoch, Payload], header: Header) -> xarray.Dataset:
    epochs = sorted(data)
    svs = sorted({sv for e in epochs for sv in data[e]})
    isv = {sv: i for i, sv in enumerate(svs)}
    times = np.unique([e.time for e in epochs]).astype("datetime64[ns]")
    it = {t: i for i, t in enumerate(times)}

    names: list[str] = []
    for const in sorted({sv.constellation for sv in svs}, key=lambda c: c.value):
        names.extend(n for n in fields(const) if not n.startswith("spare") and n not in names)

    arr = {n: np.full((times.size, len(svs)), np.nan) for n in names}
    for e in epochs:
        for sv, params in data[e].items():
            for name, v in params.items():
                arr[name][it[e.time], isv[sv]] = v

    nav = xarray.Dataset(coords={"time": times, "sv": [str(sv) for sv in svs]})
    for name in names:
        if not np.isnan(arr[name]).all():
            nav[name] = (("time", "sv"), arr[name])

    nav.attrs["version"] = str(header.version)
    nav.attrs["svtype"] = sorted({sv.constellation.value for sv in svs})
    nav.attrs["rinextype"] = "nav"
    if header.ionospheric_corr:
        nav.attrs["ionospheric_corr"] = [f"{k}: {v}" for k, v in header.ionospheric_corr.items()]

    return nav
