"""
clock data blocks: one line (plus an optional continuation) per clock and epoch

    AS G01  2010  3  5  0  0  0.000000  2   -1.234567890123E-04  1.234567890123E-11
"""

from __future__ import annotations
import typing as T
from dataclasses import dataclass

import numpy as np
import xarray

from .common import rinex_string_to_float
from .constellation import Sv
from .epoch import Epoch, parse_epoch
from .errors import RecordError, RinexError

if T.TYPE_CHECKING:
    from .header import Header

# receiver, satellite, calibration, discontinuity, monitor
CLOCK_TYPES = ("AR", "AS", "CR", "DR", "MS")

System = T.Union[Sv, str]
Payload = T.Dict[str, T.Dict[System, "ClockData"]]


@dataclass(frozen=True)
class ClockData:
    bias: float
    bias_sigma: float | None = None
    rate: float | None = None
    rate_sigma: float | None = None


def is_new_block(line: str, header: Header) -> bool:
    return line[:2] in CLOCK_TYPES and line[2:3] == " "


def decode_block(lines: list[str], header: Header) -> tuple[Epoch, Payload]:
    items = " ".join(lines).split()
    if len(items) < 10:
        raise RecordError(f"clock line too short: {lines[0]!r}")

    kind, name = items[0], items[1]
    try:
        epoch = parse_epoch(" ".join(items[2:8]))
    except RinexError as err:
        raise RecordError(str(err))

    try:
        n = int(items[8])
        vals = [rinex_string_to_float(s) for s in items[9 : 9 + n]]
    except ValueError:
        raise RecordError(f"bad clock values in {lines[0]!r}")
    if len(vals) < n:
        raise RecordError(f"{kind} {name} {epoch}: {n} values announced, {len(vals)} found")

    system: System = name
    if kind == "AS":
        try:
            system = Sv.parse(name)
        except RinexError as err:
            raise RecordError(str(err))

    vals += [None] * (4 - len(vals))

    return epoch, {kind: {system: ClockData(*vals[:4])}}


def encode_block(epoch: Epoch, payload: Payload, header: Header) -> list[str]:
    y, m, d, hh, mm, ss, ns = epoch.components()
    sec = ss + ns / 1e9

    lines = []
    for kind in sorted(payload):
        for system in sorted(payload[kind], key=str):
            c = payload[kind][system]
            vals = [c.bias, c.bias_sigma, c.rate, c.rate_sigma]
            while vals[-1] is None:
                vals.pop()
            # an inner missing value cannot be expressed by a count
            txt = [f"{0.0 if v is None else v:19.12E}" for v in vals]
            head = f"{kind:<2} {str(system):<4} {y:4d}{m:3d}{d:3d}{hh:3d}{mm:3d}{sec:10.6f}{len(txt):3d}   "
            lines.append(head + " ".join(txt[:2]))
            if len(txt) > 2:
                lines.append(" ".join(txt[2:]))

    return lines


def to_dataset(data: T.Mapping[Epoch, Payload], header: Header) -> xarray.Dataset:
    """one (time, name) variable per clock type and quantity, e.g. AS_bias"""
    epochs = sorted(data)
    names = sorted({str(s) for e in epochs for k in data[e] for s in data[e][k]})
    kinds = sorted({k for e in epochs for k in data[e]})
    iname = {n: i for i, n in enumerate(names)}

    clk = xarray.Dataset(coords={"time": [e.time for e in epochs], "name": names})
    for kind in kinds:
        arrs = {q: np.full((len(epochs), len(names)), np.nan) for q in ("bias", "bias_sigma", "rate", "rate_sigma")}
        for t, e in enumerate(epochs):
            for system, c in data[e].get(kind, {}).items():
                for q, arr in arrs.items():
                    v = getattr(c, q)
                    if v is not None:
                        arr[t, iname[str(system)]] = v
        for q, arr in arrs.items():
            if not np.isnan(arr).all():
                clk[f"{kind}_{q}"] = (("time", "name"), arr)

    clk.attrs["version"] = str(header.version)
    clk.attrs["rinextype"] = "clk"
    if header.clocks is not None and header.clocks.analysis_center is not None:
        clk.attrs["analysis_center"] = header.clocks.analysis_center.code

    return clk
