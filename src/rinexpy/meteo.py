"""
meteorological sensor blocks: epoch + one F7.1 value per declared observable
"""

from __future__ import annotations
import typing as T

import numpy as np
import xarray

from .epoch import Epoch, parse_epoch
from .errors import RecordError, RinexError

if T.TYPE_CHECKING:
    from .header import Header

Lf = 7
FIRST_LINE = 8
NEXT_LINES = 10

Payload = T.Dict[str, float]


def _date_width(header: Header) -> int:
    return 20 if header.version.major >= 3 else 18


def is_new_block(line: str, header: Header) -> bool:
    items = line.split()
    return len(items) >= 6 and all(s.isdigit() for s in items[:5])


def decode_block(lines: list[str], header: Header) -> tuple[Epoch, Payload]:
    codes = header.meteo.codes if header.meteo else []
    w = _date_width(header)
    first = lines[0]
    try:
        epoch = parse_epoch(first[:w])
    except RinexError as err:
        raise RecordError(str(err))

    raw = first[w:].ljust(FIRST_LINE * Lf)[: FIRST_LINE * Lf]
    for ln in lines[1:]:
        raw += ln[4:].ljust(NEXT_LINES * Lf)[: NEXT_LINES * Lf]

    payload = {}
    for k, code in enumerate(codes):
        txt = raw[k * Lf : (k + 1) * Lf].strip()
        if not txt:
            continue
        try:
            payload[code] = float(txt)
        except ValueError:
            raise RecordError(f"{epoch} {code}: bad value {txt!r}")

    return epoch, payload


def encode_block(epoch: Epoch, payload: Payload, header: Header) -> list[str]:
    codes = header.meteo.codes if header.meteo else sorted(payload)
    y, m, d, hh, mm, ss, _ = epoch.components()
    if header.version.major >= 3:
        head = f" {y:4d}{m:3d}{d:3d}{hh:3d}{mm:3d}{ss:3d}"
    else:
        head = f" {y % 100:02d}{m:3d}{d:3d}{hh:3d}{mm:3d}{ss:3d}"

    vals = [" " * Lf if c not in payload else f"{payload[c]:7.1f}" for c in codes]

    lines = [(head + "".join(vals[:FIRST_LINE])).rstrip()]
    for i in range(FIRST_LINE, len(vals), NEXT_LINES):
        lines.append(("    " + "".join(vals[i : i + NEXT_LINES])).rstrip())

    return lines


def to_dataset(data: T.Mapping[Epoch, Payload], header: Header) -> xarray.Dataset:
    epochs = sorted(data)
    codes = header.meteo.codes if header.meteo else sorted({c for e in epochs for c in data[e]})

    met = xarray.Dataset(coords={"time": [e.time for e in epochs]})
    for code in codes:
        met[code] = (("time",), np.array([data[e].get(code, np.nan) for e in epochs]))

    met.attrs["version"] = str(header.version)
    met.attrs["rinextype"] = "met"
    if header.meteo:
        for s in header.meteo.sensors:
            if s.code not in met:
                continue
            met[s.code].attrs["sensor"] = s.model
            met[s.code].attrs["sensor_type"] = s.sensor_type
            if s.accuracy is not None:
                met[s.code].attrs["accuracy"] = s.accuracy

    return met
