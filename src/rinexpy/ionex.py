"""
IONEX maps: TEC, RMS and height grids, one START OF ... MAP / END OF ... MAP block each

Values are integers scaled by 10**EXPONENT, 9999 marks a missing grid point.
"""

from __future__ import annotations
import typing as T
import logging
import math
from dataclasses import dataclass

import numpy as np
import xarray

from .epoch import Epoch, parse_epoch
from .errors import RecordError, RinexError

if T.TYPE_CHECKING:
    from .header import Header

MISSING = 9999
VALUES_PER_LINE = 16
MAP_KINDS = ("TEC", "RMS", "HEIGHT")
# value lines run to column 80, so only these count as labels
_LABELS = {f"{s} OF {k} MAP" for s in ("START", "END") for k in ("TEC", "RMS", "HEIGHT")} | {"END OF FILE", "COMMENT"}


class GridPoint(T.NamedTuple):
    latitude: float
    longitude: float
    altitude: float
    value: float


@dataclass
class IonexMap:
    tec: list[GridPoint]
    rms: list[GridPoint] | None = None
    height: list[GridPoint] | None = None

    def update(self, other: IonexMap) -> None:
        """fill in the grids this map does not have yet"""
        for kind in ("tec", "rms", "height"):
            if getattr(other, kind) and not getattr(self, kind):
                setattr(self, kind, getattr(other, kind))


def _label(line: str) -> str:
    return line[60:80].strip()


def is_new_block(line: str, header: Header) -> bool:
    return _label(line) in {f"START OF {k} MAP" for k in MAP_KINDS}


def _exponent(header: Header) -> int:
    return header.ionex.exponent if header.ionex is not None else -1


def decode_block(lines: list[str], header: Header) -> tuple[Epoch, IonexMap]:
    kind = _label(lines[0]).split()[2]
    exponent = _exponent(header)

    epoch: Epoch | None = None
    points: list[GridPoint] = []
    band: tuple[float, float, float, float, float] | None = None
    values: list[int] = []

    def flush():
        if band is None:
            return
        lat, lon1, lon2, dlon, h = band
        n = int(round((lon2 - lon1) / dlon)) + 1 if dlon else 1
        if len(values) < n:
            raise RecordError(f"{kind} map row at latitude {lat}: {n} values expected, {len(values)} found")
        for i, v in enumerate(values[:n]):
            if v != MISSING:
                points.append(GridPoint(lat, round(lon1 + i * dlon, 4), h, v * 10.0**exponent))

    for line in lines[1:]:
        label = _label(line)
        if label == "EPOCH OF CURRENT MAP":
            try:
                epoch = parse_epoch(line[:36])
            except RinexError as err:
                raise RecordError(str(err))
        elif label == "EXPONENT":
            try:
                exponent = int(line[:6])
            except ValueError:
                raise RecordError(f"bad EXPONENT {line!r}")
        elif label == "LAT/LON1/LON2/DLON/H":
            flush()
            try:
                band = T.cast(
                    "tuple[float, float, float, float, float]",
                    tuple(float(line[2 + i * 6 : 8 + i * 6]) for i in range(5)),
                )
            except ValueError:
                raise RecordError(f"bad grid row definition {line!r}")
            values = []
        elif label in _LABELS:
            continue
        elif band is not None:
            try:
                values.extend(int(line[i : i + 5]) for i in range(0, len(line.rstrip()), 5) if line[i : i + 5].strip())
            except ValueError:
                raise RecordError(f"bad {kind} map values {line!r}")
    flush()

    if epoch is None:
        raise RecordError(f"{kind} map without EPOCH OF CURRENT MAP")

    if kind == "TEC":
        return epoch, IonexMap(points)
    if kind == "RMS":
        return epoch, IonexMap([], rms=points)
    return epoch, IonexMap([], height=points)


# %% writing


def _axis(grid: tuple[float, float, float] | None, points: list[GridPoint], i: int) -> list[float]:
    if grid is not None:
        start, stop, step = grid
        if step == 0:
            return [start]
        n = int(round((stop - start) / step)) + 1
        return [round(start + k * step, 4) for k in range(n)]

    return sorted({p[i] for p in points})


def _map_lines(kind: str, index: int, epoch: Epoch, points: list[GridPoint], header: Header) -> list[str]:
    ix = header.ionex
    exponent = _exponent(header)
    lats = _axis(ix.latitudes if ix else None, points, 0)
    lons = _axis(ix.longitudes if ix else None, points, 1)
    hgts = _axis(ix.heights if ix else None, points, 2)
    grid = {(round(p.latitude, 4), round(p.longitude, 4), round(p.altitude, 4)): p.value for p in points}

    y, m, d, hh, mm, ss, _ = epoch.components()
    lines = [
        f"{index:6d}{'':54}START OF {kind} MAP",
        f"{y:6d}{m:6d}{d:6d}{hh:6d}{mm:6d}{ss:6d}{'':24}EPOCH OF CURRENT MAP",
    ]
    dlon = lons[1] - lons[0] if len(lons) > 1 else 0.0
    for h in hgts:
        for lat in lats:
            row = f"  {lat:6.1f}{lons[0]:6.1f}{lons[-1]:6.1f}{dlon:6.1f}{h:6.1f}"
            lines.append(f"{row:<60}LAT/LON1/LON2/DLON/H")
            vals = []
            for lon in lons:
                v = grid.get((round(lat, 4), round(lon, 4), round(h, 4)))
                vals.append(MISSING if v is None else int(round(v / 10.0**exponent)))
            for i in range(0, len(vals), VALUES_PER_LINE):
                lines.append("".join(f"{v:5d}" for v in vals[i : i + VALUES_PER_LINE]))
    lines.append(f"{index:6d}{'':54}END OF {kind} MAP")

    return lines


def encode_block(epoch: Epoch, payload: IonexMap, header: Header, index: int = 1) -> list[str]:
    lines = []
    for kind, points in (("TEC", payload.tec), ("RMS", payload.rms), ("HEIGHT", payload.height)):
        if points:
            lines += _map_lines(kind, index, epoch, points, header)
        elif kind == "TEC":
            logging.warning(f"{epoch}: empty TEC map not written")
    return lines


# %% xarray


def to_dataset(data: T.Mapping[Epoch, IonexMap], header: Header) -> xarray.Dataset:
    """TEC (and RMS where present) as (time, lat, lon) grids of the lowest height"""
    epochs = sorted(data)
    allpts = [p for e in epochs for p in data[e].tec]
    lats = sorted({p.latitude for p in allpts}, reverse=True)
    lons = sorted({p.longitude for p in allpts})
    ilat = {v: i for i, v in enumerate(lats)}
    ilon = {v: i for i, v in enumerate(lons)}
    h0 = min((p.altitude for p in allpts), default=math.nan)

    ds = xarray.Dataset(coords={"time": [e.time for e in epochs], "lat": lats, "lon": lons})
    for kind in ("tec", "rms"):
        arr = np.full((len(epochs), len(lats), len(lons)), np.nan)
        for t, e in enumerate(epochs):
            for p in getattr(data[e], kind) or []:
                if p.altitude == h0 and p.latitude in ilat and p.longitude in ilon:
                    arr[t, ilat[p.latitude], ilon[p.longitude]] = p.value
        if not np.isnan(arr).all():
            ds[kind] = (("time", "lat", "lon"), arr)

    ds.attrs["version"] = str(header.version)
    ds.attrs["rinextype"] = "ionex"
    ds.attrs["height"] = h0
    if header.ionex is not None and header.ionex.base_radius is not None:
        ds.attrs["base_radius"] = header.ionex.base_radius

    return ds
