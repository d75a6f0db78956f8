from __future__ import annotations
import typing as T
from pathlib import Path
from datetime import datetime, timedelta
import logging

import xarray

from .common import check_time_interval
from .record import Record, NavigationRecord, ObservationRecord
from .rinex import Rinex
from .utils import _tlim


def load(
    rinexfn: T.TextIO | str | Path,
    tlim: tuple[datetime, datetime] | None = None,
    use: T.Sequence[str] | None = None,
    interval: float | int | timedelta | None = None,
    verbose: bool = False,
) -> xarray.Dataset:
    """
    Reads OBS, NAV, MET, CLK and IONEX files as xarray.Dataset

    Files / StringIO input may be plain ASCII text or compressed (including Hatanaka)

    Parameters
    ----------

    rinexfn: pathlib.Path or io.StringIO
    tlim: tuple of datetime or str
        start, stop time, inclusive
    use: sequence of str
        constellation letters to keep, e.g. ("G", "E"); OBS and NAV only
    interval: float or timedelta
        drop epochs closer than this to the last kept one
    verbose: bool
    """
    if verbose:
        logging.basicConfig(level=logging.INFO)

    if isinstance(rinexfn, str):
        rinexfn = Path(rinexfn).expanduser()

    tlim = _tlim(tlim)
    if tlim is not None:
        if tlim[1] < tlim[0]:
            raise ValueError("stop time must be after start time")

    interval = check_time_interval(interval)

    rnx = load_rinex(rinexfn, tlim=tlim, use=use)
    if interval is not None:
        rnx = rnx.decimate_by_interval(interval)

    return rnx.to_dataset()


def load_rinex(
    rinexfn: T.TextIO | Path,
    tlim: tuple[datetime, datetime] | None = None,
    use: T.Sequence[str] | None = None,
) -> Rinex:
    """read a file and restrict it to a time window and constellations"""
    rnx = Rinex.from_file(rinexfn)
    if rnx.record is None:
        return rnx

    record = rnx.record
    if tlim is not None:
        t0, t1 = tlim
        record = record.filter(lambda e: t0 <= e.datetime <= t1)
    if use:
        record = _select_systems(record, use)

    return Rinex(rnx.header, record, {e: c for e, c in rnx.comments.items() if e in record})


def _select_systems(record: Record, use: T.Sequence[str]) -> Record:
    if not isinstance(record, (ObservationRecord, NavigationRecord)):
        logging.info(f"{type(record).__name__} has no per satellite data, ignoring use={use}")
        return record

    keep = {u.strip().upper()[:1] for u in use}
    new = record.copy()
    new.data = {}
    for e, payload in record.data.items():
        sel = {sv: p for sv, p in payload.items() if sv.constellation.value in keep}
        if sel or e.flag.is_event:
            new.data[e] = sel
    if isinstance(new, ObservationRecord):
        new.clock_offsets = {e: c for e, c in new.clock_offsets.items() if e in new.data}

    return new
