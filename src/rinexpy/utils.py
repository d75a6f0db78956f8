from __future__ import annotations
import typing as T
from pathlib import Path
from datetime import datetime
from dateutil.parser import parse
import io

import numpy as np
import xarray

from .header import Header, parse_header
from .rio import opener


def globber(path: Path, glob: list[str]) -> list[Path]:
    path = Path(path).expanduser()
    if path.is_file():
        return [path]

    if isinstance(glob, str):
        glob = [glob]

    flist: list[Path] = []
    for g in glob:
        flist += [f for f in path.glob(g) if f.is_file()]

    return flist


def gettime(fn: T.TextIO | Path) -> np.ndarray:
    """
    get times in a RINEX file, CRINEX included

    Parameters
    ----------

    fn : pathlib.Path or io.StringIO
        RINEX file or stream to process

    Returns
    -------

    times : numpy.ndarray of numpy.datetime64
        1-D vector of unique epochs in file
    """
    from .rinex import Rinex

    rnx = Rinex.from_file(fn)
    if rnx.record is None:
        raise ValueError(f"{rnx.header.rinex_type.name} files carry no epochs  {fn}")

    return np.unique(np.array([e.time for e in rnx.epoch()], dtype="datetime64[ns]"))


def rinexheader(fn: T.TextIO | Path) -> Header:
    """
    retrieve RINEX 2/3/4 or CRINEX 1/3 header, parsed
    """
    if isinstance(fn, (str, Path)):
        fn = Path(fn).expanduser()

    if isinstance(fn, (Path, io.StringIO)):
        with opener(fn) as f:
            return parse_header(f)
    elif isinstance(fn, io.TextIOWrapper):
        return parse_header(fn)
    else:
        raise TypeError(f"unknown RINEX filetype {type(fn)}")


def _tlim(tlim: tuple[datetime, datetime] | None = None) -> tuple[datetime, datetime] | None:
    if tlim is None:
        pass
    elif len(tlim) == 2 and isinstance(tlim[0], datetime):
        pass
    elif len(tlim) == 2 and isinstance(tlim[0], str):
        tlim = (parse(tlim[0]), parse(tlim[1]))
    else:
        raise ValueError(f"Not sure what time limits are: {tlim}")

    return tlim


def to_datetime(times: xarray.DataArray):
    """convert to datetime.datetime"""
    if not isinstance(times, xarray.DataArray):
        return times

    t = times.values.astype("datetime64[us]").astype(datetime)

    if not isinstance(t, datetime):
        t = t.squeeze()[()]  # might still be array, but squeezed at least

    return t
