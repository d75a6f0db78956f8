import argparse
from pathlib import Path
from datetime import timedelta
import logging

import rinexpy as rp


def rinexpy_read():
    """
    Reads RINEX 2/3/4 OBS/NAV/MET/CLK or IONEX file and prints it as xarray.Dataset

    The RINEX version is automatically detected.
    Compressed RINEX files including:
        * GZIP .gz
        * BZIP2 .bz2
        * ZIP .zip
        * LZW .Z
        * Hatanaka .crx / .crx.gz
    are handled seamlessly via TextIO stream.

    Examples:

    rinexpy_read ~/data/VEN100ITA_R_20181580000_01D_MN.rnx.gz
    rinexpy_read ~/data/PUMO00CR__R_20180010000_01D_15S_MO.rnx -t 2018-01-01 2018-01-01T00:30
    """
    p = argparse.ArgumentParser(description="read a RINEX file")
    p.add_argument("rinexfn", help="path to RINEX file")
    p.add_argument("-v", "--verbose", action="store_true")
    p.add_argument("-u", "--use", help="select which GNSS system(s) to use", nargs="+")
    p.add_argument("-t", "--tlim", help="specify time limits (process part of file)", nargs=2)
    p.add_argument("-interval", help="read the rinex file only every N seconds", type=float)
    P = p.parse_args()

    data = rp.load(P.rinexfn, use=P.use, tlim=P.tlim, verbose=P.verbose, interval=P.interval)

    print(data)


def rinexpy_time():
    p = argparse.ArgumentParser()
    p.add_argument("filename", help="RINEX filename to get times from")
    p.add_argument("-glob", help="file glob pattern", nargs="+", default="*")
    p.add_argument("-v", "--verbose", action="store_true")
    p = p.parse_args()

    filename = Path(p.filename).expanduser()

    print("filename: start, stop, number of times, interval")

    if filename.is_dir():
        flist = rp.globber(filename, p.glob)
        for f in flist:
            eachfile(f, p.verbose)
    elif filename.is_file():
        eachfile(filename, p.verbose)
    else:
        raise FileNotFoundError(f"{filename} is not a path or file")


def eachfile(fn: Path, verbose: bool = False):
    try:
        rnx = rp.Rinex.from_file(fn)
    except ValueError as e:
        if verbose:
            print(f"{fn.name}: {e}")
        return

    times = [e.datetime for e in rnx.epoch()]
    # %% output
    Ntimes = len(times)

    if Ntimes == 0:
        return

    ostr = f"{fn.name}:" f" {times[0].isoformat()}" f" {times[-1].isoformat()}" f" {Ntimes}"

    interval = rnx.sampling_interval()
    if interval is not None:
        ostr += f" {interval.total_seconds()}"
        Nexpect = (times[-1] - times[0]) // interval + 1
        if Nexpect != Ntimes:
            logging.warning(f"{fn.name}: expected {Nexpect} but got {Ntimes} times")

    print(ostr)

    if verbose:
        for t, gap in rnx.dead_times():
            print(f"gap of {gap} before {t}")


def rinexpy_merge():
    """
    merge RINEX files of the same type into one, marking each boundary with a FILE MERGE comment
    """
    p = argparse.ArgumentParser(description="merge RINEX files")
    p.add_argument("infiles", help="RINEX files to merge, first one's header wins", nargs="+")
    p.add_argument("-o", "--out", help="merged file (.gz to compress)", required=True)
    p.add_argument("-crx", help="write Hatanaka compressed output", action="store_true")
    P = p.parse_args()

    flist = [Path(f).expanduser() for f in P.infiles]
    rnx = rp.Rinex.from_file(flist[0])
    for fn in flist[1:]:
        rnx.merge_mut(rp.Rinex.from_file(fn))

    if P.crx:
        rnx = rnx.to_crinex()

    print(rnx.to_file(P.out))


def rinexpy_convert():
    """
    Hatanaka (de)compression and decimation of observation files

    rinexpy_convert in.crx out.rnx
    rinexpy_convert in.rnx out.crx.gz -crx -interval 30
    """
    p = argparse.ArgumentParser(description="convert RINEX <-> CRINEX, optionally decimating")
    p.add_argument("infile")
    p.add_argument("outfile")
    p.add_argument("-crx", help="write Hatanaka compressed output", action="store_true")
    p.add_argument("-interval", help="keep epochs at least N seconds apart", type=float)
    P = p.parse_args()

    rnx = rp.Rinex.from_file(Path(P.infile).expanduser())
    if P.interval:
        rnx = rnx.decimate_by_interval(timedelta(seconds=P.interval))

    rnx = rnx.to_crinex() if P.crx else rnx.to_rinex()

    print(rnx.to_file(P.outfile))


if __name__ == "__main__":
    rinexpy_read()
