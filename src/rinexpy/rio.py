from __future__ import annotations
import typing as T
import gzip
import bz2
import zipfile
from pathlib import Path
from contextlib import contextmanager
import io
import logging

try:
    from ncompress import decompress as unlzw
except ImportError:
    logging.info("ncompress unlzw not available")
    unlzw = None

FIRST_LINE_LABELS = (
    "RINEX VERSION / TYPE",
    "CRINEX VERS   / TYPE",
    "ANTEX VERSION / SYST",
    "IONEX VERSION / TYPE",
)


@contextmanager
def opener(fn: T.TextIO | Path) -> T.Iterator[T.TextIO]:
    """
    provides file handle for regular ASCII, gzip, bzip2, zip or LZW files transparently

    CRINEX files are handed out as they are, the caller decompresses the body.
    """

    if isinstance(fn, str):
        fn = Path(fn).expanduser()

    if isinstance(fn, io.StringIO):
        fn.seek(0)
        yield fn
    elif isinstance(fn, Path):
        # need to have this check for Windows
        if not fn.is_file():
            raise FileNotFoundError(fn)

        finf = fn.stat()
        if finf.st_size > 100e6:
            logging.info(f"opening {finf.st_size / 1e6} MByte {fn.name}")

        # %% get magic number
        """https://en.wikipedia.org/wiki/List_of_file_signatures"""
        with fn.open("rb") as fid:
            magic = fid.read(4)

        suffix = fn.suffix.lower()

        if suffix == ".gz" or magic.startswith(b"\x1f\x8b"):
            with gzip.open(fn, "rt", encoding="ascii", errors="ignore") as f:
                yield f
        elif suffix == ".bz2" or magic.startswith(b"\x42\x5a\x68"):
            """
            plain bzip2 files, NOT tar.bz2, which requires f.seek(512)
            """
            with bz2.open(fn, "rt", encoding="ascii", errors="ignore") as f:
                yield f
        elif suffix == ".zip" or magic.startswith(b"\x50\x4b"):
            with zipfile.ZipFile(fn, "r") as z:
                flist = z.namelist()
                if len(flist) > 1:
                    logging.warning(f"{fn.name}: reading {flist[0]} only of {len(flist)} members")
                with z.open(flist[0], "r") as bf:
                    yield io.StringIO(io.TextIOWrapper(bf, encoding="ascii", errors="ignore").read())  # type: ignore
        elif suffix == ".z" or magic.startswith(b"\x1f\x9d"):
            if unlzw is None:
                raise ImportError("ncompress unlzw not available")

            with fn.open("rb") as zu:
                with io.StringIO(unlzw(zu.read()).decode("ascii", errors="ignore")) as f:
                    yield f
        else:  # assume not compressed (or Hatanaka)
            with fn.open("r", encoding="ascii", errors="ignore") as f:
                yield f
    else:
        raise OSError(f"Unsure what to do with input of type: {type(fn)}")


def first_nonblank_line(f: T.TextIO, max_lines: int = 10) -> str:
    """return first non-blank 80 character line in file

    Parameters
    ----------

    max_lines: int
        maximum number of blank lines
    """

    line = ""
    _i = None
    if max_lines < 1:
        raise ValueError("must read at least one line")

    for _i in range(max_lines):
        line = f.readline(81)
        if line.strip():
            break

    if _i is None or _i == max_lines - 1 or not line:
        raise ValueError(f"could not find first valid header line in {getattr(f, 'name', f)}")

    return line


def rinexinfo(f: T.TextIO | Path) -> dict[T.Hashable, T.Any]:
    """
    file revision, type and system letters from the first header line
    """

    if isinstance(f, (str, Path)):
        with opener(Path(f).expanduser()) as fh:
            return rinexinfo(fh)

    f.seek(0)

    try:
        line = first_nonblank_line(f)  # don't choke on binary files

        version, is_crinex = rinex_version(line)
        if is_crinex:
            # CRINEX VERS, CRINEX PROG / DATE, then the RINEX header proper
            for _ in range(2):
                line = f.readline(81)
            version = rinex_version(line)[0]

        label = line[60:80].strip()
        if label == "ANTEX VERSION / SYST":
            file_type, system, rinex_type = "A", line[20], "antex"
        elif label == "IONEX VERSION / TYPE":
            file_type, system, rinex_type = "I", line[40:43].strip(), "ionex"
        else:
            file_type = line[20]
            if int(version) == 2 and file_type == "N":
                system = "G"
            elif int(version) == 2 and file_type == "G":
                system = "R"
            elif int(version) == 2 and file_type == "H":
                system = "S"
            else:
                system = line[40]

            if file_type == "O":
                rinex_type = "obs"
            elif file_type in ("N", "G", "H") or "NAV" in line[20:40]:
                rinex_type = "nav"
            elif file_type == "M":
                rinex_type = "met"
            elif file_type == "C":
                rinex_type = "clk"
            else:
                rinex_type = file_type

        info: dict[T.Hashable, T.Any] = {
            "version": version,
            "filetype": file_type,
            "rinextype": rinex_type,
            "systems": system,
            "crinex": is_crinex,
        }

    except (TypeError, AttributeError, ValueError, IndexError) as e:
        # keep ValueError for consistent user error handling
        raise ValueError(f"not a known/valid RINEX file.  {e}")

    return info


def rinex_version(s: str) -> tuple[float, bool]:
    """

    Parameters
    ----------

    s : str
       first line of RINEX/CRINEX file

    Results
    -------

    version : float
        RINEX file version

    is_crinex : bool
        is it a Compressed RINEX CRINEX Hatanaka file
    """
    if not isinstance(s, str):
        raise TypeError("need first line of RINEX file as string")
    if len(s) < 2:
        raise ValueError(f"cannot decode RINEX version from line:\n{s}")

    if len(s) >= 80:
        if s[60:80] not in FIRST_LINE_LABELS:
            raise ValueError("The first line of the RINEX file header is corrupted.")

    try:
        vers = float(s[:9])  # %9.2f
    except ValueError as err:
        raise ValueError(f"Could not determine file version from {s[:9]}   {err}")

    is_crinex = s[20:40] == "COMPACT RINEX FORMAT"

    return vers, is_crinex
