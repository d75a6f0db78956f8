"""
Rinex: one file as Header + Record + body comments, and the record algebra on it

Operations that select epochs return a new Rinex and leave the source alone;
``merge_mut`` is the only in place operation.
"""

from __future__ import annotations
import typing as T
import copy
import gzip
import io
import logging
from datetime import datetime, timedelta
from pathlib import Path

import numpy as np
import xarray

from . import __version__
from .common import RinexType, check_time_interval
from .epoch import Epoch, EpochFlag
from .errors import FileTypeMismatch, EpochTooEarly, EpochTooLate, NotMerged, RinexError
from .hatanaka import Compressor, Decompressor, crinex_descriptor
from .header import Header, parse_header, format_header
from .record import Record, ObservationRecord, BuildReport, build_record
from .rio import opener

MERGE_MARKER = "FILE MERGE"
MERGE_TIME_FORMAT = "%Y%m%d %H%M%S UTC"

Comments = T.Dict[Epoch, T.List[str]]


class Producer(T.NamedTuple):
    """program identity written into merge comments and CRINEX headers"""

    name: str
    version: str

    @property
    def tag(self) -> str:
        return f"{self.name}-{self.version}"[:20]


DEFAULT_PRODUCER = Producer("rinexpy", __version__)


def merge_comment(producer: Producer, t: datetime) -> str:
    return f"{producer.tag:<20}{MERGE_MARKER:<20}{t:%Y%m%d %H%M%S} UTC"


def _to_time(epoch: Epoch | np.datetime64 | datetime) -> np.datetime64:
    if isinstance(epoch, Epoch):
        return epoch.time
    return np.datetime64(epoch, "ns")


def _to_timedelta(d: np.timedelta64) -> timedelta:
    return d.astype("timedelta64[us]").item()


class Rinex:
    """
    Parameters
    ----------

    header: Header
    record: Record
        None for files without a record (ANTEX)
    comments: dict
        Epoch -> body comments found after the block of that epoch
    """

    def __init__(self, header: Header, record: Record | None = None, comments: Comments | None = None):
        self.header = header
        self.record = record
        self.comments: Comments = dict(comments) if comments else {}

    def __repr__(self) -> str:
        return f"Rinex({self.header.rinex_type.name} {self.header.version}, {self.record!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Rinex):
            return NotImplemented
        return self.header == other.header and self.record == other.record and self.comments == other.comments

    # %% construction

    @classmethod
    def from_file(cls, fn: T.TextIO | Path, report: BuildReport | None = None) -> Rinex:
        """
        read RINEX, CRINEX (decompressed on the fly) or any of them gzip/bzip2/zip/LZW compressed
        """
        with opener(fn) as f:
            hdr = parse_header(f)
            body: T.Iterable[str] = f
            if hdr.is_crinex:
                body = Decompressor(hdr).decompress(f)
            record, comments = build_record(hdr, body, report)

        if record is not None:
            logging.debug(f"{fn}: {len(record)} epochs")

        return cls(hdr, record, comments)

    @classmethod
    def from_string(cls, text: str) -> Rinex:
        return cls.from_file(io.StringIO(text))

    def copy(self) -> Rinex:
        return copy.deepcopy(self)

    def _with_record(self, record: Record | None) -> Rinex:
        """new Rinex around a filtered record, comments follow their epochs"""
        comments = {}
        if record is not None:
            comments = {e: list(c) for e, c in self.comments.items() if e in record}
        return Rinex(copy.deepcopy(self.header), record, comments)

    # %% output

    def to_string(self) -> str:
        lines = [format_header(self.header).rstrip("\n")]
        if self.record is not None:
            body: T.Iterable[str] = self.record.encode(self.header, self.comments)
            if self.header.is_crinex:
                body = Compressor(self.header).compress(body)
            lines.extend(body)
        if self.header.rinex_type == RinexType.IONOSPHERE_MAP:
            lines.append(f"{'':60}END OF FILE")

        return "\n".join(lines) + "\n"

    def to_file(self, fn: Path) -> Path:
        """
        write this file; gzip compressed when the name ends in .gz
        """
        fn = Path(fn).expanduser()
        text = self.to_string()
        if fn.suffix == ".gz":
            with gzip.open(fn, "wt") as f:
                f.write(text)
        else:
            fn.write_text(text)

        return fn

    def to_crinex(self, producer: Producer = DEFAULT_PRODUCER) -> Rinex:
        if self.header.rinex_type != RinexType.OBSERVATION:
            raise RinexError("only observation data can be Hatanaka compressed")
        new = self.copy()
        new.header.crinex = crinex_descriptor(new.header, producer)
        return new

    def to_rinex(self) -> Rinex:
        new = self.copy()
        new.header.crinex = None
        return new

    def to_dataset(self) -> xarray.Dataset:
        if self.record is None:
            raise RinexError(f"{self.header.rinex_type.name} files have no record to export")
        return self.record.to_dataset(self.header)

    # %% epochs

    def epoch(self) -> T.Iterator[Epoch]:
        if self.record is not None:
            yield from self.record

    def epochs(self) -> list[Epoch]:
        return list(self.epoch())

    def epoch_ok(self) -> list[Epoch]:
        return [e for e in self.epoch() if e.flag == EpochFlag.OK]

    def epoch_anomalies(self, mask: EpochFlag | int | None = None) -> list[Epoch]:
        """epochs flagged other than OK, only those with flag ``mask`` if given"""
        out = [e for e in self.epoch() if e.flag != EpochFlag.OK]
        if mask is not None:
            out = [e for e in out if e.flag == mask]
        return out

    def event_description(self, epoch: Epoch) -> list[str]:
        """body comments attached to exactly this epoch"""
        return list(self.comments.get(epoch, []))

    def lock_loss_events(self) -> list[Epoch]:
        """observation epochs where at least one observable lost lock"""
        if not isinstance(self.record, ObservationRecord):
            return []
        return [
            e
            for e, payload in self.record.items()
            if any(d.lock_loss for obs in payload.values() for d in obs.values())
        ]

    def sampling_interval(self) -> timedelta | None:
        """
        declared INTERVAL, else the most frequent step between consecutive valid epochs
        """
        if self.header.sampling_interval:
            return timedelta(seconds=self.header.sampling_interval)

        steps = np.array([cur.time - prev.time for prev, cur in self._ok_pairs()], dtype="timedelta64[ns]")
        steps = steps[steps > np.timedelta64(0, "ns")]
        if steps.size == 0:
            return None

        values, counts = np.unique(steps, return_counts=True)
        return _to_timedelta(values[counts.argmax()])

    def _ok_pairs(self) -> list[tuple[Epoch, Epoch]]:
        """neighbouring epochs of the full sequence, both flagged OK"""
        epochs = self.epochs()
        return [
            (prev, cur)
            for prev, cur in zip(epochs, epochs[1:])
            if prev.flag == EpochFlag.OK and cur.flag == EpochFlag.OK
        ]

    def dead_times(self) -> list[tuple[Epoch, timedelta]]:
        """
        Results
        -------

        gaps: list of (Epoch, timedelta)
            later epoch of each consecutive valid pair further apart than
            the sampling interval, with the size of the gap
        """
        interval = self.sampling_interval()
        if interval is None:
            return []

        gaps = []
        for prev, cur in self._ok_pairs():
            dt = _to_timedelta(cur.time - prev.time)
            if dt > interval:
                gaps.append((cur, dt))
        return gaps

    # %% merge

    def is_merged(self) -> bool:
        return any(MERGE_MARKER in c for c in self._all_comments())

    def merge_boundaries(self) -> list[datetime]:
        """times at which merged files join, read back from FILE MERGE comments"""
        bounds = set()
        for c in self._all_comments():
            if MERGE_MARKER not in c:
                continue
            try:
                bounds.add(datetime.strptime(c[40:].strip(), MERGE_TIME_FORMAT))
            except ValueError:
                logging.warning(f"FILE MERGE comment without a readable time: {c!r}")
        return sorted(bounds)

    def _all_comments(self) -> T.Iterator[str]:
        yield from self.header.comments
        for notes in self.comments.values():
            yield from notes

    def merge(self, other: Rinex, producer: Producer = DEFAULT_PRODUCER) -> Rinex:
        new = self.copy()
        new.merge_mut(other, producer)
        return new

    def merge_mut(self, other: Rinex, producer: Producer = DEFAULT_PRODUCER) -> None:
        """
        fold another file of the same type into this one

        this header wins, other's epochs win on collision, and a FILE MERGE
        comment marks the epoch where the later of the two files starts
        """
        if self.header.rinex_type != other.header.rinex_type:
            raise FileTypeMismatch(self.header.rinex_type, other.header.rinex_type)

        self.header.merge(copy.deepcopy(other.header))

        if other.record is None or len(other.record) == 0:
            return

        if self.record is None or len(self.record) == 0:
            self.record = other.record.copy()
            self.comments = copy.deepcopy(other.comments)
            return

        mine = T.cast(Epoch, self.record.first())
        theirs = T.cast(Epoch, other.record.first())
        boundary = theirs if theirs.time > mine.time else mine

        self.record.update(other.record)
        for e, notes in other.comments.items():
            self.comments.setdefault(e, []).extend(notes)

        self.header.comments.append(merge_comment(producer, boundary.datetime))

        if self.header.first_epoch is not None:
            self.header.first_epoch = Epoch(T.cast(Epoch, self.record.first()).time)
        if self.header.last_epoch is not None:
            self.header.last_epoch = Epoch(T.cast(Epoch, self.record.last()).time)

    # %% split

    def split_at_epoch(self, epoch: Epoch | np.datetime64 | datetime) -> tuple[Rinex, Rinex]:
        """
        Results
        -------

        before: Rinex
            epochs strictly before ``epoch``
        after: Rinex
            epochs at or after ``epoch``
        """
        if self.record is None or len(self.record) == 0:
            raise EpochTooLate(f"no epochs to split at {epoch}")

        t = _to_time(epoch)
        first, last = T.cast(Epoch, self.record.first()), T.cast(Epoch, self.record.last())
        if t < first.time:
            raise EpochTooEarly(f"{t} is before the first epoch {first}")
        if t > last.time:
            raise EpochTooLate(f"{t} is after the last epoch {last}")

        before = self._segment(self.record.filter(lambda e: e.time < t))
        after = self._segment(self.record.filter(lambda e: e.time >= t))
        return before, after

    def split(self, epoch: Epoch | np.datetime64 | datetime | None = None) -> list[Rinex]:
        """
        split at ``epoch``, or at every merge boundary when no epoch is given
        """
        if epoch is not None:
            return list(self.split_at_epoch(epoch))

        if not self.is_merged():
            raise NotMerged("no FILE MERGE comment to split at")
        if self.record is None:
            raise RinexError(f"{self.header.rinex_type.name} files carry no epochs to split")

        edges = [np.datetime64(b, "ns") for b in self.merge_boundaries()]
        lows = [None] + edges
        highs = edges + [None]

        parts = []
        for lo, hi in zip(lows, highs):
            piece = self.record.filter(
                lambda e, lo=lo, hi=hi: (lo is None or e.time >= lo) and (hi is None or e.time < hi)
            )
            if len(piece):
                parts.append(self._segment(piece))

        return parts

    def _segment(self, record: Record) -> Rinex:
        new = self._with_record(record)
        new.header.comments = [c for c in new.header.comments if MERGE_MARKER not in c]
        for e in list(new.comments):
            new.comments[e] = [c for c in new.comments[e] if MERGE_MARKER not in c]
            if not new.comments[e]:
                del new.comments[e]
        if len(record):
            if new.header.first_epoch is not None:
                new.header.first_epoch = Epoch(T.cast(Epoch, record.first()).time)
            if new.header.last_epoch is not None:
                new.header.last_epoch = Epoch(T.cast(Epoch, record.last()).time)
        return new

    # %% decimation

    def decimate_by_interval(self, interval: float | timedelta) -> Rinex:
        """
        keep the first epoch, then every epoch at least ``interval`` after the last kept one
        """
        dt = check_time_interval(interval)
        if dt is None:
            raise TypeError("decimation needs a time interval")
        if self.record is None:
            return self.copy()

        step = np.timedelta64(int(dt.total_seconds() * 1e9), "ns")
        keep = set()
        last = None
        for e in self.record:
            if last is not None and e.time - last < step:
                continue
            keep.add(e)
            last = e.time

        new = self._with_record(self.record.filter(lambda e: e in keep))
        if dt.total_seconds() > 0:
            new.header.sampling_interval = dt.total_seconds()
        return new

    def decimate_by_ratio(self, ratio: int) -> Rinex:
        """keep one epoch out of every ``ratio``, starting with the first"""
        if ratio < 1:
            raise ValueError("decimation ratio must be a positive integer")
        if self.record is None:
            return self.copy()

        keep = set(self.record.epochs()[::ratio])
        new = self._with_record(self.record.filter(lambda e: e in keep))
        if new.header.sampling_interval:
            new.header.sampling_interval *= ratio
        return new

    def resample(self, interval: float | timedelta) -> Rinex:
        """downsample to ``interval``; upsampling is refused"""
        dt = check_time_interval(interval)
        if dt is None:
            raise TypeError("resampling needs a time interval")
        current = self.sampling_interval()
        if current is not None and dt < current:
            raise ValueError(f"cannot upsample from {current} to {dt}")
        return self.decimate_by_interval(dt)

    def cleanup(self) -> Rinex:
        """observation epochs with flag OK only"""
        if not isinstance(self.record, ObservationRecord):
            raise RinexError("cleanup applies to observation data")
        return self._with_record(self.record.filter(lambda e: e.flag == EpochFlag.OK))
