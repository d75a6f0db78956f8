"""
Record: epoch ordered mapping, one variant per file type, and the block builder

The builder splits a body into blocks with a per type boundary predicate and
hands every block to the record variant, which decodes and stores it.
Blocks that fail to decode are logged and skipped.
"""

from __future__ import annotations
import typing as T
import copy
import logging
from dataclasses import dataclass, field

import xarray

from . import observation, navigation, meteo, clocks, ionex
from .common import RinexType
from .epoch import Epoch
from .errors import RecordError

if T.TYPE_CHECKING:
    from .header import Header


class Record:
    """
    Epoch -> payload, iterated in ascending epoch order
    """

    rinex_type: T.ClassVar[RinexType]

    def __init__(self, data: T.Mapping[Epoch, T.Any] | None = None):
        self.data: dict[Epoch, T.Any] = dict(data) if data else {}

    def __len__(self) -> int:
        return len(self.data)

    def __contains__(self, epoch: Epoch) -> bool:
        return epoch in self.data

    def __getitem__(self, epoch: Epoch) -> T.Any:
        return self.data[epoch]

    def __iter__(self) -> T.Iterator[Epoch]:
        return iter(sorted(self.data))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Record):
            return NotImplemented
        return type(self) is type(other) and self.data == other.data

    def __repr__(self) -> str:
        return f"{type(self).__name__}({len(self)} epochs)"

    def epochs(self) -> list[Epoch]:
        return sorted(self.data)

    def items(self) -> list[tuple[Epoch, T.Any]]:
        return [(e, self.data[e]) for e in self.epochs()]

    def first(self) -> Epoch | None:
        return min(self.data) if self.data else None

    def last(self) -> Epoch | None:
        return max(self.data) if self.data else None

    def insert(self, epoch: Epoch, payload: T.Any) -> None:
        self.data[epoch] = payload

    def remove(self, epoch: Epoch) -> None:
        del self.data[epoch]

    def filter(self, keep: T.Callable[[Epoch], bool]) -> Record:
        """new record of the same type with the epochs ``keep`` accepts"""
        new = copy.copy(self)
        new.data = {e: p for e, p in self.data.items() if keep(e)}
        return new

    def update(self, other: Record) -> None:
        """insert every entry of other, other wins on equal epochs"""
        for e, p in other.data.items():
            self.insert(e, p)

    def copy(self) -> Record:
        return copy.deepcopy(self)

    # %% per type hooks

    def decode_block(self, header: Header, lines: list[str], previous: Epoch | None) -> Epoch | None:
        raise NotImplementedError

    def encode_block(self, epoch: Epoch, header: Header, index: int, n_comments: int) -> list[str]:
        raise NotImplementedError

    def to_dataset(self, header: Header) -> xarray.Dataset:
        raise NotImplementedError

    def encode(self, header: Header, comments: T.Mapping[Epoch, list[str]] | None = None) -> T.Iterator[str]:
        """body lines, each block followed by the comments keyed to its epoch"""
        comments = comments or {}
        for i, epoch in enumerate(self.epochs(), start=1):
            notes = comments.get(epoch, [])
            yield from self.encode_block(epoch, header, i, len(notes))
            for c in notes:
                yield f"{c:<60}COMMENT"


class ObservationRecord(Record):
    rinex_type = RinexType.OBSERVATION

    def __init__(self, data=None, clock_offsets: T.Mapping[Epoch, float] | None = None):
        super().__init__(data)
        self.clock_offsets: dict[Epoch, float] = dict(clock_offsets) if clock_offsets else {}

    def __eq__(self, other: object) -> bool:
        eq = super().__eq__(other)
        if eq is not True:
            return eq
        return self.clock_offsets == T.cast(ObservationRecord, other).clock_offsets

    def insert(self, epoch: Epoch, payload: observation.Payload, clock: float | None = None) -> None:
        self.data[epoch] = payload
        if clock is not None:
            self.clock_offsets[epoch] = clock
        else:
            self.clock_offsets.pop(epoch, None)

    def remove(self, epoch: Epoch) -> None:
        super().remove(epoch)
        self.clock_offsets.pop(epoch, None)

    def filter(self, keep):
        new = super().filter(keep)
        new.clock_offsets = {e: c for e, c in self.clock_offsets.items() if e in new.data}
        return new

    def update(self, other: Record) -> None:
        offsets = getattr(other, "clock_offsets", {})
        for e, p in other.data.items():
            self.insert(e, p, offsets.get(e))

    def decode_block(self, header, lines, previous):
        epoch, payload, clock = observation.decode_block(lines, header, previous)
        self.insert(epoch, payload, clock)
        return epoch

    def encode_block(self, epoch, header, index, n_comments):
        return observation.encode_block(epoch, self.data[epoch], self.clock_offsets.get(epoch), header, n_comments)

    def to_dataset(self, header):
        return observation.to_dataset(self.data, header, self.clock_offsets)


class NavigationRecord(Record):
    rinex_type = RinexType.NAVIGATION

    def decode_block(self, header, lines, previous):
        decoded = navigation.decode_block(lines, header)
        if decoded is None:
            logging.debug(f"skipping frame {lines[0].strip()}")
            return None
        epoch, payload = decoded
        self.data.setdefault(epoch, {}).update(payload)
        return epoch

    def encode_block(self, epoch, header, index, n_comments):
        return navigation.encode_block(epoch, self.data[epoch], header)

    def to_dataset(self, header):
        return navigation.to_dataset(self.data, header)


class MeteoRecord(Record):
    rinex_type = RinexType.METEO

    def decode_block(self, header, lines, previous):
        epoch, payload = meteo.decode_block(lines, header)
        self.data.setdefault(epoch, {}).update(payload)
        return epoch

    def encode_block(self, epoch, header, index, n_comments):
        return meteo.encode_block(epoch, self.data[epoch], header)

    def to_dataset(self, header):
        return meteo.to_dataset(self.data, header)


class ClockRecord(Record):
    rinex_type = RinexType.CLOCK

    def decode_block(self, header, lines, previous):
        epoch, payload = clocks.decode_block(lines, header)
        entry = self.data.setdefault(epoch, {})
        for kind, systems in payload.items():
            entry.setdefault(kind, {}).update(systems)
        return epoch

    def encode_block(self, epoch, header, index, n_comments):
        return clocks.encode_block(epoch, self.data[epoch], header)

    def to_dataset(self, header):
        return clocks.to_dataset(self.data, header)


class IonexRecord(Record):
    rinex_type = RinexType.IONOSPHERE_MAP

    def decode_block(self, header, lines, previous):
        epoch, payload = ionex.decode_block(lines, header)
        if epoch in self.data:
            self.data[epoch].update(payload)
        else:
            self.data[epoch] = payload
        return epoch

    def encode_block(self, epoch, header, index, n_comments):
        return ionex.encode_block(epoch, self.data[epoch], header, index)

    def to_dataset(self, header):
        return ionex.to_dataset(self.data, header)


RECORD_TYPES: dict[RinexType, type[Record]] = {
    RinexType.OBSERVATION: ObservationRecord,
    RinexType.NAVIGATION: NavigationRecord,
    RinexType.METEO: MeteoRecord,
    RinexType.CLOCK: ClockRecord,
    RinexType.IONOSPHERE_MAP: IonexRecord,
}

_DECODERS = {
    RinexType.OBSERVATION: observation,
    RinexType.NAVIGATION: navigation,
    RinexType.METEO: meteo,
    RinexType.CLOCK: clocks,
    RinexType.IONOSPHERE_MAP: ionex,
}


def new_record(header: Header) -> Record | None:
    """empty record for the header file type, None for types without a record (ANTEX)"""
    cls = RECORD_TYPES.get(header.rinex_type)
    return cls() if cls is not None else None


def is_new_block(line: str, header: Header) -> bool:
    if header.version.major >= 4 and header.rinex_type in (RinexType.OBSERVATION, RinexType.NAVIGATION):
        return line.startswith(">")

    mod = _DECODERS.get(header.rinex_type)
    return mod is not None and mod.is_new_block(line, header)


@dataclass
class BuildReport:
    blocks: int = 0
    skipped: int = 0
    reasons: list[str] = field(default_factory=list)


def build_record(
    header: Header, lines: T.Iterable[str], report: BuildReport | None = None
) -> tuple[Record | None, dict[Epoch, list[str]]]:
    """
    Parameters
    ----------

    header: Header
    lines: iterable of str
        body lines, after END OF HEADER, already decompressed
    report: BuildReport, optional
        filled with decoded / skipped block counts

    Results
    -------

    record: Record
        None for file types without a record
    comments: dict
        Epoch -> body comments found in the block of that epoch
    """
    if report is None:
        report = BuildReport()

    comments: dict[Epoch, list[str]] = {}
    record = new_record(header)
    if record is None:
        return None, comments

    block: list[str] = []
    pending: list[str] = []
    last: Epoch | None = None

    def flush() -> None:
        nonlocal last
        if not block:
            return
        report.blocks += 1
        epoch = None
        try:
            epoch = record.decode_block(header, block, last)
        except RecordError as err:
            report.skipped += 1
            report.reasons.append(str(err))
            logging.warning(f"skipping block {block[0].strip()!r}: {err}")
        if epoch is not None:
            last = epoch
        if pending and last is not None:
            comments.setdefault(last, []).extend(pending)
            pending.clear()

    for raw in lines:
        line = raw.rstrip("\r\n")
        if line[60:80].strip() == "COMMENT":
            pending.append(line[:60].rstrip())
            continue

        if is_new_block(line, header):
            flush()
            block.clear()
        elif not block:
            if line.strip():
                logging.debug(f"ignoring line outside any block: {line!r}")
            continue

        block.append(line)

    flush()

    if pending:
        logging.info(f"{len(pending)} body comments without an epoch dropped")

    return record, comments
