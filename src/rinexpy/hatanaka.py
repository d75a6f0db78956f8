"""
handle Hatanaka CRINEX files

Compact RINEX stores each observable as an M-th order time difference of the
integer-scaled value ("3&123456789" starts an arc of order 3 at 123456789,
later epochs carry only the difference), and LLI/SSI flags plus the epoch line
as character differences against the previous epoch.

Every Decompressor / Compressor instance is one stream session: it owns the
per-satellite predictor tables and must not be shared between files.
"""

from __future__ import annotations
import typing as T
import logging
import math
from datetime import datetime, timezone
from dataclasses import dataclass, field

from .common import Version
from .constellation import Sv
from .errors import CodecError, RinexError
from .header import Header, HeaderBuilder, Crinex, CRINEX_DATE_FORMAT

if T.TYPE_CHECKING:
    from .rinex import Producer

MAX_ORDER = 5
# observables are F14.3, receiver clock offsets F12.9 (RINEX 2) or F15.12 (RINEX 3)
OBS_DECIMALS = 3


class NumDiff:
    """
    differential predictor of one numeric field

    state[0] is the last value, state[i] the last i-th order difference.
    """

    def __init__(self, order: int = 3):
        if order < 1:
            raise CodecError(f"difference order must be positive, got {order}")
        self.order = order
        self.state: list[int] = []

    def reset(self, value: int, order: int | None = None) -> int:
        if order is not None:
            self.order = order
        self.state = [value]
        return value

    def decompress(self, diff: int) -> int:
        if not self.state:
            raise CodecError("difference received before any initial value")

        k = min(len(self.state), self.order)
        if k == len(self.state):
            self.state.append(diff)
        else:
            self.state[k] = diff
        for i in range(k, 0, -1):
            self.state[i - 1] += self.state[i]

        return self.state[0]

    def compress(self, value: int) -> int:
        if not self.state:
            raise CodecError("compressor needs an initial value")

        k = min(len(self.state), self.order)
        new = [value]
        for i in range(1, k + 1):
            new.append(new[i - 1] - self.state[i - 1])
        self.state = new

        return new[k]


class TextDiff:
    """
    character differences: blank repeats the previous character, "&" turns it
    into a blank, anything else replaces it
    """

    def __init__(self, text: str = ""):
        self.text = text

    def reset(self, text: str) -> str:
        self.text = text
        return text

    def decompress(self, diff: str) -> str:
        n = max(len(self.text), len(diff))
        old = self.text.ljust(n)
        self.text = "".join(
            o if d == " " else " " if d == "&" else d for o, d in zip(old, diff.ljust(n))
        )
        return self.text

    def compress(self, text: str) -> str:
        n = max(len(self.text), len(text))
        new = text.ljust(n)
        out = "".join(
            " " if o == c else "&" if c == " " else c for o, c in zip(self.text.ljust(n), new)
        )
        self.text = new
        return out.rstrip()


@dataclass
class _SvState:
    fields: list[NumDiff | None] = field(default_factory=list)
    flags: TextDiff = field(default_factory=TextDiff)


def scaled_int(s: str, decimals: int) -> int:
    """fixed point text to integer without rounding through float"""
    txt = s.strip()
    whole, _, frac = txt.partition(".")
    sign = -1 if whole.startswith("-") else 1
    digits = whole.lstrip("+-") or "0"
    if not digits.isdigit() or (frac and not frac.isdigit()):
        raise CodecError(f"not a fixed point number: {s!r}")

    return sign * (int(digits) * 10**decimals + int(frac[:decimals].ljust(decimals, "0")))


def fixed(value: int, decimals: int, width: int) -> str:
    sign = "-" if value < 0 else ""
    q, r = divmod(abs(value), 10**decimals)
    return f"{sign}{q}.{r:0{decimals}d}".rjust(width)


def _crinex_major(header: Header) -> int:
    if header.obs is None:
        raise CodecError("Compact RINEX applies to observation files only")
    if header.crinex is not None:
        return header.crinex.version.major
    return 3 if header.version.major >= 3 else 1


class Decompressor:
    """
    Compact RINEX body -> RINEX observation body, one stream at a time

    Parameters
    ----------

    header: Header
        parsed header of the stream, gives revision and observable counts
    max_order: int
        highest difference order accepted from the stream
    """

    def __init__(self, header: Header, max_order: int = MAX_ORDER):
        self.header = header
        self.v3 = _crinex_major(header) >= 3
        self.max_order = max_order
        self.epoch = TextDiff()
        self.clock: NumDiff | None = None
        self.sats: dict[str, _SvState] = {}
        self.errors = 0

    def _warn(self, msg: str) -> None:
        self.errors += 1
        logging.warning(msg)

    def decompress(self, lines: T.Iterable[str]) -> T.Iterator[str]:
        it = iter(lines)
        for raw in it:
            line = raw.rstrip("\r\n")
            if not line.strip():
                continue
            if line[60:80].strip() == "COMMENT":
                yield line
                continue

            text = self._epoch_text(line)
            if text is None:
                continue

            if self.v3:
                flag_txt, count_txt, sat_txt, head = text[31:32], text[32:35], text[41:], text[:35]
            else:
                flag_txt, count_txt, sat_txt, head = text[28:29], text[29:32], text[32:], text[:32]

            try:
                flag = int(flag_txt.strip() or "0")
                count = int(count_txt)
            except ValueError:
                self._warn(f"CRINEX epoch line not understood: {text.rstrip()!r}")
                continue

            if 2 <= flag <= 5:
                # special records are stored as plain text
                yield head.rstrip()
                for _ in range(count):
                    nxt = next(it, None)
                    if nxt is None:
                        return
                    yield nxt.rstrip("\r\n")
                continue

            clock_line = next(it, None)
            if clock_line is None:
                self._warn("CRINEX stream ended before the clock offset line")
                return
            clock = self._clock(clock_line.rstrip("\r\n"))

            sats = [sat_txt[i * 3 : i * 3 + 3] for i in range(count)]
            yield from self._epoch_lines(head, sats, clock)

            for sv in sats:
                data_line = next(it, None)
                if data_line is None:
                    self._warn(f"CRINEX stream ended inside the epoch {head.strip()}")
                    return
                yield from self._sv_lines(sv, data_line.rstrip("\r\n"))

            for sv in set(self.sats) - set(sats):
                # a satellite coming back starts new arcs
                del self.sats[sv]

    def _epoch_text(self, line: str) -> str | None:
        if self.v3 and line.startswith(">"):
            return self.epoch.reset(line)
        if not self.v3 and line.startswith("&"):
            return self.epoch.reset(" " + line[1:])
        if not self.epoch.text:
            self._warn(f"CRINEX epoch difference without an initial epoch: {line!r}")
            return None
        return self.epoch.decompress(line)

    def _clock(self, line: str) -> int | None:
        token = line.strip()
        if not token:
            self.clock = None
            return None

        try:
            if "&" in token:
                order, _, value = token.partition("&")
                self.clock = NumDiff(min(int(order), self.max_order))
                return self.clock.reset(int(value))
            diff = int(token)
        except (ValueError, CodecError):
            self._warn(f"bad CRINEX clock offset token {token!r}")
            self.clock = None
            return None

        if self.clock is None:
            self._warn("CRINEX clock offset difference without an initial value")
            self.clock = NumDiff(2)
            return self.clock.reset(diff)

        return self.clock.decompress(diff)

    def _epoch_lines(self, head: str, sats: list[str], clock: int | None) -> T.Iterator[str]:
        if self.v3:
            line = head
            if clock is not None:
                line = f"{head:<35}{'':6}{fixed(clock, 12, 15)}"
            yield line.rstrip()
            return

        first = f"{head:<32}{''.join(sats[:12])}"
        if clock is not None:
            first = f"{first:<68}{fixed(clock, 9, 12)}"
        yield first.rstrip()
        for i in range(12, len(sats), 12):
            yield f"{'':32}{''.join(sats[i:i + 12])}".rstrip()

    def _ncodes(self, sv: str, fallback: int) -> int:
        try:
            const = Sv.parse(sv, self.header.constellation).constellation
        except RinexError:
            return fallback
        n = len(self.header.obs_codes(const))
        return n if n else fallback

    def _sv_lines(self, sv: str, line: str) -> T.Iterator[str]:
        n = self._ncodes(sv, len(line.split(" ")))
        parts = line.split(" ", n)
        tokens = parts[:n] + [""] * (n - len(parts[:n]))
        flag_diff = parts[n] if len(parts) > n else ""

        state = self.sats.setdefault(sv, _SvState())
        if len(state.fields) < n:
            state.fields.extend([None] * (n - len(state.fields)))

        values = [self._field(state, i, tok, sv) for i, tok in enumerate(tokens)]
        flags = state.flags.decompress(flag_diff).ljust(2 * n)

        obs = [
            (fixed(v, OBS_DECIMALS, 14) if v is not None else " " * 14) + flags[2 * i : 2 * i + 2]
            for i, v in enumerate(values)
        ]

        if self.v3:
            yield (sv + "".join(obs)).rstrip()
        else:
            for i in range(0, max(n, 1), 5):
                yield "".join(obs[i : i + 5]).rstrip()

    def _field(self, state: _SvState, i: int, token: str, sv: str) -> int | None:
        if not token:
            state.fields[i] = None
            return None

        try:
            if "&" in token:
                order_txt, _, value_txt = token.partition("&")
                order = int(order_txt)
                if order > self.max_order:
                    self._warn(f"{sv} field {i}: order {order} above {self.max_order}, clipped")
                    order = self.max_order
                num = NumDiff(order)
                state.fields[i] = num
                return num.reset(int(value_txt))
            diff = int(token)
        except (ValueError, CodecError):
            self._warn(f"{sv} field {i}: bad CRINEX token {token!r}")
            state.fields[i] = None
            return None

        num = state.fields[i]
        if num is None:
            self._warn(f"{sv} field {i}: difference {token} without an initial value, taken as absolute")
            num = NumDiff(1)
            state.fields[i] = num
            return num.reset(diff)

        return num.decompress(diff)


class Compressor:
    """
    RINEX observation body -> Compact RINEX body, one stream at a time
    """

    def __init__(self, header: Header, order: int = 3, clock_order: int = 2):
        self.header = header
        self.v3 = _crinex_major(header) >= 3
        self.order = order
        self.clock_order = clock_order
        self.epoch = TextDiff()
        self.clock: NumDiff | None = None
        self.sats: dict[str, _SvState] = {}

    def compress(self, lines: T.Iterable[str]) -> T.Iterator[str]:
        it = iter(lines)
        for raw in it:
            line = raw.rstrip("\r\n")
            if not line.strip():
                continue
            if line[60:80].strip() == "COMMENT":
                # body comments stay plain text in both forms
                yield line
                continue

            if self.v3:
                if not line.startswith(">"):
                    logging.warning(f"expected a RINEX 3 epoch line, skipping {line!r}")
                    continue
                flag_txt, count_txt = line[31:32], line[32:35]
            else:
                flag_txt, count_txt = line[28:29], line[29:32]

            try:
                flag = int(flag_txt.strip() or "0")
                count = int(count_txt)
            except ValueError:
                raise CodecError(f"not an epoch line: {line!r}")

            if 2 <= flag <= 5:
                yield self._init_line(line.rstrip())
                # next epoch is written in full again
                self.epoch = TextDiff()
                for _ in range(count):
                    nxt = next(it, None)
                    if nxt is None:
                        return
                    yield nxt.rstrip("\r\n")
                continue

            if self.v3:
                clock_txt = line[41:56]
                head = line[:35]
                data = []
                for _ in range(count):
                    nxt = next(it, None)
                    if nxt is None:
                        raise CodecError(f"file ended inside epoch {head.strip()}")
                    nxt = nxt.rstrip("\r\n")
                    data.append((nxt[:3], nxt[3:]))
                sats = [sv for sv, _ in data]
                text = f"{head:<35}{'':6}{''.join(sats)}"
            else:
                clock_txt = line[68:80]
                head = line[:32]
                sat_txt = line[32:68].rstrip()
                for _ in range(math.ceil(count / 12) - 1):
                    nxt = next(it, None)
                    if nxt is None:
                        raise CodecError(f"file ended inside epoch {head.strip()}")
                    sat_txt += nxt.rstrip("\r\n")[32:68].rstrip()
                sats = [sat_txt[i * 3 : i * 3 + 3].ljust(3) for i in range(count)]
                data = []
                for sv in sats:
                    n = len(self._codes(sv))
                    obs = ""
                    for _ in range(max(math.ceil(n / 5), 1)):
                        nxt = next(it, None)
                        if nxt is None:
                            raise CodecError(f"file ended inside epoch {head.strip()}")
                        obs += nxt.rstrip("\r\n").ljust(80)[:80]
                    data.append((sv, obs))
                text = f"{head:<32}{''.join(sats)}"

            if self.epoch.text:
                yield self.epoch.compress(text)
            else:
                self.epoch.reset(text)
                yield self._init_line(text)

            yield self._clock(clock_txt)

            for sv, obs in data:
                yield self._sv_line(sv, obs)

            for sv in set(self.sats) - set(sats):
                del self.sats[sv]

    def _init_line(self, text: str) -> str:
        return text if self.v3 else "&" + text[1:]

    def _codes(self, sv: str) -> list[str]:
        try:
            const = Sv.parse(sv, self.header.constellation).constellation
        except RinexError:
            raise CodecError(f"bad satellite identifier {sv!r}")
        return self.header.obs_codes(const)

    def _clock(self, txt: str) -> str:
        if not txt.strip():
            self.clock = None
            return ""

        value = scaled_int(txt, 12 if self.v3 else 9)
        if self.clock is None:
            self.clock = NumDiff(self.clock_order)
            self.clock.reset(value)
            return f"{self.clock_order}&{value}"
        return str(self.clock.compress(value))

    def _sv_line(self, sv: str, obs: str) -> str:
        n = len(self._codes(sv))
        state = self.sats.setdefault(sv, _SvState())
        if len(state.fields) < n:
            state.fields.extend([None] * (n - len(state.fields)))

        tokens = []
        flags = ""
        for i in range(n):
            chunk = obs[i * 16 : i * 16 + 16].ljust(16)
            flags += chunk[14:16]
            if not chunk[:14].strip():
                state.fields[i] = None
                tokens.append("")
                continue

            value = scaled_int(chunk[:14], OBS_DECIMALS)
            num = state.fields[i]
            if num is None:
                num = NumDiff(self.order)
                num.reset(value)
                state.fields[i] = num
                tokens.append(f"{self.order}&{value}")
            else:
                tokens.append(str(num.compress(value)))

        return f"{' '.join(tokens)} {state.flags.compress(flags)}".rstrip()


# %% text level converters


def _split_header(text: str) -> tuple[list[str], Header, list[str]]:
    lines = text.splitlines()
    builder = HeaderBuilder()
    for i, line in enumerate(lines):
        builder.apply_line(line)
        if builder.done:
            return lines[: i + 1], builder.finalize(), lines[i + 1 :]

    raise CodecError("END OF HEADER not found")


def crx2rnx(text: str, max_order: int = MAX_ORDER) -> str:
    """
    Compact RINEX text -> RINEX observation text
    """
    hlines, hdr, body = _split_header(text)
    if hdr.crinex is None:
        raise CodecError("not a Compact RINEX file")

    out = [ln.rstrip() for ln in hlines if "CRINEX VERS" not in ln[60:] and "CRINEX PROG / DATE" not in ln[60:]]
    out.extend(Decompressor(hdr, max_order).decompress(body))

    return "\n".join(out) + "\n"


def rnx2crx(text: str, producer: Producer | None = None, order: int = 3) -> str:
    """
    RINEX observation text -> Compact RINEX text
    CRINEX 1.0 for RINEX 2 input, CRINEX 3.0 otherwise
    """
    from .rinex import DEFAULT_PRODUCER

    hlines, hdr, body = _split_header(text)
    if hdr.crinex is not None:
        raise CodecError("file is already Compact RINEX")

    producer = producer or DEFAULT_PRODUCER
    hdr.crinex = crinex_descriptor(hdr, producer)

    out = [
        f"{str(hdr.crinex.version)[:3]:<20}{'COMPACT RINEX FORMAT':<20}{'':20}CRINEX VERS   / TYPE",
        f"{producer.tag:<20}{'':20}{hdr.crinex.date.strftime(CRINEX_DATE_FORMAT)}{'':5}CRINEX PROG / DATE",
    ]
    out += [ln.rstrip() for ln in hlines]
    out.extend(Compressor(hdr, order).compress(body))

    return "\n".join(out) + "\n"


def crinex_descriptor(hdr: Header, producer: Producer) -> Crinex:
    major = 3 if hdr.version.major >= 3 else 1
    now = datetime.now(timezone.utc).replace(second=0, microsecond=0, tzinfo=None)
    return Crinex(Version(major, 0), producer.tag, now)
