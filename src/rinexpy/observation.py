"""
observation blocks: epoch line + satellite list + per satellite observables

RINEX 2: satellites listed on the epoch line (12 per line), then 5 observables
per 80 column line for each satellite.
RINEX 3/4: ">" epoch line, then one line per satellite starting with its identifier.
"""

from __future__ import annotations
import typing as T
import math
from dataclasses import dataclass

import numpy as np
import xarray

from .common import determine_time_system
from .constellation import Sv
from .epoch import Epoch, EpochFlag, parse_epoch, format_seconds
from .errors import RecordError, RinexError

if T.TYPE_CHECKING:
    from .header import Header

SV_PER_LINE_V2 = 12
OBS_PER_LINE_V2 = 5

Payload = T.Dict[Sv, T.Dict[str, "ObservationData"]]


@dataclass(frozen=True)
class ObservationData:
    value: float
    lli: int | None = None
    ssi: int | None = None

    @property
    def lock_loss(self) -> bool:
        """LLI bit 0: lost lock between previous and current observation"""
        return self.lli is not None and bool(self.lli & 0x01)


def is_new_block(line: str, header: Header) -> bool:
    if header.version.major >= 3:
        return line.startswith(">")

    return (len(line.split()) > 7 and _is_epoch_v2(line)) or _is_blank_event_v2(line)


def _is_epoch_v2(line: str) -> bool:
    """
    SSI-only data lines have more than 7 tokens as well, so the date columns must look like a date
    """
    items = line[:26].split()
    if len(items) != 6:
        return False
    if not all(s.isdigit() and len(s) <= 2 for s in items[:5]):
        return False
    return line[28:29].isdigit() or not line[28:29].strip()


def _is_blank_event_v2(line: str) -> bool:
    # event epochs may leave the date blank
    return not line[:26].strip() and line[28:29] in ("2", "3", "4", "5") and line[29:32].strip().isdigit()


def decode_block(
    lines: list[str], header: Header, previous: Epoch | None = None
) -> tuple[Epoch, Payload, float | None]:
    """
    Parameters
    ----------

    lines: list of str
        one observation block, comments already removed
    header: Header
    previous: Epoch
        epoch of the previous block, dates left blank on event lines refer to it

    Results
    -------

    epoch: Epoch
    payload: dict
        Sv -> observable code -> ObservationData
    clock: float or None
        receiver clock offset [seconds]
    """
    if header.version.major >= 3:
        return _decode_v3(lines, header, previous)
    return _decode_v2(lines, header, previous)


def _epoch(date: str, flag_txt: str, previous: Epoch | None, line: str) -> Epoch:
    try:
        flag = EpochFlag(int(flag_txt)) if flag_txt.strip() else EpochFlag.OK
    except ValueError:
        raise RecordError(f"bad epoch flag {flag_txt!r} in {line!r}")

    if not date.strip():
        if previous is None or not flag.is_event:
            raise RecordError(f"epoch line without a date: {line!r}")
        return previous.with_flag(flag)

    try:
        return parse_epoch(date).with_flag(flag)
    except RinexError as err:
        raise RecordError(str(err))


def _count(txt: str, line: str) -> int:
    try:
        return int(txt)
    except ValueError:
        raise RecordError(f"bad satellite count {txt!r} in {line!r}")


def _clock(txt: str) -> float | None:
    txt = txt.strip()
    if not txt:
        return None
    try:
        return float(txt)
    except ValueError:
        raise RecordError(f"bad receiver clock offset {txt!r}")


def _observables(text: str, codes: list[str], sv: Sv) -> dict[str, ObservationData]:
    obs = {}
    for i, code in enumerate(codes):
        chunk = text[i * 16 : (i + 1) * 16]
        value = chunk[:14].strip()
        if not value:
            continue
        try:
            val = float(value)
        except ValueError:
            raise RecordError(f"{sv} {code}: bad value {value!r}")
        lli = chunk[14:15]
        ssi = chunk[15:16]
        obs[code] = ObservationData(
            val,
            int(lli) if lli.isdigit() else None,
            int(ssi) if ssi.isdigit() else None,
        )

    return obs


def _decode_v2(lines, header, previous):
    first = lines[0]
    epoch = _epoch(first[:26], first[28:29], previous, first)
    n = _count(first[29:32], first)

    if epoch.flag.is_event:
        return epoch, {}, None

    clock = _clock(first[68:80])

    n_lines = math.ceil(n / SV_PER_LINE_V2)
    if len(lines) < n_lines:
        raise RecordError(f"{epoch}: satellite list is truncated")
    sat_txt = "".join(ln[32:68].ljust(36) for ln in lines[:n_lines])

    try:
        sats = [Sv.parse(sat_txt[i * 3 : i * 3 + 3], header.constellation) for i in range(n)]
    except RinexError as err:
        raise RecordError(f"{epoch}: {err}")

    payload: Payload = {}
    k = n_lines
    for sv in sats:
        codes = header.obs_codes(sv.constellation)
        if not codes:
            raise RecordError(f"{epoch}: no observable codes declared for {sv}")
        n_obs_lines = max(math.ceil(len(codes) / OBS_PER_LINE_V2), 1)
        chunk = lines[k : k + n_obs_lines]
        if len(chunk) < n_obs_lines:
            raise RecordError(f"{epoch}: block ended inside the data of {sv}")
        k += n_obs_lines
        text = "".join(ln.ljust(80)[:80] for ln in chunk)
        payload[sv] = _observables(text, codes, sv)

    return epoch, payload, clock


def _decode_v3(lines, header, previous):
    first = lines[0]
    epoch = _epoch(first[1:29], first[31:32], previous, first)
    n = _count(first[32:35], first)

    if epoch.flag.is_event:
        return epoch, {}, None

    clock = _clock(first[41:56])

    if len(lines) - 1 < n:
        raise RecordError(f"{epoch}: {n} satellites announced, {len(lines) - 1} lines found")

    payload: Payload = {}
    for line in lines[1 : n + 1]:
        try:
            sv = Sv.parse(line[:3])
        except RinexError as err:
            raise RecordError(f"{epoch}: {err}")
        codes = header.obs_codes(sv.constellation)
        if not codes:
            raise RecordError(f"{epoch}: no observable codes declared for {sv}")
        payload[sv] = _observables(line[3:], codes, sv)

    return epoch, payload, clock


# %% writing


def _fields(obs: dict[str, ObservationData], codes: list[str]) -> list[str]:
    out = []
    for code in codes:
        d = obs.get(code)
        if d is None:
            out.append(" " * 16)
            continue
        lli = " " if d.lli is None else str(d.lli)
        ssi = " " if d.ssi is None else str(d.ssi)
        out.append(f"{d.value:14.3f}{lli}{ssi}")
    return out


def encode_block(
    epoch: Epoch, payload: Payload, clock: float | None, header: Header, n_special: int = 0
) -> list[str]:
    """
    block text in the layout of the header revision

    n_special: number of special records (comments) following an event epoch
    """
    y, m, d, hh, mm, ss, ns = epoch.components()
    seconds = format_seconds(ss, ns, 7, 11)
    sats = sorted(payload)
    n = n_special if epoch.flag.is_event else len(sats)

    if header.version.major >= 3:
        line = f"> {y:04d} {m:02d} {d:02d} {hh:02d} {mm:02d}{seconds}  {epoch.flag:1d}{n:3d}"
        if clock is not None and not epoch.flag.is_event:
            line += f"{'':6}{clock:15.12f}"
        lines = [line]
        if epoch.flag.is_event:
            return lines
        for sv in sats:
            lines.append((str(sv) + "".join(_fields(payload[sv], header.obs_codes(sv.constellation)))).rstrip())
        return lines

    line = f" {y % 100:02d} {m:2d} {d:2d} {hh:2d} {mm:2d}{seconds}  {epoch.flag:1d}{n:3d}"
    if epoch.flag.is_event:
        return [line]

    ids = [str(sv) for sv in sats]
    first = line + "".join(ids[:SV_PER_LINE_V2])
    if clock is not None:
        first = f"{first:<68}{clock:12.9f}"
    lines = [first.rstrip()]
    for i in range(SV_PER_LINE_V2, len(ids), SV_PER_LINE_V2):
        lines.append(f"{'':32}{''.join(ids[i:i + SV_PER_LINE_V2])}")

    for sv in sats:
        fields = _fields(payload[sv], header.obs_codes(sv.constellation))
        for i in range(0, max(len(fields), 1), OBS_PER_LINE_V2):
            lines.append("".join(fields[i : i + OBS_PER_LINE_V2]).rstrip())

    return lines


# %% xarray


def to_dataset(
    data: T.Mapping[Epoch, Payload], header: Header, clock_offsets: T.Mapping[Epoch, float] | None = None
) -> xarray.Dataset:
    """
    observables as (time, sv) arrays, with "lli" / "ssi" companions when present
    """
    epochs = sorted(e for e in data if not e.flag.is_event)
    svs = sorted({sv for e in epochs for sv in data[e]})
    svl = [str(sv) for sv in svs]
    isv = {sv: i for i, sv in enumerate(svs)}

    codes: list[str] = []
    for table in (header.obs.codes.values() if header.obs else []):
        codes.extend(c for c in table if c not in codes)

    shape = (len(epochs), len(svs))
    values = {c: np.full(shape, np.nan) for c in codes}
    lli = {c: np.full(shape, np.nan) for c in codes}
    ssi = {c: np.full(shape, np.nan) for c in codes}

    for t, e in enumerate(epochs):
        for sv, obs in data[e].items():
            for code, d in obs.items():
                values[code][t, isv[sv]] = d.value
                if d.lli is not None:
                    lli[code][t, isv[sv]] = d.lli
                if d.ssi is not None:
                    ssi[code][t, isv[sv]] = d.ssi

    obs = xarray.Dataset(coords={"time": [e.time for e in epochs], "sv": svl})
    for code in codes:
        if np.isnan(values[code]).all():
            continue
        obs[code] = (("time", "sv"), values[code])
        if not np.isnan(lli[code]).all():
            obs[code + "lli"] = (("time", "sv"), lli[code])
        if not np.isnan(ssi[code]).all():
            obs[code + "ssi"] = (("time", "sv"), ssi[code])

    if clock_offsets:
        obs["clock_offset"] = (("time",), np.array([clock_offsets.get(e, np.nan) for e in epochs]))

    obs.attrs["version"] = str(header.version)
    obs.attrs["rinextype"] = "obs"
    if header.sampling_interval is not None:
        obs.attrs["interval"] = header.sampling_interval
    elif len(epochs) > 1:
        obs.attrs["interval"] = np.median(np.diff(obs.time) / np.timedelta64(1, "s"))
    else:
        obs.attrs["interval"] = np.nan
    try:
        obs.attrs["time_system"] = determine_time_system(header)
    except ValueError:
        pass
    if header.coords is not None:
        obs.attrs["position"] = list(header.coords)
        if header.position_geodetic is not None:
            obs.attrs["position_geodetic"] = list(header.position_geodetic)
    if header.receiver is not None:
        obs.attrs["rxmodel"] = header.receiver.model
    if header.obs is not None and header.obs.clock_offset_applied is not None:
        obs.attrs["receiver_clock_offset_applied"] = int(header.obs.clock_offset_applied)

    return obs
