"""
RINEX / CRINEX / ANTEX / IONEX header parsing and re-emission

Header lines are keyed by the label in columns 61-80; each label has a
column-sliced extractor.  Multi-line tables (observable codes) are continued
across lines by HeaderBuilder.
"""

from __future__ import annotations
import typing as T
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime

try:
    from pymap3d import ecef2geodetic
except ImportError:
    ecef2geodetic = None

from .common import Version, RinexType, rinex_string_to_float
from .constellation import Constellation, LEGACY_MIXED
from .epoch import Epoch, parse_epoch, format_seconds
from .errors import HeaderError, RinexError

OBS_CODES_PER_LINE_V2 = 9
OBS_CODES_PER_LINE_V3 = 13
METEO_CODES_PER_LINE = 8
CLOCK_CODES_PER_LINE = 9

CRINEX_DATE_FORMAT = "%d-%b-%y %H:%M"


@dataclass
class Crinex:
    """Compact RINEX (Hatanaka) descriptor"""

    version: Version
    program: str = ""
    date: datetime | None = None


@dataclass
class Receiver:
    sn: str = ""
    model: str = ""
    firmware: str = ""


@dataclass
class Antenna:
    sn: str = ""
    model: str = ""
    height: float | None = None
    eastern: float | None = None
    northern: float | None = None
    coords: tuple[float, float, float] | None = None


@dataclass
class LeapSeconds:
    leap: int
    delta: int | None = None
    week: int | None = None
    day: int | None = None
    system: str = ""


@dataclass
class ObservationFields:
    codes: dict[Constellation, list[str]] = field(default_factory=dict)
    clock_offset_applied: bool | None = None


@dataclass
class Sensor:
    model: str
    sensor_type: str
    accuracy: float | None
    code: str
    position: tuple[float, float, float, float] | None = None


@dataclass
class MeteoFields:
    codes: list[str] = field(default_factory=list)
    sensors: list[Sensor] = field(default_factory=list)


@dataclass
class AnalysisCenter:
    code: str
    agency: str


@dataclass
class ClockFields:
    codes: list[str] = field(default_factory=list)
    analysis_center: AnalysisCenter | None = None
    station: str = ""
    station_id: str = ""
    reference: str = ""


@dataclass
class AntexFields:
    pcv: str = ""
    reference_type: str = ""
    reference_sn: str = ""


@dataclass
class IonexFields:
    system: str = ""
    epoch_of_first_map: Epoch | None = None
    epoch_of_last_map: Epoch | None = None
    n_maps: int | None = None
    mapping_function: str = ""
    elevation_cutoff: float | None = None
    base_radius: float | None = None
    map_dimension: int | None = None
    heights: tuple[float, float, float] | None = None
    latitudes: tuple[float, float, float] | None = None
    longitudes: tuple[float, float, float] | None = None
    exponent: int = -1


@dataclass
class Header:
    version: Version
    rinex_type: RinexType
    constellation: Constellation | None = None
    comments: list[str] = field(default_factory=list)
    program: str = ""
    run_by: str = ""
    date: str = ""
    station: str = ""
    station_id: str = ""
    marker_type: str = ""
    observer: str = ""
    agency: str = ""
    receiver: Receiver | None = None
    antenna: Antenna | None = None
    coords: tuple[float, float, float] | None = None
    wavelengths: tuple[int, int] | None = None
    leap: LeapSeconds | None = None
    sampling_interval: float | None = None
    first_epoch: Epoch | None = None
    last_epoch: Epoch | None = None
    time_system: str = ""
    n_satellites: int | None = None
    ionospheric_corr: dict[str, list[float]] = field(default_factory=dict)
    time_system_corr: dict[str, list[float]] = field(default_factory=dict)
    doi: str = ""
    license: str = ""
    station_url: str = ""
    crinex: Crinex | None = None
    obs: ObservationFields | None = None
    meteo: MeteoFields | None = None
    clocks: ClockFields | None = None
    antex: AntexFields | None = None
    ionex: IonexFields | None = None

    @property
    def is_crinex(self) -> bool:
        return self.crinex is not None

    @property
    def position_geodetic(self) -> tuple[float, float, float] | None:
        if self.coords is None or ecef2geodetic is None:
            return None
        return ecef2geodetic(*self.coords)

    def obs_codes(self, constellation: Constellation) -> list[str]:
        if self.obs is None:
            return []
        return self.obs.codes.get(constellation, [])

    def merge(self, other: Header) -> None:
        """
        fold the header of another file of the same type into this one:
        this header's values win, other fills what is missing
        """
        self.version = min(self.version, other.version)
        if self.constellation != other.constellation:
            if self.constellation is None:
                self.constellation = other.constellation
            elif other.constellation is not None:
                self.constellation = Constellation.MIXED

        self.comments.extend(other.comments)

        for name in (
            "program",
            "run_by",
            "date",
            "station",
            "station_id",
            "marker_type",
            "observer",
            "agency",
            "receiver",
            "antenna",
            "coords",
            "wavelengths",
            "leap",
            "sampling_interval",
            "time_system",
            "doi",
            "license",
            "station_url",
        ):
            if not getattr(self, name):
                setattr(self, name, getattr(other, name))

        for key, val in other.ionospheric_corr.items():
            self.ionospheric_corr.setdefault(key, val)
        for key, val in other.time_system_corr.items():
            self.time_system_corr.setdefault(key, val)

        if self.first_epoch is None or (
            other.first_epoch is not None and other.first_epoch < self.first_epoch
        ):
            self.first_epoch = other.first_epoch
        if self.last_epoch is None or (
            other.last_epoch is not None and other.last_epoch > self.last_epoch
        ):
            self.last_epoch = other.last_epoch

        if self.obs is not None and other.obs is not None:
            for const, codes in other.obs.codes.items():
                mine = self.obs.codes.setdefault(const, [])
                mine.extend(c for c in codes if c not in mine)
            if self.obs.clock_offset_applied is None:
                self.obs.clock_offset_applied = other.obs.clock_offset_applied

        if self.meteo is not None and other.meteo is not None:
            self.meteo.codes.extend(c for c in other.meteo.codes if c not in self.meteo.codes)
            known = {s.code for s in self.meteo.sensors}
            self.meteo.sensors.extend(s for s in other.meteo.sensors if s.code not in known)

        if self.clocks is not None and other.clocks is not None:
            self.clocks.codes.extend(c for c in other.clocks.codes if c not in self.clocks.codes)
            if self.clocks.analysis_center is None:
                self.clocks.analysis_center = other.clocks.analysis_center


# %% parsing


def _float(s: str, label: str, line: str) -> float:
    try:
        return rinex_string_to_float(s.strip())
    except ValueError:
        raise HeaderError(f"bad numeric field {s.strip()!r}", label, line)


def _int(s: str, label: str, line: str) -> int:
    try:
        return int(s.strip())
    except ValueError:
        raise HeaderError(f"bad integer field {s.strip()!r}", label, line)


def _opt_int(s: str, label: str, line: str) -> int | None:
    return _int(s, label, line) if s.strip() else None


def _triplet(s: str, width: int, label: str, line: str) -> tuple[float, float, float]:
    return T.cast(
        "tuple[float, float, float]",
        tuple(_float(s[i * width : (i + 1) * width], label, line) for i in range(3)),
    )


class HeaderBuilder:
    """
    header accumulator: feed lines with apply_line() until ``done``, then finalize()

    Besides plain fields, it carries the continuation state of the multi-line
    observable code tables: how many lines are still expected and which
    constellation the current RINEX 3 table belongs to.
    """

    def __init__(self) -> None:
        self.kw: dict[str, T.Any] = {"comments": []}
        self.done = False
        self.lineno = 0
        self.codes: dict[Constellation, list[str]] = {}
        self.legacy_codes: list[str] = []
        self.lines_remaining = 0
        self.active: Constellation | None = None
        self.sensors: list[Sensor] = []
        self.meteo_codes: list[str] = []
        self.clock_codes: list[str] = []
        self.obs = ObservationFields()
        self.clocks = ClockFields()
        self.antex = AntexFields()
        self.ionex = IonexFields()

    @property
    def version(self) -> Version | None:
        return self.kw.get("version")

    @property
    def rinex_type(self) -> RinexType | None:
        return self.kw.get("rinex_type")

    def apply_line(self, line: str) -> HeaderBuilder:
        self.lineno += 1
        line = line.rstrip("\r\n")

        if not line.strip():
            return self

        if "CRINEX VERS" in line[60:]:
            self._crinex_version(line)
            return self
        if "CRINEX PROG / DATE" in line[60:]:
            self._crinex_program(line)
            return self
        if "RINEX VERSION / TYPE" in line[60:]:
            self._version_type(line)
            return self
        if "ANTEX VERSION / SYST" in line[60:]:
            self._antex_version(line)
            return self
        if "IONEX VERSION / TYPE" in line[60:]:
            self._ionex_version(line)
            return self

        if self.version is None:
            raise HeaderError(
                f"line {self.lineno} found before the version line", line[60:80].strip(), line
            )

        label = line[60:80].strip()
        if label == "COMMENT":
            self.kw["comments"].append(line[:60].rstrip())
            return self
        if label == "END OF HEADER":
            self.done = True
            return self

        handler = _HANDLERS.get(label)
        if handler is None:
            logging.debug(f"ignoring header label {label!r}")
            return self

        try:
            handler(self, line, label)
        except RinexError as err:
            if isinstance(err, HeaderError):
                raise
            raise HeaderError(str(err), label, line)

        return self

    # %% first lines

    def _crinex_version(self, line: str) -> None:
        self.kw["crinex"] = Crinex(Version.parse(line[:20]))

    def _crinex_program(self, line: str) -> None:
        crx = self.kw.get("crinex")
        if crx is None:
            raise HeaderError("CRINEX PROG / DATE before CRINEX VERS", "CRINEX PROG / DATE", line)
        crx.program = line[:20].strip()
        date = line[40:60].strip()
        if date:
            try:
                crx.date = datetime.strptime(date, CRINEX_DATE_FORMAT)
            except ValueError:
                logging.warning(f"could not decode CRINEX date {date!r}")

    def _version_type(self, line: str) -> None:
        label = "RINEX VERSION / TYPE"
        try:
            version = Version.parse(line[:9])
        except RinexError as err:
            raise HeaderError(str(err), label, line)
        if not 1 <= version.major <= 4:
            raise HeaderError(f"unsupported revision {version}", label, line)

        self.kw["version"] = version

        type_field = line[20:40]
        system_field = line[40:60]
        code = type_field[:1]

        const: Constellation | None = None
        try:
            if "METEOROLOGICAL DATA" in type_field or code == "M":
                rtype = RinexType.METEO
            elif "GLONASS NAV" in type_field or (code == "G" and version.major < 3):
                rtype = RinexType.NAVIGATION
                const = Constellation.GLONASS
            elif code == "H":
                rtype = RinexType.NAVIGATION
                const = Constellation.SBAS
            elif code == "N":
                rtype = RinexType.NAVIGATION
                if system_field.strip():
                    const = Constellation.from_str(system_field)
                elif version.major < 3:
                    const = Constellation.GPS
            elif code == "O":
                rtype = RinexType.OBSERVATION
                if system_field.strip():
                    const = Constellation.from_str(system_field)
                elif version.major < 3:
                    # RINEX 2: blank means GPS
                    const = Constellation.GPS
            elif code == "C":
                rtype = RinexType.CLOCK
                if system_field.strip():
                    const = Constellation.from_str(system_field)
            else:
                raise HeaderError(f"unknown file type {type_field.strip()!r}", label, line)
        except HeaderError:
            raise
        except RinexError as err:
            raise HeaderError(str(err), label, line)

        self.kw["rinex_type"] = rtype
        self.kw["constellation"] = const

    def _antex_version(self, line: str) -> None:
        self.kw["version"] = Version.parse(line[:8])
        self.kw["rinex_type"] = RinexType.ANTENNA
        if line[20:21].strip():
            try:
                self.kw["constellation"] = Constellation.from_code(line[20])
            except RinexError as err:
                raise HeaderError(str(err), "ANTEX VERSION / SYST", line)

    def _ionex_version(self, line: str) -> None:
        self.kw["version"] = Version.parse(line[:8])
        self.kw["rinex_type"] = RinexType.IONOSPHERE_MAP
        system = line[40:60].strip()
        self.ionex.system = system
        if system:
            try:
                self.kw["constellation"] = Constellation.from_str(system)
            except RinexError:
                logging.debug(f"IONEX model {system} is not a constellation")

    # %% common fields

    def _pgm(self, line: str, label: str) -> None:
        self.kw["program"] = line[:20].strip()
        self.kw["run_by"] = line[20:40].strip()
        self.kw["date"] = line[40:60].strip()

    def _marker_name(self, line: str, label: str) -> None:
        self.kw["station"] = line[:60].strip()

    def _marker_number(self, line: str, label: str) -> None:
        self.kw["station_id"] = line[:20].strip()

    def _marker_type(self, line: str, label: str) -> None:
        self.kw["marker_type"] = line[:20].strip()

    def _observer(self, line: str, label: str) -> None:
        self.kw["observer"] = line[:20].strip()
        self.kw["agency"] = line[20:60].strip()

    def _receiver(self, line: str, label: str) -> None:
        self.kw["receiver"] = Receiver(line[:20].strip(), line[20:40].strip(), line[40:60].strip())

    def _antenna(self, line: str, label: str) -> None:
        ant = self.kw.setdefault("antenna", Antenna())
        ant.sn = line[:20].strip()
        ant.model = line[20:40].strip()

    def _antenna_hen(self, line: str, label: str) -> None:
        ant = self.kw.setdefault("antenna", Antenna())
        ant.height, ant.eastern, ant.northern = _triplet(line, 14, label, line)

    def _antenna_xyz(self, line: str, label: str) -> None:
        ant = self.kw.setdefault("antenna", Antenna())
        ant.coords = _triplet(line, 14, label, line)

    def _position(self, line: str, label: str) -> None:
        # 3F14.4, large coordinates may touch each other
        if not line[28:42].strip():
            raise HeaderError("expected 3 coordinates", label, line)
        self.kw["coords"] = _triplet(line, 14, label, line)

    def _wavelengths(self, line: str, label: str) -> None:
        # later lines are per satellite overrides
        if "wavelengths" not in self.kw:
            self.kw["wavelengths"] = (_int(line[:6], label, line), _int(line[6:12], label, line))

    def _interval(self, line: str, label: str) -> None:
        self.kw["sampling_interval"] = _float(line[:10], label, line)

    def _leap(self, line: str, label: str) -> None:
        self.kw["leap"] = LeapSeconds(
            _int(line[:6], label, line),
            _opt_int(line[6:12], label, line),
            _opt_int(line[12:18], label, line),
            _opt_int(line[18:24], label, line),
            line[24:27].strip(),
        )

    def _first_obs(self, line: str, label: str) -> None:
        try:
            self.kw["first_epoch"] = parse_epoch(line[:43])
        except RinexError as err:
            raise HeaderError(str(err), label, line)
        self.kw["time_system"] = line[48:51].strip()

    def _last_obs(self, line: str, label: str) -> None:
        try:
            self.kw["last_epoch"] = parse_epoch(line[:43])
        except RinexError as err:
            raise HeaderError(str(err), label, line)

    def _n_satellites(self, line: str, label: str) -> None:
        self.kw["n_satellites"] = _int(line[:6], label, line)

    def _ion_v2(self, line: str, label: str) -> None:
        key = "GPSA" if label == "ION ALPHA" else "GPSB"
        self.kw.setdefault("ionospheric_corr", {})[key] = [
            _float(line[2 + i * 12 : 2 + (i + 1) * 12], label, line)
            for i in range(4)
            if line[2 + i * 12 : 2 + (i + 1) * 12].strip()
        ]

    def _ion_v3(self, line: str, label: str) -> None:
        key = line[:4].strip()
        self.kw.setdefault("ionospheric_corr", {})[key] = [
            _float(line[5 + i * 12 : 5 + (i + 1) * 12], label, line)
            for i in range(4)
            if line[5 + i * 12 : 5 + (i + 1) * 12].strip()
        ]

    def _delta_utc(self, line: str, label: str) -> None:
        self.kw.setdefault("time_system_corr", {})["GPUT"] = [
            _float(line[3:22], label, line),
            _float(line[22:41], label, line),
            _int(line[41:50], label, line),
            _int(line[50:59], label, line),
        ]

    def _time_corr(self, line: str, label: str) -> None:
        self.kw.setdefault("time_system_corr", {})[line[:4].strip()] = [
            _float(line[5:22], label, line),
            _float(line[22:38], label, line),
            _int(line[38:45], label, line),
            _int(line[45:50], label, line),
        ]

    def _doi(self, line: str, label: str) -> None:
        self.kw["doi"] = line[:60].strip()

    def _license(self, line: str, label: str) -> None:
        self.kw["license"] = line[:60].strip()

    def _station_url(self, line: str, label: str) -> None:
        self.kw["station_url"] = line[:60].strip()

    # %% code tables

    def _types_of_obs(self, line: str, label: str) -> None:
        """
        "# / TYPES OF OBS" is shared by RINEX 2 observation and meteo headers
        """
        if self.rinex_type == RinexType.METEO:
            self._code_table(line, label, self.meteo_codes, METEO_CODES_PER_LINE)
        else:
            self._code_table(line, label, self.legacy_codes, OBS_CODES_PER_LINE_V2)

    def _types_of_data(self, line: str, label: str) -> None:
        self._code_table(line, label, self.clock_codes, CLOCK_CODES_PER_LINE)

    def _code_table(self, line: str, label: str, codes: list[str], per_line: int) -> None:
        if self.lines_remaining > 0 or not line[:6].strip():
            self.lines_remaining = max(self.lines_remaining - 1, 0)
        else:
            n = _int(line[:6], label, line)
            self.lines_remaining = max(math.ceil(n / per_line) - 1, 0)
        codes.extend(line[6:60].split())

    def _sys_obs_types(self, line: str, label: str) -> None:
        if self.lines_remaining > 0 or not line[:6].strip():
            if self.active is None:
                raise HeaderError("continuation line without a system", label, line)
            self.lines_remaining = max(self.lines_remaining - 1, 0)
        else:
            self.active = Constellation.from_code(line[0])
            n = _int(line[3:6], label, line)
            self.lines_remaining = max(math.ceil(n / OBS_CODES_PER_LINE_V3) - 1, 0)
            self.codes[self.active] = []

        self.codes[self.active].extend(line[7:60].split())

    def _clock_offs(self, line: str, label: str) -> None:
        self.obs.clock_offset_applied = bool(_int(line[:6], label, line))

    # %% meteo

    def _sensor(self, line: str, label: str) -> None:
        acc = line[46:57].strip()
        self.sensors.append(
            Sensor(
                model=line[:20].strip(),
                sensor_type=line[20:46].strip(),
                accuracy=_float(acc, label, line) if acc else None,
                code=line[57:59].strip(),
            )
        )

    def _sensor_pos(self, line: str, label: str) -> None:
        code = line[57:59].strip()
        pos = T.cast(
            "tuple[float, float, float, float]",
            tuple(_float(line[i * 14 : (i + 1) * 14], label, line) for i in range(4)),
        )
        for s in self.sensors:
            if s.code == code:
                s.position = pos
                break
        else:
            logging.warning(f"position given for unknown sensor {code}")

    # %% clocks

    def _analysis_center(self, line: str, label: str) -> None:
        self.clocks.analysis_center = AnalysisCenter(line[:3].strip(), line[3:60].strip())

    def _station_name(self, line: str, label: str) -> None:
        items = line[:60].split(maxsplit=1)
        if items:
            self.clocks.station = items[0]
            self.clocks.station_id = items[1].strip() if len(items) > 1 else ""

    def _station_clk_ref(self, line: str, label: str) -> None:
        self.clocks.reference = line[:60].strip()

    def _time_system_id(self, line: str, label: str) -> None:
        self.kw["time_system"] = line[:60].strip()

    # %% antex

    def _pcv(self, line: str, label: str) -> None:
        self.antex.pcv = line[:1].strip()
        self.antex.reference_type = line[20:40].strip()
        self.antex.reference_sn = line[40:60].strip()

    # %% ionex

    def _epoch_of_first_map(self, line: str, label: str) -> None:
        self.ionex.epoch_of_first_map = parse_epoch(line[:36])

    def _epoch_of_last_map(self, line: str, label: str) -> None:
        self.ionex.epoch_of_last_map = parse_epoch(line[:36])

    def _n_maps(self, line: str, label: str) -> None:
        self.ionex.n_maps = _int(line[:6], label, line)

    def _mapping_function(self, line: str, label: str) -> None:
        self.ionex.mapping_function = line[:60].strip()

    def _elevation_cutoff(self, line: str, label: str) -> None:
        self.ionex.elevation_cutoff = _float(line[:8], label, line)

    def _base_radius(self, line: str, label: str) -> None:
        self.ionex.base_radius = _float(line[:8], label, line)

    def _map_dimension(self, line: str, label: str) -> None:
        self.ionex.map_dimension = _int(line[:6], label, line)

    def _grid(self, line: str, label: str) -> None:
        grid = _triplet(line[2:20], 6, label, line)
        if label.startswith("HGT"):
            self.ionex.heights = grid
        elif label.startswith("LAT"):
            self.ionex.latitudes = grid
        else:
            self.ionex.longitudes = grid

    def _exponent(self, line: str, label: str) -> None:
        self.ionex.exponent = _int(line[:6], label, line)

    # %% finalize

    def finalize(self) -> Header:
        if self.version is None or self.rinex_type is None:
            raise HeaderError("missing RINEX VERSION / TYPE line")

        kw = dict(self.kw)
        rtype = self.rinex_type
        const = kw.get("constellation")

        if rtype in (RinexType.OBSERVATION, RinexType.NAVIGATION) and const is None:
            raise HeaderError(f"{rtype.name.lower()} header without a constellation")

        if rtype == RinexType.OBSERVATION:
            if self.version.major < 3:
                if not self.legacy_codes:
                    raise HeaderError("observation header without # / TYPES OF OBS")
                # RINEX 2 cannot tell which codes belong to which system
                targets = LEGACY_MIXED if const == Constellation.MIXED else (const,)
                self.obs.codes = {c: list(self.legacy_codes) for c in targets}
            else:
                if not self.codes:
                    raise HeaderError("observation header without SYS / # / OBS TYPES")
                self.obs.codes = self.codes
            kw["obs"] = self.obs
        elif rtype == RinexType.METEO:
            kw["meteo"] = MeteoFields(self.meteo_codes, self.sensors)
        elif rtype == RinexType.CLOCK:
            self.clocks.codes = self.clock_codes
            kw["clocks"] = self.clocks
        elif rtype == RinexType.ANTENNA:
            kw["antex"] = self.antex
        elif rtype == RinexType.IONOSPHERE_MAP:
            kw["ionex"] = self.ionex

        return Header(**kw)


_HANDLERS: dict[str, T.Callable[[HeaderBuilder, str, str], None]] = {
    "PGM / RUN BY / DATE": HeaderBuilder._pgm,
    "MARKER NAME": HeaderBuilder._marker_name,
    "MARKER NUMBER": HeaderBuilder._marker_number,
    "MARKER TYPE": HeaderBuilder._marker_type,
    "OBSERVER / AGENCY": HeaderBuilder._observer,
    "REC # / TYPE / VERS": HeaderBuilder._receiver,
    "ANT # / TYPE": HeaderBuilder._antenna,
    "ANTENNA: DELTA H/E/N": HeaderBuilder._antenna_hen,
    "ANTENNA: DELTA X/Y/Z": HeaderBuilder._antenna_xyz,
    "APPROX POSITION XYZ": HeaderBuilder._position,
    "WAVELENGTH FACT L1/2": HeaderBuilder._wavelengths,
    "RCV CLOCK OFFS APPL": HeaderBuilder._clock_offs,
    "# / TYPES OF OBS": HeaderBuilder._types_of_obs,
    "SYS / # / OBS TYPES": HeaderBuilder._sys_obs_types,
    "INTERVAL": HeaderBuilder._interval,
    "LEAP SECONDS": HeaderBuilder._leap,
    "TIME OF FIRST OBS": HeaderBuilder._first_obs,
    "TIME OF LAST OBS": HeaderBuilder._last_obs,
    "# OF SATELLITES": HeaderBuilder._n_satellites,
    "ION ALPHA": HeaderBuilder._ion_v2,
    "ION BETA": HeaderBuilder._ion_v2,
    "IONOSPHERIC CORR": HeaderBuilder._ion_v3,
    "DELTA-UTC: A0,A1,T,W": HeaderBuilder._delta_utc,
    "TIME SYSTEM CORR": HeaderBuilder._time_corr,
    "DOI": HeaderBuilder._doi,
    "LICENSE OF USE": HeaderBuilder._license,
    "STATION INFORMATION": HeaderBuilder._station_url,
    "SENSOR MOD/TYPE/ACC": HeaderBuilder._sensor,
    "SENSOR POS XYZ/H": HeaderBuilder._sensor_pos,
    "# / TYPES OF DATA": HeaderBuilder._types_of_data,
    "ANALYSIS CENTER": HeaderBuilder._analysis_center,
    "STATION NAME / NUM": HeaderBuilder._station_name,
    "STATION CLK REF": HeaderBuilder._station_clk_ref,
    "TIME SYSTEM ID": HeaderBuilder._time_system_id,
    "PCV TYPE / REFANT": HeaderBuilder._pcv,
    "EPOCH OF FIRST MAP": HeaderBuilder._epoch_of_first_map,
    "EPOCH OF LAST MAP": HeaderBuilder._epoch_of_last_map,
    "# OF MAPS IN FILE": HeaderBuilder._n_maps,
    "MAPPING FUNCTION": HeaderBuilder._mapping_function,
    "ELEVATION CUTOFF": HeaderBuilder._elevation_cutoff,
    "BASE RADIUS": HeaderBuilder._base_radius,
    "MAP DIMENSION": HeaderBuilder._map_dimension,
    "HGT1 / HGT2 / DHGT": HeaderBuilder._grid,
    "LAT1 / LAT2 / DLAT": HeaderBuilder._grid,
    "LON1 / LON2 / DLON": HeaderBuilder._grid,
    "EXPONENT": HeaderBuilder._exponent,
}


def parse_header(f: T.Iterable[str]) -> Header:
    """
    consume header lines up to and including END OF HEADER

    Parameters
    ----------

    f: file handle or iterable of lines
        left positioned on the first body line

    Results
    -------

    header: Header
    """
    builder = HeaderBuilder()
    for line in f:
        builder.apply_line(line)
        if builder.done:
            break
    else:
        if builder.version is not None:
            logging.warning("END OF HEADER not found, using what was read")

    return builder.finalize()


# %% re-emission


def _line(content: str, label: str) -> str:
    return f"{content:<60}{label}"


def _fmt_opt(v: float | None, fmt: str, width: int) -> str:
    return " " * width if v is None else format(v, fmt)


def _code_lines(codes: list[str], per_line: int, label: str, lead: str = "", width: int = 6) -> list[str]:
    lines = []
    for i in range(0, max(len(codes), 1), per_line):
        chunk = codes[i : i + per_line]
        head = f"{len(codes):6d}" if i == 0 else " " * 6
        lines.append(_line(head + "".join(f"{c:>{width}}" for c in chunk), label))
    return lines


def _first_line(hdr: Header) -> str:
    v = hdr.version
    const = hdr.constellation
    rtype = hdr.rinex_type

    if rtype == RinexType.ANTENNA:
        system = const.value if const else ""
        return _line(f"{v.major}.{v.minor // 10}".rjust(8) + " " * 12 + system, "ANTEX VERSION / SYST")
    if rtype == RinexType.IONOSPHERE_MAP:
        system = hdr.ionex.system if hdr.ionex else ""
        vers = f"{v.major}.{v.minor // 10}".rjust(8)
        return _line(f"{vers}{'':12}{'IONOSPHERE MAPS':<20}{system}", "IONEX VERSION / TYPE")

    system = ""
    if rtype == RinexType.OBSERVATION:
        kind = "OBSERVATION DATA"
        system = f"{const.value} ({const.long_name})" if const else ""
    elif rtype == RinexType.NAVIGATION:
        if v.major < 3 and const == Constellation.GPS:
            kind = "NAVIGATION DATA"
        elif v.major < 3 and const == Constellation.GLONASS:
            kind = "GLONASS NAV DATA"
        elif v.major < 3 and const == Constellation.SBAS:
            kind = "H: GEO NAV MSG DATA"
        else:
            kind = "N: GNSS NAV DATA"
            system = f"{const.value}: {const.long_name}" if const else ""
    elif rtype == RinexType.METEO:
        kind = "METEOROLOGICAL DATA"
    else:
        kind = "CLOCK DATA"
        system = const.value if const else ""

    return _line(f"{str(v):>9}{'':11}{kind:<20}{system:<20}", "RINEX VERSION / TYPE")


def format_header(hdr: Header) -> str:
    """
    header text in fixed columns matching the declared revision, END OF HEADER included
    """
    lines: list[str] = []
    v2 = hdr.version.major < 3

    if hdr.crinex is not None:
        crx = hdr.crinex
        date = crx.date.strftime(CRINEX_DATE_FORMAT) if crx.date else ""
        lines.append(_line(f"{str(crx.version)[:3]:<20}{'COMPACT RINEX FORMAT':<20}", "CRINEX VERS   / TYPE"))
        lines.append(_line(f"{crx.program:<20}{'':20}{date:<20}", "CRINEX PROG / DATE"))

    lines.append(_first_line(hdr))
    if hdr.program or hdr.run_by or hdr.date:
        lines.append(_line(f"{hdr.program:<20}{hdr.run_by:<20}{hdr.date:<20}", "PGM / RUN BY / DATE"))
    lines += [_line(c, "COMMENT") for c in hdr.comments]

    if hdr.station:
        lines.append(_line(hdr.station, "MARKER NAME"))
    if hdr.station_id:
        lines.append(_line(hdr.station_id, "MARKER NUMBER"))
    if hdr.marker_type:
        lines.append(_line(hdr.marker_type, "MARKER TYPE"))
    if hdr.observer or hdr.agency:
        lines.append(_line(f"{hdr.observer:<20}{hdr.agency}", "OBSERVER / AGENCY"))
    if hdr.receiver is not None:
        r = hdr.receiver
        lines.append(_line(f"{r.sn:<20}{r.model:<20}{r.firmware:<20}", "REC # / TYPE / VERS"))
    if hdr.antenna is not None:
        a = hdr.antenna
        lines.append(_line(f"{a.sn:<20}{a.model:<20}", "ANT # / TYPE"))
    if hdr.coords is not None:
        lines.append(_line("".join(f"{x:14.4f}" for x in hdr.coords), "APPROX POSITION XYZ"))
    if hdr.antenna is not None:
        a = hdr.antenna
        if a.height is not None:
            hen = "".join(_fmt_opt(x, "14.4f", 14) for x in (a.height, a.eastern, a.northern))
            lines.append(_line(hen, "ANTENNA: DELTA H/E/N"))
        if a.coords is not None:
            lines.append(_line("".join(f"{x:14.4f}" for x in a.coords), "ANTENNA: DELTA X/Y/Z"))
    if hdr.wavelengths is not None:
        lines.append(_line(f"{hdr.wavelengths[0]:6d}{hdr.wavelengths[1]:6d}", "WAVELENGTH FACT L1/2"))

    if hdr.obs is not None:
        lines += _obs_code_lines(hdr, v2)
        if hdr.obs.clock_offset_applied is not None:
            lines.append(_line(f"{int(hdr.obs.clock_offset_applied):6d}", "RCV CLOCK OFFS APPL"))

    if hdr.meteo is not None:
        lines += _code_lines(hdr.meteo.codes, METEO_CODES_PER_LINE, "# / TYPES OF OBS")
        for s in hdr.meteo.sensors:
            acc = _fmt_opt(s.accuracy, "7.1f", 7)
            lines.append(_line(f"{s.model:<20}{s.sensor_type:<20}{'':6}{acc}{'':4}{s.code:<2}", "SENSOR MOD/TYPE/ACC"))
        for s in hdr.meteo.sensors:
            if s.position is not None:
                pos = "".join(f"{x:14.4f}" for x in s.position)
                lines.append(_line(f"{pos} {s.code:<2}", "SENSOR POS XYZ/H"))

    if hdr.sampling_interval is not None:
        if hdr.rinex_type == RinexType.IONOSPHERE_MAP:
            lines.append(_line(f"{int(hdr.sampling_interval):6d}", "INTERVAL"))
        else:
            lines.append(_line(f"{hdr.sampling_interval:10.3f}", "INTERVAL"))
    if hdr.first_epoch is not None:
        lines.append(_line(_obs_time(hdr.first_epoch, hdr.time_system), "TIME OF FIRST OBS"))
    if hdr.last_epoch is not None:
        lines.append(_line(_obs_time(hdr.last_epoch, hdr.time_system), "TIME OF LAST OBS"))
    if hdr.leap is not None:
        lp = hdr.leap
        txt = f"{lp.leap:6d}"
        if lp.delta is not None:
            txt += "".join(_fmt_opt(x, "6d", 6) for x in (lp.delta, lp.week, lp.day)) + lp.system
        lines.append(_line(txt, "LEAP SECONDS"))
    if hdr.n_satellites is not None:
        lines.append(_line(f"{hdr.n_satellites:6d}", "# OF SATELLITES"))

    for key, vals in hdr.ionospheric_corr.items():
        coefs = "".join(f"{x:12.4E}" for x in vals)
        if v2 and key in ("GPSA", "GPSB"):
            lines.append(_line(f"  {coefs}", "ION ALPHA" if key == "GPSA" else "ION BETA"))
        else:
            lines.append(_line(f"{key:<4} {coefs}", "IONOSPHERIC CORR"))
    for key, (a0, a1, t, w) in hdr.time_system_corr.items():
        if v2 and key == "GPUT":
            lines.append(_line(f"   {a0:19.12E}{a1:19.12E}{int(t):9d}{int(w):9d}", "DELTA-UTC: A0,A1,T,W"))
        else:
            lines.append(_line(f"{key:<4} {a0:17.10E}{a1:16.9E}{int(t):7d}{int(w):5d}", "TIME SYSTEM CORR"))

    if hdr.clocks is not None:
        c = hdr.clocks
        lines += _code_lines(c.codes, CLOCK_CODES_PER_LINE, "# / TYPES OF DATA")
        if hdr.time_system and hdr.first_epoch is None:
            lines.append(_line(f"   {hdr.time_system}", "TIME SYSTEM ID"))
        if c.station:
            lines.append(_line(f"{c.station:<4} {c.station_id}", "STATION NAME / NUM"))
        if c.reference:
            lines.append(_line(c.reference, "STATION CLK REF"))
        if c.analysis_center is not None:
            ac = c.analysis_center
            lines.append(_line(f"{ac.code:<3}  {ac.agency}", "ANALYSIS CENTER"))

    if hdr.antex is not None:
        a = hdr.antex
        lines.append(_line(f"{a.pcv:<1}{'':19}{a.reference_type:<20}{a.reference_sn:<20}", "PCV TYPE / REFANT"))

    if hdr.ionex is not None:
        lines += _ionex_lines(hdr.ionex)

    if hdr.doi:
        lines.append(_line(hdr.doi, "DOI"))
    if hdr.license:
        lines.append(_line(hdr.license, "LICENSE OF USE"))
    if hdr.station_url:
        lines.append(_line(hdr.station_url, "STATION INFORMATION"))

    lines.append(_line("", "END OF HEADER"))

    return "\n".join(lines) + "\n"


def _obs_code_lines(hdr: Header, v2: bool) -> list[str]:
    if hdr.obs is None:
        return []
    codes = hdr.obs.codes
    if v2:
        if hdr.constellation in codes:
            legacy = codes[hdr.constellation]
        else:
            legacy = []
            for table in codes.values():
                legacy.extend(c for c in table if c not in legacy)
        return _code_lines(legacy, OBS_CODES_PER_LINE_V2, "# / TYPES OF OBS")

    lines = []
    for const, table in codes.items():
        for i in range(0, max(len(table), 1), OBS_CODES_PER_LINE_V3):
            chunk = " ".join(table[i : i + OBS_CODES_PER_LINE_V3])
            head = f"{const.value}  {len(table):3d}" if i == 0 else " " * 6
            lines.append(_line(f"{head} {chunk}", "SYS / # / OBS TYPES"))
    return lines


def _obs_time(epoch: Epoch, system: str) -> str:
    y, m, d, hh, mm, ss, ns = epoch.components()
    return f"{y:6d}{m:6d}{d:6d}{hh:6d}{mm:6d}{format_seconds(ss, ns, 7, 13)}{'':5}{system:<3}"


def _ionex_lines(ix: IonexFields) -> list[str]:
    lines = []

    def epoch6(e: Epoch) -> str:
        y, m, d, hh, mm, ss, _ = e.components()
        return "".join(f"{x:6d}" for x in (y, m, d, hh, mm, ss))

    if ix.epoch_of_first_map is not None:
        lines.append(_line(epoch6(ix.epoch_of_first_map), "EPOCH OF FIRST MAP"))
    if ix.epoch_of_last_map is not None:
        lines.append(_line(epoch6(ix.epoch_of_last_map), "EPOCH OF LAST MAP"))
    if ix.n_maps is not None:
        lines.append(_line(f"{ix.n_maps:6d}", "# OF MAPS IN FILE"))
    if ix.mapping_function:
        lines.append(_line(f"  {ix.mapping_function}", "MAPPING FUNCTION"))
    if ix.elevation_cutoff is not None:
        lines.append(_line(f"{ix.elevation_cutoff:8.1f}", "ELEVATION CUTOFF"))
    if ix.base_radius is not None:
        lines.append(_line(f"{ix.base_radius:8.1f}", "BASE RADIUS"))
    if ix.map_dimension is not None:
        lines.append(_line(f"{ix.map_dimension:6d}", "MAP DIMENSION"))
    for grid, label in (
        (ix.heights, "HGT1 / HGT2 / DHGT"),
        (ix.latitudes, "LAT1 / LAT2 / DLAT"),
        (ix.longitudes, "LON1 / LON2 / DLON"),
    ):
        if grid is not None:
            lines.append(_line("  " + "".join(f"{x:6.1f}" for x in grid), label))
    lines.append(_line(f"{ix.exponent:6d}", "EXPONENT"))

    return lines
