__version__ = "1.0.0"

from .base import load, load_rinex
from .utils import gettime, rinexheader, globber, to_datetime
from .rio import rinexinfo, rinex_version, opener
from .epoch import Epoch, EpochFlag, parse_epoch
from .constellation import Constellation, Sv
from .common import Version, RinexType
from .header import Header, HeaderBuilder, parse_header, format_header
from .record import Record, BuildReport, build_record
from .hatanaka import Decompressor, Compressor, crx2rnx, rnx2crx
from .rinex import Rinex, Producer, DEFAULT_PRODUCER
from .errors import (
    RinexError,
    EpochError,
    HeaderError,
    RecordError,
    CodecError,
    MergeError,
    FileTypeMismatch,
    SplitError,
    EpochTooEarly,
    EpochTooLate,
    NotMerged,
)
