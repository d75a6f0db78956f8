"""
exceptions raised for malformed RINEX input and refused engine operations

All of them are ValueError so callers handling bad RINEX files the usual way keep working.
"""

from __future__ import annotations


class RinexError(ValueError):
    pass


class EpochError(RinexError):
    """an epoch string could not be decoded; ``field`` names the part that failed"""

    def __init__(self, field: str, content: str, reason: str = ""):
        self.field = field
        self.content = content
        msg = f"bad epoch {field} in {content!r}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class HeaderError(RinexError):
    """header construction failed at ``line`` carrying ``label``"""

    def __init__(self, msg: str, label: str = "", line: str = ""):
        self.label = label
        self.line = line
        if label:
            msg = f"{label}: {msg}"
        if line:
            msg += f"\n{line.rstrip()}"
        super().__init__(msg)


class RecordError(RinexError):
    pass


class CodecError(RinexError):
    pass


class MergeError(RinexError):
    pass


class FileTypeMismatch(MergeError):
    def __init__(self, target, other):
        self.target = target
        self.other = other
        super().__init__(f"cannot merge {other.name} data into {target.name} data")


class SplitError(RinexError):
    pass


class EpochTooEarly(SplitError):
    pass


class EpochTooLate(SplitError):
    pass


class NotMerged(SplitError):
    pass
