"""
Decode and parse errors raised by the Saleae readers.

Every error aborts ingestion of the current file. Events emitted before the
failure are kept.
"""

from typing import List


class SaleaeParseError(ValueError):
    """Base class for all Saleae capture decode errors."""


class EmptyInputError(SaleaeParseError):
    def __init__(self):
        super().__init__("Empty Saleae binary data")


class TruncatedError(SaleaeParseError):
    """Not enough bytes left in the buffer for the current stage."""

    def __init__(self, stage: str):
        self.stage = stage
        super().__init__(f"Saleae {stage} truncated")


class UnsupportedVersionError(SaleaeParseError):
    def __init__(self, version: int):
        self.version = version
        super().__init__(f"Unsupported Saleae version {version}")


class UnsupportedTypeError(SaleaeParseError):
    def __init__(self, raw_type: int):
        self.raw_type = raw_type
        super().__init__(f"Unsupported Saleae data type {raw_type}")


class UnsupportedHeaderError(SaleaeParseError):
    def __init__(self, file_id: int, version: int):
        self.file_id = file_id
        self.version = version
        super().__init__(
            f"Unsupported Saleae header (file_id=0x{file_id & 0xFFFFFFFF:08x}, "
            f"version={version})"
        )


class InvalidChunkCountError(SaleaeParseError):
    def __init__(self, count: int):
        self.count = count
        super().__init__(f"Invalid Saleae chunk count {count}")


class InvalidSampleRateError(SaleaeParseError):
    def __init__(self, stage: str, value):
        self.stage = stage
        self.value = value
        super().__init__(f"Saleae {stage} sample rate invalid ({value})")


class InvalidDownsampleError(SaleaeParseError):
    def __init__(self, stage: str, value: int):
        self.stage = stage
        self.value = value
        super().__init__(f"Saleae {stage} downsample invalid ({value})")


class InvalidTransitionCountError(SaleaeParseError):
    def __init__(self, count: int):
        self.count = count
        super().__init__(f"Saleae digital transition count invalid ({count})")


class InvalidTimestampError(SaleaeParseError):
    """A timestamp that cannot be represented in nanoseconds (NaN or inf)."""

    def __init__(self, stage: str, value: float):
        self.stage = stage
        self.value = value
        super().__init__(f"Saleae {stage} timestamp invalid ({value})")


class EmptyHeaderError(SaleaeParseError):
    def __init__(self):
        super().__init__("Saleae CSV header is empty")


class MissingSchemaColumnsError(SaleaeParseError):
    def __init__(self, missing: List[str]):
        self.missing = list(missing)
        super().__init__(
            "Saleae CSV header missing required columns "
            f"(name, type, start_time, duration): missing {', '.join(self.missing)}"
        )


class MissingStartTimeError(SaleaeParseError):
    def __init__(self):
        super().__init__("Saleae CSV row missing start_time")


class InvalidNumericFieldError(SaleaeParseError):
    def __init__(self, column: str, raw_text: str):
        self.column = column
        self.raw_text = raw_text
        super().__init__(f"Saleae CSV invalid {column} '{raw_text}'")
