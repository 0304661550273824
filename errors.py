import enum


class ErrorKind(enum.Enum):
    """Every way a compress or decompress call can fail."""
    EMPTY_INPUT = "EmptyInput"
    DEGENERATE_INPUT = "DegenerateInput"
    INPUT_TOO_LARGE = "InputTooLarge"
    MISSING_SUFFIX = "MissingSuffix"
    MALFORMED_CONTAINER = "MalformedContainer"
    CHECKSUM_MISMATCH = "ChecksumMismatch"
    DECODE_OVERFLOW = "DecodeOverflow"
    IO_FAILURE = "IoFailure"


class CompressionError(Exception):
    """Raised inside the core, turned into a failed Result by the orchestrator."""

    def __init__(self, kind, message):
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __str__(self):
        return f"{self.kind.value}: {self.message}"
