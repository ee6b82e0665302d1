from enum import Enum


class FailureKind(Enum):
    """Categories of failures that degrade to a default result instead of raising."""

    UNAVAILABLE = "unavailable"
    MALFORMED = "malformed"
    TIMEOUT = "timeout"
