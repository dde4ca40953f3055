"""
StegFile Error Hierarchy.

All failures raised by the payload codec derive from StegFileError. Each
error carries a human-readable message, a stable numeric code and an
optional details dictionary with context for the caller (sizes, formats,
offsets). Callers translate these into user feedback; the core never
recovers from them silently.

Codes:
    1: InvalidKeyError        - key fails the 1-8 alphanumeric rule
    2: MalformedRecordError   - bytes do not hold a well-formed record
    3: NoRecordFoundError     - a carrier holds no extractable record
    4: KeyMismatchError       - record found but the key digest differs
    5: UnsupportedCarrierError - carrier kind differs from the expected one
"""

from typing import Optional, Dict, Any


class StegFileError(Exception):
    """
    Base exception for payload codec errors.

    Attributes:
        message: Human-readable description
        code: Numeric error code (see module docstring)
        details: Extra context for diagnostics
    """

    code: Optional[int] = None

    def __init__(self, message: str, code: Optional[int] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or {}

    def __str__(self) -> str:
        base = f"{type(self).__name__}: {self.message}"
        if self.code:
            base += f" (Code: {self.code})"
        return base


class InvalidKeyError(StegFileError):
    """Raised when a key is not 1-8 ASCII letters or digits."""

    code = 1


class MalformedRecordError(StegFileError):
    """Raised when candidate bytes cannot be parsed into a payload record."""

    code = 2


class NoRecordFoundError(StegFileError):
    """Raised when a carrier contains no structurally valid record."""

    code = 3


class KeyMismatchError(StegFileError):
    """
    Raised when the candidate key's digest differs from the record's.

    With a 32-bit digest this is also what an unrelated record looks like,
    so callers should word feedback as "wrong key or no hidden message".
    """

    code = 4


class UnsupportedCarrierError(StegFileError):
    """Raised when a carrier does not match the requested media kind."""

    code = 5
