"""
Payload Codec - Record Serialization.

A payload record pairs the obfuscated message with the digest of the key
that produced it. This module turns records into self-delimiting byte
strings and locates them again at the end of a larger byte stream.

Formats:
    FRAMED (default):
        "STGF" | version (1) | hash_len (1) | key hash (hash_len)
        | ct_len (4, BE) | ciphertext (ct_len) | check8 (8)
        | record_len (4, BE) | "FGTS"

        check8 is SHA-256 over key hash and ciphertext, truncated to 8
        bytes. record_len covers "STGF" through check8, so a reader can
        anchor on the trailer at the end of the stream and slice the
        record backwards without looking at the host bytes at all.

    JSON (legacy):
        {"message":"<ciphertext>","keyHash":"<digest>"}

        The ciphertext bytes travel as a latin-1 string with every
        non-ASCII, control and brace character escaped, so a serialized
        record holds exactly one "{" and one "}". Readers look for the last
        "}" and try the "{" positions before it, nearest first.

Usage:
    >>> record = PayloadRecord(ciphertext=b"\\x03X", key_hash="3366")
    >>> data = serialize(record)
    >>> parse(b"host bytes" + data) == record
    True
"""

import hashlib
import json
import logging
import struct
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from .errors import MalformedRecordError

logger = logging.getLogger(__name__)

START_MAGIC = b"STGF"
END_MAGIC = b"FGTS"
FORMAT_VERSION = 1

_HEADER = struct.Struct(">4sBB")
_LENGTH = struct.Struct(">I")
_CHECK_SIZE = 8
TRAILER_SIZE = _LENGTH.size + len(END_MAGIC)
MIN_FRAMED_SIZE = _HEADER.size + _LENGTH.size + _CHECK_SIZE + TRAILER_SIZE

# Bounds the backward "{" search so a large binary host without a record
# fails in linear time.
MAX_JSON_CANDIDATES = 64

BytesLike = Union[bytes, bytearray, memoryview]


class RecordFormat(Enum):
    """Wire formats understood by the codec."""

    FRAMED = "framed"
    JSON = "json"


@dataclass(frozen=True)
class PayloadRecord:
    """
    Obfuscated message plus the digest of the key that produced it.

    Attributes:
        ciphertext: Output of the stream cipher
        key_hash: Decimal digest string of the key
    """

    ciphertext: bytes
    key_hash: str

    def __post_init__(self):
        _encode_key_hash(self.key_hash)

    def to_dict(self) -> Dict[str, Any]:
        """Summary without the ciphertext itself, for logs and inspection."""
        return {
            'key_hash': self.key_hash,
            'ciphertext_size': len(self.ciphertext),
        }


@dataclass(frozen=True)
class RecordLocation:
    """A parsed record and the byte span it occupies in the stream."""

    record: PayloadRecord
    record_format: RecordFormat
    start: int
    end: int

    @property
    def size(self) -> int:
        return self.end - self.start


def _check8(key_hash: bytes, ciphertext: bytes) -> bytes:
    return hashlib.sha256(key_hash + ciphertext).digest()[:_CHECK_SIZE]


def _encode_key_hash(key_hash: str) -> bytes:
    if not isinstance(key_hash, str):
        raise MalformedRecordError("key hash must be a string", details={'type': type(key_hash).__name__})
    try:
        raw = key_hash.encode("ascii")
    except UnicodeEncodeError as e:
        raise MalformedRecordError("key hash must be ASCII", details={'key_hash': key_hash}) from e
    if len(raw) > 255:
        raise MalformedRecordError("key hash too long (>255 bytes)", details={'length': len(raw)})
    return raw


# =========================
# FRAMED
# =========================

def serialize_framed(record: PayloadRecord) -> bytes:
    """Pack a record into the framed binary format."""
    hash_raw = _encode_key_hash(record.key_hash)
    ciphertext = bytes(record.ciphertext)

    body = bytearray()
    body += _HEADER.pack(START_MAGIC, FORMAT_VERSION, len(hash_raw))
    body += hash_raw
    body += _LENGTH.pack(len(ciphertext))
    body += ciphertext
    body += _check8(hash_raw, ciphertext)
    body += _LENGTH.pack(len(body))
    body += END_MAGIC
    return bytes(body)


def has_framed_trailer(data: BytesLike) -> bool:
    """True when ``data`` ends with the framed record end marker."""
    return len(data) >= TRAILER_SIZE and bytes(data[-len(END_MAGIC):]) == END_MAGIC


def _locate_framed(data: BytesLike) -> RecordLocation:
    data = bytes(data)
    if not has_framed_trailer(data):
        raise MalformedRecordError("no framed record trailer")
    if len(data) < MIN_FRAMED_SIZE:
        raise MalformedRecordError("framed record too small", details={'size': len(data)})

    end = len(data)
    (record_len,) = _LENGTH.unpack_from(data, end - TRAILER_SIZE)
    start = end - TRAILER_SIZE - record_len
    if start < 0 or record_len < MIN_FRAMED_SIZE - TRAILER_SIZE:
        raise MalformedRecordError(
            "framed record length out of range",
            details={'record_len': record_len, 'stream_size': end},
        )

    off = start
    magic, version, hash_len = _HEADER.unpack_from(data, off)
    off += _HEADER.size
    if magic != START_MAGIC:
        raise MalformedRecordError("bad framed record signature", details={'offset': start})
    if version != FORMAT_VERSION:
        raise MalformedRecordError(f"unsupported record version {version}", details={'version': version})

    body_end = end - TRAILER_SIZE
    if off + hash_len + _LENGTH.size > body_end:
        raise MalformedRecordError("framed record truncated after key hash")
    hash_raw = data[off:off + hash_len]
    off += hash_len
    (ct_len,) = _LENGTH.unpack_from(data, off)
    off += _LENGTH.size
    if off + ct_len + _CHECK_SIZE != body_end:
        raise MalformedRecordError(
            "framed record length mismatch",
            details={'ciphertext_len': ct_len, 'record_len': record_len},
        )
    ciphertext = data[off:off + ct_len]
    off += ct_len
    if data[off:off + _CHECK_SIZE] != _check8(hash_raw, ciphertext):
        raise MalformedRecordError("framed record checksum mismatch")

    try:
        key_hash = hash_raw.decode("ascii")
    except UnicodeDecodeError as e:
        raise MalformedRecordError("key hash is not ASCII") from e

    return RecordLocation(
        record=PayloadRecord(ciphertext=ciphertext, key_hash=key_hash),
        record_format=RecordFormat.FRAMED,
        start=start,
        end=end,
    )


def parse_framed(data: BytesLike) -> PayloadRecord:
    """Parse the framed record that ends ``data``."""
    return _locate_framed(data).record


# =========================
# JSON (legacy)
# =========================

def _escape_braces(encoded: str) -> str:
    return encoded.replace("{", "\\u007b").replace("}", "\\u007d")


def serialize_json(record: PayloadRecord) -> bytes:
    """Render a record as the legacy brace-delimited JSON object."""
    message = _escape_braces(json.dumps(bytes(record.ciphertext).decode("latin-1")))
    key_hash = _escape_braces(json.dumps(record.key_hash))
    return ('{"message":' + message + ',"keyHash":' + key_hash + '}').encode("utf-8")


def _record_from_object(obj: Any) -> PayloadRecord:
    if not isinstance(obj, dict):
        raise MalformedRecordError("record is not an object")
    message = obj.get("message")
    key_hash = obj.get("keyHash")
    if not isinstance(message, str) or not isinstance(key_hash, str):
        raise MalformedRecordError(
            "record fields missing or mistyped",
            details={'fields': sorted(obj)},
        )
    try:
        ciphertext = message.encode("latin-1")
    except UnicodeEncodeError as e:
        # Written by a code-point cipher with characters above U+00FF.
        raise MalformedRecordError(
            "record message holds characters outside the byte range",
            details={'position': e.start},
        ) from e
    return PayloadRecord(ciphertext=ciphertext, key_hash=key_hash)


def _locate_json(data: BytesLike) -> RecordLocation:
    data = bytes(data)
    close = data.rfind(b"}")
    if close < 0:
        raise MalformedRecordError("no record end marker")

    end = close + 1
    open_ = data.rfind(b"{", 0, close)
    attempts = 0
    last_error: Optional[Exception] = None
    while open_ >= 0 and attempts < MAX_JSON_CANDIDATES:
        attempts += 1
        text = data[open_:end].decode("utf-8", errors="replace")
        try:
            obj = json.loads(text)
        except (ValueError, RecursionError) as e:
            last_error = e
        else:
            # A parseable object with the wrong fields is final: scanning
            # further back would only find an enclosing object.
            record = _record_from_object(obj)
            return RecordLocation(
                record=record,
                record_format=RecordFormat.JSON,
                start=open_,
                end=end,
            )
        open_ = data.rfind(b"{", 0, open_)

    logger.debug("JSON record scan gave up after %d candidates", attempts)
    raise MalformedRecordError(
        "no well-formed record before the last end marker",
        details={'candidates': attempts, 'end': end, 'error': str(last_error) if last_error else None},
    )


def parse_json(data: BytesLike) -> PayloadRecord:
    """Parse the last brace-delimited record in ``data``."""
    return _locate_json(data).record


# =========================
# Format dispatch
# =========================

def locate(data: BytesLike, record_format: Optional[RecordFormat] = None) -> RecordLocation:
    """
    Find the record at the end of ``data``.

    Args:
        data: Record bytes, or a whole carrier stream ending with a record.
        record_format: Restrict parsing to one format. When omitted, a
            stream ending with the framed trailer is parsed as FRAMED and
            anything else as JSON.

    Raises:
        MalformedRecordError: If no well-formed record can be located.
    """
    if record_format is RecordFormat.FRAMED:
        return _locate_framed(data)
    if record_format is RecordFormat.JSON:
        return _locate_json(data)
    if has_framed_trailer(data):
        return _locate_framed(data)
    return _locate_json(data)


def parse(data: BytesLike, record_format: Optional[RecordFormat] = None) -> PayloadRecord:
    """Parse a record; see :func:`locate`."""
    return locate(data, record_format).record


def serialize(record: PayloadRecord, record_format: RecordFormat = RecordFormat.FRAMED) -> bytes:
    """Serialize ``record`` in the requested format."""
    if record_format is RecordFormat.JSON:
        return serialize_json(record)
    return serialize_framed(record)
