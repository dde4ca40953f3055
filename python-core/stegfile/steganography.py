#!/usr/bin/env python3
"""
StegFile Steganography Manager

This module ties the payload codec together into the two user-facing
operations: hiding a short text message in an arbitrary media file and
recovering it with the same short key.

================================================================================
PIPELINE
================================================================================

Encode:
    message + key  -> stream cipher  -> ciphertext
    key            -> key digest     -> key hash
    {ciphertext, key hash}           -> payload record
    host bytes + record              -> carrier bytes (record appended)

Decode:
    carrier bytes  -> embedding store -> most recent payload record
    key            -> key digest, compared against the record's key hash
    on match       -> stream cipher   -> message

================================================================================
CARRIERS
================================================================================

Any file works as a carrier because nothing inside it is touched. The
manager still classifies carriers as image, audio or video (by signature,
with Pillow confirming images, then by file name) so callers can restrict
which kinds they accept and keep the media type for the output file.

Keys are 1-8 ASCII letters or digits and are validated here before any
codec component sees them.
"""

import logging
import mimetypes
import re
from dataclasses import dataclass
from enum import Enum
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, Optional, Union

from PIL import Image

from .cipher import decrypt_message, encrypt_message, transform
from .config import StegoConfig
from .digest import key_digest, verify_digest
from .embedding import EmbeddingStore
from .errors import InvalidKeyError, KeyMismatchError, MalformedRecordError, UnsupportedCarrierError
from .payload import PayloadRecord, RecordFormat

logger = logging.getLogger(__name__)

BytesLike = Union[bytes, bytearray, memoryview]
PathLike = Union[str, Path]

DEFAULT_MEDIA_TYPE = "application/octet-stream"


class MediaKind(Enum):
    """Carrier categories offered to the user when picking a file."""

    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"
    UNKNOWN = "unknown"


@dataclass
class MediaInfo:
    """Detected kind and MIME type of a carrier."""

    kind: MediaKind
    media_type: str


@dataclass
class EncodeResult:
    """
    Result of an encode operation.

    Attributes:
        data: Carrier bytes with the record appended
        media_type: MIME type of the host, carried over unchanged
        media_kind: Detected carrier category
        record_format: Wire format of the appended record
        host_size: Size of the original host in bytes
        payload_size: Size of the appended record in bytes
        key_hash: Digest stored in the record
        output_path: Where the carrier was written, for file operations
    """

    data: bytes
    media_type: str
    media_kind: MediaKind
    record_format: RecordFormat
    host_size: int
    payload_size: int
    key_hash: str
    output_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Dictionary form without the carrier bytes."""
        return {
            'media_type': self.media_type,
            'media_kind': self.media_kind.value,
            'record_format': self.record_format.value,
            'host_size': self.host_size,
            'payload_size': self.payload_size,
            'key_hash': self.key_hash,
            'output_path': self.output_path,
        }


@dataclass
class DecodeResult:
    """Recovered message and the record it came from."""

    message: str
    record_format: RecordFormat
    key_hash: str
    payload_size: int


@dataclass
class RecordInfo:
    """What can be learned about an embedded record without the key."""

    record_format: RecordFormat
    key_hash: str
    ciphertext_size: int
    record_size: int
    host_size: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'record_format': self.record_format.value,
            'key_hash': self.key_hash,
            'ciphertext_size': self.ciphertext_size,
            'record_size': self.record_size,
            'host_size': self.host_size,
        }


# Leading-byte signatures for formats Pillow does not open.
_AUDIO_SIGNATURES = (
    (0, b"ID3", "audio/mpeg"),
    (0, b"\xff\xfb", "audio/mpeg"),
    (0, b"\xff\xf3", "audio/mpeg"),
    (0, b"\xff\xf2", "audio/mpeg"),
    (0, b"fLaC", "audio/flac"),
    (0, b"OggS", "audio/ogg"),
)
_VIDEO_SIGNATURES = (
    (0, b"\x1a\x45\xdf\xa3", "video/webm"),
    (0, b"FLV", "video/x-flv"),
)
_RIFF_TYPES = {
    b"WAVE": (MediaKind.AUDIO, "audio/wav"),
    b"AVI ": (MediaKind.VIDEO, "video/x-msvideo"),
}
_FTYP_AUDIO_BRANDS = {b"M4A ", b"M4B ", b"M4P "}
_FTYP_QUICKTIME_BRANDS = {b"qt  "}


def _kind_from_media_type(media_type: str) -> MediaKind:
    major = media_type.split("/", 1)[0].lower()
    try:
        return MediaKind(major)
    except ValueError:
        return MediaKind.UNKNOWN


class StegFileManager:
    """
    Encode and decode hidden messages in media files.

    The manager holds no per-operation state; every call works on the bytes
    it is given and returns new bytes, so one instance can serve concurrent
    callers.

    Example:
        >>> manager = StegFileManager()
        >>> result = manager.encode(b"ABC", "hi", "k1")
        >>> manager.decode(result.data, "k1").message
        'hi'
    """

    def __init__(self, config: Optional[StegoConfig] = None):
        self._config = config or StegoConfig()
        self._store = EmbeddingStore(self._config.record_format)
        self._key_pattern = re.compile(r"[A-Za-z0-9]{1,%d}" % self._config.max_key_length)
        logger.debug("StegFileManager initialized with %s", self._config.to_dict())

    @property
    def config(self) -> StegoConfig:
        return self._config

    @property
    def store(self) -> EmbeddingStore:
        return self._store

    def validate_key(self, key: str) -> str:
        """
        Check that ``key`` is 1 to ``max_key_length`` ASCII letters or digits.

        Returns:
            The key, unchanged.

        Raises:
            InvalidKeyError: With the offending length in ``details``; the
                key itself is never echoed back.
        """
        if not isinstance(key, str) or not self._key_pattern.fullmatch(key):
            length = len(key) if isinstance(key, str) else None
            raise InvalidKeyError(
                f"Key must be 1-{self._config.max_key_length} alphanumeric characters",
                details={'key_length': length},
            )
        return key

    def detect_media(self, data: BytesLike, filename: Optional[PathLike] = None) -> MediaInfo:
        """
        Classify a carrier as image, audio or video.

        Detection order:
            1. Pillow identifies the bytes as an image
            2. Audio/video container signatures (RIFF, ISO BMFF, Matroska...)
            3. MIME type guessed from ``filename``

        Returns:
            MediaInfo; UNKNOWN with ``application/octet-stream`` when nothing
            matches.
        """
        head = bytes(data[:64])

        try:
            with Image.open(BytesIO(bytes(data))) as img:
                media_type = Image.MIME.get(img.format or "", f"image/{(img.format or 'unknown').lower()}")
                return MediaInfo(MediaKind.IMAGE, media_type)
        except (OSError, Image.DecompressionBombError):
            pass

        for offset, magic, media_type in _AUDIO_SIGNATURES:
            if head.startswith(magic, offset):
                return MediaInfo(MediaKind.AUDIO, media_type)
        for offset, magic, media_type in _VIDEO_SIGNATURES:
            if head.startswith(magic, offset):
                return MediaInfo(MediaKind.VIDEO, media_type)

        if head.startswith(b"RIFF") and head[8:12] in _RIFF_TYPES:
            kind, media_type = _RIFF_TYPES[head[8:12]]
            return MediaInfo(kind, media_type)

        if head[4:8] == b"ftyp":
            brand = head[8:12]
            if brand in _FTYP_AUDIO_BRANDS:
                return MediaInfo(MediaKind.AUDIO, "audio/mp4")
            if brand in _FTYP_QUICKTIME_BRANDS:
                return MediaInfo(MediaKind.VIDEO, "video/quicktime")
            return MediaInfo(MediaKind.VIDEO, "video/mp4")

        if filename is not None:
            guessed, _ = mimetypes.guess_type(str(filename))
            if guessed:
                return MediaInfo(_kind_from_media_type(guessed), guessed)

        return MediaInfo(MediaKind.UNKNOWN, DEFAULT_MEDIA_TYPE)

    def encode(
        self,
        host: BytesLike,
        message: str,
        key: str,
        media_type: Optional[str] = None,
        filename: Optional[PathLike] = None,
        expected_kind: Optional[MediaKind] = None,
        record_format: Optional[RecordFormat] = None,
    ) -> EncodeResult:
        """
        Hide ``message`` at the end of ``host``.

        Args:
            host: Raw carrier bytes.
            message: Text to hide; may be empty.
            key: 1-8 alphanumeric characters.
            media_type: Declared MIME type of the host. Detected when omitted.
            filename: Carrier file name, used as a detection fallback.
            expected_kind: Reject carriers of any other kind.
            record_format: Override the configured wire format.

        Raises:
            InvalidKeyError: If the key fails validation.
            UnsupportedCarrierError: If ``expected_kind`` is not met.
            TypeError: If ``message`` is not a string.
        """
        self.validate_key(key)
        if not isinstance(message, str):
            raise TypeError(f"message must be str, not {type(message).__name__}")

        if media_type:
            media = MediaInfo(_kind_from_media_type(media_type), media_type)
        else:
            media = self.detect_media(host, filename)

        if expected_kind is not None and media.kind is not expected_kind:
            raise UnsupportedCarrierError(
                f"Carrier is not a supported {expected_kind.value} file (detected {media.media_type})",
                details={'expected': expected_kind.value, 'detected': media.kind.value},
            )

        fmt = record_format or self._config.record_format
        record = PayloadRecord(ciphertext=encrypt_message(message, key), key_hash=key_digest(key))
        data = self._store.embed(host, record, fmt)

        result = EncodeResult(
            data=data,
            media_type=media.media_type,
            media_kind=media.kind,
            record_format=fmt,
            host_size=len(host),
            payload_size=len(data) - len(host),
            key_hash=record.key_hash,
        )
        logger.info(
            "Encoded %d-byte message into %s carrier (%s record, %d bytes)",
            len(record.ciphertext), media.media_type, fmt.value, result.payload_size,
        )
        return result

    def decode(self, data: BytesLike, key: str) -> DecodeResult:
        """
        Recover the most recent message hidden in ``data``.

        Raises:
            InvalidKeyError: If the key fails validation.
            NoRecordFoundError: If the carrier holds no record.
            KeyMismatchError: If the key does not match the record.
            MalformedRecordError: If a framed record restores to invalid
                UTF-8. Legacy JSON records fall back to latin-1 code units.
        """
        self.validate_key(key)
        loc = self._store.locate(data)

        if not verify_digest(key, loc.record.key_hash):
            logger.warning("Key mismatch for %s record", loc.record_format.value)
            raise KeyMismatchError(
                "Wrong key or no encoded message found",
                details={'record_format': loc.record_format.value},
            )

        try:
            message = decrypt_message(loc.record.ciphertext, key)
        except MalformedRecordError:
            if loc.record_format is not RecordFormat.JSON:
                raise
            # The browser version XORs UTF-16 code units; once they fit in a
            # byte, the restored bytes are those code units.
            message = transform(loc.record.ciphertext, key).decode("latin-1")
        logger.info("Decoded %d-byte message from %s record", len(loc.record.ciphertext), loc.record_format.value)
        return DecodeResult(
            message=message,
            record_format=loc.record_format,
            key_hash=loc.record.key_hash,
            payload_size=loc.size,
        )

    def inspect(self, data: BytesLike) -> RecordInfo:
        """Describe the most recent record without needing the key."""
        loc = self._store.locate(data)
        return RecordInfo(
            record_format=loc.record_format,
            key_hash=loc.record.key_hash,
            ciphertext_size=len(loc.record.ciphertext),
            record_size=loc.size,
            host_size=loc.start,
        )

    def strip(self, data: BytesLike) -> bytes:
        """Return the carrier with every appended record removed."""
        return self._store.strip(data)

    def default_output_path(self, carrier_path: PathLike) -> Path:
        """``encoded_<name>`` next to the carrier."""
        path = Path(carrier_path)
        return path.with_name(f"{self._config.output_prefix}{path.name}")

    def encode_file(
        self,
        carrier_path: PathLike,
        message: str,
        key: str,
        output_path: Optional[PathLike] = None,
        expected_kind: Optional[MediaKind] = None,
    ) -> EncodeResult:
        """
        Encode into a carrier on disk and write the result.

        Args:
            carrier_path: Host file to read.
            message: Text to hide.
            key: 1-8 alphanumeric characters.
            output_path: Destination; defaults to :meth:`default_output_path`.
            expected_kind: Reject carriers of any other kind.

        Returns:
            EncodeResult with ``output_path`` set.
        """
        carrier = Path(carrier_path)
        host = carrier.read_bytes()
        result = self.encode(host, message, key, filename=carrier.name, expected_kind=expected_kind)

        out = Path(output_path) if output_path else self.default_output_path(carrier)
        out.write_bytes(result.data)
        result.output_path = str(out)
        logger.info("Wrote encoded carrier to %s", out)
        return result

    def decode_file(self, path: PathLike, key: str) -> DecodeResult:
        """Decode the message hidden in the file at ``path``."""
        return self.decode(Path(path).read_bytes(), key)
