# StegFile Core Package
# Hide short text messages at the end of image, audio and video files
#
# This package provides:
# - Key digest for verifying keys without storing them (digest)
# - Key-cycled XOR obfuscation of message bytes (cipher)
# - Record serialization in framed and legacy JSON formats (payload)
# - Append-based embedding and extraction (embedding)
# - Encode/decode orchestration with key validation (steganography)

from .errors import (
    StegFileError,
    InvalidKeyError,
    MalformedRecordError,
    NoRecordFoundError,
    KeyMismatchError,
    UnsupportedCarrierError,
)
from .digest import key_digest, digest_int, verify_digest
from .cipher import transform, encrypt_message, decrypt_message
from .payload import PayloadRecord, RecordFormat, RecordLocation, serialize, parse
from .embedding import EmbeddingStore
from .config import StegoConfig, configure_logging
from .steganography import (
    StegFileManager,
    MediaKind,
    MediaInfo,
    EncodeResult,
    DecodeResult,
    RecordInfo,
)

__all__ = [
    # Errors
    'StegFileError',
    'InvalidKeyError',
    'MalformedRecordError',
    'NoRecordFoundError',
    'KeyMismatchError',
    'UnsupportedCarrierError',
    # Codec components
    'key_digest',
    'digest_int',
    'verify_digest',
    'transform',
    'encrypt_message',
    'decrypt_message',
    'PayloadRecord',
    'RecordFormat',
    'RecordLocation',
    'serialize',
    'parse',
    'EmbeddingStore',
    # Configuration
    'StegoConfig',
    'configure_logging',
    # Manager
    'StegFileManager',
    'MediaKind',
    'MediaInfo',
    'EncodeResult',
    'DecodeResult',
    'RecordInfo',
]

__version__ = "1.0.0"
