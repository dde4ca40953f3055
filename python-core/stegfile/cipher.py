"""
Stream Cipher - Key-Cycled XOR Obfuscation.

The message is first encoded to UTF-8 and every byte is XOR-ed with the key
byte at the same position modulo the key length. XOR is its own inverse, so
the same call both obfuscates and restores.

Working on bytes rather than on characters keeps every intermediate value in
range: XOR-ing code points can produce surrogate halves or other values that
do not survive a round trip through text, XOR-ing bytes cannot.

This is obfuscation, not encryption. A repeating key of at most eight
characters offers no confidentiality against anyone who looks.

Usage:
    >>> ct = encrypt_message("hi", "k1")
    >>> decrypt_message(ct, "k1")
    'hi'
"""

import logging
from typing import Union

import numpy as np

from .errors import InvalidKeyError, MalformedRecordError

logger = logging.getLogger(__name__)


def _key_stream(key: str, length: int) -> np.ndarray:
    if not key:
        raise InvalidKeyError("Key must not be empty", details={"key_length": 0})
    key_bytes = np.frombuffer(key.encode("utf-8"), dtype=np.uint8)
    return np.resize(key_bytes, length)


def transform(data: Union[bytes, bytearray], key: str) -> bytes:
    """
    XOR ``data`` with the cycled key. Self-inverse.

    Args:
        data: Plain or obfuscated bytes.
        key: Non-empty key string.

    Returns:
        New bytes of the same length as ``data``.

    Raises:
        InvalidKeyError: If ``key`` is empty.
    """
    stream = _key_stream(key, len(data))
    if not data:
        return b""
    buf = np.frombuffer(bytes(data), dtype=np.uint8)
    return np.bitwise_xor(buf, stream).tobytes()


def encrypt_message(message: str, key: str) -> bytes:
    """Encode ``message`` as UTF-8 and obfuscate it with ``key``."""
    return transform(message.encode("utf-8"), key)


def decrypt_message(ciphertext: bytes, key: str) -> str:
    """
    Reverse :func:`encrypt_message`.

    Raises:
        InvalidKeyError: If ``key`` is empty.
        MalformedRecordError: If the restored bytes are not valid UTF-8,
            which means the ciphertext was damaged.
    """
    plain = transform(ciphertext, key)
    try:
        return plain.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedRecordError(
            "Recovered message is not valid UTF-8",
            details={"position": e.start, "size": len(plain)},
        ) from e
