"""
Key Digest.

Derives a short deterministic fingerprint from a key so a decoder can tell
whether the candidate key is the one used at encode time without the key
ever being stored in the carrier.

The fold is the classic polynomial string hash:

    h = (h * 31 + codepoint) mod 2**32

with the accumulator read as a signed 32-bit integer after every step. The
wrap-around must be bit-exact, otherwise digests written by other
implementations of the same scheme would no longer verify. The digest is
rendered as a decimal string ("0", "3366", "-2147483648", ...).

This is a usability check, not a security primitive: the digest space is
2**32 and distinct keys can collide.

Usage:
    >>> key_digest("k1")
    '3366'
    >>> verify_digest("k1", "3366")
    True
"""

import logging

logger = logging.getLogger(__name__)

_MULTIPLIER = 31
_MASK = 0xFFFFFFFF
_SIGN_BIT = 0x80000000


def _to_signed32(value: int) -> int:
    value &= _MASK
    return value - (1 << 32) if value & _SIGN_BIT else value


def digest_int(key: str) -> int:
    """
    Compute the signed 32-bit digest of a key.

    Args:
        key: Any string. Callers are expected to pass validated keys, but
            every input (including the empty string) yields a value.

    Returns:
        Integer in the range [-2**31, 2**31 - 1].
    """
    acc = 0
    for char in key:
        acc = (acc * _MULTIPLIER + ord(char)) & _MASK
    return _to_signed32(acc)


def key_digest(key: str) -> str:
    """Return the digest of ``key`` as a decimal string."""
    return str(digest_int(key))


def verify_digest(key: str, expected: str) -> bool:
    """Check whether ``key`` hashes to the digest string ``expected``."""
    matched = key_digest(key) == expected
    if not matched:
        logger.debug("Key digest does not match record digest")
    return matched
