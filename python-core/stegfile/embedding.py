"""
Embedding Store - Append-Based Carrier Embedding.

Records are appended after the last byte of the host file. Image, audio and
video readers stop at their own end-of-stream structures, so the carrier
keeps playing or rendering while the record rides along at the tail. Nothing
inside the host is parsed or modified.

Extraction treats the whole carrier as one byte stream and defers to the
payload codec to find the most recent record at its end.
"""

import logging
from typing import Optional, Union

from .errors import MalformedRecordError, NoRecordFoundError
from .payload import (
    PayloadRecord,
    RecordFormat,
    RecordLocation,
    locate,
    serialize,
)

logger = logging.getLogger(__name__)

BytesLike = Union[bytes, bytearray, memoryview]


class EmbeddingStore:
    """
    Appends records to host bytes and extracts them again.

    Attributes:
        record_format: Format used by :meth:`embed`. Extraction always
            recognises both formats.

    Example:
        >>> store = EmbeddingStore()
        >>> blob = store.embed(b"ABC", PayloadRecord(b"\\x03X", "3366"))
        >>> store.extract(blob).key_hash
        '3366'
    """

    def __init__(self, record_format: RecordFormat = RecordFormat.FRAMED):
        self._record_format = record_format

    @property
    def record_format(self) -> RecordFormat:
        return self._record_format

    def embed(
        self,
        host: BytesLike,
        record: PayloadRecord,
        record_format: Optional[RecordFormat] = None,
    ) -> bytes:
        """
        Return ``host`` followed by the serialized ``record``.

        The host bytes are copied unchanged; an already-encoded host simply
        gains a second record, which then shadows the first. Records are
        validated on construction, so this never raises for a PayloadRecord.
        """
        fmt = record_format or self._record_format
        payload = serialize(record, fmt)
        logger.debug(
            "Appending %s record of %d bytes to %d-byte host",
            fmt.value, len(payload), len(host),
        )
        return bytes(host) + payload

    def locate(self, blob: BytesLike) -> RecordLocation:
        """
        Find the most recent record in ``blob`` and where it sits.

        Raises:
            NoRecordFoundError: If no structurally valid record is present.
        """
        try:
            return locate(blob)
        except MalformedRecordError as e:
            logger.debug("No record in %d-byte stream: %s", len(blob), e.message)
            raise NoRecordFoundError(
                "No encoded message found in file",
                details={'stream_size': len(blob), 'reason': e.message, **e.details},
            ) from e

    def extract(self, blob: BytesLike) -> PayloadRecord:
        """Return the most recent record in ``blob``."""
        return self.locate(blob).record

    def has_record(self, blob: BytesLike) -> bool:
        try:
            self.locate(blob)
        except NoRecordFoundError:
            return False
        return True

    def strip(self, blob: BytesLike) -> bytes:
        """
        Remove every record appended at the very end of ``blob``.

        Only records that end the stream are removed, so brace text deep
        inside a host is never mistaken for an appended JSON record.

        Returns:
            The original host bytes (``blob`` unchanged if nothing was
            appended).
        """
        data = bytes(blob)
        removed = 0
        while True:
            try:
                loc = locate(data)
            except MalformedRecordError:
                break
            if loc.end != len(data):
                break
            data = data[:loc.start]
            removed += 1
        logger.debug("Stripped %d record(s), %d host bytes remain", removed, len(data))
        return data
