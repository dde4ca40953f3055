"""
Unit Tests for StegFile Steganography Manager

Tests key validation, carrier detection and the encode/decode pipeline,
including the documented behaviour when host bytes contain brace text.
"""

from io import BytesIO

import pytest
from PIL import Image

from stegfile import (
    InvalidKeyError,
    KeyMismatchError,
    MalformedRecordError,
    MediaKind,
    NoRecordFoundError,
    PayloadRecord,
    RecordFormat,
    StegFileManager,
    StegoConfig,
    UnsupportedCarrierError,
    key_digest,
    transform,
)


class TestKeyValidation:
    """Test cases for key validation."""

    @pytest.mark.parametrize("key", ["a", "k1", "ABCdef12", "00000000"])
    def test_valid_keys(self, manager, key):
        """Test accepted keys."""
        assert manager.validate_key(key) == key

    @pytest.mark.parametrize("key", ["", "toolongkey123", "123456789", "ab-c", "key 1", "clé", None])
    def test_invalid_keys(self, manager, key):
        """Test rejected keys."""
        with pytest.raises(InvalidKeyError) as exc_info:
            manager.validate_key(key)
        assert exc_info.value.code == 1

    def test_error_does_not_echo_key(self, manager):
        """Test that the rejected key is not part of the error."""
        with pytest.raises(InvalidKeyError) as exc_info:
            manager.validate_key("toolongkey123")
        assert "toolongkey123" not in str(exc_info.value)
        assert exc_info.value.details == {'key_length': 13}

    def test_long_key_never_reaches_codec(self, manager, host_bytes):
        """Test that encode rejects the key before producing output."""
        with pytest.raises(InvalidKeyError):
            manager.encode(host_bytes, "hi", "toolongkey123")

    def test_configured_max_length(self):
        """Test a shorter configured maximum."""
        manager = StegFileManager(StegoConfig(max_key_length=4))
        manager.validate_key("abcd")
        with pytest.raises(InvalidKeyError, match="1-4"):
            manager.validate_key("abcde")


class TestMediaDetection:
    """Test cases for carrier classification."""

    def test_png(self, manager, png_bytes):
        """Test that Pillow identifies image carriers."""
        media = manager.detect_media(png_bytes)
        assert media.kind is MediaKind.IMAGE
        assert media.media_type == "image/png"

    def test_wav(self, manager):
        """Test RIFF/WAVE detection."""
        header = b"RIFF\x24\x00\x00\x00WAVEfmt \x10\x00\x00\x00" + b"\x00" * 24
        media = manager.detect_media(header)
        assert media.kind is MediaKind.AUDIO
        assert media.media_type == "audio/wav"

    def test_mp3_id3(self, manager):
        """Test ID3-tagged MP3 detection."""
        media = manager.detect_media(b"ID3\x04\x00\x00" + b"\x00" * 32)
        assert media.kind is MediaKind.AUDIO

    def test_mp4(self, manager):
        """Test ISO base media detection."""
        media = manager.detect_media(b"\x00\x00\x00\x18ftypisom" + b"\x00" * 20)
        assert media.kind is MediaKind.VIDEO
        assert media.media_type == "video/mp4"

    def test_m4a(self, manager):
        """Test that audio-only MP4 brands count as audio."""
        media = manager.detect_media(b"\x00\x00\x00\x18ftypM4A " + b"\x00" * 20)
        assert media.kind is MediaKind.AUDIO

    def test_webm(self, manager):
        """Test Matroska/WebM detection."""
        media = manager.detect_media(b"\x1a\x45\xdf\xa3" + b"\x00" * 20)
        assert media.kind is MediaKind.VIDEO

    def test_filename_fallback(self, manager, host_bytes):
        """Test MIME guessing from the file name."""
        assert manager.detect_media(host_bytes, "song.mp3").kind is MediaKind.AUDIO
        assert manager.detect_media(host_bytes, "clip.mp4").kind is MediaKind.VIDEO

    def test_unknown(self, manager, host_bytes):
        """Test unrecognised carriers."""
        media = manager.detect_media(host_bytes)
        assert media.kind is MediaKind.UNKNOWN
        assert media.media_type == "application/octet-stream"


class TestEncodeDecode:
    """Test cases for the encode/decode pipeline."""

    def test_reference_scenario(self, manager, host_bytes):
        """Test host "ABC", message "hi", key "k1"."""
        result = manager.encode(host_bytes, "hi", "k1", record_format=RecordFormat.JSON)

        assert result.key_hash == key_digest("k1") == "3366"
        assert result.data == b'ABC{"message":"\\u0003X","keyHash":"3366"}'
        assert result.host_size == 3
        assert result.payload_size == len(result.data) - 3

        assert manager.decode(result.data, "k1").message == "hi"
        with pytest.raises(KeyMismatchError) as exc_info:
            manager.decode(result.data, "k2")
        assert exc_info.value.code == 4

    @pytest.mark.parametrize("fmt", list(RecordFormat))
    def test_round_trip(self, manager, png_bytes, fmt):
        """Test round trip through an image carrier in both formats."""
        message = "Meet at the usual place, 9pm"
        result = manager.encode(png_bytes, message, "Key123", record_format=fmt)
        decoded = manager.decode(result.data, "Key123")
        assert decoded.message == message
        assert decoded.record_format is fmt
        assert decoded.key_hash == key_digest("Key123")

    def test_carrier_still_opens(self, manager, png_bytes):
        """Test that the image stays readable after encoding."""
        result = manager.encode(png_bytes, "hidden", "k1")
        with Image.open(BytesIO(result.data)) as img:
            img.load()
            assert img.size == (32, 32)
        assert result.media_type == "image/png"
        assert result.media_kind is MediaKind.IMAGE

    def test_unicode_message(self, manager, sample_binary_data):
        """Test messages outside ASCII."""
        message = "مرحبا بالعالم 🌍 Hello World 日本語"
        result = manager.encode(sample_binary_data, message, "k1")
        assert manager.decode(result.data, "k1").message == message

    def test_empty_message(self, manager, host_bytes):
        """Test an empty message."""
        result = manager.encode(host_bytes, "", "k1")
        assert manager.decode(result.data, "k1").message == ""

    def test_message_type_checked(self, manager, host_bytes):
        """Test that bytes messages are rejected."""
        with pytest.raises(TypeError):
            manager.encode(host_bytes, b"hi", "k1")

    def test_no_record(self, manager, png_bytes):
        """Test decoding a carrier that was never encoded."""
        with pytest.raises(NoRecordFoundError):
            manager.decode(png_bytes, "k1")

    def test_invalid_key_on_decode(self, manager, host_bytes):
        """Test that decode validates the key first."""
        blob = manager.encode(host_bytes, "hi", "k1").data
        with pytest.raises(InvalidKeyError):
            manager.decode(blob, "")

    def test_colliding_key_decodes_garbage(self, manager, host_bytes):
        """Test that keys sharing a digest pass verification."""
        blob = manager.encode(host_bytes, "hi", "Aa").data
        assert manager.decode(blob, "BB").message == "kJ"

    def test_framed_record_requires_utf8(self, manager, host_bytes):
        """Test that only legacy JSON records fall back to latin-1."""
        record = PayloadRecord(ciphertext=transform(b"\xe9", "k"), key_hash=key_digest("k"))
        blob = manager.store.embed(host_bytes, record, RecordFormat.FRAMED)
        with pytest.raises(MalformedRecordError):
            manager.decode(blob, "k")

        blob = manager.store.embed(host_bytes, record, RecordFormat.JSON)
        assert manager.decode(blob, "k").message == "\u00e9"

    def test_corrupted_framed_record(self, manager, host_bytes):
        """Test that a damaged record is not decoded."""
        blob = bytearray(manager.encode(host_bytes, "hi", "k1").data)
        blob[len(host_bytes) + 14] ^= 0xFF
        with pytest.raises(NoRecordFoundError):
            manager.decode(bytes(blob), "k1")

    def test_re_encode_returns_latest(self, manager, host_bytes):
        """Test that the most recent record wins and strip removes both."""
        first = manager.encode(host_bytes, "first", "k1").data
        second = manager.encode(first, "second", "k2").data
        assert manager.decode(second, "k2").message == "second"
        with pytest.raises(KeyMismatchError):
            manager.decode(second, "k1")
        assert manager.strip(second) == host_bytes

    def test_expected_kind(self, manager, png_bytes, host_bytes):
        """Test restricting carriers to one media kind."""
        manager.encode(png_bytes, "hi", "k1", expected_kind=MediaKind.IMAGE)
        with pytest.raises(UnsupportedCarrierError) as exc_info:
            manager.encode(host_bytes, "hi", "k1", expected_kind=MediaKind.IMAGE)
        assert exc_info.value.details['detected'] == 'unknown'

    def test_declared_media_type(self, manager, host_bytes):
        """Test that a declared MIME type is kept as metadata."""
        result = manager.encode(host_bytes, "hi", "k1", media_type="video/mp4")
        assert result.media_type == "video/mp4"
        assert result.media_kind is MediaKind.VIDEO

    def test_inspect(self, manager, host_bytes):
        """Test describing a record without the key."""
        result = manager.encode(host_bytes, "hi", "k1")
        info = manager.inspect(result.data)
        assert info.key_hash == "3366"
        assert info.ciphertext_size == 2
        assert info.host_size == 3
        assert info.record_size == result.payload_size
        assert info.to_dict()['record_format'] == 'framed'

    def test_result_to_dict(self, manager, host_bytes):
        """Test that the result summary omits carrier bytes."""
        summary = manager.encode(host_bytes, "hi", "k1").to_dict()
        assert 'data' not in summary
        assert summary['record_format'] == 'framed'


class TestHostBraceAmbiguity:
    """Test cases for hosts that contain brace-delimited text."""

    def test_unrelated_braces_without_record(self, manager):
        """Test that non-record brace text reports no record."""
        with pytest.raises(NoRecordFoundError):
            manager.decode(b"\x00\x01{width: 10} more", "k1")

    def test_json_object_without_record_fields(self, manager):
        """Test that a foreign JSON object reports no record."""
        with pytest.raises(NoRecordFoundError):
            manager.decode(b'metadata {"author": "someone"}', "k1")

    def test_record_shaped_host_text(self, manager):
        """Test that record-shaped host text is taken as a record."""
        host = b'\x89PNG {"message":"zz","keyHash":"42"}'
        with pytest.raises(KeyMismatchError):
            manager.decode(host, "k1")

    @pytest.mark.parametrize("fmt", list(RecordFormat))
    def test_appended_record_beats_host_braces(self, manager, fmt):
        """Test that an appended record is found past host brace text."""
        host = b'{"message":"zz","keyHash":"42"} {oops FGTS'
        blob = manager.encode(host, "hi", "k1", record_format=fmt).data
        assert manager.decode(blob, "k1").message == "hi"

    def test_host_ending_in_end_marker(self, manager):
        """Test a host whose last bytes look like a framed trailer."""
        with pytest.raises(NoRecordFoundError):
            manager.decode(b"\x00" * 40 + b"FGTS", "k1")
