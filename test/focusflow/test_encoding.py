"""
Tests for attachment payload encoding.
"""

import base64

import pytest

from focusflow.encoding import DEFAULT_MIME_TYPE, EncodingError, decode_data_url, encode_data_url


class TestEncodeDataUrl:

    def test_includes_mime_and_length(self):
        text = encode_data_url(b"\x00\x01\xff", "image/png")
        assert text.startswith("data:image/png;length=3;base64,")

    def test_empty_mime_falls_back(self):
        assert encode_data_url(b"abc", "").startswith(f"data:{DEFAULT_MIME_TYPE};")
        assert encode_data_url(b"abc").startswith(f"data:{DEFAULT_MIME_TYPE};")

    def test_binary_payload_survives(self):
        payload = bytes(range(256)) * 3
        decoded = decode_data_url(encode_data_url(payload, "application/pdf"))
        assert decoded.data == payload
        assert decoded.mime == "application/pdf"

    def test_empty_payload(self):
        decoded = decode_data_url(encode_data_url(b""))
        assert decoded.data == b""


class TestDecodeDataUrl:

    def test_browser_data_url_without_length(self):
        encoded = base64.b64encode(b"hello").decode("ascii")
        decoded = decode_data_url(f"data:text/plain;base64,{encoded}")
        assert decoded.mime == "text/plain"
        assert decoded.data == b"hello"

    def test_length_mismatch_rejected(self):
        encoded = base64.b64encode(b"hello").decode("ascii")
        with pytest.raises(EncodingError, match="length mismatch"):
            decode_data_url(f"data:text/plain;length=4;base64,{encoded}")

    def test_not_a_data_url(self):
        with pytest.raises(EncodingError):
            decode_data_url("hello world")

    def test_requires_base64(self):
        with pytest.raises(EncodingError, match="not base64"):
            decode_data_url("data:text/plain,hello")

    def test_invalid_base64(self):
        with pytest.raises(EncodingError, match="Invalid base64"):
            decode_data_url("data:text/plain;base64,@@@@")

    def test_invalid_length_parameter(self):
        with pytest.raises(EncodingError, match="Invalid length"):
            decode_data_url("data:text/plain;length=abc;base64,aGVsbG8=")

    def test_encoding_error_is_value_error(self):
        assert issubclass(EncodingError, ValueError)
