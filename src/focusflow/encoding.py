"""
Attachment payload text encoding.

Binary attachment payloads cross text-only boundaries (the JSON dataset file
and export backups) as RFC 2397 data URLs carrying the MIME type and the
decoded byte length:

    data:<mime>;length=<n>;base64,<payload>

Data URLs without the ``length`` parameter (as written by browsers'
``FileReader.readAsDataURL``) are accepted on decode.
"""

import base64
import binascii
import re
from typing import NamedTuple, Optional

DEFAULT_MIME_TYPE = "application/octet-stream"

_DATA_URL_RE = re.compile(r"^data:(?P<header>[^,]*),(?P<payload>.*)$", re.DOTALL)


class EncodingError(ValueError):
    """Raised when a text-encoded payload cannot be decoded."""


class DecodedPayload(NamedTuple):
    mime: str
    data: bytes


def encode_data_url(payload: bytes, mime: Optional[str] = None) -> str:
    """
    Encode binary payload as a self-describing data URL.

    Args:
        payload: Raw attachment bytes
        mime: MIME type of the payload; empty or None falls back to
            application/octet-stream

    Returns:
        Data URL string with MIME type, length and base64 payload
    """
    mime = (mime or "").strip() or DEFAULT_MIME_TYPE
    encoded = base64.b64encode(payload).decode("ascii")
    return f"data:{mime};length={len(payload)};base64,{encoded}"


def decode_data_url(text: str) -> DecodedPayload:
    """
    Decode a data URL back into its MIME type and raw bytes.

    Args:
        text: Data URL produced by encode_data_url or a browser

    Returns:
        DecodedPayload with the MIME type and the payload bytes

    Raises:
        EncodingError: Not a base64 data URL, malformed payload, or a
            length parameter that does not match the decoded bytes
    """
    match = _DATA_URL_RE.match(text.strip())
    if not match:
        raise EncodingError("Attachment data is not a data URL")

    parts = match.group("header").split(";")
    mime = parts[0].strip() or DEFAULT_MIME_TYPE
    params = [p.strip() for p in parts[1:]]
    if "base64" not in params:
        raise EncodingError("Attachment data URL is not base64 encoded")

    expected_length = None
    for param in params:
        if param.startswith("length="):
            try:
                expected_length = int(param[len("length="):])
            except ValueError:
                raise EncodingError(f"Invalid length parameter: {param}")

    try:
        data = base64.b64decode(match.group("payload"), validate=True)
    except (binascii.Error, ValueError) as e:
        raise EncodingError(f"Invalid base64 payload: {e}")

    if expected_length is not None and expected_length != len(data):
        raise EncodingError(
            f"Attachment length mismatch: header says {expected_length}, decoded {len(data)} bytes"
        )
    return DecodedPayload(mime=mime, data=data)
