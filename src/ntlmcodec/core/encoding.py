"""
ntlmcodec Text Encoding

Resolution of the two NTLMSSP string encodings:
- Unicode: UTF-16LE, selected by NEGOTIATE_UNICODE
- OEM: a configurable 8-bit charset, selected otherwise
"""

from __future__ import annotations

import codecs
import os
import sys

import attrs
import structlog

from ntlmcodec.core.exceptions import EncodingFailure

logger = structlog.get_logger()


UNICODE_ENCODING = "utf-16-le"

# Environment variable overriding the OEM charset
OEM_ENCODING_ENV = "NTLMCODEC_OEM_ENCODING"

# NEGOTIATE_UNICODE bit of the negotiate flags
_NEGOTIATE_UNICODE = 0x00000001

_ASCII_UPPER = str.maketrans(
    "abcdefghijklmnopqrstuvwxyz",
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ",
)


def _validate_codec(instance: "EncodingConfig", attribute: attrs.Attribute, value: str) -> None:
    try:
        codecs.lookup(value)
    except LookupError as e:
        raise EncodingFailure(f"Unsupported {attribute.name}: {value}") from e


@attrs.define(frozen=True, slots=True)
class EncodingConfig:
    """
    Text encoding configuration.

    Attributes:
        oem_encoding: Charset used when NEGOTIATE_UNICODE is clear.
            Defaults to the interpreter's native charset.
    """

    oem_encoding: str = attrs.field(
        factory=sys.getdefaultencoding,
        validator=_validate_codec,
    )

    @classmethod
    def from_env(cls) -> "EncodingConfig":
        """Create config, honouring NTLMCODEC_OEM_ENCODING if set."""
        value = os.environ.get(OEM_ENCODING_ENV)
        if value:
            logger.debug("oem_encoding_from_env", oem_encoding=value)
            return cls(oem_encoding=value)
        return cls()

    def select(self, flags: int) -> str:
        """Return the encoding chosen by the NEGOTIATE_UNICODE bit of flags."""
        if flags & _NEGOTIATE_UNICODE:
            return UNICODE_ENCODING
        return self.oem_encoding


DEFAULT_ENCODING_CONFIG = EncodingConfig()


def select_encoding(flags: int, config: EncodingConfig = DEFAULT_ENCODING_CONFIG) -> str:
    """Return the encoding for a message negotiated with flags."""
    return config.select(flags)


def is_unicode(flags: int) -> bool:
    """Return True if flags negotiate UTF-16LE strings."""
    return bool(flags & _NEGOTIATE_UNICODE)


def ascii_upper(text: str) -> str:
    """
    Uppercase ASCII letters only.

    Unlike str.upper this never changes string length and does not depend
    on Unicode case mappings, so OEM-encoded output is deterministic.
    """
    return text.translate(_ASCII_UPPER)


def encode_text(text: str, encoding: str) -> bytes:
    """
    Encode text, raising EncodingFailure instead of LookupError or
    UnicodeEncodeError.
    """
    try:
        return text.encode(encoding)
    except LookupError as e:
        raise EncodingFailure(f"Unsupported encoding: {encoding}") from e
    except UnicodeEncodeError as e:
        raise EncodingFailure(f"Cannot encode text with {encoding}: {e.reason}") from e


def decode_text(data: bytes, encoding: str) -> str:
    """
    Decode data received from the peer.

    Undecodable bytes become U+FFFD; only a missing codec raises
    EncodingFailure.
    """
    try:
        return data.decode(encoding, errors="replace")
    except LookupError as e:
        raise EncodingFailure(f"Unsupported encoding: {encoding}") from e
