"""
Shared test doubles and wire helpers for ntlmcodec tests.
"""

import hashlib
import struct
from typing import List, Optional

import attrs

from ntlmcodec.ntlm.types import NegotiateFlags


UNICODE = NegotiateFlags.NEGOTIATE_UNICODE.value
OEM = NegotiateFlags.NEGOTIATE_OEM.value
NTLM = NegotiateFlags.NEGOTIATE_NTLM.value
DOMAIN_SUPPLIED = NegotiateFlags.NEGOTIATE_OEM_DOMAIN_SUPPLIED.value
WORKSTATION_SUPPLIED = NegotiateFlags.NEGOTIATE_OEM_WORKSTATION_SUPPLIED.value


# =============================================================================
# FAKE COLLABORATORS
# =============================================================================


@attrs.define
class FakeRandomSource:
    """Returns queued byte strings, recording every request."""

    values: List[bytes] = attrs.Factory(list)
    requests: List[int] = attrs.Factory(list)

    def next_bytes(self, length: int) -> bytes:
        self.requests.append(length)
        if self.values:
            return self.values.pop(0)
        return bytes([len(self.requests)]) * length


@attrs.define
class FakeResponseProvider:
    """Returns fixed responses and records the arguments it was called with."""

    lm: bytes = b"L" * 24
    nt: bytes = b"N" * 24
    lm_calls: list = attrs.Factory(list)
    nt_calls: list = attrs.Factory(list)

    def lmv2_response(self, domain, user, password, server_challenge, client_nonce):
        self.lm_calls.append((domain, user, password, server_challenge, client_nonce))
        return self.lm

    def ntlmv2_response(self, domain, user, password, target_info, server_challenge, client_nonce):
        self.nt_calls.append((domain, user, password, target_info, server_challenge, client_nonce))
        return self.nt


class FailingResponseProvider:
    """Provider that always fails, as with a bad key length."""

    def lmv2_response(self, *args):
        raise ValueError("bad key length")

    def ntlmv2_response(self, *args):
        raise ValueError("bad key length")


# =============================================================================
# WIRE HELPERS
# =============================================================================


def make_challenge_bytes(
    flags: int = 0,
    target: bytes = b"",
    challenge: bytes = b"\x00" * 8,
    context: Optional[bytes] = None,
    target_info: Optional[bytes] = None,
    target_offset: Optional[int] = None,
) -> bytes:
    """
    Hand-encode a CHALLENGE_MESSAGE.

    Without context the message ends at byte 32 (legacy form); with context
    but no target_info it ends at byte 40; otherwise the full 48-byte header
    is used. Payload follows the header.
    """
    if target_info is not None:
        header_size = 48
    elif context is not None:
        header_size = 40
    else:
        header_size = 32
    if target_offset is None:
        target_offset = header_size

    msg = b"NTLMSSP\x00" + struct.pack("<I", 2)
    msg += struct.pack("<HHI", len(target), len(target), target_offset)
    msg += struct.pack("<I", flags)
    msg += challenge
    if header_size >= 40:
        msg += context
    if header_size == 48:
        info_offset = header_size + len(target)
        msg += struct.pack("<HHI", len(target_info), len(target_info), info_offset)
    return msg + target + (target_info or b"")


def security_buffer(data: bytes, descriptor_offset: int):
    """Decode (length, max_length, offset) at descriptor_offset."""
    return struct.unpack_from("<HHI", data, descriptor_offset)


def md4_available() -> bool:
    """Check if MD4 is available."""
    try:
        hashlib.new("md4")
        return True
    except ValueError:
        return False
