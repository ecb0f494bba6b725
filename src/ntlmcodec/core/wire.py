"""
ntlmcodec Wire-Format Utilities

Little-endian integer access and NTLMSSP security buffers.

Every NTLMSSP message starts with the 8-byte signature followed by a
little-endian uint32 message type. Variable-length fields live after the
fixed header and are referenced by 8-byte security buffer descriptors:

    uint16 length | uint16 max_length | uint32 offset

The offset is measured from the start of the message.
"""

from __future__ import annotations

import struct
from typing import Optional, Union

from ntlmcodec.core.exceptions import OversizedField, TruncatedBuffer


NTLMSSP_SIGNATURE = b"NTLMSSP\x00"

# Offset of the message type marker
MESSAGE_TYPE_OFFSET = 8

# Size of a security buffer descriptor
SECURITY_BUFFER_SIZE = 8

# Largest field a security buffer descriptor can describe
MAX_SECURITY_BUFFER_LENGTH = 0xFFFF

Buffer = Union[bytes, bytearray, memoryview]


def _check_bounds(buf: Buffer, offset: int, size: int) -> None:
    if offset < 0 or offset + size > len(buf):
        raise TruncatedBuffer(offset, size, len(buf))


# =============================================================================
# INTEGERS
# =============================================================================


def read_uint16_le(buf: Buffer, offset: int) -> int:
    """Read an unsigned 16-bit little-endian integer."""
    _check_bounds(buf, offset, 2)
    return struct.unpack_from("<H", buf, offset)[0]


def read_uint32_le(buf: Buffer, offset: int) -> int:
    """
    Read an unsigned 32-bit little-endian integer.

    Raises:
        TruncatedBuffer: If offset + 4 exceeds the buffer
    """
    _check_bounds(buf, offset, 4)
    return struct.unpack_from("<I", buf, offset)[0]


def write_uint16_le(buf: bytearray, offset: int, value: int) -> None:
    """Write an unsigned 16-bit little-endian integer."""
    _check_bounds(buf, offset, 2)
    struct.pack_into("<H", buf, offset, value)


def write_uint32_le(buf: bytearray, offset: int, value: int) -> None:
    """
    Write an unsigned 32-bit little-endian integer.

    Values are masked to 32 bits so negative flag masks encode as their
    two's complement bit pattern.
    """
    _check_bounds(buf, offset, 4)
    struct.pack_into("<I", buf, offset, value & 0xFFFFFFFF)


def read_bytes(buf: Buffer, offset: int, length: int) -> bytes:
    """Copy length bytes starting at offset."""
    _check_bounds(buf, offset, length)
    return bytes(buf[offset : offset + length])


def write_bytes(buf: bytearray, offset: int, data: Optional[bytes]) -> None:
    """Copy data into buf at offset. None and b"" are no-ops."""
    if not data:
        return
    _check_bounds(buf, offset, len(data))
    buf[offset : offset + len(data)] = data


def is_all_zero(data: bytes) -> bool:
    """Return True if every byte is zero."""
    return not any(data)


# =============================================================================
# SECURITY BUFFERS
# =============================================================================


def read_security_buffer(buf: Buffer, descriptor_offset: int) -> bytes:
    """
    Read the field referenced by the descriptor at descriptor_offset.

    Args:
        buf: Whole message
        descriptor_offset: Position of the 8-byte descriptor

    Returns:
        Field bytes, empty if the descriptor length is zero

    Raises:
        TruncatedBuffer: If the descriptor or its data lie outside buf
    """
    length = read_uint16_le(buf, descriptor_offset)
    offset = read_uint32_le(buf, descriptor_offset + 4)
    if length == 0:
        return b""
    return read_bytes(buf, offset, length)


def write_security_buffer(
    buf: bytearray,
    descriptor_offset: int,
    data_offset: int,
    data: Optional[bytes],
) -> None:
    """
    Write a descriptor for data at descriptor_offset.

    Only the descriptor is written; copying data to data_offset is left to
    the caller.

    Raises:
        OversizedField: If data does not fit a 16-bit length
    """
    length = len(data) if data else 0
    if length > MAX_SECURITY_BUFFER_LENGTH:
        raise OversizedField(length, MAX_SECURITY_BUFFER_LENGTH)
    write_uint16_le(buf, descriptor_offset, length)
    write_uint16_le(buf, descriptor_offset + 2, length)
    write_uint32_le(buf, descriptor_offset + 4, data_offset)


def write_header(buf: bytearray, message_type: int) -> None:
    """Write signature and message type marker."""
    write_bytes(buf, 0, NTLMSSP_SIGNATURE)
    write_uint32_le(buf, MESSAGE_TYPE_OFFSET, message_type)
