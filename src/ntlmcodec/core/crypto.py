"""
ntlmcodec Cryptographic Collaborators

Response computation and random nonce generation used when building an
AUTHENTICATE_MESSAGE. Both are injectable so tests can run deterministically.

Uses established primitives only - NO custom cryptographic implementations.

Security:
- Nonces come from the secrets module
- Passwords and keys are never logged
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
import struct
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol, runtime_checkable

import attrs

from ntlmcodec.core.exceptions import CryptoError


# Client nonce length for LMv2 and NTLMv2 responses
CLIENT_NONCE_LENGTH = 8

# 100-ns intervals between 1601-01-01 and 1970-01-01
FILETIME_EPOCH_OFFSET = 116444736000000000


# =============================================================================
# COLLABORATOR INTERFACES
# =============================================================================


@runtime_checkable
class RandomSource(Protocol):
    """Source of cryptographically secure random bytes."""

    def next_bytes(self, length: int) -> bytes:
        ...


@runtime_checkable
class ResponseProvider(Protocol):
    """Computes LM/NT response bytes from credentials and a challenge."""

    def lmv2_response(
        self,
        domain: str,
        user: str,
        password: str,
        server_challenge: bytes,
        client_nonce: bytes,
    ) -> bytes:
        ...

    def ntlmv2_response(
        self,
        domain: str,
        user: str,
        password: str,
        target_info: Optional[bytes],
        server_challenge: bytes,
        client_nonce: bytes,
    ) -> bytes:
        ...


@attrs.define(frozen=True, slots=True)
class SecureRandomSource:
    """
    RandomSource backed by the secrets module.

    Stateless, so a single instance may be shared between threads.
    """

    def next_bytes(self, length: int) -> bytes:
        return secrets.token_bytes(length)


DEFAULT_RANDOM_SOURCE = SecureRandomSource()


# =============================================================================
# HASH FUNCTIONS
# =============================================================================


def md4_hash(data: bytes) -> bytes:
    """
    Compute MD4 hash (for NTLM).

    WARNING: MD4 is cryptographically broken. Only used for NTLM compatibility.

    Raises:
        CryptoError: If the runtime's OpenSSL does not provide MD4
    """
    try:
        h = hashlib.new("md4")
    except ValueError as e:
        # MD4 not available in FIPS mode or OpenSSL 3 without legacy provider
        raise CryptoError("MD4 not available - required for NTLM") from e
    h.update(data)
    return h.digest()


def hmac_md5(key: bytes, data: bytes) -> bytes:
    """
    Compute HMAC-MD5.

    Args:
        key: HMAC key
        data: Data to authenticate

    Returns:
        16-byte HMAC-MD5 tag
    """
    return hmac.new(key, data, hashlib.md5).digest()


# =============================================================================
# NTLM-SPECIFIC FUNCTIONS
# =============================================================================


def compute_nt_hash(password: str) -> bytes:
    """
    Compute NT hash from password.

    NT Hash = MD4(UTF-16LE(password))
    """
    return md4_hash(password.encode("utf-16-le"))


def compute_ntlmv2_hash(domain: str, user: str, password: str) -> bytes:
    """
    Compute the NTLMv2 hash.

    NTLMv2Hash = HMAC-MD5(NT Hash, UTF-16LE(UPPERCASE(user) + domain))
    """
    identity = (user.upper() + domain).encode("utf-16-le")
    return hmac_md5(compute_nt_hash(password), identity)


def filetime(now: datetime) -> bytes:
    """Encode now as an 8-byte little-endian Windows FILETIME."""
    unix_100ns = int(now.timestamp() * 10000000)
    return struct.pack("<Q", unix_100ns + FILETIME_EPOCH_OFFSET)


def build_ntlmv2_blob(
    client_nonce: bytes,
    target_info: Optional[bytes],
    timestamp: bytes,
) -> bytes:
    """
    Build the NTLMv2 client blob.

    Blob = 0x0101 | Reserved(6) | Timestamp | ClientNonce | Reserved(4)
           | TargetInfo | Reserved(4)
    """
    return (
        b"\x01\x01"  # Resp type, Hi resp type
        + b"\x00\x00"  # Reserved1
        + b"\x00\x00\x00\x00"  # Reserved2
        + timestamp
        + client_nonce
        + b"\x00\x00\x00\x00"  # Reserved3
        + (target_info or b"")
        + b"\x00\x00\x00\x00"  # Reserved4
    )


def compute_lmv2_response(
    ntlmv2_hash: bytes,
    server_challenge: bytes,
    client_nonce: bytes,
) -> bytes:
    """LMv2 = HMAC-MD5(NTLMv2Hash, ServerChallenge + ClientNonce) + ClientNonce."""
    return hmac_md5(ntlmv2_hash, server_challenge + client_nonce) + client_nonce


def compute_ntlmv2_response(
    ntlmv2_hash: bytes,
    server_challenge: bytes,
    blob: bytes,
) -> bytes:
    """NTLMv2 = HMAC-MD5(NTLMv2Hash, ServerChallenge + Blob) + Blob."""
    return hmac_md5(ntlmv2_hash, server_challenge + blob) + blob


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@attrs.define(frozen=True, slots=True)
class NTLMv2ResponseProvider:
    """
    Default ResponseProvider computing LMv2 and NTLMv2 responses.

    Attributes:
        clock: Returns the current time for the NTLMv2 blob timestamp
    """

    clock: Callable[[], datetime] = attrs.field(default=_utc_now, repr=False)

    def lmv2_response(
        self,
        domain: str,
        user: str,
        password: str,
        server_challenge: bytes,
        client_nonce: bytes,
    ) -> bytes:
        ntlmv2_hash = compute_ntlmv2_hash(domain, user, password)
        return compute_lmv2_response(ntlmv2_hash, server_challenge, client_nonce)

    def ntlmv2_response(
        self,
        domain: str,
        user: str,
        password: str,
        target_info: Optional[bytes],
        server_challenge: bytes,
        client_nonce: bytes,
    ) -> bytes:
        ntlmv2_hash = compute_ntlmv2_hash(domain, user, password)
        blob = build_ntlmv2_blob(client_nonce, target_info, filetime(self.clock()))
        return compute_ntlmv2_response(ntlmv2_hash, server_challenge, blob)


DEFAULT_RESPONSE_PROVIDER = NTLMv2ResponseProvider()
