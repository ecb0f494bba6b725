"""
Unit tests for ntlmcodec.core.crypto module.

Known-answer tests use the NTLMv2 vectors from MS-NLMP section 4.2.4
(User "User", domain "Domain", password "Password").
"""

from datetime import datetime, timezone

import pytest

from ntlmcodec.core.crypto import (
    DEFAULT_RANDOM_SOURCE,
    NTLMv2ResponseProvider,
    RandomSource,
    ResponseProvider,
    SecureRandomSource,
    build_ntlmv2_blob,
    compute_lmv2_response,
    compute_nt_hash,
    compute_ntlmv2_hash,
    compute_ntlmv2_response,
    filetime,
    hmac_md5,
)

from tests.helpers import md4_available


SERVER_CHALLENGE = bytes.fromhex("0123456789abcdef")
CLIENT_NONCE = b"\xaa" * 8

# MsvAvNbDomainName "Domain", MsvAvNbComputerName "Server", MsvAvEOL
TARGET_INFO = (
    b"\x02\x00\x0c\x00" + "Domain".encode("utf-16-le")
    + b"\x01\x00\x0c\x00" + "Server".encode("utf-16-le")
    + b"\x00\x00\x00\x00"
)


class TestRandomSource:
    """Tests for the secure random source."""

    def test_length(self):
        """Test requested length is honoured."""
        assert len(SecureRandomSource().next_bytes(8)) == 8

    def test_values_differ(self):
        """Test consecutive nonces differ."""
        source = SecureRandomSource()
        assert source.next_bytes(16) != source.next_bytes(16)

    def test_default_satisfies_protocol(self):
        """Test the shared default is a RandomSource."""
        assert isinstance(DEFAULT_RANDOM_SOURCE, RandomSource)


class TestHelpers:
    """Tests for hash and blob helpers."""

    def test_hmac_md5_length(self):
        """Test HMAC-MD5 returns 16 bytes."""
        assert len(hmac_md5(b"key", b"data")) == 16

    def test_filetime_epoch(self):
        """Test the Unix epoch maps to the FILETIME epoch offset."""
        epoch = datetime(1970, 1, 1, tzinfo=timezone.utc)
        assert filetime(epoch) == (116444736000000000).to_bytes(8, "little")

    def test_blob_layout(self):
        """Test blob fields land at fixed offsets."""
        blob = build_ntlmv2_blob(CLIENT_NONCE, b"INFO", b"\x07" * 8)
        assert blob[0:2] == b"\x01\x01"
        assert blob[2:8] == b"\x00" * 6
        assert blob[8:16] == b"\x07" * 8
        assert blob[16:24] == CLIENT_NONCE
        assert blob[24:28] == b"\x00" * 4
        assert blob[28:32] == b"INFO"
        assert blob[32:] == b"\x00" * 4

    def test_blob_without_target_info(self):
        """Test absent target info is treated as empty."""
        assert len(build_ntlmv2_blob(CLIENT_NONCE, None, b"\x00" * 8)) == 32


@pytest.mark.skipif(not md4_available(), reason="MD4 not available")
class TestNTLMv2Vectors:
    """Known-answer tests from MS-NLMP."""

    def test_nt_hash(self):
        """Test NT hash of "Password"."""
        assert compute_nt_hash("Password") == bytes.fromhex("a4f49c406510bdcab6824ee7c30fd852")

    def test_ntlmv2_hash(self):
        """Test NTOWFv2."""
        assert compute_ntlmv2_hash("Domain", "User", "Password") == bytes.fromhex(
            "0c868a403bfd7a93a3001ef22ef02e3f"
        )

    def test_lmv2_response(self):
        """Test LMv2 response."""
        v2_hash = compute_ntlmv2_hash("Domain", "User", "Password")
        assert compute_lmv2_response(v2_hash, SERVER_CHALLENGE, CLIENT_NONCE) == bytes.fromhex(
            "86c35097ac9cec102554764a57cccc19aaaaaaaaaaaaaaaa"
        )

    def test_nt_proof_str(self):
        """Test the NTProofStr prefix of the NTLMv2 response."""
        v2_hash = compute_ntlmv2_hash("Domain", "User", "Password")
        blob = build_ntlmv2_blob(CLIENT_NONCE, TARGET_INFO, b"\x00" * 8)
        response = compute_ntlmv2_response(v2_hash, SERVER_CHALLENGE, blob)
        assert response[:16] == bytes.fromhex("68cd0ab851e51c96aabc927bebef6a1c")
        assert response[16:] == blob


@pytest.mark.skipif(not md4_available(), reason="MD4 not available")
class TestNTLMv2ResponseProvider:
    """Tests for the default response provider."""

    def test_satisfies_protocol(self):
        """Test provider matches the ResponseProvider interface."""
        assert isinstance(NTLMv2ResponseProvider(), ResponseProvider)

    def test_lmv2_matches_helpers(self):
        """Test provider LMv2 equals the MS-NLMP vector."""
        provider = NTLMv2ResponseProvider()
        response = provider.lmv2_response("Domain", "User", "Password", SERVER_CHALLENGE, CLIENT_NONCE)
        assert response.hex() == "86c35097ac9cec102554764a57cccc19aaaaaaaaaaaaaaaa"

    def test_ntlmv2_uses_clock(self):
        """Test the injected clock sets the blob timestamp."""
        now = datetime(2020, 1, 1, tzinfo=timezone.utc)
        provider = NTLMv2ResponseProvider(clock=lambda: now)
        response = provider.ntlmv2_response(
            "Domain", "User", "Password", TARGET_INFO, SERVER_CHALLENGE, CLIENT_NONCE
        )
        v2_hash = compute_ntlmv2_hash("Domain", "User", "Password")
        blob = build_ntlmv2_blob(CLIENT_NONCE, TARGET_INFO, filetime(now))
        assert response == compute_ntlmv2_response(v2_hash, SERVER_CHALLENGE, blob)
