"""
Pytest configuration and shared fixtures for ntlmcodec tests.
"""

import pytest

from ntlmcodec.core.encoding import EncodingConfig
from ntlmcodec.ntlm.client import NTLMClient

from tests.helpers import (
    NTLM,
    UNICODE,
    FakeRandomSource,
    FakeResponseProvider,
    make_challenge_bytes,
)


# =============================================================================
# COLLABORATOR FIXTURES
# =============================================================================


@pytest.fixture
def fake_random() -> FakeRandomSource:
    """Deterministic random source."""
    return FakeRandomSource(values=[b"\x11" * 8, b"\x22" * 8])


@pytest.fixture
def fake_provider() -> FakeResponseProvider:
    """Response provider returning fixed 24-byte responses."""
    return FakeResponseProvider()


@pytest.fixture
def latin1_config() -> EncodingConfig:
    """OEM encoding config using Latin-1."""
    return EncodingConfig(oem_encoding="latin-1")


# =============================================================================
# CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def ntlm_client(fake_provider, fake_random) -> NTLMClient:
    """Handshake client with deterministic collaborators."""
    return NTLMClient(
        domain="example",
        workstation="ws1",
        provider=fake_provider,
        random_source=fake_random,
    )


# =============================================================================
# MESSAGE FIXTURES
# =============================================================================


@pytest.fixture
def unicode_challenge_bytes() -> bytes:
    """Full CHALLENGE_MESSAGE negotiating Unicode with target info."""
    return make_challenge_bytes(
        flags=UNICODE | NTLM,
        target="EXAMPLE".encode("utf-16-le"),
        challenge=bytes(range(1, 9)),
        context=b"\x00" * 8,
        target_info=b"\x02\x00\x04\x00E\x00X\x00\x00\x00\x00\x00",
    )

