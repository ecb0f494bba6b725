#!/usr/bin/env python3
"""
NTLM Handshake Example

Demonstrates the client side of an NTLMSSP exchange as used by
"AUTH NTLM" in SMTP or IMAP:

1. Build the NEGOTIATE_MESSAGE
2. Parse the server's CHALLENGE_MESSAGE
3. Build the AUTHENTICATE_MESSAGE
4. Export the handshake trace

The server side is simulated with a canned CHALLENGE_MESSAGE, so no
network access is needed. Responses require MD4 from the runtime.
"""

import base64

from returns.result import Success

from ntlmcodec import ChallengeMessage, NegotiateFlags, NTLMClient


def canned_challenge() -> bytes:
    """CHALLENGE_MESSAGE a Unicode-capable server would send."""
    return ChallengeMessage(
        flags=NegotiateFlags.NEGOTIATE_UNICODE.value | NegotiateFlags.NEGOTIATE_NTLM.value,
        challenge=bytes.fromhex("0123456789abcdef"),
        target="EXAMPLE",
        target_information=b"\x00\x00\x00\x00",
    ).to_bytes()


def main():
    """Run one handshake and print each message base64-encoded."""

    print("=" * 70)
    print("ntlmcodec - NTLM Handshake")
    print("=" * 70)
    print()

    client = NTLMClient(domain="EXAMPLE", workstation="WS1")

    print("1. NEGOTIATE")
    print("-" * 40)
    negotiate = client.create_negotiate().unwrap()
    print(f"   C: {base64.b64encode(negotiate).decode()}")
    print()

    print("2. CHALLENGE")
    print("-" * 40)
    challenge_bytes = canned_challenge()
    print(f"   S: {base64.b64encode(challenge_bytes).decode()}")
    result = client.process_challenge(challenge_bytes)
    if isinstance(result, Success):
        challenge = result.unwrap()
        print(f"   Target: {challenge.target}")
        print(f"   Unicode: {challenge.negotiated_unicode}")
    else:
        print(f"   Rejected: {result.failure()}")
        return
    print()

    print("3. AUTHENTICATE")
    print("-" * 40)
    authenticate = client.create_authenticate("jdoe", "secret").unwrap()
    print(f"   C: {base64.b64encode(authenticate).decode()}")
    print()

    print("4. Trace")
    print("-" * 40)
    for transition in client.get_trace():
        print(f"   {transition['from_state']} -> {transition['to_state']}")


if __name__ == "__main__":
    main()
