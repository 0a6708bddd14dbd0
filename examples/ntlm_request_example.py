#!/usr/bin/env python3
"""
NTLM Request Example

Demonstrates how to call an NTLM-protected endpoint with httpntlm.

Features:
1. Full negotiate / challenge / authenticate handshake over httpx
2. Future and callback completion styles
3. Strict vs lenient handling of a 401 without challenge
4. Inspecting the NTLM messages on the wire

The server side is simulated with httpx.MockTransport so the example
runs without network access. Point INTRANET_URL at a real server and
drop the mock to use it for real.
"""

import asyncio

import httpx

import httpntlm
from httpntlm import NTLMHttpClient
from httpntlm.core.types import RequestDescription
from httpntlm.ntlm import (
    AVPair,
    AVPairType,
    AuthenticateMessage,
    ChallengeMessage,
    NegotiateFlags,
    extract_token,
    to_header,
)
from httpntlm.ntlm.messages import build_av_pairs
from httpntlm.transport import HttpxTransport


INTRANET_URL = "https://intranet.example.com/reports/q3"

CREDENTIALS = {
    "username": "jdoe",
    # NT hash of "Password"; a plain "password" works too where MD4 is available
    "nt_password": "a4f49c406510bdcab6824ee7c30fd852",
    "domain": "EXAMPLE",
    "workstation": "LAPTOP01",
}


def fake_intranet(request: httpx.Request) -> httpx.Response:
    """Minimal NTLM server: challenge Type 1, accept any Type 3."""
    authorization = request.headers.get("authorization", "")
    token = extract_token(authorization) if authorization else b""

    if token[8:9] == b"\x01":
        challenge = ChallengeMessage(
            negotiate_flags=int(
                NegotiateFlags.NEGOTIATE_UNICODE
                | NegotiateFlags.NEGOTIATE_NTLM
                | NegotiateFlags.NEGOTIATE_TARGET_INFO
                | NegotiateFlags.NEGOTIATE_KEY_EXCH
            ),
            server_challenge=bytes.fromhex("0123456789abcdef"),
            target_name="EXAMPLE",
            target_info=build_av_pairs(
                [AVPair(AVPairType.MsvAvNbDomainName.value, "EXAMPLE".encode("utf-16-le"))]
            ),
        )
        return httpx.Response(401, headers={"WWW-Authenticate": to_header(challenge.to_bytes())})

    if token[8:9] == b"\x03":
        msg = AuthenticateMessage.from_bytes(token)
        return httpx.Response(200, text=f"Q3 report for {msg.domain_name}\\{msg.user_name}")

    # No NTLM at all: a 401 whose headers a browser-style CORS policy hid
    return httpx.Response(401)


async def main():
    """Demonstrate NTLM-authenticated requests."""

    print("=" * 70)
    print("httpntlm - NTLM Authentication over HTTP")
    print("=" * 70)
    print()

    client = httpx.AsyncClient(transport=httpx.MockTransport(fake_intranet))

    async with HttpxTransport(client=client) as transport:
        ntlm_client = NTLMHttpClient(transport=transport)

        # ==========================================================================
        # EXAMPLE 1: Await the future
        # ==========================================================================
        print("1. Await the response")
        print("-" * 40)

        response = await ntlm_client.get({"url": INTRANET_URL, **CREDENTIALS})
        print(f"   Status: {response.status}")
        print(f"   Body: {response.body.decode()}")
        print()

        # ==========================================================================
        # EXAMPLE 2: Callback style
        # ==========================================================================
        print("2. Callback completion")
        print("-" * 40)

        def on_done(error, response):
            if error is not None:
                print(f"   Failed: {error}")
            else:
                print(f"   Callback got status {response.status}")

        await ntlm_client.post(
            {"url": INTRANET_URL, "body": b"filter=emea", **CREDENTIALS},
            on_done,
        )
        await asyncio.sleep(0)
        print()

        # ==========================================================================
        # EXAMPLE 3: Strict vs lenient
        # ==========================================================================
        print("3. 401 without challenge")
        print("-" * 40)

        class NoNTLM:
            """Strips the Authorization header so the server never challenges."""

            async def __call__(self, request):
                return await transport(
                    RequestDescription(
                        url=request.url, method=request.method
                    )
                )

        lenient = await ntlm_client.get(
            {"url": INTRANET_URL, "request": NoNTLM(), **CREDENTIALS}
        )
        print(f"   Lenient: handed back status {lenient.status}")

        try:
            await ntlm_client.get(
                {"url": INTRANET_URL, "request": NoNTLM(), "ntlm": {"strict": True}, **CREDENTIALS}
            )
        except httpntlm.ChallengeMissingError as e:
            print(f"   Strict: {e.message}")
        print()

        # ==========================================================================
        # EXAMPLE 4: Module-level API
        # ==========================================================================
        print("4. Module-level functions")
        print("-" * 40)

        previous = httpntlm.set_default_client(ntlm_client)
        try:
            response = await httpntlm.method("PROPFIND", {"url": INTRANET_URL, **CREDENTIALS})
            print(f"   PROPFIND status: {response.status}")
        finally:
            httpntlm.set_default_client(previous)
        print()

    print("=" * 70)
    print("Done")
    print("=" * 70)


if __name__ == "__main__":
    asyncio.run(main())
