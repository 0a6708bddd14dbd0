"""
httpntlm Option Merge Policy

Turns one logical call (RequestOptions) into the physical request of each
handshake step.

Rules:
- NTLM-only options (credentials, mode, transport) never reach the transport
- Strict negotiate: caller headers and body are dropped
- Lenient negotiate: caller headers are merged under the generated ones and
  the body is sent, so a server that needs no challenge gets a complete request
- Authenticate: caller headers (under the generated ones) and body are sent
- Redirect following is disabled on every step so the handshake sees 3xx
"""

from __future__ import annotations

from httpntlm.core.types import Headers, RequestDescription, RequestOptions


DEFAULT_METHOD = "GET"

KEEP_ALIVE = "keep-alive"
CLOSE = "Close"


def _describe(
    options: RequestOptions,
    generated: Headers,
    include_caller_content: bool,
) -> RequestDescription:
    if include_caller_content:
        headers = options.headers.merged(generated)
        body = options.body
    else:
        headers = generated
        body = None

    return RequestDescription(
        url=options.url,
        method=options.method or DEFAULT_METHOD,
        headers=headers,
        body=body,
        timeout=options.timeout,
        follow_redirects=False,
        extra=options.extra,
    )


def build_negotiate_request(options: RequestOptions, authorization: str) -> RequestDescription:
    """Request carrying the NEGOTIATE_MESSAGE (step 1)."""
    generated = Headers({"Connection": KEEP_ALIVE, "Authorization": authorization})
    return _describe(options, generated, include_caller_content=not options.is_strict)


def build_authenticate_request(options: RequestOptions, authorization: str) -> RequestDescription:
    """Request carrying the AUTHENTICATE_MESSAGE (step 3)."""
    generated = Headers({"Connection": CLOSE, "Authorization": authorization})
    return _describe(options, generated, include_caller_content=True)
