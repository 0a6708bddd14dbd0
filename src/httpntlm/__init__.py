"""
httpntlm - NTLM Authentication over HTTP

Runs the NTLM negotiate / challenge / authenticate handshake on top of any
HTTP transport the caller supplies.

Example Usage:
    import asyncio
    import httpntlm
    from httpntlm.transport import HttpxTransport

    async def main():
        async with HttpxTransport() as transport:
            response = await httpntlm.get({
                "url": "https://intranet.example.com/report",
                "username": "jdoe",
                "password": "secret",
                "domain": "EXAMPLE",
                "request": transport,
            })
            print(response.status, response.body)

    asyncio.run(main())
"""

from httpntlm import ntlm
from httpntlm.api import (
    NTLMHttpClient,
    delete,
    get,
    get_default_client,
    method,
    options,
    patch,
    post,
    put,
    request,
    set_default_client,
)
from httpntlm.core.config import HandshakeConfig
from httpntlm.core.exceptions import (
    ChallengeDecodeError,
    ChallengeMissingError,
    CodecError,
    ConfigurationError,
    HttpNtlmError,
    TooManyRedirectsError,
    TransportError,
)
from httpntlm.core.types import Headers, NTLMMode, RequestOptions, Response

__version__ = "0.1.0"

__all__ = [
    # Main API
    "NTLMHttpClient",
    "request",
    "method",
    "get",
    "put",
    "patch",
    "post",
    "delete",
    "options",
    "get_default_client",
    "set_default_client",
    # Types
    "HandshakeConfig",
    "Headers",
    "NTLMMode",
    "RequestOptions",
    "Response",
    # Exceptions
    "HttpNtlmError",
    "ConfigurationError",
    "TransportError",
    "ChallengeMissingError",
    "ChallengeDecodeError",
    "CodecError",
    "TooManyRedirectsError",
    # Message codec, for callers driving NTLM themselves
    "ntlm",
    # Metadata
    "__version__",
]
