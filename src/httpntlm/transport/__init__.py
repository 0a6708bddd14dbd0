"""
httpntlm Transport Layer

Ready-made transports. Any callable taking a RequestDescription and
returning a response (or an awaitable of one) works as well.

Components:
- httpx_transport: httpx.AsyncClient-backed transport
"""

from httpntlm.transport.httpx_transport import HttpxTransport

__all__ = [
    "HttpxTransport",
]
