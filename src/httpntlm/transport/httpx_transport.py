"""
httpntlm httpx Transport

Ready-made transport over ``httpx.AsyncClient``.

NTLM authenticates a connection, not a request, so the negotiate and
authenticate requests should travel over the same connection. One
pooled AsyncClient per transport keeps it alive between the steps.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import attrs
import httpx
import structlog

from httpntlm.core.types import RequestDescription

logger = structlog.get_logger()


def _default_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(follow_redirects=False)


def _timeout(seconds: Optional[float]) -> Any:
    # None in httpx disables timeouts; keep the client's own instead
    return httpx.USE_CLIENT_DEFAULT if seconds is None else seconds


@attrs.define
class HttpxTransport:
    """
    Async transport backed by httpx.

    Attributes:
        client: AsyncClient to send through (closed by ``aclose``)
        raise_for_status: Raise ``httpx.HTTPStatusError`` for non-2xx
            instead of returning them; the handshake still treats a
            raised 401 as the challenge

    Bodies: ``bytes``/``str`` are sent as content, anything else as JSON.
    Entries in ``RequestDescription.extra`` are passed to
    ``AsyncClient.request`` as keyword arguments (e.g. ``params``,
    ``cookies``, ``extensions``).
    """

    client: httpx.AsyncClient = attrs.Factory(_default_client)
    raise_for_status: bool = False
    _logger: Any = attrs.Factory(lambda: structlog.get_logger())

    async def __call__(self, request: RequestDescription) -> httpx.Response:
        kwargs: Dict[str, Any] = dict(request.extra)
        if isinstance(request.body, (bytes, str)):
            kwargs["content"] = request.body
        elif request.body is not None:
            kwargs["json"] = request.body

        response = await self.client.request(
            request.method,
            request.url,
            headers=list(request.headers.items()),
            timeout=_timeout(request.timeout),
            follow_redirects=request.follow_redirects,
            **kwargs,
        )
        self._logger.debug(
            "httpx_response",
            url=request.url,
            method=request.method,
            status=response.status_code,
            http_version=response.http_version,
        )

        if self.raise_for_status:
            response.raise_for_status()
        return response

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "HttpxTransport":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
