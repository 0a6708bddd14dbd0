"""
httpntlm Transport Invoker

Adapts an injected transport to one contract:
``invoke(request) -> Result[Response, HttpNtlmError]``.

Transports disagree on how they report HTTP errors. Some return every
response; others raise for non-2xx with the response attached (for
example ``httpx.HTTPStatusError``). A raised 401 is the expected
mid-handshake answer, so it is turned back into a successful outcome.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Optional, Union

import attrs
import structlog
from returns.result import Failure, Result, Success

from httpntlm.core.exceptions import ConfigurationError, HttpNtlmError, TransportError
from httpntlm.core.types import RequestDescription, RequestOptions, Response

logger = structlog.get_logger()


Transport = Callable[[RequestDescription], Union[Awaitable[Any], Any]]

UNAUTHORIZED = 401


def resolve_transport(
    options: RequestOptions,
    default: Optional[Transport] = None,
) -> Transport:
    """
    Pick the transport for a call: the options' own, else the client default.

    Raises:
        ConfigurationError: If neither is available
    """
    transport = options.transport or default
    if transport is None:
        raise ConfigurationError(
            "No transport provided: pass one in the request options or to NTLMHttpClient"
        )
    if not callable(transport):
        raise ConfigurationError(f"Transport {transport!r} is not callable")
    return transport


def _is_async(transport: Transport) -> bool:
    return inspect.iscoroutinefunction(transport) or inspect.iscoroutinefunction(
        getattr(transport, "__call__", None)
    )


@attrs.define
class TransportInvoker:
    """Calls the transport once per physical request and normalizes the outcome."""

    transport: Transport
    _logger: Any = attrs.Factory(lambda: structlog.get_logger())

    async def invoke(self, request: RequestDescription) -> Result[Response, HttpNtlmError]:
        try:
            native = await self._call(request)
        except HttpNtlmError as e:
            return Failure(e)
        except asyncio.TimeoutError:
            self._logger.warning("transport_timeout", url=request.url, timeout=request.timeout)
            return Failure(
                TransportError(f"Request to {request.url} timed out after {request.timeout}s")
            )
        except Exception as e:
            return self._from_exception(request, e)

        try:
            return Success(Response.from_native(native))
        except (TypeError, ValueError) as e:
            return Failure(TransportError(f"Transport returned an unusable response: {e}"))

    async def _call(self, request: RequestDescription) -> Any:
        exchange = self._exchange(request)
        if request.timeout is None:
            return await exchange
        return await asyncio.wait_for(exchange, request.timeout)

    async def _exchange(self, request: RequestDescription) -> Any:
        if _is_async(self.transport):
            outcome = self.transport(request)
        else:
            # Blocking transports run off the event loop
            outcome = await asyncio.to_thread(self.transport, request)
        if inspect.isawaitable(outcome):
            outcome = await outcome
        return outcome

    def _from_exception(
        self, request: RequestDescription, error: Exception
    ) -> Result[Response, HttpNtlmError]:
        native = getattr(error, "response", None)
        if native is None:
            self._logger.warning(
                "transport_error",
                url=request.url,
                error=str(error),
                error_type=type(error).__name__,
            )
            failure = TransportError(f"Transport failed: {error}")
            failure.__cause__ = error
            return Failure(failure)

        try:
            response = Response.from_native(native)
        except (TypeError, ValueError):
            failure = TransportError(f"Transport failed: {error}", response=native)
            failure.__cause__ = error
            return Failure(failure)

        if response.status == UNAUTHORIZED:
            return Success(response)

        self._logger.info(
            "transport_error_response",
            url=request.url,
            status=response.status,
        )
        failure = TransportError(
            f"Transport failed with HTTP {response.status}: {error}",
            response=response,
        )
        failure.__cause__ = error
        return Failure(failure)
