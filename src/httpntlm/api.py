"""
httpntlm Request Facade

Per-verb entry points that run the NTLM handshake and report the outcome
through an asyncio future and, optionally, a node-style callback.

Example:
    async def main():
        async with HttpxTransport() as transport:
            client = NTLMHttpClient(transport=transport)
            response = await client.get({
                "url": "https://intranet.example.com/",
                "username": "jdoe",
                "password": "secret",
                "domain": "EXAMPLE",
            })
            print(response.status)

Every entry point must be called from a running event loop. Completion
is always asynchronous: the callback runs from the loop after the entry
point has returned, even for errors detected before any request is sent.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional, Set

import attrs
import structlog
from returns.result import Failure, Result

from httpntlm.core.config import HandshakeConfig
from httpntlm.core.exceptions import ConfigurationError, HttpNtlmError
from httpntlm.core.types import RequestOptions, Response
from httpntlm.handshake.invoker import Transport, resolve_transport
from httpntlm.handshake.machine import Handshake
from httpntlm.ntlm.codec import NTLMCodec, NTLMv2Codec

logger = structlog.get_logger()


# callback(error, response): exactly one of the two is not None
Callback = Callable[[Optional[BaseException], Optional[Response]], Any]


def _completion_callback(callback: Callback) -> Callable[["asyncio.Future[Response]"], None]:
    def _on_done(future: "asyncio.Future[Response]") -> None:
        if future.cancelled():
            callback(asyncio.CancelledError(), None)
            return
        error = future.exception()
        if error is not None:
            callback(error, None)
        else:
            callback(None, future.result())

    return _on_done


@attrs.define
class NTLMHttpClient:
    """
    NTLM-over-HTTP client.

    Attributes:
        transport: Default transport for calls whose options carry none
        codec: NTLM message codec
        config: Handshake settings shared by all calls

    The client holds no per-call state; concurrent calls run independent
    handshakes.
    """

    transport: Optional[Transport] = None
    codec: NTLMCodec = attrs.Factory(NTLMv2Codec)
    config: HandshakeConfig = attrs.Factory(HandshakeConfig)
    _tasks: Set["asyncio.Task[Response]"] = attrs.field(factory=set, repr=False)
    _logger: Any = attrs.Factory(lambda: structlog.get_logger())

    async def handshake(self, options: Any) -> Result[Response, HttpNtlmError]:
        """
        Run one logical call and return its result without raising.

        Args:
            options: RequestOptions or a mapping accepted by
                RequestOptions.from_mapping

        Returns:
            Success(Response) or Failure(HttpNtlmError)
        """
        try:
            opts = RequestOptions.coerce(options)
            transport = resolve_transport(opts, self.transport)
        except ConfigurationError as e:
            self._logger.warning("handshake_not_started", error=e.message)
            return Failure(e)

        return await Handshake(
            options=opts,
            transport=transport,
            codec=self.codec,
            config=self.config,
        ).run()

    def request(
        self, options: Any, callback: Optional[Callback] = None
    ) -> "asyncio.Future[Response]":
        """Run the call with the method given in ``options`` (GET if none)."""
        return self._submit(options, None, callback)

    def method(
        self, verb: str, options: Any, callback: Optional[Callback] = None
    ) -> "asyncio.Future[Response]":
        """Run the call with ``verb`` unless ``options`` names a method itself."""
        return self._submit(options, verb.upper(), callback)

    def get(self, options: Any, callback: Optional[Callback] = None) -> "asyncio.Future[Response]":
        return self.method("GET", options, callback)

    def put(self, options: Any, callback: Optional[Callback] = None) -> "asyncio.Future[Response]":
        return self.method("PUT", options, callback)

    def patch(self, options: Any, callback: Optional[Callback] = None) -> "asyncio.Future[Response]":
        return self.method("PATCH", options, callback)

    def post(self, options: Any, callback: Optional[Callback] = None) -> "asyncio.Future[Response]":
        return self.method("POST", options, callback)

    def delete(self, options: Any, callback: Optional[Callback] = None) -> "asyncio.Future[Response]":
        return self.method("DELETE", options, callback)

    def options(self, options: Any, callback: Optional[Callback] = None) -> "asyncio.Future[Response]":
        return self.method("OPTIONS", options, callback)

    def _submit(
        self,
        options: Any,
        default_method: Optional[str],
        callback: Optional[Callback],
    ) -> "asyncio.Future[Response]":
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._perform(options, default_method))

        # The loop only keeps weak references to tasks
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        if callback is not None:
            task.add_done_callback(_completion_callback(callback))
        return task

    async def _perform(self, options: Any, default_method: Optional[str]) -> Response:
        opts = RequestOptions.coerce(options, default_method)
        result = await self.handshake(opts)
        if isinstance(result, Failure):
            raise result.failure()
        return result.unwrap()


# =============================================================================
# MODULE-LEVEL API
# =============================================================================


_default_client = NTLMHttpClient()


def get_default_client() -> NTLMHttpClient:
    """Client used by the module-level functions."""
    return _default_client


def set_default_client(client: NTLMHttpClient) -> NTLMHttpClient:
    """
    Replace the client used by the module-level functions.

    Returns:
        The previous default client
    """
    global _default_client
    previous, _default_client = _default_client, client
    return previous


def request(options: Any, callback: Optional[Callback] = None) -> "asyncio.Future[Response]":
    return _default_client.request(options, callback)


def method(verb: str, options: Any, callback: Optional[Callback] = None) -> "asyncio.Future[Response]":
    return _default_client.method(verb, options, callback)


def get(options: Any, callback: Optional[Callback] = None) -> "asyncio.Future[Response]":
    return _default_client.get(options, callback)


def put(options: Any, callback: Optional[Callback] = None) -> "asyncio.Future[Response]":
    return _default_client.put(options, callback)


def patch(options: Any, callback: Optional[Callback] = None) -> "asyncio.Future[Response]":
    return _default_client.patch(options, callback)


def post(options: Any, callback: Optional[Callback] = None) -> "asyncio.Future[Response]":
    return _default_client.post(options, callback)


def delete(options: Any, callback: Optional[Callback] = None) -> "asyncio.Future[Response]":
    return _default_client.delete(options, callback)


def options(options: Any, callback: Optional[Callback] = None) -> "asyncio.Future[Response]":
    return _default_client.options(options, callback)
