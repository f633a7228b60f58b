"""
WebSocket transport for the stream consumer.

The consumer does not talk to ``websockets`` directly. It asks a transport
factory for a connection and receives lifecycle notifications through a
``TransportHandlers`` bundle:

- on_open(): the handshake completed
- on_message(text): one inbound frame
- on_error(exc): the connection failed or dropped abnormally
- on_close(code, reason): the connection ended cleanly

``WebSocketTransport`` implements this on top of ``websockets.connect`` with a
reader task on the running event loop. Frames are delivered one at a time
and each handler call completes before the next frame is read.

Example:
    ```python
    handlers = TransportHandlers(
        on_open=lambda: print("open"),
        on_message=print,
        on_error=lambda exc: print("failed", exc),
        on_close=lambda code, reason: print("closed", code),
    )
    transport = WebSocketTransport("ws://localhost:8080/api/v1/logs/stream?selector=app%3Dweb", handlers)
    ...
    transport.close()
    ```
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

import websockets
from websockets.exceptions import ConnectionClosedError

from .constants import (
    WEBSOCKET_OPEN_TIMEOUT_SECONDS, WEBSOCKET_PING_INTERVAL_SECONDS,
    WEBSOCKET_PING_TIMEOUT_SECONDS
)
from .logsetup import log_exception

log = logging.getLogger('podweave.transport')


@dataclass
class TransportHandlers:
    on_open: Callable[[], None]
    on_message: Callable[[str], None]
    on_error: Callable[[BaseException], None]
    on_close: Callable[[Optional[int], str], None]


class Transport(ABC):
    """Interface of a live connection handed out by a transport factory."""

    @abstractmethod
    def close(self) -> None:
        """Request the connection to close. Must not block."""


TransportFactory = Callable[[str, TransportHandlers], Transport]


class WebSocketTransport(Transport):
    """
    One websocket connection driven by a background reader task.

    The connection attempt starts as soon as the object is created, so it
    must be created while an asyncio event loop is running. ``close`` cancels
    the reader task; leaving the ``websockets.connect`` context then closes
    the socket. No handler is called after ``close``.
    """

    def __init__(self, url: str, handlers: TransportHandlers):
        self.url = url
        self.handlers = handlers
        self._closing = False
        self._task: asyncio.Task = asyncio.get_running_loop().create_task(self._run())

    @property
    def done(self) -> bool:
        return self._task.done()

    def close(self) -> None:
        if self._closing:
            return
        self._closing = True
        if not self._task.done():
            self._task.cancel()

    async def wait_closed(self) -> None:
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        try:
            async with websockets.connect(
                self.url,
                ping_interval=WEBSOCKET_PING_INTERVAL_SECONDS,
                ping_timeout=WEBSOCKET_PING_TIMEOUT_SECONDS,
                open_timeout=WEBSOCKET_OPEN_TIMEOUT_SECONDS,
            ) as ws:
                log.debug(f"[transport] connected to {self.url}")
                self._dispatch(self.handlers.on_open)
                async for message in ws:
                    if isinstance(message, bytes):
                        message = message.decode('utf-8', 'replace')
                    self._dispatch(self.handlers.on_message, message)
                code, reason = ws.close_code, ws.close_reason or ''
        except asyncio.CancelledError:
            log.debug(f"[transport] connection to {self.url} cancelled")
            raise
        except ConnectionClosedError as e:
            log_exception(f"[transport] connection to {self.url} dropped", e, logger=log)
            self._dispatch(self.handlers.on_error, e)
            return
        except Exception as e:
            log_exception(f"[transport] connection to {self.url} failed", e, logger=log)
            self._dispatch(self.handlers.on_error, e)
            return
        log.debug(f"[transport] connection to {self.url} closed code={code} reason={reason!r}")
        self._dispatch(self.handlers.on_close, code, reason)

    def _dispatch(self, handler: Callable, *args) -> None:
        if self._closing:
            return
        handler(*args)
