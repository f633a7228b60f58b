"""
FastAPI server and WebSocket handling for Podweave.

This module provides the stream server: a websocket endpoint that selects
pods by label selector and fans their followed logs into one connection,
using the frame format described in ``podweave.frames``.

Key Components:
- ServerState: Kubernetes context, defaults and the active stream sessions
- StreamSession: Bookkeeping for one connected stream client
- stream_aggregated_logs: ``/api/v1/logs/stream`` websocket endpoint
- list_streams: ``/api/v1/logs/streams`` diagnostic endpoint
- run_server: Main server startup and configuration

Per connection the server sends one roster frame, then one log-line frame
per line from every running matched pod, and closes the websocket once all
followed logs have ended. Kubernetes failures are reported to the client as
``ERROR:`` text frames, never as HTTP errors.

Example:
    ```python
    await run_server(ServerConfig(host="0.0.0.0", port=8080, namespace="default", tail_lines=50))
    ```
"""

import asyncio
import concurrent.futures
import logging
import os
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Set

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from .kube import KubeContext, load_kube, list_selector_pods, stream_logs, split_timestamp
from .exceptions import InvalidSelectorError, KubernetesConnectionError, PodNotFoundError
from .frames import encode_error, encode_log_line, encode_roster
from .logsetup import log_exception, setup_logging
from .models import LogEntry, ServerConfig
from .pod_processing import roster_names, stream_targets
from .validation import validate_selector
from .constants import (
    DEFAULT_NAMESPACE, DEFAULT_TAIL_LINES, FAN_IN_QUEUE_SIZE, POLICY_VIOLATION_CLOSE_CODE,
    QUEUE_PUT_POLL_SECONDS, STREAM_PATH
)

# Logging setup (level via PODWEAVE_LOG_LEVEL env or default INFO)
setup_logging()
log = logging.getLogger('podweave.server')

# Fan-in queue markers
_STREAMS_ENDED = object()
_CLIENT_GONE = object()


@dataclass(eq=False)
class StreamSession:
    selector: str
    namespace: str
    pods: list = field(default_factory=list)
    lines_sent: int = 0
    started: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'selector': self.selector,
            'namespace': self.namespace,
            'pods': list(self.pods),
            'linesSent': self.lines_sent,
            'ageSeconds': int(time.time() - self.started),
        }


class ServerState:
    """
    Central state of the stream server.

    Attributes:
        kube: Kubernetes clients (None until run_server loads them)
        namespace: Namespace used when a client does not send one
        tail_lines: History lines requested per pod when following starts
        sessions: Stream sessions currently connected
    """

    def __init__(self):
        self.kube: Optional[KubeContext] = None
        self.namespace: str = DEFAULT_NAMESPACE
        self.tail_lines: int = DEFAULT_TAIL_LINES
        self.sessions: Set[StreamSession] = set()


state = ServerState()
app = FastAPI()


@app.get('/api/v1/logs/streams')
async def list_streams():
    return {'streams': [s.to_dict() for s in state.sessions]}


@app.websocket(STREAM_PATH)
async def stream_aggregated_logs(ws: WebSocket, selector: str = '', namespace: str = ''):
    namespace = namespace.strip() or state.namespace
    log.info(f"[ws] aggregated logs request: selector={selector!r} namespace={namespace!r}")
    try:
        selector = validate_selector(selector)
    except InvalidSelectorError as e:
        log.warning(f"[ws] rejecting stream request: {e}")
        await ws.close(code=POLICY_VIOLATION_CLOSE_CODE)
        return

    await ws.accept()
    session = StreamSession(selector=selector, namespace=namespace)
    state.sessions.add(session)
    try:
        await _serve_stream(ws, session)
    except WebSocketDisconnect:
        log.info(f"[ws] client disconnected (selector={selector!r})")
    except Exception as e:
        log_exception(f"[ws] stream for selector={selector!r} failed", e, logger=log)
    finally:
        state.sessions.discard(session)
        log.info(f"[ws] stream for selector={selector!r} finished after {session.lines_sent} lines")


async def _send_error_and_close(ws: WebSocket, message: str) -> None:
    log.warning(f"[ws] sending error: {message}")
    await ws.send_text(encode_error(message))
    await ws.close()


async def _watch_disconnect(ws: WebSocket, queue: asyncio.Queue) -> None:
    """Read (and ignore) client frames until the client goes away."""
    try:
        while True:
            msg = await ws.receive()
            if msg.get('type') == 'websocket.disconnect':
                break
    except Exception as e:
        log.debug(f"[ws] receive loop ended: {e.__class__.__name__}: {e}")
    await queue.put(_CLIENT_GONE)


def put_blocking(loop: asyncio.AbstractEventLoop, queue: asyncio.Queue, item: Any, stop: threading.Event) -> bool:
    """
    Put ``item`` on a bounded loop queue from a worker thread.

    Blocks the calling thread while the queue is full, so a slow client slows
    the log followers down instead of growing memory. Gives up once ``stop``
    is set.

    Returns:
        bool: True if the item was queued
    """
    future = asyncio.run_coroutine_threadsafe(queue.put(item), loop)
    while True:
        try:
            future.result(timeout=QUEUE_PUT_POLL_SECONDS)
            return True
        except concurrent.futures.TimeoutError:
            if stop.is_set():
                future.cancel()
                return False
        except concurrent.futures.CancelledError:
            return False


async def _wait_followers(followers, queue: asyncio.Queue) -> None:
    await asyncio.gather(*followers, return_exceptions=True)
    await queue.put(_STREAMS_ENDED)


async def _select_pods(session: StreamSession) -> list:
    pods = await list_selector_pods(state.kube.core, session.namespace, session.selector)
    log.info(f"[kube] found {len(pods)} pods matching selector {session.selector}")
    if not pods:
        raise PodNotFoundError(f"No pods found matching selector: {session.selector}")
    return pods


async def _serve_stream(ws: WebSocket, session: StreamSession) -> None:
    if state.kube is None:
        await _send_error_and_close(ws, "Client not ready: Kubernetes configuration not loaded")
        return

    try:
        pods = await _select_pods(session)
    except PodNotFoundError as e:
        await _send_error_and_close(ws, str(e))
        return
    except Exception as e:
        log_exception(f"[kube] Failed to list pods with selector {session.selector}", e, logger=log)
        await _send_error_and_close(ws, f"Failed to list pods: {e}")
        return

    session.pods = roster_names(pods)
    await ws.send_text(encode_roster(session.pods))

    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue(maxsize=FAN_IN_QUEUE_SIZE)
    stop = threading.Event()

    def line_callback(pod: str, container: str):
        def on_line(line: str) -> None:
            timestamp, message = split_timestamp(line)
            put_blocking(loop, queue, LogEntry(pod, container, message, timestamp), stop)
        return on_line

    followers = [
        asyncio.ensure_future(stream_logs(
            state.kube.core, session.namespace, pod, container,
            line_callback(pod, container), stop, tail_lines=state.tail_lines
        ))
        for pod, container in stream_targets(pods)
    ]
    log.info(f"[kube] following {len(followers)} of {len(pods)} pods for selector {session.selector}")
    watcher = asyncio.ensure_future(_watch_disconnect(ws, queue))
    waiter = asyncio.ensure_future(_wait_followers(followers, queue))

    try:
        while True:
            item = await queue.get()
            if item is _CLIENT_GONE:
                log.info(f"[ws] client disconnected (selector={session.selector!r})")
                return
            if item is _STREAMS_ENDED:
                log.info(f"[ws] all log streams ended for selector {session.selector}")
                await ws.close()
                return
            await ws.send_text(encode_log_line(item))
            session.lines_sent += 1
    finally:
        stop.set()
        pending = [task for task in (watcher, waiter, *followers) if not task.done()]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)


async def run_server(config: ServerConfig) -> None:
    """Run the Podweave stream server with proper error handling."""
    try:
        state.kube = await load_kube(config.kubeconfig, config.context)
    except Exception as e:
        log_exception("[server] Failed to load Kubernetes configuration", e, logger=log)
        raise KubernetesConnectionError(f"Failed to connect to Kubernetes: {e}")

    setup_logging(config.log_level)
    state.namespace = config.namespace
    state.tail_lines = config.tail_lines
    log.info(f"[server] default namespace={state.namespace} tail_lines={state.tail_lines}")

    import uvicorn
    uvicorn_log_level = os.getenv('PODWEAVE_UVICORN_LEVEL', config.uvicorn_log_level)
    uv_config = uvicorn.Config(app, host=config.host, port=config.port, log_level=uvicorn_log_level)
    server = uvicorn.Server(uv_config)
    await server.serve()
