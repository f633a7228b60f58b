"""
Aggregated log stream consumer.

This module turns the live websocket stream of a Podweave server into an
observable view: an ordered, bounded, pausable list of color-annotated log
lines plus the connection state, the pod roster and the last error.

Key Components:
- build_stream_url: Build the websocket URL for a selector and namespace
- AggregatedLogStream: Owns one connection at a time and the view state

At most one connection is live per AggregatedLogStream. Every connection
attempt is tagged with a generation number; callbacks from a connection whose
generation is no longer current are ignored, so late events from a superseded
connection can never touch the view.

Failures never raise out of the stream. They show up as
``ConnectionState.ERRORED`` and ``last_error`` in the view state, and
recovery is always explicit: connect again (new parameters) or create a new
stream.

Example:
    ```python
    stream = AggregatedLogStream("http://localhost:8080", "app=web", "prod")
    unsubscribe = stream.subscribe(lambda view: render(view))
    ...
    stream.pause()
    stream.resume()
    stream.dispose()
    ```
"""

import logging
from typing import Callable, List, Optional, Sequence
from urllib.parse import quote

from .buffers import DisplayBuffer, PauseController, SAME_AS_DISPLAY
from .colors import PodColorAssigner
from .constants import (
    CONNECTION_FAILED_MESSAGE, DEFAULT_BUFFER_CAPACITY, DEFAULT_NAMESPACE,
    DEFAULT_PALETTE, STREAM_PATH
)
from .frames import ErrorFrame, LogLineFrame, RosterFrame, UnrecognizedFrame, classify_frame
from .logsetup import log_exception
from .models import ConnectionState, DisplayLine, StreamRoster, ViewState
from .transport import Transport, TransportFactory, TransportHandlers, WebSocketTransport
from .validation import validate_server_url

log = logging.getLogger('podweave.stream')

Listener = Callable[[ViewState], None]

_STREAM_SCHEMES = {'http': 'ws', 'https': 'wss', 'ws': 'ws', 'wss': 'wss'}


def build_stream_url(base_url: str, selector: str, namespace: str) -> str:
    """
    Build the websocket URL of the aggregated stream.

    The websocket scheme follows the base URL's transport security:
    ``http`` becomes ``ws`` and ``https`` becomes ``wss``. Selector and
    namespace are percent-encoded with no safe characters.

    Example:
        ```python
        build_stream_url("https://dash.example.com", "app=web", "prod")
        # "wss://dash.example.com/api/v1/logs/stream?selector=app%3Dweb&namespace=prod"
        ```
    """
    base_url = validate_server_url(base_url)
    scheme, rest = base_url.split('://', 1)
    scheme = _STREAM_SCHEMES[scheme.lower()]
    return f"{scheme}://{rest}{STREAM_PATH}?selector={quote(selector, safe='')}&namespace={quote(namespace, safe='')}"


class AggregatedLogStream:
    """
    Consumer of one aggregated log stream at a time.

    Attributes:
        base_url: Server base URL the stream URLs are built from
        selector: Label selector of the current connection (None when idle)
        namespace: Namespace of the current connection
        colors: Pod color assigner, reset for every new connection
        display: Bounded buffer of displayed lines
        controller: Pause/resume controller owning the pending buffer
        roster: Pods reported by the server for the current connection
        state: Current connection state
        last_error: Current user-visible error, if any
    """

    def __init__(
        self,
        base_url: str,
        selector: Optional[str] = None,
        namespace: str = DEFAULT_NAMESPACE,
        *,
        capacity: int = DEFAULT_BUFFER_CAPACITY,
        pending_capacity: Optional[int] = SAME_AS_DISPLAY,
        palette: Sequence[str] = DEFAULT_PALETTE,
        transport_factory: TransportFactory = WebSocketTransport,
    ):
        self.base_url = validate_server_url(base_url)
        self.transport_factory = transport_factory
        self.colors = PodColorAssigner(palette)
        self.display = DisplayBuffer(capacity)
        self.controller = PauseController(self.display, pending_capacity)
        self.roster = StreamRoster()
        self.state = ConnectionState.CLOSED
        self.last_error: Optional[str] = None
        self.selector: Optional[str] = None
        self.namespace: Optional[str] = None

        self._listeners: List[Listener] = []
        self._transport: Optional[Transport] = None
        self._generation = 0
        self._sequence = 0
        self._view = self._build_view()

        if selector:
            self.connect(selector, namespace)

    # ----- observable view -----

    @property
    def view(self) -> ViewState:
        return self._view

    @property
    def generation(self) -> int:
        return self._generation

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener called with a fresh ViewState after every change.

        Returns:
            Callable[[], None]: Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _build_view(self) -> ViewState:
        return ViewState(
            connection_state=self.state,
            roster=self.roster,
            displayed_entries=self.display.snapshot(),
            is_paused=self.controller.is_paused,
            pending_count=self.controller.pending_count,
            last_error=self.last_error,
            selector=self.selector,
            namespace=self.namespace,
        )

    def _publish(self) -> None:
        self._view = self._build_view()
        for listener in list(self._listeners):
            try:
                listener(self._view)
            except Exception as e:
                log_exception("[stream] view listener failed", e, logging.ERROR, logger=log)

    # ----- connection lifecycle -----

    def connect(self, selector: str, namespace: str = DEFAULT_NAMESPACE) -> None:
        """
        Point the stream at a selector and namespace.

        Closes the current connection (if any), drops everything received on
        it and opens a new one. Calling again with the parameters of a
        connection that is still connecting or open does nothing.
        An empty selector only tears the current connection down.
        """
        namespace = namespace or DEFAULT_NAMESPACE
        if (
            self._transport is not None
            and (selector, namespace) == (self.selector, self.namespace)
            and self.state in (ConnectionState.CONNECTING, ConnectionState.OPEN)
        ):
            log.debug(f"[stream] already connected for selector={selector!r} namespace={namespace!r}")
            return

        if self._teardown() != self._generation:
            # A listener reconnected while the old connection was closing
            return
        if not selector:
            log.debug("[stream] empty selector, not connecting")
            if self.selector is not None:
                self.selector = self.namespace = None
                self._publish()
            return

        self.selector = selector
        self.namespace = namespace
        self.display.clear()
        self.controller.clear_pending()
        self.roster = StreamRoster()
        self.colors.reset()
        self.last_error = None
        self._sequence = 0
        self._generation += 1
        generation = self._generation
        self.state = ConnectionState.CONNECTING
        self._publish()
        if generation != self._generation:
            return

        url = build_stream_url(self.base_url, selector, namespace)
        log.info(f"[stream] connecting to {url}")
        try:
            self._transport = self.transport_factory(url, self._handlers(generation))
        except Exception as e:
            log_exception(f"[stream] could not start connection to {url}", e, logger=log)
            self._transport = None
            self._on_error(generation, e)

    def dispose(self) -> None:
        """Close the current connection; late events from it are ignored."""
        self._teardown()

    def _teardown(self) -> int:
        self._generation += 1
        generation = self._generation
        transport, self._transport = self._transport, None
        if transport is None:
            return generation
        log.info(f"[stream] closing connection for selector={self.selector!r} namespace={self.namespace!r}")
        try:
            transport.close()
        except Exception as e:
            log_exception("[stream] error closing transport", e, logger=log)
        if not self.state.is_terminal:
            self.state = ConnectionState.CLOSED
            self._publish()
        return generation

    def _handlers(self, generation: int) -> TransportHandlers:
        return TransportHandlers(
            on_open=lambda: self._on_open(generation),
            on_message=lambda text: self._on_message(generation, text),
            on_error=lambda exc: self._on_error(generation, exc),
            on_close=lambda code, reason: self._on_close(generation, code, reason),
        )

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    # ----- transport events -----

    def _on_open(self, generation: int) -> None:
        if not self._is_current(generation) or self.state is not ConnectionState.CONNECTING:
            return
        log.info("[stream] connected")
        self.state = ConnectionState.OPEN
        self.last_error = None
        self._publish()

    def _on_message(self, generation: int, text: str) -> None:
        if not self._is_current(generation) or self.state.is_terminal:
            return
        try:
            frame = classify_frame(text)
        except Exception as e:
            log_exception("[stream] frame classification failed", e, logger=log)
            return

        if isinstance(frame, RosterFrame):
            self.roster = frame.roster
            for pod in frame.roster.pods:
                self.colors.color_for(pod)
            log.info(f"[stream] streaming from {len(frame.roster.pods)} pods: {', '.join(frame.roster.pods)}")
        elif isinstance(frame, LogLineFrame):
            self._sequence += 1
            line = DisplayLine(
                entry=frame.entry,
                color=self.colors.color_for(frame.entry.pod),
                sequence=self._sequence,
            )
            self.controller.route(line)
        elif isinstance(frame, ErrorFrame):
            log.warning(f"[stream] server reported: {frame.text}")
            self.last_error = frame.text
        else:
            log.debug(f"[stream] ignoring frame ({frame.reason}): {frame.raw[:200]!r}")
            return
        self._publish()

    def _on_error(self, generation: int, exc: BaseException) -> None:
        if not self._is_current(generation) or self.state.is_terminal:
            return
        log_exception("[stream] connection failed", exc, logger=log)
        self.state = ConnectionState.ERRORED
        self.last_error = CONNECTION_FAILED_MESSAGE
        self._publish()

    def _on_close(self, generation: int, code: Optional[int], reason: str) -> None:
        if not self._is_current(generation) or self.state.is_terminal:
            return
        log.info(f"[stream] connection closed code={code} reason={reason!r}")
        self.state = ConnectionState.CLOSED
        self._publish()

    # ----- user actions -----

    def pause(self) -> None:
        if self.controller.is_paused:
            return
        self.controller.pause()
        self._publish()

    def resume(self) -> None:
        if not self.controller.is_paused:
            return
        self.controller.resume()
        self._publish()

    def clear(self) -> None:
        """Empty the displayed lines; connection, roster and pause state stay as they are."""
        self.display.clear()
        self._publish()
