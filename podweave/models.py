"""
Data models for Podweave.

This module defines the data structures shared by the stream consumer, the
streaming server and the CLI.

Key Models:
- ConnectionState: Lifecycle state of one consumer connection
- LogEntry: One line of output from one container instance
- DisplayLine: A LogEntry annotated with its pod color and receipt sequence
- StreamRoster: The pods contributing to an aggregated stream
- ViewState: Immutable snapshot read by the presentation layer
- ServerConfig: Server configuration parameters

Entries and snapshots are frozen dataclasses so they can be handed to
renderers without copying.

Example:
    ```python
    entry = LogEntry(pod="web-7d9f-abc", container="app", message="GET /healthz 200")
    line = DisplayLine(entry=entry, color="blue", sequence=1)
    ```
"""

import enum
from dataclasses import dataclass, field
from typing import Optional, Tuple


class ConnectionState(str, enum.Enum):
    """
    Lifecycle state of a consumer connection.

    A connection moves ``connecting -> open -> closed | errored``. ``closed``
    and ``errored`` are terminal for that connection; a new one starts again
    at ``connecting``. A consumer that has never connected reports ``closed``.
    """
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"
    ERRORED = "errored"

    @property
    def is_terminal(self) -> bool:
        return self in (ConnectionState.CLOSED, ConnectionState.ERRORED)


@dataclass(frozen=True)
class LogEntry:
    """
    One line of output from one container instance.

    Attributes:
        pod: Name of the pod the line came from (never empty)
        container: Container name, may be empty when not disambiguated
        message: Raw log text, may be empty
        timestamp: Server-supplied timestamp, passed through unparsed

    Example:
        ```python
        entry = LogEntry(
            pod="api-5c6b9-x2x7q",
            container="api",
            message="listening on :8080",
            timestamp="2024-01-15T10:30:45.123456789Z"
        )
        ```
    """
    pod: str
    container: str = ""
    message: str = ""
    timestamp: Optional[str] = None

    def to_dict(self) -> dict:
        """Wire representation of the entry, omitting an empty timestamp."""
        data = {'pod': self.pod, 'container': self.container, 'message': self.message}
        if self.timestamp:
            data['timestamp'] = self.timestamp
        return data


@dataclass(frozen=True)
class DisplayLine:
    """
    A log entry ready for rendering.

    Attributes:
        entry: The received log entry
        color: Palette token assigned to the entry's pod
        sequence: Receipt number within the connection, starting at 1
    """
    entry: LogEntry
    color: str
    sequence: int

    @property
    def pod(self) -> str:
        return self.entry.pod

    @property
    def message(self) -> str:
        return self.entry.message


@dataclass(frozen=True)
class StreamRoster:
    """
    The set of pods contributing to an aggregated stream.

    Attributes:
        pods: Pod names in server-reported order (used for legends)
        count: Pod count reported by the server
    """
    pods: Tuple[str, ...] = ()
    count: int = 0

    def __len__(self) -> int:
        return len(self.pods)


@dataclass(frozen=True)
class ViewState:
    """
    Snapshot of everything the presentation layer renders.

    A new snapshot is built after every state change of the stream consumer,
    so a snapshot never mixes values from two different updates.

    Attributes:
        connection_state: Current connection lifecycle state
        roster: Pods contributing to the stream
        displayed_entries: Lines currently shown, oldest first
        is_paused: Whether incoming lines are being held back
        pending_count: Lines held back while paused
        last_error: Current user-visible error, if any
        selector: Label selector of the current connection
        namespace: Namespace of the current connection

    Example:
        ```python
        view = stream.view
        if view.is_paused:
            print(f"Paused ({view.pending_count} pending)")
        for line in view.displayed_entries:
            print(f"[{line.pod}] {line.message}")
        ```
    """
    connection_state: ConnectionState = ConnectionState.CLOSED
    roster: StreamRoster = field(default_factory=StreamRoster)
    displayed_entries: Tuple[DisplayLine, ...] = ()
    is_paused: bool = False
    pending_count: int = 0
    last_error: Optional[str] = None
    selector: Optional[str] = None
    namespace: Optional[str] = None

    @property
    def is_connected(self) -> bool:
        return self.connection_state is ConnectionState.OPEN


@dataclass
class ServerConfig:
    """
    Server configuration parameters.

    Attributes:
        host: Server bind host
        port: Server port
        namespace: Namespace used when a client does not send one
        tail_lines: Lines of history requested per pod when following starts
        kubeconfig: Path to kubeconfig, None for default loading rules
        context: Kubecontext override
        log_level: Application log level
        uvicorn_log_level: Uvicorn server log level
    """
    host: str
    port: int
    namespace: str
    tail_lines: int
    kubeconfig: Optional[str] = None
    context: Optional[str] = None
    log_level: str = "INFO"
    uvicorn_log_level: str = "info"
