"""
Wire frames of the aggregated log stream.

Every inbound websocket message is classified into exactly one of four frame
kinds by ``classify_frame``:

- RosterFrame: ``{"type": "init", "pods": [...], "count": N}``, sent once first
- LogLineFrame: ``{"pod", "container", "message", "timestamp"?}``
- ErrorFrame: plain text starting with ``ERROR:``
- UnrecognizedFrame: anything else, kept only for diagnostics

Classification never raises. The server side uses the ``encode_*`` helpers
so both ends agree on the shapes.

Example:
    ```python
    frame = classify_frame('{"pod": "web-1", "container": "app", "message": "hi"}')
    if isinstance(frame, LogLineFrame):
        print(frame.entry.message)
    ```
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Union

from .constants import ERROR_FRAME_PREFIX, ROSTER_FRAME_TYPE
from .models import LogEntry, StreamRoster


@dataclass(frozen=True)
class RosterFrame:
    roster: StreamRoster


@dataclass(frozen=True)
class LogLineFrame:
    entry: LogEntry


@dataclass(frozen=True)
class ErrorFrame:
    text: str


@dataclass(frozen=True)
class UnrecognizedFrame:
    raw: str
    reason: str


Frame = Union[RosterFrame, LogLineFrame, ErrorFrame, UnrecognizedFrame]


def _roster_from(data: Dict[str, Any]) -> Optional[StreamRoster]:
    pods = data.get('pods')
    if not isinstance(pods, list) or not all(isinstance(p, str) for p in pods):
        return None
    count = data.get('count')
    if not isinstance(count, int) or isinstance(count, bool):
        count = len(pods)
    return StreamRoster(pods=tuple(pods), count=count)


def _entry_from(data: Dict[str, Any]) -> Optional[LogEntry]:
    pod = data.get('pod')
    message = data.get('message', '')
    container = data.get('container', '')
    timestamp = data.get('timestamp')
    if not isinstance(pod, str) or not pod:
        return None
    if not isinstance(message, str) or not isinstance(container, str):
        return None
    if not isinstance(timestamp, str) or not timestamp:
        timestamp = None
    return LogEntry(pod=pod, container=container, message=message, timestamp=timestamp)


def classify_frame(raw: Union[str, bytes]) -> Frame:
    """
    Classify one inbound message.

    Text that is not JSON is a control frame: it is an ErrorFrame when it
    starts with ``ERROR:`` and unrecognized otherwise. JSON objects are a
    roster frame when tagged ``type: init`` with a list of pod names, and a
    log-line frame when they carry a non-empty ``pod``. The outcome depends
    only on the message, not on frames seen before it.

    Args:
        raw: Message payload; bytes are decoded as UTF-8 with replacement

    Returns:
        Frame: One of RosterFrame, LogLineFrame, ErrorFrame, UnrecognizedFrame
    """
    if isinstance(raw, bytes):
        raw = raw.decode('utf-8', 'replace')

    try:
        data = json.loads(raw)
    except ValueError:
        if raw.startswith(ERROR_FRAME_PREFIX):
            return ErrorFrame(text=raw)
        return UnrecognizedFrame(raw=raw, reason="not JSON")

    if not isinstance(data, dict):
        return UnrecognizedFrame(raw=raw, reason=f"JSON {type(data).__name__}, expected object")

    if data.get('type') == ROSTER_FRAME_TYPE:
        roster = _roster_from(data)
        if roster is None:
            return UnrecognizedFrame(raw=raw, reason="init frame without a list of pod names")
        return RosterFrame(roster=roster)

    entry = _entry_from(data)
    if entry is None:
        return UnrecognizedFrame(raw=raw, reason="object is neither a roster nor a log line")
    return LogLineFrame(entry=entry)


def encode_roster(pods: Sequence[str]) -> str:
    return json.dumps({'type': ROSTER_FRAME_TYPE, 'pods': list(pods), 'count': len(pods)}, separators=(',', ':'))


def encode_log_line(entry: LogEntry) -> str:
    return json.dumps(entry.to_dict(), separators=(',', ':'))


def encode_error(message: str) -> str:
    """Build an ``ERROR: <message>`` control frame."""
    return f"{ERROR_FRAME_PREFIX} {message}"
