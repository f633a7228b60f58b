"""
Shared pytest fixtures.

- FakeTransport stands in for a websocket: tests drive the lifecycle events
  (open, message, error, close) by hand, including late events after the
  consumer has closed it.
- make_stream builds an AggregatedLogStream wired to a TransportRecorder.
"""
import json
import threading
import time
from types import SimpleNamespace

import pytest

from podweave.models import LogEntry
from podweave.stream import AggregatedLogStream
from podweave.transport import Transport


BASE_URL = 'http://dashboard.local:8080'


class FakeTransport(Transport):
    def __init__(self, url, handlers):
        self.url = url
        self.handlers = handlers
        self.closed = False

    def close(self):
        self.closed = True

    def open(self):
        self.handlers.on_open()

    def send(self, text):
        self.handlers.on_message(text)

    def send_json(self, obj):
        self.send(json.dumps(obj))

    def send_roster(self, *pods):
        self.send_json({'type': 'init', 'pods': list(pods), 'count': len(pods)})

    def send_line(self, pod, message, container='app', timestamp=None):
        frame = {'pod': pod, 'container': container, 'message': message}
        if timestamp:
            frame['timestamp'] = timestamp
        self.send_json(frame)

    def fail(self, exc=None):
        self.handlers.on_error(exc or ConnectionError('connection refused'))

    def finish(self, code=1000, reason=''):
        self.handlers.on_close(code, reason)


class TransportRecorder:
    def __init__(self):
        self.transports = []

    def __call__(self, url, handlers):
        transport = FakeTransport(url, handlers)
        self.transports.append(transport)
        return transport

    @property
    def last(self):
        return self.transports[-1]


def entry(pod='web-1', message='hello', container='app', timestamp=None):
    return LogEntry(pod=pod, container=container, message=message, timestamp=timestamp)


def make_pod(name, phase='Running', containers=('app',)):
    return SimpleNamespace(
        metadata=SimpleNamespace(name=name),
        spec=SimpleNamespace(containers=[SimpleNamespace(name=c) for c in containers]),
        status=SimpleNamespace(phase=phase),
    )


@pytest.fixture
def transports():
    return TransportRecorder()


@pytest.fixture
def make_stream(transports):
    def _make(selector=None, namespace='default', **kwargs):
        kwargs.setdefault('transport_factory', transports)
        return AggregatedLogStream(BASE_URL, selector, namespace, **kwargs)
    return _make


class QuietLogResponse:
    """Followed log that sends one line, then blocks until the response is closed."""

    def __init__(self, pod):
        self.pod = pod
        self.closed = threading.Event()
        self.released = False

    def stream(self):
        yield f"{self.pod} hello\n".encode()
        self.closed.wait(10)

    def shutdown(self):
        self.closed.set()

    def close(self):
        self.closed.set()

    def release_conn(self):
        self.released = True


class QuietCore:
    def __init__(self):
        self.responses = {}

    def read_namespaced_pod_log(self, name, **kwargs):
        response = QuietLogResponse(name)
        self.responses[name] = response
        return response


def wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            return False
        time.sleep(0.01)
    return True
