import asyncio
import threading
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from podweave import kube, server
from podweave.kube import KubeContext

from conftest import QuietCore, make_pod, wait_until


@pytest.fixture
def kube_calls(monkeypatch):
    """Patch the Kubernetes helpers the endpoint uses; record their calls."""
    calls = SimpleNamespace(listed=[], followed=[], pods=[], lines={}, list_error=None)

    async def fake_list(core, namespace, selector):
        calls.listed.append((namespace, selector))
        if calls.list_error:
            raise calls.list_error
        return calls.pods

    async def fake_stream(core, namespace, pod, container, line_cb, stop_event, tail_lines=50, timestamps=True):
        calls.followed.append((namespace, pod, container, tail_lines))

        def follow():
            for line in calls.lines.get(pod, []):
                line_cb(line)

        await asyncio.get_running_loop().run_in_executor(None, follow)

    monkeypatch.setattr(server, 'list_selector_pods', fake_list)
    monkeypatch.setattr(server, 'stream_logs', fake_stream)
    monkeypatch.setattr(server.state, 'kube', KubeContext(core=object()))
    monkeypatch.setattr(server.state, 'namespace', 'default')
    monkeypatch.setattr(server.state, 'tail_lines', 50)
    return calls


@pytest.fixture
def client():
    return TestClient(server.app)


def test_missing_selector_rejected(client, kube_calls):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect('/api/v1/logs/stream?namespace=prod'):
            pass
    assert exc.value.code == 1008
    assert kube_calls.listed == []


def test_client_not_ready(client, monkeypatch):
    monkeypatch.setattr(server.state, 'kube', None)
    with client.websocket_connect('/api/v1/logs/stream?selector=app%3Dweb') as ws:
        assert ws.receive_text().startswith('ERROR: Client not ready:')
        with pytest.raises(WebSocketDisconnect):
            ws.receive_text()


def test_list_failure_sent_as_error_frame(client, kube_calls):
    kube_calls.list_error = RuntimeError('forbidden')
    with client.websocket_connect('/api/v1/logs/stream?selector=app%3Dweb') as ws:
        assert ws.receive_text() == 'ERROR: Failed to list pods: forbidden'


def test_no_matching_pods(client, kube_calls):
    with client.websocket_connect('/api/v1/logs/stream?selector=app%3Dweb&namespace=prod') as ws:
        assert ws.receive_text() == 'ERROR: No pods found matching selector: app=web'
        with pytest.raises(WebSocketDisconnect):
            ws.receive_text()
    assert kube_calls.listed == [('prod', 'app=web')]


def test_roster_then_lines_then_close(client, kube_calls, monkeypatch):
    monkeypatch.setattr(server.state, 'tail_lines', 10)
    kube_calls.pods = [
        make_pod('web-a'),
        make_pod('web-b', phase='Pending'),
        make_pod('web-c', containers=('main', 'sidecar')),
    ]
    kube_calls.lines = {
        'web-a': ['2024-01-15T10:30:45.123456789Z started', '2024-01-15T10:30:46.000000000Z ready'],
        'web-c': ['no timestamp here'],
    }

    with client.websocket_connect('/api/v1/logs/stream?selector=app%3Dweb') as ws:
        assert ws.receive_json() == {'type': 'init', 'pods': ['web-a', 'web-b', 'web-c'], 'count': 3}
        frames = [ws.receive_json() for _ in range(3)]
        with pytest.raises(WebSocketDisconnect):
            ws.receive_text()

    assert sorted(kube_calls.followed) == [('default', 'web-a', 'app', 10), ('default', 'web-c', 'main', 10)]
    by_pod = {}
    for frame in frames:
        by_pod.setdefault(frame['pod'], []).append(frame)
    assert by_pod['web-a'] == [
        {'pod': 'web-a', 'container': 'app', 'message': 'started', 'timestamp': '2024-01-15T10:30:45.123456789Z'},
        {'pod': 'web-a', 'container': 'app', 'message': 'ready', 'timestamp': '2024-01-15T10:30:46.000000000Z'},
    ]
    assert by_pod['web-c'] == [{'pod': 'web-c', 'container': 'main', 'message': 'no timestamp here'}]


def test_no_running_pods_sends_roster_and_closes(client, kube_calls):
    kube_calls.pods = [make_pod('web-a', phase='Pending')]
    with client.websocket_connect('/api/v1/logs/stream?selector=app%3Dweb') as ws:
        assert ws.receive_json()['pods'] == ['web-a']
        with pytest.raises(WebSocketDisconnect):
            ws.receive_text()
    assert kube_calls.followed == []


def test_streams_endpoint_lists_nothing_when_idle(client, kube_calls):
    resp = client.get('/api/v1/logs/streams')
    assert resp.status_code == 200
    assert resp.json() == {'streams': []}


def test_slow_client_backpressure_keeps_every_line(client, kube_calls, monkeypatch):
    monkeypatch.setattr(server, 'FAN_IN_QUEUE_SIZE', 2)
    kube_calls.pods = [make_pod('web-a')]
    kube_calls.lines = {'web-a': [f"line {n}" for n in range(40)]}
    with client.websocket_connect('/api/v1/logs/stream?selector=app%3Dweb') as ws:
        ws.receive_json()
        messages = [ws.receive_json()['message'] for _ in range(40)]
        with pytest.raises(WebSocketDisconnect):
            ws.receive_text()
    assert messages == [f"line {n}" for n in range(40)]


def test_put_blocking_waits_for_room_and_gives_up_on_stop():
    stop = threading.Event()
    results = []

    async def scenario():
        loop = asyncio.get_running_loop()
        queue = asyncio.Queue(maxsize=1)
        queue.put_nowait('first')
        worker = loop.run_in_executor(None, lambda: results.append(server.put_blocking(loop, queue, 'second', stop)))
        await asyncio.sleep(0.1)
        assert results == []
        assert await queue.get() == 'first'
        await worker
        assert results == [True]
        assert queue.get_nowait() == 'second'

        queue.put_nowait('third')
        blocked = loop.run_in_executor(None, lambda: results.append(server.put_blocking(loop, queue, 'fourth', stop)))
        await asyncio.sleep(0.1)
        stop.set()
        await blocked
        assert results == [True, False]
        assert queue.qsize() == 1
        assert queue.get_nowait() == 'third'

    asyncio.run(scenario())


def test_many_quiet_pods_followed_and_released_on_disconnect(client, kube_calls, monkeypatch):
    core = QuietCore()
    names = [f"web-{n}" for n in range(8)]
    kube_calls.pods = [make_pod(name) for name in names]
    monkeypatch.setattr(server, 'stream_logs', kube.stream_logs)
    monkeypatch.setattr(server.state, 'kube', KubeContext(core=core))

    with client.websocket_connect('/api/v1/logs/stream?selector=app%3Dweb') as ws:
        assert ws.receive_json()['count'] == 8
        frames = [ws.receive_json() for _ in names]

    assert sorted(f['pod'] for f in frames) == names
    assert {f['message'] for f in frames} == {f"{name} hello" for name in names}
    assert wait_until(lambda: all(r.closed.is_set() for r in core.responses.values()))
    assert wait_until(lambda: all(r.released for r in core.responses.values()))
