import pytest

from podweave.buffers import DisplayBuffer, PauseController
from podweave.exceptions import ConfigurationError
from podweave.models import DisplayLine

from conftest import entry


def line(n, pod='web-1'):
    return DisplayLine(entry=entry(pod=pod, message=f"line {n}"), color='blue', sequence=n)


def messages(lines):
    return [l.message for l in lines]


@pytest.mark.parametrize('count,capacity', [(0, 5), (3, 5), (5, 5), (6, 5), (1500, 1000)])
def test_display_keeps_most_recent_lines_in_order(count, capacity):
    display = DisplayBuffer(capacity)
    for n in range(1, count + 1):
        display.append(line(n))
    kept = min(count, capacity)
    assert len(display) == kept
    assert messages(display.snapshot()) == [f"line {n}" for n in range(count - kept + 1, count + 1)]


def test_display_clear_empties_buffer():
    display = DisplayBuffer(3)
    display.append(line(1))
    display.clear()
    assert len(display) == 0
    display.append(line(2))
    assert messages(display) == ['line 2']


@pytest.mark.parametrize('capacity', [0, -1, 2.5, True])
def test_display_rejects_bad_capacity(capacity):
    with pytest.raises(ConfigurationError):
        DisplayBuffer(capacity)


def test_pause_holds_lines_until_resume():
    display = DisplayBuffer(10)
    controller = PauseController(display)
    controller.route(line(1))
    controller.pause()
    controller.route(line(2))
    controller.route(line(3))
    assert messages(display) == ['line 1']
    assert controller.pending_count == 2

    assert controller.resume() == 2
    assert messages(display) == ['line 1', 'line 2', 'line 3']
    assert controller.pending_count == 0
    assert not controller.is_paused


def test_resume_matches_live_delivery_under_eviction():
    live = DisplayBuffer(5)
    for n in range(1, 9):
        live.append(line(n))

    paused = DisplayBuffer(5)
    controller = PauseController(paused)
    paused.append(line(1))
    paused.append(line(2))
    controller.pause()
    for n in range(3, 9):
        controller.route(line(n))
    controller.resume()

    assert messages(paused) == messages(live)


def test_pending_is_bounded_by_display_capacity_by_default():
    display = DisplayBuffer(3)
    controller = PauseController(display)
    controller.pause()
    for n in range(1, 8):
        controller.route(line(n))
    assert controller.pending_count == 3
    assert controller.dropped_count == 4
    controller.resume()
    assert messages(display) == ['line 5', 'line 6', 'line 7']
    assert controller.dropped_count == 0


def test_pending_can_be_unbounded():
    display = DisplayBuffer(3)
    controller = PauseController(display, pending_capacity=None)
    controller.pause()
    for n in range(1, 8):
        controller.route(line(n))
    assert controller.pending_count == 7
    assert controller.dropped_count == 0
    controller.resume()
    assert messages(display) == ['line 5', 'line 6', 'line 7']


def test_pause_and_resume_are_idempotent():
    controller = PauseController(DisplayBuffer(3))
    assert controller.resume() == 0
    controller.pause()
    controller.route(line(1))
    controller.pause()
    assert controller.pending_count == 1
    assert controller.resume() == 1
    assert controller.resume() == 0


def test_clear_pending_drops_held_lines():
    display = DisplayBuffer(3)
    controller = PauseController(display)
    controller.pause()
    controller.route(line(1))
    controller.clear_pending()
    controller.resume()
    assert len(display) == 0
