"""
Tests for shapes_interop.app — the control loop and its roles.
"""

import threading

import pytest

from shapes_interop.app import (
    PUBLISH_INTERVAL,
    ControlLoop,
    PublisherRole,
    SubscriberRole,
    format_shape,
    run_publisher,
)
from shapes_interop.exceptions import ReadError, WriteError
from shapes_interop.poll import Poller, StopSignal, Token
from shapes_interop.shape import Shape, Value, Withdrawn
from shapes_interop.status import PublicationMatched, SampleLost

from conftest import FakePoller, FakeReader, FakeWriter, wait_for


def _publisher(writer=None):
    writer = writer or FakeWriter()
    return writer, PublisherRole(writer, Shape("BLUE", 0, 0, 21), 3, 2)


# ── PublisherRole ─────────────────────────────────────────────────────────────

def test_tick_moves_then_writes():
    writer, role = _publisher()
    shape = role.tick()
    assert shape == Shape("BLUE", 11, 11, 21)
    assert writer.written == [shape]
    assert (role.xv, role.yv) == (-3, -2)


def test_tick_write_failure_propagates():
    writer, role = _publisher(FakeWriter(fail_after=0))
    with pytest.raises(WriteError):
        role.tick()


# ── SubscriberRole ────────────────────────────────────────────────────────────

def test_drain_takes_everything_then_returns(capsys):
    samples = [Value(Shape("RED", i, i + 1, 30)) for i in range(5)]
    reader = FakeReader(samples)
    assert SubscriberRole(reader, "Square").drain() == 5
    assert reader.takes == 6  # five samples plus the empty answer
    out = capsys.readouterr().out.splitlines()
    assert out[0] == "Square     RED          0   1 [30]"
    assert len(out) == 5


def test_drain_prints_disposed_key(capsys):
    reader = FakeReader([Withdrawn("GREEN")])
    SubscriberRole(reader, "Square").drain()
    assert capsys.readouterr().out.strip() == 'Disposed key "GREEN"'


def test_drain_continues_after_read_error(capsys):
    reader = FakeReader(
        [Value(Shape("RED", 1, 2, 3)), ReadError("garbled"), Value(Shape("RED", 4, 5, 3))]
    )
    assert SubscriberRole(reader, "T").drain() == 3
    out = capsys.readouterr().out.splitlines()
    assert out[1] == "DataReader error garbled"
    assert len(out) == 3


def test_drain_picks_up_data_arriving_mid_drain(capsys):
    reader = FakeReader([Value(Shape("RED", 1, 1, 1))])
    original = reader.take_next_sample
    arrived = []

    def take():
        sample = original()
        if not arrived:
            arrived.append(True)
            reader.items.append(Value(Shape("RED", 2, 2, 1)))
        return sample

    reader.take_next_sample = take
    assert SubscriberRole(reader, "T").drain() == 2


def test_drain_empty_reader():
    assert SubscriberRole(FakeReader(), "T").drain() == 0


def test_format_shape_truncates_long_names():
    line = format_shape("AVeryLongTopicName", Shape("MAGENTAISH_X", 5, 120, 21))
    assert line == "AVeryLongT MAGENTAISH   5 120 [21]"


# ── ControlLoop ───────────────────────────────────────────────────────────────

def test_publisher_ticks_once_per_timeout():
    writer, role = _publisher()
    stop = StopSignal()
    poller = FakePoller([[], [], [], []])
    loop = ControlLoop(poller, stop, role)
    for _ in range(4):
        assert loop.step() is False
    assert len(writer.written) == 4
    assert poller.timeouts == [PUBLISH_INTERVAL] * 4


def test_publisher_ticks_once_even_with_several_ready_tokens(capsys):
    writer, role = _publisher()
    writer.statuses.append(PublicationMatched(1, 1, 1, 1))
    poller = FakePoller([[Token.STATUS_READY, 99]])
    ControlLoop(poller, StopSignal(), role).step()
    assert len(writer.written) == 1
    out = capsys.readouterr().out
    assert "DataWriter status: PublicationMatched(" in out
    assert "Polled event is 99. Unexpected." in out


def test_stop_terminates_without_publishing(capsys):
    writer, role = _publisher()
    stop = StopSignal()
    stop.send()
    poller = FakePoller([[Token.STOP_PROGRAM]])
    assert ControlLoop(poller, stop, role).run() == 0
    assert writer.written == []
    assert capsys.readouterr().out.strip() == "Done."


def test_spurious_stop_wakeup_is_ignored():
    writer, role = _publisher()
    stop = StopSignal()
    stop.send()
    assert stop.try_recv()  # already consumed elsewhere
    poller = FakePoller([[Token.STOP_PROGRAM]])
    assert ControlLoop(poller, stop, role).step() is False
    assert len(writer.written) == 1


def test_run_stops_after_scripted_wakeups():
    writer, role = _publisher()
    stop = StopSignal()

    class StopOnThird(FakePoller):
        def poll(self, timeout=None):
            if len(self.timeouts) == 2:
                stop.send()
                self._wakeups.append([Token.STOP_PROGRAM])
            return super().poll(timeout)

    assert ControlLoop(StopOnThird([[], []]), stop, role).run() == 0
    assert len(writer.written) == 2


def test_publish_failure_ends_loop():
    writer, role = _publisher(FakeWriter(fail_after=1))
    loop = ControlLoop(FakePoller([[], []]), StopSignal(), role)
    loop.step()
    with pytest.raises(WriteError):
        loop.step()


def test_subscriber_waits_unbounded_and_drains(capsys):
    reader = FakeReader([Value(Shape("RED", 1, 2, 3))])
    reader.statuses.append(SampleLost(2, 2))
    role = SubscriberRole(reader, "Sq")
    poller = FakePoller([[Token.READER_READY, Token.STATUS_READY]])
    ControlLoop(poller, StopSignal(), role).step()
    assert poller.timeouts == [None]
    out = capsys.readouterr().out.splitlines()
    assert out[0].startswith("Sq")
    assert out[1] == "DataReader status: SampleLost(total_count=2, total_count_change=2)"


def test_reader_token_in_publisher_role_is_unexpected(capsys):
    writer, role = _publisher()
    ControlLoop(FakePoller([[Token.READER_READY]]), StopSignal(), role).step()
    assert "Unexpected" in capsys.readouterr().out
    assert len(writer.written) == 1


def test_drain_status_reports_every_pending_event():
    writer, role = _publisher()
    for i in range(3):
        writer.statuses.append(PublicationMatched(i, 1, i, 1))
    loop = ControlLoop(FakePoller([]), StopSignal(), role)
    assert loop.drain_status() == 3
    assert loop.drain_status() == 0


# ── End to end over shared memory ─────────────────────────────────────────────

def test_publisher_loop_feeds_subscriber(participant, capsys):
    topic = participant.create_topic("Lp")
    with participant.create_datareader(topic, content_filter="RED") as reader:
        with participant.create_datawriter(topic, key="RED") as writer:
            reader.poll_ready()
            assert len(reader.matched_writers) == 1
            poller = Poller()
            stop = StopSignal()
            poller.register(stop, Token.STOP_PROGRAM)
            loop = ControlLoop(poller, stop, PublisherRole(writer, Shape("RED", 20, 20, 21), 3, 3))
            for _ in range(3):
                loop.step()
        capsys.readouterr()
        assert wait_for(reader.poll_ready)
        taken = SubscriberRole(reader, topic.name).drain()
    out = capsys.readouterr().out.splitlines()
    assert taken == 4
    assert out == [
        "Lp         RED         23  23 [21]",
        "Lp         RED         26  26 [21]",
        "Lp         RED         29  29 [21]",
        'Disposed key "RED"',
    ]


@pytest.mark.timeout(10)
def test_run_publisher_until_stopped(participant, capsys):
    topic = participant.create_topic("Rp")
    stop = StopSignal()
    timer = threading.Timer(0.5, stop.send)
    timer.start()
    try:
        assert run_publisher(participant, topic, "CYAN", stop) == 0
    finally:
        timer.cancel()
    assert "Done." in capsys.readouterr().out
