import time

import pytest

from envupgrader.errors import (
    ReadError,
    StackInFailedState,
    UpgradeCancelled,
    UpgradeInvocationError,
    UpgradeTimedOut,
    UpgraderError,
)
from envupgrader.models import PollPolicy, StackStatus
from envupgrader.services.scheduler import Cancellation, UpgradeScheduler


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None

    def debug(self, *_args, **_kwargs):
        return None


class SequenceReader:
    def __init__(self, statuses):
        self.statuses = list(statuses)
        self.polls = 0

    def stack_status(self, app, env):
        self.polls += 1
        if len(self.statuses) > 1:
            return self.statuses.pop(0)
        return self.statuses[0]


class RecordingInvoker:
    def __init__(self, reader=None, error=None):
        self.reader = reader
        self.error = error
        self.calls = []

    def upgrade(self, app, env):
        self.calls.append((app, env, self.reader.polls if self.reader else None))
        if self.error:
            raise self.error


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class RecordingCancellation(Cancellation):
    def __init__(self, clock):
        super().__init__()
        self.clock = clock
        self.waits = []

    def wait(self, seconds):
        self.waits.append(seconds)
        self.clock.now += seconds
        return self.is_cancelled()


FAST_POLL = PollPolicy(initial_interval=0.0, multiplier=1.0, max_interval=0.0, timeout=5.0)


def test_idle_stack_is_upgraded_immediately():
    reader = SequenceReader([StackStatus.IDLE])
    invoker = RecordingInvoker(reader)
    scheduler = UpgradeScheduler(reader, invoker, logger=DummyLogger(), policy=FAST_POLL)

    polls = scheduler.upgrade_when_ready("app", "test")

    assert polls == 1
    assert invoker.calls == [("app", "test", 1)]


def test_busy_stack_is_upgraded_once_after_third_busy_poll():
    reader = SequenceReader([StackStatus.BUSY, StackStatus.BUSY, StackStatus.BUSY, StackStatus.IDLE])
    invoker = RecordingInvoker(reader)
    scheduler = UpgradeScheduler(reader, invoker, logger=DummyLogger(), policy=FAST_POLL)

    scheduler.upgrade_when_ready("app", "test")

    assert invoker.calls == [("app", "test", 4)]


def test_backoff_grows_exponentially_up_to_cap():
    clock = FakeClock()
    cancellation = RecordingCancellation(clock)
    reader = SequenceReader([StackStatus.BUSY] * 5 + [StackStatus.IDLE])
    invoker = RecordingInvoker(reader)
    policy = PollPolicy(initial_interval=1.0, multiplier=2.0, max_interval=5.0, timeout=100.0)
    scheduler = UpgradeScheduler(reader, invoker, logger=DummyLogger(), policy=policy, clock=clock)

    scheduler.upgrade_when_ready("app", "test", cancellation)

    assert cancellation.waits == [1.0, 2.0, 4.0, 5.0, 5.0]
    assert len(invoker.calls) == 1


def test_busy_stack_times_out_without_upgrading():
    clock = FakeClock()
    cancellation = RecordingCancellation(clock)
    reader = SequenceReader([StackStatus.BUSY])
    invoker = RecordingInvoker(reader)
    policy = PollPolicy(initial_interval=4.0, multiplier=2.0, max_interval=8.0, timeout=10.0)
    scheduler = UpgradeScheduler(reader, invoker, logger=DummyLogger(), policy=policy, clock=clock)

    with pytest.raises(UpgradeTimedOut, match="still busy after 10 seconds") as error:
        scheduler.upgrade_when_ready("app", "test", cancellation)

    assert cancellation.waits == [4.0, 6.0]
    assert error.value.env == "test"
    assert invoker.calls == []


def test_failed_stack_is_never_upgraded():
    reader = SequenceReader([StackStatus.FAILED])
    invoker = RecordingInvoker(reader)
    scheduler = UpgradeScheduler(reader, invoker, logger=DummyLogger(), policy=FAST_POLL)

    with pytest.raises(StackInFailedState, match="failed state"):
        scheduler.upgrade_when_ready("app", "test")

    assert invoker.calls == []


def test_unknown_stack_status_is_a_read_error():
    reader = SequenceReader([StackStatus.UNKNOWN])
    invoker = RecordingInvoker(reader)
    scheduler = UpgradeScheduler(reader, invoker, logger=DummyLogger(), policy=FAST_POLL)

    with pytest.raises(ReadError):
        scheduler.upgrade_when_ready("app", "test")

    assert invoker.calls == []


def test_cancelled_token_stops_before_first_poll():
    cancellation = Cancellation()
    cancellation.cancel()
    reader = SequenceReader([StackStatus.IDLE])
    invoker = RecordingInvoker(reader)
    scheduler = UpgradeScheduler(reader, invoker, logger=DummyLogger(), policy=FAST_POLL)

    with pytest.raises(UpgradeCancelled, match="cancelled by user"):
        scheduler.upgrade_when_ready("app", "test", cancellation)

    assert reader.polls == 0
    assert invoker.calls == []


def test_deadline_cuts_a_long_poll_short():
    cancellation = Cancellation(deadline_seconds=0.2)
    reader = SequenceReader([StackStatus.BUSY])
    invoker = RecordingInvoker(reader)
    policy = PollPolicy(initial_interval=60.0, multiplier=1.0, max_interval=60.0, timeout=600.0)
    scheduler = UpgradeScheduler(reader, invoker, logger=DummyLogger(), policy=policy)

    started = time.monotonic()
    with pytest.raises(UpgradeCancelled, match="deadline exceeded"):
        scheduler.upgrade_when_ready("app", "test", cancellation)

    assert time.monotonic() - started < 5
    assert reader.polls == 1
    assert invoker.calls == []


def test_generic_invoker_errors_become_invocation_errors():
    reader = SequenceReader([StackStatus.IDLE])
    invoker = RecordingInvoker(reader, error=UpgraderError("boom"))
    scheduler = UpgradeScheduler(reader, invoker, logger=DummyLogger(), policy=FAST_POLL)

    with pytest.raises(UpgradeInvocationError, match="boom") as error:
        scheduler.upgrade_when_ready("app", "test")

    assert error.value.stage == "upgrade"


def test_poll_policy_rejects_invalid_values():
    with pytest.raises(ValueError):
        PollPolicy(multiplier=0.5)
    with pytest.raises(ValueError):
        PollPolicy(timeout=-1)
