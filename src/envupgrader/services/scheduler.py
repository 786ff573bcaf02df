"""Waits for an environment stack to become idle before upgrading it."""

import threading
import time
from typing import Callable, Optional

from envupgrader.errors import (
    ReadError,
    StackInFailedState,
    UpgradeCancelled,
    UpgradeInvocationError,
    UpgradeTimedOut,
    UpgraderError,
)
from envupgrader.errors_catalog import actionable_error
from envupgrader.models import PollPolicy, StackStatus


class Cancellation:
    """Cancellation token shared by the orchestrator and the scheduler.

    Set explicitly with :meth:`cancel` (user interrupt) or implicitly once the
    optional overall deadline passes.
    """

    def __init__(self, deadline_seconds: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self._event = threading.Event()
        self._clock = clock
        self._deadline = clock() + deadline_seconds if deadline_seconds is not None else None

    def cancel(self):
        self._event.set()

    @property
    def deadline_passed(self) -> bool:
        return self._deadline is not None and self._clock() >= self._deadline

    def is_cancelled(self) -> bool:
        return self._event.is_set() or self.deadline_passed

    @property
    def reason(self) -> str:
        if self._event.is_set():
            return "Operation cancelled by user."
        return "Overall upgrade deadline exceeded."

    def wait(self, seconds: float) -> bool:
        """Sleeps up to ``seconds``; returns True as soon as the run is cancelled."""
        timeout = max(0.0, seconds)
        if self._deadline is not None:
            timeout = min(timeout, max(0.0, self._deadline - self._clock()))
        if self._event.wait(timeout):
            return True
        return self.is_cancelled()


class UpgradeScheduler:
    """Issues at most one upgrade per stack once the stack is idle."""

    def __init__(
        self,
        status_reader,
        invoker,
        logger,
        policy: Optional[PollPolicy] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.status_reader = status_reader
        self.invoker = invoker
        self.logger = logger
        self.policy = policy or PollPolicy()
        self.clock = clock

    def upgrade_when_ready(self, app: str, env: str, cancellation: Optional[Cancellation] = None) -> int:
        """Upgrades ``env`` once its stack is idle and returns the number of status polls."""
        cancellation = cancellation or Cancellation()
        interval = self.policy.initial_interval
        started = self.clock()
        polls = 0

        while True:
            self._raise_if_cancelled(cancellation, app, env)

            status = self.status_reader.stack_status(app, env)
            polls += 1
            self.logger.debug("Stack status for environment %s (poll %s): %s", env, polls, status.value)

            if status == StackStatus.IDLE:
                self._invoke(app, env)
                return polls

            if status == StackStatus.FAILED:
                raise StackInFailedState(
                    actionable_error("stack_failed", app=app, env=env),
                    app=app,
                    env=env,
                    stage="wait_for_stack",
                )

            if status != StackStatus.BUSY:
                raise ReadError(
                    f"Unrecognized stack status for environment {env} in app {app}.",
                    app=app,
                    env=env,
                    stage="wait_for_stack",
                )

            remaining = self.policy.timeout - (self.clock() - started)
            if remaining <= 0:
                raise UpgradeTimedOut(
                    actionable_error("upgrade_timed_out", env=env, timeout=f"{self.policy.timeout:g}"),
                    app=app,
                    env=env,
                    stage="wait_for_stack",
                )

            delay = min(interval, remaining)
            self.logger.info("Environment %s stack is busy, checking again in %.1fs.", env, delay)
            if cancellation.wait(delay):
                self._raise_if_cancelled(cancellation, app, env)
            interval = min(interval * self.policy.multiplier, self.policy.max_interval)

    def _invoke(self, app: str, env: str):
        self.logger.info("Upgrading environment %s in app %s.", env, app)
        try:
            self.invoker.upgrade(app, env)
        except UpgradeInvocationError:
            raise
        except UpgraderError as exc:
            raise UpgradeInvocationError(
                f"Upgrade environment {env} in app {app}: {exc}",
                app=app,
                env=env,
                stage="upgrade",
            ) from exc

    @staticmethod
    def _raise_if_cancelled(cancellation: Cancellation, app: str, env: str):
        if cancellation.is_cancelled():
            raise UpgradeCancelled(cancellation.reason, app=app, env=env, stage="wait_for_stack")
