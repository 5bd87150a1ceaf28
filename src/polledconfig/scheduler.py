"""Fixed-delay polling scheduler.

State machine::

    IDLE -> POLLING -> IDLE      (publish on success, keep old values on failure)
    any  -> STOPPED              (stop(); pending timer cancelled)

The next poll is armed only after the previous one completes, so at most one
fetch is ever in flight.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional, Protocol

from polledconfig.core.contracts import PollResult
from polledconfig.core.exceptions import BootstrapError, SchedulerError
from polledconfig.core.logger import get_logger, push_poll_id, reset_poll_id
from polledconfig.models.settings import SchedulerConfig
from polledconfig.registry import ConfigurationRegistry

logger = get_logger(__name__)

TimerFactory = Callable[[float, Callable[[], None]], threading.Timer]


class PolledSource(Protocol):
    def poll(self, initial: bool = False, checkpoint: Optional[datetime] = None) -> PollResult:
        ...


class SchedulerState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    STOPPED = "stopped"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FixedDelayPollingScheduler:
    def __init__(
        self,
        source: PolledSource,
        registry: ConfigurationRegistry,
        config: Optional[SchedulerConfig] = None,
        *,
        timer_factory: TimerFactory = threading.Timer,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.source = source
        self.registry = registry
        self.config = config or SchedulerConfig()
        self._timer_factory = timer_factory
        self._clock = clock

        # Re-entrant so stop() may be called from inside a poll or a listener.
        self._lock = threading.RLock()
        self._poll_lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._state = SchedulerState.IDLE
        self._started = False
        self._stopped = False

        self.poll_count = 0
        self.failure_count = 0
        self.last_success: Optional[datetime] = None
        self.last_failure: Optional[datetime] = None
        self.last_error: Optional[BaseException] = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def running(self) -> bool:
        return self._started and not self._stopped

    def start(self) -> None:
        """Start polling.

        With ``synchronous_first_poll`` the first poll runs inline and a failure
        raises ``BootstrapError``; otherwise the first poll is scheduled after
        ``initial_delay_seconds``.
        """
        with self._lock:
            if self._started:
                raise SchedulerError("Scheduler has already been started")
            self._started = True

        if self.config.synchronous_first_poll:
            logger.info("Running synchronous initial configuration poll")
            result = self._run_cycle(initial=True)
            if result is None or not result.ok:
                self.stop()
                cause = result.cause if result is not None else None
                raise BootstrapError(f"Initial configuration poll failed: {cause}") from cause
            self._schedule(self.config.delay_seconds)
        else:
            self._schedule(self.config.initial_delay_seconds)

        logger.info(
            f"Polling scheduler started (initial_delay={self.config.initial_delay_seconds}s, "
            f"delay={self.config.delay_seconds}s, synchronous_first_poll={self.config.synchronous_first_poll})"
        )

    def stop(self) -> None:
        """Cancel the pending poll. A poll already in flight has its result discarded."""
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
            self._state = SchedulerState.STOPPED
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
        logger.info("Polling scheduler stopped")

    def poll_once(self) -> Optional[PollResult]:
        """Run one poll cycle inline; returns ``None`` when the scheduler is stopped."""
        return self._run_cycle(initial=not self._has_polled())

    def _has_polled(self) -> bool:
        return self.poll_count > 0

    def _schedule(self, delay: float) -> None:
        with self._lock:
            if self._stopped:
                return
            timer = self._timer_factory(delay, self._tick)
            timer.daemon = True
            self._timer = timer
            timer.start()

    def _tick(self) -> None:
        with self._lock:
            if self._stopped:
                return
            self._timer = None
        try:
            self._run_cycle(initial=not self._has_polled())
        finally:
            self._schedule(self.config.delay_seconds)

    def _run_cycle(self, *, initial: bool) -> Optional[PollResult]:
        with self._poll_lock:
            with self._lock:
                if self._stopped:
                    return None
                self._state = SchedulerState.POLLING
                self.poll_count += 1
                poll_id = str(self.poll_count)

            token = push_poll_id(poll_id)
            try:
                try:
                    result = self.source.poll(initial, self.last_success)
                except Exception as e:
                    # Sources are expected to return failures, but never let one kill the timer.
                    result = PollResult.failure(e)

                previous = None
                with self._lock:
                    if self._stopped:
                        logger.info("Discarding poll result that completed after stop()")
                        return result
                    if result.ok:
                        previous = self.registry.swap(result.value_set)
                        self.last_success = self._clock()
                    else:
                        self.failure_count += 1
                        self.last_failure = self._clock()
                        self.last_error = result.cause
                        logger.error(
                            f"Configuration poll failed; keeping previous values: "
                            f"{type(result.cause).__name__}: {result.cause}"
                        )
                if previous is not None:
                    # Outside _lock: stop() must not wait on listeners.
                    self.registry.notify_listeners(previous, result.value_set)
                return result
            finally:
                with self._lock:
                    if self._state is SchedulerState.POLLING:
                        self._state = SchedulerState.STOPPED if self._stopped else SchedulerState.IDLE
                reset_poll_id(token)
