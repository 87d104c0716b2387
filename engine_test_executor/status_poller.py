"""
Submitting a component test and waiting for the engine to finish it.

Tests run asynchronously on the engine: a submission returns a status
location that has to be checked periodically until the run reports
COMPLETED. Checks are scheduled one at a time on a single worker so a slow
check can never overlap the next one.
"""

import logging
import threading
import time
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Callable, Optional

from .exceptions import PollTimeout, PollTransportError
from .models import Component

logger = logging.getLogger(__name__)

COMPLETED_STATE = "COMPLETED"
DEFAULT_DEADLINE = 5.0
DEFAULT_INTERVAL = 0.2


class ScheduledCheck:
    """Handle on one scheduled status check."""

    def __init__(self, future: Future, cancelled: threading.Event):
        self._future = future
        self._cancelled = cancelled

    def result(self, timeout: float) -> dict:
        return self._future.result(timeout=timeout)

    def cancel(self):
        """Best effort: stops a check that has not started, a running check finishes and is ignored."""
        self._cancelled.set()
        self._future.cancel()

    def done(self) -> bool:
        return self._future.done()


class PollScheduler:
    """Runs delayed status checks on a single worker thread."""

    def __init__(self):
        self._executor = self._new_worker()
        self._closed = threading.Event()
        self._pending: set[ScheduledCheck] = set()
        self._lock = threading.Lock()

    def schedule(self, check: Callable[[], dict], delay: float) -> ScheduledCheck:
        cancelled = threading.Event()

        def run():
            # The delay is interruptible so cancel() and shutdown() take effect immediately
            if cancelled.wait(delay) or self._closed.is_set():
                raise CancelledError()
            return check()

        with self._lock:
            future = self._executor.submit(run)
            handle = ScheduledCheck(future, cancelled)
            self._pending.add(handle)
        future.add_done_callback(lambda _: self._forget(handle))
        return handle

    @staticmethod
    def _new_worker() -> ThreadPoolExecutor:
        return ThreadPoolExecutor(max_workers=1, thread_name_prefix="status-check")

    def _forget(self, handle: ScheduledCheck):
        with self._lock:
            self._pending.discard(handle)

    def release(self) -> int:
        """Cancel leftover checks of a finished wait so they cannot hold up the next one.

        A check that is still running keeps its worker until it returns, so the
        scheduler moves on to a fresh worker and the late result is ignored.
        Returns how many checks were left over.
        """
        with self._lock:
            leftover = list(self._pending)
            stale = self._executor if leftover else None
            if stale is not None:
                self._executor = self._new_worker()
        for handle in leftover:
            handle.cancel()
        if stale is not None:
            stale.shutdown(wait=False, cancel_futures=True)
            logger.debug(f"Dropped {len(leftover)} leftover status checks")
        return len(leftover)

    def shutdown(self) -> int:
        """Cancel every pending check and stop the worker. Returns how many were still pending."""
        self._closed.set()
        with self._lock:
            leftover = list(self._pending)
        for handle in leftover:
            handle.cancel()
        self._executor.shutdown(wait=False, cancel_futures=True)
        if leftover:
            logger.warning(f"Poll scheduler stopped with {len(leftover)} checks still pending")
        return len(leftover)


class StatusPoller:
    """Starts a component test and polls its status until completion or deadline."""

    def __init__(self, client, scheduler: PollScheduler,
                 deadline: float = DEFAULT_DEADLINE, interval: float = DEFAULT_INTERVAL):
        """
        Args:
            client: Object with submit_test(component_id) and check_status(location)
            scheduler: Scheduler shared by all components of a batch
            deadline: Seconds of polling budget per test
            interval: Seconds between status checks
        """
        self.client = client
        self.scheduler = scheduler
        self.deadline = deadline
        self.interval = interval

    def run_test(self, component: Component) -> dict:
        """
        Run the engine test of one component.

        Returns:
            The completed status payload

        Raises:
            SubmissionError: the engine did not accept the test
            PollTransportError: a status check failed
            PollTimeout: the test did not complete within the deadline
        """
        location = self.client.submit_test(component.id)
        logger.info(f"Submitted request to test {component.name} ({component.id})")
        status = self.wait_for_completion(location, component)
        logger.info(f"Completed testing for {component.name}")
        return status

    def wait_for_completion(self, location: str, component: Optional[Component] = None) -> dict:
        label = component.name if component else location
        try:
            return self._poll(location, label)
        finally:
            # Leftover checks must not queue ahead of the next component's checks
            self.scheduler.release()

    def _poll(self, location: str, label: str) -> dict:
        started = time.monotonic()
        # Hard stop keeps the loop within deadline + interval even when checks hang
        hard_stop = started + self.deadline + self.interval
        remaining_ms = int(round(self.deadline * 1000))
        step_ms = max(1, int(round(self.interval * 1000)))
        wait_timeout = self.interval * 1.5

        def check_status():
            # A check never waits on the engine longer than the poll cycle waits for it
            return self.client.check_status(location, timeout=wait_timeout)

        while remaining_ms > 0:
            logger.debug(f"Waiting for tests to complete on {label}...")
            check = self.scheduler.schedule(check_status, self.interval)
            try:
                status = check.result(timeout=max(0.0, min(wait_timeout, hard_stop - time.monotonic())))
                state = status.get("state")
                if state == COMPLETED_STATE:
                    return status
                logger.debug(f"Test on {label} is {state or 'in an unknown state'}, checking again")
            except (FutureTimeout, CancelledError):
                # Still waiting on this check; it is dropped and a fresh one scheduled
                pass
            except PollTransportError:
                logger.error(f"Exception requesting test execution status for {label}")
                raise
            except Exception as e:
                raise PollTransportError(f"Exception requesting test status: {e}") from e
            finally:
                check.cancel()

            remaining_ms -= step_ms
            if time.monotonic() >= hard_stop:
                break

        raise PollTimeout(f"Test did not complete within {self.deadline:g}s")
