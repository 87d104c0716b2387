"""Runs a batch of component tests one at a time and decides pass/fail/skip."""

import logging
import threading
import time
from typing import Iterable, Optional

from .exceptions import EngineError
from .models import BatchSummary, Component, Route, TestComponent, TestSuite, Verdict
from .result_interpreter import interpret_status, new_test_component
from .status_poller import DEFAULT_DEADLINE, DEFAULT_INTERVAL, PollScheduler, StatusPoller

logger = logging.getLogger(__name__)

# The engine runs at most one test job at a time, across all batches in this process
_engine_slot = threading.Lock()


class BatchOrchestrator:
    """Tests components sequentially and aggregates them into a TestSuite.

    Owns the poll scheduler for the lifetime of the batch; use as a context
    manager (or call close()) so pending status checks are cancelled.
    """

    def __init__(self, client, allow_empty_results: bool = False,
                 deadline: float = DEFAULT_DEADLINE, interval: float = DEFAULT_INTERVAL,
                 routes: Optional[Iterable[Route]] = None):
        self.allow_empty_results = allow_empty_results
        self.scheduler = PollScheduler()
        self.poller = StatusPoller(client, self.scheduler, deadline=deadline, interval=interval)
        self.routes = {r.id: r for r in routes or []}

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def close(self):
        self.scheduler.shutdown()

    def run_batch(self, components: list[Component]) -> tuple[TestSuite, BatchSummary]:
        suite = TestSuite()
        summary = BatchSummary()

        with _engine_slot:
            for component in components:
                test_component = self.execute_component(component)
                suite.add(test_component)
                summary.record(self.evaluate(component, test_component))

        logger.info(f"{summary.executed} executed / {summary.succeeded} succeeded / "
                    f"{summary.failed} failed / {summary.skipped} skipped.")
        return suite, summary

    def execute_component(self, component: Component) -> TestComponent:
        """Run and interpret the test of one component; errors end up in the result's error field."""
        test_component = new_test_component(component, self.routes)
        logger.info(f"Executing the test for '{component.name}' ({component.type or 'component'} {component.id})")
        started = time.monotonic()
        try:
            status = self.poller.run_test(component)
            interpret_status(component, status, test_component)
        except EngineError as e:
            logger.error(f"Exception executing tests on component {component.name}: {e}")
            test_component.set_error(str(e))
        except Exception as e:
            logger.error(f"Unexpected error testing component {component.name}: {e}", exc_info=True)
            test_component.set_error(f"Exception: {e}")
        finally:
            test_component.duration_ms = int((time.monotonic() - started) * 1000)
        return test_component

    def evaluate(self, component: Component, test_component: TestComponent) -> Verdict:
        if test_component.error is not None:
            return Verdict.FAILED

        if not test_component.tests:
            if self.allow_empty_results:
                logger.info(f"Empty results are allowed for {component.name}. Skipped.")
                return Verdict.SKIPPED
            logger.error(f"Empty results are not allowed for {component.name}. Fail.")
            return Verdict.FAILED

        if test_component.errors > 0 or test_component.failed > 0:
            logger.error(f"Failed test result for {component.name}")
            return Verdict.FAILED

        logger.info(f"All tests passed for {component.name}")
        return Verdict.SUCCEEDED
