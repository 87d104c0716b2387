"""Tests for test submission and status polling; timings are shortened to keep them fast."""

import threading
import time

import pytest

from engine_test_executor.exceptions import PollTimeout, PollTransportError, SubmissionError
from engine_test_executor.models import Route
from engine_test_executor.status_poller import PollScheduler, StatusPoller

DEADLINE = 0.6
INTERVAL = 0.1

RUNNING = {"state": "RUNNING"}
DONE = {"state": "COMPLETED", "results": []}


@pytest.fixture
def scheduler():
    s = PollScheduler()
    yield s
    s.shutdown()


@pytest.fixture
def component():
    return Route(id="42", name="Orders", type="ROUTE")


def _poller(client, scheduler, deadline=DEADLINE, interval=INTERVAL):
    return StatusPoller(client, scheduler, deadline=deadline, interval=interval)


class TestPollScheduler:
    def test_runs_check_after_delay(self, scheduler):
        started = time.monotonic()
        check = scheduler.schedule(lambda: {"state": "COMPLETED"}, 0.05)
        assert check.result(timeout=1) == {"state": "COMPLETED"}
        assert time.monotonic() - started >= 0.05

    def test_cancelled_check_never_runs(self, scheduler):
        calls = []
        check = scheduler.schedule(lambda: calls.append(1), 0.2)
        check.cancel()
        time.sleep(0.3)
        assert calls == []
        assert check.done()

    def test_shutdown_cancels_pending_checks(self):
        scheduler = PollScheduler()
        calls = []
        scheduler.schedule(lambda: calls.append(1), 5)
        scheduler.schedule(lambda: calls.append(2), 5)

        assert scheduler.shutdown() == 2
        time.sleep(0.1)
        assert calls == []

    def test_release_moves_past_a_running_check(self, scheduler):
        release = threading.Event()
        stuck = scheduler.schedule(lambda: release.wait(5), 0)
        time.sleep(0.05)

        try:
            assert scheduler.release() == 1
            started = time.monotonic()
            assert scheduler.schedule(lambda: {"state": "COMPLETED"}, 0).result(timeout=1) == {"state": "COMPLETED"}
            assert time.monotonic() - started < 1
            assert not stuck.done()
        finally:
            release.set()

    def test_release_without_leftovers(self, scheduler):
        scheduler.schedule(lambda: {}, 0).result(timeout=1)
        time.sleep(0.05)
        assert scheduler.release() == 0

    def test_schedule_after_shutdown_fails(self):
        scheduler = PollScheduler()
        scheduler.shutdown()
        with pytest.raises(RuntimeError):
            scheduler.schedule(lambda: {}, 0)


class TestRunTest:
    def test_completes_after_running(self, make_client, scheduler, component):
        client = make_client(statuses={"42": [RUNNING, DONE]})

        status = _poller(client, scheduler).run_test(component)

        assert status == DONE
        assert client.submitted == ["42"]
        assert len(client.checked) >= 2

    def test_any_other_state_keeps_polling(self, make_client, scheduler, component):
        client = make_client(statuses={"42": [{"state": "QUEUED"}, {}, RUNNING, DONE]})

        assert _poller(client, scheduler).run_test(component) == DONE
        assert len(client.checked) >= 4

    def test_times_out_when_never_completed(self, make_client, scheduler, component):
        client = make_client(statuses={"42": [RUNNING]})

        started = time.monotonic()
        with pytest.raises(PollTimeout):
            _poller(client, scheduler).run_test(component)
        elapsed = time.monotonic() - started

        assert elapsed < DEADLINE + INTERVAL + 0.2
        assert 1 <= len(client.checked) <= round(DEADLINE / INTERVAL)

    def test_hung_check_does_not_extend_deadline(self, make_client, scheduler, component):
        release = threading.Event()
        in_flight = []
        max_in_flight = []
        lock = threading.Lock()
        client = make_client(statuses={"42": [RUNNING]})

        def hanging_check(location, timeout=None):
            with lock:
                in_flight.append(1)
                max_in_flight.append(len(in_flight))
            release.wait(5)
            with lock:
                in_flight.pop()
            return RUNNING

        client.check_status = hanging_check

        started = time.monotonic()
        try:
            with pytest.raises(PollTimeout):
                _poller(client, scheduler).run_test(component)
            elapsed = time.monotonic() - started
        finally:
            release.set()

        assert elapsed < DEADLINE + INTERVAL + 0.2
        # Later checks queue behind the hung one instead of overlapping it
        assert max(max_in_flight) == 1

    def test_transport_error_aborts_immediately(self, make_client, scheduler, component):
        client = make_client(statuses={"42": [RUNNING, PollTransportError("Error: route is stopped")]})

        with pytest.raises(PollTransportError, match="route is stopped"):
            _poller(client, scheduler).run_test(component)
        assert len(client.checked) >= 2

    def test_unexpected_check_failure_is_a_transport_error(self, make_client, scheduler, component):
        client = make_client(statuses={"42": [ValueError("bad json")]})

        with pytest.raises(PollTransportError, match="bad json"):
            _poller(client, scheduler).run_test(component)

    def test_submission_error_skips_polling(self, make_client, scheduler, component):
        client = make_client(submit_errors={"42": SubmissionError("Unexpected response status: 404 Not Found")})

        with pytest.raises(SubmissionError):
            _poller(client, scheduler).run_test(component)
        assert client.checked == []

    def test_checks_are_bounded_by_the_wait_window(self, make_client, scheduler, component):
        client = make_client(statuses={"42": [RUNNING, DONE]})

        _poller(client, scheduler).run_test(component)

        assert client.check_timeouts
        assert all(t == pytest.approx(INTERVAL * 1.5) for t in client.check_timeouts)

    def test_hung_check_is_dropped_once_waiting_ends(self, make_client, scheduler, component):
        release = threading.Event()
        client = make_client(statuses={"42": [RUNNING]})
        client.check_status = lambda location, timeout=None: release.wait(5)

        try:
            with pytest.raises(PollTimeout):
                _poller(client, scheduler).run_test(component)
            later = scheduler.schedule(lambda: {"state": "COMPLETED"}, 0)
            assert later.result(timeout=1) == {"state": "COMPLETED"}
        finally:
            release.set()
