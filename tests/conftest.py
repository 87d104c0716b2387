"""Shared fixtures for engine-test-executor tests. No engine is contacted."""

import threading

import pytest

from engine_test_executor.exceptions import SubmissionError
from engine_test_executor.models import Filter, Route


class FakeEngineClient:
    """Stands in for EngineClient; status replies are scripted per component id.

    Each status queue is consumed in order and its last item repeats. Items
    that are exceptions are raised from check_status.
    """

    def __init__(self, statuses=None, submit_errors=None, components=None):
        self.statuses = {cid: list(items) for cid, items in (statuses or {}).items()}
        self.submit_errors = submit_errors or {}
        self.components = components or {"data": {}}
        self.submitted = []
        self.checked = []
        self.check_timeouts = []
        self.closed = False
        self._lock = threading.Lock()

    def submit_test(self, component_id):
        self.submitted.append(component_id)
        if component_id in self.submit_errors:
            raise self.submit_errors[component_id]
        if component_id not in self.statuses:
            raise SubmissionError("Unexpected response status: 404 Not Found")
        return f"https://engine.local/status/{component_id}"

    def check_status(self, location, timeout=None):
        component_id = location.rsplit("/", 1)[-1]
        with self._lock:
            self.checked.append(component_id)
            self.check_timeouts.append(timeout)
            queue = self.statuses[component_id]
            item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item

    def get_components(self):
        return self.components

    def close(self):
        self.closed = True


@pytest.fixture
def make_client():
    return FakeEngineClient


@pytest.fixture
def route():
    return Route.from_tree({
        "uuid": "u-10", "id": "10", "name": "Orders", "type": "ROUTE",
        "childComponents": [
            {"uuid": "u-11", "id": "11", "name": "Validate", "type": "FILTER"},
            {"uuid": "u-12", "id": "12", "name": "Transform", "type": "FILTER"},
        ],
    }, "Integrations/Sales")


@pytest.fixture
def component_tree():
    return {
        "data": {
            "childComponents": [
                {"id": "1", "name": "Route 0", "type": "ROUTE", "childComponents": [
                    {"id": "1a", "name": "Filter 0-0", "type": "FILTER"},
                ]},
                {"id": "x", "name": "Shared definition", "type": "DEFINITION"},
            ],
            "childFolders": [
                {"name": "Sales", "childComponents": [
                    {"id": "2", "name": "Route 10", "type": "ROUTE", "childComponents": [
                        {"id": "2a", "name": "Filter 10-0", "type": "FILTER"},
                        {"id": "2b", "name": "Filter 10-1", "type": "FILTER"},
                    ]},
                ], "childFolders": [
                    {"name": "EU", "childComponents": [
                        {"id": "3", "name": "Route 15", "type": "ROUTE", "childComponents": []},
                    ]},
                ]},
            ],
        }
    }


@pytest.fixture
def a_filter(route) -> Filter:
    return route.filters[0]
