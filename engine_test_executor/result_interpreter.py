"""Turns an engine status payload into a TestComponent."""

import logging

from .models import Component, TestCase, TestComponent

logger = logging.getLogger(__name__)

COUNT_FIELDS = {
    "totalCount": "total",
    "passedCount": "passed",
    "failedCount": "failed",
    "executedCount": "executed",
    "skippedCount": "skipped",
    "errorCount": "errors",
}


def filter_name_from_path(path) -> str:
    """Last '/'-separated segment of a result path, '' when there is no path."""
    if not path:
        return ""
    return str(path).split("/")[-1]


def _count(entry: dict, key: str) -> int:
    value = entry.get(key)
    if value is None:
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.debug(f"Ignoring non-numeric {key}={value!r}")
        return 0


def _text(item: dict, key: str) -> str:
    value = item.get(key)
    return "" if value is None else str(value)


def new_test_component(component: Component, routes: dict) -> TestComponent:
    """Create the empty result for a component; filters report against their parent route.

    Args:
        component: Route or filter being tested
        routes: Route id -> Route, used to resolve a filter's parent
    """
    route = routes.get(getattr(component, "route_id", None), component)
    return TestComponent(component_id=route.id, component_name=route.name, folder_path=route.folder)


def interpret_status(component: Component, status: dict, test_component: TestComponent) -> TestComponent:
    """
    Add the counts and test cases of a completed status payload to test_component.

    Every entry of status["results"] contributes its counters; its filterTests
    become cases tagged with the filter named by the entry's path, its
    connectorTests become cases tagged with their own connectorName.
    """
    results = status.get("results") or []
    logger.info(f"{len(results)} test results returned for {component.name}")

    cases = []
    for entry in results:
        if not isinstance(entry, dict):
            continue
        test_component.add_counts(**{attr: _count(entry, key) for key, attr in COUNT_FIELDS.items()})

        filter_name = filter_name_from_path(entry.get("path"))
        for item in entry.get("filterTests") or []:
            if not isinstance(item, dict):
                continue
            cases.append(TestCase(
                name=_text(item, "testName"),
                description=_text(item, "testDescription"),
                result=_text(item, "result"),
                filter_name=filter_name,
            ))
        for item in entry.get("connectorTests") or []:
            if not isinstance(item, dict):
                continue
            cases.append(TestCase(
                name=_text(item, "testName"),
                description=_text(item, "testDescription"),
                result=_text(item, "result"),
                connector_name=_text(item, "connectorName"),
            ))

    test_component.tests.extend(cases)
    return test_component


def interpret(component: Component, status: dict, routes: dict = None) -> TestComponent:
    """Build a fresh TestComponent for component from a completed status payload."""
    return interpret_status(component, status, new_test_component(component, routes or {}))
