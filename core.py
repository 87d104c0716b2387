#!/usr/bin/env python3
"""
Core operations shared between MCP server and CLI.
Contains the business logic for listing routes and running component tests.
"""

import json
import logging
from pathlib import Path
from typing import Optional

from engine_test_executor.config import ExecutorConfig, build_config
from engine_test_executor.discovery import find_all_routes, select_components
from engine_test_executor.engine_client import EngineClient
from engine_test_executor.exceptions import EngineError
from engine_test_executor.models import Filter
from engine_test_executor.orchestrator import BatchOrchestrator
from engine_test_executor.report import suite_from_dict, suite_to_dict, write_junit, write_reports

logger = logging.getLogger(__name__)


def _load_routes(client: EngineClient) -> list:
    return find_all_routes(client.get_components())


def list_routes(route_patterns: str = None, config: Optional[ExecutorConfig] = None) -> dict:
    """
    List the routes configured on the engine.

    Args:
        route_patterns: Glob patterns to narrow the list (optional, all routes if not given)
        config: Executor configuration (loaded from environment if not given)

    Returns:
        dict with routes, their folders and filter names
    """
    config = config or build_config()
    client = EngineClient.from_config(config)
    try:
        routes = _load_routes(client)
    finally:
        client.close()

    if route_patterns:
        routes = select_components(routes, route_patterns)

    return {
        "engine": config.base_url,
        "total": len(routes),
        "routes": [
            {
                "id": r.id,
                "name": r.name,
                "folder": r.folder,
                "filters": [f.name for f in r.filters],
            }
            for r in routes
        ],
    }


def run_tests(
    route_patterns: str = None,
    filter_patterns: str = None,
    allow_empty_results: bool = None,
    write_report: bool = True,
    config: Optional[ExecutorConfig] = None,
) -> dict:
    """
    Run the engine tests of every selected component, one at a time.

    Args:
        route_patterns: Glob patterns for route names (falls back to the configured patterns)
        filter_patterns: Glob patterns for filter names; when given only matching filters are tested
        allow_empty_results: Count components without test cases as skipped instead of failed
        write_report: Write JUnit XML and JSON reports to the configured report directory
        config: Executor configuration (loaded from environment if not given)

    Returns:
        dict with the overall verdict, summary counts, per-component results and report files,
        or {"error": ...} when no component could be selected
    """
    config = config or build_config()
    route_patterns = route_patterns or config.route_patterns
    filter_patterns = filter_patterns if filter_patterns is not None else config.filter_patterns
    if allow_empty_results is None:
        allow_empty_results = config.allow_empty_results

    client = EngineClient.from_config(config)
    try:
        try:
            routes = _load_routes(client)
            components = select_components(routes, route_patterns, filter_patterns)
        except (EngineError, ValueError) as e:
            logger.error(f"Unable to determine components to test: {e}")
            return {"error": f"Unable to determine components to test: {e}"}

        if not components:
            return {"error": "Unable to determine components to test. Check configuration."}

        logger.info(f"Will test {len(components)} component(s) out of {len(routes)} total routes")
        logger.info(f"Allow empty results: {allow_empty_results}")

        with BatchOrchestrator(client, allow_empty_results=allow_empty_results,
                               deadline=config.poll_deadline, interval=config.poll_interval,
                               routes=routes) as orchestrator:
            suite, summary = orchestrator.run_batch(components)
    finally:
        client.close()

    result = suite_to_dict(suite, summary)
    result["tested"] = [
        {"name": c.name, "id": c.id, "kind": "filter" if isinstance(c, Filter) else "route"}
        for c in components
    ]
    if write_report:
        result["report_files"] = [str(p) for p in write_reports(suite, summary, config.report_dir)]
    return result


def render_reports(suite_file: Path, output_dir: Optional[Path] = None) -> dict:
    """
    Re-render JUnit XML files from a saved test-suite.json.

    Args:
        suite_file: JSON written by a previous run
        output_dir: Where to write the XML (defaults to the JSON file's directory)
    """
    suite_file = Path(suite_file)
    try:
        data = json.loads(suite_file.read_text())
    except (OSError, ValueError) as e:
        return {"error": f"Cannot read {suite_file}: {e}"}

    suite = suite_from_dict(data)
    written = write_junit(suite, Path(output_dir) if output_dir else suite_file.parent)
    return {"components": len(suite.components), "report_files": [str(p) for p in written]}
