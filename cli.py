#!/usr/bin/env python3
"""CLI for the engine component test executor."""

import argparse
import json
import logging
import sys
from pathlib import Path

import core
from engine_test_executor.config import build_config, load_job_file
from engine_test_executor.exceptions import EngineError


def setup_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(levelname)s: %(message)s'
    )


def _config_from_args(args):
    job = load_job_file(Path(args.job_file)) if getattr(args, 'job_file', None) else None
    overrides = {
        'base_url': args.url.rstrip('/') if args.url else None,
        'report_dir': getattr(args, 'report_dir', None),
    }
    if getattr(args, 'deadline', None) is not None:
        overrides['poll_deadline'] = args.deadline
    if getattr(args, 'interval', None) is not None:
        overrides['poll_interval'] = args.interval / 1000
    return build_config(job=job, **overrides)


def cmd_run(args):
    """Run tests for the selected components."""
    config = _config_from_args(args)

    data = core.run_tests(
        route_patterns=args.routes,
        filter_patterns=args.filters,
        allow_empty_results=True if args.allow_empty_results else None,
        write_report=not args.no_report,
        config=config,
    )

    if "error" in data:
        print(f"Error: {data['error']}", file=sys.stderr)
        return 2

    if args.format == 'json':
        print(json.dumps(data, indent=2, default=str))
    else:
        _print_summary(data)

    return 0 if data.get("passed") else 1


def _print_summary(data: dict):
    """Print human-readable summary."""
    components = data.get("components", [])
    max_name_len = max((len(c['component_name'] or '') for c in components), default=10)

    print(f"\n{'='*60}")
    print(f"{'Component':<{max_name_len}}  {'Status':<6}  {'Pass':>6}  {'Fail':>6}  {'Error':>6}  {'Skip':>6}  {'Time':>7}")
    print(f"{'-'*max_name_len}  {'-'*6}  {'-'*6}  {'-'*6}  {'-'*6}  {'-'*6}  {'-'*7}")
    for c in components:
        seconds = c.get('duration_ms', 0) / 1000
        if c.get('error'):
            print(f"{c['component_name']:<{max_name_len}}  {'ERROR':<6}  {'-':>6}  {'-':>6}  {'-':>6}  {'-':>6}  "
                  f"{seconds:>6.1f}s  ({c['error'][:40]})")
            continue
        if not c.get('tests'):
            status_icon = '⚪'
        elif c.get('failed') or c.get('errors'):
            status_icon = '❌'
        else:
            status_icon = '✅'
        print(f"{c['component_name']:<{max_name_len}}  {status_icon:<6}  {c['passed']:>6}  {c['failed']:>6}  "
              f"{c['errors']:>6}  {c['skipped']:>6}  {seconds:>6.1f}s")

        failing = [t for t in c.get('tests', []) if t.get('result') not in ('PASS', 'SKIPPED')]
        for t in failing[:10]:
            target = t.get('connector_name') or t.get('filter_name') or ''
            print(f"    - {t.get('result')}: {target}: {t.get('name', '')[:60]}")
        if len(failing) > 10:
            print(f"    ... and {len(failing) - 10} more")

    summary = data.get("summary", {})
    print()
    print(f"{summary.get('executed', 0)} executed / {summary.get('succeeded', 0)} succeeded / "
          f"{summary.get('failed', 0)} failed / {summary.get('skipped', 0)} skipped.")
    print(f"Result: {'PASS' if data.get('passed') else 'FAIL'}")
    for path in data.get("report_files", []):
        print(f"Report: {path}")
    print(f"{'='*60}\n")


def cmd_list_routes(args):
    """List routes configured on the engine."""
    config = _config_from_args(args)
    data = core.list_routes(args.routes, config=config)

    if args.format == 'json':
        print(json.dumps(data, indent=2))
        return 0

    print(f"Routes ({data['total']}):")
    for r in data["routes"]:
        folder = f"{r['folder']}/" if r['folder'] else ""
        print(f"  - {folder}{r['name']} ({len(r['filters'])} filters)")
        if args.filters_shown:
            for name in r['filters']:
                print(f"      · {name}")
    return 0


def cmd_render(args):
    """Re-render JUnit XML from a saved test-suite.json."""
    data = core.render_reports(Path(args.suite_file), Path(args.output) if args.output else None)
    if "error" in data:
        print(f"Error: {data['error']}", file=sys.stderr)
        return 1
    print(f"Rendered {data['components']} component(s):")
    for path in data["report_files"]:
        print(f"  - {path}")
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(description='Integration engine component test executor')
    parser.add_argument('-v', '--verbose', action='store_true')
    parser.add_argument('--url', help='Engine REST URL (overrides ENGINE_URL)')
    parser.add_argument('--job-file', help='YAML job file with patterns and polling settings')

    sub = parser.add_subparsers(dest='command')

    # run
    p = sub.add_parser('run', help='Run component tests')
    p.add_argument('--routes', '-r', help='Route name glob patterns (comma-separated)')
    p.add_argument('--filters', help='Filter name glob patterns; only matching filters are tested')
    p.add_argument('--allow-empty-results', action='store_true',
                   help='Count components that return no test cases as skipped')
    p.add_argument('--deadline', type=float, help='Seconds to wait for each test to complete')
    p.add_argument('--interval', type=float, help='Milliseconds between status checks')
    p.add_argument('--report-dir', help='Directory for JUnit XML and JSON reports')
    p.add_argument('--no-report', action='store_true', help='Do not write report files')
    p.add_argument('--format', '-f', choices=['text', 'json'], default='text')

    # list-routes
    p = sub.add_parser('list-routes', help='List engine routes')
    p.add_argument('--routes', '-r', help='Route name glob patterns (comma-separated)')
    p.add_argument('--show-filters', dest='filters_shown', action='store_true', help='List filters of each route')
    p.add_argument('--format', '-f', choices=['text', 'json'], default='text')

    # render
    p = sub.add_parser('render', help='Render JUnit XML from a saved test-suite.json')
    p.add_argument('suite_file', help='Path to test-suite.json')
    p.add_argument('--output', '-o', help='Output directory (default: next to the JSON file)')

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(args.verbose)

    cmds = {
        'run': cmd_run,
        'list-routes': cmd_list_routes,
        'render': cmd_render,
    }
    try:
        return cmds[args.command](args)
    except EngineError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == '__main__':
    sys.exit(main())
