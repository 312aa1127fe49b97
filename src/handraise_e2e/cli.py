#!/usr/bin/env python3
"""
Command line for the Handraise E2E runner.

Usage:
    # List registered scenarios
    handraise-e2e list

    # Run every scenario headless
    handraise-e2e run

    # Debug one scenario in a visible browser
    handraise-e2e run "Load And Login" --headed --slow-mo 250 --devtools

    # Start the HTTP trigger server
    handraise-e2e serve

    # Delete artifacts older than 3 days
    handraise-e2e cleanup --days 3
"""
import argparse
import asyncio
import dataclasses
import sys
from typing import List, Optional

from dotenv import load_dotenv

from handraise_e2e import flask_server
from handraise_e2e.exceptions import ConfigurationError
from handraise_e2e.logging_config import setup_logging
from handraise_e2e.maintenance import run_maintenance
from handraise_e2e.notifications.formatters import format_console_report
from handraise_e2e.runner.artifacts import ArtifactStore
from handraise_e2e.runner.orchestrator import build_orchestrator
from handraise_e2e.scenarios.registry import ScenarioRegistry
from handraise_e2e.settings import RunnerSettings, get_runner_settings


class Colors:
    """ANSI color codes for terminal output."""

    RED = "\033[0;31m"
    GREEN = "\033[0;32m"
    YELLOW = "\033[1;33m"
    CYAN = "\033[0;36m"
    RESET = "\033[0m"
    BOLD = "\033[1m"


def cmd_list(args: argparse.Namespace, settings: RunnerSettings) -> int:
    """Print scenario names and descriptions."""
    scenarios = ScenarioRegistry(settings.scenarios_dir).list()
    print(f"{Colors.BOLD}Available scenarios ({len(scenarios)}):{Colors.RESET}")
    for scenario in scenarios:
        print(f"  {Colors.CYAN}{scenario['name']}{Colors.RESET}")
        print(f"      {scenario['description']}")
    return 0


def cmd_run(args: argparse.Namespace, settings: RunnerSettings) -> int:
    """Run one or all scenarios in the foreground and print the results table."""
    overrides = {}
    if args.headed:
        overrides["headed"] = True
    if args.slow_mo is not None:
        overrides["slow_mo_ms"] = args.slow_mo
    if args.devtools:
        overrides["devtools"] = True
    if overrides:
        settings = dataclasses.replace(settings, **overrides)

    settings.require_target()

    if settings.headed:
        print(f"{Colors.YELLOW}Browser launching in debug mode:{Colors.RESET}")
        print(f"   Slow motion: {settings.slow_mo_ms}ms")
        print(f"   DevTools: {'yes' if settings.devtools else 'no'}")

    orchestrator = build_orchestrator(settings)

    def print_event(event):
        if event["type"] == "step":
            print(f"  {event['message']}")
        elif event["type"] == "complete":
            result = event["result"]
            color = Colors.GREEN if result["status"] == "passed" else Colors.RED
            print(f"{color}{result['name']}: {result['status'].upper()}{Colors.RESET}")

    selector = (args.name,) if args.name else "all"
    results = asyncio.run(orchestrator.run_selected(selector, on_event=print_event))

    print()
    print(format_console_report(results, job_id="local"))
    return 0 if all(r.is_passed for r in results) else 1


def cmd_serve(args: argparse.Namespace, settings: RunnerSettings) -> int:
    """Start the Flask trigger server."""
    return flask_server.main()


def cmd_cleanup(args: argparse.Namespace, settings: RunnerSettings) -> int:
    """Delete artifacts older than the retention window."""
    days = args.days if args.days is not None else settings.artifact_retention_days
    results = run_maintenance(ArtifactStore(settings.artifacts_dir), days)
    if results["success"]:
        print(f"Deleted {results['deleted_count']} artifacts older than {days} days")
        return 0
    print(f"{Colors.RED}Cleanup failed: {results['error']}{Colors.RESET}", file=sys.stderr)
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="handraise-e2e",
        description="Handraise browser end-to-end test runner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")
    subparsers.required = True

    list_parser = subparsers.add_parser("list", help="List registered scenarios")
    list_parser.set_defaults(func=cmd_list)

    run_parser = subparsers.add_parser("run", help="Run one or all scenarios")
    run_parser.add_argument("name", nargs="?", help="Scenario name (default: all)")
    run_parser.add_argument("--headed", action="store_true", help="Show the browser window")
    run_parser.add_argument("--slow-mo", type=int, default=None, help="Slow motion delay in ms")
    run_parser.add_argument("--devtools", action="store_true", help="Open browser DevTools")
    run_parser.set_defaults(func=cmd_run)

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP trigger server")
    serve_parser.set_defaults(func=cmd_serve)

    cleanup_parser = subparsers.add_parser("cleanup", help="Delete old artifacts")
    cleanup_parser.add_argument("--days", type=int, default=None, help="Retention in days")
    cleanup_parser.set_defaults(func=cmd_cleanup)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    if args.command == "serve":
        return cmd_serve(args, None)

    load_dotenv()
    setup_logging()

    try:
        return args.func(args, get_runner_settings())
    except ConfigurationError as e:
        print(f"{Colors.RED}Configuration error: {e}{Colors.RESET}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
