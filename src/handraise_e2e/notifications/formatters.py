"""Text formatting helpers shared by the notification channels, the console summary and the CLI."""

from typing import Dict, List, Sequence

from handraise_e2e.models import ExecutionResult, RunSummary

STATUS_EMOJIS = {
    "passed": "✅",
    "failed": "❌",
    "running": "⏳",
    "skipped": "⏭️",
}

STATUS_COLORS = {
    "passed": "#10b981",
    "failed": "#ef4444",
    "running": "#3b82f6",
    "skipped": "#6b7280",
}

BANNER_WIDTH = 60


def calculate_summary(results: Sequence[ExecutionResult]) -> RunSummary:
    return RunSummary.from_results(list(results))


def format_duration(milliseconds: int) -> str:
    """
    Format a duration for humans.

    Examples:
        450 -> "450ms", 1530 -> "1.53s", 125000 -> "2m 5s"
    """
    if milliseconds < 1000:
        return f"{milliseconds}ms"
    if milliseconds < 60_000:
        return f"{milliseconds / 1000:.2f}s"
    minutes = milliseconds // 60_000
    seconds = (milliseconds % 60_000) / 1000
    return f"{minutes}m {seconds:.0f}s"


def status_emoji(status: str) -> str:
    return STATUS_EMOJIS.get(status, "❓")


def status_color(status: str) -> str:
    return STATUS_COLORS.get(status, "#6b7280")


def filter_failed(results: Sequence[ExecutionResult]) -> List[ExecutionResult]:
    return [r for r in results if not r.is_passed]


def generate_short_summary(summary: RunSummary) -> str:
    emoji = "✅" if summary.is_success else "❌"
    return (
        f"{emoji} Test Results: {summary.passed}/{summary.total} passed "
        f"({summary.success_rate:.1f}%) in {format_duration(summary.total_duration_ms)}"
    )


def format_results_table(results: Sequence[ExecutionResult]) -> str:
    """Box-drawn table of name, status and duration."""
    header = "Test Name"
    width = max([len(header)] + [len(r.name) for r in results])
    rows: List[Dict[str, str]] = [
        {
            "name": r.name,
            "status": f"{status_emoji(r.status)} {r.status.upper()}",
            "duration": format_duration(r.duration_ms) if r.duration_ms else "N/A",
        }
        for r in results
    ]

    lines = [
        "┌" + "─" * (width + 2) + "┬────────┬──────────┐",
        f"│ {header.ljust(width)} │ Status │ Duration │",
        "├" + "─" * (width + 2) + "┼────────┼──────────┤",
    ]
    for row in rows:
        lines.append(
            f"│ {row['name'].ljust(width)} │{row['status'].ljust(8)}│{row['duration'].ljust(10)}│"
        )
    lines.append("└" + "─" * (width + 2) + "┴────────┴──────────┘")
    return "\n".join(lines)


def format_console_report(results: Sequence[ExecutionResult], job_id: str) -> str:
    """Banner, short summary, results table and failed-test details."""
    summary = calculate_summary(results)
    lines = [
        "=" * BANNER_WIDTH,
        f"TEST SUITE RESULTS - Job ID: {job_id}",
        "=" * BANNER_WIDTH,
        generate_short_summary(summary),
        "-" * BANNER_WIDTH,
        format_results_table(results),
    ]

    failed = filter_failed(results)
    if failed:
        lines.extend(["", "=" * BANNER_WIDTH, "FAILED TESTS DETAILS:", "-" * BANNER_WIDTH])
        for result in failed:
            lines.append(f"\n❌ {result.name}")
            if result.error:
                lines.append(f"   Error: {result.error}")

    lines.extend(["", "=" * BANNER_WIDTH])
    return "\n".join(lines)
