"""Tests for summary and console formatting."""

import pytest

from handraise_e2e.models import ExecutionResult
from handraise_e2e.notifications.formatters import (
    calculate_summary,
    filter_failed,
    format_console_report,
    format_duration,
    format_results_table,
    generate_short_summary,
    status_color,
    status_emoji,
)


@pytest.fixture
def mixed_results():
    return [
        ExecutionResult.passed("Load", 1200),
        ExecutionResult.passed("Load And Login", 3400),
        ExecutionResult.failed("Key Message Insights", 5000, "Generate AI Summary button not found"),
    ]


class TestFormatDuration:
    """Tests for format_duration()."""

    @pytest.mark.parametrize(
        "ms,expected",
        [(0, "0ms"), (450, "450ms"), (1530, "1.53s"), (59_999, "60.00s"), (125_000, "2m 5s")],
    )
    def test_formats(self, ms, expected):
        assert format_duration(ms) == expected


class TestSummary:
    """Tests for calculate_summary() and generate_short_summary()."""

    def test_counts(self, mixed_results):
        summary = calculate_summary(mixed_results)

        assert summary.total == 3
        assert summary.passed == 2
        assert summary.failed == 1
        assert summary.total_duration_ms == 9600
        assert summary.success_rate == 66.7
        assert summary.is_success is False

    def test_empty(self):
        summary = calculate_summary([])

        assert summary.total == 0
        assert summary.success_rate == 0.0
        assert summary.is_success is True

    def test_short_summary(self, mixed_results):
        text = generate_short_summary(calculate_summary(mixed_results))

        assert text == "❌ Test Results: 2/3 passed (66.7%) in 9.60s"

    def test_short_summary_all_passed(self):
        text = generate_short_summary(calculate_summary([ExecutionResult.passed("Load", 450)]))

        assert text == "✅ Test Results: 1/1 passed (100.0%) in 450ms"


class TestStatusHelpers:
    """Tests for emoji, color and failure filtering."""

    def test_known_and_unknown_status(self):
        assert status_emoji("passed") == "✅"
        assert status_emoji("failed") == "❌"
        assert status_emoji("weird") == "❓"
        assert status_color("failed") == "#ef4444"
        assert status_color("weird") == "#6b7280"

    def test_filter_failed(self, mixed_results):
        assert [r.name for r in filter_failed(mixed_results)] == ["Key Message Insights"]


class TestTables:
    """Tests for format_results_table() and format_console_report()."""

    def test_table_rows_align(self, mixed_results):
        lines = format_results_table(mixed_results).splitlines()

        assert len(lines) == 3 + len(mixed_results) + 1
        assert "Key Message Insights" in lines[5]
        assert lines[0].startswith("┌") and lines[-1].startswith("└")

    def test_zero_duration_shown_as_na(self):
        table = format_results_table([ExecutionResult.not_found("Missing")])

        assert "N/A" in table

    def test_short_names_pad_to_header(self):
        lines = format_results_table([ExecutionResult.passed("A", 10)]).splitlines()

        assert lines[1].startswith("│ Test Name │")
        assert lines[3].startswith("│ A         │")

    def test_console_report(self, mixed_results):
        report = format_console_report(mixed_results, "job-123")

        assert "TEST SUITE RESULTS - Job ID: job-123" in report
        assert "FAILED TESTS DETAILS:" in report
        assert "❌ Key Message Insights" in report
        assert "Error: Generate AI Summary button not found" in report

    def test_console_report_without_failures(self):
        report = format_console_report([ExecutionResult.passed("Load", 450)], "job-1")

        assert "FAILED TESTS DETAILS:" not in report
