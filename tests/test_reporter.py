"""
Tests for console reports and formatting helpers.
"""
from datetime import datetime

import pytest

from conftest import make_record, make_snapshot
from updown_bot.decision_engine import check_conditions
from updown_bot.models import ActivityEntry, Outcome, RunState
from updown_bot.reporter import generate_history_report, generate_status_report
from updown_bot.utils import format_countdown, format_currency, format_percentage


class TestStatusReport:

    def test_running_with_conditions_met(self, thresholds):
        snapshot = make_snapshot(0.70, 120, 100)
        state = RunState(running=True, seconds_to_close=21 * 60 + 30, draft_text="const x = 1;")
        activity = [ActivityEntry("9:21:00 PM", "Betting conditions met!", "SUCCESS")]

        report = generate_status_report(state, snapshot, check_conditions(snapshot, thresholds), thresholds, 21, activity)

        assert "Bot is currently RUNNING." in report
        assert "Time Until Close: 21:30" in report
        assert "Market Price (YES): 70.00%" in report
        assert "Hourly Gain: +$20.00" in report
        assert "[x] Time until close is 21:xx" in report
        assert "[x] Hourly price gain >= $19.00" in report
        assert "[SUCCESS] Betting conditions met!" in report
        assert "const x = 1;" in report

    def test_stopped_without_market_data(self, thresholds):
        report = generate_status_report(RunState(seconds_to_close=600), None, None, thresholds, 21)

        assert "Bot is currently STOPPED." in report
        assert "Market data: ..." in report
        assert "[x]" not in report
        assert "ACTIVITY LOG" not in report
        assert "GENERATED TRANSACTION CODE" not in report


class TestHistoryReport:

    def test_empty_history(self):
        report = generate_history_report([])
        assert "Attempts: 0" in report
        assert "Rule Accuracy: N/A" in report
        assert "No history yet." in report

    def test_rows_and_summary(self):
        history = [
            make_record(datetime(2025, 9, 27, 22, 21), outcome=Outcome.PENDING),
            make_record(datetime(2025, 9, 27, 21, 21), outcome=Outcome.WON, bet_placed=False, gain=-3.1),
        ]
        report = generate_history_report(history)

        assert "Attempts: 2" in report
        assert "Won: 1 | Lost: 0 | Pending: 1" in report
        assert "Rule Accuracy: 100.0%" in report
        assert "-$3.10" in report
        rows = report.splitlines()[-2:]
        assert rows[0].endswith("Pending")
        assert rows[1].endswith("Won")

    def test_report_saved_to_file(self, tmp_path):
        output = tmp_path / "reports" / "history.txt"
        report = generate_history_report([make_record()], output_file=output)
        assert output.read_text(encoding="utf-8") == report


@pytest.mark.parametrize("value,signed,expected", [
    (1234.567, False, "$1,234.57"),
    (20, True, "+$20.00"),
    (0, True, "+$0.00"),
    (-3.1, True, "-$3.10"),
    (-3.1, False, "-$3.10"),
])
def test_format_currency(value, signed, expected):
    assert format_currency(value, signed=signed) == expected


def test_format_percentage():
    assert format_percentage(0.6666) == "66.66%"
    assert format_percentage(0.875, 1) == "87.5%"


@pytest.mark.parametrize("seconds,expected", [(0, "00:00"), (61, "01:01"), (3599, "59:59"), (-5, "00:00")])
def test_format_countdown(seconds, expected):
    assert format_countdown(seconds) == expected
