"""
Reporter module for console output of live status and decision history.

This module stands in for the dashboard: it formats the current market
state against the trading rule, the activity log, the latest draft, and the
recorded history with summary statistics.
"""

import logging
from pathlib import Path
from typing import Iterable, Optional

from updown_bot.decision_engine import RuleCheck, Thresholds
from updown_bot.history_store import summarize_history
from updown_bot.models import ActivityEntry, DecisionRecord, MarketSnapshot, RunState
from updown_bot.utils import format_countdown, format_currency, format_percentage

# Configure module logger
logger = logging.getLogger(__name__)

RULE_WIDTH = 80


def generate_status_report(
    state: RunState,
    snapshot: Optional[MarketSnapshot],
    check: Optional[RuleCheck],
    thresholds: Thresholds,
    trigger_minute: int,
    activity: Iterable[ActivityEntry] = ()
) -> str:
    """
    Generate the live status view.

    Args:
        state: Current run state
        snapshot: Latest market snapshot, or None if none was fetched
        check: Rule check for that snapshot, or None
        thresholds: Trading rule constants
        trigger_minute: Minute of the hour the rule is evaluated at
        activity: Activity entries, newest first

    Returns:
        Formatted status string
    """
    lines = [
        "=" * RULE_WIDTH,
        "  HOURLY BTC UP/DOWN BOT - LIVE STATUS",
        "=" * RULE_WIDTH,
        f"Bot is currently {'RUNNING' if state.running else 'STOPPED'}.",
        f"Time Until Close: {format_countdown(state.seconds_to_close)}",
    ]

    if snapshot:
        lines += [
            f"Market Price (YES): {format_percentage(snapshot.yes_price)}",
            f"Price to Beat: {format_currency(snapshot.reference_strike)}",
            f"Current Price: {format_currency(snapshot.current_reference_value)}",
            f"Hourly Gain: {format_currency(snapshot.gain, signed=True)}",
        ]
    else:
        lines.append("Market data: ...")

    time_met = state.seconds_to_close // 60 == trigger_minute
    lines += [
        "",
        "BET CONDITIONS",
        "-" * RULE_WIDTH,
        _condition(f"Time until close is {trigger_minute}:xx", time_met),
        _condition(
            f"Market price is {format_percentage(thresholds.min_yes_price)} - "
            f"{format_percentage(thresholds.max_yes_price, 1)}",
            bool(check and check.price_in_range),
        ),
        _condition(
            f"Hourly price gain >= {format_currency(thresholds.min_profit)}",
            bool(check and check.profit_met),
        ),
    ]

    entries = list(activity)
    if entries:
        lines += ["", "ACTIVITY LOG", "-" * RULE_WIDTH]
        lines += [f"{entry.timestamp} [{entry.level}] {entry.message}" for entry in entries]

    if state.draft_text:
        lines += ["", "GENERATED TRANSACTION CODE", "-" * RULE_WIDTH, state.draft_text]

    return "\n".join(lines)


def generate_history_report(history: list[DecisionRecord], output_file: Optional[Path] = None) -> str:
    """
    Generate a report of the decision history.

    Args:
        history: Records, newest first
        output_file: Optional path to save report to file

    Returns:
        Formatted report string
    """
    summary = summarize_history(history)

    lines = [
        "=" * RULE_WIDTH,
        "  BETTING HISTORY",
        "=" * RULE_WIDTH,
        f"Attempts: {summary.attempts}",
        f"  - Bets Placed: {summary.bets_placed}",
        f"  - Won: {summary.won} | Lost: {summary.lost} | Pending: {summary.pending}",
        f"Rule Accuracy: {_rate(summary.rule_accuracy)}",
        f"Placed Bet Win Rate: {_rate(summary.bet_win_rate)}",
        "",
    ]

    if not history:
        lines += ["No history yet.", "Start the bot to begin recording attempts."]
    else:
        lines.append(f"{'Timestamp':<26}{'Bet Placed?':<13}{'Market Price':<14}{'Hourly Gain':<16}Outcome")
        lines.append("-" * RULE_WIDTH)
        for record in history:
            lines.append(
                f"{record.timestamp:<26}"
                f"{'Yes' if record.bet_placed else 'No':<13}"
                f"{format_percentage(record.observed_yes_price):<14}"
                f"{format_currency(record.observed_gain, signed=True):<16}"
                f"{record.outcome.value}"
            )

    report = "\n".join(lines)

    if output_file:
        _save_report_to_file(report, output_file)

    return report


def _condition(label: str, met: bool) -> str:
    return f"  [{'x' if met else ' '}] {label}"


def _rate(value: Optional[float]) -> str:
    return "N/A" if value is None else f"{value:.1%}"


def _save_report_to_file(report: str, file_path: Path) -> None:
    """
    Save report to file.

    Args:
        report: Report string
        file_path: Path to save file
    """
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(report, encoding="utf-8")
        logger.info(f"Report saved to {file_path}")
    except OSError as e:
        logger.error(f"Error saving report to {file_path}: {e}", exc_info=True)
