"""
Main entry point for the hourly Bitcoin up/down bot.

Modes:
1. Run the bot: tick every second, evaluate at the trigger minute, score
   the pending record at the end of each hour
2. Run the relay server that forwards the market query
3. One-off commands: status, history report, clear history, manual draft
"""

import argparse
import logging
import signal
import sys
import time
from pathlib import Path
from typing import Optional

from updown_bot.config import Config
from updown_bot.decision_engine import Thresholds, check_conditions
from updown_bot.draft_requester import request_draft
from updown_bot.exceptions import BotError
from updown_bot.history_store import create_store
from updown_bot.market_fetcher import fetch_snapshot
from updown_bot.models import ActionType, CancelParams, OrderbookParams, OrderParams, RunState
from updown_bot.notifier import TelegramNotifier
from updown_bot.relay import run_relay
from updown_bot.reporter import generate_history_report, generate_status_report
from updown_bot.scheduler import BotRunner, HourlyScheduler, default_clock, seconds_to_close


# Configure logging
def setup_logging() -> None:
    """Configure logging for the application."""
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    log_level = getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO)

    handlers = [logging.StreamHandler(sys.stdout)]

    if Config.LOG_FILE:
        Config.ensure_directories()
        handlers.append(logging.FileHandler(Config.LOG_FILE))

    logging.basicConfig(
        level=log_level,
        format=log_format,
        handlers=handlers
    )


logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Hourly Bitcoin Up/Down Bot",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start the relay (separate terminal)
  python -m updown_bot.main --relay

  # Run the bot
  python -m updown_bot.main

  # Show live status and rule checks
  python -m updown_bot.main --status

  # Print the betting history
  python -m updown_bot.main --history

  # Draft a cancel snippet by hand
  python -m updown_bot.main --draft CANCEL_ORDER --order-id 0xabc...
        """
    )
    parser.add_argument("--relay", action="store_true", help="Run the market data relay server")
    parser.add_argument("--status", action="store_true", help="Fetch market data once and show rule status")
    parser.add_argument("--history", action="store_true", help="Print the betting history report")
    parser.add_argument("--output", type=Path, default=None, help="Also save the history report to this file")
    parser.add_argument("--clear-history", action="store_true", help="Delete all history records")
    parser.add_argument(
        "--draft",
        choices=[action.value for action in ActionType],
        default=None,
        help="Request a code draft for a CLOB interaction and print it"
    )
    parser.add_argument("--market-id", default="", help="Market id for --draft")
    parser.add_argument("--price", default="", help="Order price for --draft CREATE_ORDER")
    parser.add_argument("--size", default=None, help="Order size for --draft CREATE_ORDER (default: BET_SIZE)")
    parser.add_argument("--side", choices=["BUY", "SELL"], default="BUY", help="Order side for --draft CREATE_ORDER")
    parser.add_argument("--order-id", default="", help="Order id for --draft CANCEL_ORDER")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    args = build_parser().parse_args(argv)

    setup_logging()

    is_valid, errors = Config.validate()
    if not is_valid:
        logger.error("Configuration validation failed:")
        for error in errors:
            logger.error(f"  - {error}")
        return 1

    if args.relay:
        run_relay()
        return 0

    if args.status:
        return _show_status()

    if args.draft:
        return _run_draft(args)

    Config.ensure_directories()
    store = create_store()

    if args.clear_history:
        try:
            store.clear()
        except BotError as e:
            logger.error(f"Failed to clear history: {e}")
            return 1
        print("History cleared.")
        return 0

    if args.history:
        print(generate_history_report(store.load(), output_file=args.output))
        return 0

    return _run_bot(store)


def _show_status() -> int:
    """Fetch once and print the status view."""
    thresholds = Thresholds.from_config()
    state = RunState(seconds_to_close=seconds_to_close(default_clock()))

    try:
        snapshot = fetch_snapshot()
    except BotError as e:
        logger.error(f"Failed to fetch live market data: {e}")
        snapshot = None

    check = check_conditions(snapshot, thresholds) if snapshot else None
    print(generate_status_report(state, snapshot, check, thresholds, Config.TRIGGER_MINUTE))
    return 0 if snapshot else 1


def _run_draft(args: argparse.Namespace) -> int:
    """Request and print a single draft."""
    action = ActionType(args.draft)
    if action == ActionType.CREATE_ORDER:
        size = args.size if args.size is not None else f"{Config.BET_SIZE:g}"
        params = OrderParams(market_id=args.market_id, price=args.price, size=size, side=args.side)
    elif action == ActionType.CANCEL_ORDER:
        params = CancelParams(order_id=args.order_id)
    else:
        params = OrderbookParams(market_id=args.market_id)

    try:
        print(request_draft(action, params))
        return 0
    except BotError as e:
        logger.error(str(e))
        return 1


def _print_runner_status(runner: BotRunner) -> None:
    """Print the live status view, including the latest draft, for a running bot."""
    snapshot = runner.snapshot
    check = check_conditions(snapshot, runner.thresholds) if snapshot else None
    print(generate_status_report(
        runner.state,
        snapshot,
        check,
        runner.thresholds,
        runner.trigger_minute,
        tuple(runner.activity),
    ))


def _run_bot(store) -> int:
    """
    Run the bot until interrupted.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    if not Config.GEMINI_API_KEY:
        logger.warning("GEMINI_API_KEY not set; code drafts will fail but decisions are still recorded")

    runner = BotRunner(store, notifier=TelegramNotifier())
    scheduler = HourlyScheduler(runner)

    # Setup signal handlers for graceful shutdown
    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, shutting down gracefully...")
        runner.stop()
        scheduler.stop(wait=True)
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    runner.start()

    if not scheduler.start():
        logger.error("Failed to start scheduler")
        return 1

    logger.info(f"Bot armed. Rule is evaluated at minute {runner.trigger_minute} of each hour. Press Ctrl+C to stop.")

    last_entry = None
    try:
        while True:
            time.sleep(1)
            newest = runner.activity[0] if runner.activity else None
            if newest is not last_entry:
                last_entry = newest
                _print_runner_status(runner)
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
        runner.stop()
        scheduler.stop(wait=True)
        return 0


if __name__ == "__main__":
    sys.exit(main())
