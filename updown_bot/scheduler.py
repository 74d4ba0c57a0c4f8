"""
Scheduler module for the hourly evaluation cycle.

The timing rules live in a pure `tick(state, now, newest_pending)` function
that returns the next RunState and the actions due at that instant.
`BotRunner` executes those actions (fetch, evaluate, persist, draft, notify)
and `HourlyScheduler` drives the runner with APScheduler: a 1-second tick job
and a periodic market refresh job on a single worker thread, so ticks never
run in parallel.
"""

import logging
from collections import deque
from dataclasses import replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
import pytz

from updown_bot import decision_engine
from updown_bot.config import Config
from updown_bot.decision_engine import Thresholds
from updown_bot.draft_requester import request_draft
from updown_bot.exceptions import BotError, GenerationError
from updown_bot.history_store import HistoryStore
from updown_bot.market_fetcher import fetch_snapshot
from updown_bot.models import (
    ActionType,
    ActivityEntry,
    DecisionRecord,
    MarketSnapshot,
    OrderParams,
    Outcome,
    RunState,
)

# Configure module logger
logger = logging.getLogger(__name__)

RESOLVE_MINUTE = 59
RESOLVE_SECOND = 59
RESET_WINDOW_SECONDS = 5
MAX_ACTIVITY_ENTRIES = 100


class ScheduledAction(str, Enum):
    """Effects a tick can request."""
    EVALUATE = "evaluate"
    RESOLVE_PENDING = "resolve_pending"
    RESET_HOUR = "reset_hour"


# Pure timing rules

def seconds_to_close(now: datetime) -> int:
    """Seconds until HH:59:59.999 of the current hour, rounded."""
    end_of_hour = now.replace(minute=59, second=59, microsecond=999000)
    return round((end_of_hour - now).total_seconds())


def start(state: RunState, now: datetime) -> RunState:
    """
    Arm the bot.

    The previous hour is marked as attempted so the current hour's trigger
    minute can still fire if it has not passed yet.
    """
    return replace(
        state,
        running=True,
        last_attempted_hour=(now.hour - 1) % 24,
        draft_text="",
    )


def stop(state: RunState) -> RunState:
    """Disarm the bot. An evaluation already in flight is left to finish."""
    return replace(state, running=False)


def tick(
    state: RunState,
    now: datetime,
    newest_pending: bool,
    trigger_minute: Optional[int] = None
) -> tuple[RunState, list[ScheduledAction]]:
    """
    Apply the once-per-second timing rules.

    Args:
        state: Current run state
        now: Tick time
        newest_pending: Whether the newest history record is Pending
        trigger_minute: Minute of the hour to evaluate at. If None, uses
            Config.TRIGGER_MINUTE.

    Returns:
        Tuple of (new state, actions to execute in order)
    """
    if trigger_minute is None:
        trigger_minute = Config.TRIGGER_MINUTE

    hour = now.hour
    actions: list[ScheduledAction] = []
    state = replace(state, seconds_to_close=seconds_to_close(now))

    if (
        now.minute == RESOLVE_MINUTE
        and now.second == RESOLVE_SECOND
        and newest_pending
        and state.last_resolved_hour != hour
    ):
        state = replace(state, last_resolved_hour=hour)
        actions.append(ScheduledAction.RESOLVE_PENDING)

    if (
        now.minute == 0
        and now.second < RESET_WINDOW_SECONDS
        and state.last_attempted_hour is not None
        and state.last_attempted_hour != hour
    ):
        state = replace(state, last_attempted_hour=None, draft_text="")
        actions.append(ScheduledAction.RESET_HOUR)

    # Guard is set when the action is emitted so a slow evaluation can't repeat
    if state.running and now.minute == trigger_minute and state.last_attempted_hour != hour:
        state = replace(state, last_attempted_hour=hour)
        actions.append(ScheduledAction.EVALUATE)

    return state, actions


def default_clock() -> datetime:
    """Current time in the configured market timezone."""
    return datetime.now(pytz.timezone(Config.TIMEZONE))


class BotRunner:
    """
    Imperative shell around the timing rules.

    Owns the run state, the in-memory history, the latest cached snapshot
    and the activity log. All collaborators are injected so the runner can be
    exercised without network access.

    If the end-of-hour fetch fails, the record is left Pending rather than
    scored against a later price, so the next hour's evaluation adds a second
    Pending record on top of it. The stale one is reported with a warning and
    stays Pending until the history is cleared.
    """

    def __init__(
        self,
        store: HistoryStore,
        fetcher: Callable[[], MarketSnapshot] = fetch_snapshot,
        draft_requester: Callable[[ActionType, OrderParams], str] = request_draft,
        notifier=None,
        thresholds: Optional[Thresholds] = None,
        bet_size: Optional[float] = None,
        trigger_minute: Optional[int] = None,
        clock: Callable[[], datetime] = default_clock,
    ):
        self.store = store
        self.fetcher = fetcher
        self.draft_requester = draft_requester
        self.notifier = notifier
        self.thresholds = thresholds or Thresholds.from_config()
        self.bet_size = bet_size if bet_size is not None else Config.BET_SIZE
        self.trigger_minute = trigger_minute if trigger_minute is not None else Config.TRIGGER_MINUTE
        self.clock = clock

        self.state = RunState()
        self.snapshot: Optional[MarketSnapshot] = None
        self.activity: deque[ActivityEntry] = deque(maxlen=MAX_ACTIVITY_ENTRIES)
        self.history: list[DecisionRecord] = store.load()

        logger.info(f"Loaded {len(self.history)} history records")

    # Controls

    def start(self, now: Optional[datetime] = None) -> None:
        if self.state.running:
            logger.warning("Bot is already running")
            return
        self.state = start(self.state, now or self.clock())
        self.log("Bot started. Waiting for conditions to be met.", "INFO")

    def stop(self) -> None:
        if not self.state.running:
            logger.warning("Bot is not running")
            return
        self.state = stop(self.state)
        self.log("Bot stopped.", "INFO")

    def clear_history(self) -> None:
        self.history = []
        self._persist()
        self.log("History cleared.", "INFO")

    # Timer callbacks

    def on_tick(self, now: Optional[datetime] = None) -> list[ScheduledAction]:
        """
        Run one tick: compute due actions and execute them.

        Errors from any action are logged and never propagate, so the timer
        keeps running.
        """
        if now is None:
            now = self.clock()

        self.state, actions = tick(
            self.state,
            now,
            newest_pending=self._newest_pending(),
            trigger_minute=self.trigger_minute,
        )

        for action in actions:
            try:
                if action == ScheduledAction.RESOLVE_PENDING:
                    self.resolve_pending()
                elif action == ScheduledAction.RESET_HOUR:
                    self.log("New hour started. Ready for next cycle.", "INFO")
                elif action == ScheduledAction.EVALUATE:
                    self.evaluate_now(now)
            except BotError as e:
                self.log(str(e), "ERROR")

        return actions

    def refresh_market(self) -> Optional[MarketSnapshot]:
        """Refresh the cached snapshot shown by the status view."""
        try:
            self.snapshot = self.fetcher()
        except BotError as e:
            self.log(f"Failed to fetch live market data: {e}", "ERROR")
        return self.snapshot

    # Effects

    def evaluate_now(self, now: Optional[datetime] = None) -> DecisionRecord:
        """
        Fetch fresh data, evaluate the rule and record the result.

        The cached snapshot is never used here: the decision must rest on data
        fetched at evaluation time.

        Raises:
            FetchError: If the market data cannot be fetched.
        """
        if now is None:
            now = self.clock()

        self.log(f"{self.trigger_minute} minute mark reached. Checking conditions...", "INFO")

        snapshot = self.fetcher()
        self.snapshot = snapshot

        if self._newest_pending():
            logger.warning(f"Previous record {self.history[0].id} was never resolved")

        check = decision_engine.check_conditions(snapshot, self.thresholds)
        record = decision_engine.evaluate(snapshot, now=now, thresholds=self.thresholds)
        self.history = [record] + self.history
        self._persist()

        if record.bet_placed:
            self.log(
                f"Conditions met! Market Price: {snapshot.yes_price * 100:.2f}%, "
                f"Hourly Gain: ${record.observed_gain:.2f}. Generating transaction...",
                "SUCCESS",
            )
            self._request_order_draft(snapshot)
            if self.notifier:
                self.notifier.bet_fired(snapshot, record, self.bet_size, self.state.draft_text)
        else:
            self.log(f"Bet not placed. Reasons: {', '.join(check.skip_reasons())}.", "INFO")

        return record

    def resolve_pending(self) -> Optional[DecisionRecord]:
        """
        Score the newest record if it is still pending.

        Raises:
            FetchError: If the final market data cannot be fetched.
        """
        if not self._newest_pending():
            return None

        self.log("Hour ended. Determining outcome for the last attempt...", "INFO")

        final_snapshot = self.fetcher()
        self.snapshot = final_snapshot

        resolved = decision_engine.resolve(self.history[0], final_snapshot)
        self.history = [resolved] + self.history[1:]
        self._persist()

        placed = "PLACED" if resolved.bet_placed else "NOT PLACED"
        self.log(
            f"Last attempt result: {resolved.outcome.value}. Bet was {placed}.",
            "SUCCESS" if resolved.outcome == Outcome.WON else "ERROR",
        )
        if self.notifier:
            self.notifier.outcome_resolved(resolved)

        return resolved

    def _request_order_draft(self, snapshot: MarketSnapshot) -> None:
        params = OrderParams(
            market_id=snapshot.market_id,
            price=str(snapshot.yes_price),
            size=f"{self.bet_size:g}",
            side="BUY",
        )
        try:
            code = self.draft_requester(ActionType.CREATE_ORDER, params)
        except GenerationError as e:
            self.log(str(e), "ERROR")
            self.state = replace(self.state, draft_text=f"// Error generating code: {e}")
            return

        self.state = replace(self.state, draft_text=code)
        self.log("Code generated successfully.", "SUCCESS")
        logger.info(f"Generated transaction code:\n{code}")

    def _persist(self) -> None:
        try:
            self.store.save(self.history)
        except BotError as e:
            self.log(f"Failed to save history: {e}", "ERROR")

    def _newest_pending(self) -> bool:
        return bool(self.history) and self.history[0].outcome == Outcome.PENDING

    # Activity log

    def log(self, message: str, level: str) -> None:
        """Record an activity entry and mirror it to the module logger."""
        timestamp = self.clock().strftime("%H:%M:%S")
        self.activity.appendleft(ActivityEntry(timestamp=timestamp, message=message, level=level))
        logger.log(logging.ERROR if level == "ERROR" else logging.INFO, message)


class HourlyScheduler:
    """
    APScheduler driver for a BotRunner.

    Manages the 1-second tick job and the market refresh job with overlap
    prevention, error logging, and graceful shutdown.
    """

    def __init__(
        self,
        runner: BotRunner,
        refresh_seconds: Optional[int] = None,
        timezone: Optional[str] = None
    ):
        self.runner = runner
        self.refresh_seconds = refresh_seconds or Config.MARKET_REFRESH_SECONDS
        self.timezone = timezone or Config.TIMEZONE
        self.scheduler: Optional[BackgroundScheduler] = None
        self.is_running = False

    def start(self) -> bool:
        """
        Start the tick and refresh jobs.

        Returns:
            True if scheduler started successfully, False otherwise
        """
        if self.is_running:
            logger.warning("Scheduler is already running")
            return False

        try:
            tz = pytz.timezone(self.timezone)
            # One worker keeps every tick on a single thread of execution
            self.scheduler = BackgroundScheduler(
                timezone=tz,
                executors={"default": ThreadPoolExecutor(1)},
                job_defaults={"coalesce": True, "max_instances": 1, "misfire_grace_time": 1},
            )

            self.scheduler.add_listener(
                self._on_job_executed,
                EVENT_JOB_EXECUTED | EVENT_JOB_ERROR
            )

            self.scheduler.add_job(
                func=self.runner.on_tick,
                trigger=IntervalTrigger(seconds=1),
                id="tick",
                name="Hourly Tick",
                replace_existing=True,
            )
            self.scheduler.add_job(
                func=self.runner.refresh_market,
                trigger=IntervalTrigger(seconds=self.refresh_seconds),
                id="market_refresh",
                name="Market Refresh",
                replace_existing=True,
                next_run_time=datetime.now(tz),
            )

            self.scheduler.start()
            self.is_running = True

            logger.info(
                f"Scheduler started (tick every 1s, market refresh every {self.refresh_seconds}s, "
                f"timezone {self.timezone})"
            )
            return True

        except Exception as e:
            logger.error(f"Failed to start scheduler: {e}", exc_info=True)
            self.is_running = False
            return False

    def stop(self, wait: bool = True) -> bool:
        """
        Stop the scheduler gracefully.

        Args:
            wait: Whether to wait for running jobs to complete

        Returns:
            True if scheduler stopped successfully, False otherwise
        """
        if not self.is_running or not self.scheduler:
            logger.warning("Scheduler is not running")
            return False

        try:
            logger.info("Stopping scheduler...")
            self.scheduler.shutdown(wait=wait)
            self.is_running = False
            self.scheduler = None
            logger.info("Scheduler stopped successfully")
            return True

        except Exception as e:
            logger.error(f"Error stopping scheduler: {e}", exc_info=True)
            return False

    def _on_job_executed(self, event) -> None:
        """Log job failures; successes are too frequent to log above debug."""
        if event.exception:
            logger.error(f"Job {event.job_id} raised an exception: {event.exception}")

    def get_status(self) -> dict:
        """
        Get current scheduler and bot status.

        Returns:
            Dictionary with status information
        """
        state = self.runner.state
        return {
            "is_running": self.is_running,
            "bot_running": state.running,
            "last_attempted_hour": state.last_attempted_hour,
            "seconds_to_close": state.seconds_to_close,
            "history_size": len(self.runner.history),
            "next_close": (self.runner.clock() + timedelta(seconds=state.seconds_to_close)).isoformat(),
        }
