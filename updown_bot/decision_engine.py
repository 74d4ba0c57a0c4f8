"""
Decision engine for the hourly trading rule.

The rule fires when the YES price sits inside a fixed band and the reference
asset has already moved at least a minimum amount above the strike. Every
evaluation produces a DecisionRecord, whether or not the rule fires, so the
rule's accuracy can be tracked over time.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

from updown_bot.config import Config
from updown_bot.models import DecisionRecord, MarketSnapshot, Outcome

# Configure module logger
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Thresholds:
    """
    Trading rule constants.

    Attributes:
        min_yes_price: Lower bound of the YES price band (inclusive)
        max_yes_price: Upper bound of the YES price band (inclusive)
        min_profit: Minimum reference gain in USD (inclusive)
    """
    min_yes_price: float = 0.6666
    max_yes_price: float = 0.875
    min_profit: float = 19.0

    @classmethod
    def from_config(cls) -> "Thresholds":
        return cls(
            min_yes_price=Config.MIN_YES_PRICE,
            max_yes_price=Config.MAX_YES_PRICE,
            min_profit=Config.MIN_PROFIT_THRESHOLD,
        )


@dataclass(frozen=True)
class RuleCheck:
    """Individual conditions of the rule for one snapshot."""
    yes_price: float
    gain: float
    price_in_range: bool
    profit_met: bool

    @property
    def should_act(self) -> bool:
        return self.price_in_range and self.profit_met

    def skip_reasons(self) -> list[str]:
        """Human-readable reasons the rule did not fire."""
        reasons = []
        if not self.price_in_range:
            reasons.append(f"Market price out of range ({self.yes_price * 100:.2f}%)")
        if not self.profit_met:
            reasons.append(f"Hourly gain too low (${self.gain:.2f})")
        return reasons


def format_timestamp(moment: datetime) -> str:
    """Format a time the way the history table shows it, e.g. '9/27/2025, 9:21:00 PM'."""
    hour = moment.hour % 12 or 12
    suffix = "AM" if moment.hour < 12 else "PM"
    return (
        f"{moment.month}/{moment.day}/{moment.year}, "
        f"{hour}:{moment.minute:02d}:{moment.second:02d} {suffix}"
    )


def check_conditions(
    snapshot: MarketSnapshot,
    thresholds: Optional[Thresholds] = None
) -> RuleCheck:
    """
    Apply the price band and minimum gain checks to a snapshot.

    Args:
        snapshot: Market state to check
        thresholds: Rule constants. If None, built from Config.

    Returns:
        RuleCheck with each condition broken out
    """
    if thresholds is None:
        thresholds = Thresholds.from_config()

    gain = snapshot.gain
    return RuleCheck(
        yes_price=snapshot.yes_price,
        gain=gain,
        price_in_range=thresholds.min_yes_price <= snapshot.yes_price <= thresholds.max_yes_price,
        profit_met=gain >= thresholds.min_profit,
    )


def evaluate(
    snapshot: MarketSnapshot,
    now: Optional[datetime] = None,
    thresholds: Optional[Thresholds] = None
) -> DecisionRecord:
    """
    Evaluate the trading rule and produce a pending record.

    The engine does not deduplicate; callers must ensure it runs at most
    once per hour.

    Args:
        snapshot: Freshly fetched market state
        now: Evaluation time. If None, uses the current local time.
        thresholds: Rule constants. If None, built from Config.

    Returns:
        DecisionRecord with outcome Pending and bet_placed set to whether
        the rule fired
    """
    if now is None:
        now = datetime.now()

    check = check_conditions(snapshot, thresholds)

    record = DecisionRecord(
        id=now.isoformat(),
        created_at=now,
        observed_yes_price=snapshot.yes_price,
        observed_gain=check.gain,
        bet_placed=check.should_act,
        outcome=Outcome.PENDING,
        timestamp=format_timestamp(now),
    )

    logger.debug(
        f"Evaluated market {snapshot.market_id}: price_in_range={check.price_in_range}, "
        f"profit_met={check.profit_met}, bet_placed={record.bet_placed}"
    )
    return record


def resolve(pending: DecisionRecord, final_snapshot: MarketSnapshot) -> DecisionRecord:
    """
    Score a pending record against the end-of-hour market state.

    The record is scored whether or not a bet was placed; outcome tracks
    whether the rule's "up" call was right.

    Args:
        pending: Record to resolve
        final_snapshot: Market state at the hour boundary

    Returns:
        Copy of the record with outcome Won or Lost
    """
    if final_snapshot.current_reference_value > final_snapshot.reference_strike:
        outcome = Outcome.WON
    else:
        outcome = Outcome.LOST

    return replace(pending, outcome=outcome)
