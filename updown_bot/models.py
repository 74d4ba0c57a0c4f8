"""
Data models for the hourly Bitcoin up/down bot.

This module defines the core dataclasses used throughout the application
for representing market snapshots, decision records, and run state.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class Outcome(str, Enum):
    """Resolution state of a decision record."""
    PENDING = "Pending"
    WON = "Won"
    LOST = "Lost"


class ActionType(str, Enum):
    """Contract interactions a draft can be requested for."""
    CREATE_ORDER = "CREATE_ORDER"
    CANCEL_ORDER = "CANCEL_ORDER"
    GET_ORDERBOOK = "GET_ORDERBOOK"


@dataclass(frozen=True)
class MarketSnapshot:
    """
    Market state fetched on a single poll.

    Attributes:
        market_id: CLOB token identifier of the hourly contract
        yes_price: Implied probability of the "up" outcome (0.0 to 1.0)
        current_reference_value: Current BTC price
        reference_strike: BTC price the contract compares against at close
    """
    market_id: str
    yes_price: float
    current_reference_value: float
    reference_strike: float

    @property
    def gain(self) -> float:
        """Move of the reference asset since the strike was set."""
        return self.current_reference_value - self.reference_strike


@dataclass(frozen=True)
class DecisionRecord:
    """
    One evaluation attempt of the trading rule.

    Attributes:
        id: Unique identifier (ISO 8601 creation time)
        created_at: Timestamp when the rule was evaluated, None if unknown
        observed_yes_price: YES price seen at evaluation
        observed_gain: Reference asset gain seen at evaluation
        bet_placed: Whether the rule fired
        outcome: Pending until the end of the hour, then Won or Lost
        timestamp: Human-readable creation time as first stored
    """
    id: str
    created_at: Optional[datetime]
    observed_yes_price: float
    observed_gain: float
    bet_placed: bool
    outcome: Outcome = Outcome.PENDING
    timestamp: str = ""


@dataclass
class RunState:
    """
    Process-wide scheduler state. Never persisted.

    Attributes:
        running: Whether trigger-minute evaluations are enabled
        last_attempted_hour: Hour of the last evaluation, guards once-per-hour
        last_resolved_hour: Hour of the last end-of-hour resolution
        seconds_to_close: Seconds until the hour boundary, for display
        draft_text: Latest generated draft, cleared each new hour
    """
    running: bool = False
    last_attempted_hour: Optional[int] = None
    last_resolved_hour: Optional[int] = None
    seconds_to_close: int = 0
    draft_text: str = ""


@dataclass
class OrderParams:
    market_id: str
    price: str
    size: str
    side: str = "BUY"


@dataclass
class CancelParams:
    order_id: str


@dataclass
class OrderbookParams:
    market_id: str


@dataclass
class ActivityEntry:
    """A single line of the runner's activity log."""
    timestamp: str
    message: str
    level: str  # INFO, SUCCESS or ERROR
