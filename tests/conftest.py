"""
Pytest Configuration
Allows tests to import the package from the repository root and provides
shared snapshot, record and runner fixtures.
"""
import os
import sys
from datetime import datetime

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from updown_bot.decision_engine import Thresholds
from updown_bot.history_store import InMemoryHistoryStore
from updown_bot.models import DecisionRecord, MarketSnapshot, Outcome
from updown_bot.scheduler import BotRunner


def make_snapshot(yes_price=0.70, current=120.0, strike=100.0, market_id="token-123"):
    return MarketSnapshot(
        market_id=market_id,
        yes_price=yes_price,
        current_reference_value=current,
        reference_strike=strike,
    )


def make_record(created_at=None, outcome=Outcome.PENDING, bet_placed=True, yes_price=0.7, gain=20.0):
    created_at = created_at or datetime(2025, 9, 27, 21, 21, 0)
    return DecisionRecord(
        id=created_at.isoformat(),
        created_at=created_at,
        observed_yes_price=yes_price,
        observed_gain=gain,
        bet_placed=bet_placed,
        outcome=outcome,
        timestamp="9/27/2025, 9:21:00 PM",
    )


class FakeClock:
    """Settable clock for the runner's activity timestamps."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def thresholds():
    return Thresholds(min_yes_price=0.6666, max_yes_price=0.875, min_profit=19.0)


@pytest.fixture
def memory_store():
    return InMemoryHistoryStore()


@pytest.fixture
def runner_factory(memory_store, thresholds):
    """Build a BotRunner with fake collaborators."""
    def _factory(fetcher=None, draft_requester=None, notifier=None, store=None, now=None):
        return BotRunner(
            store if store is not None else memory_store,
            fetcher=fetcher or (lambda: make_snapshot()),
            draft_requester=draft_requester or (lambda action, params: "// draft"),
            notifier=notifier,
            thresholds=thresholds,
            bet_size=10,
            trigger_minute=21,
            clock=FakeClock(now or datetime(2025, 9, 27, 21, 0, 0)),
        )
    return _factory
