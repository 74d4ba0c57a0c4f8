"""
Market data fetcher for the hourly Bitcoin up/down contract.

This module retrieves the relay's copy of the Polymarket GraphQL response and
normalizes it into a MarketSnapshot. It performs no business logic and no
retries - a failed fetch is simply attempted again on the next scheduled tick.
"""

import logging
from typing import Any, Optional

import requests
from requests.exceptions import RequestException, Timeout, ConnectionError

from updown_bot.config import Config
from updown_bot.exceptions import FetchError
from updown_bot.models import MarketSnapshot

# Configure module logger
logger = logging.getLogger(__name__)


def fetch_snapshot(url: Optional[str] = None, timeout: Optional[int] = None) -> MarketSnapshot:
    """
    Fetch the current hourly market state from the local relay.

    Args:
        url: Relay endpoint. If None, uses Config.RELAY_URL.
        timeout: Request timeout in seconds. If None, uses Config.API_TIMEOUT.

    Returns:
        MarketSnapshot built from the relay response.

    Raises:
        FetchError: If the relay is unreachable, answers with a non-success
            status, or the payload lacks a required field.
    """
    if url is None:
        url = Config.RELAY_URL
    if timeout is None:
        timeout = Config.API_TIMEOUT

    logger.debug(f"Requesting market data from {url}")

    try:
        response = requests.get(
            url,
            timeout=timeout,
            headers={"Accept": "application/json"}
        )
        response.raise_for_status()

    except Timeout:
        raise FetchError(f"Relay request timed out after {timeout}s")

    except ConnectionError as e:
        raise FetchError(f"Relay unreachable at {url}: {e}")

    except RequestException as e:
        status = e.response.status_code if e.response is not None else "unknown"
        raise FetchError(f"Relay server error (status {status}): {e}")

    try:
        payload = response.json()
    except ValueError as e:
        raise FetchError(f"Relay returned invalid JSON: {e}")

    snapshot = parse_market_payload(payload)
    logger.debug(
        f"Market {snapshot.market_id}: yes={snapshot.yes_price:.4f}, "
        f"btc={snapshot.current_reference_value:.2f}, strike={snapshot.reference_strike:.2f}"
    )
    return snapshot


def parse_market_payload(payload: Any) -> MarketSnapshot:
    """
    Normalize the GraphQL envelope into a MarketSnapshot.

    Expected shape:
        {"data": {"marketBySlug": {"outcomes": [{"title", "price"}],
                  "strikePrice", "referenceAsset", "clobTokenId"}}}

    Raises:
        FetchError: If the envelope carries GraphQL errors or misses a field.
    """
    if not isinstance(payload, dict):
        raise FetchError("Invalid data from Polymarket API")

    data = payload.get("data") or {}
    market = data.get("marketBySlug") if isinstance(data, dict) else None

    if payload.get("errors") or not market:
        raise FetchError("Invalid data from Polymarket API")

    yes_outcome = _find_yes_outcome(market.get("outcomes") or [])
    strike = market.get("strikePrice")
    reference = market.get("referenceAsset")

    if yes_outcome is None or strike is None or reference is None:
        raise FetchError("Required market data not found in API response")

    return MarketSnapshot(
        market_id=str(market.get("clobTokenId") or ""),
        yes_price=_to_float(yes_outcome.get("price"), "price"),
        current_reference_value=_to_float(reference, "referenceAsset"),
        reference_strike=_to_float(strike, "strikePrice"),
    )


def _find_yes_outcome(outcomes: list) -> Optional[dict]:
    for outcome in outcomes:
        if isinstance(outcome, dict) and str(outcome.get("title", "")).lower() == "yes":
            return outcome
    return None


def _to_float(value: Any, field: str) -> float:
    """Convert an API number (often a string) to float, raising FetchError."""
    try:
        return float(value)
    except (TypeError, ValueError):
        raise FetchError(f"Field '{field}' is not numeric: {value!r}")
