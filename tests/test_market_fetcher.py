"""
Tests for the market data fetcher.

requests.get is patched throughout; no test touches the network.
"""
from unittest.mock import MagicMock, patch

import pytest
import requests

from updown_bot.exceptions import FetchError
from updown_bot.market_fetcher import fetch_snapshot, parse_market_payload


def envelope(outcomes=None, strike="100000.5", reference="100025.75", token="clob-1"):
    if outcomes is None:
        outcomes = [{"title": "Yes", "price": "0.72"}, {"title": "No", "price": "0.28"}]
    return {
        "data": {
            "marketBySlug": {
                "outcomes": outcomes,
                "strikePrice": strike,
                "referenceAsset": reference,
                "clobTokenId": token,
            }
        }
    }


def mock_response(payload=None, status_error=None, json_error=None):
    response = MagicMock()
    if status_error:
        response.raise_for_status.side_effect = status_error
    if json_error:
        response.json.side_effect = json_error
    else:
        response.json.return_value = payload
    return response


class TestParseMarketPayload:

    def test_valid_envelope(self):
        snapshot = parse_market_payload(envelope())
        assert snapshot.market_id == "clob-1"
        assert snapshot.yes_price == 0.72
        assert snapshot.current_reference_value == 100025.75
        assert snapshot.reference_strike == 100000.5
        assert snapshot.gain == pytest.approx(25.25)

    def test_yes_title_is_case_insensitive(self):
        snapshot = parse_market_payload(envelope(outcomes=[{"title": "YES", "price": 0.8}]))
        assert snapshot.yes_price == 0.8

    @pytest.mark.parametrize("payload", [
        {"errors": [{"message": "bad query"}], "data": None},
        {"data": {"marketBySlug": None}},
        {"data": {}},
        [],
    ])
    def test_invalid_envelope(self, payload):
        with pytest.raises(FetchError, match="Invalid data"):
            parse_market_payload(payload)

    def test_missing_yes_outcome(self):
        with pytest.raises(FetchError, match="Required market data"):
            parse_market_payload(envelope(outcomes=[{"title": "Up", "price": "0.6"}]))

    def test_missing_strike(self):
        with pytest.raises(FetchError, match="Required market data"):
            parse_market_payload(envelope(strike=None))

    def test_missing_reference_value(self):
        with pytest.raises(FetchError, match="Required market data"):
            parse_market_payload(envelope(reference=None))

    def test_non_numeric_price(self):
        with pytest.raises(FetchError, match="not numeric"):
            parse_market_payload(envelope(outcomes=[{"title": "Yes", "price": "n/a"}]))


class TestFetchSnapshot:

    @patch("updown_bot.market_fetcher.requests.get")
    def test_success(self, mock_get):
        mock_get.return_value = mock_response(envelope())
        snapshot = fetch_snapshot(url="http://relay.test/api/market-data", timeout=5)
        assert snapshot.yes_price == 0.72
        mock_get.assert_called_once()
        assert mock_get.call_args.args[0] == "http://relay.test/api/market-data"
        assert mock_get.call_args.kwargs["timeout"] == 5

    @patch("updown_bot.market_fetcher.requests.get")
    def test_timeout(self, mock_get):
        mock_get.side_effect = requests.exceptions.Timeout()
        with pytest.raises(FetchError, match="timed out"):
            fetch_snapshot(url="http://relay.test", timeout=5)

    @patch("updown_bot.market_fetcher.requests.get")
    def test_relay_unreachable(self, mock_get):
        mock_get.side_effect = requests.exceptions.ConnectionError("refused")
        with pytest.raises(FetchError, match="unreachable"):
            fetch_snapshot(url="http://relay.test", timeout=5)

    @patch("updown_bot.market_fetcher.requests.get")
    def test_non_success_status(self, mock_get):
        error = requests.exceptions.HTTPError("500 Server Error", response=MagicMock(status_code=500))
        mock_get.return_value = mock_response(status_error=error)
        with pytest.raises(FetchError, match="status 500"):
            fetch_snapshot(url="http://relay.test", timeout=5)

    @patch("updown_bot.market_fetcher.requests.get")
    def test_invalid_json(self, mock_get):
        mock_get.return_value = mock_response(json_error=ValueError("Expecting value"))
        with pytest.raises(FetchError, match="invalid JSON"):
            fetch_snapshot(url="http://relay.test", timeout=5)

    @patch("updown_bot.market_fetcher.requests.get")
    def test_missing_field(self, mock_get):
        mock_get.return_value = mock_response(envelope(strike=None))
        with pytest.raises(FetchError):
            fetch_snapshot(url="http://relay.test", timeout=5)
