"""
Code draft requester backed by Google Gemini.

When the trading rule fires, this module asks Gemini to write an ethers.js
snippet for the matching Polymarket CLOB call. The snippet is advisory text
for a human to review and copy; nothing here signs or submits a transaction.
"""

import json
import logging
import re
from dataclasses import asdict, is_dataclass
from typing import Any, Optional, Union

import requests
from requests.exceptions import RequestException, Timeout, ConnectionError

from updown_bot.config import Config
from updown_bot.exceptions import GenerationError
from updown_bot.models import ActionType, CancelParams, OrderbookParams, OrderParams

# Configure module logger
logger = logging.getLogger(__name__)

POLYMARKET_CLOB_ADDRESS = "0x538d5a1e2E463a521A5319200424A7F7a0A2A12a"

POLYMARKET_CLOB_ABI_FRAGMENTS = {
    ActionType.CREATE_ORDER: (
        "function createOrder(uint256 marketId, int128 price, int128 size, uint8 side) "
        "returns (bytes32 orderId)"
    ),
    ActionType.CANCEL_ORDER: "function cancelOrder(bytes32 orderId)",
    ActionType.GET_ORDERBOOK: (
        "function getOrderBook(uint256 marketId) view returns "
        "(tuple(int128 price, int128 size)[] asks, tuple(int128 price, int128 size)[] bids)"
    ),
}

_FENCE_PATTERN = re.compile(r"^```(?:typescript|javascript)?\s*|```\s*$")

DraftParams = Union[OrderParams, CancelParams, OrderbookParams, dict]


def request_draft(action: Union[ActionType, str], params: DraftParams) -> str:
    """
    Ask the generative service for a contract interaction snippet.

    Args:
        action: Which CLOB interaction to draft
        params: OrderParams, CancelParams or OrderbookParams (or an equivalent
            dict with snake_case keys). Not validated against on-chain rules.

    Returns:
        Snippet text with markdown fences removed

    Raises:
        GenerationError: If the API key is missing, the call fails, or the
            response contains no usable text.
    """
    if not Config.GEMINI_API_KEY:
        raise GenerationError("GEMINI_API_KEY environment variable is not set")

    action = ActionType(action)
    fields = asdict(params) if is_dataclass(params) else dict(params)

    logger.info(f"Requesting {action.value} draft from {Config.GEMINI_MODEL}")

    prompt = build_prompt(action, fields)
    response_text = _call_gemini_api(prompt)

    code = strip_code_fences(response_text)
    if not code:
        raise GenerationError("Received an empty response from the AI model")

    logger.debug(f"Received draft of length {len(code)}")
    return code


def strip_code_fences(text: str) -> str:
    """Remove a leading ```lang fence and a trailing ``` fence."""
    return _FENCE_PATTERN.sub("", text or "").strip()


def build_prompt(action: ActionType, fields: dict[str, Any]) -> str:
    """
    Build the instruction prompt for one CLOB interaction.

    Args:
        action: Interaction to draft
        fields: Parameter values to embed in the example

    Returns:
        Prompt string
    """
    preamble = f"""You are a blockchain developer who knows the Polymarket CLOB well.
Write one self-contained async TypeScript function using ethers.js v6 that a
user can copy and run themselves.

Requirements:
- Comment each step, in particular the fixed-point conversion of price and size.
- Use BigInt for every numeric contract argument.
- Polymarket CLOB contract address: {POLYMARKET_CLOB_ADDRESS}
- ABI fragment: {POLYMARKET_CLOB_ABI_FRAGMENTS[action]}
- USDC and outcome tokens use 6 decimal places.

Return only the raw code, without markdown fences."""

    if action == ActionType.CREATE_ORDER:
        return f"""{preamble}

Function name: createPolymarketOrder(signer: ethers.Signer, order)
Steps:
1. Build a contract instance from the address, the ABI fragment and the signer.
2. Scale price '{fields.get("price")}' and size '{fields.get("size")}' by 1e6.
3. Map side '{fields.get("side", "BUY")}' to 0 for BUY and 1 for SELL.
4. Call createOrder with marketId {fields.get("market_id")} and the converted values.
5. Wait for the receipt, log the transaction hash and the orderId from the
   OrderCreated(bytes32 indexed orderId, ...) event.
6. Return the receipt.
"""

    if action == ActionType.CANCEL_ORDER:
        return f"""{preamble}

Function name: cancelPolymarketOrder(signer: ethers.Signer, orderId: string)
Steps:
1. Build a contract instance from the address, the ABI fragment and the signer.
2. Call cancelOrder with the order id.
3. Wait for the receipt, log the transaction hash and return the receipt.

Example order id: '{fields.get("order_id")}'
"""

    return f"""{preamble}

Function name: getPolymarketOrderBook(provider: ethers.Provider, marketId: string)
This is a read-only call and needs no signer.
Steps:
1. Build a contract instance from the address, the ABI fragment and the provider.
2. Call getOrderBook with the market id.
3. Convert each ask and bid price and size from 6-decimal fixed point to decimal strings.
4. Log and return the formatted asks and bids.

Example market id: '{fields.get("market_id")}'
"""


def _call_gemini_api(prompt: str, model: Optional[str] = None) -> str:
    """
    Call the Gemini generateContent endpoint.

    Args:
        prompt: Prompt string
        model: Model identifier. If None, uses Config.GEMINI_MODEL.

    Returns:
        Concatenated text of the first candidate

    Raises:
        GenerationError: On any transport failure or unexpected response shape
    """
    model = model or Config.GEMINI_MODEL
    url = f"{Config.GEMINI_API_URL}/models/{model}:generateContent"

    payload = {
        "contents": [
            {
                "role": "user",
                "parts": [{"text": prompt}]
            }
        ],
    }

    try:
        response = requests.post(
            url,
            params={"key": Config.GEMINI_API_KEY},
            json=payload,
            headers={"Content-Type": "application/json"},
            timeout=Config.API_TIMEOUT,
        )
        response.raise_for_status()

    except Timeout:
        raise GenerationError(f"Gemini API request timed out after {Config.API_TIMEOUT}s")

    except ConnectionError as e:
        raise GenerationError(f"Connection error calling Gemini API: {e}")

    except RequestException as e:
        if e.response is not None:
            logger.error(f"Response status: {e.response.status_code}")
            logger.debug(f"Response text: {e.response.text[:500]}")
        raise GenerationError(
            "Failed to generate code. Please check your API key and network connection."
        ) from e

    try:
        data = response.json()
    except ValueError as e:
        raise GenerationError(f"Gemini API returned invalid JSON: {e}")

    try:
        parts = data["candidates"][0]["content"]["parts"]
        text = "".join(part.get("text", "") for part in parts)
    except (KeyError, IndexError, TypeError):
        logger.warning("Unexpected Gemini API response structure")
        logger.debug(f"Response data: {json.dumps(data, indent=2)[:500]}")
        raise GenerationError("Received an empty response from the AI model")

    return text
