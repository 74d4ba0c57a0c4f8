"""
Telegram notifier for bot events.

This module sends a short message when the trading rule fires and when a
pending record is scored at the end of the hour. It uses the
python-telegram-bot library and is a no-op when Telegram is not configured.
"""

import asyncio
import logging

from telegram import Bot
from telegram.error import TelegramError, TimedOut, NetworkError

from updown_bot.config import Config
from updown_bot.models import DecisionRecord, MarketSnapshot, Outcome

# Configure module logger
logger = logging.getLogger(__name__)

# Telegram rejects messages over 4096 characters
MAX_DRAFT_CHARS = 3500


def format_bet_alert(snapshot: MarketSnapshot, record: DecisionRecord, bet_size: float, draft: str = "") -> str:
    """
    Format the message sent when the rule fires.

    Args:
        snapshot: Market state the rule was evaluated on
        record: Resulting decision record
        bet_size: Configured bet size in USDC
        draft: Generated transaction code, or the draft error text

    Returns:
        Message text (Markdown)
    """
    lines = [
        "🎯 *Bet conditions met*",
        "",
        f"📈 YES price: {snapshot.yes_price:.2%}",
        f"💰 Hourly gain: ${record.observed_gain:,.2f}",
        f"🪙 BTC: ${snapshot.current_reference_value:,.2f} (strike ${snapshot.reference_strike:,.2f})",
        f"💵 Suggested size: {bet_size:g} USDC",
        "",
    ]

    if not draft:
        lines.append("No code draft is available.")
        return "\n".join(lines)

    if len(draft) > MAX_DRAFT_CHARS:
        draft = draft[:MAX_DRAFT_CHARS] + "\n// ... truncated, see the bot log for the full draft"
    lines += [
        "Suggested transaction code (review before using it):",
        f"```\n{draft}\n```",
    ]
    return "\n".join(lines)


def format_outcome(record: DecisionRecord) -> str:
    """Format the end-of-hour result message."""
    emoji = "✅" if record.outcome == Outcome.WON else "❌"
    placed = "PLACED" if record.bet_placed else "NOT PLACED"
    return f"{emoji} Last attempt result: *{record.outcome.value}*. Bet was {placed}."


def send_telegram_message(message: str) -> bool:
    """
    Deliver one alert to the configured chat.

    Alerts are best effort: a missing token, an empty message or any
    Telegram failure is logged and reported as False, never raised, so the
    hourly cycle is not interrupted by the notifier.

    Args:
        message: Markdown text of the alert

    Returns:
        True once Telegram accepted the message
    """
    token, chat = Config.TELEGRAM_BOT_TOKEN, Config.TELEGRAM_CHAT_ID
    if not (token and chat):
        logger.debug("Skipping alert: TELEGRAM_BOT_TOKEN or TELEGRAM_CHAT_ID not set")
        return False

    if not (message or "").strip():
        logger.warning("Refusing to send an empty alert")
        return False

    # Numeric ids for users and groups, '@name' for channels
    chat_id = int(chat) if chat.lstrip("-").isdigit() else chat

    try:
        logger.debug(f"Sending alert to chat {chat_id}")
        asyncio.run(Bot(token=token).send_message(
            chat_id=chat_id,
            text=message,
            parse_mode="Markdown",
            disable_web_page_preview=True,
        ))
    except TimedOut:
        logger.error("Timed out sending Telegram alert")
        return False
    except NetworkError as e:
        logger.error(f"Could not reach Telegram: {e}")
        return False
    except TelegramError as e:
        logger.error(f"Telegram rejected the alert: {e}")
        return False

    logger.info("Telegram alert sent")
    return True


class TelegramNotifier:
    """Notifier used by the bot runner."""

    def bet_fired(self, snapshot: MarketSnapshot, record: DecisionRecord, bet_size: float, draft: str = "") -> bool:
        return send_telegram_message(format_bet_alert(snapshot, record, bet_size, draft))

    def outcome_resolved(self, record: DecisionRecord) -> bool:
        return send_telegram_message(format_outcome(record))
