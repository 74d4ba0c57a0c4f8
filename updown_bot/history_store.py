"""
Storage module for persisting the decision history.

The history is a single JSON array of decision records, newest first, kept
under one key and rewritten as a whole on every change. Three backends share
the same load/save interface: an in-memory blob for tests, a plain JSON file,
and a SQLite key-value table.
"""

import json
import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from updown_bot.config import Config
from updown_bot.decision_engine import format_timestamp
from updown_bot.exceptions import PersistenceError
from updown_bot.models import DecisionRecord, Outcome

# Configure module logger
logger = logging.getLogger(__name__)

HISTORY_KEY = "betHistory"
TIMESTAMP_FORMAT = "%m/%d/%Y, %I:%M:%S %p"


class HistoryStore:
    """
    Whole-blob history repository.

    Subclasses implement _read_blob and _write_blob; parsing, soft failure on
    load and deterministic serialization live here.
    """

    def load(self) -> list[DecisionRecord]:
        """
        Load the full history, newest first.

        Never raises: a missing blob yields an empty history, and a read or
        parse failure is logged as a warning and also yields an empty history.
        """
        try:
            blob = self._read_blob()
        except PersistenceError as e:
            logger.warning(f"Failed to read history, starting empty: {e}")
            return []

        if not blob:
            return []

        try:
            return deserialize_history(blob)
        except (ValueError, TypeError) as e:
            logger.warning(f"Failed to parse history, starting empty: {e}")
            return []

    def save(self, history: list[DecisionRecord]) -> None:
        """
        Overwrite the stored history.

        Raises:
            PersistenceError: If the backend cannot be written.
        """
        self._write_blob(serialize_history(history))
        logger.debug(f"Saved {len(history)} history records")

    def clear(self) -> None:
        """Delete every record."""
        self.save([])

    def _read_blob(self) -> Optional[str]:
        raise NotImplementedError

    def _write_blob(self, blob: str) -> None:
        raise NotImplementedError


class InMemoryHistoryStore(HistoryStore):
    """History kept in a string attribute; used by tests and dry runs."""

    def __init__(self, blob: Optional[str] = None):
        self.blob = blob

    def _read_blob(self) -> Optional[str]:
        return self.blob

    def _write_blob(self, blob: str) -> None:
        self.blob = blob


class JsonFileHistoryStore(HistoryStore):
    """History kept in a single JSON file."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path is not None else Config.HISTORY_PATH.with_suffix(".json")

    def _read_blob(self) -> Optional[str]:
        if not self.path.exists():
            return None
        try:
            return self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise PersistenceError(f"Cannot read {self.path}: {e}") from e

    def _write_blob(self, blob: str) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(blob, encoding="utf-8")
        except OSError as e:
            raise PersistenceError(f"Cannot write {self.path}: {e}") from e


class SqliteHistoryStore(HistoryStore):
    """
    History kept as one row of a SQLite key-value table.

    Mirrors a browser's local storage: a `kv_store` table holding the JSON
    blob under the `betHistory` key.
    """

    def __init__(self, db_path: Optional[Path] = None, key: str = HISTORY_KEY):
        """
        Initialize storage with database path.

        Args:
            db_path: Path to SQLite database file. If None, uses Config.HISTORY_PATH
            key: Key the history blob is stored under
        """
        self.db_path = Path(db_path) if db_path is not None else Config.HISTORY_PATH
        self.key = key
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize_database()

    @contextmanager
    def _get_connection(self):
        """
        Context manager for database connections.

        Ensures proper connection handling and transaction management.
        """
        conn = sqlite3.connect(str(self.db_path))
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _initialize_database(self) -> None:
        """Create the key-value table if it doesn't exist."""
        try:
            with self._get_connection() as conn:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS kv_store (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL
                    )
                """)
            logger.info(f"History store initialized at {self.db_path}")
        except sqlite3.Error as e:
            logger.error(f"Error initializing history store at {self.db_path}: {e}", exc_info=True)

    def _read_blob(self) -> Optional[str]:
        try:
            with self._get_connection() as conn:
                row = conn.execute(
                    "SELECT value FROM kv_store WHERE key = ?", (self.key,)
                ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot read '{self.key}' from {self.db_path}: {e}") from e

        return row[0] if row else None

    def _write_blob(self, blob: str) -> None:
        try:
            with self._get_connection() as conn:
                conn.execute(
                    "INSERT OR REPLACE INTO kv_store (key, value) VALUES (?, ?)",
                    (self.key, blob)
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot write '{self.key}' to {self.db_path}: {e}") from e


def create_store(backend: Optional[str] = None, path: Optional[Path] = None) -> HistoryStore:
    """Build the configured history backend."""
    backend = backend or Config.HISTORY_BACKEND
    if backend == "json":
        return JsonFileHistoryStore(path)
    if backend == "sqlite":
        return SqliteHistoryStore(path)
    raise ValueError(f"Unknown history backend: {backend}")


# Serialization

def record_to_dict(record: DecisionRecord) -> dict:
    """Convert a record to its stored shape. Field order is fixed."""
    timestamp = record.timestamp
    if not timestamp and record.created_at is not None:
        timestamp = format_timestamp(record.created_at)
    return {
        "id": record.id,
        "timestamp": timestamp,
        "yesPrice": _json_number(record.observed_yes_price),
        "hourlyGain": _json_number(record.observed_gain),
        "betPlaced": record.bet_placed,
        "outcome": record.outcome.value,
    }


def record_from_dict(data: dict) -> Optional[DecisionRecord]:
    """
    Convert a stored entry back into a record.

    Absent optional fields take defaults and entries without an id are
    skipped. An id that is not an ISO 8601 time is kept as is; the creation
    time then comes from the human-readable timestamp, or stays None.
    """
    record_id = data.get("id")
    if not record_id or not isinstance(record_id, str):
        logger.warning("History entry missing 'id' field, skipping")
        return None

    created_at = _parse_created_at(record_id, data.get("timestamp"))
    if created_at is None:
        logger.warning(f"History entry '{record_id}' has no readable creation time, keeping it as is")

    try:
        outcome = Outcome(data.get("outcome", Outcome.PENDING.value))
    except ValueError:
        logger.warning(f"Unknown outcome {data.get('outcome')!r} for entry {record_id}, treating as Pending")
        outcome = Outcome.PENDING

    timestamp = data.get("timestamp")
    if not timestamp and created_at is not None:
        timestamp = format_timestamp(created_at)

    return DecisionRecord(
        id=record_id,
        created_at=created_at,
        observed_yes_price=_as_number(data.get("yesPrice")),
        observed_gain=_as_number(data.get("hourlyGain")),
        bet_placed=bool(data.get("betPlaced", False)),
        outcome=outcome,
        timestamp=str(timestamp or ""),
    )


def _parse_created_at(record_id: str, timestamp: Any) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(record_id.replace("Z", "+00:00"))
    except ValueError:
        pass

    if isinstance(timestamp, str):
        # Browsers put a narrow no-break space before AM/PM
        try:
            return datetime.strptime(timestamp.replace("\u202f", " "), TIMESTAMP_FORMAT)
        except ValueError:
            pass
    return None


def serialize_history(history: list[DecisionRecord]) -> str:
    """Serialize the same way JSON.stringify does: no spaces, raw unicode."""
    return json.dumps(
        [record_to_dict(record) for record in history],
        separators=(",", ":"),
        ensure_ascii=False,
    )


def deserialize_history(blob: str) -> list[DecisionRecord]:
    """
    Parse a stored blob.

    Raises:
        ValueError: If the blob is not JSON or not a JSON array.
    """
    data = json.loads(blob)
    if not isinstance(data, list):
        raise ValueError(f"Expected a JSON array of records, got {type(data).__name__}")

    records = []
    for entry in data:
        if not isinstance(entry, dict):
            logger.warning(f"Skipping malformed history entry: {entry!r}")
            continue
        record = record_from_dict(entry)
        if record:
            records.append(record)
    return records


def _as_number(value: Any) -> float:
    """Read a stored number, keeping ints as ints so they are written back unchanged."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _json_number(value: float):
    """Integral values are written without a fractional part, as in JavaScript."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


# Statistics

@dataclass
class HistorySummary:
    """
    Aggregate view of the decision history.

    Attributes:
        attempts: Number of records
        bets_placed: Records where the rule fired
        won: Resolved records scored Won
        lost: Resolved records scored Lost
        pending: Unresolved records
        rule_accuracy: won / (won + lost), None when nothing is resolved
        bet_win_rate: Share of resolved placed bets that won, None if no such bet
    """
    attempts: int
    bets_placed: int
    won: int
    lost: int
    pending: int
    rule_accuracy: Optional[float]
    bet_win_rate: Optional[float]


def summarize_history(history: list[DecisionRecord]) -> HistorySummary:
    won = sum(1 for r in history if r.outcome == Outcome.WON)
    lost = sum(1 for r in history if r.outcome == Outcome.LOST)
    placed = [r for r in history if r.bet_placed]
    placed_resolved = [r for r in placed if r.outcome != Outcome.PENDING]
    placed_won = sum(1 for r in placed_resolved if r.outcome == Outcome.WON)

    return HistorySummary(
        attempts=len(history),
        bets_placed=len(placed),
        won=won,
        lost=lost,
        pending=sum(1 for r in history if r.outcome == Outcome.PENDING),
        rule_accuracy=won / (won + lost) if (won + lost) else None,
        bet_win_rate=placed_won / len(placed_resolved) if placed_resolved else None,
    )
