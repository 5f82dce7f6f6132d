# --- File: core/ledger.py ---
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from typing import List

from pydantic import BaseModel, ConfigDict, Field

import config
from utils import normalize_address, short_address, short_locator

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """Publish/list failure of the message ledger."""


class MessageRecord(BaseModel):
    """One published (locator, signature) entry as the ledger reports it."""
    model_config = ConfigDict(frozen=True)

    message_id: int = Field(..., description="Ledger-assigned id, increasing in publish order.")
    sender_identity: str
    recipient_identity: str
    issued_at: int
    content_locator: str
    signature: bytes


class MessageLedger(ABC):
    """
    Publish/list collaborator. Listings are replayable in full and ordered by publish order.
    Publishing the same (sender, recipient, locator, signature) twice returns the first message id.
    """

    @abstractmethod
    def publish(self, recipient_identity: str, content_locator: str, issued_at: int,
                signature: bytes, sender_identity: str) -> int:
        ...

    @abstractmethod
    def list_for_recipient(self, identity: str) -> List[MessageRecord]:
        ...

    @abstractmethod
    def list_for_sender(self, identity: str) -> List[MessageRecord]:
        ...

    def close(self) -> None:
        pass


class SqliteMessageLedger(MessageLedger):
    """SQLite-backed ledger. Use ':memory:' for a throwaway instance."""

    def __init__(self, db_path: str = config.LEDGER_DB_PATH):
        self.db_path = db_path
        self._lock = threading.Lock()
        try:
            self.conn = sqlite3.connect(db_path, check_same_thread=False)
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS messages (
                    message_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    sender TEXT NOT NULL,
                    recipient TEXT NOT NULL,
                    issued_at TEXT NOT NULL, -- decimal text, uint256 timestamps exceed SQLite INTEGER
                    cid TEXT NOT NULL,
                    signature BLOB NOT NULL,
                    UNIQUE (sender, recipient, cid, signature)
                )
            """)
            self.conn.execute("CREATE INDEX IF NOT EXISTS idx_messages_recipient ON messages (recipient)")
            self.conn.execute("CREATE INDEX IF NOT EXISTS idx_messages_sender ON messages (sender)")
            self.conn.commit()
        except sqlite3.Error as e:
            logger.error(f"LEDGER: Error initializing SQLite ledger at {db_path}: {e}")
            raise LedgerError(f"Cannot open ledger database: {e}") from e
        logger.info(f"LEDGER: SQLite message ledger initialized at {db_path}")

    @staticmethod
    def _address(value: str) -> str:
        try:
            return normalize_address(value)
        except ValueError as e:
            raise LedgerError(str(e)) from None

    def publish(self, recipient_identity: str, content_locator: str, issued_at: int,
                signature: bytes, sender_identity: str) -> int:
        sender = self._address(sender_identity)
        recipient = self._address(recipient_identity)
        row_key = (sender, recipient, content_locator, bytes(signature))
        try:
            with self._lock:
                cursor = self.conn.execute("""
                    INSERT OR IGNORE INTO messages (sender, recipient, issued_at, cid, signature)
                    VALUES (?, ?, ?, ?, ?)
                """, (sender, recipient, str(int(issued_at)), content_locator, bytes(signature)))
                self.conn.commit()
                inserted = cursor.rowcount == 1
                message_id = self.conn.execute(
                    "SELECT message_id FROM messages WHERE sender = ? AND recipient = ? AND cid = ? AND signature = ?",
                    row_key,
                ).fetchone()[0]
        except sqlite3.Error as e:
            logger.error(f"LEDGER: Error publishing {short_locator(content_locator)}: {e}")
            raise LedgerError(f"Publish failed: {e}") from e

        if inserted:
            logger.info(f"LEDGER: Published message {message_id} {short_address(sender)} -> "
                        f"{short_address(recipient)} cid={short_locator(content_locator)}")
        else:
            logger.info(f"LEDGER: Duplicate publish of message {message_id} ignored.")
        return message_id

    def _select(self, column: str, identity: str) -> List[MessageRecord]:
        address = self._address(identity)
        try:
            with self._lock:
                rows = self.conn.execute(
                    f"SELECT message_id, sender, recipient, issued_at, cid, signature FROM messages "
                    f"WHERE {column} = ? ORDER BY message_id ASC",
                    (address,),
                ).fetchall()
        except sqlite3.Error as e:
            logger.error(f"LEDGER: Error listing messages for {short_address(address)}: {e}")
            raise LedgerError(f"List failed: {e}") from e

        return [
            MessageRecord(
                message_id=row[0],
                sender_identity=row[1],
                recipient_identity=row[2],
                issued_at=int(row[3]),
                content_locator=row[4],
                signature=bytes(row[5]),
            )
            for row in rows
        ]

    def list_for_recipient(self, identity: str) -> List[MessageRecord]:
        return self._select("recipient", identity)

    def list_for_sender(self, identity: str) -> List[MessageRecord]:
        return self._select("sender", identity)

    def close(self) -> None:
        if self.conn:
            self.conn.close()
            logger.info("LEDGER: SQLite connection closed.")
