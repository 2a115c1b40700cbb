"""
SQLite store for users, bets, the transaction ledger and search context.
"""
import json
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional, Union

from .utils.logger import get_logger

logger = get_logger("database")

BET_PENDING = "pending"
BET_FILLED = "filled"
BET_FAILED = "failed"
BET_SOLD = "sold"

TX_DEPOSIT = "deposit"
TX_WITHDRAWAL = "withdrawal"
TX_BET = "bet"
TX_WIN = "win"
TX_LOSS = "loss"


@dataclass
class User:
    id: int
    x_user_id: str
    x_username: str
    wallet_address: Optional[str]
    balance_usdc: float
    created_at: Optional[str] = None


@dataclass
class Bet:
    id: int
    user_id: int
    market_id: str
    market_title: str
    side: str  # yes or no
    amount_usdc: float
    price: float  # quoted price until filled, fill price after
    shares: float
    status: str  # pending, filled, failed, sold
    order_id: Optional[str] = None
    tweet_id: Optional[str] = None
    created_at: Optional[str] = None


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Database:
    """
    Thin wrapper over one SQLite file.

    Every write that moves a user's balance also inserts the matching
    transactions row inside the same SQLite transaction.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init_db(self):
        """Create tables if they do not exist."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

        with self._transaction() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    x_user_id TEXT NOT NULL UNIQUE,
                    x_username TEXT NOT NULL,
                    wallet_address TEXT,
                    balance_usdc REAL NOT NULL DEFAULT 0,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS bets (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    market_id TEXT NOT NULL,
                    market_title TEXT NOT NULL,
                    side TEXT NOT NULL,
                    amount_usdc REAL NOT NULL,
                    price REAL NOT NULL,
                    shares REAL NOT NULL,
                    status TEXT NOT NULL DEFAULT 'pending',
                    order_id TEXT,
                    tweet_id TEXT,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    FOREIGN KEY (user_id) REFERENCES users(id)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS transactions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    type TEXT NOT NULL,
                    amount_usdc REAL NOT NULL,
                    tx_hash TEXT,
                    metadata TEXT,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    FOREIGN KEY (user_id) REFERENCES users(id)
                )
            """)

            # One ledger row per on-chain transfer
            cursor.execute("""
                CREATE UNIQUE INDEX IF NOT EXISTS idx_transactions_tx_hash
                ON transactions(tx_hash) WHERE tx_hash IS NOT NULL
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS user_context (
                    x_user_id TEXT PRIMARY KEY,
                    last_markets TEXT NOT NULL,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS bot_state (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)

        logger.debug(f"Database ready at {self.path}")

    # === USERS ===

    def create_user(
        self,
        x_user_id: str,
        x_username: str,
        wallet_address: Optional[str] = None,
        balance_usdc: float = 0.0
    ) -> User:
        with self._transaction() as conn:
            cursor = conn.execute(
                "INSERT INTO users (x_user_id, x_username, wallet_address, balance_usdc) VALUES (?, ?, ?, ?)",
                (x_user_id, x_username, wallet_address.lower() if wallet_address else None, balance_usdc)
            )
            user_id = cursor.lastrowid
        return self.get_user(user_id)

    def get_user(self, user_id: int) -> Optional[User]:
        return self._fetch_user("SELECT * FROM users WHERE id = ?", (user_id,))

    def get_user_by_x_id(self, x_user_id: str) -> Optional[User]:
        return self._fetch_user("SELECT * FROM users WHERE x_user_id = ?", (x_user_id,))

    def find_user_by_wallet(self, wallet_address: str) -> Optional[User]:
        return self._fetch_user(
            "SELECT * FROM users WHERE wallet_address = ?",
            (wallet_address.lower(),)
        )

    def link_wallet(self, user_id: int, wallet_address: str):
        with self._transaction() as conn:
            conn.execute(
                "UPDATE users SET wallet_address = ? WHERE id = ?",
                (wallet_address.lower(), user_id)
            )

    def _fetch_user(self, query: str, params: tuple) -> Optional[User]:
        conn = self._connect()
        try:
            row = conn.execute(query, params).fetchone()
        finally:
            conn.close()
        return User(**dict(row)) if row else None

    def total_user_balances(self) -> float:
        conn = self._connect()
        try:
            row = conn.execute("SELECT COALESCE(SUM(balance_usdc), 0) FROM users").fetchone()
        finally:
            conn.close()
        return float(row[0])

    # === BETS ===

    def add_bet(
        self,
        user_id: int,
        market_id: str,
        market_title: str,
        side: str,
        amount_usdc: float,
        price: float,
        shares: float,
        tweet_id: Optional[str] = None
    ) -> int:
        """Insert a pending bet and return its id."""
        with self._transaction() as conn:
            cursor = conn.execute("""
                INSERT INTO bets (user_id, market_id, market_title, side, amount_usdc, price, shares, status, tweet_id)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (user_id, market_id, market_title, side, amount_usdc, price, shares, BET_PENDING, tweet_id))
            return cursor.lastrowid

    def get_bet(self, bet_id: int) -> Optional[Bet]:
        conn = self._connect()
        try:
            row = conn.execute("SELECT * FROM bets WHERE id = ?", (bet_id,)).fetchone()
        finally:
            conn.close()
        return Bet(**dict(row)) if row else None

    def get_bets_by_status(self, user_id: int, status: str, limit: Optional[int] = None) -> list[Bet]:
        query = "SELECT * FROM bets WHERE user_id = ? AND status = ? ORDER BY created_at DESC, id DESC"
        params: tuple = (user_id, status)
        if limit is not None:
            query += " LIMIT ?"
            params += (limit,)

        conn = self._connect()
        try:
            rows = conn.execute(query, params).fetchall()
        finally:
            conn.close()
        return [Bet(**dict(row)) for row in rows]

    def mark_bet_failed(self, bet_id: int) -> bool:
        """Move a pending bet to failed. Returns False if it was already terminal."""
        with self._transaction() as conn:
            cursor = conn.execute(
                "UPDATE bets SET status = ? WHERE id = ? AND status = ?",
                (BET_FAILED, bet_id, BET_PENDING)
            )
            return cursor.rowcount == 1

    def fill_bet_and_debit(
        self,
        bet_id: int,
        order_id: Optional[str],
        price: float,
        shares: float
    ) -> float:
        """
        Mark a pending bet filled, debit the user and write the bet transaction.

        All three writes commit together or not at all.

        Returns:
            The user's new balance

        Raises:
            ValueError: the bet is missing or no longer pending
        """
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT user_id, market_id, side, amount_usdc, status FROM bets WHERE id = ?",
                (bet_id,)
            ).fetchone()
            if row is None:
                raise ValueError(f"Bet {bet_id} not found")
            if row["status"] != BET_PENDING:
                raise ValueError(f"Bet {bet_id} is already {row['status']}")

            conn.execute(
                "UPDATE bets SET status = ?, order_id = ?, price = ?, shares = ? WHERE id = ?",
                (BET_FILLED, order_id, price, shares, bet_id)
            )
            conn.execute(
                "UPDATE users SET balance_usdc = balance_usdc - ? WHERE id = ?",
                (row["amount_usdc"], row["user_id"])
            )
            conn.execute("""
                INSERT INTO transactions (user_id, type, amount_usdc, metadata)
                VALUES (?, ?, ?, ?)
            """, (
                row["user_id"], TX_BET, -row["amount_usdc"],
                json.dumps({"bet_id": bet_id, "market_id": row["market_id"], "side": row["side"]})
            ))

            balance = conn.execute(
                "SELECT balance_usdc FROM users WHERE id = ?", (row["user_id"],)
            ).fetchone()[0]

        return float(balance)

    # === LEDGER ===

    def get_transactions(self, user_id: int) -> list[dict]:
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT * FROM transactions WHERE user_id = ? ORDER BY id",
                (user_id,)
            ).fetchall()
        finally:
            conn.close()

        result = []
        for row in rows:
            tx = dict(row)
            tx["metadata"] = json.loads(tx["metadata"]) if tx["metadata"] else None
            result.append(tx)
        return result

    def transaction_exists_for_hash(self, tx_hash: str) -> bool:
        conn = self._connect()
        try:
            row = conn.execute("SELECT 1 FROM transactions WHERE tx_hash = ?", (tx_hash,)).fetchone()
        finally:
            conn.close()
        return row is not None

    def credit_deposit(self, user_id: int, amount_usdc: float, tx_hash: str) -> bool:
        """
        Credit an on-chain deposit once.

        Returns:
            False if this tx hash was already credited
        """
        try:
            with self._transaction() as conn:
                conn.execute(
                    "INSERT INTO transactions (user_id, type, amount_usdc, tx_hash) VALUES (?, ?, ?, ?)",
                    (user_id, TX_DEPOSIT, amount_usdc, tx_hash)
                )
                conn.execute(
                    "UPDATE users SET balance_usdc = balance_usdc + ? WHERE id = ?",
                    (amount_usdc, user_id)
                )
        except sqlite3.IntegrityError:
            return False
        return True

    def debit_withdrawal(self, user_id: int, amount_usdc: float, tx_hash: str):
        with self._transaction() as conn:
            conn.execute(
                "UPDATE users SET balance_usdc = balance_usdc - ? WHERE id = ?",
                (amount_usdc, user_id)
            )
            conn.execute(
                "INSERT INTO transactions (user_id, type, amount_usdc, tx_hash) VALUES (?, ?, ?, ?)",
                (user_id, TX_WITHDRAWAL, -amount_usdc, tx_hash)
            )

    # === SEARCH CONTEXT ===

    def upsert_user_context(self, x_user_id: str, markets: list[dict]):
        with self._transaction() as conn:
            conn.execute("""
                INSERT INTO user_context (x_user_id, last_markets, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(x_user_id) DO UPDATE SET
                    last_markets = excluded.last_markets,
                    updated_at = excluded.updated_at
            """, (x_user_id, json.dumps(markets), _now()))

    def get_user_context(self, x_user_id: str) -> Optional[list[dict]]:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT last_markets FROM user_context WHERE x_user_id = ?",
                (x_user_id,)
            ).fetchone()
        finally:
            conn.close()
        return json.loads(row["last_markets"]) if row else None

    # === BOT STATE ===

    def get_state(self, key: str) -> Optional[str]:
        conn = self._connect()
        try:
            row = conn.execute("SELECT value FROM bot_state WHERE key = ?", (key,)).fetchone()
        finally:
            conn.close()
        return row["value"] if row else None

    def set_state(self, key: str, value: str):
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO bot_state (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value)
            )
