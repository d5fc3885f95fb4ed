"""SQLite-based store for coaching sessions and user credits."""

import sqlite3
import json
import logging
import uuid
from pathlib import Path
from datetime import datetime
from typing import Any, Optional, List

from schemas.session import SessionRecord, UserRecord
from .store import PersistenceError

logger = logging.getLogger(__name__)


class SQLiteSessionStore:
    """SQLite-based persistent session store."""

    def __init__(self, db_path: str = "data/coaching_sessions.db"):
        """
        Initialize SQLite session store.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get database connection with row factory."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _execute(self, sql: str, params: tuple = ()) -> int:
        """Run a single write statement and return the affected row count."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(sql, params)
            conn.commit()
            return cursor.rowcount
        except sqlite3.Error as e:
            raise PersistenceError(str(e)) from e
        finally:
            conn.close()

    def _fetchone(self, sql: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(sql, params)
            return cursor.fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(str(e)) from e
        finally:
            conn.close()

    def _init_db(self):
        """Initialize database schema."""
        conn = self._get_connection()
        cursor = conn.cursor()

        # Users table
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS users (
                user_id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                email TEXT NOT NULL,
                credits REAL NOT NULL DEFAULT 0
            )
        """)

        # Sessions table
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS sessions (
                session_id TEXT PRIMARY KEY,
                topic TEXT NOT NULL,
                coaching_option TEXT NOT NULL,
                expert_name TEXT NOT NULL,
                user_id TEXT,
                conversation TEXT,
                session_feedback TEXT,
                created_at TEXT NOT NULL,
                FOREIGN KEY (user_id) REFERENCES users(user_id)
            )
        """)

        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_sessions_user ON sessions(user_id)"
        )

        conn.commit()
        conn.close()
        logger.info(f"Database initialized at {self.db_path}")

    # -- users -------------------------------------------------------------

    def create_user(self, name: str, email: str, credits: float = 0.0,
                    user_id: Optional[str] = None) -> UserRecord:
        """Create a user with a starting credit balance."""
        user_id = user_id or str(uuid.uuid4())
        self._execute(
            "INSERT INTO users (user_id, name, email, credits) VALUES (?, ?, ?, ?)",
            (user_id, name, email, credits)
        )
        return UserRecord(user_id=user_id, name=name, email=email, credits=credits)

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        row = self._fetchone("SELECT * FROM users WHERE user_id = ?", (user_id,))
        if not row:
            return None
        return UserRecord(
            user_id=row["user_id"],
            name=row["name"],
            email=row["email"],
            credits=row["credits"],
        )

    def update_user_credits(self, user_id: str, new_balance: float) -> bool:
        """
        Overwrite a user's credit balance.

        Returns:
            True if the user exists and was updated
        """
        updated = self._execute(
            "UPDATE users SET credits = ? WHERE user_id = ?",
            (new_balance, user_id)
        )
        return updated > 0

    # -- sessions ----------------------------------------------------------

    def create_session(
        self,
        topic: str,
        coaching_option: str,
        expert_name: str,
        user_id: Optional[str] = None
    ) -> str:
        """
        Create a new coaching session.

        Args:
            topic: Session topic
            coaching_option: Coaching option name
            expert_name: Expert persona name
            user_id: Owning user

        Returns:
            New session ID
        """
        session_id = str(uuid.uuid4())
        self._execute(
            """
            INSERT INTO sessions (session_id, topic, coaching_option, expert_name, user_id, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (session_id, topic, coaching_option, expert_name, user_id, datetime.now().isoformat())
        )
        logger.info(f"Created session {session_id} ({coaching_option}: {topic})")
        return session_id

    def get_session(self, session_id: str) -> Optional[SessionRecord]:
        """Get a session with its conversation and feedback."""
        row = self._fetchone("SELECT * FROM sessions WHERE session_id = ?", (session_id,))
        if not row:
            return None
        return self._row_to_session(row)

    def update_conversation(self, session_id: str, conversation: List[Any]):
        """Replace the stored conversation."""
        self._execute(
            "UPDATE sessions SET conversation = ? WHERE session_id = ?",
            (json.dumps(conversation), session_id)
        )

    def update_session_feedback(self, session_id: str, feedback: str):
        """Store the end-of-session feedback summary."""
        self._execute(
            "UPDATE sessions SET session_feedback = ? WHERE session_id = ?",
            (feedback, session_id)
        )

    def list_sessions(self, user_id: Optional[str] = None, limit: int = 50) -> List[SessionRecord]:
        """
        List sessions, newest first, optionally filtered by user.

        Args:
            user_id: Optional user filter
            limit: Maximum number of sessions

        Returns:
            List of SessionRecord objects
        """
        conn = self._get_connection()
        cursor = conn.cursor()

        if user_id:
            cursor.execute(
                """
                SELECT * FROM sessions
                WHERE user_id = ?
                ORDER BY created_at DESC
                LIMIT ?
                """,
                (user_id, limit)
            )
        else:
            cursor.execute(
                """
                SELECT * FROM sessions
                ORDER BY created_at DESC
                LIMIT ?
                """,
                (limit,)
            )

        rows = cursor.fetchall()
        conn.close()

        return [self._row_to_session(row) for row in rows]

    def _row_to_session(self, row: sqlite3.Row) -> SessionRecord:
        return SessionRecord(
            session_id=row["session_id"],
            topic=row["topic"],
            coaching_option=row["coaching_option"],
            expert_name=row["expert_name"],
            user_id=row["user_id"],
            conversation=json.loads(row["conversation"]) if row["conversation"] else None,
            session_feedback=row["session_feedback"],
            created_at=datetime.fromisoformat(row["created_at"]) if row["created_at"] else datetime.now(),
        )
