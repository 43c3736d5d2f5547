"""SQLite session store implementation."""

import asyncio
import json
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Protocol

import aiosqlite

from ..config import resolve_db_path
from ..errors import ConcurrentUpdateError
from ..logging_config import get_logger
from ..models import (
    ConversationState,
    ConversationStep,
    PostData,
    SessionStats,
    create_idle_state,
)

logger = get_logger(__name__)

DEFAULT_TTL_SECONDS = 24 * 60 * 60


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _timestamp(value: datetime) -> str:
    # Fixed-width so stored values compare correctly as text.
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


class ISessionStore(Protocol):
    """Persistent per-user conversation state with bounded retention."""

    async def init(self) -> None:
        """Open the backend."""
        ...

    async def close(self) -> None:
        """Release the backend."""
        ...

    async def get(self, user_id: str) -> ConversationState | None:
        """Get state for a user, or None if absent or expired."""
        ...

    async def set(self, user_id: str, state: ConversationState) -> int:
        """Write state if the stored version still equals state.version.

        Returns the new version. Raises ConcurrentUpdateError otherwise.
        """
        ...

    async def reset_to_idle(self, user_id: str) -> None:
        """Replace the session with a fresh IDLE state."""
        ...

    async def delete(self, user_id: str) -> None:
        """Delete the session completely."""
        ...

    async def cleanup(self) -> int:
        """Remove expired sessions. Returns the number removed."""
        ...

    async def get_stats(self) -> SessionStats | None:
        """Session counts per step, or None if the store cannot report them."""
        ...


class SQLiteSessionStore:
    """SQLite session store with TTL expiry and optimistic versioning."""

    def __init__(
        self,
        db_path: str | Path | None = None,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ):
        if db_path is None:
            self._db_path = resolve_db_path()
        else:
            self._db_path = resolve_db_path(db_path)
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._conn: aiosqlite.Connection | None = None
        # One shared connection: a rollback must not interleave with another write.
        self._write_lock = asyncio.Lock()

    async def init(self) -> None:
        """Initialize database and create tables."""
        self._conn = await aiosqlite.connect(self._db_path)

        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, "r", encoding="utf-8") as f:
            schema_sql = f.read()
        await self._conn.executescript(schema_sql)
        await self._conn.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    def _require_conn(self) -> aiosqlite.Connection:
        if not self._conn:
            raise RuntimeError("Session store not initialized")
        return self._conn

    def _expiry_cutoff(self) -> str:
        return _timestamp(self._clock() - self._ttl)

    async def get(self, user_id: str) -> ConversationState | None:
        """Get session state for a user."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            SELECT step, data, created_at, updated_at, version
            FROM sessions
            WHERE user_id = ?
            """,
            (user_id,),
        )
        row = await cursor.fetchone()

        if not row:
            return None

        updated_at = datetime.fromisoformat(row[3])
        if updated_at <= self._clock() - self._ttl:
            logger.info("Session for %s expired, removing", user_id)
            await conn.execute("DELETE FROM sessions WHERE user_id = ?", (user_id,))
            await conn.commit()
            return None

        return ConversationState(
            step=ConversationStep(row[0]),
            data=PostData.from_dict(json.loads(row[1])),
            created_at=datetime.fromisoformat(row[2]),
            updated_at=updated_at,
            version=row[4],
        )

    async def set(self, user_id: str, state: ConversationState) -> int:
        """Save session state, rejecting the write if the stored version moved."""
        conn = self._require_conn()

        expected_version = state.version
        new_version = expected_version + 1
        values = (
            state.step.value,
            json.dumps(state.data.to_dict(), ensure_ascii=False),
            _timestamp(state.created_at),
            _timestamp(state.updated_at),
        )

        async with self._write_lock:
            cursor = await conn.execute(
                """
                UPDATE sessions
                SET step = ?, data = ?, created_at = ?, updated_at = ?, version = ?
                WHERE user_id = ? AND version = ?
                """,
                (*values, new_version, user_id, expected_version),
            )

            if cursor.rowcount == 0 and expected_version == 0:
                cursor = await conn.execute(
                    """
                    INSERT OR IGNORE INTO sessions
                    (user_id, step, data, created_at, updated_at, version)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (user_id, *values, new_version),
                )

            if cursor.rowcount == 0:
                await conn.rollback()
                raise ConcurrentUpdateError(
                    f"Session for user {user_id} changed since version {expected_version}"
                )

            await conn.commit()
        state.version = new_version
        logger.debug(
            "Session saved for %s: step=%s version=%s",
            user_id,
            state.step.value,
            new_version,
        )
        return new_version

    async def reset_to_idle(self, user_id: str) -> None:
        """Reset session to IDLE state (keeps session but clears data)."""
        conn = self._require_conn()

        idle = create_idle_state()
        idle.created_at = idle.updated_at = self._clock()
        await conn.execute(
            """
            INSERT INTO sessions
            (user_id, step, data, created_at, updated_at, version)
            VALUES (?, ?, ?, ?, ?, 1)
            ON CONFLICT(user_id) DO UPDATE SET
                step = excluded.step,
                data = excluded.data,
                created_at = excluded.created_at,
                updated_at = excluded.updated_at,
                version = sessions.version + 1
            """,
            (
                user_id,
                idle.step.value,
                json.dumps(idle.data.to_dict()),
                _timestamp(idle.created_at),
                _timestamp(idle.updated_at),
            ),
        )
        await conn.commit()
        logger.info("Session reset to IDLE for %s", user_id)

    async def delete(self, user_id: str) -> None:
        """Delete session completely."""
        conn = self._require_conn()

        await conn.execute("DELETE FROM sessions WHERE user_id = ?", (user_id,))
        await conn.commit()
        logger.info("Session deleted for %s", user_id)

    async def cleanup(self) -> int:
        """Remove sessions whose last update is older than the TTL."""
        conn = self._require_conn()

        cursor = await conn.execute(
            "DELETE FROM sessions WHERE updated_at <= ?",
            (self._expiry_cutoff(),),
        )
        await conn.commit()
        removed = cursor.rowcount
        logger.info("Session cleanup completed: %s sessions removed", removed)
        return removed

    async def get_stats(self) -> SessionStats | None:
        """Count live sessions per step."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            SELECT step, COUNT(*)
            FROM sessions
            WHERE updated_at > ?
            GROUP BY step
            """,
            (self._expiry_cutoff(),),
        )
        rows = await cursor.fetchall()

        step_counts = {row[0]: row[1] for row in rows}
        return SessionStats(
            total_sessions=sum(step_counts.values()),
            step_counts=step_counts,
        )
