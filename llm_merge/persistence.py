"""
Persistence for LLM Merge.

Performance records are stored as plain dicts keyed by model id; the last
write for a key wins.
"""
import json
from abc import ABC, abstractmethod
from datetime import datetime, timezone, timedelta
from pathlib import Path
from typing import Dict, List, Any, Optional

import aiosqlite
from loguru import logger


class PerformanceStore(ABC):
    """get/put-by-model-id storage for performance records and merge history."""

    async def initialize(self) -> None:
        """Prepare the storage medium."""

    async def close(self) -> None:
        """Release any held resources."""

    @abstractmethod
    async def get(self, model_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def put(self, model_id: str, record: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    async def delete(self, model_id: str) -> None:
        pass

    @abstractmethod
    async def load_all(self) -> Dict[str, Dict[str, Any]]:
        pass

    @abstractmethod
    async def save_session(self, session: Dict[str, Any]) -> bool:
        """Append one merge result to the history."""
        pass

    @abstractmethod
    async def get_recent_sessions(self, limit: int = 10) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    async def get_statistics(self) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def cleanup_old_records(self, days: int = 90) -> int:
        """Drop merge sessions older than ``days``; returns how many were removed."""
        pass


class InMemoryPerformanceStore(PerformanceStore):
    """Process-local store; the default and the one used in tests."""

    def __init__(self, max_sessions: int = 1000):
        self._records: Dict[str, Dict[str, Any]] = {}
        self._sessions: List[Dict[str, Any]] = []
        self.max_sessions = max_sessions

    async def get(self, model_id: str) -> Optional[Dict[str, Any]]:
        record = self._records.get(model_id)
        return dict(record) if record is not None else None

    async def put(self, model_id: str, record: Dict[str, Any]) -> None:
        self._records[model_id] = dict(record)

    async def delete(self, model_id: str) -> None:
        self._records.pop(model_id, None)

    async def load_all(self) -> Dict[str, Dict[str, Any]]:
        return {k: dict(v) for k, v in self._records.items()}

    async def save_session(self, session: Dict[str, Any]) -> bool:
        self._sessions.append(dict(session))
        if len(self._sessions) > self.max_sessions:
            self._sessions = self._sessions[-self.max_sessions:]
        return True

    async def get_recent_sessions(self, limit: int = 10) -> List[Dict[str, Any]]:
        return list(reversed(self._sessions[-limit:]))

    async def get_statistics(self) -> Dict[str, Any]:
        return {
            "total_sessions": len(self._sessions),
            "tracked_models": len(self._records),
            "storage": "memory"
        }

    async def cleanup_old_records(self, days: int = 90) -> int:
        cutoff = (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()
        kept = [s for s in self._sessions if s.get("timestamp", cutoff) >= cutoff]
        removed = len(self._sessions) - len(kept)
        self._sessions = kept
        return removed


class SQLitePerformanceStore(PerformanceStore):
    """
    SQLite-based persistence using aiosqlite.
    """

    def __init__(self, db_path: str = "data/llm_merge.db"):
        self.db_path = Path(db_path)
        self._initialized = False

    async def initialize(self) -> None:
        """Initialize database tables."""
        if self._initialized:
            return
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS performance_records (
                    model_id TEXT PRIMARY KEY,
                    record TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            await db.execute("""
                CREATE TABLE IF NOT EXISTS merge_sessions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    request_id TEXT,
                    timestamp TEXT,
                    prompt TEXT,
                    final_content TEXT,
                    primary_model TEXT,
                    consensus_score REAL,
                    weights TEXT,
                    diagnostics TEXT
                )
            """)
            await db.execute("""
                CREATE INDEX IF NOT EXISTS idx_sessions_timestamp ON merge_sessions(timestamp)
            """)
            await db.commit()

        self._initialized = True
        logger.info(f"Database initialized at {self.db_path}")

    async def get(self, model_id: str) -> Optional[Dict[str, Any]]:
        await self.initialize()
        async with aiosqlite.connect(self.db_path) as db:
            async with db.execute(
                "SELECT record FROM performance_records WHERE model_id = ?",
                (model_id,)
            ) as cursor:
                row = await cursor.fetchone()
        return json.loads(row[0]) if row else None

    async def put(self, model_id: str, record: Dict[str, Any]) -> None:
        await self.initialize()
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """INSERT OR REPLACE INTO performance_records (model_id, record, updated_at)
                   VALUES (?, ?, ?)""",
                (model_id, json.dumps(record), datetime.now(timezone.utc).isoformat())
            )
            await db.commit()

    async def delete(self, model_id: str) -> None:
        await self.initialize()
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                "DELETE FROM performance_records WHERE model_id = ?",
                (model_id,)
            )
            await db.commit()

    async def load_all(self) -> Dict[str, Dict[str, Any]]:
        await self.initialize()
        async with aiosqlite.connect(self.db_path) as db:
            async with db.execute(
                "SELECT model_id, record FROM performance_records"
            ) as cursor:
                rows = await cursor.fetchall()
        return {model_id: json.loads(record) for model_id, record in rows}

    async def save_session(self, session: Dict[str, Any]) -> bool:
        await self.initialize()
        try:
            async with aiosqlite.connect(self.db_path) as db:
                await db.execute("""
                    INSERT INTO merge_sessions
                    (request_id, timestamp, prompt, final_content, primary_model,
                     consensus_score, weights, diagnostics)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    session.get("request_id", ""),
                    session.get("timestamp") or datetime.now(timezone.utc).isoformat(),
                    session.get("prompt", ""),
                    session.get("final_content", ""),
                    session.get("primary_model", ""),
                    session.get("consensus_score", 0.0),
                    json.dumps(session.get("weights", {})),
                    json.dumps(session.get("diagnostics", []))
                ))
                await db.commit()
            return True
        except aiosqlite.Error as e:
            logger.error(f"Failed to save session: {e}")
            return False

    async def get_recent_sessions(self, limit: int = 10) -> List[Dict[str, Any]]:
        await self.initialize()
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT * FROM merge_sessions ORDER BY id DESC LIMIT ?",
                (limit,)
            ) as cursor:
                rows = await cursor.fetchall()

        sessions = []
        for row in rows:
            data = dict(row)
            data["weights"] = json.loads(data["weights"]) if data["weights"] else {}
            data["diagnostics"] = json.loads(data["diagnostics"]) if data["diagnostics"] else []
            sessions.append(data)
        return sessions

    async def get_statistics(self) -> Dict[str, Any]:
        """Get database statistics."""
        await self.initialize()
        async with aiosqlite.connect(self.db_path) as db:
            async with db.execute("SELECT COUNT(*) FROM merge_sessions") as cursor:
                total_sessions = (await cursor.fetchone())[0]
            async with db.execute("SELECT COUNT(*) FROM performance_records") as cursor:
                total_models = (await cursor.fetchone())[0]
        return {
            "total_sessions": total_sessions,
            "tracked_models": total_models,
            "storage": "sqlite",
            "db_path": str(self.db_path)
        }

    async def cleanup_old_records(self, days: int = 90) -> int:
        """Remove merge sessions older than ``days``."""
        await self.initialize()
        cutoff = (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                "DELETE FROM merge_sessions WHERE timestamp < ?",
                (cutoff,)
            )
            removed = cursor.rowcount
            await db.commit()
        logger.info(f"Cleaned up {removed} sessions older than {days} days")
        return removed
