"""
STARS/core/backends.py

Storage contract for criteria and ratings, with two interchangeable
implementations selected at startup.

Provides:
- StorageBackend: abstract row-level contract used by the registry and store
- MemoryBackend: dict storage with a composite (rater, state, criterion) index
- SQLiteBackend: file-backed storage with a UNIQUE index on the same triple
- open_backend(): factory used by the service

Backends only persist rows. Validation and per-key serialization of upserts
live in CriterionRegistry and RatingStore, so both backends behave the same.

License: MIT
"""

from __future__ import annotations

import abc
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Dict, List, Optional, Union

from .errors import ConflictError, ValidationError
from .models import Criterion, Rating, RatingKey

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path(__file__).resolve().parent.parent / "data" / "stars.db"


# ---------------------------------------------------------------------------
# Contract
# ---------------------------------------------------------------------------

class StorageBackend(abc.ABC):
    """Row storage for criteria and ratings."""

    name = "abstract"

    # --- ratings ---
    @abc.abstractmethod
    def get_rating(self, rating_id: str) -> Optional[Rating]: ...

    @abc.abstractmethod
    def find_rating(self, key: RatingKey) -> Optional[Rating]: ...

    @abc.abstractmethod
    def save_rating(self, rating: Rating) -> Rating:
        """Insert the row, or replace the row with the same id in place."""

    @abc.abstractmethod
    def delete_rating(self, rating_id: str) -> bool: ...

    @abc.abstractmethod
    def list_ratings(self,
                     rater_id: Optional[str] = None,
                     state_code: Optional[str] = None) -> List[Rating]: ...

    @abc.abstractmethod
    def count_ratings(self) -> int: ...

    # --- criteria ---
    @abc.abstractmethod
    def get_criterion(self, criterion_id: str) -> Optional[Criterion]: ...

    @abc.abstractmethod
    def save_criterion(self, criterion: Criterion) -> Criterion: ...

    @abc.abstractmethod
    def list_criteria(self) -> List[Criterion]: ...

    def close(self) -> None:
        """Release resources (no-op by default)."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------

class MemoryBackend(StorageBackend):
    """
    Process-local storage.

    The row map and the composite index are always updated together under
    one lock, so readers never see a half-applied write.
    """

    name = "memory"

    def __init__(self):
        self._lock = threading.RLock()
        self._ratings: Dict[str, Rating] = {}
        self._index: Dict[RatingKey, str] = {}
        self._criteria: Dict[str, Criterion] = {}

    def get_rating(self, rating_id: str) -> Optional[Rating]:
        return self._ratings.get(rating_id)

    def find_rating(self, key: RatingKey) -> Optional[Rating]:
        with self._lock:
            rid = self._index.get(key)
            return self._ratings.get(rid) if rid else None

    def save_rating(self, rating: Rating) -> Rating:
        with self._lock:
            owner = self._index.get(rating.key)
            if owner is not None and owner != rating.id:
                raise ConflictError(f"rating key {rating.key} already held by {owner}")
            previous = self._ratings.get(rating.id)
            if previous is not None and previous.key != rating.key:
                del self._index[previous.key]
            self._ratings[rating.id] = rating
            self._index[rating.key] = rating.id
            return rating

    def delete_rating(self, rating_id: str) -> bool:
        with self._lock:
            rating = self._ratings.pop(rating_id, None)
            if rating is None:
                return False
            self._index.pop(rating.key, None)
            return True

    def list_ratings(self,
                     rater_id: Optional[str] = None,
                     state_code: Optional[str] = None) -> List[Rating]:
        with self._lock:
            rows = list(self._ratings.values())
        return [r for r in rows
                if (rater_id is None or r.rater_id == rater_id)
                and (state_code is None or r.state_code == state_code)]

    def count_ratings(self) -> int:
        return len(self._ratings)

    def get_criterion(self, criterion_id: str) -> Optional[Criterion]:
        return self._criteria.get(criterion_id)

    def save_criterion(self, criterion: Criterion) -> Criterion:
        with self._lock:
            self._criteria[criterion.id] = criterion
        return criterion

    def list_criteria(self) -> List[Criterion]:
        with self._lock:
            return list(self._criteria.values())

    def close(self) -> None:
        with self._lock:
            self._ratings.clear()
            self._index.clear()
            self._criteria.clear()


# ---------------------------------------------------------------------------
# SQLite backend
# ---------------------------------------------------------------------------

class SQLiteBackend(StorageBackend):
    """
    SQLite-backed storage.

    Each call opens its own connection, so the backend can be shared between
    request-handler threads. The triple key is enforced by a UNIQUE index and
    every write is a single statement committed atomically.
    """

    name = "sqlite"

    def __init__(self, db_path: Optional[Union[str, Path]] = None):
        """
        Initialize the database.

        Args:
            db_path: Path to SQLite database (default: STARS/data/stars.db)
        """
        if db_path is None:
            db_path = DEFAULT_DB_PATH
        if str(db_path) == ":memory:":
            raise ValidationError("SQLiteBackend needs a file path; use MemoryBackend instead")

        db_path = Path(db_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self.db_path = db_path
        self._init_db()

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), timeout=30.0, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self):
        conn = self._get_conn()
        try:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS criteria (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT NOT NULL UNIQUE,
                    name TEXT NOT NULL,
                    weight REAL NOT NULL CHECK (weight > 0),
                    color TEXT NOT NULL,
                    active INTEGER NOT NULL DEFAULT 1
                );

                CREATE TABLE IF NOT EXISTS ratings (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT NOT NULL UNIQUE,
                    rater_id TEXT NOT NULL,
                    state_code TEXT NOT NULL,
                    criterion_id TEXT NOT NULL,
                    value INTEGER NOT NULL CHECK (value BETWEEN 1 AND 10),
                    notes TEXT
                );

                CREATE UNIQUE INDEX IF NOT EXISTS idx_ratings_key
                    ON ratings(rater_id, state_code, criterion_id);
                CREATE INDEX IF NOT EXISTS idx_ratings_state ON ratings(state_code);
            """)
            conn.commit()
            logger.info(f"SQLite store ready at {self.db_path}")
        finally:
            conn.close()

    @staticmethod
    def _row_to_rating(row: sqlite3.Row) -> Rating:
        return Rating(id=row["id"], rater_id=row["rater_id"], state_code=row["state_code"],
                      criterion_id=row["criterion_id"], value=int(row["value"]),
                      notes=row["notes"])

    @staticmethod
    def _row_to_criterion(row: sqlite3.Row) -> Criterion:
        return Criterion(id=row["id"], name=row["name"], weight=float(row["weight"]),
                         color=row["color"], active=bool(row["active"]))

    # --- ratings ---

    def get_rating(self, rating_id: str) -> Optional[Rating]:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM ratings WHERE id = ?", (rating_id,)).fetchone()
            return self._row_to_rating(row) if row else None
        finally:
            conn.close()

    def find_rating(self, key: RatingKey) -> Optional[Rating]:
        conn = self._get_conn()
        try:
            row = conn.execute("""
                SELECT * FROM ratings
                WHERE rater_id = ? AND state_code = ? AND criterion_id = ?
            """, key).fetchone()
            return self._row_to_rating(row) if row else None
        finally:
            conn.close()

    def save_rating(self, rating: Rating) -> Rating:
        conn = self._get_conn()
        try:
            conn.execute("""
                INSERT INTO ratings (id, rater_id, state_code, criterion_id, value, notes)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    rater_id = excluded.rater_id,
                    state_code = excluded.state_code,
                    criterion_id = excluded.criterion_id,
                    value = excluded.value,
                    notes = excluded.notes
            """, (rating.id, rating.rater_id, rating.state_code, rating.criterion_id,
                  rating.value, rating.notes))
            conn.commit()
            return rating
        except sqlite3.IntegrityError as e:
            conn.rollback()
            raise ConflictError(f"rating key {rating.key} rejected: {e}") from e
        finally:
            conn.close()

    def delete_rating(self, rating_id: str) -> bool:
        conn = self._get_conn()
        try:
            cur = conn.execute("DELETE FROM ratings WHERE id = ?", (rating_id,))
            conn.commit()
            return cur.rowcount > 0
        finally:
            conn.close()

    def list_ratings(self,
                     rater_id: Optional[str] = None,
                     state_code: Optional[str] = None) -> List[Rating]:
        clauses = []
        params = []
        if rater_id is not None:
            clauses.append("rater_id = ?")
            params.append(rater_id)
        if state_code is not None:
            clauses.append("state_code = ?")
            params.append(state_code)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        conn = self._get_conn()
        try:
            rows = conn.execute(f"SELECT * FROM ratings {where} ORDER BY seq", params).fetchall()
            return [self._row_to_rating(r) for r in rows]
        finally:
            conn.close()

    def count_ratings(self) -> int:
        conn = self._get_conn()
        try:
            return int(conn.execute("SELECT COUNT(*) FROM ratings").fetchone()[0])
        finally:
            conn.close()

    # --- criteria ---

    def get_criterion(self, criterion_id: str) -> Optional[Criterion]:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM criteria WHERE id = ?", (criterion_id,)).fetchone()
            return self._row_to_criterion(row) if row else None
        finally:
            conn.close()

    def save_criterion(self, criterion: Criterion) -> Criterion:
        conn = self._get_conn()
        try:
            conn.execute("""
                INSERT INTO criteria (id, name, weight, color, active)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    weight = excluded.weight,
                    color = excluded.color,
                    active = excluded.active
            """, (criterion.id, criterion.name, float(criterion.weight), criterion.color,
                  int(criterion.active)))
            conn.commit()
            return criterion
        finally:
            conn.close()

    def list_criteria(self) -> List[Criterion]:
        conn = self._get_conn()
        try:
            rows = conn.execute("SELECT * FROM criteria ORDER BY seq").fetchall()
            return [self._row_to_criterion(r) for r in rows]
        finally:
            conn.close()

    def __repr__(self) -> str:
        return f"SQLiteBackend(db_path={str(self.db_path)!r})"


def open_backend(kind: str = "memory", db_path: Optional[Union[str, Path]] = None) -> StorageBackend:
    """
    Create a backend by name.

    Args:
        kind: "memory" or "sqlite"
        db_path: SQLite file (ignored for memory)
    """
    kind = (kind or "memory").strip().lower()
    if kind == "memory":
        return MemoryBackend()
    if kind == "sqlite":
        return SQLiteBackend(db_path)
    raise ValidationError(f"Unknown backend: {kind!r} (expected 'memory' or 'sqlite')")
