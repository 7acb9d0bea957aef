import sqlite3
import aiosqlite
import csv
import io
import datetime
from contextlib import contextmanager, asynccontextmanager
from typing import List, Tuple, Optional, Iterable

from algorithms import ExerciseRecord, LogRecord
from settings_schema import validate_reminder_settings


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "exercises": (
            """CREATE TABLE exercises (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    sets INTEGER NOT NULL,
                    reps INTEGER NOT NULL,
                    frequency_per_week INTEGER NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );""",
            [
                "id",
                "name",
                "sets",
                "reps",
                "frequency_per_week",
                "created_at",
                "updated_at",
            ],
        ),
        "exercise_media": (
            """CREATE TABLE exercise_media (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    exercise_id INTEGER NOT NULL,
                    type TEXT NOT NULL,
                    url TEXT NOT NULL,
                    thumbnail_url TEXT,
                    title TEXT,
                    is_alternative INTEGER NOT NULL DEFAULT 0,
                    cached_at TEXT NOT NULL,
                    FOREIGN KEY(exercise_id) REFERENCES exercises(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "exercise_id",
                "type",
                "url",
                "thumbnail_url",
                "title",
                "is_alternative",
                "cached_at",
            ],
        ),
        "daily_logs": (
            """CREATE TABLE daily_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    date TEXT NOT NULL,
                    exercise_id INTEGER NOT NULL,
                    sets_completed INTEGER NOT NULL DEFAULT 0,
                    completed INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY(exercise_id) REFERENCES exercises(id) ON DELETE CASCADE,
                    UNIQUE(date, exercise_id)
                );""",
            [
                "id",
                "date",
                "exercise_id",
                "sets_completed",
                "completed",
                "created_at",
            ],
        ),
        "reminder_settings": (
            """CREATE TABLE reminder_settings (
                    key TEXT PRIMARY KEY,
                    email TEXT NOT NULL DEFAULT '',
                    time TEXT NOT NULL DEFAULT '08:30',
                    enabled INTEGER NOT NULL DEFAULT 0,
                    timezone TEXT NOT NULL DEFAULT 'America/Los_Angeles',
                    updated_at TEXT NOT NULL
                );""",
            ["key", "email", "time", "enabled", "timezone", "updated_at"],
        ),
        "email_logs": (
            """CREATE TABLE email_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp TEXT NOT NULL,
                    address TEXT NOT NULL,
                    subject TEXT NOT NULL,
                    summary TEXT NOT NULL,
                    success INTEGER NOT NULL
                );""",
            ["id", "timestamp", "address", "subject", "summary", "success"],
        ),
    }

    def __init__(self, db_path: str = "pt_tracker.db") -> None:
        self._db_path = db_path
        self._ensure_schema()
        self._init_reminder_settings()

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path)
        connection.execute("PRAGMA foreign_keys=on;")
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute("PRAGMA foreign_keys=off;")
            cursor.execute("PRAGMA legacy_alter_table=on;")
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)
            cursor.execute("PRAGMA legacy_alter_table=off;")
            cursor.execute("PRAGMA foreign_keys=on;")

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return

        conn.execute(f"DROP TABLE IF EXISTS {table}_old;")
        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)

        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            missing = [c for c in columns if c not in existing_cols]
            if missing:
                now = datetime.datetime.now().isoformat(timespec="seconds")

                def default_val(col: str) -> str:
                    if col in ("sets_completed", "completed", "enabled", "is_alternative"):
                        return "0"
                    if col in ("created_at", "updated_at", "cached_at", "timestamp"):
                        return f"'{now}'"
                    if col == "time":
                        return "'08:30'"
                    if col == "timezone":
                        return "'America/Los_Angeles'"
                    if col in ("email", "summary", "subject"):
                        return "''"
                    return "NULL"

                defaults = ", ".join(default_val(c) for c in missing)
                conn.execute(
                    f"INSERT INTO {table} ({cols}, {', '.join(missing)}) SELECT {cols}, {defaults} FROM {table}_old;"
                )
            else:
                conn.execute(
                    f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;"
                )
        conn.execute(f"DROP TABLE {table}_old;")

    def _init_reminder_settings(self) -> None:
        with self._connection() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO reminder_settings (key, email, time, enabled, timezone, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?);",
                (
                    ReminderSettingsRepository.DEFAULT_KEY,
                    ReminderSettingsRepository.DEFAULTS["email"],
                    ReminderSettingsRepository.DEFAULTS["time"],
                    1 if ReminderSettingsRepository.DEFAULTS["enabled"] else 0,
                    ReminderSettingsRepository.DEFAULTS["timezone"],
                    datetime.datetime.now().isoformat(timespec="seconds"),
                ),
            )

    def vacuum(self) -> None:
        """Run SQLite VACUUM to reduce database size."""
        with self._connection() as conn:
            conn.execute("VACUUM;")


class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.lastrowid

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()

    def _delete_all(self, table: str) -> None:
        self.execute(f"DELETE FROM {table};")

    @staticmethod
    def _now() -> str:
        return datetime.datetime.now().isoformat(timespec="seconds")

    @staticmethod
    def _check_date(date: str) -> str:
        if not date:
            raise ValueError("date is required")
        try:
            return datetime.date.fromisoformat(date).isoformat()
        except (TypeError, ValueError):
            raise ValueError(f"invalid date: {date}")


class AsyncDatabase(Database):
    """Provides asynchronous connection management."""

    @asynccontextmanager
    async def _async_connection(self):
        conn = await aiosqlite.connect(self._db_path)
        await conn.execute("PRAGMA foreign_keys=on;")
        try:
            yield conn
            await conn.commit()
        finally:
            await conn.close()


class AsyncBaseRepository(AsyncDatabase):
    """Asynchronous variant of BaseRepository using aiosqlite."""

    async def execute(self, query: str, params: Tuple = ()) -> int:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            await conn.commit()
            return cursor.lastrowid

    async def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            return list(rows)


class ExerciseRepository(BaseRepository):
    """Repository for the exercise catalog."""

    _COLUMNS = "id, name, sets, reps, frequency_per_week, created_at, updated_at"

    @staticmethod
    def _positive(field: str, value) -> int:
        try:
            number = int(value)
        except (TypeError, ValueError):
            raise ValueError(f"{field} must be an integer")
        if number < 1:
            raise ValueError(f"{field} must be at least 1")
        return number

    @staticmethod
    def _clean_name(name: Optional[str]) -> str:
        if name is None or not str(name).strip():
            raise ValueError("name is required")
        return str(name).strip()

    def add(self, name: str, sets: int, reps: int, frequency_per_week: int) -> int:
        name = self._clean_name(name)
        sets = self._positive("sets", sets)
        reps = self._positive("reps", reps)
        frequency_per_week = self._positive("frequency_per_week", frequency_per_week)
        now = self._now()
        return self.execute(
            "INSERT INTO exercises (name, sets, reps, frequency_per_week, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?);",
            (name, sets, reps, frequency_per_week, now, now),
        )

    def update(
        self,
        exercise_id: int,
        name: Optional[str] = None,
        sets: Optional[int] = None,
        reps: Optional[int] = None,
        frequency_per_week: Optional[int] = None,
    ) -> None:
        self.fetch_detail(exercise_id)
        fields: list[str] = []
        params: list[str | int] = []
        if name is not None:
            fields.append("name = ?")
            params.append(self._clean_name(name))
        if sets is not None:
            fields.append("sets = ?")
            params.append(self._positive("sets", sets))
        if reps is not None:
            fields.append("reps = ?")
            params.append(self._positive("reps", reps))
        if frequency_per_week is not None:
            fields.append("frequency_per_week = ?")
            params.append(self._positive("frequency_per_week", frequency_per_week))
        if not fields:
            return
        fields.append("updated_at = ?")
        params.append(self._now())
        params.append(exercise_id)
        self.execute(
            f"UPDATE exercises SET {', '.join(fields)} WHERE id = ?;", tuple(params)
        )

    def delete(self, exercise_id: int) -> None:
        self.fetch_detail(exercise_id)
        self.execute("DELETE FROM exercises WHERE id = ?;", (exercise_id,))

    def delete_all(self) -> None:
        self._delete_all("exercises")

    def fetch_all_exercises(self) -> List[Tuple[int, str, int, int, int, str, str]]:
        return self.fetch_all(
            f"SELECT {self._COLUMNS} FROM exercises ORDER BY created_at DESC, id DESC;"
        )

    def fetch_detail(self, exercise_id: int) -> Tuple[int, str, int, int, int, str, str]:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM exercises WHERE id = ?;", (exercise_id,)
        )
        if not rows:
            raise ValueError("exercise not found")
        return rows[0]

    def fetch_records(self) -> List[ExerciseRecord]:
        """Return the whole catalog ordered by name."""
        rows = self.fetch_all(
            "SELECT id, name, sets, reps, frequency_per_week FROM exercises ORDER BY name ASC, id ASC;"
        )
        return [ExerciseRecord(*row) for row in rows]

    @staticmethod
    def to_dict(row: Tuple) -> dict:
        return {
            "id": row[0],
            "name": row[1],
            "sets": row[2],
            "reps": row[3],
            "frequencyPerWeek": row[4],
            "createdAt": row[5],
            "updatedAt": row[6],
        }


class DailyLogRepository(BaseRepository):
    """Repository for per-day exercise logs."""

    def upsert(self, date: str, exercise_id: int, sets_completed: int = 0) -> dict:
        """Create or overwrite the log for ``date`` and ``exercise_id``.

        ``completed`` is derived from the exercise's target sets at write time
        and stored, so later catalog edits do not change past logs.
        """
        date = self._check_date(date)
        try:
            sets_completed = int(sets_completed or 0)
        except (TypeError, ValueError):
            raise ValueError("sets_completed must be an integer")
        if sets_completed < 0:
            raise ValueError("sets_completed must not be negative")
        rows = self.fetch_all("SELECT sets FROM exercises WHERE id = ?;", (exercise_id,))
        if not rows:
            raise LookupError("exercise not found")
        completed = sets_completed >= rows[0][0]
        self.execute(
            "INSERT INTO daily_logs (date, exercise_id, sets_completed, completed, created_at) "
            "VALUES (?, ?, ?, ?, ?) "
            "ON CONFLICT(date, exercise_id) DO UPDATE SET "
            "sets_completed=excluded.sets_completed, completed=excluded.completed;",
            (date, exercise_id, sets_completed, 1 if completed else 0, self._now()),
        )
        return self.fetch_log(date, exercise_id)

    def fetch_log(self, date: str, exercise_id: int) -> Optional[dict]:
        rows = self.fetch_all(
            "SELECT id, date, exercise_id, sets_completed, completed, created_at "
            "FROM daily_logs WHERE date = ? AND exercise_id = ?;",
            (self._check_date(date), exercise_id),
        )
        if not rows:
            return None
        r = rows[0]
        return {
            "id": r[0],
            "date": r[1],
            "exerciseId": r[2],
            "setsCompleted": r[3],
            "completed": bool(r[4]),
            "createdAt": r[5],
        }

    def fetch_for_date(self, date: str) -> dict[int, Tuple[int, bool]]:
        """Return ``{exercise_id: (sets_completed, completed)}`` for ``date``."""
        rows = self.fetch_all(
            "SELECT exercise_id, sets_completed, completed FROM daily_logs WHERE date = ?;",
            (self._check_date(date),),
        )
        return {ex_id: (sets, bool(done)) for ex_id, sets, done in rows}

    def fetch_range(self, start_date: str, end_date: str) -> List[LogRecord]:
        rows = self.fetch_all(
            "SELECT date, exercise_id, sets_completed, completed FROM daily_logs "
            "WHERE date >= ? AND date <= ? ORDER BY date ASC, exercise_id ASC;",
            (self._check_date(start_date), self._check_date(end_date)),
        )
        return [LogRecord(d, ex_id, sets, bool(done)) for d, ex_id, sets, done in rows]

    def export_csv(self, start_date: str | None = None, end_date: str | None = None) -> str:
        query = (
            "SELECT l.date, e.name, l.sets_completed, e.sets, l.completed "
            "FROM daily_logs l JOIN exercises e ON e.id = l.exercise_id"
        )
        params: list[str] = []
        where_clauses: list[str] = []
        if start_date:
            where_clauses.append("l.date >= ?")
            params.append(self._check_date(start_date))
        if end_date:
            where_clauses.append("l.date <= ?")
            params.append(self._check_date(end_date))
        if where_clauses:
            query += " WHERE " + " AND ".join(where_clauses)
        query += " ORDER BY l.date, e.name;"
        rows = self.fetch_all(query, tuple(params))
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(["Date", "Exercise", "Sets Completed", "Target Sets", "Completed"])
        for date, name, done_sets, target, completed in rows:
            writer.writerow([date, name, done_sets, target, "yes" if completed else "no"])
        return output.getvalue()


class ReminderSettingsRepository(BaseRepository):
    """Repository for the reminder configuration record."""

    DEFAULT_KEY = "default"
    DEFAULTS = {
        "email": "",
        "time": "08:30",
        "enabled": False,
        "timezone": "America/Los_Angeles",
    }

    def fetch(self, key: str = DEFAULT_KEY) -> dict:
        rows = self.fetch_all(
            "SELECT email, time, enabled, timezone, updated_at FROM reminder_settings WHERE key = ?;",
            (key,),
        )
        if not rows:
            raise LookupError(f"reminder settings '{key}' not initialized")
        email, time, enabled, timezone, updated_at = rows[0]
        return {
            "email": email,
            "time": time,
            "enabled": bool(enabled),
            "timezone": timezone,
            "updatedAt": updated_at,
        }

    def update(self, data: dict, key: str = DEFAULT_KEY) -> dict:
        changes = validate_reminder_settings(data)
        self.fetch(key)
        if changes:
            fields = [f"{col} = ?" for col in changes]
            params: list[str | int] = [
                (1 if v else 0) if col == "enabled" else v for col, v in changes.items()
            ]
            fields.append("updated_at = ?")
            params.append(self._now())
            params.append(key)
            self.execute(
                f"UPDATE reminder_settings SET {', '.join(fields)} WHERE key = ?;",
                tuple(params),
            )
        return self.fetch(key)


class EmailLogRepository(BaseRepository):
    """Repository for reminder email logs."""

    def add(self, address: str, subject: str, summary: str, success: bool) -> int:
        return self.execute(
            "INSERT INTO email_logs (timestamp, address, subject, summary, success) VALUES (?, ?, ?, ?, ?);",
            (
                datetime.datetime.now().isoformat(),
                address,
                subject,
                summary,
                1 if success else 0,
            ),
        )

    def fetch_all_logs(self) -> list[dict[str, object]]:
        rows = self.fetch_all(
            "SELECT id, timestamp, address, subject, summary, success FROM email_logs ORDER BY id;"
        )
        result: list[dict[str, object]] = []
        for r in rows:
            result.append(
                {
                    "id": r[0],
                    "timestamp": r[1],
                    "address": r[2],
                    "subject": r[3],
                    "summary": r[4],
                    "success": bool(r[5]),
                }
            )
        return result


class ExerciseMediaRepository(AsyncBaseRepository):
    """Async repository caching media search results per exercise."""

    async def fetch_for_exercise(self, exercise_id: int) -> list[dict[str, object]]:
        rows = await self.fetch_all(
            "SELECT id, exercise_id, type, url, thumbnail_url, title, is_alternative, cached_at "
            "FROM exercise_media WHERE exercise_id = ? ORDER BY id;",
            (exercise_id,),
        )
        return [
            {
                "id": r[0],
                "exerciseId": r[1],
                "type": r[2],
                "url": r[3],
                "thumbnailUrl": r[4],
                "title": r[5],
                "isAlternative": bool(r[6]),
                "cachedAt": r[7],
            }
            for r in rows
        ]

    async def delete_for_exercise(self, exercise_id: int) -> None:
        await self.execute(
            "DELETE FROM exercise_media WHERE exercise_id = ?;", (exercise_id,)
        )

    async def add_many(self, exercise_id: int, items: Iterable[dict]) -> None:
        now = datetime.datetime.now().isoformat(timespec="seconds")
        async with self._async_connection() as conn:
            await conn.executemany(
                "INSERT INTO exercise_media (exercise_id, type, url, thumbnail_url, title, is_alternative, cached_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?);",
                [
                    (
                        exercise_id,
                        item["type"],
                        item["url"],
                        item.get("thumbnail_url"),
                        item.get("title"),
                        1 if item.get("is_alternative") else 0,
                        now,
                    )
                    for item in items
                ],
            )
