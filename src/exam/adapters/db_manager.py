import os
import sqlite3

from src.config import ExamConfig
from src.shared.telemetry import Telemetry, measure_time


class DatabaseManager:
    """
    Responsible for:
    1. Managing the SQLite connection lifecycle.
    2. Initializing the attempt/mistake schema (DDL).
    3. Handling migrations.
    """

    def __init__(self, db_path: str = ExamConfig.DB_PATH) -> None:
        self.db_path = db_path
        self.telemetry = Telemetry("DatabaseManager")
        self._shared_connection: sqlite3.Connection | None = None

        self._ensure_db_exists()

        # For in-memory DBs, we must keep the connection open immediately
        if self.db_path == ":memory:":
            self._shared_connection = sqlite3.connect(
                ":memory:", check_same_thread=False
            )

        self._init_schema()
        self._migrate_schema()

    def get_connection(self) -> sqlite3.Connection:
        """Returns a usable database connection, reconnecting if necessary."""
        if self._shared_connection:
            try:
                self._shared_connection.execute("SELECT 1")
                return self._shared_connection
            except sqlite3.ProgrammingError:
                # Connection was closed externally
                self._shared_connection = None

        # Worker threads (asyncio.to_thread) share this connection.
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        if self.db_path != ":memory:":
            conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")

        self._shared_connection = conn
        return conn

    def close(self) -> None:
        if self._shared_connection:
            self._shared_connection.close()
            self._shared_connection = None

    def _ensure_db_exists(self) -> None:
        if self.db_path == ":memory:":
            return
        dir_name = os.path.dirname(self.db_path)
        if dir_name:
            os.makedirs(dir_name, exist_ok=True)

    @measure_time("db_init_schema")
    def _init_schema(self) -> None:
        conn = self.get_connection()
        conn.execute("PRAGMA foreign_keys=ON")
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS attempts
                (
                    id         TEXT PRIMARY KEY,
                    user_id    TEXT NOT NULL,
                    test_id    TEXT NOT NULL,
                    score      TEXT NOT NULL,
                    accuracy   TEXT NOT NULL,
                    start_time TEXT NOT NULL,
                    end_time   TEXT NOT NULL,
                    status     TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS mistakes
                (
                    attempt_id         TEXT NOT NULL
                        REFERENCES attempts (id) ON DELETE CASCADE,
                    question_id        TEXT NOT NULL,
                    user_id            TEXT NOT NULL,
                    test_id            TEXT NOT NULL,
                    selected_option_id TEXT,
                    correct_option_id  TEXT NOT NULL,
                    attempt_timestamp  TEXT NOT NULL,
                    question_json      TEXT,
                    PRIMARY KEY (attempt_id, question_id)
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_attempts_user ON attempts (user_id)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_mistakes_user ON mistakes (user_id)"
            )
            conn.commit()
        except sqlite3.Error as e:
            self.telemetry.log_error("Schema Init Failed", e)
            raise

    def _migrate_schema(self) -> None:
        conn = self.get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("PRAGMA table_info(attempts)")
            columns = [info[1] for info in cursor.fetchall()]

            # Migration: focus-loss count was added after the first release
            if "focus_loss_count" not in columns:
                self.telemetry.log_info("Migrating: Adding focus_loss_count to attempts")
                cursor.execute(
                    "ALTER TABLE attempts ADD COLUMN focus_loss_count INTEGER DEFAULT 0"
                )
            conn.commit()
        except sqlite3.Error as e:
            self.telemetry.log_error("Schema migration failed", e)
            raise
