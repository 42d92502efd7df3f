import sqlite3
from datetime import datetime
from decimal import Decimal

from src.exam.adapters.db_manager import DatabaseManager
from src.exam.domain.errors import PersistenceError
from src.exam.domain.models import Attempt, AttemptStatus, MistakeRecord, Question
from src.exam.domain.ports import IAttemptRepository
from src.shared.telemetry import Telemetry, measure_time

_ATTEMPT_SQL = """
    INSERT INTO attempts (id, user_id, test_id, score, accuracy,
                          start_time, end_time, status, focus_loss_count)
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT (id) DO UPDATE SET score            = excluded.score,
                                   accuracy         = excluded.accuracy,
                                   end_time         = excluded.end_time,
                                   status           = excluded.status,
                                   focus_loss_count = excluded.focus_loss_count
"""

_MISTAKE_SQL = """
    INSERT OR REPLACE INTO mistakes (attempt_id, question_id, user_id, test_id,
                                     selected_option_id, correct_option_id,
                                     attempt_timestamp, question_json)
    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
"""


class SQLiteAttemptRepository(IAttemptRepository):
    def __init__(self, db_manager: DatabaseManager) -> None:
        self.telemetry = Telemetry("SQLiteRepository")
        self.db_manager = db_manager

    def _get_connection(self) -> sqlite3.Connection:
        return self.db_manager.get_connection()

    @staticmethod
    def _attempt_row(attempt: Attempt) -> tuple:
        return (
            attempt.id,
            attempt.user_id,
            attempt.test_id,
            str(attempt.score),
            str(attempt.accuracy),
            attempt.start_time.isoformat(),
            attempt.end_time.isoformat(),
            attempt.status.value,
            attempt.focus_loss_count,
        )

    @staticmethod
    def _mistake_row(m: MistakeRecord) -> tuple:
        return (
            m.attempt_id,
            m.question_id,
            m.user_id,
            m.test_id,
            m.selected_option_id,
            m.correct_option_id,
            m.attempt_timestamp.isoformat(),
            m.question.model_dump_json() if m.question else None,
        )

    def save_attempt(self, attempt: Attempt) -> None:
        conn = self._get_connection()
        try:
            with conn:
                conn.execute(_ATTEMPT_SQL, self._attempt_row(attempt))
        except sqlite3.Error as e:
            self.telemetry.log_error("save_attempt failed", e, attempt_id=attempt.id)
            raise PersistenceError(str(e)) from e

    def save_mistakes(self, mistakes: list[MistakeRecord]) -> None:
        conn = self._get_connection()
        try:
            with conn:
                conn.executemany(_MISTAKE_SQL, [self._mistake_row(m) for m in mistakes])
        except sqlite3.Error as e:
            self.telemetry.log_error("save_mistakes failed", e, count=len(mistakes))
            raise PersistenceError(str(e)) from e

    @measure_time("db_save_submission")
    def save_submission(self, attempt: Attempt, mistakes: list[MistakeRecord]) -> None:
        """Single transaction: the connection context manager commits or rolls back."""
        conn = self._get_connection()
        try:
            with conn:
                conn.execute(_ATTEMPT_SQL, self._attempt_row(attempt))
                # A retried unit replaces whatever an earlier try left behind.
                conn.execute("DELETE FROM mistakes WHERE attempt_id = ?", (attempt.id,))
                conn.executemany(_MISTAKE_SQL, [self._mistake_row(m) for m in mistakes])
        except sqlite3.Error as e:
            self.telemetry.log_error("save_submission rolled back", e, attempt_id=attempt.id)
            raise PersistenceError(str(e)) from e

    @measure_time("db_load_history")
    def load_attempt_history(self, user_id: str) -> list[Attempt]:
        conn = self._get_connection()
        cursor = conn.execute(
            """
            SELECT id, user_id, test_id, score, accuracy, start_time, end_time,
                   status, focus_loss_count
            FROM attempts
            WHERE user_id = ?
            ORDER BY end_time DESC
            """,
            (user_id,),
        )
        return [
            Attempt(
                id=row[0],
                user_id=row[1],
                test_id=row[2],
                score=Decimal(row[3]),
                accuracy=Decimal(row[4]),
                start_time=datetime.fromisoformat(row[5]),
                end_time=datetime.fromisoformat(row[6]),
                status=AttemptStatus(row[7]),
                focus_loss_count=row[8] or 0,
            )
            for row in cursor.fetchall()
        ]

    @measure_time("db_load_mistakes")
    def load_mistakes(self, user_id: str) -> list[MistakeRecord]:
        conn = self._get_connection()
        cursor = conn.execute(
            """
            SELECT attempt_id, question_id, user_id, test_id, selected_option_id,
                   correct_option_id, attempt_timestamp, question_json
            FROM mistakes
            WHERE user_id = ?
            ORDER BY attempt_timestamp DESC, rowid ASC
            """,
            (user_id,),
        )
        return [
            MistakeRecord(
                attempt_id=row[0],
                question_id=row[1],
                user_id=row[2],
                test_id=row[3],
                selected_option_id=row[4],
                correct_option_id=row[5],
                attempt_timestamp=datetime.fromisoformat(row[6]),
                question=Question.model_validate_json(row[7]) if row[7] else None,
            )
            for row in cursor.fetchall()
        ]
