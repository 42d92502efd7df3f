from typing import Any, cast

from src.exam.domain.errors import PersistenceError
from src.exam.domain.models import Attempt, MistakeRecord
from src.exam.domain.ports import IAttemptRepository
from src.shared.telemetry import Telemetry, measure_time
from supabase import Client, create_client


class SupabaseAttemptRepository(IAttemptRepository):
    """
    Hosted store. PostgREST has no multi-table transaction, so a submission
    is written attempt-first and the attempt is deleted again if the
    mistakes write fails.
    """

    def __init__(self, url: str, key: str) -> None:
        self.telemetry = Telemetry("SupabaseRepository")
        try:
            self.client: Client = create_client(url, key)
        except Exception as e:
            self.telemetry.log_error("Failed to initialize Supabase client", e)
            raise

    @staticmethod
    def _mistake_payload(m: MistakeRecord) -> dict[str, Any]:
        payload = m.model_dump(mode="json", exclude={"question"})
        payload["question_json"] = m.question.model_dump(mode="json") if m.question else None
        return payload

    def save_attempt(self, attempt: Attempt) -> None:
        try:
            self.client.table("attempts").upsert(attempt.model_dump(mode="json")).execute()
        except Exception as e:
            self.telemetry.log_error("save_attempt failed", e, attempt_id=attempt.id)
            raise PersistenceError(str(e)) from e

    def save_mistakes(self, mistakes: list[MistakeRecord]) -> None:
        if not mistakes:
            return
        try:
            data = [self._mistake_payload(m) for m in mistakes]
            self.client.table("mistakes").upsert(data).execute()
        except Exception as e:
            self.telemetry.log_error("save_mistakes failed", e, count=len(mistakes))
            raise PersistenceError(str(e)) from e

    @measure_time("sb_save_submission")
    def save_submission(self, attempt: Attempt, mistakes: list[MistakeRecord]) -> None:
        self.save_attempt(attempt)
        try:
            self.client.table("mistakes").delete().eq("attempt_id", attempt.id).execute()
            self.save_mistakes(mistakes)
        except Exception as e:
            self.telemetry.log_error("Mistakes write failed, removing attempt", e, attempt_id=attempt.id)
            try:
                self.client.table("attempts").delete().eq("id", attempt.id).execute()
            except Exception as cleanup_error:
                self.telemetry.log_error("Compensating delete failed", cleanup_error, attempt_id=attempt.id)
            raise PersistenceError(str(e)) from e

    @measure_time("sb_load_history")
    def load_attempt_history(self, user_id: str) -> list[Attempt]:
        try:
            response = (
                self.client.table("attempts")
                .select("*")
                .eq("user_id", user_id)
                .order("end_time", desc=True)
                .execute()
            )
        except Exception as e:
            self.telemetry.log_error("load_attempt_history failed", e, user_id=user_id)
            raise PersistenceError(str(e)) from e
        data = cast(list[dict[str, Any]], response.data)
        return [Attempt.model_validate(row) for row in data]

    @measure_time("sb_load_mistakes")
    def load_mistakes(self, user_id: str) -> list[MistakeRecord]:
        try:
            response = (
                self.client.table("mistakes")
                .select("*")
                .eq("user_id", user_id)
                .order("attempt_timestamp", desc=True)
                .execute()
            )
        except Exception as e:
            self.telemetry.log_error("load_mistakes failed", e, user_id=user_id)
            raise PersistenceError(str(e)) from e
        data = cast(list[dict[str, Any]], response.data)
        records = []
        for row in data:
            row = dict(row)
            row["question"] = row.pop("question_json", None)
            records.append(MistakeRecord.model_validate(row))
        return records
