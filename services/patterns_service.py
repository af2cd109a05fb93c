import logging
from datetime import date
from typing import Any, Dict, Optional

from database.supabase_client import get_supabase
from models.patterns import PatternCreate, RecurrencePattern, validate_pattern
from modules.rota.errors import MalformedPatternError, RecordNotFoundError, RotaError

logger = logging.getLogger(__name__)


class PatternsService:
    def __init__(self, supabase=None):
        self.supabase = supabase or get_supabase()

    async def get_pattern(self, pattern_id: str) -> Optional[Dict[str, Any]]:
        try:
            result = self.supabase.table("recurring_shift_patterns") \
                .select("*") \
                .eq("id", pattern_id) \
                .execute()

            if result.data and len(result.data) > 0:
                return result.data[0]
            return None

        except Exception as e:
            logger.error(f"Get pattern error: {e}")
            raise e

    async def _require_pattern(self, pattern_id: str) -> Dict[str, Any]:
        row = await self.get_pattern(pattern_id)
        if row is None:
            raise RecordNotFoundError("Pattern not found", details={"pattern_id": pattern_id})
        return row

    async def create_pattern(self, pattern: PatternCreate, created_by: Optional[str] = None) -> Dict[str, Any]:
        """Validate and insert a recurring pattern"""
        payload = pattern.model_dump(mode="json")
        # Validation runs before the row has an id
        validated: RecurrencePattern = validate_pattern({**payload, "id": "new"})
        payload["days_of_week"] = list(validated.days_of_week)
        if created_by:
            payload["created_by"] = created_by

        try:
            result = self.supabase.table("recurring_shift_patterns").insert(payload).execute()

            if result.data and len(result.data) > 0:
                logger.info(f"Created {validated.recurrence_interval.value} pattern for {validated.subject_id}")
                return result.data[0]
            else:
                raise Exception("Insert returned no data")

        except Exception as e:
            logger.error(f"Create pattern error: {e}", exc_info=True)
            raise e

    async def end_pattern(self, pattern_id: str, end_date: date) -> Dict[str, Any]:
        """End a pattern by narrowing its end date. Earlier occurrences are untouched."""
        row = await self._require_pattern(pattern_id)
        current_end = row.get("end_date")
        if current_end and date.fromisoformat(str(current_end)) < end_date:
            raise MalformedPatternError(
                "A pattern can only be ended earlier than its current end date",
                details={"pattern_id": pattern_id, "end_date": current_end},
            )
        validate_pattern({**row, "end_date": end_date.isoformat()})

        try:
            result = self.supabase.table("recurring_shift_patterns") \
                .update({"end_date": end_date.isoformat()}) \
                .eq("id", pattern_id) \
                .execute()

            if result.data and len(result.data) > 0:
                return result.data[0]
            raise RecordNotFoundError("Pattern not found", details={"pattern_id": pattern_id})

        except RotaError:
            raise
        except Exception as e:
            logger.error(f"End pattern error: {e}", exc_info=True)
            raise e

    async def delete_pattern(self, pattern_id: str) -> bool:
        """Hard delete a pattern together with its exceptions"""
        await self._require_pattern(pattern_id)
        try:
            self.supabase.table("shift_pattern_exceptions") \
                .delete() \
                .eq("pattern_id", pattern_id) \
                .execute()
            self.supabase.table("recurring_shift_patterns") \
                .delete() \
                .eq("id", pattern_id) \
                .execute()
            logger.info(f"Deleted pattern {pattern_id}")
            return True

        except Exception as e:
            logger.error(f"Delete pattern error: {e}", exc_info=True)
            raise e

    async def add_exception(self, pattern_id: str, exception_date: date) -> Dict[str, Any]:
        """Delete one occurrence. Adding the same date twice returns the existing row."""
        row = await self._require_pattern(pattern_id)
        pattern = validate_pattern(row)
        if exception_date < pattern.start_date or (pattern.end_date and exception_date > pattern.end_date):
            raise MalformedPatternError(
                "Exception date falls outside the pattern's validity window",
                details={"pattern_id": pattern_id, "exception_date": exception_date.isoformat()},
            )

        try:
            existing = self.supabase.table("shift_pattern_exceptions") \
                .select("*") \
                .eq("pattern_id", pattern_id) \
                .eq("exception_date", exception_date.isoformat()) \
                .execute()
            if existing.data:
                return existing.data[0]

            result = self.supabase.table("shift_pattern_exceptions").insert({
                "pattern_id": pattern_id,
                "exception_date": exception_date.isoformat(),
                "exception_type": "deleted",
            }).execute()

            if result.data and len(result.data) > 0:
                return result.data[0]
            else:
                raise Exception("Insert returned no data")

        except Exception as e:
            logger.error(f"Add pattern exception error: {e}", exc_info=True)
            raise e
