import logging
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional

from pydantic import ValidationError

from database.supabase_client import get_supabase
from models.patterns import PatternException, validate_pattern
from models.requests import ExceptionRequest, LeaveRecord
from models.shifts import ManualShiftInstance, TimelineResponse
from modules.rota.errors import RotaError
from modules.rota.packer import pack_by_group
from modules.rota.pipeline import ResolutionResult, RotaSnapshot, resolve_schedule

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = ["pending", "approved"]


def parse_rows(rows: Iterable[Dict[str, Any]], parse: Callable, label: str) -> List:
    """Parse store rows, logging and skipping any that fail validation."""
    parsed = []
    for row in rows:
        try:
            parsed.append(parse(row))
        except (RotaError, ValidationError) as e:
            logger.warning(f"Skipping malformed {label} row {row.get('id')}: {e}")
    return parsed


class RotaService:
    def __init__(self, supabase=None):
        self.supabase = supabase or get_supabase()

    async def load_snapshot(
        self,
        start_date: date,
        end_date: date,
        subject_id: Optional[str] = None,
    ) -> RotaSnapshot:
        """Read every record a resolution pass over [start_date, end_date] needs"""
        try:
            query = self.supabase.table("recurring_shift_patterns") \
                .select("*") \
                .lte("start_date", end_date.isoformat())
            if subject_id:
                query = query.eq("user_id", subject_id)
            patterns = [
                p for p in parse_rows(query.execute().data or [], validate_pattern, "pattern")
                if p.end_date is None or p.end_date >= start_date
            ]

            exceptions = []
            pattern_ids = [p.id for p in patterns]
            if pattern_ids:
                result = self.supabase.table("shift_pattern_exceptions") \
                    .select("*") \
                    .in_("pattern_id", pattern_ids) \
                    .gte("exception_date", start_date.isoformat()) \
                    .lte("exception_date", end_date.isoformat()) \
                    .execute()
                exceptions = parse_rows(result.data or [], PatternException.model_validate, "pattern exception")

            query = self.supabase.table("staff_schedules") \
                .select("*") \
                .gte("start_datetime", start_date.isoformat()) \
                .lte("start_datetime", f"{end_date.isoformat()}T23:59:59")
            if subject_id:
                query = query.eq("user_id", subject_id)
            manual_shifts = parse_rows(
                query.order("start_datetime").execute().data or [],
                ManualShiftInstance.model_validate,
                "schedule",
            )

            leave_records = parse_rows(
                self._overlapping("staff_holidays", start_date, end_date, subject_id),
                LeaveRecord.model_validate,
                "leave",
            )
            requests = parse_rows(
                self._overlapping("staff_requests", start_date, end_date, subject_id),
                ExceptionRequest.model_validate,
                "request",
            )

            return RotaSnapshot(
                patterns=tuple(patterns),
                exceptions=tuple(exceptions),
                manual_shifts=tuple(manual_shifts),
                leave_records=tuple(leave_records),
                requests=tuple(requests),
            )

        except Exception as e:
            logger.error(f"Load rota snapshot error: {e}", exc_info=True)
            raise e

    def _overlapping(
        self,
        table: str,
        start_date: date,
        end_date: date,
        subject_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Pending/approved rows whose date range overlaps the window"""
        query = self.supabase.table(table) \
            .select("*") \
            .lte("start_date", end_date.isoformat()) \
            .gte("end_date", start_date.isoformat()) \
            .in_("status", ACTIVE_STATUSES)
        if subject_id:
            query = query.eq("user_id", subject_id)
        return query.execute().data or []

    async def get_display_names(self, subject_ids: List[str]) -> Dict[str, str]:
        if not subject_ids:
            return {}
        try:
            result = self.supabase.table("profiles") \
                .select("user_id, display_name") \
                .in_("user_id", subject_ids) \
                .execute()
            return {
                row["user_id"]: row["display_name"]
                for row in result.data or []
                if row.get("display_name")
            }
        except Exception as e:
            logger.error(f"Get display names error: {e}", exc_info=True)
            raise e

    async def resolve(self, start_date: date, end_date: date) -> ResolutionResult:
        snapshot = await self.load_snapshot(start_date, end_date)
        names = await self.get_display_names(snapshot.subject_ids())
        return resolve_schedule(snapshot, start_date, end_date, names)

    async def get_timeline(
        self,
        start_date: date,
        end_date: date,
        group_by: str = "staff",
        include_suppressed: bool = False,
    ) -> TimelineResponse:
        """Resolve and pack the window for display"""
        result = await self.resolve(start_date, end_date)
        instances = result.timeline if include_suppressed else result.visible
        return TimelineResponse(
            start_date=start_date,
            end_date=end_date,
            group_by=group_by,
            groups=pack_by_group(instances, group_by),
            suppressed_count=sum(1 for i in result.timeline if i.suppressed),
            conflicts=[c.to_dict() for c in result.conflicts],
        )

    async def get_conflicts(self, start_date: date, end_date: date) -> List[Dict[str, Any]]:
        result = await self.resolve(start_date, end_date)
        return [c.to_dict() for c in result.conflicts]
