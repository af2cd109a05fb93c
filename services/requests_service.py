import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from database.supabase_client import get_supabase
from models.patterns import PatternException, validate_pattern
from models.requests import ApprovalStatus, ExceptionRequest, RequestKind, RequestReview
from models.shifts import ManualShiftInstance
from modules.rota.cover import plan_shift_cover_reassignment
from modules.rota.errors import (
    InvalidStatusTransitionError,
    RecordNotFoundError,
    RotaError,
    StaleApprovalReplayError,
)
from modules.rota.expander import count_working_days
from services.rota_service import parse_rows

logger = logging.getLogger(__name__)


class RequestsService:
    def __init__(self, supabase=None):
        self.supabase = supabase or get_supabase()

    async def get_request(self, request_id: str) -> ExceptionRequest:
        try:
            result = self.supabase.table("staff_requests") \
                .select("*") \
                .eq("id", request_id) \
                .execute()
        except Exception as e:
            logger.error(f"Get request error: {e}", exc_info=True)
            raise e

        if not result.data:
            raise RecordNotFoundError("Request not found", details={"request_id": request_id})
        return ExceptionRequest.model_validate(result.data[0])

    async def review_request(
        self,
        request_id: str,
        review: RequestReview,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Approve or reject a pending request and apply its side effects.

        The status change is a conditional update on status = pending, so a
        replayed approval matches nothing and never reassigns shifts or
        creates leave twice. If a side effect fails, the request is put back
        to pending before the error propagates.
        """
        now = now or datetime.now(timezone.utc)
        request = await self.get_request(request_id)
        target = ApprovalStatus(review.status)

        if request.status != ApprovalStatus.PENDING:
            if request.status == target == ApprovalStatus.APPROVED:
                raise StaleApprovalReplayError(
                    "Request is already approved",
                    details={"request_id": request_id},
                )
            raise InvalidStatusTransitionError(
                f"Cannot move a {request.status.value} request to {target.value}",
                details={"request_id": request_id, "status": request.status.value},
            )

        try:
            result = self.supabase.table("staff_requests") \
                .update({
                    "status": target.value,
                    "reviewed_by": review.reviewed_by,
                    "reviewed_at": now.isoformat(),
                    "review_notes": review.review_notes,
                }) \
                .eq("id", request_id) \
                .eq("status", ApprovalStatus.PENDING.value) \
                .execute()
        except Exception as e:
            logger.error(f"Review request error: {e}", exc_info=True)
            raise e

        if not result.data:
            # Someone else reviewed it between our read and write
            raise StaleApprovalReplayError(
                "Request was reviewed concurrently",
                details={"request_id": request_id},
            )

        response = {
            "request_id": request_id,
            "status": target.value,
            "leave_record": None,
            "reassigned_shift_ids": [],
        }
        if target != ApprovalStatus.APPROVED:
            return response

        try:
            if request.kind == RequestKind.LEAVE:
                response["leave_record"] = await self._materialize_leave(request, review, now)
            elif request.kind == RequestKind.SHIFT_COVER:
                response["reassigned_shift_ids"] = await self._reassign_covered_shifts(request)
        except RotaError:
            await self._reopen_request(request_id)
            raise
        except Exception as e:
            logger.error(f"Apply approval side effects error for {request_id}: {e}", exc_info=True)
            await self._reopen_request(request_id)
            raise e

        return response

    async def _reopen_request(self, request_id: str) -> None:
        """Put an approval whose side effects failed back to pending so it can be retried."""
        try:
            self.supabase.table("staff_requests") \
                .update({
                    "status": ApprovalStatus.PENDING.value,
                    "reviewed_by": None,
                    "reviewed_at": None,
                    "review_notes": None,
                }) \
                .eq("id", request_id) \
                .eq("status", ApprovalStatus.APPROVED.value) \
                .execute()
            logger.warning(f"Reopened request {request_id} after failed approval side effects")
        except Exception as e:
            logger.error(f"Reopen request error for {request_id}: {e}", exc_info=True)

    async def _materialize_leave(
        self,
        request: ExceptionRequest,
        review: RequestReview,
        now: datetime,
    ) -> Dict[str, Any]:
        days = request.days_requested
        if not days:
            days = await self._working_days(request)

        payload = {
            "user_id": request.subject_id,
            "absence_type": "unpaid" if request.request_type == "holiday_unpaid" else "holiday",
            "start_date": request.start_date.isoformat(),
            "end_date": request.end_date.isoformat(),
            "days_taken": days,
            "status": ApprovalStatus.APPROVED.value,
            "notes": request.details,
            "approved_by": review.reviewed_by,
            "approved_at": now.isoformat(),
        }
        result = self.supabase.table("staff_holidays").insert(payload).execute()
        if not result.data:
            raise Exception("Insert returned no data")
        logger.info(f"Materialized {days} leave days for {request.subject_id} from request {request.id}")
        return result.data[0]

    async def _working_days(self, request: ExceptionRequest) -> float:
        """Standard working days the subject's patterns put inside the request range"""
        result = self.supabase.table("recurring_shift_patterns") \
            .select("*") \
            .eq("user_id", request.subject_id) \
            .lte("start_date", request.end_date.isoformat()) \
            .execute()
        patterns = parse_rows(result.data or [], validate_pattern, "pattern")

        exceptions = []
        if patterns:
            result = self.supabase.table("shift_pattern_exceptions") \
                .select("*") \
                .in_("pattern_id", [p.id for p in patterns]) \
                .gte("exception_date", request.start_date.isoformat()) \
                .lte("exception_date", request.end_date.isoformat()) \
                .execute()
            exceptions = parse_rows(result.data or [], PatternException.model_validate, "pattern exception")

        return float(count_working_days(request.start_date, request.end_date, patterns, exceptions))

    async def _reassign_covered_shifts(self, request: ExceptionRequest) -> List[str]:
        if not request.linked_subject_id:
            return []

        result = self.supabase.table("staff_schedules") \
            .select("*") \
            .eq("user_id", request.linked_subject_id) \
            .gte("start_datetime", request.start_date.isoformat()) \
            .lte("start_datetime", f"{request.end_date.isoformat()}T23:59:59") \
            .execute()
        shifts = parse_rows(result.data or [], ManualShiftInstance.model_validate, "schedule")

        plan = plan_shift_cover_reassignment(request, ApprovalStatus.PENDING, shifts)
        if not plan:
            return []

        shift_ids = [r.shift_id for r in plan]
        self.supabase.table("staff_schedules") \
            .update({"user_id": request.subject_id}) \
            .in_("id", shift_ids) \
            .execute()
        logger.info(f"Shift cover {request.id}: {len(shift_ids)} schedules reassigned to {request.subject_id}")
        return shift_ids
