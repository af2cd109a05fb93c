"""
modules/rota/cover.py

Derives substitute shift instances from approved cover requests.

Two request shapes qualify:
- overtime linked to a leave record: covers the subject on that leave
- shift cover: covers the subject named on the request

For every date of the request inside the window, the covered subject's
instances that day are copied onto the covering subject. When the covered
subject has no materialized instance that day, their standard patterns are
re-derived for the single date instead, minus any deleted occurrences. A
request that resolves nothing contributes nothing.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence

from models.patterns import RecurrencePattern
from models.requests import ApprovalStatus, ExceptionRequest, LeaveRecord, RequestKind
from models.shifts import CoverInstance, ManualShiftInstance
from modules.rota.dates import clip, each_day
from modules.rota.expander import occurs_on

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _CoveredSlot:
    client_name: str
    start: datetime
    end: datetime
    origin: str
    source_id: str
    label: Optional[str] = None
    hourly_rate: Optional[float] = None
    currency: str = "GBP"


@dataclass(frozen=True)
class Reassignment:
    shift_id: str
    from_subject_id: str
    to_subject_id: str


class CoverResolver:
    def __init__(
        self,
        leave_records: Iterable[LeaveRecord],
        patterns: Iterable[RecurrencePattern],
        names: Optional[Mapping[str, str]] = None,
        exceptions_by_pattern: Optional[Dict[str, FrozenSet[date]]] = None,
    ):
        self._leave_by_id = {record.id: record for record in leave_records}
        self._standard_patterns: Dict[str, List[RecurrencePattern]] = defaultdict(list)
        for pattern in patterns:
            if not pattern.is_overtime:
                self._standard_patterns[pattern.subject_id].append(pattern)
        self._names = names or {}
        self._exceptions = exceptions_by_pattern or {}

    def covered_subject(self, request: ExceptionRequest) -> Optional[str]:
        """Subject being stood in for, or None when the request is not a resolvable cover."""
        if request.status != ApprovalStatus.APPROVED:
            return None
        if request.kind == RequestKind.SHIFT_COVER:
            return request.linked_subject_id
        if request.kind == RequestKind.OVERTIME and request.linked_leave_id:
            leave = self._leave_by_id.get(request.linked_leave_id)
            return leave.subject_id if leave else None
        return None

    def _fallback_slots(self, subject_id: str, day: date) -> List[_CoveredSlot]:
        slots = []
        for pattern in self._standard_patterns.get(subject_id, ()):
            if day in self._exceptions.get(pattern.id, frozenset()):
                continue
            if occurs_on(pattern, day):
                slots.append(
                    _CoveredSlot(
                        client_name=pattern.client_name,
                        start=datetime.combine(day, pattern.start_time),
                        end=datetime.combine(day, pattern.end_time),
                        origin="pattern",
                        source_id=pattern.id,
                        label=pattern.label,
                        hourly_rate=pattern.hourly_rate,
                        currency=pattern.currency,
                    )
                )
        return slots

    def derive(
        self,
        requests: Iterable[ExceptionRequest],
        instances: Sequence,
        window_start: date,
        window_end: date,
    ) -> List[CoverInstance]:
        by_subject_day: Dict[tuple, List] = defaultdict(list)
        taken = set()
        for instance in instances:
            if instance.origin == "cover":
                continue
            by_subject_day[(instance.subject_id, instance.shift_date)].append(instance)
            taken.add(instance.slot_key)

        covers: List[CoverInstance] = []
        for request in requests:
            covered = self.covered_subject(request)
            if not covered:
                continue
            span = clip(request.start_date, request.end_date, window_start, window_end)
            if span is None:
                continue

            contributed = 0
            for day in each_day(*span):
                slots = [
                    _CoveredSlot(
                        client_name=i.client_name,
                        start=i.start,
                        end=i.end,
                        origin=i.origin,
                        source_id=i.source_id,
                        label=i.label,
                        hourly_rate=i.hourly_rate,
                        currency=i.currency,
                    )
                    for i in by_subject_day.get((covered, day), ())
                ]
                if not slots:
                    slots = self._fallback_slots(covered, day)

                for slot in slots:
                    cover = CoverInstance(
                        subject_id=request.subject_id,
                        client_name=slot.client_name,
                        start=slot.start,
                        end=slot.end,
                        source_id=request.id,
                        label=slot.label,
                        hourly_rate=slot.hourly_rate,
                        currency=slot.currency,
                        covering_for=covered,
                        covering_for_name=self._names.get(covered),
                        covered_origin=slot.origin,
                        covered_source_id=slot.source_id,
                    )
                    # Already on the coverer's timeline (e.g. a reassigned manual shift)
                    if cover.slot_key in taken:
                        continue
                    taken.add(cover.slot_key)
                    covers.append(cover)
                    contributed += 1

            if not contributed:
                logger.debug("Cover request %s resolved no covered instances for %s", request.id, covered)
        return covers


def plan_shift_cover_reassignment(
    request: ExceptionRequest,
    previous_status: ApprovalStatus,
    manual_shifts: Iterable[ManualShiftInstance],
) -> List[Reassignment]:
    """
    Manual shifts to hand over when a shift-cover request is approved.

    Only the pending -> approved transition produces work; replaying an
    approval against an already-approved request yields nothing.
    """
    if request.kind != RequestKind.SHIFT_COVER or not request.linked_subject_id:
        return []
    if previous_status != ApprovalStatus.PENDING:
        logger.info(
            "Skipping reassignment for request %s: previous status was %s",
            request.id,
            previous_status.value,
        )
        return []

    return [
        Reassignment(
            shift_id=shift.id,
            from_subject_id=shift.subject_id,
            to_subject_id=request.subject_id,
        )
        for shift in manual_shifts
        if shift.subject_id == request.linked_subject_id and request.covers(shift.start.date())
    ]
