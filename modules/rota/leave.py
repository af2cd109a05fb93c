"""
modules/rota/leave.py

Decides which occurrences are suppressed by approved leave.

A (subject, date) is leave-suppressed only when approved leave covers the
date AND the date is one the subject would standardly work: a manual shift or
a non-overtime pattern occurrence. Overtime occurrences on a leave date stay
visible, since staff may pick up overtime while off their normal rotation.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from models.patterns import RecurrencePattern
from models.requests import ApprovalStatus, ExceptionRequest, LeaveRecord, RequestKind
from models.shifts import ManualShiftInstance
from modules.rota.dates import each_day
from modules.rota.expander import occurs_on

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LeaveConflict:
    subject_id: str
    date: date
    suppressed: bool
    leave: Optional[LeaveRecord] = None
    needs_cover: bool = False
    pending_leave: bool = False

    def to_dict(self) -> Dict:
        return {
            "subject_id": self.subject_id,
            "date": self.date.isoformat(),
            "suppressed": self.suppressed,
            "leave_id": self.leave.id if self.leave else None,
            "absence_type": self.leave.absence_type if self.leave else None,
            "needs_cover": self.needs_cover,
            "pending_leave": self.pending_leave,
        }


class LeaveConflictResolver:
    """Answers leave questions for one input snapshot."""

    def __init__(
        self,
        leave_records: Iterable[LeaveRecord],
        patterns: Iterable[RecurrencePattern],
        manual_shifts: Iterable[ManualShiftInstance] = (),
        exceptions_by_pattern: Optional[Dict[str, FrozenSet[date]]] = None,
        requests: Iterable[ExceptionRequest] = (),
    ):
        self._approved: Dict[str, List[LeaveRecord]] = defaultdict(list)
        self._pending: Dict[str, List] = defaultdict(list)
        for record in leave_records:
            if record.status == ApprovalStatus.APPROVED:
                self._approved[record.subject_id].append(record)
            elif record.status == ApprovalStatus.PENDING:
                self._pending[record.subject_id].append(record)
        for request in requests:
            if request.kind == RequestKind.LEAVE and request.status == ApprovalStatus.PENDING:
                self._pending[request.subject_id].append(request)
        for records in self._approved.values():
            records.sort(key=lambda r: (r.start_date, r.id))

        self._standard_patterns: Dict[str, List[RecurrencePattern]] = defaultdict(list)
        for pattern in patterns:
            if not pattern.is_overtime:
                self._standard_patterns[pattern.subject_id].append(pattern)

        self._manual_days = {(shift.subject_id, shift.start.date()) for shift in manual_shifts}
        self._exceptions = exceptions_by_pattern or {}
        self._memo: Dict[Tuple[str, date], LeaveConflict] = {}

    def approved_leave_on(self, subject_id: str, day: date) -> Optional[LeaveRecord]:
        for record in self._approved.get(subject_id, ()):
            if record.covers(day):
                return record
        return None

    def has_pending_leave(self, subject_id: str, day: date) -> bool:
        return any(item.covers(day) for item in self._pending.get(subject_id, ()))

    def is_standard_working_day(self, subject_id: str, day: date) -> bool:
        """Re-run expansion for one date, restricted to manual shifts and non-overtime patterns."""
        if (subject_id, day) in self._manual_days:
            return True
        for pattern in self._standard_patterns.get(subject_id, ()):
            if day in self._exceptions.get(pattern.id, frozenset()):
                continue
            if occurs_on(pattern, day):
                return True
        return False

    def resolve(self, subject_id: str, day: date) -> LeaveConflict:
        key = (subject_id, day)
        if key in self._memo:
            return self._memo[key]

        leave = self.approved_leave_on(subject_id, day)
        standard = None
        if leave is not None or self.has_pending_leave(subject_id, day):
            standard = self.is_standard_working_day(subject_id, day)

        if leave is not None and standard:
            conflict = LeaveConflict(
                subject_id=subject_id,
                date=day,
                suppressed=True,
                leave=leave,
                needs_cover=not leave.no_cover_required,
            )
        else:
            conflict = LeaveConflict(
                subject_id=subject_id,
                date=day,
                suppressed=False,
                leave=leave,
                pending_leave=bool(standard) and leave is None,
            )
        self._memo[key] = conflict
        return conflict

    def apply(self, instances: Sequence) -> List:
        """Return instances with `suppressed` set on every non-overtime instance on a suppressed day."""
        result = []
        for instance in instances:
            if instance.origin == "cover" or instance.is_overtime:
                result.append(instance)
                continue
            if self.resolve(instance.subject_id, instance.shift_date).suppressed:
                result.append(instance.model_copy(update={"suppressed": True}))
            else:
                result.append(instance)
        return result

    def conflicts_in(self, subject_ids: Iterable[str], window_start: date, window_end: date) -> List[LeaveConflict]:
        """Every suppressed or pending-leave (subject, date) in the window, for coverage-need badges."""
        found = []
        for subject_id in sorted(set(subject_ids)):
            if subject_id not in self._approved and subject_id not in self._pending:
                continue
            for day in each_day(window_start, window_end):
                conflict = self.resolve(subject_id, day)
                if conflict.suppressed or conflict.pending_leave:
                    found.append(conflict)
        logger.debug("Found %d leave conflicts between %s and %s", len(found), window_start, window_end)
        return found
