"""
modules/rota/pipeline.py

One resolution pass: expansion, exception removal, merge, leave suppression
and cover derivation over an immutable snapshot of store records.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Mapping, Optional, Sequence

from models.patterns import PatternException, RecurrencePattern
from models.requests import ExceptionRequest, LeaveRecord
from models.shifts import CoverInstance, ManualShiftInstance
from modules.rota.cover import CoverResolver
from modules.rota.expander import exception_index
from modules.rota.leave import LeaveConflict, LeaveConflictResolver
from modules.rota.merger import manual_to_instance, merge_instances, virtual_instances

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RotaSnapshot:
    patterns: Sequence[RecurrencePattern] = ()
    exceptions: Sequence[PatternException] = ()
    manual_shifts: Sequence[ManualShiftInstance] = ()
    leave_records: Sequence[LeaveRecord] = ()
    requests: Sequence[ExceptionRequest] = ()

    def subject_ids(self) -> List[str]:
        ids = {p.subject_id for p in self.patterns}
        ids.update(s.subject_id for s in self.manual_shifts)
        ids.update(r.subject_id for r in self.leave_records)
        return sorted(ids)


@dataclass(frozen=True)
class ResolutionResult:
    instances: List = field(default_factory=list)
    covers: List[CoverInstance] = field(default_factory=list)
    conflicts: List[LeaveConflict] = field(default_factory=list)

    @property
    def timeline(self) -> List:
        """Manual, pattern and cover instances together."""
        return [*self.instances, *self.covers]

    @property
    def visible(self) -> List:
        return [i for i in self.timeline if not i.suppressed]


def resolve_schedule(
    snapshot: RotaSnapshot,
    window_start: date,
    window_end: date,
    names: Optional[Mapping[str, str]] = None,
) -> ResolutionResult:
    if window_end < window_start:
        raise ValueError("window_end must not be before window_start")

    by_pattern = exception_index(snapshot.exceptions)
    manual = [
        manual_to_instance(shift)
        for shift in snapshot.manual_shifts
        if window_start <= shift.start.date() <= window_end
    ]
    virtual = virtual_instances(snapshot.patterns, window_start, window_end, by_pattern)
    merged = merge_instances(manual, virtual)

    leave = LeaveConflictResolver(
        snapshot.leave_records,
        snapshot.patterns,
        snapshot.manual_shifts,
        by_pattern,
        snapshot.requests,
    )
    instances = leave.apply(merged)
    conflicts = leave.conflicts_in(snapshot.subject_ids(), window_start, window_end)

    covers = CoverResolver(snapshot.leave_records, snapshot.patterns, names, by_pattern).derive(
        snapshot.requests, instances, window_start, window_end
    )

    logger.info(
        "Resolved %d instances (%d covers, %d leave conflicts) for %s to %s",
        len(instances),
        len(covers),
        len(conflicts),
        window_start,
        window_end,
    )
    return ResolutionResult(instances=instances, covers=covers, conflicts=conflicts)
