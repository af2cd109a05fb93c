import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Literal, Sequence

from models.shifts import PackedInstance, TimelineGroup

logger = logging.getLogger(__name__)

GroupBy = Literal["staff", "client"]


def overlaps(start: datetime, end: datetime, other_start: datetime, other_end: datetime) -> bool:
    """Half-open overlap; touching endpoints do not overlap."""
    return start < other_end and end > other_start


def pack_rows(instances: Sequence) -> List[PackedInstance]:
    """
    Assign each instance a display row so that no two instances in a row overlap.

    Instances are placed in start order. Each is put in the first row whose most
    recent occupant it does not overlap; a new row is opened when none fit.
    """
    ordered = sorted(instances, key=lambda i: (i.start, i.end, i.subject_id, i.source_id))
    row_tails: List = []
    packed: List[PackedInstance] = []

    for instance in ordered:
        row = None
        for index, tail in enumerate(row_tails):
            if not overlaps(instance.start, instance.end, tail.start, tail.end):
                row = index
                break
        if row is None:
            row_tails.append(instance)
            row = len(row_tails) - 1
        else:
            row_tails[row] = instance
        packed.append(PackedInstance(row=row, instance=instance))
    return packed


def pack_by_group(instances: Sequence, group_by: GroupBy = "staff") -> List[TimelineGroup]:
    """Group instances by (subject or client, day) and pack each group independently."""
    if group_by not in ("staff", "client"):
        raise ValueError(f"group_by must be 'staff' or 'client', got {group_by!r}")

    groups: Dict[tuple, List] = defaultdict(list)
    for instance in instances:
        key = instance.subject_id if group_by == "staff" else instance.client_name
        groups[(instance.shift_date, key)].append(instance)

    timeline = []
    for (day, key) in sorted(groups):
        packed = pack_rows(groups[(day, key)])
        timeline.append(
            TimelineGroup(
                group_key=key,
                date=day,
                row_count=max(p.row for p in packed) + 1,
                instances=packed,
            )
        )
    logger.debug("Packed %d instances into %d %s groups", len(instances), len(timeline), group_by)
    return timeline
