import logging
from datetime import date
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence

from models.patterns import RecurrencePattern
from models.shifts import ManualInstance, ManualShiftInstance, PatternInstance
from modules.rota.expander import pattern_occurrences

logger = logging.getLogger(__name__)


def manual_to_instance(shift: ManualShiftInstance) -> ManualInstance:
    return ManualInstance(
        subject_id=shift.subject_id,
        client_name=shift.client_name,
        start=shift.start,
        end=shift.end,
        source_id=shift.id,
        label=shift.label,
        notes=shift.notes,
        hourly_rate=shift.hourly_rate,
        currency=shift.currency,
    )


def virtual_instances(
    patterns: Iterable[RecurrencePattern],
    window_start: date,
    window_end: date,
    exceptions_by_pattern: Optional[Dict[str, FrozenSet[date]]] = None,
) -> List[PatternInstance]:
    """
    Materialize pattern occurrences for the window as PatternInstances.

    A pattern that fails to expand is logged and skipped so one subject's bad
    rule never blocks anyone else's timeline.
    """
    instances: List[PatternInstance] = []
    for pattern in patterns:
        try:
            occurrences = pattern_occurrences(pattern, window_start, window_end, exceptions_by_pattern)
        except Exception as e:
            logger.error(
                "Expansion failed for pattern %s (subject %s): %s",
                pattern.id,
                pattern.subject_id,
                str(e),
                exc_info=True,
            )
            continue
        for occurrence in occurrences:
            instances.append(
                PatternInstance(
                    subject_id=pattern.subject_id,
                    client_name=pattern.client_name,
                    start=occurrence.start,
                    end=occurrence.end,
                    source_id=pattern.id,
                    is_overtime=pattern.is_overtime,
                    label=pattern.label,
                    notes=pattern.notes,
                    hourly_rate=pattern.hourly_rate,
                    currency=pattern.currency,
                )
            )
    return instances


def merge_instances(
    manual: Sequence[ManualInstance],
    virtual: Sequence[PatternInstance],
) -> List:
    """
    Combine manual and pattern-derived instances.

    Manual entries are always kept. A pattern instance is dropped when a manual
    instance exists for the same subject at the same start minute. Running the
    result back through this function returns it unchanged.
    """
    taken = {instance.slot_key for instance in manual}
    merged = list(manual)
    merged.extend(instance for instance in virtual if instance.slot_key not in taken)
    return merged


def split_by_origin(instances: Iterable):
    manual = [i for i in instances if i.origin == "manual"]
    virtual = [i for i in instances if i.origin == "pattern"]
    return manual, virtual
