from datetime import date, datetime

from models.patterns import PatternException, RecurrencePattern
from models.requests import ApprovalStatus, ExceptionRequest, LeaveRecord
from models.shifts import ManualShiftInstance
from modules.rota.cover import CoverResolver, plan_shift_cover_reassignment
from modules.rota.expander import exception_index
from modules.rota.leave import LeaveConflictResolver
from modules.rota.merger import manual_to_instance, merge_instances, virtual_instances
from modules.rota.pipeline import RotaSnapshot, resolve_schedule

WINDOW = (date(2024, 3, 4), date(2024, 3, 10))


def _pattern(**overrides) -> RecurrencePattern:
    row = {
        "id": "p-bob",
        "user_id": "bob",
        "client_name": "Mrs Hughes",
        "days_of_week": [1, 2, 3, 4, 5],
        "start_time": "08:00",
        "end_time": "12:00",
        "start_date": "2024-01-01",
    }
    row.update(overrides)
    return RecurrencePattern.model_validate(row)


def _request(**overrides) -> ExceptionRequest:
    row = {
        "id": "r1",
        "user_id": "carol",
        "request_type": "shift_swap",
        "swap_with_user_id": "bob",
        "start_date": "2024-03-05",
        "end_date": "2024-03-06",
        "status": "approved",
    }
    row.update(overrides)
    return ExceptionRequest.model_validate(row)


def _resolved(patterns, manual=(), leave=()):
    virtual = virtual_instances(patterns, *WINDOW)
    merged = merge_instances([manual_to_instance(m) for m in manual], virtual)
    return LeaveConflictResolver(leave, patterns, manual).apply(merged)


def test_shift_cover_copies_covered_instances():
    patterns = [_pattern()]
    covers = CoverResolver([], patterns, names={"bob": "Bob Jones"}).derive([_request()], _resolved(patterns), *WINDOW)

    assert [c.start for c in covers] == [datetime(2024, 3, 5, 8, 0), datetime(2024, 3, 6, 8, 0)]
    cover = covers[0]
    assert cover.origin == "cover"
    assert cover.subject_id == "carol"
    assert cover.covering_for == "bob"
    assert cover.covering_for_name == "Bob Jones"
    assert cover.source_id == "r1"
    assert cover.covered_source_id == "p-bob"
    assert cover.client_name == "Mrs Hughes"


def test_overtime_linked_to_leave_covers_suppressed_days():
    patterns = [_pattern()]
    leave = [LeaveRecord.model_validate({
        "id": "h1",
        "user_id": "bob",
        "start_date": "2024-03-07",
        "end_date": "2024-03-07",
        "status": "approved",
    })]
    request = _request(
        request_type="overtime_standard",
        swap_with_user_id=None,
        linked_holiday_id="h1",
        start_date="2024-03-07",
        end_date="2024-03-07",
    )
    instances = _resolved(patterns, leave=leave)

    covers = CoverResolver(leave, patterns).derive([request], instances, *WINDOW)

    assert len(covers) == 1
    assert covers[0].covering_for == "bob"
    assert covers[0].covered_origin == "pattern"


def test_falls_back_to_standard_patterns_when_nothing_materialized():
    patterns = [_pattern(), _pattern(id="p-bob-ot", is_overtime=True, start_time="14:00", end_time="16:00")]

    covers = CoverResolver([], patterns).derive([_request()], [], *WINDOW)

    assert len(covers) == 2
    assert {c.covered_source_id for c in covers} == {"p-bob"}


def test_unresolvable_requests_contribute_nothing():
    patterns = [_pattern()]
    instances = _resolved(patterns)
    requests = [
        _request(id="no-link", swap_with_user_id=None),
        _request(id="unknown-leave", request_type="overtime", swap_with_user_id=None, linked_holiday_id="missing"),
        _request(id="pending", status="pending"),
        _request(id="outside", start_date="2024-04-01", end_date="2024-04-02"),
        _request(id="leave-kind", request_type="holiday"),
    ]

    assert CoverResolver([], patterns).derive(requests, instances, *WINDOW) == []


def test_cover_colliding_with_own_shift_is_dropped():
    patterns = [_pattern(), _pattern(id="p-carol", user_id="carol", days_of_week=[2])]
    instances = _resolved(patterns)

    covers = CoverResolver([], patterns).derive([_request()], instances, *WINDOW)

    # 2024-03-05 is a Tuesday, already on carol's own pattern at 08:00
    assert [c.shift_date for c in covers] == [date(2024, 3, 6)]


def test_covers_from_manual_shift():
    manual = [ManualShiftInstance.model_validate({
        "id": "m1",
        "user_id": "bob",
        "client_name": "Mr Patel",
        "start_datetime": "2024-03-09T10:00:00",
        "end_datetime": "2024-03-09T14:00:00",
    })]
    instances = _resolved([], manual=manual)

    covers = CoverResolver([], []).derive(
        [_request(start_date="2024-03-09", end_date="2024-03-09")], instances, *WINDOW
    )

    assert len(covers) == 1
    assert covers[0].covered_origin == "manual"
    assert covers[0].covered_source_id == "m1"


def test_reassignment_plan_on_first_approval():
    shifts = [
        ManualShiftInstance.model_validate({
            "id": sid,
            "user_id": user,
            "client_name": "Mr Patel",
            "start_datetime": start,
            "end_datetime": start.replace("09:00", "12:00"),
        })
        for sid, user, start in [
            ("in-range", "bob", "2024-03-05T09:00:00"),
            ("out-of-range", "bob", "2024-03-08T09:00:00"),
            ("someone-else", "dave", "2024-03-05T09:00:00"),
        ]
    ]

    plan = plan_shift_cover_reassignment(_request(), ApprovalStatus.PENDING, shifts)

    assert [(r.shift_id, r.from_subject_id, r.to_subject_id) for r in plan] == [("in-range", "bob", "carol")]


def test_reassignment_replay_is_a_no_op():
    shifts = [ManualShiftInstance.model_validate({
        "id": "m1",
        "user_id": "bob",
        "client_name": "Mr Patel",
        "start_datetime": "2024-03-05T09:00:00",
        "end_datetime": "2024-03-05T12:00:00",
    })]

    assert plan_shift_cover_reassignment(_request(), ApprovalStatus.APPROVED, shifts) == []
    assert plan_shift_cover_reassignment(_request(request_type="overtime"), ApprovalStatus.PENDING, shifts) == []


def test_fallback_skips_deleted_occurrences():
    patterns = [_pattern()]
    deleted = exception_index([PatternException(pattern_id="p-bob", exception_date=date(2024, 3, 5))])

    covers = CoverResolver([], patterns, exceptions_by_pattern=deleted).derive([_request()], [], *WINDOW)

    assert [c.shift_date for c in covers] == [date(2024, 3, 6)]


def test_resolution_pass_does_not_cover_a_deleted_occurrence():
    snapshot = RotaSnapshot(
        patterns=(_pattern(),),
        exceptions=(PatternException(pattern_id="p-bob", exception_date=date(2024, 3, 5)),),
        requests=(_request(),),
    )

    result = resolve_schedule(snapshot, *WINDOW)

    assert date(2024, 3, 5) not in {i.shift_date for i in result.instances if i.subject_id == "bob"}
    assert [c.shift_date for c in result.covers] == [date(2024, 3, 6)]
