from datetime import datetime

import pytest

from models.shifts import ManualInstance, PatternInstance
from modules.rota.packer import pack_by_group, pack_rows


def _instance(source_id, start_hour, end_hour, subject="alice", client="Mrs Hughes", day=5):
    return PatternInstance(
        subject_id=subject,
        client_name=client,
        start=datetime(2024, 3, day, start_hour),
        end=datetime(2024, 3, day, end_hour),
        source_id=source_id,
    )


def _rows(packed):
    return {p.instance.source_id: p.row for p in packed}


def test_mutually_overlapping_instances_get_their_own_rows():
    instances = [_instance(str(n), 9, 17) for n in range(4)]

    packed = pack_rows(instances)

    assert sorted(p.row for p in packed) == [0, 1, 2, 3]


def test_touching_instances_share_a_row():
    packed = pack_rows([_instance("late", 13, 17), _instance("early", 9, 13)])

    assert _rows(packed) == {"early": 0, "late": 0}


def test_first_fit_reuses_earliest_free_row():
    packed = pack_rows([
        _instance("a", 8, 12),
        _instance("b", 9, 11),
        _instance("c", 11, 14),
        _instance("d", 12, 15),
    ])

    assert _rows(packed) == {"a": 0, "b": 1, "c": 1, "d": 0}


def test_no_overlapping_pair_shares_a_row():
    instances = [
        _instance("a", 6, 10),
        _instance("b", 7, 8),
        _instance("c", 8, 9),
        _instance("d", 9, 13),
        _instance("e", 10, 11),
        _instance("f", 12, 18),
    ]
    packed = pack_rows(instances)

    for first in packed:
        for second in packed:
            if first is second or first.row != second.row:
                continue
            a, b = first.instance, second.instance
            assert not (a.start < b.end and a.end > b.start)


def test_pack_by_group_splits_by_client_and_day():
    instances = [
        _instance("a", 9, 12, subject="alice", client="Mrs Hughes"),
        _instance("b", 10, 11, subject="bob", client="Mrs Hughes"),
        _instance("c", 9, 12, subject="carol", client="Mr Patel"),
        _instance("d", 9, 12, subject="alice", client="Mrs Hughes", day=6),
    ]

    groups = pack_by_group(instances, group_by="client")

    assert [(g.group_key, g.date.day, g.row_count) for g in groups] == [
        ("Mr Patel", 5, 1),
        ("Mrs Hughes", 5, 2),
        ("Mrs Hughes", 6, 1),
    ]


def test_pack_by_group_by_staff_mixes_origins():
    manual = ManualInstance(
        subject_id="alice",
        client_name="Mr Patel",
        start=datetime(2024, 3, 5, 10),
        end=datetime(2024, 3, 5, 11),
        source_id="m1",
    )

    groups = pack_by_group([_instance("a", 9, 12), manual], group_by="staff")

    assert len(groups) == 1
    assert groups[0].row_count == 2


def test_unknown_grouping_is_rejected():
    with pytest.raises(ValueError):
        pack_by_group([], group_by="room")
