import pytest

from machines.errors import AlreadyActive, InvalidRequest, NotOnWaitlist
from tests.helpers import build_services


@pytest.fixture
def deps(tmp_path):
    return build_services(tmp_path)


def test_positions_and_estimates(deps):
    assert deps.waitlists.join("washer", "A", "0111") == 0
    assert deps.waitlists.join("washer", "B", "0222") == 1

    assert deps.waitlists.position_and_estimate("washer", "A") == (0, 0)
    assert deps.waitlists.position_and_estimate("washer", "B") == (1, 40)


def test_dryer_estimate_uses_dryer_average(deps):
    deps.waitlists.join("dryer", "A", "0111")
    deps.waitlists.join("dryer", "B", "0222")
    deps.waitlists.join("dryer", "C", "0333")

    assert deps.waitlists.position_and_estimate("dryer", "C") == (2, 90)


def test_join_twice_keeps_single_entry(deps):
    deps.waitlists.join("washer", "A", "0111")
    deps.waitlists.join("washer", "B", "0222")

    assert deps.waitlists.join("washer", "A", "0111") == 0
    assert [e.student_id for e in deps.waitlists.entries("washer")] == ["A", "B"]


def test_queues_are_independent_per_type(deps):
    deps.waitlists.join("washer", "A", "0111")
    deps.waitlists.join("dryer", "A", "0111")

    assert len(deps.waitlists.entries("washer")) == 1
    assert len(deps.waitlists.entries("dryer")) == 1


def test_leave_removes_and_reports(deps):
    deps.waitlists.join("washer", "A", "0111")
    deps.waitlists.join("washer", "B", "0222")

    assert deps.waitlists.leave("washer", "A") is True
    assert deps.waitlists.leave("washer", "A") is False
    assert deps.waitlists.position_and_estimate("washer", "B") == (0, 0)


def test_position_for_missing_student(deps):
    with pytest.raises(NotOnWaitlist):
        deps.waitlists.position_and_estimate("washer", "ghost")


def test_join_rejected_while_owning_machine_of_type(deps):
    deps.reservations.start(1, "washer", "Normal", None, "A", "0111")

    with pytest.raises(AlreadyActive):
        deps.waitlists.join("washer", "A", "0111")

    # Queuing for the other type is still allowed
    assert deps.waitlists.join("dryer", "A", "0111") == 0


def test_unknown_type_is_invalid(deps):
    with pytest.raises(InvalidRequest):
        deps.waitlists.join("tumble", "A", "0111")


def test_waitlist_survives_restart(tmp_path):
    first = build_services(tmp_path)
    first.waitlists.join("dryer", "A", "0111")
    first.waitlists.join("dryer", "B", "0222")

    second = build_services(tmp_path)
    assert [e.student_id for e in second.waitlists.entries("dryer")] == ["A", "B"]
    assert second.waitlists.entries("dryer")[0].joined_at is not None


def test_notify_head_with_empty_queue(deps):
    with deps.store.read() as state:
        assert deps.waitlists.notify_head(state, "washer", 1) is None
    assert deps.notifier.pending == []


def test_entries_are_detached_copies(deps):
    deps.waitlists.join("washer", "A", "0111")

    entries = deps.waitlists.entries("washer")
    entries[0].student_id = "Z"
    entries.clear()

    assert [e.student_id for e in deps.waitlists.entries("washer")] == ["A"]
    assert deps.waitlists.position_and_estimate("washer", "A") == (0, 0)
