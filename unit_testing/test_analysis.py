from timetable_analysis import ConflictItem, compute_conflicts, compute_stats, utilisation, TimetableStats
from timetable_engine import Session, init_empty_timetable, THEORY, LAB


def session(slot, room, teacher, subject, section, kind=THEORY):
    return Session(slot, room, teacher, subject, section, kind, None)


def test_clean_grid_has_no_conflicts():
    grid = init_empty_timetable(["R1", "R2"])
    grid["Monday"]["R1"][0] = session("9:30-10:30", "R1", "Dr A", "Math", "1A")
    grid["Monday"]["R2"][0] = session("9:30-10:30", "R2", "Dr B", "Physics", "1B")
    grid["Tuesday"]["R2"][0] = session("9:30-10:30", "R2", "Dr A", "Math", "1A")
    assert compute_conflicts(grid) == []


def test_teacher_in_two_rooms_is_reported():
    grid = init_empty_timetable(["R1", "R2"])
    grid["Monday"]["R1"][1] = session("10:30-11:30", "R1", "Dr A", "Math", "1A")
    grid["Monday"]["R2"][1] = session("10:30-11:30", "R2", "Dr A", "Physics", "1B")
    assert compute_conflicts(grid) == [ConflictItem(
        "Monday", "10:30-11:30", "Teacher Dr A appears in multiple rooms at 10:30-11:30 (R1, R2)")]


def test_section_and_subject_clashes_are_reported():
    grid = init_empty_timetable(["R1", "R2"])
    grid["Friday"]["R1"][3] = session("12:30-1:30", "R1", "Dr A", "Math", "1A")
    grid["Friday"]["R2"][3] = session("12:30-1:30", "R2", "Dr B", "Math", "1A", LAB)
    messages = [c.message for c in compute_conflicts(grid)]
    assert any(m.startswith("Section 1A") for m in messages)
    assert any(m.startswith("Subject Math (1A)") for m in messages)
    assert not any(m.startswith("Teacher") for m in messages)


def test_blank_sections_are_not_section_clashes():
    grid = init_empty_timetable(["R1", "R2"])
    grid["Monday"]["R1"][0] = session("9:30-10:30", "R1", "Dr A", "Math", "")
    grid["Monday"]["R2"][0] = session("9:30-10:30", "R2", "Dr B", "Art", "")
    assert compute_conflicts(grid) == []


def test_stats_count_cells():
    grid = init_empty_timetable(["R1", "R2", "R3"])
    grid["Monday"]["R1"][0] = session("9:30-10:30", "R1", "Dr A", "Math", "1A")
    grid["Monday"]["R1"][1] = session("10:30-11:30", "R1", "Dr A", "Math", "1A")
    stats = compute_stats(grid)
    assert stats.total_slots == 5 * 3 * 7
    assert stats.scheduled == 2
    assert stats.free == 103
    assert stats.rooms_per_day == {d: 3 for d in grid}
    assert utilisation(stats) == 2 / 105


def test_utilisation_of_empty_grid():
    assert utilisation(TimetableStats()) == 0.0
    assert compute_stats({}).total_slots == 0
