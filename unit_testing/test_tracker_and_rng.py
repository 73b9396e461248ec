import pytest

import timetable_config as config
from timetable_engine import (
    AvailabilityResolver, ClassUnit, ConstraintTracker, Mulberry32, TeacherAvailability,
    THEORY, LAB, TEACHER, SECTION, SUBJECT,
    busy_token, create_rng, hash_string_to_int, shuffle_in_place, sort_units_by_constraint, subject_key,
)


class ScriptedRng:
    """Returns the given values in order, repeating the last one."""

    def __init__(self, *values):
        self.values = list(values) or [0.0]
        self.calls = 0

    def random(self):
        value = self.values[min(self.calls, len(self.values) - 1)]
        self.calls += 1
        return value


def unit(teacher="Dr A", subject="OOP", section="1A", kind=THEORY, duration=1, regular=True):
    return ClassUnit(teacher, subject, section, None, kind, duration, regular)


# -----------------------------
# Random source
# -----------------------------
def test_fnv_hash_known_values():
    assert hash_string_to_int("") == 2166136261
    assert hash_string_to_int("a") == 0xE40C292C


def test_mulberry_is_reproducible_and_in_range():
    a, b = Mulberry32(42), Mulberry32(42)
    first = [a.random() for _ in range(100)]
    assert first == [b.random() for _ in range(100)]
    assert all(0.0 <= v < 1.0 for v in first)
    assert first != [Mulberry32(43).random() for _ in range(100)]


def test_create_rng_seed_kinds():
    assert create_rng("term").random() == create_rng("term").random()
    assert create_rng(7).random() == Mulberry32(7).random()
    assert create_rng("7").random() == Mulberry32(hash_string_to_int("7")).random()
    scripted = ScriptedRng(0.5)
    assert create_rng(scripted) is scripted
    assert isinstance(create_rng(None), Mulberry32)


def test_shuffle_is_a_permutation():
    items = list(range(10))
    shuffled = shuffle_in_place(list(items), Mulberry32(1))
    assert sorted(shuffled) == items


def test_shuffle_with_scripted_generator():
    assert shuffle_in_place([1, 2, 3, 4], ScriptedRng(0.0)) == [2, 3, 4, 1]
    assert shuffle_in_place([1, 2, 3, 4], ScriptedRng(0.99)) == [1, 2, 3, 4]


# -----------------------------
# Priority sort
# -----------------------------
def test_labs_sort_before_theory():
    units = [unit(kind=THEORY), unit(kind=LAB, duration=2), unit(kind=THEORY, teacher="Dr B")]
    ordered = sort_units_by_constraint(units, ScriptedRng(0.1))
    assert ordered[0].type == LAB


def test_busier_teacher_section_subject_go_first():
    units = [
        unit(teacher="Dr Quiet", section="2B", subject="Art"),
        unit(teacher="Dr Busy", section="1A", subject="Math"),
        unit(teacher="Dr Busy", section="1A", subject="Physics"),
        unit(teacher="Dr Busy", section="1B", subject="Physics"),
    ]
    ordered = sort_units_by_constraint(units, ScriptedRng(0.3))
    assert ordered[-1].teacher == "Dr Quiet"
    # among the busy teacher's units, section 1A (2 units) beats 1B (1 unit)
    assert [u.section for u in ordered[:2]] == ["1A", "1A"]
    # same teacher and section: Physics (2 units overall) beats Math
    assert ordered[0].subject == "Physics"


def test_ties_follow_the_generator():
    units = [unit(teacher="Dr A"), unit(teacher="Dr B")]
    assert sort_units_by_constraint(units, ScriptedRng(0.9, 0.1)) == [units[1], units[0]]
    assert sort_units_by_constraint(units, ScriptedRng(0.1, 0.9)) == units


# -----------------------------
# Constraint tracker
# -----------------------------
def test_counters_are_per_concern_and_day():
    tracker = ConstraintTracker()
    assert tracker.increment(TEACHER, "Dr A", "Monday") == 1
    assert tracker.increment(TEACHER, "Dr A", "Monday") == 2
    assert tracker.count(TEACHER, "Dr A", "Tuesday") == 0
    assert tracker.count(SECTION, "Dr A", "Monday") == 0


def test_busy_tokens():
    tracker = ConstraintTracker()
    token = busy_token("Monday", "9:30-10:30")
    assert token == "Monday|9:30-10:30"
    assert not tracker.is_busy(SECTION, "1A", token)
    tracker.mark_busy(SECTION, "1A", token)
    assert tracker.is_busy(SECTION, "1A", token)
    assert not tracker.is_busy(TEACHER, "1A", token)


def test_commit_updates_each_concern_once_per_block():
    tracker = ConstraintTracker()
    u = unit(kind=LAB, duration=2)
    tokens = [busy_token("Friday", t) for t in config.TIME_SLOTS[:2]]
    tracker.commit(u, "Friday", tokens)

    assert tracker.count(TEACHER, "Dr A", "Friday") == 1
    assert tracker.count(SECTION, "1A", "Friday") == 1
    assert tracker.count(SUBJECT, subject_key(u), "Friday") == 1
    assert tracker.day_load(u, "Friday") == 3
    for concern, key in tracker.keys_for(u):
        assert tracker.busy[concern][key] == set(tokens)
    assert not tracker.block_is_free(unit(teacher="Dr A", section="2B", subject="Art"), tokens[1:])
    assert tracker.block_is_free(unit(teacher="Dr Z", section="2B", subject="Art"), tokens)


def test_units_without_section_skip_section_tracking():
    tracker = ConstraintTracker()
    u = unit(section="")
    assert [c for c, _ in tracker.keys_for(u)] == [TEACHER, SUBJECT]
    tracker.commit(u, "Monday", [busy_token("Monday", "9:30-10:30")])
    assert tracker.busy[SECTION] == {}


# -----------------------------
# Availability resolver
# -----------------------------
def test_default_visiting_floor():
    resolver = AvailabilityResolver()
    assert resolver.visiting_earliest_index == 2
    assert AvailabilityResolver(visiting_earliest_time="nonsense").visiting_earliest_index == 2
    assert AvailabilityResolver(visiting_earliest_time="1:30").visiting_earliest_index == 4


def test_visiting_candidates_respect_floor():
    resolver = AvailabilityResolver()
    times = resolver.time_candidates(unit(regular=False), Mulberry32(3))
    assert sorted(times, key=config.TIME_SLOTS.index) == config.TIME_SLOTS[2:]

    relaxed = AvailabilityResolver(visiting_floor_strict=False)
    times = relaxed.time_candidates(unit(regular=False), Mulberry32(3))
    assert set(times[:5]) == set(config.TIME_SLOTS[2:])
    assert set(times[5:]) == set(config.TIME_SLOTS[:2])


def test_regular_candidates_cover_the_day():
    times = AvailabilityResolver().time_candidates(unit(regular=True), Mulberry32(3))
    assert sorted(times, key=config.TIME_SLOTS.index) == config.TIME_SLOTS


def test_configured_window_is_ordered_and_unknown_labels_dropped():
    resolver = AvailabilityResolver({
        "Dr A": TeacherAvailability(earliest_time="2:30-3:30", latest_time="12:30-1:30"),
        "Dr B": {"timeSlots": ["bogus", "10:30-11:30", "10:30"]},
    })
    assert resolver.configured_times(resolver.lookup("dr a")) == config.TIME_SLOTS[3:6]
    assert resolver.configured_times(resolver.lookup("DR B")) == ["10:30-11:30"]
    assert resolver.lookup("Dr C") is None


def test_allowed_days_accept_short_names():
    resolver = AvailabilityResolver({"Dr A": {"days": ["mon", "Wed"]}})
    assert resolver.allowed_days(unit(), config.DAYS) == ["Monday", "Wednesday"]
    assert resolver.allowed_days(unit(teacher="Dr B"), config.DAYS) == config.DAYS


@pytest.mark.parametrize("label, expected", [
    ("11:30-12:30", 2),
    ("11:30", 2),
    (" 3:30-4:30 ", 6),
    ("8:00", None),
    ("", None),
    (None, None),
])
def test_slot_index(label, expected):
    assert config.slot_index(label) == expected
