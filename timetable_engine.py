"""
Greedy weekly class-schedule allocation.

Pipeline:
1. Expand each course into atomic class units (1-slot theory, 2-slot lab blocks).
2. Sort units so the hardest to place go first (labs, busiest teachers/sections/subjects).
3. For each unit, try day -> time block -> room candidates and commit the first
   combination that passes every hard constraint. Units that fit nowhere are
   reported as unscheduled; placed units are never revisited.

All randomness (tie-breaks, time shuffling) comes from one seeded generator,
so a fixed seed reproduces a run exactly.
"""

import logging
import random
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import List, Dict, Tuple, Optional, Union, Iterable, Sequence

import timetable_config as config
from timetable_config import slot_index

logger = logging.getLogger("timetable")

THEORY = "Theory"
LAB = "Lab"

# Tracker concerns
TEACHER = "teacher"
SECTION = "section"
SUBJECT = "subject"


# ---------------------- Data model ----------------------

@dataclass(frozen=True)
class CourseInput:
    subject: Optional[str]
    teacher: Optional[str]
    section: Optional[str]
    credit_hour: Optional[int] = None
    theory_classes_week: Optional[int] = None
    lab_classes_week: Optional[int] = None
    is_regular_teacher: Optional[bool] = None
    subject_type: Optional[str] = None
    id: Union[int, str, None] = None


@dataclass(frozen=True)
class RoomInput:
    name: str
    type: str = config.ROOM_TYPE_REGULAR  # "Regular" or "Lab"
    capacity: Optional[int] = None

    @property
    def is_lab(self) -> bool:
        return str(self.type).strip().lower() == config.ROOM_TYPE_LAB.lower()


@dataclass(frozen=True)
class ClassUnit:
    teacher: str
    subject: str
    section: str
    course_id: Union[int, str, None]
    type: str           # THEORY or LAB
    duration_slots: int  # contiguous 1-hour slots
    is_regular_teacher: bool

    def to_dict(self) -> Dict:
        return {
            "Teacher": self.teacher,
            "Subject": self.subject,
            "Section": self.section,
            "CourseId": self.course_id,
            "Type": self.type,
            "DurationSlots": self.duration_slots,
            "IsRegularTeacher": self.is_regular_teacher,
        }


@dataclass(frozen=True)
class Session:
    time: str
    room: str
    teacher: str
    subject: str
    section: str
    type: str
    course_id: Union[int, str, None] = None
    # placement number within the run; cells of one block share it
    block: Optional[int] = None

    def to_dict(self) -> Dict:
        return {
            "Time": self.time,
            "Room": self.room,
            "Teacher": self.teacher,
            "Subject": self.subject,
            "Section": self.section,
            "Type": self.type,
            "CourseId": self.course_id,
        }


@dataclass(frozen=True)
class EmptySlot:
    time: str

    def to_dict(self) -> Dict:
        return {"Time": self.time}


Cell = Union[Session, EmptySlot]
# day -> room -> one cell per time slot
Timetable = Dict[str, Dict[str, List[Cell]]]


def is_occupied(cell: Cell) -> bool:
    if isinstance(cell, Session):
        return True
    if isinstance(cell, EmptySlot):
        return False
    raise TypeError(f"Not a timetable cell: {cell!r}")


def _as_list(value) -> List[str]:
    # a single day or slot may be given without a list
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return list(value)


@dataclass
class TeacherAvailability:
    days: List[str] = field(default_factory=list)
    time_slots: List[str] = field(default_factory=list)
    earliest_time: Optional[str] = None
    latest_time: Optional[str] = None

    @property
    def restricts_time(self) -> bool:
        return bool(self.time_slots) or bool(self.earliest_time) or bool(self.latest_time)

    @classmethod
    def from_dict(cls, data: Dict) -> "TeacherAvailability":
        return cls(
            days=_as_list(data.get("days")),
            time_slots=_as_list(data.get("timeSlots") or data.get("time_slots")),
            earliest_time=data.get("earliestTime") or data.get("earliest_time"),
            latest_time=data.get("latestTime") or data.get("latest_time"),
        )


@dataclass
class SchedulerOptions:
    max_classes_per_teacher_per_day: int = config.DEFAULT_MAX_CLASSES_PER_TEACHER_PER_DAY
    max_classes_per_section_per_day: int = config.DEFAULT_MAX_CLASSES_PER_SECTION_PER_DAY
    visiting_earliest_time: Optional[str] = config.DEFAULT_VISITING_EARLIEST_TIME
    teacher_availability: Dict[str, TeacherAvailability] = field(default_factory=dict)
    random_seed: Union[int, str, None] = None
    # When False, visiting teachers may fall back to slots before the floor
    visiting_floor_strict: bool = True

    _KEYS = {
        "maxClassesPerTeacherPerDay": "max_classes_per_teacher_per_day",
        "maxClassesPerSectionPerDay": "max_classes_per_section_per_day",
        "visitingEarliestTime": "visiting_earliest_time",
        "teacherAvailability": "teacher_availability",
        "randomSeed": "random_seed",
        "visitingFloorStrict": "visiting_floor_strict",
    }

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "SchedulerOptions":
        """Build options from camelCase or snake_case keys; unknown keys are ignored."""
        kwargs = {}
        for key, value in (data or {}).items():
            name = cls._KEYS.get(key, key)
            if name not in cls._KEYS.values() or value is None:
                continue
            if name == "teacher_availability":
                value = {
                    teacher: cfg if isinstance(cfg, TeacherAvailability) else TeacherAvailability.from_dict(cfg)
                    for teacher, cfg in value.items()
                }
            kwargs[name] = value
        return cls(**kwargs)


@dataclass(frozen=True)
class ScheduleStats:
    total_units: int
    scheduled: int
    unscheduled: int


@dataclass
class ScheduleResult:
    timetable: Timetable
    skipped: List[Tuple[ClassUnit, str]]  # (unit, reason)
    stats: ScheduleStats

    @property
    def unscheduled(self) -> List[ClassUnit]:
        return [unit for unit, _ in self.skipped]

    def to_dict(self) -> Dict:
        return {
            "timetable": {
                day: [{room: [cell.to_dict() for cell in cells]} for room, cells in rooms.items()]
                for day, rooms in self.timetable.items()
            },
            "unscheduled": [dict(unit.to_dict(), Reason=reason) for unit, reason in self.skipped],
            "stats": {
                "totalUnits": self.stats.total_units,
                "scheduled": self.stats.scheduled,
                "unscheduled": self.stats.unscheduled,
            },
        }


# ---------------------- Randomness ----------------------

def hash_string_to_int(s: str) -> int:
    # FNV-1a, 32 bit
    h = 2166136261
    for ch in s:
        h ^= ord(ch)
        h = (h * 16777619) & 0xFFFFFFFF
    return h


def _imul(a: int, b: int) -> int:
    return (a * b) & 0xFFFFFFFF


class Mulberry32:
    """Small 32-bit generator. Anything with a random() -> float in [0, 1) can stand in for it."""

    def __init__(self, seed: int):
        self.state = seed & 0xFFFFFFFF

    def random(self) -> float:
        self.state = (self.state + 0x6D2B79F5) & 0xFFFFFFFF
        t = self.state
        r = _imul(t ^ (t >> 15), 1 | t)
        r ^= (r + _imul(r ^ (r >> 7), 61 | r)) & 0xFFFFFFFF
        return ((r ^ (r >> 14)) & 0xFFFFFFFF) / 4294967296


def create_rng(seed=None):
    if seed is None:
        # vary each generation
        return Mulberry32(int(time.time() * 1000) ^ random.getrandbits(30))
    if hasattr(seed, "random"):
        return seed
    if isinstance(seed, str):
        return Mulberry32(hash_string_to_int(seed))
    return Mulberry32(int(seed))


def shuffle_in_place(items: list, rng) -> list:
    for i in range(len(items) - 1, 0, -1):
        j = int(rng.random() * (i + 1))
        items[i], items[j] = items[j], items[i]
    return items


# ---------------------- Unit expansion & ordering ----------------------

def normalize_string(value, fallback: str = "Unknown") -> str:
    if not value or not isinstance(value, str):
        return fallback
    trimmed = value.strip()
    return trimmed if trimmed else fallback


def build_class_units(courses: Iterable[CourseInput]) -> List[ClassUnit]:
    """Expand courses into schedulable units.

    Theory: one 1-slot unit per weekly class (explicit count, else credit hours).
    Lab: the weekly count is in 1-hour slots; pairs become 2-slot blocks, an odd
    hour becomes a single 1-slot unit.
    """
    units: List[ClassUnit] = []
    for c in courses:
        teacher = normalize_string(c.teacher, config.NO_FACULTY)
        subject = normalize_string(c.subject, config.UNKNOWN_COURSE)
        section = normalize_string(c.section, "")
        is_regular = c.is_regular_teacher is True

        if c.theory_classes_week is not None:
            theory_count = int(c.theory_classes_week)
        elif c.credit_hour is not None:
            theory_count = int(c.credit_hour)
        else:
            theory_count = 0
        lab_count = max(0, int(c.lab_classes_week)) if c.lab_classes_week is not None else 0

        for _ in range(max(0, theory_count)):
            units.append(ClassUnit(teacher, subject, section, c.id, THEORY, 1, is_regular))
        for _ in range(lab_count // 2):
            units.append(ClassUnit(teacher, subject, section, c.id, LAB, 2, is_regular))
        if lab_count % 2 == 1:
            units.append(ClassUnit(teacher, subject, section, c.id, LAB, 1, is_regular))
    return units


def sort_units_by_constraint(units: Sequence[ClassUnit], rng) -> List[ClassUnit]:
    # Labs first, then higher weekly demand per teacher, section, subject; random among equals
    by_teacher = Counter(u.teacher for u in units)
    by_section = Counter(u.section for u in units)
    by_subject = Counter(u.subject for u in units)

    keyed = []
    for i, u in enumerate(units):
        keyed.append((
            0 if u.type == LAB else 1,
            -by_teacher[u.teacher],
            -by_section[u.section],
            -by_subject[u.subject],
            rng.random(),
            i,
        ))
    keyed.sort()
    return [units[k[-1]] for k in keyed]


# ---------------------- Teacher availability ----------------------

def _normalize_day(day) -> Optional[str]:
    s = str(day).strip().lower()
    for d in config.DAYS:
        if s == d.lower() or (len(s) >= 3 and d.lower().startswith(s)):
            return d
    return None


class AvailabilityResolver:
    """Per-teacher allowed days and time-slot candidates.

    Teachers with a configured entry use its days/time window. Teachers without
    one are unrestricted if regular; visiting teachers only get slots from the
    visiting floor onwards (or, when the floor is not strict, those first).
    """

    def __init__(self, teacher_availability: Optional[Dict[str, TeacherAvailability]] = None,
                 visiting_earliest_time: Optional[str] = None, visiting_floor_strict: bool = True,
                 time_slots: Sequence[str] = config.TIME_SLOTS):
        self.time_slots = list(time_slots)
        self.visiting_floor_strict = visiting_floor_strict
        self._by_teacher: Dict[str, TeacherAvailability] = {}
        for name, cfg in (teacher_availability or {}).items():
            if not isinstance(cfg, TeacherAvailability):
                cfg = TeacherAvailability.from_dict(cfg)
            self._by_teacher[str(name).strip().lower()] = cfg

        floor = slot_index(visiting_earliest_time)
        if floor is None:
            floor = slot_index(config.DEFAULT_VISITING_EARLIEST_TIME)
        self.visiting_earliest_index = floor

    def lookup(self, teacher: str) -> Optional[TeacherAvailability]:
        return self._by_teacher.get(teacher.strip().lower())

    def allowed_days(self, unit: ClassUnit, days: Sequence[str]) -> List[str]:
        avail = self.lookup(unit.teacher)
        if avail is None or not avail.days:
            return list(days)
        allowed = {_normalize_day(d) for d in avail.days}
        return [d for d in days if d in allowed]

    def configured_times(self, avail: TeacherAvailability) -> List[str]:
        if avail.time_slots:
            times = []
            for label in avail.time_slots:
                idx = slot_index(label)
                if idx is not None and self.time_slots[idx] not in times:
                    times.append(self.time_slots[idx])
            return times
        start = slot_index(avail.earliest_time) if avail.earliest_time else None
        end = slot_index(avail.latest_time) if avail.latest_time else None
        s = 0 if start is None else start
        e = len(self.time_slots) - 1 if end is None else end
        return self.time_slots[min(s, e):max(s, e) + 1]

    def time_candidates(self, unit: ClassUnit, rng) -> List[str]:
        """Shuffled start-time candidates for one day attempt."""
        avail = self.lookup(unit.teacher)
        if avail is not None:
            return shuffle_in_place(self.configured_times(avail), rng)
        if unit.is_regular_teacher:
            return shuffle_in_place(list(self.time_slots), rng)

        after_floor = shuffle_in_place(self.time_slots[self.visiting_earliest_index:], rng)
        if self.visiting_floor_strict:
            return after_floor
        before_floor = shuffle_in_place(self.time_slots[:self.visiting_earliest_index], rng)
        return after_floor + before_floor


# ---------------------- Constraint tracking ----------------------

def busy_token(day: str, slot: str) -> str:
    return f"{day}|{slot}"


def subject_key(unit: ClassUnit) -> str:
    return f"{unit.subject}__{unit.section}"


class ConstraintTracker:
    """Per-run daily counters and busy (day, slot) tokens for each concern.

    Concerns are TEACHER, SECTION and SUBJECT (subject + section). Tokens are
    never cleared within a run.
    """

    CONCERNS = (TEACHER, SECTION, SUBJECT)

    def __init__(self):
        self.daily_counts: Dict[str, Counter] = {c: Counter() for c in self.CONCERNS}
        self.busy: Dict[str, Dict[str, set]] = {c: {} for c in self.CONCERNS}

    def increment(self, concern: str, key: str, day: str) -> int:
        self.daily_counts[concern][(key, day)] += 1
        return self.daily_counts[concern][(key, day)]

    def count(self, concern: str, key: str, day: str) -> int:
        return self.daily_counts[concern][(key, day)]

    def mark_busy(self, concern: str, key: str, token: str):
        self.busy[concern].setdefault(key, set()).add(token)

    def is_busy(self, concern: str, key: str, token: str) -> bool:
        return token in self.busy[concern].get(key, ())

    def keys_for(self, unit: ClassUnit) -> List[Tuple[str, str]]:
        keys = [(TEACHER, unit.teacher)]
        # units without a section are not tracked per section
        if unit.section:
            keys.append((SECTION, unit.section))
        keys.append((SUBJECT, subject_key(unit)))
        return keys

    def day_load(self, unit: ClassUnit, day: str) -> int:
        return sum(self.count(concern, key, day) for concern, key in self.keys_for(unit))

    def block_is_free(self, unit: ClassUnit, tokens: Sequence[str]) -> bool:
        return not any(self.is_busy(concern, key, tok)
                       for concern, key in self.keys_for(unit)
                       for tok in tokens)

    def commit(self, unit: ClassUnit, day: str, tokens: Sequence[str]):
        # one counter step per block, one token per slot
        for concern, key in self.keys_for(unit):
            self.increment(concern, key, day)
            for tok in tokens:
                self.mark_busy(concern, key, tok)


# ---------------------- Allocation ----------------------

def resolve_rooms(rooms: Optional[Sequence[RoomInput]]) -> Tuple[List[str], List[str], List[str]]:
    """(regular, lab, all) room names; falls back to the default rooms."""
    if rooms:
        regular, lab, all_rooms = [], [], []
        for r in rooms:
            if r.name in all_rooms:
                continue
            all_rooms.append(r.name)
            (lab if r.is_lab else regular).append(r.name)
        return regular, lab, all_rooms
    regular = list(config.DEFAULT_REGULAR_ROOMS)
    lab = list(config.DEFAULT_LAB_ROOMS)
    return regular, lab, regular + lab


def init_empty_timetable(room_names: Sequence[str], days: Sequence[str] = config.DAYS,
                         time_slots: Sequence[str] = config.TIME_SLOTS) -> Timetable:
    return {day: {room: [EmptySlot(t) for t in time_slots] for room in room_names} for day in days}


class GreedyTimetableScheduler:
    REASON_NO_DAY = "No allowed day in teacher availability"
    REASON_NO_ROOM = "No room of the required kind"
    REASON_NO_SLOT = "No feasible day/time/room (teacher or section busy, daily cap reached, or rooms occupied)"

    def __init__(self, rooms: Optional[Sequence[RoomInput]] = None, options: Optional[SchedulerOptions] = None,
                 rng=None, tracker: Optional[ConstraintTracker] = None):
        self.options = options or SchedulerOptions()
        self.days = list(config.DAYS)
        self.time_slots = list(config.TIME_SLOTS)
        self.regular_rooms, self.lab_rooms, self.all_rooms = resolve_rooms(rooms)
        self.max_teacher_per_day = max(0, int(self.options.max_classes_per_teacher_per_day))
        self.max_section_per_day = max(0, int(self.options.max_classes_per_section_per_day))
        self.rng = rng if rng is not None else create_rng(self.options.random_seed)
        self.tracker = tracker if tracker is not None else ConstraintTracker()
        self.availability = AvailabilityResolver(
            self.options.teacher_availability,
            self.options.visiting_earliest_time,
            self.options.visiting_floor_strict,
            self.time_slots,
        )
        self.timetable = init_empty_timetable(self.all_rooms, self.days, self.time_slots)
        self.skipped: List[Tuple[ClassUnit, str]] = []
        self.placed_blocks = 0

    def _preferred_days(self, unit: ClassUnit) -> List[str]:
        # least combined teacher/section/subject load first, random among equals
        ranked = sorted((self.tracker.day_load(unit, d), self.rng.random(), d) for d in self.days)
        return [d for _, _, d in ranked]

    def _rooms_for(self, unit: ClassUnit) -> List[str]:
        # labs only ever go to lab rooms
        if unit.type == LAB:
            return list(self.lab_rooms)
        return self.regular_rooms + self.lab_rooms

    def _occupied_count(self, day: str, room: str) -> int:
        return sum(1 for cell in self.timetable[day][room] if is_occupied(cell))

    def _sorted_rooms(self, day: str, rooms: Sequence[str]) -> List[str]:
        ranked = sorted((self._occupied_count(day, r), self.rng.random(), r) for r in rooms)
        return [r for _, _, r in ranked]

    def _under_daily_caps(self, unit: ClassUnit, day: str) -> bool:
        if self.tracker.count(TEACHER, unit.teacher, day) >= self.max_teacher_per_day:
            return False
        if self.tracker.count(SECTION, unit.section, day) >= self.max_section_per_day:
            return False
        return True

    def _room_is_free(self, day: str, room: str, start: int, duration: int) -> bool:
        cells = self.timetable[day][room]
        return not any(is_occupied(cells[i]) for i in range(start, start + duration))

    def _place(self, unit: ClassUnit, day: str, room: str, start: int):
        slots = self.time_slots[start:start + unit.duration_slots]
        cells = self.timetable[day][room]
        for offset, slot in enumerate(slots):
            cells[start + offset] = Session(
                time=slot,
                room=room,
                teacher=unit.teacher,
                subject=unit.subject,
                section=unit.section,
                type=unit.type,
                course_id=unit.course_id,
                block=self.placed_blocks,
            )
        self.placed_blocks += 1
        self.tracker.commit(unit, day, [busy_token(day, t) for t in slots])
        logger.debug("[PLACE] %s %s (%s) teacher=%s -> %s %s %s",
                     unit.type, unit.subject, unit.section, unit.teacher, day, slots[0], room)

    def _try_day(self, unit: ClassUnit, day: str, rooms: Sequence[str]) -> bool:
        for start_time in self.availability.time_candidates(unit, self.rng):
            start = self.time_slots.index(start_time)
            if start + unit.duration_slots > len(self.time_slots):
                continue
            tokens = [busy_token(day, t) for t in self.time_slots[start:start + unit.duration_slots]]
            if not self.tracker.block_is_free(unit, tokens):
                continue
            for room in self._sorted_rooms(day, rooms):
                if self._room_is_free(day, room, start, unit.duration_slots):
                    self._place(unit, day, room, start)
                    return True
        return False

    def schedule_unit(self, unit: ClassUnit) -> bool:
        """Place one unit or record it as skipped. Never revisits earlier placements."""
        candidate_days = self.availability.allowed_days(unit, self._preferred_days(unit))
        if not candidate_days:
            return self._skip(unit, self.REASON_NO_DAY)

        rooms = self._rooms_for(unit)
        if not rooms:
            return self._skip(unit, self.REASON_NO_ROOM)

        # spread a subject over the week: fresh days before repeat days
        key = subject_key(unit)
        fresh = [d for d in candidate_days if self.tracker.count(SUBJECT, key, d) == 0]
        repeat = [d for d in candidate_days if self.tracker.count(SUBJECT, key, d) > 0]

        for day in fresh + repeat:
            if not self._under_daily_caps(unit, day):
                continue
            if self._try_day(unit, day, rooms):
                return True
        return self._skip(unit, self.REASON_NO_SLOT)

    def _skip(self, unit: ClassUnit, reason: str) -> bool:
        self.skipped.append((unit, reason))
        logger.info("[SKIP] teacher=%s subject=%s section=%s type=%s: %s",
                    unit.teacher, unit.subject, unit.section or "-", unit.type, reason)
        return False

    def solve(self, courses: Iterable[CourseInput]) -> ScheduleResult:
        raw_units = build_class_units(courses)
        units = sort_units_by_constraint(raw_units, self.rng)
        logger.info("Scheduling %d units into %d rooms (%d lab), seed=%s",
                    len(raw_units), len(self.all_rooms), len(self.lab_rooms),
                    self.options.random_seed if self.options.random_seed is not None else "time-based")
        for unit in units:
            self.schedule_unit(unit)
        result = assemble_result(self.timetable, len(raw_units), self.skipped)
        logger.info("Scheduled %d/%d units, unscheduled=%d",
                    result.stats.scheduled, result.stats.total_units, result.stats.unscheduled)
        return result


def assemble_result(timetable: Timetable, total_units: int, skipped: List[Tuple[ClassUnit, str]]) -> ScheduleResult:
    stats = ScheduleStats(
        total_units=total_units,
        scheduled=total_units - len(skipped),
        unscheduled=len(skipped),
    )
    return ScheduleResult(timetable=timetable, skipped=list(skipped), stats=stats)


def generate_timetable(courses: Iterable[CourseInput], rooms: Optional[Sequence[RoomInput]] = None,
                       options: Union[SchedulerOptions, Dict, None] = None, rng=None,
                       tracker: Optional[ConstraintTracker] = None) -> ScheduleResult:
    """Run one full scheduling pass. Each call owns its grid, tracker and generator."""
    if not isinstance(options, SchedulerOptions):
        options = SchedulerOptions.from_dict(options)
    scheduler = GreedyTimetableScheduler(rooms, options, rng=rng, tracker=tracker)
    return scheduler.solve(courses)
