"""
Post-run checks on a generated grid: clashes across rooms and occupancy statistics.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import List, Dict

import timetable_config as config
from timetable_engine import Timetable, is_occupied


@dataclass(frozen=True)
class ConflictItem:
    day: str
    time: str
    message: str


@dataclass
class TimetableStats:
    total_slots: int = 0   # days * rooms * time slots
    scheduled: int = 0     # occupied cells
    free: int = 0
    rooms_per_day: Dict[str, int] = field(default_factory=dict)


def compute_conflicts(timetable: Timetable) -> List[ConflictItem]:
    """Teachers, sections or subject-sections that appear in two rooms at the same time."""
    conflicts: List[ConflictItem] = []
    for day, rooms in timetable.items():
        for slot_idx, slot in enumerate(config.TIME_SLOTS):
            teacher_rooms = defaultdict(list)
            section_rooms = defaultdict(list)
            subject_rooms = defaultdict(list)

            for room, cells in rooms.items():
                if slot_idx >= len(cells):
                    continue
                cell = cells[slot_idx]
                if not is_occupied(cell):
                    continue
                teacher_rooms[cell.teacher or config.NO_FACULTY].append(room)
                if cell.section:
                    section_rooms[cell.section].append(room)
                subject_rooms[(cell.subject, cell.section)].append(room)

            for teacher, used in teacher_rooms.items():
                if len(used) > 1:
                    conflicts.append(ConflictItem(
                        day, slot, f"Teacher {teacher} appears in multiple rooms at {slot} ({', '.join(used)})"))
            for section, used in section_rooms.items():
                if len(used) > 1:
                    conflicts.append(ConflictItem(
                        day, slot, f"Section {section} appears in multiple rooms at {slot} ({', '.join(used)})"))
            for (subject, section), used in subject_rooms.items():
                if len(used) > 1:
                    conflicts.append(ConflictItem(
                        day, slot,
                        f"Subject {subject} ({section or 'No Section'}) appears in multiple rooms at {slot} ({', '.join(used)})"))
    return conflicts


def compute_stats(timetable: Timetable) -> TimetableStats:
    stats = TimetableStats()
    for day, rooms in timetable.items():
        stats.rooms_per_day[day] = len(rooms)
        for cells in rooms.values():
            for cell in cells:
                stats.total_slots += 1
                if is_occupied(cell):
                    stats.scheduled += 1
    stats.free = max(stats.total_slots - stats.scheduled, 0)
    return stats


def utilisation(stats: TimetableStats) -> float:
    if stats.total_slots == 0:
        return 0.0
    return stats.scheduled / stats.total_slots
