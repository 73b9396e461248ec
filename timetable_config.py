"""
Configuration module for timetable generation
Contains the weekly grid, default rooms and default scheduling limits
"""

from typing import Optional

# Time Constants
DAYS = ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday']

# One-hour teaching slots, 9:30 - 16:30
TIME_SLOTS = [
    '9:30-10:30',
    '10:30-11:30',
    '11:30-12:30',
    '12:30-1:30',
    '1:30-2:30',
    '2:30-3:30',
    '3:30-4:30',
]

# Rooms used when the caller does not supply a room list
DEFAULT_REGULAR_ROOMS = [f'NAB-R{i:02d}' for i in range(1, 13)]
DEFAULT_LAB_ROOMS = ['Lab1', 'Lab2', 'Lab3', 'Lab4', 'R210-lab']

ROOM_TYPE_REGULAR = 'Regular'
ROOM_TYPE_LAB = 'Lab'

# Daily limits
DEFAULT_MAX_CLASSES_PER_TEACHER_PER_DAY = 4
DEFAULT_MAX_CLASSES_PER_SECTION_PER_DAY = 6

# Earliest slot for visiting (non-regular) teachers
DEFAULT_VISITING_EARLIEST_TIME = '11:30-12:30'

# Fallbacks for blank course fields
NO_FACULTY = 'No Faculty'
UNKNOWN_COURSE = 'Unknown Course'


def slot_index(label) -> Optional[int]:
    """Index of a slot label in TIME_SLOTS.

    Accepts the full label ('11:30-12:30') or just its start ('11:30').
    Returns None for anything that does not name a slot.
    """
    if not isinstance(label, str):
        return None
    s = label.strip()
    if not s:
        return None
    if s in TIME_SLOTS:
        return TIME_SLOTS.index(s)
    for i, slot in enumerate(TIME_SLOTS):
        if slot.split('-')[0] == s:
            return i
    return None
