"""
Reading course / room / availability files and writing generated timetables.

Input files may be .csv, .xlsx/.xls or .json. Output is an Excel workbook
(one sheet per day plus Unscheduled and Summary sheets) or JSON.
"""

import json
import logging
import os
import re
from typing import List, Dict, Optional

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import PatternFill, Alignment, Font
from openpyxl.utils import get_column_letter

import timetable_config as config
from timetable_analysis import compute_stats, compute_conflicts, utilisation
from timetable_engine import (CourseInput, RoomInput, ScheduleResult, SchedulerOptions,
                              TeacherAvailability, LAB, is_occupied)

logger = logging.getLogger("timetable")

EXCEL_EXTENSIONS = (".xlsx", ".xls")

COURSE_COLUMN_ALIASES = {
    "course": "course_details",
    "subject": "course_details",
    "course_name": "course_details",
    "faculty": "faculty_assigned",
    "teacher": "faculty_assigned",
    "instructor": "faculty_assigned",
    "credit_hours": "credit_hour",
    "theory_classes": "theory_classes_week",
    "lab_classes": "lab_classes_week",
    "regular_teacher": "is_regular_teacher",
    "is_regular": "is_regular_teacher",
}
REQUIRED_COURSE_COLUMNS = ["course_details", "faculty_assigned", "section"]

ROOM_COLUMN_ALIASES = {
    "room": "name",
    "room_name": "name",
    "room_number": "name",
    "room_type": "type",
    "kind": "type",
}

HEADER_FILL_COLOR = "FFD700"
LAB_FILL_COLOR = "98FB98"
THEORY_FILL_COLOR = "E6E6FA"
UNSCHEDULED_FILL_COLOR = "FFE0E0"

TRUE_WORDS = {"yes", "y", "true", "t", "1", "regular", "permanent"}
FALSE_WORDS = {"no", "n", "false", "f", "0", "visiting", "non-regular", "non_regular", ""}


# ---------------------- Cell helpers ----------------------

def normalize_column(name) -> str:
    return re.sub(r"[\s\-]+", "_", str(name).strip().lower())


def _is_blank(val) -> bool:
    if val is None:
        return True
    if isinstance(val, str):
        return val.strip() == ""
    try:
        return bool(pd.isna(val))
    except (TypeError, ValueError):
        return False


def _text(val) -> Optional[str]:
    if _is_blank(val):
        return None
    if isinstance(val, float) and val.is_integer():
        return str(int(val))
    return str(val).strip()


def _int(val, column: str, row_no: int) -> Optional[int]:
    if _is_blank(val):
        return None
    try:
        return int(float(val))
    except (TypeError, ValueError):
        raise ValueError(f"Row {row_no}: column '{column}' must be a whole number, got {val!r}")


def _bool(val) -> Optional[bool]:
    if _is_blank(val):
        return None
    if isinstance(val, bool):
        return val
    s = str(val).strip().lower()
    if s in TRUE_WORDS:
        return True
    if s in FALSE_WORDS:
        return False
    return None


def _split_list(val) -> List[str]:
    if _is_blank(val):
        return []
    return [p.strip() for p in re.split(r"[/,\\]", str(val)) if p.strip()]


# ---------------------- Loading ----------------------

def read_table(path: str, sheet: Optional[str] = None) -> pd.DataFrame:
    """Load a csv / excel / json file into a DataFrame with normalised column names."""
    if not os.path.exists(path):
        raise FileNotFoundError(f"File not found: {path}")
    ext = os.path.splitext(path)[1].lower()

    if ext == ".csv":
        df = pd.read_csv(path)
    elif ext in EXCEL_EXTENSIONS:
        xls = pd.ExcelFile(path)
        sheet_name = sheet if sheet in xls.sheet_names else xls.sheet_names[0]
        df = pd.read_excel(xls, sheet_name)
    elif ext == ".json":
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, dict) and sheet and sheet.lower() in data:
            data = data[sheet.lower()]
        df = pd.DataFrame(data)
    else:
        raise ValueError(f"Unsupported file type {ext!r}. Please use .csv, .xls, .xlsx or .json files.")

    df = df.rename(columns=normalize_column)
    return df


def _apply_aliases(df: pd.DataFrame, aliases: Dict[str, str]) -> pd.DataFrame:
    renames = {c: aliases[c] for c in df.columns if c in aliases and aliases[c] not in df.columns}
    return df.rename(columns=renames)


def read_courses(path: str) -> List[CourseInput]:
    df = _apply_aliases(read_table(path, sheet="COURSES"), COURSE_COLUMN_ALIASES)
    missing = [c for c in REQUIRED_COURSE_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Course file is missing required columns: {missing}. Found columns: {list(df.columns)}")

    courses = []
    for row_no, row in enumerate(df.to_dict("records"), start=1):
        if all(_is_blank(v) for v in row.values()):
            continue
        row_id = row.get("id")
        courses.append(CourseInput(
            subject=_text(row.get("course_details")),
            teacher=_text(row.get("faculty_assigned")),
            section=_text(row.get("section")),
            credit_hour=_int(row.get("credit_hour"), "credit_hour", row_no),
            theory_classes_week=_int(row.get("theory_classes_week"), "theory_classes_week", row_no),
            lab_classes_week=_int(row.get("lab_classes_week"), "lab_classes_week", row_no),
            is_regular_teacher=_bool(row.get("is_regular_teacher")),
            subject_type=_text(row.get("subject_type")),
            id=_text(row_id) if not _is_blank(row_id) else row_no,
        ))
    logger.info("Loaded %d courses from %s", len(courses), path)
    return courses


def read_rooms(path: str) -> List[RoomInput]:
    df = _apply_aliases(read_table(path, sheet="ROOMS"), ROOM_COLUMN_ALIASES)
    if "name" not in df.columns:
        raise ValueError(f"Room file is missing required column 'name'. Found columns: {list(df.columns)}")

    rooms = []
    for row_no, row in enumerate(df.to_dict("records"), start=1):
        name = _text(row.get("name"))
        if name is None:
            logger.warning("Skipping room row %d with no name", row_no)
            continue
        kind = (_text(row.get("type")) or config.ROOM_TYPE_REGULAR).lower()
        if kind == "lab":
            kind = config.ROOM_TYPE_LAB
        elif kind == "regular":
            kind = config.ROOM_TYPE_REGULAR
        else:
            raise ValueError(f"Row {row_no}: room type must be 'Regular' or 'Lab', got {row.get('type')!r}")
        rooms.append(RoomInput(name=name, type=kind, capacity=_int(row.get("capacity"), "capacity", row_no)))
    logger.info("Loaded %d rooms from %s", len(rooms), path)
    return rooms


def read_teacher_availability(path: str) -> Dict[str, TeacherAvailability]:
    """TEACHER_AVAILABILITY sheet (or a JSON mapping) -> teacher -> availability."""
    if not os.path.exists(path):
        raise FileNotFoundError(f"File not found: {path}")
    ext = os.path.splitext(path)[1].lower()
    if ext == ".json":
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return {name: TeacherAvailability.from_dict(cfg) for name, cfg in data.items()}
    if ext not in EXCEL_EXTENSIONS:
        raise ValueError(f"Unsupported availability file type {ext!r}")

    xls = pd.ExcelFile(path)
    if "TEACHER_AVAILABILITY" not in xls.sheet_names:
        return {}
    df = pd.read_excel(xls, "TEACHER_AVAILABILITY").rename(columns=normalize_column)

    availability: Dict[str, TeacherAvailability] = {}
    for row in df.itertuples(index=False):
        teacher = _text(getattr(row, "teacher", None))
        if teacher is None:
            logger.warning("Skipping TEACHER_AVAILABILITY row with no teacher: %s", row)
            continue
        entry = availability.setdefault(teacher, TeacherAvailability())
        for day in _split_list(getattr(row, "days", None)):
            if day not in entry.days:
                entry.days.append(day)
        for slot in _split_list(getattr(row, "time_slots", None)):
            if slot not in entry.time_slots:
                entry.time_slots.append(slot)
        entry.earliest_time = _text(getattr(row, "earliest_time", None)) or entry.earliest_time
        entry.latest_time = _text(getattr(row, "latest_time", None)) or entry.latest_time
    logger.info("Loaded availability for %d teachers from %s", len(availability), path)
    return availability


def load_options(path: str) -> SchedulerOptions:
    with open(path, "r", encoding="utf-8") as f:
        return SchedulerOptions.from_dict(json.load(f))


# ---------------------- Export ----------------------

def _slot_bounds(label: str):
    start, _, end = label.partition("-")
    return start, end


def sessions_frame(result: ScheduleResult) -> pd.DataFrame:
    """One row per placed block; only cells sharing a block number are merged."""
    columns = ["Day", "Time From", "Time To", "Room", "Teacher", "Subject", "Section", "Type", "Course Id"]
    rows = []
    for day, rooms in result.timetable.items():
        for room, cells in rooms.items():
            current, current_block = None, None
            for cell in cells:
                if not is_occupied(cell):
                    current = None
                    continue
                start, end = _slot_bounds(cell.time)
                if current is not None and cell.block is not None and cell.block == current_block:
                    current["Time To"] = end
                    continue
                current_block = cell.block
                current = dict(zip(columns, (day, start, end, room, cell.teacher, cell.subject,
                                             cell.section, cell.type, cell.course_id)))
                rows.append(current)
    return pd.DataFrame(rows, columns=columns)


def unscheduled_frame(result: ScheduleResult) -> pd.DataFrame:
    rows = [{
        "Teacher": unit.teacher,
        "Subject": unit.subject,
        "Section": unit.section,
        "Type": unit.type,
        "Duration": unit.duration_slots,
        "Course Id": unit.course_id,
        "Reason": reason,
    } for unit, reason in result.skipped]
    return pd.DataFrame(rows, columns=["Teacher", "Subject", "Section", "Type", "Duration", "Course Id", "Reason"])


def day_frame(result: ScheduleResult, day: str) -> pd.DataFrame:
    """Rooms x time slots grid for one day, cell text 'Subject (Section) - Teacher'."""
    rows = {}
    for room, cells in result.timetable.get(day, {}).items():
        rows[room] = [_cell_text(c, " - ") for c in cells]
    return pd.DataFrame.from_dict(rows, orient="index", columns=config.TIME_SLOTS)


def _cell_text(cell, sep: str = "\n") -> str:
    if not is_occupied(cell):
        return ""
    title = f"{cell.subject} ({cell.section})" if cell.section else cell.subject
    return f"{title}{sep}{cell.teacher}"


def _write_header(ws, headers):
    fill = PatternFill(start_color=HEADER_FILL_COLOR, end_color=HEADER_FILL_COLOR, fill_type="solid")
    for col_idx, name in enumerate(headers, start=1):
        c = ws.cell(row=1, column=col_idx, value=name)
        c.fill = fill
        c.font = Font(bold=True)
        c.alignment = Alignment(horizontal="center", vertical="center")


def _write_frame(ws, df: pd.DataFrame):
    _write_header(ws, list(df.columns))
    for row_idx, row_data in enumerate(df.itertuples(index=False), start=2):
        for col_idx, value in enumerate(row_data, start=1):
            ws.cell(row=row_idx, column=col_idx, value=value)
    for col_idx in range(1, len(df.columns) + 1):
        ws.column_dimensions[get_column_letter(col_idx)].width = 18


def build_workbook(result: ScheduleResult) -> Workbook:
    wb = Workbook()
    wb.remove(wb.active)
    lab_fill = PatternFill(start_color=LAB_FILL_COLOR, end_color=LAB_FILL_COLOR, fill_type="solid")
    theory_fill = PatternFill(start_color=THEORY_FILL_COLOR, end_color=THEORY_FILL_COLOR, fill_type="solid")

    for day, rooms in result.timetable.items():
        ws = wb.create_sheet(day)
        _write_header(ws, ["Room"] + config.TIME_SLOTS)
        ws.column_dimensions["A"].width = 14
        for col_idx in range(2, len(config.TIME_SLOTS) + 2):
            ws.column_dimensions[get_column_letter(col_idx)].width = 24
        for row_idx, (room, cells) in enumerate(rooms.items(), start=2):
            ws.cell(row=row_idx, column=1, value=room).font = Font(bold=True)
            for col_idx, cell in enumerate(cells, start=2):
                if not is_occupied(cell):
                    continue
                c = ws.cell(row=row_idx, column=col_idx, value=_cell_text(cell))
                c.fill = lab_fill if cell.type == LAB else theory_fill
                c.alignment = Alignment(wrap_text=True, vertical="top")

    sessions = sessions_frame(result)
    if not sessions.empty:
        _write_frame(wb.create_sheet("Sessions"), sessions)

    unscheduled = unscheduled_frame(result)
    if not unscheduled.empty:
        ws = wb.create_sheet("Unscheduled")
        _write_frame(ws, unscheduled)
        fill = PatternFill(start_color=UNSCHEDULED_FILL_COLOR, end_color=UNSCHEDULED_FILL_COLOR, fill_type="solid")
        for row in ws.iter_rows(min_row=2):
            for c in row:
                c.fill = fill

    grid = compute_stats(result.timetable)
    summary = pd.DataFrame([
        ("Total units", result.stats.total_units),
        ("Scheduled", result.stats.scheduled),
        ("Unscheduled", result.stats.unscheduled),
        ("Grid cells", grid.total_slots),
        ("Occupied cells", grid.scheduled),
        ("Free cells", grid.free),
        ("Utilisation %", round(utilisation(grid) * 100, 1)),
        ("Conflicts", len(compute_conflicts(result.timetable))),
    ], columns=["Metric", "Value"])
    _write_frame(wb.create_sheet("Summary"), summary)
    return wb


def export_to_workbook(result: ScheduleResult, output):
    """Save the timetable workbook to a path or binary file object."""
    wb = build_workbook(result)
    wb.save(output)
    if isinstance(output, (str, os.PathLike)):
        logger.info("Timetable workbook written to %s", output)
    return output


def export_to_json(result: ScheduleResult, path: str) -> str:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(result.to_dict(), f, indent=2, default=str)
    logger.info("Timetable JSON written to %s", path)
    return path
