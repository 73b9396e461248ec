"""
Standalone script to generate a weekly timetable - also used by the Streamlit app
Usage: python generate_timetable.py <courses_file> [--rooms FILE] [--options FILE] [--output FILE] [--seed S]
"""

import sys
import argparse
import logging

import timetable_io
from timetable_analysis import compute_conflicts, compute_stats, utilisation
from timetable_engine import SchedulerOptions, generate_timetable


def build_parser():
    parser = argparse.ArgumentParser(description='Generate a weekly class timetable from a course list')
    parser.add_argument('courses_file', help='Course list (.csv, .xlsx or .json)')
    parser.add_argument('--rooms', help='Room list (.csv, .xlsx or .json); default rooms are used when omitted')
    parser.add_argument('--options', help='JSON options file (maxClassesPerTeacherPerDay, teacherAvailability, ...)')
    parser.add_argument('--availability', help='Workbook with a TEACHER_AVAILABILITY sheet, or a JSON mapping')
    parser.add_argument('--seed', help='Random seed (number or text) for a reproducible run')
    parser.add_argument('--max-teacher-per-day', type=int, help='Max classes per teacher per day')
    parser.add_argument('--max-section-per-day', type=int, help='Max classes per section per day')
    parser.add_argument('--visiting-earliest', help="Earliest slot for visiting teachers, e.g. '11:30-12:30'")
    parser.add_argument('--output', default='GeneratedTimetable.xlsx', help='Output file (.xlsx or .json)')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    parser.add_argument('--fail-on-unscheduled', action='store_true',
                        help='Exit with status 2 when some classes could not be placed')
    return parser


def build_options(args) -> SchedulerOptions:
    options = timetable_io.load_options(args.options) if args.options else SchedulerOptions()
    if args.availability:
        options.teacher_availability.update(timetable_io.read_teacher_availability(args.availability))
    if args.seed is not None:
        options.random_seed = int(args.seed) if args.seed.lstrip('-').isdigit() else args.seed
    if args.max_teacher_per_day is not None:
        options.max_classes_per_teacher_per_day = args.max_teacher_per_day
    if args.max_section_per_day is not None:
        options.max_classes_per_section_per_day = args.max_section_per_day
    if args.visiting_earliest:
        options.visiting_earliest_time = args.visiting_earliest
    return options


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    try:
        print(f"[INFO] Reading courses from: {args.courses_file}")
        courses = timetable_io.read_courses(args.courses_file)
        rooms = timetable_io.read_rooms(args.rooms) if args.rooms else None
        options = build_options(args)

        print(f"[INFO] Generating timetable for {len(courses)} courses...")
        result = generate_timetable(courses, rooms, options)

        print(f"[INFO] Exporting to: {args.output}")
        if args.output.lower().endswith('.json'):
            timetable_io.export_to_json(result, args.output)
        else:
            timetable_io.export_to_workbook(result, args.output)

        grid = compute_stats(result.timetable)
        print(f"[STATS] Total units: {result.stats.total_units}")
        print(f"[STATS] Scheduled: {result.stats.scheduled}")
        print(f"[STATS] Unscheduled: {result.stats.unscheduled}")
        print(f"[STATS] Room utilisation: {utilisation(grid) * 100:.1f}% of {grid.total_slots} cells")

        conflicts = compute_conflicts(result.timetable)
        if conflicts:
            print(f"[DIAG] {len(conflicts)} conflict(s) found:")
            for item in conflicts[:20]:
                print(f"       - {item.day} {item.time}: {item.message}")

        if result.skipped:
            print(f"[WARN] {len(result.skipped)} class unit(s) could not be scheduled:")
            for unit, reason in result.skipped[:50]:
                print(f"       - {unit.type} {unit.subject} ({unit.section or '-'}) teacher={unit.teacher}: {reason}")
            if len(result.skipped) > 50:
                print(f"       ... and {len(result.skipped) - 50} more")
            if args.fail_on_unscheduled:
                return 2

        print("[SUCCESS] Timetable generated successfully!")
        return 0

    except Exception as e:
        print(f"[ERROR] {str(e)}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
