import streamlit as st
import pandas as pd
import os
import io
import tempfile
from datetime import datetime

import timetable_config as config
import timetable_io
from timetable_analysis import compute_conflicts, compute_stats, utilisation
from timetable_engine import SchedulerOptions, generate_timetable

# Page configuration
st.set_page_config(
    page_title="Timetable Generator",
    page_icon="📅",
    layout="wide"
)

# Initialize session state
if 'result' not in st.session_state:
    st.session_state.result = None
if 'generated_file' not in st.session_state:
    st.session_state.generated_file = None


def save_upload(uploaded):
    """Write an uploaded file to a temp path keeping its extension; caller removes it."""
    suffix = os.path.splitext(uploaded.name)[1]
    fd, path = tempfile.mkstemp(suffix=suffix, prefix='temp_input_')
    with os.fdopen(fd, 'wb') as f:
        f.write(uploaded.getvalue())
    return path


# Title
st.title("📅 Timetable Generator")
st.markdown("---")

st.markdown("""
### 📋 Instructions:
1. **Upload** the course list (`.csv`, `.xlsx` or `.json`), and optionally a room list
2. **Adjust** the daily limits and, for a reproducible result, a seed
3. **Click** Generate Timetable and download the workbook
""")

st.markdown("---")

st.subheader("📁 Upload Input Files")
col1, col2 = st.columns([1, 1])
with col1:
    courses_file = st.file_uploader("Course list", type=['csv', 'xlsx', 'xls', 'json'])
with col2:
    rooms_file = st.file_uploader("Room list (optional)", type=['csv', 'xlsx', 'xls', 'json'])

st.subheader("⚙️ Options")
col1, col2, col3, col4 = st.columns(4)
with col1:
    max_teacher = st.number_input("Max classes per teacher per day", min_value=1, max_value=len(config.TIME_SLOTS),
                                  value=config.DEFAULT_MAX_CLASSES_PER_TEACHER_PER_DAY)
with col2:
    max_section = st.number_input("Max classes per section per day", min_value=1, max_value=len(config.TIME_SLOTS),
                                  value=config.DEFAULT_MAX_CLASSES_PER_SECTION_PER_DAY)
with col3:
    visiting_earliest = st.selectbox("Earliest slot for visiting teachers", config.TIME_SLOTS,
                                     index=config.TIME_SLOTS.index(config.DEFAULT_VISITING_EARLIEST_TIME))
with col4:
    seed_text = st.text_input("Random seed (blank = new variation each run)")

st.markdown("---")

if st.button("🚀 Generate Timetable", type="primary", width="stretch"):
    if courses_file is None:
        st.error("⚠️ Please upload the course list first!")
    else:
        temp_paths = []
        try:
            courses_path = save_upload(courses_file)
            temp_paths.append(courses_path)
            courses = timetable_io.read_courses(courses_path)
            rooms = None
            if rooms_file is not None:
                rooms_path = save_upload(rooms_file)
                temp_paths.append(rooms_path)
                rooms = timetable_io.read_rooms(rooms_path)

            seed = seed_text.strip() or None
            if seed is not None and seed.lstrip('-').isdigit():
                seed = int(seed)
            options = SchedulerOptions(
                max_classes_per_teacher_per_day=int(max_teacher),
                max_classes_per_section_per_day=int(max_section),
                visiting_earliest_time=visiting_earliest,
                random_seed=seed,
            )

            with st.spinner("🔍 Placing classes..."):
                result = generate_timetable(courses, rooms, options)

            buffer = io.BytesIO()
            timetable_io.export_to_workbook(result, buffer)
            st.session_state.result = result
            st.session_state.generated_file = buffer.getvalue()
            st.success("✅ Timetable generated successfully!")

        except Exception as e:
            st.error(f"❌ Error during generation: {str(e)}")
            import traceback
            st.code(traceback.format_exc())
        finally:
            for path in temp_paths:
                try:
                    os.remove(path)
                except OSError:
                    # file may still be locked on some platforms
                    pass

result = st.session_state.result
if result is not None:
    st.markdown("---")
    st.subheader("📊 Summary")
    grid = compute_stats(result.timetable)
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Class units", result.stats.total_units)
    col2.metric("Scheduled", result.stats.scheduled)
    col3.metric("Unscheduled", result.stats.unscheduled)
    col4.metric("Room utilisation", f"{utilisation(grid) * 100:.1f}%")

    conflicts = compute_conflicts(result.timetable)
    if conflicts:
        st.warning(f"⚠️ {len(conflicts)} conflict(s) detected")
        st.dataframe(pd.DataFrame([c.__dict__ for c in conflicts]), width="stretch")

    st.download_button(
        label="📥 Download Generated Timetable",
        data=st.session_state.generated_file,
        file_name=f"GeneratedTimetable_{datetime.now().strftime('%Y%m%d_%H%M%S')}.xlsx",
        mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        type="primary",
        width="stretch"
    )

    st.markdown("---")
    st.subheader("📅 Weekly Grid")
    for tab, day in zip(st.tabs(config.DAYS), config.DAYS):
        with tab:
            st.dataframe(timetable_io.day_frame(result, day), width="stretch")

    if result.skipped:
        st.markdown("---")
        st.subheader("⚠️ Unscheduled Classes")
        st.dataframe(timetable_io.unscheduled_frame(result), width="stretch", height=300)
