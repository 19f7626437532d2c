# screens/marks_entry/main.py
"""
Marks Entry

Pick a course and one of its configured assessment tools, load the roster
and enter per-question marks. Improvement tests only list students that
have been mapped onto them; on the assessment an improvement test targets,
a grader can compare a student's two attempts and override the original
with the improvement scores.
"""

import streamlit as st
import pandas as pd
from sqlalchemy.exc import SQLAlchemyError
from typing import Dict, List
import logging

from core.assessment_config import parse_tool
from core.directory_service import DirectoryService
from core.marks_csv import export_template, import_template, template_filename
from core.marks_entry import MarksSheet, build_question_schema, find_linked_improvement
from core.marks_service import MarksService
from screens.common import (
    get_engine_or_stop, current_user, course_service, load_courses_for_user, select_course,
)

logger = logging.getLogger(__name__)

SHEET_KEY = "marks_sheet"


def _state() -> Dict:
    """Loaded grid for the current (course, assessment) selection, or {}."""
    return st.session_state.get(SHEET_KEY) or {}


def _clear_sheet():
    st.session_state.pop(SHEET_KEY, None)


def load_sheet(engine, course: dict, tool, tools) -> None:
    students = DirectoryService(engine).list_students(course_id=course["id"])
    marks_service = MarksService(engine)
    existing = marks_service.list_marks(course_id=course["id"], assessment=tool.name)

    improvement_records = []
    improvement_tool = find_linked_improvement(tools, tool.name)
    if improvement_tool:
        improvement_records = marks_service.list_marks(course_id=course["id"], assessment=improvement_tool.name)

    sheet = MarksSheet(schema=build_question_schema(tool))
    sheet.load(students, existing, improvement_records)
    st.session_state[SHEET_KEY] = {
        "course_id": course["id"],
        "assessment": tool.name,
        "students": students,
        "sheet": sheet,
        "revision": 0,
        "has_improvement": improvement_tool is not None,
    }


# ===========================================================================
# GRID
# ===========================================================================

def _grid_frame(sheet: MarksSheet, students: List[dict]) -> pd.DataFrame:
    rows = []
    for student in sheet.displayed_students(students):
        scores = sheet.marks.get(student["id"]) or {}
        row = {
            "id": student["id"],
            "USN": student["usn"],
            "Name": student["name"],
            "Edit": bool(sheet.editable.get(student["id"])),
        }
        for q in sheet.schema.questions:
            row[q.q] = scores.get(q.q)
        row["Total"] = sheet.total(student["id"])
        rows.append(row)
    columns = ["id", "USN", "Name", "Edit"] + sheet.schema.labels + ["Total"]
    return pd.DataFrame(rows, columns=columns)


def _cell_changed(old_val, new_val) -> bool:
    if pd.isna(old_val) and pd.isna(new_val):
        return False
    if pd.isna(old_val) or pd.isna(new_val):
        return True
    return int(old_val) != int(new_val)


def _apply_grid_edits(sheet: MarksSheet, before: pd.DataFrame, after: pd.DataFrame) -> bool:
    """
    Push edited cells through the sheet (which clamps). True if the grid
    must be redrawn: something changed, or a locked row was typed into.
    """
    changed = False
    for (_, old), (_, new) in zip(before.iterrows(), after.iterrows()):
        student_id = old["id"]
        if bool(new["Edit"]) != bool(old["Edit"]):
            sheet.toggle_edit(student_id)
            changed = True
        for q in sheet.schema.questions:
            if not _cell_changed(old[q.q], new[q.q]):
                continue
            changed = True
            if sheet.editable.get(student_id):
                sheet.set_mark(student_id, q.q, "" if pd.isna(new[q.q]) else new[q.q])
    return changed


def render_grid(state: Dict):
    sheet: MarksSheet = state["sheet"]
    students = state["students"]
    frame = _grid_frame(sheet, students)

    if frame.empty:
        if sheet.schema.is_improvement:
            st.info("No students mapped to this improvement test yet. Use **Map Students** below.")
        else:
            st.info("No students enrolled in this course.")
        return

    column_config = {
        "id": None,
        "USN": st.column_config.TextColumn("USN", disabled=True),
        "Name": st.column_config.TextColumn("Name", disabled=True),
        "Edit": st.column_config.CheckboxColumn("🔓 Edit", help="Unlock the row for editing"),
        "Total": st.column_config.NumberColumn("Total", disabled=True),
    }
    for q in sheet.schema.questions:
        column_config[q.q] = st.column_config.NumberColumn(
            f"{q.q} ({q.max})", min_value=0, max_value=q.max, step=1,
        )

    edited = st.data_editor(
        frame,
        column_config=column_config,
        hide_index=True,
        use_container_width=True,
        key=f"marks_grid_{state['course_id']}_{state['assessment']}_{state['revision']}",
    )

    if _apply_grid_edits(sheet, frame, edited):
        state["revision"] += 1
        st.rerun()


# ===========================================================================
# IMPROVEMENT MAPPING / COMPARISON
# ===========================================================================

def render_student_mapping(state: Dict):
    sheet: MarksSheet = state["sheet"]
    students = state["students"]
    labels = {s["id"]: f"{s['name']} ({s['usn']})" for s in students}

    with st.expander(f"👥 Map Students to Improvement Test ({len(sheet.mapped_ids())} selected)"):
        selected = st.multiselect(
            "Search by Name or USN...",
            options=list(labels),
            default=[sid for sid in labels if sid in sheet.mapped_ids()],
            format_func=labels.get,
            key=f"mapping_{state['assessment']}_{state['revision']}",
        )
        c_all, c_none, c_update = st.columns(3)
        if c_all.button("Select All", key="map_all"):
            sheet.apply_student_mapping(labels)
            state["revision"] += 1
            st.rerun()
        if c_none.button("Deselect All", key="map_none"):
            sheet.apply_student_mapping([])
            state["revision"] += 1
            st.rerun()
        if c_update.button("Update Mapping", type="primary", key="map_update"):
            sheet.apply_student_mapping(selected)
            state["revision"] += 1
            st.rerun()


def render_comparison(state: Dict):
    sheet: MarksSheet = state["sheet"]
    candidates = [s for s in state["students"] if s["id"] in sheet.improvement_marks]
    if not candidates:
        return

    with st.expander(f"📈 Improvement Comparison ({len(candidates)} students took the improvement test)"):
        labels = {s["id"]: f"{s['name']} ({s['usn']})" for s in candidates}
        student_id = st.selectbox("Student", list(labels), format_func=labels.get, key="compare_student")
        student = next(s for s in candidates if s["id"] == student_id)
        comparison = sheet.comparison(student)

        table = pd.DataFrame(
            [{"Metric": q, "Original": o, "Improvement": i} for q, o, i in comparison.rows]
            + [{"Metric": "Total", "Original": comparison.original_total, "Improvement": comparison.improvement_total}]
        )
        st.dataframe(table, hide_index=True, use_container_width=True)
        if comparison.improvement_better:
            st.success("Improvement score is higher.")

        if st.button("🔁 Override Marks", key=f"override_{student_id}"):
            sheet.override_with_improvement(student_id)
            state["revision"] += 1
            st.success(f"Marks for {student['usn']} replaced with improvement scores. Save to keep them.")
            st.rerun()


# ===========================================================================
# CSV
# ===========================================================================

def render_csv_tools(state: Dict, course: dict):
    sheet: MarksSheet = state["sheet"]
    displayed = sheet.displayed_students(state["students"])

    c_down, c_up = st.columns(2)
    with c_down:
        if displayed:
            st.download_button(
                "⬇️ Download Template",
                data=export_template(displayed, sheet.schema, sheet.marks),
                file_name=template_filename(course["code"], state["assessment"]),
                mime="text/csv",
            )
        else:
            st.caption("No students found in the list. Please add students first.")
    with c_up:
        uploaded = st.file_uploader("Bulk Upload (CSV)", type=["csv"], key=f"marks_upload_{state['revision']}")
        if uploaded is not None:
            text = uploaded.getvalue().decode("utf-8-sig")
            new_marks, count = import_template(
                text, state["students"], sheet.schema, sheet.marks, is_improvement=sheet.schema.is_improvement,
            )
            sheet.marks = new_marks
            state["revision"] += 1
            st.session_state["marks_flash"] = f"Successfully updated marks for {count} entries."
            st.rerun()


# ===========================================================================
# PAGE
# ===========================================================================

def save_sheet(engine, state: Dict, tool):
    sheet: MarksSheet = state["sheet"]
    try:
        result = MarksService(engine).save_sheet(
            state["course_id"], state["assessment"], sheet, state["students"],
            improvement_target=tool.linked_assessment if tool.is_improvement else None,
        )
    except SQLAlchemyError:
        logger.error("Save failed", exc_info=True)
        st.error("Failed to save marks.")
        return False

    if result.failures:
        st.error(
            f"Failed to save marks for {len(result.failures)} student(s); "
            f"{result.saved} saved. Fix and save again:\n\n"
            + "\n".join(f"- {sid}: {err}" for sid, err in result.failures)
        )
        return False
    st.session_state["marks_flash"] = f"✅ Saved marks for {result.saved} students."
    return True


def render_marks_entry_page():
    st.title("📝 Marks Entry")

    engine = get_engine_or_stop()
    user = current_user()
    courses = load_courses_for_user(course_service(engine), user)

    c_course, c_tool, c_load = st.columns([3, 3, 1])
    with c_course:
        course = select_course(courses, key="marks_course")
    if not course:
        return

    tools = [parse_tool(t) for t in course.get("assessmentTools") or []]
    with c_tool:
        if not tools:
            st.selectbox("Assessment", ["No assessments configured"], disabled=True)
            return
        names = [t.name for t in tools]
        selected_name = st.selectbox("Assessment", names, key=f"marks_tool_{course['id']}")
    tool = next(t for t in tools if t.name == selected_name)

    state = _state()
    if state and (state["course_id"] != course["id"] or state["assessment"] != tool.name):
        _clear_sheet()
        state = {}

    with c_load:
        st.write("")
        if st.button("Load Students", type="primary"):
            try:
                load_sheet(engine, course, tool, tools)
            except SQLAlchemyError:
                logger.error("Failed to load data", exc_info=True)
                st.error("Error loading data.")
                return
            st.rerun()

    flash = st.session_state.pop("marks_flash", None)
    if flash:
        st.success(flash)

    if not state:
        return

    sheet: MarksSheet = state["sheet"]
    st.caption(f"Max marks: {sheet.schema.total} · Columns: {', '.join(sheet.schema.labels) or 'none'}")
    if not sheet.schema.questions:
        st.warning("This assessment has no CO distribution configured. Set it up on the Course Configuration page.")
        return

    if sheet.schema.is_improvement:
        render_student_mapping(state)
    render_grid(state)
    if state["has_improvement"]:
        render_comparison(state)
    render_csv_tools(state, course)

    if st.button("💾 Save Changes", type="primary", key="save_marks"):
        if save_sheet(engine, state, tool):
            load_sheet(engine, course, tool, tools)
            st.rerun()


if __name__ == "__main__":
    render_marks_entry_page()
