# screens/course_assignment/main.py
"""
Assign Courses (admin)

Assigns each course to a faculty member of the admin's department.
Changes are written as soon as a selection changes.
"""

import streamlit as st
from sqlalchemy.exc import SQLAlchemyError
import logging

from core.constants import Role
from core.course_service import CourseService
from core.directory_service import DirectoryService
from screens.common import get_engine_or_stop, current_user, course_service

logger = logging.getLogger(__name__)

UNASSIGNED = ""


def _on_assign(service: CourseService, course_id: str, actor: str):
    faculty_id = st.session_state.get(f"assign_{course_id}") or None
    try:
        service.assign_faculty(course_id, faculty_id, actor=actor)
        st.session_state["assign_flash"] = ("success", f"Updated assignment for {course_id}.")
    except (SQLAlchemyError, ValueError):
        logger.error("Failed to assign course", exc_info=True)
        st.session_state["assign_flash"] = ("error", "Failed to update assignment. Please try again.")
        st.session_state.pop(f"assign_{course_id}", None)


def render_course_assignment_page():
    st.title("📚 Assign Courses")
    st.caption("Assign courses to faculty members for the upcoming semester. Autosave Enabled.")

    engine = get_engine_or_stop()
    user = current_user()
    service = course_service(engine)
    department_id = None if Role.SUPERADMIN in (user.get("roles") or set()) else user.get("departmentId")

    try:
        faculty = DirectoryService(engine).list_users(role=Role.FACULTY, department_id=department_id)
        courses = service.list_courses()
    except SQLAlchemyError:
        logger.error("Failed to load data", exc_info=True)
        st.error("Failed to load data.")
        return

    flash = st.session_state.pop("assign_flash", None)
    if flash:
        getattr(st, flash[0])(flash[1])

    if not courses:
        st.info('No courses found. Go to "Manage Courses" to add some.')
        return

    options = [UNASSIGNED] + [f["id"] for f in faculty]
    names = {f["id"]: f["name"] for f in faculty}
    names[UNASSIGNED] = "Unassigned"

    header = st.columns([1, 3, 1, 3])
    for col, label in zip(header, ["Code", "Course", "Semester", "Faculty"]):
        col.markdown(f"**{label}**")

    for course in courses:
        c_code, c_name, c_sem, c_fac = st.columns([1, 3, 1, 3])
        c_code.write(course["code"])
        c_name.write(course["name"])
        c_sem.write(course["semester"])
        current = course["assignedFacultyId"] or UNASSIGNED
        course_options = options if current in options else options + [current]
        with c_fac:
            st.selectbox(
                "Faculty", course_options,
                index=course_options.index(current),
                format_func=lambda fid: names.get(fid, fid),
                key=f"assign_{course['id']}",
                label_visibility="collapsed",
                on_change=_on_assign, args=(service, course["id"], user.get("id")),
            )


if __name__ == "__main__":
    render_course_assignment_page()
