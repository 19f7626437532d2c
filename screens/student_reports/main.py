# screens/student_reports/main.py
"""
Student Reports

Course analytics (CO performance vs target, grade distribution, CO
attainment) and a per-student report card. Percentages are computed only
from configured assessment maxima; where nothing has been assessed the
page says so.
"""

import streamlit as st
import pandas as pd
from sqlalchemy.exc import SQLAlchemyError
import logging

from core.directory_service import DirectoryService
from core.marks_service import MarksService
from core.reports import course_analytics, student_report, export_report_xlsx, target_threshold
from screens.common import (
    get_engine_or_stop, current_user, course_service, load_courses_for_user, select_course,
)

logger = logging.getLogger(__name__)


def render_course_analytics(course: dict, analytics: dict):
    perf = pd.DataFrame(analytics["coPerformance"])
    col_co, col_dist = st.columns(2)

    with col_co:
        st.subheader("CO Performance (Class Average)")
        st.caption("Average attainment per Course Outcome vs Target.")
        if perf.empty or perf["classAvg"].isna().all():
            st.info("Insufficient data: no CO-mapped marks recorded yet.")
        else:
            chart = perf.rename(columns={"classAvg": "Class Avg %", "target": "Target %"}).set_index("name")
            st.bar_chart(chart[["Target %", "Class Avg %"]])

    with col_dist:
        st.subheader("Grade Distribution")
        dist = pd.DataFrame(analytics["distribution"])
        if dist["value"].sum() == 0:
            st.info("Insufficient data: no student has recorded marks.")
        else:
            st.bar_chart(dist.set_index("name"))

    st.subheader("CO Attainment")
    threshold = target_threshold(course)
    st.caption(f"Share of assessed students scoring at least {threshold}% of each CO's marks.")
    st.dataframe(pd.DataFrame(analytics["attainment"]), hide_index=True, use_container_width=True)


def render_student_table(analytics: dict) -> pd.DataFrame:
    st.subheader("Students")
    table = pd.DataFrame(analytics["studentPerformance"])[["usn", "name", "obtained", "max", "percentage"]]
    table = table.rename(columns={"usn": "USN", "name": "Name", "obtained": "Obtained",
                                  "max": "Max", "percentage": "Percentage"})
    st.dataframe(table, hide_index=True, use_container_width=True)
    return table


def render_individual_report(course: dict, student: dict, marks: list):
    report = student_report(course, marks)

    st.markdown(f"### {student['name']} ({student['usn']})")
    c1, c2 = st.columns(2)
    c1.metric("Overall", f"{report.overall_percentage:.2f}%")
    c2.metric("Total Marks", f"{report.total_obtained} / {report.total_max}")

    rows = pd.DataFrame([
        {
            "Assessment": r.name,
            "Type": r.type,
            "Obtained": r.obtained,
            "Improvement (ref.)": r.improvement,
            "Max": r.max,
            "Percentage": round(r.percentage, 2),
        }
        for r in report.rows
    ])
    if rows.empty:
        st.info("No assessments configured for this course.")
        return
    st.dataframe(rows, hide_index=True, use_container_width=True)
    st.bar_chart(rows.set_index("Assessment")[["Obtained", "Max"]])


def render_student_reports_page():
    st.title("📊 Student Reports")
    st.caption("Analyze student performance and attainment per course.")

    engine = get_engine_or_stop()
    user = current_user()
    courses = load_courses_for_user(course_service(engine), user)
    course = select_course(courses, key="reports_course")
    if not course:
        return

    try:
        students = DirectoryService(engine).list_students(course_id=course["id"])
        marks = MarksService(engine).list_marks(course_id=course["id"])
    except SQLAlchemyError:
        logger.error("Failed to load student data", exc_info=True)
        st.error("Failed to load student data.")
        return

    analytics = course_analytics(course, students, marks)
    if not analytics:
        st.info("No students enrolled in this course.")
        return

    render_course_analytics(course, analytics)
    table = render_student_table(analytics)

    st.download_button(
        "⬇️ Download Excel",
        data=export_report_xlsx({
            "Students": table.to_dict("records"),
            "CO Performance": analytics["coPerformance"],
            "CO Attainment": analytics["attainment"],
        }),
        file_name=f"{course['code']}_Report.xlsx",
        mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )

    st.markdown("---")
    st.subheader("Individual Report")
    labels = {s["id"]: f"{s['usn']} - {s['name']}" for s in students}
    student_id = st.selectbox("Student", list(labels), format_func=labels.get, key="report_student")
    student = next(s for s in students if s["id"] == student_id)
    render_individual_report(course, student, [m for m in marks if m["studentId"] == student_id])


if __name__ == "__main__":
    render_student_reports_page()
