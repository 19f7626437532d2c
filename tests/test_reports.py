from io import BytesIO

import pandas as pd
import pytest

from core.reports import (
    co_attainment,
    co_performance,
    course_analytics,
    export_report_xlsx,
    grade_distribution,
    student_percentages,
    student_report,
    target_threshold,
    tool_score,
    unique_tools,
)
from core.assessment_config import parse_tool
from core.constants import DEFAULT_TARGET_THRESHOLD

COURSE = {
    "id": "C1",
    "cos": [{"id": "CO1"}, {"id": "CO2"}],
    "settings": {"targetThreshold": 60},
    "assessmentTools": [
        {"id": "t1", "name": "Internal Assessment 1", "type": "Internal Assessment", "subType": "1",
         "maxMarks": 30, "coDistribution": {"CO1": 10, "CO2": 20}},
        {"id": "t2", "name": "Semester End Exam", "type": "Semester End Exam", "maxMarks": 100},
        {"id": "t3", "type": "Improvement Test", "linkedAssessment": "Internal Assessment 1",
         "maxMarks": 30, "coDistribution": {"CO1": 10, "CO2": 20}},
        {"id": "t4", "name": "Internal Assessment 1", "type": "Internal Assessment", "subType": "1",
         "maxMarks": 50, "coDistribution": {"CO1": 50}},
    ],
}

STUDENTS = [
    {"id": "S1", "usn": "001", "name": "Asha"},
    {"id": "S2", "usn": "002", "name": "Bharath"},
    {"id": "S3", "usn": "003", "name": "Chitra"},
]


def _mark(student, assessment, scores, target=None):
    return {"studentId": student, "assessment": assessment, "scores": scores, "improvementTarget": target}


MARKS = [
    _mark("S1", "Internal Assessment 1", {"CO1": 9, "CO2": 18, "stray": 50}),
    _mark("S1", "Semester End Exam", {"External": 80}),
    _mark("S2", "Internal Assessment 1", {"CO1": 3, "CO2": 6}),
    _mark("S2", "Improvement Test (Internal Assessment 1)", {"CO1": 8, "CO2": 16}, target="Internal Assessment 1"),
]


def test_duplicate_tool_names_use_first():
    tools = unique_tools(COURSE)
    assert [t.name for t in tools] == ["Internal Assessment 1", "Semester End Exam",
                                       "Improvement Test (Internal Assessment 1)"]
    assert tools[0].max_marks == 30


def test_tool_score_ignores_stray_keys():
    tool = parse_tool(COURSE["assessmentTools"][0])
    assert tool_score(MARKS[0], tool) == 27
    assert tool_score(None, tool) == 0


def test_student_report_keeps_original_score():
    report = student_report(COURSE, [m for m in MARKS if m["studentId"] == "S2"])
    names = [r.name for r in report.rows]
    assert names == ["Internal Assessment 1", "Semester End Exam"]

    ia = report.rows[0]
    assert ia.obtained == 9
    assert ia.improvement == 24
    assert ia.percentage == pytest.approx(30.0)
    assert report.total_obtained == 9
    assert report.total_max == 130


def test_student_report_without_marks():
    report = student_report(COURSE, [])
    assert report.total_obtained == 0
    assert report.overall_percentage == 0.0
    assert all(r.improvement is None for r in report.rows)


def test_student_percentages_only_count_recorded_assessments():
    perf = {p["id"]: p for p in student_percentages(COURSE, STUDENTS, MARKS)}
    assert perf["S1"]["max"] == 130
    assert perf["S1"]["percentage"] == pytest.approx(82.31)
    assert perf["S2"]["percentage"] == pytest.approx(30.0)
    assert perf["S3"]["percentage"] is None


def test_grade_distribution_skips_unassessed():
    perf = student_percentages(COURSE, STUDENTS, MARKS)
    counts = {b["name"]: b["value"] for b in grade_distribution(perf)}
    assert counts == {"Distinction (>75%)": 1, "First Class (60-75%)": 0, "Pass (50-60%)": 0, "Fail (<50%)": 1}


def test_co_performance_and_attainment():
    perf = {row["name"]: row for row in co_performance(COURSE, STUDENTS, MARKS)}
    assert perf["CO1"]["classAvg"] == pytest.approx(60.0)   # (90 + 30) / 2
    assert perf["CO2"]["classAvg"] == pytest.approx(60.0)   # (90 + 30) / 2
    assert perf["CO1"]["target"] == 60

    attainment = {row["co"]: row for row in co_attainment(COURSE, STUDENTS, MARKS)}
    assert attainment["CO1"] == {"co": "CO1", "assessed": 2, "attained": 1, "attainment": 50.0}


def test_co_without_assessment_reports_none():
    course = dict(COURSE, cos=[{"id": "CO1"}, {"id": "CO3"}])
    perf = {row["name"]: row for row in co_performance(course, STUDENTS, MARKS)}
    assert perf["CO3"]["classAvg"] is None
    attainment = {row["co"]: row for row in co_attainment(course, STUDENTS, MARKS)}
    assert attainment["CO3"]["attainment"] is None


def test_course_analytics_requires_students():
    assert course_analytics(COURSE, [], MARKS) is None
    assert course_analytics(None, STUDENTS, MARKS) is None
    analytics = course_analytics(COURSE, STUDENTS, MARKS)
    assert set(analytics) == {"studentPerformance", "distribution", "coPerformance", "attainment"}


def test_export_report_xlsx():
    data = export_report_xlsx({"Students": [{"USN": "001", "Percentage": 82.31}], "Empty": []})
    sheets = pd.read_excel(BytesIO(data), sheet_name=None, engine="openpyxl")
    assert list(sheets) == ["Students", "Empty"]
    assert sheets["Students"].iloc[0]["USN"] == "001"


def test_target_threshold_falls_back_to_default():
    assert target_threshold(COURSE) == 60
    assert target_threshold({"settings": {"targetThreshold": 45}}) == 45
    assert target_threshold({"settings": {}}) == DEFAULT_TARGET_THRESHOLD
