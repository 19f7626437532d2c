"""
Shared fixtures: an in-memory SQLite engine with every schema installed,
and a small seeded course (faculty, three students, two COs).
"""
import pytest

from core.db import get_engine, init_db
from core.schema_registry import auto_discover, run_all
from core.course_service import CourseService
from core.directory_service import DirectoryService
from core.marks_service import MarksService


@pytest.fixture
def engine():
    engine = get_engine("sqlite://")
    init_db(engine)
    auto_discover("schemas")
    run_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def directory(engine):
    return DirectoryService(engine)


@pytest.fixture
def courses(engine):
    return CourseService(engine)


@pytest.fixture
def marks_service(engine):
    return MarksService(engine)


@pytest.fixture
def seeded(directory, courses):
    """Faculty F1 teaching CS101 with students S1..S3 enrolled."""
    directory.create_user("F1", "Dr. Rao", "rao@example.com", role="faculty", department_id="CSE")
    directory.create_user("A1", "Admin", "admin@example.com", role="admin", department_id="CSE")
    course = courses.create_course(
        "C1", "CS101", "Data Structures", semester=3, department_id="CSE", assigned_faculty_id="F1",
        cos=[
            {"id": "CO1", "description": "Understand lists", "modules": "Module 1", "kLevel": "K2"},
            {"id": "CO2", "description": "Apply trees", "modules": "Module 2", "kLevel": "K3"},
        ],
        assessment_tools=[
            {"id": "t1", "name": "Internal Assessment 1", "type": "Internal Assessment", "subType": "1",
             "maxMarks": 30, "weightage": 20, "coDistribution": {"CO1": 15, "CO2": 15}},
            {"id": "t2", "name": "Semester End Exam", "type": "Semester End Exam", "subType": "",
             "maxMarks": 100, "weightage": 50, "coDistribution": {}},
            {"id": "t3", "name": "Improvement Test (Internal Assessment 1)", "type": "Improvement Test",
             "linkedAssessment": "Internal Assessment 1",
             "maxMarks": 30, "weightage": 20, "coDistribution": {"CO1": 15, "CO2": 15}},
        ],
    )
    students = [
        directory.create_student("S1", "1XX21CS001", "Asha"),
        directory.create_student("S2", "1XX21CS002", "Bharath"),
        directory.create_student("S3", "1XX21CS003", "Chitra"),
    ]
    for s in students:
        directory.enroll("C1", s["id"])
    return {"course": course, "students": students}
