import pytest

from core.course_service import CourseService
from core.errors import ConcurrentEditError, ConfigurationError


def test_create_and_read_course(seeded, courses):
    course = courses.get_course("C1")
    assert course["code"] == "CS101"
    assert course["assignedFacultyId"] == "F1"
    assert course["version"] == 1
    assert [co["id"] for co in course["cos"]] == ["CO1", "CO2"]
    assert course["settings"] == {"targetThreshold": 60, "courseType": "Theory"}


def test_duplicate_course_rejected(seeded, courses):
    with pytest.raises(ValueError):
        courses.create_course("C1", "CS101", "Again")


def test_list_courses_filters_and_orders(seeded, courses):
    courses.create_course("C2", "CS001", "Intro", semester=1, department_id="CSE")
    courses.create_course("C3", "ME201", "Thermo", semester=3, department_id="ME")

    assert [c["id"] for c in courses.list_courses()] == ["C2", "C1", "C3"]
    assert [c["id"] for c in courses.list_courses(department_id="CSE")] == ["C2", "C1"]
    assert [c["id"] for c in courses.list_courses(assigned_faculty_id="F1")] == ["C1"]


def test_save_configuration_bumps_version(seeded, courses):
    course = courses.get_course("C1")
    payload = {
        "cos": course["cos"],
        "settings": {"targetThreshold": 70, "courseType": "Integrated"},
        "assessmentTools": course["assessmentTools"],
    }
    saved = courses.save_configuration("C1", payload, expected_version=1, actor="F1")

    assert saved["version"] == 2
    assert saved["settings"]["targetThreshold"] == 70
    assert saved["updatedBy"] == "F1"
    assert [t["name"] for t in saved["assessmentTools"]] == [
        "Internal Assessment 1", "Semester End Exam", "Improvement Test (Internal Assessment 1)",
    ]
    actions = [entry["action"] for entry in courses.audit_trail("C1")]
    assert actions == ["create", "configure"]


def test_save_configuration_rejects_unbalanced(seeded, courses):
    course = courses.get_course("C1")
    tools = [dict(t) for t in course["assessmentTools"]]
    tools[0]["maxMarks"] = 40
    with pytest.raises(ConfigurationError) as exc:
        courses.save_configuration("C1", {"cos": course["cos"], "assessmentTools": tools})

    assert exc.value.errors == ["Internal Assessment 1: Allocated 30 marks, but Max Marks is 40"]
    assert str(exc.value).startswith("Configuration Error:")
    assert courses.get_course("C1")["version"] == 1


def test_stale_version_is_refused(seeded, courses):
    course = courses.get_course("C1")
    payload = {"cos": course["cos"], "assessmentTools": course["assessmentTools"]}
    courses.save_configuration("C1", payload, expected_version=1)

    with pytest.raises(ConcurrentEditError) as exc:
        courses.save_configuration("C1", payload, expected_version=1)
    assert (exc.value.expected, exc.value.actual) == (1, 2)


def test_save_without_version_is_last_write_wins(seeded, courses):
    course = courses.get_course("C1")
    payload = {"cos": course["cos"], "assessmentTools": course["assessmentTools"]}
    courses.save_configuration("C1", payload)
    assert courses.save_configuration("C1", payload)["version"] == 3


def test_save_unknown_course(engine, courses):
    with pytest.raises(ValueError):
        courses.save_configuration("NOPE", {"cos": [], "assessmentTools": []})


def test_assign_faculty(seeded, courses, directory):
    directory.create_user("F2", "Dr. Iyer", "iyer@example.com", role="faculty", department_id="CSE")
    courses.assign_faculty("C1", "F2", actor="A1")
    assert courses.get_course("C1")["assignedFacultyId"] == "F2"

    courses.assign_faculty("C1", None, actor="A1")
    assert courses.get_course("C1")["assignedFacultyId"] is None


def test_assign_faculty_requires_faculty_role(seeded, courses):
    with pytest.raises(ValueError):
        courses.assign_faculty("C1", "A1")
    with pytest.raises(ValueError):
        courses.assign_faculty("C1", "GHOST")
    with pytest.raises(ValueError):
        courses.assign_faculty("NOPE", "F1")


def test_default_threshold_applies_to_new_and_unset_courses(engine):
    service = CourseService(engine, default_threshold=75)
    assert service.create_course("C9", "CS900", "Seminar")["settings"]["targetThreshold"] == 75

    service.create_course("C8", "CS800", "Project", settings={"courseType": "Lab"})
    assert service.get_course("C8")["settings"] == {"targetThreshold": 75, "courseType": "Lab"}

    saved = service.save_configuration("C8", {"cos": [], "assessmentTools": []})
    assert saved["settings"]["targetThreshold"] == 75


def test_duplicate_outcome_ids_rejected_on_save(seeded, courses):
    course = courses.get_course("C1")
    cos = course["cos"] + [{"id": "CO1", "description": "again"}]
    with pytest.raises(ConfigurationError) as exc:
        courses.save_configuration("C1", {"cos": cos, "assessmentTools": course["assessmentTools"]})
    assert exc.value.errors == ["Duplicate outcome id CO1"]
