from core.assessment_config import AssessmentTool
from core.constants import ToolType
from core.marks_csv import export_template, import_template, template_filename, template_headers
from core.marks_entry import build_question_schema

import pytest

STUDENTS = [
    {"id": "S1", "usn": "1XX21CS001", "name": "Asha"},
    {"id": "S2", "usn": "1XX21CS002", "name": "Rao, Bharath"},
]


@pytest.fixture
def schema():
    tool = AssessmentTool(id="t1", type=ToolType.INTERNAL_ASSESSMENT, sub_type="1",
                          name="Internal Assessment 1", max_marks=30, co_distribution={"CO1": 10, "CO2": 20})
    return build_question_schema(tool)


def test_headers(schema):
    assert template_headers(schema) == ["USN", "Name", "CO1 (10)", "CO2 (20)"]


def test_export_prefills_and_quotes(schema):
    text = export_template(STUDENTS, schema, {"S1": {"CO1": 7}})
    lines = text.strip().split("\n")
    assert lines[0] == "USN,Name,CO1 (10),CO2 (20)"
    assert lines[1] == "1XX21CS001,Asha,7,"
    assert lines[2] == '1XX21CS002,"Rao, Bharath",,'


def test_export_without_students(schema):
    with pytest.raises(ValueError):
        export_template([], schema, {})


def test_filename():
    assert template_filename("CS101", "Internal Assessment 1") == "CS101_Internal Assessment 1_Template.csv"


def test_import_round_trip(schema):
    text = export_template(STUDENTS, schema, {"S1": {"CO1": 7, "CO2": 12}, "S2": {"CO1": 3}})
    new_marks, count = import_template(text, STUDENTS, schema, {})
    assert new_marks == {"S1": {"CO1": 7, "CO2": 12}, "S2": {"CO1": 3}}
    assert count == 3


def test_import_skips_bad_cells_and_rows(schema):
    text = "\n".join([
        "USN,Name,CO1 (10),CO2 (20)",
        "1XX21CS001,Asha,11,abc",       # out of range, non-numeric
        "1XX21CS002,Bharath,-1,20",     # negative skipped, max accepted
        "UNKNOWN,Nobody,5,5",
        "1XX21CS001,Asha,,",
    ])
    original = {"S1": {"CO1": 4}}
    new_marks, count = import_template(text, STUDENTS, schema, original)

    assert count == 1
    assert new_marks == {"S1": {"CO1": 4}, "S2": {"CO2": 20}}
    assert original == {"S1": {"CO1": 4}}


def test_import_improvement_touches_only_mapped(schema):
    text = "USN,Name,CO1 (10),CO2 (20)\n1XX21CS001,Asha,5,5\n1XX21CS002,Bharath,6,6\n"
    new_marks, count = import_template(text, STUDENTS, schema, {"S2": {}}, is_improvement=True)
    assert new_marks == {"S2": {"CO1": 6, "CO2": 6}}
    assert count == 2


def test_import_empty_upload(schema):
    assert import_template("", STUDENTS, schema, {}) == ({}, 0)
