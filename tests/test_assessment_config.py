import pytest

from core.assessment_config import (
    AssessmentTool,
    ConfigurationDraft,
    CourseOutcome,
    CourseSettings,
    INCOMPLETE_TOOL_MESSAGE,
    derive_name,
    improvement_targets,
    is_balanced,
    parse_tool,
    update_co_distribution,
    update_tool_meta,
    validate_for_save,
)
from core.constants import ToolType


def _ia(tool_id="t1", sub="1", max_marks=30, dist=None):
    tool = AssessmentTool(id=tool_id, type=ToolType.INTERNAL_ASSESSMENT, sub_type=sub,
                          max_marks=max_marks, weightage=20, co_distribution=dict(dist or {}))
    tool.name = derive_name(tool)
    return tool


# ---------------------------------------------------------------------------
# Naming
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("kwargs, expected", [
    ({"type": ToolType.INTERNAL_ASSESSMENT, "sub_type": "2"}, "Internal Assessment 2"),
    ({"type": ToolType.ASSIGNMENT, "sub_type": "1"}, "Assignment 1"),
    ({"type": ToolType.ASSIGNMENT, "sub_type": "Other", "custom_name": "Mini Project"}, "Mini Project"),
    ({"type": ToolType.SEMESTER_END_EXAM, "sub_type": ""}, "Semester End Exam"),
    ({"type": ToolType.ACTIVITY, "custom_name": "Quiz"}, "Activity - Quiz"),
    ({"type": ToolType.ACTIVITY}, "Activity"),
    ({"type": ToolType.IMPROVEMENT_TEST, "linked_assessment": "Internal Assessment 1"},
     "Improvement Test (Internal Assessment 1)"),
    ({"type": ToolType.IMPROVEMENT_TEST}, "Improvement Test"),
])
def test_derive_name(kwargs, expected):
    assert derive_name(AssessmentTool(id="x", **kwargs)) == expected


def test_parse_tool_recovers_structure_from_legacy_names():
    see = parse_tool({"id": "a", "name": "Semester End Exam", "maxMarks": 100})
    assert see.type == ToolType.SEMESTER_END_EXAM

    activity = parse_tool({"id": "b", "name": "Activity - Quiz"})
    assert activity.type == ToolType.ACTIVITY
    assert activity.custom_name == "Quiz"

    improvement = parse_tool({"id": "c", "name": "Improvement Test (Internal Assessment 2)"})
    assert improvement.type == ToolType.IMPROVEMENT_TEST
    assert improvement.linked_assessment == "Internal Assessment 2"

    ia = parse_tool({"id": "d", "name": "Assignment 3"})
    assert (ia.type, ia.sub_type, ia.custom_name) == (ToolType.ASSIGNMENT, "3", "")

    custom = parse_tool({"id": "e", "name": "Lab Record"})
    assert (custom.type, custom.sub_type, custom.custom_name) == (ToolType.INTERNAL_ASSESSMENT, "Other", "Lab Record")


def test_parse_tool_trusts_structured_fields():
    tool = parse_tool({
        "id": "t", "name": "stale name", "type": ToolType.ASSIGNMENT, "subType": "2",
        "maxMarks": "10", "coDistribution": {"CO1": "10"},
    })
    assert tool.name == "Assignment 2"
    assert tool.max_marks == 10
    assert tool.co_distribution == {"CO1": 10}


# ---------------------------------------------------------------------------
# Tool edits
# ---------------------------------------------------------------------------

def test_type_change_to_unmapped_clears_distribution():
    tools = [_ia(dist={"CO1": 15, "CO2": 15})]
    tools = update_tool_meta(tools, "t1", "type", ToolType.SEMESTER_END_EXAM)
    assert tools[0].name == "Semester End Exam"
    assert tools[0].co_distribution == {}

    tools = update_tool_meta(tools, "t1", "type", ToolType.INTERNAL_ASSESSMENT)
    assert tools[0].name.strip() == tools[0].name
    assert tools[0].name.startswith("Internal Assessment")


def test_type_change_between_mapped_types_keeps_distribution():
    tools = update_tool_meta([_ia(dist={"CO1": 30})], "t1", "type", ToolType.ASSIGNMENT)
    assert tools[0].name == "Assignment 1"
    assert tools[0].co_distribution == {"CO1": 30}


def test_max_marks_edit_does_not_rename():
    tools = update_tool_meta([_ia()], "t1", "max_marks", "50")
    assert tools[0].max_marks == 50
    assert tools[0].name == "Internal Assessment 1"


def test_linking_improvement_copies_source_allocation():
    source = _ia(dist={"CO1": 10, "CO2": 20})
    improvement = AssessmentTool(id="t9", type=ToolType.IMPROVEMENT_TEST, sub_type="", name="Improvement Test")
    tools = update_tool_meta([source, improvement], "t9", "linked_assessment", "Internal Assessment 1")

    linked = tools[1]
    assert linked.name == "Improvement Test (Internal Assessment 1)"
    assert linked.max_marks == 30
    assert linked.weightage == 20
    assert linked.co_distribution == {"CO1": 10, "CO2": 20}

    # deep copy: editing the improvement leaves the source untouched
    tools = update_co_distribution(tools, "t9", "CO1", 5)
    assert tools[0].co_distribution["CO1"] == 10


def test_improvement_targets_excludes_self_and_non_ia():
    tools = [_ia("a"), _ia("b", sub="2"), AssessmentTool(id="c", type=ToolType.ASSIGNMENT)]
    assert [t.id for t in improvement_targets(tools, "a")] == ["b"]


def test_unknown_field_is_rejected():
    with pytest.raises(ValueError):
        update_tool_meta([_ia()], "t1", "id", "other")


def test_zero_marks_removes_co_key():
    tools = update_co_distribution([_ia(dist={"CO1": 10})], "t1", "CO1", "")
    assert tools[0].co_distribution == {}


def test_unmapped_tool_ignores_distribution_edits():
    see = AssessmentTool(id="s", type=ToolType.SEMESTER_END_EXAM, sub_type="", name="Semester End Exam")
    tools = update_co_distribution([see], "s", "CO1", 40)
    assert tools[0].co_distribution == {}


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def test_unbalanced_tool_message():
    errors = validate_for_save([_ia(dist={"CO1": 10, "CO2": 15})])
    assert errors == ["Internal Assessment 1: Allocated 25 marks, but Max Marks is 30"]


def test_balanced_and_unmapped_tools_pass():
    see = AssessmentTool(id="s", type=ToolType.SEMESTER_END_EXAM, sub_type="", name="Semester End Exam", max_marks=100)
    tools = [_ia(dist={"CO1": 30}), see]
    assert all(is_balanced(t) for t in tools)
    assert validate_for_save(tools) == []


def test_incomplete_names_reported_once():
    tools = [
        AssessmentTool(id="a", type=ToolType.ACTIVITY, sub_type="", name="Activity", max_marks=10),
        AssessmentTool(id="b", type=ToolType.IMPROVEMENT_TEST, sub_type="", name="Improvement Test"),
    ]
    assert validate_for_save(tools) == [INCOMPLETE_TOOL_MESSAGE]


def test_unknown_outcome_reference():
    errors = validate_for_save([_ia(dist={"CO1": 20, "CO9": 10})], co_ids=["CO1"])
    assert errors == ["Internal Assessment 1: References unknown outcome CO9"]


# ---------------------------------------------------------------------------
# Draft
# ---------------------------------------------------------------------------

def _draft():
    course = {
        "id": "C1",
        "version": 3,
        "cos": [{"id": "CO1"}, {"id": "CO2"}],
        "settings": {"targetThreshold": 70, "courseType": "Lab"},
        "assessmentTools": [_ia(dist={"CO1": 15, "CO2": 15}).to_dict()],
    }
    return ConfigurationDraft.from_course(course)


def test_draft_loads_course():
    draft = _draft()
    assert draft.version == 3
    assert draft.settings.target_threshold == 70
    assert [co.id for co in draft.cos] == ["CO1", "CO2"]
    assert draft.validate() == []


def test_add_co_numbers_sequentially():
    draft = _draft()
    assert draft.add_co().id == "CO3"


def test_remove_co_cascades_into_tools():
    draft = _draft()
    draft.remove_co("CO2")
    assert [co.id for co in draft.cos] == ["CO1"]
    assert draft.tools[0].co_distribution == {"CO1": 15}
    assert draft.validate() == ["Internal Assessment 1: Allocated 15 marks, but Max Marks is 30"]


def test_renaming_co_renames_distribution_keys():
    draft = _draft()
    draft.update_co(1, "id", "CO2a")
    assert draft.tools[0].co_distribution == {"CO1": 15, "CO2a": 15}
    assert draft.validate() == []


def test_update_co_rejects_unknown_k_level():
    draft = _draft()
    with pytest.raises(ValueError):
        draft.update_co(0, "k_level", "K9")


def test_payload_uses_stored_keys():
    payload = _draft().to_payload()
    assert set(payload) == {"cos", "settings", "assessmentTools"}
    assert payload["settings"] == {"targetThreshold": 70, "courseType": "Lab"}
    tool = payload["assessmentTools"][0]
    assert tool["maxMarks"] == 30
    assert tool["coDistribution"] == {"CO1": 15, "CO2": 15}


def test_course_outcome_defaults_bad_k_level():
    assert CourseOutcome.from_dict({"id": "CO1", "kLevel": "bogus"}).k_level == "K1"


def test_new_tool_is_unique():
    draft = _draft()
    a, b = draft.add_tool(), draft.add_tool()
    assert a.id != b.id
    draft.remove_tool(a.id)
    assert draft.get_tool(a.id) is None
    assert draft.get_tool(b.id) is b


def test_legacy_payload_validation_message():
    tool = parse_tool({"name": "IA1", "maxMarks": 30, "coDistribution": {"CO1": 15, "CO2": 10}})
    assert tool.name == "IA1"
    errors = validate_for_save([tool])
    assert errors == ["IA1: Allocated 25 marks, but Max Marks is 30"]


def test_add_co_after_removal_keeps_ids_unique():
    draft = _draft()
    draft.add_co()
    draft.remove_co("CO1")
    new = draft.add_co()
    ids = [co.id for co in draft.cos]
    assert new.id == "CO4"
    assert len(ids) == len(set(ids))


def test_add_co_ignores_custom_ids_when_numbering():
    draft = _draft()
    draft.update_co(1, "id", "CO-Lab")
    assert draft.add_co().id == "CO2"


def test_renaming_co_onto_existing_id_is_refused():
    draft = _draft()
    with pytest.raises(ValueError):
        draft.update_co(1, "id", "CO1")
    assert [co.id for co in draft.cos] == ["CO1", "CO2"]
    assert draft.tools[0].co_distribution == {"CO1": 15, "CO2": 15}

    with pytest.raises(ValueError):
        draft.update_co(1, "id", "   ")


def test_duplicate_outcome_ids_block_save():
    errors = validate_for_save([_ia(dist={"CO1": 30})], co_ids=["CO1", "CO1", "CO2", "CO2"])
    assert errors == ["Duplicate outcome id CO1", "Duplicate outcome id CO2"]


def test_linked_copy_does_not_follow_later_source_edits():
    source = _ia(dist={"CO1": 30})
    improvement = AssessmentTool(id="t9", type=ToolType.IMPROVEMENT_TEST, sub_type="", name="Improvement Test")
    tools = update_tool_meta([source, improvement], "t9", "linked_assessment", "Internal Assessment 1")

    tools = update_co_distribution(tools, "t1", "CO1", 5)
    tools = update_tool_meta(tools, "t1", "max_marks", 99)

    assert (tools[0].max_marks, tools[0].co_distribution) == (99, {"CO1": 5})
    assert (tools[1].max_marks, tools[1].co_distribution) == (30, {"CO1": 30})


def test_settings_default_threshold_override():
    assert CourseSettings.from_dict(None, default_threshold=75).target_threshold == 75
    assert CourseSettings.from_dict({"courseType": "Lab"}, default_threshold=75).target_threshold == 75
    assert CourseSettings.from_dict({"targetThreshold": 50}, default_threshold=75).target_threshold == 50
