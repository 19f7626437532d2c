# app/core/assessment_config.py
"""
Assessment Configuration Reconciler

Holds the in-memory draft of one course's COs, settings and assessment
tools while a faculty member edits them, and keeps the derived fields
consistent:

- tool name derived from (type, sub type, custom name, linked assessment)
- CO mark distribution cleared for types without CO mapping
- improvement tests seeded from the assessment they remediate
- allocation balance checked against conducted marks

Everything here is pure: no database, no Streamlit.
"""
from __future__ import annotations
from copy import deepcopy
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional
import re
import uuid

from core.constants import (
    ToolType,
    UNMAPPED_TYPES,
    SUB_TYPES,
    SUB_TYPE_OTHER,
    K_LEVELS,
    CourseType,
    DEFAULT_TARGET_THRESHOLD,
)

INCOMPLETE_TOOL_MESSAGE = (
    "An assessment tool is incomplete. Please check Activity Names or Improvement Targets."
)

# Fields whose change re-derives the tool name
NAMING_FIELDS = {"type", "sub_type", "custom_name", "linked_assessment"}
INT_FIELDS = {"max_marks", "weightage"}
EDITABLE_FIELDS = NAMING_FIELDS | INT_FIELDS

# Types named "<type> <number>"
NUMBERED_TYPES = {ToolType.INTERNAL_ASSESSMENT, ToolType.ASSIGNMENT}

CO_ID_PATTERN = re.compile(r"CO(\d+)")


def _to_int(value: Any) -> int:
    """Lenient integer parse: blanks and garbage become 0, negatives clamp to 0."""
    try:
        return max(0, int(str(value).strip()))
    except (TypeError, ValueError):
        return 0


# ===========================================================================
# MODELS
# ===========================================================================

@dataclass
class CourseOutcome:
    id: str
    description: str = ""
    modules: str = ""
    k_level: str = "K1"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "modules": self.modules,
            "kLevel": self.k_level,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CourseOutcome":
        k_level = data.get("kLevel") or "K1"
        return cls(
            id=str(data.get("id", "")),
            description=data.get("description") or "",
            modules=data.get("modules") or "",
            k_level=k_level if k_level in K_LEVELS else "K1",
        )


@dataclass
class CourseSettings:
    target_threshold: int = DEFAULT_TARGET_THRESHOLD
    course_type: str = CourseType.THEORY

    def to_dict(self) -> dict:
        return {"targetThreshold": self.target_threshold, "courseType": self.course_type}

    @classmethod
    def from_dict(cls, data: Optional[dict], default_threshold: int = DEFAULT_TARGET_THRESHOLD) -> "CourseSettings":
        if not data:
            return cls(target_threshold=default_threshold)
        threshold = data.get("targetThreshold")
        return cls(
            target_threshold=default_threshold if threshold is None else _to_int(threshold),
            course_type=data.get("courseType") or CourseType.THEORY,
        )


@dataclass
class AssessmentTool:
    """A gradable instrument configured for a course."""
    id: str
    type: str = ToolType.INTERNAL_ASSESSMENT
    sub_type: str = "1"
    custom_name: str = ""
    linked_assessment: str = ""
    name: str = "Internal Assessment 1"
    max_marks: int = 0
    weightage: int = 0
    co_distribution: Dict[str, int] = field(default_factory=dict)

    @property
    def requires_co_mapping(self) -> bool:
        return self.type not in UNMAPPED_TYPES

    @property
    def is_improvement(self) -> bool:
        return self.type == ToolType.IMPROVEMENT_TEST

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "subType": self.sub_type,
            "customName": self.custom_name,
            "linkedAssessment": self.linked_assessment,
            "maxMarks": self.max_marks,
            "weightage": self.weightage,
            "coDistribution": dict(self.co_distribution),
        }


# ===========================================================================
# NAME DERIVATION
# ===========================================================================

def derive_name(tool: AssessmentTool) -> str:
    """Canonical display name; depends only on the four naming fields."""
    if tool.type == ToolType.SEMESTER_END_EXAM:
        return "Semester End Exam"
    if tool.type == ToolType.ACTIVITY:
        return f"Activity - {tool.custom_name}" if tool.custom_name else "Activity"
    if tool.type == ToolType.IMPROVEMENT_TEST:
        if tool.linked_assessment:
            return f"Improvement Test ({tool.linked_assessment})"
        return "Improvement Test"
    if tool.sub_type == SUB_TYPE_OTHER:
        return tool.custom_name
    return f"{tool.type} {tool.sub_type}"


def parse_tool(raw: dict) -> AssessmentTool:
    """
    Build a tool from a stored payload.

    Payloads saved by this app carry the structured fields and are trusted
    as-is. Older payloads carry only ``name``; the structure is recovered
    from the name pattern.
    """
    name = raw.get("name") or ""
    base = dict(
        id=str(raw.get("id") or _new_tool_id()),
        name=name,
        max_marks=_to_int(raw.get("maxMarks", 0)),
        weightage=_to_int(raw.get("weightage", 0)),
        co_distribution={str(k): _to_int(v) for k, v in (raw.get("coDistribution") or {}).items()},
    )

    if raw.get("type"):
        tool = AssessmentTool(
            type=raw["type"],
            sub_type=raw.get("subType") or "",
            custom_name=raw.get("customName") or "",
            linked_assessment=raw.get("linkedAssessment") or "",
            **base,
        )
        tool.name = derive_name(tool)
        return tool

    tool_type, sub_type, custom_name, linked = ToolType.INTERNAL_ASSESSMENT, SUB_TYPE_OTHER, name, ""

    if name == "Semester End Exam":
        tool_type, sub_type = ToolType.SEMESTER_END_EXAM, ""
    elif name.startswith("Improvement Test"):
        tool_type, sub_type, custom_name = ToolType.IMPROVEMENT_TEST, "", ""
        match = re.search(r"\((.*?)\)", name)
        if match:
            linked = match.group(1)
    elif name.startswith("Activity"):
        tool_type, sub_type = ToolType.ACTIVITY, ""
        custom_name = "" if name == "Activity" else name.replace("Activity - ", "", 1)
    else:
        for prefix in (ToolType.INTERNAL_ASSESSMENT, ToolType.ASSIGNMENT):
            if name.startswith(prefix + " "):
                part = name[len(prefix) + 1:]
                if part in SUB_TYPES and part != SUB_TYPE_OTHER:
                    tool_type, sub_type, custom_name = prefix, part, ""
                break

    return AssessmentTool(
        type=tool_type,
        sub_type=sub_type,
        custom_name=custom_name,
        linked_assessment=linked,
        **base,
    )


# ===========================================================================
# TOOL LIST OPERATIONS
# ===========================================================================

def _new_tool_id() -> str:
    return uuid.uuid4().hex[:12]


def improvement_targets(tools: List[AssessmentTool], tool_id: str) -> List[AssessmentTool]:
    """Internal Assessments an improvement test may remediate (never itself)."""
    return [t for t in tools if t.id != tool_id and t.type == ToolType.INTERNAL_ASSESSMENT]


def update_tool_meta(tools: List[AssessmentTool], tool_id: str, field_name: str, value: Any) -> List[AssessmentTool]:
    """Apply one field edit to one tool and reconcile its derived fields."""
    if field_name not in EDITABLE_FIELDS:
        raise ValueError(f"Field '{field_name}' is not editable")

    if field_name in INT_FIELDS:
        value = _to_int(value)
    else:
        value = "" if value is None else str(value)

    updated_list = []
    for tool in tools:
        if tool.id != tool_id:
            updated_list.append(tool)
            continue

        updated = replace(tool, co_distribution=dict(tool.co_distribution))
        setattr(updated, field_name, value)

        if field_name == "linked_assessment":
            source = next((t for t in tools if t.name == value), None)
            if source is not None:
                updated.max_marks = source.max_marks
                updated.weightage = source.weightage
                updated.co_distribution = deepcopy(source.co_distribution)

        if field_name == "type" and updated.type in NUMBERED_TYPES and not updated.sub_type:
            updated.sub_type = SUB_TYPES[0]

        if field_name in NAMING_FIELDS:
            updated.name = derive_name(updated)
            if field_name == "type" and updated.type in UNMAPPED_TYPES:
                updated.co_distribution = {}

        updated_list.append(updated)
    return updated_list


def update_co_distribution(tools: List[AssessmentTool], tool_id: str, co_id: str, marks: Any) -> List[AssessmentTool]:
    """Set a CO's marks on a tool; zero or blank removes the key."""
    mark_value = _to_int(marks)
    updated_list = []
    for tool in tools:
        if tool.id != tool_id or not tool.requires_co_mapping:
            updated_list.append(tool)
            continue
        new_dist = dict(tool.co_distribution)
        if mark_value > 0:
            new_dist[co_id] = mark_value
        else:
            new_dist.pop(co_id, None)
        updated_list.append(replace(tool, co_distribution=new_dist))
    return updated_list


def remove_co_from_tools(tools: List[AssessmentTool], co_id: str) -> List[AssessmentTool]:
    return [
        replace(t, co_distribution={k: v for k, v in t.co_distribution.items() if k != co_id})
        for t in tools
    ]


# ===========================================================================
# ALLOCATION & VALIDATION
# ===========================================================================

def allocated(tool: AssessmentTool) -> int:
    return sum(tool.co_distribution.values())


def is_balanced(tool: AssessmentTool) -> bool:
    if not tool.requires_co_mapping:
        return True
    return allocated(tool) == tool.max_marks


def is_name_incomplete(tool: AssessmentTool) -> bool:
    return not tool.name or tool.name in ("Activity", "Improvement Test")


def validate_for_save(tools: List[AssessmentTool], co_ids: Optional[List[str]] = None) -> List[str]:
    """
    Collect every blocking problem with the tool list, in display order.

    An empty list means the configuration may be saved.
    """
    errors: List[str] = []
    known = set(co_ids) if co_ids is not None else None

    seen = set()
    for co_id in co_ids or []:
        if co_id in seen:
            message = f"Duplicate outcome id {co_id}"
            if message not in errors:
                errors.append(message)
        seen.add(co_id)

    for tool in tools:
        if tool.requires_co_mapping:
            total = allocated(tool)
            if total != tool.max_marks:
                errors.append(f"{tool.name}: Allocated {total} marks, but Max Marks is {tool.max_marks}")
            if known is not None:
                for co_id in tool.co_distribution:
                    if co_id not in known:
                        errors.append(f"{tool.name}: References unknown outcome {co_id}")
        if is_name_incomplete(tool) and INCOMPLETE_TOOL_MESSAGE not in errors:
            errors.append(INCOMPLETE_TOOL_MESSAGE)

    return errors


# ===========================================================================
# SESSION DRAFT
# ===========================================================================

@dataclass
class ConfigurationDraft:
    """
    Editable copy of one course's configuration.

    Lives in the page session for as long as the course stays selected and
    is thrown away on course switch. ``version`` is the stored course version
    the draft was loaded from.
    """
    course_id: str
    cos: List[CourseOutcome] = field(default_factory=list)
    settings: CourseSettings = field(default_factory=CourseSettings)
    tools: List[AssessmentTool] = field(default_factory=list)
    version: Optional[int] = None

    @classmethod
    def from_course(cls, course: dict) -> "ConfigurationDraft":
        return cls(
            course_id=course["id"],
            cos=[CourseOutcome.from_dict(c) for c in course.get("cos") or []],
            settings=CourseSettings.from_dict(course.get("settings")),
            tools=[parse_tool(t) for t in course.get("assessmentTools") or []],
            version=course.get("version"),
        )

    # --- COs ---
    def next_co_id(self) -> str:
        """``CO<n>`` one past the highest number in use."""
        numbers = [int(m.group(1)) for m in (CO_ID_PATTERN.fullmatch(co.id) for co in self.cos) if m]
        return f"CO{max(numbers, default=0) + 1}"

    def add_co(self) -> CourseOutcome:
        co = CourseOutcome(id=self.next_co_id())
        self.cos.append(co)
        return co

    def remove_co(self, co_id: str) -> None:
        self.cos = [co for co in self.cos if co.id != co_id]
        self.tools = remove_co_from_tools(self.tools, co_id)

    def update_co(self, idx: int, field_name: str, value: str) -> None:
        co = self.cos[idx]
        if field_name == "id":
            old_id, new_id = co.id, value.strip()
            if not new_id:
                raise ValueError("Outcome id cannot be empty")
            if any(other.id == new_id for i, other in enumerate(self.cos) if i != idx):
                raise ValueError(f"Outcome id {new_id} is already used")
            co.id = new_id
            # Keep distributions pointing at the renamed outcome
            self.tools = [
                replace(t, co_distribution={(new_id if k == old_id else k): v for k, v in t.co_distribution.items()})
                for t in self.tools
            ]
        elif field_name == "description":
            co.description = value
        elif field_name == "modules":
            co.modules = value
        elif field_name == "k_level":
            if value not in K_LEVELS:
                raise ValueError(f"Unknown knowledge level {value}")
            co.k_level = value
        else:
            raise ValueError(f"Field '{field_name}' is not editable")

    # --- Tools ---
    def add_tool(self) -> AssessmentTool:
        tool = AssessmentTool(id=_new_tool_id())
        self.tools.append(tool)
        return tool

    def remove_tool(self, tool_id: str) -> None:
        self.tools = [t for t in self.tools if t.id != tool_id]

    def update_tool(self, tool_id: str, field_name: str, value: Any) -> None:
        self.tools = update_tool_meta(self.tools, tool_id, field_name, value)

    def set_co_marks(self, tool_id: str, co_id: str, marks: Any) -> None:
        self.tools = update_co_distribution(self.tools, tool_id, co_id, marks)

    def get_tool(self, tool_id: str) -> Optional[AssessmentTool]:
        return next((t for t in self.tools if t.id == tool_id), None)

    # --- Save ---
    def validate(self) -> List[str]:
        return validate_for_save(self.tools, [co.id for co in self.cos])

    def to_payload(self) -> dict:
        return {
            "cos": [co.to_dict() for co in self.cos],
            "settings": self.settings.to_dict(),
            "assessmentTools": [t.to_dict() for t in self.tools],
        }
