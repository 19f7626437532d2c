# app/core/reports.py
"""
Reports & Attainment

Aggregates stored marks against the course's configured assessment tools.
All maxima come from the configuration; a student or CO with nothing to
measure reports ``None`` (insufficient data) instead of a guessed value.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from io import BytesIO
from typing import Dict, List, Optional

import pandas as pd

from core.assessment_config import AssessmentTool, parse_tool
from core.constants import ToolType, QuestionLabel, GRADE_BANDS, DEFAULT_TARGET_THRESHOLD
from core.marks_entry import parse_score


def valid_keys(tool: AssessmentTool) -> List[str]:
    if tool.type == ToolType.SEMESTER_END_EXAM:
        return [QuestionLabel.EXTERNAL]
    if tool.type == ToolType.ACTIVITY:
        return [QuestionLabel.SCORE]
    return list(tool.co_distribution)


def tool_score(record: Optional[dict], tool: AssessmentTool) -> int:
    """Sum of the record's scores over the keys the tool defines; stray keys ignored."""
    if not record or not record.get("scores"):
        return 0
    return sum(parse_score(record["scores"].get(key)) or 0 for key in valid_keys(tool))


def unique_tools(course: dict) -> List[AssessmentTool]:
    """Configured tools, first occurrence of each name only."""
    seen = set()
    tools = []
    for raw in course.get("assessmentTools") or []:
        tool = parse_tool(raw)
        if tool.name in seen:
            continue
        seen.add(tool.name)
        tools.append(tool)
    return tools


def standard_tools(course: dict) -> List[AssessmentTool]:
    return [t for t in unique_tools(course) if t.type != ToolType.IMPROVEMENT_TEST]


def target_threshold(course: dict) -> int:
    threshold = (course.get("settings") or {}).get("targetThreshold")
    return DEFAULT_TARGET_THRESHOLD if threshold is None else int(threshold)


def _pct(obtained: float, maximum: float) -> Optional[float]:
    if maximum <= 0:
        return None
    return round(obtained / maximum * 100, 2)


# ===========================================================================
# INDIVIDUAL REPORT
# ===========================================================================

@dataclass
class AssessmentRow:
    name: str
    type: str
    obtained: int
    original: int
    improvement: Optional[int]
    max: int
    percentage: float


@dataclass
class StudentReport:
    rows: List[AssessmentRow] = field(default_factory=list)
    total_obtained: int = 0
    total_max: int = 0

    @property
    def overall_percentage(self) -> float:
        return self.total_obtained / self.total_max * 100 if self.total_max > 0 else 0.0


def student_report(course: dict, marks: List[dict]) -> StudentReport:
    """
    One student's standing across the course's assessments.

    ``marks`` are that student's records. Improvement tests are not rows of
    their own: their score is shown beside the assessment they target, for
    reference only. The obtained score is always the recorded original.
    """
    tools = unique_tools(course)
    by_name = {t.name: t for t in tools}
    report = StudentReport()

    def improvement_score(target_name: str) -> Optional[int]:
        record = next(
            (m for m in marks
             if m["assessment"].startswith("Improvement") and m.get("improvementTarget") == target_name),
            None,
        )
        if record is None:
            return None
        target = by_name.get(target_name)
        return tool_score(record, target) if target else 0

    for tool in tools:
        if tool.type == ToolType.IMPROVEMENT_TEST:
            continue
        record = next((m for m in marks if m["assessment"] == tool.name), None)
        original = tool_score(record, tool)
        report.rows.append(AssessmentRow(
            name=tool.name,
            type=tool.type,
            obtained=original,
            original=original,
            improvement=improvement_score(tool.name),
            max=tool.max_marks,
            percentage=(original / tool.max_marks * 100) if tool.max_marks > 0 else 0.0,
        ))
        report.total_obtained += original
        report.total_max += tool.max_marks

    return report


# ===========================================================================
# COURSE ANALYTICS
# ===========================================================================

def _index_marks(marks: List[dict]) -> Dict[tuple, dict]:
    return {(m["studentId"], m["assessment"]): m for m in marks}


def student_percentages(course: dict, students: List[dict], marks: List[dict]) -> List[dict]:
    """Each student with ``percentage`` over the assessments they have records for, or None."""
    tools = standard_tools(course)
    index = _index_marks(marks)
    result = []
    for student in students:
        obtained, maximum = 0, 0
        for tool in tools:
            record = index.get((student["id"], tool.name))
            if record is None:
                continue
            obtained += tool_score(record, tool)
            maximum += tool.max_marks
        pct = _pct(obtained, maximum)
        result.append({**student, "obtained": obtained, "max": maximum,
                       "percentage": min(100.0, pct) if pct is not None else None})
    return result


def grade_distribution(performance: List[dict]) -> List[dict]:
    buckets = [{"name": label, "value": 0} for label, _ in GRADE_BANDS]
    for student in performance:
        pct = student["percentage"]
        if pct is None:
            continue
        for idx, (_, lower) in enumerate(GRADE_BANDS):
            if pct >= lower:
                buckets[idx]["value"] += 1
                break
    return buckets


def co_student_percentages(course: dict, students: List[dict], marks: List[dict]) -> Dict[str, Dict[str, float]]:
    """{co_id: {student_id: percentage}} from CO-keyed scores of mapped tools."""
    tools = [t for t in standard_tools(course) if t.requires_co_mapping]
    index = _index_marks(marks)
    co_ids = [co["id"] for co in course.get("cos") or []]
    result: Dict[str, Dict[str, float]] = {co_id: {} for co_id in co_ids}

    for student in students:
        for co_id in co_ids:
            obtained, maximum = 0, 0
            for tool in tools:
                allotted = tool.co_distribution.get(co_id)
                record = index.get((student["id"], tool.name))
                if not allotted or record is None:
                    continue
                obtained += parse_score(record["scores"].get(co_id)) or 0
                maximum += allotted
            pct = _pct(obtained, maximum)
            if pct is not None:
                result[co_id][student["id"]] = pct
    return result


def co_performance(course: dict, students: List[dict], marks: List[dict]) -> List[dict]:
    """Class average % per CO against the course target; None where nothing was assessed."""
    target = target_threshold(course)
    per_co = co_student_percentages(course, students, marks)
    rows = []
    for co_id, by_student in per_co.items():
        values = list(by_student.values())
        rows.append({
            "name": co_id,
            "classAvg": round(sum(values) / len(values), 2) if values else None,
            "target": target,
        })
    return rows


def co_attainment(course: dict, students: List[dict], marks: List[dict]) -> List[dict]:
    """Share of assessed students reaching the target percentage on each CO."""
    target = target_threshold(course)
    per_co = co_student_percentages(course, students, marks)
    rows = []
    for co_id, by_student in per_co.items():
        assessed = len(by_student)
        attained = sum(1 for pct in by_student.values() if pct >= target)
        rows.append({
            "co": co_id,
            "assessed": assessed,
            "attained": attained,
            "attainment": round(attained / assessed * 100, 2) if assessed else None,
        })
    return rows


def course_analytics(course: dict, students: List[dict], marks: List[dict]) -> Optional[dict]:
    if not course or not students:
        return None
    performance = student_percentages(course, students, marks)
    return {
        "studentPerformance": performance,
        "distribution": grade_distribution(performance),
        "coPerformance": co_performance(course, students, marks),
        "attainment": co_attainment(course, students, marks),
    }


# ===========================================================================
# EXPORT
# ===========================================================================

def export_report_xlsx(sheets: Dict[str, List[dict]]) -> bytes:
    """Write one worksheet per entry of ``sheets``."""
    output = BytesIO()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        for sheet_name, rows in sheets.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=sheet_name[:31], index=False)
    return output.getvalue()
