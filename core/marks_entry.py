# app/core/marks_entry.py
"""
Marks Entry Reconciliation

Builds the editable question grid for one (course, assessment tool) pair
and holds the per-student scores while a grader works on them.

The grid is derived purely from the tool definition:
- Semester End Exam -> one "External" column
- Activity          -> one "Score" column
- everything else   -> one column per CO in the tool's distribution
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from core.assessment_config import AssessmentTool
from core.constants import ToolType, QuestionLabel, DEFAULT_EXTERNAL_MAX


@dataclass(frozen=True)
class Question:
    q: str
    co: str
    max: int


@dataclass
class AssessmentSchema:
    total: int
    is_external: bool = False
    is_improvement: bool = False
    questions: List[Question] = field(default_factory=list)

    def question(self, q: str) -> Optional[Question]:
        return next((item for item in self.questions if item.q == q), None)

    @property
    def labels(self) -> List[str]:
        return [item.q for item in self.questions]


def build_question_schema(tool: AssessmentTool) -> AssessmentSchema:
    """Derive the pseudo-question layout for a tool."""
    is_see = tool.type == ToolType.SEMESTER_END_EXAM or tool.name == "Semester End Exam"
    is_activity = tool.type == ToolType.ACTIVITY or tool.name.startswith("Activity")
    is_improvement = tool.type == ToolType.IMPROVEMENT_TEST or tool.name.startswith("Improvement")

    schema = AssessmentSchema(total=tool.max_marks or 0, is_improvement=is_improvement)

    if is_see:
        schema.is_external = True
        schema.questions = [Question(QuestionLabel.EXTERNAL, "", tool.max_marks or DEFAULT_EXTERNAL_MAX)]
    elif is_activity:
        schema.questions = [Question(QuestionLabel.SCORE, "-", tool.max_marks or 0)]
    else:
        schema.questions = [
            Question(co_id, co_id, int(marks or 0))
            for co_id, marks in tool.co_distribution.items()
        ]
    return schema


def find_linked_improvement(tools: Iterable[AssessmentTool], assessment_name: str) -> Optional[AssessmentTool]:
    """The improvement test configured to remediate ``assessment_name``, if any."""
    return next(
        (t for t in tools if t.type == ToolType.IMPROVEMENT_TEST and t.linked_assessment == assessment_name),
        None,
    )


def parse_score(value: Any) -> Optional[int]:
    """Integer value of a typed score, or None when it does not parse."""
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(float(str(value).strip()))
    except (ValueError, OverflowError):
        return None


def clamp(value: int, upper: int) -> int:
    return max(0, min(value, upper))


def sum_scores(scores: Optional[Dict[str, Any]], schema: AssessmentSchema) -> int:
    if not scores:
        return 0
    return sum(parse_score(scores.get(q.q)) or 0 for q in schema.questions)


@dataclass
class Comparison:
    student: dict
    rows: List[Tuple[str, Optional[int], Optional[int]]]
    original_total: int
    improvement_total: int

    @property
    def improvement_better(self) -> bool:
        return self.improvement_total > self.original_total


@dataclass
class MarksSheet:
    """Scores being edited for one assessment of one course."""
    schema: AssessmentSchema
    marks: Dict[str, Dict[str, int]] = field(default_factory=dict)
    meta: Dict[str, dict] = field(default_factory=dict)
    editable: Dict[str, bool] = field(default_factory=dict)
    improvement_marks: Dict[str, Dict[str, int]] = field(default_factory=dict)

    def load(self, students: List[dict], existing: List[dict], improvement_records: Optional[List[dict]] = None) -> None:
        """
        Seed the sheet from stored records.

        Regular tools get an empty editable row for every rostered student
        without marks. Improvement tests only show students that already have
        a record; others must be mapped in explicitly.
        """
        self.marks, self.meta, self.editable = {}, {}, {}
        self.improvement_marks = {
            r["studentId"]: dict(r.get("scores") or {}) for r in (improvement_records or [])
        }

        for record in existing:
            self.marks[record["studentId"]] = dict(record.get("scores") or {})
            self.meta[record["studentId"]] = record

        if not self.schema.is_improvement:
            for student in students:
                if student["id"] not in self.marks:
                    self.marks[student["id"]] = {}
                    self.editable[student["id"]] = True

    # --- Entry ---
    def set_mark(self, student_id: str, question_id: str, value: Any) -> Optional[int]:
        """
        Store one cell. Blank clears the cell; numbers are clamped to the
        question's range. Returns the stored value (None when cleared or
        when the input does not parse).
        """
        question = self.schema.question(question_id)
        if question is None:
            raise ValueError(f"Unknown question '{question_id}'")

        if value is None or (isinstance(value, str) and value.strip() == ""):
            self.marks.get(student_id, {}).pop(question_id, None)
            return None

        parsed = parse_score(value)
        if parsed is None:
            return None

        stored = clamp(parsed, question.max)
        self.marks.setdefault(student_id, {})[question_id] = stored
        return stored

    def total(self, student_id: str) -> int:
        return sum_scores(self.marks.get(student_id), self.schema)

    def toggle_edit(self, student_id: str) -> bool:
        self.editable[student_id] = not self.editable.get(student_id, False)
        return self.editable[student_id]

    # --- Improvement mapping ---
    def mapped_ids(self) -> Set[str]:
        return set(self.marks)

    def apply_student_mapping(self, selected_ids: Iterable[str]) -> None:
        selected = set(selected_ids)
        for student_id in selected:
            if student_id not in self.marks:
                self.marks[student_id] = {}
                self.editable[student_id] = True
        for student_id in list(self.marks):
            if student_id not in selected:
                del self.marks[student_id]
                self.editable.pop(student_id, None)

    def displayed_students(self, students: List[dict]) -> List[dict]:
        if not self.schema.is_improvement:
            return students
        return [s for s in students if s["id"] in self.marks]

    # --- Comparison & override ---
    def comparison(self, student: dict) -> Comparison:
        original = self.marks.get(student["id"]) or {}
        improvement = self.improvement_marks.get(student["id"]) or {}
        rows = [(q.q, original.get(q.q), improvement.get(q.q)) for q in self.schema.questions]
        return Comparison(
            student=student,
            rows=rows,
            original_total=sum_scores(original, self.schema),
            improvement_total=sum_scores(improvement, self.schema),
        )

    def override_with_improvement(self, student_id: str) -> Dict[str, int]:
        """Replace a student's scores with their improvement-test scores."""
        if student_id not in self.improvement_marks:
            raise ValueError(f"No improvement marks recorded for student {student_id}")
        self.marks[student_id] = dict(self.improvement_marks[student_id])
        self.editable[student_id] = True
        return self.marks[student_id]

    # --- Save planning ---
    def rows_to_save(self, students: List[dict]) -> List[Tuple[str, Dict[str, int], Optional[dict]]]:
        """(student_id, scores, existing record or None) for each displayed row."""
        rows = []
        for student in self.displayed_students(students):
            scores = self.marks.get(student["id"])
            if scores is None:
                continue
            rows.append((student["id"], dict(scores), self.meta.get(student["id"])))
        return rows

    def pending_deletions(self) -> List[dict]:
        """Stored improvement records whose student has been unmapped."""
        if not self.schema.is_improvement:
            return []
        return [record for student_id, record in self.meta.items() if student_id not in self.marks]
