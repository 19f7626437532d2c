# app/core/marks_csv.py
"""
CSV template download / bulk upload for the marks grid.

Template layout: ``USN,Name,<question> (<max>),...`` with one row per
student on the grid. Upload matches rows by USN and reads score cells
positionally in question order.
"""
from __future__ import annotations
from copy import deepcopy
from io import StringIO
from typing import Dict, List, Tuple
import logging

import pandas as pd

from core.constants import CSV_FIXED_COLUMNS
from core.marks_entry import AssessmentSchema, parse_score

logger = logging.getLogger(__name__)


def template_headers(schema: AssessmentSchema) -> List[str]:
    return CSV_FIXED_COLUMNS + [f"{q.q} ({q.max})" for q in schema.questions]


def export_template(students: List[dict], schema: AssessmentSchema, marks: Dict[str, Dict[str, int]]) -> str:
    """Render the grid as CSV text, prefilled with any scores already entered."""
    if not students:
        raise ValueError("No students found in the list. Please add students first.")

    rows = []
    for student in students:
        scores = marks.get(student["id"]) or {}
        row = [student.get("usn", ""), student.get("name", "")]
        for q in schema.questions:
            value = scores.get(q.q)
            row.append("" if value is None else value)
        rows.append(row)

    df = pd.DataFrame(rows, columns=template_headers(schema))
    return df.to_csv(index=False, lineterminator="\n")


def template_filename(course_code: str, assessment_name: str) -> str:
    return f"{course_code}_{assessment_name}_Template.csv"


def import_template(
    text: str,
    students: List[dict],
    schema: AssessmentSchema,
    marks: Dict[str, Dict[str, int]],
    is_improvement: bool = False,
) -> Tuple[Dict[str, Dict[str, int]], int]:
    """
    Merge an uploaded template into ``marks``.

    Returns (new marks, number of cells updated). Rows without score cells,
    unknown USNs, blank or non-numeric cells and out-of-range values are
    skipped without comment. For improvement tests only students already
    mapped onto the grid are touched.
    """
    new_marks = deepcopy(marks)
    try:
        df = pd.read_csv(StringIO(text), dtype=str, keep_default_na=False, on_bad_lines="skip")
    except pd.errors.EmptyDataError:
        return new_marks, 0

    by_usn = {str(s.get("usn", "")).strip(): s for s in students}
    updated_count = 0
    skipped_rows = 0

    for values in df.itertuples(index=False, name=None):
        if len(values) < 3 or not any(str(v).strip() for v in values[2:]):
            skipped_rows += 1
            continue

        student = by_usn.get(str(values[0]).strip())
        if student is None:
            skipped_rows += 1
            continue
        if is_improvement and student["id"] not in new_marks:
            skipped_rows += 1
            continue

        row_marks = new_marks.setdefault(student["id"], {})
        for idx, q in enumerate(schema.questions):
            if idx + 2 >= len(values):
                break
            cell = str(values[idx + 2]).strip()
            if not cell:
                continue
            val = parse_score(cell)
            if val is None or val < 0 or val > q.max:
                continue
            row_marks[q.q] = val
            updated_count += 1

    if skipped_rows:
        logger.info(f"CSV import skipped {skipped_rows} rows")
    return new_marks, updated_count
