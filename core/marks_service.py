# app/core/marks_service.py
"""
Marks Service - per-student score records.

Bulk saves are a sequence of independent writes, one transaction per
student. A failing write is reported back and does not undo the writes
that already went through.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from sqlalchemy import text as sa_text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from typing import Dict, List, Optional, Tuple
from datetime import datetime, timezone
import json
import logging

from core.marks_entry import MarksSheet

logger = logging.getLogger(__name__)


@dataclass
class SaveResult:
    saved: int = 0
    deleted: int = 0
    failures: List[Tuple[str, str]] = field(default_factory=list)  # (student_id, error)

    @property
    def ok(self) -> bool:
        return not self.failures


def record_id_for(course_id: str, student_id: str, assessment: str) -> str:
    return f"M_{course_id}_{student_id}_{''.join(assessment.split())}"


class MarksService:

    def __init__(self, engine: Engine):
        self.engine = engine

    def _exec(self, conn, sql: str, params: dict = None):
        """Execute SQL with parameters."""
        return conn.execute(sa_text(sql), params or {})

    @staticmethod
    def _row_to_record(row) -> Dict:
        m = row._mapping
        return {
            "id": m["id"],
            "courseId": m["course_id"],
            "studentId": m["student_id"],
            "assessment": m["assessment"],
            "scores": json.loads(m["scores_json"] or "{}"),
            "improvementTarget": m["improvement_target"],
        }

    # ===================================================================
    # CRUD
    # ===================================================================

    def list_marks(self, course_id: Optional[str] = None, assessment: Optional[str] = None,
                   student_id: Optional[str] = None) -> List[Dict]:
        query = """
        SELECT id, course_id, student_id, assessment, scores_json, improvement_target
        FROM marks WHERE 1=1
        """
        params = {}
        if course_id:
            query += " AND course_id = :course_id"
            params["course_id"] = course_id
        if assessment:
            query += " AND assessment = :assessment"
            params["assessment"] = assessment
        if student_id:
            query += " AND student_id = :student_id"
            params["student_id"] = student_id
        query += " ORDER BY id"

        with self.engine.begin() as conn:
            rows = self._exec(conn, query, params).fetchall()
        return [self._row_to_record(r) for r in rows]

    def create_mark(self, course_id: str, student_id: str, assessment: str, scores: Dict[str, int],
                    record_id: Optional[str] = None, improvement_target: Optional[str] = None) -> str:
        record_id = record_id or record_id_for(course_id, student_id, assessment)
        with self.engine.begin() as conn:
            self._exec(conn, """
            INSERT INTO marks (id, course_id, student_id, assessment, scores_json, improvement_target)
            VALUES (:id, :course_id, :student_id, :assessment, :scores_json, :improvement_target)
            """, {
                "id": record_id,
                "course_id": course_id,
                "student_id": student_id,
                "assessment": assessment,
                "scores_json": json.dumps(scores),
                "improvement_target": improvement_target,
            })
        return record_id

    def update_mark(self, record_id: str, scores: Dict[str, int]) -> None:
        with self.engine.begin() as conn:
            result = self._exec(conn, """
            UPDATE marks SET scores_json = :scores_json, updated_at = :updated_at WHERE id = :id
            """, {
                "id": record_id,
                "scores_json": json.dumps(scores),
                "updated_at": datetime.now(timezone.utc).isoformat(timespec="seconds"),
            })
            if result.rowcount == 0:
                raise ValueError(f"Marks record {record_id} not found")

    def delete_mark(self, record_id: str) -> None:
        with self.engine.begin() as conn:
            self._exec(conn, "DELETE FROM marks WHERE id = :id", {"id": record_id})

    # ===================================================================
    # BULK SAVE
    # ===================================================================

    def save_sheet(self, course_id: str, assessment: str, sheet: MarksSheet, students: List[Dict],
                   improvement_target: Optional[str] = None) -> SaveResult:
        """
        Persist every displayed row of ``sheet``: PATCH rows that already
        have a record, POST the rest. For improvement tests, records of
        students that were unmapped are deleted.
        """
        result = SaveResult()

        for student_id, scores, existing in sheet.rows_to_save(students):
            try:
                if existing:
                    self.update_mark(existing["id"], scores)
                else:
                    self.create_mark(course_id, student_id, assessment, scores,
                                     improvement_target=improvement_target)
                result.saved += 1
            except (SQLAlchemyError, ValueError) as e:
                logger.error(f"Saving marks for {student_id} on {assessment} failed: {e}")
                result.failures.append((student_id, str(e)))

        for record in sheet.pending_deletions():
            try:
                self.delete_mark(record["id"])
                result.deleted += 1
            except SQLAlchemyError as e:
                logger.error(f"Deleting marks record {record['id']} failed: {e}")
                result.failures.append((record["studentId"], str(e)))

        if result.failures:
            logger.warning(f"⚠️ {assessment}: {len(result.failures)} of the writes failed")
        else:
            logger.info(f"✅ {assessment}: saved {result.saved}, deleted {result.deleted}")
        return result
