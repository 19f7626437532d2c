# app/core/course_service.py
"""
Course Service - courses, faculty assignment and OBE configuration.

Course dictionaries returned here use the camelCase keys the configuration
payload is stored with (``assessmentTools``, ``assignedFacultyId``, ...).
"""
from __future__ import annotations
from sqlalchemy import text as sa_text
from sqlalchemy.engine import Engine
from typing import Dict, List, Optional
from datetime import datetime, timezone
import json
import logging

from core.assessment_config import CourseOutcome, CourseSettings, parse_tool, validate_for_save
from core.constants import DEFAULT_TARGET_THRESHOLD
from core.errors import ConfigurationError, ConcurrentEditError

logger = logging.getLogger(__name__)

COURSE_COLUMNS = """
    id, code, name, semester, department_id, assigned_faculty_id,
    cos_json, settings_json, assessment_tools_json, version, updated_at, updated_by
"""


def _load_json(raw: Optional[str], default):
    if not raw:
        return default
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Ignoring unreadable JSON column: {raw[:40]!r}")
        return default


class CourseService:
    """Service for managing courses and their configuration."""

    def __init__(self, engine: Engine, default_threshold: int = DEFAULT_TARGET_THRESHOLD):
        self.engine = engine
        # Target threshold for courses whose settings do not carry one
        self.default_threshold = default_threshold

    def _exec(self, conn, sql: str, params: dict = None):
        """Execute SQL with parameters."""
        return conn.execute(sa_text(sql), params or {})

    def _row_to_course(self, row) -> Dict:
        m = row._mapping
        settings = CourseSettings.from_dict(_load_json(m["settings_json"], {}), self.default_threshold)
        return {
            "id": m["id"],
            "code": m["code"],
            "name": m["name"],
            "semester": m["semester"],
            "departmentId": m["department_id"],
            "assignedFacultyId": m["assigned_faculty_id"],
            "cos": _load_json(m["cos_json"], []),
            "settings": settings.to_dict(),
            "assessmentTools": _load_json(m["assessment_tools_json"], []),
            "version": m["version"],
            "updatedAt": m["updated_at"],
            "updatedBy": m["updated_by"],
        }

    def _log_audit(self, conn, course_id: str, action: str, actor: Optional[str], note: str = "") -> None:
        self._exec(conn, """
        INSERT INTO courses_audit (course_id, action, note, actor_id)
        VALUES (:course_id, :action, :note, :actor)
        """, {"course_id": course_id, "action": action, "note": note, "actor": actor})

    # ===================================================================
    # READ OPERATIONS
    # ===================================================================

    def list_courses(self, assigned_faculty_id: Optional[str] = None, department_id: Optional[str] = None) -> List[Dict]:
        """Courses ordered by semester then code."""
        query = f"SELECT {COURSE_COLUMNS} FROM courses WHERE 1=1"
        params = {}
        if assigned_faculty_id is not None:
            query += " AND assigned_faculty_id = :faculty_id"
            params["faculty_id"] = assigned_faculty_id
        if department_id is not None:
            query += " AND department_id = :department_id"
            params["department_id"] = department_id
        query += " ORDER BY semester, code"

        with self.engine.begin() as conn:
            rows = self._exec(conn, query, params).fetchall()
        return [self._row_to_course(r) for r in rows]

    def get_course(self, course_id: str) -> Optional[Dict]:
        with self.engine.begin() as conn:
            row = self._exec(conn, f"SELECT {COURSE_COLUMNS} FROM courses WHERE id = :id", {"id": course_id}).fetchone()
        return self._row_to_course(row) if row else None

    # ===================================================================
    # WRITE OPERATIONS
    # ===================================================================

    def create_course(
        self,
        course_id: str,
        code: str,
        name: str,
        semester: int = 1,
        department_id: Optional[str] = None,
        assigned_faculty_id: Optional[str] = None,
        actor: Optional[str] = None,
        **kwargs
    ) -> Dict:
        """Create a course, optionally with an initial configuration."""
        with self.engine.begin() as conn:
            existing = self._exec(conn, "SELECT id FROM courses WHERE id = :id", {"id": course_id}).fetchone()
            if existing:
                raise ValueError(f"Course {course_id} already exists")

            self._exec(conn, """
            INSERT INTO courses (
                id, code, name, semester, department_id, assigned_faculty_id,
                cos_json, settings_json, assessment_tools_json, updated_by
            ) VALUES (
                :id, :code, :name, :semester, :department_id, :assigned_faculty_id,
                :cos_json, :settings_json, :tools_json, :actor
            )
            """, {
                "id": course_id,
                "code": code,
                "name": name,
                "semester": semester,
                "department_id": department_id,
                "assigned_faculty_id": assigned_faculty_id,
                "cos_json": json.dumps(kwargs.get("cos", [])),
                "settings_json": json.dumps(
                    kwargs.get("settings", CourseSettings(target_threshold=self.default_threshold).to_dict())
                ),
                "tools_json": json.dumps(kwargs.get("assessment_tools", [])),
                "actor": actor,
            })
            self._log_audit(conn, course_id, "create", actor, f"{code} - {name}")

        logger.info(f"✅ Created course {course_id} ({code})")
        return self.get_course(course_id)

    def save_configuration(
        self,
        course_id: str,
        payload: Dict,
        expected_version: Optional[int] = None,
        actor: Optional[str] = None,
    ) -> Dict:
        """
        Replace a course's COs, settings and assessment tools.

        The payload is validated first; any unbalanced or incomplete tool
        raises ConfigurationError with the full list of problems and nothing
        is written. When ``expected_version`` is given the write only lands
        if nobody saved the course since that version was loaded.
        """
        cos = [CourseOutcome.from_dict(c) for c in payload.get("cos", [])]
        settings = CourseSettings.from_dict(payload.get("settings"), self.default_threshold)
        tools = [parse_tool(t) for t in payload.get("assessmentTools", [])]

        errors = validate_for_save(tools, [co.id for co in cos])
        if errors:
            logger.warning(f"Rejected configuration for {course_id}: {len(errors)} problem(s)")
            raise ConfigurationError(errors)

        params = {
            "id": course_id,
            "cos_json": json.dumps([co.to_dict() for co in cos]),
            "settings_json": json.dumps(settings.to_dict()),
            "tools_json": json.dumps([t.to_dict() for t in tools]),
            "updated_at": datetime.now(timezone.utc).isoformat(timespec="seconds"),
            "actor": actor,
        }
        query = """
        UPDATE courses SET
            cos_json = :cos_json,
            settings_json = :settings_json,
            assessment_tools_json = :tools_json,
            version = version + 1,
            updated_at = :updated_at,
            updated_by = :actor
        WHERE id = :id
        """
        if expected_version is not None:
            query += " AND version = :expected_version"
            params["expected_version"] = expected_version

        with self.engine.begin() as conn:
            result = self._exec(conn, query, params)
            if result.rowcount == 0:
                row = self._exec(conn, "SELECT version FROM courses WHERE id = :id", {"id": course_id}).fetchone()
                if not row:
                    raise ValueError(f"Course {course_id} not found")
                raise ConcurrentEditError(course_id, expected_version, row[0])
            self._log_audit(conn, course_id, "configure", actor,
                            f"{len(cos)} COs, {len(tools)} assessment tools")

        logger.info(f"✅ Saved configuration for course {course_id}")
        return self.get_course(course_id)

    def assign_faculty(self, course_id: str, faculty_id: Optional[str], actor: Optional[str] = None) -> None:
        """Assign (or with None, unassign) the course's faculty."""
        faculty_id = faculty_id or None
        with self.engine.begin() as conn:
            if faculty_id is not None:
                user = self._exec(conn, "SELECT role FROM users WHERE id = :id", {"id": faculty_id}).fetchone()
                if not user:
                    raise ValueError(f"User {faculty_id} not found")
                if user[0] != "faculty":
                    raise ValueError(f"User {faculty_id} is not a faculty member")

            result = self._exec(conn, """
            UPDATE courses SET assigned_faculty_id = :faculty_id, updated_by = :actor
            WHERE id = :id
            """, {"id": course_id, "faculty_id": faculty_id, "actor": actor})
            if result.rowcount == 0:
                raise ValueError(f"Course {course_id} not found")
            self._log_audit(conn, course_id, "assign", actor, faculty_id or "unassigned")

        logger.info(f"✅ Course {course_id} assigned to {faculty_id or 'nobody'}")

    def audit_trail(self, course_id: str) -> List[Dict]:
        with self.engine.begin() as conn:
            rows = self._exec(conn, """
            SELECT occurred_at_utc, action, note, actor_id
            FROM courses_audit WHERE course_id = :id ORDER BY id
            """, {"id": course_id}).fetchall()
        return [dict(r._mapping) for r in rows]
