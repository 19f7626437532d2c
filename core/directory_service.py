# app/core/directory_service.py
"""
Directory Service - users (faculty/admins) and students.
"""
from __future__ import annotations
from sqlalchemy import text as sa_text
from sqlalchemy.engine import Engine
from typing import Dict, List, Optional, Set
import logging

logger = logging.getLogger(__name__)


class DirectoryService:

    def __init__(self, engine: Engine):
        self.engine = engine

    def _exec(self, conn, sql: str, params: dict = None):
        """Execute SQL with parameters."""
        return conn.execute(sa_text(sql), params or {})

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_user(row) -> Dict:
        m = row._mapping
        return {
            "id": m["id"],
            "name": m["name"],
            "email": m["email"],
            "role": m["role"],
            "departmentId": m["department_id"],
        }

    def create_user(self, user_id: str, name: str, email: str, role: str = "faculty",
                    department_id: Optional[str] = None) -> Dict:
        with self.engine.begin() as conn:
            self._exec(conn, """
            INSERT INTO users (id, name, email, role, department_id)
            VALUES (:id, :name, :email, :role, :department_id)
            """, {
                "id": user_id,
                "name": name,
                "email": email.strip().lower(),
                "role": role,
                "department_id": department_id,
            })
        logger.info(f"✅ Created user {user_id} ({role})")
        return self.get_user(user_id)

    def get_user(self, user_id: str) -> Optional[Dict]:
        with self.engine.begin() as conn:
            row = self._exec(conn, """
            SELECT id, name, email, role, department_id FROM users WHERE id = :id
            """, {"id": user_id}).fetchone()
        return self._row_to_user(row) if row else None

    def get_user_by_email(self, email: str) -> Optional[Dict]:
        with self.engine.begin() as conn:
            row = self._exec(conn, """
            SELECT id, name, email, role, department_id FROM users
            WHERE email = :email AND active = 1
            """, {"email": (email or "").strip().lower()}).fetchone()
        return self._row_to_user(row) if row else None

    def list_users(self, role: Optional[str] = None, department_id: Optional[str] = None) -> List[Dict]:
        query = "SELECT id, name, email, role, department_id FROM users WHERE active = 1"
        params = {}
        if role:
            query += " AND role = :role"
            params["role"] = role
        if department_id:
            query += " AND department_id = :department_id"
            params["department_id"] = department_id
        query += " ORDER BY name"

        with self.engine.begin() as conn:
            rows = self._exec(conn, query, params).fetchall()
        return [self._row_to_user(r) for r in rows]

    def ensure_superadmin(self, email: str) -> bool:
        """Create a super admin for ``email`` when no users exist yet. True if created."""
        with self.engine.begin() as conn:
            count = self._exec(conn, "SELECT COUNT(*) FROM users").scalar()
        if count:
            return False
        self.create_user("U_ADMIN", "Administrator", email, role="superadmin")
        logger.info(f"Bootstrapped super admin {email}")
        return True

    def user_roles(self, email: str) -> Set[str]:
        user = self.get_user_by_email(email)
        return {user["role"]} if user else set()

    # ------------------------------------------------------------------
    # Students
    # ------------------------------------------------------------------

    def create_student(self, student_id: str, usn: str, name: str, department_id: Optional[str] = None) -> Dict:
        with self.engine.begin() as conn:
            self._exec(conn, """
            INSERT INTO students (id, usn, name, department_id)
            VALUES (:id, :usn, :name, :department_id)
            """, {"id": student_id, "usn": usn.strip(), "name": name, "department_id": department_id})
        return {"id": student_id, "usn": usn.strip(), "name": name}

    def enroll(self, course_id: str, student_id: str) -> None:
        with self.engine.begin() as conn:
            self._exec(conn, """
            INSERT OR IGNORE INTO course_enrollments (course_id, student_id)
            VALUES (:course_id, :student_id)
            """, {"course_id": course_id, "student_id": student_id})

    def list_students(self, course_id: Optional[str] = None, student_id: Optional[str] = None) -> List[Dict]:
        """Students ordered by USN, optionally limited to a course roster or one id."""
        query = "SELECT s.id, s.usn, s.name FROM students s"
        params = {}
        if course_id:
            query += " JOIN course_enrollments ce ON ce.student_id = s.id AND ce.course_id = :course_id"
            params["course_id"] = course_id
        query += " WHERE s.active = 1"
        if student_id:
            query += " AND s.id = :student_id"
            params["student_id"] = student_id
        query += " ORDER BY s.usn"

        with self.engine.begin() as conn:
            rows = self._exec(conn, query, params).fetchall()
        return [dict(r._mapping) for r in rows]
