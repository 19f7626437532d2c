# schemas/courses_schema.py
"""
Courses Schema

A course row owns its whole OBE configuration as JSON documents:
- cos_json               list of course outcomes
- settings_json          target threshold + course type
- assessment_tools_json  list of assessment tools with CO distribution

The configuration is replaced wholesale on save. ``version`` increases on
every configuration save so an editor can tell whether the row moved
since it was loaded.
"""
from __future__ import annotations
from sqlalchemy.engine import Engine
from sqlalchemy import text as sa_text
from core.schema_registry import register


def _exec(conn, sql: str, params: dict = None):
    """Execute SQL with parameters."""
    return conn.execute(sa_text(sql), params or {})


@register("courses")
def install_schema(engine: Engine) -> None:
    with engine.begin() as conn:
        # ========================================================
        # 1. COURSES
        # ========================================================
        _exec(conn, """
        CREATE TABLE IF NOT EXISTS courses (
            id TEXT PRIMARY KEY,
            code TEXT NOT NULL,
            name TEXT NOT NULL,
            semester INTEGER NOT NULL DEFAULT 1,
            department_id TEXT,

            -- NULL means unassigned
            assigned_faculty_id TEXT,

            cos_json TEXT NOT NULL DEFAULT '[]',
            settings_json TEXT NOT NULL DEFAULT '{}',
            assessment_tools_json TEXT NOT NULL DEFAULT '[]',

            version INTEGER NOT NULL DEFAULT 1,

            created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
            updated_at DATETIME,
            updated_by TEXT,

            FOREIGN KEY(assigned_faculty_id) REFERENCES users(id) ON DELETE SET NULL
        )
        """)

        _exec(conn, "CREATE INDEX IF NOT EXISTS idx_courses_faculty ON courses(assigned_faculty_id)")
        _exec(conn, "CREATE INDEX IF NOT EXISTS idx_courses_department ON courses(department_id)")

        # ========================================================
        # 2. AUDIT TRAIL
        # ========================================================
        _exec(conn, """
        CREATE TABLE IF NOT EXISTS courses_audit (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            occurred_at_utc DATETIME DEFAULT CURRENT_TIMESTAMP,
            course_id TEXT NOT NULL,
            action TEXT NOT NULL,
            note TEXT,
            actor_id TEXT
        )
        """)
