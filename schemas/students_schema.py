# schemas/students_schema.py
"""
Student Schema
- Student records (USN + name)
- Course enrollments (roster per course)
"""
from __future__ import annotations
from sqlalchemy.engine import Engine
from sqlalchemy import text as sa_text
from core.schema_registry import register


@register("students")
def install_schema(engine: Engine) -> None:
    with engine.begin() as conn:
        # ════════════════════════════════════════════════════════════════════
        # 1. STUDENTS
        # ════════════════════════════════════════════════════════════════════
        conn.execute(sa_text("""
            CREATE TABLE IF NOT EXISTS students (
                id TEXT PRIMARY KEY,
                usn TEXT UNIQUE NOT NULL,
                name TEXT NOT NULL,
                department_id TEXT,
                active INTEGER NOT NULL DEFAULT 1,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """))

        conn.execute(sa_text("CREATE INDEX IF NOT EXISTS idx_students_usn ON students(usn)"))

        # ════════════════════════════════════════════════════════════════════
        # 2. COURSE ENROLLMENTS - roster used by the marks grid
        # ════════════════════════════════════════════════════════════════════
        conn.execute(sa_text("""
            CREATE TABLE IF NOT EXISTS course_enrollments (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                course_id TEXT NOT NULL,
                student_id TEXT NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                UNIQUE(course_id, student_id),
                FOREIGN KEY(course_id) REFERENCES courses(id) ON DELETE CASCADE,
                FOREIGN KEY(student_id) REFERENCES students(id) ON DELETE CASCADE
            )
        """))

        conn.execute(sa_text("CREATE INDEX IF NOT EXISTS idx_enrollments_course ON course_enrollments(course_id)"))
