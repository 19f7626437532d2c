# schemas/marks_schema.py
"""
Marks Schema

One row per (course, student, assessment). ``assessment`` is the
assessment tool's name; ``scores_json`` maps question label (CO id,
"External" or "Score") to the integer mark.
"""
from __future__ import annotations
from sqlalchemy.engine import Engine
from sqlalchemy import text as sa_text
from core.schema_registry import register


@register("marks")
def install_schema(engine: Engine) -> None:
    with engine.begin() as conn:
        conn.execute(sa_text("""
            CREATE TABLE IF NOT EXISTS marks (
                id TEXT PRIMARY KEY,
                course_id TEXT NOT NULL,
                student_id TEXT NOT NULL,
                assessment TEXT NOT NULL,
                scores_json TEXT NOT NULL DEFAULT '{}',

                -- Set on improvement-test records: name of the remediated assessment
                improvement_target TEXT,

                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP,

                UNIQUE(course_id, student_id, assessment),
                FOREIGN KEY(course_id) REFERENCES courses(id) ON DELETE CASCADE
            )
        """))

        conn.execute(sa_text("CREATE INDEX IF NOT EXISTS idx_marks_course_assessment ON marks(course_id, assessment)"))
        conn.execute(sa_text("CREATE INDEX IF NOT EXISTS idx_marks_student ON marks(student_id)"))
