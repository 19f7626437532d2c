# schemas/users_schema.py
"""
Users Schema
- Faculty, department admins and super admins
- Role drives page visibility (see core.policy)
"""
from __future__ import annotations
from sqlalchemy.engine import Engine
from sqlalchemy import text as sa_text
from core.schema_registry import register


@register("users")
def install_schema(engine: Engine) -> None:
    with engine.begin() as conn:
        conn.execute(sa_text("""
            CREATE TABLE IF NOT EXISTS users (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                email TEXT UNIQUE NOT NULL,
                role TEXT NOT NULL DEFAULT 'faculty'
                    CHECK (role IN ('faculty', 'admin', 'superadmin')),
                department_id TEXT,
                active INTEGER NOT NULL DEFAULT 1,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """))

        conn.execute(sa_text("CREATE INDEX IF NOT EXISTS idx_users_role ON users(role)"))
        conn.execute(sa_text("CREATE INDEX IF NOT EXISTS idx_users_department ON users(department_id)"))
