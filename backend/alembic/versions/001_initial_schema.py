"""Initial schema - owners and their tasks

Revision ID: 001
Revises: None
Create Date: 2025-03-01

"""
from typing import Sequence, Union

from alembic import op
from sqlalchemy import text

revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()

    # Owners are keyed by normalized phone number (+E.164)
    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS owners (
            id TEXT PRIMARY KEY,
            phone_key TEXT NOT NULL UNIQUE,
            name TEXT,
            created_at TEXT NOT NULL,
            last_active_at TEXT NOT NULL,
            list_context TEXT NOT NULL DEFAULT 'all'
        )
    """))

    # Timestamps are UTC ISO-8601 strings, so text order is time order
    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS tasks (
            id TEXT PRIMARY KEY,
            owner_id TEXT NOT NULL REFERENCES owners(id),
            description TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'New',
            priority TEXT NOT NULL DEFAULT 'Medium',
            due_date TEXT NOT NULL,
            course TEXT,
            repeat TEXT NOT NULL DEFAULT 'none',
            created_at TEXT NOT NULL
        )
    """))

    conn.execute(text(
        "CREATE INDEX IF NOT EXISTS ix_tasks_owner_due ON tasks (owner_id, due_date)"
    ))
    conn.execute(text(
        "CREATE INDEX IF NOT EXISTS ix_tasks_owner_status ON tasks (owner_id, status)"
    ))


def downgrade() -> None:
    conn = op.get_bind()
    conn.execute(text("DROP INDEX IF EXISTS ix_tasks_owner_status"))
    conn.execute(text("DROP INDEX IF EXISTS ix_tasks_owner_due"))
    conn.execute(text("DROP TABLE IF EXISTS tasks"))
    conn.execute(text("DROP TABLE IF EXISTS owners"))
