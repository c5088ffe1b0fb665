import logging
import os
import sqlite3
import subprocess
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Optional

from config import settings
from errors import StorageError, ValidationError
from models import ListContext, Owner, Task, TaskDraft, TaskQuery

logger = logging.getLogger(__name__)

DATABASE_PATH = settings.DATABASE_PATH

# Whitelisted ORDER BY expressions; enum columns sort by rank, not by name
SORT_COLUMNS = {
    "due_date": "due_date",
    "created_at": "created_at",
    "description": "description COLLATE NOCASE",
    "priority": "CASE priority WHEN 'High' THEN 3 WHEN 'Medium' THEN 2 ELSE 1 END",
    "status": "CASE status WHEN 'Done' THEN 3 WHEN 'InProgress' THEN 2 ELSE 1 END",
}

TASK_FIELDS = ("description", "status", "priority", "due_date", "course", "repeat")


@contextmanager
def get_db():
    """Context manager for database connections.

    Any sqlite3 failure surfaces as StorageError.
    """
    try:
        conn = sqlite3.connect(DATABASE_PATH)
    except sqlite3.Error as exc:
        logger.error("Could not open database %s: %s", DATABASE_PATH, exc)
        raise StorageError("Could not open the task database") from exc
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    except sqlite3.Error as exc:
        logger.exception("Database operation failed")
        raise StorageError("Database operation failed") from exc
    finally:
        conn.close()


def init_db():
    """Initialize database by running Alembic migrations."""
    backend_dir = os.path.dirname(os.path.abspath(__file__))
    db_path = os.path.abspath(DATABASE_PATH)
    subprocess.run(
        ["alembic", "-x", f"db_path={db_path}", "upgrade", "head"],
        cwd=backend_dir,
        check=True
    )
    logger.info("Database ready at %s", db_path)


def to_db_time(moment: datetime) -> str:
    """UTC, second precision, so string order matches time order."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=settings.tz)
    return moment.astimezone(timezone.utc).replace(microsecond=0).isoformat()


def from_db_time(value: str) -> datetime:
    moment = datetime.fromisoformat(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def _utcnow() -> str:
    return to_db_time(datetime.now(timezone.utc))


def normalize_phone_key(raw: Optional[str]) -> str:
    """Strip transport prefix and whitespace, force a leading '+'."""
    key = (raw or "").strip()
    if key.lower().startswith("whatsapp:"):
        key = key[len("whatsapp:"):]
    key = "".join(key.split())
    if not key or key == "+":
        raise ValidationError("Phone number is required")
    if not key.startswith("+"):
        key = "+" + key
    return key


def _row_to_owner(row) -> Owner:
    return Owner(
        id=row["id"],
        phone_key=row["phone_key"],
        name=row["name"],
        created_at=from_db_time(row["created_at"]),
        last_active_at=from_db_time(row["last_active_at"]),
        list_context=ListContext(row["list_context"] or ListContext.ALL.value),
    )


def _row_to_task(row) -> Task:
    """Convert a database row to a Task model."""
    return Task(
        id=row["id"],
        owner_id=row["owner_id"],
        description=row["description"],
        status=row["status"],
        priority=row["priority"],
        due_date=from_db_time(row["due_date"]),
        course=row["course"] or None,
        repeat=row["repeat"],
        created_at=from_db_time(row["created_at"]),
    )


# Owner operations

def find_or_create_owner(phone_key: str, name: Optional[str] = None) -> Owner:
    """Get the owner for a phone key, creating it on first contact.

    Touches last_active_at (and name, when given) on every call.
    """
    key = normalize_phone_key(phone_key)
    now = _utcnow()
    with get_db() as conn:
        cursor = conn.execute(
            """INSERT OR IGNORE INTO owners
               (id, phone_key, name, created_at, last_active_at, list_context)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (str(uuid.uuid4()), key, name, now, now, ListContext.ALL.value)
        )
        if cursor.rowcount:
            logger.info("New owner %s", key)
        else:
            conn.execute(
                "UPDATE owners SET last_active_at = ?, name = COALESCE(?, name) WHERE phone_key = ?",
                (now, name, key)
            )
        conn.commit()
        row = conn.execute("SELECT * FROM owners WHERE phone_key = ?", (key,)).fetchone()
        return _row_to_owner(row)


def set_list_context(owner_id: str, context: ListContext) -> None:
    """Remember which numbered list the owner was shown last."""
    with get_db() as conn:
        conn.execute(
            "UPDATE owners SET list_context = ? WHERE id = ?",
            (context.value, owner_id)
        )
        conn.commit()


# Task operations

def insert_task(draft: TaskDraft) -> Task:
    task_id = str(uuid.uuid4())
    created_at = _utcnow()
    due_date = to_db_time(draft.due_date)
    with get_db() as conn:
        conn.execute(
            """INSERT INTO tasks
               (id, owner_id, description, status, priority, due_date, course, repeat, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (task_id, draft.owner_id, draft.description, draft.status.value,
             draft.priority.value, due_date, draft.course, draft.repeat.value, created_at)
        )
        conn.commit()

    return Task(
        id=task_id,
        owner_id=draft.owner_id,
        description=draft.description,
        status=draft.status,
        priority=draft.priority,
        due_date=from_db_time(due_date),
        course=draft.course,
        repeat=draft.repeat,
        created_at=from_db_time(created_at),
    )


def get_task_db(owner_id: str, task_id: str) -> Optional[Task]:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM tasks WHERE id = ? AND owner_id = ?",
            (task_id, owner_id)
        ).fetchone()
        if row:
            return _row_to_task(row)
    return None


def _where(owner_id: str, query: TaskQuery) -> tuple[str, list]:
    clauses = ["owner_id = ?"]
    params: list = [owner_id]
    if query.status:
        clauses.append("status = ?")
        params.append(query.status.value)
    if query.exclude_status:
        clauses.append("status != ?")
        params.append(query.exclude_status.value)
    if query.priority:
        clauses.append("priority = ?")
        params.append(query.priority.value)
    if query.course:
        clauses.append("course = ? COLLATE NOCASE")
        params.append(query.course)
    if query.start:
        clauses.append("due_date >= ?")
        params.append(to_db_time(query.start))
    if query.end:
        clauses.append("due_date <= ?")
        params.append(to_db_time(query.end))
    return " AND ".join(clauses), params


def query_tasks(owner_id: str, query: TaskQuery) -> list[Task]:
    """Tasks matching the query, ordered deterministically (id breaks ties)."""
    where, params = _where(owner_id, query)
    column = SORT_COLUMNS.get(query.sort, SORT_COLUMNS["due_date"])
    direction = "DESC" if query.order.lower() == "desc" else "ASC"
    sql = (
        f"SELECT * FROM tasks WHERE {where} "
        f"ORDER BY {column} {direction}, due_date ASC, id ASC "
        "LIMIT ? OFFSET ?"
    )
    with get_db() as conn:
        rows = conn.execute(sql, params + [query.limit, query.skip]).fetchall()
        return [_row_to_task(row) for row in rows]


def count_tasks(owner_id: str, query: TaskQuery) -> int:
    where, params = _where(owner_id, query)
    with get_db() as conn:
        return conn.execute(f"SELECT COUNT(*) FROM tasks WHERE {where}", params).fetchone()[0]


def update_task_db(owner_id: str, task_id: str, **updates) -> Optional[Task]:
    """
    Update a task with any fields provided.
    Only updates fields that differ from current values.

    Args:
        owner_id: Owner the task must belong to
        task_id: Task ID to update
        **updates: description, status, priority, due_date, course, repeat
    """
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM tasks WHERE id = ? AND owner_id = ?",
            (task_id, owner_id)
        ).fetchone()
        if not row:
            return None

        changes = {}
        for field, new_value in updates.items():
            if field not in TASK_FIELDS:
                continue
            if isinstance(new_value, datetime):
                new_value = to_db_time(new_value)
            elif hasattr(new_value, "value"):
                new_value = new_value.value
            if new_value != row[field]:
                changes[field] = new_value

        if changes:
            set_clause = ", ".join(f"{field} = ?" for field in changes.keys())
            values = list(changes.values()) + [task_id, owner_id]
            conn.execute(
                f"UPDATE tasks SET {set_clause} WHERE id = ? AND owner_id = ?", values
            )
            conn.commit()

        # Re-fetch to get current state
        updated_row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        return _row_to_task(updated_row)


def delete_task_db(owner_id: str, task_id: str) -> bool:
    with get_db() as conn:
        cursor = conn.execute(
            "DELETE FROM tasks WHERE id = ? AND owner_id = ?",
            (task_id, owner_id)
        )
        conn.commit()
        return cursor.rowcount > 0
