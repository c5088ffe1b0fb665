"""
Task lifecycle: validation and defaults, listing, position addressing,
status changes and deletion. Every storage call is scoped by owner id.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

import database
from config import settings
from dates import default_due, next_occurrence, resolve, start_of_day
from errors import ValidationError
from models import (
    ListContext,
    Owner,
    Priority,
    Repeat,
    Status,
    Task,
    TaskDraft,
    TaskFields,
    TaskPage,
    TaskQuery,
)

logger = logging.getLogger(__name__)

TaskRef = Union[int, str]  # 1-based list position, or a stored task id

SORT_ALIASES = {"dueDate": "due_date", "createdAt": "created_at"}


def local_now(now: Optional[datetime] = None) -> datetime:
    """`now` as an aware datetime in the reference timezone."""
    if now is None:
        return datetime.now(settings.tz)
    if now.tzinfo is None:
        return now.replace(tzinfo=settings.tz)
    return now.astimezone(settings.tz)


def _clean(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    return text.strip() or None


def _storable(due: Optional[datetime]) -> Optional[datetime]:
    """`due` as an aware datetime, or None if it has no UTC equivalent."""
    if due is None:
        return None
    if due.tzinfo is None:
        due = due.replace(tzinfo=settings.tz)
    try:
        due.astimezone(timezone.utc)
    except OverflowError:
        return None
    return due


def _resolve_due(fragment: str, now: datetime) -> Optional[datetime]:
    return _storable(resolve(fragment, now))


def validate_task_draft(
    owner_id: str, fields: TaskFields, now: Optional[datetime] = None
) -> tuple[Optional[TaskDraft], list[str]]:
    """Build a draft from loose fields, or return every problem found.

    Unknown priority/repeat/status values are ignored and the defaults kept.
    A missing due date means default_due(); a due date that is given but not
    understood is an error.
    """
    now = local_now(now)
    errors = []

    description = _clean(fields.description)
    if not description:
        errors.append("Task description is required.")

    due_text = _clean(fields.due)
    if due_text is None:
        due_date = default_due(now)
    else:
        due_date = _resolve_due(due_text, now)
        if due_date is None:
            errors.append(
                f"Could not understand due date '{due_text}'. "
                "Try today, tomorrow, tomorrow at 5pm or MM/DD/YYYY."
            )

    if errors:
        return None, errors

    return TaskDraft(
        owner_id=owner_id,
        description=description,
        due_date=due_date,
        status=Status.parse(fields.status) or Status.NEW,
        priority=Priority.parse(fields.priority) or Priority.MEDIUM,
        course=_clean(fields.course),
        repeat=Repeat.parse(fields.repeat) or Repeat.NONE,
    ), []


def create_task(owner: Owner, fields: TaskFields, now: Optional[datetime] = None) -> Task:
    draft, errors = validate_task_draft(owner.id, fields, now)
    if errors:
        raise ValidationError(errors)
    task = database.insert_task(draft)
    logger.info("Task %s created for owner %s", task.id, owner.id)
    return task


def build_query(
    status: Optional[str] = None,
    priority: Optional[str] = None,
    course: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    sort: Optional[str] = None,
    order: Optional[str] = None,
    limit: Optional[int] = None,
    skip: int = 0,
) -> TaskQuery:
    """TaskQuery from loose inputs. Unknown filter values mean no filter."""
    sort = SORT_ALIASES.get(sort, sort)
    if sort not in database.SORT_COLUMNS:
        sort = "due_date"
    if limit is None:
        limit = settings.DEFAULT_PAGE_LIMIT
    return TaskQuery(
        status=Status.parse(status),
        priority=Priority.parse(priority),
        course=_clean(course),
        start=start,
        end=end,
        sort=sort,
        order="desc" if (order or "").lower() == "desc" else "asc",
        limit=max(1, min(limit, settings.MAX_PAGE_LIMIT)),
        skip=max(0, skip),
    )


def list_tasks(owner: Owner, query: Optional[TaskQuery] = None) -> TaskPage:
    query = query or build_query()
    tasks = database.query_tasks(owner.id, query)
    total = database.count_tasks(owner.id, query)
    return TaskPage(
        tasks=tasks,
        total=total,
        has_more=total > query.skip + query.limit,
    )


def chat_query() -> TaskQuery:
    """The query behind the numbered "show tasks" list."""
    return build_query(limit=settings.CHAT_LIST_LIMIT)


def list_due_today(owner: Owner, now: Optional[datetime] = None) -> list[Task]:
    """Open tasks due today in the reference timezone, highest priority first."""
    day_start = start_of_day(local_now(now))
    query = TaskQuery(
        start=day_start,
        # stored times have second precision
        end=day_start + timedelta(days=1) - timedelta(seconds=1),
        exclude_status=Status.DONE,
        sort="priority",
        order="desc",
        limit=settings.MAX_PAGE_LIMIT,
    )
    return database.query_tasks(owner.id, query)


def resolve_position(
    owner: Owner,
    position: int,
    context: ListContext = ListContext.ALL,
    now: Optional[datetime] = None,
) -> Optional[Task]:
    """Task shown at `position` (1-based) in the list for `context`.

    The list is queried again with the same filter, sort and limit that
    produced it, so a change made in between can shift the numbering.
    """
    if position < 1:
        return None
    if context == ListContext.TODAY:
        tasks = list_due_today(owner, now)
    else:
        tasks = list_tasks(owner, chat_query()).tasks
    if position > len(tasks):
        return None
    return tasks[position - 1]


def resolve_ref(
    owner: Owner,
    ref: TaskRef,
    context: ListContext = ListContext.ALL,
    now: Optional[datetime] = None,
) -> Optional[Task]:
    if isinstance(ref, int):
        return resolve_position(owner, ref, context, now)
    return get_task(owner, ref)


def get_task(owner: Owner, task_id: str) -> Optional[Task]:
    return database.get_task_db(owner.id, task_id)


def _next_due(task: Task) -> Optional[datetime]:
    """Due date of the occurrence after `task`, in the reference timezone."""
    try:
        local_due = task.due_date.astimezone(settings.tz)
    except OverflowError:
        return None
    return _storable(next_occurrence(local_due, task.repeat))


def mark_done(
    owner: Owner,
    ref: TaskRef,
    context: ListContext = ListContext.ALL,
    now: Optional[datetime] = None,
) -> Optional[Task]:
    """Set a task to Done. Already-done tasks stay Done without error.

    A repeating task that was still open gets its next occurrence created,
    returned as `next_task`.
    """
    task = resolve_ref(owner, ref, context, now)
    if task is None:
        return None

    next_due = None
    if task.status != Status.DONE:
        next_due = _next_due(task)
        if next_due is None and task.repeat != Repeat.NONE:
            logger.warning("No next occurrence after %s for task %s", task.due_date, task.id)

    updated = database.update_task_db(owner.id, task.id, status=Status.DONE)
    if updated is None:
        # deleted between lookup and update
        return None
    logger.info("Task %s marked done for owner %s", task.id, owner.id)

    if next_due is not None:
        next_task = database.insert_task(TaskDraft(
            owner_id=owner.id,
            description=task.description,
            due_date=next_due,
            priority=task.priority,
            course=task.course,
            repeat=task.repeat,
        ))
        logger.info("Next %s occurrence %s created from %s",
                    task.repeat.value, next_task.id, task.id)
        updated = updated.model_copy(update={"next_task": next_task})
    return updated


def delete_task(
    owner: Owner,
    ref: TaskRef,
    context: ListContext = ListContext.ALL,
    now: Optional[datetime] = None,
) -> bool:
    task = resolve_ref(owner, ref, context, now)
    if task is None:
        return False
    deleted = database.delete_task_db(owner.id, task.id)
    if deleted:
        logger.info("Task %s deleted for owner %s", task.id, owner.id)
    return deleted


def update_task(
    owner: Owner, task_id: str, fields: TaskFields, now: Optional[datetime] = None
) -> Optional[Task]:
    """Partial update from the web client.

    Status can be set to any value here. Unknown enum values are ignored.
    """
    updates = {}
    errors = []

    if fields.description is not None:
        description = _clean(fields.description)
        if description:
            updates["description"] = description
        else:
            errors.append("Task description cannot be empty.")

    if fields.due is not None:
        due_date = _resolve_due(fields.due, local_now(now))
        if due_date is None:
            errors.append(f"Could not understand due date '{fields.due}'.")
        else:
            updates["due_date"] = due_date

    if errors:
        raise ValidationError(errors)

    for field, enum in (("status", Status), ("priority", Priority), ("repeat", Repeat)):
        value = enum.parse(getattr(fields, field))
        if value is not None:
            updates[field] = value

    if fields.course is not None:
        # blank clears the course
        updates["course"] = _clean(fields.course)

    return database.update_task_db(owner.id, task_id, **updates)
