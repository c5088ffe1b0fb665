"""
One inbound chat message in, exactly one reply out.

handle_message() never raises: every failure becomes a formatted error
reply, because the messaging transport expects a reply to every message.
"""
import logging
from datetime import datetime
from typing import Optional

import database
import formatter
import tasks
from commands import Command, Intent, interpret
from config import settings
from errors import NotFoundError, StorageError, ValidationError
from extractor import extract
from models import ListContext, Owner

logger = logging.getLogger(__name__)

TRY_AGAIN = "Something went wrong on our side. Please try again later."


def _task_ref(command: Command, verb: str, keyword: str) -> tasks.TaskRef:
    if command.position is not None:
        return command.position
    if not command.raw:
        raise ValidationError(f'Please specify which task to {verb} using "{keyword} [number]".')
    if command.raw.isdecimal():
        return int(command.raw)
    return command.raw


def _not_found(ref: tasks.TaskRef) -> NotFoundError:
    if isinstance(ref, int):
        return NotFoundError(
            f"Invalid task number {ref}. Send *show tasks* to see your numbered list."
        )
    return NotFoundError("Task not found or already deleted.")


def _help(owner: Owner, command: Command, now: Optional[datetime]) -> str:
    return formatter.format_help()


def _show_tasks(owner: Owner, command: Command, now: Optional[datetime]) -> str:
    page = tasks.list_tasks(owner, tasks.chat_query())
    database.set_list_context(owner.id, ListContext.ALL)
    return formatter.format_task_list(page.tasks, "Your Tasks", settings.tz, page.total)


def _show_today(owner: Owner, command: Command, now: Optional[datetime]) -> str:
    todays = tasks.list_due_today(owner, now)
    database.set_list_context(owner.id, ListContext.TODAY)
    return formatter.format_task_list(
        todays, "Today's Tasks", settings.tz,
        empty_message=formatter.NO_TASKS_TODAY_MESSAGE,
    )


def _delete_task(owner: Owner, command: Command, now: Optional[datetime]) -> str:
    ref = _task_ref(command, "delete", "delete")
    if not tasks.delete_task(owner, ref, owner.list_context, now):
        raise _not_found(ref)
    return formatter.format_deleted()


def _mark_done(owner: Owner, command: Command, now: Optional[datetime]) -> str:
    ref = _task_ref(command, "mark as done", "done")
    task = tasks.mark_done(owner, ref, owner.list_context, now)
    if task is None:
        raise _not_found(ref)
    return formatter.format_done(task, settings.tz)


def _create_task(owner: Owner, command: Command, now: Optional[datetime]) -> str:
    fields = extract(command.raw)
    task = tasks.create_task(owner, fields, now)
    return formatter.format_created(task, settings.tz)


HANDLERS = {
    Intent.HELP: _help,
    Intent.SHOW_TASKS: _show_tasks,
    Intent.SHOW_TODAY: _show_today,
    Intent.DELETE_TASK: _delete_task,
    Intent.MARK_DONE: _mark_done,
    Intent.CREATE_TASK: _create_task,
}


def handle_message(
    phone_key: str,
    text: Optional[str],
    name: Optional[str] = None,
    now: Optional[datetime] = None,
) -> str:
    """Interpret a message from `phone_key` and return the reply text."""
    intent = "unknown"
    try:
        command = interpret(text)
        intent = command.intent.value
        logger.info("Detected command %s (position=%s)", intent, command.position)
        owner = database.find_or_create_owner(phone_key, name)
        return HANDLERS[command.intent](owner, command, now)
    except ValidationError as exc:
        return formatter.format_error(" ".join(exc.errors))
    except NotFoundError as exc:
        return formatter.format_error(str(exc))
    except StorageError as exc:
        logger.error("Storage failure handling %s from %s: %s", intent, phone_key, exc)
        return formatter.format_error(TRY_AGAIN)
    except Exception:
        logger.exception("Unexpected error handling %s from %s", intent, phone_key)
        return formatter.format_error(TRY_AGAIN)
