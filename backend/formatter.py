"""
Reply text for chat. Pure functions: no I/O and no clock reads, so output
depends only on the arguments.
"""
from datetime import datetime, tzinfo
from typing import Optional

from models import Priority, Repeat, Status, Task

# Fixed English names keep output independent of the process locale
MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
          "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

STATUS_ICONS = {
    Status.NEW: "🆕",
    Status.IN_PROGRESS: "⏳",
    Status.DONE: "✅",
}

PRIORITY_ICONS = {
    Priority.LOW: "🟢",
    Priority.MEDIUM: "🟡",
    Priority.HIGH: "🔴",
}

MAX_DESCRIPTION_LENGTH = 200

NO_TASKS_MESSAGE = "You don't have any tasks yet. Add one by sending a message!"
NO_TASKS_TODAY_MESSAGE = "Nothing due today. Send *show tasks* to see everything."

HELP_MESSAGE = (
    "👋 *Welcome to TaskBot!*\n\n"
    "I'm your chat task manager. Here's how you can use me:\n\n"
    "*Add a Task:*\n"
    "Send any message or use format: Task: [description], Due: [date], "
    "Priority: [level], Course: [name], Repeat: [frequency]\n\n"
    "*Example:*\n"
    "Task: Submit assignment, Due: tomorrow at 5pm, Priority: High, Course: Math\n\n"
    "*Due dates:* today, tomorrow, tomorrow at 5pm, 3/15 or 3/15/2025\n\n"
    "*Other Commands:*\n"
    "• *show tasks* - View all your tasks\n"
    "• *today* or *agenda* - See today's tasks\n"
    "• *delete [number]* - Remove a task from the last list\n"
    "• *done [number]* - Mark a task from the last list as completed\n\n"
    "Need more help? Just type *help* anytime!"
)


def truncate(text: str, limit: int = MAX_DESCRIPTION_LENGTH) -> str:
    if len(text) <= limit:
        return text
    return text[:limit - 1].rstrip() + "…"


def format_due_date(moment: datetime, tz: Optional[tzinfo] = None) -> str:
    """e.g. "Mar 1, 2024 at 11:59 PM"."""
    if tz is not None and moment.tzinfo is not None:
        moment = moment.astimezone(tz)
    hour = moment.hour % 12 or 12
    meridiem = "AM" if moment.hour < 12 else "PM"
    return (f"{MONTHS[moment.month - 1]} {moment.day}, {moment.year} "
            f"at {hour}:{moment.minute:02d} {meridiem}")


def format_task(task: Task, position: Optional[int] = None, tz: Optional[tzinfo] = None) -> str:
    prefix = f"{position}. " if position is not None else ""
    lines = [
        f"{prefix}{STATUS_ICONS[task.status]} *{truncate(task.description)}*",
        f"  📅 Due: {format_due_date(task.due_date, tz)}",
        f"  {PRIORITY_ICONS[task.priority]} {task.priority.value}",
    ]
    if task.course:
        lines.append(f"  📚 Course: {task.course}")
    if task.repeat != Repeat.NONE:
        lines.append(f"  🔄 Repeat: {task.repeat.value}")
    return "\n".join(lines) + "\n"


def format_task_list(
    tasks: list[Task],
    title: str = "Your Tasks",
    tz: Optional[tzinfo] = None,
    total: Optional[int] = None,
    empty_message: str = NO_TASKS_MESSAGE,
) -> str:
    """Numbered list; the numbers are what "done N" and "delete N" refer to."""
    if not tasks:
        return empty_message

    body = "\n".join(
        format_task(task, position, tz) for position, task in enumerate(tasks, start=1)
    )
    message = f"*{title}:*\n\n{body}"
    if total is not None and total > len(tasks):
        message += f"\n…and {total - len(tasks)} more."
    message += "\nReply *done [number]* or *delete [number]* to update a task."
    return message


def format_help() -> str:
    return HELP_MESSAGE


def format_error(message: str) -> str:
    return f"❌ *Error:* {message}"


def format_success(message: str) -> str:
    return f"✅ *Success:* {message}"


def format_created(task: Task, tz: Optional[tzinfo] = None) -> str:
    return f"*Task Added Successfully!*\n\n{format_task(task, tz=tz)}"


def format_done(task: Task, tz: Optional[tzinfo] = None) -> str:
    message = format_success(f'Task "{truncate(task.description)}" marked as done!')
    if task.next_task is not None:
        message += (f"\n\n🔄 Next {task.repeat.value.lower()} occurrence:\n"
                    f"{format_task(task.next_task, tz=tz)}")
    return message


def format_deleted() -> str:
    return format_success("Task deleted successfully!")
