"""
Labelled field extraction for task messages.

Expected format:
    "Task: Buy groceries, Due: tomorrow 5pm, Priority: High, Course: Math, Repeat: Weekly"

Every label is optional. Without a Task: label the whole message is the
description, so "just type your task" works. A Task: label with nothing
after it gives an empty description, which validation rejects.
"""
import logging
import re
from typing import Optional

from errors import ValidationError
from models import Priority, Repeat, TaskFields

logger = logging.getLogger(__name__)

MIN_MESSAGE_LENGTH = 5

LABELS = ("task", "due", "priority", "course", "repeat")
_LABEL_PATTERNS = {
    label: re.compile(rf"(?<![a-z]){label}:\s*([^,]*)", re.IGNORECASE)
    for label in LABELS
}


def find_label(message: str, label: str) -> Optional[str]:
    """Value of `label:` up to the next comma, or None if absent or blank."""
    m = _LABEL_PATTERNS[label].search(message)
    if not m:
        return None
    value = m.group(1).strip()
    return value or None


def extract(message: Optional[str]) -> TaskFields:
    """Split a message into task fields.

    Priority and repeat are normalized to their canonical spelling; values
    outside the allowed set are dropped so the defaults apply later.
    """
    text = (message or "").strip()
    if len(text) < MIN_MESSAGE_LENGTH:
        raise ValidationError(
            "Message is too short to be a task. Please include at least a task description."
        )

    if _LABEL_PATTERNS["task"].search(text):
        # a blank "Task:" stays blank and fails validation
        description = find_label(text, "task") or ""
    else:
        description = text

    priority_text = find_label(text, "priority")
    priority = Priority.parse(priority_text)
    if priority_text and priority is None:
        logger.info("Ignoring unknown priority %r", priority_text)

    repeat_text = find_label(text, "repeat")
    repeat = Repeat.parse(repeat_text)
    if repeat_text and repeat is None:
        logger.info("Ignoring unknown repeat %r", repeat_text)

    return TaskFields(
        description=description,
        due=find_label(text, "due"),
        priority=priority.value if priority else None,
        course=find_label(text, "course"),
        repeat=repeat.value if repeat else None,
    )
