"""
Command classification for inbound chat messages.

First match wins:
    hi / hello / ? / hola / hey / help   -> help
    today / agenda / show today          -> showToday
    show ... / tasks                     -> showTasks
    delete N                             -> deleteTask
    done N / complete N                  -> markDone
    anything else                        -> createTask

N is a 1-based position in the list the user was last shown.

Known limitation: a task whose text starts with "show", "delete", "done" or
"complete" is read as a command.
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel

GREETINGS = {"hi", "hello", "?", "hola", "hey", "help"}
TODAY_COMMANDS = {"today", "agenda", "show today"}


class Intent(str, Enum):
    HELP = "help"
    SHOW_TASKS = "showTasks"
    SHOW_TODAY = "showToday"
    DELETE_TASK = "deleteTask"
    MARK_DONE = "markDone"
    CREATE_TASK = "createTask"


class Command(BaseModel):
    intent: Intent
    position: Optional[int] = None  # 1-based, delete/done only
    raw: Optional[str] = None       # argument text, or the whole message for createTask


def _argument(remainder: str) -> tuple[Optional[int], Optional[str]]:
    remainder = remainder.strip()
    if not remainder:
        return None, None
    if remainder.isdecimal() and int(remainder) > 0:
        return int(remainder), remainder
    return None, remainder


def classify(message: Optional[str]) -> Command:
    normalized = " ".join((message or "").strip().lower().split())
    if not normalized or normalized in GREETINGS:
        return Command(intent=Intent.HELP)

    if normalized in TODAY_COMMANDS:
        return Command(intent=Intent.SHOW_TODAY)

    first_word, _, remainder = normalized.partition(" ")

    if first_word == "show" or normalized == "tasks":
        return Command(intent=Intent.SHOW_TASKS)

    if first_word == "delete":
        position, raw = _argument(remainder)
        return Command(intent=Intent.DELETE_TASK, position=position, raw=raw)

    if first_word in ("done", "complete"):
        position, raw = _argument(remainder)
        return Command(intent=Intent.MARK_DONE, position=position, raw=raw)

    return Command(intent=Intent.CREATE_TASK, raw=message.strip())


def interpret(raw_text: Optional[str]) -> Command:
    """Entry point for the transport layer."""
    return classify(raw_text)
