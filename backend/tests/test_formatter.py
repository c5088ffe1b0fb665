"""
Tests for formatter.py - reply text for chat.
"""
import os
import sys
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from formatter import (
    NO_TASKS_MESSAGE,
    format_created,
    format_done,
    format_due_date,
    format_error,
    format_help,
    format_success,
    format_task,
    format_task_list,
    truncate,
)
from models import Priority, Repeat, Status, Task


def _task(description="Buy milk", **extra):
    values = {
        "id": "task-1",
        "owner_id": "owner-1",
        "description": description,
        "due_date": datetime(2024, 3, 1, 23, 59, 59, tzinfo=timezone.utc),
        "created_at": datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc),
    }
    values.update(extra)
    return Task(**values)


class TestDueDate:
    def test_evening(self):
        assert format_due_date(datetime(2024, 3, 1, 23, 59, 59)) == "Mar 1, 2024 at 11:59 PM"

    def test_midnight_and_noon(self):
        assert format_due_date(datetime(2024, 3, 1, 0, 5)) == "Mar 1, 2024 at 12:05 AM"
        assert format_due_date(datetime(2024, 3, 1, 12, 0)) == "Mar 1, 2024 at 12:00 PM"

    def test_converted_to_display_zone(self):
        moment = datetime(2024, 3, 2, 3, 0, tzinfo=timezone.utc)
        assert format_due_date(moment, ZoneInfo("America/New_York")) == "Mar 1, 2024 at 10:00 PM"


class TestTask:
    """Tests for a single task block."""

    def test_glyphs(self):
        text = format_task(_task(status=Status.IN_PROGRESS, priority=Priority.HIGH))
        assert "⏳ *Buy milk*" in text
        assert "🔴 High" in text
        assert "📅 Due: Mar 1, 2024 at 11:59 PM" in text

    def test_optional_lines(self):
        plain = format_task(_task())
        assert "Course" not in plain
        assert "Repeat" not in plain

        full = format_task(_task(course="Errands", repeat=Repeat.WEEKLY))
        assert "📚 Course: Errands" in full
        assert "🔄 Repeat: Weekly" in full

    def test_position_prefix(self):
        assert format_task(_task(), position=3).startswith("3. 🆕")

    def test_long_description_truncated(self):
        text = format_task(_task("x" * 500))
        assert "x" * 200 not in text
        assert "…" in text

    def test_truncate_short_text_unchanged(self):
        assert truncate("short") == "short"
        assert len(truncate("y" * 300)) == 200


class TestTaskList:
    def test_empty(self):
        assert format_task_list([]) == NO_TASKS_MESSAGE
        assert format_task_list([], empty_message="Nothing today") == "Nothing today"

    def test_numbered_in_order(self):
        text = format_task_list([_task("First"), _task("Second")])
        assert text.startswith("*Your Tasks:*")
        assert text.index("1. 🆕 *First*") < text.index("2. 🆕 *Second*")
        assert "done [number]" in text

    def test_more_footer(self):
        text = format_task_list([_task("First")], total=4)
        assert "…and 3 more." in text
        assert "more." not in format_task_list([_task("First")], total=1)


class TestReplies:
    def test_help(self):
        text = format_help()
        assert "Welcome to TaskBot" in text
        assert "show tasks" in text
        assert "done [number]" in text

    def test_error_and_success(self):
        assert format_error("Nope") == "❌ *Error:* Nope"
        assert format_success("Yes") == "✅ *Success:* Yes"

    def test_created(self):
        text = format_created(_task(priority=Priority.HIGH, course="Errands"))
        assert text.startswith("*Task Added Successfully!*")
        assert "Buy milk" in text
        assert "🔴" in text
        assert "Errands" in text

    def test_done_without_repeat(self):
        text = format_done(_task(status=Status.DONE))
        assert text == '✅ *Success:* Task "Buy milk" marked as done!'

    def test_done_shows_next_occurrence(self):
        upcoming = _task(
            id="task-2",
            repeat=Repeat.WEEKLY,
            due_date=datetime(2024, 3, 8, 23, 59, 59, tzinfo=timezone.utc),
        )
        done = _task(status=Status.DONE, repeat=Repeat.WEEKLY, next_task=upcoming)
        text = format_done(done)
        assert "Next weekly occurrence" in text
        assert "Mar 8, 2024" in text
