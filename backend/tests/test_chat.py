"""
Tests for chat.py - one message in, one reply out.
"""
import os
import sys
from datetime import datetime

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import database
import tasks
from chat import handle_message
from errors import StorageError
from models import ListContext

PHONE = "+15550001111"
OTHER_PHONE = "+15550002222"

NOW = datetime(2024, 3, 1, 9, 0)


def send(text, phone=PHONE, **kwargs):
    return handle_message(phone, text, now=NOW, **kwargs)


class TestHelpAndCreate:
    def test_greeting_gets_help(self, test_db):
        assert "Welcome to TaskBot" in send("hi")

    def test_labelled_create(self, test_db):
        reply = send("Task: Buy milk, Priority: High, Course: Errands")
        assert "Task Added Successfully" in reply
        assert "Buy milk" in reply
        assert "🔴" in reply
        assert "Errands" in reply

    def test_plain_create_due_end_of_day(self, test_db):
        reply = send("Submit assignment")
        assert "Submit assignment" in reply
        assert "Mar 1, 2024 at 11:59 PM" in reply

    def test_too_short(self, test_db):
        reply = send("ab")
        assert reply.startswith("❌")
        assert "too short" in reply

    def test_blank_task_label(self, test_db):
        reply = send("Task: , Due: tomorrow")
        assert reply.startswith("❌")
        assert "description is required" in reply
        owner = database.find_or_create_owner(PHONE)
        assert tasks.list_tasks(owner).total == 0

    def test_due_date_past_year_9999(self, test_db):
        reply = send("Task: Essay, Due: 9999-12-31T23:59:59-05:00")
        assert reply.startswith("❌")
        assert "Could not understand due date" in reply

    def test_bad_due_date(self, test_db):
        reply = send("Task: Essay, Due: someday")
        assert reply.startswith("❌")
        assert "someday" in reply
        owner = database.find_or_create_owner(PHONE)
        assert tasks.list_tasks(owner).total == 0


class TestShowAndAct:
    def _seed(self):
        send("Task: First, Due: 3/2/2024")
        send("Task: Second, Due: 3/3/2024")

    def test_show_tasks_numbered(self, test_db):
        self._seed()
        reply = send("show tasks")
        assert reply.index("1. 🆕 *First*") < reply.index("2. 🆕 *Second*")

    def test_show_tasks_empty(self, test_db):
        assert "don't have any tasks" in send("show tasks")

    def test_done_by_number(self, test_db):
        self._seed()
        send("show tasks")
        reply = send("done 2")
        assert 'Task "Second" marked as done!' in reply
        assert "✅ *Second*" in send("show tasks")

    def test_delete_by_number(self, test_db):
        self._seed()
        assert "deleted successfully" in send("delete 1")
        reply = send("show tasks")
        assert "First" not in reply
        assert "1. 🆕 *Second*" in reply

    def test_invalid_number(self, test_db):
        self._seed()
        assert "Invalid task number 5" in send("delete 5")

    def test_superscript_number_gets_one_reply(self, test_db):
        self._seed()
        for text in ("delete ²", "done ²"):
            reply = send(text)
            assert reply.startswith("❌")
            assert "Task not found" in reply
        assert "1. 🆕 *First*" in send("show tasks")

    def test_missing_number(self, test_db):
        assert "Please specify which task to delete" in send("delete")
        assert "Please specify which task to mark as done" in send("done")

    def test_numbers_follow_last_list_shown(self, test_db):
        send("Task: Early, Due: today at 9am, Priority: Low")
        send("Task: Important, Priority: High")

        today = send("today")
        assert today.index("Important") < today.index("Early")

        send("done 1")
        owner = database.find_or_create_owner(PHONE)
        assert owner.list_context == ListContext.TODAY
        done = tasks.list_tasks(owner, tasks.build_query(status="Done")).tasks
        assert [t.description for t in done] == ["Important"]

    def test_repeating_done_reports_next(self, test_db):
        send("Task: Gym, Due: 3/1/2024, Repeat: Daily")
        reply = send("done 1")
        assert "Next daily occurrence" in reply
        assert "Mar 2, 2024" in reply

    def test_owners_are_isolated(self, test_db):
        self._seed()
        assert "don't have any tasks" in send("show tasks", phone=OTHER_PHONE)
        assert "Invalid task number 1" in send("done 1", phone=OTHER_PHONE)


class TestOwnerAndFailures:
    def test_profile_name_saved(self, test_db):
        send("hi", name="Sam")
        assert database.find_or_create_owner(PHONE).name == "Sam"

    def test_storage_error_gets_generic_reply(self, test_db, monkeypatch):
        def broken(*args, **kwargs):
            raise StorageError("disk I/O error")

        monkeypatch.setattr(database, "find_or_create_owner", broken)
        reply = send("show tasks")
        assert reply.startswith("❌")
        assert "try again later" in reply
        assert "disk" not in reply

    def test_unexpected_error_gets_generic_reply(self, test_db, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(tasks, "list_tasks", broken)
        reply = send("show tasks")
        assert "try again later" in reply
        assert "boom" not in reply

    def test_whatsapp_prefix_same_owner(self, test_db):
        send("Task: Buy milk")
        reply = handle_message(f"whatsapp:{PHONE}", "show tasks", now=NOW)
        assert "Buy milk" in reply
