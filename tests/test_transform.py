import datetime as dt
from decimal import Decimal

from transform import (
    to_class_entry,
    to_exam_qa,
    to_note,
    to_study_goal,
    to_todo,
    to_transaction,
    transform_all,
)


def test_note_renames_and_defaults():
    note = to_note({
        "_id": "n1",
        "title": "Cells",
        "content": "Mitochondria",
        "subject": "Biology",
        "tags": ["bio", "", None, "exam"],
        "createdAt": "2025-02-01T08:00:00",
    })
    assert note.id == "n1"
    assert note.tags == ["bio", "exam"]
    assert note.status == "active"
    assert note.created_at == dt.datetime(2025, 2, 1, 8, 0)
    assert note.updated_at is None


def test_note_with_nothing_but_an_id_does_not_raise():
    note = to_note({"_id": "n2", "tags": "not-a-list", "status": "deleted"})
    assert note.title == ""
    assert note.tags == []
    assert note.status == "active"


def test_exam_qa_questions_skip_non_objects():
    qa = to_exam_qa({
        "_id": "e1",
        "subject": "Maths",
        "topic": "Limits",
        "questions": [{"_id": "q1", "question": "What?", "answer": "That."}, "junk"],
    })
    assert [q.id for q in qa.questions] == ["q1"]
    assert qa.questions[0].answer == "That."


def test_class_entry_keeps_times_as_text_and_renames_room():
    entry = to_class_entry({
        "_id": "c1",
        "subject": "Physics",
        "teacher": "Dr. Ray",
        "day": "Monday",
        "startTime": "09:00",
        "endTime": "10:30",
        "roomno": "B12",
    })
    assert entry.start_time == "09:00"
    assert entry.end_time == "10:30"
    assert entry.room_number == "B12"


def test_study_goal_renames_and_tasks():
    goal = to_study_goal({
        "_id": "g1",
        "goalTitle": "Pass finals",
        "deadline": "2025-06-30T00:00:00",
        "tasks": [
            {"_id": "t1", "title": "Revise", "isCompleted": True, "dueDate": "2025-06-01"},
            {"_id": "t2", "title": "Practice", "isCompleted": "yes"},
        ],
    })
    assert goal.title == "Pass finals"
    assert goal.target_date == dt.date(2025, 6, 30)
    assert [t.completed for t in goal.tasks] == [True, False]
    assert goal.tasks[0].due_date == dt.date(2025, 6, 1)


def test_study_goal_without_progress_has_no_override():
    assert to_study_goal({"_id": "g1"}).progress is None
    assert to_study_goal({"_id": "g1", "progress": "50"}).progress is None
    assert to_study_goal({"_id": "g1", "progress": True}).progress is None
    assert to_study_goal({"_id": "g1", "progress": 0}).progress is None
    assert to_study_goal({"_id": "g1", "progress": -5}).progress is None


def test_study_goal_numeric_progress_is_kept_and_clamped():
    assert to_study_goal({"_id": "g1", "progress": 40}).progress == 40.0
    assert to_study_goal({"_id": "g1", "progress": 140}).progress == 100.0


def test_todo_unknown_enums_fall_back_to_defaults():
    todo = to_todo({"_id": "t1", "title": "Essay", "priority": "Urgent", "status": "done"})
    assert todo.priority == "Medium"
    assert todo.status == "pending"
    assert todo.description is None
    assert todo.category is None


def test_todo_bad_due_date_becomes_none():
    todo = to_todo({"_id": "t1", "dueDate": "next week"})
    assert todo.due_date is None


def test_transaction_note_falls_back_to_description():
    tx = to_transaction({
        "_id": "b1",
        "amount": "12.50",
        "type": "expense",
        "category": "food",
        "description": "Lunch",
        "date": "2025-01-05",
        "isRecurring": True,
        "recurringFrequency": "weekly",
        "userId": "user-1",
    })
    assert tx.note == "Lunch"
    assert tx.amount == Decimal("12.50")
    assert tx.date == dt.date(2025, 1, 5)
    assert tx.is_recurring is True
    assert tx.recurring_frequency == "weekly"
    assert tx.user_id == "user-1"


def test_transaction_defaults():
    tx = to_transaction({"_id": "b2", "amount": -5, "type": "refund", "recurringFrequency": "hourly"})
    assert tx.type == "expense"
    assert tx.amount == Decimal("5")
    assert tx.recurring_frequency is None
    assert tx.date is None


def test_transform_all_skips_non_objects():
    rows = [{"_id": "a"}, None, "b", 3, {"_id": "c"}]
    assert [n.id for n in transform_all(to_note, rows)] == ["a", "c"]
