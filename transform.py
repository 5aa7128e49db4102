"""Map raw backend records onto the view models in schemas.py.

Every function here is pure and total: a missing or malformed optional field
is replaced with an empty value instead of raising, because the backend's
payloads are not trusted to follow its own contract.
"""
from typing import Any, Callable, Iterable, Optional, TypeVar

from schemas import (
    ClassEntry,
    ExamQASet,
    Note,
    Question,
    StudyGoal,
    Task,
    TodoItem,
    Transaction,
)
from utils import parse_timestamp, to_calendar_date, to_decimal

T = TypeVar("T")

PRIORITIES = ("Low", "Medium", "High")
TODO_STATUSES = ("pending", "in-progress", "completed")
NOTE_STATUSES = ("active", "archived")
FREQUENCIES = ("daily", "weekly", "monthly", "yearly")


def _text(value: Any) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ""
    return str(value)


def _optional_text(value: Any) -> Optional[str]:
    text = _text(value)
    return text or None


def _choice(value: Any, allowed: tuple[str, ...], default: Optional[str]) -> Optional[str]:
    return value if value in allowed else default


def _record_id(raw: dict) -> str:
    return _text(raw.get("_id") or raw.get("id"))


def _rows(value: Any) -> list[dict]:
    if not isinstance(value, list):
        return []
    return [row for row in value if isinstance(row, dict)]


def to_note(raw: dict) -> Note:
    tags = raw.get("tags")
    return Note(
        id=_record_id(raw),
        title=_text(raw.get("title")),
        content=_text(raw.get("content")),
        subject=_text(raw.get("subject")),
        tags=[_text(tag) for tag in tags if _text(tag)] if isinstance(tags, list) else [],
        status=_choice(raw.get("status"), NOTE_STATUSES, "active"),
        created_at=parse_timestamp(raw.get("createdAt")),
        updated_at=parse_timestamp(raw.get("updatedAt")),
    )


def to_exam_qa(raw: dict) -> ExamQASet:
    return ExamQASet(
        id=_record_id(raw),
        subject=_text(raw.get("subject")),
        topic=_text(raw.get("topic")),
        questions=[
            Question(
                id=_record_id(q),
                question=_text(q.get("question")),
                answer=_text(q.get("answer")),
            )
            for q in _rows(raw.get("questions"))
        ],
        created_at=parse_timestamp(raw.get("createdAt")),
    )


def to_class_entry(raw: dict) -> ClassEntry:
    return ClassEntry(
        id=_record_id(raw),
        subject=_text(raw.get("subject")),
        teacher=_text(raw.get("teacher")),
        day=_text(raw.get("day")),
        start_time=_text(raw.get("startTime")),
        end_time=_text(raw.get("endTime")),
        room_number=_text(raw.get("roomno") or raw.get("roomNumber")),
        created_at=parse_timestamp(raw.get("createdAt")),
        updated_at=parse_timestamp(raw.get("updatedAt")),
    )


def to_task(raw: dict) -> Task:
    return Task(
        id=_record_id(raw),
        title=_text(raw.get("title")),
        description=_text(raw.get("description")),
        completed=raw.get("isCompleted") is True,
        due_date=to_calendar_date(raw.get("dueDate")),
    )


def to_study_goal(raw: dict) -> StudyGoal:
    # the backend stores 0 for goals that were never given an override
    progress = raw.get("progress")
    if isinstance(progress, bool) or not isinstance(progress, (int, float)) or progress <= 0:
        progress = None
    else:
        progress = min(max(float(progress), 0.0), 100.0)
    return StudyGoal(
        id=_record_id(raw),
        title=_text(raw.get("goalTitle") or raw.get("title")),
        description=_text(raw.get("description")),
        tasks=[to_task(task) for task in _rows(raw.get("tasks"))],
        created_at=parse_timestamp(raw.get("createdAt")),
        target_date=to_calendar_date(raw.get("deadline")),
        progress=progress,
    )


def to_todo(raw: dict) -> TodoItem:
    return TodoItem(
        id=_record_id(raw),
        title=_text(raw.get("title")),
        description=_optional_text(raw.get("description")),
        priority=_choice(raw.get("priority"), PRIORITIES, "Medium"),
        category=_optional_text(raw.get("category")),
        due_date=to_calendar_date(raw.get("dueDate")),
        status=_choice(raw.get("status"), TODO_STATUSES, "pending"),
        created_at=parse_timestamp(raw.get("createdAt")),
    )


def to_transaction(raw: dict) -> Transaction:
    note = raw.get("note")
    if note is None:
        note = raw.get("description")
    amount = to_decimal(raw.get("amount"))
    return Transaction(
        id=_record_id(raw),
        amount=abs(amount),
        type=_choice(raw.get("type"), ("income", "expense"), "expense"),
        category=_text(raw.get("category")),
        note=_text(note),
        date=to_calendar_date(raw.get("date")),
        is_recurring=raw.get("isRecurring") is True,
        recurring_frequency=_choice(raw.get("recurringFrequency"), FREQUENCIES, None),
        user_id=_text(raw.get("userId")),
        created_at=parse_timestamp(raw.get("createdAt")),
        updated_at=parse_timestamp(raw.get("updatedAt")),
    )


def transform_all(fn: Callable[[dict], T], rows: Iterable[Any]) -> list[T]:
    """Transform every object row, skipping anything that is not a JSON object."""
    return [fn(row) for row in rows if isinstance(row, dict)]
