"""Pydantic schemas: UI view models, outgoing payloads and derived statistics."""
from typing import Literal, Optional
from decimal import Decimal
import datetime as dt
import re

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator

from utils import normalize_iso_date

TITLE_MAX_LEN = 120
NOTE_MAX_LEN = 300
TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")

Priority = Literal["Low", "Medium", "High"]
TodoStatus = Literal["pending", "in-progress", "completed"]
NoteStatus = Literal["active", "archived"]
TransactionType = Literal["income", "expense"]
Frequency = Literal["daily", "weekly", "monthly", "yearly"]
Weekday = Literal[
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"
]
AlertLevel = Literal["warning", "exceeded"]

WEEKDAYS: tuple[str, ...] = (
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday",
)


# View models (what the presentation layer reads)

class UserProfile(BaseModel):
    """Minimal profile kept alongside the bearer token."""
    id: str
    name: str = ""
    email: str = ""
    role: str = "student"


class Note(BaseModel):
    id: str
    title: str = ""
    content: str = ""
    subject: str = ""
    tags: list[str] = Field(default_factory=list)
    status: NoteStatus = "active"
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None


class Question(BaseModel):
    id: str
    question: str = ""
    answer: str = ""


class ExamQASet(BaseModel):
    id: str
    subject: str = ""
    topic: str = ""
    questions: list[Question] = Field(default_factory=list)
    created_at: Optional[dt.datetime] = None


class ClassEntry(BaseModel):
    id: str
    subject: str = ""
    teacher: str = ""
    day: str = ""
    start_time: str = ""  # "HH:MM", compared as text
    end_time: str = ""
    room_number: str = ""
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None


class Task(BaseModel):
    id: str
    title: str = ""
    description: str = ""
    completed: bool = False
    due_date: Optional[dt.date] = None


class StudyGoal(BaseModel):
    """A goal and the tasks it owns.
    'progress' is the manual override; None means progress is derived from tasks.
    """
    id: str
    title: str = ""
    description: str = ""
    tasks: list[Task] = Field(default_factory=list)
    created_at: Optional[dt.datetime] = None
    target_date: Optional[dt.date] = None
    progress: Optional[float] = None


class TodoItem(BaseModel):
    id: str
    title: str = ""
    description: Optional[str] = None
    priority: Priority = "Medium"
    category: Optional[str] = None
    due_date: Optional[dt.date] = None
    status: TodoStatus = "pending"
    created_at: Optional[dt.datetime] = None


class Transaction(BaseModel):
    id: str
    amount: Decimal = Decimal("0")
    type: TransactionType = "expense"
    category: str = ""
    note: str = ""
    date: Optional[dt.date] = None
    is_recurring: bool = False
    recurring_frequency: Optional[Frequency] = None
    user_id: str = ""
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None


# Outgoing payloads (validated before they reach the network)

class StripStringsMixin:
    """Trim surrounding whitespace from every string field."""
    @field_validator("*", mode="before")
    @classmethod
    def strip_strings(cls, v):
        return v.strip() if isinstance(v, str) else v


class WirePayload(StripStringsMixin, BaseModel):
    """Base for request bodies; dumps camelCase keys the backend expects."""
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self, partial: bool = False) -> dict:
        return self.model_dump(
            mode="json",
            by_alias=True,
            exclude_none=True,
            exclude_unset=partial,
        )


def _split_tags(v):
    if isinstance(v, str):
        v = v.split(",")
    if isinstance(v, (list, tuple)):
        return [str(tag).strip() for tag in v if str(tag).strip()]
    return v


def _optional_date(v):
    if v is None or v == "":
        return None
    return normalize_iso_date(v)


class NoteCreate(WirePayload):
    """Payload for creating a note. Tags may be given as "a, b, c"."""
    title: str = Field(min_length=1, max_length=TITLE_MAX_LEN)
    content: str = Field(min_length=1)
    subject: str = ""
    tags: list[str] = Field(default_factory=list)

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, v):
        return _split_tags(v)


class NoteUpdate(WirePayload):
    """Partial update payload for a note."""
    title: Optional[str] = Field(default=None, min_length=1, max_length=TITLE_MAX_LEN)
    content: Optional[str] = Field(default=None, min_length=1)
    subject: Optional[str] = None
    tags: Optional[list[str]] = None

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, v):
        return _split_tags(v)


class ExamQARequest(WirePayload):
    """Subject and topic to generate a Q&A set for."""
    subject: str = Field(min_length=1)
    topic: str = Field(min_length=1)


class ClassCreate(WirePayload):
    """Payload for a weekly class slot (also used for full PUT updates)."""
    subject: str = Field(min_length=1)
    teacher: str = Field(min_length=1)
    day: Weekday
    start_time: str = Field(serialization_alias="startTime")
    end_time: str = Field(serialization_alias="endTime")
    room_number: str = Field(min_length=1, serialization_alias="roomno")

    @field_validator("start_time", "end_time")
    @classmethod
    def check_time(cls, v: str) -> str:
        if not TIME_PATTERN.match(v):
            raise ValueError("Invalid time format. Expected HH:MM.")
        return v

    @model_validator(mode="after")
    def check_order(self):
        # zero-padded 24h strings order the same as the times they encode
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be earlier than end_time")
        return self


class GoalCreate(WirePayload):
    """Payload for a new study goal."""
    title: str = Field(min_length=1, max_length=TITLE_MAX_LEN, serialization_alias="goalTitle")
    description: str = ""
    target_date: Optional[dt.date] = Field(default=None, serialization_alias="deadline")

    @field_validator("target_date", mode="before")
    @classmethod
    def normalize_date(cls, v):
        return _optional_date(v)


class TaskCreate(WirePayload):
    """Payload for a task added to a goal."""
    title: str = Field(min_length=1, max_length=TITLE_MAX_LEN)
    description: str = ""
    due_date: Optional[dt.date] = Field(default=None, serialization_alias="dueDate")

    @field_validator("due_date", mode="before")
    @classmethod
    def normalize_date(cls, v):
        return _optional_date(v)


class TodoCreate(WirePayload):
    """Payload for creating a todo."""
    title: str = Field(min_length=1, max_length=TITLE_MAX_LEN)
    description: Optional[str] = None
    priority: Priority = "Medium"
    category: Optional[str] = None
    due_date: Optional[dt.date] = Field(default=None, serialization_alias="dueDate")

    @field_validator("description", "category", mode="after")
    @classmethod
    def empty_to_none(cls, v):
        return v or None

    @field_validator("due_date", mode="before")
    @classmethod
    def normalize_date(cls, v):
        return _optional_date(v)


class TodoUpdate(TodoCreate):
    """Partial update payload for a todo."""
    title: Optional[str] = Field(default=None, min_length=1, max_length=TITLE_MAX_LEN)
    priority: Optional[Priority] = None


class TransactionCreate(WirePayload):
    """Payload for an income or expense entry."""
    amount: Decimal = Field(gt=0)
    type: TransactionType = "expense"
    category: str = Field(min_length=1, max_length=50)
    note: str = Field(default="", max_length=NOTE_MAX_LEN)
    date: dt.date = Field(default_factory=dt.date.today)
    is_recurring: bool = Field(default=False, serialization_alias="isRecurring")
    recurring_frequency: Optional[Frequency] = Field(
        default=None, serialization_alias="recurringFrequency"
    )

    @field_validator("date", mode="before")
    @classmethod
    def normalize_date(cls, v):
        return normalize_iso_date(v)

    @field_serializer("amount")
    def amount_as_number(self, v: Decimal) -> float:
        return float(v)

    @model_validator(mode="after")
    def default_frequency(self):
        if self.is_recurring and self.recurring_frequency is None:
            self.recurring_frequency = "monthly"
        return self


class BudgetCreate(StripStringsMixin, BaseModel):
    """Payload for setting a category limit in the local store."""
    category: str = Field(min_length=1, max_length=50)
    limit: Decimal = Field(gt=0)
    month: Optional[str] = None

    @field_validator("month")
    @classmethod
    def check_month(cls, v):
        if v in (None, ""):
            return None
        if not MONTH_PATTERN.match(v):
            raise ValueError("Invalid month format. Expected YYYY-MM.")
        return v


class SessionLogin(BaseModel):
    """Token handed over by the login flow, with an optional profile."""
    token: str = Field(min_length=1)
    user: Optional[UserProfile] = None


# Server summaries (secondary reads that may be malformed)

class MonthlyTrend(BaseModel):
    month: str
    income: float = 0.0
    expenses: float = 0.0


class SummaryRecord(BaseModel):
    """Shape of GET /budget/summary; any mismatch means "recompute locally"."""
    total_income: float = Field(validation_alias="totalIncome", strict=True)
    total_expenses: float = Field(validation_alias="totalExpenses", strict=True)
    balance: float = Field(strict=True)
    category_breakdown: dict[str, float] = Field(
        default_factory=dict, validation_alias="categoryBreakdown"
    )
    monthly_trends: list[MonthlyTrend] = Field(
        default_factory=list, validation_alias="monthlyTrends"
    )


class ProgressRecord(BaseModel):
    """Shape of GET /study-planner/progress."""
    overall_progress: float = Field(validation_alias="overallProgress", strict=True)


# Derived statistics

class BudgetSummary(BaseModel):
    total_income: float = 0.0
    total_expenses: float = 0.0
    balance: float = 0.0
    category_breakdown: dict[str, float] = Field(default_factory=dict)
    income_breakdown: dict[str, float] = Field(default_factory=dict)
    monthly_trends: list[MonthlyTrend] = Field(default_factory=list)
    source: Literal["server", "local"] = "local"


class BudgetAlert(BaseModel):
    category: str
    level: AlertLevel
    spent: float
    limit: float
    message: str


class BudgetUsage(BaseModel):
    id: Optional[int] = None
    category: str
    limit: float
    spent: float
    percentage: float
    remaining: float
    month: Optional[str] = None


class TodoStats(BaseModel):
    total: int = 0
    pending: int = 0
    in_progress: int = 0
    completed: int = 0
    overdue: int = 0


class PlannerStats(BaseModel):
    total_goals: int = 0
    completed_tasks: int = 0
    remaining_tasks: int = 0
    overall_progress: float = 0.0


class ScheduleStats(BaseModel):
    total_classes: int = 0
    unique_subjects: int = 0
    unique_teachers: int = 0
    unique_rooms: int = 0


class ExamQAStats(BaseModel):
    total_sets: int = 0
    total_questions: int = 0
    subjects: list[str] = Field(default_factory=list)


class DashboardStats(BaseModel):
    study_hours: int = 0
    completed_tasks: int = 0
    budget_remaining: float = 0.0
    overall_progress: float = 0.0


class DashboardData(BaseModel):
    stats: DashboardStats
    recent_goals: list[StudyGoal] = Field(default_factory=list)
    recent_todos: list[TodoItem] = Field(default_factory=list)
    upcoming_classes: list[ClassEntry] = Field(default_factory=list)
    recent_transactions: list[Transaction] = Field(default_factory=list)
    recent_notes: list[Note] = Field(default_factory=list)
