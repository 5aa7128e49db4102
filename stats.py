"""Derived statistics for every dashboard view.

Nothing here performs I/O, so each figure can be recomputed after every
local mutation without another round trip.
"""
import datetime as dt
from collections import defaultdict
from decimal import Decimal
from typing import Iterable, Optional

from models import BudgetLimit
from schemas import (
    WEEKDAYS,
    BudgetAlert,
    BudgetSummary,
    BudgetUsage,
    ClassEntry,
    ExamQAStats,
    ExamQASet,
    MonthlyTrend,
    Note,
    PlannerStats,
    ScheduleStats,
    StudyGoal,
    TodoItem,
    TodoStats,
    Transaction,
)
from utils import format_money, month_key, round_money

PRIORITY_RANK = {"High": 3, "Medium": 2, "Low": 1}
NEXT_STATUS = {
    "pending": "in-progress",
    "in-progress": "completed",
    "completed": "pending",
}
WARNING_RATIO = Decimal("0.8")


# Budget

def category_totals(
    transactions: Iterable[Transaction],
    tx_type: str = "expense",
    month: Optional[str] = None,
) -> dict[str, Decimal]:
    """Sum of amounts per category for one transaction type (and month)."""
    totals: dict[str, Decimal] = defaultdict(Decimal)
    for t in transactions:
        if t.type != tx_type:
            continue
        if month and (t.date is None or month_key(t.date) != month):
            continue
        totals[t.category] += t.amount
    return dict(totals)


def monthly_trends(transactions: Iterable[Transaction]) -> list[MonthlyTrend]:
    """Income and expense totals per month, oldest month first."""
    income: dict[str, Decimal] = defaultdict(Decimal)
    expenses: dict[str, Decimal] = defaultdict(Decimal)
    for t in transactions:
        if t.date is None:
            continue
        bucket = income if t.type == "income" else expenses
        bucket[month_key(t.date)] += t.amount
    months = sorted(set(income) | set(expenses))
    return [
        MonthlyTrend(
            month=m,
            income=round_money(income.get(m, Decimal("0"))),
            expenses=round_money(expenses.get(m, Decimal("0"))),
        )
        for m in months
    ]


def compute_budget_summary(transactions: Iterable[Transaction]) -> BudgetSummary:
    """Totals, balance, category breakdowns and monthly trends."""
    transactions = list(transactions)
    income_total_dec = Decimal("0")
    expense_total_dec = Decimal("0")

    for t in transactions:
        if t.type == "income":
            income_total_dec += t.amount
        elif t.type == "expense":
            expense_total_dec += t.amount

    # money-safe rounding
    income_total = round_money(income_total_dec)
    expense_total = round_money(expense_total_dec)
    balance = round_money(Decimal(str(income_total)) - Decimal(str(expense_total)))

    return BudgetSummary(
        total_income=income_total,
        total_expenses=expense_total,
        balance=balance,
        category_breakdown={
            k: round_money(v) for k, v in category_totals(transactions, "expense").items()
        },
        income_breakdown={
            k: round_money(v) for k, v in category_totals(transactions, "income").items()
        },
        monthly_trends=monthly_trends(transactions),
        source="local",
    )


def budget_spent(budget: BudgetLimit, transactions: Iterable[Transaction]) -> Decimal:
    """Expense total for the budget's category, scoped to its month when set."""
    totals = category_totals(transactions, "expense", month=budget.month or None)
    return totals.get(budget.category, Decimal("0"))


def budget_alerts(
    budgets: Iterable[BudgetLimit],
    transactions: Iterable[Transaction],
) -> list[BudgetAlert]:
    """Rebuild the alert list from scratch; alerts never accumulate."""
    transactions = list(transactions)
    alerts: list[BudgetAlert] = []
    for budget in budgets:
        limit = Decimal(str(budget.limit or 0))
        if limit <= 0:
            continue
        spent = budget_spent(budget, transactions)
        if spent > limit:
            level = "exceeded"
            message = (
                f"Budget exceeded for {budget.category}: "
                f"{format_money(spent)} / {format_money(limit)}"
            )
        elif spent > limit * WARNING_RATIO:
            level = "warning"
            message = (
                f"Budget warning for {budget.category}: "
                f"{format_money(spent)} / {format_money(limit)} (80% used)"
            )
        else:
            continue
        alerts.append(BudgetAlert(
            category=budget.category,
            level=level,
            spent=round_money(spent),
            limit=round_money(limit),
            message=message,
        ))
    return alerts


def budget_usage(budget: BudgetLimit, transactions: Iterable[Transaction]) -> BudgetUsage:
    """Spent, percentage used and remaining amount for one budget row."""
    limit = Decimal(str(budget.limit or 0))
    spent = budget_spent(budget, transactions)
    percentage = float(spent / limit * 100) if limit > 0 else 0.0
    return BudgetUsage(
        id=budget.id,
        category=budget.category,
        limit=round_money(limit),
        spent=round_money(spent),
        percentage=round(percentage, 1),
        remaining=round_money(max(Decimal("0"), limit - spent)),
        month=budget.month,
    )


def transactions_on(transactions: Iterable[Transaction], day: dt.date) -> list[Transaction]:
    """Transactions whose calendar date is `day`."""
    return [t for t in transactions if t.date == day]


# Study planner

def derived_progress(goal: StudyGoal) -> float:
    if not goal.tasks:
        return 0.0
    completed = sum(1 for task in goal.tasks if task.completed)
    return completed / len(goal.tasks) * 100


def goal_progress(goal: StudyGoal) -> float:
    """Manual override when one is set, otherwise the completed-task ratio."""
    if goal.progress is not None:
        return goal.progress
    return derived_progress(goal)


def overall_progress(goals: Iterable[StudyGoal]) -> float:
    values = [goal_progress(goal) for goal in goals]
    if not values:
        return 0.0
    return sum(values) / len(values)


def planner_stats(goals: Iterable[StudyGoal]) -> PlannerStats:
    goals = list(goals)
    completed = sum(1 for goal in goals for task in goal.tasks if task.completed)
    total = sum(len(goal.tasks) for goal in goals)
    return PlannerStats(
        total_goals=len(goals),
        completed_tasks=completed,
        remaining_tasks=total - completed,
        overall_progress=overall_progress(goals),
    )


# Todo

def next_status(status: str) -> str:
    """pending -> in-progress -> completed -> pending."""
    return NEXT_STATUS.get(status, "pending")


def is_overdue(todo: TodoItem, today: Optional[dt.date] = None) -> bool:
    if todo.status == "completed" or todo.due_date is None:
        return False
    return todo.due_date < (today or dt.date.today())


def todo_stats(todos: Iterable[TodoItem], today: Optional[dt.date] = None) -> TodoStats:
    todos = list(todos)
    today = today or dt.date.today()
    return TodoStats(
        total=len(todos),
        pending=sum(1 for t in todos if t.status == "pending"),
        in_progress=sum(1 for t in todos if t.status == "in-progress"),
        completed=sum(1 for t in todos if t.status == "completed"),
        overdue=sum(1 for t in todos if is_overdue(t, today)),
    )


def filter_todos(todos: Iterable[TodoItem], status: str = "all") -> list[TodoItem]:
    if status == "all":
        return list(todos)
    return [t for t in todos if t.status == status]


def sort_todos(todos: Iterable[TodoItem], by: str = "created") -> list[TodoItem]:
    """Sort a copy of `todos`.

    - "priority": High, Medium, Low; ties keep their current order
    - "due_date": earliest first, todos without a due date last
    - anything else: newest created first
    """
    todos = list(todos)
    if by == "priority":
        return sorted(todos, key=lambda t: -PRIORITY_RANK.get(t.priority, 0))
    if by == "due_date":
        return sorted(
            todos,
            key=lambda t: (t.due_date is None, t.due_date or dt.date.min),
        )
    with_date = [t for t in todos if t.created_at is not None]
    without_date = [t for t in todos if t.created_at is None]
    return sorted(with_date, key=lambda t: t.created_at, reverse=True) + without_date


# Class schedule

def group_by_day(classes: Iterable[ClassEntry]) -> dict[str, list[ClassEntry]]:
    """Weekday -> that day's classes by start time (plain string order)."""
    grouped: dict[str, list[ClassEntry]] = {day: [] for day in WEEKDAYS}
    for entry in classes:
        if entry.day in grouped:
            grouped[entry.day].append(entry)
    for entries in grouped.values():
        entries.sort(key=lambda e: e.start_time)
    return grouped


def schedule_stats(classes: Iterable[ClassEntry]) -> ScheduleStats:
    classes = list(classes)
    return ScheduleStats(
        total_classes=len(classes),
        unique_subjects=len({c.subject for c in classes}),
        unique_teachers=len({c.teacher for c in classes}),
        unique_rooms=len({c.room_number for c in classes}),
    )


def upcoming_classes(
    classes: Iterable[ClassEntry],
    now: Optional[dt.datetime] = None,
) -> list[ClassEntry]:
    """Classes in week order starting from `now`; today's past classes go last."""
    now = now or dt.datetime.now()
    today = now.weekday()
    current = now.strftime("%H:%M")
    grouped = group_by_day(classes)
    ordered: list[ClassEntry] = []
    later_today: list[ClassEntry] = []
    for offset in range(7):
        day = WEEKDAYS[(today + offset) % 7]
        for entry in grouped[day]:
            if offset == 0 and entry.start_time < current:
                later_today.append(entry)
            else:
                ordered.append(entry)
    return ordered + later_today


# Notes and exam Q&A

def filter_notes(notes: Iterable[Note], search: str = "", subject: str = "all") -> list[Note]:
    """Case-insensitive search over title, content and tags, plus a subject filter."""
    term = (search or "").strip().lower()
    results = []
    for note in notes:
        if subject != "all" and note.subject != subject:
            continue
        if term and not (
            term in note.title.lower()
            or term in note.content.lower()
            or any(term in tag.lower() for tag in note.tags)
        ):
            continue
        results.append(note)
    return results


def available_subjects(notes: Iterable[Note]) -> list[str]:
    """Distinct subjects in first-seen order."""
    return list(dict.fromkeys(note.subject for note in notes))


def exam_qa_stats(sets: Iterable[ExamQASet]) -> ExamQAStats:
    sets = list(sets)
    return ExamQAStats(
        total_sets=len(sets),
        total_questions=sum(len(s.questions) for s in sets),
        subjects=list(dict.fromkeys(s.subject for s in sets if s.subject)),
    )
