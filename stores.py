"""Per-feature view state: local collections kept in step with the backend.

Every mutation is applied locally first, sent to the gateway, and then
reconciled by re-fetching the authoritative collection. A failed call is
surfaced as the store's `error` and rolled back by the same re-fetch.
Nothing here raises GatewayError to its caller.
"""
from abc import ABC, abstractmethod
from typing import Callable, Generic, Optional, TypeVar
from uuid import uuid4
import datetime as dt
import logging

from pydantic import ValidationError
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from gateway import ApiGateway, GatewayError
from models import BudgetLimit
from schemas import (
    BudgetAlert,
    BudgetCreate,
    BudgetSummary,
    BudgetUsage,
    ClassCreate,
    ClassEntry,
    ExamQARequest,
    ExamQASet,
    ExamQAStats,
    GoalCreate,
    Note,
    NoteCreate,
    NoteUpdate,
    PlannerStats,
    ProgressRecord,
    ScheduleStats,
    StudyGoal,
    SummaryRecord,
    Task,
    TaskCreate,
    TodoCreate,
    TodoItem,
    TodoStats,
    TodoUpdate,
    Transaction,
    TransactionCreate,
)
from state import CollectionState, LocalCollection
import charts
import stats

logger = logging.getLogger(__name__)

T = TypeVar("T")


def provisional_id() -> str:
    """Id for an item that exists only locally until the next re-fetch."""
    return f"local-{uuid4().hex}"


def _replace(items: list, item_id: str, update: Callable) -> list:
    return [update(item) if item.id == item_id else item for item in items]


class FeatureStore(ABC, Generic[T]):
    resource = ""

    def __init__(self, gateway: ApiGateway):
        self.gateway = gateway
        self.collection: LocalCollection[T] = LocalCollection(self.resource)

    @property
    def items(self) -> list[T]:
        return self.collection.items

    @property
    def error(self) -> Optional[str]:
        return self.collection.error

    @property
    def state(self) -> CollectionState:
        return self.collection.state

    @property
    def can_submit(self) -> bool:
        return self.collection.can_submit

    def dismiss_error(self) -> None:
        self.collection.dismiss_error()

    @abstractmethod
    def _fetch(self) -> list[T]:
        """The authoritative collection for this feature."""

    def refresh(self, fetch: Optional[Callable[[], list[T]]] = None, rollback: bool = False) -> bool:
        """Replace local items with the authoritative collection.

        A rollback keeps the error of the mutation that triggered it.
        """
        if not self.gateway.ready:
            return False
        if not rollback:
            self.collection.dismiss_error()
        ticket = self.collection.issue_ticket()
        try:
            items = (fetch or self._fetch)()
        except GatewayError as exc:
            if rollback:
                logger.warning("%s: rollback fetch failed: %s", self.resource, exc)
            else:
                self.collection.fail(str(exc))
            return False
        return self.collection.accept(ticket, items)

    def _mutate(
        self,
        call: Callable[[], object],
        optimistic: Optional[Callable[[list[T]], list[T]]] = None,
        reconcile: bool = True,
    ) -> bool:
        if not self.gateway.ready or not self.collection.can_submit:
            return False
        self.collection.begin_submit()
        if optimistic is not None:
            self.collection.apply(optimistic)
        try:
            call()
        except GatewayError as exc:
            self.collection.fail(str(exc))
            self.refresh(rollback=True)
            return False
        if reconcile:
            self.collection.begin_reconcile()
            self.refresh()
        else:
            self.collection.settle()
        return True

    def _lookup(self, fetch: Callable[[], Optional[T]]) -> Optional[T]:
        try:
            return fetch()
        except GatewayError as exc:
            self.collection.fail(str(exc))
            return None


class NotesStore(FeatureStore[Note]):
    resource = "notes"

    def _fetch(self) -> list[Note]:
        return self.gateway.list_notes()

    def filter_by_category(self, category: str) -> bool:
        if category == "all":
            return self.refresh()
        return self.refresh(lambda: self.gateway.list_notes_by_category(category))

    def view(self, note_id: str) -> Optional[Note]:
        return self._lookup(lambda: self.gateway.get_note(note_id))

    def create(self, payload: NoteCreate) -> bool:
        draft = Note(
            id=provisional_id(),
            title=payload.title,
            content=payload.content,
            subject=payload.subject,
            tags=payload.tags,
            created_at=dt.datetime.now(),
        )
        return self._mutate(
            lambda: self.gateway.create_note(payload),
            lambda items: items + [draft],
        )

    def update(self, note_id: str, payload: NoteUpdate) -> bool:
        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        return self._mutate(
            lambda: self.gateway.update_note(note_id, payload),
            lambda items: _replace(items, note_id, lambda n: n.model_copy(update=changes)),
        )

    def set_status(self, note_id: str, status: str) -> bool:
        return self._mutate(
            lambda: self.gateway.update_note_status(note_id, status),
            lambda items: _replace(items, note_id, lambda n: n.model_copy(update={"status": status})),
        )

    def delete(self, note_id: str) -> bool:
        return self._mutate(
            lambda: self.gateway.delete_note(note_id),
            lambda items: [n for n in items if n.id != note_id],
        )

    def visible(self, search: str = "", subject: str = "all") -> list[Note]:
        return stats.filter_notes(self.items, search, subject)

    def subjects(self) -> list[str]:
        return stats.available_subjects(self.items)


class ExamQAStore(FeatureStore[ExamQASet]):
    resource = "exam-qa"

    def _fetch(self) -> list[ExamQASet]:
        return self.gateway.list_exam_qa()

    def generate(self, payload: ExamQARequest) -> Optional[ExamQASet]:
        """Generate a set and put it first; generated sets never change, so no re-fetch."""
        created: list[ExamQASet] = []

        def call():
            result = self.gateway.generate_exam_qa(payload)
            if result is not None:
                created.append(result)

        if not self._mutate(call, reconcile=False):
            return None
        if created:
            self.collection.apply(lambda items: created + items)
        return created[0] if created else None

    def stats(self) -> ExamQAStats:
        return stats.exam_qa_stats(self.items)


class ScheduleStore(FeatureStore[ClassEntry]):
    resource = "class-schedule"

    def _fetch(self) -> list[ClassEntry]:
        return self.gateway.list_classes()

    def load_week(self) -> bool:
        return self.refresh(self.gateway.list_week)

    def filter_by(self, field: str, value: str) -> bool:
        """Server-side filter by "day", "subject" or "teacher"; "all" lists everything."""
        if value == "all":
            return self.refresh()
        fetchers = {
            "day": self.gateway.list_classes_by_day,
            "subject": self.gateway.list_classes_by_subject,
            "teacher": self.gateway.list_classes_by_teacher,
        }
        if field not in fetchers:
            raise ValueError(f"Unknown schedule filter: {field}")
        return self.refresh(lambda: fetchers[field](value))

    def view(self, class_id: str) -> Optional[ClassEntry]:
        return self._lookup(lambda: self.gateway.get_class(class_id))

    def _entry(self, entry_id: str, payload: ClassCreate) -> ClassEntry:
        return ClassEntry(
            id=entry_id,
            subject=payload.subject,
            teacher=payload.teacher,
            day=payload.day,
            start_time=payload.start_time,
            end_time=payload.end_time,
            room_number=payload.room_number,
            created_at=dt.datetime.now(),
        )

    def create(self, payload: ClassCreate) -> bool:
        draft = self._entry(provisional_id(), payload)
        return self._mutate(
            lambda: self.gateway.create_class(payload),
            lambda items: items + [draft],
        )

    def update(self, class_id: str, payload: ClassCreate) -> bool:
        replacement = self._entry(class_id, payload)
        return self._mutate(
            lambda: self.gateway.update_class(class_id, payload),
            lambda items: _replace(items, class_id, lambda _: replacement),
        )

    def delete(self, class_id: str) -> bool:
        return self._mutate(
            lambda: self.gateway.delete_class(class_id),
            lambda items: [c for c in items if c.id != class_id],
        )

    def by_day(self) -> dict[str, list[ClassEntry]]:
        return stats.group_by_day(self.items)

    def stats(self) -> ScheduleStats:
        return stats.schedule_stats(self.items)

    def subjects(self) -> list[str]:
        return list(dict.fromkeys(c.subject for c in self.items))

    def teachers(self) -> list[str]:
        return list(dict.fromkeys(c.teacher for c in self.items))


class StudyPlannerStore(FeatureStore[StudyGoal]):
    """Goals and their tasks.

    Task toggles and task deletes stay local on success and re-fetch only
    when the backend rejects them.
    """
    resource = "study-planner"

    def __init__(self, gateway: ApiGateway):
        super().__init__(gateway)
        self.overall_progress = 0.0
        self.progress_source = "local"

    def _fetch(self) -> list[StudyGoal]:
        return self.gateway.list_goals()

    def _goal(self, goal_id: str) -> Optional[StudyGoal]:
        return next((g for g in self.items if g.id == goal_id), None)

    def create_goal(self, payload: GoalCreate) -> bool:
        draft = StudyGoal(
            id=provisional_id(),
            title=payload.title,
            description=payload.description,
            target_date=payload.target_date,
            created_at=dt.datetime.now(),
        )
        return self._mutate(
            lambda: self.gateway.create_goal(payload),
            lambda items: items + [draft],
        )

    def add_task(self, goal_id: str, payload: TaskCreate) -> bool:
        task = Task(
            id=provisional_id(),
            title=payload.title,
            description=payload.description,
            due_date=payload.due_date,
        )
        return self._mutate(
            lambda: self.gateway.add_task(goal_id, payload),
            lambda items: _replace(
                items, goal_id, lambda g: g.model_copy(update={"tasks": g.tasks + [task]})
            ),
        )

    def toggle_task(self, goal_id: str, task_id: str) -> bool:
        goal = self._goal(goal_id)
        task = next((t for t in goal.tasks if t.id == task_id), None) if goal else None
        if task is None:
            return False
        completed = not task.completed

        def flip(g: StudyGoal) -> StudyGoal:
            tasks = [
                t.model_copy(update={"completed": completed}) if t.id == task_id else t
                for t in g.tasks
            ]
            return g.model_copy(update={"tasks": tasks})

        return self._mutate(
            lambda: self.gateway.set_task_completed(goal_id, task_id, completed),
            lambda items: _replace(items, goal_id, flip),
            reconcile=False,
        )

    def delete_task(self, goal_id: str, task_id: str) -> bool:
        return self._mutate(
            lambda: self.gateway.delete_task(goal_id, task_id),
            lambda items: _replace(
                items, goal_id,
                lambda g: g.model_copy(update={"tasks": [t for t in g.tasks if t.id != task_id]}),
            ),
            reconcile=False,
        )

    def delete_goal(self, goal_id: str) -> bool:
        return self._mutate(
            lambda: self.gateway.delete_goal(goal_id),
            lambda items: [g for g in items if g.id != goal_id],
        )

    def set_progress(self, goal_id: str, progress: Optional[float]) -> bool:
        """Set (or with None, clear) the manual override.

        An override stays in place when tasks change; only clearing it
        returns the goal to task-derived progress. An override of 0 is the
        same as clearing it.
        """
        if progress is not None:
            progress = min(max(float(progress), 0.0), 100.0) or None
        return self._mutate(
            lambda: self.gateway.set_progress(goal_id, progress),
            lambda items: _replace(
                items, goal_id, lambda g: g.model_copy(update={"progress": progress})
            ),
        )

    def clear_progress(self, goal_id: str) -> bool:
        return self.set_progress(goal_id, None)

    def progress(self, goal_id: str) -> float:
        goal = self._goal(goal_id)
        return stats.goal_progress(goal) if goal else 0.0

    def stats(self) -> PlannerStats:
        return stats.planner_stats(self.items)

    def refresh_progress(self) -> float:
        """Overall progress from the server, or computed locally if that read fails."""
        try:
            record = ProgressRecord.model_validate(self.gateway.get_progress())
        except (GatewayError, ValidationError) as exc:
            logger.warning("study-planner: using local progress (%s)", exc.__class__.__name__)
            self.overall_progress = stats.overall_progress(self.items)
            self.progress_source = "local"
        else:
            self.overall_progress = record.overall_progress
            self.progress_source = "server"
        return self.overall_progress


class TodoStore(FeatureStore[TodoItem]):
    resource = "todo"

    def _fetch(self) -> list[TodoItem]:
        return self.gateway.list_todos()

    def filter_by_category(self, category: str) -> bool:
        if category == "all":
            return self.refresh()
        return self.refresh(lambda: self.gateway.list_todos_by_category(category))

    def view(self, todo_id: str) -> Optional[TodoItem]:
        return self._lookup(lambda: self.gateway.get_todo(todo_id))

    def create(self, payload: TodoCreate) -> bool:
        draft = TodoItem(
            id=provisional_id(),
            title=payload.title,
            description=payload.description,
            priority=payload.priority,
            category=payload.category,
            due_date=payload.due_date,
            created_at=dt.datetime.now(),
        )
        return self._mutate(
            lambda: self.gateway.create_todo(payload),
            lambda items: items + [draft],
        )

    def update(self, todo_id: str, payload: TodoUpdate) -> bool:
        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        return self._mutate(
            lambda: self.gateway.update_todo(todo_id, payload),
            lambda items: _replace(items, todo_id, lambda t: t.model_copy(update=changes)),
        )

    def advance(self, todo_id: str) -> bool:
        """Move a todo to its next status in the pending/in-progress/completed cycle."""
        todo = next((t for t in self.items if t.id == todo_id), None)
        if todo is None:
            return False
        status = stats.next_status(todo.status)
        return self._mutate(
            lambda: self.gateway.update_todo_status(todo_id, status),
            lambda items: _replace(items, todo_id, lambda t: t.model_copy(update={"status": status})),
        )

    def delete(self, todo_id: str) -> bool:
        return self._mutate(
            lambda: self.gateway.delete_todo(todo_id),
            lambda items: [t for t in items if t.id != todo_id],
        )

    def visible(self, status: str = "all", sort: str = "created") -> list[TodoItem]:
        return stats.sort_todos(stats.filter_todos(self.items, status), sort)

    def stats(self, today: Optional[dt.date] = None) -> TodoStats:
        return stats.todo_stats(self.items, today)


class BudgetStore(FeatureStore[Transaction]):
    """Transactions from the backend plus category limits from the local store."""
    resource = "budget"

    def __init__(self, gateway: ApiGateway, engine: Engine):
        super().__init__(gateway)
        self.engine = engine
        self.summary = BudgetSummary()

    def _fetch(self) -> list[Transaction]:
        return self.gateway.list_transactions()

    def add_transaction(self, payload: TransactionCreate) -> bool:
        draft = Transaction(
            id=provisional_id(),
            amount=payload.amount,
            type=payload.type,
            category=payload.category,
            note=payload.note,
            date=payload.date,
            is_recurring=payload.is_recurring,
            recurring_frequency=payload.recurring_frequency,
            user_id=self.gateway.session.user_id or "",
            created_at=dt.datetime.now(),
        )
        return self._mutate(
            lambda: self.gateway.create_transaction(payload),
            lambda items: items + [draft],
        )

    def delete_transaction(self, transaction_id: str) -> bool:
        return self._mutate(
            lambda: self.gateway.delete_transaction(transaction_id),
            lambda items: [t for t in items if t.id != transaction_id],
        )

    def local_summary(self) -> BudgetSummary:
        return stats.compute_budget_summary(self.items)

    def refresh_summary(self) -> BudgetSummary:
        """Server summary when well formed; otherwise recomputed from local transactions."""
        try:
            record = SummaryRecord.model_validate(self.gateway.get_budget_summary())
        except (GatewayError, ValidationError) as exc:
            logger.warning("budget: using calculated summary (%s)", exc.__class__.__name__)
            self.summary = self.local_summary()
        else:
            local = self.local_summary()
            self.summary = BudgetSummary(
                total_income=record.total_income,
                total_expenses=record.total_expenses,
                balance=record.balance,
                category_breakdown=record.category_breakdown,
                income_breakdown=local.income_breakdown,
                monthly_trends=record.monthly_trends or local.monthly_trends,
                source="server",
            )
        return self.summary

    def transactions_on(self, day: dt.date) -> list[Transaction]:
        return stats.transactions_on(self.items, day)

    # category limits

    def budgets(self) -> list[BudgetLimit]:
        user_id = self.gateway.session.user_id
        if not user_id:
            return []
        with Session(self.engine) as session:
            stmt = (
                select(BudgetLimit)
                .where(BudgetLimit.user_id == user_id)
                .order_by(BudgetLimit.category)
            )
            return list(session.exec(stmt).all())

    def set_budget(self, payload: BudgetCreate) -> Optional[BudgetLimit]:
        """Create or replace the limit for a category (and month)."""
        user_id = self.gateway.session.user_id
        if not user_id:
            return None
        with Session(self.engine) as session:
            row = session.exec(
                select(BudgetLimit).where(
                    BudgetLimit.user_id == user_id,
                    BudgetLimit.category == payload.category,
                    BudgetLimit.month == payload.month,
                )
            ).first()
            if row is None:
                row = BudgetLimit(user_id=user_id, category=payload.category, month=payload.month, limit=payload.limit)
            else:
                row.limit = payload.limit
            session.add(row)
            session.commit()
            session.refresh(row)
            return row

    def remove_budget(self, budget_id: int) -> bool:
        with Session(self.engine) as session:
            row = session.get(BudgetLimit, budget_id)
            if row is None or row.user_id != self.gateway.session.user_id:
                return False
            session.delete(row)
            session.commit()
            return True

    def alerts(self) -> list[BudgetAlert]:
        return stats.budget_alerts(self.budgets(), self.items)

    def usage(self) -> list[BudgetUsage]:
        return [stats.budget_usage(budget, self.items) for budget in self.budgets()]

    def charts(self) -> dict:
        summary = self.summary if self.summary.source == "server" else self.local_summary()
        return {
            "pie": charts.pie_chart_data(summary.category_breakdown),
            "line": charts.line_chart_data(summary.monthly_trends),
        }
