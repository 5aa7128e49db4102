"""Dashboard aggregation: one snapshot built from every collection."""
from decimal import Decimal
from typing import Iterable, Optional, TypeVar
import datetime as dt
import logging

from config import DEFAULT_MONTHLY_ALLOWANCE
from gateway import ApiGateway, GatewayError
from schemas import DashboardData, DashboardStats
from utils import round_money
import stats

logger = logging.getLogger(__name__)

T = TypeVar("T")

RECENT_GOALS = 3
RECENT_TODOS = 5
UPCOMING_CLASSES = 3
RECENT_TRANSACTIONS = 5
RECENT_NOTES = 3


def newest_first(items: Iterable[T]) -> list[T]:
    """Sort by created_at, newest first; undated items go last in their given order."""
    items = list(items)
    dated = [i for i in items if i.created_at is not None]
    undated = [i for i in items if i.created_at is None]
    return sorted(dated, key=lambda i: i.created_at, reverse=True) + undated


def fetch_dashboard_data(
    gateway: ApiGateway,
    allowance: Decimal = DEFAULT_MONTHLY_ALLOWANCE,
    now: Optional[dt.datetime] = None,
) -> DashboardData:
    """Fetch goals, todos, classes, transactions and notes and derive the dashboard.

    Raises GatewayError when there is no session or when any fetch fails.
    """
    if not gateway.ready:
        raise GatewayError("dashboard", "No authentication token found")
    try:
        goals = gateway.list_goals()
        todos = gateway.list_todos()
        classes = gateway.list_classes()
        transactions = gateway.list_transactions()
        notes = gateway.list_notes()
    except GatewayError as exc:
        logger.warning("dashboard: %s", exc)
        raise GatewayError("dashboard", "Failed to fetch dashboard data", exc.status_code) from exc

    expenses = sum((t.amount for t in transactions if t.type == "expense"), Decimal("0"))
    # one completed study task counts as one hour
    study_hours = sum(1 for goal in goals for task in goal.tasks if task.completed)

    return DashboardData(
        stats=DashboardStats(
            study_hours=study_hours,
            completed_tasks=sum(1 for t in todos if t.status == "completed"),
            budget_remaining=round_money(Decimal(allowance) - expenses),
            overall_progress=stats.overall_progress(goals),
        ),
        recent_goals=newest_first(goals)[:RECENT_GOALS],
        recent_todos=newest_first(todos)[:RECENT_TODOS],
        upcoming_classes=stats.upcoming_classes(classes, now)[:UPCOMING_CLASSES],
        recent_transactions=newest_first(transactions)[:RECENT_TRANSACTIONS],
        recent_notes=newest_first(notes)[:RECENT_NOTES],
    )
