"""Local JSON surface for the Study Dashboard.

Exposes the derived view models to a presentation layer. The remote backend
stays the source of truth; only the session and budget limits live in the
local database.
"""
import datetime as dt
import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Response, status
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

from auth import SessionContext, SessionStore
from config import load_settings
from dashboard import fetch_dashboard_data
from gateway import ApiGateway, GatewayError
from models import BudgetLimit
from schemas import BudgetCreate, DashboardData, SessionLogin
from stores import (
    BudgetStore,
    ExamQAStore,
    FeatureStore,
    NotesStore,
    ScheduleStore,
    StudyPlannerStore,
    TodoStore,
)
from utils import filter_transactions, normalize_iso_date

logger = logging.getLogger(__name__)

APP_NAME = "study-dashboard"
APP_VERSION = "0.1.0"

settings = load_settings()

app = FastAPI(title="Study Dashboard", version=APP_VERSION)
instrumentator = Instrumentator().instrument(app)
instrumentator.expose(app)

if settings.database_url.startswith("sqlite"):
    connect_args = {"check_same_thread": False}
else:
    connect_args = {}

engine = create_engine(settings.database_url, connect_args=connect_args, echo=False)


@app.get("/")
def root():
    return {"message": "Study Dashboard is running. See /health for status."}


@app.get("/health")
def health():
    return {
        "status": "ok",
        "timestamp": dt.datetime.utcnow().isoformat(),
        "app": APP_NAME,
        "version": APP_VERSION,
    }


@app.on_event("startup")
def on_startup() -> None:
    """Create the local tables."""
    SQLModel.metadata.create_all(engine)
    logger.info("local store ready at %s", settings.database_url)


# dependencies

def get_engine() -> Engine:
    return engine


def get_session_store(db: Engine = Depends(get_engine)) -> SessionStore:
    return SessionStore(db)


def get_current_session(store: SessionStore = Depends(get_session_store)) -> SessionContext:
    """The saved session, or 401 when nobody is logged in."""
    ctx = store.load()
    if not ctx.is_authenticated:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No authentication token found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return ctx


def get_gateway(ctx: SessionContext = Depends(get_current_session)):
    """One gateway per request, closed afterwards."""
    gateway = ApiGateway(ctx, settings.api_base_url)
    try:
        yield gateway
    finally:
        gateway.close()


def refreshed(store: FeatureStore) -> FeatureStore:
    """Load the store's collection or fail the request with 502."""
    store.refresh()
    if store.error:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=store.error)
    return store


# SESSION

@app.get("/session")
def read_session(store: SessionStore = Depends(get_session_store)):
    ctx = store.load()
    return {"authenticated": ctx.is_authenticated, "user": ctx.user}


@app.post("/session")
def login(payload: SessionLogin, store: SessionStore = Depends(get_session_store)):
    """Save the token handed over by the login flow."""
    ctx = SessionContext()
    try:
        ctx.login(payload.token, payload.user)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    store.save(ctx)
    return {"authenticated": True, "user": ctx.user}


@app.delete("/session", status_code=204)
def logout(store: SessionStore = Depends(get_session_store)):
    store.clear()
    return Response(status_code=204)


# DASHBOARD

@app.get("/api/dashboard", response_model=DashboardData)
def dashboard(gateway: ApiGateway = Depends(get_gateway)):
    try:
        return fetch_dashboard_data(gateway, settings.monthly_allowance)
    except GatewayError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))


# BUDGET

def get_budget_store(
    gateway: ApiGateway = Depends(get_gateway),
    db: Engine = Depends(get_engine),
) -> BudgetStore:
    return BudgetStore(gateway, db)


@app.get("/api/budget/summary")
def budget_summary(store: BudgetStore = Depends(get_budget_store)):
    """Totals, breakdowns and alerts. The summary may come from the server or be computed here."""
    refreshed(store)
    return {"summary": store.refresh_summary(), "alerts": store.alerts()}


@app.get("/api/budget/limits")
def list_budget_limits(store: BudgetStore = Depends(get_budget_store)):
    refreshed(store)
    return store.usage()


@app.post("/api/budget/limits", response_model=BudgetLimit, status_code=201)
def set_budget_limit(payload: BudgetCreate, store: BudgetStore = Depends(get_budget_store)):
    return store.set_budget(payload)


@app.delete("/api/budget/limits/{budget_id}", status_code=204)
def delete_budget_limit(budget_id: int, store: BudgetStore = Depends(get_budget_store)):
    if not store.remove_budget(budget_id):
        raise HTTPException(status_code=404, detail="Budget not found")
    return Response(status_code=204)


def _query_date(value: Optional[str]):
    if not value:
        return None
    try:
        return normalize_iso_date(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@app.get("/api/budget/transactions")
def budget_transactions(
    on: Optional[str] = None,
    date_from: Optional[str] = Query(None, alias="from"),
    date_to: Optional[str] = Query(None, alias="to"),
    q: Optional[str] = None,
    type: Optional[str] = None,
    store: BudgetStore = Depends(get_budget_store),
):
    """Transactions for one day (`on`) or filtered by date range, text and type."""
    day = _query_date(on)
    start, end = _query_date(date_from), _query_date(date_to)
    refreshed(store)
    if day:
        return store.transactions_on(day)
    return filter_transactions(store.items, start, end, q, type)


@app.get("/api/budget/charts")
def budget_charts(store: BudgetStore = Depends(get_budget_store)):
    refreshed(store)
    store.refresh_summary()
    return store.charts()


# TODO

@app.get("/api/todo")
def list_todos(
    status: str = "all",
    sort: str = "created",
    gateway: ApiGateway = Depends(get_gateway),
):
    store = refreshed(TodoStore(gateway))
    return store.visible(status, sort)


@app.get("/api/todo/stats")
def todo_stats(gateway: ApiGateway = Depends(get_gateway)):
    return refreshed(TodoStore(gateway)).stats()


@app.post("/api/todo/{todo_id}/advance")
def advance_todo(todo_id: str, gateway: ApiGateway = Depends(get_gateway)):
    """Move a todo to its next status and return it as the backend now has it."""
    store = refreshed(TodoStore(gateway))
    if not any(t.id == todo_id for t in store.items):
        raise HTTPException(status_code=404, detail="Todo not found")
    store.advance(todo_id)
    if store.error:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=store.error)
    todo = next((t for t in store.items if t.id == todo_id), None)
    if todo is None:
        raise HTTPException(status_code=404, detail="Todo not found")
    return todo


# STUDY PLANNER, SCHEDULE, NOTES, EXAM Q&A

@app.get("/api/study-planner")
def study_planner(gateway: ApiGateway = Depends(get_gateway)):
    store = refreshed(StudyPlannerStore(gateway))
    overall = store.refresh_progress()
    return {
        "goals": [
            {**goal.model_dump(mode="json"), "effective_progress": store.progress(goal.id)}
            for goal in store.items
        ],
        "stats": store.stats().model_copy(update={"overall_progress": overall}),
        "overall_progress": overall,
        "progress_source": store.progress_source,
    }


@app.get("/api/schedule/week")
def schedule_week(gateway: ApiGateway = Depends(get_gateway)):
    store = ScheduleStore(gateway)
    store.load_week()
    if store.error:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=store.error)
    return {"days": store.by_day(), "stats": store.stats()}


@app.get("/api/notes")
def list_notes(
    search: str = "",
    subject: str = "all",
    gateway: ApiGateway = Depends(get_gateway),
):
    store = refreshed(NotesStore(gateway))
    return {"notes": store.visible(search, subject), "subjects": store.subjects()}


@app.get("/api/exam-qa/stats")
def exam_qa_stats(gateway: ApiGateway = Depends(get_gateway)):
    return refreshed(ExamQAStore(gateway)).stats()
