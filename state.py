"""In-memory collection state with optimistic updates and reconciliation.

Lifecycle of one mutation:

    IDLE -> SUBMITTING -> RECONCILING -> IDLE      (server accepted it)
    IDLE -> SUBMITTING -> ERROR                     (server rejected it)

Reads are tagged with a per-collection sequence number so that a response
to an older request can never overwrite the result of a newer one.
"""
from enum import Enum
from typing import Callable, Generic, Optional, TypeVar
import logging

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CollectionState(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    RECONCILING = "reconciling"
    ERROR = "error"


class LocalCollection(Generic[T]):
    def __init__(self, name: str, items: Optional[list[T]] = None):
        self.name = name
        self.items: list[T] = list(items or [])
        self.state = CollectionState.IDLE
        self.error: Optional[str] = None
        self._issued = 0

    @property
    def can_submit(self) -> bool:
        """False while a submission is in flight; the only double-submit guard."""
        return self.state != CollectionState.SUBMITTING

    def begin_submit(self) -> None:
        self.state = CollectionState.SUBMITTING
        self.error = None

    def apply(self, mutate: Callable[[list[T]], list[T]]) -> None:
        """Optimistic change: replace the items with `mutate(items)`."""
        self.items = mutate(list(self.items))

    def begin_reconcile(self) -> None:
        self.state = CollectionState.RECONCILING

    def settle(self) -> None:
        """Finish a submission whose local result is kept without a re-fetch."""
        self.state = CollectionState.IDLE

    def issue_ticket(self) -> int:
        self._issued += 1
        return self._issued

    @property
    def latest_ticket(self) -> int:
        return self._issued

    def accept(self, ticket: int, items: list[T]) -> bool:
        """Install a fetched collection unless a newer request has been issued."""
        if ticket < self._issued:
            logger.warning("%s: dropping stale response %d (latest is %d)",
                           self.name, ticket, self._issued)
            return False
        self.items = list(items)
        if self.state == CollectionState.RECONCILING:
            self.state = CollectionState.IDLE
        return True

    def fail(self, message: str) -> None:
        self.state = CollectionState.ERROR
        self.error = message

    def dismiss_error(self) -> None:
        self.error = None
        if self.state == CollectionState.ERROR:
            self.state = CollectionState.IDLE
