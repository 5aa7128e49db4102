from typing import Optional
from decimal import Decimal
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field

# Tables of the local client store.
# The remote backend owns every other entity; only what the client must remember
# between runs lives here.
class StoredSession(SQLModel, table=True):
    """The persisted login: bearer token plus a minimal user profile.
    At most one row exists; logging out deletes it.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    token: str
    user_id: str
    name: str = ""
    email: str = ""
    role: str = "student"
    saved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class BudgetLimit(SQLModel, table=True):
    """A spending limit for one expense category.
    - 'month' = "YYYY-MM", or empty to apply to every transaction
    - 'spent' is never stored; it is recomputed from transactions.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    category: str = Field(min_length=1, max_length=50)
    limit: Decimal = Field(gt=0) # must be a positive number
    month: Optional[str] = Field(default=None, max_length=7)
