"""Session context: the bearer token and user profile every request runs under."""
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import logging

from jose import JWTError, jwt
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from models import StoredSession
from schemas import UserProfile

logger = logging.getLogger(__name__)

DEFAULT_ROLE = "student"


def claims_from_token(token: str) -> Dict[str, Any]:
    """Read the token's claims without verifying it.

    The backend owns the signing key; the client only needs the user id,
    role and expiry it carries. Malformed tokens give an empty dict.
    """
    try:
        return jwt.get_unverified_claims(token)
    except JWTError:
        return {}


def token_expired(token: str, now: Optional[datetime] = None) -> bool:
    exp = claims_from_token(token).get("exp")
    if not isinstance(exp, (int, float)) or isinstance(exp, bool):
        return False
    now = now or datetime.now(timezone.utc)
    return datetime.fromtimestamp(exp, tz=timezone.utc) <= now


def profile_from_token(token: str, email: str = "") -> Optional[UserProfile]:
    """Fallback profile when the login flow did not return one."""
    claims = claims_from_token(token)
    user_id = claims.get("id") or claims.get("userId") or claims.get("sub")
    if not user_id:
        return None
    email = email or str(claims.get("email") or "")
    return UserProfile(
        id=str(user_id),
        name=email.split("@")[0] if email else "",
        email=email,
        role=str(claims.get("role") or DEFAULT_ROLE),
    )


class SessionContext:
    """Explicit session passed to the gateway at construction.

    login() populates it, logout() clears it; nothing reads a global.
    """

    def __init__(self, token: Optional[str] = None, user: Optional[UserProfile] = None):
        self.token = token
        self.user = user

    @property
    def user_id(self) -> Optional[str]:
        return self.user.id if self.user else None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token and self.user_id)

    def login(self, token: str, user: Optional[UserProfile] = None) -> None:
        if not token:
            raise ValueError("A bearer token is required")
        profile = user or profile_from_token(token)
        if profile is None:
            raise ValueError("Token carries no user id and no profile was given")
        self.token = token
        self.user = profile

    def logout(self) -> None:
        self.token = None
        self.user = None

    def auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}


def _delete_all(session: Session) -> None:
    for row in session.exec(select(StoredSession)).all():
        session.delete(row)


class SessionStore:
    """Keeps the session in the local database between runs."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def load(self) -> SessionContext:
        """Restore the saved session; anything incomplete or expired means logged out."""
        with Session(self.engine) as session:
            row = session.exec(select(StoredSession)).first()
            if row is None or not row.token or not row.user_id:
                return SessionContext()
            if token_expired(row.token):
                logger.info("stored session token has expired")
                return SessionContext()
            return SessionContext(
                token=row.token,
                user=UserProfile(id=row.user_id, name=row.name, email=row.email, role=row.role),
            )

    def save(self, ctx: SessionContext) -> None:
        if not ctx.is_authenticated:
            raise ValueError("Cannot save a session that is not logged in")
        with Session(self.engine) as session:
            _delete_all(session)
            session.add(StoredSession(
                token=ctx.token,
                user_id=ctx.user.id,
                name=ctx.user.name,
                email=ctx.user.email,
                role=ctx.user.role,
            ))
            session.commit()

    def clear(self) -> None:
        with Session(self.engine) as session:
            _delete_all(session)
            session.commit()
