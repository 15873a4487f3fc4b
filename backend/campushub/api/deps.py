from collections.abc import Callable, Generator

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.orm import Session

from campushub.core.exceptions import AuthenticationError, ForbiddenError
from campushub.core.security import decode_token
from campushub.db.session import SessionLocal
from campushub.models.user import User, UserRole
from campushub.services.notifications import NotificationInbox, SqlNotificationService
from campushub.services.reservation_store import SqlAlchemyReservationRepository
from campushub.services.reservations import ReservationService
from campushub.services.resources import ResourceRegistry

# Missing credentials are reported through AuthenticationError, not FastAPI's default 403.
bearer_scheme = HTTPBearer(auto_error=False)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _token_subject(token: str) -> str:
    try:
        payload = decode_token(token)
    except JWTError as exc:
        raise AuthenticationError() from exc
    subject = payload.get("sub")
    if not subject:
        raise AuthenticationError()
    return str(subject)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None:
        raise AuthenticationError("Not authenticated")
    user = db.get(User, _token_subject(credentials.credentials))
    if user is None:
        raise AuthenticationError()
    if not user.is_active:
        raise ForbiddenError("User account is inactive")
    return user


def require_roles(*roles: UserRole) -> Callable[[User], User]:
    allowed_roles = frozenset(roles)

    def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed_roles:
            raise ForbiddenError("Insufficient permissions")
        return current_user

    return role_checker


def get_reservation_service(db: Session = Depends(get_db)) -> ReservationService:
    return ReservationService(SqlAlchemyReservationRepository(db), SqlNotificationService(db))


def get_resource_registry(db: Session = Depends(get_db)) -> ResourceRegistry:
    return ResourceRegistry(db)


def get_notification_inbox(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> NotificationInbox:
    return NotificationInbox(db, current_user.id)
