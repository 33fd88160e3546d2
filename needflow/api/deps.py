from typing import List

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session, sessionmaker

from needflow.core import config
from needflow.core.request_context import set_user
from needflow.db.session import get_db
from needflow.models.enums import UserRole
from needflow.models.user import User
from needflow.services.notification_service import NotificationDispatcher
from needflow.services.request_store import SqlRequestStore
from needflow.services.workflow_engine import WorkflowEngine

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


def get_current_user(
    db: Session = Depends(get_db),
    token: str = Depends(oauth2_scheme)
) -> User:
    """Authenticated, active user behind the bearer token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
    except jwt.PyJWTError:
        raise credentials_exception
    username = payload.get("sub")
    if username is None:
        raise credentials_exception

    user = db.query(User).filter(User.username == username).first()
    if user is None:
        raise credentials_exception
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")

    set_user(user.username)
    return user


class RoleChecker:
    def __init__(self, allowed_roles: List[UserRole]):
        self.allowed_roles = [r.value for r in allowed_roles]

    def __call__(self, current_user: User = Depends(get_current_user)):
        if current_user.role not in self.allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {self.allowed_roles}. Your role: {current_user.role}"
            )
        return current_user


# Admin: users, approval chains, settings, global request listing
require_admin = RoleChecker([UserRole.ADMIN])

# Any authenticated user can submit requests and act on steps assigned to them
require_user = RoleChecker(list(UserRole))


def get_dispatcher(db: Session = Depends(get_db)) -> NotificationDispatcher:
    # Separate session on the same bind: delivery must not share the workflow transaction
    return NotificationDispatcher(sessionmaker(autocommit=False, autoflush=False, bind=db.get_bind()))


def get_workflow_engine(
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> WorkflowEngine:
    return WorkflowEngine(SqlRequestStore(db), dispatcher)
