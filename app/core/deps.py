from uuid import UUID

from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.orm import Session

from app.core.security import decode_access_token
from app.db.session import get_db
from app.models.user import ROLE_SUPER_ADMIN, User
from app.services.roles import is_admin_role, resolve_role

bearer = HTTPBearer(auto_error=False)


class CurrentUser:
    def __init__(self, user: User, role: str):
        self.user = user
        self.role = role

    @property
    def id(self) -> UUID:
        return self.user.id


def get_current_user(
    creds: HTTPAuthorizationCredentials = Depends(bearer),
    db: Session = Depends(get_db),
) -> CurrentUser:
    if not creds:
        raise HTTPException(status_code=401, detail="Unauthorized")
    try:
        claims = decode_access_token(creds.credentials)
        user_id = UUID(str(claims.get("sub") or ""))
    except (JWTError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token")
    user = db.get(User, user_id)
    if user is None or not user.is_active:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return CurrentUser(user, resolve_role(db, user))


def require_admin(current: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not is_admin_role(current.role):
        raise HTTPException(status_code=403, detail="Admin access required")
    return current


def require_super_admin(current: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if current.role != ROLE_SUPER_ADMIN:
        raise HTTPException(status_code=403, detail="Super Admin access required")
    return current
