from datetime import date, datetime, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status, Request
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from portal.db.session import SessionLocal
from portal.core.config import settings
from portal.db.models.enums import Role
from portal.db.models.user import User

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def get_today() -> date:
    return date.today()

def get_now() -> datetime:
    return datetime.now(timezone.utc)

def _token_from_request(request: Request) -> Optional[str]:
    token = request.headers.get("Authorization") or request.cookies.get("access_token")
    if not token:
        return None
    # Cookie and header both carry the "Bearer " prefix
    if token.startswith("Bearer "):
        token = token.split(" ", 1)[1]
    return token

async def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    credentials_error = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    token = _token_from_request(request)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        username: str = payload.get("sub")
        if username is None:
            raise credentials_error
    except JWTError:
        raise credentials_error

    user = db.query(User).filter(User.username == username).first()
    if user is None or not user.is_active:
        raise credentials_error

    return user

def require_role(*roles: Role):
    allowed = {r.value for r in roles}

    def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized")
        return user

    return checker

require_admin = require_role(Role.ADMIN)
require_employee = require_role(Role.EMPLOYEE)
