from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from school_roster.core.tokens import decode_access
from school_roster.crud.user import user_crud
from school_roster.db.session import get_db
from school_roster.models.user import User

# ----------------------------------------------------------------------
# Bearer token from the Authorization header
# ----------------------------------------------------------------------
def get_bearer_token(authorization: str = Header(None, alias="Authorization")) -> str:
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing Authorization header")
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Invalid Authorization header")
    return parts[1]

# ----------------------------------------------------------------------
# Logged-in user resolved from the token subject (username)
# ----------------------------------------------------------------------
def get_current_user(
    token: str = Depends(get_bearer_token),
    db: Session = Depends(get_db),
) -> User:
    payload = decode_access(token)
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid token")
    user = user_crud.get_by_username(db, payload["sub"])
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user
