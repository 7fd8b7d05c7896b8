# school_roster/api/v1/auth.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from school_roster.api.deps import get_current_user, get_db
from school_roster.core.logging import get_logger, log_with_context
from school_roster.core.security_password import verify_and_maybe_upgrade
from school_roster.core.tokens import create_access_token
from school_roster.crud.user import user_crud
from school_roster.models.student import utcnow
from school_roster.models.user import User
from school_roster.schemas.token import AuthResponse
from school_roster.schemas.user import LoginRequest, UserCreate, UserOut

router = APIRouter()
logger = get_logger("auth")

def _auth_response(user: User, message: str) -> AuthResponse:
    return AuthResponse(
        message=message,
        access_token=create_access_token(sub=user.username, role=user.role),
        user=UserOut.model_validate(user),
    )

@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(body: UserCreate, db: Session = Depends(get_db)):
    if user_crud.exists(db, username=body.username, email=body.email):
        raise HTTPException(status_code=409, detail="User already exists")
    user = user_crud.create(db, body)
    log_with_context(logger, "INFO", "User registered",
                     context={"username": user.username}, extra_data={"role": user.role})
    return _auth_response(user, "User registered successfully")

@router.post("/login", response_model=AuthResponse)
def login(body: LoginRequest, db: Session = Depends(get_db)):
    user = user_crud.get_by_username(db, body.username.strip())
    if not user:
        log_with_context(logger, "WARNING", "Login failed: unknown user",
                         context={"username": body.username})
        raise HTTPException(status_code=401, detail="Invalid credentials")

    ok, new_hash = verify_and_maybe_upgrade(body.password, user.hashed_password)
    if not ok:
        log_with_context(logger, "WARNING", "Login failed: bad password",
                         context={"username": user.username})
        raise HTTPException(status_code=401, detail="Invalid credentials")

    changes = {"last_login": utcnow()}
    if new_hash:
        changes["hashed_password"] = new_hash
    user = user_crud.update(db, user, changes)
    log_with_context(logger, "INFO", "Login successful", context={"username": user.username})
    return _auth_response(user, "Login successful")

@router.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)):
    return UserOut.model_validate(user)
