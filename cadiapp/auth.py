# cadiapp/auth.py

import os
from datetime import datetime, timedelta
from typing import Optional

from jose import jwt, JWTError
from dotenv import load_dotenv
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from cadiapp import models
from cadiapp.database import SessionLocal
from cadiapp.errors import ForbiddenError, UnauthorizedError

# ------------------------------------------------------------------
# ENV & CONFIG
# ------------------------------------------------------------------

load_dotenv()

SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(
    os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 1440)
)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# tokenUrl must match the login endpoint
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="login")

# ------------------------------------------------------------------
# PASSWORD UTILS
# ------------------------------------------------------------------

def verify_password(plain_password: str, hashed_password: str) -> bool:
    # Bcrypt has 72-byte limit
    if len(plain_password) > 72:
        plain_password = plain_password[:72]
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    if len(password) > 72:
        password = password[:72]
    return pwd_context.hash(password)

# ------------------------------------------------------------------
# JWT UTILS
# ------------------------------------------------------------------

def create_access_token(
    data: dict,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    data should include at least:
    {
        "sub": user.email,
        "role": "golfer" | "caddie" | "admin"
    }
    The role is informational for clients; ownership checks never rely on it.
    """
    to_encode = data.copy()

    expire = datetime.utcnow() + (
        expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )

    to_encode.update({"exp": expire})

    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)

# ------------------------------------------------------------------
# DATABASE DEPENDENCY
# ------------------------------------------------------------------

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory():
    # For work that outlives the request (background tasks) and needs its own session.
    return SessionLocal

# ------------------------------------------------------------------
# AUTH DEPENDENCIES
# ------------------------------------------------------------------

def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> models.User:
    credentials_exception = UnauthorizedError(headers={"WWW-Authenticate": "Bearer"})

    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        email: Optional[str] = payload.get("sub")

        if email is None:
            raise credentials_exception

    except JWTError:
        raise credentials_exception

    user = (
        db.query(models.User)
        .filter(models.User.email == email)
        .first()
    )

    if not user:
        raise credentials_exception

    return user

# ------------------------------------------------------------------
# ROLE HELPERS
# ------------------------------------------------------------------

def require_role(*roles: models.UserRole):
    """
    Dependency factory: only let through users with one of `roles`.
    This is a coarse gate for whole endpoints; per-booking ownership is
    checked in the booking rules.
    """
    allowed = {r.value for r in roles}

    def _guard(current_user: models.User = Depends(get_current_user)) -> models.User:
        role = str(getattr(current_user.role, "value", current_user.role) or "")
        if role not in allowed:
            raise ForbiddenError()
        return current_user

    return _guard


require_admin = require_role(models.UserRole.admin)
require_golfer = require_role(models.UserRole.golfer)
require_caddie = require_role(models.UserRole.caddie)
