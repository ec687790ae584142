import hashlib
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Collection, Optional

import bcrypt
from dotenv import load_dotenv
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from database import get_db
from models import Admin

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

ADMIN_USER_TYPE = "admin"
PARTICIPANT_USER_TYPES = frozenset({"cc", "ncp"})
WEAK_SECRETS = {"changeme", "change_me", "secret", "jwt_secret", "password", "default_secret_key"}


def _load_jwt_secret() -> str:
    secret = os.environ.get('JWT_SECRET_KEY')
    if not secret:
        raise RuntimeError('JWT_SECRET_KEY is required and must be set in environment')
    if len(secret) < 32 or secret.strip().lower() in WEAK_SECRETS:
        raise RuntimeError('JWT_SECRET_KEY is too weak; use a random secret with at least 32 characters')
    return secret


SECRET_KEY = _load_jwt_secret()
ALGORITHM = os.environ.get('JWT_ALGORITHM', 'HS256')
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.environ.get('ACCESS_TOKEN_EXPIRE_MINUTES', 30))

bearer = HTTPBearer()


@dataclass(frozen=True)
class TokenClaims:
    subject: str
    user_type: str


def _prehash(password: str) -> bytes:
    return hashlib.sha256(str(password).encode('utf-8')).digest()


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(_prehash(plain_password), hashed_password.encode('utf-8'))
    except ValueError:
        return False


def get_password_hash(password: str) -> str:
    # SHA-256 first so long passwords survive bcrypt's 72 byte limit
    return bcrypt.hashpw(_prehash(password), bcrypt.gensalt()).decode('utf-8')


def create_access_token(subject: str, user_type: str, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    payload = {"sub": subject, "user_type": user_type, "exp": expire, "type": "access"}
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_access_token(token: str, user_types: Collection[str]) -> TokenClaims:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise _unauthorized("Could not validate credentials")
    if payload.get("type") != "access":
        raise _unauthorized("Invalid token type")
    if payload.get("user_type") not in user_types:
        raise _unauthorized("Invalid token user type")
    if not payload.get("sub"):
        raise _unauthorized("Could not validate credentials")
    return TokenClaims(subject=str(payload["sub"]), user_type=payload["user_type"])


async def get_current_admin(
    credentials: HTTPAuthorizationCredentials = Depends(bearer),
    db: Session = Depends(get_db)
) -> Admin:
    claims = decode_access_token(credentials.credentials, {ADMIN_USER_TYPE})
    admin = db.query(Admin).filter(Admin.username == claims.subject).first()
    if admin is None or not admin.is_active:
        raise _unauthorized("Admin not found")
    return admin


async def get_current_participant_id(
    credentials: HTTPAuthorizationCredentials = Depends(bearer),
) -> str:
    """External ID (ccId or ncpId) of the calling participant."""
    return decode_access_token(credentials.credentials, PARTICIPANT_USER_TYPES).subject
