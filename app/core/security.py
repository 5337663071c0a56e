from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from app.core.config import settings
import logging
import uuid

audit_logger = logging.getLogger("app.audit")

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class CurrentUser:
    """identity handed over by the auth provider token"""
    id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == settings.ADMIN_ROLE


def decode_token(token: str) -> Optional[CurrentUser]:
    """None for any token that is invalid, expired or has no subject"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None

    subject: Optional[str] = payload.get("sub")
    if subject is None:
        return None
    return CurrentUser(id=subject, role=payload.get("role") or "user")


def user_from_authorization(header: Optional[str]) -> Optional[CurrentUser]:
    if not header or not header.startswith("Bearer "):
        return None
    return decode_token(header.split(" ", 1)[1])


def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> CurrentUser:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise credentials_exception

    user = decode_token(credentials.credentials)
    if user is None:
        raise credentials_exception
    return user


def get_current_admin(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not current_user.is_admin:
        raise HTTPException(status_code=403, detail="The user doesn't have enough privileges")
    return current_user


def create_access_token(subject: str, role: str = "user", expires_delta: Optional[timedelta] = None) -> str:
    """create access token"""
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {"sub": subject, "role": role, "exp": expire, "jti": str(uuid.uuid4())}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def audit_log(message: str):
    audit_logger.info(f"[AUDIT] {datetime.now(timezone.utc).isoformat()} - {message}")
