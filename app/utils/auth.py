#app/utils/auth
from datetime import datetime, timedelta, timezone
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from typing import Optional
import asyncpg

from ..database import get_db
from ..config import settings
from ..models.auth import Role
from ..queries import user_queries

# Constants
SECRET_KEY = settings.secret_key
ALGORITHM = settings.algorithm
ACCESS_TOKEN_EXPIRE_MINUTES = settings.access_token_expire_minutes

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/token")

def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)

async def authenticate_user(phone: str, password: str, conn: asyncpg.Connection):
    user = await user_queries.get_user_by_phone(conn, phone)
    if user and user["is_active"] and verify_password(password, user["password_hash"]):
        return user
    return None

async def get_current_user(token: str = Depends(oauth2_scheme), conn: asyncpg.Connection = Depends(get_db)) -> dict:
    """Get the current authenticated actor from JWT token"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        user_id: str = payload.get("sub")
        if user_id is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    user = await user_queries.get_user_by_id(conn, user_id)
    if user is None or not user["is_active"]:
        raise credentials_exception

    return {**user, "role": Role(user["role"])}

def require_roles(*roles: Role):
    """Dependency factory restricting a route to the given roles"""
    async def checker(current_user: dict = Depends(get_current_user)) -> dict:
        if current_user["role"] not in roles:
            raise HTTPException(status_code=403, detail="Not authorized for this action")
        return current_user
    return checker

__all__ = [
    "oauth2_scheme",
    "verify_password",
    "create_access_token",
    "authenticate_user",
    "get_current_user",
    "require_roles",
    "ACCESS_TOKEN_EXPIRE_MINUTES"
]
