"""Пароли, вход оператора кассы и JWT.

В токене лежит снимок оператора (login, alias, роль): его пишут в смену
и печатают в X/Z-отчётах без обращения к БД.
"""
from datetime import datetime, timedelta
from typing import Optional

import bcrypt
import jwt
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cashdesk.config import settings
from cashdesk.core.logging_config import get_logger
from cashdesk.models import Employee

logger = get_logger(__name__)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))


async def authenticate(db: AsyncSession, login: str, password: str) -> Optional[Employee]:
    """Активный сотрудник с таким логином (без учёта регистра) и паролем, иначе None."""
    login = (login or "").strip().lower()
    if not login:
        return None
    r = await db.execute(
        select(Employee).where(func.lower(Employee.login) == login, Employee.is_active == True)
    )
    emp = r.scalar_one_or_none()
    if emp is None or not emp.password_hash or not verify_password(password or "", emp.password_hash):
        logger.info("Неудачный вход: %s", login)
        return None
    return emp


def create_access_token(
    subject: int,
    role: str,
    login: str,
    alias: Optional[str] = None,
) -> str:
    now = datetime.utcnow()
    payload = {
        "sub": str(subject),  # PyJWT требует строку
        "role": role,
        "login": login,
        "alias": alias,
        "exp": now + timedelta(minutes=settings.jwt_expire_minutes),
        "iat": now,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Optional[dict]:
    """Проверенные claims токена или None (подпись, срок, числовой sub)."""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError:
        return None
    if not str(payload.get("sub", "")).isdigit():
        return None
    return payload
