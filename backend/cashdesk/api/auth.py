"""Вход оператора кассы и проверка ролей для /pos."""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer, OAuth2PasswordRequestForm
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from cashdesk.core.database import get_db
from cashdesk.core.logging_config import get_logger
from cashdesk.models.employee import EmployeeRole
from cashdesk.schemas.pos_session import PosSessionUser
from cashdesk.services.auth_service import authenticate, create_access_token, decode_token

router = APIRouter(prefix="/auth", tags=["auth"])
security = HTTPBearer(auto_error=False)
logger = get_logger(__name__)


class UserInfo(BaseModel):
    id: int
    login: str
    alias: Optional[str] = None
    role: str

    def as_operator(self) -> PosSessionUser:
        """Снимок оператора для записи в смену."""
        return PosSessionUser(user_id=str(self.id), user_login=self.login, user_alias=self.alias)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserInfo


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[UserInfo]:
    if credentials is None or credentials.scheme.lower() != "bearer":
        return None
    claims = decode_token(credentials.credentials)
    if claims is None:
        logger.warning("Токен не прошёл проверку (неверный или истёк)")
        return None
    return UserInfo(
        id=int(claims["sub"]),
        login=claims.get("login") or "",
        alias=claims.get("alias"),
        role=claims.get("role") or "",
    )


def require_roles(allowed_roles: List[EmployeeRole]):
    async def _check(current_user: Optional[UserInfo] = Depends(get_current_user)) -> UserInfo:
        if current_user is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Требуется авторизация",
                headers={"WWW-Authenticate": "Bearer"},
            )
        if current_user.role not in {r.value for r in allowed_roles}:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Недостаточно прав")
        return current_user
    return _check


# Открытие/закрытие смены и отчёты: любой сотрудник кассы
RequireCashAccess = require_roles([EmployeeRole.ROLE_CASHIER, EmployeeRole.ROLE_MANAGER, EmployeeRole.ROLE_ADMIN])
# История смен
RequireHistoryAccess = require_roles([EmployeeRole.ROLE_MANAGER, EmployeeRole.ROLE_ADMIN])


@router.post("/login", response_model=LoginResponse)
async def login(
    form: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
):
    emp = await authenticate(db, form.username, form.password)
    if emp is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Неверный логин или пароль")
    user = UserInfo(id=emp.id, login=emp.login, alias=emp.alias, role=emp.role.value)
    token = create_access_token(subject=user.id, role=user.role, login=user.login, alias=user.alias)
    return LoginResponse(access_token=token, user=user)


@router.get("/me", response_model=UserInfo)
async def me(current_user: UserInfo = Depends(RequireCashAccess)):
    """Текущий оператор кассы."""
    return current_user
