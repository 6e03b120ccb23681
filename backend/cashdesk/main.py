from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import select

from cashdesk.config import settings
from cashdesk.core.database import engine, Base, async_session_maker
from cashdesk.core.errors import PosSessionError
from cashdesk.core.logging_config import setup_logging, get_logger
from cashdesk.models import Employee, EmployeeRole
from cashdesk.api.auth import router as auth_router
from cashdesk.api.pos import router as pos_router
from cashdesk.services.auth_service import hash_password

setup_logging()
logger = get_logger(__name__)


async def ensure_superuser():
    """Создать администратора из настроек, если такого логина ещё нет."""
    async with async_session_maker() as session:
        r = await session.execute(select(Employee).where(Employee.login == settings.superuser_login))
        if r.scalar_one_or_none() is not None:
            return
        emp = Employee(
            login=settings.superuser_login,
            alias=settings.superuser_alias,
            role=EmployeeRole.ROLE_ADMIN,
            password_hash=hash_password(settings.superuser_password),
            is_active=True,
        )
        session.add(emp)
        await session.commit()
        logger.info("Создан администратор: %s", settings.superuser_login)


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Таблицы БД проверены/созданы")
    try:
        await ensure_superuser()
    except Exception as e:
        logger.warning("Администратор: %s", e)
    yield
    await engine.dispose()


app = FastAPI(title="Касса", version="1.0.0", lifespan=lifespan)


@app.exception_handler(PosSessionError)
async def pos_session_error_handler(request: Request, exc: PosSessionError):
    logger.info("%s %s: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Необработанная ошибка: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Внутренняя ошибка сервера"},
    )


_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


app.include_router(auth_router)
app.include_router(pos_router)


@app.get("/health")
def health():
    return {"status": "ok"}
