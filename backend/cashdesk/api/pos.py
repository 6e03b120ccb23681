"""API кассовых смен: открытие, X-отчёт, закрытие с Z-отчётом, история."""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from cashdesk.api.auth import RequireCashAccess, RequireHistoryAccess, UserInfo
from cashdesk.config import settings
from cashdesk.core.database import get_db
from cashdesk.models import SessionStatus
from cashdesk.schemas.pos_session import (
    ClosingOverview,
    PosSession,
    PosSessionOutcome,
    SessionClose,
    SessionClosedResponse,
    SessionCurrentResponse,
    SessionOpen,
    SessionOpenedResponse,
    TicketResponse,
)
from cashdesk.schemas.pos_tabs import PosTabGroupResponse
from cashdesk.services.income_service import incomes_to_list
from cashdesk.services.payment_source import SqlPaymentSource
from cashdesk.services.pos_session_service import PosSessionService
from cashdesk.services.pos_tabs import describe_tab_groups, get_pos_tab_groups
from cashdesk.services.session_store import SqlSessionStore

router = APIRouter(prefix="/pos", tags=["pos"])

BANK_DEPOSIT = "bank-deposit"


async def get_session_service(db: AsyncSession = Depends(get_db)) -> PosSessionService:
    return PosSessionService(
        store=SqlSessionStore(db),
        payments=SqlPaymentSource(db),
        settings=settings,
    )


def _outcomes(body: SessionClose) -> List[PosSessionOutcome]:
    if body.outcomes is not None:
        return [
            PosSessionOutcome(category=o.category, amount=o.amount, currency=o.currency)
            for o in body.outcomes
        ]
    # Форма закрытия: одна сдача в банк в валюте закрытия
    return [PosSessionOutcome(category=BANK_DEPOSIT, amount=body.bank_deposit_amount, currency=body.currency)]


@router.post("/sessions", response_model=SessionOpenedResponse)
async def open_session(
    body: SessionOpen,
    service: PosSessionService = Depends(get_session_service),
    user: UserInfo = Depends(RequireCashAccess),
):
    """Открыть смену. 409, если уже есть открытая."""
    session_id = await service.open_session(body.cash_opening_amount, body.currency, user.as_operator())
    return SessionOpenedResponse(id=session_id)


@router.get("/sessions/current", response_model=SessionCurrentResponse)
async def get_current_session(
    service: PosSessionService = Depends(get_session_service),
    user: UserInfo = Depends(RequireCashAccess),
):
    return SessionCurrentResponse(session=await service.get_current_session())


@router.get("/closing", response_model=ClosingOverview)
async def get_closing_overview(
    service: PosSessionService = Depends(get_session_service),
    user: UserInfo = Depends(RequireCashAccess),
):
    """Данные для формы закрытия текущей смены."""
    session = await service.get_current_session()
    if session is None:
        raise HTTPException(status_code=404, detail="Нет открытой кассовой смены")
    incomes = await service.current_incomes(session)
    return ClosingOverview(
        session=session,
        incomes=incomes_to_list(incomes),
        cash_delta_justification_mandatory=settings.pos_cash_delta_justification_mandatory,
    )


@router.post("/sessions/{session_id}/close", response_model=SessionClosedResponse)
async def close_session(
    session_id: str,
    body: SessionClose,
    service: PosSessionService = Depends(get_session_service),
    user: UserInfo = Depends(RequireCashAccess),
):
    """Закрыть смену (пересчитанная наличность, выдачи, пояснение расхождения)."""
    closed, z_ticket = await service.close_session(
        session_id,
        body.cash_closing_amount,
        body.currency,
        _outcomes(body),
        body.justification,
        user.as_operator(),
    )
    return SessionClosedResponse(session=closed, z_ticket=z_ticket)


@router.post("/sessions/{session_id}/x-ticket", response_model=TicketResponse)
async def generate_x_ticket(
    session_id: str,
    service: PosSessionService = Depends(get_session_service),
    user: UserInfo = Depends(RequireCashAccess),
):
    text = await service.generate_x_ticket(session_id, user.as_operator())
    return TicketResponse(session_id=session_id, text=text)


@router.get("/sessions", response_model=List[PosSession])
async def list_sessions(
    status: Optional[SessionStatus] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    service: PosSessionService = Depends(get_session_service),
    user: UserInfo = Depends(RequireHistoryAccess),
):
    """История смен, новые сверху."""
    return await service.list_sessions(status=status, limit=limit)


@router.get("/sessions/{session_id}", response_model=PosSession)
async def get_session(
    session_id: str,
    service: PosSessionService = Depends(get_session_service),
    user: UserInfo = Depends(RequireCashAccess),
):
    return await service.get_session(session_id)


@router.get("/sessions/{session_id}/z-ticket", response_model=TicketResponse)
async def get_z_ticket(
    session_id: str,
    service: PosSessionService = Depends(get_session_service),
    user: UserInfo = Depends(RequireCashAccess),
):
    """Повторная печать Z-отчёта закрытой смены."""
    return TicketResponse(session_id=session_id, text=await service.z_ticket_for(session_id))


@router.get("/tabs", response_model=List[PosTabGroupResponse])
async def list_tabs(user: UserInfo = Depends(RequireCashAccess)):
    return describe_tab_groups(get_pos_tab_groups())
