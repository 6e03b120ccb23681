"""Ошибки кассовых смен. HTTP-слой превращает их в ответ {"detail": ...} с status_code."""
from decimal import Decimal
from typing import Optional


class PosSessionError(Exception):
    status_code = 400
    detail = "Ошибка кассовой смены"

    def __init__(self, detail: Optional[str] = None):
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class AlreadyActive(PosSessionError):
    status_code = 409
    detail = "Уже есть открытая кассовая смена"

    def __init__(self, session_id: Optional[str] = None):
        self.session_id = session_id
        if session_id:
            super().__init__(f"Уже есть открытая кассовая смена (id={session_id}). Сначала закройте её.")
        else:
            super().__init__()


class NotFound(PosSessionError):
    status_code = 404

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Кассовая смена не найдена (id={session_id})")


class AlreadyClosed(PosSessionError):
    status_code = 409

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Кассовая смена уже закрыта (id={session_id})")


class NotActive(PosSessionError):
    status_code = 409

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Кассовая смена не активна (id={session_id})")


class NotClosed(PosSessionError):
    """Z-отчёт запрошен по смене, которая ещё открыта."""
    status_code = 409

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Кассовая смена ещё не закрыта (id={session_id})")


class JustificationRequired(PosSessionError):
    status_code = 400

    def __init__(self, delta: Decimal, currency: str):
        self.delta = delta
        self.currency = currency
        super().__init__(
            f"Расхождение по наличным {delta} {currency}: требуется пояснение"
        )


class InvalidInput(PosSessionError, ValueError):
    status_code = 400
    detail = "Некорректные данные"


class SessionsDisabled(PosSessionError):
    status_code = 400
    detail = "Кассовые смены отключены в настройках"
