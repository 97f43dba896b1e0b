"""
Исключения предметной области
"""
from typing import Optional


class FleetGuardError(Exception):
    """
    Базовое исключение приложения
    """
    pass


class CompanyNotFoundError(FleetGuardError):
    def __init__(self, company_id: int):
        self.company_id = company_id
        super().__init__(f"Компания с ID {company_id} не найдена")


class NoActiveSubscriptionError(FleetGuardError):
    def __init__(self, company_id: int):
        self.company_id = company_id
        super().__init__(f"У компании с ID {company_id} нет активной подписки")


class ExternalApiError(FleetGuardError):
    """
    Ошибка внешнего API данных о ТС

    Args:
        status_code: HTTP код ответа (None, если ответ не получен)
        message: Описание ошибки
    """

    def __init__(self, status_code: Optional[int], message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"External API error ({status_code}): {message}")


class InvalidCadenceError(FleetGuardError, ValueError):
    """
    Невалидное расписание задачи
    """

    def __init__(self, expression: str, reason: str):
        self.expression = expression
        self.reason = reason
        super().__init__(f"Неверное расписание '{expression}': {reason}")


class DeliveryError(FleetGuardError):
    """
    Ошибка доставки уведомления через канал
    """

    def __init__(self, channel: str, message: str):
        self.channel = channel
        super().__init__(f"Ошибка доставки через {channel}: {message}")
