from typing import Optional


class ClientError(Exception):
    """Базовая ошибка клиента"""


class ValidationError(ClientError):
    """Некорректные входные данные, запрос не отправлялся"""


class TransportError(ClientError):
    """Сетевая ошибка или ответ сервера не 2xx"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class PreconditionError(ClientError):
    """Нет корзины или локации для операции оплаты"""


class PaymentTimeoutError(ClientError):
    """Платёж не подтверждён за отведённое время"""
