class LMSError(Exception):
    """Базовая ошибка операции; message уходит клиенту как есть."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(LMSError):
    pass


class InvalidInput(LMSError):
    pass


class RequestDenied(LMSError):
    """Отказ защитного шлюза (бот или иная политика)."""


class RateLimited(RequestDenied):
    pass


class ExternalServiceFailure(LMSError):
    pass
