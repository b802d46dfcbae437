"""
exceptions.py — исключения движка сценариев: интерполяция, функции, действия, транспорт.
"""


class ScenarioError(Exception):
    pass


class ResolutionError(ScenarioError):
    """Неизвестное имя функции или действия. Не прерывает сессию."""

    def __init__(self, name: str, kind: str = "function"):
        super().__init__(f"Unknown {kind} '{name}'")
        self.name = name
        self.kind = kind


class EvaluationError(ScenarioError):
    def __init__(self, message):
        super().__init__(message)
        self.message = message


class TransportError(ScenarioError):
    pass


class MessageNotFound(TransportError):
    """Сообщение уже удалено или недоступно у провайдера."""


class EndpointTimeout(ScenarioError, TimeoutError):
    pass


class RegistrationError(ScenarioError):
    pass


class ScenarioLoadError(ScenarioError):
    pass
