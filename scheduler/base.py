from abc import ABC, abstractmethod

from scheduler.exception import HandlerNotFoundError
from scheduler.model.handler import HandlerParams, HandlerResult

__all__ = [
    'handler',
    'get_handler',
    'get_registered_handlers',
    'BaseHandler',
    'HandlerRegistry',
    'HandlerNotFoundError',
    'HandlerParams',
    'HandlerResult',
    'default_registry',
]


class HandlerRegistry:
    """잡 이름 -> 핸들러 클래스 매핑"""

    def __init__(self):
        self._handlers: dict[str, type["BaseHandler"]] = {}

    def register(self, name: str, cls: type["BaseHandler"]) -> None:
        self._handlers[name] = cls

    def get(self, name: str) -> "BaseHandler":
        """핸들러 인스턴스 반환 (실행마다 새 인스턴스)"""
        if name not in self._handlers:
            raise HandlerNotFoundError(name)
        return self._handlers[name]()

    def names(self) -> dict[str, type["BaseHandler"]]:
        return self._handlers.copy()


# 데코레이터 등록용 기본 레지스트리
default_registry = HandlerRegistry()


def handler(name: str, registry: HandlerRegistry | None = None):
    """핸들러 등록 데코레이터"""
    def decorator(cls):
        (registry or default_registry).register(name, cls)
        return cls
    return decorator


def get_handler(name: str) -> "BaseHandler":
    return default_registry.get(name)


def get_registered_handlers() -> dict[str, type["BaseHandler"]]:
    """등록된 핸들러 목록 반환 (테스트용)"""
    return default_registry.names()


class BaseHandler(ABC):
    """예약 잡 핸들러 기본 클래스"""

    @abstractmethod
    async def execute(self, params: HandlerParams) -> HandlerResult:
        """
        잡 실행 로직

        Args:
            params: 예약 시 저장된 data (message, metadata) + job_id

        Returns:
            실행 결과 (HandlerResult)

        Raises:
            Exception: 실행 실패 시 예외 발생 (fail_reason으로 기록됨)
        """
        pass
