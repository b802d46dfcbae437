"""
context_manager.py — состояние сессии пользователя и контекст обработки одного события.
"""

import time
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from interpolation.context import InterpolationContext, build_env
from interpolation.scope_manager import ScopeManager

if TYPE_CHECKING:
    from actions.processor import ActionProcessor

DEFAULT_NAMESPACE = "default"


@dataclass
class AwaitingInput:
    """Ожидание ввода: какое значение ждём и что делать по завершении/отмене/таймауту."""
    key: str
    on_done: Any = None
    on_cancel: Any = None
    on_timeout: Any = None
    input_type: str = "text"
    allow_attachments: bool = False
    timeout: Optional[float] = None
    clear_input_on_done: bool = False
    remove_hint_on_cancel: bool = False
    hint_message_id: Any = None
    generation: int = 0
    armed_at: float = field(default_factory=time.time)


@dataclass
class Session:
    id: str
    data: Dict[str, Any] = field(default_factory=dict)
    back_stack: List[str] = field(default_factory=list)
    current_menu: Optional[str] = None
    awaiting_input: Optional[AwaitingInput] = None
    # {namespace: {key: {"value": ..., "clearAfterRead": bool}}}
    storage: Dict[str, Dict[str, Dict[str, Any]]] = field(default_factory=dict)
    last_message_id: Any = None
    last_message_action_ids: List[str] = field(default_factory=list)
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)

    def touch(self, now: Optional[float] = None) -> None:
        self.last_activity = now if now is not None else time.time()

    def idle_for(self, now: Optional[float] = None) -> float:
        return (now if now is not None else time.time()) - self.last_activity

    def store(self, key: str, value: Any, namespace: str = DEFAULT_NAMESPACE,
              clear_after_read: bool = False) -> None:
        self.storage.setdefault(namespace, {})[key] = {"value": value, "clearAfterRead": clear_after_read}

    def read(self, key: str, namespace: str = DEFAULT_NAMESPACE, default: Any = None,
             consume: bool = False) -> Any:
        """Чтение записи; clearAfterRead (или consume) удаляет её после первого чтения."""
        records = self.storage.get(namespace) or {}
        record = records.get(key)
        if record is None:
            return default
        if consume or record.get("clearAfterRead"):
            del records[key]
            if not records:
                self.storage.pop(namespace, None)
        return record.get("value")


@dataclass
class ProcessingContext:
    """
    Всё, что нужно действию или функции во время обработки одного события:
    сессия, стек областей видимости, параметры текущей функции сценария.
    """
    session: Session
    processor: "ActionProcessor"
    scope: ScopeManager = field(default_factory=ScopeManager)
    params: Dict[str, Any] = field(default_factory=dict)
    event: Any = None

    def with_params(self, params: Dict[str, Any]) -> "ProcessingContext":
        return replace(self, params=dict(params or {}))

    def data_tier(self) -> Dict[str, Any]:
        scenario = self.processor.scenario
        merged = dict(scenario.data) if scenario is not None else {}
        merged.update(self.session.data)
        return merged

    def interpolation(self) -> InterpolationContext:
        functions = self.processor.functions

        async def invoke(name: str, params: Dict[str, Any]) -> Any:
            return await functions.call(name, params, self)

        return InterpolationContext(
            local=self.scope,
            data=self.data_tier(),
            params=self.params,
            env=build_env(self.processor.settings.version),
            invoke=invoke,
        )
