"""
processor.py — последовательное выполнение графов действий.

Граф — один дескриптор {action: Type, ...} или список дескрипторов.
Элементы списка выполняются строго по порядку; ошибка в одном элементе
прерывает оставшиеся. Неизвестный тип действия: предупреждение и пропуск.
"""

from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

import structlog

from config.settings import EngineSettings
from dialog.exceptions import ResolutionError, TransportError
from dialog.state_machine import AwaitingInputStateMachine, NavigationStateMachine
from functions.processor import FunctionProcessor
from registry.registry_manager import RegistryManager
from storage.action_mapping import ActionMappingTable
from utils.metrics import EngineMetrics

if TYPE_CHECKING:
    from bot.transport import Transport
    from dialog.context_manager import ProcessingContext
    from dialog.scenario_loader import Scenario

logger = structlog.get_logger("scenario_bot.action_processor")


def normalize_actions(graph: Any) -> List[Dict[str, Any]]:
    if not graph:
        return []
    items = graph if isinstance(graph, list) else [graph]
    actions = []
    for item in items:
        if isinstance(item, dict):
            actions.append(item)
        else:
            logger.warning("action_descriptor_invalid", value_type=type(item).__name__)
    return actions


class ActionProcessor:
    def __init__(self, registries: RegistryManager, scenario: Optional["Scenario"],
                 transport: Optional["Transport"] = None,
                 callbacks: Optional[ActionMappingTable] = None,
                 settings: Optional[EngineSettings] = None,
                 metrics: Optional[EngineMetrics] = None,
                 http_session_factory: Optional[Callable[..., Any]] = None):
        self.registries = registries
        self.scenario = scenario
        self.transport = transport
        self.settings = settings or EngineSettings()
        self.callbacks = callbacks or ActionMappingTable(self.settings.callback_table_size)
        self.metrics = metrics
        self.http_session_factory = http_session_factory
        self.functions = FunctionProcessor(registries.functions, self)
        self.navigation = NavigationStateMachine(self.settings.max_back_stack)
        self.input = AwaitingInputStateMachine()

    async def process_actions(self, graph: Any, ctx: "ProcessingContext") -> None:
        for descriptor in normalize_actions(graph):
            await self.process_action(descriptor, ctx)

    async def process_action(self, descriptor: Dict[str, Any], ctx: "ProcessingContext") -> None:
        action_type = descriptor.get("action")
        if not isinstance(action_type, str) or not action_type:
            logger.warning("action_type_missing", session_id=ctx.session.id, keys=list(descriptor))
            return

        factory = self.registries.actions.resolve(action_type)
        if factory is None:
            logger.warning("action_unknown", action=action_type, session_id=ctx.session.id)
            return

        handler = factory()
        try:
            await handler.process(descriptor, ctx)
        except ResolutionError as e:
            self._record_error(action_type, e)
            logger.warning("action_unresolved", action=action_type, session_id=ctx.session.id, error=str(e))
            return
        except TransportError as e:
            self._record_error(action_type, e)
            logger.error("action_transport_error", action=action_type, session_id=ctx.session.id, error=str(e))
            return
        except Exception as e:
            # Во вложенных графах ошибка проходит несколько уровней; учитываем её один раз
            if getattr(e, "failed_action", None) is None:
                e.failed_action = action_type
                self._record_error(action_type, e)
                logger.error("action_failed", action=action_type, session_id=ctx.session.id,
                             error=str(e), error_type=type(e).__name__)
            raise

        if self.metrics is not None:
            self.metrics.record_action(action_type)
        logger.debug("action_dispatched", action=action_type, session_id=ctx.session.id)

    async def run_start_actions(self, ctx: "ProcessingContext") -> None:
        if self.scenario is None:
            return
        await self.process_actions(self.scenario.start_actions, ctx)

    def menu(self, name: Optional[str]) -> Optional[Dict[str, Any]]:
        if self.scenario is None or not name:
            return None
        menu = self.scenario.menu_items.get(name)
        return menu if isinstance(menu, dict) else None

    def require_transport(self) -> "Transport":
        if self.transport is None:
            raise TransportError("No transport configured")
        return self.transport

    def _record_error(self, action_type: str, error: BaseException) -> None:
        if self.metrics is not None:
            self.metrics.record_action_error(action_type, error)
