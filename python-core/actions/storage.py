"""
storage.py — Store и ReadStorage: запись/чтение хранилища сессии по пространствам имён.
"""

from typing import TYPE_CHECKING, Any, Dict

import structlog

from actions.base import BaseAction, as_bool
from dialog.context_manager import DEFAULT_NAMESPACE

if TYPE_CHECKING:
    from dialog.context_manager import ProcessingContext

logger = structlog.get_logger("scenario_bot.actions.storage")


class StoreAction(BaseAction):
    action_type = "Store"

    async def execute(self, params: Dict[str, Any], ctx: "ProcessingContext") -> None:
        key = params.get("key")
        if not key:
            logger.warning("store_key_missing", session_id=ctx.session.id)
            return
        namespace = str(params.get("namespace") or DEFAULT_NAMESPACE)
        ctx.session.store(
            str(key),
            params.get("value"),
            namespace=namespace,
            clear_after_read=as_bool(params.get("clearAfterRead")),
        )
        ctx.scope.set_variable("stored", True)
        logger.debug("storage_written", session_id=ctx.session.id, key=key, namespace=namespace)


class ReadStorageAction(BaseAction):
    """Кладёт значение в data[saveTo] и/или выполняет onRead с value в локальной области."""
    action_type = "ReadStorage"
    graph_fields = frozenset({"onRead"})

    async def execute(self, params: Dict[str, Any], ctx: "ProcessingContext") -> None:
        key = self.require(params, "key")
        value = ctx.session.read(
            str(key),
            namespace=str(params.get("namespace") or DEFAULT_NAMESPACE),
            default=params.get("fallbackValue"),
            consume=as_bool(params.get("clearAfterRead")),
        )
        save_to = params.get("saveTo")
        if save_to:
            ctx.session.data[str(save_to)] = value
        await self.run_graph(params.get("onRead"), ctx, {"value": value})
