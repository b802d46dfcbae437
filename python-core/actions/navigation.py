"""
navigation.py — Navigate и Back поверх NavigationStateMachine.

Если перейти некуда (неизвестное меню, пустой стек), состояние навигации
сбрасывается и выполняются стартовые действия сценария.
"""

from typing import TYPE_CHECKING, Any, Dict

import structlog

from actions.base import BaseAction, as_bool
from actions.messages import delete_message
from dialog.exceptions import EvaluationError

if TYPE_CHECKING:
    from dialog.context_manager import ProcessingContext

logger = structlog.get_logger("scenario_bot.actions.navigation")

FALLBACK_FLAG = "__fallbackToStart"


async def fallback_to_start(ctx: "ProcessingContext") -> None:
    if ctx.scope.find_variable(FALLBACK_FLAG) is True:
        raise EvaluationError("Start actions lead to an unknown menu")
    ctx.processor.navigation.reset(ctx.session)
    with ctx.scope.scope({FALLBACK_FLAG: True}):
        await ctx.processor.run_start_actions(ctx)


async def remove_previous_message(params: Dict[str, Any], ctx: "ProcessingContext") -> None:
    if as_bool(params.get("removePreviousMessage")) and ctx.session.last_message_id:
        await delete_message(ctx, ctx.session.last_message_id)


class NavigateAction(BaseAction):
    action_type = "Navigate"

    async def execute(self, params: Dict[str, Any], ctx: "ProcessingContext") -> None:
        target = params.get("menuItem") or params.get("target")
        if not target:
            raise EvaluationError('Navigate action requires "menuItem"')
        target = str(target)
        session = ctx.session

        await remove_previous_message(params, ctx)

        menu = ctx.processor.menu(target)
        if menu is None:
            logger.warning("navigate_unknown_menu", session_id=session.id, menu=target)
            await fallback_to_start(ctx)
            return

        ctx.processor.navigation.navigate(
            session,
            target,
            add_to_back_stack=as_bool(params.get("addToBackStack"), default=True),
            unique_in_stack=as_bool(params.get("uniqueInStack"), default=True),
        )
        logger.info("navigated", session_id=session.id, menu=target, depth=len(session.back_stack))
        await self.run_graph(menu.get("onNavigation"), ctx, {"menuItem": target, "isBackAction": False})


class BackAction(BaseAction):
    action_type = "Back"

    async def execute(self, params: Dict[str, Any], ctx: "ProcessingContext") -> None:
        session = ctx.session
        await remove_previous_message(params, ctx)

        target = ctx.processor.navigation.back(session)
        menu = ctx.processor.menu(target)
        if menu is None:
            logger.info("back_to_start", session_id=session.id, menu=target)
            await fallback_to_start(ctx)
            return

        logger.info("navigated_back", session_id=session.id, menu=target, depth=len(session.back_stack))
        await self.run_graph(menu.get("onNavigation"), ctx, {"menuItem": target, "isBackAction": True})
