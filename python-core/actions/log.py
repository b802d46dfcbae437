"""
log.py — Log: запись сообщения сценария в структурированный лог.
"""

from typing import TYPE_CHECKING, Any, Dict

import structlog

from actions.base import BaseAction
from interpolation.engine import format_value

if TYPE_CHECKING:
    from dialog.context_manager import ProcessingContext

logger = structlog.get_logger("scenario_bot.scenario_log")

LEVELS = ("debug", "info", "warning", "error")


class LogAction(BaseAction):
    action_type = "Log"

    async def execute(self, params: Dict[str, Any], ctx: "ProcessingContext") -> None:
        level = str(params.get("level") or "info").lower()
        if level not in LEVELS:
            level = "info"
        extra = params.get("data") if isinstance(params.get("data"), dict) else {}
        getattr(logger, level)(
            "scenario_log",
            message=format_value(params.get("message")),
            session_id=ctx.session.id,
            menu=ctx.session.current_menu,
            **{f"data_{key}": value for key, value in extra.items()},
        )
