"""
telegram_bot.py — запуск бота сценариев: polling, health-check, /metrics, graceful shutdown

- Настройки: config/engine.yaml + переменные окружения (.env)
- HTTP сервер: /health и /metrics (Prometheus)
- DI: сценарий -> реестры -> ActionProcessor -> FlowManager -> хендлеры
"""

import asyncio
import os
import signal
import sys

import structlog
from aiohttp import web
from telegram.ext import Application
from telegram.request import HTTPXRequest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from bot.handlers import setup_handlers
from bot.telegram_transport import TelegramTransport
from config.settings import Settings, load_settings
from dialog.flow_manager import FlowManager
from dialog.scenario_loader import load_scenario
from registry.registry_manager import RegistryManager
from storage.session_store import SessionStore
from utils.antiflood import AntiFloodMiddleware
from utils.logging_config import configure_logging
from utils.metrics import EngineMetrics, metrics_handler

logger = structlog.get_logger("scenario_bot.telegram_bot")


async def healthcheck_handler(request):
    sessions: SessionStore = request.app["sessions"]
    return web.json_response({"status": "ok", "sessions": len(sessions)})


async def start_healthcheck_server(port: int, metrics: EngineMetrics, sessions: SessionStore):
    app = web.Application()
    app["metrics"] = metrics
    app["sessions"] = sessions
    app.router.add_get('/health', healthcheck_handler)
    app.router.add_get('/metrics', metrics_handler)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, '0.0.0.0', port)
    await site.start()
    logger.info("healthcheck_started", port=port)
    return runner


def build_flow_manager(settings: Settings, application: Application, metrics: EngineMetrics) -> FlowManager:
    scenario = load_scenario(settings.bot.scenario_path)
    return FlowManager.build(
        scenario,
        TelegramTransport(application.bot),
        registries=RegistryManager().initialize(),
        settings=settings.engine,
        metrics=metrics,
    )


async def run(settings: Settings) -> None:
    if not settings.bot.telegram_token:
        raise SystemExit("TELEGRAM_TOKEN is not set")

    # Увеличиваем timeout для стабильности
    request = HTTPXRequest(connection_pool_size=8, read_timeout=30, write_timeout=30, connect_timeout=10)
    application = Application.builder().token(settings.bot.telegram_token).request(request).build()

    metrics = EngineMetrics()
    flow_manager = build_flow_manager(settings, application, metrics)
    antiflood = AntiFloodMiddleware(settings.bot.antiflood_rate_limit, settings.bot.antiflood_interval_sec)
    setup_handlers(application, flow_manager, antiflood)

    healthcheck_runner = await start_healthcheck_server(settings.bot.healthcheck_port, metrics,
                                                        flow_manager.sessions)
    flow_manager.sessions.start()

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            pass

    logger.info("polling_start", scenario=settings.bot.scenario_path)
    try:
        async with application:
            await application.start()
            await application.updater.start_polling()
            await stop_event.wait()
            logger.info("polling_stop")
            await application.updater.stop()
            await application.stop()
    finally:
        await flow_manager.close()
        await healthcheck_runner.cleanup()


def main() -> None:
    settings = load_settings()
    configure_logging(settings.bot.log_level, settings.bot.log_json)
    asyncio.run(run(settings))


if __name__ == "__main__":
    main()
