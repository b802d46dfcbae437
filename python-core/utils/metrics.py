"""
metrics.py — Prometheus-метрики движка сценариев (действия, функции, сессии).
"""

import re
from typing import Optional

from aiohttp import web
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Gauge, generate_latest


def sanitize_label(label: str) -> str:
    return re.sub(r"[^a-zA-Z0-9_*]", "_", str(label))[:32]


class EngineMetrics:
    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        self.actions = Counter(
            "scenario_actions_total",
            "Выполненные действия по типу",
            ["action"], registry=self.registry
        )
        self.action_errors = Counter(
            "scenario_action_errors_total",
            "Ошибки действий по типу и классу ошибки",
            ["action", "error_type"], registry=self.registry
        )
        self.functions = Counter(
            "scenario_functions_total",
            "Вычисленные функции по имени",
            ["function"], registry=self.registry
        )
        self.dispatch_errors = Counter(
            "scenario_dispatch_errors_total",
            "Необработанные ошибки на границе FlowManager",
            ["error_type"], registry=self.registry
        )
        self.evicted_sessions = Counter(
            "scenario_evicted_sessions_total",
            "Сессии, удалённые по неактивности", registry=self.registry
        )
        self.live_sessions = Gauge(
            "scenario_live_sessions",
            "Активные сессии в памяти", registry=self.registry
        )

    def record_action(self, action_type: str) -> None:
        self.actions.labels(sanitize_label(action_type)).inc()

    def record_action_error(self, action_type: str, error: BaseException) -> None:
        self.action_errors.labels(sanitize_label(action_type), sanitize_label(type(error).__name__)).inc()

    def record_function(self, name: str) -> None:
        self.functions.labels(sanitize_label(name)).inc()

    def record_dispatch_error(self, error: BaseException) -> None:
        self.dispatch_errors.labels(sanitize_label(type(error).__name__)).inc()

    def record_evicted(self, count: int = 1) -> None:
        self.evicted_sessions.inc(count)

    def set_live_sessions(self, count: int) -> None:
        self.live_sessions.set(count)


async def metrics_handler(request):
    metrics: EngineMetrics = request.app["metrics"]
    return web.Response(
        body=generate_latest(metrics.registry),
        headers={"Content-Type": CONTENT_TYPE_LATEST},
    )
