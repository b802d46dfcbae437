"""
context.py — четырёхуровневый контекст интерполяции: local > params > data > env.
"""

import datetime
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Dict, Optional

from interpolation.scope_manager import MISSING, ScopeManager, descend

# Вызов функции из короткой записи {{Fn:k:v}}: (имя, параметры) -> результат
Invoker = Callable[[str, Dict[str, Any]], Awaitable[Any]]

SOURCES = ("local", "params", "data", "env")


def build_env(version: str = "1.0.0", now: Optional[datetime.datetime] = None) -> Dict[str, Any]:
    now = now or datetime.datetime.now(datetime.timezone.utc)
    return {
        "timestamp": now.isoformat(),
        "version": version,
        "date": now.date().isoformat(),
        "time": now.strftime("%H:%M:%S"),
    }


@dataclass
class InterpolationContext:
    local: ScopeManager
    data: Dict[str, Any] = field(default_factory=dict)
    params: Dict[str, Any] = field(default_factory=dict)
    env: Dict[str, Any] = field(default_factory=build_env)
    invoke: Optional[Invoker] = None

    def with_params(self, params: Dict[str, Any]) -> "InterpolationContext":
        return replace(self, params=dict(params or {}))

    def source(self, name: str) -> Any:
        """Весь уровень целиком: {{data}}, {{params}}, {{env}}, {{local}}."""
        if name == "local":
            return self.local.merged() if self.local.depth else MISSING
        return getattr(self, name)

    def lookup(self, source: str, path: str) -> Any:
        if not path:
            return self.source(source)
        if source == "local":
            return self.local.find_variable(path)
        tier = getattr(self, source)
        if not isinstance(tier, dict):
            return MISSING
        return descend(tier, path)

    def resolve(self, path: str) -> Any:
        """Поиск без префикса по приоритету. MISSING, если ни один уровень не знает путь."""
        if path in SOURCES:
            return self.source(path)
        for source in SOURCES:
            value = self.lookup(source, path)
            if value is not MISSING:
                return value
        return MISSING
