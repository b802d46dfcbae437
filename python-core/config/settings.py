"""
settings.py — конфигурация движка сценариев и Telegram-бота.

Источники по возрастанию приоритета: значения по умолчанию, YAML-файл
(config/engine.yaml), переменные окружения (после load_dotenv).
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog
import yaml
from dotenv import load_dotenv

logger = structlog.get_logger("scenario_bot.settings")


@dataclass
class EngineSettings:
    """Параметры интерпретатора сценариев"""
    session_timeout_sec: int = 1800
    sweep_interval_sec: int = 60
    max_back_stack: int = 20
    callback_table_size: int = 1000
    request_timeout_sec: float = 15
    cancel_words: List[str] = field(default_factory=lambda: ["cancel", "отмена"])
    version: str = "1.0.0"


@dataclass
class BotSettings:
    """Параметры Telegram-бота и процесса"""
    telegram_token: Optional[str] = None
    scenario_path: str = "scenario.json"
    healthcheck_port: int = 8082
    log_level: str = "INFO"
    log_json: bool = False
    antiflood_rate_limit: int = 5
    antiflood_interval_sec: int = 10


@dataclass
class Settings:
    engine: EngineSettings = field(default_factory=EngineSettings)
    bot: BotSettings = field(default_factory=BotSettings)


# Переменная окружения -> (секция, поле)
ENV_OVERRIDES = {
    "TELEGRAM_TOKEN": ("bot", "telegram_token"),
    "SCENARIO_PATH": ("bot", "scenario_path"),
    "HEALTHCHECK_PORT": ("bot", "healthcheck_port"),
    "LOG_LEVEL": ("bot", "log_level"),
    "LOG_JSON": ("bot", "log_json"),
    "ANTIFLOOD_RATE_LIMIT": ("bot", "antiflood_rate_limit"),
    "ANTIFLOOD_INTERVAL_SEC": ("bot", "antiflood_interval_sec"),
    "SESSION_TIMEOUT_SEC": ("engine", "session_timeout_sec"),
    "SWEEP_INTERVAL_SEC": ("engine", "sweep_interval_sec"),
    "REQUEST_TIMEOUT_SEC": ("engine", "request_timeout_sec"),
    "CALLBACK_TABLE_SIZE": ("engine", "callback_table_size"),
}


def default_config_path() -> str:
    return str(Path(__file__).parent / "engine.yaml")


def _coerce(current: Any, raw: Any) -> Any:
    """Приводит значение из YAML/env к типу поля по умолчанию."""
    if isinstance(current, bool):
        if isinstance(raw, str):
            return raw.strip().lower() in ("1", "true", "yes", "on")
        return bool(raw)
    if isinstance(current, int) and not isinstance(current, bool):
        return int(raw)
    if isinstance(current, float):
        return float(raw)
    if isinstance(current, list):
        if isinstance(raw, str):
            return [part.strip() for part in raw.split(",") if part.strip()]
        return list(raw)
    return raw


def _apply(section: Any, values: Dict[str, Any]) -> None:
    known = {f.name for f in fields(section)}
    for key, raw in (values or {}).items():
        if key not in known:
            logger.warning("settings_unknown_key", section=type(section).__name__, key=key)
            continue
        current = getattr(section, key)
        try:
            setattr(section, key, raw if current is None else _coerce(current, raw))
        except (TypeError, ValueError) as e:
            logger.warning("settings_bad_value", key=key, value=raw, error=str(e))


def _read_yaml(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.info("settings_file_missing", path=path)
        return {}
    except (OSError, yaml.YAMLError) as e:
        # Битый файл не должен ронять процесс: остаёмся на значениях по умолчанию
        logger.warning("settings_file_invalid", path=path, error=str(e))
        return {}
    if not isinstance(data, dict):
        logger.warning("settings_file_invalid", path=path, error="top level is not a mapping")
        return {}
    return data


def load_settings(path: Optional[str] = None, environ: Optional[Dict[str, str]] = None) -> Settings:
    """Собирает свежий экземпляр настроек (используется bootstrap и тестами)."""
    if environ is None:
        load_dotenv()
        environ = dict(os.environ)

    settings = Settings()
    data = _read_yaml(path or default_config_path())
    _apply(settings.engine, data.get("engine") or {})
    _apply(settings.bot, data.get("bot") or {})

    for env_name, (section_name, key) in ENV_OVERRIDES.items():
        if env_name in environ:
            _apply(getattr(settings, section_name), {key: environ[env_name]})
    return settings


# Глобальный экземпляр конфигурации
_settings = None


def get_settings() -> Settings:
    """Получить глобальный экземпляр настроек"""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings
