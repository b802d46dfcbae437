"""
scenario_loader.py — загрузка сценария из файла (.json/.yaml/.yml) или каталога.

Каталог: scenario.config.json (entryPoint, modules) + файлы модулей, чьи
menuItems/functions/data объединяются поверх основного файла (более поздний главнее).
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Union

import structlog
import yaml

from dialog.exceptions import ScenarioLoadError

logger = structlog.get_logger("scenario_bot.scenario_loader")

CONFIG_FILE = "scenario.config.json"
DEFAULT_ENTRY_POINT = "scenario.json"
DEFAULT_MODULES = ["modules"]
SCENARIO_SUFFIXES = (".json", ".yaml", ".yml")
RESERVED_KEYS = ("onStartActions", "startActions", "menuItems", "functions", "data")


@dataclass
class Scenario:
    start_actions: Any = field(default_factory=list)
    menu_items: Dict[str, Any] = field(default_factory=dict)
    functions: Dict[str, Any] = field(default_factory=dict)
    # Все прочие ключи верхнего уровня: доступны в data-уровне интерполяции
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Scenario":
        validate_scenario(raw)
        data = {key: value for key, value in raw.items() if key not in RESERVED_KEYS}
        if isinstance(raw.get("data"), dict):
            data.update(raw["data"])
        return cls(
            start_actions=raw.get("onStartActions", raw.get("startActions")) or [],
            menu_items=dict(raw.get("menuItems") or {}),
            functions=dict(raw.get("functions") or {}),
            data=data,
        )


def validate_scenario(raw: Any) -> None:
    if not isinstance(raw, dict):
        raise ScenarioLoadError("Scenario must be an object")
    if not isinstance(raw.get("menuItems"), dict):
        raise ScenarioLoadError('Scenario must contain "menuItems" object')
    if "functions" in raw and not isinstance(raw["functions"], dict):
        raise ScenarioLoadError('Scenario "functions" must be an object')


def _read_document(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            if path.suffix in (".yaml", ".yml"):
                return yaml.safe_load(f) or {}
            return json.load(f)
    except FileNotFoundError:
        raise ScenarioLoadError(f"Scenario file not found: {path}")
    except (ValueError, yaml.YAMLError) as e:
        raise ScenarioLoadError(f"Invalid scenario file {path}: {e}")


def merge_modules(base: Dict[str, Any], modules: List[Dict[str, Any]]) -> Dict[str, Any]:
    merged = dict(base)
    for section in ("menuItems", "functions", "data"):
        merged[section] = dict(base.get(section) or {})
    for module in modules:
        for section in ("menuItems", "functions", "data"):
            if isinstance(module.get(section), dict):
                merged[section].update(module[section])
    return merged


def _load_module_dir(directory: Path) -> List[Dict[str, Any]]:
    documents = []
    for path in sorted(directory.iterdir()):
        if path.is_file() and path.suffix in SCENARIO_SUFFIXES:
            documents.append(_read_document(path))
    return documents


def _load_directory(directory: Path) -> Dict[str, Any]:
    config: Dict[str, Any] = {}
    config_path = directory / CONFIG_FILE
    if config_path.exists():
        config = _read_document(config_path)

    base = _read_document(directory / (config.get("entryPoint") or DEFAULT_ENTRY_POINT))
    modules: List[Dict[str, Any]] = []
    for name in config.get("modules") or DEFAULT_MODULES:
        module_dir = directory / name
        if not module_dir.is_dir():
            logger.warning("scenario_module_missing", path=str(module_dir))
            continue
        modules.extend(_load_module_dir(module_dir))
    return merge_modules(base, modules)


def load_scenario(path: Union[str, Path]) -> Scenario:
    path = Path(path)
    if path.is_dir():
        raw = _load_directory(path)
    elif path.is_file():
        raw = _read_document(path)
    else:
        raise ScenarioLoadError(f"Invalid scenario path: {path}")

    scenario = Scenario.from_dict(raw)
    logger.info("scenario_loaded", path=str(path), menus=len(scenario.menu_items),
                functions=len(scenario.functions))
    return scenario
