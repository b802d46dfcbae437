"""
Общие фикстуры: фейковый транспорт, сценарий, движок (FlowManager + ActionProcessor).
"""

import sys
import os
from typing import Any, Dict, List, Optional

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from bot.transport import Transport
from dialog.context_manager import ProcessingContext, Session
from dialog.exceptions import MessageNotFound
from dialog.flow_manager import FlowManager
from dialog.scenario_loader import Scenario
from utils.metrics import EngineMetrics


class FakeTransport(Transport):
    """Записывает все вызовы; id сообщений — 100, 101, ..."""

    def __init__(self):
        self.sent: List[Dict[str, Any]] = []
        self.edited: List[Dict[str, Any]] = []
        self.deleted: List[Any] = []
        self.missing = set()
        self._next_id = 100

    async def send(self, session_id, text, options=None):
        message_id = self._next_id
        self._next_id += 1
        self.sent.append({"session_id": session_id, "text": text, "options": options or {}, "id": message_id})
        return message_id

    async def edit(self, session_id, message_ref, text, options=None):
        if message_ref in self.missing:
            raise MessageNotFound("message to edit not found")
        self.edited.append({"session_id": session_id, "id": message_ref, "text": text, "options": options or {}})

    async def delete(self, session_id, message_ref):
        if message_ref in self.missing:
            raise MessageNotFound("message to delete not found")
        self.missing.add(message_ref)
        self.deleted.append(message_ref)

    @property
    def texts(self) -> List[str]:
        return [item["text"] for item in self.sent]


def make_scenario(menu_items: Optional[Dict[str, Any]] = None, start_actions: Any = None,
                  functions: Optional[Dict[str, Any]] = None, **data) -> Scenario:
    raw = {
        "onStartActions": start_actions if start_actions is not None else [
            {"action": "SendMessage", "text": "Welcome"},
        ],
        "menuItems": menu_items or {},
        "functions": functions or {},
    }
    raw.update(data)
    return Scenario.from_dict(raw)


def make_engine(scenario: Optional[Scenario] = None, transport: Optional[FakeTransport] = None,
                **kwargs) -> FlowManager:
    return FlowManager.build(scenario or make_scenario(), transport or FakeTransport(), **kwargs)


def make_context(engine: FlowManager, session_id: str = "1") -> ProcessingContext:
    return ProcessingContext(session=Session(id=session_id), processor=engine.processor)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def metrics():
    return EngineMetrics()


@pytest.fixture
def engine(transport, metrics):
    scenario = make_scenario(
        menu_items={
            "Main": {"onNavigation": {"action": "SendMessage", "text": "Main menu"}},
            "A": {"onNavigation": {"action": "SendMessage", "text": "Menu A"}},
            "B": {"onNavigation": {"action": "SendMessage", "text": "Menu B"}},
            "Help": {"onNavigation": {"action": "SendMessage", "text": "Help text"}},
        },
        greeting="Hello",
    )
    return make_engine(scenario, transport, metrics=metrics)


@pytest.fixture
def ctx(engine):
    return make_context(engine)
