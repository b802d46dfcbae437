"""
transport.py — интерфейс транспорта чата, которым пользуется движок сценариев.

options для send/edit:
  buttons         ряды кнопок [[{"text", "callback_data"}]]
  parse_mode      "Markdown" / "HTML" / None
  attachments     [{"type": "photo"|"document", "file"|"url", "caption"}]
  reply_keyboard  ряды текстовых кнопок [["Да", "Нет"]] или {"text", "request_contact"}
  one_time_keyboard  скрыть reply-клавиатуру после нажатия
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

EVENT_KINDS = ("text", "document", "contact", "callback")


@dataclass
class InboundEvent:
    kind: str
    session_id: str
    payload: Any = None
    text: Optional[str] = None
    attachments: List[Dict[str, Any]] = field(default_factory=list)
    meta: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.kind not in EVENT_KINDS:
            raise ValueError(f"Unknown event kind: {self.kind}")
        self.session_id = str(self.session_id)


class Transport(ABC):
    @abstractmethod
    async def send(self, session_id: str, text: str, options: Optional[Dict[str, Any]] = None) -> Any:
        """Отправляет сообщение, возвращает ссылку на него (id)."""

    @abstractmethod
    async def edit(self, session_id: str, message_ref: Any, text: str,
                   options: Optional[Dict[str, Any]] = None) -> None:
        ...

    @abstractmethod
    async def delete(self, session_id: str, message_ref: Any) -> None:
        ...
