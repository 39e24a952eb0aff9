# Copyright (c) 2025 sprowii
"""Модели данных для системы модерации."""
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
import time


STICKER_TYPE = "sticker"


class ViolationKind(str, Enum):
    """Класс нарушения. У каждого класса свой счётчик страйков и свой порог."""
    MESSAGE = "message"
    STICKER = "sticker"

    @property
    def counter_key(self) -> str:
        """Ключ счётчика внутри GroupState."""
        return "sticker_strikes" if self is ViolationKind.STICKER else "strikes"

    @property
    def audit_type(self) -> str:
        return "sticker_violation" if self is ViolationKind.STICKER else "violation"


@dataclass
class Message:
    """Входящее сообщение WhatsApp (живёт только во время обработки события).

    Attributes:
        id: ID сообщения (нужен для удаления и reply)
        chat_id: ID чата; `...@g.us` для групп, `...@c.us` для лички
        sender_id: ID автора
        body: Текст сообщения
        type: Тип контента WhatsApp (chat, sticker, image, ...)
        is_group: True для группового чата
        timestamp: Unix timestamp
    """
    id: str
    chat_id: str
    sender_id: str
    body: str = ""
    type: str = "chat"
    is_group: bool = False
    timestamp: float = field(default_factory=time.time)
    from_me: bool = False
    sender_name: Optional[str] = None
    sender_number: Optional[str] = None
    chat_name: Optional[str] = None

    @property
    def group_id(self) -> Optional[str]:
        """ID группы или None для приватного чата."""
        return self.chat_id if self.is_group else None

    @property
    def text(self) -> str:
        return (self.body or "").strip()

    @property
    def is_sticker(self) -> bool:
        return self.type == STICKER_TYPE

    @property
    def number(self) -> str:
        """Номер автора без суффикса `@c.us`."""
        if self.sender_number:
            return self.sender_number
        return self.sender_id.split("@", 1)[0]

    @property
    def display_name(self) -> str:
        return self.sender_name or self.number


@dataclass
class ChatInfo:
    """Сведения о чате, которые отдаёт транспорт."""
    id: str
    is_group: bool
    name: Optional[str] = None
    participants: List[str] = field(default_factory=list)


@dataclass
class OpResult:
    """Результат best-effort операции транспорта (send/delete/remove/block).

    Операции не бросают исключений: вызывающий код смотрит на `ok`
    и сам выбирает запасной ответ.
    """
    ok: bool
    detail: str = ""

    def __bool__(self) -> bool:
        return self.ok


@dataclass
class AuditEntry:
    """Запись журнала модерации (append-only, читается только дашбордом)."""
    type: str  # violation, sticker_violation, blocked
    time: str
    user: str
    number: str
    chat: Optional[str] = None
    message: Optional[str] = None
    strikes: Optional[int] = None

    @classmethod
    def create(
        cls,
        type: str,
        message: Message,
        chat_name: Optional[str] = None,
        text: Optional[str] = None,
        strikes: Optional[int] = None,
    ) -> "AuditEntry":
        """Создать запись с текущим временем в ISO-8601 (UTC)."""
        return cls(
            type=type,
            time=datetime.now(timezone.utc).isoformat(),
            user=message.display_name,
            number=message.number,
            chat=chat_name,
            message=text,
            strikes=strikes,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value is not None}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditEntry":
        known = {key: data.get(key) for key in cls.__dataclass_fields__ if key in data}
        known.setdefault("time", "")
        known.setdefault("user", "")
        known.setdefault("number", "")
        known.setdefault("type", "unknown")
        return cls(**known)
