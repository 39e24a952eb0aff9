# Copyright (c) 2025 sprowii
"""Интерфейс транспорта чата, который использует модерация."""
from abc import ABC, abstractmethod
from typing import List, Optional

from guardbot.moderation.models import ChatInfo, Message, OpResult


class ChatTransport(ABC):
    """Все операции записи - best-effort: возвращают OpResult и не бросают исключений."""

    @abstractmethod
    async def send_message(self, chat_id: str, text: str, mentions: Optional[List[str]] = None) -> OpResult:
        ...

    @abstractmethod
    async def reply(self, message: Message, text: str) -> OpResult:
        ...

    @abstractmethod
    async def delete_message(self, chat_id: str, message_id: str, for_everyone: bool = True) -> OpResult:
        ...

    @abstractmethod
    async def remove_participant(self, chat_id: str, user_id: str) -> OpResult:
        ...

    @abstractmethod
    async def block_contact(self, user_id: str) -> OpResult:
        ...

    @abstractmethod
    async def get_chat(self, chat_id: str) -> Optional[ChatInfo]:
        ...
