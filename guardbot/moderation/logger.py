# Copyright (c) 2025 sprouee
"""Журнал действий модерации.

БЕЗОПАСНОСТЬ:
- В хранилище пишутся реальные имена и номера (их показывает дашборд)
- В application logs используются псевдонимы
"""
from datetime import datetime
from typing import Optional

from guardbot.logging_config import log
from guardbot.moderation.models import AuditEntry, Message
from guardbot.moderation.storage import DocumentStore
from guardbot.security.data_protection import safe_log_action


ACTION_ICONS = {
    "violation": "⚠️",
    "sticker_violation": "🚫",
    "blocked": "⛔",
}


class ModLogger:
    """Логгер действий модерации с записью в документ хранилища."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def log_action(self, entry: AuditEntry, message: Optional[Message] = None) -> bool:
        """Дописать запись в журнал.

        Ошибка записи не отменяет уже выполненное действие модерации,
        поэтому здесь она только логируется.

        Returns:
            True если запись сохранена
        """
        try:
            await self.store.append_action_async(entry)
        except Exception as exc:
            log.error(f"Failed to save audit entry: {exc}")
            return False

        log.info(safe_log_action(
            entry.type,
            message.sender_id if message else entry.number,
            message.group_id if message else None,
            f"strikes={entry.strikes}" if entry.strikes is not None else entry.type,
        ))
        return True


def format_audit_entry(entry: AuditEntry) -> str:
    """Форматировать запись журнала одной строкой (для консоли и дашборда)."""
    icon = ACTION_ICONS.get(entry.type, "📋")
    try:
        time_str = datetime.fromisoformat(entry.time).strftime("%d.%m %H:%M")
    except ValueError:
        time_str = entry.time or "?"

    result = f"{icon} [{time_str}] {entry.user} ({entry.number})"
    if entry.chat:
        result += f" in {entry.chat}"
    if entry.strikes is not None:
        result += f" strikes={entry.strikes}"
    if entry.message:
        # Обрезаем длинные сообщения
        text = entry.message[:50] + "..." if len(entry.message) > 50 else entry.message
        result += f"\n   └ {text}"
    return result
