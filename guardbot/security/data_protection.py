# Copyright (c) 2025 sprowii
"""Защита персональных данных в логах.

WhatsApp ID содержит номер телефона (`923001234567@c.us`), поэтому
в application logs пишем только псевдонимы:
- user/chat ID хэшируются HMAC-SHA256 с солью
- номера в тексте причины маскируются

В хранилище (db.json / Redis) данные остаются открытыми: их читает дашборд.
"""
import hashlib
import hmac
import re
import secrets
from typing import Optional

from guardbot import config
from guardbot.logging_config import log


# Соль для хэширования ID - должна быть в переменных окружения!
# Если не задана, генерируется при запуске (псевдонимы изменятся после рестарта)
_HASH_SALT = config.DATA_HASH_SALT
if not _HASH_SALT:
    log.warning(
        "DATA_HASH_SALT не задан! Генерирую временную соль. "
        "Псевдонимы в логах будут меняться после каждого рестарта."
    )
    _HASH_SALT = secrets.token_hex(32)

_PHONE_RE = re.compile(r"@?\+?\d{7,}")


def pseudonymize_id(raw_id: Optional[str], context: str = "default") -> str:
    """Псевдонимизирует ID через HMAC-SHA256.

    Args:
        raw_id: Реальный WhatsApp ID (`<number>@c.us`, `<id>@g.us`)
        context: Контекст использования (для разных хэшей в разных местах)

    Returns:
        Псевдоним в формате "u_<hash[:16]>"

    Note:
        - Один и тот же ID всегда даёт один и тот же псевдоним
        - Разные контексты дают разные псевдонимы
    """
    if not raw_id:
        return "u_none"
    message = f"{context}:{raw_id}".encode()
    h = hmac.new(_HASH_SALT.encode(), message, hashlib.sha256)
    return f"u_{h.hexdigest()[:16]}"


def pseudonymize_chat_id(chat_id: Optional[str]) -> str:
    """Псевдонимизирует chat_id."""
    return pseudonymize_id(chat_id, context="chat")


def mask_phone_numbers(text: str) -> str:
    """Заменяет номера телефонов и @упоминания на маску."""
    return _PHONE_RE.sub("@***", text)


def safe_log_user(user_id: Optional[str], name: Optional[str] = None) -> str:
    """Возвращает безопасное представление пользователя для логов."""
    pseudo = pseudonymize_id(user_id)
    if name:
        # Показываем только первые 2 символа имени
        masked = name[:2] + "***" if len(name) > 2 else "***"
        return f"{pseudo} ({masked})"
    return pseudo


def safe_log_action(
    action_type: str,
    target_user_id: Optional[str],
    chat_id: Optional[str],
    reason: Optional[str] = None,
) -> str:
    """Формирует безопасную строку для лога действия модерации."""
    target = pseudonymize_id(target_user_id)
    chat = pseudonymize_chat_id(chat_id) if chat_id else "private"
    safe_reason = mask_phone_numbers(reason)[:50] if reason else ""
    return f"[{action_type}] target={target} chat={chat} reason={safe_reason}"
