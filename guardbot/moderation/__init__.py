# Copyright (c) 2025 sprowii
"""Модуль модерации для WhatsApp групп.

Компоненты:
- ModerationController: Центральная точка входа (`guardbot.moderation.controller`,
  импортируется напрямую: он зависит от транспорта и команд)
- ProfanityFilter: Лексический фильтр
- StrikeSystem: Страйки и исключение из группы
- DocumentStore: Хранилище документа (JSON файл или Redis)
- ModLogger: Журнал действий модерации
"""

from guardbot.moderation.models import AuditEntry, ChatInfo, Message, OpResult, ViolationKind
from guardbot.moderation.strikes import StrikeSystem, StrikeResult, StrikeEscalation
from guardbot.moderation.content_filter import ProfanityFilter, FilterCheckResult
from guardbot.moderation.storage import DocumentStore, JsonFileStore, RedisDocumentStore, create_store
from guardbot.moderation.logger import ModLogger

__all__ = [
    # Models
    "AuditEntry",
    "ChatInfo",
    "Message",
    "OpResult",
    "ViolationKind",
    # Strikes
    "StrikeSystem",
    "StrikeResult",
    "StrikeEscalation",
    # Content Filter
    "ProfanityFilter",
    "FilterCheckResult",
    # Storage
    "DocumentStore",
    "JsonFileStore",
    "RedisDocumentStore",
    "create_store",
    # Logger
    "ModLogger",
]
