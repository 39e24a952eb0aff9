# Copyright (c) 2025 sprouee
"""Хранилище данных модерации: один JSON-документ целиком.

Схема документа:
- actions: [AuditEntry] - журнал модерации (только дописываем)
- users: {} - зарезервировано
- groups: {group_id: {"strikes": {user_id: int}, "sticker_strikes": {user_id: int}}}

Бэкенды:
- JsonFileStore - файл db.json рядом с ботом
- RedisDocumentStore - весь документ под одним ключом Redis

Каждая мутация - чтение (или переиспользование кэша) и запись документа целиком.
"""
import asyncio
import json
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

import redis

from guardbot import config
from guardbot.logging_config import log
from guardbot.moderation.models import AuditEntry

Document = Dict[str, Any]


def default_document() -> Document:
    return {"actions": [], "users": {}, "groups": {}}


def _normalize(data: Any) -> Document:
    """Дополнить документ недостающими ключами верхнего уровня."""
    if not isinstance(data, dict):
        return default_document()
    if not isinstance(data.get("actions"), list):
        data["actions"] = []
    if not isinstance(data.get("users"), dict):
        data["users"] = {}
    if not isinstance(data.get("groups"), dict):
        data["groups"] = {}
    return data


class DocumentStore(ABC):
    """Базовое хранилище документа.

    Подклассы реализуют только `_load_raw` / `_dump_raw`.
    `data` - кэш документа в памяти процесса бота,
    `read()` всегда перечитывает бэкенд (так работает дашборд).
    """

    def __init__(self):
        self._data: Optional[Document] = None
        self._write_lock = threading.Lock()
        self._async_write_lock = asyncio.Lock()

    @abstractmethod
    def _load_raw(self) -> Optional[str]:
        """Сырой JSON документа или None, если его ещё нет."""

    @abstractmethod
    def _dump_raw(self, payload: str) -> None:
        """Записать сырой JSON документа целиком."""

    @property
    def data(self) -> Document:
        if self._data is None:
            self._data = self.read()
        return self._data

    def read(self) -> Document:
        """Перечитать документ из бэкенда.

        Кэш `data` не трогаем: дашборд читает документ из другого потока.
        Некорректный JSON не валит бота: логируем и начинаем с пустого документа.
        """
        raw_value = self._load_raw()
        if not raw_value:
            document = default_document()
        else:
            try:
                document = _normalize(json.loads(raw_value))
            except json.JSONDecodeError as exc:
                log.warning(f"Некорректный JSON документа модерации: {exc}")
                document = default_document()
        return document

    def _persist(self, payload: str) -> None:
        with self._write_lock:
            try:
                self._dump_raw(payload)
            except Exception as exc:
                log.error(f"Не удалось сохранить документ модерации: {exc}")
                raise

    def write(self, document: Optional[Document] = None) -> None:
        """Сохранить документ целиком (по умолчанию - текущий кэш)."""
        if document is None:
            document = self.data
        self._persist(json.dumps(document, ensure_ascii=False, indent=2))
        self._data = document

    async def write_async(self, document: Optional[Document] = None) -> None:
        """Асинхронно сохранить документ.

        Сериализуем в потоке event loop под asyncio.Lock: записи идут
        строго по очереди, и более старый снимок не перетрёт новый.
        """
        async with self._async_write_lock:
            if document is None:
                document = self.data
            payload = json.dumps(document, ensure_ascii=False, indent=2)
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self._persist, payload)
            self._data = document

    def init(self) -> Document:
        """Прочитать документ и сразу записать его с ключами по умолчанию."""
        document = self.read()
        self.write(document)
        return document

    # ------------------------------------------------------------------------
    # AUDIT LOG
    # ------------------------------------------------------------------------

    def append_action(self, entry: AuditEntry) -> None:
        """Дописать запись в журнал модерации и сохранить документ."""
        self.data["actions"].append(entry.to_dict())
        self.write()

    async def append_action_async(self, entry: AuditEntry) -> None:
        self.data["actions"].append(entry.to_dict())
        await self.write_async()

    def load_actions(self, limit: Optional[int] = None, newest_first: bool = False) -> List[AuditEntry]:
        """Загрузить журнал модерации свежим чтением бэкенда."""
        actions = []
        for raw in self.read()["actions"]:
            if not isinstance(raw, dict):
                log.warning(f"Некорректная запись журнала модерации: {raw!r}")
                continue
            try:
                actions.append(AuditEntry.from_dict(raw))
            except TypeError as exc:
                log.warning(f"Некорректная запись журнала модерации: {exc}")
        if newest_first:
            actions.reverse()
        if limit is not None:
            actions = actions[:limit]
        return actions


class JsonFileStore(DocumentStore):
    """Документ в JSON-файле. Запись атомарная: temp-файл + os.replace."""

    def __init__(self, path: str):
        super().__init__()
        self.path = Path(path)

    def _load_raw(self) -> Optional[str]:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def _dump_raw(self, payload: str) -> None:
        directory = self.path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(directory), prefix=".db-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(tmp_path, self.path)
        except Exception:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise


class RedisDocumentStore(DocumentStore):
    """Документ под одним ключом Redis."""

    def __init__(self, client: "redis.Redis", key: str = config.REDIS_DOCUMENT_KEY):
        super().__init__()
        self.client = client
        self.key = key

    @classmethod
    def from_url(cls, url: str, key: str = config.REDIS_DOCUMENT_KEY) -> "RedisDocumentStore":
        return cls(redis.Redis.from_url(url, decode_responses=True), key)

    def _load_raw(self) -> Optional[str]:
        return self.client.get(self.key)

    def _dump_raw(self, payload: str) -> None:
        self.client.set(self.key, payload)


def create_store() -> DocumentStore:
    """Выбрать бэкенд по конфигу: Redis если задан REDIS_URL, иначе файл."""
    if config.REDIS_URL:
        log.info("Moderation store: Redis")
        return RedisDocumentStore.from_url(config.REDIS_URL)
    log.info(f"Moderation store: {config.DB_PATH}")
    return JsonFileStore(config.DB_PATH)
