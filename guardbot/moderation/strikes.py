# Copyright (c) 2025 sprouee
"""Система страйков для модерации групп.

- Каждое нарушение в группе добавляет страйк автору
- Стикеры и сообщения считаются отдельными счётчиками
- При достижении порога (2 для сообщений, 4 для стикеров) - удаление из группы
- Счётчики не сбрасываются сами, только через reset_strikes
"""
import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Dict, Optional, Tuple

from guardbot import config
from guardbot.logging_config import log
from guardbot.moderation.models import ViolationKind
from guardbot.moderation.storage import DocumentStore
from guardbot.security.data_protection import pseudonymize_chat_id, pseudonymize_id


class StrikeEscalation(Enum):
    """Результат эскалации после добавления страйка."""
    NONE = "none"
    REMOVE = "remove"


@dataclass
class StrikeResult:
    """Результат добавления страйка.

    Attributes:
        kind: Класс нарушения
        total: Количество страйков этого класса после добавления
        threshold: Порог удаления для этого класса
        escalation: NONE или REMOVE
    """
    kind: ViolationKind
    total: int
    threshold: int
    escalation: StrikeEscalation


class StrikeSystem:
    """Счётчики страйков по (группа, пользователь, класс нарушения).

    Read-modify-write сериализуется asyncio.Lock на пару (группа, пользователь):
    два сообщения одного автора, пришедшие почти одновременно,
    не потеряют инкремент между чтением и записью.
    """

    def __init__(
        self,
        store: DocumentStore,
        message_threshold: int = config.MESSAGE_STRIKE_LIMIT,
        sticker_threshold: int = config.STICKER_STRIKE_LIMIT,
    ):
        """
        Args:
            store: Хранилище документа модерации
            message_threshold: Порог удаления за сообщения
            sticker_threshold: Порог удаления за стикеры
        """
        self.store = store
        self.thresholds: Dict[ViolationKind, int] = {
            ViolationKind.MESSAGE: message_threshold,
            ViolationKind.STICKER: sticker_threshold,
        }
        # (группа, пользователь) -> [lock, сколько корутин его держат или ждут]
        self._locks: Dict[Tuple[str, str], list] = {}

    @asynccontextmanager
    async def _user_lock(self, group_id: str, user_id: str) -> AsyncIterator[None]:
        """Lock на пару (группа, пользователь); удаляется, когда больше никому не нужен."""
        key = (group_id, user_id)
        entry = self._locks.get(key)
        if entry is None:
            entry = [asyncio.Lock(), 0]
            self._locks[key] = entry
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    def _group_state(self, group_id: str, create: bool = False) -> Optional[dict]:
        groups = self.store.data["groups"]
        state = groups.get(group_id)
        if state is None and create:
            state = {"strikes": {}, "sticker_strikes": {}}
            groups[group_id] = state
        if state is not None:
            state.setdefault("strikes", {})
            state.setdefault("sticker_strikes", {})
        return state

    def _determine_escalation(self, kind: ViolationKind, total: int) -> StrikeEscalation:
        if total >= self.thresholds[kind]:
            return StrikeEscalation.REMOVE
        return StrikeEscalation.NONE

    async def record_violation(self, group_id: str, user_id: str, kind: ViolationKind) -> StrikeResult:
        """Добавить страйк и сохранить документ до возврата.

        Args:
            group_id: ID группы
            user_id: ID нарушителя
            kind: Класс нарушения

        Returns:
            StrikeResult с новым значением счётчика и эскалацией
        """
        async with self._user_lock(group_id, user_id):
            state = self._group_state(group_id, create=True)
            counters = state[kind.counter_key]
            total = int(counters.get(user_id, 0)) + 1
            counters[user_id] = total
            await self.store.write_async()

        escalation = self._determine_escalation(kind, total)
        log.info(
            f"Strike added: chat={pseudonymize_chat_id(group_id)}, user={pseudonymize_id(user_id)}, "
            f"kind={kind.value}, total={total}, escalation={escalation.value}"
        )
        return StrikeResult(
            kind=kind,
            total=total,
            threshold=self.thresholds[kind],
            escalation=escalation,
        )

    def get_strikes(self, group_id: str, user_id: str, kind: ViolationKind = ViolationKind.MESSAGE) -> int:
        """Текущее количество страйков пользователя в группе."""
        state = self._group_state(group_id)
        if state is None:
            return 0
        return int(state[kind.counter_key].get(user_id, 0))

    async def reset_strikes(self, group_id: str, user_id: str, kind: Optional[ViolationKind] = None) -> int:
        """Сбросить страйки пользователя.

        Args:
            group_id: ID группы
            user_id: ID пользователя
            kind: Класс нарушения; None - сбросить оба счётчика

        Returns:
            Сколько страйков было удалено
        """
        kinds = [kind] if kind else list(ViolationKind)
        async with self._user_lock(group_id, user_id):
            state = self._group_state(group_id)
            if state is None:
                return 0
            removed = 0
            for item in kinds:
                removed += int(state[item.counter_key].pop(user_id, 0))
            if removed:
                await self.store.write_async()
        log.info(f"Cleared {removed} strikes for user {pseudonymize_id(user_id)} in chat {pseudonymize_chat_id(group_id)}")
        return removed
