# Copyright (c) 2025 sprouee
"""Кулдаун запросов к LLM по пользователю.

Состояние только в памяти процесса: после рестарта кулдауны обнуляются.
"""

import time
from typing import Callable, Dict, Optional

from guardbot import config
from guardbot.logging_config import log

CLEANUP_INTERVAL = 300  # Очистка каждые 5 минут


class CooldownTracker:
    """Хранит время последнего запроса каждого пользователя.

    Создаётся один раз при старте и передаётся в ClassificationClient.
    """

    def __init__(
        self,
        window_sec: float = config.COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.window_sec = window_sec
        self.clock = clock
        self._last_call: Dict[str, float] = {}
        self._last_cleanup = clock()

    def _cleanup_old_entries(self, now: float) -> None:
        """Удаляет записи, кулдаун которых давно истёк."""
        if now - self._last_cleanup < CLEANUP_INTERVAL:
            return
        to_remove = [uid for uid, ts in self._last_call.items() if now - ts >= self.window_sec]
        for uid in to_remove:
            del self._last_call[uid]
        self._last_cleanup = now
        if to_remove:
            log.debug(f"Cleaned up {len(to_remove)} old cooldown entries")

    def is_cooling(self, user_id: str, now: Optional[float] = None) -> bool:
        """True если с последнего запроса пользователя прошло меньше окна."""
        if now is None:
            now = self.clock()
        last = self._last_call.get(user_id)
        return last is not None and now - last < self.window_sec

    def remaining(self, user_id: str, now: Optional[float] = None) -> float:
        """Сколько секунд осталось до конца кулдауна (0 если его нет)."""
        if now is None:
            now = self.clock()
        last = self._last_call.get(user_id)
        if last is None:
            return 0.0
        return max(0.0, self.window_sec - (now - last))

    def touch(self, user_id: str, now: Optional[float] = None) -> None:
        """Запомнить время запроса пользователя."""
        if now is None:
            now = self.clock()
        self._cleanup_old_entries(now)
        self._last_call[user_id] = now

    def reset(self) -> None:
        self._last_call.clear()
