# Copyright (c) 2025 sprowii
"""Обёртка над LLM: кулдаун по пользователю, ретраи с линейным backoff
и разбор ошибок (временная / блокировка безопасности / прочая)."""
import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Protocol

from guardbot import config
from guardbot.llm.errors import SafetyBlockedError
from guardbot.logging_config import log
from guardbot.middleware.rate_limit import CooldownTracker
from guardbot.security.data_protection import pseudonymize_id

TRANSIENT_MARKERS = ("503", "overloaded", "rate_limit", "rate limit", "429", "resource_exhausted", "unavailable")
SAFETY_MARKERS = ("safety", "blocked")


class GenerativeBackend(Protocol):
    def generate(self, prompt: str) -> str:
        ...


class ErrorKind(str, Enum):
    TRANSIENT = "transient"
    BLOCKED = "blocked"
    FATAL = "fatal"


class ClassifyStatus(str, Enum):
    SUCCESS = "success"
    COOLDOWN = "cooldown"
    BLOCKED = "blocked"
    UNAVAILABLE = "unavailable"


@dataclass
class ClassifyOutcome:
    """Результат вызова LLM.

    Attributes:
        status: SUCCESS / COOLDOWN / BLOCKED / UNAVAILABLE
        text: Ответ модели (только для SUCCESS)
        attempts: Сколько раз реально ходили в модель
        error: Текст последней ошибки
    """
    status: ClassifyStatus
    text: Optional[str] = None
    attempts: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == ClassifyStatus.SUCCESS

    @property
    def blocked(self) -> bool:
        return self.status == ClassifyStatus.BLOCKED


def classify_error(exc: Exception) -> ErrorKind:
    """Определить тип ошибки по тексту сообщения (SDK не даёт стабильных типов)."""
    if isinstance(exc, SafetyBlockedError):
        return ErrorKind.BLOCKED
    error_text = str(exc).lower()
    if any(marker in error_text for marker in TRANSIENT_MARKERS):
        return ErrorKind.TRANSIENT
    if any(marker in error_text for marker in SAFETY_MARKERS):
        return ErrorKind.BLOCKED
    return ErrorKind.FATAL


class ClassificationClient:
    """Вызов модели с кулдауном и ретраями.

    Кулдаун ведётся только для вызовов с user_id и обновляется
    только после успешного ответа.
    """

    def __init__(
        self,
        backend: GenerativeBackend,
        cooldowns: Optional[CooldownTracker] = None,
        base_delay: float = config.RETRY_BASE_DELAY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.backend = backend
        self.cooldowns = cooldowns or CooldownTracker()
        self.base_delay = base_delay
        self.sleep = sleep

    async def _call_backend(self, prompt: str) -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.backend.generate, prompt)

    async def classify(
        self,
        prompt: str,
        user_id: Optional[str] = None,
        max_retries: int = config.MAX_RETRIES,
    ) -> ClassifyOutcome:
        """Отправить промпт в модель.

        Args:
            prompt: Текст запроса
            user_id: Автор запроса; если задан - проверяется и обновляется кулдаун
            max_retries: Сколько дополнительных попыток делать на временных ошибках

        Returns:
            ClassifyOutcome
        """
        started = self.cooldowns.clock()
        if user_id and self.cooldowns.is_cooling(user_id, started):
            return ClassifyOutcome(status=ClassifyStatus.COOLDOWN)

        total_attempts = max_retries + 1
        for attempt in range(1, total_attempts + 1):
            try:
                text = await self._call_backend(prompt)
            except Exception as exc:
                kind = classify_error(exc)
                if kind == ErrorKind.BLOCKED:
                    return ClassifyOutcome(status=ClassifyStatus.BLOCKED, attempts=attempt, error=str(exc))
                if kind == ErrorKind.FATAL:
                    log.warning(f"Gemini error: {exc}")
                    return ClassifyOutcome(status=ClassifyStatus.UNAVAILABLE, attempts=attempt, error=str(exc))
                if attempt == total_attempts:
                    log.info(f"Gemini 503 – giving up after {total_attempts} attempts")
                    return ClassifyOutcome(status=ClassifyStatus.UNAVAILABLE, attempts=attempt, error=str(exc))
                delay = self.base_delay * attempt
                log.info(f"Gemini 503 – retry {attempt}/{max_retries} in {delay:.1f}s…")
                await self.sleep(delay)
                continue

            if user_id:
                self.cooldowns.touch(user_id, started)
                log.debug(f"Cooldown started for {pseudonymize_id(user_id)}")
            return ClassifyOutcome(status=ClassifyStatus.SUCCESS, text=text, attempts=attempt)

        return ClassifyOutcome(status=ClassifyStatus.UNAVAILABLE, attempts=total_attempts)

    async def screen(self, text: str) -> ClassifyOutcome:
        """Проверка безопасности входящего сообщения.

        Вызывается без user_id, поэтому не расходует кулдаун команды `!bot`.
        Ответ модели, начинающийся с UNSAFE, приравнивается к блокировке.
        """
        outcome = await self.classify(config.SAFETY_SCREEN_PROMPT.format(text=text))
        if outcome.ok and (outcome.text or "").strip().upper().startswith("UNSAFE"):
            return ClassifyOutcome(status=ClassifyStatus.BLOCKED, text=outcome.text, attempts=outcome.attempts)
        return outcome
