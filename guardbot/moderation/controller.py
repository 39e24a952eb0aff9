# Copyright (c) 2025 sprowii
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from guardbot import config
from guardbot.bot.commands import CommandDispatcher
from guardbot.llm.classifier import ClassificationClient
from guardbot.logging_config import log
from guardbot.moderation.content_filter import ProfanityFilter
from guardbot.moderation.logger import ModLogger
from guardbot.moderation.models import AuditEntry, Message, ViolationKind
from guardbot.moderation.strikes import StrikeEscalation, StrikeResult, StrikeSystem
from guardbot.security.data_protection import pseudonymize_chat_id, pseudonymize_id
from guardbot.transport.base import ChatTransport

BLOCKED_REPLY = "Blocked for abusive language."

WARNING_TEMPLATES = {
    ViolationKind.STICKER: "Warning @{number}, stickers are not allowed. Strike: {strikes}",
    ViolationKind.MESSAGE: "Warning @{number}: message removed. Strike: {strikes}",
}
REMOVED_TEMPLATES = {
    ViolationKind.STICKER: "Removed @{number} for repeated sticker violations.",
    ViolationKind.MESSAGE: "Removed @{number} for repeated violations.",
}
CANNOT_REMOVE_TEMPLATE = "Cannot remove @{number}. Bot must be admin."


class ModerationAction(str, Enum):
    """Типы действий модерации."""
    NONE = "none"
    WARN = "warn"
    REMOVE = "remove"
    BLOCK = "block"
    COMMAND = "command"
    ERROR = "error"


@dataclass
class ModerationResult:
    """Результат обработки сообщения."""
    action: ModerationAction
    reason: str
    strikes: int = 0
    removed: bool = False
    command: Optional[str] = None
    details: Optional[str] = None


class ModerationController:
    """Центральный контроллер модерации.

    Объединяет фильтр, классификатор, страйки и журнал и предоставляет
    единую точку входа `handle_message` для каждого входящего сообщения.
    """

    def __init__(
        self,
        transport: ChatTransport,
        profanity: ProfanityFilter,
        classifier: Optional[ClassificationClient],
        strikes: StrikeSystem,
        mod_logger: ModLogger,
        commands: Optional[CommandDispatcher] = None,
        min_screen_length: int = config.MIN_SCREEN_LENGTH,
    ):
        """Инициализация контроллера.

        Args:
            transport: Транспорт чата (отправка, удаление, исключение, блокировка)
            profanity: Лексический фильтр
            classifier: Клиент LLM для проверки безопасности; None - только фильтр
            strikes: Система страйков
            mod_logger: Журнал действий модерации
            commands: Диспетчер команд для чистых групповых сообщений
            min_screen_length: Сообщения не длиннее этого не отправляются в LLM
        """
        self.transport = transport
        self.profanity = profanity
        self.classifier = classifier
        self.strikes = strikes
        self.mod_logger = mod_logger
        self.commands = commands
        self.min_screen_length = min_screen_length

    # ========================================================================
    # ENTRY POINT
    # ========================================================================

    async def handle_message(self, message: Message) -> ModerationResult:
        """Обработать входящее сообщение.

        Любое исключение логируется и превращается в ModerationResult(ERROR):
        ошибка одного сообщения не должна ронять обработку остальных.
        """
        try:
            return await self._process(message)
        except Exception as exc:
            log.exception(
                f"Message handler error: chat={pseudonymize_chat_id(message.chat_id)}, "
                f"user={pseudonymize_id(message.sender_id)}: {exc}"
            )
            return ModerationResult(action=ModerationAction.ERROR, reason="handler_error", details=str(exc))

    async def _process(self, message: Message) -> ModerationResult:
        if message.from_me:
            return ModerationResult(action=ModerationAction.NONE, reason="own_message")

        if message.is_group and message.is_sticker:
            return await self._punish(message, ViolationKind.STICKER)

        reason = await self.check_message(message.text)

        if message.is_group:
            if reason:
                return await self._punish(message, ViolationKind.MESSAGE, reason)
            if self.commands is not None:
                command = await self.commands.dispatch(message)
                if command:
                    return ModerationResult(action=ModerationAction.COMMAND, reason="command", command=command)
            return ModerationResult(action=ModerationAction.NONE, reason="clean")

        if reason:
            return await self._block(message, reason)
        return ModerationResult(action=ModerationAction.NONE, reason="clean")

    # ========================================================================
    # MESSAGE CHECKING
    # ========================================================================

    async def check_message(self, text: str) -> Optional[str]:
        """Проверить текст фильтром и, если он чист, моделью.

        Returns:
            Причина флага ("filter:<слово>" или "classifier_blocked") либо None
        """
        filter_result = self.profanity.check(text)
        if filter_result.is_filtered:
            return filter_result.reason

        if self.classifier is None or len(text.strip()) <= self.min_screen_length:
            return None

        outcome = await self.classifier.screen(text)
        if outcome.blocked:
            return "classifier_blocked"
        return None

    # ========================================================================
    # ACTIONS
    # ========================================================================

    async def _resolve_chat_name(self, message: Message) -> Optional[str]:
        if message.chat_name:
            return message.chat_name
        chat = await self.transport.get_chat(message.chat_id)
        return chat.name if chat else None

    async def _notify(self, message: Message, template: str, **values) -> bool:
        text = template.format(number=message.number, **values)
        result = await self.transport.send_message(message.chat_id, text, mentions=[message.sender_id])
        return result.ok

    async def _punish(self, message: Message, kind: ViolationKind, reason: Optional[str] = None) -> ModerationResult:
        """Страйк, удаление, предупреждение, запись в журнал и, на пороге, исключение.

        Сбой удаления/отправки/исключения не откатывает страйк и запись журнала.
        """
        group_id = message.group_id
        strike = await self.strikes.record_violation(group_id, message.sender_id, kind)

        deleted = await self.transport.delete_message(message.chat_id, message.id, for_everyone=True)
        if not deleted.ok:
            log.warning(f"Could not delete message in {pseudonymize_chat_id(group_id)}: {deleted.detail[:200]}")

        await self._notify(message, WARNING_TEMPLATES[kind], strikes=strike.total)

        chat_name = await self._resolve_chat_name(message)
        entry = AuditEntry.create(
            kind.audit_type,
            message,
            chat_name=chat_name,
            text=message.text if kind is ViolationKind.MESSAGE else None,
            strikes=strike.total,
        )
        await self.mod_logger.log_action(entry, message)

        removed = False
        if strike.escalation == StrikeEscalation.REMOVE:
            removed = await self._remove(message, kind)

        return ModerationResult(
            action=ModerationAction.REMOVE if removed else ModerationAction.WARN,
            reason=reason or kind.audit_type,
            strikes=strike.total,
            removed=removed,
            details=self._describe(strike),
        )

    async def _remove(self, message: Message, kind: ViolationKind) -> bool:
        result = await self.transport.remove_participant(message.chat_id, message.sender_id)
        if result.ok:
            await self._notify(message, REMOVED_TEMPLATES[kind])
            return True
        log.warning(
            f"Cannot remove {pseudonymize_id(message.sender_id)} from "
            f"{pseudonymize_chat_id(message.chat_id)}: {result.detail[:200]}"
        )
        await self._notify(message, CANNOT_REMOVE_TEMPLATE)
        return False

    async def _block(self, message: Message, reason: str) -> ModerationResult:
        """Личка: блокировка контакта, один ответ, запись `blocked`. Страйки не трогаются."""
        blocked = await self.transport.block_contact(message.sender_id)
        if not blocked.ok:
            log.warning(f"Could not block {pseudonymize_id(message.sender_id)}: {blocked.detail[:200]}")

        await self.transport.reply(message, BLOCKED_REPLY)
        await self.mod_logger.log_action(AuditEntry.create("blocked", message, text=message.text), message)
        return ModerationResult(action=ModerationAction.BLOCK, reason=reason, details=blocked.detail or None)

    @staticmethod
    def _describe(strike: StrikeResult) -> str:
        return f"{strike.kind.value} strikes {strike.total}/{strike.threshold}"
