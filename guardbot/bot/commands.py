# Copyright (c) 2025 sprowii
"""Команды бота в групповых чатах (`!bot`, `!google`, `!yt`, `!info`, ...)."""
import asyncio
import time
from typing import Callable, Optional

from guardbot import config
from guardbot.features.knowledge import KnowledgeBase
from guardbot.features.search import SearchService, format_video_results, format_web_results
from guardbot.llm.classifier import ClassificationClient, ClassifyStatus
from guardbot.logging_config import log
from guardbot.moderation.models import Message
from guardbot.security.data_protection import pseudonymize_chat_id, safe_log_user
from guardbot.transport.base import ChatTransport
from guardbot.utils.text import split_long_message, strip_command

ASK_PREFIXES = ("!bot", "@bot")

EMPTY_QUESTION_REPLY = "Please ask a question after `!bot`"
THINKING_REPLY = "Thinking..."
COOLDOWN_REPLY = "Please wait a few seconds before asking again."
BUSY_REPLY = "Gemini is busy right now. Try again in a minute."
BLOCKED_REPLY = "I can’t answer that — it violates safety rules."
NO_ANSWER_REPLY = "No answer."
SEARCH_FAILED_REPLY = "Search failed."
SEARCH_FALLBACK_PROMPT = 'Summarize top info about "{query}"'

HELP_TEXT = """
*Bot Commands*

- `!bot <question>` – Ask Gemini
- `!google <query>` – Web search
- `!yt <query>` – YouTube search
- `!info <question>` – University document Q&A
- `!owner` – Owner info
- `!ping` – Bot latency
- `!help` – This list

Profanity & stickers are auto-punished.
""".strip()


def owner_card(name: str = config.OWNER_NAME, contact: str = config.OWNER_CONTACT) -> str:
    card = f"*Bot Owner*\nName: *{name}*"
    if contact:
        card += f"\nWhatsApp: wa.me/{contact}"
    return card


class CommandDispatcher:
    """Разбор и выполнение команд. Вызывается только для чистых групповых сообщений."""

    def __init__(
        self,
        transport: ChatTransport,
        classifier: ClassificationClient,
        knowledge: KnowledgeBase,
        search: Optional[SearchService] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.transport = transport
        self.classifier = classifier
        self.knowledge = knowledge
        self.search = search or SearchService()
        self.clock = clock

    async def _send(self, chat_id: str, text: str) -> None:
        for chunk in split_long_message(text):
            result = await self.transport.send_message(chat_id, chunk)
            if not result.ok:
                log.warning(f"Failed to send reply to {pseudonymize_chat_id(chat_id)}: {result.detail[:200]}")

    async def dispatch(self, message: Message) -> Optional[str]:
        """Выполнить команду из сообщения.

        Returns:
            Имя выполненной команды или None, если сообщение не команда
        """
        text = message.text
        chat_id = message.chat_id

        question = strip_command(text, ASK_PREFIXES)
        if question is not None:
            await self.ask(message, question)
            return "bot"

        if text.startswith("!google "):
            query = text[len("!google "):].strip()
            if query:
                await self.web_search(chat_id, query)
            return "google"

        if text.startswith("!yt "):
            query = text[len("!yt "):].strip()
            if query:
                await self.video_search(chat_id, query)
            return "yt"

        if text == "!owner":
            await self._send(chat_id, owner_card())
            return "owner"

        if text == "!help":
            await self._send(chat_id, HELP_TEXT)
            return "help"

        if text.startswith("!info "):
            query = text[len("!info "):].strip()
            if query:
                answer = await self.knowledge.answer(query)
                await self._send(chat_id, f"*Answer*\n{answer}")
            return "info"

        if text.lower() == "!ping":
            await self.ping(chat_id)
            return "ping"

        return None

    async def ask(self, message: Message, question: str) -> None:
        chat_id = message.chat_id
        if not question:
            await self._send(chat_id, EMPTY_QUESTION_REPLY)
            return

        log.info(f"!bot question from {safe_log_user(message.sender_id, message.sender_name)}")
        await self._send(chat_id, THINKING_REPLY)
        outcome = await self.classifier.classify(question, user_id=message.sender_id)

        if outcome.status == ClassifyStatus.COOLDOWN:
            await self._send(chat_id, COOLDOWN_REPLY)
        elif outcome.status == ClassifyStatus.UNAVAILABLE:
            await self._send(chat_id, BUSY_REPLY)
        elif outcome.status == ClassifyStatus.BLOCKED:
            await self._send(chat_id, BLOCKED_REPLY)
        else:
            await self._send(chat_id, (outcome.text or "").strip() or NO_ANSWER_REPLY)

    async def web_search(self, chat_id: str, query: str) -> None:
        loop = asyncio.get_running_loop()
        try:
            hits = await loop.run_in_executor(None, self.search.web_search, query)
        except Exception as exc:
            log.error(f"Web search error: {exc}")
            fallback = await self.classifier.classify(SEARCH_FALLBACK_PROMPT.format(query=query))
            text = (fallback.text or "").strip() if fallback.ok else ""
            await self._send(chat_id, text or SEARCH_FAILED_REPLY)
            return
        await self._send(chat_id, format_web_results(query, hits))

    async def video_search(self, chat_id: str, query: str) -> None:
        loop = asyncio.get_running_loop()
        try:
            hits = await loop.run_in_executor(None, self.search.video_search, query)
        except Exception as exc:
            log.error(f"Video search error: {exc}")
            await self._send(chat_id, SEARCH_FAILED_REPLY)
            return
        await self._send(chat_id, format_video_results(query, hits))

    async def ping(self, chat_id: str) -> None:
        start = self.clock()
        await self._send(chat_id, "Pong!")
        latency = int((self.clock() - start) * 1000)
        await self._send(chat_id, f"Alive! Response time: {latency} ms")
