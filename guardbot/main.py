# Copyright (c) 2025 sprowii
import sys
from dataclasses import dataclass

from flask import Flask

from guardbot import config
from guardbot.bot.commands import CommandDispatcher
from guardbot.bot.runtime import BotRuntime, WhatsAppBot
from guardbot.features.knowledge import KnowledgeBase, load_qa_pairs
from guardbot.features.search import SearchService
from guardbot.llm.classifier import ClassificationClient
from guardbot.llm.client import GeminiBackend
from guardbot.logging_config import log
from guardbot.middleware.rate_limit import CooldownTracker
from guardbot.moderation.content_filter import ProfanityFilter
from guardbot.moderation.controller import ModerationController
from guardbot.moderation.logger import ModLogger
from guardbot.moderation.storage import DocumentStore, create_store
from guardbot.moderation.strikes import StrikeSystem
from guardbot.transport.wppconnect import WPPConnectTransport
from guardbot.web.server import create_server_app


@dataclass
class Application:
    store: DocumentStore
    runtime: BotRuntime
    bot: WhatsAppBot
    flask_app: Flask


def build_application() -> Application:
    """Собрать все компоненты бота. Сеть здесь не трогаем."""
    store = create_store()
    store.init()

    classifier = ClassificationClient(GeminiBackend(), cooldowns=CooldownTracker())
    transport = WPPConnectTransport()
    knowledge = KnowledgeBase(load_qa_pairs(config.QA_PAIRS_PATH), classifier=classifier)
    commands = CommandDispatcher(transport, classifier, knowledge, SearchService())
    controller = ModerationController(
        transport=transport,
        profanity=ProfanityFilter(),
        classifier=classifier,
        strikes=StrikeSystem(store),
        mod_logger=ModLogger(store),
        commands=commands,
    )

    runtime = BotRuntime()
    bot = WhatsAppBot(transport, controller, runtime)
    flask_app = create_server_app(bot, store)
    return Application(store=store, runtime=runtime, bot=bot, flask_app=flask_app)


def main() -> int:
    errors = config.validate_config()
    if errors:
        for error in errors:
            log.error(error)
        return 1

    application = None
    try:
        application = build_application()
        application.runtime.start()
        if not application.runtime.run(application.bot.start(), timeout=config.WPP_TIMEOUT * 3):
            raise RuntimeError("Не удалось запустить сессию WhatsApp")
    except Exception as exc:
        log.exception(f"Startup error: {exc}")
        if application is not None:
            application.runtime.stop()
        return 1

    log.info(f"Server → http://localhost:{config.FLASK_PORT}/qr")
    try:
        application.flask_app.run(host=config.FLASK_HOST, port=config.FLASK_PORT)
    finally:
        application.runtime.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
