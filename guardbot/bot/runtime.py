# Copyright (c) 2025 sprowii
"""Event loop бота в фоновом потоке и маршрутизация событий webhook.

Flask обслуживает HTTP в своих потоках, вся модерация идёт в одном
asyncio loop: webhook только ставит корутину в очередь и сразу отвечает.
"""
import asyncio
import concurrent.futures
import threading
from typing import Any, Coroutine, Dict, Optional

from guardbot import config
from guardbot.logging_config import log
from guardbot.moderation.controller import ModerationController
from guardbot.transport.wppconnect import MESSAGE_EVENTS, WPPConnectTransport, parse_message_event


class BotRuntime:
    """Один asyncio loop, работающий в daemon-потоке."""

    def __init__(self):
        self.loop = asyncio.new_event_loop()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    def start(self) -> None:
        if self.running:
            return
        self._thread = threading.Thread(target=self._run, name="guardbot-loop", daemon=True)
        self._thread.start()
        log.info("Bot event loop started")

    def submit(self, coro: Coroutine[Any, Any, Any]) -> concurrent.futures.Future:
        """Поставить корутину в loop из любого потока."""
        future = asyncio.run_coroutine_threadsafe(coro, self.loop)
        future.add_done_callback(self._log_failure)
        return future

    def run(self, coro: Coroutine[Any, Any, Any], timeout: Optional[float] = None) -> Any:
        """Выполнить корутину в loop и дождаться результата."""
        return self.submit(coro).result(timeout)

    @staticmethod
    def _log_failure(future: concurrent.futures.Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            log.error(f"Background task failed: {exc!r}")

    def stop(self) -> None:
        if not self.running:
            return
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout=5)
        self._thread = None
        self.loop.close()
        log.info("Bot event loop stopped")


class WhatsAppBot:
    """Связка транспорта, контроллера модерации и loop."""

    def __init__(
        self,
        transport: WPPConnectTransport,
        controller: ModerationController,
        runtime: BotRuntime,
        reconnect_delay: float = config.RECONNECT_DELAY_SECONDS,
    ):
        self.transport = transport
        self.controller = controller
        self.runtime = runtime
        self.reconnect_delay = reconnect_delay

    async def start(self) -> bool:
        """Поднять сессию WhatsApp и узнать её статус."""
        log.info("Initializing WhatsApp client...")
        if not await self.transport.start_session():
            return False
        status = await self.transport.check_status()
        log.info(f"Session status: {status}")
        return True

    async def reconnect(self) -> bool:
        await asyncio.sleep(self.reconnect_delay)
        log.info("Reinitializing WhatsApp session...")
        started = await self.transport.start_session()
        if not started:
            log.error("Reinitialization failed")
        return started

    def dispatch_event(self, payload: Dict[str, Any]) -> Optional[concurrent.futures.Future]:
        """Разобрать событие webhook (вызывается из потока Flask).

        Returns:
            Future поставленной задачи или None, если делать нечего
        """
        event = str(payload.get("event") or "")
        if event in MESSAGE_EVENTS:
            message = parse_message_event(payload)
            if message is None:
                log.debug("Webhook message without chat id or of a system type ignored")
                return None
            return self.runtime.submit(self.controller.handle_message(message))

        if self.transport.handle_session_event(event, payload):
            log.info(f"Reconnecting in {self.reconnect_delay:g}s")
            return self.runtime.submit(self.reconnect())
        return None
