# Copyright (c) 2025 sprowii
"""Транспорт WhatsApp через WPPConnect Server (REST + webhook).

WPPConnect держит сессию WhatsApp Web и присылает события на наш /webhook;
исходящие действия - POST на `/api/{session}/...` с Bearer токеном.
"""
import base64
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from guardbot import config
from guardbot.logging_config import log
from guardbot.moderation.models import ChatInfo, Message, OpResult
from guardbot.security.data_protection import pseudonymize_chat_id, pseudonymize_id
from guardbot.transport.base import ChatTransport

MESSAGE_EVENTS = ("onmessage", "on-message")
LOGGED_IN_STATES = {"CONNECTED", "isLogged", "inChat", "qrReadSuccess", "successChat", "chatsAvailable"}
DISCONNECT_EVENTS = ("desconnectedmobile", "deletedsession", "disconnected")
DISCONNECT_STATES = {"desconnectedMobile", "browserClose", "deleteToken", "CLOSED"}
# В body медиа-сообщений лежит base64 превью, текст - в caption
MEDIA_TYPES = {"image", "video", "document", "sticker", "audio", "ptt"}
SYSTEM_TYPES = {
    "gp2", "notification_template", "e2e_notification", "call_log",
    "protocol", "protocol_message", "ciphertext", "revoked",
}


def _serialized(value: Any) -> str:
    """WPPConnect отдаёт ID то строкой, то объектом {_serialized, user, server}."""
    if isinstance(value, dict):
        return str(value.get("_serialized") or value.get("id") or value.get("user") or "")
    return str(value or "")


def parse_message_event(data: Dict[str, Any]) -> Optional[Message]:
    """Превратить payload события onmessage в Message.

    None - если это не сообщение: нет чата или служебный тип (gp2, revoked, ...).
    Для медиа текстом считается только caption.
    """
    message_type = data.get("type") or "chat"
    if message_type in SYSTEM_TYPES:
        return None

    chat_id = _serialized(data.get("chatId") or data.get("from"))
    if not chat_id:
        return None
    is_group = bool(data.get("isGroupMsg")) or chat_id.endswith("@g.us")

    sender = data.get("sender") if isinstance(data.get("sender"), dict) else {}
    sender_id = _serialized(data.get("author") or sender.get("id") or data.get("from"))
    if not sender_id:
        return None

    chat = data.get("chat") if isinstance(data.get("chat"), dict) else {}
    chat_name = chat.get("name") or chat.get("formattedTitle")
    sender_name = sender.get("pushname") or data.get("notifyName") or sender.get("name")
    if message_type in MEDIA_TYPES:
        body = data.get("caption") or ""
    else:
        body = data.get("body") or data.get("content") or ""

    return Message(
        id=_serialized(data.get("id")),
        chat_id=chat_id,
        sender_id=sender_id,
        body=body,
        type=message_type,
        is_group=is_group,
        timestamp=float(data.get("t") or data.get("timestamp") or time.time()),
        from_me=bool(data.get("fromMe")),
        sender_name=sender_name,
        sender_number=sender_id.split("@", 1)[0],
        chat_name=chat_name,
    )


@dataclass
class SessionState:
    """Состояние сессии WhatsApp, которое показывает страница /qr."""
    status: str = "UNKNOWN"
    qr_code: Optional[str] = None

    @property
    def logged_in(self) -> bool:
        return self.status in LOGGED_IN_STATES

    @property
    def needs_qr(self) -> bool:
        return self.qr_code is not None and not self.logged_in


class WPPConnectTransport(ChatTransport):
    def __init__(
        self,
        base_url: str = config.WPP_SERVER_URL,
        session: str = config.WPP_SESSION,
        secret_key: Optional[str] = config.WPP_SECRET_KEY,
        webhook_url: Optional[str] = config.WEBHOOK_URL,
        timeout: float = config.WPP_TIMEOUT,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session
        self.secret_key = secret_key
        self.webhook_url = webhook_url
        self.timeout = timeout
        self.token: Optional[str] = None
        self.headers: Dict[str, str] = {"Content-Type": "application/json"}
        self.state = SessionState()
        self._http_transport = http_transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._http_transport)

    def _url(self, path: str) -> str:
        return f"{self.base_url}/api/{self.session}/{path}"

    # ========================================================================
    # SESSION
    # ========================================================================

    async def generate_token(self) -> bool:
        """Получить JWT токен по секретному ключу сервера."""
        url = f"{self.base_url}/api/{self.session}/{self.secret_key}/generate-token"
        async with self._client() as client:
            try:
                resp = await client.post(url)
            except httpx.HTTPError as exc:
                log.error(f"Error generating WPPConnect token: {exc}")
                return False
        if resp.status_code not in (200, 201):
            log.error(f"Failed to generate WPPConnect token: {resp.status_code} - {resp.text[:200]}")
            return False
        self.token = resp.json().get("token")
        self.headers["Authorization"] = f"Bearer {self.token}"
        log.info("WPPConnect token generated")
        return True

    async def start_session(self) -> bool:
        """Поднять сессию и подписать наш webhook. QR придёт событием `qrcode`."""
        if not await self.generate_token():
            log.error("Cannot start session without a valid token.")
            return False
        result = await self._post("start-session", {"webhook": self.webhook_url, "waitQrCode": False})
        log.info(f"Start session: ok={result.ok} {result.detail[:200]}")
        return result.ok

    async def check_status(self) -> str:
        data = await self._get("status-session")
        if isinstance(data, dict):
            self.state.status = str(data.get("status") or self.state.status)
            if data.get("qrcode"):
                self.state.qr_code = data["qrcode"]
        return self.state.status

    async def fetch_qr(self) -> Optional[str]:
        """Забрать QR с сервера как data URI (сервер отдаёт PNG или JSON)."""
        async with self._client() as client:
            try:
                resp = await client.get(self._url("qrcode-session"), headers=self.headers)
            except httpx.HTTPError as exc:
                log.error(f"Error fetching QR: {exc}")
                return None
        if resp.status_code != 200:
            log.warning(f"QR fetch failed: {resp.status_code}")
            return None
        content_type = resp.headers.get("content-type", "")
        if "image" in content_type:
            b64 = base64.b64encode(resp.content).decode("utf-8")
            qr_code = f"data:{content_type.split(';')[0]};base64,{b64}"
        else:
            try:
                data = resp.json()
            except ValueError:
                return None
            qr_code = data.get("qrcode") or data.get("base64Qr") or data.get("urlCode")
        if qr_code:
            self.state.qr_code = qr_code
        return qr_code

    def handle_session_event(self, event: str, data: Dict[str, Any]) -> bool:
        """Обновить состояние по событию webhook.

        Returns:
            True если сессия потеряна и нужен переподключение
        """
        if event == "qrcode":
            self.state.qr_code = data.get("qrcode") or data.get("urlcode")
            self.state.status = "QRCODE"
            log.info("QR needed – session NOT restored, scan at /qr")
            return False
        if event == "session-logged":
            self.state.status = "CONNECTED"
            self.state.qr_code = None
            log.info("WhatsApp client ready!")
            return False
        if event == "status-find":
            status = str(data.get("status") or "")
            self.state.status = status or self.state.status
            if status in LOGGED_IN_STATES:
                self.state.qr_code = None
            if status in DISCONNECT_STATES:
                log.warning(f"Disconnected: {status}")
                return True
            return False
        if event in DISCONNECT_EVENTS:
            self.state.status = "DISCONNECTED"
            log.warning(f"Disconnected: {event}")
            return True
        return False

    # ========================================================================
    # HTTP HELPERS
    # ========================================================================

    async def _post(self, path: str, payload: Dict[str, Any]) -> OpResult:
        url = self._url(path)
        async with self._client() as client:
            try:
                resp = await client.post(url, json=payload, headers=self.headers)
                if resp.status_code == 401 and self.secret_key:
                    if await self.generate_token():
                        resp = await client.post(url, json=payload, headers=self.headers)
            except httpx.HTTPError as exc:
                log.error(f"WPPConnect {path} error: {exc}")
                return OpResult(ok=False, detail=str(exc))

        body = resp.text[:500]
        if not 200 <= resp.status_code < 300:
            log.warning(f"WPPConnect {path}: HTTP {resp.status_code} - {body[:200]}")
            return OpResult(ok=False, detail=f"{resp.status_code}: {body}")
        try:
            data = resp.json()
        except ValueError:
            data = None
        if isinstance(data, dict) and str(data.get("status", "")).lower() == "error":
            log.warning(f"WPPConnect {path}: server error - {body[:200]}")
            return OpResult(ok=False, detail=body)
        return OpResult(ok=True, detail=body)

    async def _get(self, path: str) -> Optional[Any]:
        async with self._client() as client:
            try:
                resp = await client.get(self._url(path), headers=self.headers)
            except httpx.HTTPError as exc:
                log.error(f"WPPConnect {path} error: {exc}")
                return None
        if resp.status_code != 200:
            log.warning(f"WPPConnect {path}: HTTP {resp.status_code}")
            return None
        try:
            return resp.json()
        except ValueError:
            return None

    # ========================================================================
    # CHAT OPERATIONS
    # ========================================================================

    async def send_message(self, chat_id: str, text: str, mentions: Optional[List[str]] = None) -> OpResult:
        is_group = chat_id.endswith("@g.us")
        if mentions:
            payload = {
                "phone": chat_id,
                "message": text,
                "mentioned": [mention.split("@", 1)[0] for mention in mentions],
                "isGroup": is_group,
            }
            return await self._post("send-mentioned", payload)
        return await self._post("send-message", {"phone": chat_id, "message": text, "isGroup": is_group})

    async def reply(self, message: Message, text: str) -> OpResult:
        payload = {
            "phone": message.chat_id,
            "message": text,
            "messageId": message.id,
            "isGroup": message.is_group,
        }
        return await self._post("send-reply", payload)

    async def delete_message(self, chat_id: str, message_id: str, for_everyone: bool = True) -> OpResult:
        payload = {
            "phone": chat_id,
            "messageId": message_id,
            "isGroup": chat_id.endswith("@g.us"),
            "onlyLocal": not for_everyone,
        }
        log.info(f"DELETE_MSG: chat={pseudonymize_chat_id(chat_id)}")
        return await self._post("delete-message", payload)

    async def remove_participant(self, chat_id: str, user_id: str) -> OpResult:
        log.info(f"REMOVE_PARTICIPANT: chat={pseudonymize_chat_id(chat_id)}, user={pseudonymize_id(user_id)}")
        return await self._post("remove-participant-group", {"groupId": chat_id, "phone": user_id})

    async def block_contact(self, user_id: str) -> OpResult:
        log.info(f"BLOCK_CONTACT: user={pseudonymize_id(user_id)}")
        return await self._post("block-contact", {"phone": user_id})

    async def get_chat(self, chat_id: str) -> Optional[ChatInfo]:
        data = await self._get(f"chat-by-id/{chat_id}")
        if not isinstance(data, dict):
            return None
        chat = data.get("response", data)
        if not isinstance(chat, dict):
            return None
        metadata = chat.get("groupMetadata") or {}
        participants = [_serialized(item.get("id")) for item in metadata.get("participants", []) if isinstance(item, dict)]
        return ChatInfo(
            id=_serialized(chat.get("id")) or chat_id,
            is_group=bool(chat.get("isGroup")) or chat_id.endswith("@g.us"),
            name=chat.get("name") or chat.get("formattedTitle") or metadata.get("subject"),
            participants=participants,
        )
