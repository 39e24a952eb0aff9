# Copyright (c) 2025 sprowii
from guardbot.transport.base import ChatTransport
from guardbot.transport.wppconnect import SessionState, WPPConnectTransport, parse_message_event

__all__ = [
    "ChatTransport",
    "SessionState",
    "WPPConnectTransport",
    "parse_message_event",
]
