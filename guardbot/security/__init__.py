# Copyright (c) 2025 sprouee
"""Security-related helpers.

Модули:
- data_protection: Псевдонимизация ID для логов
"""
from guardbot.security.data_protection import (
    mask_phone_numbers,
    pseudonymize_id,
    pseudonymize_chat_id,
    safe_log_user,
    safe_log_action,
)

__all__ = [
    "mask_phone_numbers",
    "pseudonymize_id",
    "pseudonymize_chat_id",
    "safe_log_user",
    "safe_log_action",
]
