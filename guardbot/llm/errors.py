# Copyright (c) 2025 sprowii


class SafetyBlockedError(Exception):
    """Ответ или промпт заблокирован фильтром безопасности модели."""

    def __init__(self, reason: str = "SAFETY"):
        super().__init__(f"Content blocked by SAFETY filter: {reason}")
        self.reason = reason
