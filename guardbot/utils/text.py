# Copyright (c) 2025 sprouee
import re
from typing import List, Optional, Tuple

MAX_WHATSAPP_CHUNK = 4096


def strip_command(text: str, prefixes: Tuple[str, ...]) -> Optional[str]:
    """Аргумент команды без префикса или None, если текст не начинается с префикса."""
    for prefix in prefixes:
        if text.startswith(prefix):
            return re.sub(rf"^{re.escape(prefix)}\s*", "", text, flags=re.IGNORECASE).strip()
    return None


def split_long_message(text: str, max_length: int = MAX_WHATSAPP_CHUNK) -> List[str]:
    if len(text) <= max_length:
        return [text]
    parts, current = [], ""
    for line in text.split("\n"):
        if len(current) + len(line) + 1 <= max_length:
            current += line + "\n"
        else:
            if current:
                parts.append(current.strip())
            current = line + "\n"
    if current:
        parts.append(current.strip())
    return parts
