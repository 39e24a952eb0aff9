# Copyright (c) 2025 sprouee
import os
from typing import List

from dotenv import load_dotenv

load_dotenv()


def _resolve_redis_url(raw_url: str) -> str:
    if ".upstash.io" in raw_url and raw_url.startswith("redis://"):
        return "rediss" + raw_url[len("redis") :]
    return raw_url


def _load_api_keys() -> List[str]:
    keys: List[str] = []
    for name in ("GEMINI_API_KEY", "GEMINI_API_KEY_1", "GEMINI_API_KEY_2"):
        key = os.getenv(name)
        if key and key not in keys:
            keys.append(key)
    return keys


def _split_words(raw: str) -> List[str]:
    return [word.strip().lower() for word in raw.split(",") if word.strip()]


REDIS_URL = os.getenv("REDIS_URL")
if REDIS_URL:
    REDIS_URL = _resolve_redis_url(REDIS_URL)
REDIS_DOCUMENT_KEY = os.getenv("REDIS_DOCUMENT_KEY", "guardbot:db")
DB_PATH = os.getenv("DB_PATH", "db.json")

API_KEYS = _load_api_keys()
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")

WPP_SERVER_URL = os.getenv("WPP_SERVER_URL", "http://localhost:21465").rstrip("/")
WPP_SESSION = os.getenv("WPP_SESSION", "nupac-bot")
WPP_SECRET_KEY = os.getenv("WPP_SECRET_KEY")
WEBHOOK_URL = os.getenv("WEBHOOK_URL")
WPP_TIMEOUT = float(os.getenv("WPP_TIMEOUT", 30))
RECONNECT_DELAY_SECONDS = 10

FLASK_HOST = "0.0.0.0"
FLASK_PORT = int(os.getenv("PORT", 3000))
DASHBOARD_PORT = int(os.getenv("DASHBOARD_PORT", 4000))

# Gemini: 8 секунд между запросами одного пользователя
COOLDOWN_SECONDS = float(os.getenv("COOLDOWN_SECONDS", 8))
RETRY_BASE_DELAY = float(os.getenv("RETRY_BASE_DELAY", 1.5))
MAX_RETRIES = 2
MIN_SCREEN_LENGTH = 5

MESSAGE_STRIKE_LIMIT = int(os.getenv("MESSAGE_STRIKE_LIMIT", 2))
STICKER_STRIKE_LIMIT = int(os.getenv("STICKER_STRIKE_LIMIT", 4))

QA_PAIRS_PATH = os.getenv("QA_PAIRS_PATH", "qa_pairs.json")
QA_MATCH_THRESHOLD = 0.55

OWNER_NAME = os.getenv("OWNER_NAME", "Mr Shah")
OWNER_CONTACT = os.getenv("OWNER_CONTACT", "")

EXTRA_BAD_WORDS = _split_words(os.getenv("EXTRA_BAD_WORDS", ""))

DATA_HASH_SALT = os.getenv("DATA_HASH_SALT")

SAFETY_SCREEN_PROMPT = """
You are a content-safety screener for a WhatsApp study group.
Reply with exactly one word: SAFE if the message below is acceptable,
UNSAFE if it contains abuse, harassment, hate speech, sexual content or threats.

Message:
{text}
""".strip()


def validate_config() -> List[str]:
    """Проверяет обязательные переменные окружения. Возвращает список ошибок."""
    errors: List[str] = []
    if not API_KEYS:
        errors.append("Необходимо установить GEMINI_API_KEY (или GEMINI_API_KEY_1 / GEMINI_API_KEY_2)")
    if not WPP_SECRET_KEY:
        errors.append("Переменная окружения WPP_SECRET_KEY должна быть установлена")
    if not WEBHOOK_URL:
        errors.append("Переменная окружения WEBHOOK_URL должна быть установлена")
    if MESSAGE_STRIKE_LIMIT < 1 or STICKER_STRIKE_LIMIT < 1:
        errors.append("Пороги страйков должны быть >= 1")
    return errors
