# Copyright (c) 2025 sprowii
import threading
from typing import Any, Dict, List, Optional

from google import genai

from guardbot.config import API_KEYS, GEMINI_MODEL
from guardbot.llm.errors import SafetyBlockedError
from guardbot.logging_config import log

HARM_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)
BLOCKING_FINISH_REASONS = {"SAFETY", "BLOCKLIST", "PROHIBITED_CONTENT", "SPII"}


def _enum_name(value: Any) -> str:
    name = getattr(value, "name", None)
    if name:
        return str(name)
    return str(value).rsplit(".", 1)[-1] if value is not None else ""


def _part_text(part: Any) -> Optional[str]:
    if hasattr(part, "text"):
        return part.text
    if isinstance(part, dict):
        return part.get("text")
    if isinstance(part, str):
        return part
    return None


def _response_parts(response: Any) -> List[Any]:
    candidates = getattr(response, "candidates", None)
    if not candidates and isinstance(response, dict):
        candidates = response.get("candidates")
    if candidates:
        candidate = candidates[0]
        content = getattr(candidate, "content", None)
        if content is None and isinstance(candidate, dict):
            content = candidate.get("content")
        parts = getattr(content, "parts", None)
        if parts is None and isinstance(content, dict):
            parts = content.get("parts", [])
        if parts:
            return list(parts)
    text = getattr(response, "text", None)
    if text:
        return [{"text": text}]
    return []


def _extract_text_from_parts(parts: List[Any]) -> str:
    texts = [text for text in (_part_text(part) for part in parts) if text]
    return "\n".join(texts).strip()


def _raise_if_blocked(response: Any) -> None:
    """Gemini не бросает исключение на блокировку - смотрим feedback и finish_reason."""
    feedback = getattr(response, "prompt_feedback", None)
    block_reason = getattr(feedback, "block_reason", None) if feedback is not None else None
    if block_reason:
        raise SafetyBlockedError(_enum_name(block_reason))

    candidates = getattr(response, "candidates", None) or []
    if candidates:
        finish_reason = _enum_name(getattr(candidates[0], "finish_reason", None))
        if finish_reason in BLOCKING_FINISH_REASONS:
            raise SafetyBlockedError(finish_reason)


def _request_config(threshold: str) -> Dict[str, Any]:
    return {
        "safety_settings": [
            {"category": category, "threshold": threshold} for category in HARM_CATEGORIES
        ],
    }


class GeminiBackend:
    """Gemini через google-genai с ротацией API ключей.

    При rate limit переключаемся на следующий ключ и пробрасываем ошибку
    дальше: ретраи и backoff делает ClassificationClient.
    """

    def __init__(
        self,
        api_keys: Optional[List[str]] = None,
        model: str = GEMINI_MODEL,
        safety_threshold: str = "BLOCK_MEDIUM_AND_ABOVE",
    ):
        self.api_keys = list(api_keys if api_keys is not None else API_KEYS)
        self.model = model
        self.safety_threshold = safety_threshold
        self.current_key_idx = 0
        self._clients: Dict[int, genai.Client] = {}
        self._lock = threading.Lock()

    def _get_client(self, idx: int) -> genai.Client:
        if not self.api_keys:
            raise RuntimeError("Не заданы API ключи для Gemini")
        idx = idx % len(self.api_keys)
        client = self._clients.get(idx)
        if client is None:
            client = genai.Client(api_key=self.api_keys[idx])
            self._clients[idx] = client
        return client

    def _rotate_key(self) -> None:
        with self._lock:
            if len(self.api_keys) > 1:
                self.current_key_idx = (self.current_key_idx + 1) % len(self.api_keys)
                log.info(f"Rate limit on Gemini key, switching to key #{self.current_key_idx + 1}")

    def generate(self, prompt: str) -> str:
        client = self._get_client(self.current_key_idx)
        try:
            response = client.models.generate_content(
                model=self.model,
                contents=[{"role": "user", "parts": [{"text": prompt}]}],
                config=_request_config(self.safety_threshold),
            )
        except Exception as exc:
            error_text = str(exc).lower()
            if "rate limit" in error_text or "quota" in error_text or "429" in error_text:
                self._rotate_key()
            raise
        _raise_if_blocked(response)
        return _extract_text_from_parts(_response_parts(response))

    def list_models(self) -> List[Dict[str, Any]]:
        """Модели, которые поддерживают generateContent."""
        client = self._get_client(self.current_key_idx)
        models: List[Dict[str, Any]] = []
        for model in client.models.list():
            actions = list(getattr(model, "supported_actions", None) or [])
            if "generateContent" not in actions:
                continue
            models.append(
                {
                    "name": model.name,
                    "display_name": getattr(model, "display_name", None),
                    "description": getattr(model, "description", None),
                    "input_token_limit": getattr(model, "input_token_limit", None),
                    "output_token_limit": getattr(model, "output_token_limit", None),
                    "supported_actions": actions,
                }
            )
        return models
