#!/usr/bin/env python3
"""Список моделей Gemini, которые умеют generateContent.

Запуск:
    python scripts/list_models.py

Нужен GEMINI_API_KEY в окружении или в .env.
"""
import sys

from guardbot import config
from guardbot.llm.client import GeminiBackend


def print_model(model: dict, index: int) -> None:
    name = model["name"]
    display_name = model.get("display_name") or name.split("/")[-1].replace("-", " ")
    description = model.get("description") or ""
    if len(description) > 100:
        description = description[:100] + "…"
    input_limit = model.get("input_token_limit")
    output_limit = model.get("output_token_limit")

    print(f"{index}. **{display_name}**")
    print(f"   API Name: {name}")
    print(f"   Tokens: In={input_limit or '—'} | Out={output_limit or '—'}")
    print(f"   Methods: {', '.join(model.get('supported_actions') or []) or '—'}")
    print(f"   Desc: {description}\n")


def main() -> int:
    if not config.API_KEYS:
        print("❌ GEMINI_API_KEY missing in .env")
        return 1

    print("🔍 Fetching Gemini models…\n")
    try:
        models = GeminiBackend().list_models()
    except Exception as exc:
        print(f"❌ Failed to list models: {exc}")
        return 1

    if not models:
        print("❌ No chat models found. Check API key or enable Generative Language API.")
        return 1

    print(f"✅ {len(models)} chat-capable models available:\n")
    for index, model in enumerate(models, start=1):
        print_model(model, index)
    print(f"💡 Current GEMINI_MODEL: {config.GEMINI_MODEL}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
