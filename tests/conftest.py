"""
Pytest configuration for guardbot tests.
"""

import os

# Фиксированная соль и пустые ключи: тесты не ходят в сеть и не читают .env разработчика
os.environ.setdefault("DATA_HASH_SALT", "test-salt")
os.environ.setdefault("WPP_SECRET_KEY", "secret")
os.environ.setdefault("WEBHOOK_URL", "http://localhost:3000/webhook")
