from guardbot import config


def test_validate_config_ok(monkeypatch):
    monkeypatch.setattr(config, "API_KEYS", ["key"])
    monkeypatch.setattr(config, "WPP_SECRET_KEY", "secret")
    monkeypatch.setattr(config, "WEBHOOK_URL", "http://localhost/webhook")
    assert config.validate_config() == []


def test_validate_config_reports_missing(monkeypatch):
    monkeypatch.setattr(config, "API_KEYS", [])
    monkeypatch.setattr(config, "WPP_SECRET_KEY", None)
    monkeypatch.setattr(config, "WEBHOOK_URL", None)
    assert len(config.validate_config()) == 3


def test_helpers():
    assert config._split_words(" Foo, ,bar ") == ["foo", "bar"]
    assert config._resolve_redis_url("redis://x.upstash.io:6379") == "rediss://x.upstash.io:6379"
    assert config._resolve_redis_url("redis://localhost:6379") == "redis://localhost:6379"


def test_defaults():
    assert config.COOLDOWN_SECONDS == 8
    assert config.MESSAGE_STRIKE_LIMIT == 2
    assert config.STICKER_STRIKE_LIMIT == 4
    assert config.QA_MATCH_THRESHOLD == 0.55
