from unittest.mock import MagicMock

import pytest

from guardbot.moderation.models import AuditEntry
from guardbot.moderation.storage import JsonFileStore
from guardbot.transport.wppconnect import SessionState
from guardbot.web.dashboard import create_dashboard_app, strike_overview
from guardbot.web.server import create_server_app

from fakes import GROUP_ID, USER_ID, make_message


@pytest.fixture
def store(tmp_path):
    store = JsonFileStore(str(tmp_path / "db.json"))
    store.init()
    return store


@pytest.fixture
def bot():
    bot = MagicMock()
    bot.transport.state = SessionState()
    return bot


@pytest.fixture
def client(bot, store):
    app = create_server_app(bot, store)
    app.config["TESTING"] = True
    return app.test_client()


def test_keep_alive(client):
    response = client.get("/")
    assert response.status_code == 200
    assert "WhatsApp bot running" in response.get_data(as_text=True)


def test_qr_page_shows_code_when_login_needed(client, bot):
    bot.transport.state = SessionState(status="QRCODE", qr_code="data:image/png;base64,AAA")

    body = client.get("/qr").get_data(as_text=True)

    assert "Scan QR to login" in body
    assert 'src="data:image/png;base64,AAA"' in body


def test_qr_page_when_logged_in(client, bot):
    bot.transport.state = SessionState(status="CONNECTED", qr_code=None)
    assert "Logged in – no QR needed" in client.get("/qr").get_data(as_text=True)


def test_webhook_dispatches_event(client, bot):
    payload = {"event": "onmessage", "from": GROUP_ID, "body": "hi"}

    response = client.post("/webhook", json=payload)

    assert response.status_code == 200
    assert response.get_json() == {"status": "ok"}
    bot.dispatch_event.assert_called_once_with(payload)


def test_webhook_rejects_non_json(client, bot):
    response = client.post("/webhook", data="not json", content_type="text/plain")
    assert response.status_code == 400
    bot.dispatch_event.assert_not_called()


def test_webhook_reports_dispatch_failure(client, bot):
    bot.dispatch_event.side_effect = RuntimeError("loop closed")
    assert client.post("/webhook", json={"event": "onmessage"}).status_code == 500


def test_dashboard_lists_actions_newest_first(client, store):
    store.append_action(AuditEntry.create("violation", make_message("first"), chat_name="Study Group", text="first", strikes=1))
    store.append_action(AuditEntry.create("blocked", make_message("second"), text="second"))

    body = client.get("/dashboard/").get_data(as_text=True)

    assert body.index("second") < body.index("first")
    assert "Study Group" in body


def test_dashboard_api(client, store):
    store.append_action(AuditEntry.create("violation", make_message("first"), text="first", strikes=1))
    store.append_action(AuditEntry.create("sticker_violation", make_message(type="sticker"), strikes=1))

    data = client.get("/dashboard/api/actions").get_json()
    limited = client.get("/dashboard/api/actions?limit=1").get_json()

    assert [item["type"] for item in data] == ["sticker_violation", "violation"]
    assert len(limited) == 1


def test_dashboard_shows_strikes(client, store):
    store.data["groups"][GROUP_ID] = {"strikes": {USER_ID: 1}, "sticker_strikes": {USER_ID: 3}}
    store.write()

    body = client.get("/dashboard/").get_data(as_text=True)

    assert USER_ID in body


def test_strike_overview():
    document = {"groups": {GROUP_ID: {"strikes": {"a": 2}, "sticker_strikes": {"b": 1}}}}
    assert strike_overview(document) == [
        {"group": GROUP_ID, "user": "a", "strikes": 2, "sticker_strikes": 0},
        {"group": GROUP_ID, "user": "b", "strikes": 0, "sticker_strikes": 1},
    ]


def test_standalone_dashboard_redirects(store):
    app = create_dashboard_app(store)
    response = app.test_client().get("/")
    assert response.status_code == 302
    assert response.headers["Location"].endswith("/dashboard/")
