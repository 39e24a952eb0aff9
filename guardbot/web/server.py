# Copyright (c) 2025 sprouee
from datetime import datetime, timezone

from flask import Flask, Response, abort, jsonify, render_template_string, request

from guardbot.bot.runtime import WhatsAppBot
from guardbot.logging_config import log
from guardbot.moderation.storage import DocumentStore
from guardbot.web.dashboard import create_dashboard_blueprint

QR_TEMPLATE = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>WhatsApp login</title>
</head>
<body>
    {% if qr_code %}
    <h2>Scan QR to login</h2>
    <img src="{{ qr_code }}" style="max-width:300px"/>
    {% else %}
    <h2>Logged in – no QR needed</h2>
    {% endif %}
</body>
</html>
""".strip()


def create_server_app(bot: WhatsAppBot, store: DocumentStore) -> Flask:
    flask_app = Flask(__name__)
    flask_app.register_blueprint(create_dashboard_blueprint(store))

    @flask_app.route("/")
    def home():
        stamp = datetime.now(timezone.utc).isoformat()
        return Response(f"✅ WhatsApp bot running - {stamp}", mimetype="text/plain")

    @flask_app.route("/qr")
    def qr_page():
        state = bot.transport.state
        qr_code = state.qr_code if state.needs_qr else None
        return render_template_string(QR_TEMPLATE, qr_code=qr_code)

    @flask_app.route("/webhook", methods=["POST"])
    def webhook():
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            abort(400)
        try:
            bot.dispatch_event(payload)
        except Exception as exc:
            log.error(f"Не удалось обработать событие webhook: {exc}", exc_info=True)
            abort(500)
        return jsonify({"status": "ok"})

    return flask_app
