# Copyright (c) 2025 sprouee
"""Дашборд журнала модерации.

Подключается к основному Flask-приложению как blueprint или
запускается отдельным процессом (`guardbot-dashboard`).
"""
from typing import Any, Dict, List

from flask import Blueprint, Flask, jsonify, redirect, render_template_string, request, url_for

from guardbot import config
from guardbot.logging_config import log
from guardbot.moderation.logger import ACTION_ICONS
from guardbot.moderation.storage import DocumentStore, create_store

DASHBOARD_TEMPLATE = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Moderation dashboard</title>
    <style>
        body { font-family: sans-serif; margin: 2rem; }
        table { border-collapse: collapse; width: 100%; margin-bottom: 2rem; }
        th, td { border: 1px solid #ccc; padding: 0.4rem 0.6rem; text-align: left; }
        th { background: #f3f3f3; }
    </style>
</head>
<body>
    <h1>📊 Moderation actions</h1>
    {% if actions %}
    <table>
        <tr><th></th><th>Type</th><th>Time</th><th>User</th><th>Number</th><th>Chat</th><th>Message</th><th>Strikes</th></tr>
        {% for action in actions %}
        <tr>
            <td>{{ icons.get(action.type, "📋") }}</td>
            <td>{{ action.type }}</td>
            <td>{{ action.time }}</td>
            <td>{{ action.user }}</td>
            <td>{{ action.number }}</td>
            <td>{{ action.chat or "private" }}</td>
            <td>{{ action.message or "" }}</td>
            <td>{{ action.strikes if action.strikes is not none else "" }}</td>
        </tr>
        {% endfor %}
    </table>
    {% else %}
    <p>No moderation actions yet.</p>
    {% endif %}

    <h2>Strikes</h2>
    {% if strikes %}
    <table>
        <tr><th>Group</th><th>User</th><th>Message strikes</th><th>Sticker strikes</th></tr>
        {% for row in strikes %}
        <tr>
            <td>{{ row.group }}</td>
            <td>{{ row.user }}</td>
            <td>{{ row.strikes }}</td>
            <td>{{ row.sticker_strikes }}</td>
        </tr>
        {% endfor %}
    </table>
    {% else %}
    <p>No strikes recorded.</p>
    {% endif %}
</body>
</html>
""".strip()


def strike_overview(document: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Плоская таблица страйков: одна строка на (группа, пользователь)."""
    rows: List[Dict[str, Any]] = []
    for group_id, state in sorted(document.get("groups", {}).items()):
        if not isinstance(state, dict):
            continue
        strikes = state.get("strikes") or {}
        sticker_strikes = state.get("sticker_strikes") or {}
        for user_id in sorted(set(strikes) | set(sticker_strikes)):
            rows.append(
                {
                    "group": group_id,
                    "user": user_id,
                    "strikes": int(strikes.get(user_id, 0)),
                    "sticker_strikes": int(sticker_strikes.get(user_id, 0)),
                }
            )
    return rows


def create_dashboard_blueprint(store: DocumentStore) -> Blueprint:
    dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/dashboard")

    @dashboard_bp.route("/")
    def index():
        document = store.read()
        actions = store.load_actions(newest_first=True)
        return render_template_string(
            DASHBOARD_TEMPLATE,
            actions=actions,
            strikes=strike_overview(document),
            icons=ACTION_ICONS,
        )

    @dashboard_bp.route("/api/actions")
    def api_actions():
        limit = request.args.get("limit", type=int)
        actions = store.load_actions(limit=limit, newest_first=True)
        return jsonify([entry.to_dict() for entry in actions])

    return dashboard_bp


def create_dashboard_app(store: DocumentStore) -> Flask:
    """Отдельное приложение только с дашбордом."""
    app = Flask(__name__)
    app.register_blueprint(create_dashboard_blueprint(store))

    @app.route("/")
    def root():
        return redirect(url_for("dashboard.index"))

    return app


def main() -> None:
    app = create_dashboard_app(create_store())
    log.info(f"📊 Dashboard running on http://localhost:{config.DASHBOARD_PORT}/dashboard")
    app.run(host=config.FLASK_HOST, port=config.DASHBOARD_PORT)


if __name__ == "__main__":
    main()
