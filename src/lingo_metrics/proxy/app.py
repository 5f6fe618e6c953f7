"""Analytics proxy and query-refresh endpoints.

Two small endpoints that must run server-side because they hold secrets:

- ``GET /api/analytics?type=dau|wau|mau|events`` forwards to Mixpanel with
  the API secret and returns the upstream JSON unchanged.
- ``GET|POST /api/refresh-queries`` re-executes the refreshable Dune queries.
  It is meant to be called by a daily scheduler and is guarded by a bearer
  secret (or the scheduler's marker header).

Run locally with ``lingo serve`` or any WSGI server via ``create_app()``.
"""

from __future__ import annotations

import hmac
import json
import logging
from collections.abc import Callable
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING, Any

from flask import Flask, jsonify, request
from flask_cors import CORS

from lingo_metrics._internal.config import ConfigManager
from lingo_metrics._internal.date_utils import trailing_window
from lingo_metrics._internal.mixpanel_client import MixpanelAPIClient
from lingo_metrics._internal.services.refresh_service import RefreshService
from lingo_metrics.exceptions import LingoMetricsError

if TYPE_CHECKING:
    import httpx
    from flask.typing import ResponseReturnValue

    from lingo_metrics._internal.config import Settings

logger = logging.getLogger(__name__)

REPORT_TYPES = ("dau", "wau", "mau", "events")
EVENT_UNITS = ("day", "week", "month")

# Trailing windows (days) for the weekly and monthly active-user counts
WAU_WINDOW_DAYS = 7
MAU_WINDOW_DAYS = 30


class BadRequest(Exception):
    """Invalid query parameters; rendered as a 400 response."""


def _event_params(args: Any, settings: Settings, today: date) -> dict[str, Any]:
    raw_events = args.get("event")
    if not raw_events:
        raise BadRequest("Missing event parameter")
    try:
        events = json.loads(raw_events)
    except json.JSONDecodeError as e:
        raise BadRequest("event must be a JSON list of event names") from e
    if not isinstance(events, list) or not all(isinstance(e, str) for e in events):
        raise BadRequest("event must be a JSON list of event names")

    unit = args.get("unit", "month")
    if unit not in EVENT_UNITS:
        raise BadRequest(f"Invalid unit. Use: {', '.join(EVENT_UNITS)}")

    return {
        "events": events,
        "from_date": args.get("from_date") or settings.event_from_date,
        "to_date": args.get("to_date") or today.isoformat(),
        "unit": unit,
    }


def is_authorized(headers: Any, settings: Settings) -> bool:
    """Whether a refresh request may proceed.

    Allowed when no cron secret is configured, when the Authorization header
    carries the secret as a bearer token, or when the scheduler header is "1".
    """
    if settings.cron_secret is None or not settings.cron_secret.get_secret_value():
        return True
    expected = f"Bearer {settings.cron_secret.get_secret_value()}"
    provided = headers.get("Authorization", "")
    if hmac.compare_digest(provided.encode(), expected.encode()):
        return True
    return headers.get(settings.scheduler_header) == "1"


def create_app(
    settings: Settings | None = None,
    *,
    today: Callable[[], date] | None = None,
    mixpanel_transport: httpx.BaseTransport | None = None,
    dune_transport: httpx.BaseTransport | None = None,
) -> Flask:
    """Build the proxy application.

    Args:
        settings: Resolved settings. Loaded with ConfigManager when omitted.
        today: Returns the current date, used for trailing windows.
        mixpanel_transport: Internal parameter for testing with MockTransport.
        dune_transport: Internal parameter for testing with MockTransport.

    Returns:
        Configured Flask application.
    """
    settings = settings or ConfigManager().load()
    current_date = today or (lambda: datetime.now(UTC).date())

    app = Flask(__name__)
    CORS(
        app,
        resources={
            r"/api/analytics": {
                "origins": "*",
                "methods": ["GET", "OPTIONS"],
                "allow_headers": ["Content-Type"],
            }
        },
        send_wildcard=True,
    )

    def fetch_report(report_type: str, args: Any) -> dict[str, Any]:
        with MixpanelAPIClient(settings, _transport=mixpanel_transport) as client:
            if report_type == "dau":
                return client.query_saved_report(settings.mixpanel_report_id)
            if report_type == "events":
                params = _event_params(args, settings, current_date())
                return client.event_counts(
                    params["events"],
                    params["from_date"],
                    params["to_date"],
                    unit=params["unit"],
                )
            days, unit = (
                (WAU_WINDOW_DAYS, "week")
                if report_type == "wau"
                else (MAU_WINDOW_DAYS, "month")
            )
            from_date, to_date = trailing_window(days, today=current_date())
            return client.event_counts(
                [settings.tracked_event], from_date, to_date, type="unique", unit=unit
            )

    @app.route("/api/analytics", methods=["GET"])
    def analytics() -> ResponseReturnValue:
        report_type = request.args.get("type")
        if report_type not in REPORT_TYPES:
            return jsonify({"error": "Invalid type. Use: dau, wau, mau, or events"}), 400

        try:
            data = fetch_report(report_type, request.args)
        except BadRequest as e:
            return jsonify({"error": str(e)}), 400
        except LingoMetricsError as e:
            logger.error("Mixpanel API error: %s", e.message)
            return jsonify({"error": "Failed to fetch Mixpanel data"}), 500
        return jsonify(data)

    @app.route("/api/refresh-queries", methods=["GET", "POST"])
    def refresh_queries() -> ResponseReturnValue:
        if not is_authorized(request.headers, settings):
            return jsonify({"error": "Unauthorized"}), 401

        service = RefreshService(settings, _transport=dune_transport)
        try:
            summary = service.refresh_all()
        finally:
            service.close()
        return jsonify(summary.to_dict())

    @app.route("/api/health", methods=["GET"])
    def health() -> ResponseReturnValue:
        return jsonify({"status": "healthy"})

    return app
