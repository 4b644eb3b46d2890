"""Flask application factory and HTTP routes."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from flask import Flask, Response, jsonify, request
from werkzeug.middleware.proxy_fix import ProxyFix

from ..config import AppConfig
from ..exporter import CSVExporter
from ..measurements.errors import (
    MeasurementError,
    ParseError,
    ProcessError,
    SpawnError,
    SpeedtestTimeoutError,
    StorageError,
)
from ..measurements.manager import MeasurementManager
from ..measurements.models import utcnow
from ..scheduler import SchedulerService

LOGGER = logging.getLogger(__name__)

# "could not run" maps to gateway-style codes, "ran but not saved" to 500
ERROR_STATUS = {
    SpawnError: 503,
    ProcessError: 502,
    ParseError: 502,
    SpeedtestTimeoutError: 504,
    StorageError: 500,
}


def create_web_app(
    config: AppConfig,
    measurement_manager: MeasurementManager,
    exporter: CSVExporter,
    scheduler: SchedulerService,
) -> Flask:
    app = Flask(__name__)
    app.config["SECRET_KEY"] = config.web.secret_key

    if config.web.reverse_proxy_headers:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)  # type: ignore

    @app.errorhandler(MeasurementError)
    def handle_measurement_error(exc: MeasurementError):
        LOGGER.error("Request %s %s failed (%s): %s", request.method, request.path, exc.kind, exc)
        return jsonify(_error_payload(exc)), _error_status(exc)

    @app.post("/api/speedtest")
    def api_run_speedtest():
        record = measurement_manager.run_measurement()
        return jsonify(measurement_manager.to_dict(record)), 201

    @app.get("/api/speedtest/history")
    def api_speedtest_history():
        limit = request.args.get("limit", type=int)
        if limit is not None and limit < 1:
            return jsonify({"error": "invalid_request", "message": "limit must be a positive integer"}), 400
        records = measurement_manager.get_history(limit=limit)
        return jsonify([measurement_manager.to_dict(record) for record in records])

    @app.get("/api/summary/latest")
    def api_latest_summary():
        rows = measurement_manager.latest_two()
        if not rows:
            return jsonify({"latest": None, "previous": None, "delta": None})
        latest = measurement_manager.to_dict(rows[0])
        previous = measurement_manager.to_dict(rows[1]) if len(rows) > 1 else None
        delta = _calculate_delta(latest, previous) if previous else None
        return jsonify({"latest": latest, "previous": previous, "delta": delta})

    @app.get("/api/export/csv")
    def api_export_csv():
        start = _parse_datetime(request.args.get("start"))
        end = _parse_datetime(request.args.get("end"))
        buffer = exporter.build_csv(start=start, end=end)
        filename = f"speedtests-{utcnow().strftime('%Y%m%dT%H%M%S')}.csv"
        return Response(
            buffer.getvalue(),
            mimetype="text/csv",
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )

    @app.get("/api/status")
    def api_status():
        return jsonify(
            {
                "scheduler_running": scheduler.started,
                "scheduler_interval_minutes": config.scheduler.interval_minutes,
                "timeout_seconds": config.speedtest.timeout_seconds,
            }
        )

    return app


def _error_status(exc: MeasurementError) -> int:
    for error_type, status in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return status
    return 500


def _error_payload(exc: MeasurementError) -> dict:
    payload = {"error": exc.kind, "message": str(exc)}
    if isinstance(exc, ProcessError):
        payload["exit_code"] = exc.exit_code
        payload["stderr"] = exc.stderr
    elif isinstance(exc, ParseError):
        payload["output"] = exc.output
    elif isinstance(exc, SpeedtestTimeoutError):
        payload["timeout"] = exc.timeout
    return payload


def _parse_datetime(raw: Optional[str]) -> Optional[datetime]:
    if not raw:
        return None
    candidate = raw.replace("Z", "+00:00") if raw.endswith("Z") else raw
    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError:
        LOGGER.warning("Invalid datetime filter: %s", raw)
        return None
    if parsed.tzinfo is not None:
        # stored timestamps are naive UTC
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _calculate_delta(latest: dict, previous: dict) -> dict:
    fields = ["download_speed", "upload_speed", "ping"]
    return {field: latest[field] - previous[field] for field in fields}
