from __future__ import annotations
import json, logging
from datetime import datetime, UTC

from flask import g, jsonify, request
from werkzeug.wrappers.response import Response

from . import bp                 # используем bp из __init__.py

class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in ("event", "path", "method", "status", "duration_ms", "error_kind", "entity_id"):
            if hasattr(record, key):
                payload[key] = getattr(record, key)
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)

def _has_json_handler(logger: logging.Logger) -> bool:
    return any(isinstance(getattr(h, "formatter", None), JSONFormatter) for h in logger.handlers)

def _setup_structured_logging(app):
    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    if not _has_json_handler(app.logger):
        app.logger.addHandler(handler)
        app.logger.setLevel(logging.INFO)
    # сервисные логгеры (blueprints.*) пишут в тот же JSON-формат; хендлер один на процесс
    svc_logger = logging.getLogger("blueprints")
    if not _has_json_handler(svc_logger):
        svc_logger.addHandler(handler)
        svc_logger.setLevel(logging.INFO)

@bp.before_app_request
def _start_timer():
    g._req_start = datetime.now(UTC)

@bp.after_app_request
def _log_request(response: Response):
    try:
        duration_ms = int((datetime.now(UTC) - g._req_start).total_seconds() * 1000)
    except AttributeError:
        duration_ms = None
    extra = {
        "event": "http_request",
        "path": request.path,
        "method": request.method,
        "status": response.status_code,
        "duration_ms": duration_ms,
    }
    # логгер уже настроен в _on_register
    logging.getLogger("blueprints.core").info("request handled", extra=extra)
    return response

@bp.record_once
def _on_register(state):
    _setup_structured_logging(state.app)

@bp.get("/health")
def health():
    return jsonify({
        "status": "ok",
        "ts": datetime.now(UTC).isoformat(timespec="seconds").replace("+00:00", "Z"),
    })
