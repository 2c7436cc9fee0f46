# blueprints/core/audit.py
from __future__ import annotations
from flask import has_request_context
from flask_login import current_user

from extensions import db
from models import AuditLog


def audit(action: str, entity: str, entity_id: int | None, payload: dict | None = None) -> None:
    """Добавляет запись в audit_logs; коммитит вызывающий код вместе с изменением."""
    uid = getattr(current_user, "id", None) if has_request_context() else None
    db.session.add(AuditLog(
        user_id=uid, action=action, entity=entity, entity_id=entity_id, payload=payload or {},
    ))
