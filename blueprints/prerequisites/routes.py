# blueprints/prerequisites/routes.py
from __future__ import annotations
from flask import Blueprint, request
from flask_login import login_required
from pydantic import ValidationError

from blueprints.auth.routes import admin_required
from blueprints.core.results import render, validation_error
from .schemas import PrerequisiteIn
from . import services

api_bp = Blueprint("prerequisites_api", __name__)


@api_bp.get("/plans/<int:plan_id>/subjects/<int:subject_id>/prerequisites")
@login_required
def list_prerequisites(plan_id: int, subject_id: int):
    return render(services.list_prerequisites(plan_id, subject_id))


@api_bp.post("/prerequisites")
@admin_required
def add_prerequisite():
    try:
        payload = PrerequisiteIn.model_validate(request.get_json(silent=True) or {})
    except ValidationError as ve:
        return validation_error(ve)
    res = services.add_prerequisite(payload.plan_id, payload.subject_id,
                                    payload.required_subject_id, payload.kind)
    return render(res, created=True)


@api_bp.delete("/prerequisites/<int:edge_id>")
@admin_required
def remove_prerequisite(edge_id: int):
    return render(services.remove_prerequisite(edge_id))
