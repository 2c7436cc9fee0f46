# blueprints/capacity/routes.py
from __future__ import annotations
from flask import Blueprint, request
from pydantic import ValidationError

from blueprints.auth.routes import admin_required
from blueprints.core.results import render, validation_error
from .schemas import AssignmentIn
from . import services

api_bp = Blueprint("capacity_api", __name__)


def _assignment_payload():
    return AssignmentIn.model_validate(request.get_json(silent=True) or {})


# ---------- назначения преподавателей ----------
@api_bp.post("/assignments/check")
@admin_required
def check_assignment():
    try:
        p = _assignment_payload()
    except ValidationError as ve:
        return validation_error(ve)
    return render(services.can_assign_teacher(p.teacher_id, p.subject_id))


@api_bp.post("/assignments")
@admin_required
def assign():
    try:
        p = _assignment_payload()
    except ValidationError as ve:
        return validation_error(ve)
    return render(services.assign_teacher(p.teacher_id, p.subject_id), created=True)


@api_bp.delete("/assignments/<int:teacher_id>/<int:subject_id>")
@admin_required
def unassign(teacher_id: int, subject_id: int):
    return render(services.unassign_teacher(teacher_id, subject_id))


# ---------- удаление с проверкой зависимостей ----------
@api_bp.get("/plan-subjects/<int:plan_subject_id>/can-delete")
@admin_required
def plan_subject_can_delete(plan_subject_id: int):
    return render(services.can_remove_plan_subject(plan_subject_id))


@api_bp.delete("/plan-subjects/<int:plan_subject_id>")
@admin_required
def plan_subject_delete(plan_subject_id: int):
    return render(services.remove_plan_subject(plan_subject_id))


@api_bp.get("/careers/<int:career_id>/can-delete")
@admin_required
def career_can_delete(career_id: int):
    return render(services.can_remove_career(career_id))


@api_bp.delete("/careers/<int:career_id>")
@admin_required
def career_delete(career_id: int):
    return render(services.remove_career(career_id))
