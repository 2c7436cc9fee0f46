# blueprints/grades/routes.py
from __future__ import annotations
from flask import Blueprint, request
from pydantic import ValidationError

from blueprints.auth.routes import current_teacher_id, teacher_required
from blueprints.core.results import render, validation_error
from .schemas import GradeBatchIn, GradeIn
from . import services

api_bp = Blueprint("grades_api", __name__)


@api_bp.get("/offerings/<int:offering_id>/grades/summary")
@teacher_required
def summary(offering_id: int):
    return render(services.offering_summary(offering_id))


@api_bp.put("/enrollments/<int:enrollment_id>/grade")
@teacher_required
def set_grade(enrollment_id: int):
    try:
        p = GradeIn.model_validate(request.get_json(silent=True) or {})
    except ValidationError as ve:
        return validation_error(ve)
    return render(services.set_grade(enrollment_id, p.status, current_teacher_id()))


@api_bp.post("/offerings/<int:offering_id>/grades")
@teacher_required
def save_grades(offering_id: int):
    try:
        p = GradeBatchIn.model_validate(request.get_json(silent=True) or {})
    except ValidationError as ve:
        return validation_error(ve)
    return render(services.save_grades(offering_id, p.as_mapping(), current_teacher_id()))


@api_bp.post("/offerings/<int:offering_id>/publish")
@teacher_required
def publish(offering_id: int):
    return render(services.publish(offering_id, current_teacher_id()))
