# blueprints/enrollment/routes.py
from __future__ import annotations
from flask import Blueprint, request
from flask_login import login_required
from pydantic import ValidationError

from blueprints.auth.routes import current_student_id, is_admin
from blueprints.core.results import render, validation_error
from .schemas import CourseEnrollmentIn, FinalEnrollmentIn
from . import services

api_bp = Blueprint("enrollment_api", __name__)


def _who(payload_student_id: int | None) -> int:
    if is_admin() and payload_student_id:
        return payload_student_id
    return current_student_id()


@api_bp.post("/enrollments/course")
@login_required
def enroll_course():
    try:
        p = CourseEnrollmentIn.model_validate(request.get_json(silent=True) or {})
    except ValidationError as ve:
        return validation_error(ve)
    return render(services.enroll_course(_who(p.student_id), p.offering_id), created=True)


@api_bp.post("/enrollments/final")
@login_required
def enroll_final():
    try:
        p = FinalEnrollmentIn.model_validate(request.get_json(silent=True) or {})
    except ValidationError as ve:
        return validation_error(ve)
    return render(services.enroll_final(_who(p.student_id), p.board_id), created=True)


@api_bp.delete("/enrollments/final/<int:board_id>")
@login_required
def cancel_final(board_id: int):
    sid = request.args.get("student_id", type=int) if is_admin() else None
    return render(services.cancel_final_enrollment(_who(sid), board_id))
