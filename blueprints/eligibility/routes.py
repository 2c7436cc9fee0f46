# blueprints/eligibility/routes.py
from __future__ import annotations
from flask import Blueprint, request, abort
from flask_login import login_required

from blueprints.auth.routes import current_student_id, is_admin
from blueprints.core.results import render
from . import services

api_bp = Blueprint("eligibility_api", __name__)


def _student_id() -> int:
    # админ может проверить любого студента через ?student_id=
    if is_admin():
        sid = request.args.get("student_id", type=int)
        if sid is None:
            abort(400, description="student_id is required")
        return sid
    return current_student_id()


@api_bp.get("/eligibility/course/<int:subject_id>")
@login_required
def course_eligibility(subject_id: int):
    return render(services.can_enroll_course(_student_id(), subject_id))


@api_bp.get("/eligibility/final/<int:subject_id>")
@login_required
def final_eligibility(subject_id: int):
    board_id = request.args.get("board_id", type=int)
    return render(services.can_enroll_final(_student_id(), subject_id, board_id))
