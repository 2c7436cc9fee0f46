# blueprints/exams/routes.py
from __future__ import annotations
from flask import Blueprint, request, abort
from pydantic import ValidationError

from blueprints.auth.routes import current_teacher_id, teacher_required
from blueprints.core.results import render, validation_error
from .schemas import ExamBoardIn, ExamGradeIn
from . import services

api_bp = Blueprint("exams_api", __name__)


@api_bp.post("/exam-boards")
@teacher_required
def create_board():
    try:
        p = ExamBoardIn.model_validate(request.get_json(silent=True) or {})
    except ValidationError as ve:
        return validation_error(ve)
    # преподаватель создаёт mesa только на себя; админ указывает teacher_id явно
    tid = current_teacher_id() or p.teacher_id
    if tid is None:
        abort(400, description="teacher_id is required")
    return render(services.create_board(tid, p.subject_id, p.exam_at, p.location), created=True)


@api_bp.put("/exam-enrollments/<int:board_enrollment_id>/grade")
@teacher_required
def record_grade(board_enrollment_id: int):
    try:
        p = ExamGradeIn.model_validate(request.get_json(silent=True) or {})
    except ValidationError as ve:
        return validation_error(ve)
    return render(services.record_exam_grade(board_enrollment_id, p.grade, current_teacher_id()))
