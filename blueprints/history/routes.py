# blueprints/history/routes.py
from __future__ import annotations
from flask import Blueprint
from blueprints.auth.routes import admin_required, current_student_id, student_required
from blueprints.core.results import render
from . import services

api_bp = Blueprint("history_api", __name__)


@api_bp.get("/me/history")
@student_required
def my_history():
    return render(services.academic_history(current_student_id()))


@api_bp.get("/students/<int:student_id>/history")
@admin_required
def student_history(student_id: int):
    return render(services.academic_history(student_id))
