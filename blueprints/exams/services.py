# blueprints/exams/services.py
from __future__ import annotations
import logging
from datetime import datetime
from typing import Optional

from flask import current_app

from extensions import db
from models import (
    BoardEnrollmentStatus, ExamBoard, ExamBoardEnrollment, ExamBoardStatus, Subject,
    TeacherAssignment,
)
from blueprints.core.audit import audit
from blueprints.core.results import ErrorKind, Result, service_call

log = logging.getLogger(__name__)


def _board_dict(b: ExamBoard) -> dict:
    return {
        "id": b.id,
        "subject_id": b.subject_id,
        "teacher_id": b.teacher_id,
        "exam_at": b.exam_at.isoformat(),
        "location": b.location,
        "status": b.status.value,
    }


@service_call
def create_board(teacher_id: int, subject_id: int, exam_at: datetime, location: Optional[str] = None) -> Result:
    """Mesa de final: создать может только преподаватель, назначенный на материю."""
    if db.session.get(Subject, subject_id) is None:
        return Result.fail(ErrorKind.NOT_FOUND, "subject not found", subject_id=subject_id)
    assigned = TeacherAssignment.query.filter_by(teacher_id=teacher_id, subject_id=subject_id).first()
    if assigned is None:
        return Result.fail(ErrorKind.UNAUTHORIZED, "teacher is not assigned to this subject",
                           teacher_id=teacher_id, subject_id=subject_id)

    board = ExamBoard(subject_id=subject_id, teacher_id=teacher_id, exam_at=exam_at,
                      location=location, status=ExamBoardStatus.SCHEDULED)
    db.session.add(board)
    db.session.flush()
    audit("CREATE", "exam_board", board.id, {"subject_id": subject_id, "exam_at": exam_at.isoformat()})
    db.session.commit()
    log.info("exam board created", extra={"event": "create_board", "entity_id": board.id})
    return Result.ok(_board_dict(board))


@service_call
def record_exam_grade(board_enrollment_id: int, grade: Optional[float],
                      teacher_id: Optional[int] = None) -> Result:
    reg = db.session.get(ExamBoardEnrollment, board_enrollment_id)
    if reg is None:
        return Result.fail(ErrorKind.NOT_FOUND, "registration not found",
                           board_enrollment_id=board_enrollment_id)
    board = reg.board
    if teacher_id is not None and board.teacher_id != teacher_id:
        return Result.fail(ErrorKind.UNAUTHORIZED, "teacher is not the examiner of this board",
                           board_id=board.id)
    if board.status == ExamBoardStatus.CANCELLED:
        return Result.fail(ErrorKind.CONFLICT, "exam board is cancelled", board_id=board.id)
    if reg.status == BoardEnrollmentStatus.CANCELLED:
        return Result.fail(ErrorKind.CONFLICT, "registration is cancelled",
                           board_enrollment_id=board_enrollment_id)

    max_grade = float(current_app.config.get("EXAM_GRADE_MAX", 10))
    if grade is not None and not (0 <= grade <= max_grade):
        return Result.fail(ErrorKind.VALIDATION, f"grade must be between 0 and {max_grade:g}", grade=grade)

    passing = float(current_app.config.get("FINAL_PASSING_GRADE", 4))
    if grade is None:
        # присутствовал, оценки ещё нет
        reg.status = BoardEnrollmentStatus.PRESENT
    elif grade >= passing:
        reg.status = BoardEnrollmentStatus.APPROVED
    else:
        reg.status = BoardEnrollmentStatus.FAILED
    reg.grade = grade

    audit("GRADE", "exam_board_enrollment", reg.id, {"grade": grade, "status": reg.status.value})
    db.session.commit()
    log.info("exam grade recorded", extra={"event": "record_exam_grade", "entity_id": reg.id})
    return Result.ok({"board_enrollment_id": reg.id, "grade": reg.grade, "status": reg.status.value})
