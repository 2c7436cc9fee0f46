# blueprints/enrollment/services.py
from __future__ import annotations
import logging
from datetime import datetime, timedelta
from typing import Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from extensions import db
from models import (
    BoardEnrollmentStatus, CourseEnrollment, CourseOffering, EnrollmentStatus, ExamBoard,
    ExamBoardEnrollment, ExamBoardStatus, GradeRecord, GradeStatus, utcnow,
)
from blueprints.core.audit import audit
from blueprints.core.results import ErrorKind, Result, service_call
from blueprints.eligibility.services import can_enroll_course, can_enroll_final

log = logging.getLogger(__name__)


@service_call
def enroll_course(student_id: int, offering_id: int) -> Result:
    """Запись на cursada: correlativas → вставка записи и пустой ведомости."""
    offering = db.session.get(CourseOffering, offering_id)
    if offering is None:
        return Result.fail(ErrorKind.NOT_FOUND, "offering not found", offering_id=offering_id)
    if offering.published:
        return Result.fail(ErrorKind.IMMUTABLE_STATE, "grades of this offering are already published",
                           offering_id=offering_id)

    check = can_enroll_course(student_id, offering.subject_id)
    if not check:
        return check
    verdict = check.data
    if not verdict.eligible:
        return Result.fail(ErrorKind.INELIGIBLE, "prerequisites not met",
                           verdict=verdict, missing=[r.subject.id for r in verdict.missing])

    enr = CourseEnrollment(student_id=student_id, offering_id=offering_id, status=EnrollmentStatus.PENDING)
    enr.grade = GradeRecord(status=GradeStatus.UNGRADED)
    db.session.add(enr)
    try:
        db.session.flush()
        audit("ENROLL_COURSE", "course_enrollment", enr.id,
              {"student_id": student_id, "offering_id": offering_id})
        db.session.commit()
    except IntegrityError:
        # UNIQUE(student_id, offering_id): повторная запись
        db.session.rollback()
        return Result.fail(ErrorKind.CONFLICT, "already enrolled in this offering",
                           student_id=student_id, offering_id=offering_id)

    log.info("course enrollment created", extra={"event": "enroll_course", "entity_id": enr.id})
    return Result.ok({"enrollment_id": enr.id, "offering_id": offering_id,
                      "student_id": student_id, "status": enr.status.value})


@service_call
def enroll_final(student_id: int, board_id: int, now: Optional[datetime] = None) -> Result:
    board = db.session.get(ExamBoard, board_id)
    if board is None:
        return Result.fail(ErrorKind.NOT_FOUND, "exam board not found", board_id=board_id)
    now = now or utcnow()
    if board.status != ExamBoardStatus.SCHEDULED or board.exam_at <= now:
        return Result.fail(ErrorKind.CONFLICT, "exam board is not open for registration",
                           board_id=board_id, status=board.status.value)

    check = can_enroll_final(student_id, board.subject_id, board_id)
    if not check:
        return check
    verdict = check.data
    if not verdict.eligible:
        return Result.fail(ErrorKind.INELIGIBLE, "prerequisites not met",
                           verdict=verdict, missing=[r.subject.id for r in verdict.missing])

    # отменённая ранее запись оживает, чтобы не упереться в UNIQUE(board_id, student_id)
    reg = ExamBoardEnrollment.query.filter_by(board_id=board_id, student_id=student_id).first()
    if reg is not None:
        reg.status = BoardEnrollmentStatus.REGISTERED
        reg.grade = None
        reg.registered_at = now
    else:
        reg = ExamBoardEnrollment(board_id=board_id, student_id=student_id,
                                  status=BoardEnrollmentStatus.REGISTERED, registered_at=now)
        db.session.add(reg)
    try:
        db.session.flush()
        audit("ENROLL_FINAL", "exam_board_enrollment", reg.id,
              {"student_id": student_id, "board_id": board_id})
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return Result.fail(ErrorKind.CONFLICT, "already registered for this exam board",
                           student_id=student_id, board_id=board_id)

    log.info("final registration created", extra={"event": "enroll_final", "entity_id": reg.id})
    return Result.ok({"board_enrollment_id": reg.id, "board_id": board_id,
                      "student_id": student_id, "status": reg.status.value})


@service_call
def cancel_final_enrollment(student_id: int, board_id: int, now: Optional[datetime] = None) -> Result:
    reg = ExamBoardEnrollment.query.filter_by(board_id=board_id, student_id=student_id).first()
    if reg is None or reg.status == BoardEnrollmentStatus.CANCELLED:
        return Result.fail(ErrorKind.NOT_FOUND, "registration not found",
                           student_id=student_id, board_id=board_id)
    if reg.status != BoardEnrollmentStatus.REGISTERED:
        return Result.fail(ErrorKind.CONFLICT, "registration already graded",
                           status=reg.status.value)

    now = now or utcnow()
    cutoff_h = int(current_app.config.get("EXAM_CANCEL_CUTOFF_HOURS", 24))
    if reg.board.exam_at - now < timedelta(hours=cutoff_h):
        return Result.fail(ErrorKind.CONFLICT, f"cannot cancel less than {cutoff_h}h before the exam",
                           exam_at=reg.board.exam_at.isoformat())

    reg.status = BoardEnrollmentStatus.CANCELLED
    audit("CANCEL_FINAL", "exam_board_enrollment", reg.id,
          {"student_id": student_id, "board_id": board_id})
    db.session.commit()
    log.info("final registration cancelled", extra={"event": "cancel_final", "entity_id": reg.id})
    return Result.ok({"board_enrollment_id": reg.id, "status": reg.status.value})
