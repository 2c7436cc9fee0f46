# blueprints/capacity/services.py
"""Ограничения ёмкости и защиты от удаления с зависимостями.

Проверки ``can_*`` только читают; операции без префикса сначала прогоняют
проверку, потом пишут. Лимит преподавателей держит БД (UNIQUE(subject_id, seat)),
проверка здесь лишь даёт внятный отказ до вставки.
"""
from __future__ import annotations
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from extensions import db
from models import (
    Career, CourseEnrollment, CourseOffering, ExamBoard, ExamBoardStatus, PlanSubject,
    PrerequisiteEdge, Student, Subject, Teacher, TeacherAssignment, TEACHERS_PER_SUBJECT, utcnow,
)
from blueprints.core.audit import audit
from blueprints.core.results import ErrorKind, Result, service_call

log = logging.getLogger(__name__)


# ---------- агрегаты ----------
def active_student_count(career_id: int) -> int:
    return db.session.scalar(
        select(func.count(Student.id)).where(Student.career_id == career_id, Student.is_active.is_(True))
    ) or 0


def enrollment_count_for_plan_subject(plan_subject_id: int) -> int:
    return db.session.scalar(
        select(func.count(CourseEnrollment.id))
        .join(CourseOffering, CourseOffering.id == CourseEnrollment.offering_id)
        .where(CourseOffering.plan_subject_id == plan_subject_id)
    ) or 0


def _assigned_count(subject_id: int) -> int:
    return db.session.scalar(
        select(func.count(TeacherAssignment.id)).where(TeacherAssignment.subject_id == subject_id)
    ) or 0


def _assignment(teacher_id: int, subject_id: int) -> Optional[TeacherAssignment]:
    return TeacherAssignment.query.filter_by(teacher_id=teacher_id, subject_id=subject_id).first()


def _free_seat(subject_id: int) -> Optional[int]:
    taken = set(db.session.scalars(
        select(TeacherAssignment.seat).where(TeacherAssignment.subject_id == subject_id)
    ))
    return next((s for s in range(1, TEACHERS_PER_SUBJECT + 1) if s not in taken), None)


def _after_race(teacher_id: int, subject_id: int) -> Result:
    again = can_assign_teacher(teacher_id, subject_id)
    if not again:
        return again
    return Result.fail(ErrorKind.CONFLICT, "concurrent assignment, retry",
                       teacher_id=teacher_id, subject_id=subject_id)


# ---------- преподаватели ----------
@service_call
def can_assign_teacher(teacher_id: int, subject_id: int) -> Result:
    if db.session.get(Teacher, teacher_id) is None:
        return Result.fail(ErrorKind.NOT_FOUND, "teacher not found", teacher_id=teacher_id)
    if db.session.get(Subject, subject_id) is None:
        return Result.fail(ErrorKind.NOT_FOUND, "subject not found", subject_id=subject_id)
    # «уже назначен» важнее лимита
    if _assignment(teacher_id, subject_id):
        return Result.fail(ErrorKind.CONFLICT, "teacher already assigned to this subject",
                           teacher_id=teacher_id, subject_id=subject_id)
    count = _assigned_count(subject_id)
    if count >= TEACHERS_PER_SUBJECT:
        return Result.fail(ErrorKind.CAPACITY_EXCEEDED, "subject already has the maximum number of teachers",
                           subject_id=subject_id, assigned=count, limit=TEACHERS_PER_SUBJECT)
    return Result.ok({"assigned": count, "limit": TEACHERS_PER_SUBJECT})


@service_call
def assign_teacher(teacher_id: int, subject_id: int) -> Result:
    check = can_assign_teacher(teacher_id, subject_id)
    if not check:
        return check

    seat = _free_seat(subject_id)
    if seat is None:
        return _after_race(teacher_id, subject_id)

    teacher = db.session.get(Teacher, teacher_id)
    ta = TeacherAssignment(teacher_id=teacher_id, subject_id=subject_id, seat=seat)
    db.session.add(ta)
    teacher.is_active = True
    try:
        db.session.flush()
        audit("ASSIGN_TEACHER", "teacher_assignment", ta.id,
              {"teacher_id": teacher_id, "subject_id": subject_id, "seat": seat})
        db.session.commit()
    except IntegrityError:
        # кто-то занял место параллельно: отвечаем по фактическому состоянию
        db.session.rollback()
        log.warning("assignment lost a race", extra={"event": "assign_teacher", "entity_id": subject_id})
        return _after_race(teacher_id, subject_id)

    log.info("teacher assigned", extra={"event": "assign_teacher", "entity_id": ta.id})
    return Result.ok({"assignment_id": ta.id, "teacher_id": teacher_id,
                      "subject_id": subject_id, "seat": seat})


@service_call
def can_unassign_teacher(teacher_id: int, subject_id: int, now: Optional[datetime] = None) -> Result:
    ta = _assignment(teacher_id, subject_id)
    if ta is None:
        return Result.fail(ErrorKind.NOT_FOUND, "assignment not found",
                           teacher_id=teacher_id, subject_id=subject_id)
    now = now or utcnow()
    board = ExamBoard.query.filter(
        ExamBoard.teacher_id == teacher_id,
        ExamBoard.subject_id == subject_id,
        ExamBoard.status != ExamBoardStatus.CANCELLED,
        ExamBoard.exam_at > now,
    ).order_by(ExamBoard.exam_at).first()
    if board:
        return Result.fail(ErrorKind.HAS_DEPENDENTS, "has-active-exam-board",
                           board_id=board.id, exam_at=board.exam_at.isoformat())

    enrolled = db.session.scalar(
        select(func.count(CourseEnrollment.id))
        .join(CourseOffering, CourseOffering.id == CourseEnrollment.offering_id)
        .where(CourseOffering.assignment_id == ta.id)
    ) or 0
    if enrolled:
        return Result.fail(ErrorKind.HAS_DEPENDENTS, "has-enrolled-offerings",
                           assignment_id=ta.id, enrollments=enrolled)
    return Result.ok({"assignment_id": ta.id})


@service_call
def unassign_teacher(teacher_id: int, subject_id: int, now: Optional[datetime] = None) -> Result:
    check = can_unassign_teacher(teacher_id, subject_id, now)
    if not check:
        return check

    ta = db.session.get(TeacherAssignment, check.data["assignment_id"])
    # пустые cursadas уходят вместе с назначением
    CourseOffering.query.filter_by(assignment_id=ta.id).delete(synchronize_session=False)
    db.session.delete(ta)
    db.session.flush()

    deactivated = False
    remaining = db.session.scalar(
        select(func.count(TeacherAssignment.id)).where(TeacherAssignment.teacher_id == teacher_id)
    ) or 0
    if remaining == 0:
        # последняя материя: роль преподавателя снимается
        db.session.get(Teacher, teacher_id).is_active = False
        deactivated = True

    audit("UNASSIGN_TEACHER", "teacher_assignment", ta.id,
          {"teacher_id": teacher_id, "subject_id": subject_id, "teacher_deactivated": deactivated})
    db.session.commit()
    log.info("teacher unassigned", extra={"event": "unassign_teacher", "entity_id": ta.id})
    return Result.ok({"teacher_id": teacher_id, "subject_id": subject_id,
                      "teacher_deactivated": deactivated})


# ---------- план и карьера ----------
@service_call
def can_remove_plan_subject(plan_subject_id: int) -> Result:
    ps = db.session.get(PlanSubject, plan_subject_id)
    if ps is None:
        return Result.fail(ErrorKind.NOT_FOUND, "plan subject not found", plan_subject_id=plan_subject_id)
    count = enrollment_count_for_plan_subject(plan_subject_id)
    if count > 0:
        return Result.fail(ErrorKind.HAS_DEPENDENTS, "has-enrollments",
                           plan_subject_id=plan_subject_id, enrollments=count)
    return Result.ok({"plan_subject_id": plan_subject_id})


@service_call
def remove_plan_subject(plan_subject_id: int) -> Result:
    check = can_remove_plan_subject(plan_subject_id)
    if not check:
        return check

    ps = db.session.get(PlanSubject, plan_subject_id)
    plan_id, subject_id = ps.plan_id, ps.subject_id
    edges = PrerequisiteEdge.query.filter(
        PrerequisiteEdge.plan_id == plan_id,
        (PrerequisiteEdge.subject_id == subject_id) | (PrerequisiteEdge.required_subject_id == subject_id),
    ).delete(synchronize_session=False)
    CourseOffering.query.filter_by(plan_subject_id=plan_subject_id).delete(synchronize_session=False)
    db.session.delete(ps)
    audit("DELETE", "plan_subject", plan_subject_id,
          {"plan_id": plan_id, "subject_id": subject_id, "edges_removed": edges})
    db.session.commit()
    log.info("plan subject removed", extra={"event": "remove_plan_subject", "entity_id": plan_subject_id})
    return Result.ok({"plan_subject_id": plan_subject_id, "edges_removed": edges})


@service_call
def can_remove_career(career_id: int) -> Result:
    if db.session.get(Career, career_id) is None:
        return Result.fail(ErrorKind.NOT_FOUND, "career not found", career_id=career_id)
    count = active_student_count(career_id)
    if count > 0:
        return Result.fail(ErrorKind.HAS_DEPENDENTS, "has-active-students",
                           career_id=career_id, active_students=count)
    return Result.ok({"career_id": career_id})


@service_call
def remove_career(career_id: int) -> Result:
    check = can_remove_career(career_id)
    if not check:
        return check
    career = db.session.get(Career, career_id)
    # у неактивных студентов карьера отвязывается, история остаётся
    Student.query.filter_by(career_id=career_id).update({"career_id": None}, synchronize_session=False)
    db.session.delete(career)
    audit("DELETE", "career", career_id, {"name": career.name})
    db.session.commit()
    log.info("career removed", extra={"event": "remove_career", "entity_id": career_id})
    return Result.ok({"career_id": career_id})
