# blueprints/eligibility/services.py
"""Проверка correlativas перед записью на cursada или на final.

Резолвер ничего не пишет: на вход: студент и материя, на выход: вердикт
с разбором по каждой correlativa. Решение о записи принимает вызывающий код.
Смотрим только на прямые correlativas; цикл в графе делает материи на нём
недостижимыми, но не зацикливает проверку.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select

from extensions import db
from models import (
    BoardEnrollmentStatus, ExamBoardEnrollment, PlanSubject, PrerequisiteKind, Student,
)
from blueprints.core.results import ErrorKind, Result, service_call
from blueprints.history.services import history_for
from blueprints.prerequisites.services import SubjectRef, prerequisites_for

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Requirement:
    subject: SubjectRef
    fulfilled: bool
    course_approved: bool
    final_approved: bool


@dataclass(frozen=True)
class EligibilityVerdict:
    eligible: bool
    requirements: tuple[Requirement, ...]
    plan_id: int

    @property
    def missing(self) -> tuple[Requirement, ...]:
        return tuple(r for r in self.requirements if not r.fulfilled)


def _resolve_plan(student_id: int, subject_id: int) -> Result:
    """plan_id студента, если материя в него входит."""
    student = db.session.get(Student, student_id)
    if student is None:
        return Result.fail(ErrorKind.NOT_FOUND, "student not found", student_id=student_id)
    career = student.career
    if career is None or career.plan_id is None:
        return Result.fail(ErrorKind.NOT_FOUND, "student has no study plan", student_id=student_id)
    in_plan = db.session.execute(
        select(PlanSubject.id).where(PlanSubject.plan_id == career.plan_id,
                                     PlanSubject.subject_id == subject_id)
    ).first()
    if in_plan is None:
        return Result.fail(ErrorKind.NOT_FOUND, "subject is not part of the student's plan",
                           plan_id=career.plan_id, subject_id=subject_id)
    return Result.ok(career.plan_id)


def _verdict(student_id: int, subject_id: int, plan_id: int, kind: PrerequisiteKind) -> EligibilityVerdict:
    required = sorted(prerequisites_for(plan_id, subject_id, kind), key=lambda r: r.code)
    if not required:
        return EligibilityVerdict(eligible=True, requirements=(), plan_id=plan_id)

    hist = history_for(student_id, [r.id for r in required])
    reqs = []
    for ref in required:
        h = hist[ref.id]
        # для final нужна и cursada, и сам final; для cursada хватает regular
        if kind is PrerequisiteKind.FOR_FINAL:
            fulfilled = h.course_approved and h.final_approved
        else:
            fulfilled = h.course_approved or h.final_approved
        reqs.append(Requirement(subject=ref, fulfilled=fulfilled,
                                course_approved=h.course_approved, final_approved=h.final_approved))
    return EligibilityVerdict(eligible=all(r.fulfilled for r in reqs), requirements=tuple(reqs),
                              plan_id=plan_id)


@service_call
def can_enroll_course(student_id: int, subject_id: int) -> Result:
    plan = _resolve_plan(student_id, subject_id)
    if not plan:
        return plan
    verdict = _verdict(student_id, subject_id, plan.data, PrerequisiteKind.FOR_COURSEWORK)
    log.debug("course eligibility", extra={"event": "eligibility_course", "entity_id": subject_id})
    return Result.ok(verdict)


@service_call
def can_enroll_final(student_id: int, subject_id: int, board_id: Optional[int] = None) -> Result:
    plan = _resolve_plan(student_id, subject_id)
    if not plan:
        return plan

    if board_id is not None:
        existing = ExamBoardEnrollment.query.filter(
            ExamBoardEnrollment.board_id == board_id,
            ExamBoardEnrollment.student_id == student_id,
            ExamBoardEnrollment.status != BoardEnrollmentStatus.CANCELLED,
        ).first()
        if existing:
            return Result.fail(ErrorKind.CONFLICT, "already registered for this exam board",
                               board_id=board_id, board_enrollment_id=existing.id)

    verdict = _verdict(student_id, subject_id, plan.data, PrerequisiteKind.FOR_FINAL)
    log.debug("final eligibility", extra={"event": "eligibility_final", "entity_id": subject_id})
    return Result.ok(verdict)
