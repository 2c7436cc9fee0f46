# blueprints/history/services.py
"""Академическая история студента: что сдано по cursada и по final.

Все проверки делаются пакетно по набору материй, чтобы вызывающая сторона
не делала по запросу на каждую correlativa.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from flask import current_app
from sqlalchemy import select

from extensions import db
from models import (
    CourseEnrollment, CourseOffering, EnrollmentStatus, ExamBoard, ExamBoardEnrollment,
    PlanSubject, Student,
)
from blueprints.core.results import ErrorKind, Result, service_call

log = logging.getLogger(__name__)


class CompletionStatus(str, Enum):
    NONE = "none"
    COURSE_APPROVED = "course_approved"
    FINAL_APPROVED = "final_approved"


@dataclass(frozen=True)
class SubjectHistory:
    subject_id: int
    course_approved: bool
    final_approved: bool

    @property
    def status(self) -> CompletionStatus:
        if self.final_approved:
            return CompletionStatus.FINAL_APPROVED
        if self.course_approved:
            return CompletionStatus.COURSE_APPROVED
        return CompletionStatus.NONE


def _passing_grade() -> float:
    return float(current_app.config.get("FINAL_PASSING_GRADE", 4))


def _course_approved_ids(student_id: int, subject_ids: set[int]) -> set[int]:
    stmt = (
        select(PlanSubject.subject_id)
        .join(CourseOffering, CourseOffering.plan_subject_id == PlanSubject.id)
        .join(CourseEnrollment, CourseEnrollment.offering_id == CourseOffering.id)
        .where(
            CourseEnrollment.student_id == student_id,
            CourseEnrollment.status == EnrollmentStatus.REGULAR,
            PlanSubject.subject_id.in_(sorted(subject_ids)),
        )
        .distinct()
    )
    return set(db.session.scalars(stmt))


def _final_approved_ids(student_id: int, subject_ids: set[int]) -> set[int]:
    stmt = (
        select(ExamBoard.subject_id)
        .join(ExamBoardEnrollment, ExamBoardEnrollment.board_id == ExamBoard.id)
        .where(
            ExamBoardEnrollment.student_id == student_id,
            ExamBoardEnrollment.grade.is_not(None),
            ExamBoardEnrollment.grade >= _passing_grade(),
            ExamBoard.subject_id.in_(sorted(subject_ids)),
        )
        .distinct()
    )
    return set(db.session.scalars(stmt))


def history_for(student_id: int, subject_ids: Iterable[int]) -> dict[int, SubjectHistory]:
    ids = set(subject_ids)
    if not ids:
        return {}
    course = _course_approved_ids(student_id, ids)
    final = _final_approved_ids(student_id, ids)
    return {
        sid: SubjectHistory(subject_id=sid, course_approved=sid in course, final_approved=sid in final)
        for sid in ids
    }


def completion_status(student_id: int, subject_id: int) -> CompletionStatus:
    return history_for(student_id, [subject_id])[subject_id].status


@service_call
def academic_history(student_id: int) -> Result:
    student = db.session.get(Student, student_id)
    if student is None:
        return Result.fail(ErrorKind.NOT_FOUND, "student not found", student_id=student_id)
    if student.career is None:
        return Result.fail(ErrorKind.NOT_FOUND, "student has no career", student_id=student_id)

    plan_subjects = PlanSubject.query.filter_by(plan_id=student.career.plan_id) \
        .order_by(PlanSubject.year_in_plan, PlanSubject.term_in_plan, PlanSubject.id).all()
    hist = history_for(student_id, [ps.subject_id for ps in plan_subjects])

    rows = []
    for ps in plan_subjects:
        h = hist[ps.subject_id]
        rows.append({
            "subject_id": ps.subject_id,
            "code": ps.subject.code,
            "name": ps.subject.name,
            "year": ps.year_in_plan,
            "term": ps.term_in_plan,
            "status": h.status.value,
        })
    return Result.ok({"student_id": student_id, "plan_id": student.career.plan_id, "subjects": rows})
