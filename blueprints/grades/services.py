# blueprints/grades/services.py
"""Жизненный цикл ведомости cursada: черновик → сохранение → публикация.

Правка преподавателя сначала ложится в ``GradeRecord.draft_status``,
``save_grades`` переносит черновики в ``status`` одной транзакцией.
Публикация необратима: после неё ни одна оценка ведомости не меняется.
"""
from __future__ import annotations
import logging
from collections import Counter
from typing import Callable, Iterable, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import (
    CourseEnrollment, CourseOffering, EnrollmentStatus, GradeRecord, GradeStatus, utcnow,
)
from blueprints.core.audit import audit
from blueprints.core.results import ErrorKind, Result, service_call
from .notifications import notify_published

log = logging.getLogger(__name__)

Notifier = Callable[[CourseOffering, Iterable[int]], object]

# что может выставить преподаватель
SETTABLE = frozenset({GradeStatus.APPROVED, GradeStatus.FAILED, GradeStatus.ABSENT})

# итог cursada после публикации
_PROMOTION = {
    GradeStatus.APPROVED: EnrollmentStatus.REGULAR,
    GradeStatus.FAILED: EnrollmentStatus.FAILED,
    GradeStatus.ABSENT: EnrollmentStatus.FAILED,
}


def _parse_status(value) -> Optional[GradeStatus]:
    try:
        st = GradeStatus(value)
    except ValueError:
        return None
    return st if st in SETTABLE else None


def _gradable(offering: CourseOffering) -> list[CourseEnrollment]:
    return [e for e in offering.enrollments if e.status != EnrollmentStatus.WITHDRAWN]


def _load_offering(offering_id: int, teacher_id: Optional[int]) -> Result:
    offering = db.session.get(CourseOffering, offering_id)
    if offering is None:
        return Result.fail(ErrorKind.NOT_FOUND, "offering not found", offering_id=offering_id)
    if teacher_id is not None and offering.teacher_id != teacher_id:
        return Result.fail(ErrorKind.UNAUTHORIZED, "offering belongs to another teacher",
                           offering_id=offering_id)
    return Result.ok(offering)


def _immutable(offering: CourseOffering) -> Result:
    return Result.fail(ErrorKind.IMMUTABLE_STATE, "grades of this offering are already published",
                       offering_id=offering.id)


@service_call
def set_grade(enrollment_id: int, status, teacher_id: Optional[int] = None) -> Result:
    enr = db.session.get(CourseEnrollment, enrollment_id)
    if enr is None:
        return Result.fail(ErrorKind.NOT_FOUND, "enrollment not found", enrollment_id=enrollment_id)
    loaded = _load_offering(enr.offering_id, teacher_id)
    if not loaded:
        return loaded
    if loaded.data.published:
        return _immutable(loaded.data)
    if enr.status == EnrollmentStatus.WITHDRAWN:
        return Result.fail(ErrorKind.VALIDATION, "withdrawn enrollment cannot be graded",
                           enrollment_id=enrollment_id)

    st = _parse_status(status)
    if st is None:
        return Result.fail(ErrorKind.VALIDATION, "status must be approved, failed or absent",
                           enrollment_id=enrollment_id, status=str(status))

    if enr.grade is None:
        enr.grade = GradeRecord(status=GradeStatus.UNGRADED)
    enr.grade.draft_status = st
    db.session.commit()
    return Result.ok({"enrollment_id": enrollment_id, "draft_status": st.value,
                      "saved_status": enr.grade.status.value})


@service_call
def save_grades(offering_id: int, edits: Mapping[int, object] | None = None,
                teacher_id: Optional[int] = None) -> Result:
    """Сохраняет черновики ведомости вместе с ``edits`` (правки важнее черновиков).

    Всё или ничего: при любой ошибке ничего не записывается, а в
    ``details.failed`` перечислены id записей, которые не удалось сохранить.
    """
    loaded = _load_offering(offering_id, teacher_id)
    if not loaded:
        return loaded
    offering = loaded.data
    if offering.published:
        return _immutable(offering)

    # снятые с cursada не оцениваются: правки по ним считаются ошибкой
    by_id = {e.id: e for e in _gradable(offering)}
    merged: dict[int, object] = {
        e.id: e.grade.draft_status for e in by_id.values()
        if e.grade is not None and e.grade.draft_status is not None
    }
    merged.update(edits or {})

    failed = sorted(eid for eid, st in merged.items() if eid not in by_id or _parse_status(st) is None)
    if failed:
        return Result.fail(ErrorKind.VALIDATION, "some grades could not be saved", failed=failed)

    try:
        for eid, st in merged.items():
            enr = by_id[eid]
            if enr.grade is None:
                enr.grade = GradeRecord(status=GradeStatus.UNGRADED)
            enr.grade.status = _parse_status(st)
            enr.grade.draft_status = None
        # черновик, оставшийся от снятого студента, больше не нужен
        for e in offering.enrollments:
            if e.id not in by_id and e.grade is not None:
                e.grade.draft_status = None
        audit("SAVE_GRADES", "course_offering", offering_id,
              {"enrollments": sorted(merged), "count": len(merged)})
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        log.exception("grade batch save failed", extra={"event": "save_grades",
                                                        "error_kind": ErrorKind.UNEXPECTED.value,
                                                        "entity_id": offering_id})
        return Result.fail(ErrorKind.UNEXPECTED, "grade batch was not saved", failed=sorted(merged))

    log.info("grades saved", extra={"event": "save_grades", "entity_id": offering_id})
    return Result.ok({"offering_id": offering_id, "saved": sorted(merged)})


def _ready(offering: CourseOffering) -> bool:
    # несохранённый черновик блокирует публикацию, даже у снятого студента
    if any(e.grade is not None and e.grade.draft_status is not None for e in offering.enrollments):
        return False
    for e in _gradable(offering):
        if e.grade is None or e.grade.status == GradeStatus.UNGRADED:
            return False
    return True


@service_call
def can_publish(offering_id: int) -> Result:
    offering = db.session.get(CourseOffering, offering_id)
    if offering is None:
        return Result.fail(ErrorKind.NOT_FOUND, "offering not found", offering_id=offering_id)
    return Result.ok(_ready(offering))


@service_call
def publish(offering_id: int, teacher_id: Optional[int] = None,
            notifier: Optional[Notifier] = None) -> Result:
    loaded = _load_offering(offering_id, teacher_id)
    if not loaded:
        return loaded
    offering = loaded.data
    if offering.published:
        # повторная публикация: успех без повторного уведомления
        return Result.ok({"offering_id": offering_id, "already_published": True,
                          "published_at": offering.published_at.isoformat() if offering.published_at else None})
    if not _ready(offering):
        return Result.fail(ErrorKind.CONFLICT, "offering is not ready to publish",
                           offering_id=offering_id)

    offering.published = True
    offering.published_at = utcnow()
    student_ids = []
    for e in _gradable(offering):
        e.status = _PROMOTION[e.grade.status]
        student_ids.append(e.student_id)
    audit("PUBLISH", "course_offering", offering_id, {"students": len(student_ids)})
    db.session.commit()
    log.info("offering published", extra={"event": "publish", "entity_id": offering_id})

    notifier = notifier or notify_published
    try:
        notifier(offering, student_ids)
    except Exception:
        # публикация уже зафиксирована, уведомление: по возможности
        db.session.rollback()
        log.exception("publish notification failed", extra={"event": "notify_failed",
                                                             "entity_id": offering_id})

    return Result.ok({"offering_id": offering_id, "already_published": False,
                      "published_at": offering.published_at.isoformat(), "notified": len(student_ids)})


@service_call
def offering_summary(offering_id: int) -> Result:
    offering = db.session.get(CourseOffering, offering_id)
    if offering is None:
        return Result.fail(ErrorKind.NOT_FOUND, "offering not found", offering_id=offering_id)
    gradable = _gradable(offering)
    counts = Counter({st.value: 0 for st in GradeStatus})
    for e in gradable:
        counts[(e.grade.status if e.grade else GradeStatus.UNGRADED).value] += 1
    unsaved = sum(1 for e in offering.enrollments if e.grade is not None and e.grade.draft_status is not None)
    return Result.ok({
        "offering_id": offering_id,
        "enrollments": len(gradable),
        "counts": dict(counts),
        "unsaved": unsaved,
        "can_publish": _ready(offering),
        "published": offering.published,
    })
