# blueprints/prerequisites/services.py
from __future__ import annotations
import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from extensions import db
from models import PlanSubject, PrerequisiteEdge, PrerequisiteKind, StudyPlan, Subject
from blueprints.core.results import ErrorKind, Result, service_call

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubjectRef:
    id: int
    code: str
    name: str


def prerequisites_for(plan_id: int, subject_id: int, kind: PrerequisiteKind) -> frozenset[SubjectRef]:
    """Прямые correlativas материи в плане, одним запросом. Пусто: условий нет."""
    stmt = (
        select(Subject.id, Subject.code, Subject.name)
        .join(PrerequisiteEdge, PrerequisiteEdge.required_subject_id == Subject.id)
        .where(
            PrerequisiteEdge.plan_id == plan_id,
            PrerequisiteEdge.subject_id == subject_id,
            PrerequisiteEdge.kind == kind,
        )
    )
    return frozenset(SubjectRef(id=r.id, code=r.code, name=r.name) for r in db.session.execute(stmt))


def _in_plan(plan_id: int, subject_id: int) -> bool:
    return db.session.execute(
        select(PlanSubject.id).where(PlanSubject.plan_id == plan_id, PlanSubject.subject_id == subject_id)
    ).first() is not None


def _edge_dict(e: PrerequisiteEdge) -> dict:
    return {
        "id": e.id,
        "plan_id": e.plan_id,
        "subject_id": e.subject_id,
        "required_subject_id": e.required_subject_id,
        "kind": e.kind.value,
    }


@service_call
def add_prerequisite(plan_id: int, subject_id: int, required_subject_id: int,
                     kind: PrerequisiteKind) -> Result:
    if subject_id == required_subject_id:
        return Result.fail(ErrorKind.VALIDATION, "a subject cannot be its own prerequisite",
                           subject_id=subject_id)

    if db.session.get(StudyPlan, plan_id) is None:
        return Result.fail(ErrorKind.NOT_FOUND, "plan not found", plan_id=plan_id)
    for sid in (subject_id, required_subject_id):
        if not _in_plan(plan_id, sid):
            return Result.fail(ErrorKind.NOT_FOUND, "subject is not part of the plan",
                               plan_id=plan_id, subject_id=sid)

    dup = PrerequisiteEdge.query.filter_by(
        plan_id=plan_id, subject_id=subject_id, required_subject_id=required_subject_id, kind=kind,
    ).first()
    if dup:
        return Result.fail(ErrorKind.CONFLICT, "prerequisite already exists", edge_id=dup.id)

    edge = PrerequisiteEdge(plan_id=plan_id, subject_id=subject_id,
                            required_subject_id=required_subject_id, kind=kind)
    db.session.add(edge)
    try:
        db.session.commit()
    except IntegrityError:
        # параллельная вставка того же ребра
        db.session.rollback()
        return Result.fail(ErrorKind.CONFLICT, "prerequisite already exists")

    log.info("prerequisite added", extra={"event": "prerequisite_added", "entity_id": edge.id})
    return Result.ok(_edge_dict(edge))


@service_call
def remove_prerequisite(edge_id: int) -> Result:
    edge = db.session.get(PrerequisiteEdge, edge_id)
    if edge is None:
        return Result.fail(ErrorKind.NOT_FOUND, "prerequisite not found", edge_id=edge_id)
    data = _edge_dict(edge)
    db.session.delete(edge)
    db.session.commit()
    log.info("prerequisite removed", extra={"event": "prerequisite_removed", "entity_id": edge_id})
    return Result.ok(data)


@service_call
def list_prerequisites(plan_id: int, subject_id: int) -> Result:
    if not _in_plan(plan_id, subject_id):
        return Result.fail(ErrorKind.NOT_FOUND, "subject is not part of the plan",
                           plan_id=plan_id, subject_id=subject_id)
    out = {}
    for kind in PrerequisiteKind:
        refs = sorted(prerequisites_for(plan_id, subject_id, kind), key=lambda r: r.code)
        out[kind.value] = refs
    return Result.ok(out)
