from __future__ import annotations
import pytest

from app import create_app
from extensions import db
from models import PlanSubject, PrerequisiteEdge, PrerequisiteKind, StudyPlan, Subject
from blueprints.core.results import ErrorKind
from blueprints.prerequisites.services import (
    SubjectRef, add_prerequisite, list_prerequisites, prerequisites_for, remove_prerequisite,
)

@pytest.fixture()
def app_ctx():
    app = create_app("test")
    with app.app_context():
        db.create_all()
        plan = StudyPlan(name="Plan 2023", creation_year=2023, duration="5 years")
        calc1 = Subject(code="MAT-101", name="Calculus I")
        calc2 = Subject(code="MAT-201", name="Calculus II")
        phys = Subject(code="FIS-101", name="Physics I")
        outside = Subject(code="HIS-100", name="History")
        db.session.add_all([plan, calc1, calc2, phys, outside]); db.session.commit()
        db.session.add_all([
            PlanSubject(plan_id=plan.id, subject_id=calc1.id, year_in_plan=1),
            PlanSubject(plan_id=plan.id, subject_id=calc2.id, year_in_plan=2),
            PlanSubject(plan_id=plan.id, subject_id=phys.id, year_in_plan=1),
        ])
        db.session.commit()
        yield {"app": app, "plan": plan.id, "calc1": calc1.id, "calc2": calc2.id,
               "phys": phys.id, "outside": outside.id}
        db.drop_all()

def test_no_edges_gives_empty_set(app_ctx):
    refs = prerequisites_for(app_ctx["plan"], app_ctx["calc1"], PrerequisiteKind.FOR_COURSEWORK)
    assert refs == frozenset()

def test_add_and_fetch_by_kind(app_ctx):
    res = add_prerequisite(app_ctx["plan"], app_ctx["calc2"], app_ctx["calc1"], PrerequisiteKind.FOR_COURSEWORK)
    assert res.success
    assert res.data["kind"] == "for_coursework"

    course = prerequisites_for(app_ctx["plan"], app_ctx["calc2"], PrerequisiteKind.FOR_COURSEWORK)
    final = prerequisites_for(app_ctx["plan"], app_ctx["calc2"], PrerequisiteKind.FOR_FINAL)
    assert course == frozenset({SubjectRef(id=app_ctx["calc1"], code="MAT-101", name="Calculus I")})
    assert final == frozenset()

def test_self_reference_rejected_before_storage(app_ctx):
    res = add_prerequisite(app_ctx["plan"], app_ctx["calc1"], app_ctx["calc1"], PrerequisiteKind.FOR_FINAL)
    assert not res.success
    assert res.error_kind is ErrorKind.VALIDATION
    assert PrerequisiteEdge.query.count() == 0

def test_duplicate_edge_conflict(app_ctx):
    args = (app_ctx["plan"], app_ctx["calc2"], app_ctx["calc1"], PrerequisiteKind.FOR_FINAL)
    assert add_prerequisite(*args).success
    res = add_prerequisite(*args)
    assert res.error_kind is ErrorKind.CONFLICT
    assert PrerequisiteEdge.query.count() == 1

def test_same_pair_different_kind_is_allowed(app_ctx):
    for kind in PrerequisiteKind:
        assert add_prerequisite(app_ctx["plan"], app_ctx["calc2"], app_ctx["calc1"], kind).success
    assert PrerequisiteEdge.query.count() == 2

def test_subject_outside_plan_not_found(app_ctx):
    res = add_prerequisite(app_ctx["plan"], app_ctx["calc2"], app_ctx["outside"], PrerequisiteKind.FOR_COURSEWORK)
    assert res.error_kind is ErrorKind.NOT_FOUND
    assert res.details["subject_id"] == app_ctx["outside"]

def test_missing_plan_not_found(app_ctx):
    res = add_prerequisite(999, app_ctx["calc2"], app_ctx["calc1"], PrerequisiteKind.FOR_COURSEWORK)
    assert res.error_kind is ErrorKind.NOT_FOUND

def test_list_and_remove(app_ctx):
    add_prerequisite(app_ctx["plan"], app_ctx["calc2"], app_ctx["calc1"], PrerequisiteKind.FOR_COURSEWORK)
    edge = add_prerequisite(app_ctx["plan"], app_ctx["calc2"], app_ctx["phys"], PrerequisiteKind.FOR_FINAL).data

    listing = list_prerequisites(app_ctx["plan"], app_ctx["calc2"]).to_dict()["data"]
    assert [r["code"] for r in listing["for_coursework"]] == ["MAT-101"]
    assert [r["code"] for r in listing["for_final"]] == ["FIS-101"]

    assert remove_prerequisite(edge["id"]).success
    assert remove_prerequisite(edge["id"]).error_kind is ErrorKind.NOT_FOUND
    assert prerequisites_for(app_ctx["plan"], app_ctx["calc2"], PrerequisiteKind.FOR_FINAL) == frozenset()

def test_cycle_does_not_loop(app_ctx):
    # циклы не ищем: каждая материя на цикле просто недостижима
    assert add_prerequisite(app_ctx["plan"], app_ctx["calc2"], app_ctx["calc1"], PrerequisiteKind.FOR_COURSEWORK).success
    assert add_prerequisite(app_ctx["plan"], app_ctx["calc1"], app_ctx["calc2"], PrerequisiteKind.FOR_COURSEWORK).success
    refs = prerequisites_for(app_ctx["plan"], app_ctx["calc1"], PrerequisiteKind.FOR_COURSEWORK)
    assert {r.id for r in refs} == {app_ctx["calc2"]}
