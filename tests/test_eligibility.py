from __future__ import annotations
from datetime import datetime, timedelta
import pytest

from app import create_app
from extensions import db
from models import (
    BoardEnrollmentStatus, Career, CourseEnrollment, CourseOffering, EnrollmentStatus, ExamBoard,
    ExamBoardEnrollment, PlanSubject, PrerequisiteEdge, PrerequisiteKind, Student, StudyPlan, Subject,
    Teacher, TeacherAssignment,
)
from blueprints.core.results import ErrorKind
from blueprints.eligibility.services import can_enroll_course, can_enroll_final
from blueprints.history.services import CompletionStatus, academic_history, completion_status, history_for

@pytest.fixture()
def app_ctx():
    app = create_app("test")
    with app.app_context():
        db.create_all()
        plan = StudyPlan(name="Plan 2023", creation_year=2023, duration="5 years")
        calc1 = Subject(code="MAT-101", name="Calculus I")
        calc2 = Subject(code="MAT-201", name="Calculus II")
        alg = Subject(code="MAT-102", name="Linear Algebra")
        t = Teacher(full_name="Juan Gómez")
        db.session.add_all([plan, calc1, calc2, alg, t]); db.session.commit()

        ps1 = PlanSubject(plan_id=plan.id, subject_id=calc1.id, year_in_plan=1)
        ps2 = PlanSubject(plan_id=plan.id, subject_id=calc2.id, year_in_plan=2)
        ps3 = PlanSubject(plan_id=plan.id, subject_id=alg.id, year_in_plan=1)
        career = Career(name="Sistemas", plan_id=plan.id)
        ta = TeacherAssignment(teacher_id=t.id, subject_id=calc1.id, seat=1)
        db.session.add_all([ps1, ps2, ps3, career, ta]); db.session.commit()

        # Calculus II: cursada требует regular по Calculus I, final: ещё и final Calculus I
        db.session.add_all([
            PrerequisiteEdge(plan_id=plan.id, subject_id=calc2.id, required_subject_id=calc1.id,
                             kind=PrerequisiteKind.FOR_COURSEWORK),
            PrerequisiteEdge(plan_id=plan.id, subject_id=calc2.id, required_subject_id=calc1.id,
                             kind=PrerequisiteKind.FOR_FINAL),
        ])
        s = Student(full_name="Ana Pérez", file_number="A-1", career_id=career.id)
        nomad = Student(full_name="Sin Carrera", file_number="A-2")
        offering = CourseOffering(assignment_id=ta.id, plan_subject_id=ps1.id, academic_year=2025)
        board = ExamBoard(subject_id=calc1.id, teacher_id=t.id, exam_at=datetime(2025, 7, 1, 9, 0))
        db.session.add_all([s, nomad, offering, board]); db.session.commit()

        yield {"app": app, "plan": plan.id, "calc1": calc1.id, "calc2": calc2.id, "alg": alg.id,
               "student": s.id, "nomad": nomad.id, "offering": offering.id, "board": board.id}
        db.drop_all()

def _approve_course(ids, status=EnrollmentStatus.REGULAR):
    db.session.add(CourseEnrollment(student_id=ids["student"], offering_id=ids["offering"], status=status))
    db.session.commit()

def _final_grade(ids, grade):
    db.session.add(ExamBoardEnrollment(board_id=ids["board"], student_id=ids["student"], grade=grade,
                                       status=BoardEnrollmentStatus.APPROVED if grade >= 4
                                       else BoardEnrollmentStatus.FAILED))
    db.session.commit()

# ---------- history ----------
def test_history_empty(app_ctx):
    hist = history_for(app_ctx["student"], [app_ctx["calc1"], app_ctx["calc2"]])
    assert set(hist) == {app_ctx["calc1"], app_ctx["calc2"]}
    assert all(h.status is CompletionStatus.NONE for h in hist.values())

def test_history_course_then_final(app_ctx):
    _approve_course(app_ctx)
    assert completion_status(app_ctx["student"], app_ctx["calc1"]) is CompletionStatus.COURSE_APPROVED
    _final_grade(app_ctx, 7)
    assert completion_status(app_ctx["student"], app_ctx["calc1"]) is CompletionStatus.FINAL_APPROVED

def test_pending_or_failed_course_is_not_approval(app_ctx):
    _approve_course(app_ctx, status=EnrollmentStatus.PENDING)
    assert completion_status(app_ctx["student"], app_ctx["calc1"]) is CompletionStatus.NONE

def test_final_below_passing_is_not_approval(app_ctx):
    _approve_course(app_ctx)
    _final_grade(app_ctx, 3.5)
    h = history_for(app_ctx["student"], [app_ctx["calc1"]])[app_ctx["calc1"]]
    assert h.course_approved and not h.final_approved

def test_academic_history_lists_plan(app_ctx):
    _approve_course(app_ctx)
    res = academic_history(app_ctx["student"])
    assert res.success
    rows = {r["code"]: r for r in res.data["subjects"]}
    assert rows["MAT-101"]["status"] == "course_approved"
    assert rows["MAT-201"]["status"] == "none"
    assert rows["MAT-201"]["year"] == 2

# ---------- course eligibility ----------
def test_calculus_ii_blocked_then_allowed(app_ctx):
    res = can_enroll_course(app_ctx["student"], app_ctx["calc2"])
    assert res.success
    v = res.data
    assert v.eligible is False
    assert [(r.subject.name, r.fulfilled) for r in v.requirements] == [("Calculus I", False)]

    _approve_course(app_ctx)
    v = can_enroll_course(app_ctx["student"], app_ctx["calc2"]).data
    assert v.eligible is True
    assert [(r.subject.name, r.fulfilled) for r in v.requirements] == [("Calculus I", True)]

def test_subject_without_prerequisites_always_eligible(app_ctx):
    for sid in (app_ctx["calc1"], app_ctx["alg"]):
        v = can_enroll_course(app_ctx["student"], sid).data
        assert v.eligible is True
        assert v.requirements == ()
        assert v.plan_id == app_ctx["plan"]

def test_unknown_student_or_subject(app_ctx):
    assert can_enroll_course(999, app_ctx["calc2"]).error_kind is ErrorKind.NOT_FOUND
    assert can_enroll_course(app_ctx["nomad"], app_ctx["calc2"]).error_kind is ErrorKind.NOT_FOUND
    assert can_enroll_course(app_ctx["student"], 999).error_kind is ErrorKind.NOT_FOUND

def test_verdict_serializes_requirements(app_ctx):
    body = can_enroll_course(app_ctx["student"], app_ctx["calc2"]).to_dict()
    assert body["ok"] is True
    req = body["data"]["requirements"][0]
    assert req["subject"]["code"] == "MAT-101"
    assert req["fulfilled"] is False

# ---------- final eligibility ----------
def test_final_needs_course_and_final(app_ctx):
    _approve_course(app_ctx)
    v = can_enroll_final(app_ctx["student"], app_ctx["calc2"]).data
    assert v.eligible is False
    r = v.requirements[0]
    assert (r.course_approved, r.final_approved, r.fulfilled) == (True, False, False)

    _final_grade(app_ctx, 4)
    v = can_enroll_final(app_ctx["student"], app_ctx["calc2"]).data
    assert v.eligible is True
    assert v.requirements[0].fulfilled is True

def test_final_fulfilled_implies_course_approved(app_ctx):
    # final без regular по cursada: требование не выполнено
    _final_grade(app_ctx, 9)
    v = can_enroll_final(app_ctx["student"], app_ctx["calc2"]).data
    for r in v.requirements:
        if r.fulfilled:
            assert r.course_approved
    assert v.eligible is False

def test_monotonic_after_new_approval(app_ctx):
    before = can_enroll_course(app_ctx["student"], app_ctx["calc2"]).data.eligible
    _approve_course(app_ctx)
    after = can_enroll_course(app_ctx["student"], app_ctx["calc2"]).data.eligible
    assert (before, after) == (False, True)
    # материя без условий не становится недоступной
    assert can_enroll_course(app_ctx["student"], app_ctx["alg"]).data.eligible is True

def test_final_conflict_when_already_registered(app_ctx):
    reg = ExamBoardEnrollment(board_id=app_ctx["board"], student_id=app_ctx["student"])
    db.session.add(reg); db.session.commit()
    res = can_enroll_final(app_ctx["student"], app_ctx["calc1"], app_ctx["board"])
    assert res.error_kind is ErrorKind.CONFLICT

    # отменённая запись не мешает
    reg.status = BoardEnrollmentStatus.CANCELLED
    db.session.commit()
    assert can_enroll_final(app_ctx["student"], app_ctx["calc1"], app_ctx["board"]).success

def test_resolution_has_no_side_effects(app_ctx):
    before = (CourseEnrollment.query.count(), ExamBoardEnrollment.query.count())
    can_enroll_course(app_ctx["student"], app_ctx["calc2"])
    can_enroll_final(app_ctx["student"], app_ctx["calc2"], app_ctx["board"])
    assert (CourseEnrollment.query.count(), ExamBoardEnrollment.query.count()) == before

def test_old_board_date_does_not_matter_for_history(app_ctx):
    _approve_course(app_ctx)
    _final_grade(app_ctx, 6)
    board = db.session.get(ExamBoard, app_ctx["board"])
    board.exam_at = board.exam_at - timedelta(days=3650)
    db.session.commit()
    assert completion_status(app_ctx["student"], app_ctx["calc1"]) is CompletionStatus.FINAL_APPROVED
