from __future__ import annotations
from datetime import timedelta
import pytest
from sqlalchemy.exc import IntegrityError

from app import create_app
from extensions import db
from models import (
    AuditLog, Career, CourseEnrollment, CourseOffering, ExamBoard, ExamBoardStatus, PlanSubject,
    PrerequisiteEdge, PrerequisiteKind, Student, StudyPlan, Subject, Teacher, TeacherAssignment, utcnow,
)
from blueprints.core.results import ErrorKind, Result
from blueprints.capacity import services as capacity_services
from blueprints.capacity.services import (
    active_student_count, assign_teacher, can_assign_teacher, can_remove_career, can_remove_plan_subject,
    can_unassign_teacher, enrollment_count_for_plan_subject, remove_career, remove_plan_subject,
    unassign_teacher,
)

@pytest.fixture()
def app_ctx():
    app = create_app("test")
    with app.app_context():
        db.create_all()
        x = Subject(code="X-1", name="Subject X")
        y = Subject(code="Y-1", name="Subject Y")
        t1, t2, t3 = Teacher(full_name="T1"), Teacher(full_name="T2"), Teacher(full_name="T3")
        plan = StudyPlan(name="Plan", creation_year=2024, duration="4 years")
        db.session.add_all([x, y, t1, t2, t3, plan]); db.session.commit()
        psx = PlanSubject(plan_id=plan.id, subject_id=x.id, year_in_plan=1)
        psy = PlanSubject(plan_id=plan.id, subject_id=y.id, year_in_plan=2)
        career = Career(name="Carrera", plan_id=plan.id)
        db.session.add_all([psx, psy, career]); db.session.commit()
        db.session.add(PrerequisiteEdge(plan_id=plan.id, subject_id=y.id, required_subject_id=x.id,
                                        kind=PrerequisiteKind.FOR_COURSEWORK))
        db.session.commit()
        yield {"app": app, "x": x.id, "y": y.id, "t1": t1.id, "t2": t2.id, "t3": t3.id,
               "plan": plan.id, "psx": psx.id, "psy": psy.id, "career": career.id}
        db.drop_all()

def _count(subject_id):
    return TeacherAssignment.query.filter_by(subject_id=subject_id).count()

# ---------- лимит преподавателей ----------
def test_third_teacher_exceeds_cap(app_ctx):
    assert assign_teacher(app_ctx["t1"], app_ctx["x"]).success
    assert assign_teacher(app_ctx["t2"], app_ctx["x"]).success
    res = assign_teacher(app_ctx["t3"], app_ctx["x"])
    assert res.error_kind is ErrorKind.CAPACITY_EXCEEDED
    assert res.details["limit"] == 2
    assert _count(app_ctx["x"]) == 2

def test_seats_are_distinct(app_ctx):
    a = assign_teacher(app_ctx["t1"], app_ctx["x"]).data
    b = assign_teacher(app_ctx["t2"], app_ctx["x"]).data
    assert {a["seat"], b["seat"]} == {1, 2}

def test_already_assigned_checked_before_cap(app_ctx):
    assign_teacher(app_ctx["t1"], app_ctx["x"])
    assign_teacher(app_ctx["t2"], app_ctx["x"])
    assert can_assign_teacher(app_ctx["t1"], app_ctx["x"]).error_kind is ErrorKind.CONFLICT

def test_assign_unknown_entities(app_ctx):
    assert can_assign_teacher(999, app_ctx["x"]).error_kind is ErrorKind.NOT_FOUND
    assert can_assign_teacher(app_ctx["t1"], 999).error_kind is ErrorKind.NOT_FOUND

def test_seat_constraint_backs_the_guard(app_ctx):
    # в обход проверки: БД всё равно не даст третье место
    assign_teacher(app_ctx["t1"], app_ctx["x"])
    assign_teacher(app_ctx["t2"], app_ctx["x"])
    db.session.add(TeacherAssignment(teacher_id=app_ctx["t3"], subject_id=app_ctx["x"], seat=2))
    with pytest.raises(IntegrityError):
        db.session.commit()
    db.session.rollback()
    assert _count(app_ctx["x"]) == 2

def test_freed_seat_is_reused(app_ctx):
    assign_teacher(app_ctx["t1"], app_ctx["x"])
    assign_teacher(app_ctx["t2"], app_ctx["x"])
    assert unassign_teacher(app_ctx["t1"], app_ctx["x"]).success
    res = assign_teacher(app_ctx["t3"], app_ctx["x"])
    assert res.success
    assert res.data["seat"] == 1

def test_concurrent_insert_takes_last_seat(app_ctx, monkeypatch):
    assign_teacher(app_ctx["t1"], app_ctx["x"])
    real_free_seat = capacity_services._free_seat

    def racing_free_seat(subject_id):
        seat = real_free_seat(subject_id)
        # параллельный запрос успевает занять то же место
        db.session.add(TeacherAssignment(teacher_id=app_ctx["t2"], subject_id=subject_id, seat=seat))
        db.session.commit()
        return seat

    monkeypatch.setattr(capacity_services, "_free_seat", racing_free_seat)
    res = assign_teacher(app_ctx["t3"], app_ctx["x"])
    assert res.error_kind is ErrorKind.CAPACITY_EXCEEDED
    assert res.details["assigned"] == 2
    assert _count(app_ctx["x"]) == 2
    assert TeacherAssignment.query.filter_by(teacher_id=app_ctx["t3"]).first() is None

def test_no_free_seat_after_check(app_ctx, monkeypatch):
    assign_teacher(app_ctx["t1"], app_ctx["x"])
    assign_teacher(app_ctx["t2"], app_ctx["x"])
    real_check = capacity_services.can_assign_teacher
    calls = []

    def stale_check(teacher_id, subject_id):
        # первая проверка видит устаревшее состояние, повторная: настоящее
        calls.append(teacher_id)
        if len(calls) == 1:
            return Result.ok({"assigned": 1, "limit": 2})
        return real_check(teacher_id, subject_id)

    monkeypatch.setattr(capacity_services, "can_assign_teacher", stale_check)
    res = assign_teacher(app_ctx["t3"], app_ctx["x"])
    assert res.error_kind is ErrorKind.CAPACITY_EXCEEDED
    assert len(calls) == 2
    assert _count(app_ctx["x"]) == 2

# ---------- снятие преподавателя ----------
def test_unassign_blocked_by_future_board(app_ctx):
    assign_teacher(app_ctx["t1"], app_ctx["x"])
    db.session.add(ExamBoard(subject_id=app_ctx["x"], teacher_id=app_ctx["t1"],
                             exam_at=utcnow() + timedelta(days=5)))
    db.session.commit()
    res = unassign_teacher(app_ctx["t1"], app_ctx["x"])
    assert res.error_kind is ErrorKind.HAS_DEPENDENTS
    assert res.message == "has-active-exam-board"
    assert _count(app_ctx["x"]) == 1

def test_unassign_ignores_past_and_cancelled_boards(app_ctx):
    assign_teacher(app_ctx["t1"], app_ctx["x"])
    db.session.add_all([
        ExamBoard(subject_id=app_ctx["x"], teacher_id=app_ctx["t1"], exam_at=utcnow() - timedelta(days=5)),
        ExamBoard(subject_id=app_ctx["x"], teacher_id=app_ctx["t1"], exam_at=utcnow() + timedelta(days=5),
                  status=ExamBoardStatus.CANCELLED),
    ])
    db.session.commit()
    assert can_unassign_teacher(app_ctx["t1"], app_ctx["x"]).success

def test_last_assignment_deactivates_teacher(app_ctx):
    assign_teacher(app_ctx["t1"], app_ctx["x"])
    assign_teacher(app_ctx["t1"], app_ctx["y"])

    res = unassign_teacher(app_ctx["t1"], app_ctx["x"])
    assert res.data["teacher_deactivated"] is False
    assert db.session.get(Teacher, app_ctx["t1"]).is_active is True

    res = unassign_teacher(app_ctx["t1"], app_ctx["y"])
    assert res.data["teacher_deactivated"] is True
    assert db.session.get(Teacher, app_ctx["t1"]).is_active is False

    # новое назначение возвращает роль
    assign_teacher(app_ctx["t1"], app_ctx["x"])
    assert db.session.get(Teacher, app_ctx["t1"]).is_active is True

def test_unassign_missing(app_ctx):
    assert unassign_teacher(app_ctx["t1"], app_ctx["x"]).error_kind is ErrorKind.NOT_FOUND

# ---------- материя плана ----------
def test_remove_plan_subject_with_enrollments(app_ctx):
    ta = assign_teacher(app_ctx["t1"], app_ctx["x"]).data
    s = Student(full_name="S", file_number="F-1", career_id=app_ctx["career"])
    o = CourseOffering(assignment_id=ta["assignment_id"], plan_subject_id=app_ctx["psx"], academic_year=2025)
    db.session.add_all([s, o]); db.session.commit()
    db.session.add(CourseEnrollment(student_id=s.id, offering_id=o.id)); db.session.commit()

    assert enrollment_count_for_plan_subject(app_ctx["psx"]) == 1
    res = remove_plan_subject(app_ctx["psx"])
    assert res.error_kind is ErrorKind.HAS_DEPENDENTS
    assert res.details["enrollments"] == 1
    assert db.session.get(PlanSubject, app_ctx["psx"]) is not None

    # с записями на cursada преподавателя тоже не снять
    assert unassign_teacher(app_ctx["t1"], app_ctx["x"]).error_kind is ErrorKind.HAS_DEPENDENTS

def test_remove_plan_subject_drops_edges_and_empty_offerings(app_ctx):
    ta = assign_teacher(app_ctx["t1"], app_ctx["x"]).data
    db.session.add(CourseOffering(assignment_id=ta["assignment_id"], plan_subject_id=app_ctx["psx"],
                                  academic_year=2025))
    db.session.commit()
    assert can_remove_plan_subject(app_ctx["psx"]).success

    res = remove_plan_subject(app_ctx["psx"])
    assert res.success
    assert res.data["edges_removed"] == 1
    assert PrerequisiteEdge.query.count() == 0
    assert CourseOffering.query.count() == 0
    assert db.session.get(PlanSubject, app_ctx["psx"]) is None
    assert AuditLog.query.filter_by(entity="plan_subject").count() == 1

def test_remove_plan_subject_missing(app_ctx):
    assert can_remove_plan_subject(999).error_kind is ErrorKind.NOT_FOUND

# ---------- карьера ----------
def test_career_with_active_students(app_ctx):
    s = Student(full_name="S", file_number="F-1", career_id=app_ctx["career"])
    db.session.add(s); db.session.commit()
    assert active_student_count(app_ctx["career"]) == 1
    res = can_remove_career(app_ctx["career"])
    assert res.error_kind is ErrorKind.HAS_DEPENDENTS
    assert res.message == "has-active-students"

    s.is_active = False
    db.session.commit()
    assert remove_career(app_ctx["career"]).success
    assert db.session.get(Career, app_ctx["career"]) is None
    assert db.session.get(Student, s.id).career_id is None

def test_remove_career_missing(app_ctx):
    assert remove_career(999).error_kind is ErrorKind.NOT_FOUND
