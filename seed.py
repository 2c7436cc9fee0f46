"""
Idempotent seed-скрипт.
Запуск:
  python seed.py --reset         # дропнуть и пересоздать БД + демо-данные + admin
  python seed.py --ensure-admin  # создать только пользователя admin@example.com (без сидов)
  python seed.py                 # мягкое наполнение недостающих данных (idempotent)
"""
from datetime import timedelta
import argparse

from werkzeug.security import generate_password_hash

from app import create_app
from extensions import db
from models import (
    Career, CourseOffering, Department, ExamBoard, ExamBoardStatus, PlanSubject, PrerequisiteEdge,
    PrerequisiteKind, Role, Student, StudyPlan, Subject, Teacher, TeacherAssignment, User, utcnow,
)

# ---- вспомогательные утилиты ----
def get_or_create(model, defaults=None, **by):
    """Идемпотентное создание по уникальным ключам."""
    inst = db.session.query(model).filter_by(**by).first()
    if inst:
        return inst, False
    data = {}
    if defaults:
        data.update(defaults)
    data.update(by)
    inst = model(**data)
    db.session.add(inst)
    db.session.flush()
    return inst, True

# ---- план с correlativas ----
def seed_plan():
    """Материи, план, correlativas, карьера, студент и преподаватель."""
    ids = {}
    dep, _ = get_or_create(Department, name="Ciencias Exactas")

    calc1, _ = get_or_create(Subject, code="MAT-101", defaults=dict(name="Calculus I"))
    calc2, _ = get_or_create(Subject, code="MAT-201", defaults=dict(name="Calculus II"))
    alg, _ = get_or_create(Subject, code="MAT-102", defaults=dict(name="Linear Algebra"))

    plan, _ = get_or_create(StudyPlan, name="Sistemas 2023", defaults=dict(creation_year=2023, duration="5 years"))
    ps1, _ = get_or_create(PlanSubject, plan_id=plan.id, subject_id=calc1.id,
                           defaults=dict(year_in_plan=1, term_in_plan=1))
    get_or_create(PlanSubject, plan_id=plan.id, subject_id=alg.id, defaults=dict(year_in_plan=1, term_in_plan=1))
    ps2, _ = get_or_create(PlanSubject, plan_id=plan.id, subject_id=calc2.id,
                           defaults=dict(year_in_plan=2, term_in_plan=1))

    # Calculus II: для cursada нужна regular по Calculus I, для final: и final Calculus I
    for kind in PrerequisiteKind:
        get_or_create(PrerequisiteEdge, plan_id=plan.id, subject_id=calc2.id,
                      required_subject_id=calc1.id, kind=kind)

    career, _ = get_or_create(Career, name="Ingeniería en Sistemas",
                              defaults=dict(department_id=dep.id, plan_id=plan.id))
    get_or_create(Student, file_number="A-0001",
                  defaults=dict(full_name="Ana Pérez", email="s1@example.com", career_id=career.id))

    teacher, _ = get_or_create(Teacher, email="t1@example.com", defaults=dict(full_name="Juan Gómez"))
    ta1, _ = get_or_create(TeacherAssignment, teacher_id=teacher.id, subject_id=calc1.id, defaults=dict(seat=1))
    ta2, _ = get_or_create(TeacherAssignment, teacher_id=teacher.id, subject_id=calc2.id, defaults=dict(seat=1))

    year = utcnow().year
    get_or_create(CourseOffering, assignment_id=ta1.id, plan_subject_id=ps1.id, academic_year=year,
                  defaults=dict(term=1))
    get_or_create(CourseOffering, assignment_id=ta2.id, plan_subject_id=ps2.id, academic_year=year,
                  defaults=dict(term=1))

    if not ExamBoard.query.filter_by(subject_id=calc1.id, teacher_id=teacher.id,
                                     status=ExamBoardStatus.SCHEDULED).first():
        db.session.add(ExamBoard(subject_id=calc1.id, teacher_id=teacher.id,
                                 exam_at=utcnow() + timedelta(days=14), location="Aula 3"))

    db.session.commit()
    ids.update(plan_id=plan.id, career_id=career.id, teacher_id=teacher.id)
    return ids

# ---- пользователи ----
def ensure_admin():
    if User.query.filter_by(email="admin@example.com").first():
        return False
    db.session.add(User(email="admin@example.com", role=Role.ADMIN.value,
                        password_hash=generate_password_hash("pass")))
    db.session.commit()
    return True

def ensure_demo_users():
    """Логины для демо-преподавателя и демо-студента."""
    teacher = Teacher.query.filter_by(email="t1@example.com").first()
    student = Student.query.filter_by(file_number="A-0001").first()
    if teacher and not User.query.filter_by(email="t1@example.com").first():
        db.session.add(User(email="t1@example.com", role=Role.TEACHER.value, teacher_id=teacher.id,
                            password_hash=generate_password_hash("pass")))
    if student and not User.query.filter_by(email="s1@example.com").first():
        db.session.add(User(email="s1@example.com", role=Role.STUDENT.value, student_id=student.id,
                            password_hash=generate_password_hash("pass")))
    db.session.commit()

# ---- main ----
def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--reset", action="store_true", help="drop + create + full seed (demo)")
    parser.add_argument("--ensure-admin", action="store_true", help="create only admin@example.com")
    args = parser.parse_args()

    app = create_app()
    with app.app_context():
        if args.reset:
            db.drop_all()
            db.create_all()
            seed_plan()
            ensure_admin()
            ensure_demo_users()
            print("[seed] reset+seed complete")
            return

        if args.ensure_admin:
            created = ensure_admin()
            print("Admin created." if created else "Admin already exists.")
            return

        # режим по умолчанию: мягкое наполнение недостающих данных
        db.create_all()
        seed_plan()
        ensure_admin()
        ensure_demo_users()
        print("[seed] soft seed complete")

if __name__ == "__main__":
    main()
