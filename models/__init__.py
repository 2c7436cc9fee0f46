from datetime import datetime, UTC
from enum import Enum as PyEnum

from sqlalchemy import (
    Enum, ForeignKey, UniqueConstraint, CheckConstraint, Index, Boolean, DateTime,
    Integer, Numeric, JSON
)
from sqlalchemy.orm import relationship, Mapped, mapped_column
from flask_login import UserMixin

from extensions import db

# не больше двух преподавателей на материю
TEACHERS_PER_SUBJECT = 2


def utcnow() -> datetime:
    """naive UTC: так даты хранятся во всех таблицах."""
    return datetime.now(UTC).replace(tzinfo=None)

# ---------- Enums ----------
class PrerequisiteKind(str, PyEnum):
    FOR_COURSEWORK = "for_coursework"   # correlativa de cursada
    FOR_FINAL = "for_final"             # correlativa de final

class EnrollmentStatus(str, PyEnum):
    PENDING = "pending"
    REGULAR = "regular"      # cursada aprobada
    FAILED = "failed"
    WITHDRAWN = "withdrawn"

class GradeStatus(str, PyEnum):
    UNGRADED = "ungraded"
    APPROVED = "approved"
    FAILED = "failed"
    ABSENT = "absent"

class ExamBoardStatus(str, PyEnum):
    SCHEDULED = "scheduled"
    FINISHED = "finished"
    CANCELLED = "cancelled"

class BoardEnrollmentStatus(str, PyEnum):
    REGISTERED = "registered"
    PRESENT = "present"
    ABSENT = "absent"
    APPROVED = "approved"
    FAILED = "failed"
    CANCELLED = "cancelled"

class Role(str, PyEnum):
    ADMIN = "ADMIN"
    TEACHER = "TEACHER"
    STUDENT = "STUDENT"


# ---------- Catalog ----------
class Department(db.Model):
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(db.String(255), nullable=False, unique=True)

    def __repr__(self):
        return f"<Department {self.name}>"


class Subject(db.Model):
    id: Mapped[int] = mapped_column(primary_key=True)
    code: Mapped[str] = mapped_column(db.String(50), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(db.String(255), nullable=False)

    def __repr__(self):
        return f"<Subject {self.code}>"


class StudyPlan(db.Model):
    __tablename__ = "study_plan"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(db.String(255), nullable=False, unique=True)
    creation_year: Mapped[int] = mapped_column(Integer, nullable=False)
    duration: Mapped[str] = mapped_column(db.String(50), nullable=False)

    subjects = relationship("PlanSubject", back_populates="plan", cascade="all, delete-orphan",
                            order_by="PlanSubject.year_in_plan")
    prerequisites = relationship("PrerequisiteEdge", back_populates="plan", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<StudyPlan {self.name}>"


class PlanSubject(db.Model):
    __tablename__ = "plan_subject"

    id: Mapped[int] = mapped_column(primary_key=True)
    plan_id: Mapped[int] = mapped_column(ForeignKey("study_plan.id", ondelete="CASCADE"), nullable=False)
    subject_id: Mapped[int] = mapped_column(ForeignKey("subject.id", ondelete="RESTRICT"), nullable=False)
    year_in_plan: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    term_in_plan: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    plan = relationship("StudyPlan", back_populates="subjects")
    subject = relationship("Subject")

    __table_args__ = (
        UniqueConstraint("plan_id", "subject_id", name="uq_plan_subject_plan_subject"),
    )


class PrerequisiteEdge(db.Model):
    __tablename__ = "prerequisite_edge"

    id: Mapped[int] = mapped_column(primary_key=True)
    plan_id: Mapped[int] = mapped_column(ForeignKey("study_plan.id", ondelete="CASCADE"), nullable=False)
    subject_id: Mapped[int] = mapped_column(ForeignKey("subject.id", ondelete="RESTRICT"), nullable=False)
    required_subject_id: Mapped[int] = mapped_column(ForeignKey("subject.id", ondelete="RESTRICT"), nullable=False)
    kind: Mapped[PrerequisiteKind] = mapped_column(Enum(PrerequisiteKind), nullable=False)

    plan = relationship("StudyPlan", back_populates="prerequisites")
    subject = relationship("Subject", foreign_keys=[subject_id])
    required_subject = relationship("Subject", foreign_keys=[required_subject_id])

    __table_args__ = (
        UniqueConstraint("plan_id", "subject_id", "required_subject_id", "kind", name="uq_prerequisite_edge"),
        CheckConstraint("subject_id <> required_subject_id", name="ck_prerequisite_not_self"),
        Index("ix_prerequisite_plan_subject_kind", "plan_id", "subject_id", "kind"),
    )


class Career(db.Model):
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(db.String(255), nullable=False, unique=True)
    department_id: Mapped[int | None] = mapped_column(ForeignKey("department.id", ondelete="SET NULL"))
    plan_id: Mapped[int] = mapped_column(ForeignKey("study_plan.id", ondelete="RESTRICT"), nullable=False)

    department = relationship("Department")
    plan = relationship("StudyPlan")

    def __repr__(self):
        return f"<Career {self.name}>"


# ---------- People ----------
class Student(db.Model):
    id: Mapped[int] = mapped_column(primary_key=True)
    full_name: Mapped[str] = mapped_column(db.String(255), nullable=False)
    file_number: Mapped[str] = mapped_column(db.String(50), nullable=False, unique=True)  # legajo
    email: Mapped[str | None] = mapped_column(db.String(255), unique=True)
    career_id: Mapped[int | None] = mapped_column(ForeignKey("career.id", ondelete="RESTRICT"), index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    career = relationship("Career")

    def __repr__(self):
        return f"<Student {self.file_number}>"


class Teacher(db.Model):
    id: Mapped[int] = mapped_column(primary_key=True)
    full_name: Mapped[str] = mapped_column(db.String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(db.String(255), unique=True)
    # роль преподавателя: снимается, когда у него не остаётся ни одной материи
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    assignments = relationship("TeacherAssignment", back_populates="teacher")

    def __repr__(self):
        return f"<Teacher {self.full_name}>"


class TeacherAssignment(db.Model):
    __tablename__ = "teacher_assignment"

    id: Mapped[int] = mapped_column(primary_key=True)
    teacher_id: Mapped[int] = mapped_column(ForeignKey("teacher.id", ondelete="CASCADE"), nullable=False)
    subject_id: Mapped[int] = mapped_column(ForeignKey("subject.id", ondelete="RESTRICT"), nullable=False, index=True)
    # номер «места» 1..TEACHERS_PER_SUBJECT: уникальность (subject_id, seat) держит лимит на уровне БД
    seat: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    teacher = relationship("Teacher", back_populates="assignments")
    subject = relationship("Subject")

    __table_args__ = (
        UniqueConstraint("teacher_id", "subject_id", name="uq_teacher_assignment_pair"),
        UniqueConstraint("subject_id", "seat", name="uq_teacher_assignment_seat"),
        CheckConstraint(f"seat >= 1 AND seat <= {TEACHERS_PER_SUBJECT}", name="ck_teacher_assignment_seat"),
    )


# ---------- Coursework ----------
class CourseOffering(db.Model):
    __tablename__ = "course_offering"

    id: Mapped[int] = mapped_column(primary_key=True)
    assignment_id: Mapped[int] = mapped_column(ForeignKey("teacher_assignment.id", ondelete="RESTRICT"), nullable=False)
    plan_subject_id: Mapped[int] = mapped_column(ForeignKey("plan_subject.id", ondelete="RESTRICT"), nullable=False, index=True)
    academic_year: Mapped[int] = mapped_column(Integer, nullable=False)
    term: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    published: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    published_at: Mapped[datetime | None] = mapped_column(DateTime)

    assignment = relationship("TeacherAssignment")
    plan_subject = relationship("PlanSubject")
    enrollments = relationship("CourseEnrollment", back_populates="offering", order_by="CourseEnrollment.id")

    @property
    def subject_id(self) -> int:
        return self.plan_subject.subject_id

    @property
    def teacher_id(self) -> int:
        return self.assignment.teacher_id


class CourseEnrollment(db.Model):
    __tablename__ = "course_enrollment"

    id: Mapped[int] = mapped_column(primary_key=True)
    student_id: Mapped[int] = mapped_column(ForeignKey("student.id", ondelete="RESTRICT"), nullable=False, index=True)
    offering_id: Mapped[int] = mapped_column(ForeignKey("course_offering.id", ondelete="RESTRICT"), nullable=False, index=True)
    status: Mapped[EnrollmentStatus] = mapped_column(Enum(EnrollmentStatus), nullable=False, default=EnrollmentStatus.PENDING)
    enrolled_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    student = relationship("Student")
    offering = relationship("CourseOffering", back_populates="enrollments")
    grade = relationship("GradeRecord", back_populates="enrollment", uselist=False, cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("student_id", "offering_id", name="uq_course_enrollment_student_offering"),
    )


class GradeRecord(db.Model):
    __tablename__ = "grade_record"

    id: Mapped[int] = mapped_column(primary_key=True)
    enrollment_id: Mapped[int] = mapped_column(ForeignKey("course_enrollment.id", ondelete="CASCADE"), nullable=False, unique=True)
    status: Mapped[GradeStatus] = mapped_column(Enum(GradeStatus), nullable=False, default=GradeStatus.UNGRADED)
    # несохранённая правка преподавателя; None: правок нет
    draft_status: Mapped[GradeStatus | None] = mapped_column(Enum(GradeStatus), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    enrollment = relationship("CourseEnrollment", back_populates="grade")


# ---------- Final exams ----------
class ExamBoard(db.Model):
    __tablename__ = "exam_board"

    id: Mapped[int] = mapped_column(primary_key=True)
    subject_id: Mapped[int] = mapped_column(ForeignKey("subject.id", ondelete="RESTRICT"), nullable=False, index=True)
    teacher_id: Mapped[int | None] = mapped_column(ForeignKey("teacher.id", ondelete="SET NULL"), index=True)
    exam_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    location: Mapped[str | None] = mapped_column(db.String(255))
    status: Mapped[ExamBoardStatus] = mapped_column(Enum(ExamBoardStatus), nullable=False, default=ExamBoardStatus.SCHEDULED)

    subject = relationship("Subject")
    teacher = relationship("Teacher")
    enrollments = relationship("ExamBoardEnrollment", back_populates="board")


class ExamBoardEnrollment(db.Model):
    __tablename__ = "exam_board_enrollment"

    id: Mapped[int] = mapped_column(primary_key=True)
    board_id: Mapped[int] = mapped_column(ForeignKey("exam_board.id", ondelete="RESTRICT"), nullable=False, index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey("student.id", ondelete="RESTRICT"), nullable=False, index=True)
    status: Mapped[BoardEnrollmentStatus] = mapped_column(Enum(BoardEnrollmentStatus), nullable=False,
                                                          default=BoardEnrollmentStatus.REGISTERED)
    grade: Mapped[float | None] = mapped_column(Numeric(4, 2, asdecimal=False))
    registered_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    board = relationship("ExamBoard", back_populates="enrollments")
    student = relationship("Student")

    __table_args__ = (
        UniqueConstraint("board_id", "student_id", name="uq_board_enrollment_board_student"),
    )


# ---------- Service tables ----------
class User(UserMixin, db.Model):
    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(db.String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(db.String(255), nullable=False)
    role: Mapped[str] = mapped_column(db.String(16), index=True, nullable=False, default=Role.ADMIN.value)
    is_active: Mapped[bool] = mapped_column(db.Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    teacher_id: Mapped[int | None] = mapped_column(ForeignKey("teacher.id", ondelete="SET NULL"), nullable=True)
    student_id: Mapped[int | None] = mapped_column(ForeignKey("student.id", ondelete="SET NULL"), nullable=True)

    def __repr__(self):
        return f"<User {self.email}>"


class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int | None] = mapped_column(Integer)
    action: Mapped[str] = mapped_column(db.String(100), nullable=False)
    entity: Mapped[str] = mapped_column(db.String(100), nullable=False)
    entity_id: Mapped[int | None] = mapped_column(Integer)
    payload: Mapped[dict | None] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class Notification(db.Model):
    id: Mapped[int] = mapped_column(primary_key=True)
    student_id: Mapped[int] = mapped_column(ForeignKey("student.id", ondelete="CASCADE"), nullable=False, index=True)
    kind: Mapped[str] = mapped_column(db.String(64), nullable=False)
    payload: Mapped[dict | None] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
