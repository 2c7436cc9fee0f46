"""initial schema: plans, prerequisites, enrollments, grades, exam boards"""
from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

# SQLAlchemy Enum хранит имена членов enum
PREREQ_KIND = sa.Enum("FOR_COURSEWORK", "FOR_FINAL", name="prerequisitekind")
ENROLLMENT_STATUS = sa.Enum("PENDING", "REGULAR", "FAILED", "WITHDRAWN", name="enrollmentstatus")
GRADE_STATUS = sa.Enum("UNGRADED", "APPROVED", "FAILED", "ABSENT", name="gradestatus")
BOARD_STATUS = sa.Enum("SCHEDULED", "FINISHED", "CANCELLED", name="examboardstatus")
BOARD_ENROLLMENT_STATUS = sa.Enum("REGISTERED", "PRESENT", "ABSENT", "APPROVED", "FAILED", "CANCELLED",
                                  name="boardenrollmentstatus")

def upgrade():
    op.create_table(
        "department",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
    )
    op.create_table(
        "subject",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
    )
    op.create_index("ix_subject_code", "subject", ["code"], unique=True)

    op.create_table(
        "study_plan",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("creation_year", sa.Integer(), nullable=False),
        sa.Column("duration", sa.String(50), nullable=False),
    )
    op.create_table(
        "plan_subject",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("plan_id", sa.Integer(), sa.ForeignKey("study_plan.id", ondelete="CASCADE"), nullable=False),
        sa.Column("subject_id", sa.Integer(), sa.ForeignKey("subject.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("year_in_plan", sa.Integer(), nullable=False),
        sa.Column("term_in_plan", sa.Integer(), nullable=False),
        sa.UniqueConstraint("plan_id", "subject_id", name="uq_plan_subject_plan_subject"),
    )
    op.create_table(
        "prerequisite_edge",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("plan_id", sa.Integer(), sa.ForeignKey("study_plan.id", ondelete="CASCADE"), nullable=False),
        sa.Column("subject_id", sa.Integer(), sa.ForeignKey("subject.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("required_subject_id", sa.Integer(), sa.ForeignKey("subject.id", ondelete="RESTRICT"),
                  nullable=False),
        sa.Column("kind", PREREQ_KIND, nullable=False),
        sa.UniqueConstraint("plan_id", "subject_id", "required_subject_id", "kind", name="uq_prerequisite_edge"),
        sa.CheckConstraint("subject_id <> required_subject_id", name="ck_prerequisite_not_self"),
    )
    op.create_index("ix_prerequisite_plan_subject_kind", "prerequisite_edge", ["plan_id", "subject_id", "kind"])

    op.create_table(
        "career",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("department_id", sa.Integer(), sa.ForeignKey("department.id", ondelete="SET NULL")),
        sa.Column("plan_id", sa.Integer(), sa.ForeignKey("study_plan.id", ondelete="RESTRICT"), nullable=False),
    )
    op.create_table(
        "student",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("file_number", sa.String(50), nullable=False, unique=True),
        sa.Column("email", sa.String(255), unique=True),
        sa.Column("career_id", sa.Integer(), sa.ForeignKey("career.id", ondelete="RESTRICT")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_index("ix_student_career_id", "student", ["career_id"])

    op.create_table(
        "teacher",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), unique=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_table(
        "teacher_assignment",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("teacher_id", sa.Integer(), sa.ForeignKey("teacher.id", ondelete="CASCADE"), nullable=False),
        sa.Column("subject_id", sa.Integer(), sa.ForeignKey("subject.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("seat", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("teacher_id", "subject_id", name="uq_teacher_assignment_pair"),
        sa.UniqueConstraint("subject_id", "seat", name="uq_teacher_assignment_seat"),
        sa.CheckConstraint("seat >= 1 AND seat <= 2", name="ck_teacher_assignment_seat"),
    )
    op.create_index("ix_teacher_assignment_subject_id", "teacher_assignment", ["subject_id"])

    op.create_table(
        "course_offering",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("assignment_id", sa.Integer(), sa.ForeignKey("teacher_assignment.id", ondelete="RESTRICT"),
                  nullable=False),
        sa.Column("plan_subject_id", sa.Integer(), sa.ForeignKey("plan_subject.id", ondelete="RESTRICT"),
                  nullable=False),
        sa.Column("academic_year", sa.Integer(), nullable=False),
        sa.Column("term", sa.Integer(), nullable=False),
        sa.Column("published", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("published_at", sa.DateTime()),
    )
    op.create_index("ix_course_offering_plan_subject_id", "course_offering", ["plan_subject_id"])

    op.create_table(
        "course_enrollment",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("student.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("offering_id", sa.Integer(), sa.ForeignKey("course_offering.id", ondelete="RESTRICT"),
                  nullable=False),
        sa.Column("status", ENROLLMENT_STATUS, nullable=False),
        sa.Column("enrolled_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("student_id", "offering_id", name="uq_course_enrollment_student_offering"),
    )
    op.create_index("ix_course_enrollment_student_id", "course_enrollment", ["student_id"])
    op.create_index("ix_course_enrollment_offering_id", "course_enrollment", ["offering_id"])

    op.create_table(
        "grade_record",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("enrollment_id", sa.Integer(), sa.ForeignKey("course_enrollment.id", ondelete="CASCADE"),
                  nullable=False, unique=True),
        sa.Column("status", GRADE_STATUS, nullable=False),
        sa.Column("draft_status", GRADE_STATUS, nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "exam_board",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("subject_id", sa.Integer(), sa.ForeignKey("subject.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("teacher_id", sa.Integer(), sa.ForeignKey("teacher.id", ondelete="SET NULL")),
        sa.Column("exam_at", sa.DateTime(), nullable=False),
        sa.Column("location", sa.String(255)),
        sa.Column("status", BOARD_STATUS, nullable=False),
    )
    op.create_index("ix_exam_board_subject_id", "exam_board", ["subject_id"])
    op.create_index("ix_exam_board_teacher_id", "exam_board", ["teacher_id"])

    op.create_table(
        "exam_board_enrollment",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("board_id", sa.Integer(), sa.ForeignKey("exam_board.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("student.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("status", BOARD_ENROLLMENT_STATUS, nullable=False),
        sa.Column("grade", sa.Numeric(4, 2)),
        sa.Column("registered_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("board_id", "student_id", name="uq_board_enrollment_board_student"),
    )
    op.create_index("ix_exam_board_enrollment_board_id", "exam_board_enrollment", ["board_id"])
    op.create_index("ix_exam_board_enrollment_student_id", "exam_board_enrollment", ["student_id"])

    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", sa.String(16), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("teacher_id", sa.Integer(), sa.ForeignKey("teacher.id", ondelete="SET NULL")),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("student.id", ondelete="SET NULL")),
    )
    op.create_index("ix_user_email", "user", ["email"], unique=True)
    op.create_index("ix_user_role", "user", ["role"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("entity", sa.String(100), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "notification",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("student.id", ondelete="CASCADE"), nullable=False),
        sa.Column("kind", sa.String(64), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_notification_student_id", "notification", ["student_id"])

def downgrade():
    for table in (
        "notification", "audit_logs", "user", "exam_board_enrollment", "exam_board", "grade_record",
        "course_enrollment", "course_offering", "teacher_assignment", "teacher", "student", "career",
        "prerequisite_edge", "plan_subject", "study_plan", "subject", "department",
    ):
        op.drop_table(table)
