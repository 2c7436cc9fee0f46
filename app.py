from __future__ import annotations
import os
from flask import Flask
from config import config_map
from extensions import db, migrate, login_manager, csrf
from werkzeug.security import generate_password_hash
from sqlalchemy import inspect

def _seed_from_config(app):
    if not app.config.get("SEED_TEST_DATA"):
        return
    with app.app_context():
        # таблица user может ещё не быть создана (alembic upgrade и т.п.)
        if not inspect(db.engine).has_table("user"):
            return

        from models import User, Teacher, Student  # локальный импорт, чтобы избежать циклов
        created = 0
        for u in app.config.get("DEFAULT_USERS", []):
            if User.query.filter_by(email=u["email"]).first():
                continue
            user = User(
                email=u["email"],
                password_hash=generate_password_hash(u["password"]),
                role=u["role"],
                is_active=True,
            )
            te = u.get("teacher_email")
            if te:
                t = Teacher.query.filter_by(email=te).first()
                if t:
                    user.teacher_id = t.id
            fn = u.get("student_file_number")
            if fn:
                s = Student.query.filter_by(file_number=fn).first()
                if s:
                    user.student_id = s.id
            db.session.add(user)
            created += 1
        if created:
            db.session.commit()
            app.logger.info("default users seeded", extra={"event": "seed_users"})

def register_blueprints(app: Flask) -> None:
    from blueprints.core import bp as core_bp
    from blueprints.auth.routes import api_bp as auth_api_bp
    from blueprints.prerequisites.routes import api_bp as prerequisites_api_bp
    from blueprints.history.routes import api_bp as history_api_bp
    from blueprints.eligibility.routes import api_bp as eligibility_api_bp
    from blueprints.enrollment.routes import api_bp as enrollment_api_bp
    from blueprints.capacity.routes import api_bp as capacity_api_bp
    from blueprints.grades.routes import api_bp as grades_api_bp
    from blueprints.exams.routes import api_bp as exams_api_bp

    # core без префикса → '/health' в корне
    app.register_blueprint(core_bp)
    app.register_blueprint(auth_api_bp, url_prefix="/api/v1")
    app.register_blueprint(prerequisites_api_bp, url_prefix="/api/v1")
    app.register_blueprint(history_api_bp, url_prefix="/api/v1")
    app.register_blueprint(eligibility_api_bp, url_prefix="/api/v1")
    app.register_blueprint(enrollment_api_bp, url_prefix="/api/v1")
    app.register_blueprint(capacity_api_bp, url_prefix="/api/v1/admin")
    app.register_blueprint(grades_api_bp, url_prefix="/api/v1")
    app.register_blueprint(exams_api_bp, url_prefix="/api/v1")

def create_app(config_name: str | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    cfg_name = config_name or os.getenv("FLASK_CONFIG", "default")
    app.config.from_object(config_map[cfg_name])
    # --- ВАЖНО: изоляция БД в тестах ---
    # pytest всегда выставляет переменную окружения PYTEST_CURRENT_TEST.
    # Делаем БД в памяти, чтобы никакие изменения из одного теста не протекали в другой.
    if os.environ.get("PYTEST_CURRENT_TEST"):
        app.config["SQLALCHEMY_DATABASE_URI"] = "sqlite:///:memory:"

    try:
        os.makedirs(app.instance_path, exist_ok=True)
    except OSError:
        pass
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    register_blueprints(app)
    _seed_from_config(app)
    return app
