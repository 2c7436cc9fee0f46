from __future__ import annotations
import os
from pathlib import Path

class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")
    BASE_DIR = Path(__file__).resolve().parent
    # SQLite file in project directory
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR / 'app.db'}")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JSON_SORT_KEYS = False

    # CSRF для JSON API: токен берём с /api/v1/auth/csrf и шлём заголовком
    WTF_CSRF_HEADERS = ["X-CSRF-Token", "X-CSRFToken"]
    WTF_CSRF_TIME_LIMIT = None

    # ---- правила учебной части ----
    FINAL_PASSING_GRADE = float(os.getenv("FINAL_PASSING_GRADE", "4"))       # нота >= 4: final aprobado
    EXAM_CANCEL_CUTOFF_HOURS = int(os.getenv("EXAM_CANCEL_CUTOFF_HOURS", "24"))  # отмена записи на mesa не позже, чем за 24ч
    EXAM_GRADE_MAX = 10.0

class DevConfig(BaseConfig):
    DEBUG = True
    SEED_TEST_DATA = True
    DEFAULT_USERS = [
        {"email": "admin@example.com", "password": "pass", "role": "ADMIN"},
        {"email": "t1@example.com",    "password": "pass", "role": "TEACHER",
         # привязать к существующему Teacher по email
         "teacher_email": "t1@example.com"},
        {"email": "s1@example.com",    "password": "pass", "role": "STUDENT",
         # привязка к Student по legajo
         "student_file_number": "A-0001"},
    ]

class TestConfig(BaseConfig):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    WTF_CSRF_ENABLED = False
    SEED_TEST_DATA = False
    # лимит логинов не должен мешать тестам, логинящимся много раз
    AUTH_RL_MAX = 10_000
    DEFAULT_USERS = []

class ProdConfig(BaseConfig):
    DEBUG = False
    SEED_TEST_DATA = False
    DEFAULT_USERS = []

config_map = {
    "dev": DevConfig,
    "test": TestConfig,
    "prod": ProdConfig,
    "default": DevConfig,
}
