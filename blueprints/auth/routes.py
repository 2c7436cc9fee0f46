# blueprints/auth/routes.py
from __future__ import annotations
import logging
import time
from functools import wraps
from typing import Callable, Optional

from flask import Blueprint, request, jsonify, abort, current_app
from flask_login import login_user, logout_user, login_required, current_user
from flask_wtf.csrf import generate_csrf
from werkzeug.security import check_password_hash

from extensions import db, login_manager, csrf
from models import Role, Teacher, User

api_bp = Blueprint("auth_api", __name__)

log = logging.getLogger(__name__)

# ---- безопасные значения по умолчанию
DEFAULT_RL_MAX = 5
DEFAULT_RL_WIN = 300  # 5 минут
_login_attempts: dict[str, list[float]] = {}  # ключ: ip|email -> [timestamps]

@login_manager.user_loader
def load_user(uid: str) -> Optional[User]:
    try:
        return db.session.get(User, int(uid))
    except (TypeError, ValueError):
        return None

# ---------- rate limit ----------
def _rl_key(email: str) -> str:
    ip = request.headers.get("X-Forwarded-For", request.remote_addr or "0.0.0.0").split(",")[0].strip()
    return f"{ip}|{(email or '').lower()}"

def _rl_check_and_hit(email: str) -> bool:
    now = time.time()
    win = current_app.config.get("AUTH_RL_WINDOW", DEFAULT_RL_WIN)
    mx = current_app.config.get("AUTH_RL_MAX", DEFAULT_RL_MAX)
    key = _rl_key(email)
    bucket = _login_attempts.setdefault(key, [])
    # purge старых
    cutoff = now - win
    while bucket and bucket[0] < cutoff:
        bucket.pop(0)
    if len(bucket) >= mx:
        return False
    bucket.append(now)
    return True

# ---------- декораторы ролей ----------
def roles_required(*roles: str):
    def deco(fn: Callable):
        @wraps(fn)
        @login_required
        def wrapper(*args, **kwargs):
            if getattr(current_user, "role", None) not in roles:
                abort(403)
            return fn(*args, **kwargs)
        return wrapper
    return deco

admin_required = roles_required(Role.ADMIN.value)
# админу можно действовать за преподавателя (например, закрыть ведомость)
teacher_required = roles_required(Role.TEACHER.value, Role.ADMIN.value)
student_required = roles_required(Role.STUDENT.value)

# ---------- идентичность текущего пользователя ----------
def is_admin() -> bool:
    return getattr(current_user, "role", None) == Role.ADMIN.value

def current_student_id() -> int:
    sid = getattr(current_user, "student_id", None)
    if sid is None:
        abort(403)
    return sid

def current_teacher_id() -> Optional[int]:
    """teacher_id для проверки владения; у админа: None (проверка не нужна)."""
    if is_admin():
        return None
    tid = getattr(current_user, "teacher_id", None)
    if tid is None:
        # преподаватель без привязки к Teacher ничем владеть не может
        abort(403)
    teacher = db.session.get(Teacher, tid)
    if teacher is None or not teacher.is_active:
        # роль снята вместе с последней материей
        abort(403)
    return tid

# ---------- обработчики 400/401/403 ----------
@login_manager.unauthorized_handler
def _unauth():
    return jsonify({"ok": False, "error": "unauthorized"}), 401

@api_bp.app_errorhandler(400)
def _bad_request(e):
    return jsonify({"ok": False, "error": "bad_request", "message": getattr(e, "description", None)}), 400

@api_bp.app_errorhandler(403)
def _forbidden(e):
    return jsonify({"ok": False, "error": "forbidden"}), 403

# ---------- API ----------
@api_bp.get("/auth/csrf")
def api_csrf():
    token = generate_csrf()
    resp = jsonify({"csrf_token": token})
    resp.set_cookie("csrf_token", token, samesite="Lax", httponly=False, path="/")
    return resp

@api_bp.post("/auth/login")
def api_login():
    payload = request.get_json(silent=True) or request.form or {}
    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""

    if not email or not password:
        return jsonify({"ok": False, "error": "missing_credentials"}), 400

    # rate limit
    if not _rl_check_and_hit(email):
        log.warning("login rate limited", extra={"event": "login_rate_limited"})
        return jsonify({"ok": False, "error": "too_many_attempts"}), 429

    user: Optional[User] = User.query.filter_by(email=email).first()
    if not user or not user.password_hash or not check_password_hash(user.password_hash, password):
        return jsonify({"ok": False, "error": "invalid_credentials"}), 401

    if not user.is_active:
        return jsonify({"ok": False, "error": "inactive"}), 403

    login_user(user, remember=True)
    return jsonify({"ok": True, "user": {
        "id": user.id, "email": user.email, "role": user.role,
        "teacher_id": user.teacher_id, "student_id": user.student_id,
    }})

@api_bp.post("/auth/logout")
@login_required
def api_logout():
    logout_user()
    return jsonify({"ok": True})

@api_bp.get("/auth/me")
@login_required
def api_me():
    return jsonify({"ok": True, "user": {
        "id": current_user.id, "email": current_user.email, "role": current_user.role,
        "teacher_id": current_user.teacher_id, "student_id": current_user.student_id,
    }})

# логин должен быть доступен до получения сессии
csrf.exempt(api_login)
