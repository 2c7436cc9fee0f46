# blueprints/core/results.py
"""Единый формат ответа сервисного слоя.

Каждая публичная операция (guard, eligibility, grades) возвращает ``Result``:
бизнес-отказ: ожидаемый исход, а не исключение. Наружу исключения не выходят:
сбой хранилища откатывает сессию, пишется в лог и превращается в ``UNEXPECTED``.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field, asdict, is_dataclass
from enum import Enum
from functools import wraps
from typing import Any, Callable

from flask import jsonify
from sqlalchemy.exc import SQLAlchemyError

from extensions import db

log = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
    HAS_DEPENDENTS = "HAS_DEPENDENTS"
    INELIGIBLE = "INELIGIBLE"
    IMMUTABLE_STATE = "IMMUTABLE_STATE"
    UNAUTHORIZED = "UNAUTHORIZED"
    VALIDATION = "VALIDATION"
    UNEXPECTED = "UNEXPECTED"


# всё, что не перечислено,: бизнес-конфликт → 409
HTTP_STATUS = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.UNAUTHORIZED: 403,
    ErrorKind.VALIDATION: 422,
    ErrorKind.UNEXPECTED: 500,
}


@dataclass(frozen=True)
class Result:
    success: bool
    data: Any = None
    error_kind: ErrorKind | None = None
    message: str | None = None
    details: dict = field(default_factory=dict)

    @classmethod
    def ok(cls, data: Any = None) -> "Result":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, kind: ErrorKind, message: str, **details) -> "Result":
        return cls(success=False, error_kind=kind, message=message, details=details)

    def __bool__(self) -> bool:
        return self.success

    def to_dict(self) -> dict:
        if self.success:
            return {"ok": True, "data": _plain(self.data)}
        return {
            "ok": False,
            "error": self.error_kind.value,
            "message": self.message,
            "details": _plain(self.details),
        }


def _plain(val: Any) -> Any:
    """dataclass/Enum → JSON-совместимые структуры."""
    if is_dataclass(val) and not isinstance(val, type):
        return _plain(asdict(val))
    if isinstance(val, Enum):
        return val.value
    if isinstance(val, dict):
        return {str(k): _plain(v) for k, v in val.items()}
    if isinstance(val, (list, tuple, set, frozenset)):
        return [_plain(v) for v in val]
    return val


def service_call(fn: Callable[..., Result]) -> Callable[..., Result]:
    """Граница сервиса: инфраструктурные ошибки не пролетают наружу."""
    @wraps(fn)
    def wrapper(*args, **kwargs) -> Result:
        try:
            return fn(*args, **kwargs)
        except SQLAlchemyError:
            db.session.rollback()
            log.exception("storage failure in %s", fn.__qualname__,
                          extra={"event": "service_error", "error_kind": ErrorKind.UNEXPECTED.value})
            return Result.fail(ErrorKind.UNEXPECTED, "internal error")
    return wrapper


def render(result: Result, *, created: bool = False):
    """Result → (json, http status) для API-блюпринтов."""
    if result.success:
        return jsonify(result.to_dict()), (201 if created else 200)
    return jsonify(result.to_dict()), HTTP_STATUS.get(result.error_kind, 409)


def validation_error(ve):
    errs = ve.errors(include_url=False)
    for e in errs:
        if "ctx" in e and isinstance(e["ctx"], dict):
            e["ctx"] = {k: str(v) for k, v in e["ctx"].items()}
    return jsonify({"ok": False, "error": ErrorKind.VALIDATION.value, "details": errs}), 422
