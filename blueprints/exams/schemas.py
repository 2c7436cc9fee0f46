from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel, Field, field_validator


class ExamBoardIn(BaseModel):
    subject_id: int = Field(gt=0)
    exam_at: datetime
    location: Optional[str] = Field(None, max_length=255)
    # админ создаёт mesa от имени преподавателя
    teacher_id: Optional[int] = Field(None, gt=0)

    @field_validator("exam_at")
    @classmethod
    def naive_utc(cls, v: datetime) -> datetime:
        # в БД даты хранятся как naive UTC
        if v.tzinfo is not None:
            v = v.astimezone(timezone.utc).replace(tzinfo=None)
        return v


class ExamGradeIn(BaseModel):
    grade: Optional[float] = None
