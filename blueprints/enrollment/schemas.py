from __future__ import annotations
from typing import Optional
from pydantic import BaseModel, Field


class CourseEnrollmentIn(BaseModel):
    offering_id: int = Field(gt=0)
    # заполняет только админ, студент записывается сам
    student_id: Optional[int] = Field(None, gt=0)


class FinalEnrollmentIn(BaseModel):
    board_id: int = Field(gt=0)
    student_id: Optional[int] = Field(None, gt=0)
