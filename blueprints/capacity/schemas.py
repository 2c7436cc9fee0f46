from __future__ import annotations
from pydantic import BaseModel, Field


class AssignmentIn(BaseModel):
    teacher_id: int = Field(gt=0)
    subject_id: int = Field(gt=0)
