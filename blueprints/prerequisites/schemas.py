from __future__ import annotations
from pydantic import BaseModel, Field

from models import PrerequisiteKind


class PrerequisiteIn(BaseModel):
    plan_id: int = Field(gt=0)
    subject_id: int = Field(gt=0)
    required_subject_id: int = Field(gt=0)
    kind: PrerequisiteKind
