from __future__ import annotations
from typing import List
from pydantic import BaseModel, Field


class GradeIn(BaseModel):
    # допустимость статуса проверяет сервис (ungraded выставить нельзя)
    status: str = Field(min_length=1, max_length=20)


class GradeEditIn(GradeIn):
    enrollment_id: int = Field(gt=0)


class GradeBatchIn(BaseModel):
    edits: List[GradeEditIn] = Field(default_factory=list)

    def as_mapping(self) -> dict[int, str]:
        return {e.enrollment_id: e.status for e in self.edits}
