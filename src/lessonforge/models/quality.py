"""Quality metric models for generated lessons."""

from datetime import UTC, datetime
from typing import List

from pydantic import BaseModel, Field


class SectionMetrics(BaseModel):
    """Quality metrics for a single generated section."""

    section_name: str = Field(..., description="Section name")
    validation_score: int = Field(..., ge=0, le=100)
    attempt_count: int = Field(default=1, ge=0, description="Completion attempts")
    generation_time_ms: float = Field(default=0.0, ge=0)
    issue_count: int = Field(default=0, ge=0)
    warning_count: int = Field(default=0, ge=0)
    regenerated: bool = Field(default=False, description="More than one attempt")
    used_fallback: bool = Field(default=False)


class LessonQualityReport(BaseModel):
    """Aggregated quality report for one lesson generation run."""

    overall_score: int = Field(..., ge=0, le=100)
    sections: List[SectionMetrics] = Field(default_factory=list)
    total_generation_time_ms: float = 0.0
    total_regenerations: int = 0
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
