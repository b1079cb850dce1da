"""Pydantic models for the structured paper analysis artifact."""

from __future__ import annotations

from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DataPoint(BaseModel):
    label: str = ""
    value: Optional[float] = None
    unit: Optional[str] = None

    @field_validator("value", mode="before")
    @classmethod
    def _numeric_or_none(cls, value: Any) -> Optional[float]:
        # Models write placeholders like "n/a" for values they cannot read off a chart.
        if value is None or isinstance(value, bool):
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None


class FigureData(BaseModel):
    caption: str = ""
    type: str = ""
    purpose: str = ""
    findings: List[str] = Field(default_factory=list)
    data_points: List[DataPoint] = Field(default_factory=list)


class MethodologyStage(BaseModel):
    stage_name: str
    steps: List[str] = Field(default_factory=list)


class PaperAnalysis(BaseModel):
    """Structured analysis returned for one document or text submission."""

    model_config = ConfigDict(extra="ignore")

    paper_title: str
    core_hypothesis: str
    methodology_summary: str
    methodology_steps: List[MethodologyStage] = Field(default_factory=list)
    key_results: List[str] = Field(default_factory=list)
    conclusions: str = ""
    limitations: str = ""
    figures_data: List[Union[FigureData, str]] = Field(default_factory=list)
