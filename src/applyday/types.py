from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

KNOWN_STATUSES = ("applied", "interviewed", "offered", "rejected")
DEFAULT_STATUS = "applied"

RecordId = int | str


class StatsSnapshot(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    total: int = Field(default=0, ge=0, strict=True)
    rejected: int = Field(default=0, ge=0, strict=True)
    interviewed: int = Field(default=0, ge=0, strict=True)
    offered: int = Field(default=0, ge=0, strict=True)
    applied: int = Field(default=0, ge=0, strict=True)


class FunnelStage(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    raw_count: int
    percentage_of_applied: float


class Funnel(BaseModel):
    model_config = ConfigDict(frozen=True)

    stages: list[FunnelStage]
    overall_conversion_pct: float
    snapshot: StatsSnapshot


class DescriptionPart(BaseModel):
    model_config = ConfigDict(extra="ignore")

    text: str = ""

    @field_validator("text", mode="before")
    @classmethod
    def blank_if_null(cls, value: Any) -> Any:
        return "" if value is None else value


class ApplicationFields(BaseModel):
    """Editable field set of an application, as posted to the records service."""

    company: str = ""
    job_title: str = ""
    job_description: str = ""
    status: str = DEFAULT_STATUS
    stage_notes: str = ""

    @field_validator("status")
    @classmethod
    def validate_status(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("status must not be empty")
        return value

    def to_payload(self) -> dict[str, str]:
        return self.model_dump()


class ApplicationRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: RecordId
    company: str = ""
    job_title: str = ""
    job_description: str = ""
    apply_description: list[DescriptionPart] = Field(default_factory=list)
    status: str = DEFAULT_STATUS
    stage_notes: str = ""

    @field_validator("company", "job_title", "job_description", "stage_notes", mode="before")
    @classmethod
    def blank_if_null(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("status", mode="before")
    @classmethod
    def default_status_if_blank(cls, value: Any) -> Any:
        return value or DEFAULT_STATUS

    @field_validator("apply_description", mode="before")
    @classmethod
    def empty_if_null(cls, value: Any) -> Any:
        return [] if value is None else value

    @property
    def description_text(self) -> str:
        if self.apply_description:
            return self.apply_description[0].text
        return self.job_description

    def to_fields(self) -> ApplicationFields:
        return ApplicationFields(
            company=self.company,
            job_title=self.job_title,
            job_description=self.description_text,
            status=self.status,
            stage_notes=self.stage_notes,
        )
