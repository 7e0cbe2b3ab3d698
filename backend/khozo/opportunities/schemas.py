"""Opportunity request/response schemas.

NotificationPreferences is the single typed shape of reminder settings; it is
validated here and read back from the JSON column through the same model.
"""

import datetime as dt
import enum
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from .models import OpportunityCategory


class Channel(enum.StrEnum):
    PUSH = "push"
    IN_APP = "in_app"
    EMAIL = "email"  # reserved, never scheduled


class NotificationPreferences(BaseModel):
    enabled: bool = True
    channels: list[Channel] = Field(default_factory=lambda: [Channel.PUSH, Channel.IN_APP])
    days_before: list[int] = Field(default_factory=lambda: [7, 3, 1])

    @field_validator("days_before")
    @classmethod
    def _normalize_days(cls, value: list[int]) -> list[int]:
        for days in value:
            if days < 0 or days > 365:
                raise ValueError("days_before values must be between 0 and 365")
        return sorted(set(value), reverse=True)

    @field_validator("channels")
    @classmethod
    def _dedupe_channels(cls, value: list[Channel]) -> list[Channel]:
        return list(dict.fromkeys(value))


class ImportantDate(BaseModel):
    date: dt.date
    confidence: Literal["verified", "estimated"] = "estimated"


ImportantDateKey = Literal["application_start", "application_end", "exam_date", "admit_card_date", "result_date"]


class Eligibility(BaseModel):
    state: str | None = Field(None, max_length=100)
    min_age: int | None = Field(None, ge=0, le=100)
    max_age: int | None = Field(None, ge=0, le=100)
    education: str | None = Field(None, max_length=100)
    gender: str | None = Field(None, max_length=20)


class OpportunityCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: str = Field("", max_length=20_000)
    url: str = Field("", max_length=1000)
    category: OpportunityCategory = OpportunityCategory.OTHER
    program_type: str = Field("", max_length=50)
    tags: list[str] = Field(default_factory=list, max_length=50)
    eligibility: Eligibility = Field(default_factory=Eligibility)
    important_dates: dict[ImportantDateKey, ImportantDate] = Field(default_factory=dict)
    deadline: dt.datetime | None = None
    notification_preferences: NotificationPreferences = Field(default_factory=NotificationPreferences)

    @field_validator("tags")
    @classmethod
    def _clean_tags(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(t.strip() for t in value if t and t.strip()))
