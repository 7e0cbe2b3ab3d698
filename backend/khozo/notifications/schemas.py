"""Notification request schemas."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ScheduleRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    opportunity_id: str = Field(..., alias="opportunityId")


class DispatchRequest(BaseModel):
    limit: int | None = Field(None, ge=1, le=1000)


class TokenRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=500)
    platform: Literal["android", "web", "ios"] = "web"


class TokenRemoveRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=500)
