"""Pydantic schemas for the session/photo backend wire format."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SessionCreateRequest(BaseModel):
    site_name: str = Field(..., min_length=1)
    date: str = Field(..., description="ISO calendar date")
    start_lat: float
    start_lng: float
    device: str


class SessionCreateResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    session_id: str = Field(..., min_length=1)

    @field_validator("session_id", mode="before")
    @classmethod
    def coerce_id(cls, v: object) -> object:
        # some backends issue integer ids
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v
