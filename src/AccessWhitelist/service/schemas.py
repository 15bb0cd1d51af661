"""Pydantic schemas for the HTTP surface."""

from __future__ import annotations

from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class AddressResponse(BaseModel):
    ip: str


class StatusResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ip: str
    whitelisted: bool
    expires_at: Optional[str] = Field(default=None, alias="expiresAt")
    time_remaining: Optional[str] = Field(default=None, alias="timeRemaining")


class WhitelistRequest(BaseModel):
    duration: Union[str, int, float, None] = None


class WhitelistResponse(BaseModel):
    message: str
    ip: str


class DependencyStatus(BaseModel):
    """Represents the health of a downstream dependency."""

    name: str
    status: str
    details: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    ledger_entries: int
    dependencies: List[DependencyStatus]
