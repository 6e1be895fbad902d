"""Pydantic models validating status and settings updates."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ..config import RESET_TIME_PATTERN
from ..models.domain import BinStatus, ClusterStatus, RouteStatus, TruckStatus


class BinStatusUpdate(BaseModel):
    status: BinStatus
    current_fill_level: float = Field(..., ge=0, le=100, description="Fill level percentage.")


class BinFieldsUpdate(BaseModel):
    """Partial bin update; only fields that are set get validated."""

    capacity: Optional[float] = Field(default=None, gt=0)
    current_fill_level: Optional[float] = Field(default=None, ge=0, le=100)
    status: Optional[BinStatus] = None
    location: Optional[tuple[float, float]] = None
    geofence: Optional[list[tuple[float, float]]] = None

    @field_validator("location")
    @classmethod
    def validate_location(cls, value: Optional[tuple[float, float]]) -> Optional[tuple[float, float]]:
        if value is not None:
            lat, lon = value
            if not (-90 <= lat <= 90 and -180 <= lon <= 180):
                raise ValueError("location must be a valid (latitude, longitude) pair")
        return value


class TruckStatusUpdate(BaseModel):
    status: TruckStatus


class ClusterStatusUpdate(BaseModel):
    status: ClusterStatus


class RouteStatusUpdate(BaseModel):
    status: RouteStatus


class ResetTimeUpdate(BaseModel):
    reset_time: str = Field(..., description="Daily reset time in HH:MM (24h) format.")

    @field_validator("reset_time")
    @classmethod
    def validate_reset_time(cls, value: str) -> str:
        value = value.strip()
        if not RESET_TIME_PATTERN.match(value):
            raise ValueError("Invalid time format. Please use HH:MM format (e.g., '14:30').")
        return value

    @property
    def hour(self) -> int:
        return int(self.reset_time.split(":")[0])

    @property
    def minute(self) -> int:
        return int(self.reset_time.split(":")[1])
