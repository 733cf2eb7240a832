from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ..models.user import SyncMode, SyncStatus


class SyncModeUpdate(BaseModel):
    mode: SyncMode

    @field_validator("mode", mode="before")
    def normalize_mode(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v


class SyncState(BaseModel):
    enabled: bool
    pending: bool
    status: SyncStatus
    mode: SyncMode
    calendarId: Optional[str] = None
    lastSyncedAt: Optional[datetime] = None
    lastSyncError: Optional[str] = None
    lastSyncAttemptAt: Optional[datetime] = None


class CalendarStatusResponse(BaseModel):
    connected: bool
    sync: SyncState


class EnsureCalendarResponse(BaseModel):
    success: bool = True
    calendarId: str
    action: str
    message: str


class SyncRunResponse(BaseModel):
    success: bool = True
    created: int
    deleted: int
    errors: list[str]


class ModeSwitchResponse(SyncRunResponse):
    previousMode: SyncMode
    newMode: SyncMode
    message: str


class CronRunResponse(BaseModel):
    processed: int
    synced: int
    errors: list[str]


class CleanupPrimaryResponse(BaseModel):
    success: bool = True
    message: str
    found: int
    deleted: int
    errors: list[str]
