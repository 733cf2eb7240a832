# backend/calmirror/models/user.py

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, Column, Integer, String, Enum, DateTime, Text
from sqlalchemy.orm import relationship
from .base import BaseModel
import enum


class SyncMode(str, enum.Enum):
    """Which events a user's external calendar mirrors."""

    FULL = "FULL"
    CUSTOM = "CUSTOM"


class SyncStatus(str, enum.Enum):
    """Lifecycle of a user's calendar mirror.

    DISABLED -> (provision) -> PENDING -> (sync pass) -> SYNCED
    SYNCED -> (target set changed) -> PENDING
    any -> (unrecoverable auth failure) -> ERROR, with sync switched off
    """

    DISABLED = "DISABLED"
    PENDING = "PENDING"
    SYNCED = "SYNCED"
    ERROR = "ERROR"


class User(BaseModel):
    __tablename__ = "users"

    id        = Column(Integer, primary_key=True, index=True)
    email     = Column(String, unique=True, index=True, nullable=False)
    name      = Column(String, nullable=True)
    is_active = Column(Boolean, default=True)

    # Calendar mirror state
    gcal_sync_enabled = Column(Boolean, nullable=False, default=False)
    gcal_sync_pending = Column(Boolean, nullable=False, default=False, index=True)
    gcal_sync_mode    = Column(Enum(SyncMode), nullable=False, default=SyncMode.FULL)
    gcal_sync_status  = Column(Enum(SyncStatus), nullable=False, default=SyncStatus.DISABLED)
    gcal_calendar_id  = Column(String, nullable=True)
    gcal_last_synced_at       = Column(DateTime, nullable=True)
    gcal_last_sync_error      = Column(Text, nullable=True)
    gcal_last_sync_attempt_at = Column(DateTime, nullable=True)

    linked_accounts = relationship(
        "LinkedAccount",
        back_populates="user",
        cascade="all, delete-orphan",
    )
    subscriptions = relationship(
        "Subscription",
        back_populates="user",
        cascade="all, delete-orphan",
    )
    event_follows = relationship(
        "EventFollow",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    # ── sync-state transitions ─────────────────────────────────────────────
    # The booleans are what the batch query filters on; the status column is
    # the explicit state. Only these helpers write either.

    def enable_sync(self, mode: Optional[SyncMode] = None) -> None:
        self.gcal_sync_enabled = True
        self.gcal_sync_pending = True
        self.gcal_sync_status = SyncStatus.PENDING
        self.gcal_sync_mode = mode or self.gcal_sync_mode or SyncMode.FULL

    def mark_pending(self) -> bool:
        """Flag the mirror for the next batch run. No-op when sync is off."""
        if not self.gcal_sync_enabled:
            return False
        self.gcal_sync_pending = True
        self.gcal_sync_status = SyncStatus.PENDING
        return True

    def mark_synced(self, at: datetime, error_summary: Optional[str] = None) -> None:
        self.gcal_sync_pending = False
        self.gcal_sync_status = SyncStatus.SYNCED
        self.gcal_last_synced_at = at
        self.gcal_last_sync_attempt_at = at
        self.gcal_last_sync_error = error_summary

    def mark_retry(self, at: datetime, message: str) -> None:
        """Record a failed pass that the next batch run should retry."""
        self.gcal_sync_pending = True
        self.gcal_sync_status = SyncStatus.PENDING
        self.gcal_last_sync_attempt_at = at
        self.gcal_last_sync_error = message

    def mark_error(self, at: datetime, message: str) -> None:
        """Record an unrecoverable failure and switch the mirror off."""
        self.gcal_sync_enabled = False
        self.gcal_sync_pending = False
        self.gcal_sync_status = SyncStatus.ERROR
        self.gcal_last_sync_attempt_at = at
        self.gcal_last_sync_error = message

    def disable_sync(self) -> None:
        self.gcal_sync_enabled = False
        self.gcal_sync_pending = False
        self.gcal_sync_status = SyncStatus.DISABLED
        self.gcal_calendar_id = None
        self.gcal_last_synced_at = None
        self.gcal_last_sync_error = None
        self.gcal_last_sync_attempt_at = None
