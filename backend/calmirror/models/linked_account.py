import enum
from datetime import datetime, timedelta
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Enum, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import BaseModel


class AccountProvider(str, enum.Enum):
    GOOGLE = "google"


class LinkedAccount(BaseModel):
    """OAuth tokens for an external account, written by the auth service.

    The calendar mirror only reads these and persists refreshed tokens.
    """

    __tablename__ = "linked_accounts"
    __table_args__ = (UniqueConstraint("user_id", "provider", name="uq_linked_accounts_user_provider"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    provider = Column(
        # Stored as the lowercase provider id the auth service writes
        Enum(
            AccountProvider,
            name="accountprovider",
            values_callable=lambda provider: [p.value for p in provider],
        ),
        nullable=False,
        index=True,
    )
    provider_account_id = Column(String, nullable=True)
    access_token = Column(String, nullable=True)
    refresh_token = Column(String, nullable=True)
    expires_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="linked_accounts")

    def expires_within(self, seconds: int, now: datetime) -> bool:
        """True when the access token expires inside the given window.

        Accounts without a recorded expiry are treated as still valid.
        """
        if self.expires_at is None:
            return False
        return self.expires_at <= now + timedelta(seconds=seconds)
