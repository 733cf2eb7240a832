"""Access-token handling for linked Google accounts.

Tokens are issued by the auth service; this module only reads them,
refreshes them ahead of expiry and writes refreshed values back.
"""

from datetime import datetime
from typing import Optional
import logging

import requests
from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from sqlalchemy.orm import Session

from ..core.config import settings
from ..models import LinkedAccount, AccountProvider
from .errors import AuthMissing, TokenRefreshFailed

logger = logging.getLogger(__name__)


def build_credentials(access_token: Optional[str], refresh_token: Optional[str]) -> Credentials:
    return Credentials(
        token=access_token,
        refresh_token=refresh_token,
        token_uri=settings.GOOGLE_TOKEN_URI,
        client_id=settings.GOOGLE_CLIENT_ID,
        client_secret=settings.GOOGLE_CLIENT_SECRET,
    )


def get_linked_account(db: Session, user_id: int) -> Optional[LinkedAccount]:
    return (
        db.query(LinkedAccount)
        .filter(
            LinkedAccount.user_id == user_id,
            LinkedAccount.provider == AccountProvider.GOOGLE,
        )
        .first()
    )


def require_linked_account(db: Session, user_id: int) -> LinkedAccount:
    """Return the user's Google account or raise :class:`AuthMissing`."""
    account = get_linked_account(db, user_id)
    if account is None or not account.access_token:
        raise AuthMissing("No Google account or access token")
    return account


def refresh_access_token(db: Session, account: LinkedAccount) -> LinkedAccount:
    """Refresh the account's access token and persist the new pair."""
    if not account.refresh_token:
        raise TokenRefreshFailed("No refresh token available")
    creds = build_credentials(account.access_token, account.refresh_token)
    try:
        creds.refresh(Request())
    except (RefreshError, TransportError) as exc:
        raise TokenRefreshFailed(str(exc)) from exc

    account.access_token = creds.token
    # Google only rotates the refresh token occasionally
    if creds.refresh_token:
        account.refresh_token = creds.refresh_token
    account.expires_at = creds.expiry
    db.add(account)
    db.commit()
    logger.info("Refreshed Google access token for user %s", account.user_id)
    return account


def get_valid_access_token(
    db: Session,
    account: Optional[LinkedAccount],
    now: Optional[datetime] = None,
) -> str:
    """Return an access token for ``account``, refreshing it when close to expiry.

    A failed refresh is logged and the existing token is returned anyway; the
    calendar call that follows may then fail and is recorded as a normal
    per-event or per-user error.
    """
    if account is None or not account.access_token:
        raise AuthMissing("No Google account or access token")
    now = now or datetime.utcnow()
    if account.expires_within(settings.GCAL_TOKEN_REFRESH_WINDOW_SECONDS, now):
        try:
            refresh_access_token(db, account)
        except TokenRefreshFailed as exc:
            logger.warning(
                "Token refresh failed for user %s, continuing with existing token: %s",
                account.user_id,
                exc,
            )
    return account.access_token


def revoke_tokens(account: LinkedAccount) -> bool:
    """Best-effort revocation at Google. Never raises."""
    token = account.refresh_token or account.access_token
    if not token:
        return False
    try:
        resp = requests.post(
            settings.GOOGLE_REVOKE_URI,
            params={"token": token},
            headers={"content-type": "application/x-www-form-urlencoded"},
            timeout=10,
        )
    except requests.RequestException as exc:
        logger.warning("Failed to revoke Google tokens for user %s: %s", account.user_id, exc)
        return False
    if resp.status_code != 200:
        logger.warning(
            "Google token revocation returned %s for user %s", resp.status_code, account.user_id
        )
        return False
    return True
