"""Auth-related data models."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, Field

# Tokens count as expired this long before their actual expiry
EXPIRY_DELTA = timedelta(seconds=10)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Credential(BaseModel):
    """Access/refresh token pair with its expiry."""
    access_token: str
    refresh_token: str = ""
    token_type: str = "Bearer"
    expiry: datetime | None = Field(default=None, description="UTC expiry; None never expires")

    def is_expired(self, now: datetime | None = None) -> bool:
        """True when the access token can no longer be used."""
        if self.expiry is None:
            return False
        now = now or utcnow()
        return self.expiry - EXPIRY_DELTA <= now

    def seconds_remaining(self, now: datetime | None = None) -> int | None:
        if self.expiry is None:
            return None
        now = now or utcnow()
        return max(0, int((self.expiry - now).total_seconds()))


class TokenResponse(BaseModel):
    """Response from the Spotify token endpoint."""
    access_token: str
    token_type: str = "Bearer"
    expires_in: int = 3600
    refresh_token: str | None = None
    scope: str | None = None

    def to_credential(self, previous_refresh_token: str = "", now: datetime | None = None) -> Credential:
        """Build a Credential, keeping the old refresh token when none was issued."""
        now = now or utcnow()
        return Credential(
            access_token=self.access_token,
            refresh_token=self.refresh_token or previous_refresh_token,
            token_type=self.token_type,
            expiry=now + timedelta(seconds=self.expires_in),
        )


class TokenStatus(BaseModel):
    """Current state of the stored credential."""
    has_token: bool
    is_expired: bool
    expires_at: datetime | None = None
    seconds_remaining: int | None = None

    @classmethod
    def from_credential(cls, credential: Credential | None, now: datetime | None = None) -> TokenStatus:
        if credential is None:
            return cls(has_token=False, is_expired=True)
        now = now or utcnow()
        return cls(
            has_token=True,
            is_expired=credential.is_expired(now),
            expires_at=credential.expiry,
            seconds_remaining=credential.seconds_remaining(now),
        )
