# npm_wildcard/models.py
"""NPM certificate model and expiry arithmetic."""

from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an NPM timestamp ('2025-01-31 10:00:00', ISO 8601, '...Z').

    Naive values are taken as UTC. Returns None for anything unparseable.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def is_expired(expires_on: Any, now: datetime | None = None) -> bool:
    """Missing or unparseable expiry counts as expired."""
    expiry = parse_timestamp(expires_on)
    if expiry is None:
        return True
    return (now or utcnow()) > expiry


def will_expire_soon(expires_on: Any, warn_days: int = 30, now: datetime | None = None) -> bool:
    """Not expired, but expiring inside the warning window."""
    now = now or utcnow()
    if is_expired(expires_on, now):
        return False
    expiry = parse_timestamp(expires_on)
    return expiry <= now + timedelta(days=warn_days)


class Certificate(BaseModel):
    """A certificate record as returned by GET /nginx/certificates."""
    model_config = ConfigDict(extra="allow")

    id: int | str
    nice_name: str = ""
    provider: str = ""
    domain_names: list[str] = Field(default_factory=list)
    created_on: str | None = None
    expires_on: str | None = None
    meta: dict[str, Any] = Field(default_factory=dict)

    @field_validator("domain_names", mode="before")
    @classmethod
    def _coerce_domains(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [p.strip() for p in v.split(",") if p.strip()]
        return v

    @field_validator("created_on", "expires_on", mode="before")
    @classmethod
    def _stringify(cls, v):
        if v is None:
            return None
        return v.isoformat() if isinstance(v, datetime) else str(v)

    def expired(self, now: datetime | None = None) -> bool:
        return is_expired(self.expires_on, now)

    def expiring_soon(self, warn_days: int = 30, now: datetime | None = None) -> bool:
        return will_expire_soon(self.expires_on, warn_days, now)

    def expiry_sort_key(self) -> datetime:
        return parse_timestamp(self.expires_on) or datetime.min.replace(tzinfo=timezone.utc)

    def created_at(self) -> datetime | None:
        return parse_timestamp(self.created_on)


class IssuedCertificate(BaseModel):
    """PEM material harvested from certbot's live/ directory."""
    domain: str
    fullchain: str
    privkey: str
