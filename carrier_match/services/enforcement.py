"""
Carrier enforcement guard.

Bans are permanent until moderation clears `banned_at`; suspensions lift on
their own once `suspended_until` is in the past. The registry uses this to
refuse writes, and the proximity query mirrors the same predicate in SQL.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import or_

from carrier_match.models.carrier import CarrierProfile


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stores without timezone support hand back naive values; they are UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class Enforcement:
    banned_at: Optional[datetime]
    banned_reason: Optional[str]
    suspended_until: Optional[datetime]
    now: datetime

    @classmethod
    def of(cls, profile: CarrierProfile, now: Optional[datetime] = None) -> "Enforcement":
        return cls(
            banned_at=as_utc(profile.banned_at),
            banned_reason=profile.banned_reason,
            suspended_until=as_utc(profile.suspended_until),
            now=as_utc(now) if now else datetime.now(timezone.utc),
        )

    @property
    def is_banned(self) -> bool:
        return self.banned_at is not None

    @property
    def is_suspended(self) -> bool:
        return self.suspended_until is not None and self.suspended_until > self.now

    @property
    def is_enforced(self) -> bool:
        return self.is_banned or self.is_suspended


def not_enforced_clause(now: datetime):
    """SQL form of `not Enforcement.is_enforced` for use in WHERE clauses."""
    return (CarrierProfile.banned_at.is_(None)) & or_(
        CarrierProfile.suspended_until.is_(None),
        CarrierProfile.suspended_until <= now,
    )
