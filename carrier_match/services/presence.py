"""
Carrier self-service presence: own profile, availability toggle, location pings.
These are the writers of `status` and `last_seen_*` that the matcher reads.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from carrier_match.models.carrier import CarrierProfile
from carrier_match.models.user import User
from carrier_match.schemas.schemas import CarrierMeView, CarrierStatusEnum, LastSeenView
from carrier_match.services.enforcement import Enforcement, as_utc
from carrier_match.services.geo import clamp
from carrier_match.services.registry import load_current_vehicle, load_profile, profile_view

logger = logging.getLogger(__name__)


class CarrierNotFound(Exception):
    pass


class CarrierEnforced(Exception):
    def __init__(self, enforcement: Enforcement):
        self.enforcement = enforcement
        if enforcement.is_banned:
            message = "You are banned from carrier actions."
        else:
            message = "You are temporarily suspended from carrier actions."
        super().__init__(message)


async def get_own_profile(db: AsyncSession, user_id: str, now: Optional[datetime] = None) -> Optional[CarrierMeView]:
    now = now or datetime.now(timezone.utc)
    profile = await load_profile(db, user_id)
    if profile is None:
        return None

    vehicle = await load_current_vehicle(db, profile.id)
    name = (await db.execute(select(User.name).where(User.id == user_id))).scalar_one_or_none()

    view = profile_view(profile, now, vehicle).model_dump()
    if vehicle is None:
        # No vehicle row yet: report no type rather than the registration default.
        view["vehicle_type"] = None
    return CarrierMeView(
        **view,
        name=name,
        last_seen=LastSeenView(
            at=as_utc(profile.last_seen_at),
            lat=profile.last_seen_lat,
            lng=profile.last_seen_lng,
        ),
    )


async def _writable_profile(db: AsyncSession, user_id: str, now: datetime) -> CarrierProfile:
    profile = await load_profile(db, user_id)
    if profile is None:
        raise CarrierNotFound("Carrier profile not found. Complete onboarding first.")
    enforcement = Enforcement.of(profile, now)
    if enforcement.is_enforced:
        raise CarrierEnforced(enforcement)
    return profile


async def set_status(
    db: AsyncSession,
    user_id: str,
    status: CarrierStatusEnum,
    now: Optional[datetime] = None,
) -> datetime:
    now = now or datetime.now(timezone.utc)
    profile = await _writable_profile(db, user_id, now)

    await db.execute(
        update(CarrierProfile)
        .where(CarrierProfile.id == profile.id)
        .values(status=status.value, last_seen_at=now, updated_at=now)
    )
    await db.commit()
    logger.info("Carrier=%s status -> %s", profile.id, status.value)
    return now


async def record_location(
    db: AsyncSession,
    user_id: str,
    lat: float,
    lng: float,
    now: Optional[datetime] = None,
) -> tuple[datetime, float, float]:
    """Writes the ping atomically: timestamp and both coordinates in one UPDATE."""
    now = now or datetime.now(timezone.utc)
    lat = clamp(lat, -90, 90)
    lng = clamp(lng, -180, 180)
    profile = await _writable_profile(db, user_id, now)

    await db.execute(
        update(CarrierProfile)
        .where(CarrierProfile.id == profile.id)
        .values(last_seen_at=now, last_seen_lat=lat, last_seen_lng=lng, updated_at=now)
    )
    await db.commit()
    logger.debug("Carrier=%s ping %.5f,%.5f", profile.id, lat, lng)
    return now, lat, lng
