"""
Carrier registry: idempotent profile registration.

Flow:
  1. Read the profile for the user (one query)
  2. Enforced (banned/suspended) -> echo current state, never write
  3. Nothing to change -> echo current state, never write
  4. Single INSERT ... ON CONFLICT (user_id) DO UPDATE, guarded by the
     enforcement predicate so a ban racing this request still wins
  5. Best-effort vehicle create/update in its own transaction
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from carrier_match.models.carrier import CarrierProfile, CarrierVehicle
from carrier_match.schemas.schemas import (
    CarrierProfileView, CarrierRegisterRequest, EnforcementView, StationView,
)
from carrier_match.services.enforcement import Enforcement, as_utc, not_enforced_clause
from carrier_match.services.vehicles import DEFAULT_VEHICLE_TYPE, coerce_vehicle_type

logger = logging.getLogger(__name__)

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


@dataclass
class RegistrationResult:
    profile: CarrierProfileView
    already_registered: Optional[bool] = None
    update_blocked: Optional[bool] = None


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def load_profile(db: AsyncSession, user_id: str) -> Optional[CarrierProfile]:
    result = await db.execute(
        select(CarrierProfile)
        .where(CarrierProfile.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def load_current_vehicle(db: AsyncSession, carrier_id: str) -> Optional[CarrierVehicle]:
    """The current vehicle is simply the newest row for the carrier."""
    result = await db.execute(
        select(CarrierVehicle)
        .where(CarrierVehicle.carrier_id == carrier_id)
        .order_by(CarrierVehicle.created_at.desc())
        .limit(1)
    )
    return result.scalars().first()


def profile_view(
    profile: CarrierProfile,
    now: datetime,
    vehicle: Optional[CarrierVehicle] = None,
) -> CarrierProfileView:
    enforcement = Enforcement.of(profile, now)
    return CarrierProfileView(
        id=profile.id,
        user_id=profile.user_id,
        status=profile.status,
        plan_tier=profile.plan_tier,
        verification_status=profile.verification_status,
        phone=profile.phone,
        vehicle_type=vehicle.type if vehicle else DEFAULT_VEHICLE_TYPE.value,
        vehicle_plate=vehicle.registration if vehicle else None,
        station=StationView(
            lat=profile.station_lat,
            lng=profile.station_lng,
            label=profile.station_label,
        ),
        enforcement=EnforcementView(
            banned=enforcement.is_banned,
            banned_at=enforcement.banned_at,
            banned_reason=enforcement.banned_reason,
            suspended=enforcement.is_suspended,
            suspended_until=enforcement.suspended_until,
        ),
        created_at=as_utc(profile.created_at),
        updated_at=as_utc(profile.updated_at),
    )


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------

async def register_carrier(
    db: AsyncSession,
    user_id: str,
    payload: CarrierRegisterRequest,
    now: Optional[datetime] = None,
) -> RegistrationResult:
    now = now or datetime.now(timezone.utc)
    wants_update = payload.wants_profile_update or payload.wants_vehicle_update

    existing = await load_profile(db, user_id)
    if existing is not None:
        if Enforcement.of(existing, now).is_enforced:
            logger.info(
                "Registration blocked for enforced carrier=%s user=%s (wants_update=%s)",
                existing.id, user_id, wants_update,
            )
            return await _current_state(db, existing, now, update_blocked=wants_update)
        if not wants_update:
            return await _current_state(db, existing, now)

    profile = await _upsert_profile(db, user_id, payload, now)

    if Enforcement.of(profile, now).is_enforced:
        # Enforcement landed after our read; the guarded upsert left the row untouched.
        logger.warning("Carrier=%s became enforced mid-registration; update skipped", profile.id)
        return await _current_state(db, profile, now, update_blocked=wants_update)

    # Snapshot before the vehicle step: a rollback there expires `profile`,
    # so nothing below may touch it.
    view = profile_view(profile, now)
    carrier_id = profile.id

    vehicle = await _sync_vehicle(db, carrier_id, payload)
    if vehicle is not None:
        view.vehicle_type = vehicle.type
        view.vehicle_plate = vehicle.registration
    else:
        view.vehicle_type = coerce_vehicle_type(payload.vehicle_type).value
        view.vehicle_plate = payload.vehicle_plate

    logger.info("Registered carrier=%s user=%s", carrier_id, user_id)
    return RegistrationResult(profile=view)


async def _current_state(
    db: AsyncSession,
    profile: CarrierProfile,
    now: datetime,
    update_blocked: Optional[bool] = None,
) -> RegistrationResult:
    vehicle = await load_current_vehicle(db, profile.id)
    return RegistrationResult(
        profile=profile_view(profile, now, vehicle),
        already_registered=True,
        update_blocked=update_blocked,
    )


def _profile_changes(payload: CarrierRegisterRequest, now: datetime) -> dict[str, Any]:
    """Only the supplied fields, plus the touch of last_seen_at."""
    changes: dict[str, Any] = {"last_seen_at": now}
    if payload.phone:
        changes["phone"] = payload.phone
    if payload.doc_photo_key:
        changes["doc_photo_key"] = payload.doc_photo_key
    if payload.resolved_station_label:
        changes["station_label"] = payload.resolved_station_label
    if payload.has_station:
        changes["station_lat"] = payload.resolved_station_lat
        changes["station_lng"] = payload.resolved_station_lng
    return changes


async def _upsert_profile(
    db: AsyncSession,
    user_id: str,
    payload: CarrierRegisterRequest,
    now: datetime,
) -> CarrierProfile:
    """
    One constrained write keyed on the unique user_id. Two concurrent first
    registrations both land here; the loser's insert turns into an update of
    the winner's row instead of a duplicate-key error.
    """
    dialect = db.get_bind().dialect.name
    insert = _DIALECT_INSERTS.get(dialect)
    if insert is None:
        raise RuntimeError(f"Carrier upsert is not supported on dialect {dialect!r}")

    changes = _profile_changes(payload, now)
    stmt = insert(CarrierProfile).values(
        id=str(uuid.uuid4()),
        user_id=user_id,
        status="OFFLINE",
        plan_tier="BASIC",
        verification_status="PENDING",
        **changes,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id"],
        set_={**changes, "updated_at": now},
        where=not_enforced_clause(now),
    )
    await db.execute(stmt)
    await db.commit()

    profile = await load_profile(db, user_id)
    if profile is None:
        raise RuntimeError(f"Carrier profile for user {user_id} vanished after upsert")
    return profile


async def _sync_vehicle(
    db: AsyncSession,
    carrier_id: str,
    payload: CarrierRegisterRequest,
) -> Optional[CarrierVehicle]:
    """
    Create the first vehicle, or patch the current one when the caller sent
    vehicle fields. Runs after the profile commit; failures are logged and
    reported as None, never raised.
    """
    try:
        vehicle = await load_current_vehicle(db, carrier_id)
        if vehicle is None:
            vehicle = CarrierVehicle(
                carrier_id=carrier_id,
                type=coerce_vehicle_type(payload.vehicle_type).value,
                registration=payload.vehicle_plate,
                photo_keys=list(payload.vehicle_photo_keys),
            )
            db.add(vehicle)
        elif payload.wants_vehicle_update:
            if payload.vehicle_type:
                vehicle.type = coerce_vehicle_type(payload.vehicle_type).value
            if payload.vehicle_plate:
                vehicle.registration = payload.vehicle_plate
            if payload.vehicle_photo_keys:
                vehicle.photo_keys = list(payload.vehicle_photo_keys)
        else:
            return vehicle
        await db.commit()
        return vehicle
    except Exception as exc:
        await db.rollback()
        logger.warning("Vehicle write failed for carrier=%s (profile kept): %s", carrier_id, exc)
        return None
