"""
Carrier proximity matcher.

Flow:
  1. Bounding box on last-seen coordinates (cheap, index-backed)
  2. Available and not banned / suspended, optional vehicle type
  3. Fetch at most `nearby_candidate_cap` rows, best tier and freshest first
  4. Exact haversine distance; drop anything outside the true circle
  5. Classify live / stale (stale cards keep their slot but lose coordinates)
  6. Rank: tier desc -> live first -> distance asc -> last seen desc

The cap bounds work per request; it is not a guarantee that the result is
the exhaustive nearest-N when a box holds more than `cap` carriers.
"""
import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import case, select
from sqlalchemy.ext.asyncio import AsyncSession

from carrier_match.config import get_settings
from carrier_match.models.carrier import CarrierProfile, CarrierVehicle
from carrier_match.models.user import User
from carrier_match.schemas.schemas import (
    CardLocation, CarrierCard, CarrierStatusEnum, PlanTierEnum,
    VehicleTypeEnum, VerificationStatusEnum,
)
from carrier_match.services.enforcement import as_utc, not_enforced_clause
from carrier_match.services.geo import bounding_box, haversine_km

logger = logging.getLogger(__name__)
settings = get_settings()

TIER_RANK: dict[str, int] = {"PLATINUM": 3, "GOLD": 2, "BASIC": 1}


def tier_rank(tier: Optional[str]) -> int:
    return TIER_RANK.get(str(tier or "").upper(), 0)


def is_live(last_seen_at: Optional[datetime], now: datetime, cutoff_seconds: int) -> bool:
    if last_seen_at is None:
        return False
    return now - as_utc(last_seen_at) <= timedelta(seconds=cutoff_seconds)


def _enum_or(enum_cls, raw, fallback):
    try:
        return enum_cls(str(raw or "").upper())
    except ValueError:
        return fallback


def build_card(
    profile: CarrierProfile,
    name: Optional[str],
    vehicle_type: Optional[str],
    origin: tuple[float, float],
    radius_km: float,
    now: datetime,
    cutoff_seconds: int,
) -> Optional[CarrierCard]:
    """None when the candidate has no usable position or sits outside the circle."""
    lat, lng = profile.last_seen_lat, profile.last_seen_lng
    if lat is None or lng is None or not (math.isfinite(lat) and math.isfinite(lng)):
        return None

    distance = haversine_km(origin[0], origin[1], lat, lng)
    if not math.isfinite(distance) or distance > radius_km:
        return None

    last_seen_at = as_utc(profile.last_seen_at)
    live = is_live(last_seen_at, now, cutoff_seconds)

    return CarrierCard(
        carrier_id=profile.id,
        user_id=profile.user_id,
        name=name,
        plan_tier=_enum_or(PlanTierEnum, profile.plan_tier, PlanTierEnum.BASIC),
        verification_status=_enum_or(
            VerificationStatusEnum, profile.verification_status, VerificationStatusEnum.UNVERIFIED
        ),
        status=_enum_or(CarrierStatusEnum, profile.status, CarrierStatusEnum.OFFLINE),
        vehicle_type=vehicle_type,
        distance_km=round(distance, 2),
        last_seen_at=last_seen_at,
        is_live=live,
        is_stale=not live,
        location=CardLocation(lat=lat, lng=lng, updated_at=last_seen_at) if live else None,
    )


def rank_cards(cards: list[CarrierCard]) -> list[CarrierCard]:
    def key(card: CarrierCard):
        seen = card.last_seen_at.timestamp() if card.last_seen_at else 0.0
        return (-tier_rank(card.plan_tier.value), card.is_stale, card.distance_km, -seen)

    return sorted(cards, key=key)


async def _current_vehicle_types(db: AsyncSession, carrier_ids: list[str]) -> dict[str, str]:
    """Newest vehicle type per carrier, one query for the whole candidate set."""
    if not carrier_ids:
        return {}
    result = await db.execute(
        select(CarrierVehicle.carrier_id, CarrierVehicle.type)
        .where(CarrierVehicle.carrier_id.in_(carrier_ids))
        .order_by(CarrierVehicle.carrier_id, CarrierVehicle.created_at.desc())
    )
    types: dict[str, str] = {}
    for carrier_id, vehicle_type in result.all():
        types.setdefault(carrier_id, vehicle_type)
    return types


async def find_nearby(
    db: AsyncSession,
    lat: float,
    lng: float,
    radius_km: float,
    vehicle_type: Optional[VehicleTypeEnum] = None,
    now: Optional[datetime] = None,
) -> list[CarrierCard]:
    """
    Inputs are expected already clamped. Returns ranked cards; an empty list
    is a normal answer.
    """
    now = now or datetime.now(timezone.utc)
    min_lat, max_lat, min_lng, max_lng = bounding_box(lat, lng, radius_km)

    stmt = (
        select(CarrierProfile, User.name)
        .outerjoin(User, User.id == CarrierProfile.user_id)
        .where(
            CarrierProfile.last_seen_lat.between(min_lat, max_lat),
            CarrierProfile.last_seen_lng.between(min_lng, max_lng),
            CarrierProfile.status == CarrierStatusEnum.AVAILABLE.value,
            not_enforced_clause(now),
        )
        .order_by(
            case(TIER_RANK, value=CarrierProfile.plan_tier, else_=0).desc(),
            CarrierProfile.last_seen_at.desc(),
        )
        .limit(settings.nearby_candidate_cap)
    )
    if vehicle_type is not None:
        stmt = stmt.where(CarrierProfile.vehicles.any(CarrierVehicle.type == vehicle_type.value))

    rows = (await db.execute(stmt)).all()
    vehicle_types = await _current_vehicle_types(db, [profile.id for profile, _ in rows])

    cards = []
    for profile, name in rows:
        card = build_card(
            profile,
            name,
            vehicle_types.get(profile.id),
            origin=(lat, lng),
            radius_km=radius_km,
            now=now,
            cutoff_seconds=settings.freshness_cutoff_seconds,
        )
        if card is not None:
            cards.append(card)

    ranked = rank_cards(cards)
    logger.info(
        "Nearby lat=%.5f lng=%.5f r=%.1fkm type=%s candidates=%d returned=%d",
        lat, lng, radius_km, vehicle_type.value if vehicle_type else None, len(rows), len(ranked),
    )
    return ranked
