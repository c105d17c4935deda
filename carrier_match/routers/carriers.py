"""
Carriers search router: GET /carriers/near
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from carrier_match.config import get_settings
from carrier_match.database import get_db, require_carrier_tables
from carrier_match.middleware.auth import get_current_user_id
from carrier_match.middleware.deadline import within_deadline
from carrier_match.schemas.schemas import (
    FreshnessPolicy, NearbyCarriersResponse, NearbyQueryEcho, to_finite_float,
)
from carrier_match.services.geo import clamp
from carrier_match.services.proximity import find_nearby
from carrier_match.services.vehicles import normalize_vehicle_type

logger = logging.getLogger(__name__)
settings = get_settings()
router = APIRouter(prefix="/carriers", tags=["Carriers"])


@router.get("/near", response_model=NearbyCarriersResponse)
async def carriers_near(
    lat: str | None = Query(default=None),
    lng: str | None = Query(default=None),
    radius_km: str | None = Query(default=None, alias="radiusKm"),
    vehicle_type: str | None = Query(default=None, alias="vehicleType"),
    product_id: str | None = Query(default=None, alias="productId"),
    user_id: str = Depends(get_current_user_id),
    _tables: None = Depends(require_carrier_tables),
    db: AsyncSession = Depends(get_db),
):
    """
    Ranked carriers around a point.
    Stale carriers are kept but ranked after live ones of the same tier,
    with their coordinates withheld.
    """
    lat_f, lng_f, radius_f = to_finite_float(lat), to_finite_float(lng), to_finite_float(radius_km)
    if lat_f is None or lng_f is None or radius_f is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "Missing required query params: lat,lng,radiusKm",
                "expected": {"lat": "number", "lng": "number", "radiusKm": "number"},
            },
        )

    safe_lat = clamp(lat_f, -90, 90)
    safe_lng = clamp(lng_f, -180, 180)
    radius = clamp(radius_f, settings.nearby_min_radius_km, settings.nearby_max_radius_km)
    vt = normalize_vehicle_type(vehicle_type)
    product = (product_id or "").strip() or None

    results = await within_deadline(
        find_nearby(db, safe_lat, safe_lng, radius, vehicle_type=vt),
        "carriers near",
    )

    logger.info("carriers/near user=%s product=%s returned=%d", user_id, product, len(results))

    return NearbyCarriersResponse(
        query=NearbyQueryEcho(
            lat=safe_lat, lng=safe_lng, radius_km=radius, vehicle_type=vt, product_id=product,
        ),
        freshness=FreshnessPolicy(cutoff_seconds=settings.freshness_cutoff_seconds),
        results=results,
    )
