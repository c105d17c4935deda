"""
Carrier self-service router: POST /carrier/register, GET /carrier/me,
                              POST /carrier/me/status, POST /carrier/me/location
"""
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from carrier_match.database import get_db, require_carrier_tables
from carrier_match.middleware.auth import get_current_user_id
from carrier_match.middleware.deadline import within_deadline
from carrier_match.middleware.idempotency import check_idempotency, store_idempotency_result
from carrier_match.schemas.schemas import (
    CarrierMeResponse, CarrierRegisterRequest, CarrierRegisterResponse, CarrierStatusEnum,
    LocationPingRequest, LocationPingResponse, StatusUpdateRequest, StatusUpdateResponse,
)
from carrier_match.services.presence import (
    CarrierEnforced, CarrierNotFound, get_own_profile, record_location, set_status,
)
from carrier_match.services.registry import register_carrier

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/carrier", tags=["Carrier"])

REGISTER_SCOPE = "carrier-register"


@router.post("/register", response_model=CarrierRegisterResponse, response_model_exclude_unset=True)
async def register(
    request: Request,
    payload: Optional[CarrierRegisterRequest] = Body(default=None),
    user_id: str = Depends(get_current_user_id),
    _tables: None = Depends(require_carrier_tables),
    db: AsyncSession = Depends(get_db),
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
):
    """
    Create or update the caller's carrier profile.
    - Empty body: "ensure exists", no write when the profile is already there.
    - Banned/suspended: 200 with current state and `updateBlocked`, never a write.
    """
    if idempotency_key:
        cached = await check_idempotency(request, REGISTER_SCOPE, user_id)
        if cached:
            return cached

    result = await within_deadline(
        register_carrier(db, user_id, payload or CarrierRegisterRequest()),
        "carrier register",
    )

    flags = {}
    if result.already_registered is not None:
        flags["already_registered"] = result.already_registered
    if result.update_blocked is not None:
        flags["update_blocked"] = result.update_blocked
    response = CarrierRegisterResponse(ok=True, profile=result.profile, **flags)

    if idempotency_key:
        body = response.model_dump(mode="json", by_alias=True, exclude_unset=True)
        await store_idempotency_result(REGISTER_SCOPE, user_id, idempotency_key, 200, body)

    return response


@router.get("/me", response_model=CarrierMeResponse)
async def me(
    user_id: str = Depends(get_current_user_id),
    _tables: None = Depends(require_carrier_tables),
    db: AsyncSession = Depends(get_db),
):
    carrier = await within_deadline(get_own_profile(db, user_id), "carrier me")
    return CarrierMeResponse(ok=True, has_profile=carrier is not None, carrier=carrier)


def _translate(exc: Exception) -> HTTPException:
    if isinstance(exc, CarrierNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))


@router.post("/me/status", response_model=StatusUpdateResponse)
async def update_status(
    payload: Optional[StatusUpdateRequest] = Body(default=None),
    user_id: str = Depends(get_current_user_id),
    _tables: None = Depends(require_carrier_tables),
    db: AsyncSession = Depends(get_db),
):
    """Toggle availability (OFFLINE / AVAILABLE / ON_TRIP)."""
    raw = (payload.status if payload and payload.status else "").strip().upper()
    try:
        new_status = CarrierStatusEnum(raw)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid status. Expected OFFLINE, AVAILABLE, or ON_TRIP.",
        )

    try:
        seen_at = await within_deadline(set_status(db, user_id, new_status), "carrier status")
    except (CarrierNotFound, CarrierEnforced) as exc:
        raise _translate(exc)
    return StatusUpdateResponse(ok=True, status=new_status, last_seen_at=seen_at)


@router.post("/me/location", response_model=LocationPingResponse)
async def update_location(
    payload: Optional[LocationPingRequest] = Body(default=None),
    user_id: str = Depends(get_current_user_id),
    _tables: None = Depends(require_carrier_tables),
    db: AsyncSession = Depends(get_db),
):
    """Location ping from the carrier app; feeds live/stale classification."""
    if payload is None or payload.lat is None or payload.lng is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="lat and lng are required numbers")

    try:
        seen_at, lat, lng = await within_deadline(
            record_location(db, user_id, payload.lat, payload.lng), "carrier location"
        )
    except (CarrierNotFound, CarrierEnforced) as exc:
        raise _translate(exc)
    return LocationPingResponse(ok=True, last_seen_at=seen_at, lat=lat, lng=lng)
