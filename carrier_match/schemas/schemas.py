import math
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, PrivateAttr, field_validator, model_validator
from pydantic.alias_generators import to_camel


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class CarrierStatusEnum(str, Enum):
    OFFLINE = "OFFLINE"
    AVAILABLE = "AVAILABLE"
    ON_TRIP = "ON_TRIP"


class PlanTierEnum(str, Enum):
    BASIC = "BASIC"
    GOLD = "GOLD"
    PLATINUM = "PLATINUM"


class VerificationStatusEnum(str, Enum):
    UNVERIFIED = "UNVERIFIED"
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


class VehicleTypeEnum(str, Enum):
    BICYCLE = "BICYCLE"
    MOTORBIKE = "MOTORBIKE"
    CAR = "CAR"
    VAN = "VAN"
    TRUCK = "TRUCK"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Input coercion helpers
# ---------------------------------------------------------------------------

def clean_str(value: Any, max_len: int) -> Optional[str]:
    """Trim a string and cap its length; anything else (or blank) becomes None."""
    if not isinstance(value, str):
        return None
    s = value.strip()
    if not s:
        return None
    return s[:max_len]


def to_finite_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        n = float(value)
    except (TypeError, ValueError):
        return None
    return n if math.isfinite(n) else None


# ---------------------------------------------------------------------------
# Registration schemas
# ---------------------------------------------------------------------------

MAX_PHOTO_KEYS = 8


class StationInput(BaseModel):
    lat: Optional[float] = None
    lng: Optional[float] = None
    label: Optional[str] = None

    # Keys the client sent with a non-null value, junk included.
    _supplied: frozenset[str] = PrivateAttr(default_factory=frozenset)

    @model_validator(mode="wrap")
    @classmethod
    def _track_supplied(cls, data: Any, handler):
        station = handler(data)
        if isinstance(data, dict):
            station._supplied = frozenset(k for k, v in data.items() if v is not None)
        return station

    def supplies(self, field: str) -> bool:
        return field in self._supplied

    @field_validator("lat", "lng", mode="before")
    @classmethod
    def _coord(cls, v: Any) -> Optional[float]:
        return to_finite_float(v)

    @field_validator("label", mode="before")
    @classmethod
    def _label(cls, v: Any) -> Optional[str]:
        return clean_str(v, 140)


class CarrierRegisterRequest(BaseModel):
    """
    Partial registration payload. Every field is optional; junk values are
    dropped rather than rejected so "ensure I exist" calls never fail on shape.
    Flat station fields and `plateNumber` are accepted for older clients.
    """

    model_config = ConfigDict(populate_by_name=True)

    phone: Optional[str] = None
    vehicle_type: Optional[str] = Field(default=None, validation_alias=AliasChoices("vehicleType"))
    vehicle_plate: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("vehiclePlate", "plateNumber")
    )
    station: Optional[StationInput] = None
    station_lat: Optional[float] = Field(default=None, validation_alias=AliasChoices("stationLat", "lat"))
    station_lng: Optional[float] = Field(default=None, validation_alias=AliasChoices("stationLng", "lng"))
    station_label: Optional[str] = Field(default=None, validation_alias=AliasChoices("stationLabel"))
    vehicle_photo_keys: list[str] = Field(
        default_factory=list, validation_alias=AliasChoices("vehiclePhotoKeys")
    )
    doc_photo_key: Optional[str] = Field(default=None, validation_alias=AliasChoices("docPhotoKey"))

    @field_validator("phone", "vehicle_plate", mode="before")
    @classmethod
    def _short_str(cls, v: Any) -> Optional[str]:
        return clean_str(v, 30)

    @field_validator("vehicle_type", mode="before")
    @classmethod
    def _vehicle_type(cls, v: Any) -> Optional[str]:
        return clean_str(v, 40)

    @field_validator("station_label", mode="before")
    @classmethod
    def _station_label(cls, v: Any) -> Optional[str]:
        return clean_str(v, 140)

    @field_validator("doc_photo_key", mode="before")
    @classmethod
    def _doc_key(cls, v: Any) -> Optional[str]:
        return clean_str(v, 240)

    @field_validator("station_lat", "station_lng", mode="before")
    @classmethod
    def _flat_coord(cls, v: Any) -> Optional[float]:
        return to_finite_float(v)

    @field_validator("station", mode="before")
    @classmethod
    def _station(cls, v: Any) -> Any:
        return v if isinstance(v, (dict, StationInput)) else None

    @field_validator("vehicle_photo_keys", mode="before")
    @classmethod
    def _photo_keys(cls, v: Any) -> list[str]:
        if not isinstance(v, list):
            return []
        keys = [k.strip() for k in v if isinstance(k, str) and k.strip()]
        return keys[:MAX_PHOTO_KEYS]

    # A nested `station` value the client sent wins over the flat aliases,
    # even when it does not parse; an explicit null falls through.

    @property
    def resolved_station_lat(self) -> Optional[float]:
        if self.station and self.station.supplies("lat"):
            return self.station.lat
        return self.station_lat

    @property
    def resolved_station_lng(self) -> Optional[float]:
        if self.station and self.station.supplies("lng"):
            return self.station.lng
        return self.station_lng

    @property
    def resolved_station_label(self) -> Optional[str]:
        if self.station and self.station.supplies("label"):
            return self.station.label
        return self.station_label

    @property
    def has_station(self) -> bool:
        return self.resolved_station_lat is not None and self.resolved_station_lng is not None

    @property
    def wants_profile_update(self) -> bool:
        return bool(self.phone or self.doc_photo_key or self.resolved_station_label or self.has_station)

    @property
    def wants_vehicle_update(self) -> bool:
        return bool(self.vehicle_type or self.vehicle_plate or self.vehicle_photo_keys)


class StationView(CamelModel):
    lat: Optional[float] = None
    lng: Optional[float] = None
    label: Optional[str] = None


class EnforcementView(CamelModel):
    banned: bool
    banned_at: Optional[datetime] = None
    banned_reason: Optional[str] = None
    suspended: bool
    suspended_until: Optional[datetime] = None


class CarrierProfileView(CamelModel):
    id: str
    user_id: str
    status: str
    plan_tier: str
    verification_status: str
    phone: Optional[str] = None
    vehicle_type: Optional[str] = None
    vehicle_plate: Optional[str] = None
    station: StationView
    enforcement: EnforcementView
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CarrierRegisterResponse(CamelModel):
    ok: bool = True
    already_registered: Optional[bool] = None
    update_blocked: Optional[bool] = None
    profile: CarrierProfileView


# ---------------------------------------------------------------------------
# Presence schemas
# ---------------------------------------------------------------------------

class LastSeenView(CamelModel):
    at: Optional[datetime] = None
    lat: Optional[float] = None
    lng: Optional[float] = None


class CarrierMeView(CarrierProfileView):
    name: Optional[str] = None
    last_seen: LastSeenView


class CarrierMeResponse(CamelModel):
    ok: bool = True
    has_profile: bool
    carrier: Optional[CarrierMeView] = None


class StatusUpdateRequest(BaseModel):
    status: Optional[str] = None


class StatusUpdateResponse(CamelModel):
    ok: bool = True
    status: CarrierStatusEnum
    last_seen_at: datetime


class LocationPingRequest(BaseModel):
    lat: Optional[float] = None
    lng: Optional[float] = None

    @field_validator("lat", "lng", mode="before")
    @classmethod
    def _coord(cls, v: Any) -> Optional[float]:
        return to_finite_float(v)


class LocationPingResponse(CamelModel):
    ok: bool = True
    last_seen_at: datetime
    lat: float
    lng: float


# ---------------------------------------------------------------------------
# Proximity schemas
# ---------------------------------------------------------------------------

class CardLocation(CamelModel):
    lat: float
    lng: float
    updated_at: datetime


class CarrierCard(CamelModel):
    carrier_id: str
    user_id: str
    name: Optional[str] = None
    plan_tier: PlanTierEnum
    verification_status: VerificationStatusEnum
    status: CarrierStatusEnum
    vehicle_type: Optional[str] = None
    distance_km: float
    last_seen_at: Optional[datetime] = None
    is_live: bool
    is_stale: bool
    location: Optional[CardLocation] = None


class NearbyQueryEcho(CamelModel):
    lat: float
    lng: float
    radius_km: float
    vehicle_type: Optional[VehicleTypeEnum] = None
    product_id: Optional[str] = None


class FreshnessPolicy(CamelModel):
    cutoff_seconds: int
    strategy: str = "include-stale-rank-lower"


class NearbyCarriersResponse(CamelModel):
    query: NearbyQueryEcho
    freshness: FreshnessPolicy
    results: list[CarrierCard]
