from typing import Optional

from carrier_match.schemas.schemas import VehicleTypeEnum

DEFAULT_VEHICLE_TYPE = VehicleTypeEnum.MOTORBIKE

VEHICLE_ALIASES: dict[str, VehicleTypeEnum] = {
    "BICYCLE": VehicleTypeEnum.BICYCLE,
    "BIKE": VehicleTypeEnum.BICYCLE,
    "MOTORBIKE": VehicleTypeEnum.MOTORBIKE,
    "MOTORCYCLE": VehicleTypeEnum.MOTORBIKE,
    "MOTO": VehicleTypeEnum.MOTORBIKE,
    "CAR": VehicleTypeEnum.CAR,
    "VAN": VehicleTypeEnum.VAN,
    "TRUCK": VehicleTypeEnum.TRUCK,
    "LORRY": VehicleTypeEnum.TRUCK,
}


def normalize_vehicle_type(raw: Optional[str]) -> Optional[VehicleTypeEnum]:
    """Alias lookup; None for anything unrecognised (search treats that as no filter)."""
    if not isinstance(raw, str):
        return None
    return VEHICLE_ALIASES.get(raw.strip().upper())


def coerce_vehicle_type(raw: Optional[str]) -> VehicleTypeEnum:
    """Registration variant: unknown tokens fall back to MOTORBIKE."""
    return normalize_vehicle_type(raw) or DEFAULT_VEHICLE_TYPE
