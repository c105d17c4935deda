from carrier_match.models.user import User
from carrier_match.models.carrier import CarrierProfile, CarrierVehicle

__all__ = ["User", "CarrierProfile", "CarrierVehicle"]
