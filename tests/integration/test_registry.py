"""
Integration tests for carrier registration against a real (SQLite) store.
"""
from datetime import timedelta

import pytest
from sqlalchemy import func, select, text
from sqlalchemy.exc import InvalidRequestError

from carrier_match.models import CarrierProfile, CarrierVehicle, User
from carrier_match.schemas.schemas import CarrierRegisterRequest
from carrier_match.services import registry
from carrier_match.services.registry import _upsert_profile, register_carrier


def _payload(**body) -> CarrierRegisterRequest:
    return CarrierRegisterRequest.model_validate(body)


async def _count(db, model, **filters) -> int:
    stmt = select(func.count()).select_from(model)
    for column, value in filters.items():
        stmt = stmt.where(getattr(model, column) == value)
    return (await db.execute(stmt)).scalar_one()


@pytest.mark.asyncio
class TestFirstRegistration:
    async def test_empty_body_creates_offline_basic_profile(self, db, now):
        db.add(User(id="u-1", name="Wanjiku"))
        await db.commit()

        result = await register_carrier(db, "u-1", _payload(), now)

        assert result.already_registered is None
        assert result.update_blocked is None
        view = result.profile
        assert view.user_id == "u-1"
        assert view.status == "OFFLINE"
        assert view.plan_tier == "BASIC"
        assert view.verification_status == "PENDING"
        assert view.vehicle_type == "MOTORBIKE"
        assert view.enforcement.banned is False
        assert await _count(db, CarrierProfile, user_id="u-1") == 1
        assert await _count(db, CarrierVehicle, carrier_id=view.id) == 1

    async def test_full_payload_is_stored(self, db, now):
        payload = _payload(
            phone=" +254700000001 ",
            vehicleType="bike",
            plateNumber="KMEA 123B",
            vehiclePhotoKeys=["v/1.jpg", "v/2.jpg"],
            docPhotoKey="docs/id.jpg",
            station={"lat": -1.2864, "lng": 36.8172, "label": "CBD stage"},
        )
        result = await register_carrier(db, "u-2", payload, now)

        view = result.profile
        assert view.phone == "+254700000001"
        assert view.vehicle_type == "BICYCLE"
        assert view.vehicle_plate == "KMEA 123B"
        assert view.station.label == "CBD stage"
        assert view.station.lat == pytest.approx(-1.2864)

        vehicle = (await db.execute(select(CarrierVehicle))).scalar_one()
        assert vehicle.photo_keys == ["v/1.jpg", "v/2.jpg"]
        profile = (await db.execute(select(CarrierProfile))).scalar_one()
        assert profile.doc_photo_key == "docs/id.jpg"

    async def test_no_local_user_row_required(self, db, now):
        # `users` belongs to the accounts service; registration must not depend on it.
        assert (await db.execute(text("PRAGMA foreign_keys"))).scalar_one() == 1

        result = await register_carrier(db, "u-accounts-only", _payload(vehicleType="van"), now)

        assert result.profile.user_id == "u-accounts-only"
        assert result.profile.vehicle_type == "VAN"
        assert await _count(db, User) == 0
        assert await _count(db, CarrierVehicle, carrier_id=result.profile.id) == 1


@pytest.mark.asyncio
class TestRepeatRegistration:
    async def test_second_empty_call_is_idempotent(self, db, now):
        first = await register_carrier(db, "u-1", _payload(phone="0700"), now)
        second = await register_carrier(db, "u-1", _payload(), now + timedelta(minutes=5))

        assert second.already_registered is True
        assert second.update_blocked is None
        assert second.profile.id == first.profile.id
        assert second.profile.phone == "0700"
        assert await _count(db, CarrierProfile) == 1
        assert await _count(db, CarrierVehicle) == 1

    async def test_partial_update_keeps_other_fields(self, db, now):
        await register_carrier(db, "u-1", _payload(phone="0700", stationLabel="Westlands"), now)
        result = await register_carrier(db, "u-1", _payload(phone="0711"), now)

        assert result.profile.phone == "0711"
        assert result.profile.station.label == "Westlands"
        assert await _count(db, CarrierProfile) == 1

    async def test_vehicle_fields_patch_current_vehicle(self, db, now):
        await register_carrier(db, "u-1", _payload(vehicleType="motorbike"), now)
        result = await register_carrier(db, "u-1", _payload(vehicleType="van", vehiclePlate="KDA 001"), now)

        assert result.profile.vehicle_type == "VAN"
        assert result.profile.vehicle_plate == "KDA 001"
        assert await _count(db, CarrierVehicle) == 1

    async def test_concurrent_first_registration_converges(self, db, now):
        # Both callers missed the existing row; the second insert becomes an update.
        await _upsert_profile(db, "u-race", _payload(phone="0700"), now)
        profile = await _upsert_profile(db, "u-race", _payload(stationLabel="Kilimani"), now)

        assert await _count(db, CarrierProfile, user_id="u-race") == 1
        assert profile.phone == "0700"
        assert profile.station_label == "Kilimani"


@pytest.mark.asyncio
class TestEnforcedRegistration:
    async def test_banned_update_is_blocked(self, db, now, make_carrier):
        carrier = await make_carrier(user_id="u-banned", phone="0700", banned_at=now - timedelta(days=1))

        result = await register_carrier(db, "u-banned", _payload(phone="0799"), now)

        assert result.already_registered is True
        assert result.update_blocked is True
        assert result.profile.phone == "0700"
        assert result.profile.enforcement.banned is True
        assert result.profile.enforcement.banned_reason == "fraud"
        stored = await db.get(CarrierProfile, carrier.id)
        assert stored.phone == "0700"

    async def test_banned_empty_call_is_not_flagged_blocked(self, db, now, make_carrier):
        await make_carrier(user_id="u-banned", banned_at=now)

        result = await register_carrier(db, "u-banned", _payload(), now)

        assert result.already_registered is True
        assert result.update_blocked is False

    async def test_active_suspension_blocks_update(self, db, now, make_carrier):
        await make_carrier(user_id="u-susp", phone="0700", suspended_until=now + timedelta(hours=2))

        result = await register_carrier(db, "u-susp", _payload(phone="0799"), now)

        assert result.update_blocked is True
        assert result.profile.enforcement.suspended is True
        assert result.profile.phone == "0700"

    async def test_expired_suspension_allows_update(self, db, now, make_carrier):
        await make_carrier(user_id="u-susp", phone="0700", suspended_until=now - timedelta(hours=1))

        result = await register_carrier(db, "u-susp", _payload(phone="0799"), now)

        assert result.update_blocked is None
        assert result.profile.phone == "0799"
        assert result.profile.enforcement.suspended is False

    async def test_guarded_upsert_leaves_banned_row_untouched(self, db, now, make_carrier):
        # A ban landing between the read and the write must still win.
        carrier = await make_carrier(user_id="u-late-ban", phone="0700", banned_at=now - timedelta(minutes=1))

        profile = await _upsert_profile(db, "u-late-ban", _payload(phone="0799"), now)

        assert profile.id == carrier.id
        assert profile.phone == "0700"


@pytest.mark.asyncio
class TestVehicleBestEffort:
    async def test_vehicle_failure_keeps_profile(self, db, now, monkeypatch):
        async def broken(*args, **kwargs):
            raise RuntimeError("vehicle store unavailable")

        monkeypatch.setattr(registry, "load_current_vehicle", broken)

        result = await register_carrier(db, "u-1", _payload(phone="0700", vehicleType="van", vehiclePlate="KDA 9"), now)

        assert result.profile.phone == "0700"
        assert result.profile.vehicle_type == "VAN"
        assert result.profile.vehicle_plate == "KDA 9"
        assert await _count(db, CarrierProfile, user_id="u-1") == 1
        assert await _count(db, CarrierVehicle) == 0

    async def test_vehicle_failure_after_profile_commit_is_logged(self, db, now, monkeypatch, caplog):
        async def broken(*args, **kwargs):
            raise RuntimeError("vehicle store unavailable")

        monkeypatch.setattr(registry, "load_current_vehicle", broken)

        with caplog.at_level("INFO", logger="carrier_match.services.registry"):
            result = await register_carrier(db, "u-2", _payload(stationLabel="Ngara"), now)

        messages = [r.getMessage() for r in caplog.records]
        assert any("Vehicle write failed" in m for m in messages)
        assert any(f"Registered carrier={result.profile.id}" in m for m in messages)


@pytest.mark.asyncio
class TestCarrierMapping:
    async def test_vehicles_collection_never_lazy_loads(self, db, make_carrier):
        carrier = await make_carrier()
        profile = await registry.load_profile(db, carrier.user_id)

        with pytest.raises(InvalidRequestError):
            profile.vehicles


def test_vehicle_has_no_back_reference():
    assert not hasattr(CarrierVehicle, "carrier")
