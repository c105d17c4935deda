import uuid
from datetime import datetime, timezone
from sqlalchemy import JSON, String, Float, DateTime, ForeignKey, Index, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from carrier_match.database import Base


class CarrierProfile(Base):
    __tablename__ = "carrier_profiles"
    __table_args__ = (
        Index("idx_carrier_profiles_last_seen_pos", "last_seen_lat", "last_seen_lng"),
        Index("idx_carrier_profiles_station", "station_lat", "station_lng"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    # Accounts-service user id. No foreign key: `users` belongs to that service.
    user_id: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    phone: Mapped[str | None] = mapped_column(String(30), nullable=True)

    # OFFLINE | AVAILABLE | ON_TRIP
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="OFFLINE", index=True)
    # BASIC | GOLD | PLATINUM
    plan_tier: Mapped[str] = mapped_column(String(20), nullable=False, default="BASIC", index=True)
    # UNVERIFIED | PENDING | VERIFIED | REJECTED
    verification_status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")

    station_lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    station_lng: Mapped[float | None] = mapped_column(Float, nullable=True)
    station_label: Mapped[str | None] = mapped_column(String(140), nullable=True)
    doc_photo_key: Mapped[str | None] = mapped_column(String(240), nullable=True)

    # Written by the location ping path; lat/lng always move together.
    last_seen_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    last_seen_lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    last_seen_lng: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Set by moderation only
    banned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    banned_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    suspended_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    vehicles: Mapped[list["CarrierVehicle"]] = relationship(lazy="raise")


class CarrierVehicle(Base):
    __tablename__ = "carrier_vehicles"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    carrier_id: Mapped[str] = mapped_column(
        String, ForeignKey("carrier_profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # BICYCLE | MOTORBIKE | CAR | VAN | TRUCK
    type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    registration: Mapped[str | None] = mapped_column(String(32), nullable=True)
    photo_keys: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
