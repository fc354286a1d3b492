"""SQLAlchemy models for telemetry history."""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Float, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .db import Base


class NmeaHourlyAggregate(Base):
    """Hourly roll-up of one telemetry parameter on one vessel."""

    __tablename__ = "nmea_data_hourly"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    yacht_id: Mapped[str] = mapped_column(String(128), nullable=False)
    parameter_name: Mapped[str] = mapped_column(String(64), nullable=False)
    hour_timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    avg_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    min_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    max_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    sample_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index("ix_nmea_data_hourly_lookup", "yacht_id", "parameter_name", "hour_timestamp"),
        CheckConstraint("sample_count >= 0", name="ck_nmea_data_hourly_sample_count"),
    )
