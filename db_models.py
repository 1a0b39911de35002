from __future__ import annotations

import uuid
from datetime import datetime
from sqlalchemy import JSON, Boolean, DateTime, Float, Index, Integer, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class VerifiedForecastRecord(Base):
    __tablename__ = "verified_forecasts"

    record_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    forecast_id: Mapped[str] = mapped_column(String(128), nullable=False)
    subject_a: Mapped[str] = mapped_column(String(256), nullable=False)
    subject_b: Mapped[str | None] = mapped_column(String(256), nullable=True)
    evaluated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    evaluated_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    winner_correct: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    interval_hit_rate_80: Mapped[float | None] = mapped_column(Float, nullable=True)
    interval_hit_rate_95: Mapped[float | None] = mapped_column(Float, nullable=True)
    mae: Mapped[float | None] = mapped_column(Float, nullable=True)
    mape: Mapped[float | None] = mapped_column(Float, nullable=True)
    direction_accuracy: Mapped[float | None] = mapped_column(Float, nullable=True)
    points: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    __table_args__ = (
        Index("ix_verified_forecasts_forecast_evaluated", "forecast_id", "evaluated_at"),
        Index("ix_verified_forecasts_evaluated", "evaluated_at"),
    )


class ForecastRunRecord(Base):
    __tablename__ = "forecast_runs"

    data_hash: Mapped[str] = mapped_column(String(128), primary_key=True)
    subject_a: Mapped[str] = mapped_column(String(256), nullable=False)
    subject_b: Mapped[str] = mapped_column(String(256), nullable=False)
    timeframe: Mapped[str] = mapped_column(String(32), nullable=False)
    geo: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    generated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    horizon_end: Mapped[str] = mapped_column(String(10), nullable=False)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    evaluated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_forecast_runs_due", "evaluated_at", "horizon_end"),
        Index("ix_forecast_runs_pair", "subject_a", "subject_b", "timeframe", "geo", "generated_at"),
    )
