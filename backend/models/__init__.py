from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


def _new_session_id() -> str:
    return str(uuid.uuid4())


class Mission(Base):
    __tablename__ = "missions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    title: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    brief: Mapped[str] = mapped_column(Text, nullable=False)
    objective: Mapped[str | None] = mapped_column(Text)
    opening: Mapped[str | None] = mapped_column(Text)
    mission_prompt: Mapped[str | None] = mapped_column(Text)
    mission_type: Mapped[str | None] = mapped_column(String(40))


class Session(Base):
    __tablename__ = "sessions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_session_id)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    mission_id: Mapped[int | None] = mapped_column(ForeignKey("missions.id"))
    actions_remaining: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    stats_json: Mapped[dict | None] = mapped_column(JSONB)
    state_json: Mapped[dict | None] = mapped_column(JSONB)


class Turn(Base):
    __tablename__ = "turns"
    __table_args__ = (UniqueConstraint("session_id", "idx", name="uq_turns_session_idx"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    session_id: Mapped[str] = mapped_column(ForeignKey("sessions.id"), nullable=False)
    idx: Mapped[int] = mapped_column(Integer, nullable=False)
    player_input: Mapped[str] = mapped_column(String(50), nullable=False)
    narrative: Mapped[str | None] = mapped_column(Text)
    summary_json: Mapped[list | None] = mapped_column(JSONB)
    debug_json: Mapped[dict | None] = mapped_column(JSONB)
