from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


def _utcnow() -> datetime:
    return datetime.now(UTC)


# ---------------------------
# fp_kv_slots: one JSON document per storage key
# ---------------------------


class KvSlot(Base):
    __tablename__ = "fp_kv_slots"

    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    # Serialized JSON document; the application owns the shape.
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"KvSlot(key={self.key!r}, bytes={len(self.value or '')})"
