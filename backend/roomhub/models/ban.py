import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import DateTime, ForeignKey, Uuid, UniqueConstraint
from ..db.session import Base, utcnow


class RoomBan(Base):
    __tablename__ = "room_bans"
    __table_args__ = (
        UniqueConstraint("room_id", "user_id", name="uq_room_bans_room_user"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    room_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    banned_by: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    banned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
