import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import DateTime, ForeignKey, Integer, Enum, Uuid, UniqueConstraint
import enum
from ..db.session import Base, utcnow


class Role(str, enum.Enum):
    owner = "owner"
    admin = "admin"
    participant = "participant"


class Participant(Base):
    __tablename__ = "participants"
    __table_args__ = (
        UniqueConstraint("room_id", "user_id", name="uq_participants_room_user"),
    )

    # integer key doubles as a join-order tiebreaker
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    room_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    role: Mapped[Role] = mapped_column(Enum(Role), default=Role.participant, nullable=False)

    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
