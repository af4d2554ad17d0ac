import enum
import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text, DateTime, Integer, Enum, Uuid, UniqueConstraint
from ..db.session import Base, utcnow


class Visibility(str, enum.Enum):
    public = "public"
    private = "private"


class Room(Base):
    __tablename__ = "rooms"
    __table_args__ = (
        UniqueConstraint("code", name="uq_rooms_code"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    code: Mapped[str] = mapped_column(String(16), nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)

    visibility: Mapped[Visibility] = mapped_column(Enum(Visibility), default=Visibility.public, nullable=False)
    # bcrypt hash, null when the room is not password-protected
    password_hash: Mapped[str | None] = mapped_column(String(128), nullable=True)

    # identity lives outside this service, so no FK to users
    owner_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    max_participants: Mapped[int] = mapped_column(Integer, default=50, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def has_password(self) -> bool:
        return self.password_hash is not None

    @property
    def is_public(self) -> bool:
        return self.visibility == Visibility.public
