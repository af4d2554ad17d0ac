"""Membership ledger: participants, roles and bans of each room."""

import logging
import uuid
from typing import List, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models import Participant, Role, Room, RoomBan, User
from .errors import ConflictError, ForbiddenError, InvalidStateError, NotFoundError, RoomFullError

logger = logging.getLogger(__name__)


class MembershipLedger:
    def __init__(self, db: Session):
        self.db = db

    def get(self, room_id: uuid.UUID, user_id: uuid.UUID) -> Participant | None:
        return (
            self.db.query(Participant)
            .filter(Participant.room_id == room_id, Participant.user_id == user_id)
            .first()
        )

    def require(self, room_id: uuid.UUID, user_id: uuid.UUID) -> Participant:
        participant = self.get(room_id, user_id)
        if not participant:
            raise NotFoundError("User is not a participant of this room")
        return participant

    def count(self, room_id: uuid.UUID) -> int:
        return self.db.query(func.count(Participant.id)).filter(Participant.room_id == room_id).scalar() or 0

    def add_participant(self, room: Room, user_id: uuid.UUID, role: Role = Role.participant) -> Participant:
        if self.get(room.id, user_id) is not None:
            raise ConflictError("User is already a participant")
        if self.is_banned(room.id, user_id):
            raise ForbiddenError("You are banned from this room")
        if self.count(room.id) >= room.max_participants:
            raise RoomFullError("Room is full")
        participant = Participant(room_id=room.id, user_id=user_id, role=role)
        self.db.add(participant)
        self.db.flush()
        logger.info("user %s joined room %s as %s", user_id, room.id, role.value)
        return participant

    def remove_participant(self, room_id: uuid.UUID, user_id: uuid.UUID) -> None:
        removed = (
            self.db.query(Participant)
            .filter(Participant.room_id == room_id, Participant.user_id == user_id)
            .delete(synchronize_session="fetch")
        )
        if removed:
            logger.info("user %s removed from room %s", user_id, room_id)

    def set_role(self, room_id: uuid.UUID, user_id: uuid.UUID, new_role: Role) -> Participant:
        participant = self.require(room_id, user_id)
        if participant.role == new_role:
            return participant
        if participant.role == Role.owner:
            raise InvalidStateError("The owner role can only change through an ownership transfer")
        if new_role == Role.owner:
            raise InvalidStateError("A room has exactly one owner")
        participant.role = new_role
        self.db.flush()
        logger.info("user %s in room %s is now %s", user_id, room_id, new_role.value)
        return participant

    def list_participants(self, room_id: uuid.UUID) -> List[Participant]:
        return (
            self.db.query(Participant)
            .filter(Participant.room_id == room_id)
            .order_by(Participant.joined_at.asc(), Participant.id.asc())
            .all()
        )

    def list_with_names(self, room_id: uuid.UUID) -> List[Tuple[Participant, str | None]]:
        return (
            self.db.query(Participant, User.display_name)
            .outerjoin(User, User.id == Participant.user_id)
            .filter(Participant.room_id == room_id)
            .order_by(Participant.joined_at.asc(), Participant.id.asc())
            .all()
        )

    def is_banned(self, room_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        return (
            self.db.query(RoomBan.id)
            .filter(RoomBan.room_id == room_id, RoomBan.user_id == user_id)
            .first()
            is not None
        )

    def ban(self, room_id: uuid.UUID, user_id: uuid.UUID, acting_user_id: uuid.UUID) -> RoomBan:
        self.remove_participant(room_id, user_id)
        entry = (
            self.db.query(RoomBan)
            .filter(RoomBan.room_id == room_id, RoomBan.user_id == user_id)
            .first()
        )
        if entry is None:
            entry = RoomBan(room_id=room_id, user_id=user_id, banned_by=acting_user_id)
            self.db.add(entry)
        self.db.flush()
        logger.info("user %s banned from room %s by %s", user_id, room_id, acting_user_id)
        return entry

    def unban(self, room_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        removed = (
            self.db.query(RoomBan)
            .filter(RoomBan.room_id == room_id, RoomBan.user_id == user_id)
            .delete(synchronize_session="fetch")
        )
        if removed:
            logger.info("user %s unbanned from room %s", user_id, room_id)
        return bool(removed)
