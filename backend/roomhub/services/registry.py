"""Room registry: canonical Room rows, join codes and listings."""

import enum
import logging
import secrets
import uuid
from typing import Any, Dict, Iterable, List, Tuple

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..models import Participant, Role, Room, RoomBan, RoomInvitation, User, Visibility
from .credentials import make_secret
from .errors import ConflictError, ForbiddenError, InvalidStateError, NotFoundError, ValidationFailed

logger = logging.getLogger(__name__)

# no 0/O or 1/I so codes survive being read aloud
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

NAME_MAX_LENGTH = 128
DESCRIPTION_MAX_LENGTH = 1000


class RoomSort(str, enum.Enum):
    newest = "newest"
    popular = "popular"
    by_name = "name"


def generate_room_code(length: int | None = None) -> str:
    length = length or settings.room_code_length
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _clean_name(name: Any) -> str:
    if name is not None and not isinstance(name, str):
        raise ValidationFailed("Room name must be a string")
    name = (name or "").strip()
    if not name:
        raise ValidationFailed("Room name is required")
    if len(name) > NAME_MAX_LENGTH:
        raise ValidationFailed(f"Room name must be at most {NAME_MAX_LENGTH} characters")
    return name


def _clean_description(description: Any) -> str:
    if description is not None and not isinstance(description, str):
        raise ValidationFailed("Description must be a string")
    description = (description or "").strip()
    if len(description) > DESCRIPTION_MAX_LENGTH:
        raise ValidationFailed(f"Description must be at most {DESCRIPTION_MAX_LENGTH} characters")
    return description


def _check_capacity(max_participants: Any) -> int:
    if isinstance(max_participants, bool) or not isinstance(max_participants, int):
        raise ValidationFailed("maxParticipants must be a whole number")
    if max_participants < 1:
        raise ValidationFailed("maxParticipants must be at least 1")
    return max_participants


class RoomRegistry:
    def __init__(self, db: Session):
        self.db = db

    def _participant_counts(self):
        return (
            self.db.query(Participant.room_id, func.count(Participant.id).label("participant_count"))
            .group_by(Participant.room_id)
            .subquery()
        )

    def create_room(
        self,
        owner_id: uuid.UUID,
        name: str,
        description: str | None = None,
        visibility: Visibility = Visibility.public,
        password: str | None = None,
        max_participants: int | None = None,
    ) -> Room:
        """Insert a room and its owner membership, retrying on code collisions.

        Must be the first write of the session's unit of work: a collision
        rolls the session back before the next attempt.
        """
        name = _clean_name(name)
        description = _clean_description(description)
        if max_participants is None:
            max_participants = settings.default_max_participants
        _check_capacity(max_participants)
        secret = make_secret(password)

        for attempt in range(1, settings.room_code_attempts + 1):
            code = generate_room_code()
            if self.db.query(Room.id).filter(Room.code == code).first() is not None:
                logger.debug("room code %s taken (attempt %d)", code, attempt)
                continue
            room = Room(
                id=uuid.uuid4(),
                code=code,
                name=name,
                description=description,
                visibility=visibility,
                password_hash=secret,
                owner_id=owner_id,
                max_participants=max_participants,
            )
            try:
                self.db.add(room)
                self.db.flush()
                self.db.add(Participant(room_id=room.id, user_id=owner_id, role=Role.owner))
                self.db.flush()
            except IntegrityError:
                # another writer claimed the code between check and insert
                self.db.rollback()
                logger.warning("room code %s collided on insert (attempt %d)", code, attempt)
                continue
            logger.info("room %s created by %s with code %s", room.id, owner_id, code)
            return room

        raise ConflictError("Could not allocate a unique room code, try again")

    def get(self, room_id: uuid.UUID, for_update: bool = False) -> Room:
        q = self.db.query(Room).filter(Room.id == room_id)
        if for_update:
            q = q.with_for_update()
            # re-read under the lock instead of trusting the identity map
            q = q.populate_existing()
        room = q.first()
        if not room:
            raise NotFoundError("Room not found")
        return room

    def find_by_code(self, code: str) -> Room:
        room = self.db.query(Room).filter(Room.code == normalize_code(code)).first()
        if not room:
            raise NotFoundError("Room not found")
        return room

    def list_public(
        self,
        search: str | None = None,
        sort: RoomSort = RoomSort.newest,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Tuple[Room, int]], int]:
        if page < 1:
            raise ValidationFailed("page must be at least 1")
        if limit < 1 or limit > settings.max_page_size:
            raise ValidationFailed(f"limit must be between 1 and {settings.max_page_size}")

        counts = self._participant_counts()
        participant_count = func.coalesce(counts.c.participant_count, 0)
        q = (
            self.db.query(Room, participant_count)
            .outerjoin(counts, counts.c.room_id == Room.id)
            .filter(Room.visibility == Visibility.public)
        )
        search = (search or "").strip()
        if search:
            pattern = f"%{escape_like(search)}%"
            q = q.filter(or_(
                Room.name.ilike(pattern, escape="\\"),
                Room.description.ilike(pattern, escape="\\"),
            ))

        total = q.count()
        if sort == RoomSort.popular:
            q = q.order_by(participant_count.desc(), Room.created_at.desc())
        elif sort == RoomSort.by_name:
            q = q.order_by(Room.name.asc(), Room.created_at.desc())
        else:
            q = q.order_by(Room.created_at.desc())

        rows = q.offset((page - 1) * limit).limit(limit).all()
        return [(room, int(count)) for room, count in rows], total

    def list_for_user(self, user_id: uuid.UUID) -> List[Tuple[Room, int, Role]]:
        counts = self._participant_counts()
        rows = (
            self.db.query(Room, func.coalesce(counts.c.participant_count, 0), Participant.role)
            .join(Participant, Participant.room_id == Room.id)
            .outerjoin(counts, counts.c.room_id == Room.id)
            .filter(Participant.user_id == user_id)
            .order_by(Room.created_at.desc())
            .all()
        )
        return [(room, int(count), role) for room, count, role in rows]

    def owner_names(self, rooms: Iterable[Room]) -> Dict[uuid.UUID, str]:
        owner_ids = {room.owner_id for room in rooms}
        if not owner_ids:
            return {}
        rows = self.db.query(User.id, User.display_name).filter(User.id.in_(owner_ids)).all()
        return {user_id: name for user_id, name in rows}

    def update_room(self, room_id: uuid.UUID, requester_id: uuid.UUID, patch: dict[str, Any]) -> Room:
        room = self.get(room_id, for_update=True)
        if room.owner_id != requester_id:
            raise ForbiddenError("Only the owner can update the room")

        # validate the whole patch before touching the row
        changes: dict[str, Any] = {}
        if "name" in patch:
            changes["name"] = _clean_name(patch["name"])
        if "description" in patch:
            changes["description"] = _clean_description(patch["description"])
        if patch.get("visibility") is not None:
            try:
                changes["visibility"] = Visibility(patch["visibility"])
            except ValueError:
                raise ValidationFailed(f"Unknown visibility {patch['visibility']!r}")
        if "password" in patch and patch["password"] is not None:
            if not isinstance(patch["password"], str):
                raise ValidationFailed("Password must be a string")
            # empty string lifts the protection
            changes["password_hash"] = make_secret(patch["password"])
        if patch.get("max_participants") is not None:
            capacity = _check_capacity(patch["max_participants"])
            current = self.db.query(func.count(Participant.id)).filter(Participant.room_id == room.id).scalar()
            if capacity < current:
                raise InvalidStateError(f"Room already has {current} participants")
            changes["max_participants"] = capacity

        for key, value in changes.items():
            setattr(room, key, value)
        self.db.flush()
        logger.info("room %s updated by %s: %s", room.id, requester_id, sorted(patch))
        return room

    def delete_room(self, room_id: uuid.UUID, requester_id: uuid.UUID) -> None:
        room = self.get(room_id, for_update=True)
        if room.owner_id != requester_id:
            raise ForbiddenError("Only the owner can delete the room")
        self.purge(room)

    def purge(self, room: Room) -> None:
        room_id = room.id
        self.db.query(RoomInvitation).filter(RoomInvitation.room_id == room_id).delete(synchronize_session=False)
        self.db.query(RoomBan).filter(RoomBan.room_id == room_id).delete(synchronize_session=False)
        self.db.query(Participant).filter(Participant.room_id == room_id).delete(synchronize_session=False)
        self.db.delete(room)
        self.db.flush()
        logger.info("room %s deleted", room_id)
