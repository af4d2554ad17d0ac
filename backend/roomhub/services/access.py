"""Access coordinator: the join/leave state machine and room operations.

Every public method returns a :class:`~roomhub.services.errors.Result` and
commits at most once. Membership mutations run under the room's lock and
re-read the room row ``FOR UPDATE`` before checking capacity or roles.
"""

import enum
import logging
import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, Iterable, List

from sqlalchemy.orm import Session

from ..core.config import settings
from ..db.session import utcnow
from ..models import Participant, Role, Room, RoomInvitation, Visibility
from .credentials import check_password
from .errors import ForbiddenError, InvalidCredentialsError, NotFoundError, Result, RoomFullError, recover
from .ledger import MembershipLedger
from .locks import room_locks
from .registry import RoomRegistry, RoomSort

logger = logging.getLogger(__name__)


class InviteOutcome(str, enum.Enum):
    invited = "invited"
    already_member = "already_member"
    banned = "banned"
    requester = "self"


@dataclass
class RoomSnapshot:
    room: Room
    participant_count: int
    role: Role | None = None
    owner_name: str | None = None


@dataclass
class Membership:
    room: Room
    participant: Participant
    participant_count: int
    already_member: bool = False
    owner_name: str | None = None


@dataclass
class LeaveOutcome:
    room_id: uuid.UUID
    room_deleted: bool = False


@dataclass
class RoomCodeCheck:
    exists: bool
    requires_password: bool = False
    password_valid: bool | None = None
    room: Room | None = None
    participant_count: int = 0


@dataclass
class RoomPage:
    rooms: List[RoomSnapshot] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 20


class AccessCoordinator:
    def __init__(self, db: Session):
        self.db = db
        self.registry = RoomRegistry(db)
        self.ledger = MembershipLedger(db)

    # -- room lifecycle --------------------------------------------------

    def _owner_name(self, room: Room) -> str | None:
        return self.registry.owner_names([room]).get(room.owner_id)

    @recover
    def create_room(
        self,
        owner_id: uuid.UUID,
        name: str,
        description: str | None = None,
        visibility: Visibility = Visibility.public,
        password: str | None = None,
        max_participants: int | None = None,
    ) -> Result[Membership]:
        room = self.registry.create_room(owner_id, name, description, visibility, password, max_participants)
        self.db.commit()
        owner = self.ledger.require(room.id, owner_id)
        return Result.ok(Membership(room=room, participant=owner, participant_count=1, owner_name=self._owner_name(room)))

    @recover
    def get_room(self, room_id: uuid.UUID, requester_id: uuid.UUID) -> Result[RoomSnapshot]:
        room = self.registry.get(room_id)
        me = self.ledger.get(room.id, requester_id)
        if room.visibility == Visibility.private and me is None:
            raise ForbiddenError("This room is private")
        return Result.ok(RoomSnapshot(room, self.ledger.count(room.id), me.role if me else None, self._owner_name(room)))

    @recover
    def list_public_rooms(
        self,
        search: str | None = None,
        sort: RoomSort = RoomSort.newest,
        page: int = 1,
        limit: int = 20,
    ) -> Result[RoomPage]:
        rows, total = self.registry.list_public(search=search, sort=sort, page=page, limit=limit)
        names = self.registry.owner_names(room for room, _ in rows)
        return Result.ok(RoomPage(
            rooms=[RoomSnapshot(room, count, owner_name=names.get(room.owner_id)) for room, count in rows],
            total=total,
            page=page,
            limit=limit,
        ))

    @recover
    def list_my_rooms(self, user_id: uuid.UUID) -> Result[List[RoomSnapshot]]:
        rows = self.registry.list_for_user(user_id)
        names = self.registry.owner_names(room for room, _, _ in rows)
        return Result.ok([RoomSnapshot(room, count, role, names.get(room.owner_id)) for room, count, role in rows])

    @recover
    def update_room(self, room_id: uuid.UUID, requester_id: uuid.UUID, patch: dict[str, Any]) -> Result[RoomSnapshot]:
        with room_locks.hold(room_id):
            room = self.registry.update_room(room_id, requester_id, patch)
            self.db.commit()
            return Result.ok(RoomSnapshot(room, self.ledger.count(room.id), Role.owner, self._owner_name(room)))

    @recover
    def delete_room(self, room_id: uuid.UUID, requester_id: uuid.UUID) -> Result[None]:
        with room_locks.hold(room_id):
            self.registry.delete_room(room_id, requester_id)
            self.db.commit()
        room_locks.forget(room_id)
        return Result.ok(message="Room deleted")

    # -- membership ------------------------------------------------------

    def _has_invitation(self, room_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        return (
            self.db.query(RoomInvitation.id)
            .filter(
                RoomInvitation.room_id == room_id,
                RoomInvitation.user_id == user_id,
                RoomInvitation.expires_at > utcnow(),
            )
            .first()
            is not None
        )

    def _consume_invitation(self, room_id: uuid.UUID, user_id: uuid.UUID) -> None:
        self.db.query(RoomInvitation).filter(
            RoomInvitation.room_id == room_id,
            RoomInvitation.user_id == user_id,
        ).delete(synchronize_session=False)

    @recover
    def join_room(self, room_code: str, user_id: uuid.UUID, password: str | None = None) -> Result[Membership]:
        room = self.registry.find_by_code(room_code)
        with room_locks.hold(room.id):
            room = self.registry.get(room.id, for_update=True)
            if self.ledger.is_banned(room.id, user_id):
                raise ForbiddenError("You are banned from this room")

            existing = self.ledger.get(room.id, user_id)
            if existing is not None:
                return Result.ok(Membership(room, existing, self.ledger.count(room.id), already_member=True, owner_name=self._owner_name(room)))

            if room.has_password:
                invited = room.visibility == Visibility.private and self._has_invitation(room.id, user_id)
                if not invited and not check_password(room.password_hash, password):
                    raise InvalidCredentialsError("Password required" if not password else "Invalid room password")

            if self.ledger.count(room.id) >= room.max_participants:
                raise RoomFullError("Room is full")

            participant = self.ledger.add_participant(room, user_id, Role.participant)
            self._consume_invitation(room.id, user_id)
            self.db.commit()
            return Result.ok(Membership(room, participant, self.ledger.count(room.id), owner_name=self._owner_name(room)))

    @recover
    def leave_room(self, room_id: uuid.UUID, user_id: uuid.UUID) -> Result[LeaveOutcome]:
        with room_locks.hold(room_id):
            room = self.registry.get(room_id, for_update=True)
            me = self.ledger.get(room.id, user_id)
            if me is None:
                raise NotFoundError("You are not a participant of this room")

            if me.role == Role.owner:
                if self.ledger.count(room.id) > 1:
                    raise ForbiddenError("The owner cannot leave while other participants remain; delete the room instead")
                # last member out: a room never stays ownerless
                self.registry.purge(room)
                self.db.commit()
                room_locks.forget(room_id)
                return Result.ok(LeaveOutcome(room_id, room_deleted=True), message="Room deleted")

            self.ledger.remove_participant(room.id, user_id)
            self.db.commit()
            return Result.ok(LeaveOutcome(room_id), message="Left room")

    @recover
    def validate_room_code(self, code: str, password: str | None = None) -> Result[RoomCodeCheck]:
        try:
            room = self.registry.find_by_code(code)
        except NotFoundError:
            return Result.ok(RoomCodeCheck(exists=False), message="Room not found")
        check = RoomCodeCheck(
            exists=True,
            requires_password=room.has_password,
            room=room,
            participant_count=self.ledger.count(room.id),
        )
        if password is not None:
            check.password_valid = check_password(room.password_hash, password)
        return Result.ok(check)

    @recover
    def invite_users(
        self,
        room_id: uuid.UUID,
        requester_id: uuid.UUID,
        user_ids: Iterable[uuid.UUID],
    ) -> Result[Dict[uuid.UUID, InviteOutcome]]:
        with room_locks.hold(room_id):
            room = self.registry.get(room_id, for_update=True)
            me = self.ledger.get(room.id, requester_id)
            if me is None or me.role not in (Role.owner, Role.admin):
                raise ForbiddenError("Only the owner or an admin can invite users")

            expires_at = utcnow() + timedelta(minutes=settings.invite_ttl_minutes)
            outcomes: Dict[uuid.UUID, InviteOutcome] = {}
            for user_id in dict.fromkeys(user_ids):
                if user_id == requester_id:
                    outcomes[user_id] = InviteOutcome.requester
                elif self.ledger.is_banned(room.id, user_id):
                    outcomes[user_id] = InviteOutcome.banned
                elif self.ledger.get(room.id, user_id) is not None:
                    outcomes[user_id] = InviteOutcome.already_member
                else:
                    invitation = (
                        self.db.query(RoomInvitation)
                        .filter(RoomInvitation.room_id == room.id, RoomInvitation.user_id == user_id)
                        .first()
                    )
                    if invitation is None:
                        invitation = RoomInvitation(room_id=room.id, user_id=user_id, invited_by=requester_id, expires_at=expires_at)
                        self.db.add(invitation)
                    else:
                        invitation.invited_by = requester_id
                        invitation.expires_at = expires_at
                    outcomes[user_id] = InviteOutcome.invited
            self.db.commit()

        invited = [str(u) for u, outcome in outcomes.items() if outcome == InviteOutcome.invited]
        if invited:
            logger.info("room %s: %s invited %s", room_id, requester_id, ", ".join(invited))
        return Result.ok(outcomes)
