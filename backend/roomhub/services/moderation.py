"""Moderation authority: who may kick, ban, promote or demote whom."""

import enum
import logging
import uuid
from dataclasses import dataclass
from typing import FrozenSet, List, Tuple

from sqlalchemy.orm import Session

from ..models import Participant, Role, Visibility
from .errors import ForbiddenError, InvalidOperationError, NotFoundError, Result, ValidationFailed, recover
from .ledger import MembershipLedger
from .locks import room_locks
from .registry import RoomRegistry

logger = logging.getLogger(__name__)


class ModerationAction(str, enum.Enum):
    kick = "kick"
    ban = "ban"
    promote = "promote"
    demote = "demote"


@dataclass(frozen=True)
class ActionRule:
    actors: FrozenSet[Role]
    targets: FrozenSet[Role]
    removes_member: bool = False
    new_role: Role | None = None


RULES = {
    ModerationAction.kick: ActionRule(
        actors=frozenset({Role.owner, Role.admin}),
        targets=frozenset({Role.admin, Role.participant}),
        removes_member=True,
    ),
    ModerationAction.ban: ActionRule(
        actors=frozenset({Role.owner, Role.admin}),
        targets=frozenset({Role.admin, Role.participant}),
        removes_member=True,
    ),
    ModerationAction.promote: ActionRule(
        actors=frozenset({Role.owner}),
        targets=frozenset({Role.participant}),
        new_role=Role.admin,
    ),
    ModerationAction.demote: ActionRule(
        actors=frozenset({Role.owner}),
        targets=frozenset({Role.admin}),
        new_role=Role.participant,
    ),
}

MODERATOR_ROLES = frozenset({Role.owner, Role.admin})


@dataclass
class ModerationOutcome:
    action: ModerationAction
    target_user_id: uuid.UUID
    role: Role | None = None


class ModerationAuthority:
    def __init__(self, db: Session):
        self.db = db
        self.registry = RoomRegistry(db)
        self.ledger = MembershipLedger(db)

    @recover
    def list_participants(self, room_id: uuid.UUID, requester_id: uuid.UUID) -> Result[List[Tuple[Participant, str | None]]]:
        room = self.registry.get(room_id)
        if room.visibility == Visibility.private and self.ledger.get(room.id, requester_id) is None:
            raise ForbiddenError("This room is private")
        return Result.ok(self.ledger.list_with_names(room.id))

    @recover
    def manage_participant(
        self,
        room_id: uuid.UUID,
        acting_user_id: uuid.UUID,
        target_user_id: uuid.UUID,
        action: ModerationAction,
    ) -> Result[ModerationOutcome]:
        try:
            action = ModerationAction(action)
        except ValueError:
            raise ValidationFailed(f"Unknown moderation action {action!r}")
        rule = RULES[action]
        with room_locks.hold(room_id):
            room = self.registry.get(room_id, for_update=True)

            if rule.removes_member and target_user_id == room.owner_id:
                raise ForbiddenError(f"The room owner cannot be {'banned' if action == ModerationAction.ban else 'kicked'}")
            if target_user_id == acting_user_id:
                if rule.removes_member:
                    raise InvalidOperationError(f"You cannot {action.value} yourself, leave the room instead")
                raise InvalidOperationError(f"You cannot {action.value} yourself")

            actor = self.ledger.get(room.id, acting_user_id)
            if actor is None:
                raise ForbiddenError("You are not a participant of this room")
            if actor.role not in rule.actors:
                raise ForbiddenError(f"Your role cannot {action.value} participants")

            target = self.ledger.get(room.id, target_user_id)
            if target is None:
                raise NotFoundError("Participant not found")
            if target.role not in rule.targets:
                raise ForbiddenError(f"Cannot {action.value} a participant with role {target.role.value}")

            if action == ModerationAction.kick:
                self.ledger.remove_participant(room.id, target_user_id)
                role = None
            elif action == ModerationAction.ban:
                self.ledger.ban(room.id, target_user_id, acting_user_id)
                role = None
            else:
                role = self.ledger.set_role(room.id, target_user_id, rule.new_role).role
            self.db.commit()

        logger.info("room %s: %s applied %s to %s", room_id, acting_user_id, action.value, target_user_id)
        return Result.ok(ModerationOutcome(action, target_user_id, role), message=f"Participant {action.value} applied")

    @recover
    def unban(self, room_id: uuid.UUID, acting_user_id: uuid.UUID, target_user_id: uuid.UUID) -> Result[None]:
        with room_locks.hold(room_id):
            room = self.registry.get(room_id, for_update=True)
            actor = self.ledger.get(room.id, acting_user_id)
            if actor is None or actor.role not in MODERATOR_ROLES:
                raise ForbiddenError("Only the owner or an admin can lift bans")
            if not self.ledger.unban(room.id, target_user_id):
                raise NotFoundError("User is not banned from this room")
            self.db.commit()
        return Result.ok(message="Ban lifted")
