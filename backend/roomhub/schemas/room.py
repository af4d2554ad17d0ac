"""Request/response models for the room API.

This is the only place that knows about the external shapes clients send
and expect: ``isPublic`` booleans next to the ``visibility`` enum, camelCase
keys, ``roomCode``, ``ownerId`` next to ``ownerName`` and the derived
``participantCount``/``hasPassword``.
Everything past the routers works on the canonical models.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from ..models import Participant, Role, Room, Visibility
from ..services.access import InviteOutcome, RoomCodeCheck, RoomSnapshot
from ..services.moderation import ModerationAction


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class VisibilityInput(CamelModel):
    @model_validator(mode="before")
    @classmethod
    def reconcile_visibility(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        is_public = data.get("isPublic", data.get("is_public"))
        if is_public is None:
            return data
        data = {k: v for k, v in data.items() if k not in ("isPublic", "is_public")}
        data.setdefault("visibility", Visibility.public if is_public else Visibility.private)
        return data


class RoomCreate(VisibilityInput):
    name: str
    description: str | None = None
    visibility: Visibility = Visibility.public
    password: str | None = None
    max_participants: int | None = None


class RoomUpdate(VisibilityInput):
    name: str | None = None
    description: str | None = None
    visibility: Visibility | None = None
    password: str | None = None
    max_participants: int | None = None

    def to_patch(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class JoinRequest(CamelModel):
    room_code: str
    password: str | None = None

    @model_validator(mode="before")
    @classmethod
    def accept_room_id(cls, data: Any) -> Any:
        # older clients send the code as roomId
        if isinstance(data, dict) and "roomCode" not in data and "room_code" not in data and "roomId" in data:
            data = {**data, "roomCode": data["roomId"]}
        return data


class InviteRequest(CamelModel):
    user_ids: list[UUID] = Field(min_length=1, max_length=100)


class ManageParticipantRequest(CamelModel):
    action: ModerationAction


class RoomOut(CamelModel):
    id: UUID
    name: str
    description: str
    room_code: str
    owner_id: UUID
    owner_name: str | None = None
    visibility: Visibility
    is_public: bool
    has_password: bool
    participant_count: int
    max_participants: int
    created_at: datetime
    updated_at: datetime
    my_role: Role | None = None

    @classmethod
    def from_room(
        cls,
        room: Room,
        participant_count: int,
        role: Role | None = None,
        owner_name: str | None = None,
    ) -> "RoomOut":
        return cls(
            id=room.id,
            name=room.name,
            description=room.description or "",
            room_code=room.code,
            owner_id=room.owner_id,
            owner_name=owner_name,
            visibility=room.visibility,
            is_public=room.is_public,
            has_password=room.has_password,
            participant_count=participant_count,
            max_participants=room.max_participants,
            created_at=room.created_at,
            updated_at=room.updated_at,
            my_role=role,
        )

    @classmethod
    def from_snapshot(cls, snapshot: RoomSnapshot) -> "RoomOut":
        return cls.from_room(snapshot.room, snapshot.participant_count, snapshot.role, snapshot.owner_name)


class RoomBasicInfo(CamelModel):
    id: UUID
    name: str
    description: str
    room_code: str
    is_public: bool
    requires_password: bool
    participant_count: int
    max_participants: int
    is_full: bool


class RoomCodeValidation(CamelModel):
    exists: bool
    requires_password: bool
    password_valid: bool | None = None
    room: RoomBasicInfo | None = None

    @classmethod
    def from_check(cls, check: RoomCodeCheck) -> "RoomCodeValidation":
        info = None
        if check.room is not None:
            room = check.room
            info = RoomBasicInfo(
                id=room.id,
                name=room.name,
                description=room.description or "",
                room_code=room.code,
                is_public=room.is_public,
                requires_password=check.requires_password,
                participant_count=check.participant_count,
                max_participants=room.max_participants,
                is_full=check.participant_count >= room.max_participants,
            )
        return cls(
            exists=check.exists,
            requires_password=check.requires_password,
            password_valid=check.password_valid,
            room=info,
        )


class ParticipantOut(CamelModel):
    user_id: UUID
    display_name: str | None = None
    role: Role
    joined_at: datetime

    @classmethod
    def from_participant(cls, participant: Participant, display_name: str | None = None) -> "ParticipantOut":
        return cls(
            user_id=participant.user_id,
            display_name=display_name,
            role=participant.role,
            joined_at=participant.joined_at,
        )


class InviteResult(CamelModel):
    user_id: UUID
    outcome: InviteOutcome
