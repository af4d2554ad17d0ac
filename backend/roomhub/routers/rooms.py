import uuid
from typing import Any
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session
from ..db.session import get_db
from ..models import User
from ..schemas.room import (
    InviteRequest,
    InviteResult,
    JoinRequest,
    ParticipantOut,
    RoomCodeValidation,
    RoomCreate,
    RoomOut,
    RoomUpdate,
)
from ..services.access import AccessCoordinator
from ..services.errors import ErrorKind, Result
from ..services.registry import RoomSort
from .auth import current_user

router = APIRouter()

STATUS_BY_ERROR = {
    ErrorKind.not_found: 404,
    ErrorKind.forbidden: 403,
    ErrorKind.conflict: 409,
    ErrorKind.room_full: 409,
    ErrorKind.invalid_credentials: 401,
    ErrorKind.validation_error: 422,
    ErrorKind.invalid_state: 409,
    ErrorKind.invalid_operation: 400,
}


def respond(result: Result, payload: dict[str, Any] | None = None, status_code: int = 200) -> JSONResponse:
    if not result.success:
        return JSONResponse(
            status_code=STATUS_BY_ERROR[result.error],
            content={"success": False, "error": result.error.value, "message": result.message},
        )
    body: dict[str, Any] = {"success": True}
    if result.message:
        body["message"] = result.message
    body.update(payload or {})
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def dump(model) -> dict:
    return model.model_dump(mode="json", by_alias=True)


@router.post("/")
@router.post("/create", include_in_schema=False)
def create_room(payload: RoomCreate, db: Session = Depends(get_db), me: User = Depends(current_user)):
    result = AccessCoordinator(db).create_room(
        owner_id=me.id,
        name=payload.name,
        description=payload.description,
        visibility=payload.visibility,
        password=payload.password,
        max_participants=payload.max_participants,
    )
    if not result.success:
        return respond(result)
    m = result.value
    return respond(result, {"room": dump(RoomOut.from_room(m.room, m.participant_count, m.participant.role, m.owner_name))}, status_code=201)


@router.get("/public")
def list_public_rooms(
    search: str | None = Query(default=None),
    sort: RoomSort = Query(default=RoomSort.newest),
    page: int = Query(default=1),
    limit: int = Query(default=20),
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    result = AccessCoordinator(db).list_public_rooms(search=search, sort=sort, page=page, limit=limit)
    if not result.success:
        return respond(result)
    p = result.value
    return respond(result, {
        "rooms": [dump(RoomOut.from_snapshot(s)) for s in p.rooms],
        "pagination": {"total": p.total, "page": p.page, "limit": p.limit},
    })


@router.get("/mine")
@router.get("/my-rooms", include_in_schema=False)
def my_rooms(db: Session = Depends(get_db), me: User = Depends(current_user)):
    result = AccessCoordinator(db).list_my_rooms(me.id)
    if not result.success:
        return respond(result)
    return respond(result, {"rooms": [dump(RoomOut.from_snapshot(s)) for s in result.value]})


@router.get("/validate/{room_code}")
@router.get("/{room_code}/validate", include_in_schema=False)
def validate_room_code(
    room_code: str,
    password: str | None = Query(default=None),
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    result = AccessCoordinator(db).validate_room_code(room_code, password)
    if not result.success:
        return respond(result)
    return respond(result, dump(RoomCodeValidation.from_check(result.value)))


@router.post("/join")
def join_room(payload: JoinRequest, db: Session = Depends(get_db), me: User = Depends(current_user)):
    result = AccessCoordinator(db).join_room(payload.room_code, me.id, payload.password)
    if not result.success:
        return respond(result)
    m = result.value
    return respond(result, {
        "room": dump(RoomOut.from_room(m.room, m.participant_count, m.participant.role, m.owner_name)),
        "participant": dump(ParticipantOut.from_participant(m.participant, me.display_name)),
        "alreadyMember": m.already_member,
    })


@router.get("/{room_id}")
def get_room(room_id: uuid.UUID, db: Session = Depends(get_db), me: User = Depends(current_user)):
    result = AccessCoordinator(db).get_room(room_id, me.id)
    if not result.success:
        return respond(result)
    return respond(result, {"room": dump(RoomOut.from_snapshot(result.value))})


@router.put("/{room_id}")
def update_room(room_id: uuid.UUID, payload: RoomUpdate, db: Session = Depends(get_db), me: User = Depends(current_user)):
    result = AccessCoordinator(db).update_room(room_id, me.id, payload.to_patch())
    if not result.success:
        return respond(result)
    return respond(result, {"room": dump(RoomOut.from_snapshot(result.value))})


@router.delete("/{room_id}")
def delete_room(room_id: uuid.UUID, db: Session = Depends(get_db), me: User = Depends(current_user)):
    return respond(AccessCoordinator(db).delete_room(room_id, me.id))


@router.post("/{room_id}/leave")
def leave_room(room_id: uuid.UUID, db: Session = Depends(get_db), me: User = Depends(current_user)):
    result = AccessCoordinator(db).leave_room(room_id, me.id)
    if not result.success:
        return respond(result)
    return respond(result, {"roomDeleted": result.value.room_deleted})


@router.post("/{room_id}/invite")
def invite_users(room_id: uuid.UUID, payload: InviteRequest, db: Session = Depends(get_db), me: User = Depends(current_user)):
    result = AccessCoordinator(db).invite_users(room_id, me.id, payload.user_ids)
    if not result.success:
        return respond(result)
    return respond(result, {
        "results": [dump(InviteResult(user_id=user_id, outcome=outcome)) for user_id, outcome in result.value.items()],
    })
