import uuid
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from ..db.session import get_db
from ..models import User
from ..schemas.room import ManageParticipantRequest, ParticipantOut
from ..services.moderation import ModerationAuthority
from .auth import current_user
from .rooms import dump, respond

router = APIRouter()


@router.get("/{room_id}/participants")
def list_participants(room_id: uuid.UUID, db: Session = Depends(get_db), me: User = Depends(current_user)):
    result = ModerationAuthority(db).list_participants(room_id, me.id)
    if not result.success:
        return respond(result)
    return respond(result, {
        "participants": [dump(ParticipantOut.from_participant(p, name)) for p, name in result.value],
    })


@router.post("/{room_id}/participants/{target_user_id}")
def manage_participant(
    room_id: uuid.UUID,
    target_user_id: uuid.UUID,
    payload: ManageParticipantRequest,
    db: Session = Depends(get_db),
    me: User = Depends(current_user),
):
    result = ModerationAuthority(db).manage_participant(room_id, me.id, target_user_id, payload.action)
    if not result.success:
        return respond(result)
    outcome = result.value
    return respond(result, {
        "action": outcome.action.value,
        "userId": str(outcome.target_user_id),
        "role": outcome.role.value if outcome.role else None,
    })


@router.delete("/{room_id}/bans/{target_user_id}")
def unban(room_id: uuid.UUID, target_user_id: uuid.UUID, db: Session = Depends(get_db), me: User = Depends(current_user)):
    return respond(ModerationAuthority(db).unban(room_id, me.id, target_user_id))
