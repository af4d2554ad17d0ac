import uuid
from fastapi import APIRouter, Depends, HTTPException, Header
from jwt import PyJWTError
from sqlalchemy.orm import Session
from ..db.session import get_db
from ..models import User
from ..schemas.auth import AnonymousAuthRequest, TokenResponse
from ..core.security import create_access_token, decode_token

router = APIRouter()

@router.post("/anonymous", response_model=TokenResponse)
def anonymous_login(payload: AnonymousAuthRequest, db: Session = Depends(get_db)):
    user = User(display_name=payload.display_name, avatar_url=str(payload.avatar_url) if payload.avatar_url else None)
    db.add(user)
    db.commit()
    db.refresh(user)
    token = create_access_token(str(user.id), extra={"display_name": user.display_name})
    return TokenResponse(access_token=token, user_id=user.id)


def parse_token(authorization: str | None) -> str:
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing Authorization header")
    if not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Invalid Authorization header")
    return authorization.split(" ", 1)[1]


def get_current_user(token: str, db: Session) -> User:
    try:
        payload = decode_token(token)
    except PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    try:
        user_id = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid token")
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user


def current_user(authorization: str | None = Header(default=None), db: Session = Depends(get_db)) -> User:
    return get_current_user(parse_token(authorization), db)
