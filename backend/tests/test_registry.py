import uuid

import pytest

from roomhub.core.config import settings
from roomhub.models import Participant, Role, RoomBan, RoomInvitation, User, Visibility
from roomhub.services import registry as registry_module
from roomhub.services.errors import ConflictError, ForbiddenError, InvalidStateError, NotFoundError, ValidationFailed
from roomhub.services.ledger import MembershipLedger
from roomhub.services.registry import CODE_ALPHABET, RoomRegistry, RoomSort


@pytest.fixture
def registry(db):
    return RoomRegistry(db)


def test_create_room_adds_owner_as_first_participant(db, registry):
    owner = uuid.uuid4()
    room = registry.create_room(owner, "Design Jam")
    db.commit()

    assert room.owner_id == owner
    assert room.max_participants == settings.default_max_participants
    assert room.visibility == Visibility.public
    assert room.password_hash is None
    participants = MembershipLedger(db).list_participants(room.id)
    assert [(p.user_id, p.role) for p in participants] == [(owner, Role.owner)]


def test_room_code_is_short_and_shareable(registry):
    room = registry.create_room(uuid.uuid4(), "Codes")
    assert len(room.code) == settings.room_code_length
    assert set(room.code) <= set(CODE_ALPHABET)


@pytest.mark.parametrize("name", ["", "   ", None])
def test_create_room_requires_a_name(registry, name):
    with pytest.raises(ValidationFailed):
        registry.create_room(uuid.uuid4(), name)


@pytest.mark.parametrize("capacity", [0, -3])
def test_create_room_rejects_non_positive_capacity(registry, capacity):
    with pytest.raises(ValidationFailed):
        registry.create_room(uuid.uuid4(), "Tiny", max_participants=capacity)


def test_code_collision_is_retried(db, registry, monkeypatch):
    codes = iter(["TAKEN234", "TAKEN234", "FRESH234"])
    monkeypatch.setattr(registry_module, "generate_room_code", lambda length=None: next(codes))

    first = registry.create_room(uuid.uuid4(), "First")
    db.commit()
    second = registry.create_room(uuid.uuid4(), "Second")
    db.commit()

    assert first.code == "TAKEN234"
    assert second.code == "FRESH234"


def test_code_allocation_gives_up_with_conflict(db, registry, monkeypatch):
    monkeypatch.setattr(registry_module, "generate_room_code", lambda length=None: "SAME2345")
    registry.create_room(uuid.uuid4(), "First")
    db.commit()
    with pytest.raises(ConflictError):
        registry.create_room(uuid.uuid4(), "Second")


def test_find_by_code_ignores_case_and_whitespace(db, registry):
    room = registry.create_room(uuid.uuid4(), "Lookup")
    db.commit()
    assert registry.find_by_code(f"  {room.code.lower()} ").id == room.id


def test_find_by_code_missing(registry):
    with pytest.raises(NotFoundError):
        registry.find_by_code("NOPE2345")


def test_list_public_hides_private_rooms_but_not_protected_ones(db, registry):
    registry.create_room(uuid.uuid4(), "Open")
    registry.create_room(uuid.uuid4(), "Gated", password="s3cret")
    registry.create_room(uuid.uuid4(), "Hidden", visibility=Visibility.private)
    db.commit()

    rows, total = registry.list_public(sort=RoomSort.by_name)
    assert total == 2
    assert [room.name for room, _ in rows] == ["Gated", "Open"]


def test_list_public_sorts_by_popularity(db, registry):
    quiet = registry.create_room(uuid.uuid4(), "Quiet")
    busy = registry.create_room(uuid.uuid4(), "Busy")
    db.commit()
    ledger = MembershipLedger(db)
    ledger.add_participant(busy, uuid.uuid4())
    ledger.add_participant(busy, uuid.uuid4())
    db.commit()

    rows, _ = registry.list_public(sort=RoomSort.popular)
    assert [(room.id, count) for room, count in rows] == [(busy.id, 3), (quiet.id, 1)]


def test_list_public_newest_first(db, registry):
    older = registry.create_room(uuid.uuid4(), "Older")
    db.commit()
    newer = registry.create_room(uuid.uuid4(), "Newer")
    db.commit()

    rows, _ = registry.list_public(sort=RoomSort.newest)
    assert [room.id for room, _ in rows] == [newer.id, older.id]


def test_list_public_search_and_paging(db, registry):
    for i in range(5):
        registry.create_room(uuid.uuid4(), f"Sketch club {i}")
    registry.create_room(uuid.uuid4(), "Chess")
    db.commit()

    rows, total = registry.list_public(search="sketch", sort=RoomSort.by_name, page=2, limit=2)
    assert total == 5
    assert [room.name for room, _ in rows] == ["Sketch club 2", "Sketch club 3"]


def test_list_public_search_treats_wildcards_literally(db, registry):
    registry.create_room(uuid.uuid4(), "100% focus")
    registry.create_room(uuid.uuid4(), "1000 pieces")
    registry.create_room(uuid.uuid4(), "snake_case fans")
    registry.create_room(uuid.uuid4(), "snakeXcase fans")
    db.commit()

    rows, _ = registry.list_public(search="100%", sort=RoomSort.by_name)
    assert [room.name for room, _ in rows] == ["100% focus"]
    rows, _ = registry.list_public(search="snake_case", sort=RoomSort.by_name)
    assert [room.name for room, _ in rows] == ["snake_case fans"]


@pytest.mark.parametrize("page,limit", [(0, 10), (1, 0), (1, 10_000)])
def test_list_public_rejects_bad_paging(registry, page, limit):
    with pytest.raises(ValidationFailed):
        registry.list_public(page=page, limit=limit)


def test_list_for_user_includes_joined_rooms(db, registry):
    me = uuid.uuid4()
    mine = registry.create_room(me, "Mine")
    other = registry.create_room(uuid.uuid4(), "Theirs", visibility=Visibility.private)
    registry.create_room(uuid.uuid4(), "Unrelated")
    db.commit()
    MembershipLedger(db).add_participant(other, me)
    db.commit()

    rows = registry.list_for_user(me)
    assert {(room.id, role) for room, _, role in rows} == {(mine.id, Role.owner), (other.id, Role.participant)}


def test_update_room_owner_only(db, registry):
    room = registry.create_room(uuid.uuid4(), "Owned")
    db.commit()
    with pytest.raises(ForbiddenError):
        registry.update_room(room.id, uuid.uuid4(), {"name": "Stolen"})


def test_update_room_password_rules(db, registry):
    owner = uuid.uuid4()
    room = registry.create_room(owner, "Lockable")
    db.commit()

    registry.update_room(room.id, owner, {"password": "s3cret"})
    assert room.has_password
    registry.update_room(room.id, owner, {"name": "Renamed"})
    assert room.has_password
    registry.update_room(room.id, owner, {"password": ""})
    assert not room.has_password


def test_update_room_capacity_cannot_drop_below_members(db, registry):
    owner = uuid.uuid4()
    room = registry.create_room(owner, "Crowded")
    db.commit()
    MembershipLedger(db).add_participant(room, uuid.uuid4())
    db.commit()

    with pytest.raises(InvalidStateError):
        registry.update_room(room.id, owner, {"max_participants": 1})
    with pytest.raises(ValidationFailed):
        registry.update_room(room.id, owner, {"max_participants": 0})
    with pytest.raises(ValidationFailed):
        registry.update_room(room.id, owner, {"max_participants": "abc"})
    assert room.max_participants == settings.default_max_participants


def test_update_room_rejects_unknown_visibility_without_touching_the_row(db, registry):
    owner = uuid.uuid4()
    room = registry.create_room(owner, "Steady")
    db.commit()

    with pytest.raises(ValidationFailed):
        registry.update_room(room.id, owner, {"name": "Hijacked", "visibility": "bogus"})
    assert room.name == "Steady"
    assert room.visibility == Visibility.public


def test_owner_names_skips_unknown_users(db, registry):
    known = User(display_name="Olive")
    db.add(known)
    db.commit()
    mine = registry.create_room(known.id, "Named")
    stranger = registry.create_room(uuid.uuid4(), "Anonymous")
    db.commit()

    assert registry.owner_names([mine, stranger]) == {known.id: "Olive"}
    assert registry.owner_names([]) == {}


def test_delete_room_cascades(db, registry):
    owner = uuid.uuid4()
    room = registry.create_room(owner, "Doomed")
    db.commit()
    ledger = MembershipLedger(db)
    ledger.add_participant(room, uuid.uuid4())
    ledger.ban(room.id, uuid.uuid4(), owner)
    db.commit()

    with pytest.raises(ForbiddenError):
        registry.delete_room(room.id, uuid.uuid4())
    room_id = room.id
    registry.delete_room(room_id, owner)
    db.commit()

    with pytest.raises(NotFoundError):
        registry.get(room_id)
    assert db.query(Participant).filter(Participant.room_id == room_id).count() == 0
    assert db.query(RoomBan).filter(RoomBan.room_id == room_id).count() == 0
    assert db.query(RoomInvitation).filter(RoomInvitation.room_id == room_id).count() == 0
