import threading
import time
import uuid

from roomhub.services.locks import RoomLocks


def test_hold_serializes_work_on_the_same_room():
    locks = RoomLocks()
    room_id = uuid.uuid4()
    inside = []
    overlaps = []

    def worker():
        with locks.hold(room_id):
            if inside:
                overlaps.append(True)
            inside.append(1)
            time.sleep(0.01)
            inside.pop()

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert overlaps == []


def test_hold_is_reentrant():
    locks = RoomLocks()
    room_id = uuid.uuid4()
    with locks.hold(room_id):
        with locks.hold(room_id):
            pass


def test_forget_drops_the_room_lock():
    locks = RoomLocks()
    room_id = uuid.uuid4()
    with locks.hold(room_id):
        pass
    assert len(locks) == 1
    locks.forget(room_id)
    assert len(locks) == 0
