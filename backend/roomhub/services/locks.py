import threading
import uuid
from contextlib import contextmanager
from typing import Dict, Iterator


class RoomLocks:
    """Per-room mutexes serializing membership changes inside one process.

    Cross-process serialization comes from the ``FOR UPDATE`` row lock the
    services take on the room row once they hold this lock.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[uuid.UUID, threading.RLock] = {}

    def _lock_for(self, room_id: uuid.UUID) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(room_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[room_id] = lock
            return lock

    @contextmanager
    def hold(self, room_id: uuid.UUID) -> Iterator[None]:
        lock = self._lock_for(room_id)
        with lock:
            yield

    def forget(self, room_id: uuid.UUID) -> None:
        with self._guard:
            self._locks.pop(room_id, None)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


room_locks = RoomLocks()
