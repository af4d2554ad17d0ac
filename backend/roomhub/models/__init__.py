from .user import User
from .room import Room, Visibility
from .participant import Participant, Role
from .ban import RoomBan
from .invitation import RoomInvitation
