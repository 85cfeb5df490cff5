from .client import RemoteParticipant
from .protocol import MessageType
from .server import HostServer
from .view import PlayerView, TableView

__all__ = ["HostServer", "MessageType", "PlayerView", "RemoteParticipant", "TableView"]
